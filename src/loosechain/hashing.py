"""Content digests and timestamps for receipts."""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from pathlib import Path

from loosechain.errors import ResourceError, SecurityError
from loosechain.security import SecurityLimits

HASH_ALGORITHM = "sha256"

_CHUNK_SIZE = 8192


def digest_bytes(data: bytes) -> str:
    """Return the ``"sha256:<hex>"`` digest of a byte sequence."""
    return f"{HASH_ALGORITHM}:{hashlib.sha256(data).hexdigest()}"


def digest_file(path: Path, limits: SecurityLimits | None = None) -> str:
    """Return the digest of a file's content, read in chunks.

    Raises:
        ResourceError: If the file cannot be read
        SecurityError: If the file exceeds the size limit
    """
    limits = limits or SecurityLimits()
    path = Path(path)

    hasher = hashlib.sha256()
    try:
        size = path.stat().st_size
        if size > limits.max_file_size:
            raise SecurityError(
                f"File too large: {path} ({size} bytes > {limits.max_file_size})",
                path,
            )
        with open(path, "rb") as f:
            while chunk := f.read(_CHUNK_SIZE):
                hasher.update(chunk)
    except SecurityError:
        raise
    except OSError as e:
        raise ResourceError(f"Cannot read resource {path}: {e.strerror or e}", path) from e

    return f"{HASH_ALGORITHM}:{hasher.hexdigest()}"


def iso_timestamp(ts: datetime | None = None) -> str:
    """Generate a UTC timestamp with millisecond precision.

    Format: 2026-01-31T10:00:00.000Z
    """
    if ts is None:
        ts = datetime.now(timezone.utc)
    elif ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    else:
        ts = ts.astimezone(timezone.utc)

    return ts.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ts.microsecond // 1000:03d}Z"
