"""Bounded reading of untrusted input.

Receipts and resources are read from paths supplied by callers, so reads are
capped in size and parsed JSON is capped in nesting depth.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from loosechain.errors import ResourceError, SecurityError

# Default security limits
DEFAULT_MAX_FILE_SIZE = 100 * 1024 * 1024  # 100 MB
DEFAULT_MAX_JSON_DEPTH = 100
DEFAULT_MAX_JSON_SIZE = 10 * 1024 * 1024  # 10 MB


class SecurityLimits:
    """Configurable read limits."""

    def __init__(
        self,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
        max_json_depth: int = DEFAULT_MAX_JSON_DEPTH,
        max_json_size: int = DEFAULT_MAX_JSON_SIZE,
    ) -> None:
        self.max_file_size = max_file_size
        self.max_json_depth = max_json_depth
        self.max_json_size = max_json_size


def safe_read_file(path: Path, limits: SecurityLimits | None = None) -> bytes:
    """Read a file with a size limit.

    Raises:
        ResourceError: If the file cannot be read
        SecurityError: If the file is larger than allowed
    """
    if limits is None:
        limits = SecurityLimits()

    try:
        resolved = Path(path).resolve()
        size = resolved.stat().st_size
        if size > limits.max_file_size:
            raise SecurityError(
                f"File too large: {path} ({size} bytes > {limits.max_file_size})",
                path,
            )
        return resolved.read_bytes()
    except OSError as e:
        if isinstance(e, ResourceError):
            raise
        raise ResourceError(f"Cannot read {path}: {e.strerror or e}", path) from e


_STRUCTURAL = re.compile(r'["\[\]{}]')
_STRING_STOP = re.compile(r'["\\]')


def check_json_depth(obj: Any, current_depth: int = 0, max_depth: int = DEFAULT_MAX_JSON_DEPTH) -> int:
    """Check JSON object depth.

    Walks the parsed value with an explicit stack, so arbitrarily deep input
    cannot exhaust the interpreter stack.

    Returns:
        Actual depth of object

    Raises:
        SecurityError: If depth exceeds max_depth
    """
    deepest = current_depth
    stack = [(obj, current_depth)]
    while stack:
        value, depth = stack.pop()
        if depth > max_depth:
            raise SecurityError(f"JSON depth exceeds maximum: {max_depth}")
        deepest = max(deepest, depth)

        if isinstance(value, dict):
            stack.extend((child, depth + 1) for child in value.values())
        elif isinstance(value, list):
            stack.extend((child, depth + 1) for child in value)
    return deepest


def check_text_depth(text: str, max_depth: int = DEFAULT_MAX_JSON_DEPTH) -> int:
    """Check the bracket nesting of raw JSON text before it is parsed.

    Brackets inside string literals are ignored. The limit means the same
    as in check_json_depth: a value nested inside N containers is at depth N.

    Returns:
        Deepest bracket nesting seen

    Raises:
        SecurityError: If depth exceeds max_depth
    """
    depth = deepest = 0
    pos = 0
    end = len(text)
    while pos < end:
        match = _STRUCTURAL.search(text, pos)
        if match is None:
            break
        char = match.group()
        pos = match.end()

        if char == '"':
            # Skip to the closing quote, stepping over escapes.
            while pos < end:
                inner = _STRING_STOP.search(text, pos)
                if inner is None:
                    pos = end
                elif inner.group() == "\\":
                    pos = inner.end() + 1
                else:
                    pos = inner.end()
                    break
        elif char in "[{":
            depth += 1
            # The container just opened sits at depth - 1.
            if depth - 1 > max_depth:
                raise SecurityError(f"JSON depth exceeds maximum: {max_depth}")
            deepest = max(deepest, depth)
        else:
            depth = max(depth - 1, 0)
    return deepest


def _reject_constant(path: Path):
    def parse_constant(name: str) -> Any:
        raise ResourceError(f"Invalid JSON in {path}: non-finite number {name}", path)

    return parse_constant


def safe_load_json_file(path: Path, limits: SecurityLimits | None = None) -> Any:
    """Read and parse a JSON file with size and depth limits.

    Nesting is measured on the raw text first, so hostile input is refused
    before the parser sees it. ``NaN`` and ``Infinity`` are not JSON and are
    rejected.
    """
    if limits is None:
        limits = SecurityLimits()

    data = safe_read_file(path, SecurityLimits(max_file_size=limits.max_json_size))
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ResourceError(f"Invalid JSON in {path}: {e}", path) from e

    check_text_depth(text, max_depth=limits.max_json_depth)

    try:
        obj = json.loads(text, parse_constant=_reject_constant(path))
    except json.JSONDecodeError as e:
        raise ResourceError(f"Invalid JSON in {path}: {e}", path) from e

    check_json_depth(obj, max_depth=limits.max_json_depth)
    return obj
