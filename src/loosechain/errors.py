"""Error taxonomy for receipt issuance and verification.

Every error is terminal for the current invocation. None are retried: each
one reflects a deterministic mismatch in content or cryptography, or a
missing precondition, rather than a transient condition.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


class ReceiptError(Exception):
    """Base class for all receipt errors."""
    pass


class ResourceError(ReceiptError, OSError):
    """A resource or receipt file could not be read."""

    def __init__(self, message: str, path: Path | str | None = None) -> None:
        super().__init__(message)
        self.path = str(path) if path is not None else None

    def __str__(self) -> str:
        return self.args[0] if self.args else ""


class SecurityError(ResourceError):
    """Input exceeded a read limit (size or nesting depth)."""
    pass


class ConfigError(ReceiptError):
    """Required configuration (signing key, schema contract) is unavailable."""
    pass


class SchemaNotFoundError(ConfigError):
    """No schema contract is registered for a certificate tag."""
    pass


@dataclass(frozen=True)
class SchemaViolation:
    """One structural violation: where it happened and why."""

    path: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "message": self.message}

    def __str__(self) -> str:
        return f"{self.path or '<root>'}: {self.message}"


class SchemaError(ReceiptError):
    """Document does not satisfy the schema contract."""

    def __init__(self, violations: list[SchemaViolation] | tuple[SchemaViolation, ...]) -> None:
        self.violations = tuple(violations)
        super().__init__(
            f"Schema validation failed with {len(self.violations)} violation(s): "
            + "; ".join(str(v) for v in self.violations)
        )


class IntegrityError(ReceiptError):
    """Recomputed digest of the resource differs from the stored digest."""

    def __init__(self, expected: str, actual: str, path: str | None = None) -> None:
        self.expected = expected
        self.actual = actual
        self.path = path
        location = f" for {path}" if path else ""
        super().__init__(f"Hash mismatch{location}: expected {expected} but got {actual}")


class AuthenticityError(ReceiptError):
    """Signature does not recover to the stored signer address."""

    def __init__(self, recovered: str | None, expected: str, reason: str | None = None) -> None:
        self.recovered = recovered
        self.expected = expected
        self.reason = reason
        if recovered is None:
            message = f"Bad signature: could not recover signer ({reason}), expected {expected}"
        else:
            message = f"Bad signature: recovered {recovered}, expected {expected}"
        super().__init__(message)
