"""Loosechain - signed content-provenance receipts."""

from __future__ import annotations

__version__ = "0.1.0"

from loosechain.errors import (
    AuthenticityError,
    ConfigError,
    IntegrityError,
    ReceiptError,
    ResourceError,
    SchemaError,
    SchemaViolation,
)
from loosechain.receipt import BlockState, Receipt

__all__ = [
    "AuthenticityError",
    "BlockState",
    "ConfigError",
    "IntegrityError",
    "Receipt",
    "ReceiptError",
    "ResourceError",
    "SchemaError",
    "SchemaViolation",
    "__version__",
]
