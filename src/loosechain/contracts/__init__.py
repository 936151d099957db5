"""Schema contracts for receipt documents."""

from loosechain.contracts.registry import (
    CertificateTag,
    ContractRegistry,
    SchemaRef,
    get_registry,
    reset_registry,
)
from loosechain.contracts.validate import SchemaContract, load_contract

__all__ = [
    "CertificateTag",
    "ContractRegistry",
    "SchemaContract",
    "SchemaRef",
    "get_registry",
    "load_contract",
    "reset_registry",
]
