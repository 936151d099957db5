"""Schema contract validation for receipt documents.

The contract is compiled once per process into an immutable
:class:`SchemaContract` and passed explicitly to the builder and verifier.
"""

from __future__ import annotations

import copy
import functools
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from jsonschema import Draft7Validator
from jsonschema.exceptions import SchemaError as JSONSchemaDefinitionError

from loosechain.config import DEFAULT_CERTIFICATE
from loosechain.contracts.registry import ContractRegistry, get_registry
from loosechain.errors import SchemaError, SchemaNotFoundError, SchemaViolation


def _json_pointer(parts: Any) -> str:
    return "".join(f"/{part}" for part in parts)


@dataclass(frozen=True)
class SchemaContract:
    """Compiled, read-only schema contract for one certificate tag."""

    certificate: str
    schema: Mapping[str, Any]
    _validator: Draft7Validator = field(repr=False, compare=False)

    @classmethod
    def from_schema(cls, certificate: str, schema: dict[str, Any]) -> SchemaContract:
        """Compile a schema document. The caller's dict is copied, never shared."""
        owned = copy.deepcopy(schema)
        try:
            Draft7Validator.check_schema(owned)
        except JSONSchemaDefinitionError as e:
            raise SchemaNotFoundError(f"Schema for {certificate!r} is not a valid JSON Schema: {e.message}")
        return cls(
            certificate=certificate,
            schema=MappingProxyType(copy.deepcopy(owned)),
            _validator=Draft7Validator(owned),
        )

    def validate(self, document: Any) -> list[SchemaViolation]:
        """Return every violation, ordered by path then message. Empty means valid."""
        violations = [
            SchemaViolation(path=_json_pointer(error.absolute_path), message=error.message)
            for error in self._validator.iter_errors(document)
        ]
        return sorted(violations, key=lambda v: (v.path, v.message))

    def is_valid(self, document: Any) -> bool:
        return self._validator.is_valid(document)

    def check(self, document: Any) -> None:
        """Raise SchemaError listing every violation if the document is invalid."""
        violations = self.validate(document)
        if violations:
            raise SchemaError(violations)


@functools.lru_cache(maxsize=None)
def _load_default_contract(certificate: str) -> SchemaContract:
    ref = get_registry().get_schema(certificate)
    return SchemaContract.from_schema(certificate, ref.load())


def load_contract(
    certificate: str = DEFAULT_CERTIFICATE,
    registry: ContractRegistry | None = None,
) -> SchemaContract:
    """Load the compiled contract for a certificate tag.

    Contracts from the default registry are compiled once per process and the
    same instance is returned on every call.

    Raises:
        SchemaNotFoundError: If no schema is registered for the certificate
    """
    if registry is None:
        return _load_default_contract(certificate)
    ref = registry.get_schema(certificate)
    return SchemaContract.from_schema(certificate, ref.load())
