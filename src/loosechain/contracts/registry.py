"""Contract registry for receipt certificates.

Maps certificate tags such as ``"DRVC3 v1.0"`` to schema files shipped under
the package ``schemas/<artifact>/v<version>/`` directory.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from loosechain.errors import SchemaNotFoundError


@dataclass(frozen=True)
class CertificateTag:
    """Parsed certificate tag: artifact name plus version."""

    name: str
    version: str

    def __str__(self) -> str:
        return f"{self.name} v{self.version}"

    @property
    def artifact_type(self) -> str:
        return self.name.lower()

    @classmethod
    def parse(cls, certificate: str) -> CertificateTag:
        """Parse ``"<NAME> v<version>"``."""
        parts = certificate.split()
        if len(parts) != 2 or not parts[1].startswith("v") or len(parts[1]) < 2:
            raise SchemaNotFoundError(
                f"Invalid certificate tag: {certificate!r}. Expected '<NAME> v<version>'"
            )
        return cls(name=parts[0], version=parts[1][1:])


@dataclass(frozen=True)
class SchemaRef:
    """Reference to a schema file."""

    certificate: CertificateTag
    path: Path

    def load(self) -> dict[str, Any]:
        """Load and return the schema as a dictionary."""
        with open(self.path, encoding="utf-8") as f:
            return json.load(f)


class ContractRegistry:
    """Registry of every schema contract shipped with the package."""

    def __init__(self, schemas_dir: Path | None = None):
        self._refs: dict[str, SchemaRef] = {}

        if schemas_dir is None:
            schemas_dir = Path(__file__).parent.parent / "schemas"

        self.schemas_dir = schemas_dir
        self._load_schemas()

    def _load_schemas(self) -> None:
        if not self.schemas_dir.exists():
            return

        for artifact_dir in sorted(self.schemas_dir.iterdir()):
            if not artifact_dir.is_dir():
                continue

            artifact_type = artifact_dir.name
            for version_dir in sorted(artifact_dir.iterdir()):
                if not version_dir.is_dir() or not version_dir.name.startswith("v"):
                    continue

                schema_file = version_dir / f"{artifact_type}.schema.json"
                if not schema_file.exists():
                    continue

                tag = CertificateTag(name=artifact_type.upper(), version=version_dir.name[1:])
                self._refs[str(tag)] = SchemaRef(certificate=tag, path=schema_file)

    def list_certificates(self) -> list[str]:
        return sorted(self._refs)

    def get_schema(self, certificate: str) -> SchemaRef:
        """Get the schema reference for a certificate tag."""
        tag = CertificateTag.parse(certificate)
        key = f"{tag.name.upper()} v{tag.version}"
        if key not in self._refs:
            raise SchemaNotFoundError(
                f"No schema registered for certificate {certificate!r} "
                f"(known: {', '.join(self.list_certificates()) or 'none'})"
            )
        return self._refs[key]


# Global registry instance
_registry: ContractRegistry | None = None


def get_registry() -> ContractRegistry:
    """Get the global contract registry."""
    global _registry
    if _registry is None:
        _registry = ContractRegistry()
    return _registry


def reset_registry() -> None:
    """Reset the global registry (mainly for testing)."""
    global _registry
    _registry = None
