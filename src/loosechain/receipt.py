"""Receipt document model.

A receipt binds the digest of a resource to an EIP-191 signature and
descriptive metadata. It is created once, persisted as JSON, and afterwards
only read back and re-checked.
"""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from loosechain.errors import ResourceError
from loosechain.hashing import HASH_ALGORITHM

SIGNATURE_METHOD = "eip191"


class BlockState(str, Enum):
    """Draft (loose) vs canonical (blocked). Descriptive only."""

    LOOSE = "loose"
    BLOCKED = "blocked"

    @classmethod
    def from_flag(cls, block: bool) -> BlockState:
        return cls.BLOCKED if block else cls.LOOSE


@dataclass(frozen=True)
class Resource:
    """What the receipt is about."""

    type: str | None = None
    url: str | None = None
    branch: str | None = None
    commit_hash: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            k: v
            for k, v in (
                ("type", self.type),
                ("url", self.url),
                ("branch", self.branch),
                ("commit_hash", self.commit_hash),
            )
            if v is not None
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Resource:
        return cls(
            type=data.get("type"),
            url=data.get("url"),
            branch=data.get("branch"),
            commit_hash=data.get("commit_hash"),
        )


@dataclass(frozen=True)
class Integrity:
    """Digest, signature and the address the signature belongs to."""

    hash: str
    signature: str
    signer_address: str
    hash_algorithm: str = HASH_ALGORITHM
    signature_method: str = SIGNATURE_METHOD

    def to_dict(self) -> dict[str, Any]:
        return {
            "hash_algorithm": self.hash_algorithm,
            "hash": self.hash,
            "signature_method": self.signature_method,
            "signature": self.signature,
            "signer_address": self.signer_address,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Integrity:
        return cls(
            hash=data["hash"],
            signature=data["signature"],
            signer_address=data["signer_address"],
            hash_algorithm=data.get("hash_algorithm", HASH_ALGORITHM),
            signature_method=data.get("signature_method", SIGNATURE_METHOD),
        )


@dataclass(frozen=True)
class Validation:
    """Quality score plus named checks."""

    v_score: float | None = None
    checks: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.v_score is not None:
            result["v_score"] = self.v_score
        if self.checks:
            result["checks"] = dict(self.checks)
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Validation:
        return cls(v_score=data.get("v_score"), checks=dict(data.get("checks", {})))


@dataclass(frozen=True)
class Receipt:
    """A signed, schema-validated provenance receipt."""

    receipt_id: str
    issuer: str
    event: str
    timestamp: str
    integrity: Integrity
    block_state: BlockState
    certificate: str
    description: str | None = None
    resource: Resource | None = None
    validation: Validation | None = None
    replay_instructions: dict[str, Any] | None = None
    tags: tuple[str, ...] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted document layout, omitting absent optionals."""
        result: dict[str, Any] = {
            "receipt_id": self.receipt_id,
            "issuer": self.issuer,
            "event": self.event,
            "timestamp": self.timestamp,
        }
        if self.description is not None:
            result["description"] = self.description
        if self.resource is not None:
            result["resource"] = self.resource.to_dict()
        result["integrity"] = self.integrity.to_dict()
        if self.validation is not None:
            result["validation"] = self.validation.to_dict()
        result["block_state"] = self.block_state.value
        result["certificate"] = self.certificate
        if self.replay_instructions is not None:
            result["replay_instructions"] = dict(self.replay_instructions)
        if self.tags is not None:
            result["tags"] = list(self.tags)
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Receipt:
        """Create from a document that already satisfies the schema contract."""
        return cls(
            receipt_id=data["receipt_id"],
            issuer=data["issuer"],
            event=data["event"],
            timestamp=data["timestamp"],
            integrity=Integrity.from_dict(data["integrity"]),
            block_state=BlockState(data["block_state"]),
            certificate=data["certificate"],
            description=data.get("description"),
            resource=Resource.from_dict(data["resource"]) if "resource" in data else None,
            validation=Validation.from_dict(data["validation"]) if "validation" in data else None,
            replay_instructions=data.get("replay_instructions"),
            tags=tuple(data["tags"]) if "tags" in data else None,
        )

    def to_json(self) -> str:
        """Serialize as strict JSON.

        Raises:
            ValueError: If a number is NaN or infinite
        """
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False, allow_nan=False)

    def write_json(self, path: Path) -> Path:
        """Write the receipt atomically: a temp file in the target directory, then rename."""
        path = Path(path)
        text = self.to_json()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(text)
                    f.write("\n")
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise ResourceError(f"Cannot write receipt {path}: {e.strerror or e}", path) from e
        return path
