"""Receipt builder.

Digest, sign, assemble, then gate on the schema contract. A receipt that fails
the contract is never returned and never written.
"""

from __future__ import annotations

import logging
import math
import secrets
import time
from pathlib import Path
from typing import Any

from loosechain.config import ReceiptConfig
from loosechain.contracts.validate import SchemaContract, load_contract
from loosechain.errors import SchemaError, SchemaViolation
from loosechain.hashing import digest_bytes, digest_file, iso_timestamp
from loosechain.receipt import BlockState, Integrity, Receipt, Resource, Validation
from loosechain.provenance.signing import Signer

logger = logging.getLogger(__name__)

# Placeholder completeness score; callers may pass their own.
DEFAULT_V_SCORE = 95

DEFAULT_CHECKS = {"completeness": True, "signed": True}


def new_receipt_id() -> str:
    """Time-derived receipt id with a short random suffix."""
    return f"drvc3_{time.time_ns() // 1_000_000}_{secrets.token_hex(3)}"


def default_output_path(resource_path: Path) -> Path:
    """``receipt.<basename>.json`` in the current directory."""
    return Path(f"receipt.{Path(resource_path).name}.json")


class ReceiptBuilder:
    """Builds signed, contract-checked receipts."""

    def __init__(
        self,
        config: ReceiptConfig | None = None,
        contract: SchemaContract | None = None,
    ) -> None:
        self.config = config or ReceiptConfig.from_env()
        self.contract = contract or load_contract(self.config.certificate)

    def build(
        self,
        content: bytes,
        issuer: str | None = None,
        event: str | None = None,
        description: str | None = None,
        block: bool = False,
        resource: Resource | None = None,
        tags: list[str] | tuple[str, ...] | None = None,
        replay_instructions: dict[str, Any] | None = None,
        checks: dict[str, Any] | None = None,
        v_score: float | None = None,
    ) -> Receipt:
        """Build a receipt over raw content bytes.

        Raises:
            ConfigError: If no signing key is available
            SchemaError: If the assembled document violates the contract
        """
        return self._assemble(
            digest_bytes(content),
            issuer=issuer,
            event=event,
            description=description,
            block=block,
            resource=resource,
            tags=tags,
            replay_instructions=replay_instructions,
            checks=checks,
            v_score=v_score,
        )

    def build_from_file(
        self,
        path: Path,
        issuer: str | None = None,
        event: str | None = None,
        description: str | None = None,
        block: bool = False,
        url: str | None = None,
        branch: str | None = None,
        commit_hash: str | None = None,
        resource_type: str = "file",
        tags: list[str] | tuple[str, ...] | None = None,
        replay_instructions: dict[str, Any] | None = None,
        checks: dict[str, Any] | None = None,
        v_score: float | None = None,
    ) -> Receipt:
        """Build a receipt for a file on disk.

        The resource url defaults to the file's absolute path, which lets the
        verifier re-hash it later.

        Raises:
            ResourceError: If the file cannot be read
            ConfigError: If no signing key is available
            SchemaError: If the assembled document violates the contract
        """
        path = Path(path)
        digest = digest_file(path, self.config.limits)
        resource = Resource(
            type=resource_type,
            url=url or str(path.resolve()),
            branch=branch,
            commit_hash=commit_hash,
        )
        return self._assemble(
            digest,
            issuer=issuer,
            event=event,
            description=description,
            block=block,
            resource=resource,
            tags=tags,
            replay_instructions=replay_instructions,
            checks=checks,
            v_score=v_score,
        )

    def _assemble(
        self,
        digest: str,
        issuer: str | None,
        event: str | None,
        description: str | None,
        block: bool,
        resource: Resource | None,
        tags: list[str] | tuple[str, ...] | None,
        replay_instructions: dict[str, Any] | None,
        checks: dict[str, Any] | None,
        v_score: float | None,
    ) -> Receipt:
        if v_score is None:
            v_score = DEFAULT_V_SCORE
        elif isinstance(v_score, float) and not math.isfinite(v_score):
            # NaN and Infinity have no JSON form.
            raise SchemaError([SchemaViolation("/validation/v_score", f"{v_score!r} is not a finite number")])

        signer = Signer(self.config.require_signing_key())
        signature = signer.sign(digest)

        receipt = Receipt(
            receipt_id=new_receipt_id(),
            issuer=issuer or self.config.issuer,
            event=event or self.config.event,
            timestamp=iso_timestamp(),
            description=description,
            resource=resource,
            integrity=Integrity(
                hash=digest,
                signature=signature.signature,
                signer_address=signature.signer_address,
            ),
            validation=Validation(
                v_score=v_score,
                checks={**DEFAULT_CHECKS, **(checks or {})},
            ),
            block_state=BlockState.from_flag(block),
            certificate=self.contract.certificate,
            replay_instructions=replay_instructions,
            tags=tuple(self.config.tags if tags is None else tags),
        )

        self.contract.check(receipt.to_dict())

        logger.info(
            "Issued receipt %s for %s signed by %s (%s)",
            receipt.receipt_id,
            digest,
            signature.signer_address,
            receipt.block_state.value,
        )
        return receipt

    def create(self, path: Path, out: Path | None = None, **options: Any) -> tuple[Receipt, Path]:
        """Build a receipt for ``path`` and write it to ``out``.

        Returns:
            Tuple of (receipt, output path)
        """
        receipt = self.build_from_file(path, **options)
        out_path = receipt.write_json(out or default_output_path(path))
        logger.info("Wrote receipt %s to %s", receipt.receipt_id, out_path)
        return receipt, out_path
