"""Receipt verification.

Three checks run in a fixed order and the first failure stops verification:

1. Structural: the document satisfies the schema contract.
2. Integrity: a locally readable resource re-hashes to ``integrity.hash``.
3. Authenticity: the signature recovers to ``integrity.signer_address``.

Resources that are not on the local filesystem (``https://``, ``ipfs://`` and
other URI schemes, or relative paths) are not fetched. The integrity step is
skipped for them and the report records ``integrity_checked=False``.
"""

from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse

from loosechain.config import ReceiptConfig
from loosechain.contracts.validate import SchemaContract, load_contract
from loosechain.errors import IntegrityError, ReceiptError
from loosechain.hashing import digest_file
from loosechain.provenance.signing import Signer
from loosechain.receipt import Receipt
from loosechain.security import safe_load_json_file

logger = logging.getLogger(__name__)

NOT_PRESENT = "n/a"


def resolve_local_path(url: str | None) -> Path | None:
    """Return the filesystem path a resource url points at, or None if non-local.

    Local means an absolute filesystem path or a ``file://`` URI.
    """
    if not url:
        return None

    if url.startswith("file://"):
        parsed = urlparse(url)
        if parsed.netloc not in ("", "localhost"):
            return None
        return Path(unquote(parsed.path))

    path = Path(url)
    if path.is_absolute():
        return path

    # Anything else with a scheme (https:, ipfs:, s3:) or a relative path is remote/unresolved.
    return None


@dataclass
class VerificationReport:
    """Outcome of a successful verification."""

    receipt_id: str
    signer_address: str
    recovered_address: str
    block_state: str
    v_score: float | None
    integrity_checked: bool
    resource_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "valid": True,
            "receipt_id": self.receipt_id,
            "signer_address": self.signer_address,
            "recovered_address": self.recovered_address,
            "block_state": self.block_state,
            "v_score": self.v_score,
            "integrity_checked": self.integrity_checked,
            "resource_url": self.resource_url,
        }

    def summary_lines(self) -> list[str]:
        v_score = NOT_PRESENT if self.v_score is None else self.v_score
        return [
            f"receipt_id: {self.receipt_id}",
            f"signer:     {self.signer_address}",
            f"block:      {self.block_state}",
            f"v_score:    {v_score}",
        ]

    def write_json(self, path: Path) -> None:
        """Write to JSON file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2, sort_keys=True)

    def write_markdown(self, path: Path) -> None:
        """Write to Markdown file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.to_markdown())

    def to_markdown(self) -> str:
        """Generate markdown report."""
        integrity = "Checked" if self.integrity_checked else "Skipped (resource not local)"
        lines = [
            "# Receipt Verification Report",
            "",
            "**Status:** VALID",
            "",
            "## Summary",
            "",
            f"- **Receipt:** `{self.receipt_id}`",
            f"- **Signer:** `{self.signer_address}`",
            f"- **Recovered:** `{self.recovered_address}`",
            f"- **Block state:** {self.block_state}",
            f"- **v_score:** {NOT_PRESENT if self.v_score is None else self.v_score}",
            f"- **Integrity:** {integrity}",
        ]
        if self.resource_url:
            lines.append(f"- **Resource:** `{self.resource_url}`")
        lines.append("")
        return "\n".join(lines)


@dataclass
class BatchOutcome:
    """Result of verifying one receipt in a batch."""

    path: Path
    report: VerificationReport | None = None
    error: ReceiptError | None = None

    @property
    def valid(self) -> bool:
        return self.report is not None


class ReceiptVerifier:
    """Verifier for persisted receipts."""

    def __init__(
        self,
        contract: SchemaContract | None = None,
        config: ReceiptConfig | None = None,
    ) -> None:
        self.config = config or ReceiptConfig()
        self.contract = contract or load_contract(self.config.certificate)

    def verify(self, document: Any) -> VerificationReport:
        """Verify a receipt document.

        Raises:
            SchemaError: If the document violates the schema contract
            ResourceError: If a local resource cannot be read
            IntegrityError: If the resource digest does not match
            AuthenticityError: If the signature does not match the signer
        """
        # 1) structure
        self.contract.check(document)
        receipt = Receipt.from_dict(document)
        logger.debug("Receipt %s satisfies %s", receipt.receipt_id, self.contract.certificate)

        integrity = receipt.integrity
        resource_url = receipt.resource.url if receipt.resource else None

        # 2) integrity
        integrity_checked = self._check_integrity(integrity.hash, resource_url)

        # 3) authenticity
        recovered = Signer.verify(integrity.hash, integrity.signature, integrity.signer_address)
        logger.debug("Signature recovers to %s", recovered)

        report = VerificationReport(
            receipt_id=receipt.receipt_id,
            signer_address=integrity.signer_address,
            recovered_address=recovered,
            block_state=receipt.block_state.value,
            v_score=receipt.validation.v_score if receipt.validation else None,
            integrity_checked=integrity_checked,
            resource_url=resource_url,
        )
        logger.info("Verified receipt %s signed by %s", report.receipt_id, report.signer_address)
        return report

    def _check_integrity(self, stored_hash: str, resource_url: str | None) -> bool:
        local_path = resolve_local_path(resource_url)
        if local_path is None:
            if resource_url:
                logger.warning("Resource %s is not local; skipping integrity check", resource_url)
            return False

        actual = digest_file(local_path, self.config.limits)
        if actual != stored_hash:
            raise IntegrityError(expected=stored_hash, actual=actual, path=str(local_path))
        logger.debug("Resource %s matches %s", local_path, stored_hash)
        return True

    def verify_file(self, receipt_path: Path) -> VerificationReport:
        """Load a receipt file and verify it."""
        document = safe_load_json_file(Path(receipt_path))
        return self.verify(document)

    def verify_and_report(self, receipt_path: Path, output_dir: Path) -> tuple[VerificationReport, dict[str, Path]]:
        """Verify and write reports.

        Returns:
            Tuple of (report, report_paths)
        """
        report = self.verify_file(receipt_path)

        output_dir.mkdir(parents=True, exist_ok=True)
        stem = Path(receipt_path).stem
        paths = {
            "json": output_dir / f"{stem}.verification.json",
            "markdown": output_dir / f"{stem}.verification.md",
        }
        report.write_json(paths["json"])
        report.write_markdown(paths["markdown"])
        return report, paths

    def verify_many(self, receipt_paths: list[Path], max_workers: int = 4) -> list[BatchOutcome]:
        """Verify independent receipts concurrently.

        Each receipt's checks still run in order on one worker. Outcomes come
        back in input order.
        """

        def _one(path: Path) -> BatchOutcome:
            try:
                return BatchOutcome(path=path, report=self.verify_file(path))
            except ReceiptError as e:
                logger.info("Receipt %s failed verification: %s", path, e)
                return BatchOutcome(path=path, error=e)

        paths = [Path(p) for p in receipt_paths]
        with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
            return list(pool.map(_one, paths))
