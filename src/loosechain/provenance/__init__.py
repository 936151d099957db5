"""Receipt issuance and verification.

Builds EIP-191 signed receipts over content digests and re-checks them
structurally, for integrity and for authenticity.
"""

from __future__ import annotations

from loosechain.provenance.builder import ReceiptBuilder
from loosechain.provenance.signing import Signature, Signer
from loosechain.provenance.verifier import BatchOutcome, ReceiptVerifier, VerificationReport

__all__ = [
    "BatchOutcome",
    "ReceiptBuilder",
    "ReceiptVerifier",
    "Signature",
    "Signer",
    "VerificationReport",
]
