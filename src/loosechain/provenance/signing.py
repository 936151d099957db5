"""EIP-191 signing for receipt digests.

The message that is signed is the digest string (``"sha256:<hex>"``) passed
through the EIP-191 "personal message" encoding::

    "\\x19Ethereum Signed Message:\\n" + len(message) + message

The prefix binds the signature to this use, so a receipt signature can never
be replayed as a transaction or any other signed payload. The same encoding
is applied on sign and on recover.

The private key is supplied per invocation (see ReceiptConfig) and is never
written to a receipt or any other artifact.
"""

from __future__ import annotations

from dataclasses import dataclass

from eth_account import Account
from eth_account.messages import SignableMessage, encode_defunct

from loosechain.errors import AuthenticityError, ConfigError

SIGNATURE_METHOD = "eip191"


def encode_message(digest: str) -> SignableMessage:
    """Apply the EIP-191 personal-message prefix to a digest string."""
    return encode_defunct(text=digest)


def _signature_bytes(signature: str) -> bytes:
    body = signature[2:] if signature[:2].lower() == "0x" else signature
    try:
        return bytes.fromhex(body)
    except ValueError as e:
        raise AuthenticityError(None, "", reason=f"signature is not hex: {e}") from e


@dataclass(frozen=True)
class Signature:
    """A signature plus the address of the key that produced it."""

    signature: str
    signer_address: str
    method: str = SIGNATURE_METHOD


class Signer:
    """Receipt digest signer backed by a secp256k1 (EVM) private key."""

    def __init__(self, private_key: str | None = None) -> None:
        """Initialize signer.

        Args:
            private_key: Hex-encoded private key, with or without ``0x``.
                May be None for a verify-only signer.
        """
        self._account = None
        if private_key:
            try:
                self._account = Account.from_key(private_key)
            except Exception as e:
                # Never echo the key material back.
                raise ConfigError(f"Signing key is not a valid EVM private key ({type(e).__name__})") from None

    def is_configured(self) -> bool:
        """Check if signer has a key configured."""
        return self._account is not None

    @property
    def address(self) -> str:
        if self._account is None:
            raise ConfigError("No signing key configured")
        return self._account.address

    def sign(self, digest: str) -> Signature:
        """Sign a digest string.

        Raises:
            ConfigError: If no key is configured
        """
        if self._account is None:
            raise ConfigError("No signing key configured")

        signed = self._account.sign_message(encode_message(digest))
        return Signature(
            signature="0x" + bytes(signed.signature).hex(),
            signer_address=self._account.address,
        )

    @staticmethod
    def recover(digest: str, signature: str) -> str:
        """Recover the checksummed address that signed ``digest``.

        Raises:
            AuthenticityError: If no address can be recovered from the signature
        """
        raw = _signature_bytes(signature)
        try:
            return Account.recover_message(encode_message(digest), signature=raw)
        except Exception as e:
            raise AuthenticityError(None, "", reason=f"{type(e).__name__}: {e}") from e

    @staticmethod
    def verify(digest: str, signature: str, expected_address: str) -> str:
        """Recover the signer and require it to match ``expected_address``.

        Addresses are compared case-insensitively, so checksummed and
        lower-case forms are equivalent.

        Returns:
            The recovered address

        Raises:
            AuthenticityError: If recovery fails or the address differs
        """
        try:
            recovered = Signer.recover(digest, signature)
        except AuthenticityError as e:
            raise AuthenticityError(None, expected_address, reason=e.reason) from e

        if recovered.lower() != expected_address.lower():
            raise AuthenticityError(recovered, expected_address)
        return recovered
