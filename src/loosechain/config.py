"""
Configuration for receipt issuance and verification.

Supports:
- Environment variable configuration
- YAML file configuration (no secrets)
- Runtime overrides

The signing key is only ever taken from the environment. It is never
serialized and never read from a configuration file.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from loosechain.errors import ConfigError
from loosechain.security import DEFAULT_MAX_FILE_SIZE, SecurityLimits

SIGNING_KEY_ENV = "LOOSECHAIN_SIGNING_PRIVATE_KEY"
LEGACY_SIGNING_KEY_ENV = "PRIVATE_KEY"

DEFAULT_ISSUER = "github.com/your-org/your-repo"
DEFAULT_EVENT = "content.publish"
DEFAULT_CERTIFICATE = "DRVC3 v1.0"
DEFAULT_TAGS = ("#loosechain", "#drvc3", "#proof")

_SECRET_KEYS = {"signing_key", "private_key"}


@dataclass(frozen=True)
class ReceiptConfig:
    """Settings shared by the builder, verifier and CLI."""

    signing_key: str | None = field(default=None, repr=False)
    issuer: str = DEFAULT_ISSUER
    event: str = DEFAULT_EVENT
    certificate: str = DEFAULT_CERTIFICATE
    tags: tuple[str, ...] = DEFAULT_TAGS
    max_file_size: int = DEFAULT_MAX_FILE_SIZE

    def __post_init__(self):
        if not self.issuer:
            raise ConfigError("issuer must not be empty")
        if not self.event:
            raise ConfigError("event must not be empty")
        if self.max_file_size < 1:
            raise ConfigError(f"max_file_size must be >= 1, got {self.max_file_size}")

    @property
    def limits(self) -> SecurityLimits:
        return SecurityLimits(max_file_size=self.max_file_size)

    def has_signing_key(self) -> bool:
        return bool(self.signing_key)

    def require_signing_key(self) -> str:
        """Return the signing key or fail; there is no unsigned fallback."""
        if not self.signing_key:
            raise ConfigError(
                f"No signing key configured. Set {SIGNING_KEY_ENV} (or {LEGACY_SIGNING_KEY_ENV}) "
                "to an EVM private key for signing"
            )
        return self.signing_key

    def with_overrides(self, **overrides: Any) -> ReceiptConfig:
        """Return a copy with non-None overrides applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    @classmethod
    def from_env(cls) -> ReceiptConfig:
        """
        Create configuration from environment variables.

        Environment variables:
            LOOSECHAIN_SIGNING_PRIVATE_KEY: Hex EVM private key (PRIVATE_KEY also accepted)
            LOOSECHAIN_ISSUER: Default issuer
            LOOSECHAIN_EVENT: Default event name
            LOOSECHAIN_MAX_FILE_SIZE: Max resource size in bytes
        """
        signing_key = os.getenv(SIGNING_KEY_ENV) or os.getenv(LEGACY_SIGNING_KEY_ENV)
        max_size = os.getenv("LOOSECHAIN_MAX_FILE_SIZE")

        try:
            max_file_size = int(max_size) if max_size else DEFAULT_MAX_FILE_SIZE
        except ValueError:
            raise ConfigError(f"LOOSECHAIN_MAX_FILE_SIZE must be an integer, got {max_size!r}")

        return cls(
            signing_key=signing_key.strip() if signing_key else None,
            issuer=os.getenv("LOOSECHAIN_ISSUER", DEFAULT_ISSUER),
            event=os.getenv("LOOSECHAIN_EVENT", DEFAULT_EVENT),
            max_file_size=max_file_size,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any], signing_key: str | None = None) -> ReceiptConfig:
        """Create configuration from dictionary (e.g., YAML)."""
        secrets = _SECRET_KEYS.intersection(data)
        if secrets:
            raise ConfigError(
                f"Signing keys must come from the environment, not configuration files "
                f"(found {', '.join(sorted(secrets))})"
            )

        tags = data.get("tags", DEFAULT_TAGS)
        if not isinstance(tags, (list, tuple)) or not all(isinstance(t, str) for t in tags):
            raise ConfigError("tags must be a list of strings")

        strings = {
            "issuer": data.get("issuer", DEFAULT_ISSUER),
            "event": data.get("event", DEFAULT_EVENT),
            "certificate": data.get("certificate", DEFAULT_CERTIFICATE),
        }
        for name, value in strings.items():
            if not isinstance(value, str):
                raise ConfigError(f"{name} must be a string, got {type(value).__name__}")

        max_size = data.get("max_file_size", DEFAULT_MAX_FILE_SIZE)
        if isinstance(max_size, bool) or not isinstance(max_size, (int, str)):
            raise ConfigError(f"max_file_size must be an integer, got {max_size!r}")
        try:
            max_file_size = int(max_size)
        except ValueError:
            raise ConfigError(f"max_file_size must be an integer, got {max_size!r}") from None

        return cls(
            signing_key=signing_key,
            tags=tuple(tags),
            max_file_size=max_file_size,
            **strings,
        )

    @classmethod
    def from_yaml(cls, path: Path) -> ReceiptConfig:
        """Load settings from a YAML file; the signing key still comes from the environment."""
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config file must contain a YAML object, got {type(data).__name__}")

        env = cls.from_env()
        return cls.from_dict(data, signing_key=env.signing_key)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary. The signing key is never included."""
        return {
            "issuer": self.issuer,
            "event": self.event,
            "certificate": self.certificate,
            "tags": list(self.tags),
            "max_file_size": self.max_file_size,
        }
