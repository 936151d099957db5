"""Shared fixtures for receipt tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from loosechain.config import LEGACY_SIGNING_KEY_ENV, SIGNING_KEY_ENV, ReceiptConfig
from loosechain.contracts import load_contract
from loosechain.provenance.builder import ReceiptBuilder
from loosechain.provenance.verifier import ReceiptVerifier

# Well-known development key (Hardhat/Anvil account #0). Never holds funds.
_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

# Hardhat/Anvil account #1.
_OTHER_PRIVATE_KEY = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"


@pytest.fixture(autouse=True)
def clean_signing_env(monkeypatch):
    """Keep host signing keys out of every test."""
    monkeypatch.delenv(SIGNING_KEY_ENV, raising=False)
    monkeypatch.delenv(LEGACY_SIGNING_KEY_ENV, raising=False)


@pytest.fixture
def private_key() -> str:
    return _PRIVATE_KEY


@pytest.fixture
def signer_address() -> str:
    """Checksummed address of ``private_key``."""
    return _ADDRESS


@pytest.fixture
def other_private_key() -> str:
    return _OTHER_PRIVATE_KEY


@pytest.fixture
def key_env(private_key) -> dict[str, str]:
    """Environment for CLI invocations that sign."""
    return {SIGNING_KEY_ENV: private_key}


@pytest.fixture
def config(private_key) -> ReceiptConfig:
    return ReceiptConfig(signing_key=private_key)


@pytest.fixture
def contract():
    return load_contract()


@pytest.fixture
def builder(config, contract) -> ReceiptBuilder:
    return ReceiptBuilder(config=config, contract=contract)


@pytest.fixture
def verifier(contract) -> ReceiptVerifier:
    return ReceiptVerifier(contract=contract)


@pytest.fixture
def resource_file(tmp_path: Path) -> Path:
    path = tmp_path / "report.txt"
    path.write_bytes(b"quarterly numbers: 42\n")
    return path
