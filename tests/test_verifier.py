"""Tests for receipt verification."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from loosechain.errors import AuthenticityError, IntegrityError, ResourceError, SchemaError, SecurityError
from loosechain.provenance import verifier as verifier_module
from loosechain.provenance.signing import Signer
from loosechain.provenance.verifier import ReceiptVerifier, resolve_local_path


def _flip_bit(signature: str, byte_index: int) -> str:
    raw = bytearray(bytes.fromhex(signature[2:]))
    raw[byte_index] ^= 0x01
    return "0x" + raw.hex()


@pytest.fixture
def issued(builder, resource_file: Path, tmp_path: Path) -> tuple[dict, Path]:
    """A receipt written to disk for ``resource_file``."""
    _, path = builder.create(resource_file, out=tmp_path / "receipt.json", description="q3")
    return json.loads(path.read_text()), path


class TestResolveLocalPath:
    """Local vs non-local resource urls."""

    def test_absolute_path(self):
        assert resolve_local_path("/srv/site/index.html") == Path("/srv/site/index.html")

    def test_file_uri(self):
        assert resolve_local_path("file:///srv/site/a%20b.html") == Path("/srv/site/a b.html")

    @pytest.mark.parametrize("url", [
        None,
        "",
        "https://acme.example/report.txt",
        "ipfs://bafybeigdyrzt5sfp7udm7hu76uh7y26nf3efuylqabf3oclgtqy55fbzdi",
        "file://otherhost/srv/report.txt",
        "relative/report.txt",
    ])
    def test_non_local(self, url):
        assert resolve_local_path(url) is None


class TestVerify:
    """Test the three-step verification."""

    def test_round_trip(self, verifier, issued, signer_address):
        document, path = issued
        report = verifier.verify_file(path)

        assert report.receipt_id == document["receipt_id"]
        assert report.signer_address == signer_address
        assert report.recovered_address == signer_address
        assert report.block_state == "loose"
        assert report.v_score == 95
        assert report.integrity_checked is True

    def test_round_trip_bytes_only(self, builder, verifier):
        report = verifier.verify(builder.build(b"hi").to_dict())
        assert report.integrity_checked is False

    def test_content_tamper(self, verifier, issued, resource_file: Path):
        document, _ = issued
        data = bytearray(resource_file.read_bytes())
        data[0] ^= 0x01
        resource_file.write_bytes(bytes(data))

        with pytest.raises(IntegrityError) as exc_info:
            verifier.verify(document)

        assert exc_info.value.expected == document["integrity"]["hash"]
        assert exc_info.value.actual != exc_info.value.expected
        assert exc_info.value.actual.startswith("sha256:")
        assert exc_info.value.expected in str(exc_info.value)
        assert exc_info.value.actual in str(exc_info.value)

    @pytest.mark.parametrize("byte_index", [3, 32, 50, 64])
    def test_signature_tamper(self, verifier, issued, byte_index):
        document, _ = issued
        document["integrity"]["signature"] = _flip_bit(document["integrity"]["signature"], byte_index)
        with pytest.raises(AuthenticityError):
            verifier.verify(document)

    def test_wrong_signer_address(self, verifier, issued, other_private_key, signer_address):
        document, _ = issued
        other = Signer(other_private_key).address
        document["integrity"]["signer_address"] = other

        with pytest.raises(AuthenticityError) as exc_info:
            verifier.verify(document)

        assert exc_info.value.recovered == signer_address
        assert exc_info.value.expected == other

    @pytest.mark.parametrize("transform", [str.lower, str.upper])
    def test_address_case_insensitive(self, verifier, issued, transform, signer_address):
        document, _ = issued
        document["integrity"]["signer_address"] = "0x" + transform(signer_address[2:])
        report = verifier.verify(document)
        assert report.signer_address == document["integrity"]["signer_address"]

    def test_schema_gate_precedes_crypto(self, verifier, issued, monkeypatch):
        document, _ = issued
        del document["integrity"]["hash"]

        def _must_not_run(*args, **kwargs):
            raise AssertionError("crypto checks ran before the schema gate")

        monkeypatch.setattr(verifier_module, "digest_file", _must_not_run)
        monkeypatch.setattr(verifier_module.Signer, "verify", _must_not_run)

        with pytest.raises(SchemaError) as exc_info:
            verifier.verify(document)
        assert exc_info.value.violations[0].path == "/integrity"

    def test_schema_gate_before_missing_resource(self, verifier, issued, resource_file: Path):
        document, _ = issued
        resource_file.unlink()
        document["block_state"] = "final"
        with pytest.raises(SchemaError):
            verifier.verify(document)

    def test_remote_resource_skipped(self, builder, verifier, resource_file: Path):
        receipt = builder.build_from_file(resource_file, url="https://acme.example/report.txt")
        resource_file.write_bytes(b"changed after issuance")

        report = verifier.verify(receipt.to_dict())

        assert report.integrity_checked is False
        assert report.resource_url == "https://acme.example/report.txt"

    def test_file_uri_checked(self, builder, verifier, resource_file: Path):
        receipt = builder.build_from_file(resource_file, url=resource_file.resolve().as_uri())
        assert verifier.verify(receipt.to_dict()).integrity_checked is True

        resource_file.write_bytes(b"changed after issuance")
        with pytest.raises(IntegrityError):
            verifier.verify(receipt.to_dict())

    def test_missing_local_resource(self, verifier, issued, resource_file: Path):
        document, _ = issued
        resource_file.unlink()
        with pytest.raises(ResourceError):
            verifier.verify(document)

    def test_missing_v_score(self, verifier, issued):
        document, _ = issued
        del document["validation"]

        report = verifier.verify(document)

        assert report.v_score is None
        assert "v_score:    n/a" in report.summary_lines()

    def test_unreadable_receipt_file(self, verifier, tmp_path: Path):
        bad = tmp_path / "bad.json"
        bad.write_text("{not json")
        with pytest.raises(ResourceError):
            verifier.verify_file(bad)

    def test_resource_without_url(self, verifier, issued):
        document, _ = issued
        document["resource"] = {"type": "file", "branch": "main"}

        report = verifier.verify(document)

        assert report.integrity_checked is False
        assert report.resource_url is None

    def test_validation_without_score(self, verifier, issued):
        document, _ = issued
        document["validation"] = {"checks": {"completeness": True}}

        assert verifier.verify(document).v_score is None

    def test_blocked_state_reported(self, builder, verifier):
        receipt = builder.build(b"final copy", block=True)
        assert verifier.verify(receipt.to_dict()).block_state == "blocked"

    def test_deeply_nested_receipt_file(self, verifier, tmp_path: Path):
        hostile = tmp_path / "deep.json"
        hostile.write_text("[" * 200_000 + "]" * 200_000)

        with pytest.raises(SecurityError):
            verifier.verify_file(hostile)

    def test_non_finite_score_in_receipt_file(self, verifier, issued, tmp_path: Path):
        _, path = issued
        text = path.read_text().replace('"v_score": 95', '"v_score": NaN')
        assert "NaN" in text
        tampered = tmp_path / "nan.json"
        tampered.write_text(text)

        with pytest.raises(ResourceError, match="non-finite"):
            verifier.verify_file(tampered)


class TestReports:
    """Test report output."""

    def test_summary_lines(self, verifier, issued, signer_address):
        document, path = issued
        lines = verifier.verify_file(path).summary_lines()
        assert lines == [
            f"receipt_id: {document['receipt_id']}",
            f"signer:     {signer_address}",
            "block:      loose",
            "v_score:    95",
        ]

    def test_verify_and_report(self, verifier, issued, tmp_path: Path):
        _, path = issued
        report, paths = verifier.verify_and_report(path, tmp_path / "reports")

        data = json.loads(paths["json"].read_text())
        assert data["valid"] is True
        assert data["receipt_id"] == report.receipt_id
        assert "# Receipt Verification Report" in paths["markdown"].read_text()


class TestVerifyMany:
    """Test batch verification."""

    def test_mixed_outcomes_in_order(self, builder, contract, tmp_path: Path):
        paths = []
        for i in range(5):
            resource = tmp_path / f"doc{i}.txt"
            resource.write_text(f"document {i}")
            _, path = builder.create(resource, out=tmp_path / f"receipt{i}.json")
            paths.append(path)

        (tmp_path / "doc2.txt").write_text("tampered")

        outcomes = ReceiptVerifier(contract=contract).verify_many(paths, max_workers=3)

        assert [o.path for o in outcomes] == paths
        assert [o.valid for o in outcomes] == [True, True, False, True, True]
        assert isinstance(outcomes[2].error, IntegrityError)
