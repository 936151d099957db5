"""Tests for bounded JSON loading."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from loosechain.errors import ResourceError, SecurityError
from loosechain.security import (
    SecurityLimits,
    check_json_depth,
    check_text_depth,
    safe_load_json_file,
)


class TestCheckJsonDepth:
    """Test depth checks on parsed values."""

    def test_scalar(self):
        assert check_json_depth("x") == 0

    def test_nested(self):
        assert check_json_depth({"a": [1, {"b": 2}]}) == 3

    def test_at_limit(self):
        value: list = []
        for _ in range(5):
            value = [value]
        assert check_json_depth(value, max_depth=5) == 5

    def test_over_limit(self):
        with pytest.raises(SecurityError):
            check_json_depth([[[[1]]]], max_depth=3)

    def test_very_deep_value(self):
        value: list = []
        for _ in range(50_000):
            value = [value]
        with pytest.raises(SecurityError):
            check_json_depth(value)


class TestCheckTextDepth:
    """Test depth checks on raw JSON text."""

    def test_flat_object(self):
        assert check_text_depth('{"a": 1, "b": 2}') == 1

    def test_brackets_in_strings_ignored(self):
        text = json.dumps({"note": "[[[[{{{{", "other": "}}]]"})
        assert check_text_depth(text, max_depth=2) == 1

    def test_escaped_quote_stays_in_string(self):
        text = '{"note": "say \\"[[[[\\" twice", "n": [1]}'
        assert check_text_depth(text, max_depth=2) == 2

    def test_escaped_backslash_ends_string(self):
        text = '{"path": "C:\\\\", "n": [[1]]}'
        assert check_text_depth(text) == 3

    def test_agrees_with_parsed_limit(self):
        text = "[" * 4 + "1" + "]" * 4
        check_text_depth(text, max_depth=4)
        check_json_depth(json.loads(text), max_depth=4)

        with pytest.raises(SecurityError):
            check_text_depth(text, max_depth=2)
        with pytest.raises(SecurityError):
            check_json_depth(json.loads(text), max_depth=2)

    def test_hostile_nesting(self):
        with pytest.raises(SecurityError):
            check_text_depth("[" * 200_000 + "]" * 200_000)


class TestSafeLoadJsonFile:
    """Test loading JSON files from disk."""

    def test_loads_document(self, tmp_path: Path):
        path = tmp_path / "doc.json"
        path.write_text(json.dumps({"receipt_id": "drvc3_1"}))
        assert safe_load_json_file(path) == {"receipt_id": "drvc3_1"}

    def test_deep_nesting_refused_before_parsing(self, tmp_path: Path):
        path = tmp_path / "deep.json"
        path.write_text("[" * 200_000 + "]" * 200_000)

        with pytest.raises(SecurityError, match="depth"):
            safe_load_json_file(path)

    def test_size_limit(self, tmp_path: Path):
        path = tmp_path / "big.json"
        path.write_text(json.dumps({"pad": "x" * 200}))

        with pytest.raises(SecurityError, match="too large"):
            safe_load_json_file(path, SecurityLimits(max_json_size=100))

    @pytest.mark.parametrize("constant", ["NaN", "Infinity", "-Infinity"])
    def test_non_finite_numbers_rejected(self, tmp_path: Path, constant: str):
        path = tmp_path / "nan.json"
        path.write_text('{"validation": {"v_score": %s}}' % constant)

        with pytest.raises(ResourceError, match="non-finite"):
            safe_load_json_file(path)

    def test_invalid_json(self, tmp_path: Path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")

        with pytest.raises(ResourceError, match="Invalid JSON"):
            safe_load_json_file(path)

    def test_invalid_utf8(self, tmp_path: Path):
        path = tmp_path / "binary.json"
        path.write_bytes(b"\xff\xfe{}")

        with pytest.raises(ResourceError):
            safe_load_json_file(path)
