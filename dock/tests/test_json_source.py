"""
Unit tests for tolerant whole-file JSON loading.

Tests verify:
- A valid document is parsed and returned.
- A missing path raises FileNotFound.
- Files below min_size raise FileEmpty; above max_size raise FileTooLarge.
- A truncated document raises JsonParseError with the parser position.
- Invalid UTF-8 raises JsonParseError.
- All loader errors share the TransientIoError / DataCorruptionError bases.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

from pathlib import Path

import pytest
from dock.src.errors import (
    DataCorruptionError,
    FileEmpty,
    FileNotFound,
    FileTooLarge,
    JsonParseError,
    TransientIoError,
)
from dock.src.json_source import load_json


class TestLoadJsonSuccess:
    """Happy path."""

    def test_parses_object(self, tmp_path: Path) -> None:
        path = tmp_path / "doc.json"
        path.write_text('{"modules": [{"bus_voltage": 19.5}]}')

        assert load_json(path, max_size=1024) == {"modules": [{"bus_voltage": 19.5}]}

    def test_accepts_str_path(self, tmp_path: Path) -> None:
        path = tmp_path / "doc.json"
        path.write_text("[1, 2]")

        assert load_json(str(path), max_size=1024) == [1, 2]


class TestLoadJsonSizeChecks:
    """Size bounds are enforced before parsing."""

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFound) as exc_info:
            load_json(tmp_path / "absent.json", max_size=1024)
        assert isinstance(exc_info.value, TransientIoError)
        assert "absent.json" in str(exc_info.value)

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.json"
        path.write_text("")

        with pytest.raises(FileEmpty):
            load_json(path, max_size=1024)

    def test_below_min_size(self, tmp_path: Path) -> None:
        path = tmp_path / "small.json"
        path.write_text('{"modules": []}')

        with pytest.raises(FileEmpty):
            load_json(path, max_size=1024, min_size=50)

    def test_above_max_size(self, tmp_path: Path) -> None:
        path = tmp_path / "big.json"
        path.write_text('{"pad": "' + "x" * 200 + '"}')

        with pytest.raises(FileTooLarge):
            load_json(path, max_size=100)


class TestLoadJsonParseErrors:
    """Unparseable content is reported as corruption."""

    def test_truncated_document(self, tmp_path: Path) -> None:
        path = tmp_path / "half.json"
        path.write_text('{"modules": [{"bus_voltage": 19')

        with pytest.raises(JsonParseError) as exc_info:
            load_json(path, max_size=1024)
        assert isinstance(exc_info.value, DataCorruptionError)
        assert exc_info.value.position is not None
        assert exc_info.value.path == str(path)

    def test_invalid_utf8(self, tmp_path: Path) -> None:
        path = tmp_path / "binary.json"
        path.write_bytes(b'{"a": "\xff\xfe"}')

        with pytest.raises(JsonParseError) as exc_info:
            load_json(path, max_size=1024)
        assert exc_info.value.detail == "invalid UTF-8"
