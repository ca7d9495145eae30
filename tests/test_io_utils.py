"""Tests for docstruct.io_utils module."""
from __future__ import annotations

from pathlib import Path

import pytest

from docstruct.io_utils import dumps, load_json, load_pages_json, load_pages_text


def _write_json(path: Path, obj: object) -> None:
    path.write_bytes(dumps(obj, pretty=False))


class TestJson:
    def test_dumps_sorts_keys(self) -> None:
        assert dumps({"b": 1, "a": 2}, pretty=False) == b'{"a":2,"b":1}'

    def test_dumps_pretty(self) -> None:
        assert dumps({"a": 1}) == b'{\n  "a": 1\n}'

    def test_load_json(self, tmp_path: Path) -> None:
        path = tmp_path / "out.json"
        _write_json(path, {"naslov": "Uvod", "strana": 3})
        assert load_json(path) == {"naslov": "Uvod", "strana": 3}


class TestPageLoaders:
    def test_form_feed_pages(self, tmp_path: Path) -> None:
        path = tmp_path / "book.txt"
        path.write_text("Prva strana.\fDruga strana.\f\fCetvrta strana.", encoding="utf-8")
        raw = load_pages_text(path, doc_id="knjiga")
        assert raw.doc_id == "knjiga"
        assert [p.page_number for p in raw.pages] == [1, 2, 4]
        assert raw.page_text(2) == "Druga strana."

    def test_json_page_strings(self, tmp_path: Path) -> None:
        path = tmp_path / "pages.json"
        _write_json(path, ["Prva strana.", "Druga strana."])
        raw = load_pages_json(path)
        assert raw.estimated_total_pages() == 2
        assert raw.page_text(1) == "Prva strana."

    def test_json_page_objects(self, tmp_path: Path) -> None:
        path = tmp_path / "pages.json"
        _write_json(path, [
            {"pageNumber": 6, "text": "Sesta strana."},
            {"pageNumber": 5, "text": "Peta strana."},
        ])
        raw = load_pages_json(path)
        assert [p.page_number for p in raw.pages] == [5, 6]
        assert raw.text.startswith("Peta strana.")

    def test_json_non_list_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "pages.json"
        _write_json(path, {"pages": []})
        with pytest.raises(ValueError, match="JSON array"):
            load_pages_json(path)
