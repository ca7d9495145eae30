"""Tests for docstruct.config module."""
from __future__ import annotations

import json
from pathlib import Path

import pytest

from docstruct.config import (
    StructureOptions,
    load_options,
    options_from_dict,
    options_to_dict,
)


class TestStructureOptions:
    def test_defaults(self) -> None:
        opts = StructureOptions()
        assert opts.max_section_chars == 9500
        assert opts.max_chunk_chars == 3000
        assert opts.min_section_chars == 50
        assert opts.fuzzy_match_confidence_threshold == 0.7
        assert opts.fallback_window_chars == 3000
        assert opts.toc_scan_pages == 15

    @pytest.mark.parametrize(
        "overrides",
        [
            {"max_section_chars": 0},
            {"max_chunk_chars": -1},
            {"min_section_chars": -5},
            {"fuzzy_match_confidence_threshold": 0.0},
            {"fuzzy_match_confidence_threshold": 1.5},
            {"fallback_window_chars": 0},
            {"toc_scan_pages": 0},
        ],
    )
    def test_invalid_values(self, overrides: dict[str, object]) -> None:
        with pytest.raises(ValueError):
            StructureOptions(**overrides)  # type: ignore[arg-type]

    def test_with_overrides_ignores_none(self) -> None:
        opts = StructureOptions().with_overrides(max_section_chars=8000, max_chunk_chars=None)
        assert opts.max_section_chars == 8000
        assert opts.max_chunk_chars == 3000


class TestOptionsFromDict:
    def test_camel_case_keys(self) -> None:
        opts = options_from_dict({"maxSectionChars": 8000, "minSectionChars": 10})
        assert opts.max_section_chars == 8000
        assert opts.min_section_chars == 10

    def test_snake_case_keys(self) -> None:
        opts = options_from_dict({"fuzzy_match_confidence_threshold": 0.8})
        assert opts.fuzzy_match_confidence_threshold == 0.8

    def test_unknown_key_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unknown"):
            options_from_dict({"maxSectionChar": 8000})

    def test_to_dict_round_trip(self) -> None:
        opts = StructureOptions(max_section_chars=7000)
        assert options_from_dict(options_to_dict(opts)) == opts


class TestLoadOptions:
    def test_load(self, tmp_path: Path) -> None:
        path = tmp_path / "options.json"
        path.write_text(json.dumps({"maxChunkChars": 1200, "toc_scan_pages": 10}))
        opts = load_options(path)
        assert opts.max_chunk_chars == 1200
        assert opts.toc_scan_pages == 10

    def test_non_object_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "options.json"
        path.write_text("[1, 2]")
        with pytest.raises(ValueError, match="JSON object"):
            load_options(path)
