"""Structuring options: size bounds, thresholds and fallback tunables.

Every number the pipeline depends on lives here as a default, never as a
constant inside a component. Options load from JSON (snake_case or the
camelCase names used by the ingestion service's settings files).
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any

import orjson


@dataclass(frozen=True, slots=True)
class StructureOptions:
    """Options for one structuring run.

    Invariants (enforced in __post_init__):
        - min_section_chars >= 0
        - max_chunk_chars > 0 and max_section_chars > 0
        - 0 < fuzzy_match_confidence_threshold <= 1
    """
    max_section_chars: int = 9500           # storage field limit
    max_chunk_chars: int = 3000             # embedding token budget
    min_section_chars: int = 50             # shorter sections are dropped
    fuzzy_match_confidence_threshold: float = 0.7
    fallback_window_chars: int = 3000       # content-fallback window size
    header_snap_lines: int = 20             # lines scanned when snapping
    word_gap_chars: int = 50                # word_sequence max gap
    default_chars_per_page: int = 2000      # when no page index exists
    toc_scan_pages: int = 15                # leading pages searched for a TOC

    def __post_init__(self) -> None:
        if self.max_section_chars <= 0:
            raise ValueError(
                f"max_section_chars must be > 0, got {self.max_section_chars}"
            )
        if self.max_chunk_chars <= 0:
            raise ValueError(
                f"max_chunk_chars must be > 0, got {self.max_chunk_chars}"
            )
        if self.min_section_chars < 0:
            raise ValueError(
                f"min_section_chars must be >= 0, got {self.min_section_chars}"
            )
        if not 0.0 < self.fuzzy_match_confidence_threshold <= 1.0:
            raise ValueError(
                "fuzzy_match_confidence_threshold must be in (0, 1], got "
                f"{self.fuzzy_match_confidence_threshold}"
            )
        if self.fallback_window_chars <= 0:
            raise ValueError(
                f"fallback_window_chars must be > 0, got {self.fallback_window_chars}"
            )
        if self.header_snap_lines < 0 or self.word_gap_chars < 0:
            raise ValueError("header_snap_lines and word_gap_chars must be >= 0")
        if self.default_chars_per_page <= 0 or self.toc_scan_pages <= 0:
            raise ValueError("default_chars_per_page and toc_scan_pages must be > 0")

    def with_overrides(self, **overrides: Any) -> StructureOptions:
        """Copy with the given fields replaced; None values are ignored."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


_FIELD_NAMES: frozenset[str] = frozenset(f.name for f in fields(StructureOptions))
_ALIASES: dict[str, str] = {_camel(name): name for name in _FIELD_NAMES}


def options_from_dict(d: dict[str, Any]) -> StructureOptions:
    """Build options from a dict, accepting snake_case or camelCase keys.

    Raises:
        ValueError: On unknown keys or invariant violations.
    """
    converted: dict[str, Any] = {}
    unknown: list[str] = []
    for key, val in d.items():
        name = key if key in _FIELD_NAMES else _ALIASES.get(key)
        if name is None:
            unknown.append(key)
            continue
        converted[name] = val
    if unknown:
        raise ValueError(f"Unknown structure options: {sorted(unknown)}")
    return StructureOptions(**converted)


def options_to_dict(options: StructureOptions) -> dict[str, Any]:
    return asdict(options)


def load_options(path: Path) -> StructureOptions:
    """Load options from a JSON object file."""
    data = orjson.loads(path.read_bytes())
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object, got {type(data).__name__}")
    return options_from_dict(data)
