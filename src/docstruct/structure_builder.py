"""Build the finalized section list for one document.

Two modes:

    toc               Entries are validated, ordered by page, located one
                      after another (each search starts where the previous
                      header ended), resolved into spans, cleaned and, when
                      oversized, partitioned into parts.
    content_fallback  No usable TOC (empty, all invalid, or no entry could
                      be located in the text). The text is tiled into
                      paragraph-aligned windows, one level-1 section each.

The builder is pure: identical (text, entries, options) give identical
sections, ids included. Soft problems are logged and returned as
Diagnostic records; only an invariant violation raises.
"""
from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Literal

from docstruct.boundary_resolver import resolve
from docstruct.config import StructureOptions
from docstruct.errors import Diagnostic, StructureBuildFailure
from docstruct.parsing_types import (
    LocatedTitle,
    ResolvedSpan,
    Section,
    TocEntry,
    compute_section_id,
)
from docstruct.partitioner import partition, safe_windows
from docstruct.raw_text import RawDocumentText
from docstruct.textmatch import clean_title, is_title_like_line, repeats_title
from docstruct.title_matcher import MatchParams, match_title
from docstruct.toc_parser import validate_toc_entries

logger = logging.getLogger(__name__)

BuildMode = Literal["toc", "content_fallback"]

_TRAILING_WS_RE = re.compile(r"[ \t]+$", re.MULTILINE)
_BLANK_RUN_RE = re.compile(r"\n{3,}")


@dataclass(frozen=True, slots=True)
class BuildResult:
    """Sections plus everything needed to explain how they were found."""

    sections: tuple[Section, ...]
    located: tuple[tuple[TocEntry, LocatedTitle], ...]
    diagnostics: tuple[Diagnostic, ...]
    mode: BuildMode


# ---------------------------------------------------------------------------
# Content cleaning
# ---------------------------------------------------------------------------

def clean_section_content(raw: str, title: str = "") -> str:
    """Clean an extracted span.

    Drops a leading line that repeats the title (running headers and the
    tail of a split header line), strips trailing blanks per line,
    collapses blank-line runs and trims the ends.
    """
    return _clean(raw, title)[0]


def _clean(raw: str, title: str = "") -> tuple[str, int]:
    """Cleaned content and the offset of its first char within ``raw``."""
    text = raw.lstrip()
    if title:
        first_nl = text.find("\n")
        first = text if first_nl == -1 else text[:first_nl]
        if len(first.strip()) <= len(title) + 20 and repeats_title(first, title):
            text = "" if first_nl == -1 else text[first_nl + 1:]
    text = text.lstrip()
    lead = len(raw) - len(text)
    text = _TRAILING_WS_RE.sub("", text)
    text = _BLANK_RUN_RE.sub("\n\n", text)
    return text.strip(), lead


def _fallback_title(window: str, ordinal: int) -> str:
    """First title-like line among the window's first three lines."""
    for line in window.strip().split("\n")[:3]:
        if is_title_like_line(line):
            return line.strip()
    return f"Part {ordinal}"


# ---------------------------------------------------------------------------
# Hierarchy
# ---------------------------------------------------------------------------

class _Outline:
    """Tracks parent linkage and sibling-counted paths for emitted sections."""

    def __init__(self) -> None:
        self._stack: list[tuple[int, str, str]] = []   # (level, section_id, path)
        self._children: dict[str, int] = {}

    def place(self, section_id: str, level: int) -> tuple[str, str]:
        """Return (parent_section_id, path) and record the section."""
        while self._stack and self._stack[-1][0] >= level:
            self._stack.pop()
        parent_id, parent_path = ("", "")
        if self._stack:
            _, parent_id, parent_path = self._stack[-1]
        count = self._children.get(parent_id, 0) + 1
        self._children[parent_id] = count
        path = f"{parent_path}.{count}" if parent_path else str(count)
        self._stack.append((level, section_id, path))
        return parent_id, path


# ---------------------------------------------------------------------------
# Modes
# ---------------------------------------------------------------------------

def _page_range(raw: RawDocumentText, start: int, end: int) -> tuple[int, int]:
    first = raw.page_for_offset(start)
    last = raw.page_for_offset(max(start, end - 1))
    return first, max(first, last)


def _content_fallback(
    raw: RawDocumentText,
    options: StructureOptions,
    diagnostics: list[Diagnostic],
) -> list[Section]:
    """Tile the text into windows, one level-1 section per window."""
    windows: list[tuple[int, int]] = []
    offset = 0
    size = min(options.fallback_window_chars, options.max_section_chars)
    for piece in safe_windows(raw.text, size):
        windows.append((offset, offset + len(piece)))
        offset += len(piece)

    # A short window is folded into its predecessor so the tiling has no hole.
    # A short leading window has none and is folded into its successor.
    merged: list[tuple[int, int]] = []
    leading: int | None = None
    for start, end in windows:
        short = len(raw.text[start:end].strip()) < options.min_section_chars
        if leading is not None:
            if end - leading <= options.max_section_chars:
                start = leading
            else:
                merged.append((leading, start))
            leading = None
        elif short and not merged:
            leading = start
            continue
        if short and merged:
            prev_start, _ = merged[-1]
            if end - prev_start <= options.max_section_chars:
                merged[-1] = (prev_start, end)
                continue
        merged.append((start, end))
    if leading is not None:
        merged.append((leading, len(raw.text)))

    fingerprint = raw.fingerprint
    chars_per_page = len(raw.text) / max(1, raw.estimated_total_pages(options.default_chars_per_page))
    sections: list[Section] = []
    for start, end in merged:
        window = raw.text[start:end]
        content, lead = _clean(window)
        if len(content) < options.min_section_chars:
            diagnostics.append(Diagnostic(
                kind="empty_content",
                detail=f"fallback window [{start}, {end}) below {options.min_section_chars} chars",
            ))
            continue
        ordinal = len(sections) + 1
        title = _fallback_title(window, ordinal)
        if raw.pages:
            page_start, page_end = _page_range(raw, start, end)
        else:
            page_start = int(start / chars_per_page) + 1
            page_end = max(page_start, int(max(start, end - 1) / chars_per_page) + 1)
        section_id = compute_section_id(fingerprint, ordinal, f"fallback:{start}")
        sections.append(Section(
            section_id=section_id,
            title=title,
            clean_title=clean_title(title),
            level=1,
            parent_section_id="",
            semantic_type="chapter",
            page_start=page_start,
            page_end=page_end,
            char_start=start,
            char_end=end,
            content=content,
            path=str(ordinal),
            body_start=start + lead,
        ))
    return sections


def _toc_sections(
    raw: RawDocumentText,
    located: list[tuple[TocEntry, LocatedTitle]],
    spans: list[ResolvedSpan],
    options: StructureOptions,
    diagnostics: list[Diagnostic],
) -> list[Section]:
    fingerprint = raw.fingerprint
    outline = _Outline()
    sections: list[Section] = []
    for ordinal, ((entry, _), span) in enumerate(zip(located, spans)):
        content, lead = _clean(raw.text[span.char_start:span.char_end], entry.title)
        body_start = span.char_start + lead
        if len(content) < options.min_section_chars:
            logger.info(
                "Dropping %r: %d chars after cleaning (< %d)",
                entry.title, len(content), options.min_section_chars,
            )
            diagnostics.append(Diagnostic(
                kind="empty_content",
                entry_title=entry.title,
                detail=f"{len(content)} chars after cleaning",
            ))
            continue

        base_id = compute_section_id(fingerprint, ordinal, entry.title)
        parent_id, path = outline.place(base_id, entry.level)
        ctitle = clean_title(entry.title)

        if len(content) <= options.max_section_chars:
            sections.append(Section(
                section_id=base_id,
                title=entry.title,
                clean_title=ctitle,
                level=entry.level,
                parent_section_id=parent_id,
                semantic_type=entry.semantic_type,
                page_start=entry.page_start,
                page_end=entry.page_end,
                char_start=span.header_start,
                char_end=span.char_end,
                content=content,
                path=path,
                body_start=body_start,
            ))
            continue

        parts = partition(content, options.max_section_chars, ctitle)
        logger.info(
            "Splitting %r: %d chars into %d parts", entry.title, len(content), len(parts),
        )
        diagnostics.append(Diagnostic(
            kind="oversized_content",
            entry_title=entry.title,
            detail=f"{len(content)} chars split into {len(parts)} parts",
        ))
        cursor = body_start
        for part in parts:
            part_start = span.header_start if part.index == 1 else cursor
            if part.index == part.total:
                part_end = span.char_end
            else:
                part_end = min(span.char_end, cursor + len(part.content))
            cursor = part_end
            is_main = part.index == 1
            if raw.pages and not is_main:
                page_start, page_end = _page_range(raw, part_start, part_end)
            else:
                page_start, page_end = entry.page_start, entry.page_end
            sections.append(Section(
                section_id=base_id if is_main else f"{base_id}_part{part.index}",
                title=f"{entry.title} (Part {part.index}/{part.total})",
                clean_title=ctitle,
                level=entry.level,
                parent_section_id=parent_id if is_main else base_id,
                semantic_type=entry.semantic_type,
                page_start=page_start,
                page_end=page_end,
                char_start=part_start,
                char_end=part_end,
                content=part.content,
                is_main_part=is_main,
                part_number=part.index,
                total_parts=part.total,
                path=path,
                base_section_id=base_id,
                hard_split=part.hard_split,
                body_start=body_start if is_main else part_start,
            ))
    return sections


def check_invariants(sections: Iterable[Section], text_length: int) -> None:
    """Raise StructureBuildFailure on overlap, disorder or out-of-range spans."""
    prev: Section | None = None
    for section in sections:
        if section.char_end > text_length:
            raise StructureBuildFailure(
                f"section {section.section_id} ends at {section.char_end} "
                f"beyond text length {text_length}"
            )
        if prev is not None and prev.char_end > section.char_start:
            raise StructureBuildFailure(
                f"sections overlap: {prev.section_id} ends at {prev.char_end}, "
                f"{section.section_id} starts at {section.char_start}"
            )
        prev = section


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def build_structure(
    raw_text: RawDocumentText | str,
    toc_entries: Iterable[TocEntry | Mapping[str, Any]] = (),
    options: StructureOptions | None = None,
    *,
    search_start: int = 0,
) -> BuildResult:
    """Build sections and report how they were located.

    Args:
        raw_text: Document text (a plain string has no page index).
        toc_entries: Proposed entries, TocEntry values or raw dicts.
        options: Size bounds and thresholds.
        search_start: Offset title searches start from, typically the end
            of the TOC pages so TOC lines are not taken for headers.

    Returns:
        BuildResult with sections in document order.

    Raises:
        StructureBuildFailure: If the resulting spans violate ordering.
    """
    raw = raw_text if isinstance(raw_text, RawDocumentText) else RawDocumentText.from_text(raw_text)
    options = options or StructureOptions()
    entries, invalid = validate_toc_entries(toc_entries)
    diagnostics: list[Diagnostic] = list(invalid)

    if not entries:
        logger.info("No usable TOC entries; using content fallback")
        sections = _content_fallback(raw, options, diagnostics)
        check_invariants(sections, len(raw.text))
        return BuildResult(tuple(sections), (), tuple(diagnostics), "content_fallback")

    entries = sorted(entries, key=lambda e: e.page_start)
    params = MatchParams(
        threshold=options.fuzzy_match_confidence_threshold,
        word_gap_chars=options.word_gap_chars,
    )
    located: list[tuple[TocEntry, LocatedTitle]] = []
    search_from = max(0, search_start)
    for entry in entries:
        outcome = match_title(raw, entry.title, search_from, params=params)
        loc = outcome.located
        if loc.found:
            search_from = loc.match_end
            if outcome.ambiguous:
                diagnostics.append(Diagnostic(
                    kind="ambiguous_match",
                    entry_title=entry.title,
                    detail=f"{outcome.candidates} candidates via {loc.strategy}, chose {loc.char_position}",
                ))
        else:
            logger.warning("Title not found, estimating from pages: %r", entry.title)
            diagnostics.append(Diagnostic(
                kind="title_not_found",
                entry_title=entry.title,
                detail=f"pages {entry.page_start}-{entry.page_end}",
            ))
        located.append((entry, loc))

    if not any(loc.found for _, loc in located):
        logger.warning("No TOC entry located in text; using content fallback")
        sections = _content_fallback(raw, options, diagnostics)
        check_invariants(sections, len(raw.text))
        return BuildResult(tuple(sections), tuple(located), tuple(diagnostics), "content_fallback")

    estimated_pages = (
        raw.estimated_total_pages(options.default_chars_per_page) if raw.pages else None
    )
    spans = resolve(
        located,
        len(raw.text),
        text=raw,
        estimated_total_pages=estimated_pages,
        search_start=search_start,
        header_snap_lines=options.header_snap_lines,
        min_body_chars=options.min_section_chars,
    )
    sections = _toc_sections(raw, located, spans, options, diagnostics)
    check_invariants(sections, len(raw.text))
    return BuildResult(tuple(sections), tuple(located), tuple(diagnostics), "toc")


def build(
    raw_text: RawDocumentText | str,
    toc_entries: Iterable[TocEntry | Mapping[str, Any]] = (),
    options: StructureOptions | None = None,
) -> list[Section]:
    """Finalized sections for one document, in document order."""
    return list(build_structure(raw_text, toc_entries, options).sections)
