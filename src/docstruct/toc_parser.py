"""Table-of-contents detection, parsing and validation.

Two sources feed TocEntry lists into the builder:

    1. An external LLM proposer answering with JSON
       ``{"sections": [{"title", "level", "pageStart", "pageEnd",
       "semanticType"}, ...]}``. parse_llm_toc_response extracts and
       validates that answer.
    2. Pattern detection over the leading pages: a "Sadržaj"/"Contents"
       header followed by leader lines such as
       ``1. HARDVER ______ 15`` or ``Pojam ........ 15``.

Every entry passes through validate_toc_entry; malformed entries are
dropped with a warning and never abort the document.
"""
from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from typing import Any

import orjson

from docstruct.errors import Diagnostic, TocProposerError
from docstruct.numbering import title_numbering
from docstruct.parsing_types import (
    MAX_LEVEL,
    SEMANTIC_TYPES,
    Err,
    Ok,
    Result,
    TocEntry,
    infer_semantic_type,
)
from docstruct.raw_text import RawDocumentText
from docstruct.textmatch import clean_title, fold_text

logger = logging.getLogger(__name__)

MAX_TOC_PAGE = 1000
# Window searched after a TOC header.
TOC_WINDOW_CHARS = 3000
# pageEnd assumed when a proposer omits it or returns one before pageStart.
DEFAULT_PAGE_SPAN = 3

_TOC_HEADER_RE = re.compile(
    r"^[ \t]*(?:SADR[ŽZ]AJ|PREGLED\s+SADR[ŽZ]AJA|TABLE\s+OF\s+CONTENTS|CONTENTS)"
    r"[ \t]*:?[ \t]*$",
    re.IGNORECASE | re.MULTILINE,
)
# "Title ______ 15", "Title ....... 15", "Title . . . . 15", "Title … 15"
_LEADER_LINE_RE = re.compile(
    r"^(?P<title>.+?)[ \t]*(?:_{3,}|\.{3,}|(?:\.[ \t]){3,}|…+)[ \t]*(?P<page>\d{1,4})[ \t]*$"
)
# "Title      15" (wide gap, survives only when spacing was preserved)
_SPACED_LINE_RE = re.compile(r"^(?P<title>.+?)[ \t]{3,}(?P<page>\d{1,4})[ \t]*$")
# "Title 15" (any trailing number)
_RELAXED_LINE_RE = re.compile(r"^(?P<title>.*[^\W\d_].*?)[ \t.]+(?P<page>\d{1,4})[ \t]*$")
_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


@dataclass(frozen=True, slots=True)
class TocRegion:
    """Char range of the detected TOC inside the document text."""

    start: int
    end: int
    text: str


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _get(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return None


def validate_toc_entry(
    raw: Mapping[str, Any] | TocEntry, ordinal: int = 0,
) -> Result[TocEntry, Diagnostic]:
    """Validate one proposed entry.

    Rules: title non-empty, pageStart a positive integer, level in
    [1, MAX_LEVEL]. A missing or inverted pageEnd defaults to
    pageStart + DEFAULT_PAGE_SPAN; a missing or unknown semanticType is
    inferred from the level.
    """
    if isinstance(raw, TocEntry):
        if raw.entry_id:
            return Ok(raw)
        return Ok(replace(raw, entry_id=f"toc-{ordinal}"))
    if not isinstance(raw, Mapping):
        return Err(Diagnostic(
            kind="invalid_toc_entry",
            detail=f"entry {ordinal}: expected an object, got {type(raw).__name__}",
        ))

    title = _get(raw, "title")
    if not isinstance(title, str) or not title.strip():
        return Err(Diagnostic(
            kind="invalid_toc_entry", detail=f"entry {ordinal}: missing title",
        ))
    title = title.strip()

    page_start = _as_int(_get(raw, "pageStart", "page_start", "page"))
    if page_start is None or page_start < 1:
        return Err(Diagnostic(
            kind="invalid_toc_entry",
            entry_title=title,
            detail=f"entry {ordinal}: pageStart must be a positive integer",
        ))

    level_raw = _get(raw, "level")
    level = 1 if level_raw is None else _as_int(level_raw)
    if level is None or not 1 <= level <= MAX_LEVEL:
        return Err(Diagnostic(
            kind="invalid_toc_entry",
            entry_title=title,
            detail=f"entry {ordinal}: level must be in [1, {MAX_LEVEL}], got {level_raw!r}",
        ))

    page_end = _as_int(_get(raw, "pageEnd", "page_end"))
    if page_end is None or page_end < page_start:
        page_end = page_start + DEFAULT_PAGE_SPAN

    semantic_type = _get(raw, "semanticType", "semantic_type")
    if not isinstance(semantic_type, str) or semantic_type not in SEMANTIC_TYPES:
        semantic_type = infer_semantic_type(level)

    parent = _get(raw, "parentEntryId", "parent_entry_id", "parentSectionId")
    entry_id = _get(raw, "entryId", "entry_id", "id")
    return Ok(TocEntry(
        title=title,
        level=level,
        page_start=page_start,
        page_end=page_end,
        parent_entry_id=str(parent) if parent is not None else "",
        semantic_type=semantic_type,
        entry_id=str(entry_id) if entry_id is not None else f"toc-{ordinal}",
    ))


def validate_toc_entries(
    raws: Iterable[Mapping[str, Any] | TocEntry],
) -> tuple[list[TocEntry], list[Diagnostic]]:
    """Validate a batch; invalid entries are logged and reported, not raised."""
    entries: list[TocEntry] = []
    diagnostics: list[Diagnostic] = []
    for i, raw in enumerate(raws):
        match validate_toc_entry(raw, i):
            case Ok(value=entry):
                entries.append(entry)
            case Err(error=diag):
                logger.warning("Dropping TOC entry: %s", diag.detail)
                diagnostics.append(diag)
    return entries, diagnostics


# ---------------------------------------------------------------------------
# LLM response
# ---------------------------------------------------------------------------

def parse_llm_toc_response(raw: str | bytes | Mapping[str, Any]) -> list[TocEntry]:
    """Extract validated entries from an LLM TOC answer.

    The answer may wrap its JSON object in prose or code fences; the first
    ``{...}`` block is parsed.

    Raises:
        TocProposerError: No JSON object, an ``error`` field, or no
            ``sections`` array.
    """
    if isinstance(raw, Mapping):
        payload: Any = raw
    else:
        text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
        m = _JSON_OBJECT_RE.search(text)
        if m is None:
            raise TocProposerError("TOC response contains no JSON object")
        try:
            payload = orjson.loads(m.group(0))
        except orjson.JSONDecodeError as exc:
            raise TocProposerError(f"TOC response is not valid JSON: {exc}") from exc

    if not isinstance(payload, Mapping):
        raise TocProposerError("TOC response must be a JSON object")
    if payload.get("error"):
        raise TocProposerError(f"TOC proposer reported an error: {payload['error']}")
    sections = payload.get("sections", payload.get("toc"))
    if not isinstance(sections, list):
        raise TocProposerError("TOC response: sections must be an array")

    entries, _ = validate_toc_entries(sections)
    return entries


# ---------------------------------------------------------------------------
# Pattern detection
# ---------------------------------------------------------------------------

def _match_toc_line(line: str, *, relaxed: bool = False) -> re.Match[str] | None:
    s = line.strip()
    if len(s) < 4:
        return None
    patterns = (_RELAXED_LINE_RE,) if relaxed else (_LEADER_LINE_RE, _SPACED_LINE_RE)
    for pattern in patterns:
        m = pattern.match(s)
        if m is None:
            continue
        page = int(m.group("page"))
        if 1 <= page <= MAX_TOC_PAGE:
            return m
    return None


def looks_like_toc(text: str, max_lines: int = 15) -> bool:
    """At least two leader-style entry lines among the first lines."""
    indicators = 0
    seen = 0
    for line in text.split("\n"):
        if not line.strip():
            continue
        seen += 1
        if seen > max_lines:
            break
        if _match_toc_line(line) is not None:
            indicators += 1
            if indicators >= 2:
                return True
    return False


def level_from_title(title: str) -> int:
    """Outline level from numbering depth, else capitals -> 1, else 2."""
    label = title_numbering(title)
    if label is not None:
        return min(MAX_LEVEL, label.depth)
    core = clean_title(title)
    letters = [ch for ch in core if ch.isalpha()]
    if letters and all(ch.isupper() for ch in letters):
        return 1
    return 2


def _region_end(text: str, start: int, limit: int) -> int:
    """End offset of the last TOC line between ``start`` and ``limit``."""
    end = start
    pos = start
    misses = 0
    while pos < limit:
        nl = text.find("\n", pos)
        line_end = limit if nl == -1 or nl > limit else nl
        line = text[pos:line_end]
        if _match_toc_line(line) is not None:
            end = line_end
            misses = 0
        elif line.strip():
            misses += 1
            # Wrapped entries span a line or two; a longer run is body text.
            if misses > 3 and end > start:
                break
        pos = line_end + 1
    return end


def find_toc_region(
    text: RawDocumentText | str,
    scan_pages: int = 15,
    *,
    default_chars_per_page: int = 2000,
) -> TocRegion | None:
    """Locate the TOC in the leading pages.

    A "Sadržaj"/"Contents" header whose following lines look like a TOC
    wins. Otherwise the first run of two TOC lines within fifteen lines
    marks the region.
    """
    if isinstance(text, RawDocumentText):
        body = text.text
        lead = text.leading_pages_text(scan_pages) if text.pages else ""
        limit = len(lead) if lead else min(len(body), scan_pages * default_chars_per_page)
    else:
        body = text
        limit = min(len(body), scan_pages * default_chars_per_page)

    for m in _TOC_HEADER_RE.finditer(body, 0, limit):
        after = body[m.end():m.end() + 500]
        if not looks_like_toc(after):
            continue
        end = _region_end(body, m.end(), min(len(body), m.end() + TOC_WINDOW_CHARS))
        return TocRegion(start=m.start(), end=end, text=body[m.start():end])

    lines: list[tuple[int, str]] = []
    pos = 0
    while pos < limit:
        nl = body.find("\n", pos)
        line_end = len(body) if nl == -1 else nl
        lines.append((pos, body[pos:line_end]))
        pos = line_end + 1
    for i, (start, _) in enumerate(lines):
        if _match_toc_line(lines[i][1]) is None:
            continue
        window = "\n".join(line for _, line in lines[i:i + 15])
        if looks_like_toc(window):
            end = _region_end(body, start, min(len(body), start + TOC_WINDOW_CHARS))
            return TocRegion(start=start, end=end, text=body[start:end])
    return None


def parse_toc_entries(toc_text: str) -> list[TocEntry]:
    """Parse TOC lines into entries (relaxed patterns when strict ones fail).

    Titles keep their numbering; levels follow it. Duplicate
    (title, page) pairs are dropped.
    """
    entries = _parse_lines(toc_text, relaxed=False)
    if not entries:
        entries = _parse_lines(toc_text, relaxed=True)
        if entries:
            logger.info("TOC parsed with relaxed patterns: %d entries", len(entries))
    return entries


def _parse_lines(toc_text: str, *, relaxed: bool) -> list[TocEntry]:
    entries: list[TocEntry] = []
    seen: set[tuple[str, int]] = set()
    for line in toc_text.split("\n"):
        if _TOC_HEADER_RE.match(line):
            continue
        m = _match_toc_line(line, relaxed=relaxed)
        if m is None:
            continue
        title = re.sub(r"[\s._]+$", "", m.group("title")).strip()
        page = int(m.group("page"))
        if len(clean_title(title)) < 3:
            continue
        key = (fold_text(title), page)
        if key in seen:
            continue
        seen.add(key)
        level = level_from_title(title)
        entries.append(TocEntry(
            title=title,
            level=level,
            page_start=page,
            page_end=page,
            semantic_type=infer_semantic_type(level),
            entry_id=f"toc-{len(entries)}",
        ))
    return entries


def assign_page_ends(
    entries: list[TocEntry], total_pages: int | None = None,
) -> list[TocEntry]:
    """Fill page_end from the next entry at the same or a higher level.

    Top-level entries end on the next one's start page (the shared page is
    intentional); deeper entries end the page before, floored at their own
    start. The last entry runs to ``total_pages`` when known, else
    page_start + DEFAULT_PAGE_SPAN.
    """
    out: list[TocEntry] = []
    for i, entry in enumerate(entries):
        next_start: int | None = None
        for later in entries[i + 1:]:
            if later.level <= entry.level:
                next_start = later.page_start
                break
        if next_start is None:
            if total_pages is not None and total_pages >= entry.page_start:
                page_end = total_pages
            else:
                page_end = entry.page_start + DEFAULT_PAGE_SPAN
        elif entry.level == 1:
            page_end = next_start
        else:
            page_end = next_start - 1
        out.append(replace(entry, page_end=max(entry.page_start, page_end)))
    return out


def detect_toc(
    text: RawDocumentText | str,
    scan_pages: int = 15,
    *,
    default_chars_per_page: int = 2000,
) -> tuple[list[TocEntry], TocRegion | None]:
    """Pattern-based TOC: region lookup, line parsing and page ends."""
    region = find_toc_region(
        text, scan_pages, default_chars_per_page=default_chars_per_page,
    )
    if region is None:
        return [], None
    entries = parse_toc_entries(region.text)
    total_pages = (
        text.estimated_total_pages(default_chars_per_page)
        if isinstance(text, RawDocumentText) and text.pages
        else None
    )
    return assign_page_ends(entries, total_pages), region
