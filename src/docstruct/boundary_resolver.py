"""Turn located TOC titles into non-overlapping char spans.

Two passes over the entries in document order:

    1. Anchors. A located entry is anchored at its match; its body starts
       right after the matched header text. An entry that was not located
       gets a page-interpolated estimate clamped between the previous
       anchor's body start and the next located header. It only claims text
       when a header-like line follows the estimate and the previous entry
       keeps at least ``min_body_chars`` of body; otherwise it collapses to
       an empty span at the next located header.
    2. Ends. Each entry ends where the next entry's header begins. The last
       entry ends at the first structural terminator (bibliography,
       conclusion and reference headers) after its body start, or at the end
       of the text. An estimated entry may end earlier at its interpolated
       page end.

Spans are non-decreasing and non-overlapping by construction.
"""
from __future__ import annotations

import logging
import re
from collections.abc import Sequence

from docstruct.parsing_types import LocatedTitle, ResolvedSpan, TocEntry
from docstruct.raw_text import RawDocumentText
from docstruct.textmatch import is_header_like_line, iter_lines

logger = logging.getLogger(__name__)

TERMINATOR_RE = re.compile(
    r"^[ \t]*(?:\d+(?:\.\d+)*\.?[ \t]*)?"
    r"(?:LITERATURA|ZAKLJU[ČC]AK|REFERENCE|REFERENCES|BIBLIOGRAFIJA|BIBLIOGRAPHY)"
    r"[ \t]*:?[ \t]*$",
    re.IGNORECASE | re.MULTILINE,
)

DEFAULT_SNAP_LINES = 20


def find_terminator(text: str, start: int) -> int | None:
    """Offset of the first terminator header line at or after ``start``."""
    m = TERMINATOR_RE.search(text, start)
    if m is None:
        return None
    return m.start() + (len(m.group(0)) - len(m.group(0).lstrip()))


def estimate_span(
    entry: TocEntry,
    full_text_length: int,
    estimated_total_pages: int,
) -> tuple[int, int]:
    """Linear page interpolation of an entry's [start, end)."""
    pages = max(1, estimated_total_pages)
    chars_per_page = full_text_length / pages
    start = int((entry.page_start - 1) * chars_per_page)
    end = int(entry.page_end * chars_per_page)
    start = min(max(0, start), full_text_length)
    end = min(max(start, end), full_text_length)
    return start, end


def find_header(
    text: str,
    start: int,
    limit: int,
    max_lines: int = DEFAULT_SNAP_LINES,
) -> int | None:
    """Onset of the first header-like line in [start, limit), if any."""
    for line_start, line in iter_lines(text, start, max_lines=max_lines):
        if line_start >= limit:
            break
        if is_header_like_line(line):
            return line_start + (len(line) - len(line.lstrip()))
    return None


def resolve(
    located: Sequence[tuple[TocEntry, LocatedTitle]],
    full_text_length: int,
    *,
    text: RawDocumentText | str | None = None,
    estimated_total_pages: int | None = None,
    search_start: int = 0,
    header_snap_lines: int = DEFAULT_SNAP_LINES,
    min_body_chars: int = 0,
) -> list[ResolvedSpan]:
    """Compute one ResolvedSpan per (entry, location) pair, in order.

    Args:
        located: Entries in document order with their match results.
        full_text_length: Length of the document text.
        text: Document text; enables terminator search and header snapping.
        estimated_total_pages: Page count used for interpolation. Defaults
            to the text's page index, else the highest TOC page_end.
        search_start: Lowest offset any span may start at (e.g. the end of
            the TOC pages).
        header_snap_lines: Lines scanned when snapping an estimate.
        min_body_chars: Body the previous entry must keep before an
            unlocated entry may start after it.

    Returns:
        Spans aligned with ``located``.
    """
    if not located:
        return []
    body = text.text if isinstance(text, RawDocumentText) else text
    if estimated_total_pages is None:
        if isinstance(text, RawDocumentText) and text.pages:
            estimated_total_pages = text.estimated_total_pages()
        else:
            estimated_total_pages = max(e.page_end for e, _ in located)

    n = len(located)
    # Header start of the next located entry, per index.
    next_found = [full_text_length] * (n + 1)
    for i in range(n - 1, -1, -1):
        loc = located[i][1]
        next_found[i] = loc.char_position if loc.found else next_found[i + 1]

    # Pass 1: anchors.
    header_starts: list[int] = []
    body_starts: list[int] = []
    est_ends: list[int | None] = []
    estimated: list[bool] = []
    floor = min(max(0, search_start), full_text_length)
    for i, (entry, loc) in enumerate(located):
        if loc.found:
            hs = max(loc.char_position, floor)
            bs = min(max(hs, loc.match_end), full_text_length)
            est_ends.append(None)
            estimated.append(False)
            header_starts.append(hs)
            body_starts.append(bs)
            floor = bs
            continue

        ceil = max(floor, next_found[i + 1])
        start, end = estimate_span(entry, full_text_length, estimated_total_pages)
        start = min(max(start, floor), ceil)
        header = None
        if body is not None:
            header = find_header(body, start, ceil, header_snap_lines)
        if header is not None and (
            i == 0 or (header > floor and header - floor >= min_body_chars)
        ):
            hs = bs = header
            est_ends.append(end)
            logger.debug(
                "Estimated start %d for %r (pages %d-%d)",
                hs, entry.title, entry.page_start, entry.page_end,
            )
        else:
            # Nothing verifiable to claim: empty span at the next anchor.
            hs = bs = ceil
            est_ends.append(ceil)
            logger.debug(
                "No header line for %r near page %d; left empty",
                entry.title, entry.page_start,
            )
        estimated.append(True)
        header_starts.append(hs)
        body_starts.append(bs)
        floor = bs

    # Pass 2: ends.
    spans: list[ResolvedSpan] = []
    for i in range(n):
        hs, bs = header_starts[i], body_starts[i]
        if i + 1 < n:
            boundary = header_starts[i + 1]
        else:
            boundary = full_text_length
            if body is not None:
                term = find_terminator(body, bs)
                if term is not None:
                    boundary = term
        est_end = est_ends[i]
        end = boundary
        if est_end is not None and bs < est_end < boundary:
            end = est_end
        end = max(bs, min(end, full_text_length))
        spans.append(ResolvedSpan(
            header_start=hs,
            char_start=bs,
            char_end=end,
            estimated=estimated[i],
        ))
    return spans
