"""Immutable document text with a page index.

The external extraction stage hands over one string per page. Pages are
cleaned individually and joined with a paragraph break, and the start
offset of every page is recorded so that char offsets can be mapped back
to page numbers (and page numbers forward to approximate offsets) without
re-reading the source.
"""
from __future__ import annotations

import hashlib
import math
import re
from bisect import bisect_right
from collections.abc import Iterable
from dataclasses import dataclass

PAGE_SEPARATOR = "\n\n"
DEFAULT_CHARS_PER_PAGE = 2000

_ZERO_WIDTH_CHARS = frozenset({"\u200b", "\u200c", "\u200d", "\ufeff"})
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_MULTI_SPACE_RE = re.compile(r"[ \t]{2,}")
_SPACE_BEFORE_PUNCT_RE = re.compile(r" +([.,;:!?])")
_LEADING_SPACE_RE = re.compile(r"^[ \t]+", re.MULTILINE)
_TRAILING_SPACE_RE = re.compile(r"[ \t]+$", re.MULTILINE)
# A line break between two lowercase letters is a wrapped sentence.
_SOFT_BREAK_RE = re.compile(r"([a-zšđčćž])\n([a-zšđčćž])")
_MULTI_NEWLINE_RE = re.compile(r"\n{3,}")
# Line consisting only of a page number ("12", "- 12 -").
_PAGE_NUMBER_LINE_RE = re.compile(r"^[ \t]*-?[ \t]*\d{1,4}[ \t]*-?[ \t]*$", re.MULTILINE)
# Letter-spaced display header: "P R E D G O V O R".
_SPACED_CAPS_RE = re.compile(r"\b(?:[A-ZŠĐČĆŽ] ){3,}[A-ZŠĐČĆŽ]\b")


def _join_spaced_caps(m: re.Match[str]) -> str:
    return m.group(0).replace(" ", "")


def clean_extracted_text(text: str) -> str:
    """Normalise one page of extracted PDF text.

    Transforms, in order:
    1. CRLF / CR to LF, NBSP to space, zero-width and control chars removed.
    2. Runs of spaces collapsed, spaces before punctuation dropped.
    3. Leading/trailing spaces per line removed.
    4. Lines holding only a page number removed.
    5. Letter-spaced capitals joined ("P R E D G O V O R" -> "PREDGOVOR").
    6. Wrapped lines between lowercase letters joined with a space.
    7. Three or more newlines collapsed to one paragraph break.
    """
    if not text:
        return ""
    out = text.replace("\r\n", "\n").replace("\r", "\n").replace("\u00a0", " ")
    out = "".join(ch for ch in out if ch not in _ZERO_WIDTH_CHARS)
    out = _CONTROL_RE.sub("", out)
    out = _MULTI_SPACE_RE.sub(" ", out)
    out = _SPACE_BEFORE_PUNCT_RE.sub(r"\1", out)
    out = _LEADING_SPACE_RE.sub("", out)
    out = _TRAILING_SPACE_RE.sub("", out)
    out = _PAGE_NUMBER_LINE_RE.sub("", out)
    out = _SPACED_CAPS_RE.sub(_join_spaced_caps, out)
    out = _SOFT_BREAK_RE.sub(r"\1 \2", out)
    out = _MULTI_NEWLINE_RE.sub("\n\n", out)
    return out.strip()


@dataclass(frozen=True, slots=True)
class PageOffset:
    """Start offset of one page inside RawDocumentText.text."""
    page_number: int
    start_offset: int


@dataclass(frozen=True, slots=True)
class RawDocumentText:
    """Cleaned, concatenated document text plus its page index.

    Invariants (enforced in __post_init__):
        - page start offsets strictly increase and lie in [0, len(text)]
        - page numbers strictly increase
    """
    text: str
    pages: tuple[PageOffset, ...] = ()
    doc_id: str = ""

    def __post_init__(self) -> None:
        prev_offset = -1
        prev_page = 0
        for page in self.pages:
            if not 0 <= page.start_offset <= len(self.text):
                raise ValueError(
                    f"page {page.page_number} start_offset {page.start_offset} "
                    f"outside [0, {len(self.text)}]"
                )
            if page.start_offset <= prev_offset:
                raise ValueError(
                    f"page start offsets must increase (page {page.page_number})"
                )
            if page.page_number <= prev_page:
                raise ValueError(
                    f"page numbers must increase, got {page.page_number} "
                    f"after {prev_page}"
                )
            prev_offset = page.start_offset
            prev_page = page.page_number

    # -- construction -------------------------------------------------------

    @classmethod
    def from_pages(
        cls,
        pages: Iterable[str],
        *,
        first_page: int = 1,
        clean: bool = True,
        doc_id: str = "",
    ) -> RawDocumentText:
        """Join per-page text with PAGE_SEPARATOR and index page starts.

        Pages that clean to nothing are left out of the index; offsets
        resolve to the preceding indexed page.
        """
        parts: list[str] = []
        index: list[PageOffset] = []
        offset = 0
        for i, page_text in enumerate(pages):
            body = clean_extracted_text(page_text) if clean else page_text
            page_number = first_page + i
            if not body:
                continue
            if parts:
                parts.append(PAGE_SEPARATOR)
                offset += len(PAGE_SEPARATOR)
            index.append(PageOffset(page_number=page_number, start_offset=offset))
            parts.append(body)
            offset += len(body)
        return cls(text="".join(parts), pages=tuple(index), doc_id=doc_id)

    @classmethod
    def from_text(cls, text: str, *, clean: bool = False, doc_id: str = "") -> RawDocumentText:
        """Wrap a single string with no page index."""
        body = clean_extracted_text(text) if clean else text
        return cls(text=body, pages=(), doc_id=doc_id)

    # -- lookups ------------------------------------------------------------

    def __len__(self) -> int:
        return len(self.text)

    @property
    def fingerprint(self) -> str:
        """SHA256 of the text; the document's content address."""
        return hashlib.sha256(self.text.encode("utf-8")).hexdigest()

    def page_for_offset(self, offset: int) -> int:
        """Page number holding ``offset`` (1 when there is no page index)."""
        if not self.pages:
            return 1
        starts = [p.start_offset for p in self.pages]
        idx = bisect_right(starts, offset) - 1
        if idx < 0:
            return self.pages[0].page_number
        return self.pages[idx].page_number

    def offset_for_page(self, page_number: int) -> int | None:
        """Start offset of ``page_number``, or None if it is not indexed."""
        for page in self.pages:
            if page.page_number == page_number:
                return page.start_offset
        return None

    def estimated_total_pages(
        self, default_chars_per_page: int = DEFAULT_CHARS_PER_PAGE,
    ) -> int:
        """Page count from the index, else estimated from text length."""
        if self.pages:
            return self.pages[-1].page_number
        if not self.text:
            return 1
        return max(1, math.ceil(len(self.text) / default_chars_per_page))

    def page_text(self, page_number: int) -> str:
        """Text of one indexed page (empty string if not indexed)."""
        for i, page in enumerate(self.pages):
            if page.page_number != page_number:
                continue
            if i + 1 < len(self.pages):
                end = self.pages[i + 1].start_offset - len(PAGE_SEPARATOR)
            else:
                end = len(self.text)
            return self.text[page.start_offset:max(page.start_offset, end)]
        return ""

    def leading_pages_text(self, max_pages: int) -> str:
        """Text of the first ``max_pages`` indexed pages (whole text if none)."""
        if not self.pages or len(self.pages) <= max_pages:
            return self.text
        end = self.pages[max_pages].start_offset
        return self.text[:end]
