"""Core types for the document structuring pipeline.

Every stage shares these types. Section and chunk spans use global char
offsets into the cleaned document text (never section-relative). All
dataclasses use slots=True.

Type hierarchy:
  Ok[T] / Err[E]  Strict algebraic Result type
  TocEntry        Proposed section header from a TOC proposer
  LocatedTitle    Outcome of matching one TocEntry against the body text
  ResolvedSpan    Half-open char span assigned to one TocEntry
  Section         Finalized structural unit (possibly one part of many)
  Chunk           Retrieval-sized slice of a Section's content
"""

from __future__ import annotations

import hashlib
from dataclasses import asdict, dataclass
from typing import Any, Generic, Literal, TypeAlias, TypeVar

T = TypeVar("T")
E = TypeVar("E")

# ---------------------------------------------------------------------------
# Result ADT
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Success case of Result[T, E].

    Usage::

        result: Result[TocEntry, Diagnostic] = validate_toc_entry(raw)
        match result:
            case Ok(value=entry): entries.append(entry)
            case Err(error=diag): diagnostics.append(diag)
    """
    value: T


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """Failure case of Result[T, E]. Keeps the typed reason."""
    error: E


Result: TypeAlias = "Ok[T] | Err[E]"


# ---------------------------------------------------------------------------
# Enumerations (string literals, stored verbatim)
# ---------------------------------------------------------------------------

SemanticType = Literal["chapter", "section", "subsection", "paragraph"]
SEMANTIC_TYPES: frozenset[str] = frozenset(
    {"chapter", "section", "subsection", "paragraph"}
)

MatchStrategy = Literal[
    "exact_structural",
    "normalized_case",
    "word_sequence",
    "stripped_prefix",
    "partial_confidence",
    "page_estimate",
    "none",
]

MAX_LEVEL = 4


def infer_semantic_type(level: int) -> SemanticType:
    """Map an outline level to its semantic type (1 chapter .. 4+ paragraph)."""
    if level <= 1:
        return "chapter"
    if level == 2:
        return "section"
    if level == 3:
        return "subsection"
    return "paragraph"


# ---------------------------------------------------------------------------
# TocEntry
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class TocEntry:
    """A proposed section header, as listed in the table of contents.

    Invariants (enforced in __post_init__):
        - title is non-empty after stripping
        - 1 <= level <= MAX_LEVEL
        - page_start >= 1
        - page_end >= page_start
    """
    title: str                  # As it appears in the source, "1.1. Pojam"
    level: int = 1
    page_start: int = 1
    page_end: int = 0           # 0 = unknown, normalised to page_start
    parent_entry_id: str = ""
    semantic_type: SemanticType = "chapter"
    entry_id: str = ""

    def __post_init__(self) -> None:
        if not self.title or not self.title.strip():
            raise ValueError("TocEntry.title must be non-empty")
        if not 1 <= self.level <= MAX_LEVEL:
            raise ValueError(
                f"TocEntry.level must be in [1, {MAX_LEVEL}], got {self.level}"
            )
        if self.page_start < 1:
            raise ValueError(
                f"TocEntry.page_start must be >= 1, got {self.page_start}"
            )
        if self.page_end == 0:
            object.__setattr__(self, "page_end", self.page_start)
        elif self.page_end < self.page_start:
            raise ValueError(
                f"TocEntry.page_end ({self.page_end}) must be >= "
                f"page_start ({self.page_start})"
            )
        if self.semantic_type not in SEMANTIC_TYPES:
            raise ValueError(
                f"TocEntry.semantic_type must be one of {sorted(SEMANTIC_TYPES)}, "
                f"got {self.semantic_type!r}"
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "level": self.level,
            "pageStart": self.page_start,
            "pageEnd": self.page_end,
            "parentEntryId": self.parent_entry_id or None,
            "semanticType": self.semantic_type,
            "entryId": self.entry_id,
        }


# ---------------------------------------------------------------------------
# LocatedTitle / ResolvedSpan
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class LocatedTitle:
    """Result of matching a title against the body text.

    confidence is only meaningful for the fuzzy strategies; structural
    matches report 1.0 and misses report 0.0.
    """
    found: bool
    char_position: int
    matched_text: str = ""
    strategy: MatchStrategy = "none"
    confidence: float = 0.0

    def __post_init__(self) -> None:
        if self.found and self.char_position < 0:
            raise ValueError(
                f"LocatedTitle found=True requires char_position >= 0, "
                f"got {self.char_position}"
            )
        if not self.found and self.char_position != -1:
            raise ValueError(
                f"LocatedTitle found=False requires char_position == -1, "
                f"got {self.char_position}"
            )
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(
                f"LocatedTitle.confidence must be in [0, 1], got {self.confidence}"
            )

    @classmethod
    def not_found(cls) -> LocatedTitle:
        return cls(found=False, char_position=-1)

    @property
    def match_end(self) -> int:
        """Offset just past the matched header text (-1 when not found)."""
        if not self.found:
            return -1
        return self.char_position + len(self.matched_text)


@dataclass(frozen=True, slots=True)
class ResolvedSpan:
    """Char span assigned to one TOC entry.

    [header_start, char_end) is the section's footprint in the text;
    [char_start, char_end) is its body (the matched header excluded).
    For page-estimated spans header_start == char_start.
    """
    header_start: int
    char_start: int
    char_end: int
    estimated: bool = False     # True when derived from page interpolation

    def __post_init__(self) -> None:
        if self.header_start < 0:
            raise ValueError(
                f"ResolvedSpan.header_start must be >= 0, got {self.header_start}"
            )
        if self.char_start < self.header_start:
            raise ValueError(
                f"ResolvedSpan.char_start ({self.char_start}) must be >= "
                f"header_start ({self.header_start})"
            )
        if self.char_end < self.char_start:
            raise ValueError(
                f"ResolvedSpan.char_end ({self.char_end}) must be >= "
                f"char_start ({self.char_start})"
            )

    @property
    def length(self) -> int:
        return self.char_end - self.char_start


# ---------------------------------------------------------------------------
# Section / Chunk
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Section:
    """Finalized structural unit of a document.

    An oversized section is stored as several Section records: the primary
    (part_number=1, is_main_part=True) and follow-up parts whose
    parent_section_id points at the primary. All parts share
    base_section_id and own disjoint content.

    Invariants (enforced in __post_init__):
        - 0 <= char_start <= char_end
        - char_start <= body_start <= char_end
        - 1 <= part_number <= total_parts
    """
    section_id: str
    title: str
    clean_title: str
    level: int
    parent_section_id: str          # "" if top-level
    semantic_type: SemanticType
    page_start: int
    page_end: int
    char_start: int                 # Global char offset (inclusive)
    char_end: int                   # Global char offset (exclusive)
    content: str
    is_main_part: bool = True
    part_number: int = 1
    total_parts: int = 1
    path: str = ""                  # "1.2.3"
    base_section_id: str = ""
    hard_split: bool = False
    body_start: int = -1            # Offset of content[0]; char_start if unset

    def __post_init__(self) -> None:
        if self.char_start < 0:
            raise ValueError(
                f"Section.char_start must be >= 0, got {self.char_start}"
            )
        if self.char_end < self.char_start:
            raise ValueError(
                f"Section.char_end ({self.char_end}) must be >= "
                f"char_start ({self.char_start})"
            )
        if not 1 <= self.part_number <= self.total_parts:
            raise ValueError(
                f"Section.part_number ({self.part_number}) must be in "
                f"[1, total_parts={self.total_parts}]"
            )
        if self.body_start < 0:
            object.__setattr__(self, "body_start", self.char_start)
        if not self.char_start <= self.body_start <= self.char_end:
            raise ValueError(
                f"Section.body_start ({self.body_start}) must be in "
                f"[char_start={self.char_start}, char_end={self.char_end}]"
            )
        if not self.base_section_id:
            object.__setattr__(self, "base_section_id", self.section_id)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class Chunk:
    """Retrieval-sized slice of a section's content.

    char_start/char_end are global offsets: the owning section's body_start
    plus the lengths of the preceding chunks.
    """
    chunk_id: str
    section_id: str
    paragraph_index: int
    char_start: int
    char_end: int
    content: str
    title: str = ""
    hard_split: bool = False

    def __post_init__(self) -> None:
        if self.paragraph_index < 0:
            raise ValueError(
                f"Chunk.paragraph_index must be >= 0, got {self.paragraph_index}"
            )
        if self.char_end < self.char_start:
            raise ValueError(
                f"Chunk.char_end ({self.char_end}) must be >= "
                f"char_start ({self.char_start})"
            )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Deterministic identifiers
# ---------------------------------------------------------------------------

def compute_section_id(doc_fingerprint: str, ordinal: int, title: str) -> str:
    """Stable section id: sha256 of fingerprint, ordinal and title.

    Rebuilding the same document with the same TOC yields the same ids.
    """
    payload = f"{doc_fingerprint}|{ordinal}|{title}"
    digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]
    return f"sec_{digest}"


def compute_chunk_id(section_id: str, paragraph_index: int, content: str) -> str:
    """Stable chunk id: sha256 of owning section, index and content."""
    payload = f"{section_id}|{paragraph_index}|{content}"
    digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]
    return f"chunk_{digest}"
