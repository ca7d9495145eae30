"""Size-bounded partitioning of section content.

Content over the bound is split at the coarsest boundary that works:

    1. paragraph breaks (blank line), greedy accumulation
    2. sentence ends (". ", "! ", "? ") inside an over-long paragraph
    3. raw character count inside an over-long sentence (flagged hard_split)

Separators stay attached to the piece on their left, so concatenating the
parts' content always reproduces the input exactly, hard splits included.
Labels are carried next to the content, never inside it.
"""
from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass

# Titles longer than this are truncated inside labels.
LABEL_TITLE_CHARS = 40

_PARAGRAPH_RE = re.compile(r".*?(?:\n[ \t]*\n\s*|\Z)", re.DOTALL)
_SENTENCE_RE = re.compile(r".*?(?:[.!?] +|\Z)", re.DOTALL)
_LABEL_RE = re.compile(r"^\[(?:[^\]\n]* - )?part \d+/\d+\]\n")


@dataclass(frozen=True, slots=True)
class Part:
    """One piece of partitioned content (1-based index)."""

    index: int
    total: int
    label: str
    content: str
    hard_split: bool = False

    @property
    def labeled(self) -> str:
        """Content prefixed with its provenance label."""
        return self.label + self.content


# ---------------------------------------------------------------------------
# Labels
# ---------------------------------------------------------------------------

def part_label(title: str, index: int, total: int) -> str:
    """Deterministic label: "[Title - part 2/3]\\n" or "[part 2/3]\\n"."""
    t = re.sub(r"[\[\]\n]", " ", title).strip()
    if len(t) > LABEL_TITLE_CHARS:
        t = t[:LABEL_TITLE_CHARS].rstrip()
    if t:
        return f"[{t} - part {index}/{total}]\n"
    return f"[part {index}/{total}]\n"


def label_reserve(title: str) -> int:
    """Chars reserved for the widest label this title can produce."""
    return len(part_label(title, 999, 999))


def strip_label(text: str) -> str:
    """Remove a leading part label, if present."""
    return _LABEL_RE.sub("", text, count=1)


# ---------------------------------------------------------------------------
# Splitters (all lossless)
# ---------------------------------------------------------------------------

def _split_with(pattern: re.Pattern[str], text: str) -> list[str]:
    pieces = [m.group(0) for m in pattern.finditer(text) if m.group(0)]
    return pieces or [text]


def split_paragraphs(text: str) -> list[str]:
    """Paragraphs with their trailing blank-line separator attached."""
    return _split_with(_PARAGRAPH_RE, text)


def split_sentences(text: str) -> list[str]:
    """Sentences with their terminal punctuation and spaces attached."""
    return _split_with(_SENTENCE_RE, text)


def hard_split(text: str, size: int) -> list[str]:
    """Fixed-size character slices."""
    return [text[i:i + size] for i in range(0, len(text), size)] or [text]


_SPLITTERS: tuple[Callable[[str], list[str]], ...] = (split_paragraphs, split_sentences)


def _pack(text: str, budget: int, level: int = 0) -> list[tuple[str, bool]]:
    """Greedy accumulation at ``level``; over-long units descend a level."""
    if len(text) <= budget:
        return [(text, False)]
    if level >= len(_SPLITTERS):
        return [(piece, True) for piece in hard_split(text, budget)]

    out: list[tuple[str, bool]] = []
    current = ""
    for unit in _SPLITTERS[level](text):
        if len(unit) > budget:
            if current:
                out.append((current, False))
                current = ""
            out.extend(_pack(unit, budget, level + 1))
            continue
        if current and len(current) + len(unit) > budget:
            out.append((current, False))
            current = ""
        current += unit
    if current:
        out.append((current, False))
    return out


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def partition(raw_content: str, max_chars: int, label: str = "") -> list[Part]:
    """Split ``raw_content`` into labeled parts no longer than ``max_chars``.

    Args:
        raw_content: Content to split.
        max_chars: Upper bound for a labeled part.
        label: Source title used in part labels.

    Returns:
        Parts in order of appearance. A single part when the content fits.

    Raises:
        ValueError: If ``max_chars`` leaves no room after the label.
    """
    reserve = label_reserve(label)
    if max_chars <= reserve:
        raise ValueError(
            f"max_chars ({max_chars}) must exceed the label reserve ({reserve})"
        )
    if len(raw_content) <= max_chars:
        return [Part(
            index=1, total=1, label=part_label(label, 1, 1), content=raw_content,
        )]

    pieces = _pack(raw_content, max_chars - reserve)
    total = len(pieces)
    return [
        Part(
            index=i,
            total=total,
            label=part_label(label, i, total),
            content=piece,
            hard_split=hard,
        )
        for i, (piece, hard) in enumerate(pieces, start=1)
    ]


def safe_windows(text: str, window_chars: int) -> list[str]:
    """Paragraph/sentence-aligned windows of at most ``window_chars``.

    Windows tile ``text`` exactly.
    """
    if window_chars <= 0:
        raise ValueError(f"window_chars must be positive, got {window_chars}")
    if not text:
        return []
    return [piece for piece, _ in _pack(text, window_chars)]
