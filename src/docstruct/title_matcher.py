"""Locate a proposed section title in the document body.

Five strategies are tried in decreasing precision; the first one that
yields a candidate wins. A wrong boundary silently corrupts two sections,
so a miss is preferred over a doubtful hit:

    1. exact_structural    title on its own line, optional numeric prefix
    2. normalized_case     own-line match after case / diacritic / letter-
                           spacing normalisation
    3. word_sequence       two consecutive significant words close together,
                           accepted only in header-like context
    4. stripped_prefix     strategy 1 with the title's numbering removed
    5. partial_confidence  OCR-tolerant substring scored by context features

Every strategy is a pure function ``(body, title, search_from, params) ->
list[LocatedTitle]`` returning candidates in position order. All of them
only look at ``body[search_from:]``, so a located title never precedes the
position where the previous section's search left off.
"""
from __future__ import annotations

import logging
import re
from collections.abc import Callable
from typing import TypeAlias
from dataclasses import dataclass

from docstruct.parsing_types import LocatedTitle, MatchStrategy
from docstruct.raw_text import RawDocumentText
from docstruct.textmatch import (
    NUMBERING_FRAGMENT,
    NUMBERING_PREFIX_RE,
    clean_title,
    collapse_letter_spacing,
    fold_text,
    iter_lines,
    line_bounds,
    ocr_relaxed_pattern,
    significant_words,
    similarity,
    strip_numbering,
    title_pattern,
    uppercase_ratio,
)

logger = logging.getLogger(__name__)

# Candidates within this confidence of the best are considered ambiguous.
AMBIGUITY_MARGIN = 0.05
# Upper bound on candidates gathered per strategy.
MAX_CANDIDATES = 25

_TOC_TAIL_RE = re.compile(r"\s*(?:[._\-…]{2,}|\s)\s*\d{1,4}\s*$")


@dataclass(frozen=True, slots=True)
class MatchParams:
    """Tunables for the fuzzy strategies."""

    threshold: float = 0.7          # partial_confidence acceptance
    word_gap_chars: int = 50        # max gap between consecutive words


@dataclass(frozen=True, slots=True)
class MatchOutcome:
    """Chosen location plus how many near-equal candidates competed."""

    located: LocatedTitle
    candidates: int = 0

    @property
    def ambiguous(self) -> bool:
        return self.candidates > 1


StrategyFn: TypeAlias = "Callable[[str, str, int, MatchParams], list[LocatedTitle]]"


# ---------------------------------------------------------------------------
# Strategy 1: exact structural
# ---------------------------------------------------------------------------

def _own_line_regex(title: str) -> re.Pattern[str] | None:
    body = title_pattern(title.strip())
    if not body:
        return None
    return re.compile(
        rf"^[ \t]*(?P<hdr>(?:{NUMBERING_FRAGMENT}[ \t]*)?{body})[ \t]*:?[ \t]*$",
        re.IGNORECASE | re.MULTILINE,
    )


def _own_line_candidates(
    body: str,
    title: str,
    search_from: int,
    strategy: MatchStrategy,
    confidence: float,
) -> list[LocatedTitle]:
    pattern = _own_line_regex(title)
    if pattern is None:
        return []
    found: list[LocatedTitle] = []
    for m in pattern.finditer(body, search_from):
        found.append(LocatedTitle(
            found=True,
            char_position=m.start("hdr"),
            matched_text=m.group("hdr"),
            strategy=strategy,
            confidence=confidence,
        ))
        if len(found) >= MAX_CANDIDATES:
            break
    return found


def match_exact_structural(
    body: str, title: str, search_from: int, params: MatchParams,
) -> list[LocatedTitle]:
    """Title verbatim on its own line, case-insensitive."""
    return _own_line_candidates(body, title, search_from, "exact_structural", 1.0)


# ---------------------------------------------------------------------------
# Strategy 2: normalized case
# ---------------------------------------------------------------------------

def match_normalized_case(
    body: str, title: str, search_from: int, params: MatchParams,
) -> list[LocatedTitle]:
    """Own-line match after normalising case, diacritics and letter spacing.

    Catches headers rendered upper-case or title-case without the TOC's
    diacritics ("RACUNARSKI SISTEMI" for "Računarski sistemi"), or
    letter-spaced ("P R E D G O V O R").
    """
    target = fold_text(collapse_letter_spacing(strip_numbering(title)))
    if not target:
        return []
    target_nospace = target.replace(" ", "")
    found: list[LocatedTitle] = []
    for start, line in iter_lines(body, search_from):
        stripped = line.strip()
        if not stripped or len(stripped) > len(title) * 3 + 20:
            continue
        candidate = fold_text(collapse_letter_spacing(strip_numbering(stripped)))
        if candidate != target and candidate.replace(" ", "") != target_nospace:
            continue
        offset = start + (len(line) - len(line.lstrip()))
        found.append(LocatedTitle(
            found=True,
            char_position=offset,
            matched_text=stripped,
            strategy="normalized_case",
            confidence=0.95,
        ))
        if len(found) >= MAX_CANDIDATES:
            break
    return found


# ---------------------------------------------------------------------------
# Strategy 3: word sequence
# ---------------------------------------------------------------------------

def _header_context_ok(
    body: str, start: int, end: int, folded_title: str,
) -> tuple[bool, int, int]:
    """Validate that [start, end) sits in a header line.

    Before the match only blanks, numbering or leading title words may
    appear; after it only the rest of the title, a run of 3+ spaces or
    the line break. Returns (ok, line_start, line_end).
    """
    line_start, line_end = line_bounds(body, start)
    before = body[line_start:start]
    before_core = NUMBERING_PREFIX_RE.sub("", before, count=1).strip()
    if before_core and fold_text(before_core) not in folded_title:
        return False, line_start, line_end
    after = body[end:line_end]
    if after.strip() and not after.startswith("   "):
        if fold_text(after) not in folded_title:
            return False, line_start, line_end
    return True, line_start, line_end


def match_word_sequence(
    body: str, title: str, search_from: int, params: MatchParams,
) -> list[LocatedTitle]:
    """Two consecutive significant words, non-greedy gap, header context."""
    words = significant_words(title)
    if len(words) < 2:
        return []
    folded_title = fold_text(clean_title(title))
    folded_words = [fold_text(w) for w in words]
    found: dict[int, LocatedTitle] = {}
    for first, second in zip(words, words[1:]):
        pattern = re.compile(
            rf"\b{re.escape(first)}\b[\s\S]{{0,{params.word_gap_chars}}}?\b{re.escape(second)}\b",
            re.IGNORECASE,
        )
        for m in pattern.finditer(body, search_from):
            ok, line_start, line_end = _header_context_ok(
                body, m.start(), m.end(), folded_title,
            )
            if not ok:
                continue
            # Header lines are short; a pair inside a paragraph is prose.
            line = body[line_start:line_end]
            if len(line.strip()) > max(len(title) * 2, 60):
                continue
            hdr_start = line_start + (len(line) - len(line.lstrip()))
            if hdr_start < search_from:
                hdr_start = m.start()
            if hdr_start in found:
                continue
            folded_line = fold_text(line)
            present = sum(1 for w in folded_words if w in folded_line)
            confidence = max(0.6, present / len(folded_words))
            found[hdr_start] = LocatedTitle(
                found=True,
                char_position=hdr_start,
                matched_text=body[hdr_start:line_end].rstrip(),
                strategy="word_sequence",
                confidence=round(min(confidence, 1.0), 4),
            )
            if len(found) >= MAX_CANDIDATES:
                break
    return [found[k] for k in sorted(found)]


# ---------------------------------------------------------------------------
# Strategy 4: stripped prefix
# ---------------------------------------------------------------------------

def match_stripped_prefix(
    body: str, title: str, search_from: int, params: MatchParams,
) -> list[LocatedTitle]:
    """Strategy 1 retried with the title's own numbering removed."""
    stripped = strip_numbering(title)
    if stripped == title.strip():
        return []
    return _own_line_candidates(body, stripped, search_from, "stripped_prefix", 0.9)


# ---------------------------------------------------------------------------
# Strategy 5: confidence-scored partial match
# ---------------------------------------------------------------------------

def score_partial_context(body: str, start: int, end: int, cleaned: str) -> float:
    """Confidence in [0, 1] that body[start:end] is a header for ``cleaned``.

    Features and weights:
        isolated short line   0.35
        line start            0.20
        literal similarity    0.25 (scaled by sequence similarity)
        uppercase run         0.10
        numeric prefix        0.10
    """
    line_start, line_end = line_bounds(body, start)
    line = body[line_start:line_end].strip()
    before = body[line_start:start]
    score = 0.0
    if len(line) <= len(cleaned) + 15:
        score += 0.35
    before_core = NUMBERING_PREFIX_RE.sub("", before, count=1)
    if not before_core.strip():
        score += 0.20
    matched = body[start:end]
    if matched.casefold() == cleaned.casefold():
        score += 0.25
    else:
        score += 0.25 * similarity(matched, cleaned)
    if uppercase_ratio(matched) >= 0.6:
        score += 0.10
    if NUMBERING_PREFIX_RE.match(before) and before.strip():
        score += 0.10
    # A leader and page number after the title marks a TOC line, not a header.
    if _TOC_TAIL_RE.match(body, end, line_end):
        score *= 0.5
    return round(min(score, 1.0), 4)


def match_partial_confidence(
    body: str, title: str, search_from: int, params: MatchParams,
) -> list[LocatedTitle]:
    """OCR-tolerant substring anywhere, kept only at >= params.threshold."""
    cleaned = clean_title(title)
    if len(cleaned) < 3:
        return []
    pattern = re.compile(ocr_relaxed_pattern(cleaned), re.IGNORECASE)
    found: list[LocatedTitle] = []
    for m in pattern.finditer(body, search_from):
        if m.end() == m.start():
            continue
        confidence = score_partial_context(body, m.start(), m.end(), cleaned)
        if confidence < params.threshold:
            continue
        _, line_end = line_bounds(body, m.start())
        found.append(LocatedTitle(
            found=True,
            char_position=m.start(),
            matched_text=body[m.start():line_end].rstrip(),
            strategy="partial_confidence",
            confidence=confidence,
        ))
        if len(found) >= MAX_CANDIDATES:
            break
    return found


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------

STRATEGIES: tuple[tuple[MatchStrategy, StrategyFn], ...] = (
    ("exact_structural", match_exact_structural),
    ("normalized_case", match_normalized_case),
    ("word_sequence", match_word_sequence),
    ("stripped_prefix", match_stripped_prefix),
    ("partial_confidence", match_partial_confidence),
)


def _choose(candidates: list[LocatedTitle]) -> tuple[LocatedTitle, int]:
    """Earliest candidate among those within AMBIGUITY_MARGIN of the best."""
    best = max(c.confidence for c in candidates)
    near = [c for c in candidates if c.confidence >= best - AMBIGUITY_MARGIN]
    chosen = min(near, key=lambda c: c.char_position)
    return chosen, len(near)


def match_title(
    text: RawDocumentText | str,
    title: str,
    search_from: int = 0,
    *,
    params: MatchParams | None = None,
) -> MatchOutcome:
    """Run the strategy chain and report the chosen candidate.

    Args:
        text: Document text (RawDocumentText or plain string).
        title: Title as proposed by the TOC.
        search_from: Lowest char offset a match may start at.
        params: Fuzzy-strategy tunables.

    Returns:
        MatchOutcome; ``located.found`` is False when every strategy fails.
    """
    body = text.text if isinstance(text, RawDocumentText) else text
    params = params or MatchParams()
    search_from = max(0, search_from)
    if not title or not title.strip() or search_from >= len(body):
        return MatchOutcome(located=LocatedTitle.not_found())

    for name, strategy in STRATEGIES:
        candidates = [
            c for c in strategy(body, title, search_from, params)
            if c.char_position >= search_from
        ]
        if not candidates:
            continue
        chosen, near = _choose(candidates)
        if near > 1:
            logger.info(
                "Ambiguous match for %r via %s: %d candidates, chose offset %d",
                title, name, near, chosen.char_position,
            )
        return MatchOutcome(located=chosen, candidates=near)

    return MatchOutcome(located=LocatedTitle.not_found())


def locate(
    text: RawDocumentText | str,
    title: str,
    search_from: int = 0,
    *,
    threshold: float = 0.7,
    word_gap_chars: int = 50,
) -> LocatedTitle:
    """Find the onset of ``title`` in ``text`` at or after ``search_from``."""
    params = MatchParams(threshold=threshold, word_gap_chars=word_gap_chars)
    return match_title(text, title, search_from, params=params).located
