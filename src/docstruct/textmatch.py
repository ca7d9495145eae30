"""Reusable text primitives for title cleaning and header detection.

Pure text operations with zero pipeline dependencies. Used by the title
matcher, the boundary resolver's header snapping, the content fallback's
title heuristic and the pattern TOC parser.
"""
from __future__ import annotations

import difflib
import re
import unicodedata

# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

# Leading outline numbering: "1.", "1.2.", "1.2.3", "IV.", "A)".
NUMBERING_PREFIX_RE = re.compile(
    r"^\s*(?:\d+(?:\.\d+)*\.?|[IVXLC]+\.|[A-Za-z]\))(?=\s|$|[A-ZŠĐČĆŽ])\s*"
)
# Same numbering as a regex fragment, for embedding in line patterns.
NUMBERING_FRAGMENT = r"(?:\d+(?:\.\d+)*\.?|[IVXLC]+\.|[A-Za-z]\))"

_TRAILING_PAGE_RE = re.compile(r"[.\s\-_]+\d+\s*$")
_LEADER_RE = re.compile(r"\.{2,}|-{2,}|_{2,}|…+")
_WORD_RE = re.compile(r"\w+", re.UNICODE)
_WS_RE = re.compile(r"\s+")
_PUNCT_RE = re.compile(r"[^\w\s]", re.UNICODE)
_SENTENCE_END = (".", "!", "?", ",", ";")

# Serbian Latin diacritics folded for comparison.
_DIACRITIC_FOLD = str.maketrans({
    "š": "s", "đ": "d", "č": "c", "ć": "c", "ž": "z",
    "Š": "S", "Đ": "D", "Č": "C", "Ć": "C", "Ž": "Z",
})

# Character classes tolerated by the OCR-relaxed pattern.
_OCR_CLASSES: dict[str, str] = {
    "m": "(?:m|rn)",
    "l": "[l1i|]",
    "i": "[i1l|]",
    "1": "[1li|]",
    "o": "[o0]",
    "0": "[0o]",
    "s": "[sš]",
    "š": "[sš]",
    "c": "[cčć]",
    "č": "[cčć]",
    "ć": "[cčć]",
    "z": "[zž]",
    "ž": "[zž]",
    "d": "(?:dj|d|đ)",
    "đ": "(?:dj|d|đ)",
}


# ---------------------------------------------------------------------------
# Title cleaning
# ---------------------------------------------------------------------------

def strip_numbering(title: str) -> str:
    """Remove leading outline numbering ("1.2. Pojam" -> "Pojam").

    Returns the stripped input unchanged when nothing would remain.
    """
    stripped = NUMBERING_PREFIX_RE.sub("", title, count=1).strip()
    return stripped or title.strip()


def clean_title(title: str) -> str:
    """Title with numbering, leaders and a trailing page number removed.

    "1.1. Pojam ........ 15" -> "Pojam"
    """
    t = _LEADER_RE.sub(" ", title)
    t = _TRAILING_PAGE_RE.sub("", t)
    t = strip_numbering(t)
    t = re.sub(r"[\s.:;,]+$", "", t)
    t = _WS_RE.sub(" ", t).strip()
    return t or title.strip()


def fold_text(text: str) -> str:
    """Casefold, fold diacritics, drop punctuation and collapse whitespace."""
    t = text.translate(_DIACRITIC_FOLD)
    t = unicodedata.normalize("NFKD", t)
    t = "".join(ch for ch in t if not unicodedata.combining(ch))
    t = _PUNCT_RE.sub(" ", t.casefold())
    return _WS_RE.sub(" ", t).strip()


def collapse_letter_spacing(text: str) -> str:
    """Join runs of single characters ("P R E D G O V O R" -> "PREDGOVOR")."""
    words = text.split()
    if len(words) >= 4 and all(len(w) == 1 for w in words):
        return "".join(words)
    return text


def significant_words(title: str) -> list[str]:
    """Words of the cleaned title longer than two characters, in order."""
    return [w for w in _WORD_RE.findall(clean_title(title)) if len(w) > 2]


def title_pattern(title: str) -> str:
    """Regex fragment matching the title words separated by blanks."""
    words = title.split()
    return r"[ \t]+".join(re.escape(w) for w in words)


def ocr_relaxed_pattern(title: str) -> str:
    """Regex fragment tolerating common OCR substitutions.

    Letters map to small confusion classes (rn/m, l/1/i, o/0 and the
    Serbian diacritics), whitespace becomes optional and punctuation is
    optional. Intended for use with re.IGNORECASE.
    """
    out: list[str] = []
    prev_space = False
    for ch in title.casefold():
        if ch.isspace():
            if not prev_space:
                out.append(r"\s*")
            prev_space = True
            continue
        prev_space = False
        if ch in _OCR_CLASSES:
            out.append(_OCR_CLASSES[ch])
        elif ch.isalnum():
            out.append(re.escape(ch))
        else:
            out.append(re.escape(ch) + "?")
    return "".join(out)


# ---------------------------------------------------------------------------
# Line helpers
# ---------------------------------------------------------------------------

def line_bounds(text: str, pos: int) -> tuple[int, int]:
    """(start, end) of the line containing ``pos``; end excludes the newline."""
    start = text.rfind("\n", 0, pos) + 1
    end = text.find("\n", pos)
    if end == -1:
        end = len(text)
    return start, end


def first_line_start(text: str, search_from: int) -> int:
    """First line start at or after ``search_from``."""
    if search_from <= 0:
        return 0
    if search_from > len(text):
        return len(text)
    if text[search_from - 1] == "\n":
        return search_from
    nl = text.find("\n", search_from)
    return len(text) if nl == -1 else nl + 1


def iter_lines(text: str, search_from: int = 0, max_lines: int | None = None):
    """Yield (line_start, line) for whole lines starting at/after search_from."""
    pos = first_line_start(text, search_from)
    count = 0
    while pos < len(text):
        if max_lines is not None and count >= max_lines:
            return
        end = text.find("\n", pos)
        if end == -1:
            end = len(text)
        yield pos, text[pos:end]
        count += 1
        pos = end + 1


def uppercase_ratio(text: str) -> float:
    letters = [ch for ch in text if ch.isalpha()]
    if not letters:
        return 0.0
    return sum(1 for ch in letters if ch.isupper()) / len(letters)


def is_header_like_line(line: str) -> bool:
    """Short capitalized line that does not read as a sentence.

    Used to snap page-estimated section starts onto a plausible header.
    """
    s = line.strip()
    if not 5 <= len(s) <= 100:
        return False
    if s.endswith(_SENTENCE_END):
        return False
    if len(s.split()) > 12:
        return False
    body = strip_numbering(s)
    first = body[:1]
    return bool(first) and (first.isupper() or first.isdigit())


def is_title_like_line(line: str) -> bool:
    """Stricter title heuristic for synthesizing fallback section titles."""
    s = line.strip()
    if not 10 <= len(s) <= 80:
        return False
    if s.endswith(_SENTENCE_END):
        return False
    if not s[0].isupper() and not s[0].isdigit():
        return False
    # Body text starting a window usually holds several lowercase words.
    words = s.split()
    if len(words) > 10:
        return False
    return True


def repeats_title(line: str, title: str) -> bool:
    """True when ``line`` is the title or a fragment of it.

    Numbering, leaders and page numbers are ignored on both sides, so a
    running header "1. UVOD 12" repeats "UVOD" and "i memorije" is the
    tail of "Arhitektura računara i memorije".
    """
    l_fold = fold_text(clean_title(line))
    t_fold = fold_text(clean_title(title))
    if not l_fold or not t_fold:
        return False
    return l_fold in t_fold or l_fold.replace(" ", "") in t_fold.replace(" ", "")


# ---------------------------------------------------------------------------
# Similarity
# ---------------------------------------------------------------------------

def similarity(a: str, b: str) -> float:
    """SequenceMatcher ratio over folded text, in [0, 1]."""
    return difflib.SequenceMatcher(None, fold_text(a), fold_text(b)).ratio()
