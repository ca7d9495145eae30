"""Outline numbering labels ("1.", "1.2.3.", "IV.", "a)").

Labels are parsed with a small Lark grammar so the TOC parser can derive
outline depth from a title's numbering. Anything the grammar rejects
(years such as "2020", free text) is not numbering.
"""
from __future__ import annotations

import importlib
from dataclasses import dataclass
from typing import Any, Literal

from docstruct.textmatch import NUMBERING_PREFIX_RE

_lark_mod = importlib.import_module("lark")
_lark_exc = importlib.import_module("lark.exceptions")

_LarkClass: Any = _lark_mod.Lark
_TransformerBase: Any = _lark_mod.Transformer
_v_args_decorator: Any = _lark_mod.v_args
_LarkError: type[Exception] = _lark_exc.LarkError

NumberingStyle = Literal["arabic", "roman", "alpha"]

NUMBERING_GRAMMAR = r"""
    start: label
    label: ARABIC   -> arabic
         | ROMAN    -> roman
         | ALPHA    -> alpha
    ARABIC: /\d{1,3}(?:\.\d{1,3})*\.?/
    ROMAN: /[IVXLC]+\./
    ALPHA: /[A-Za-z]\)/
"""

_ROMAN_VALUES: dict[str, int] = {"I": 1, "V": 5, "X": 10, "L": 50, "C": 100}


def roman_to_int(s: str) -> int:
    """Value of a Roman numeral (subtractive notation)."""
    total = 0
    prev = 0
    for ch in reversed(s.upper()):
        value = _ROMAN_VALUES[ch]
        if value < prev:
            total -= value
        else:
            total += value
            prev = value
    return total


@dataclass(frozen=True, slots=True)
class NumberingLabel:
    """Parsed numbering label."""

    raw: str
    style: NumberingStyle
    parts: tuple[int, ...]

    @property
    def depth(self) -> int:
        """Outline depth: segments for arabic, 1 for roman, 2 for letters."""
        if self.style == "arabic":
            return len(self.parts)
        if self.style == "roman":
            return 1
        return 2


@_v_args_decorator(inline=True)
class NumberingTransformer(_TransformerBase):
    """Transform the Lark parse tree into a NumberingLabel."""

    def start(self, label: NumberingLabel) -> NumberingLabel:
        return label

    def arabic(self, token: Any) -> NumberingLabel:
        raw = str(token)
        parts = tuple(int(p) for p in raw.rstrip(".").split("."))
        return NumberingLabel(raw=raw, style="arabic", parts=parts)

    def roman(self, token: Any) -> NumberingLabel:
        raw = str(token)
        return NumberingLabel(raw=raw, style="roman", parts=(roman_to_int(raw[:-1]),))

    def alpha(self, token: Any) -> NumberingLabel:
        raw = str(token)
        return NumberingLabel(
            raw=raw, style="alpha", parts=(ord(raw[0].lower()) - ord("a") + 1,),
        )


_numbering_parser: Any = None
_numbering_transformer = NumberingTransformer()


def _get_parser() -> Any:
    """Return the singleton Lark parser, creating it on first call."""
    global _numbering_parser
    if _numbering_parser is None:
        _numbering_parser = _LarkClass(NUMBERING_GRAMMAR, parser="lalr")
    return _numbering_parser


def parse_numbering(label: str) -> NumberingLabel | None:
    """Parse a bare label ("1.2.", "IV.", "b)"); None if it is not one."""
    cleaned = label.strip()
    if not cleaned:
        return None
    try:
        tree: Any = _get_parser().parse(cleaned)
    except _LarkError:
        return None
    result: Any = _numbering_transformer.transform(tree)
    return result if isinstance(result, NumberingLabel) else None


def title_numbering(title: str) -> NumberingLabel | None:
    """Numbering label leading ``title``, if any ("1.1. Pojam" -> 1.1)."""
    m = NUMBERING_PREFIX_RE.match(title)
    if m is None:
        return None
    return parse_numbering(m.group(0))
