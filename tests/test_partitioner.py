"""Tests for docstruct.partitioner module."""
from __future__ import annotations

import pytest

from docstruct.partitioner import (
    LABEL_TITLE_CHARS,
    hard_split,
    label_reserve,
    part_label,
    partition,
    safe_windows,
    split_paragraphs,
    split_sentences,
    strip_label,
)


def _paragraphs(n: int, words: int = 40) -> str:
    return "\n\n".join(
        f"Paragraf {i}. " + "reč " * words + "kraj." for i in range(n)
    )


# ── Labels ──────────────────────────────────────────────────────────


class TestLabels:
    def test_titled_label(self) -> None:
        assert part_label("Uvod", 2, 3) == "[Uvod - part 2/3]\n"

    def test_untitled_label(self) -> None:
        assert part_label("", 1, 2) == "[part 1/2]\n"

    def test_long_title_truncated(self) -> None:
        label = part_label("x" * 100, 1, 2)
        assert label == "[" + "x" * LABEL_TITLE_CHARS + " - part 1/2]\n"

    def test_brackets_removed_from_title(self) -> None:
        assert part_label("Uvod [nacrt]", 1, 2) == "[Uvod  nacrt - part 1/2]\n"

    def test_reserve_covers_widest_label(self) -> None:
        assert label_reserve("Uvod") >= len(part_label("Uvod", 120, 120))

    def test_strip_label(self) -> None:
        assert strip_label(part_label("Uvod", 1, 2) + "tekst") == "tekst"
        assert strip_label(part_label("", 3, 4) + "tekst") == "tekst"
        assert strip_label("[napomena] tekst") == "[napomena] tekst"


# ── Splitters ───────────────────────────────────────────────────────


class TestSplitters:
    def test_paragraphs_keep_separators(self) -> None:
        assert split_paragraphs("a\n\nb\n\nc") == ["a\n\n", "b\n\n", "c"]

    def test_sentences_keep_separators(self) -> None:
        assert split_sentences("Prva. Druga! Treca?") == ["Prva. ", "Druga! ", "Treca?"]

    def test_hard_split(self) -> None:
        assert hard_split("abcdefg", 3) == ["abc", "def", "g"]

    def test_empty_text(self) -> None:
        assert split_paragraphs("") == [""]
        assert hard_split("", 3) == [""]


# ── partition ───────────────────────────────────────────────────────


class TestPartition:
    def test_fits_single_part(self) -> None:
        parts = partition("Kratak tekst.", 100, "Uvod")
        assert len(parts) == 1
        assert parts[0].index == 1
        assert parts[0].total == 1
        assert parts[0].content == "Kratak tekst."
        assert not parts[0].hard_split

    def test_lossless_on_paragraphs(self) -> None:
        text = _paragraphs(30)
        parts = partition(text, 1000, "Naslov")
        assert len(parts) > 1
        assert "".join(p.content for p in parts) == text
        assert all(len(p.labeled) <= 1000 for p in parts)
        assert [p.index for p in parts] == list(range(1, len(parts) + 1))
        assert all(p.total == len(parts) for p in parts)
        assert not any(p.hard_split for p in parts)

    def test_paragraph_boundaries_preferred(self) -> None:
        parts = partition(_paragraphs(30), 1000, "Naslov")
        for part in parts[:-1]:
            assert part.content.endswith("\n\n")

    def test_sentence_fallback(self) -> None:
        text = " ".join(f"Recenica broj {i} ima nekoliko reci." for i in range(100))
        parts = partition(text, 500)
        assert "".join(p.content for p in parts) == text
        assert not any(p.hard_split for p in parts)
        for part in parts[:-1]:
            assert part.content.rstrip().endswith(".")

    def test_hard_split_flagged(self) -> None:
        text = "a" * 5000
        parts = partition(text, 1000)
        assert "".join(p.content for p in parts) == text
        assert all(p.hard_split for p in parts)
        assert all(len(p.labeled) <= 1000 for p in parts)

    def test_labels_are_not_in_content(self) -> None:
        parts = partition(_paragraphs(30), 1000, "Naslov")
        assert parts[1].label == f"[Naslov - part 2/{len(parts)}]\n"
        assert not parts[1].content.startswith("[")

    def test_max_chars_must_exceed_reserve(self) -> None:
        with pytest.raises(ValueError, match="reserve"):
            partition("x" * 50, 10, "Naslov")

    def test_deterministic(self) -> None:
        text = _paragraphs(30)
        assert partition(text, 1000, "Naslov") == partition(text, 1000, "Naslov")


class TestSafeWindows:
    def test_tiles_exactly(self) -> None:
        text = _paragraphs(20)
        windows = safe_windows(text, 700)
        assert "".join(windows) == text
        assert all(len(w) <= 700 for w in windows)

    def test_empty(self) -> None:
        assert safe_windows("", 100) == []

    def test_invalid_size(self) -> None:
        with pytest.raises(ValueError):
            safe_windows("abc", 0)
