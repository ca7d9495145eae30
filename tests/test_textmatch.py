"""Tests for docstruct.textmatch module."""
import re

from docstruct.textmatch import (
    clean_title,
    collapse_letter_spacing,
    first_line_start,
    fold_text,
    is_header_like_line,
    is_title_like_line,
    iter_lines,
    line_bounds,
    ocr_relaxed_pattern,
    repeats_title,
    significant_words,
    similarity,
    strip_numbering,
    title_pattern,
)


class TestStripNumbering:
    def test_arabic(self) -> None:
        assert strip_numbering("1.2. Pojam") == "Pojam"

    def test_roman(self) -> None:
        assert strip_numbering("IV. Uvod") == "Uvod"

    def test_letter(self) -> None:
        assert strip_numbering("a) Primer") == "Primer"

    def test_nothing_left_keeps_input(self) -> None:
        assert strip_numbering("12") == "12"

    def test_plain_title_unchanged(self) -> None:
        assert strip_numbering("Osnovni pojmovi") == "Osnovni pojmovi"


class TestCleanTitle:
    def test_leader_and_page(self) -> None:
        assert clean_title("1.1. Pojam ........ 15") == "Pojam"

    def test_trailing_colon(self) -> None:
        assert clean_title("Zaključak:") == "Zaključak"

    def test_underscore_leader(self) -> None:
        assert clean_title("1. HARDVER ______ 15") == "HARDVER"


class TestFolding:
    def test_fold_diacritics_and_case(self) -> None:
        assert fold_text("Računarski SISTEMI!") == "racunarski sistemi"

    def test_fold_dj(self) -> None:
        assert fold_text("Đak") == "dak"

    def test_collapse_letter_spacing(self) -> None:
        assert collapse_letter_spacing("P R E D G O V O R") == "PREDGOVOR"
        assert collapse_letter_spacing("Uvod u sistem") == "Uvod u sistem"

    def test_significant_words(self) -> None:
        assert significant_words("1. Osnovi računarskih i mreža") == [
            "Osnovi", "računarskih", "mreža",
        ]


class TestPatterns:
    def test_title_pattern_tolerates_blanks(self) -> None:
        assert re.search(title_pattern("Osnovni pojmovi"), "Osnovni \t pojmovi")

    def test_ocr_relaxed_rn_for_m(self) -> None:
        assert re.search(ocr_relaxed_pattern("modem"), "rnodern", re.IGNORECASE)

    def test_ocr_relaxed_diacritics(self) -> None:
        assert re.search(ocr_relaxed_pattern("mreže"), "MREZE", re.IGNORECASE)


class TestLineHelpers:
    def test_line_bounds(self) -> None:
        assert line_bounds("ab\ncd\nef", 4) == (3, 5)
        assert line_bounds("ab\ncd\nef", 7) == (6, 8)

    def test_first_line_start(self) -> None:
        assert first_line_start("ab\ncd", 0) == 0
        assert first_line_start("ab\ncd", 1) == 3
        assert first_line_start("ab\ncd", 3) == 3
        assert first_line_start("ab\ncd", 10) == 5

    def test_iter_lines(self) -> None:
        assert list(iter_lines("a\nb\nc", 0, max_lines=2)) == [(0, "a"), (2, "b")]
        assert list(iter_lines("a\nb\nc", 1)) == [(2, "b"), (4, "c")]


class TestHeaderHeuristics:
    def test_header_like(self) -> None:
        assert is_header_like_line("UVOD U PROGRAMIRANJE")
        assert is_header_like_line("2.1. Arhitektura")

    def test_sentence_is_not_header(self) -> None:
        assert not is_header_like_line("Ovo je rečenica.")

    def test_too_short(self) -> None:
        assert not is_header_like_line("abc")

    def test_lowercase_start(self) -> None:
        assert not is_header_like_line("mala slova naslova")

    def test_title_like(self) -> None:
        assert is_title_like_line("Osnovni pojmovi mreža")
        assert not is_title_like_line("kratko")

    def test_repeats_title(self) -> None:
        assert repeats_title("1. UVOD 12", "UVOD")
        assert repeats_title("i memorije", "Arhitektura računara i memorije")
        assert repeats_title("RACUNARSKISISTEMI", "Računarski sistemi")

    def test_body_line_does_not_repeat_title(self) -> None:
        assert not repeats_title("Uvod u temu je ovde.", "UVOD")
        assert not repeats_title("Mreže", "Računarski sistemi")


class TestSimilarity:
    def test_similarity(self) -> None:
        assert similarity("Uvod", "UVOD") == 1.0
        assert similarity("", "") == 1.0
        assert 0.0 < similarity("Uvod", "Uvodd") < 1.0

    def test_similarity_folds_diacritics(self) -> None:
        assert similarity("Računarske mreže", "RACUNARSKE MREZE") == 1.0

    def test_similarity_orders_by_closeness(self) -> None:
        close = similarity("Osnove racunara", "Osnove racunera")
        far = similarity("Osnove racunara", "Kvantna fizika")
        assert close > 0.9
        assert far < close
        assert similarity("abc", "") == 0.0
