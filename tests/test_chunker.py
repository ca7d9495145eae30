"""Tests for docstruct.chunker module."""
from __future__ import annotations

from docstruct.chunker import chunk, chunk_sections
from docstruct.parsing_types import Section, compute_chunk_id


def _section(
    content: str, *, sid: str = "s1", start: int = 100, body_start: int = -1,
) -> Section:
    return Section(
        section_id=sid, title="1. HARDVER", clean_title="HARDVER", level=1,
        parent_section_id="", semantic_type="chapter", page_start=3,
        page_end=5, char_start=start, char_end=start + len(content) + 11,
        content=content, path="1", body_start=body_start,
    )


def _body(n: int) -> str:
    return "\n\n".join(
        f"Paragraf {i}. Procesor izvrsava instrukcije a memorija cuva podatke." for i in range(n)
    )


class TestChunk:
    def test_fits_single_chunk(self) -> None:
        section = _section("Kratak sadrzaj poglavlja.")
        chunks = chunk(section, 3000)
        assert len(chunks) == 1
        only = chunks[0]
        assert only.content == section.content
        assert only.paragraph_index == 0
        assert only.char_start == 100
        assert only.char_end == 100 + len(section.content)
        assert only.title == "1. HARDVER"
        assert only.chunk_id == compute_chunk_id("s1", 0, section.content)

    def test_concatenation_is_lossless(self) -> None:
        section = _section(_body(40))
        chunks = chunk(section, 500)
        assert len(chunks) > 1
        assert "".join(c.content for c in chunks) == section.content
        assert all(len(c.content) <= 500 for c in chunks)
        assert [c.paragraph_index for c in chunks] == list(range(len(chunks)))

    def test_offsets_are_contiguous(self) -> None:
        chunks = chunk(_section(_body(40)), 500)
        assert chunks[0].char_start == 100
        for prev, cur in zip(chunks, chunks[1:]):
            assert prev.char_end == cur.char_start
        assert all(c.section_id == "s1" for c in chunks)

    def test_offsets_start_at_body(self) -> None:
        section = _section(_body(40), body_start=111)
        chunks = chunk(section, 500)
        assert chunks[0].char_start == 111
        assert chunks[-1].char_end == 111 + len(section.content)

    def test_deterministic_ids(self) -> None:
        section = _section(_body(40))
        first = [c.chunk_id for c in chunk(section, 500)]
        assert first == [c.chunk_id for c in chunk(section, 500)]
        assert len(set(first)) == len(first)

    def test_hard_split_flag_propagates(self) -> None:
        chunks = chunk(_section("x" * 2000), 500)
        assert all(c.hard_split for c in chunks)
        assert "".join(c.content for c in chunks) == "x" * 2000


class TestChunkSections:
    def test_sections_in_order(self) -> None:
        first = _section(_body(40), sid="a", start=0)
        second = _section("Drugo poglavlje je kratko.", sid="b", start=first.char_end)
        chunks = chunk_sections([first, second], 500)
        assert chunks[-1].section_id == "b"
        assert chunks[-1].paragraph_index == 0
        assert [c.section_id for c in chunks[:-1]] == ["a"] * (len(chunks) - 1)

    def test_empty(self) -> None:
        assert chunk_sections([], 500) == []
