"""Tests for docstruct.section_store module."""
from __future__ import annotations

from pathlib import Path

import duckdb
import pytest

from docstruct.chunker import chunk_sections
from docstruct.parsing_types import Section
from docstruct.section_store import SCHEMA_VERSION, SchemaVersionError, SectionStore


def _section(sid: str, start: int, content: str, **extra: object) -> Section:
    extra.setdefault("parent_section_id", "")
    return Section(
        section_id=sid, title=f"Naslov {sid}", clean_title=f"Naslov {sid}",
        level=1, semantic_type="chapter", page_start=1,
        page_end=2, char_start=start, char_end=start + len(content) + 10,
        content=content, path="1", **extra,  # type: ignore[arg-type]
    )


def _sections() -> list[Section]:
    main = _section(
        "s1", 0, "Prvi deo poglavlja o procesoru.", total_parts=2, body_start=10,
    )
    part = _section(
        "s1_part2", main.char_end, "Drugi deo poglavlja o memoriji.",
        parent_section_id="s1", is_main_part=False, part_number=2,
        total_parts=2, base_section_id="s1", hard_split=True,
    )
    return [main, part, _section("s2", part.char_end, "Mreze povezuju racunare.")]


class TestSectionStore:
    def test_round_trip(self, tmp_path: Path) -> None:
        sections = _sections()
        chunks = chunk_sections(sections, 3000)
        with SectionStore(tmp_path / "s.duckdb") as store:
            store.replace_document("doc-1", sections, chunks)
            assert store.load_sections("doc-1") == sections
            assert store.load_sections("doc-1")[0].body_start == 10
            assert store.load_chunks("doc-1") == chunks
            assert store.section_count("doc-1") == 3

    def test_replace_is_idempotent(self, tmp_path: Path) -> None:
        sections = _sections()
        with SectionStore(tmp_path / "s.duckdb") as store:
            store.replace_document("doc-1", sections)
            store.replace_document("doc-1", sections)
            assert store.section_count("doc-1") == 3
            store.replace_document("doc-1", sections[:1])
            assert [s.section_id for s in store.load_sections("doc-1")] == ["s1"]

    def test_documents_are_isolated(self, tmp_path: Path) -> None:
        sections = _sections()
        with SectionStore(tmp_path / "s.duckdb") as store:
            store.replace_document("doc-b", sections)
            store.replace_document("doc-a", sections[:1])
            assert store.doc_ids() == ["doc-a", "doc-b"]
            store.delete_document("doc-b")
            assert store.doc_ids() == ["doc-a"]
            assert store.load_sections("doc-b") == []
            assert store.load_chunks("doc-b") == []

    def test_persists_across_connections(self, tmp_path: Path) -> None:
        db = tmp_path / "s.duckdb"
        with SectionStore(db) as store:
            store.replace_document("doc-1", _sections())
        with SectionStore(db) as store:
            assert store.schema_version == SCHEMA_VERSION
            assert store.section_count("doc-1") == 3

    def test_schema_version_mismatch(self, tmp_path: Path) -> None:
        db = tmp_path / "s.duckdb"
        SectionStore(db).close()
        conn = duckdb.connect(str(db))
        conn.execute("UPDATE _schema_version SET version = '0.0.1' WHERE table_name = 'docstruct'")
        conn.close()
        with pytest.raises(SchemaVersionError, match="0.0.1"):
            SectionStore(db)
