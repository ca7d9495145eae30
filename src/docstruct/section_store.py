"""DuckDB persistence for sections and chunks.

Writes are per document and idempotent: replace_document deletes the
document's existing rows and inserts the new ones inside one transaction,
so a rebuild overwrites and a failed write leaves the previous state.
"""
from __future__ import annotations

import importlib
from pathlib import Path
from typing import Any

from docstruct.parsing_types import Chunk, Section

_duckdb_mod = importlib.import_module("duckdb")

SCHEMA_VERSION = "0.2.0"


class SchemaVersionError(RuntimeError):
    """Raised when an existing store was written by another schema version."""


_SCHEMA_DDL = """\
CREATE TABLE IF NOT EXISTS _schema_version (
    table_name VARCHAR PRIMARY KEY,
    version VARCHAR NOT NULL,
    created_at TIMESTAMP DEFAULT current_timestamp
);

CREATE TABLE IF NOT EXISTS sections (
    doc_id VARCHAR NOT NULL,
    section_id VARCHAR NOT NULL,
    ordinal INTEGER NOT NULL,
    title VARCHAR,
    clean_title VARCHAR,
    level INTEGER,
    parent_section_id VARCHAR DEFAULT '',
    semantic_type VARCHAR,
    page_start INTEGER,
    page_end INTEGER,
    char_start INTEGER,
    char_end INTEGER,
    body_start INTEGER,
    content VARCHAR,
    is_main_part BOOLEAN DEFAULT true,
    part_number INTEGER DEFAULT 1,
    total_parts INTEGER DEFAULT 1,
    path VARCHAR DEFAULT '',
    base_section_id VARCHAR DEFAULT '',
    hard_split BOOLEAN DEFAULT false
);

CREATE TABLE IF NOT EXISTS chunks (
    doc_id VARCHAR NOT NULL,
    chunk_id VARCHAR NOT NULL,
    section_id VARCHAR NOT NULL,
    paragraph_index INTEGER NOT NULL,
    char_start INTEGER,
    char_end INTEGER,
    content VARCHAR,
    title VARCHAR DEFAULT '',
    hard_split BOOLEAN DEFAULT false
)
"""

_SECTION_COLS = (
    "section_id", "title", "clean_title", "level", "parent_section_id",
    "semantic_type", "page_start", "page_end", "char_start", "char_end",
    "body_start", "content", "is_main_part", "part_number", "total_parts",
    "path", "base_section_id", "hard_split",
)
_CHUNK_COLS = (
    "chunk_id", "section_id", "paragraph_index", "char_start", "char_end",
    "content", "title", "hard_split",
)


class SectionStore:
    """Read/write store of structured documents.

    Usage::

        with SectionStore(path) as store:
            store.replace_document(doc_id, sections, chunks)
    """

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = str(db_path)
        self._conn: Any = _duckdb_mod.connect(self._db_path)
        try:
            self._ensure_schema()
        except Exception:
            self._conn.close()
            raise

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> SectionStore:
        return self

    def __exit__(self, *_args: object) -> None:
        self.close()

    def _ensure_schema(self) -> None:
        for stmt in _SCHEMA_DDL.split(";"):
            stmt = stmt.strip()
            if stmt:
                self._conn.execute(stmt)
        row = self._conn.execute(
            "SELECT version FROM _schema_version WHERE table_name = 'docstruct'"
        ).fetchone()
        if row is None:
            self._conn.execute(
                "INSERT INTO _schema_version (table_name, version) VALUES ('docstruct', ?)",
                [SCHEMA_VERSION],
            )
        elif str(row[0]) != SCHEMA_VERSION:
            raise SchemaVersionError(
                f"{self._db_path}: schema {row[0]} != expected {SCHEMA_VERSION}"
            )

    @property
    def schema_version(self) -> str:
        row = self._conn.execute(
            "SELECT version FROM _schema_version WHERE table_name = 'docstruct'"
        ).fetchone()
        return str(row[0]) if row else ""

    # -- writes -------------------------------------------------------------

    def replace_document(
        self,
        doc_id: str,
        sections: list[Section] | tuple[Section, ...],
        chunks: list[Chunk] | tuple[Chunk, ...] = (),
    ) -> None:
        """Replace all rows of ``doc_id`` in one transaction."""
        section_rows = [
            (doc_id, s.section_id, i) + tuple(getattr(s, c) for c in _SECTION_COLS[1:])
            for i, s in enumerate(sections)
        ]
        chunk_rows = [
            (doc_id,) + tuple(getattr(c, col) for col in _CHUNK_COLS)
            for c in chunks
        ]
        self._conn.execute("BEGIN")
        try:
            self._conn.execute("DELETE FROM chunks WHERE doc_id = ?", [doc_id])
            self._conn.execute("DELETE FROM sections WHERE doc_id = ?", [doc_id])
            if section_rows:
                placeholders = ", ".join("?" for _ in range(len(_SECTION_COLS) + 2))
                self._conn.executemany(
                    f"INSERT INTO sections (doc_id, section_id, ordinal, "
                    f"{', '.join(_SECTION_COLS[1:])}) VALUES ({placeholders})",
                    section_rows,
                )
            if chunk_rows:
                placeholders = ", ".join("?" for _ in range(len(_CHUNK_COLS) + 1))
                self._conn.executemany(
                    f"INSERT INTO chunks (doc_id, {', '.join(_CHUNK_COLS)}) "
                    f"VALUES ({placeholders})",
                    chunk_rows,
                )
            self._conn.execute("COMMIT")
        except Exception:
            self._conn.execute("ROLLBACK")
            raise

    def delete_document(self, doc_id: str) -> None:
        self.replace_document(doc_id, [], [])

    # -- reads --------------------------------------------------------------

    def doc_ids(self) -> list[str]:
        rows = self._conn.execute(
            "SELECT DISTINCT doc_id FROM sections ORDER BY doc_id"
        ).fetchall()
        return [str(r[0]) for r in rows]

    def load_sections(self, doc_id: str) -> list[Section]:
        """Sections of ``doc_id`` in document order."""
        rows = self._conn.execute(
            f"SELECT {', '.join(_SECTION_COLS)} FROM sections "
            "WHERE doc_id = ? ORDER BY ordinal",
            [doc_id],
        ).fetchall()
        return [Section(**dict(zip(_SECTION_COLS, row))) for row in rows]

    def load_chunks(self, doc_id: str) -> list[Chunk]:
        """Chunks of ``doc_id`` ordered by section position, then index."""
        cols = ", ".join(f"c.{col}" for col in _CHUNK_COLS)
        rows = self._conn.execute(
            f"SELECT {cols} FROM chunks c "
            "JOIN sections s ON s.doc_id = c.doc_id AND s.section_id = c.section_id "
            "WHERE c.doc_id = ? ORDER BY s.ordinal, c.paragraph_index",
            [doc_id],
        ).fetchall()
        return [Chunk(**dict(zip(_CHUNK_COLS, row))) for row in rows]

    def section_count(self, doc_id: str) -> int:
        row = self._conn.execute(
            "SELECT count(*) FROM sections WHERE doc_id = ?", [doc_id],
        ).fetchone()
        return int(row[0]) if row else 0
