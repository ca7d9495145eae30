"""I/O utilities for JSON and page-text inputs.

orjson-backed JSON helpers plus the loaders the CLI uses to turn extracted
text files into RawDocumentText.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any

import orjson

from docstruct.raw_text import RawDocumentText

# Form feed separates pages in pdftotext-style output.
PAGE_BREAK = "\f"


def dumps(obj: Any, *, pretty: bool = True) -> bytes:
    """Serialize with sorted keys; dataclasses are handled by orjson."""
    opts = orjson.OPT_SORT_KEYS
    if pretty:
        opts |= orjson.OPT_INDENT_2
    return orjson.dumps(obj, option=opts)


def load_json(path: Path) -> Any:
    """Load JSON from a file."""
    return orjson.loads(path.read_bytes())


def load_pages_text(path: Path, *, doc_id: str = "", clean: bool = True) -> RawDocumentText:
    """Load a text file whose pages are separated by form feeds."""
    text = path.read_text(encoding="utf-8")
    pages = text.split(PAGE_BREAK)
    return RawDocumentText.from_pages(pages, clean=clean, doc_id=doc_id)


def load_pages_json(path: Path, *, doc_id: str = "", clean: bool = True) -> RawDocumentText:
    """Load a JSON array of page strings, or of {"pageNumber", "text"} objects."""
    data = load_json(path)
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a JSON array of pages")
    if data and isinstance(data[0], dict):
        ordered = sorted(data, key=lambda p: int(p.get("pageNumber", 0)))
        first_page = int(ordered[0].get("pageNumber", 1)) or 1
        texts = [str(p.get("text", "")) for p in ordered]
        return RawDocumentText.from_pages(
            texts, first_page=first_page, clean=clean, doc_id=doc_id,
        )
    return RawDocumentText.from_pages(
        [str(p) for p in data], clean=clean, doc_id=doc_id,
    )
