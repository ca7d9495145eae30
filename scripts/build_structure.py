#!/usr/bin/env python3
"""Structure an extracted textbook into sections and retrieval chunks.

Usage:
    python3 scripts/build_structure.py --text book.txt --toc toc.json \
      --db structure.duckdb --doc-id book-1 --verbose

``--text`` holds the extracted text with pages separated by form feeds
(pdftotext output); ``--pages-json`` takes a JSON array of page strings
instead. ``--toc`` is either a JSON array of entries or a raw LLM answer
containing ``{"sections": [...]}``; without it the TOC is detected from
the leading pages.

Structured JSON output goes to stdout; log messages go to stderr.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any

from docstruct.config import StructureOptions, load_options
from docstruct.document_processor import DocumentResult, process_document
from docstruct.errors import DocstructError, TocProposerError
from docstruct.io_utils import dumps, load_json, load_pages_json, load_pages_text
from docstruct.parsing_types import TocEntry
from docstruct.raw_text import RawDocumentText
from docstruct.toc_parser import parse_llm_toc_response, validate_toc_entries

log = logging.getLogger("build_structure")


def dump_json(obj: Any) -> None:
    sys.stdout.buffer.write(dumps(obj))
    sys.stdout.buffer.write(b"\n")


def _load_text(args: argparse.Namespace) -> RawDocumentText:
    if args.pages_json is not None:
        return load_pages_json(args.pages_json, doc_id=args.doc_id or "")
    return load_pages_text(args.text, doc_id=args.doc_id or "")


def _load_toc(path: Path) -> list[TocEntry]:
    """Entries from a JSON array, or from a raw proposer answer."""
    raw = path.read_text(encoding="utf-8")
    stripped = raw.lstrip()
    if stripped.startswith("["):
        entries, diagnostics = validate_toc_entries(load_json(path))
        for diag in diagnostics:
            log.warning("TOC entry dropped: %s", diag.detail)
        return entries
    return parse_llm_toc_response(raw)


def _options(args: argparse.Namespace) -> StructureOptions:
    base = load_options(args.config) if args.config else StructureOptions()
    return base.with_overrides(
        max_section_chars=args.max_section_chars,
        max_chunk_chars=args.max_chunk_chars,
        min_section_chars=args.min_section_chars,
        fuzzy_match_confidence_threshold=args.threshold,
    )


def _summary(result: DocumentResult, *, full: bool) -> dict[str, Any]:
    if full:
        return result.to_dict()
    return {
        "doc_id": result.doc_id,
        "mode": result.mode,
        "toc_source": result.toc_source,
        "section_count": len(result.sections),
        "chunk_count": len(result.chunks),
        "sections": [
            {
                "section_id": s.section_id,
                "path": s.path,
                "title": s.title,
                "level": s.level,
                "char_start": s.char_start,
                "char_end": s.char_end,
                "chars": len(s.content),
                "part": f"{s.part_number}/{s.total_parts}",
            }
            for s in result.sections
        ],
        "unlocated": [
            entry.title for entry, loc in result.located if not loc.found
        ],
        "diagnostics": [d.to_dict() for d in result.diagnostics],
    }


def _failed(exc: Exception) -> int:
    log.error("Build failed: %s", exc)
    dump_json({"status": "failed", "error": str(exc)})
    return 1


def run(args: argparse.Namespace) -> int:
    try:
        raw = _load_text(args)
        options = _options(args)
    except (DocstructError, OSError, ValueError) as exc:
        return _failed(exc)
    toc_entries: list[TocEntry] | None = None
    if args.toc is not None:
        try:
            toc_entries = _load_toc(args.toc)
        except TocProposerError as exc:
            log.warning("Ignoring unusable TOC file %s: %s", args.toc, exc)
            toc_entries = None
        except (OSError, ValueError) as exc:
            return _failed(exc)

    try:
        result = process_document(
            raw,
            doc_id=args.doc_id or "",
            toc_entries=toc_entries,
            options=options,
            with_chunks=not args.no_chunks,
        )
    except DocstructError as exc:
        return _failed(exc)

    if args.db is not None:
        from docstruct.section_store import SectionStore

        with SectionStore(args.db) as store:
            store.replace_document(result.doc_id, result.sections, result.chunks)
        log.info("Stored %d sections for %s in %s", len(result.sections), result.doc_id, args.db)

    dump_json(_summary(result, full=args.full))
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Split extracted textbook text into sections and chunks.",
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--text", type=Path, help="Text file, pages separated by form feeds")
    source.add_argument("--pages-json", type=Path, help="JSON array of page texts")
    parser.add_argument("--toc", type=Path, default=None, help="TOC entries or raw LLM answer (JSON)")
    parser.add_argument("--config", type=Path, default=None, help="Structure options JSON")
    parser.add_argument("--doc-id", default=None, help="Document id (default: content hash)")
    parser.add_argument("--max-section-chars", type=int, default=None)
    parser.add_argument("--max-chunk-chars", type=int, default=None)
    parser.add_argument("--min-section-chars", type=int, default=None)
    parser.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Confidence threshold for partial title matches (default 0.7)",
    )
    parser.add_argument("--no-chunks", action="store_true", help="Skip chunk generation")
    parser.add_argument("--db", type=Path, default=None, help="Persist into this DuckDB file")
    parser.add_argument("--full", action="store_true", help="Emit full section and chunk content")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log progress to stderr")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    sys.exit(run(args))


if __name__ == "__main__":
    main()
