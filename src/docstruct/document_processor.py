"""Document-level structuring entry point.

The single entry point is :func:`process_document`, which takes one
document's RawDocumentText and returns a :class:`DocumentResult` holding
its sections and chunks. TOC sourcing falls back in order:

    1. entries supplied by the caller
    2. the external proposer (LLM), given the detected TOC text
    3. pattern detection over the leading pages
    4. no TOC: the builder's content fallback

A proposer failure never fails the document. Any other failure is raised
as StructureBuildFailure and nothing from the document is returned, so the
caller can mark it failed and retry from scratch.

:func:`process_documents` runs a batch and checks a CancellationToken
between documents only; a document that has started always finishes whole.
"""
from __future__ import annotations

import hashlib
import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

from docstruct.chunker import chunk_sections
from docstruct.config import StructureOptions
from docstruct.errors import (
    BuildCancelled,
    Diagnostic,
    StructureBuildFailure,
    TocProposerError,
)
from docstruct.parsing_types import Chunk, LocatedTitle, Section, TocEntry
from docstruct.raw_text import RawDocumentText
from docstruct.structure_builder import BuildMode, build_structure
from docstruct.toc_parser import (
    TocRegion,
    detect_toc,
    find_toc_region,
    parse_llm_toc_response,
    validate_toc_entries,
)

logger = logging.getLogger(__name__)

TocSource = Literal["supplied", "proposer", "pattern", "none"]

# TOC text handed to the proposer when no TOC region was detected.
MAX_PROPOSER_CHARS = 20000


class TocProposer(Protocol):
    """External TOC analyzer (typically an LLM call).

    Receives the TOC page text and returns either entries (TocEntry values
    or dicts) or the raw JSON answer as a string or mapping.
    """

    def __call__(
        self, toc_text: str,
    ) -> Sequence[TocEntry | Mapping[str, Any]] | Mapping[str, Any] | str: ...


class CancellationToken:
    """Cooperative cancellation flag passed to batch processing."""

    __slots__ = ("_cancelled", "reason")

    def __init__(self) -> None:
        self._cancelled = False
        self.reason = ""

    def cancel(self, reason: str = "") -> None:
        self._cancelled = True
        self.reason = reason

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise BuildCancelled(self.reason or "processing cancelled")


def compute_doc_id(text: str) -> str:
    """Content-addressed doc_id: SHA-256 of the text, 16 hex chars."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:16]


@dataclass(frozen=True, slots=True)
class DocumentResult:
    """Structured output for one document."""

    doc_id: str
    sections: tuple[Section, ...]
    chunks: tuple[Chunk, ...]
    mode: BuildMode
    toc_source: TocSource
    located: tuple[tuple[TocEntry, LocatedTitle], ...] = ()
    diagnostics: tuple[Diagnostic, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "doc_id": self.doc_id,
            "mode": self.mode,
            "toc_source": self.toc_source,
            "sections": [s.to_dict() for s in self.sections],
            "chunks": [c.to_dict() for c in self.chunks],
            "located": [
                {
                    "title": entry.title,
                    "found": loc.found,
                    "char_position": loc.char_position,
                    "strategy": loc.strategy,
                    "confidence": loc.confidence,
                }
                for entry, loc in self.located
            ],
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }


@dataclass(slots=True)
class BatchOutcome:
    """Results of process_documents; failures map doc_id to the reason."""

    results: list[DocumentResult] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)
    cancelled: bool = False


# ---------------------------------------------------------------------------
# TOC sourcing
# ---------------------------------------------------------------------------

def _entries_from_answer(
    answer: Sequence[TocEntry | Mapping[str, Any]] | Mapping[str, Any] | str,
) -> tuple[list[TocEntry], list[Diagnostic]]:
    if isinstance(answer, (str, bytes, Mapping)):
        return parse_llm_toc_response(answer), []
    return validate_toc_entries(answer)


def propose_toc(
    raw: RawDocumentText,
    proposer: TocProposer | None,
    options: StructureOptions,
) -> tuple[list[TocEntry], TocRegion | None, TocSource, list[Diagnostic]]:
    """Obtain TOC entries: proposer first, then pattern detection."""
    pattern_entries, region = detect_toc(
        raw, options.toc_scan_pages,
        default_chars_per_page=options.default_chars_per_page,
    )
    diagnostics: list[Diagnostic] = []

    if proposer is not None:
        toc_text = region.text if region else raw.leading_pages_text(options.toc_scan_pages)
        try:
            answer = proposer(toc_text[:MAX_PROPOSER_CHARS])
            entries, diagnostics = _entries_from_answer(answer)
        except TocProposerError as exc:
            logger.warning("TOC proposer answer unusable: %s", exc)
            entries = []
        except Exception as exc:  # external collaborator boundary
            logger.warning("TOC proposer failed: %s: %s", type(exc).__name__, exc)
            entries = []
        if entries:
            return entries, region, "proposer", diagnostics

    if pattern_entries:
        logger.info("Using pattern TOC: %d entries", len(pattern_entries))
        return pattern_entries, region, "pattern", diagnostics
    return [], region, "none", diagnostics


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def process_document(
    raw: RawDocumentText,
    *,
    doc_id: str = "",
    proposer: TocProposer | None = None,
    toc_entries: Iterable[TocEntry | Mapping[str, Any]] | None = None,
    options: StructureOptions | None = None,
    with_chunks: bool = True,
) -> DocumentResult:
    """Structure one document.

    Args:
        raw: Extracted document text with its page index.
        doc_id: Identifier; defaults to raw.doc_id, else a content hash.
        proposer: External TOC proposer, consulted when toc_entries is None.
        toc_entries: Entries supplied directly by the caller.
        options: Size bounds and thresholds.
        with_chunks: Also produce retrieval chunks.

    Returns:
        DocumentResult for the document.

    Raises:
        StructureBuildFailure: The build failed; nothing is returned.
    """
    options = options or StructureOptions()
    doc_id = doc_id or raw.doc_id or compute_doc_id(raw.text)
    try:
        if toc_entries is not None:
            entries = list(toc_entries)
            region = find_toc_region(
                raw, options.toc_scan_pages,
                default_chars_per_page=options.default_chars_per_page,
            )
            source: TocSource = "supplied" if entries else "none"
            pre_diags: list[Diagnostic] = []
        else:
            entries, region, source, pre_diags = propose_toc(raw, proposer, options)

        search_start = region.end if region is not None else 0
        built = build_structure(raw, entries, options, search_start=search_start)
        chunks = chunk_sections(built.sections, options.max_chunk_chars) if with_chunks else []
    except StructureBuildFailure as exc:
        exc.doc_id = exc.doc_id or doc_id
        raise
    except Exception as exc:
        raise StructureBuildFailure(
            f"structure build failed for {doc_id}: {type(exc).__name__}: {exc}",
            doc_id=doc_id,
        ) from exc

    logger.info(
        "Document %s: %d sections, %d chunks (mode=%s, toc=%s)",
        doc_id, len(built.sections), len(chunks), built.mode, source,
    )
    return DocumentResult(
        doc_id=doc_id,
        sections=built.sections,
        chunks=tuple(chunks),
        mode=built.mode,
        toc_source=source,
        located=built.located,
        diagnostics=tuple(pre_diags) + built.diagnostics,
    )


def process_documents(
    documents: Iterable[tuple[str, RawDocumentText]],
    *,
    proposer: TocProposer | None = None,
    options: StructureOptions | None = None,
    token: CancellationToken | None = None,
    with_chunks: bool = True,
) -> BatchOutcome:
    """Structure a batch of (doc_id, text) pairs, sequentially.

    The token is checked before each document. Once cancelled, remaining
    documents are skipped and the outcome is flagged; completed results
    are kept. A failed document is recorded and the batch continues.
    """
    outcome = BatchOutcome()
    for doc_id, raw in documents:
        if token is not None:
            try:
                token.raise_if_cancelled()
            except BuildCancelled as exc:
                logger.warning("Batch cancelled before %s: %s", doc_id, exc)
                outcome.cancelled = True
                break
        try:
            result = process_document(
                raw,
                doc_id=doc_id,
                proposer=proposer,
                options=options,
                with_chunks=with_chunks,
            )
        except StructureBuildFailure as exc:
            logger.error("Document %s failed: %s", doc_id, exc)
            outcome.failures[doc_id] = str(exc)
            continue
        outcome.results.append(result)
    return outcome
