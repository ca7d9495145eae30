"""Error taxonomy for the structuring pipeline.

Hard errors are exceptions and propagate to the ingestion caller. Soft
errors are Diagnostic records: the component that detects one logs it,
recovers locally and hands the record back on the build result. They are
never raised.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

DiagnosticKind = Literal[
    "title_not_found",
    "ambiguous_match",
    "oversized_content",
    "empty_content",
    "invalid_toc_entry",
]


class DocstructError(Exception):
    """Base class for hard pipeline errors."""


class StructureBuildFailure(DocstructError):
    """The document-level build failed; no partial structure is valid."""

    def __init__(self, message: str, *, doc_id: str = "") -> None:
        super().__init__(message)
        self.doc_id = doc_id


class TocProposerError(DocstructError):
    """The external TOC proposer failed or returned an unusable answer."""


class BuildCancelled(DocstructError):
    """Processing was cancelled between documents."""


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """Soft error record. Reflected in logs and on BuildResult only."""
    kind: DiagnosticKind
    entry_title: str = ""
    detail: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "kind": self.kind,
            "entry_title": self.entry_title,
            "detail": self.detail,
        }
