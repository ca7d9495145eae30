"""Retrieval chunks from finalized sections.

Chunks are sized for embedding (a tighter bound than section parts) and
reconstruct their section's content exactly when concatenated in
paragraph_index order.
"""
from __future__ import annotations

from collections.abc import Iterable

from docstruct.parsing_types import Chunk, Section, compute_chunk_id
from docstruct.partitioner import partition


def chunk(section: Section, max_chars: int) -> list[Chunk]:
    """Split one section into ordered chunks of at most ``max_chars``.

    Args:
        section: Finalized section.
        max_chars: Chunk size bound.

    Returns:
        Chunks with paragraph_index from 0 and global offsets accumulated
        from the section's body_start.
    """
    content = section.content
    if len(content) <= max_chars:
        pieces: list[tuple[str, bool]] = [(content, False)]
    else:
        pieces = [(p.content, p.hard_split) for p in partition(content, max_chars)]

    chunks: list[Chunk] = []
    offset = section.body_start
    for index, (piece, hard) in enumerate(pieces):
        chunks.append(Chunk(
            chunk_id=compute_chunk_id(section.section_id, index, piece),
            section_id=section.section_id,
            paragraph_index=index,
            char_start=offset,
            char_end=offset + len(piece),
            content=piece,
            title=section.title,
            hard_split=hard,
        ))
        offset += len(piece)
    return chunks


def chunk_sections(sections: Iterable[Section], max_chars: int) -> list[Chunk]:
    """Chunks for a whole document, section by section."""
    out: list[Chunk] = []
    for section in sections:
        out.extend(chunk(section, max_chars))
    return out
