"""Turns chunk boundaries into DocumentChunk objects with position metadata."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ragchunk.models.chunk import ChunkMetadata, ChunkingStrategy, DocumentChunk
from ragchunk.services.boundary_detector import page_number_at
from ragchunk.services.token_estimator import TokenEstimator


@dataclass
class ChunkDraft:
    """Character range chosen by a strategy, before it becomes a chunk."""
    start: int
    end: int
    section_title: Optional[str] = None
    page_number: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)


def count_words(text: str) -> int:
    return len(text.split())


def assemble_chunks(
    text: str,
    drafts: List[ChunkDraft],
    object_id: str,
    strategy: ChunkingStrategy,
    estimator: TokenEstimator
) -> List[DocumentChunk]:
    """
    Build chunks from drafts in document order.

    Content is the exact source slice, token counts come from the estimator,
    chunk indices are assigned 0..n-1, and overlap flags are set wherever two
    neighbouring chunks' character ranges intersect.

    Args:
        text: Full source text
        drafts: Chunk boundaries produced by a strategy
        object_id: Owning document identifier
        strategy: Strategy recorded on every chunk
        estimator: Token estimator used for the run

    Returns:
        List of DocumentChunk objects
    """
    ordered = sorted(drafts, key=lambda d: (d.start, d.end))
    chunks: List[DocumentChunk] = []

    for index, draft in enumerate(ordered):
        content = text[draft.start:draft.end]
        page_number = draft.page_number
        if page_number is None:
            first_char = draft.start + (len(content) - len(content.lstrip()))
            page_number = page_number_at(text, first_char)

        chunks.append(DocumentChunk(
            object_id=object_id,
            chunk_index=index,
            content=content,
            token_count=estimator.estimate(content),
            chunking_strategy=strategy,
            page_number=page_number,
            section_title=draft.section_title,
            metadata=ChunkMetadata(
                start_char=draft.start,
                end_char=draft.end,
                word_count=count_words(content),
                extra=dict(draft.extra),
            ),
        ))

    for previous, current in zip(chunks, chunks[1:]):
        overlaps = previous.metadata.end_char > current.metadata.start_char
        previous.metadata.has_overlap_after = overlaps
        current.metadata.has_overlap_before = overlaps

    return chunks


def total_tokens(chunks: List[DocumentChunk]) -> int:
    """Sum of chunk token counts; overlapping text is counted once per chunk."""
    return sum(chunk.token_count for chunk in chunks)


def reconstruct_text(chunks: List[DocumentChunk]) -> str:
    """
    Rebuild the source text covered by a document's chunks.

    Overlapping prefixes are dropped using the chunks' character offsets.
    Text lying between non-adjacent chunks is not recoverable and is skipped.
    """
    parts: List[str] = []
    covered: Optional[int] = None

    for chunk in sorted(chunks, key=lambda c: c.chunk_index):
        start = chunk.metadata.start_char or 0
        end = chunk.metadata.end_char if chunk.metadata.end_char is not None else start + len(chunk.content)
        if covered is None:
            parts.append(chunk.content)
            covered = end
            continue
        if end <= covered:
            continue
        parts.append(chunk.content[max(0, covered - start):])
        covered = end

    return "".join(parts)
