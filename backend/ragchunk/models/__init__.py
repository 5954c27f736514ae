"""Data models for ragchunk."""
from .document import Document, Page, TextSpan, DocumentSection, PAGE_BREAK
from .chunk import (
    ChunkingStrategy,
    ChunkingErrorCode,
    ChunkingOptions,
    ChunkMetadata,
    DocumentChunk,
    ScoredChunk,
    ChunkingResult,
    ChunkStats,
    EmbeddingUpdate,
    parse_embedding,
    validate_embedding,
)

__all__ = [
    "Document",
    "Page",
    "TextSpan",
    "DocumentSection",
    "PAGE_BREAK",
    "ChunkingStrategy",
    "ChunkingErrorCode",
    "ChunkingOptions",
    "ChunkMetadata",
    "DocumentChunk",
    "ScoredChunk",
    "ChunkingResult",
    "ChunkStats",
    "EmbeddingUpdate",
    "parse_embedding",
    "validate_embedding",
]
