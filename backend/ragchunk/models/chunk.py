"""Chunk data models."""
import json
import uuid
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

import numpy as np


class ChunkingStrategy(str, Enum):
    """Algorithm used to decide chunk boundaries."""
    FIXED = "fixed"
    SEMANTIC = "semantic"
    HYBRID = "hybrid"


class ChunkingErrorCode(str, Enum):
    """Stable error codes reported by a failed chunking run."""
    EMPTY_TEXT = "EMPTY_TEXT"
    TEXT_TOO_SHORT = "TEXT_TOO_SHORT"
    TOKENIZATION_FAILED = "TOKENIZATION_FAILED"
    INVALID_OPTIONS = "INVALID_OPTIONS"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


# camelCase keys accepted by ChunkingOptions.from_partial
_OPTION_ALIASES = {
    "maxTokens": "max_tokens",
    "overlapTokens": "overlap_tokens",
    "preserveParagraphs": "preserve_paragraphs",
    "preserveSentences": "preserve_sentences",
    "minTokens": "min_tokens",
}


@dataclass
class ChunkingOptions:
    """Options for document chunking (defaults tuned for RAG retrieval)."""
    strategy: ChunkingStrategy = ChunkingStrategy.HYBRID
    max_tokens: int = 512
    overlap_tokens: int = 50
    preserve_paragraphs: bool = True
    preserve_sentences: bool = True
    min_tokens: int = 50

    @classmethod
    def from_partial(
        cls,
        options: Union["ChunkingOptions", Mapping[str, Any], None] = None,
        base: Optional["ChunkingOptions"] = None
    ) -> "ChunkingOptions":
        """
        Merge partial options over the defaults.

        Args:
            options: Full options, a partial mapping (snake_case or camelCase
                keys), or None for the defaults
            base: Options to merge over (defaults to ChunkingOptions())

        Returns:
            ChunkingOptions instance

        Raises:
            ValueError: If a key is not a known option
        """
        if isinstance(options, ChunkingOptions):
            return options

        merged = dict(vars(base or cls()))
        known = {f.name for f in fields(cls)}

        for key, value in (options or {}).items():
            name = _OPTION_ALIASES.get(key, key)
            if name not in known:
                raise ValueError(f"Unknown chunking option: {key}")
            merged[name] = value

        strategy = merged["strategy"]
        try:
            merged["strategy"] = ChunkingStrategy(strategy)
        except ValueError:
            raise ValueError(f"Unknown chunking strategy: {strategy}")

        return cls(**merged)

    def validate(self) -> Optional[str]:
        """Return a description of the first invalid option, or None."""
        for name in ("max_tokens", "overlap_tokens", "min_tokens"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool):
                return f"{name} must be an integer"
            if value < 0:
                return f"{name} must not be negative"

        if self.max_tokens == 0:
            return "max_tokens must be positive"

        if self.overlap_tokens >= self.max_tokens:
            return "overlap_tokens must be less than max_tokens"

        if not isinstance(self.strategy, ChunkingStrategy):
            return f"Unknown chunking strategy: {self.strategy}"

        return None


@dataclass
class ChunkMetadata:
    """
    Structured metadata stored with each chunk.

    Known fields are typed; anything else lives in `extra` and is persisted
    alongside them in the same JSON object.
    """
    start_char: Optional[int] = None
    end_char: Optional[int] = None
    has_overlap_before: bool = False
    has_overlap_after: bool = False
    word_count: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    _KEYS = {
        "start_char": "startChar",
        "end_char": "endChar",
        "has_overlap_before": "hasOverlapBefore",
        "has_overlap_after": "hasOverlapAfter",
        "word_count": "wordCount",
    }

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the JSON layout of the metadata column."""
        data = dict(self.extra)
        for attr, key in self._KEYS.items():
            value = getattr(self, attr)
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "ChunkMetadata":
        """Parse the metadata column, routing unknown keys into `extra`."""
        data = dict(data or {})
        kwargs = {}
        for attr, key in cls._KEYS.items():
            if key in data:
                kwargs[attr] = data.pop(key)
        return cls(extra=data, **kwargs)


def parse_embedding(value: Any) -> Optional[List[float]]:
    """
    Normalize an embedding coming back from pgvector.

    PostgREST returns vector columns as their text form ("[0.1,0.2]").

    Args:
        value: None, a JSON array string, or a sequence of numbers

    Returns:
        List of floats, or None when no embedding is stored
    """
    if value is None:
        return None
    if isinstance(value, str):
        value = json.loads(value)
    return np.asarray(value, dtype=float).tolist()


def validate_embedding(embedding: Any, dimension: int) -> List[float]:
    """
    Check an embedding vector before it is written or searched with.

    Args:
        embedding: Sequence of numbers
        dimension: Required vector length

    Returns:
        The vector as a list of floats

    Raises:
        ValueError: If the vector is empty, has the wrong length, or holds
            non-finite values
    """
    try:
        vector = np.asarray(embedding, dtype=float)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Embedding must be a sequence of numbers: {str(e)}")

    if vector.ndim != 1 or vector.size == 0:
        raise ValueError("Embedding must be a non-empty 1-D vector")
    if vector.shape[0] != dimension:
        raise ValueError(f"Embedding has dimension {vector.shape[0]}, expected {dimension}")
    if not np.all(np.isfinite(vector)):
        raise ValueError("Embedding contains non-finite values")

    return vector.tolist()


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if not value:
        return datetime.now(timezone.utc)
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


@dataclass
class DocumentChunk:
    """A contiguous extract of a source document, the unit of retrieval."""
    object_id: str
    chunk_index: int  # 0-indexed, contiguous within a document
    content: str
    token_count: int
    chunking_strategy: ChunkingStrategy
    metadata: ChunkMetadata = field(default_factory=ChunkMetadata)
    page_number: Optional[int] = None  # 1-indexed
    section_title: Optional[str] = None
    embedding: Optional[List[float]] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_record(self) -> Dict[str, Any]:
        """
        Convert to a document_chunks row for insertion.

        created_at and embedding are owned by the database and the embedding
        pass respectively, so they are not part of the insert payload.
        """
        return {
            "id": self.id,
            "object_id": self.object_id,
            "chunk_index": self.chunk_index,
            "content": self.content,
            "token_count": self.token_count,
            "page_number": self.page_number,
            "section_title": self.section_title,
            "chunking_strategy": ChunkingStrategy(self.chunking_strategy).value,
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> "DocumentChunk":
        """Build a chunk from a document_chunks row."""
        return cls(
            id=str(row["id"]),
            object_id=str(row["object_id"]),
            chunk_index=row["chunk_index"],
            content=row["content"],
            token_count=row["token_count"],
            page_number=row.get("page_number"),
            section_title=row.get("section_title"),
            chunking_strategy=ChunkingStrategy(row.get("chunking_strategy") or "hybrid"),
            metadata=ChunkMetadata.from_dict(row.get("metadata")),
            embedding=parse_embedding(row.get("embedding")),
            created_at=_parse_timestamp(row.get("created_at")),
        )


@dataclass
class ScoredChunk:
    """Chunk with similarity score from vector search."""
    chunk: DocumentChunk
    similarity: float  # 0.0 to 1.0


@dataclass
class ChunkingResult:
    """Outcome of a chunking run."""
    success: bool
    chunks: List[DocumentChunk] = field(default_factory=list)
    total_tokens: int = 0
    processing_duration_ms: float = 0.0
    error: Optional[str] = None
    error_code: Optional[ChunkingErrorCode] = None

    @classmethod
    def failure(
        cls,
        error_code: ChunkingErrorCode,
        error: str,
        processing_duration_ms: float
    ) -> "ChunkingResult":
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            processing_duration_ms=processing_duration_ms,
        )


@dataclass
class ChunkStats:
    """Per-document chunk statistics."""
    chunk_count: int = 0
    total_tokens: int = 0
    avg_tokens_per_chunk: float = 0.0
    has_embeddings: bool = False
    chunking_strategy: Optional[ChunkingStrategy] = None


@dataclass
class EmbeddingUpdate:
    """Embedding vector to attach to an existing chunk."""
    chunk_id: str
    embedding: List[float]
