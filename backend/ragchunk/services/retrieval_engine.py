"""Retrieval over stored chunks: vector similarity and text search."""
import logging
from typing import List, Optional

from ragchunk.config import SIMILARITY_THRESHOLD, SEARCH_LIMIT
from ragchunk.models.chunk import DocumentChunk, ScoredChunk, validate_embedding
from ragchunk.services.chunk_store import ChunkStore
from ragchunk.services.embedding_model import EmbeddingModel

logger = logging.getLogger(__name__)


class RetrievalEngine:
    """Read-only search over the chunk store."""

    def __init__(self, chunk_store: ChunkStore, embedding_model: Optional[EmbeddingModel] = None):
        """
        Initialize the retrieval engine.

        Args:
            chunk_store: ChunkStore holding the chunks
            embedding_model: EmbeddingModel for natural-language queries
                (only needed by `retrieve`)
        """
        self.chunk_store = chunk_store
        self.embedding_model = embedding_model
        logger.info("Initialized RetrievalEngine")

    def search_by_similarity(
        self,
        query_embedding: List[float],
        threshold: float = SIMILARITY_THRESHOLD,
        limit: int = SEARCH_LIMIT,
        object_id: Optional[str] = None
    ) -> List[ScoredChunk]:
        """
        Find chunks whose embedding is close to a query vector.

        Similarity is 1 - cosine distance. Chunks without an embedding are
        never returned.

        Args:
            query_embedding: Query vector
            threshold: Minimum similarity (0 to 1)
            limit: Maximum number of results
            object_id: Restrict to one document

        Returns:
            Scored chunks, most similar first; ties in chunk_index order

        Raises:
            ValueError: If the vector, threshold or limit is invalid
            ChunkStoreError: If the search fails
        """
        if not query_embedding:
            raise ValueError("Query embedding cannot be empty")

        vector = validate_embedding(query_embedding, self.chunk_store.embedding_dimension)

        if not 0.0 <= threshold <= 1.0:
            raise ValueError("threshold must be between 0 and 1")

        if limit <= 0:
            raise ValueError("limit must be positive")

        rows = self.chunk_store.call_function(
            "match_document_chunks",
            {
                "query_embedding": vector,
                "match_threshold": threshold,
                "match_count": limit,
                "filter_object_id": object_id,
            },
            "search chunks by similarity"
        )

        scored_chunks = []
        for row in rows or []:
            similarity = max(0.0, min(1.0, float(row["similarity"])))
            if similarity < threshold:
                continue
            scored_chunks.append(ScoredChunk(
                chunk=DocumentChunk.from_record(row),
                similarity=similarity
            ))

        scored_chunks.sort(key=lambda s: (-s.similarity, s.chunk.chunk_index))

        logger.debug(f"Found {len(scored_chunks)} chunks above similarity {threshold}")
        return scored_chunks[:limit]

    def search_by_text(
        self,
        query: str,
        limit: int = SEARCH_LIMIT,
        object_id: Optional[str] = None
    ) -> List[DocumentChunk]:
        """
        Find chunks containing a piece of text (case-insensitive).

        Results come back in document order, not by relevance.

        Args:
            query: Text to look for
            limit: Maximum number of results
            object_id: Restrict to one document

        Returns:
            Matching chunks ordered by chunk_index; empty for an empty query

        Raises:
            ValueError: If limit is not positive
            ChunkStoreError: If the search fails
        """
        if not query:
            logger.warning("Empty text query provided, returning empty results")
            return []

        if limit <= 0:
            raise ValueError("limit must be positive")

        rows = self.chunk_store.call_function(
            "search_document_chunks_text",
            {"search_text": query, "match_count": limit, "filter_object_id": object_id},
            "search chunks by text"
        )

        chunks = [DocumentChunk.from_record(row) for row in rows or []]
        chunks.sort(key=lambda c: (c.chunk_index, c.object_id))

        logger.debug(f"Text search matched {len(chunks)} chunks")
        return chunks[:limit]

    def retrieve(
        self,
        query: str,
        threshold: float = SIMILARITY_THRESHOLD,
        limit: int = SEARCH_LIMIT,
        object_id: Optional[str] = None
    ) -> List[ScoredChunk]:
        """
        Embed a natural-language query and run a similarity search.

        Returns:
            Scored chunks, empty for a blank query

        Raises:
            ValueError: If no embedding model is configured
            RuntimeError: If embedding or search fails
        """
        if not query or not query.strip():
            logger.warning("Empty query string provided, returning empty results")
            return []

        if self.embedding_model is None:
            raise ValueError("An embedding model is required to retrieve by query text")

        logger.debug(f"Embedding query: {query[:100]}...")
        query_embedding = self.embedding_model.embed_text(query)

        scored_chunks = self.search_by_similarity(
            query_embedding,
            threshold=threshold,
            limit=limit,
            object_id=object_id
        )

        if scored_chunks:
            logger.info(
                f"Retrieved {len(scored_chunks)} chunks "
                f"(top score: {scored_chunks[0].similarity:.3f})"
            )
        else:
            logger.info("No chunks found for query")

        return scored_chunks
