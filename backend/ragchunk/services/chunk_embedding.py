"""Follow-up pass that attaches embeddings to stored chunks."""
import logging
from typing import Callable, List, Optional

from ragchunk.config import EMBEDDING_BATCH_SIZE
from ragchunk.models.chunk import DocumentChunk, EmbeddingUpdate
from ragchunk.services.chunk_store import ChunkStore
from ragchunk.services.embedding_model import EmbeddingModel

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class ChunkEmbedder:
    """Embed chunks in batches and write the vectors back to the store."""

    def __init__(
        self,
        chunk_store: ChunkStore,
        embedding_model: EmbeddingModel,
        batch_size: int = EMBEDDING_BATCH_SIZE
    ):
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")

        self.chunk_store = chunk_store
        self.embedding_model = embedding_model
        self.batch_size = batch_size

    def embed_chunks(
        self,
        chunks: List[DocumentChunk],
        on_progress: Optional[ProgressCallback] = None
    ) -> List[DocumentChunk]:
        """
        Set the embedding of each chunk in place.

        Args:
            chunks: Chunks to embed
            on_progress: Called with (embedded, total) after each batch

        Returns:
            The same chunks
        """
        total = len(chunks)
        for start in range(0, total, self.batch_size):
            batch = chunks[start:start + self.batch_size]
            embeddings = self.embedding_model.embed_batch([chunk.content for chunk in batch])
            for chunk, embedding in zip(batch, embeddings):
                chunk.embedding = embedding

            done = min(start + self.batch_size, total)
            logger.debug(f"Embedded {done}/{total} chunks")
            if on_progress:
                on_progress(done, total)

        return chunks

    def embed_and_store(
        self,
        object_id: str,
        on_progress: Optional[ProgressCallback] = None
    ) -> int:
        """
        Embed every stored chunk of a document that has no embedding yet.

        All vectors are computed first and written in a single transaction,
        so a failure part way through leaves the document unchanged.

        Args:
            object_id: Document identifier
            on_progress: Called with (embedded, total) after each batch

        Returns:
            Number of chunks updated
        """
        chunks = self.chunk_store.get_chunks_by_object_id(object_id)
        pending = [chunk for chunk in chunks if chunk.embedding is None and chunk.content.strip()]

        if not pending:
            logger.info(f"No chunks to embed for {object_id}")
            return 0

        logger.info(f"Embedding {len(pending)}/{len(chunks)} chunks for {object_id}")
        self.embed_chunks(pending, on_progress=on_progress)

        updates = [EmbeddingUpdate(chunk_id=chunk.id, embedding=chunk.embedding) for chunk in pending]
        return self.chunk_store.update_chunk_embeddings(updates)

    def embedding_coverage(self, object_id: str) -> float:
        """Fraction of a document's chunks that have an embedding (0.0 when none exist)."""
        chunks = self.chunk_store.get_chunks_by_object_id(object_id)
        if not chunks:
            return 0.0
        embedded = sum(1 for chunk in chunks if chunk.embedding is not None)
        return embedded / len(chunks)

    def has_all_embeddings(self, object_id: str) -> bool:
        chunks = self.chunk_store.get_chunks_by_object_id(object_id)
        return bool(chunks) and all(chunk.embedding is not None for chunk in chunks)
