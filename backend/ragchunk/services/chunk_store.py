"""Chunk persistence using Supabase (PostgreSQL + pgvector)."""
import logging
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from supabase import create_client, Client

from ragchunk.config import SUPABASE_URL, SUPABASE_KEY, CHUNK_TABLE, EMBEDDING_DIMENSION
from ragchunk.models.chunk import (
    ChunkStats,
    ChunkingStrategy,
    DocumentChunk,
    EmbeddingUpdate,
    validate_embedding,
)

logger = logging.getLogger(__name__)


class ChunkStoreError(RuntimeError):
    """Raised when a storage request fails. Nothing from the request was committed."""


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


class ChunkStore:
    """
    Store and query document chunks in Supabase.

    Batch writes go through the PostgreSQL functions in
    schema/document_chunks.sql; each RPC call runs in its own transaction, so
    a batch is either fully stored or not stored at all.
    """

    def __init__(
        self,
        client: Optional[Client] = None,
        supabase_url: str = SUPABASE_URL,
        supabase_key: str = SUPABASE_KEY,
        table_name: str = CHUNK_TABLE,
        embedding_dimension: int = EMBEDDING_DIMENSION
    ):
        """
        Initialize the chunk store.

        Args:
            client: Existing Supabase client (created from the credentials when None)
            supabase_url: Supabase project URL
            supabase_key: Supabase API key
            table_name: Name of the chunk table
            embedding_dimension: Length of stored embedding vectors

        Raises:
            ValueError: If no client is given and credentials are missing
        """
        if client is None:
            if not supabase_url or not supabase_key:
                raise ValueError("SUPABASE_URL and SUPABASE_KEY environment variables are required")
            client = create_client(supabase_url, supabase_key)

        self.client: Client = client
        self.table_name = table_name
        self.embedding_dimension = embedding_dimension

        logger.info(f"Initialized ChunkStore with table: {table_name}")

    @contextmanager
    def _request(self, action: str) -> Iterator[Client]:
        """Hand out the client for one request and wrap any failure."""
        try:
            yield self.client
        except Exception as e:
            error_msg = f"Failed to {action}: {str(e)}"
            logger.error(error_msg)
            raise ChunkStoreError(error_msg) from e

    def call_function(self, name: str, params: Dict[str, Any], action: str) -> Any:
        """
        Call a database function over RPC.

        Args:
            name: Function name
            params: Named arguments
            action: Description used in error messages

        Returns:
            The response payload

        Raises:
            ChunkStoreError: If the call fails
        """
        with self._request(action) as client:
            response = client.rpc(name, params).execute()
        return response.data

    @staticmethod
    def _check_batch(chunks: List[DocumentChunk]) -> None:
        seen = set()
        for chunk in chunks:
            key = (chunk.object_id, chunk.chunk_index)
            if key in seen:
                raise ValueError(
                    f"Duplicate chunk_index {chunk.chunk_index} for object {chunk.object_id} in batch"
                )
            seen.add(key)

    @staticmethod
    def _affected(data: Any, fallback: int) -> int:
        return data if isinstance(data, int) else fallback

    def store_chunks(self, chunks: List[DocumentChunk]) -> int:
        """
        Upsert chunks keyed by (object_id, chunk_index).

        Existing rows keep their id and created_at; content and metadata are
        overwritten. A row whose content changes loses its embedding, so it
        shows up as unembedded until the next embedding pass. Use
        replace_chunks to re-chunk a document; an upsert leaves higher-index
        rows from an older run in place.

        Args:
            chunks: Chunks to store

        Returns:
            Number of rows written

        Raises:
            ValueError: If the batch holds the same (object_id, chunk_index) twice
            ChunkStoreError: If the write fails
        """
        if not chunks:
            logger.debug("store_chunks called with no chunks")
            return 0

        self._check_batch(chunks)
        records = [chunk.to_record() for chunk in chunks]

        data = self.call_function("upsert_document_chunks", {"chunks": records}, "store chunks")
        stored = self._affected(data, len(records))

        logger.info(f"Stored {stored} chunks")
        return stored

    def replace_chunks(self, object_id: str, chunks: List[DocumentChunk]) -> int:
        """
        Replace every chunk of a document in one transaction.

        Args:
            object_id: Document identifier
            chunks: New chunk run for the document (may be empty)

        Returns:
            Number of chunks inserted

        Raises:
            ValueError: If a chunk belongs to another document or indices repeat
            ChunkStoreError: If the write fails (the previous chunks are kept)
        """
        for chunk in chunks:
            if chunk.object_id != object_id:
                raise ValueError(
                    f"Chunk {chunk.chunk_index} belongs to {chunk.object_id}, not {object_id}"
                )
        self._check_batch(chunks)

        records = [chunk.to_record() for chunk in chunks]
        data = self.call_function(
            "replace_document_chunks",
            {"target_object_id": object_id, "chunks": records},
            f"replace chunks for {object_id}"
        )
        stored = self._affected(data, len(records))

        logger.info(f"Replaced chunks for {object_id}: {stored} chunks")
        return stored

    def get_chunks_by_object_id(self, object_id: str) -> List[DocumentChunk]:
        """
        Get all chunks of a document ordered by chunk_index.

        Returns:
            List of chunks (empty if the document has none)
        """
        with self._request(f"get chunks for {object_id}") as client:
            response = (
                client.table(self.table_name)
                .select("*")
                .eq("object_id", object_id)
                .order("chunk_index")
                .execute()
            )
        return [DocumentChunk.from_record(row) for row in response.data or []]

    def get_chunk_by_id(self, chunk_id: str) -> Optional[DocumentChunk]:
        """Get a single chunk, or None if no chunk has this id."""
        if not _is_uuid(chunk_id):
            return None

        with self._request(f"get chunk {chunk_id}") as client:
            response = (
                client.table(self.table_name)
                .select("*")
                .eq("id", chunk_id)
                .limit(1)
                .execute()
            )
        rows = response.data or []
        return DocumentChunk.from_record(rows[0]) if rows else None

    def get_chunk_count(self, object_id: str) -> int:
        """Number of chunks stored for a document."""
        with self._request(f"count chunks for {object_id}") as client:
            response = (
                client.table(self.table_name)
                .select("id", count="exact")
                .eq("object_id", object_id)
                .execute()
            )
        return response.count if response.count is not None else 0

    def is_document_chunked(self, object_id: str) -> bool:
        return self.get_chunk_count(object_id) > 0

    def update_chunk_embeddings(self, updates: List[EmbeddingUpdate]) -> int:
        """
        Attach embeddings to existing chunks in one transaction.

        Every vector is validated before anything is sent. Ids that match no
        chunk are ignored.

        Args:
            updates: Chunk id and embedding pairs

        Returns:
            Number of chunks updated

        Raises:
            ValueError: If any embedding has the wrong dimension or bad values
            ChunkStoreError: If the write fails
        """
        if not updates:
            return 0

        payload = []
        for update in updates:
            vector = validate_embedding(update.embedding, self.embedding_dimension)
            if not _is_uuid(update.chunk_id):
                logger.debug(f"Skipping embedding for unknown chunk id: {update.chunk_id}")
                continue
            payload.append({"id": update.chunk_id, "embedding": vector})

        if not payload:
            return 0

        data = self.call_function(
            "update_document_chunk_embeddings",
            {"updates": payload},
            "update chunk embeddings"
        )
        updated = self._affected(data, len(payload))

        logger.info(f"Updated embeddings for {updated}/{len(updates)} chunks")
        return updated

    def delete_chunks_by_object_id(self, object_id: str) -> int:
        """
        Delete every chunk of a document.

        Returns:
            Number of chunks deleted (0 if there were none)
        """
        with self._request(f"delete chunks for {object_id}") as client:
            response = (
                client.table(self.table_name)
                .delete(count="exact")
                .eq("object_id", object_id)
                .execute()
            )
        deleted = response.count if response.count is not None else len(response.data or [])

        logger.info(f"Deleted {deleted} chunks for {object_id}")
        return deleted

    def get_chunk_stats(self, object_id: str) -> ChunkStats:
        """
        Aggregate statistics for a document's chunks.

        The reported strategy is the one recorded on the chunk with the
        lowest chunk_index. A document without chunks gives zeroed stats.
        """
        data = self.call_function(
            "document_chunk_stats",
            {"target_object_id": object_id},
            f"get chunk stats for {object_id}"
        )
        rows = data if isinstance(data, list) else [data] if data else []
        if not rows or not rows[0].get("chunk_count"):
            return ChunkStats()

        row = rows[0]
        strategy = row.get("chunking_strategy")
        return ChunkStats(
            chunk_count=int(row["chunk_count"]),
            total_tokens=int(row.get("total_tokens") or 0),
            avg_tokens_per_chunk=float(row.get("avg_tokens") or 0.0),
            has_embeddings=bool(row.get("has_embeddings")),
            chunking_strategy=ChunkingStrategy(strategy) if strategy else None,
        )
