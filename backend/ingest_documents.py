"""
Document Ingestion Script for ragchunk.

This script:
1. Loads PDF, text and Markdown files (single files or directories)
2. Chunks each document with the chosen strategy
3. Replaces the document's stored chunks in Supabase
4. Optionally generates embeddings using the Hugging Face API

Each document is stored under its filename as object id.

Usage:
    python ingest_documents.py docs/ --strategy hybrid --max-tokens 512 --embed
"""
import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent))

from ragchunk.config import (
    CHUNK_STRATEGY,
    CHUNK_MAX_TOKENS,
    CHUNK_OVERLAP_TOKENS,
    CHUNK_MIN_TOKENS,
    LOG_LEVEL,
    LOG_FORMAT,
)
from ragchunk.logger import setup_logging
from ragchunk.models.document import Document
from ragchunk.services.chunkers import chunk_document
from ragchunk.services.chunk_store import ChunkStore
from ragchunk.services.chunk_embedding import ChunkEmbedder
from ragchunk.services.document_loader import DocumentLoader
from ragchunk.services.embedding_model import EmbeddingModel

logger = logging.getLogger("ingest_documents")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Chunk documents and store them in Supabase")
    parser.add_argument("paths", nargs="+", help="Files or directories to ingest")
    parser.add_argument(
        "--strategy",
        choices=["fixed", "semantic", "hybrid"],
        default=CHUNK_STRATEGY,
        help="Chunking strategy (default: %(default)s)"
    )
    parser.add_argument("--max-tokens", type=int, default=CHUNK_MAX_TOKENS)
    parser.add_argument("--overlap-tokens", type=int, default=CHUNK_OVERLAP_TOKENS)
    parser.add_argument("--min-tokens", type=int, default=CHUNK_MIN_TOKENS)
    parser.add_argument("--embed", action="store_true", help="Generate embeddings after storing")
    parser.add_argument("--json-logs", action="store_true", default=LOG_FORMAT == "json")
    return parser.parse_args(argv)


def load_documents(loader: DocumentLoader, paths: List[str]) -> List[Document]:
    documents: List[Document] = []
    for path in paths:
        if os.path.isdir(path):
            documents.extend(loader.load_directory(path))
        else:
            documents.append(loader.load(path))
    return documents


def ingest_document(
    document: Document,
    store: ChunkStore,
    options: dict,
    embedder: Optional[ChunkEmbedder] = None
) -> bool:
    """
    Chunk one document and replace its stored chunks.

    Returns:
        True if the document was stored (and embedded when requested)
    """
    object_id = document.filename
    result = chunk_document(document.text, object_id, options)

    if not result.success:
        logger.error(
            f"Chunking failed for {object_id}: {result.error}",
            extra={"object_id": object_id, "error_code": result.error_code.value}
        )
        return False

    stored = store.replace_chunks(object_id, result.chunks)
    logger.info(
        f"Stored {stored} chunks for {object_id}",
        extra={"object_id": object_id, "chunk_count": stored, "total_tokens": result.total_tokens}
    )

    if embedder is not None:
        embedded = embedder.embed_and_store(object_id)
        logger.info(f"Embedded {embedded} chunks for {object_id}")

    return True


def main(argv: Optional[List[str]] = None) -> int:
    """Main ingestion process."""
    args = parse_args(argv)
    setup_logging(LOG_LEVEL, json_format=args.json_logs)

    options = {
        "strategy": args.strategy,
        "max_tokens": args.max_tokens,
        "overlap_tokens": args.overlap_tokens,
        "min_tokens": args.min_tokens,
    }

    try:
        loader = DocumentLoader()
        documents = load_documents(loader, args.paths)
        if not documents:
            logger.error("No documents loaded")
            return 1

        store = ChunkStore()
        embedder = ChunkEmbedder(store, EmbeddingModel()) if args.embed else None

        failures = 0
        for document in documents:
            if not ingest_document(document, store, options, embedder):
                failures += 1

    except Exception as e:
        logger.error(f"Ingestion failed: {str(e)}", exc_info=True)
        return 1

    logger.info(f"Ingested {len(documents) - failures}/{len(documents)} documents")
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
