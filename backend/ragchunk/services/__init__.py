"""Services for ragchunk."""
from .token_estimator import (
    TokenEstimator,
    HeuristicTokenEstimator,
    HuggingFaceTokenEstimator,
    TokenizationError,
    get_token_estimator,
)
from .chunkers import FixedChunker, SemanticChunker, HybridChunker, get_chunker, chunk_document
from .chunk_store import ChunkStore, ChunkStoreError
from .embedding_model import EmbeddingModel
from .chunk_embedding import ChunkEmbedder
from .retrieval_engine import RetrievalEngine
from .document_loader import DocumentLoader

__all__ = [
    'TokenEstimator', 'HeuristicTokenEstimator', 'HuggingFaceTokenEstimator', 'TokenizationError',
    'get_token_estimator', 'FixedChunker', 'SemanticChunker', 'HybridChunker', 'get_chunker',
    'chunk_document', 'ChunkStore', 'ChunkStoreError', 'EmbeddingModel', 'ChunkEmbedder',
    'RetrievalEngine', 'DocumentLoader',
]
