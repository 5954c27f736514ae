"""ragchunk: document chunking and chunk retrieval for RAG pipelines."""

__version__ = "0.1.0"
