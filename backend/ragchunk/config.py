"""Configuration management for the ragchunk chunking service."""
import os
import logging
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Supabase (pgvector) Configuration
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")
CHUNK_TABLE = os.getenv("CHUNK_TABLE", "document_chunks")

# Embedding Configuration
HUGGINGFACE_API_KEY = os.getenv("HUGGINGFACE_API_KEY")
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "sentence-transformers/all-mpnet-base-v2")
EMBEDDING_DIMENSION = int(os.getenv("EMBEDDING_DIMENSION", "768"))
EMBEDDING_BATCH_SIZE = int(os.getenv("EMBEDDING_BATCH_SIZE", "10"))
EMBEDDING_API_URL = os.getenv(
    "EMBEDDING_API_URL",
    f"https://api-inference.huggingface.co/models/{EMBEDDING_MODEL}"
)

# Chunking Configuration
CHUNK_STRATEGY = os.getenv("CHUNK_STRATEGY", "hybrid")
CHUNK_MAX_TOKENS = int(os.getenv("CHUNK_MAX_TOKENS", "512"))  # tokens
CHUNK_OVERLAP_TOKENS = int(os.getenv("CHUNK_OVERLAP_TOKENS", "50"))  # tokens
CHUNK_MIN_TOKENS = int(os.getenv("CHUNK_MIN_TOKENS", "50"))  # tokens
MIN_DOCUMENT_TOKENS = int(os.getenv("MIN_DOCUMENT_TOKENS", "1"))  # rejection floor
TOKEN_ESTIMATOR = os.getenv("TOKEN_ESTIMATOR", "heuristic")

# Retrieval Configuration
SIMILARITY_THRESHOLD = float(os.getenv("SIMILARITY_THRESHOLD", "0.5"))
SEARCH_LIMIT = int(os.getenv("SEARCH_LIMIT", "10"))

# Logging Configuration
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "text")  # "text" or "json"

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
