"""
Runtime configuration for the memory bank core.
Values come from the environment (optionally a .env file).
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Database path configuration
DB_PATH = os.getenv("DB_PATH", "./data/membank.db")

DEBUG = os.getenv("DEBUG", "true").lower() == "true"

# Embedding provider configuration
EMBED_PROVIDER = os.getenv("EMBED_PROVIDER", "sentence_transformers")  # sentence_transformers|hash
EMBED_MODEL_NAME = os.getenv("EMBED_MODEL_NAME", "Qwen/Qwen3-Embedding-0.6B")
EMBED_DEVICE = os.getenv("EMBED_DEVICE") or None
HASH_EMBED_DIM = int(os.getenv("HASH_EMBED_DIM", "384"))

# Bank behaviour
DEFAULT_BANK = os.getenv("DEFAULT_BANK", "General")

# Fixed constants
SCHEMA_VERSION = 5
TRUNCATE_DIM = 256
MAX_CUSTOM_BANK_ENTRIES = 20
GRAPH_MAX_CONNECTIONS = 3
GRAPH_THRESHOLD = 0.1
QUERY_INSTRUCTION = "Given a web search query, retrieve relevant passages that answer the query"

VERSION = "1.0.0"


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "true").lower() == "true"


def sync_on_startup():
    """Check if the API should synchronize built-in banks when it starts."""
    return os.getenv("SYNC_ON_STARTUP", "true").lower() == "true"


def ensure_db_directory(db_path: str = None):
    """Ensure the database directory exists."""
    Path(db_path or DB_PATH).parent.mkdir(parents=True, exist_ok=True)


def get_embedding_provider():
    """Get configured embedding provider implementation."""
    provider = os.getenv("EMBED_PROVIDER", EMBED_PROVIDER)

    if provider == "hash":
        from membank.vector.embeddings import DeterministicHashEmbedding
        return DeterministicHashEmbedding(dimension=HASH_EMBED_DIM)
    elif provider == "sentence_transformers":
        from membank.vector.embeddings import SentenceTransformerEmbedding
        return SentenceTransformerEmbedding(EMBED_MODEL_NAME, device=EMBED_DEVICE)
    else:
        raise ValueError(f"Invalid EMBED_PROVIDER: {provider}")


def validate_config():
    """Validate configuration and return any issues."""
    issues = []

    provider = os.getenv("EMBED_PROVIDER", EMBED_PROVIDER)
    if provider not in ["sentence_transformers", "hash"]:
        issues.append(f"Invalid EMBED_PROVIDER: {provider}")

    if HASH_EMBED_DIM < 1:
        issues.append("HASH_EMBED_DIM must be >= 1")

    if not DEFAULT_BANK.strip():
        issues.append("DEFAULT_BANK cannot be empty")

    return issues
