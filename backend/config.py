"""Configuration management for Smart Study RAG backend."""
import os
import logging
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _get_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# Server Configuration
PORT = int(os.getenv("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "text")  # "text" or "json"

# CORS Configuration
CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:3001"
).split(",")

# Embedding Configuration (Azure OpenAI)
USE_REAL_EMBEDDINGS = _get_bool("USE_REAL_EMBEDDINGS", False)
AZURE_OPENAI_ENDPOINT = os.getenv("AZURE_OPENAI_ENDPOINT")
AZURE_OPENAI_API_KEY = os.getenv("AZURE_OPENAI_API_KEY")
AZURE_OPENAI_EMBEDDING_DEPLOYMENT = os.getenv("AZURE_OPENAI_EMBEDDING_DEPLOYMENT", "text-embedding-3-large")
AZURE_OPENAI_API_VERSION = os.getenv("AZURE_OPENAI_API_VERSION", "2024-02-01")
FALLBACK_EMBEDDING_DIM = 1536

# Chat Completion Configuration (Groq)
GROQ_API_KEY = os.getenv("GROQ_API_KEY")
CHAT_MODEL = os.getenv("CHAT_MODEL", "llama-3.1-8b-instant")
CHAT_TEMPERATURE = 0.7
CHAT_MAX_TOKENS = 800
CHAT_TOP_P = 0.95

# Provider retry policy (linear backoff: base delay * attempt number)
PROVIDER_MAX_RETRIES = 3
PROVIDER_RETRY_BASE_DELAY = 1.0  # seconds

# Chunking Configuration
MAX_CHUNK_SIZE = 1000  # characters
MIN_CHUNK_SIZE = 100  # characters
PAGE_BREAK_MARKER = "---PAGE_BREAK---"

# Retrieval Configuration
SEARCH_TOP_K = 5
NOTES_TOP_K = 15
HISTORY_MAX_TURNS = 10

# Persistence Configuration
STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "supabase")  # "supabase" or "memory"
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")

# Logging Configuration
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
