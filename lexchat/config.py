"""
Application configuration.
Values come from the environment; a local .env file is honoured in development.
"""
import os

from dotenv import load_dotenv

load_dotenv()  # loads .env in local dev; no effect in Docker if env vars provided


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# ==================== Infrastructure ====================

DATABASE_URL = os.getenv("DATABASE_URL", "postgresql+psycopg2://postgres:postgres@db:5432/lexchat")
STORAGE_DIR = os.getenv("STORAGE_DIR", "/data/uploads")

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://redis:6379/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://redis:6379/1")
CELERY_RETRY_DELAY_SECONDS = int(os.getenv("CELERY_RETRY_DELAY_SECONDS", "30"))
CELERY_MAX_RETRIES = int(os.getenv("CELERY_MAX_RETRIES", "3"))
CELERY_TASK_ALWAYS_EAGER = _env_bool("CELERY_TASK_ALWAYS_EAGER")

# ==================== AI capabilities ====================

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")

# "local" (sentence-transformers), "openai", or "none" to disable retrieval
EMBED_PROVIDER = os.getenv("EMBED_PROVIDER", "local").lower()
EMBED_MODEL = os.getenv("EMBED_MODEL", "sentence-transformers/all-MiniLM-L6-v2")
OPENAI_EMBED_MODEL = os.getenv("OPENAI_EMBED_MODEL", "text-embedding-3-small")
EMBED_DIM = int(os.getenv("EMBED_DIM", "384"))

# Format "provider:model", e.g. "openai:gpt-4o-mini" or "ollama:qwen2.5:7b"
COMPLETION_MODEL = os.getenv("COMPLETION_MODEL", "openai:gpt-4o-mini")
COMPLETION_TIMEOUT_SECONDS = float(os.getenv("COMPLETION_TIMEOUT_SECONDS", "120"))
OLLAMA_URL = os.getenv("OLLAMA_URL", "http://ollama:11434")

# "local" (pypdf / python-docx) or "vision" (OpenAI vision model)
EXTRACTOR = os.getenv("EXTRACTOR", "local").lower()
VISION_MODEL = os.getenv("VISION_MODEL", "gpt-4o-mini")
URL_FETCH_TIMEOUT_SECONDS = float(os.getenv("URL_FETCH_TIMEOUT_SECONDS", "30"))

# ==================== Logging ====================

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
JSON_LOGS = _env_bool("JSON_LOGS")

# ==================== Fixed limits ====================

MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024  # 10 MB per file
ALLOWED_EXTENSIONS = ("pdf", "txt", "doc", "docx")
MAX_MESSAGE_CHARS = 10000

MAX_CHUNK_LENGTH = 1500  # characters, roughly 400 tokens
CHUNK_OVERLAP = 200
EMBED_BATCH_SIZE = 50
MIN_EXTRACTED_CHARS = 10

RETRIEVAL_TOP_K = 10
HISTORY_FETCH_LIMIT = 10
HISTORY_PROMPT_TURNS = 8
COMPLETION_TEMPERATURE = 0.3
COMPLETION_MAX_TOKENS = 2048

LEGAL_DISCLAIMER = (
    "Disclaimer: This explanation is AI-generated for general information only "
    "and is not legal advice. Please consult a qualified lawyer about your "
    "specific situation."
)
