import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


# ==========================================================
# SERVER
# ==========================================================
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 3000))
APP_ENV = os.getenv("APP_ENV", os.getenv("NODE_ENV", "production"))
VERSION = "1.0.0"

LOG_DIR = os.getenv("LOG_DIR")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# ==========================================================
# COMPLETION PROVIDER
# ==========================================================
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
CHAT_MODEL = os.getenv("CHAT_MODEL", "gpt-4.1-mini")
SUMMARY_MODEL = os.getenv("SUMMARY_MODEL", CHAT_MODEL)
PROVIDER_TIMEOUT = float(os.getenv("PROVIDER_TIMEOUT", 60))

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 256

# ==========================================================
# CONTEXT WINDOW
# ==========================================================
MAX_CONTEXT_TOKENS = int(os.getenv("MAX_CONTEXT_TOKENS", 3000))
RECENT_KEEP = int(os.getenv("RECENT_KEEP", 6))
SUMMARIZATION_ENABLED = _env_bool("SUMMARIZATION_ENABLED", True)

# ==========================================================
# STORE
# ==========================================================
REDIS_URL = os.getenv("REDIS_URL")
CONVERSATION_TTL = int(os.getenv("CONVERSATION_TTL", 0)) or None


def is_development():
    return APP_ENV.lower() in {"dev", "development", "local"}
