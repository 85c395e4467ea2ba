import os
from dotenv import load_dotenv

load_dotenv()  # Load from .env file

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./janusleaf.db")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Token & Auth
SECRET_KEY = os.getenv("SECRET_KEY", "change-me-in-production")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
REFRESH_TOKEN_EXPIRE_DAYS = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7"))
REFRESH_TOKEN_PURGE_INTERVAL_SECONDS = float(os.getenv("REFRESH_TOKEN_PURGE_INTERVAL_SECONDS", "3600"))

# OpenAI-compatible chat API (OpenRouter by default)
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://openrouter.ai/api/v1")
OPENAI_CHAT_MODEL = os.getenv("OPENAI_CHAT_MODEL", "google/gemma-3-27b-it:free")
AI_TIMEOUT_SECONDS = float(os.getenv("AI_TIMEOUT_SECONDS", "30"))

# Fallback provider, used only when the primary is rate limited
FALLBACK_ENABLED = os.getenv("FALLBACK_ENABLED", "false").lower() in ("1", "true", "yes")
FALLBACK_API_KEY = os.getenv("FALLBACK_API_KEY", "")
FALLBACK_BASE_URL = os.getenv("FALLBACK_BASE_URL", "https://api.chatanywhere.org/v1")
FALLBACK_CHAT_MODEL = os.getenv("FALLBACK_CHAT_MODEL", "gpt-4o-mini")

# Mood analysis queue
MOOD_DEBOUNCE_SECONDS = float(os.getenv("MOOD_DEBOUNCE_SECONDS", "5"))
MOOD_RETRY_BASE_SECONDS = float(os.getenv("MOOD_RETRY_BASE_SECONDS", "2"))
MOOD_RATE_LIMIT_BASE_SECONDS = float(os.getenv("MOOD_RATE_LIMIT_BASE_SECONDS", "10"))
MOOD_MAX_BACKOFF_SECONDS = float(os.getenv("MOOD_MAX_BACKOFF_SECONDS", "600"))
MOOD_MAX_RETRIES = int(os.getenv("MOOD_MAX_RETRIES", "5"))
MOOD_CLAIM_LEASE_SECONDS = float(os.getenv("MOOD_CLAIM_LEASE_SECONDS", "60"))
MOOD_BATCH_LIMIT = int(os.getenv("MOOD_BATCH_LIMIT", "20"))
MOOD_POLL_INTERVAL_SECONDS = float(os.getenv("MOOD_POLL_INTERVAL_SECONDS", "3"))
MOOD_WORKERS = int(os.getenv("MOOD_WORKERS", "4"))

# Inspirational quotes
QUOTE_POLL_INTERVAL_SECONDS = float(os.getenv("QUOTE_POLL_INTERVAL_SECONDS", "30"))
QUOTE_MAX_AGE_HOURS = float(os.getenv("QUOTE_MAX_AGE_HOURS", "24"))
QUOTE_RECENT_ENTRIES = int(os.getenv("QUOTE_RECENT_ENTRIES", "20"))
QUOTE_RETRY_BASE_SECONDS = float(os.getenv("QUOTE_RETRY_BASE_SECONDS", "60"))
QUOTE_RATE_LIMIT_BASE_SECONDS = float(os.getenv("QUOTE_RATE_LIMIT_BASE_SECONDS", "300"))
QUOTE_MAX_BACKOFF_SECONDS = float(os.getenv("QUOTE_MAX_BACKOFF_SECONDS", "21600"))

# Background jobs can be switched off (tests, one-off scripts)
JOBS_ENABLED = os.getenv("JOBS_ENABLED", "true").lower() in ("1", "true", "yes")
