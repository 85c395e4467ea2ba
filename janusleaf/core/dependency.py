import datetime
import logging
from functools import lru_cache

from janusleaf.analysis.ai_providers.base import AIService
from janusleaf.analysis.ai_providers.fallback import FallbackAIService
from janusleaf.analysis.ai_providers.openai import OpenAIAIService
from janusleaf.analysis.schemas import BackoffPolicy
from janusleaf.analysis.service import MoodAnalysisQueue
from janusleaf.analysis.worker import MoodAnalysisWorker
from janusleaf.core import config
from janusleaf.core.database import SessionLocal
from janusleaf.inspiration.service import QuoteRegenerator

logger = logging.getLogger(__name__)


@lru_cache(maxsize=None)
def get_ai_service() -> AIService:
    """
    Shared AI client. The fallback provider is only wired in when it is
    enabled and has a key of its own.
    """
    primary = OpenAIAIService()
    if config.FALLBACK_ENABLED and config.FALLBACK_API_KEY:
        logger.info(f"AI fallback provider enabled ({config.FALLBACK_BASE_URL})")
        fallback = OpenAIAIService(
            model=config.FALLBACK_CHAT_MODEL,
            api_key=config.FALLBACK_API_KEY,
            base_url=config.FALLBACK_BASE_URL,
        )
        return FallbackAIService(primary, fallback)
    return primary


@lru_cache(maxsize=None)
def get_mood_queue() -> MoodAnalysisQueue:
    return MoodAnalysisQueue(
        SessionLocal,
        debounce_delay=datetime.timedelta(seconds=config.MOOD_DEBOUNCE_SECONDS),
    )


@lru_cache(maxsize=None)
def get_mood_worker() -> MoodAnalysisWorker:
    return MoodAnalysisWorker(
        SessionLocal,
        get_ai_service(),
        policy=BackoffPolicy(
            retry_base=config.MOOD_RETRY_BASE_SECONDS,
            rate_limit_base=config.MOOD_RATE_LIMIT_BASE_SECONDS,
            max_delay=config.MOOD_MAX_BACKOFF_SECONDS,
            max_retries=config.MOOD_MAX_RETRIES,
        ),
        batch_limit=config.MOOD_BATCH_LIMIT,
        lease=datetime.timedelta(seconds=config.MOOD_CLAIM_LEASE_SECONDS),
        max_workers=config.MOOD_WORKERS,
        api_key_configured=bool(config.OPENAI_API_KEY),
    )


@lru_cache(maxsize=None)
def get_quote_regenerator() -> QuoteRegenerator:
    return QuoteRegenerator(
        SessionLocal,
        get_ai_service(),
        max_age=datetime.timedelta(hours=config.QUOTE_MAX_AGE_HOURS),
        recent_entries=config.QUOTE_RECENT_ENTRIES,
        api_key_configured=bool(config.OPENAI_API_KEY),
        retry_policy=BackoffPolicy(
            retry_base=config.QUOTE_RETRY_BASE_SECONDS,
            rate_limit_base=config.QUOTE_RATE_LIMIT_BASE_SECONDS,
            max_delay=config.QUOTE_MAX_BACKOFF_SECONDS,
        ),
    )
