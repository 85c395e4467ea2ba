import logging
from typing import List

from janusleaf.analysis.ai_providers.base import AIService, QuoteDraft
from janusleaf.core.errors import RateLimited

logger = logging.getLogger(__name__)


class FallbackAIService(AIService):
    """
    Sends each call to the primary provider and, only when the primary is rate
    limited, repeats it once on the fallback provider. Any other failure, or a
    rate limit on the fallback too, is raised unchanged.
    """

    def __init__(self, primary: AIService, fallback: AIService):
        self.primary = primary
        self.fallback = fallback
        self.model_tag = getattr(primary, "model_tag", "fallback")

    def score_mood(self, text: str) -> int:
        try:
            return self.primary.score_mood(text)
        except RateLimited:
            logger.warning("Primary AI provider rate limited, scoring mood with fallback")
            return self.fallback.score_mood(text)

    def generate_quote(self, entries: List[str]) -> QuoteDraft:
        try:
            return self.primary.generate_quote(entries)
        except RateLimited:
            logger.warning("Primary AI provider rate limited, generating quote with fallback")
            return self.fallback.generate_quote(entries)
