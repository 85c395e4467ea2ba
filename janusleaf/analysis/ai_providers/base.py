from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List


@dataclass(frozen=True)
class QuoteDraft:
    quote: str
    tags: List[str] = field(default_factory=list)


class AIService(ABC):
    """
    Provider-agnostic interface used by the mood queue and the quote controller.

    Implementations raise the errors from janusleaf.core.errors:
    RateLimited, TransientAiFailure or PermanentAiFailure.
    """

    model_tag: str

    @abstractmethod
    def score_mood(self, text: str) -> int:
        """Returns a mood score from 1 to 10 for a single journal entry."""

    @abstractmethod
    def generate_quote(self, entries: List[str]) -> QuoteDraft:
        """
        Generates a personalized quote from formatted journal entries.

        Args:
            entries (List[str]): Entry texts, newest first. May be empty.

        Returns:
            QuoteDraft: Quote text and exactly four tags.
        """
