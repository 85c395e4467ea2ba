"""
Error taxonomy shared by the queue, the quote controller and the HTTP layer.

AI failures are split so the debounce queue can pick a backoff:
``RateLimited`` gets the long base delay, every other ``TransientAiFailure``
the short one, and ``PermanentAiFailure`` is retried until the retry budget
runs out and then abandoned.
"""

from typing import Optional


class AppError(Exception):
    """Base class for errors surfaced by the core."""

    status_code = 500
    detail = "Internal error"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail or self.detail)
        self.detail = detail or self.detail


class NotFound(AppError):
    status_code = 404
    detail = "Not found"


class Unauthorized(AppError):
    status_code = 401
    detail = "Invalid or expired authentication token"


class VersionConflict(AppError):
    status_code = 409
    detail = "Journal entry was modified by another request"

    def __init__(self, expected: int, current: int):
        super().__init__(
            f"{self.detail}. Expected version: {expected}, current version: {current}"
        )
        self.expected = expected
        self.current = current


class AiServiceError(AppError):
    status_code = 503
    detail = "AI service is temporarily unavailable"


class TransientAiFailure(AiServiceError):
    """Network errors, timeouts and 5xx responses."""


class RateLimited(TransientAiFailure):
    """The provider answered 429."""


class PermanentAiFailure(AiServiceError):
    """Malformed output or a rejected request; retrying the same input won't help."""
