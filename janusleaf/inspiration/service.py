import datetime
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from janusleaf.analysis.ai_providers.base import AIService
from janusleaf.analysis.schemas import BackoffPolicy
from janusleaf.core.clock import Clock, as_aware, utcnow
from janusleaf.core.errors import AiServiceError, RateLimited
from janusleaf.inspiration.db import (
    clear_generation_failures,
    find_quotes_needing_regeneration,
    find_user_ids_without_quotes,
    get_generation_failure,
    get_quote,
    mark_for_regeneration,
    record_generation_failure,
    upsert_quote,
)
from janusleaf.inspiration.models import InspirationalQuote
from janusleaf.inspiration.schemas import QuoteJobReport
from janusleaf.journals.db import get_user_journals
from janusleaf.journals.models import JournalEntry

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE = datetime.timedelta(hours=24)

# Failed users wait 1 min, 2 min, 4 min ... up to 6 hours; 5 min base when rate limited
DEFAULT_RETRY_POLICY = BackoffPolicy(retry_base=60.0, rate_limit_base=300.0, max_delay=6 * 3600.0)


def is_stale(
    quote: Optional[InspirationalQuote],
    now: datetime.datetime,
    max_age: datetime.timedelta = DEFAULT_MAX_AGE,
) -> bool:
    """
    A quote is stale when it is missing, flagged, or strictly older than max_age.
    """
    if quote is None or quote.needs_regeneration:
        return True
    return now - as_aware(quote.last_generated_at) > max_age


def format_entries(entries: List[JournalEntry]) -> List[str]:
    """Entries with a body, numbered newest first, as sent to the quote prompt."""
    with_body = [e for e in entries if e.body and e.body.strip()]
    return [
        f"Entry {index} ({entry.entry_date.isoformat()}):\n{entry.title}\n{entry.body}"
        for index, entry in enumerate(with_body, start=1)
    ]


class QuoteRegenerator:
    """
    Keeps one inspirational quote per user up to date.

    Regenerations run on a small thread pool and are single-flight per user:
    while one is running for a user, further triggers share its future
    instead of starting a second AI call.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        ai_service: AIService,
        clock: Clock = utcnow,
        max_age: datetime.timedelta = DEFAULT_MAX_AGE,
        recent_entries: int = 20,
        max_workers: int = 2,
        api_key_configured: bool = True,
        retry_policy: BackoffPolicy = DEFAULT_RETRY_POLICY,
    ):
        self.session_factory = session_factory
        self.ai_service = ai_service
        self.clock = clock
        self.max_age = max_age
        self.recent_entries = recent_entries
        self.api_key_configured = api_key_configured
        self.retry_policy = retry_policy
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="quote-regen")
        self._lock = threading.Lock()
        self._in_flight: Dict[UUID, Future] = {}

    def flag_needs_regeneration(self, user_id: UUID, db: Optional[Session] = None) -> int:
        """
        Marks the user's quote for regeneration; a no-op if they have none yet.
        A supplied session is left for the caller to commit.
        """
        if db is None:
            with self.session_factory() as session:
                updated = mark_for_regeneration(session, user_id, self.clock())
        else:
            updated = mark_for_regeneration(db, user_id, self.clock(), commit=False)
        if updated:
            logger.debug(f"Marked inspirational quote for user {user_id} for regeneration")
        return updated

    def is_stale(self, quote: Optional[InspirationalQuote], now: Optional[datetime.datetime] = None) -> bool:
        return is_stale(quote, now or self.clock(), self.max_age)

    def get_quote(self, user_id: UUID) -> Optional[InspirationalQuote]:
        with self.session_factory() as db:
            return get_quote(db, user_id)

    def trigger(self, user_id: UUID, force: bool = False) -> Future:
        """
        Starts a regeneration for the user unless one is already running.

        Returns:
            Future: Resolves to the user's quote (or None) once the run settles.
        """
        with self._lock:
            future = self._in_flight.get(user_id)
            if future is not None:
                return future
            future = self._executor.submit(self._run, user_id, force)
            self._in_flight[user_id] = future
        return future

    def regenerate(self, user_id: UUID, force: bool = False) -> Optional[InspirationalQuote]:
        """
        Regenerates the user's quote and waits for the result.

        Returns the stored quote untouched when it is still fresh, when the
        user is held back after a failure, or when they have no entries.

        Raises:
            AiServiceError: If generation failed; the existing quote and its
                flag are kept and the user is held back before the next try.
        """
        return self.trigger(user_id, force).result()

    def get_or_schedule_quote(self, user_id: UUID) -> Optional[InspirationalQuote]:
        """
        Returns the current quote right away and schedules a background
        regeneration if it is missing or stale. Never waits on the AI.
        """
        quote = self.get_quote(user_id)
        if self.api_key_configured and self.is_stale(quote):
            future = self.trigger(user_id)
            future.add_done_callback(self._log_failure)
        return quote

    def process_due(self, limit: int = 1) -> QuoteJobReport:
        """
        Periodic job: generates quotes for users without one first, then
        refreshes flagged or expired quotes, oldest first.

        A user whose generation fails is held back with exponential backoff
        and ordered after everyone else, so one failing user never blocks
        the rest.

        Returns:
            QuoteJobReport: Users attempted, succeeded and failed on this run.

        Raises:
            SQLAlchemyError: If the database fails.
        """
        report = QuoteJobReport()
        if not self.api_key_configured:
            logger.warning("AI API key not configured, skipping quote generation")
            return report

        now = self.clock()
        with self.session_factory() as db:
            user_ids = find_user_ids_without_quotes(db, now, limit)
            if len(user_ids) < limit:
                stale = find_quotes_needing_regeneration(db, now - self.max_age, now, limit - len(user_ids))
                user_ids.extend(q.user_id for q in stale)

        report.attempted = len(user_ids)
        for user_id in user_ids:
            try:
                self.regenerate(user_id)
                report.succeeded += 1
            except SQLAlchemyError:
                raise
            except AiServiceError:
                report.failed += 1
                report.failed_user_ids.append(user_id)
            except Exception:
                logger.exception(f"Error generating inspirational quote for user {user_id}")
                report.failed += 1
                report.failed_user_ids.append(user_id)
        return report

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _run(self, user_id: UUID, force: bool) -> Optional[InspirationalQuote]:
        try:
            return self._regenerate(user_id, force)
        finally:
            with self._lock:
                self._in_flight.pop(user_id, None)

    def _regenerate(self, user_id: UUID, force: bool) -> Optional[InspirationalQuote]:
        now = self.clock()
        with self.session_factory() as db:
            existing = get_quote(db, user_id)
            if not force and not self.is_stale(existing, now):
                return existing
            failure = get_generation_failure(db, user_id)
            if not force and failure is not None and as_aware(failure.retry_after) > now:
                logger.debug(f"Quote generation for user {user_id} held back until {failure.retry_after}")
                return existing
            entries = get_user_journals(db, user_id, skip=0, limit=self.recent_entries)
            if not entries:
                logger.debug(f"User {user_id} has no journal entries, no quote generated")
                return existing
            texts = format_entries(entries)
            seen_revision = existing.revision if existing is not None else 0
            prior_failures = failure.failed_attempts if failure is not None else 0

        logger.info(f"Generating inspirational quote for user {user_id}")
        try:
            draft = self.ai_service.generate_quote(texts)
        except Exception as e:
            self._record_failure(user_id, prior_failures, e)
            raise

        with self.session_factory() as db:
            clear_generation_failures(db, user_id, commit=False)
            quote = upsert_quote(db, user_id, draft.quote, draft.tags, self.clock(), seen_revision=seen_revision)
        logger.info(f"Saved inspirational quote for user {user_id}")
        return quote

    def _record_failure(self, user_id: UUID, prior_failures: int, error: Exception) -> None:
        now = self.clock()
        retry_after = now + self.retry_policy.delay_for(prior_failures, isinstance(error, RateLimited))
        with self.session_factory() as db:
            record_generation_failure(db, user_id, prior_failures + 1, now, retry_after)

        logger.warning(
            f"Failed to generate quote for user {user_id} (attempt {prior_failures + 1}), "
            f"retrying after {retry_after}: {error}"
        )

    @staticmethod
    def _log_failure(future: Future) -> None:
        error = future.exception()
        if error is not None and not isinstance(error, AiServiceError):
            logger.error(f"Background quote regeneration failed: {error}")
