import datetime
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from janusleaf.analysis.ai_providers.base import AIService
from janusleaf.analysis.db import claim_ready, mark_failed, mark_processed
from janusleaf.analysis.schemas import BackoffPolicy, BatchReport, ClaimedTask
from janusleaf.core.clock import Clock, utcnow
from janusleaf.core.errors import AiServiceError, PermanentAiFailure, RateLimited
from janusleaf.journals.db import set_mood_score

logger = logging.getLogger(__name__)

PROCESSED = "processed"
RESCHEDULED = "rescheduled"
ABANDONED = "abandoned"
SUPERSEDED = "superseded"


class MoodAnalysisWorker:
    """
    Poller side of the debounce queue.

    `process_ready` claims due tasks and scores them on a thread pool, each
    task with its own session. The score is only written if the task was
    still at the revision that was claimed; an edit made in the meantime wins
    and is analyzed on a later run.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        ai_service: AIService,
        clock: Clock = utcnow,
        policy: BackoffPolicy = BackoffPolicy(),
        batch_limit: int = 20,
        lease: datetime.timedelta = datetime.timedelta(seconds=60),
        max_workers: int = 4,
        api_key_configured: bool = True,
    ):
        self.session_factory = session_factory
        self.ai_service = ai_service
        self.clock = clock
        self.policy = policy
        self.batch_limit = batch_limit
        self.lease = lease
        self.max_workers = max_workers
        self.api_key_configured = api_key_configured

    def process_ready(self, now: Optional[datetime.datetime] = None) -> BatchReport:
        """
        Claims and processes one batch of due tasks.

        Args:
            now (datetime, optional): Claim time; defaults to the worker clock.

        Returns:
            BatchReport: What happened to each claimed task.

        Raises:
            SQLAlchemyError: If the database fails; the rest of the batch still settles first.
        """
        report = BatchReport()
        if not self.api_key_configured:
            logger.warning("AI API key not configured, skipping mood analysis")
            return report

        now = now or self.clock()
        with self.session_factory() as db:
            tasks = claim_ready(db, now, self.batch_limit, self.lease)
        report.claimed = len(tasks)
        if not tasks:
            return report

        logger.info(f"Processing {len(tasks)} pending mood analyses")
        fatal: Optional[SQLAlchemyError] = None
        with ThreadPoolExecutor(max_workers=max(1, min(self.max_workers, len(tasks)))) as pool:
            futures = [(task, pool.submit(self._process_task, task)) for task in tasks]
            for task, future in futures:
                try:
                    outcome = future.result()
                except SQLAlchemyError as e:
                    logger.error(f"Database error while processing entry {task.journal_entry_id}: {e}")
                    fatal = fatal or e
                    continue

                if outcome == PROCESSED:
                    report.processed += 1
                    report.entry_ids.append(task.journal_entry_id)
                elif outcome == RESCHEDULED:
                    report.rescheduled += 1
                elif outcome == ABANDONED:
                    report.abandoned += 1
                else:
                    report.superseded += 1

        logger.info(
            f"Mood analysis batch done: {report.processed} processed, {report.rescheduled} rescheduled, "
            f"{report.abandoned} abandoned, {report.superseded} superseded"
        )
        if fatal is not None:
            raise fatal
        return report

    def _process_task(self, task: ClaimedTask) -> str:
        try:
            score = self.ai_service.score_mood(task.body_snapshot)
        except AiServiceError as e:
            return self._fail(task, e)
        except Exception as e:
            logger.exception(f"Unexpected error scoring entry {task.journal_entry_id}")
            return self._fail(task, e)

        with self.session_factory() as db:
            try:
                if not mark_processed(db, task.journal_entry_id, revision=task.revision, commit=False):
                    db.rollback()
                    logger.debug(f"Entry {task.journal_entry_id} changed during analysis, keeping newer task")
                    return SUPERSEDED
                set_mood_score(db, task.journal_entry_id, score)
                db.commit()
            except SQLAlchemyError:
                db.rollback()
                raise

        logger.info(f"Mood score {score} saved for entry {task.journal_entry_id}")
        return PROCESSED

    def _fail(self, task: ClaimedTask, error: Exception) -> str:
        rate_limited = isinstance(error, RateLimited)
        with self.session_factory() as db:
            outcome = mark_failed(
                db,
                task.journal_entry_id,
                rate_limited=rate_limited,
                now=self.clock(),
                policy=self.policy,
                revision=task.revision,
            )

        if outcome is None:
            return SUPERSEDED
        if outcome.abandoned:
            logger.warning(
                f"Giving up on mood analysis for entry {task.journal_entry_id} after {outcome.retry_count} attempts: {error}"
            )
            return ABANDONED

        kind = "permanent" if isinstance(error, PermanentAiFailure) else "transient"
        logger.warning(
            f"Mood analysis for entry {task.journal_entry_id} failed ({kind}), "
            f"retry {outcome.retry_count} at {outcome.scheduled_for}: {error}"
        )
        return RESCHEDULED
