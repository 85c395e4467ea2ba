import datetime
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from janusleaf.analysis.db import count_pending, delete_for_entry, enqueue_or_reset
from janusleaf.core.clock import Clock, utcnow

logger = logging.getLogger(__name__)

# Bodies shorter than this are not worth a model call
MIN_BODY_LENGTH = 10


class MoodAnalysisQueue:
    """
    Entry point for the journal flow into the debounce queue.

    Every edit of an entry body goes through `queue_mood_analysis`; the task is
    only picked up once the entry has been left alone for `debounce_delay`.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        clock: Clock = utcnow,
        debounce_delay: datetime.timedelta = datetime.timedelta(seconds=5),
    ):
        self.session_factory = session_factory
        self.clock = clock
        self.debounce_delay = debounce_delay

    def queue_mood_analysis(self, entry_id: UUID, body: Optional[str], db: Optional[Session] = None) -> bool:
        """
        Queues (or re-queues) the entry for mood analysis.

        Args:
            entry_id (UUID): Journal entry ID.
            body (str): Current body of the entry.
            db (Session, optional): Caller's session; the change joins its
                transaction and is committed by the caller. A fresh session is
                opened and committed otherwise.

        Returns:
            bool: True if a task is now pending, False if the body was too short.
        """
        content = (body or "").strip()
        if db is None:
            with self.session_factory() as session:
                return self._queue(session, entry_id, content, commit=True)
        return self._queue(db, entry_id, content, commit=False)

    def _queue(self, db: Session, entry_id: UUID, content: str, commit: bool) -> bool:
        if len(content) < MIN_BODY_LENGTH:
            removed = delete_for_entry(db, entry_id, commit=commit)
            if removed:
                logger.debug(f"Dropped pending analysis for {entry_id}: body too short")
            return False

        enqueue_or_reset(db, entry_id, content, self.debounce_delay, self.clock(), commit=commit)
        logger.debug(f"Queued mood analysis for {entry_id} in {self.debounce_delay.total_seconds()}s")
        return True

    def cancel_pending_analysis(self, entry_id: UUID, db: Optional[Session] = None) -> int:
        if db is None:
            with self.session_factory() as session:
                return delete_for_entry(session, entry_id)
        return delete_for_entry(db, entry_id, commit=False)

    def pending_count(self, user_id: Optional[UUID] = None) -> int:
        with self.session_factory() as session:
            return count_pending(session, user_id)
