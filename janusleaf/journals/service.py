import datetime
import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from janusleaf.analysis.service import MoodAnalysisQueue
from janusleaf.core.clock import utcnow
from janusleaf.core.errors import NotFound
from janusleaf.inspiration.service import QuoteRegenerator
from janusleaf.journals.db import (
    create_journal,
    delete_journal,
    get_journal,
    get_journals_in_range,
    get_user_journals,
    update_journal_body,
    update_journal_metadata,
)
from janusleaf.journals.models import JournalEntry
from janusleaf.journals.schemas import JournalEntryCreate, JournalEntrySummary

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 150


def to_summary(entry: JournalEntry) -> JournalEntrySummary:
    body = entry.body or ""
    preview = body if len(body) <= PREVIEW_LENGTH else body[:PREVIEW_LENGTH] + "..."
    return JournalEntrySummary(
        id=entry.id,
        title=entry.title,
        body_preview=preview,
        mood_score=entry.mood_score,
        entry_date=entry.entry_date,
        updated_at=entry.updated_at,
    )


def create_entry(
    db: Session,
    user_id: UUID,
    data: JournalEntryCreate,
    queue: MoodAnalysisQueue,
    regenerator: QuoteRegenerator,
    now: Optional[datetime.datetime] = None,
) -> JournalEntry:
    """
    Creates an entry, queues its mood analysis and flags the user's quote.

    Args:
        db (Session): SQLAlchemy session.
        user_id (UUID): Owner of the entry.
        data (JournalEntryCreate): Title, body and date; all optional.
        queue (MoodAnalysisQueue): Debounce queue for mood analysis.
        regenerator (QuoteRegenerator): Quote controller to flag.
        now (datetime, optional): Creation time.

    Returns:
        JournalEntry: The new entry at version 0.
    """
    now = now or utcnow()
    entry_date = data.entry_date or now.date()
    title = (data.title or "").strip() or entry_date.isoformat()
    body = (data.body or "").strip()

    entry = create_journal(db, user_id, title, body, entry_date, now, commit=False)
    if body:
        queue.queue_mood_analysis(entry.id, body, db=db)
    regenerator.flag_needs_regeneration(user_id, db=db)
    db.commit()

    logger.info(f"Created journal entry {entry.id} for user {user_id}")
    return entry


def get_entry(db: Session, user_id: UUID, entry_id: UUID) -> JournalEntry:
    entry = get_journal(db, entry_id, user_id)
    if entry is None:
        raise NotFound("Journal entry not found")
    return entry


def list_entries(db: Session, user_id: UUID, skip: int = 0, limit: int = 100) -> List[JournalEntrySummary]:
    return [to_summary(e) for e in get_user_journals(db, user_id, skip, limit)]


def list_entries_in_range(
    db: Session, user_id: UUID, start_date: datetime.date, end_date: datetime.date
) -> List[JournalEntrySummary]:
    return [to_summary(e) for e in get_journals_in_range(db, user_id, start_date, end_date)]


def update_body(
    db: Session,
    user_id: UUID,
    entry_id: UUID,
    body: str,
    expected_version: Optional[int],
    queue: MoodAnalysisQueue,
    now: Optional[datetime.datetime] = None,
) -> JournalEntry:
    """
    Replaces an entry's body and re-queues its mood analysis.

    Raises:
        NotFound: If the entry does not exist for this user.
        VersionConflict: If expected_version is stale.
    """
    now = now or utcnow()
    entry = update_journal_body(db, entry_id, user_id, body, expected_version, now, commit=False)
    queue.queue_mood_analysis(entry.id, body, db=db)
    db.commit()
    logger.debug(f"Updated body of journal entry {entry_id} to version {entry.version}")
    return entry


def update_metadata(
    db: Session,
    user_id: UUID,
    entry_id: UUID,
    title: Optional[str],
    expected_version: Optional[int],
    now: Optional[datetime.datetime] = None,
) -> JournalEntry:
    if title is not None:
        title = title.strip() or None
    return update_journal_metadata(db, entry_id, user_id, title, expected_version, now or utcnow())


def delete_entry(db: Session, user_id: UUID, entry_id: UUID, queue: MoodAnalysisQueue) -> None:
    """
    Deletes an entry after cancelling its pending analysis.

    Raises:
        NotFound: If the entry does not exist for this user.
    """
    if get_journal(db, entry_id, user_id) is None:
        raise NotFound("Journal entry not found")
    queue.cancel_pending_analysis(entry_id, db=db)
    delete_journal(db, entry_id, user_id)
    logger.info(f"Deleted journal entry {entry_id} for user {user_id}")
