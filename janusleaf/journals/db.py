import datetime
from uuid import UUID, uuid4
from typing import Optional, List

from sqlalchemy import update
from sqlalchemy.orm import Session

from janusleaf.core.errors import NotFound, VersionConflict
from janusleaf.journals.models import JournalEntry


def get_journal(db: Session, journal_id: UUID, user_id: UUID) -> Optional[JournalEntry]:
    """
    Retrieves a journal entry by its ID for a given user.

    Args:
        db (Session): SQLAlchemy session.
        journal_id (UUID): ID of the journal.
        user_id (UUID): ID of the owner.

    Returns:
        Optional[JournalEntry]: The journal if found, else None.
    """
    return db.query(JournalEntry).filter(
        JournalEntry.id == journal_id,
        JournalEntry.user_id == user_id
    ).first()


def get_user_journals(db: Session, user_id: UUID, skip: int = 0, limit: int = 100) -> List[JournalEntry]:
    """
    Retrieves a page of journal entries for a user, newest first.

    Args:
        db (Session): SQLAlchemy session.
        user_id (UUID): ID of the user.
        skip (int): Pagination offset.
        limit (int): Pagination limit.

    Returns:
        List[JournalEntry]: List of journal entries.
    """
    return (
        db.query(JournalEntry)
        .filter(JournalEntry.user_id == user_id)
        .order_by(JournalEntry.entry_date.desc(), JournalEntry.created_at.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def get_journals_in_range(
    db: Session, user_id: UUID, start_date: datetime.date, end_date: datetime.date
) -> List[JournalEntry]:
    """
    Retrieves a user's entries dated between start_date and end_date, inclusive,
    newest first.
    """
    return (
        db.query(JournalEntry)
        .filter(
            JournalEntry.user_id == user_id,
            JournalEntry.entry_date >= start_date,
            JournalEntry.entry_date <= end_date,
        )
        .order_by(JournalEntry.entry_date.desc(), JournalEntry.updated_at.desc())
        .all()
    )


def create_journal(
    db: Session,
    user_id: UUID,
    title: str,
    body: str,
    entry_date: datetime.date,
    now: datetime.datetime,
    commit: bool = True,
) -> JournalEntry:
    """
    Creates a new journal entry for a user at version 0.

    Args:
        db (Session): SQLAlchemy session.
        user_id (UUID): ID of the owner.
        title (str): Entry title.
        body (str): Entry body.
        entry_date (date): Day the entry is about.
        now (datetime): Creation timestamp.
        commit (bool): Commit immediately; callers composing a transaction pass False.

    Returns:
        JournalEntry: The created journal.
    """
    new_journal = JournalEntry(
        id=uuid4(),
        user_id=user_id,
        title=title,
        body=body,
        entry_date=entry_date,
        version=0,
        created_at=now,
        updated_at=now,
    )
    db.add(new_journal)
    db.flush()
    if commit:
        db.commit()
        db.refresh(new_journal)
    return new_journal


def _apply_versioned_update(
    db: Session,
    journal_id: UUID,
    user_id: UUID,
    expected_version: Optional[int],
    values: dict,
    now: datetime.datetime,
) -> JournalEntry:
    """
    Compare-and-set on the version column.

    The row is only written when its version still equals the one read (or the
    caller's expected version); the version is bumped in the same statement.
    """
    journal = get_journal(db, journal_id, user_id)
    if journal is None:
        raise NotFound("Journal entry not found")

    current = journal.version
    if expected_version is not None and expected_version != current:
        raise VersionConflict(expected_version, current)

    result = db.execute(
        update(JournalEntry)
        .where(
            JournalEntry.id == journal_id,
            JournalEntry.user_id == user_id,
            JournalEntry.version == current,
        )
        .values(version=current + 1, updated_at=now, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        # Another writer got in between the read and the update
        db.rollback()
        fresh = get_journal(db, journal_id, user_id)
        if fresh is None:
            raise NotFound("Journal entry not found")
        raise VersionConflict(expected_version if expected_version is not None else current, fresh.version)

    db.flush()
    db.refresh(journal)
    return journal


def update_journal_body(
    db: Session,
    journal_id: UUID,
    user_id: UUID,
    body: str,
    expected_version: Optional[int],
    now: datetime.datetime,
    commit: bool = True,
) -> JournalEntry:
    """
    Replaces the body and clears the mood score, which the queue recalculates.

    Raises:
        NotFound: If the entry does not exist for this user.
        VersionConflict: If expected_version does not match the stored version.
    """
    journal = _apply_versioned_update(
        db, journal_id, user_id, expected_version, {"body": body, "mood_score": None}, now
    )
    if commit:
        db.commit()
    return journal


def update_journal_metadata(
    db: Session,
    journal_id: UUID,
    user_id: UUID,
    title: Optional[str],
    expected_version: Optional[int],
    now: datetime.datetime,
) -> JournalEntry:
    values = {}
    if title is not None:
        values["title"] = title
    journal = _apply_versioned_update(db, journal_id, user_id, expected_version, values, now)
    db.commit()
    return journal


def set_mood_score(db: Session, journal_id: UUID, mood_score: int) -> bool:
    """
    Stores the AI mood score without touching the version; the caller commits.

    Returns:
        bool: False if the entry no longer exists.
    """
    result = db.execute(
        update(JournalEntry)
        .where(JournalEntry.id == journal_id)
        .values(mood_score=mood_score)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def delete_journal(db: Session, journal_id: UUID, user_id: UUID, commit: bool = True) -> Optional[JournalEntry]:
    """
    Deletes a journal entry by ID for a user.

    Returns:
        Optional[JournalEntry]: The deleted journal or None.
    """
    journal = get_journal(db, journal_id, user_id)
    if journal:
        db.delete(journal)
        if commit:
            db.commit()
        return journal
    return None
