import datetime
from uuid import UUID, uuid4
from typing import List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from janusleaf.analysis.models import MoodAnalysisTask
from janusleaf.analysis.schemas import BackoffPolicy, ClaimedTask, FailureOutcome
from janusleaf.core.database import dialect_insert
from janusleaf.journals.models import JournalEntry


def count_pending(db: Session, user_id: Optional[UUID] = None) -> int:
    """
    Counts pending analysis tasks, optionally only for one user's entries.
    """
    query = select(func.count(MoodAnalysisTask.id))
    if user_id is not None:
        query = query.join(JournalEntry, JournalEntry.id == MoodAnalysisTask.journal_entry_id).where(
            JournalEntry.user_id == user_id
        )
    return db.execute(query).scalar() or 0


def enqueue_or_reset(
    db: Session,
    entry_id: UUID,
    content: str,
    delay: datetime.timedelta,
    now: datetime.datetime,
    commit: bool = True,
) -> None:
    """
    Creates the entry's task or resets the existing one, in one statement.

    A new task starts with retry_count 0. An existing task gets the new
    snapshot and scheduled_for = now + delay; its retry_count is kept and its
    revision is bumped so in-flight work on the old snapshot is discarded.

    Args:
        db (Session): SQLAlchemy session.
        entry_id (UUID): Journal entry to analyze.
        content (str): Body snapshot to analyze.
        delay (timedelta): Debounce window.
        now (datetime): Current time.
        commit (bool): Commit immediately; callers composing a transaction pass False.
    """
    insert = dialect_insert(db)
    stmt = insert(MoodAnalysisTask).values(
        id=uuid4(),
        journal_entry_id=entry_id,
        body_snapshot=content,
        scheduled_for=now + delay,
        retry_count=0,
        revision=0,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["journal_entry_id"],
        set_={
            "body_snapshot": stmt.excluded.body_snapshot,
            "scheduled_for": stmt.excluded.scheduled_for,
            "updated_at": stmt.excluded.updated_at,
            "revision": MoodAnalysisTask.revision + 1,
        },
    )
    db.execute(stmt)
    if commit:
        db.commit()


def claim_ready(
    db: Session,
    now: datetime.datetime,
    limit: int,
    lease: datetime.timedelta,
) -> List[ClaimedTask]:
    """
    Claims up to `limit` due tasks, oldest schedule first.

    Each candidate is claimed with a compare-and-set that moves scheduled_for
    to now + lease, so it drops out of the ready window for every other
    poller. A candidate whose schedule or revision changed since it was read
    (another poller claimed it, or an edit reset it) is skipped. If the worker
    dies, the task becomes ready again when the lease runs out.

    Args:
        db (Session): SQLAlchemy session.
        now (datetime): Current time.
        limit (int): Maximum batch size.
        lease (timedelta): How long a claim hides the task from other pollers.

    Returns:
        List[ClaimedTask]: Tasks this caller now owns.
    """
    rows = db.execute(
        select(
            MoodAnalysisTask.journal_entry_id,
            MoodAnalysisTask.body_snapshot,
            MoodAnalysisTask.retry_count,
            MoodAnalysisTask.revision,
            MoodAnalysisTask.scheduled_for,
        )
        .where(MoodAnalysisTask.scheduled_for <= now)
        .order_by(MoodAnalysisTask.scheduled_for.asc())
        .limit(limit)
        .with_for_update(skip_locked=True)
    ).all()

    claimed: List[ClaimedTask] = []
    for row in rows:
        result = db.execute(
            update(MoodAnalysisTask)
            .where(
                MoodAnalysisTask.journal_entry_id == row.journal_entry_id,
                MoodAnalysisTask.scheduled_for == row.scheduled_for,
                MoodAnalysisTask.revision == row.revision,
            )
            .values(scheduled_for=now + lease)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            claimed.append(
                ClaimedTask(
                    journal_entry_id=row.journal_entry_id,
                    body_snapshot=row.body_snapshot,
                    retry_count=row.retry_count,
                    revision=row.revision,
                    scheduled_for=row.scheduled_for,
                )
            )
    db.commit()
    return claimed


def mark_processed(db: Session, entry_id: UUID, revision: Optional[int] = None, commit: bool = True) -> bool:
    """
    Deletes the entry's task after a successful analysis.

    With a revision, the delete only happens if no edit arrived since the
    claim; otherwise the task stays queued with the newer snapshot.

    Returns:
        bool: True if a task was deleted.
    """
    stmt = delete(MoodAnalysisTask).where(MoodAnalysisTask.journal_entry_id == entry_id)
    if revision is not None:
        stmt = stmt.where(MoodAnalysisTask.revision == revision)
    result = db.execute(stmt.execution_options(synchronize_session=False))
    if commit:
        db.commit()
    return result.rowcount == 1


def mark_failed(
    db: Session,
    entry_id: UUID,
    rate_limited: bool,
    now: datetime.datetime,
    policy: BackoffPolicy,
    revision: Optional[int] = None,
) -> Optional[FailureOutcome]:
    """
    Records a failed analysis attempt.

    Increments retry_count and reschedules with exponential backoff. Once
    retry_count exceeds policy.max_retries the task is deleted instead.

    Returns:
        Optional[FailureOutcome]: None if the task is gone or was superseded
        by an edit (that edit already rescheduled it).
    """
    row = db.execute(
        select(MoodAnalysisTask.retry_count, MoodAnalysisTask.revision).where(
            MoodAnalysisTask.journal_entry_id == entry_id
        )
    ).first()
    if row is None or (revision is not None and row.revision != revision):
        db.rollback()
        return None

    retry_count = row.retry_count + 1
    if retry_count > policy.max_retries:
        result = db.execute(
            delete(MoodAnalysisTask)
            .where(
                MoodAnalysisTask.journal_entry_id == entry_id,
                MoodAnalysisTask.revision == row.revision,
            )
            .execution_options(synchronize_session=False)
        )
        db.commit()
        if result.rowcount != 1:
            return None
        return FailureOutcome(abandoned=True, retry_count=retry_count)

    scheduled_for = now + policy.delay_for(retry_count, rate_limited)
    result = db.execute(
        update(MoodAnalysisTask)
        .where(
            MoodAnalysisTask.journal_entry_id == entry_id,
            MoodAnalysisTask.revision == row.revision,
        )
        .values(retry_count=retry_count, scheduled_for=scheduled_for, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    if result.rowcount != 1:
        return None
    return FailureOutcome(abandoned=False, retry_count=retry_count, scheduled_for=scheduled_for)


def delete_for_entry(db: Session, entry_id: UUID, commit: bool = True) -> int:
    """
    Removes any pending task for an entry that is being deleted.

    Returns:
        int: Number of deleted tasks (0 or 1).
    """
    result = db.execute(
        delete(MoodAnalysisTask)
        .where(MoodAnalysisTask.journal_entry_id == entry_id)
        .execution_options(synchronize_session=False)
    )
    if commit:
        db.commit()
    return result.rowcount
