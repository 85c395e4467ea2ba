import datetime
from uuid import UUID, uuid4
from typing import List, Optional

from sqlalchemy import case, delete, false, or_, select, update
from sqlalchemy.orm import Session

from janusleaf.auth.models import User
from janusleaf.core.database import dialect_insert
from janusleaf.inspiration.models import InspirationalQuote, QuoteGenerationFailure
from janusleaf.journals.models import JournalEntry


def get_quote(db: Session, user_id: UUID) -> Optional[InspirationalQuote]:
    """
    Retrieves the user's quote, if one has been generated.

    Args:
        db (Session): SQLAlchemy session.
        user_id (UUID): ID of the user.

    Returns:
        Optional[InspirationalQuote]: The quote or None.
    """
    return db.query(InspirationalQuote).filter(InspirationalQuote.user_id == user_id).first()


def mark_for_regeneration(db: Session, user_id: UUID, now: datetime.datetime, commit: bool = True) -> int:
    """
    Flags an existing quote for regeneration and bumps its revision. Users
    without a quote are left alone; the quote job picks them up anyway.

    Returns:
        int: Number of flagged rows (0 or 1).
    """
    result = db.execute(
        update(InspirationalQuote)
        .where(InspirationalQuote.user_id == user_id)
        .values(
            needs_regeneration=True,
            revision=InspirationalQuote.revision + 1,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if commit:
        db.commit()
    return result.rowcount


def upsert_quote(
    db: Session,
    user_id: UUID,
    quote: str,
    tags: List[str],
    now: datetime.datetime,
    seen_revision: Optional[int] = None,
) -> InspirationalQuote:
    """
    Inserts or replaces the user's quote in a single statement.

    Text, tags and last_generated_at are written together, so readers never
    see a half-updated quote. With `seen_revision`, the regeneration flag is
    only cleared if no request arrived after that revision was read; a flag
    raised while the quote was being generated survives the write.

    Args:
        db (Session): SQLAlchemy session.
        user_id (UUID): Owner of the quote.
        quote (str): Quote text.
        tags (List[str]): Theme tags.
        now (datetime): Generation time.
        seen_revision (int, optional): Quote revision read before generating.

    Returns:
        InspirationalQuote: The stored quote.
    """
    if seen_revision is None:
        needs_regeneration = false()
    else:
        needs_regeneration = case(
            (InspirationalQuote.revision == seen_revision, false()),
            else_=InspirationalQuote.needs_regeneration,
        )

    insert = dialect_insert(db)
    stmt = insert(InspirationalQuote).values(
        id=uuid4(),
        user_id=user_id,
        quote=quote,
        tags=list(tags),
        needs_regeneration=False,
        revision=0,
        last_generated_at=now,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id"],
        set_={
            "quote": stmt.excluded.quote,
            "tags": stmt.excluded.tags,
            "needs_regeneration": needs_regeneration,
            "last_generated_at": stmt.excluded.last_generated_at,
            "updated_at": stmt.excluded.updated_at,
        },
    )
    db.execute(stmt)
    db.commit()
    db.expire_all()
    return get_quote(db, user_id)


def get_generation_failure(db: Session, user_id: UUID) -> Optional[QuoteGenerationFailure]:
    return db.get(QuoteGenerationFailure, user_id)


def record_generation_failure(
    db: Session,
    user_id: UUID,
    failed_attempts: int,
    now: datetime.datetime,
    retry_after: datetime.datetime,
) -> None:
    """Stores the user's failure count and holds them back until `retry_after`."""
    insert = dialect_insert(db)
    stmt = insert(QuoteGenerationFailure).values(
        user_id=user_id,
        failed_attempts=failed_attempts,
        last_attempted_at=now,
        retry_after=retry_after,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id"],
        set_={
            "failed_attempts": stmt.excluded.failed_attempts,
            "last_attempted_at": stmt.excluded.last_attempted_at,
            "retry_after": stmt.excluded.retry_after,
        },
    )
    db.execute(stmt)
    db.commit()


def clear_generation_failures(db: Session, user_id: UUID, commit: bool = True) -> None:
    db.execute(
        delete(QuoteGenerationFailure)
        .where(QuoteGenerationFailure.user_id == user_id)
        .execution_options(synchronize_session=False)
    )
    if commit:
        db.commit()


def _not_held_back(now: datetime.datetime):
    return or_(QuoteGenerationFailure.retry_after.is_(None), QuoteGenerationFailure.retry_after <= now)


def find_user_ids_without_quotes(db: Session, now: datetime.datetime, limit: int = 1) -> List[UUID]:
    """
    Users that have written at least one entry but have no quote yet.

    Users whose last attempt failed are skipped until their retry time and
    then come after everyone who has not failed.
    """
    has_entries = select(JournalEntry.id).where(JournalEntry.user_id == User.id).exists()
    rows = db.execute(
        select(User.id)
        .outerjoin(InspirationalQuote, InspirationalQuote.user_id == User.id)
        .outerjoin(QuoteGenerationFailure, QuoteGenerationFailure.user_id == User.id)
        .where(InspirationalQuote.id.is_(None), has_entries, _not_held_back(now))
        .order_by(QuoteGenerationFailure.last_attempted_at.asc().nulls_first(), User.id)
        .limit(limit)
    ).all()
    return [row[0] for row in rows]


def find_quotes_needing_regeneration(
    db: Session, cutoff: datetime.datetime, now: datetime.datetime, limit: int = 1
) -> List[InspirationalQuote]:
    """
    Quotes flagged for regeneration or generated before `cutoff`, oldest
    first, with recently failed users held back and ordered last.
    """
    return (
        db.query(InspirationalQuote)
        .outerjoin(QuoteGenerationFailure, QuoteGenerationFailure.user_id == InspirationalQuote.user_id)
        .filter(
            or_(
                InspirationalQuote.needs_regeneration.is_(True),
                InspirationalQuote.last_generated_at < cutoff,
            ),
            _not_held_back(now),
        )
        .order_by(
            QuoteGenerationFailure.last_attempted_at.asc().nulls_first(),
            InspirationalQuote.last_generated_at.asc(),
        )
        .limit(limit)
        .all()
    )
