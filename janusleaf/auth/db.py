import datetime
import hashlib
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import delete, or_, update
from sqlalchemy.orm import Session

from janusleaf.auth.models import RefreshToken


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def store_refresh_token(
    db: Session,
    user_id: UUID,
    token: str,
    expires_at: datetime.datetime,
    now: datetime.datetime,
    commit: bool = True,
) -> RefreshToken:
    """
    Saves the hash of a newly issued refresh token.

    Args:
        db (Session): SQLAlchemy session.
        user_id (UUID): Owner of the token.
        token (str): The encoded refresh token; only its hash is kept.
        expires_at (datetime): When the token stops being accepted.
        now (datetime): Issue time.
        commit (bool): Commit immediately; callers composing a transaction pass False.

    Returns:
        RefreshToken: The stored row.
    """
    row = RefreshToken(
        id=uuid4(),
        token_hash=hash_token(token),
        user_id=user_id,
        expires_at=expires_at,
        created_at=now,
    )
    db.add(row)
    if commit:
        db.commit()
    return row


def get_refresh_token(db: Session, token: str) -> Optional[RefreshToken]:
    return db.query(RefreshToken).filter(RefreshToken.token_hash == hash_token(token)).first()


def revoke_refresh_token(db: Session, token: str, now: datetime.datetime, commit: bool = True) -> int:
    """
    Revokes one refresh token if it is still active.

    Returns:
        int: Number of revoked tokens (0 or 1).
    """
    result = db.execute(
        update(RefreshToken)
        .where(RefreshToken.token_hash == hash_token(token), RefreshToken.revoked_at.is_(None))
        .values(revoked_at=now)
        .execution_options(synchronize_session=False)
    )
    if commit:
        db.commit()
    return result.rowcount


def revoke_all_refresh_tokens(db: Session, user_id: UUID, now: datetime.datetime, commit: bool = True) -> int:
    """
    Revokes every active refresh token of a user.

    Returns:
        int: Number of revoked tokens.
    """
    result = db.execute(
        update(RefreshToken)
        .where(RefreshToken.user_id == user_id, RefreshToken.revoked_at.is_(None))
        .values(revoked_at=now)
        .execution_options(synchronize_session=False)
    )
    if commit:
        db.commit()
    return result.rowcount


def delete_expired_and_revoked(db: Session, now: datetime.datetime) -> int:
    result = db.execute(
        delete(RefreshToken)
        .where(or_(RefreshToken.expires_at < now, RefreshToken.revoked_at.is_not(None)))
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount
