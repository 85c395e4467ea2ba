import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
from uuid import UUID, uuid4

from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from passlib.context import CryptContext
from sqlalchemy.orm import Session, sessionmaker

from janusleaf.auth.db import (
    delete_expired_and_revoked,
    get_refresh_token,
    revoke_all_refresh_tokens,
    revoke_refresh_token,
    store_refresh_token,
)
from janusleaf.auth.models import User
from janusleaf.auth.schemas import (
    ChangePasswordRequest,
    LoginRequest,
    TokenResponse,
    UserCreate,
    UserOut,
    UserUpdate,
)
from janusleaf.core.config import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    ALGORITHM,
    REFRESH_TOKEN_EXPIRE_DAYS,
    SECRET_KEY,
)
from janusleaf.core.clock import as_aware
from janusleaf.core.database import SessionLocal, get_db
from janusleaf.core.errors import Unauthorized

# Initialize logger and security tools
logger = logging.getLogger(__name__)
pwd = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return pwd.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd.verify(plain_password, hashed_password)


def create_token(user_id: UUID, token_type: str = "access", expires_delta: Optional[timedelta] = None) -> str:
    """
    Issues a signed JWT for the user.

    Args:
        user_id (UUID): Subject of the token.
        token_type (str): "access" or "refresh".
        expires_delta (timedelta, optional): Overrides the configured lifetime.

    Returns:
        str: Encoded JWT.
    """
    now = datetime.now(timezone.utc)
    if not expires_delta:
        if token_type == "access":
            expires_delta = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
        else:
            expires_delta = timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS)
    payload = {
        "sub": str(user_id),
        "type": token_type,
        "iat": int(now.timestamp()),
        "jti": uuid4().hex,
        "exp": now + expires_delta,
    }
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str, expected_type: str = "access") -> UUID:
    """
    Decodes and validates a JWT and returns its subject.

    Raises:
        Unauthorized: If the token is invalid, expired, of the wrong type or has no subject.
    """
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise Unauthorized()

    if payload.get("type") != expected_type:
        raise Unauthorized("Invalid token type")
    subject = payload.get("sub")
    if not subject:
        raise Unauthorized("Token missing subject field")
    try:
        return UUID(subject)
    except ValueError:
        raise Unauthorized("Invalid user ID in token")


def get_current_user_id(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
) -> UUID:
    """FastAPI dependency: user id from the bearer access token."""
    if creds is None:
        raise Unauthorized("Missing bearer token")
    return decode_token(creds.credentials)


def get_current_user(
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise Unauthorized("User not found")
    return user


def _issue_tokens(user: User, db: Session) -> TokenResponse:
    """Issues an access + refresh pair and stores the refresh token's hash."""
    now = datetime.now(timezone.utc)
    refresh_token = create_token(user.id, token_type="refresh")
    store_refresh_token(db, user.id, refresh_token, now + timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS), now)
    return TokenResponse(
        access_token=create_token(user.id, token_type="access"),
        refresh_token=refresh_token,
        user=UserOut.model_validate(user),
    )


def handle_signup(req: UserCreate, db: Session) -> TokenResponse:
    """
    Registers a user with email and password and logs them in.

    Raises:
        HTTPException: 400 if the email is already registered.
    """
    email = req.email.lower().strip()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=400, detail="Email already exists")

    user = User(id=uuid4(), email=email, name=req.name.strip(), password=hash_password(req.password))
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info(f"Created user {user.id}")
    return _issue_tokens(user, db)


def handle_login(req: LoginRequest, db: Session) -> TokenResponse:
    email = req.email.lower().strip()
    user = db.query(User).filter(User.email == email).first()
    if not user or not verify_password(req.password, user.password):
        raise Unauthorized("Invalid email or password")
    return _issue_tokens(user, db)


def handle_token_refresh(refresh_token: str, db: Session) -> Tuple[TokenResponse, UUID]:
    """
    Exchanges a stored, unrevoked refresh token for a new access + refresh
    pair. The presented token is revoked, so each refresh token works once.

    Returns:
        Tuple[TokenResponse, UUID]: New tokens and the user they belong to.

    Raises:
        Unauthorized: If the token is invalid, unknown, revoked or expired.
    """
    user_id = decode_token(refresh_token, expected_type="refresh")
    stored = get_refresh_token(db, refresh_token)
    now = datetime.now(timezone.utc)
    if stored is None or stored.user_id != user_id:
        raise Unauthorized("Refresh token not found or already revoked")
    if stored.revoked_at is not None or as_aware(stored.expires_at) <= now:
        raise Unauthorized("Refresh token has been revoked or expired")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise Unauthorized("User not found")

    if revoke_refresh_token(db, refresh_token, now, commit=False) != 1:
        # Used by a concurrent refresh
        db.rollback()
        raise Unauthorized("Refresh token has been revoked or expired")
    return _issue_tokens(user, db), user.id


def handle_logout(refresh_token: str, db: Session) -> int:
    """
    Revokes the given refresh token. Unknown or already revoked tokens are
    ignored; the caller is logged out either way.
    """
    revoked = revoke_refresh_token(db, refresh_token, datetime.now(timezone.utc))
    if revoked:
        logger.debug("Revoked refresh token on logout")
    return revoked


def handle_logout_all(user: User, db: Session) -> int:
    revoked = revoke_all_refresh_tokens(db, user.id, datetime.now(timezone.utc))
    logger.info(f"Revoked {revoked} refresh tokens for user {user.id}")
    return revoked


def update_profile(user: User, req: UserUpdate, db: Session) -> User:
    if req.name is not None and req.name.strip():
        user.name = req.name.strip()
        db.commit()
        db.refresh(user)
    return user


def change_password(user: User, req: ChangePasswordRequest, db: Session) -> None:
    """
    Replaces the password and revokes every refresh token of the user.

    Raises:
        Unauthorized: If the current password is wrong.
    """
    if not verify_password(req.current_password, user.password):
        raise Unauthorized("Current password is incorrect")

    user.password = hash_password(req.new_password)
    revoke_all_refresh_tokens(db, user.id, datetime.now(timezone.utc), commit=False)
    db.commit()
    logger.info(f"Changed password for user {user.id}")


def delete_user(user: User, db: Session) -> None:
    """Deletes the account; entries, tokens, pending analyses and the quote cascade."""
    db.delete(user)
    db.commit()
    logger.info(f"Deleted user {user.id}")


def purge_refresh_tokens(session_factory: sessionmaker = SessionLocal) -> int:
    """Periodic job: drops expired and revoked refresh tokens."""
    with session_factory() as db:
        removed = delete_expired_and_revoked(db, datetime.now(timezone.utc))
    if removed:
        logger.info(f"Purged {removed} expired or revoked refresh tokens")
    return removed
