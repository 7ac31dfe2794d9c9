import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from storefront.core.config import Settings
from storefront.core.errors import AuthenticationError
from storefront.core.security import create_access_token, generate_refresh_token
from storefront.models.orm import RefreshToken, User
from storefront.models.schemas import Tokens

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def issue_tokens(db: Session, user: User, settings: Settings, now: Optional[datetime] = None) -> Tokens:
    """Access JWT plus a freshly persisted refresh token. The caller commits."""
    now = now or _utcnow()
    access = create_access_token(
        user_id=user.id,
        email=user.email,
        role=user.role.value,
        secret=settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
        expires_minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES,
        now=now,
    )
    refresh = generate_refresh_token()
    db.add(RefreshToken(
        token=refresh,
        user_id=user.id,
        expires_at=now + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    ))
    db.flush()
    return Tokens(access_token=access, refresh_token=refresh)


def rotate_refresh_token(
    db: Session, token: str, settings: Settings, now: Optional[datetime] = None
) -> Tuple[User, Tokens]:
    """Trade a refresh token for a new pair. The old token is consumed."""
    now = now or _utcnow()
    stored = db.query(RefreshToken).filter(RefreshToken.token == token).first()
    if stored is None:
        raise AuthenticationError("Invalid or expired refresh token")

    if _aware(stored.expires_at) <= now:
        db.delete(stored)
        db.commit()
        raise AuthenticationError("Invalid or expired refresh token")

    user_id = stored.user_id
    # conditional delete: two concurrent refreshes with one token, only one wins
    consumed = (
        db.query(RefreshToken)
        .filter(RefreshToken.id == stored.id)
        .delete(synchronize_session="fetch")
    )
    if consumed != 1:
        db.rollback()
        raise AuthenticationError("Invalid or expired refresh token")

    user = db.get(User, user_id)
    if user is None:
        db.commit()
        raise AuthenticationError("User no longer exists")

    tokens = issue_tokens(db, user, settings, now)
    db.commit()
    return user, tokens


def revoke_refresh_token(db: Session, token: str, user_id: Optional[str] = None) -> int:
    query = db.query(RefreshToken).filter(RefreshToken.token == token)
    if user_id is not None:
        query = query.filter(RefreshToken.user_id == user_id)
    return query.delete(synchronize_session="fetch")


def revoke_all(db: Session, user_id: str) -> int:
    return db.query(RefreshToken).filter(RefreshToken.user_id == user_id).delete(synchronize_session="fetch")


def cleanup_expired_tokens(db: Session, now: Optional[datetime] = None) -> int:
    now = now or _utcnow()
    deleted = (
        db.query(RefreshToken)
        .filter(RefreshToken.expires_at < now)
        .delete(synchronize_session=False)
    )
    db.commit()
    if deleted:
        logger.info("Removed %d expired refresh tokens", deleted)
    return deleted
