import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.orm import Session

from storefront.core.config import Settings
from storefront.core.errors import AuthenticationError, PermissionDeniedError
from storefront.core.permissions import ADMIN_ONLY, check_permission
from storefront.core.security import decode_access_token
from storefront.db.session import get_db
from storefront.models.orm import User

logger = logging.getLogger(__name__)

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"

oauth2 = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _token_from(request: Request, bearer: Optional[str]) -> Optional[str]:
    return bearer or request.cookies.get(ACCESS_COOKIE)


def get_current_user(
    request: Request,
    token: Optional[str] = Depends(oauth2),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    token = _token_from(request, token)
    if not token:
        raise AuthenticationError("Authentication required")
    payload = decode_access_token(token, settings.JWT_SECRET, settings.JWT_ALGORITHM)
    user = db.get(User, payload["userId"])
    if user is None:
        raise AuthenticationError("User no longer exists")
    return user


def get_optional_user(
    request: Request,
    token: Optional[str] = Depends(oauth2),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> Optional[User]:
    """Guest-friendly variant: a missing or bad token just means no user."""
    token = _token_from(request, token)
    if not token:
        return None
    try:
        payload = decode_access_token(token, settings.JWT_SECRET, settings.JWT_ALGORITHM)
    except JWTError:
        return None
    return db.get(User, payload["userId"])


def get_admin_user(request: Request, user: User = Depends(get_current_user)) -> User:
    if not check_permission(user.role, ADMIN_ONLY):
        logger.warning(
            "Unauthorized access attempt: user=%s role=%s %s %s",
            user.id, user.role.value, request.method, request.url.path,
        )
        raise PermissionDeniedError("Insufficient permissions")
    return user
