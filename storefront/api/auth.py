import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from storefront.api.deps import ACCESS_COOKIE, REFRESH_COOKIE, get_current_user, get_settings
from storefront.api.responses import success
from storefront.core.config import Settings
from storefront.core.errors import AuthenticationError, ConflictError
from storefront.core.security import hash_password, verify_password
from storefront.db.session import get_db
from storefront.models.enums import UserRole
from storefront.models.orm import User
from storefront.models.schemas import LoginIn, RefreshIn, RegisterIn, Tokens, UserOut
from storefront.services import tokens as token_service

logger = logging.getLogger(__name__)

router = APIRouter()


def set_auth_cookies(response: Response, tokens: Tokens, settings: Settings) -> None:
    common = dict(
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
        domain=settings.COOKIE_DOMAIN,
        path="/",
    )
    response.set_cookie(
        ACCESS_COOKIE, tokens.access_token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60, **common,
    )
    response.set_cookie(
        REFRESH_COOKIE, tokens.refresh_token,
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60, **common,
    )


def clear_auth_cookies(response: Response, settings: Settings) -> None:
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(name, path="/", domain=settings.COOKIE_DOMAIN)


def _session_payload(user: User, tokens: Tokens) -> dict:
    return {
        "user": UserOut.model_validate(user),
        "accessToken": tokens.access_token,
        "refreshToken": tokens.refresh_token,
    }


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterIn,
    response: Response,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    email = payload.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise ConflictError("User with this email already exists")

    user = User(
        email=email,
        password=hash_password(payload.password),
        first_name=payload.first_name,
        last_name=payload.last_name,
        phone=payload.phone,
        address=payload.address,
        role=UserRole.USER,
    )
    db.add(user)
    db.flush()
    tokens = token_service.issue_tokens(db, user, settings)
    db.commit()

    set_auth_cookies(response, tokens, settings)
    logger.info("User registered: %s", user.email)
    return success(_session_payload(user, tokens), "Registration successful")


@router.post("/login")
def login(
    payload: LoginIn,
    response: Response,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user = db.query(User).filter(User.email == payload.email.lower()).first()
    if not user or not verify_password(payload.password, user.password):
        raise AuthenticationError("Invalid email or password")

    tokens = token_service.issue_tokens(db, user, settings)
    db.commit()

    set_auth_cookies(response, tokens, settings)
    logger.info("User logged in: %s", user.email)
    return success(_session_payload(user, tokens), "Login successful")


@router.post("/refresh")
def refresh(
    request: Request,
    response: Response,
    payload: Optional[RefreshIn] = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    token = (payload.refresh_token if payload else None) or request.cookies.get(REFRESH_COOKIE)
    if not token:
        raise AuthenticationError("Refresh token is required")

    user, tokens = token_service.rotate_refresh_token(db, token, settings)
    set_auth_cookies(response, tokens, settings)
    return success(
        {"accessToken": tokens.access_token, "refreshToken": tokens.refresh_token},
        "Token refreshed successfully",
    )


@router.post("/logout")
def logout(
    request: Request,
    response: Response,
    payload: Optional[RefreshIn] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    token = (payload.refresh_token if payload else None) or request.cookies.get(REFRESH_COOKIE)
    if token:
        token_service.revoke_refresh_token(db, token, user_id=user.id)
        db.commit()

    clear_auth_cookies(response, settings)
    logger.info("User logged out: %s", user.email)
    return success(message="Logout successful")


@router.post("/logout-all")
def logout_all(
    response: Response,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    revoked = token_service.revoke_all(db, user.id)
    db.commit()

    clear_auth_cookies(response, settings)
    logger.info("User logged out from all devices: %s (%d sessions)", user.email, revoked)
    return success(message="Logged out from all devices")


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return success(UserOut.model_validate(user))
