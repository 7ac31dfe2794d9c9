import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from storefront.core.config import settings

pwd_ctx = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS)


def configure_hashing(rounds: int) -> None:
    pwd_ctx.update(bcrypt__rounds=rounds)


def hash_password(password: str) -> str:
    return pwd_ctx.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_ctx.verify(plain, hashed)


def create_access_token(
    user_id: str,
    email: str,
    role: str,
    secret: str,
    algorithm: str = "HS256",
    expires_minutes: int = 15,
    now: Optional[datetime] = None,
) -> str:
    issued = now or datetime.now(timezone.utc)
    to_encode = {
        "userId": user_id,
        "email": email,
        "role": role,
        "type": "access",
        "iat": issued,
        "exp": issued + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(to_encode, secret, algorithm=algorithm)


def decode_access_token(token: str, secret: str, algorithm: str = "HS256") -> dict:
    """Returns the claims; raises jose.JWTError (or ExpiredSignatureError) on a bad token."""
    payload = jwt.decode(token, secret, algorithms=[algorithm])
    if payload.get("type") != "access" or not payload.get("userId"):
        raise JWTError("Not an access token")
    return payload


def generate_refresh_token() -> str:
    # opaque; only its presence in the refresh_tokens table gives it meaning
    return secrets.token_urlsafe(48)
