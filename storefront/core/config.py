# storefront/core/config.py
import os
from dotenv import load_dotenv

load_dotenv()


def _bool(value: str) -> bool:
    return str(value).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Runtime configuration read from the environment (and .env).

    Keyword arguments override the environment, which is how tests build
    an isolated app.
    """

    def __init__(self, **overrides):
        self.ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
        self.APP_NAME: str = os.getenv("APP_NAME", "Storefront API")
        self.DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./storefront.db")

        self.JWT_SECRET: str = os.getenv("JWT_SECRET", "change-me-in-production")
        self.JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
        self.ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "15"))
        self.REFRESH_TOKEN_EXPIRE_DAYS: int = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7"))
        self.BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "12"))

        self.FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:3000")
        self.COOKIE_DOMAIN: str | None = os.getenv("COOKIE_DOMAIN") or None

        self.FREE_DELIVERY_THRESHOLD: int = int(os.getenv("FREE_DELIVERY_THRESHOLD", "1000"))
        self.DELIVERY_FEE: int = int(os.getenv("DELIVERY_FEE", "150"))
        self.ORDER_NUMBER_MAX_RETRIES: int = int(os.getenv("ORDER_NUMBER_MAX_RETRIES", "5"))
        self.STRICT_ADMIN_TRANSITIONS: bool = _bool(os.getenv("STRICT_ADMIN_TRANSITIONS", "false"))

        self.TOKEN_CLEANUP_INTERVAL_SECONDS: int = int(os.getenv("TOKEN_CLEANUP_INTERVAL_SECONDS", "3600"))
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise AttributeError(f"Unknown setting: {key}")
            setattr(self, key, value)

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


settings = Settings()
