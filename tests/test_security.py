from storefront.core.config import Settings
from storefront.core.security import configure_hashing, hash_password, verify_password
from storefront.main import create_app


def test_app_settings_choose_bcrypt_rounds(engine, settings):
    create_app(settings=Settings(BCRYPT_ROUNDS=5, TOKEN_CLEANUP_INTERVAL_SECONDS=0), engine=engine)
    try:
        hashed = hash_password("Passw0rd123")
        assert hashed.startswith("$2b$05$")
        assert verify_password("Passw0rd123", hashed)
    finally:
        configure_hashing(settings.BCRYPT_ROUNDS)
