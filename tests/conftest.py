import os

# before any storefront import: cheap hashing and no background cleanup task
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("TOKEN_CLEANUP_INTERVAL_SECONDS", "0")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from storefront.core.config import Settings
from storefront.core.security import create_access_token, hash_password
from storefront.db.session import Base, build_engine, build_session_factory
from storefront.main import create_app
from storefront.models.enums import UserRole
from storefront.models.orm import Category, Product, User

PASSWORD = "Passw0rd123"


@pytest.fixture
def settings():
    return Settings(
        ENVIRONMENT="test",
        JWT_SECRET="test-secret",
        TOKEN_CLEANUP_INTERVAL_SECONDS=0,
        STRICT_ADMIN_TRANSITIONS=False,
    )


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = build_session_factory(engine)()
    yield session
    session.close()


@pytest.fixture
def app(settings, engine):
    return create_app(settings=settings, engine=engine)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def make_user(db, email="user@example.com", role=UserRole.USER, password=PASSWORD):
    user = User(
        email=email,
        password=hash_password(password),
        first_name="Test",
        last_name="User",
        role=role,
    )
    db.add(user)
    db.commit()
    return user


def make_category(db, name="Rolls", slug="rolls", is_active=True):
    category = Category(name=name, slug=slug, is_active=is_active)
    db.add(category)
    db.commit()
    return category


def make_product(db, category, name="Philadelphia", slug=None, price="450.00", stock=100, **extra):
    product = Product(
        name=name,
        slug=slug or name.lower().replace(" ", "-"),
        description=f"{name} description",
        price=Decimal(price),
        stock_quantity=stock,
        category_id=category.id,
        **extra,
    )
    db.add(product)
    db.commit()
    return product


def bearer(user, settings):
    token = create_access_token(
        user_id=user.id,
        email=user.email,
        role=user.role.value,
        secret=settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user(db):
    return make_user(db)


@pytest.fixture
def admin(db):
    return make_user(db, email="admin@example.com", role=UserRole.ADMIN)


@pytest.fixture
def user_headers(user, settings):
    return bearer(user, settings)


@pytest.fixture
def admin_headers(admin, settings):
    return bearer(admin, settings)


@pytest.fixture
def category(db):
    return make_category(db)


def order_payload(*items, **overrides):
    payload = {
        "firstName": "Ann",
        "lastName": "Buyer",
        "email": "ann@example.com",
        "phone": "+1 555 0100",
        "address": "12 Harbour Street, Springfield",
        "paymentMethod": "CARD",
        "items": [{"productId": pid, "quantity": qty} for pid, qty in items],
    }
    payload.update(overrides)
    return payload
