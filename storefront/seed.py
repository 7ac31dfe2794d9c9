"""Reset the database to a small demo catalog.

    python -m storefront.seed

Wipes every table, then creates an admin, a demo customer, categories and
products. Uses DATABASE_URL like the API does.
"""
import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from storefront.core.config import settings
from storefront.core.logger import configure_logging
from storefront.core.security import hash_password
from storefront.db.session import Base, build_engine, build_session_factory
from storefront.models.enums import UserRole
from storefront.models.orm import Category, Order, OrderItem, Product, RefreshToken, User

logger = logging.getLogger("storefront.seed")

ADMIN_EMAIL = "admin@storefront.example.com"
ADMIN_PASSWORD = "Admin12345"
DEMO_EMAIL = "user@example.com"
DEMO_PASSWORD = "User12345"

CATEGORIES = [
    ("Rolls", "rolls", "Classic and signature rolls"),
    ("Sushi", "sushi", "Traditional nigiri"),
    ("Sets", "sets", "Platters to share"),
    ("Sashimi", "sashimi", "Sliced fresh fish"),
    ("Gunkan", "gunkan", "Sushi with the topping on top"),
    ("Drinks", "drinks", "Japanese drinks and soft drinks"),
]

# (category slug, name, slug, price, old price, weight, calories, stock, new, bestseller)
PRODUCTS = [
    ("rolls", "Philadelphia Classic", "philadelphia-classic", "450.00", None, 220, 320, 100, False, True),
    ("rolls", "California", "california", "380.00", None, 200, 280, 80, False, True),
    ("rolls", "Dragon", "dragon-roll", "520.00", "580.00", 240, 350, 50, True, False),
    ("rolls", "Spicy Tuna", "spicy-tuna", "420.00", None, 210, 300, 60, True, False),
    ("sushi", "Salmon Nigiri", "salmon-nigiri", "120.00", None, 40, 70, 200, False, True),
    ("sushi", "Eel Nigiri", "eel-nigiri", "150.00", None, 40, 85, 150, False, False),
    ("sets", "Family Set", "family-set", "1890.00", "2100.00", 1200, 1800, 20, False, True),
    ("sets", "Date Night Set", "date-night-set", "1290.00", None, 800, 1200, 25, True, False),
    ("sashimi", "Salmon Sashimi", "salmon-sashimi", "390.00", None, 120, 180, 40, False, False),
    ("gunkan", "Tobiko Gunkan", "tobiko-gunkan", "140.00", None, 45, 90, 120, True, False),
    ("drinks", "Green Tea", "green-tea", "90.00", None, 300, 0, 300, False, False),
    ("drinks", "Ramune", "ramune", "180.00", None, 200, 90, 100, True, False),
]


def _wipe(db: Session) -> None:
    for model in (OrderItem, Order, RefreshToken, Product, Category, User):
        db.query(model).delete(synchronize_session=False)


def seed(db: Session) -> None:
    _wipe(db)

    db.add_all([
        User(email=ADMIN_EMAIL, password=hash_password(ADMIN_PASSWORD), first_name="Admin",
             last_name="User", role=UserRole.ADMIN),
        User(email=DEMO_EMAIL, password=hash_password(DEMO_PASSWORD), first_name="John",
             last_name="Doe", address="42 Demo Street, Springfield", role=UserRole.USER),
    ])

    categories = {}
    for position, (name, slug, description) in enumerate(CATEGORIES, start=1):
        categories[slug] = Category(name=name, slug=slug, description=description, sort_order=position)
    db.add_all(categories.values())
    db.flush()

    for category, name, slug, price, old_price, weight, calories, stock, is_new, bestseller in PRODUCTS:
        db.add(Product(
            name=name,
            slug=slug,
            description=f"{name} from the {categories[category].name.lower()} menu",
            price=Decimal(price),
            old_price=Decimal(old_price) if old_price else None,
            weight=weight,
            calories=calories or None,
            stock_quantity=stock,
            is_new=is_new,
            is_bestseller=bestseller,
            category_id=categories[category].id,
        ))

    db.commit()
    logger.info("Seeded %d categories and %d products", len(CATEGORIES), len(PRODUCTS))
    logger.info("Admin login: %s / %s", ADMIN_EMAIL, ADMIN_PASSWORD)
    logger.info("Demo login: %s / %s", DEMO_EMAIL, DEMO_PASSWORD)


def main() -> None:
    configure_logging(settings.LOG_LEVEL)
    engine = build_engine(settings.DATABASE_URL)
    Base.metadata.create_all(bind=engine)
    db = build_session_factory(engine)()
    try:
        seed(db)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
        engine.dispose()


if __name__ == "__main__":
    main()
