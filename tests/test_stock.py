import pytest

from conftest import make_category, make_product
from storefront.core.errors import BadRequestError, NotFoundError
from storefront.models.orm import Product
from storefront.services import stock


@pytest.fixture
def products(db):
    category = make_category(db)
    return (
        make_product(db, category, name="Roll", stock=10),
        make_product(db, category, name="Nigiri", stock=3),
    )


def _stock(db, product):
    db.expire_all()
    return db.get(Product, product.id).stock_quantity


def test_reserve_decrements_every_line(db, products):
    roll, nigiri = products
    stock.reserve(db, [(roll.id, 4), (nigiri.id, 3)])
    db.commit()
    assert _stock(db, roll) == 6
    assert _stock(db, nigiri) == 0


def test_reserve_is_all_or_nothing(db, products):
    roll, nigiri = products
    with pytest.raises(BadRequestError, match="Insufficient stock for Nigiri. Available: 3"):
        stock.reserve(db, [(roll.id, 4), (nigiri.id, 5)])
    db.rollback()
    assert _stock(db, roll) == 10
    assert _stock(db, nigiri) == 3


def test_repeated_lines_are_checked_against_remaining_stock(db, products):
    _, nigiri = products
    with pytest.raises(BadRequestError):
        stock.reserve(db, [(nigiri.id, 2), (nigiri.id, 2)])
    db.rollback()
    assert _stock(db, nigiri) == 3


def test_unknown_product(db, products):
    with pytest.raises(NotFoundError, match="Product with ID missing not found"):
        stock.reserve(db, [("missing", 1)])


def test_inactive_product(db):
    category = make_category(db)
    hidden = make_product(db, category, name="Hidden", stock=5, is_active=False)
    with pytest.raises(BadRequestError, match="Product Hidden is not available"):
        stock.reserve(db, [(hidden.id, 1)])


def test_release_restores_and_skips_deleted_products(db, products):
    roll, _ = products
    restored = stock.release(db, [(roll.id, 5), ("deleted-product", 2)])
    db.commit()
    assert restored == 1
    assert _stock(db, roll) == 15
