from decimal import Decimal
from types import SimpleNamespace

import pytest

from storefront.services.pricing import (
    DELIVERY_FEE,
    PricedLine,
    calculate_totals,
    clamp_cart,
    delivery_fee,
    price_lines,
)


def _product(pid, price, stock, is_active=True):
    return SimpleNamespace(id=pid, price=Decimal(price), stock_quantity=stock, is_active=is_active)


@pytest.mark.parametrize("subtotal, expected", [
    ("0.01", DELIVERY_FEE),
    ("999.99", DELIVERY_FEE),
    ("1000", Decimal("0")),
    ("2500.50", Decimal("0")),
])
def test_delivery_fee_threshold(subtotal, expected):
    assert delivery_fee(Decimal(subtotal)) == expected


def test_empty_cart_is_all_zeros():
    totals = calculate_totals([])
    assert totals.subtotal == totals.delivery_fee == totals.total == Decimal("0")
    assert totals.item_count == 0


def test_total_is_subtotal_plus_fee_minus_discount():
    lines = [PricedLine("a", Decimal("120.50"), 3), PricedLine("b", Decimal("99.99"), 1)]
    totals = calculate_totals(lines, discount=Decimal("10"))
    assert totals.subtotal == Decimal("461.49")
    assert totals.delivery_fee == Decimal("150")
    assert totals.total == totals.subtotal + totals.delivery_fee - totals.discount
    assert totals.item_count == 4


def test_custom_threshold_and_fee():
    totals = calculate_totals([PricedLine("a", Decimal("300"), 1)], threshold=Decimal("200"), fee=Decimal("99"))
    assert totals.delivery_fee == Decimal("0")
    totals = calculate_totals([PricedLine("a", Decimal("100"), 1)], threshold=Decimal("200"), fee=Decimal("99"))
    assert totals.delivery_fee == Decimal("99")


def test_clamped_cart_gets_free_delivery():
    products = {"roll": _product("roll", "450", 100), "nigiri": _product("nigiri", "120", 5)}
    lines = clamp_cart([("roll", 1), ("nigiri", 10)], products)

    assert [(p.id, q) for p, q in lines] == [("roll", 1), ("nigiri", 5)]
    totals = calculate_totals(price_lines(lines))
    assert totals.subtotal == Decimal("1050")
    assert totals.delivery_fee == Decimal("0")
    assert totals.total == Decimal("1050")


def test_clamp_skips_missing_inactive_and_out_of_stock():
    products = {
        "gone": _product("gone", "10", 0),
        "hidden": _product("hidden", "10", 5, is_active=False),
        "ok": _product("ok", "10", 2),
    }
    lines = clamp_cart([("unknown", 1), ("gone", 3), ("hidden", 1), ("ok", 1)], products)
    assert [(p.id, q) for p, q in lines] == [("ok", 1)]
