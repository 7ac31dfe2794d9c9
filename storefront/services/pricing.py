"""Cart pricing.

Pure functions over already-loaded products: nothing here touches the
database, so the same rules price the cart view, the cart totals and the
checkout.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Mapping, Sequence, Tuple

FREE_DELIVERY_THRESHOLD = Decimal("1000")
DELIVERY_FEE = Decimal("150")

ZERO = Decimal("0")


@dataclass(frozen=True)
class PricedLine:
    product_id: str
    price: Decimal
    quantity: int

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    delivery_fee: Decimal
    discount: Decimal
    total: Decimal
    item_count: int


def delivery_fee(
    subtotal: Decimal,
    threshold: Decimal = FREE_DELIVERY_THRESHOLD,
    fee: Decimal = DELIVERY_FEE,
) -> Decimal:
    return ZERO if Decimal(subtotal) >= Decimal(threshold) else Decimal(fee)


def clamp_cart(requested: Iterable[Tuple[str, int]], products: Mapping[str, object]) -> List[Tuple[object, int]]:
    """Match requested (product_id, quantity) pairs against authoritative products.

    Missing or inactive products are skipped; quantities are capped at the
    available stock and lines left with nothing are dropped.
    """
    lines = []
    for product_id, quantity in requested:
        product = products.get(product_id)
        if product is None or not product.is_active:
            continue
        effective = min(int(quantity), int(product.stock_quantity))
        if effective > 0:
            lines.append((product, effective))
    return lines


def calculate_totals(
    lines: Sequence[PricedLine],
    discount: Decimal = ZERO,
    threshold: Decimal = FREE_DELIVERY_THRESHOLD,
    fee: Decimal = DELIVERY_FEE,
) -> Totals:
    if not lines:
        return Totals(subtotal=ZERO, delivery_fee=ZERO, discount=ZERO, total=ZERO, item_count=0)

    subtotal = sum((line.line_total for line in lines), ZERO)
    shipping = delivery_fee(subtotal, threshold, fee)
    discount = Decimal(discount)
    return Totals(
        subtotal=subtotal,
        delivery_fee=shipping,
        discount=discount,
        total=subtotal + shipping - discount,
        item_count=sum(line.quantity for line in lines),
    )


def price_lines(lines: Iterable[Tuple[object, int]]) -> List[PricedLine]:
    return [PricedLine(product_id=product.id, price=Decimal(product.price), quantity=qty) for product, qty in lines]
