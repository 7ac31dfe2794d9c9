import logging
from typing import Dict, Iterable, Sequence, Tuple

from sqlalchemy import update
from sqlalchemy.orm import Session

from storefront.core.errors import BadRequestError, NotFoundError
from storefront.models.orm import Product

logger = logging.getLogger(__name__)


def lock_products(db: Session, product_ids: Iterable[str]) -> Dict[str, Product]:
    # fixed lock order so two orders over the same products cannot deadlock
    ids = sorted(set(product_ids))
    if not ids:
        return {}
    rows = (
        db.query(Product)
        .filter(Product.id.in_(ids))
        .order_by(Product.id)
        .with_for_update()
        .all()
    )
    return {p.id: p for p in rows}


def check_line(product_id: str, product: Product, quantity: int) -> None:
    if product is None:
        raise NotFoundError(f"Product with ID {product_id} not found")
    if not product.is_active:
        raise BadRequestError(f"Product {product.name} is not available")
    if product.stock_quantity < quantity:
        raise BadRequestError(f"Insufficient stock for {product.name}. Available: {product.stock_quantity}")


def reserve(db: Session, lines: Sequence[Tuple[str, int]]) -> Dict[str, Product]:
    """Decrement stock for every (product_id, quantity) line.

    Runs inside the caller's transaction and never commits. The first failing
    line raises, and the caller's rollback discards every decrement made so far.
    """
    products = lock_products(db, [product_id for product_id, _ in lines])

    for product_id, quantity in lines:
        product = products.get(product_id)
        check_line(product_id, product, quantity)
        result = db.execute(
            update(Product)
            .where(
                Product.id == product_id,
                Product.is_active.is_(True),
                Product.stock_quantity >= quantity,
            )
            .values(stock_quantity=Product.stock_quantity - quantity)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount != 1:
            db.refresh(product)
            raise BadRequestError(f"Insufficient stock for {product.name}. Available: {product.stock_quantity}")

    return products


def release(db: Session, lines: Iterable[Tuple[str, int]]) -> int:
    """Give stock back for every line; returns how many lines were restored."""
    lines = list(lines)
    lock_products(db, [product_id for product_id, _ in lines])

    restored = 0
    for product_id, quantity in lines:
        result = db.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(stock_quantity=Product.stock_quantity + quantity)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount != 1:
            logger.warning("Stock release skipped, product %s no longer exists", product_id)
            continue
        restored += 1
    return restored
