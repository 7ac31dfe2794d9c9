from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from storefront.core.errors import ConflictError
from storefront.models.orm import Order

PREFIX = "SW"
SEQUENCE_DIGITS = 4
MAX_SEQUENCE = 10 ** SEQUENCE_DIGITS - 1


def order_number_prefix(now: datetime) -> str:
    return f"{PREFIX}-{now:%y%m}"


def format_order_number(now: datetime, sequence: int) -> str:
    return f"{order_number_prefix(now)}{sequence:0{SEQUENCE_DIGITS}d}"


def parse_sequence(order_number: str) -> int:
    return int(order_number[-SEQUENCE_DIGITS:])


def next_order_number(db: Session, now: datetime) -> str:
    """Greatest number issued this year-month, plus one.

    Not safe on its own under concurrent checkouts; the unique constraint on
    orders.order_number catches the collision and the caller retries.
    """
    prefix = order_number_prefix(now)
    last: Optional[str] = (
        db.query(Order.order_number)
        .filter(Order.order_number.like(f"{prefix}%"))
        .order_by(Order.order_number.desc())
        .limit(1)
        .scalar()
    )
    sequence = parse_sequence(last) + 1 if last else 1
    if sequence > MAX_SEQUENCE:
        raise ConflictError(f"Order number sequence exhausted for {prefix}")
    return format_order_number(now, sequence)
