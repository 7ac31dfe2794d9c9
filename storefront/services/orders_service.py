import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.core.config import Settings
from storefront.core.errors import BadRequestError, NotFoundError, PermissionDeniedError
from storefront.core.permissions import is_admin
from storefront.models.enums import OrderStatus, PaymentStatus
from storefront.models.orm import Order, OrderItem, User
from storefront.models.schemas import OrderCreate, OrderUpdate
from storefront.services import order_state, stock
from storefront.services.order_numbers import next_order_number
from storefront.services.payments import MockPaymentGateway
from storefront.services.pricing import ZERO, PricedLine, calculate_totals

logger = logging.getLogger(__name__)


def _place_order(db: Session, payload: OrderCreate, user: Optional[User], settings: Settings, now: datetime) -> Order:
    lines = [(item.product_id, item.quantity) for item in payload.items]
    products = stock.reserve(db, lines)

    priced = [PricedLine(product_id=pid, price=Decimal(products[pid].price), quantity=qty) for pid, qty in lines]
    totals = calculate_totals(
        priced,
        threshold=Decimal(settings.FREE_DELIVERY_THRESHOLD),
        fee=Decimal(settings.DELIVERY_FEE),
    )

    order = Order(
        order_number=next_order_number(db, now),
        user_id=user.id if user else None,
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=payload.email,
        phone=payload.phone,
        address=payload.address,
        payment_method=payload.payment_method,
        customer_note=payload.customer_note,
        status=OrderStatus.PENDING,
        payment_status=PaymentStatus.PENDING,
        subtotal=totals.subtotal,
        delivery_fee=totals.delivery_fee,
        discount=ZERO,
        total=totals.total,
    )
    order.items = [
        OrderItem(
            position=position,
            product_id=pid,
            product_name=products[pid].name,
            product_image=products[pid].image,
            price=products[pid].price,
            quantity=qty,
        )
        for position, (pid, qty) in enumerate(lines)
    ]
    db.add(order)
    db.flush()
    return order


def create_order(
    db: Session,
    payload: OrderCreate,
    user: Optional[User],
    settings: Settings,
    now: Optional[datetime] = None,
) -> Order:
    """Reserve stock and insert the order in one transaction.

    A clash on the order number rolls everything back (stock included) and
    the whole transaction is tried again.
    """
    attempts = max(1, settings.ORDER_NUMBER_MAX_RETRIES)
    for attempt in range(1, attempts + 1):
        try:
            order = _place_order(db, payload, user, settings, now or datetime.now(timezone.utc))
            db.commit()
        except IntegrityError:
            db.rollback()
            if attempt == attempts:
                raise
            logger.warning("Order number collision, retrying (attempt %d of %d)", attempt, attempts)
            continue
        except Exception:
            db.rollback()
            raise

        logger.info(
            "Order created: %s (%s) user=%s total=%s",
            order.order_number, order.id, order.user_id, order.total,
        )
        return order


def _lock_order(db: Session, order_id: str) -> Order:
    order = db.query(Order).filter(Order.id == order_id).with_for_update().first()
    if order is None:
        raise NotFoundError("Order not found")
    return order


def _mark_cancelled(db: Session, order: Order) -> None:
    # the status guard makes a second cancel a no-op, so stock is released once
    switched = (
        db.query(Order)
        .filter(Order.id == order.id, Order.status != OrderStatus.CANCELLED)
        .update({Order.status: OrderStatus.CANCELLED}, synchronize_session="fetch")
    )
    if switched != 1:
        raise BadRequestError("Order is already cancelled")
    stock.release(db, [(item.product_id, item.quantity) for item in order.items])


def cancel_order(db: Session, order_id: str, user: User) -> Order:
    try:
        order = _lock_order(db, order_id)
        admin = is_admin(user.role)
        if not admin and order.user_id != user.id:
            raise PermissionDeniedError("Not authorized to cancel this order")
        order_state.ensure_cancellable(order.status, admin)
        _mark_cancelled(db, order)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Order cancelled: %s by user %s", order.order_number, user.id)
    return order


def pay_order(db: Session, order_id: str, user: User, gateway: MockPaymentGateway) -> Order:
    try:
        order = _lock_order(db, order_id)
        if order.user_id != user.id and not is_admin(user.role):
            raise PermissionDeniedError("Not authorized to process payment for this order")
        order_state.ensure_payable(order.status, order.payment_status)
    except Exception:
        db.rollback()
        raise

    if not gateway.charge(order):
        order.payment_status = PaymentStatus.FAILED
        db.commit()
        logger.warning("Payment failed for order %s", order.order_number)
        raise BadRequestError("Payment failed")

    order.payment_status = PaymentStatus.PAID
    order.status = order_state.status_after_payment(order.status)
    db.commit()
    logger.info("Payment processed for order %s, amount %s", order.order_number, order.total)
    return order


def admin_update_order(db: Session, order_id: str, payload: OrderUpdate, admin: User, strict: bool = False) -> Order:
    """Operator overwrite of status, payment status, note and discount.

    With `strict` the status move must follow the state machine. A move into
    CANCELLED always gives the stock back, so a delivered order cannot be
    cancelled; a cancelled order is never reopened.
    """
    changes = payload.model_dump(exclude_unset=True)
    try:
        order = _lock_order(db, order_id)

        target = changes.get("status")
        if target is not None and target != order.status:
            if order.status == OrderStatus.CANCELLED:
                raise BadRequestError("Cancelled orders cannot be reopened")
            if strict:
                order_state.ensure_transition(order.status, target)
            if target == OrderStatus.CANCELLED:
                order_state.ensure_cancellable(order.status, is_admin=True)
                _mark_cancelled(db, order)
            else:
                order.status = target

        if changes.get("payment_status") is not None:
            order.payment_status = changes["payment_status"]
        if "admin_note" in changes:
            order.admin_note = changes["admin_note"]
        if changes.get("discount") is not None:
            discount = Decimal(changes["discount"])
            if discount > Decimal(order.subtotal) + Decimal(order.delivery_fee):
                raise BadRequestError("Discount cannot exceed the order amount")
            order.discount = discount
            order.recalculate_total()

        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Order updated: %s status=%s payment=%s by admin %s",
        order.order_number, order.status.value, order.payment_status.value, admin.id,
    )
    return order
