"""Order status and payment-status rules."""
from storefront.core.errors import BadRequestError
from storefront.models.enums import OrderStatus, PaymentStatus

HAPPY_PATH = (
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.DELIVERED,
)
TERMINAL = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})
OWNER_CANCELLABLE = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED})


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL


def can_cancel(status: OrderStatus, is_admin: bool) -> bool:
    if is_terminal(status):
        return False
    return is_admin or status in OWNER_CANCELLABLE


def ensure_cancellable(status: OrderStatus, is_admin: bool) -> None:
    if status == OrderStatus.DELIVERED:
        raise BadRequestError("Cannot cancel delivered order")
    if status == OrderStatus.CANCELLED:
        raise BadRequestError("Order is already cancelled")
    if not can_cancel(status, is_admin):
        raise BadRequestError("Order can no longer be cancelled")


def ensure_payable(status: OrderStatus, payment_status: PaymentStatus) -> None:
    if payment_status == PaymentStatus.PAID:
        raise BadRequestError("Order is already paid")
    if status == OrderStatus.CANCELLED:
        raise BadRequestError("Cannot pay for a cancelled order")


def status_after_payment(status: OrderStatus) -> OrderStatus:
    return OrderStatus.CONFIRMED if status == OrderStatus.PENDING else status


def is_valid_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """Forward moves along the happy path, or cancellation before delivery."""
    if current == target:
        return True
    if target == OrderStatus.CANCELLED:
        return not is_terminal(current)
    if current in TERMINAL:
        return False
    return HAPPY_PATH.index(target) > HAPPY_PATH.index(current)


def ensure_transition(current: OrderStatus, target: OrderStatus) -> None:
    if not is_valid_transition(current, target):
        raise BadRequestError(f"Cannot change order status from {current.value} to {target.value}")
