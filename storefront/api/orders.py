from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session, selectinload

from storefront.api.deps import get_admin_user, get_current_user, get_optional_user, get_settings
from storefront.api.responses import page_meta, success
from storefront.core.config import Settings
from storefront.core.errors import NotFoundError, PermissionDeniedError
from storefront.core.permissions import is_admin
from storefront.db.session import get_db
from storefront.models.enums import OrderStatus, PaymentStatus
from storefront.models.orm import Order, User
from storefront.models.schemas import OrderCreate, OrderOut, OrderUpdate
from storefront.services import orders_service
from storefront.services.payments import MockPaymentGateway, get_payment_gateway

router = APIRouter()


def _order_query(db: Session):
    return db.query(Order).options(selectinload(Order.items))


def _paginate(query, page: int, limit: int):
    total = query.count()
    orders = (
        query.options(selectinload(Order.items))
        .order_by(Order.created_at.desc(), Order.order_number.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return [OrderOut.model_validate(o) for o in orders], page_meta(page, limit, total)


@router.get("")
def list_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    payment_status: Optional[PaymentStatus] = Query(None, alias="paymentStatus"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    query = db.query(Order)
    if status_filter is not None:
        query = query.filter(Order.status == status_filter)
    if payment_status is not None:
        query = query.filter(Order.payment_status == payment_status)
    orders, meta = _paginate(query, page, limit)
    return success(orders, meta=meta)


@router.get("/my-orders")
def my_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    orders, meta = _paginate(db.query(Order).filter(Order.user_id == user.id), page, limit)
    return success(orders, meta=meta)


@router.get("/{order_id}")
def get_order(order_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    order = _order_query(db).filter(Order.id == order_id).first()
    if order is None:
        raise NotFoundError("Order not found")
    if order.user_id != user.id and not is_admin(user.role):
        raise PermissionDeniedError("Not authorized to view this order")
    return success({"order": OrderOut.model_validate(order)})


@router.post("", status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreate,
    db: Session = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
    settings: Settings = Depends(get_settings),
):
    order = orders_service.create_order(db, payload, user, settings)
    return success({"order": OrderOut.model_validate(order)}, "Order created successfully")


@router.put("/{order_id}")
def update_order(
    order_id: str,
    payload: OrderUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user),
    settings: Settings = Depends(get_settings),
):
    order = orders_service.admin_update_order(
        db, order_id, payload, admin, strict=settings.STRICT_ADMIN_TRANSITIONS,
    )
    return success({"order": OrderOut.model_validate(order)}, "Order updated successfully")


@router.post("/{order_id}/cancel")
def cancel_order(order_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    order = orders_service.cancel_order(db, order_id, user)
    return success({"order": OrderOut.model_validate(order)}, "Order cancelled successfully")


@router.post("/{order_id}/pay")
def pay_order(
    order_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    gateway: MockPaymentGateway = Depends(get_payment_gateway),
):
    order = orders_service.pay_order(db, order_id, user, gateway)
    return success({"order": OrderOut.model_validate(order)}, "Payment processed successfully")
