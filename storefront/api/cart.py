from decimal import Decimal
from typing import Dict

from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session, joinedload

from storefront.api.deps import get_settings
from storefront.api.responses import failure, success
from storefront.core.config import Settings
from storefront.core.errors import BadRequestError
from storefront.db.session import get_db
from storefront.models.orm import Product
from storefront.models.schemas import CartIn, CartLineOut, CartOut, CartTotalsOut, ProductOut
from storefront.services.pricing import calculate_totals, clamp_cart, price_lines

router = APIRouter()


def _load_products(db: Session, cart: CartIn) -> Dict[str, Product]:
    ids = {item.product_id for item in cart.items}
    if not ids:
        return {}
    rows = db.query(Product).options(joinedload(Product.category)).filter(Product.id.in_(ids)).all()
    return {p.id: p for p in rows}


@router.post("")
def view_cart(cart: CartIn, db: Session = Depends(get_db)):
    """Re-price a client-held cart against current products and stock."""
    products = _load_products(db, cart)
    lines = clamp_cart([(i.product_id, i.quantity) for i in cart.items], products)
    total = sum((line.line_total for line in price_lines(lines)), Decimal("0"))
    return success(CartOut(
        items=[
            CartLineOut(product_id=product.id, quantity=qty, product=ProductOut.model_validate(product))
            for product, qty in lines
        ],
        total=total,
    ))


@router.post("/validate")
def validate_cart(cart: CartIn, db: Session = Depends(get_db)):
    if not cart.items:
        raise BadRequestError("Cart is empty")

    products = _load_products(db, cart)
    errors, valid_items = [], []
    for item in cart.items:
        product = products.get(item.product_id)
        if product is None:
            errors.append({"productId": item.product_id, "message": "Product not found"})
        elif not product.is_active:
            errors.append({"productId": item.product_id, "productName": product.name,
                           "message": "Product is not available"})
        elif product.stock_quantity < item.quantity:
            errors.append({"productId": item.product_id, "productName": product.name,
                           "message": f"Insufficient stock. Available: {product.stock_quantity}"})
        else:
            valid_items.append({"productId": product.id, "quantity": item.quantity,
                                "name": product.name, "price": float(product.price)})

    if errors:
        body = failure("Cart validation failed", errors)
        body["validItems"] = valid_items
        return JSONResponse(status_code=400, content=jsonable_encoder(body))
    return success({"items": valid_items}, "Cart is valid")


@router.post("/totals")
def cart_totals(cart: CartIn, db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    products = _load_products(db, cart)
    lines = clamp_cart([(i.product_id, i.quantity) for i in cart.items], products)
    totals = calculate_totals(
        price_lines(lines),
        threshold=Decimal(settings.FREE_DELIVERY_THRESHOLD),
        fee=Decimal(settings.DELIVERY_FEE),
    )
    return success(CartTotalsOut(
        subtotal=totals.subtotal,
        delivery_fee=totals.delivery_fee,
        discount=totals.discount,
        total=totals.total,
        item_count=totals.item_count,
    ))
