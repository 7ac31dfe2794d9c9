import logging
import math
from decimal import Decimal
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from slugify import slugify
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from storefront.api.deps import get_admin_user
from storefront.api.responses import page_meta, success
from storefront.core.errors import BadRequestError, ConflictError, NotFoundError
from storefront.db.session import get_db
from storefront.models.orm import Category, Product, User
from storefront.models.schemas import ProductCreate, ProductOut, ProductUpdate, StockUpdateIn

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_PAGE_SIZE = 12
MAX_PAGE_SIZE = 100
DEFAULT_FEATURED = 8

_SORT_COLUMNS = {
    "price": (Product.price, "asc"),
    "name": (Product.name, "asc"),
    "createdAt": (Product.created_at, "desc"),
}


def _product_query(db: Session):
    return db.query(Product).options(joinedload(Product.category))


def _get_product_or_404(db: Session, product_id: str) -> Product:
    product = _product_query(db).filter(Product.id == product_id).first()
    if product is None:
        raise NotFoundError("Product not found")
    return product


def _slug_taken(db: Session, slug: str, exclude_id: Optional[str] = None) -> bool:
    query = db.query(Product.id).filter(Product.slug == slug)
    if exclude_id:
        query = query.filter(Product.id != exclude_id)
    return query.first() is not None


def _ensure_category(db: Session, category_id: str) -> None:
    if db.get(Category, category_id) is None:
        raise NotFoundError("Category not found")


@router.get("")
def list_products(
    category_slug: Optional[str] = Query(None, alias="categorySlug"),
    min_price: Optional[Decimal] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[Decimal] = Query(None, alias="maxPrice", ge=0),
    is_new: Optional[bool] = Query(None, alias="isNew"),
    is_bestseller: Optional[bool] = Query(None, alias="isBestseller"),
    search: Optional[str] = Query(None, max_length=100),
    sort_by: Optional[Literal["price", "name", "createdAt"]] = Query(None, alias="sortBy"),
    sort_order: Optional[Literal["asc", "desc"]] = Query(None, alias="sortOrder"),
    include_inactive: bool = Query(False, alias="includeInactive"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    query = db.query(Product)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    if category_slug:
        query = query.join(Product.category).filter(Category.slug == category_slug)
    if min_price is not None:
        query = query.filter(Product.price >= min_price)
    if max_price is not None:
        query = query.filter(Product.price <= max_price)
    if is_new is not None:
        query = query.filter(Product.is_new.is_(is_new))
    if is_bestseller is not None:
        query = query.filter(Product.is_bestseller.is_(is_bestseller))
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Product.name.ilike(pattern), Product.description.ilike(pattern)))

    total = query.count()

    column, default_order = _SORT_COLUMNS.get(sort_by, (Product.created_at, "desc"))
    direction = sort_order or default_order
    order = column.asc() if direction == "asc" else column.desc()
    products = (
        query.options(joinedload(Product.category))
        .order_by(order, Product.id)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return success([ProductOut.model_validate(p) for p in products], meta=page_meta(page, limit, total))


@router.get("/featured")
def featured_products(
    limit: int = Query(DEFAULT_FEATURED, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    half = math.ceil(limit / 2)
    active = _product_query(db).filter(Product.is_active.is_(True))
    newest_first = (Product.created_at.desc(), Product.id)
    bestsellers = active.filter(Product.is_bestseller.is_(True)).order_by(*newest_first).limit(half).all()
    new_products = active.filter(Product.is_new.is_(True)).order_by(*newest_first).limit(half).all()
    return success({
        "bestsellers": [ProductOut.model_validate(p) for p in bestsellers],
        "newProducts": [ProductOut.model_validate(p) for p in new_products],
    })


@router.get("/slug/{slug}")
def get_product_by_slug(slug: str, db: Session = Depends(get_db)):
    product = _product_query(db).filter(Product.slug == slug).first()
    if product is None:
        raise NotFoundError("Product not found")
    return success({"product": ProductOut.model_validate(product)})


@router.get("/{product_id}")
def get_product(product_id: str, db: Session = Depends(get_db)):
    return success({"product": ProductOut.model_validate(_get_product_or_404(db, product_id))})


@router.post("", status_code=status.HTTP_201_CREATED)
def create_product(
    payload: ProductCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    slug = payload.slug or slugify(payload.name)
    if not slug:
        raise BadRequestError("Cannot derive a slug from this name, please provide one")
    if _slug_taken(db, slug):
        raise ConflictError("Product with this slug already exists")
    _ensure_category(db, payload.category_id)

    product = Product(**payload.model_dump(exclude={"slug"}), slug=slug)
    db.add(product)
    db.commit()

    logger.info("Product created: %s (%s)", product.name, product.id)
    return success({"product": ProductOut.model_validate(product)}, "Product created successfully")


@router.put("/{product_id}")
def update_product(
    product_id: str,
    payload: ProductUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    product = _get_product_or_404(db, product_id)
    changes = payload.model_dump(exclude_unset=True)

    if changes.get("slug") and _slug_taken(db, changes["slug"], exclude_id=product.id):
        raise ConflictError("Product with this slug already exists")
    if changes.get("category_id"):
        _ensure_category(db, changes["category_id"])

    # nullable columns may be cleared; the rest ignore an explicit null
    clearable = {"old_price", "image", "weight", "calories"}
    for field, value in changes.items():
        if value is None and field not in clearable:
            continue
        setattr(product, field, value)
    db.commit()
    db.refresh(product)

    logger.info("Product updated: %s", product.id)
    return success({"product": ProductOut.model_validate(product)}, "Product updated successfully")


@router.patch("/{product_id}/stock")
def update_stock(
    product_id: str,
    payload: StockUpdateIn,
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    product = _get_product_or_404(db, product_id)
    product.stock_quantity = payload.quantity
    db.commit()

    logger.info("Product stock updated: %s -> %d", product.id, payload.quantity)
    return success({"product": ProductOut.model_validate(product)}, "Stock updated successfully")


@router.delete("/{product_id}")
def delete_product(
    product_id: str,
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    product = db.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    db.delete(product)
    db.commit()

    logger.info("Product deleted: %s", product_id)
    return success(message="Product deleted successfully")
