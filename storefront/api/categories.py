import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from slugify import slugify
from sqlalchemy import func
from sqlalchemy.orm import Session

from storefront.api.deps import get_admin_user
from storefront.api.responses import success
from storefront.core.errors import BadRequestError, ConflictError, NotFoundError
from storefront.db.session import get_db
from storefront.models.orm import Category, Product, User
from storefront.models.schemas import CategoryCreate, CategoryOut, CategoryUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


def _with_count(category: Category, product_count: int) -> CategoryOut:
    out = CategoryOut.model_validate(category)
    out.product_count = product_count
    return out


def _counted(db: Session):
    return (
        db.query(Category, func.count(Product.id))
        .outerjoin(Product, Product.category_id == Category.id)
        .group_by(Category.id)
    )


def _slug_taken(db: Session, slug: str, exclude_id: Optional[str] = None) -> bool:
    query = db.query(Category.id).filter(Category.slug == slug)
    if exclude_id:
        query = query.filter(Category.id != exclude_id)
    return query.first() is not None


def _make_slug(name: str) -> str:
    slug = slugify(name)
    if not slug:
        raise BadRequestError("Cannot derive a slug from this name, please provide one")
    return slug


@router.get("")
def list_categories(
    include_inactive: bool = Query(False, alias="includeInactive"),
    db: Session = Depends(get_db),
):
    query = _counted(db)
    if not include_inactive:
        query = query.filter(Category.is_active.is_(True))
    rows = query.order_by(Category.sort_order.asc(), Category.name.asc()).all()
    return success([_with_count(category, count) for category, count in rows])


@router.get("/{slug}")
def get_category(slug: str, db: Session = Depends(get_db)):
    row = _counted(db).filter(Category.slug == slug).first()
    if row is None:
        raise NotFoundError("Category not found")
    return success(_with_count(*row))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_category(
    payload: CategoryCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    slug = payload.slug or _make_slug(payload.name)
    if _slug_taken(db, slug):
        raise ConflictError("Category with this slug already exists")

    category = Category(**payload.model_dump(exclude={"slug"}), slug=slug)
    db.add(category)
    db.commit()

    logger.info("Category created: %s (%s)", category.name, category.id)
    return success({"category": _with_count(category, 0)}, "Category created successfully")


@router.put("/{category_id}")
def update_category(
    category_id: str,
    payload: CategoryUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    category = db.get(Category, category_id)
    if category is None:
        raise NotFoundError("Category not found")

    changes = payload.model_dump(exclude_unset=True)
    if changes.get("slug") and _slug_taken(db, changes["slug"], exclude_id=category.id):
        raise ConflictError("Category with this slug already exists")

    for field, value in changes.items():
        if value is None and field in ("name", "slug", "sort_order", "is_active"):
            continue
        setattr(category, field, value)
    db.commit()

    count = db.query(func.count(Product.id)).filter(Product.category_id == category.id).scalar()
    logger.info("Category updated: %s", category.id)
    return success({"category": _with_count(category, count)}, "Category updated successfully")


@router.delete("/{category_id}")
def delete_category(
    category_id: str,
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    category = db.get(Category, category_id)
    if category is None:
        raise NotFoundError("Category not found")
    if db.query(Product.id).filter(Product.category_id == category.id).first() is not None:
        raise BadRequestError("Cannot delete category with existing products")

    db.delete(category)
    db.commit()

    logger.info("Category deleted: %s", category_id)
    return success(message="Category deleted successfully")
