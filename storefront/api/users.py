import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.api.deps import get_admin_user, get_current_user
from storefront.api.responses import page_meta, success
from storefront.core.errors import BadRequestError, NotFoundError
from storefront.core.security import hash_password, verify_password
from storefront.db.session import get_db
from storefront.models.enums import UserRole
from storefront.models.orm import User
from storefront.models.schemas import PasswordUpdateIn, ProfileUpdateIn, RoleUpdateIn, UserOut
from storefront.services import tokens as token_service

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_user_or_404(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


@router.get("")
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    query = db.query(User)
    total = query.count()
    users = query.order_by(User.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return success([UserOut.model_validate(u) for u in users], meta=page_meta(page, limit, total))


# fixed paths are declared before /{user_id}
@router.put("/profile")
def update_profile(
    payload: ProfileUpdateIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    changes = payload.model_dump(exclude_unset=True)
    for field in ("first_name", "last_name"):
        if changes.get(field) is not None:
            setattr(user, field, changes[field])
    # a blank phone or address clears it
    for field in ("phone", "address"):
        if field in changes:
            setattr(user, field, changes[field] or None)
    db.commit()

    logger.info("User profile updated: %s", user.id)
    return success({"user": UserOut.model_validate(user)}, "Profile updated successfully")


@router.put("/password")
def update_password(
    payload: PasswordUpdateIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not verify_password(payload.current_password, user.password):
        raise BadRequestError("Current password is incorrect")

    user.password = hash_password(payload.new_password)
    # every other session has to log in again with the new password
    token_service.revoke_all(db, user.id)
    db.commit()

    logger.info("User password updated: %s", user.id)
    return success(message="Password updated successfully")


@router.get("/{user_id}")
def get_user(user_id: str, db: Session = Depends(get_db), admin: User = Depends(get_admin_user)):
    return success({"user": UserOut.model_validate(_get_user_or_404(db, user_id))})


@router.put("/{user_id}/role")
def update_role(
    user_id: str,
    payload: RoleUpdateIn,
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    if user_id == admin.id and payload.role != UserRole.ADMIN:
        raise BadRequestError("Cannot change your own role")

    user = _get_user_or_404(db, user_id)
    user.role = payload.role
    db.commit()

    logger.info("User role updated: %s -> %s by admin %s", user.id, user.role.value, admin.id)
    return success({"user": UserOut.model_validate(user)}, "User role updated successfully")


@router.delete("/{user_id}")
def delete_user(user_id: str, db: Session = Depends(get_db), admin: User = Depends(get_admin_user)):
    if user_id == admin.id:
        raise BadRequestError("Cannot delete your own account")

    user = _get_user_or_404(db, user_id)
    db.delete(user)
    db.commit()

    logger.info("User deleted: %s by admin %s", user_id, admin.id)
    return success(message="User deleted successfully")
