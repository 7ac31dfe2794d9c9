from typing import Iterable, Optional

from storefront.models.enums import UserRole

ADMIN_ONLY = frozenset({UserRole.ADMIN})
ANY_USER = frozenset({UserRole.USER, UserRole.ADMIN})


def check_permission(role: Optional[UserRole], allowed_roles: Iterable[UserRole]) -> bool:
    """True when a caller holding `role` may act where `allowed_roles` are required."""
    if role is None:
        return False
    return UserRole(role) in set(allowed_roles)


def is_admin(role: Optional[UserRole]) -> bool:
    return check_permission(role, ADMIN_ONLY)
