"""
Authorization policy.

The storefront has two roles. Admin routes check is_admin(g.current_user);
nothing else in the codebase compares emails or role strings directly.
"""

from ..models.auth import ROLE_ADMIN


def is_admin(user) -> bool:
    return bool(user is not None and user.is_active and user.role == ROLE_ADMIN)


def can_access_order(user, order) -> bool:
    """Owner (by account or by guest email) or an admin."""
    if user is None:
        return False
    if is_admin(user):
        return True
    if order.user_id is not None and order.user_id == user.id:
        return True
    return bool(order.guest_email) and order.guest_email.lower() == (user.email or "").lower()
