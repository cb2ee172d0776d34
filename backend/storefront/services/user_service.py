from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Address, CartItem, Order, Review, User, WishlistItem
from ..time_utils import to_utc_z
from ..validation import ConflictError, ValidationError, require_fields
from . import address_service
from .auth_service import EMAIL_PATTERN, normalize_email


PROFILE_RECENT_ORDERS = 5


def get_profile(user: User) -> dict:
    """Account page payload: the user plus addresses, orders, wishlist, cart, reviews and stats."""
    addresses = (
        db.session.query(Address)
        .filter(Address.user_id == user.id)
        .order_by(Address.is_default.desc(), Address.id.asc())
        .all()
    )
    orders_query = db.session.query(Order).filter(Order.user_id == user.id)
    recent = (
        orders_query.order_by(Order.created_at.desc(), Order.id.desc())
        .limit(PROFILE_RECENT_ORDERS)
        .all()
    )
    wishlist = (
        db.session.query(WishlistItem)
        .filter(WishlistItem.user_id == user.id)
        .order_by(WishlistItem.created_at.desc(), WishlistItem.id.desc())
        .all()
    )
    cart = db.session.query(CartItem).filter(CartItem.user_id == user.id).all()
    reviews = (
        db.session.query(Review)
        .filter(Review.user_id == user.id)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .all()
    )

    data = user.to_dict()
    data.update({
        "addresses": [a.to_dict() for a in addresses],
        "orders": [
            {
                "id": o.id,
                "order_number": o.order_number,
                "status": o.status,
                "total_cents": o.total_cents,
                "created_at": to_utc_z(o.created_at),
            }
            for o in recent
        ],
        "wishlist": [w.to_dict() for w in wishlist],
        "cart": [c.to_dict() for c in cart],
        "reviews": [
            {
                "id": r.id,
                "rating": r.rating,
                "title": r.title,
                "comment": r.comment,
                "status": r.status,
                "created_at": to_utc_z(r.created_at),
                "product": {"id": r.product.id, "name": r.product.name, "slug": r.product.slug},
            }
            for r in reviews
        ],
        "stats": {
            "total_orders": orders_query.count(),
            "wishlist_count": len(wishlist),
            "cart_count": sum(c.quantity for c in cart),
            "reviews_count": len(reviews),
        },
    })
    return data


def update_profile(user: User, payload: dict) -> User:
    """
    name and email are required. A phone number, when given, is written to
    the default address (if the user has one).
    """
    require_fields(payload, "name", "email")
    name = str(payload["name"]).strip()
    email = normalize_email(str(payload["email"]))
    if not name:
        raise ValidationError("Name and email are required")
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("A valid email is required")

    if email != user.email:
        taken = db.session.query(User.id).filter(User.email == email, User.id != user.id).first()
        if taken:
            raise ConflictError("Email already taken")

    user.name = name
    user.email = email

    phone = payload.get("phone")
    if phone:
        default = address_service.default_address(user.id)
        if default is not None:
            default.phone = str(phone).strip()

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Email already taken")
    return user
