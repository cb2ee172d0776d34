from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Product, User, WishlistItem
from ..time_utils import to_utc_z
from ..validation import ConflictError, NotFoundError, ValidationError, parse_positive_int


def get_wishlist(user_id: int) -> list[dict]:
    items = (
        db.session.query(WishlistItem)
        .filter(WishlistItem.user_id == user_id)
        .order_by(WishlistItem.created_at.desc(), WishlistItem.id.desc())
        .all()
    )
    return [item.to_dict() for item in items]


def add_item(user_id: int, product_id) -> WishlistItem:
    if product_id in (None, ""):
        raise ValidationError("Product ID is required")
    product_id = parse_positive_int(product_id, "product_id")

    if not db.session.get(Product, product_id):
        raise NotFoundError("Product not found")

    existing = db.session.query(WishlistItem).filter_by(user_id=user_id, product_id=product_id).first()
    if existing:
        raise ConflictError("Product already in wishlist")

    item = WishlistItem(user_id=user_id, product_id=product_id)
    db.session.add(item)
    try:
        db.session.commit()
    except IntegrityError:
        # Lost a race against a concurrent add of the same pair
        db.session.rollback()
        raise ConflictError("Product already in wishlist")
    return item


def remove_item(user_id: int, item_id: int) -> None:
    item = db.session.query(WishlistItem).filter_by(id=item_id, user_id=user_id).first()
    if not item:
        raise NotFoundError("Wishlist item not found")
    db.session.delete(item)
    db.session.commit()


def remove_product(user_id: int, product_id: int) -> None:
    item = db.session.query(WishlistItem).filter_by(user_id=user_id, product_id=product_id).first()
    if not item:
        raise NotFoundError("Wishlist item not found")
    db.session.delete(item)
    db.session.commit()


def admin_overview(search: str | None = None) -> dict:
    """
    All wishlists grouped per customer, with aggregate stats.

    search matches customer name or email (case-insensitive).
    """
    query = db.session.query(WishlistItem).join(User, WishlistItem.user_id == User.id)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(User.name.ilike(pattern), User.email.ilike(pattern)))

    items = query.order_by(WishlistItem.created_at.desc(), WishlistItem.id.desc()).all()

    grouped: dict[int, dict] = {}
    for item in items:
        entry = grouped.get(item.user_id)
        if entry is None:
            entry = grouped[item.user_id] = {
                "id": item.user_id,
                "customer": item.user.name or item.user.email,
                "email": item.user.email,
                "image": item.user.image,
                "products": [],
                "total_value_cents": 0,
                "_created": item.created_at,
                "_updated": item.created_at,
            }
        entry["products"].append({
            "id": item.id,
            "product_id": item.product_id,
            "product_name": item.product.name,
            "price_cents": item.product.price_cents,
            "image": item.product.primary_image_url,
        })
        entry["total_value_cents"] += item.product.price_cents
        if item.created_at < entry["_created"]:
            entry["_created"] = item.created_at
        if item.created_at > entry["_updated"]:
            entry["_updated"] = item.created_at

    wishlists = []
    for entry in grouped.values():
        entry["items"] = len(entry["products"])
        entry["created_at"] = to_utc_z(entry.pop("_created"))
        entry["last_updated"] = to_utc_z(entry.pop("_updated"))
        wishlists.append(entry)

    total_wishlists = len(wishlists)
    total_items = sum(w["items"] for w in wishlists)
    return {
        "wishlists": wishlists,
        "stats": {
            "total_wishlists": total_wishlists,
            "total_items": total_items,
            "total_value_cents": sum(w["total_value_cents"] for w in wishlists),
            "avg_items": round(total_items / total_wishlists, 1) if total_wishlists else 0,
            "active_users": total_wishlists,
        },
    }
