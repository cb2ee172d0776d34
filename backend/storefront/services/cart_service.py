"""
Cart/stock reconciliation.

INVARIANT: after any cart mutation, 1 <= CartItem.quantity <= Product.stock.
Over-requests on an existing line are clamped silently; only the first
insert for a (user, product, color, size) tuple can fail on stock.

CONCURRENCY: the product row is read with FOR UPDATE in the same transaction
as the cart write. Two requests racing to create the same line collide on
uq_cart_items_variant; the loser is retried and merges into the winner's row.
"""

from __future__ import annotations

from ..extensions import db
from ..models import CartItem, Product
from ..validation import (
    InsufficientStockError,
    NotFoundError,
    ValidationError,
    parse_positive_int,
)
from .concurrency import lock_for_update, retry_on_unique_race


def _variant(value) -> str:
    return (value or "").strip() if isinstance(value, str) else ""


def _locked_product(product_id: int) -> Product | None:
    return lock_for_update(db.session.query(Product).filter(Product.id == product_id)).first()


def get_cart(user_id: int) -> list[dict]:
    items = (
        db.session.query(CartItem)
        .filter(CartItem.user_id == user_id)
        .order_by(CartItem.created_at.desc(), CartItem.id.desc())
        .all()
    )
    return [item.to_dict() for item in items]


def add_item(user_id: int, product_id, quantity=1, color=None, size=None) -> CartItem:
    if product_id in (None, ""):
        raise ValidationError("Product ID is required")
    product_id = parse_positive_int(product_id, "product_id")
    quantity = parse_positive_int(1 if quantity is None else quantity, "quantity")
    color = _variant(color)
    size = _variant(size)

    def _op() -> CartItem:
        product = _locked_product(product_id)
        if not product:
            raise NotFoundError("Product not found")

        item = db.session.query(CartItem).filter_by(
            user_id=user_id,
            product_id=product_id,
            color=color,
            size=size,
        ).first()

        if item:
            if product.stock < 1:
                raise InsufficientStockError("Product is out of stock")
            item.quantity = min(item.quantity + quantity, product.stock)
        else:
            if product.stock < quantity:
                raise InsufficientStockError("Insufficient stock")
            item = CartItem(
                user_id=user_id,
                product_id=product_id,
                quantity=min(quantity, product.stock),
                color=color,
                size=size,
            )
            db.session.add(item)

        db.session.commit()
        return item

    return retry_on_unique_race(_op)


def update_quantity(user_id: int, item_id: int, quantity) -> CartItem:
    """Set an absolute quantity, clamped to stock. Never errors on over-request."""
    if quantity is None:
        raise ValidationError("Valid quantity is required")
    try:
        quantity = parse_positive_int(quantity, "quantity")
    except ValidationError:
        raise ValidationError("Valid quantity is required")

    item = lock_for_update(
        db.session.query(CartItem).filter(CartItem.id == item_id, CartItem.user_id == user_id)
    ).first()
    if not item:
        raise NotFoundError("Cart item not found")

    product = _locked_product(item.product_id)
    if product.stock < 1:
        raise InsufficientStockError("Product is out of stock")

    item.quantity = min(quantity, product.stock)
    db.session.commit()
    return item


def remove_item(user_id: int, item_id: int) -> None:
    item = db.session.query(CartItem).filter(
        CartItem.id == item_id,
        CartItem.user_id == user_id,
    ).first()
    if not item:
        raise NotFoundError("Cart item not found")
    db.session.delete(item)
    db.session.commit()


def clear_cart(user_id: int, *, commit: bool = True) -> int:
    deleted = db.session.query(CartItem).filter(
        CartItem.user_id == user_id
    ).delete(synchronize_session=False)
    if commit:
        db.session.commit()
    return deleted


def check_stock(items) -> dict:
    """
    Advisory availability check; nothing is locked or reserved.

    Missing products are reported only in out_of_stock_items. Products that
    exist appear in stock_results, and also in out_of_stock_items when short.
    """
    if not isinstance(items, list):
        raise ValidationError("Items array is required")

    stock_results = []
    out_of_stock_items = []

    for entry in items:
        if not isinstance(entry, dict):
            raise ValidationError("Each item must be an object")
        product_id = entry.get("product_id")
        requested = parse_positive_int(entry.get("quantity", 1), "quantity")

        try:
            product = db.session.get(Product, parse_positive_int(product_id, "product_id"))
        except ValidationError:
            product = None

        if not product:
            out_of_stock_items.append({
                "product_id": product_id,
                "name": entry.get("name"),
                "reason": "Product not found",
            })
            continue

        if product.stock < requested:
            out_of_stock_items.append({
                "product_id": product.id,
                "name": product.name,
                "available": product.stock,
                "requested": requested,
                "reason": "Insufficient stock",
            })

        stock_results.append({
            "product_id": product.id,
            "name": product.name,
            "available": product.stock,
            "requested": requested,
            "sufficient": product.stock >= requested,
        })

    return {
        "available": not out_of_stock_items,
        "stock_results": stock_results,
        "out_of_stock_items": out_of_stock_items,
    }
