"""
Order lifecycle: checkout, status/payment-status transitions, cancel, delete.

STOCK:
Reservation is a single conditional UPDATE per line
(stock = stock - q WHERE id = :id AND stock >= q). A zero-row result rolls
back the whole checkout, so stock never goes negative and a partial order is
never written. Every path that moves an order into CANCELLED gives its stock
back; every path out of CANCELLED reserves it again.

TRANSITIONS:
Config.ORDER_STATUS_TRANSITIONS / PAYMENT_STATUS_TRANSITIONS map a current
value to the values it may move to. Setting the current value again is a
no-op and always allowed.
"""

from __future__ import annotations

import secrets
import string
import time

from flask import current_app
from sqlalchemy import func, update

from ..config import ORDER_STATUSES, PAYMENT_STATUSES
from ..extensions import db
from ..models import Address, GuestShippingAddress, Order, OrderItem, Product, User
from ..validation import (
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
    parse_positive_int,
    require_fields,
)
from . import cart_service, permission_service
from .concurrency import lock_for_update, run_with_retry
from .pagination import paginate


PAYMENT_CASH_ON_DELIVERY = "CASH_ON_DELIVERY"
PAYMENT_BKASH = "BKASH"
PAYMENT_CARD = "CARD"
PAYMENT_METHODS = (PAYMENT_CASH_ON_DELIVERY, PAYMENT_BKASH, PAYMENT_CARD)

STATUS_PENDING = "PENDING"
STATUS_CONFIRMED = "CONFIRMED"
STATUS_CANCELLED = "CANCELLED"
CANCELLABLE_STATUSES = {STATUS_PENDING, STATUS_CONFIRMED}

PAYMENT_PENDING = "PENDING"
PAYMENT_PROCESSING = "PROCESSING"
PAYMENT_COMPLETED = "COMPLETED"
PAYMENT_FAILED = "FAILED"
PAYMENT_REFUNDED = "REFUNDED"

GUEST_ADDRESS_FIELDS = ("first_name", "last_name", "street", "city", "state", "postal_code", "phone")

_BASE36 = string.digits + string.ascii_lowercase


def generate_order_number() -> str:
    """ORD-<epoch millis>-<9 random base36 chars>."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"ORD-{int(time.time() * 1000)}-{suffix}"


# --- stock -------------------------------------------------------------------

def _reserve_stock(product_id: int, quantity: int) -> bool:
    result = db.session.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock >= quantity)
        .values(stock=Product.stock - quantity)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _release_stock(product_id: int, quantity: int) -> None:
    db.session.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(stock=Product.stock + quantity)
        .execution_options(synchronize_session=False)
    )


def _reserve_items(items) -> None:
    for item in items:
        if not _reserve_stock(item.product_id, item.quantity):
            product = db.session.get(Product, item.product_id)
            name = product.name if product else f"product {item.product_id}"
            available = product.stock if product else 0
            raise InsufficientStockError(
                f"Insufficient stock for {name}. Available: {available}, Requested: {item.quantity}"
            )


def _release_items(items) -> None:
    for item in items:
        _release_stock(item.product_id, item.quantity)


# --- transitions ---------------------------------------------------------------

def _check_order_status(current: str, new) -> None:
    if new not in ORDER_STATUSES:
        raise ValidationError("Invalid status")
    if new == current:
        return
    allowed = current_app.config["ORDER_STATUS_TRANSITIONS"].get(current, set())
    if new not in allowed:
        raise ConflictError(f"Cannot change order status from {current} to {new}")


def _check_payment_status(current: str, new) -> None:
    if new not in PAYMENT_STATUSES:
        raise ValidationError("Invalid payment status")
    if new == current:
        return
    allowed = current_app.config["PAYMENT_STATUS_TRANSITIONS"].get(current, set())
    if new not in allowed:
        raise ConflictError(f"Cannot change payment status from {current} to {new}")


def _apply_status(order: Order, new_status: str) -> str | None:
    """
    Set order.status, moving stock when crossing the CANCELLED boundary.
    Returns "restored", "reduced" or None. Does not commit.
    """
    old_status = order.status
    if new_status == old_status:
        return None

    stock_effect = None
    if old_status != STATUS_CANCELLED and new_status == STATUS_CANCELLED:
        _release_items(order.items)
        stock_effect = "restored"
    elif old_status == STATUS_CANCELLED and new_status != STATUS_CANCELLED:
        _reserve_items(order.items)
        stock_effect = "reduced"

    order.status = new_status
    return stock_effect


def _locked_order(order_id: int) -> Order:
    order = lock_for_update(db.session.query(Order).filter(Order.id == order_id)).first()
    if not order:
        raise NotFoundError("Order not found")
    return order


def _run_in_transaction(op):
    """Run op() and commit once; anything that escapes rolls the whole unit back."""
    def _wrapped():
        try:
            result = op()
            db.session.commit()
            return result
        except Exception:
            db.session.rollback()
            raise
    return run_with_retry(_wrapped)


# --- checkout ------------------------------------------------------------------

def _amount(payload: dict, key: str) -> int:
    value = payload.get(key, 0)
    if value in (None, ""):
        return 0
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{key} must be a non-negative integer")
    return value


def _parse_lines(raw_items) -> list[dict]:
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("Order must contain at least one item")

    lines = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            raise ValidationError("Each item must be an object")
        if raw.get("product_id") in (None, ""):
            raise ValidationError("Each item requires product_id")
        lines.append({
            "product_id": parse_positive_int(raw["product_id"], "product_id"),
            "quantity": parse_positive_int(raw.get("quantity", 1), "quantity"),
            "color": str(raw.get("color") or "").strip(),
            "size": str(raw.get("size") or "").strip(),
        })
    return lines


def create_order(user: User | None, payload: dict) -> Order:
    """
    Checkout for a signed-in customer or a guest.

    Prices come from the catalog at checkout time. The cart of a signed-in
    customer is cleared in the same transaction as the order insert.

    Raises:
        ValidationError: bad or missing input
        NotFoundError: unknown product or shipping address
        InsufficientStockError: any line exceeds available stock
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    lines = _parse_lines(payload.get("items"))

    payment_method = payload.get("payment_method")
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")

    bkash = {"bkash_number": None, "bkash_reference": None, "bkash_transaction": None}
    if payment_method == PAYMENT_BKASH:
        if not payload.get("bkash_number"):
            raise ValidationError("bKash number is required for bKash payments")
        if not payload.get("bkash_reference"):
            raise ValidationError("bKash reference number is required for bKash payments")
        bkash = {
            "bkash_number": str(payload["bkash_number"]).strip(),
            "bkash_reference": str(payload["bkash_reference"]).strip(),
            "bkash_transaction": (str(payload.get("bkash_transaction") or "").strip() or None),
        }

    tax_cents = _amount(payload, "tax_cents")
    shipping_cents = _amount(payload, "shipping_cents")
    discount_cents = _amount(payload, "discount_cents")

    shipping_address_id = None
    guest_email = None
    guest_address = None
    if user is not None:
        if payload.get("shipping_address_id") in (None, ""):
            raise ValidationError("shipping_address_id is required")
        shipping_address_id = parse_positive_int(payload["shipping_address_id"], "shipping_address_id")
        owned = db.session.query(Address.id).filter_by(id=shipping_address_id, user_id=user.id).first()
        if not owned:
            raise NotFoundError("Shipping address not found")
    else:
        guest_email = (payload.get("guest_email") or "").strip().lower()
        guest_address = payload.get("guest_shipping_address")
        if not guest_email or not isinstance(guest_address, dict):
            raise ValidationError("Guest email and shipping address are required for guest checkout")
        require_fields(guest_address, *GUEST_ADDRESS_FIELDS)

    cash = payment_method == PAYMENT_CASH_ON_DELIVERY

    def _op() -> Order:
        items = []
        subtotal_cents = 0
        for line in lines:
            product = db.session.get(Product, line["product_id"])
            if not product:
                raise NotFoundError(f"Product not found: {line['product_id']}")
            item = OrderItem(
                product_id=product.id,
                quantity=line["quantity"],
                price_cents=product.price_cents,
                color=line["color"],
                size=line["size"],
            )
            subtotal_cents += product.price_cents * line["quantity"]
            items.append(item)

        _reserve_items(items)

        total_cents = subtotal_cents + tax_cents + shipping_cents - discount_cents
        if total_cents < 0:
            raise ValidationError("discount_cents cannot exceed the order amount")

        order = Order(
            order_number=generate_order_number(),
            user_id=user.id if user is not None else None,
            shipping_address_id=shipping_address_id,
            payment_method=payment_method,
            subtotal_cents=subtotal_cents,
            tax_cents=tax_cents,
            shipping_cents=shipping_cents,
            discount_cents=discount_cents,
            total_cents=total_cents,
            status=STATUS_PENDING if cash else STATUS_CONFIRMED,
            payment_status=PAYMENT_PENDING if cash else PAYMENT_PROCESSING,
            items=items,
            **bkash,
        )

        if guest_address is not None:
            order.guest_email = guest_email
            order.guest_shipping_address = GuestShippingAddress(
                first_name=str(guest_address["first_name"]).strip(),
                last_name=str(guest_address["last_name"]).strip(),
                street=str(guest_address["street"]).strip(),
                city=str(guest_address["city"]).strip(),
                state=str(guest_address["state"]).strip(),
                postal_code=str(guest_address["postal_code"]).strip(),
                country=(str(guest_address.get("country") or "").strip()
                         or current_app.config["DEFAULT_COUNTRY"]),
                phone=str(guest_address["phone"]).strip(),
                email=guest_email,
            )

        db.session.add(order)

        if user is not None:
            cart_service.clear_cart(user.id, commit=False)

        return order

    return _run_in_transaction(_op)


# --- queries -------------------------------------------------------------------

def _search_clause(search: str, admin: bool):
    pattern = f"%{search}%"
    address_match = db.or_(
        Address.city.ilike(pattern),
        Address.state.ilike(pattern),
        Address.street.ilike(pattern),
        Address.first_name.ilike(pattern),
        Address.last_name.ilike(pattern),
    )
    guest_match = db.or_(
        GuestShippingAddress.city.ilike(pattern),
        GuestShippingAddress.state.ilike(pattern),
        GuestShippingAddress.street.ilike(pattern),
        GuestShippingAddress.first_name.ilike(pattern),
        GuestShippingAddress.last_name.ilike(pattern),
        GuestShippingAddress.email.ilike(pattern),
    )
    clauses = [
        Order.order_number.ilike(pattern),
        Order.shipping_address.has(address_match),
        Order.guest_shipping_address.has(guest_match),
        Order.items.any(OrderItem.product.has(Product.name.ilike(pattern))),
    ]
    if admin:
        clauses.extend([
            Order.bkash_reference.ilike(pattern),
            Order.bkash_number.ilike(pattern),
            Order.bkash_transaction.ilike(pattern),
            Order.user.has(User.email.ilike(pattern)),
            Order.guest_email.ilike(pattern),
        ])
    return db.or_(*clauses)


def list_orders(
    user: User,
    *,
    search: str | None = None,
    status: str | None = None,
    payment_method: str | None = None,
    page: int | None = None,
    limit: int | None = None,
) -> dict:
    """
    Admins see every order; customers see orders they placed or that were
    placed as a guest with their email. Newest first.
    """
    admin = permission_service.is_admin(user)
    query = db.session.query(Order)

    if not admin:
        query = query.filter(db.or_(
            Order.user_id == user.id,
            func.lower(Order.guest_email) == (user.email or "").lower(),
        ))

    search = (search or "").strip()
    if search:
        query = query.filter(_search_clause(search, admin))

    if status and status != "ALL":
        query = query.filter(Order.status == status)
    if payment_method and payment_method != "ALL":
        query = query.filter(Order.payment_method == payment_method)

    query = query.order_by(Order.created_at.desc(), Order.id.desc())
    result = paginate(
        query,
        page=page,
        limit=limit,
        serialize=lambda o: o.to_dict(include_user=admin),
    )
    result["is_admin"] = admin
    return result


def get_order(user: User, order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if not order or not permission_service.can_access_order(user, order):
        raise NotFoundError("Order not found")
    return order


# --- mutations -----------------------------------------------------------------

def update_status(order_id: int, status) -> Order:
    """Admin: set the fulfilment status (stock follows the CANCELLED boundary)."""
    def _op() -> Order:
        order = _locked_order(order_id)
        _check_order_status(order.status, status)
        _apply_status(order, status)
        return order

    order = _run_in_transaction(_op)
    return get_order_view(order.id)


def update_payment_status(order_id: int, payment_status) -> Order:
    def _op() -> Order:
        order = _locked_order(order_id)
        _check_payment_status(order.payment_status, payment_status)
        order.payment_status = payment_status
        return order

    order = _run_in_transaction(_op)
    return get_order_view(order.id)


def get_order_view(order_id: int) -> Order:
    """Fresh read after a write, so serialized children reflect committed state."""
    order = db.session.get(Order, order_id, populate_existing=True)
    if not order:
        raise NotFoundError("Order not found")
    return order


def cancel_order(user: User, order_id: int) -> Order:
    """
    Owner or admin. Only PENDING/CONFIRMED orders can be cancelled.
    Payment becomes REFUNDED when it had completed, FAILED otherwise.
    """
    def _op() -> Order:
        order = _locked_order(order_id)
        if not permission_service.can_access_order(user, order):
            raise NotFoundError("Order not found")
        if order.status not in CANCELLABLE_STATUSES:
            raise ValidationError("Only orders with PENDING or CONFIRMED status can be cancelled.")

        _apply_status(order, STATUS_CANCELLED)
        order.payment_status = (
            PAYMENT_REFUNDED if order.payment_status == PAYMENT_COMPLETED else PAYMENT_FAILED
        )
        return order

    order = _run_in_transaction(_op)
    return get_order_view(order.id)


def admin_update_order(order_id: int, payload: dict) -> tuple[Order, str | None]:
    """
    Admin edit of status, payment_status and admin_notes in one transaction.

    Returns (order, stock_effect) where stock_effect is "restored", "reduced"
    or None.
    """
    status = payload.get("status") or None
    payment_status = payload.get("payment_status") or None
    has_notes = "admin_notes" in payload

    if not (status or payment_status or has_notes):
        raise ValidationError("Nothing to update")

    def _op():
        order = _locked_order(order_id)
        stock_effect = None
        if status is not None:
            _check_order_status(order.status, status)
        if payment_status is not None:
            _check_payment_status(order.payment_status, payment_status)

        if status is not None:
            stock_effect = _apply_status(order, status)
        if payment_status is not None:
            order.payment_status = payment_status
        if has_notes:
            notes = payload.get("admin_notes")
            order.admin_notes = str(notes).strip() if notes not in (None, "") else None
        return order, stock_effect

    order, stock_effect = _run_in_transaction(_op)
    return get_order_view(order.id), stock_effect


def delete_order(user: User, order_id: int) -> None:
    """
    Admins may delete any order; owners only PENDING ones.
    Stock is returned unless the order was already CANCELLED.
    """
    admin = permission_service.is_admin(user)

    def _op() -> None:
        order = _locked_order(order_id)
        if not permission_service.can_access_order(user, order):
            raise NotFoundError("Order not found")
        if not admin and order.status != STATUS_PENDING:
            raise ValidationError(
                "Only orders with PENDING status can be deleted. Please cancel the order instead."
            )

        if order.status != STATUS_CANCELLED:
            _release_items(order.items)

        guest_address = order.guest_shipping_address
        db.session.delete(order)
        if guest_address is not None:
            db.session.delete(guest_address)

    _run_in_transaction(_op)
