"""
Saved shipping addresses.

INVARIANT: at most one default address per user. Clearing the old default
and setting the new one share a single commit.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Address
from ..validation import (
    DependencyConflictError,
    ModelValidationPolicy,
    NotFoundError,
    validate_payload,
)
from . import permission_service


ADDRESS_POLICY = ModelValidationPolicy(
    writable_fields={
        "first_name", "last_name", "street", "city", "state",
        "postal_code", "country", "phone", "is_default",
    },
    required_on_create={"first_name", "last_name", "street", "city", "state", "postal_code", "phone"},
)


def _clear_defaults(user_id: int, *, keep_id: int | None = None) -> None:
    query = db.session.query(Address).filter(Address.user_id == user_id, Address.is_default.is_(True))
    if keep_id is not None:
        query = query.filter(Address.id != keep_id)
    query.update({Address.is_default: False}, synchronize_session=False)


def list_addresses(user) -> list[dict]:
    """Admins see every address (with owner); customers see their own. Default first."""
    query = db.session.query(Address)
    admin = permission_service.is_admin(user)
    if not admin:
        query = query.filter(Address.user_id == user.id)
    addresses = query.order_by(Address.is_default.desc(), Address.id.asc()).all()
    return [a.to_dict(include_user=admin) for a in addresses]


def create_address(user_id: int, payload: dict) -> Address:
    patch = validate_payload(model=Address, payload=payload, policy=ADDRESS_POLICY, partial=False)
    patch.setdefault("country", None)
    if not patch["country"]:
        patch["country"] = current_app.config["DEFAULT_COUNTRY"]
    patch["is_default"] = bool(patch.get("is_default", False))

    if patch["is_default"]:
        _clear_defaults(user_id)

    address = Address(user_id=user_id, **patch)
    db.session.add(address)
    db.session.commit()
    return address


def _owned_address(user_id: int, address_id: int) -> Address:
    address = db.session.query(Address).filter_by(id=address_id, user_id=user_id).first()
    if not address:
        raise NotFoundError("Address not found")
    return address


def update_address(user_id: int, address_id: int, payload: dict) -> Address:
    address = _owned_address(user_id, address_id)
    patch = validate_payload(model=Address, payload=payload, policy=ADDRESS_POLICY, partial=False)
    if not patch.get("country"):
        patch["country"] = current_app.config["DEFAULT_COUNTRY"]
    patch["is_default"] = bool(patch.get("is_default", False))

    if patch["is_default"]:
        _clear_defaults(user_id, keep_id=address.id)

    for key, value in patch.items():
        setattr(address, key, value)

    db.session.commit()
    return address


def delete_address(user_id: int, address_id: int) -> None:
    address = _owned_address(user_id, address_id)

    order_count = address.orders.count()
    if order_count:
        raise DependencyConflictError(
            "Cannot delete address that is associated with orders",
            count=order_count,
            count_key="order_count",
        )

    db.session.delete(address)
    db.session.commit()


def default_address(user_id: int) -> Address | None:
    return db.session.query(Address).filter_by(user_id=user_id, is_default=True).first()
