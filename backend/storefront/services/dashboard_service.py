"""
Back-office reporting: headline stats, revenue chart, and the customer list.

Revenue only counts orders whose payment_status is COMPLETED.
"""

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Address, Order, OrderItem, Product, Review, User
from ..models.auth import ROLE_CUSTOMER
from ..time_utils import month_start, to_utc_z, utcnow
from .pagination import paginate


REVENUE_PAYMENT_STATUS = "COMPLETED"
CHART_MONTHS = 6
TOP_PRODUCTS = 5
RECENT_ORDERS = 5


def _revenue_between(start, end=None) -> int:
    query = db.session.query(func.coalesce(func.sum(Order.total_cents), 0)).filter(
        Order.payment_status == REVENUE_PAYMENT_STATUS,
        Order.created_at >= start,
    )
    if end is not None:
        query = query.filter(Order.created_at < end)
    return int(query.scalar() or 0)


def revenue_change_percent(current: int, previous: int) -> float:
    """Month-over-month change, one decimal. 0.0 when there is no baseline."""
    if previous <= 0:
        return 0.0
    return round((current - previous) / previous * 100, 1)


def monthly_revenue(now=None) -> list[dict]:
    """Oldest month first, current month last."""
    now = now or utcnow()
    series = []
    for months_back in range(CHART_MONTHS - 1, -1, -1):
        start = month_start(now, months_back)
        end = month_start(now, months_back - 1) if months_back > 0 else None
        series.append({
            "month": start.strftime("%b"),
            "year": start.year,
            "revenue_cents": _revenue_between(start, end),
        })
    return series


def top_products(limit: int = TOP_PRODUCTS) -> list[dict]:
    quantity = func.sum(OrderItem.quantity).label("quantity")
    revenue = func.sum(OrderItem.quantity * OrderItem.price_cents).label("revenue_cents")
    rows = (
        db.session.query(OrderItem.product_id, quantity, revenue)
        .group_by(OrderItem.product_id)
        .order_by(quantity.desc(), OrderItem.product_id.asc())
        .limit(limit)
        .all()
    )

    result = []
    for product_id, qty, revenue_cents in rows:
        product = db.session.get(Product, product_id)
        result.append({
            "product_id": product_id,
            "name": product.name if product else "Unknown Product",
            "quantity": int(qty or 0),
            "revenue_cents": int(revenue_cents or 0),
        })
    return result


def recent_orders(limit: int = RECENT_ORDERS) -> list[dict]:
    orders = (
        db.session.query(Order)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "id": o.id,
            "order_number": o.order_number,
            "customer": o.customer_name,
            "date": to_utc_z(o.created_at),
            "amount_cents": o.total_cents,
            "status": o.status,
        }
        for o in orders
    ]


def get_dashboard(now=None) -> dict:
    now = now or utcnow()
    current = _revenue_between(month_start(now, 0))
    previous = _revenue_between(month_start(now, 1), month_start(now, 0))
    change = revenue_change_percent(current, previous)

    return {
        "stats": {
            "total_products": db.session.query(func.count(Product.id)).scalar(),
            "total_orders": db.session.query(func.count(Order.id)).scalar(),
            "total_customers": (
                db.session.query(func.count(User.id)).filter(User.role == ROLE_CUSTOMER).scalar()
            ),
            "total_revenue_cents": current,
            "revenue_change": change,
            "revenue_change_type": "positive" if change >= 0 else "negative",
        },
        "chart_data": {
            "monthly_revenue": monthly_revenue(now),
            "top_products": top_products(),
        },
        "recent_orders": recent_orders(),
    }


def _customer_row(user: User) -> dict:
    orders = user.orders.order_by(Order.created_at.desc(), Order.id.desc()).all()
    total_spent = sum(o.total_cents for o in orders)
    address = (
        db.session.query(Address)
        .filter(Address.user_id == user.id)
        .order_by(Address.is_default.desc(), Address.id.asc())
        .first()
    )
    fallback_name = address.full_name if address else ""
    review_count = db.session.query(func.count(Review.id)).filter(Review.user_id == user.id).scalar()

    return {
        "id": user.id,
        "name": user.name or fallback_name or "Unknown",
        "email": user.email,
        "image": user.image,
        "phone": address.phone if address else None,
        "total_orders": len(orders),
        "total_spent_cents": total_spent,
        "average_order_value_cents": total_spent // len(orders) if orders else 0,
        "joined": to_utc_z(user.created_at),
        "last_order": to_utc_z(orders[0].created_at) if orders else None,
        "reviews": review_count,
        "status": "ACTIVE" if orders else "INACTIVE",
    }


def list_customers(search: str | None = None, page: int | None = None, limit: int | None = None) -> dict:
    query = db.session.query(User).filter(User.role == ROLE_CUSTOMER)
    search = (search or "").strip()
    if search:
        pattern = f"%{search}%"
        query = query.filter(db.or_(User.name.ilike(pattern), User.email.ilike(pattern)))

    query = query.order_by(User.created_at.desc(), User.id.desc())
    result = paginate(query, page=page, limit=limit, serialize=_customer_row)

    customers = result["items"]
    result["active_customers"] = sum(1 for c in customers if c["status"] == "ACTIVE")
    result["total_revenue_cents"] = sum(c["total_spent_cents"] for c in customers)
    return result
