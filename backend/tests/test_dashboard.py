"""
Back-office reporting tests: revenue counts COMPLETED payments only, the
six-month chart, and the admin customer list.
"""

from datetime import datetime
from itertools import count

import pytest

from storefront.models import Order, OrderItem
from storefront.services import dashboard_service


_numbers = count(1)


def _order(session, *, user=None, total_cents=1000, payment_status="COMPLETED", created_at=None, items=()):
    order = Order(
        order_number=f"ORD-{next(_numbers)}-testorder",
        user_id=user.id if user else None,
        payment_method="CARD",
        subtotal_cents=total_cents,
        total_cents=total_cents,
        status="DELIVERED",
        payment_status=payment_status,
    )
    if created_at is not None:
        order.created_at = created_at
    order.items = [
        OrderItem(product_id=product.id, quantity=qty, price_cents=price) for product, qty, price in items
    ]
    session.add(order)
    session.commit()
    return order


class TestRevenueChange:

    @pytest.mark.parametrize("current,previous,expected", [
        (1500, 1000, 50.0),
        (500, 1000, -50.0),
        (1000, 3000, -66.7),
        (1000, 0, 0.0),
        (0, 0, 0.0),
    ])
    def test_percent(self, current, previous, expected):
        assert dashboard_service.revenue_change_percent(current, previous) == expected


class TestMonthlyRevenue:

    def test_six_months_oldest_first(self, db_session):
        _order(db_session, total_cents=700, created_at=datetime(2026, 1, 20))
        _order(db_session, total_cents=300, created_at=datetime(2026, 6, 2))
        _order(db_session, total_cents=200, created_at=datetime(2026, 6, 9))
        _order(db_session, total_cents=9999, payment_status="PENDING", created_at=datetime(2026, 6, 3))
        # Outside the window
        _order(db_session, total_cents=5000, created_at=datetime(2025, 12, 31))

        series = dashboard_service.monthly_revenue(now=datetime(2026, 6, 10))

        assert [(p["month"], p["year"]) for p in series] == [
            ("Jan", 2026), ("Feb", 2026), ("Mar", 2026), ("Apr", 2026), ("May", 2026), ("Jun", 2026),
        ]
        assert [p["revenue_cents"] for p in series] == [700, 0, 0, 0, 0, 500]

    def test_month_over_month(self, db_session):
        _order(db_session, total_cents=1000, created_at=datetime(2026, 5, 15))
        _order(db_session, total_cents=1500, created_at=datetime(2026, 6, 1))

        stats = dashboard_service.get_dashboard(now=datetime(2026, 6, 20))["stats"]
        assert stats["total_revenue_cents"] == 1500
        assert stats["revenue_change"] == 50.0
        assert stats["revenue_change_type"] == "positive"


class TestDashboardRoute:

    def test_admin_only(self, client, customer_headers):
        assert client.get("/api/dashboard", headers=customer_headers).status_code == 401

    def test_stats_and_top_products(
        self, client, db_session, admin_headers, customer, other_customer, product, second_product
    ):
        _order(db_session, user=customer, total_cents=5000, items=[(product, 2, 2500)])
        _order(db_session, user=other_customer, total_cents=3000, items=[(second_product, 3, 1000)])
        _order(
            db_session, user=customer, total_cents=2500, payment_status="PENDING", items=[(product, 1, 2500)]
        )

        body = client.get("/api/dashboard", headers=admin_headers).json
        stats = body["stats"]
        assert stats["total_products"] == 2
        assert stats["total_orders"] == 3
        # Admin accounts are not customers
        assert stats["total_customers"] == 2
        assert stats["total_revenue_cents"] == 8000

        assert len(body["chart_data"]["monthly_revenue"]) == 6
        top = body["chart_data"]["top_products"]
        assert [(t["name"], t["quantity"], t["revenue_cents"]) for t in top] == [
            ("Wooden Train", 3, 7500),
            ("Puzzle Box", 3, 3000),
        ]

        recent = body["recent_orders"]
        assert len(recent) == 3
        assert recent[0]["customer"] == "Casey Customer"


class TestCustomers:

    def test_customer_rows(self, client, db_session, admin_headers, customer, other_customer, address):
        _order(db_session, user=customer, total_cents=1000)
        _order(db_session, user=customer, total_cents=3000)

        body = client.get("/api/customers", headers=admin_headers).json
        rows = {c["email"]: c for c in body["customers"]}

        assert set(rows) == {"casey@example.com", "olive@example.com"}
        casey = rows["casey@example.com"]
        assert casey["total_orders"] == 2
        assert casey["total_spent_cents"] == 4000
        assert casey["average_order_value_cents"] == 2000
        assert casey["phone"] == "01700000000"
        assert casey["status"] == "ACTIVE"
        assert rows["olive@example.com"]["status"] == "INACTIVE"

        meta = body["meta"]
        assert meta["total"] == 2
        assert meta["active_customers"] == 1
        assert meta["total_revenue_cents"] == 4000

    def test_search(self, client, admin_headers, customer, other_customer):
        body = client.get("/api/customers?search=olive", headers=admin_headers).json
        assert [c["name"] for c in body["customers"]] == ["Olive Other"]
        assert body["meta"]["search"] == "olive"
