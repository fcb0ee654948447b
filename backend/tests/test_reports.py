"""
Dashboard and sales report tests.

Sales are inserted directly with explicit created_at values so period
boundaries can be checked against a fixed "now".
"""

from datetime import datetime

import pytest

from genepos.errors import ValidationFailed
from genepos.models import Sale, SaleItem, SaleStatus
from genepos.services.reporting_service import dashboard, sales_report

from conftest import auth_headers, make_product, make_user, principal_for, token_for


# Wednesday
NOW = datetime(2026, 3, 18, 15, 0, 0)


def add_sale(db_session, shop, cashier, lines, *, created_at, status=SaleStatus.COMPLETED, total_cents=None):
    """Insert a sale; lines are (product, quantity, unit_price_cents)."""
    subtotal = sum(qty * price for _, qty, price in lines)
    sale = Sale(
        shop_id=shop.id,
        subtotal_cents=subtotal,
        tax_cents=0,
        discount_cents=0,
        total_cents=subtotal if total_cents is None else total_cents,
        payment_method="cash",
        status=status,
        cashier_id=cashier.id,
        cashier_name=cashier.name,
        created_at=created_at,
        updated_at=created_at,
    )
    db_session.add(sale)
    db_session.flush()
    for product, qty, price in lines:
        db_session.add(SaleItem(
            sale_id=sale.id,
            product_id=product.id,
            quantity=qty,
            unit_price_cents=price,
            subtotal_cents=qty * price,
        ))
    db_session.commit()
    return sale


@pytest.fixture
def ledger(db_session, shop_a, owner_a, product_a):
    """Completed sales today, yesterday and last month, plus one cancelled today."""
    return {
        "today": add_sale(db_session, shop_a, owner_a, [(product_a, 3, 1000)], created_at=datetime(2026, 3, 18, 10, 0)),
        "yesterday": add_sale(db_session, shop_a, owner_a, [(product_a, 2, 1000)], created_at=datetime(2026, 3, 17, 12, 0)),
        "last_month": add_sale(db_session, shop_a, owner_a, [(product_a, 1, 1000)], created_at=datetime(2026, 2, 28, 23, 30)),
        "cancelled": add_sale(
            db_session, shop_a, owner_a, [(product_a, 9, 1000)],
            created_at=datetime(2026, 3, 18, 11, 0), status=SaleStatus.CANCELLED,
        ),
    }


class TestDashboard:

    def test_today_and_month(self, db_session, owner_a, ledger):
        data = dashboard(principal_for(owner_a), now=NOW)
        assert data["today"] == {"sales_cents": 3000, "transactions": 1}
        assert data["month"] == {"sales_cents": 5000, "transactions": 2}

    def test_product_counts(self, db_session, shop_a, owner_a, product_a):
        make_product(db_session, shop_a, name="Plenty", sku="A-002", stock_quantity=11)
        make_product(db_session, shop_a, name="Gone", sku="A-003", stock_quantity=0, status="inactive")

        data = dashboard(principal_for(owner_a), now=NOW)
        assert data["products"] == {"total": 2, "low_stock": 1}

    def test_top_products_ties_by_id(self, db_session, shop_a, owner_a):
        products = [
            make_product(db_session, shop_a, name=f"P{i}", sku=f"P-{i}") for i in range(1, 7)
        ]
        sold = [5, 5, 3, 3, 3, 1]
        for product, qty in zip(products, sold):
            add_sale(db_session, shop_a, owner_a, [(product, qty, 100)], created_at=datetime(2026, 3, 2, 9, 0))
        add_sale(
            db_session, shop_a, owner_a, [(products[5], 100, 100)],
            created_at=datetime(2026, 3, 2, 9, 0), status=SaleStatus.REFUNDED,
        )

        top = dashboard(principal_for(owner_a), now=NOW)["top_products"]
        assert [t["id"] for t in top] == [p.id for p in products[:5]]
        assert [t["total_sold"] for t in top] == [5, 5, 3, 3, 3]
        assert top[0]["name"] == "P1"

    def test_repeated_calls_are_identical(self, db_session, owner_a, ledger):
        principal = principal_for(owner_a)
        assert dashboard(principal, now=NOW) == dashboard(principal, now=NOW)

    def test_shop_scope_excludes_other_shops(self, db_session, owner_a, owner_b, shop_b, product_b, ledger):
        add_sale(db_session, shop_b, owner_b, [(product_b, 4, 1000)], created_at=datetime(2026, 3, 18, 9, 0))

        data = dashboard(principal_for(owner_a), now=NOW)
        assert data["today"] == {"sales_cents": 3000, "transactions": 1}

    def test_global_scope_aggregates_all_shops(
        self, app, monkeypatch, db_session, owner_a, owner_b, shop_b, product_b, ledger
    ):
        monkeypatch.setitem(app.config, "DASHBOARD_SCOPE", "global")
        add_sale(db_session, shop_b, owner_b, [(product_b, 4, 1000)], created_at=datetime(2026, 3, 18, 9, 0))

        data = dashboard(principal_for(owner_a), now=NOW)
        assert data["today"] == {"sales_cents": 7000, "transactions": 2}

    def test_caller_without_shop_sees_zeros(self, db_session, ledger):
        loner = make_user(db_session, name="Loner", email="loner@example.com", role="owner")
        data = dashboard(principal_for(loner), now=NOW)
        assert data["today"] == {"sales_cents": 0, "transactions": 0}
        assert data["products"] == {"total": 0, "low_stock": 0}
        assert data["top_products"] == []

    def test_today_follows_app_timezone(self, app, monkeypatch, db_session, shop_a, owner_a, product_a):
        monkeypatch.setitem(app.config, "APP_TIMEZONE", "America/New_York")
        # 2026-03-17 23:00 in New York (UTC-4)
        now = datetime(2026, 3, 18, 3, 0)
        add_sale(db_session, shop_a, owner_a, [(product_a, 1, 700)], created_at=datetime(2026, 3, 17, 5, 0))
        add_sale(db_session, shop_a, owner_a, [(product_a, 1, 300)], created_at=datetime(2026, 3, 17, 3, 0))

        data = dashboard(principal_for(owner_a), now=now)
        assert data["today"] == {"sales_cents": 700, "transactions": 1}

    def test_dashboard_route(self, client, owner_a_headers, ledger):
        resp = client.get("/api/dashboard", headers=owner_a_headers)
        assert resp.status_code == 200
        assert set(resp.get_json()) == {"today", "month", "products", "top_products"}


class TestSalesReport:

    @pytest.mark.parametrize(
        "period,expected",
        [
            ("today", ["today"]),
            ("week", ["today", "yesterday"]),
            ("month", ["today", "yesterday"]),
            ("year", ["today", "yesterday", "last_month"]),
            (None, ["today", "yesterday", "last_month"]),
        ],
    )
    def test_periods(self, db_session, owner_a, ledger, period, expected):
        report = sales_report(principal_for(owner_a), period=period, now=NOW)
        assert [s["id"] for s in report["sales"]] == [ledger[k].id for k in expected]

    def test_date_window_end_inclusive(self, db_session, owner_a, ledger):
        report = sales_report(
            principal_for(owner_a), start_date="2026-02-28", end_date="2026-03-17", now=NOW
        )
        assert [s["id"] for s in report["sales"]] == [ledger["yesterday"].id, ledger["last_month"].id]
        assert report["summary"] == {
            "total_sales_cents": 3000,
            "total_transactions": 2,
            "average_sale_cents": 1500,
        }

    def test_single_date_falls_back_to_period(self, db_session, owner_a, ledger):
        report = sales_report(principal_for(owner_a), start_date="2026-03-18", period="year", now=NOW)
        assert report["summary"]["total_transactions"] == 3

    def test_average_rounds_half_up(self, db_session, shop_a, owner_a, product_a):
        when = datetime(2026, 3, 18, 9, 0)
        add_sale(db_session, shop_a, owner_a, [(product_a, 1, 1000)], created_at=when)
        add_sale(db_session, shop_a, owner_a, [(product_a, 1, 1001)], created_at=when)

        summary = sales_report(principal_for(owner_a), now=NOW)["summary"]
        assert summary["total_sales_cents"] == 2001
        assert summary["average_sale_cents"] == 1001

    def test_average_rounds_down_below_half(self, db_session, shop_a, owner_a, product_a):
        when = datetime(2026, 3, 18, 9, 0)
        for price in (1000, 1000, 1001):
            add_sale(db_session, shop_a, owner_a, [(product_a, 1, price)], created_at=when)

        summary = sales_report(principal_for(owner_a), now=NOW)["summary"]
        assert summary["average_sale_cents"] == 1000

    def test_empty_window(self, db_session, owner_a, shop_a):
        report = sales_report(principal_for(owner_a), period="today", now=NOW)
        assert report == {
            "sales": [],
            "summary": {"total_sales_cents": 0, "total_transactions": 0, "average_sale_cents": 0},
        }

    def test_end_before_start_rejected(self, db_session, owner_a, shop_a):
        with pytest.raises(ValidationFailed) as exc:
            sales_report(principal_for(owner_a), start_date="2026-03-18", end_date="2026-03-01", now=NOW)
        assert "end_date" in exc.value.errors

    def test_bad_period_and_dates_are_422(self, client, owner_a_headers):
        assert client.get("/api/reports/sales?period=decade", headers=owner_a_headers).status_code == 422
        resp = client.get(
            "/api/reports/sales?start_date=2026-13-01&end_date=2026-03-01", headers=owner_a_headers
        )
        assert resp.status_code == 422
        assert "start_date" in resp.get_json()["errors"]

    def test_report_route_any_member(self, client, seller_a, ledger):
        resp = client.get("/api/reports/sales", headers=auth_headers(token_for(seller_a)))
        assert resp.status_code == 200
        assert resp.get_json()["summary"]["total_transactions"] == 3
