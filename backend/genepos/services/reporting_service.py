# Overview: Service-layer operations for reporting; read-only rollups over the sales ledger and catalog.

from __future__ import annotations

from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import func
from sqlalchemy.orm import joinedload, selectinload

from ..errors import ValidationFailed
from ..extensions import db
from ..models import Product, ProductStatus, Sale, SaleItem, SaleStatus
from ..validation import ErrorBag
from .authorization_service import authorize
from .session_service import Principal
from genepos.time_utils import local_midnight_utc, parse_iso_date, period_start_utc, utcnow


REPORT_PERIODS = ("today", "week", "month", "year")
TOP_PRODUCTS_LIMIT = 5


def _scope_shop_id(principal: Principal) -> tuple[bool, int | None]:
    """
    (scoped, shop_id) for the configured DASHBOARD_SCOPE.

    "shop" limits rollups to the caller's shop; a caller without a shop
    matches nothing. "global" aggregates across every shop.
    """
    scope = current_app.config.get("DASHBOARD_SCOPE", "shop")
    if scope == "global":
        return False, None
    if scope != "shop":
        raise RuntimeError(f"DASHBOARD_SCOPE must be 'shop' or 'global', got {scope!r}")
    return True, principal.shop_id


def _completed_sales(scoped: bool, shop_id: int | None):
    query = db.session.query(Sale).filter(Sale.status == SaleStatus.COMPLETED)
    if scoped:
        query = query.filter(Sale.shop_id == shop_id)
    return query


def _sales_rollup(scoped: bool, shop_id: int | None, since: datetime) -> dict:
    query = db.session.query(
        func.coalesce(func.sum(Sale.total_cents), 0),
        func.count(Sale.id),
    ).filter(Sale.status == SaleStatus.COMPLETED, Sale.created_at >= since)
    if scoped:
        query = query.filter(Sale.shop_id == shop_id)

    total, count = query.one()
    return {"sales_cents": int(total or 0), "transactions": int(count or 0)}


def _top_products(scoped: bool, shop_id: int | None, since: datetime) -> list[dict]:
    total_sold = func.sum(SaleItem.quantity).label("total_sold")
    query = (
        db.session.query(Product.id, Product.name, total_sold)
        .join(SaleItem, SaleItem.product_id == Product.id)
        .join(Sale, SaleItem.sale_id == Sale.id)
        .filter(Sale.status == SaleStatus.COMPLETED, Sale.created_at >= since)
    )
    if scoped:
        query = query.filter(Sale.shop_id == shop_id)

    rows = (
        query.group_by(Product.id, Product.name)
        .order_by(total_sold.desc(), Product.id.asc())
        .limit(TOP_PRODUCTS_LIMIT)
        .all()
    )
    return [
        {"id": row.id, "name": row.name, "total_sold": int(row.total_sold or 0)}
        for row in rows
    ]


def dashboard(principal: Principal, *, now: datetime | None = None) -> dict:
    """
    Today and month-to-date revenue, product counts and top sellers.

    Completed sales only. Boundaries are calendar boundaries in APP_TIMEZONE.
    """
    authorize(principal, "dashboard.view")

    now = now or utcnow()
    tz_name = current_app.config.get("APP_TIMEZONE", "UTC")
    threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 10)
    scoped, shop_id = _scope_shop_id(principal)

    today_start = period_start_utc("today", tz_name, now)
    month_start = period_start_utc("month", tz_name, now)

    products = db.session.query(Product).filter(Product.status == ProductStatus.ACTIVE)
    if scoped:
        products = products.filter(Product.shop_id == shop_id)

    return {
        "today": _sales_rollup(scoped, shop_id, today_start),
        "month": _sales_rollup(scoped, shop_id, month_start),
        "products": {
            "total": products.count(),
            "low_stock": products.filter(Product.stock_quantity <= threshold).count(),
        },
        "top_products": _top_products(scoped, shop_id, month_start),
    }


def _report_window(
    start_date: str | None,
    end_date: str | None,
    period: str | None,
    tz_name: str,
    now: datetime,
) -> tuple[datetime | None, datetime | None]:
    """
    [start, end) in UTC for the report filter.

    Both dates given: local midnight of start_date up to local midnight after
    end_date (end date inclusive). Otherwise period. Otherwise unbounded.
    """
    bag = ErrorBag()
    start_day = end_day = None
    try:
        start_day = parse_iso_date(start_date)
    except ValueError:
        bag.add("start_date", "start_date must be a valid date (YYYY-MM-DD)")
    try:
        end_day = parse_iso_date(end_date)
    except ValueError:
        bag.add("end_date", "end_date must be a valid date (YYYY-MM-DD)")
    if start_day and end_day and end_day < start_day:
        bag.add("end_date", "end_date must be a date after or equal to start_date")
    if period and period not in REPORT_PERIODS:
        bag.add("period", f"period must be one of: {', '.join(REPORT_PERIODS)}")
    bag.raise_if_any()

    if start_day and end_day:
        return (
            local_midnight_utc(start_day, tz_name),
            local_midnight_utc(end_day + timedelta(days=1), tz_name),
        )
    if period:
        return period_start_utc(period, tz_name, now), None
    return None, None


def sales_report(
    principal: Principal,
    *,
    start_date: str | None = None,
    end_date: str | None = None,
    period: str | None = None,
    now: datetime | None = None,
) -> dict:
    """
    Completed sales in a window plus a summary.

    Returns:
        {"sales": [...], "summary": {"total_sales_cents", "total_transactions",
        "average_sale_cents"}}. average is total / count rounded half up to a
        whole cent, 0 for an empty window.
    """
    authorize(principal, "report.sales")

    now = now or utcnow()
    tz_name = current_app.config.get("APP_TIMEZONE", "UTC")
    scoped, shop_id = _scope_shop_id(principal)

    if period is not None and not isinstance(period, str):
        raise ValidationFailed("period must be a string")

    start, end = _report_window(start_date, end_date, period, tz_name, now)

    query = _completed_sales(scoped, shop_id).options(
        selectinload(Sale.items).joinedload(SaleItem.product),
        joinedload(Sale.cashier),
    )
    if start is not None:
        query = query.filter(Sale.created_at >= start)
    if end is not None:
        query = query.filter(Sale.created_at < end)

    sales = query.order_by(Sale.created_at.desc(), Sale.id.desc()).all()

    total = sum(s.total_cents for s in sales)
    count = len(sales)
    average = (total + count // 2) // count if count else 0

    return {
        "sales": [s.to_dict() for s in sales],
        "summary": {
            "total_sales_cents": total,
            "total_transactions": count,
            "average_sale_cents": average,
        },
    }
