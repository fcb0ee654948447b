"""
Sales Service - ledger and sale posting workflow

WHY: A sale, its items and the stock decrements it causes are one fact.
post_sale writes all of them in a single unit of work or none of them.

Posting order:
1. validate the payload (validation.validate_sale_payload)
2. resolve every referenced product and check it belongs to the caller's shop
3. optional stock floor check (ENFORCE_STOCK_FLOOR)
4. insert header as PENDING, insert items in input order, decrement stock
   SQL-side, flip header to COMPLETED, commit
5. any failure in step 4 rolls everything back -> SalePostingFailed

Steps 1-3 run before anything is written, so their errors leave no trace.
"""

from flask import current_app
from sqlalchemy.orm import joinedload, selectinload

from ..errors import (
    CrossTenantReference,
    InsufficientStock,
    NotFound,
    SalePostingFailed,
    ValidationFailed,
)
from ..extensions import db
from ..models import Product, Sale, SaleItem, SaleStatus
from ..validation import validate_sale_payload, validate_sale_update
from .authorization_service import authorize, log_security_event
from .session_service import Principal
from genepos.time_utils import utcnow


def _sale_query():
    """Sales with items, their products and the cashier eagerly loaded."""
    return db.session.query(Sale).options(
        selectinload(Sale.items).joinedload(SaleItem.product),
        joinedload(Sale.cashier),
    )


def _get_sale_or_404(sale_id: int) -> Sale:
    sale = _sale_query().filter(Sale.id == sale_id).first()
    if not sale:
        raise NotFound("Sale not found")
    return sale


def _resolve_products(principal: Principal, items: list[dict]) -> dict[int, Product]:
    """
    Load every referenced product.

    Raises ValidationFailed for unknown ids and CrossTenantReference when any
    product belongs to another shop. Nothing has been written at this point.
    """
    product_ids = {item["product_id"] for item in items}
    products = {
        p.id: p
        for p in db.session.query(Product).filter(Product.id.in_(product_ids)).all()
    }

    errors: dict[str, list[str]] = {}
    for i, item in enumerate(items):
        if item["product_id"] not in products:
            key = f"items.{i}.product_id"
            errors[key] = [f"The selected {key} is invalid."]
    if errors:
        raise ValidationFailed(next(iter(errors.values()))[0], errors=errors)

    foreign = sorted(pid for pid, p in products.items() if p.shop_id != principal.shop_id)
    if foreign:
        log_security_event(
            user_id=principal.user_id,
            event_type="CROSS_TENANT_ACCESS_DENIED",
            success=False,
            action="sale.create",
            reason=f"Sale references products {foreign} outside shop {principal.shop_id}",
            shop_id=principal.shop_id,
        )
        raise CrossTenantReference()

    return products


def _requested_quantities(items: list[dict]) -> dict[int, int]:
    totals: dict[int, int] = {}
    for item in items:
        totals[item["product_id"]] = totals.get(item["product_id"], 0) + item["quantity"]
    return totals


def _check_stock_floor(products: dict[int, Product], items: list[dict]) -> None:
    insufficient = []
    for product_id, qty in _requested_quantities(items).items():
        on_hand = products[product_id].stock_quantity
        if on_hand < qty:
            insufficient.append({
                "product_id": product_id,
                "requested_quantity": qty,
                "on_hand": on_hand,
            })

    if insufficient:
        raise InsufficientStock(items=insufficient)


def _decrement_stock(product_id: int, quantity: int, enforce_floor: bool) -> None:
    """
    stock_quantity = stock_quantity - :quantity, evaluated by the database.

    With the floor enforced this becomes a compare-and-decrement; a concurrent
    sale that drained the stock makes the update match zero rows.
    """
    query = db.session.query(Product).filter(Product.id == product_id)
    if enforce_floor:
        query = query.filter(Product.stock_quantity >= quantity)

    updated = query.update(
        {Product.stock_quantity: Product.stock_quantity - quantity},
        synchronize_session=False,
    )
    if enforce_floor and updated != 1:
        raise InsufficientStock(items=[{"product_id": product_id, "requested_quantity": quantity}])


def _write_sale(principal: Principal, header: dict, items: list[dict], enforce_floor: bool) -> Sale:
    now = utcnow()
    sale = Sale(
        shop_id=principal.shop_id,
        cashier_id=principal.user_id,
        cashier_name=principal.user.name,
        status=SaleStatus.PENDING,
        created_at=now,
        updated_at=now,
        **header,
    )
    db.session.add(sale)
    db.session.flush()

    for item in items:
        db.session.add(SaleItem(sale_id=sale.id, created_at=now, **item))
        _decrement_stock(item["product_id"], item["quantity"], enforce_floor)

    db.session.flush()
    sale.status = SaleStatus.COMPLETED
    return sale


def post_sale(principal: Principal, payload: dict) -> Sale:
    """
    Record a completed sale with its items and stock decrements, atomically.

    Raises:
        ValidationFailed: bad payload or unknown product (nothing written)
        CrossTenantReference: product from another shop (nothing written)
        InsufficientStock: floor enforced and stock too low (nothing written)
        SalePostingFailed: failure inside the unit of work (rolled back)
    """
    authorize(principal, "sale.create")

    data = validate_sale_payload(payload)
    items = data.pop("items")

    products = _resolve_products(principal, items)

    enforce_floor = bool(current_app.config.get("ENFORCE_STOCK_FLOOR", False))
    if enforce_floor:
        _check_stock_floor(products, items)

    try:
        sale = _write_sale(principal, data, items, enforce_floor)
        db.session.commit()
    except InsufficientStock:
        db.session.rollback()
        raise
    except Exception:
        db.session.rollback()
        current_app.logger.exception(
            "Failed to post sale for shop %s (user %s)", principal.shop_id, principal.user_id
        )
        raise SalePostingFailed()

    current_app.logger.info(
        "Sale %s posted in shop %s: %s item(s), total_cents=%s",
        sale.id, sale.shop_id, len(items), sale.total_cents,
    )
    return _get_sale_or_404(sale.id)


def list_sales(
    principal: Principal,
    *,
    status: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """Shop-scoped sales, newest first."""
    authorize(principal, "sale.list")

    if status is not None and status not in SaleStatus.ALL:
        raise ValidationFailed(
            f"status must be one of: {', '.join(SaleStatus.ALL)}",
            errors={"status": [f"status must be one of: {', '.join(SaleStatus.ALL)}"]},
        )

    base_query = _sale_query().filter(Sale.shop_id == principal.shop_id)
    if status is not None:
        base_query = base_query.filter(Sale.status == status)
    base_query = base_query.order_by(Sale.created_at.desc(), Sale.id.desc())

    if page is None:
        sales = base_query.all()
        return {
            "items": [s.to_dict() for s in sales],
            "count": len(sales),
        }

    per_page = max(1, min(per_page or 20, 100))
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    sales = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [s.to_dict() for s in sales],
        "count": len(sales),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def get_sale(principal: Principal, sale_id: int) -> Sale:
    sale = _get_sale_or_404(sale_id)
    authorize(principal, "sale.view", sale)
    return sale


def update_sale(principal: Principal, sale_id: int, payload: dict) -> Sale:
    """
    Change status (to cancelled/refunded) and/or notes.

    Stock is not restored on cancel/refund.
    """
    sale = _get_sale_or_404(sale_id)
    authorize(principal, "sale.update", sale)

    patch = validate_sale_update(payload)
    for k, v in patch.items():
        setattr(sale, k, v)

    db.session.commit()
    return _get_sale_or_404(sale_id)


def delete_sale(principal: Principal, sale_id: int) -> None:
    """Delete a non-completed sale and its items."""
    sale = _get_sale_or_404(sale_id)
    authorize(principal, "sale.delete", sale)

    if sale.status == SaleStatus.COMPLETED:
        raise ValidationFailed(
            "Cannot delete completed sale",
            errors={"status": ["Cannot delete completed sale"]},
        )

    db.session.delete(sale)
    db.session.commit()
    current_app.logger.info("Sale %s deleted by user %s", sale_id, principal.user_id)
