# backend/genepos/services/products_service.py
"""
Products Service (catalog)

MULTI-TENANT: All product operations are shop-scoped.
- list_products only ever returns the caller's shop
- create_product binds shop_id from the caller, never from the payload
- get/update/deactivate check the product's shop against the caller

Products are never physically deleted: deactivation moves them to the
INACTIVE lifecycle state so sale history keeps its references.
"""
from __future__ import annotations

from flask import current_app

from ..errors import NotFound, ValidationFailed
from ..extensions import db
from ..models import Product, ProductStatus
from ..validation import ModelValidationPolicy, validate_payload
from .authorization_service import authorize
from .concurrency import lock_for_update
from .session_service import Principal


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "description",
        "price_cents",
        "cost_price_cents",
        "stock_quantity",
        "barcode",
        "sku",
        "category",
        "image_url",
        "status",
    },
    required_on_create={"name", "price_cents", "cost_price_cents", "category"},
    non_negative={"price_cents", "cost_price_cents", "stock_quantity"},
)

# Globally unique identifiers (not per shop)
UNIQUE_FIELDS = ("barcode", "sku")


def _enforce_product_rules(patch: dict, product_id: int | None = None) -> None:
    errors: dict[str, list[str]] = {}

    status = patch.get("status")
    if status is not None and status not in ProductStatus.ALL:
        errors["status"] = [f"status must be one of: {', '.join(ProductStatus.ALL)}"]

    for field in UNIQUE_FIELDS:
        value = patch.get(field)
        if value is None:
            continue
        if value == "":
            # Blank identifiers are stored as NULL so they never collide
            patch[field] = None
            continue
        query = db.session.query(Product.id).filter(getattr(Product, field) == value)
        if product_id is not None:
            query = query.filter(Product.id != product_id)
        if query.first() is not None:
            errors[field] = [f"The {field} has already been taken."]

    if errors:
        first = next(iter(errors.values()))[0]
        raise ValidationFailed(first, errors=errors)


def _get_product_or_404(product_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id).first()
    if not product:
        raise NotFound("Product not found")
    return product


def list_products(
    principal: Principal,
    *,
    include_inactive: bool = False,
    category: str | None = None,
    search: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Shop-scoped product listing with optional pagination.

    Active products only unless include_inactive; ordered by name then id.

    Returns:
        Dict with 'items', 'count', and pagination metadata if paginated.
    """
    authorize(principal, "product.list")

    base_query = db.session.query(Product).filter(Product.shop_id == principal.shop_id)
    if not include_inactive:
        base_query = base_query.filter(Product.status == ProductStatus.ACTIVE)
    if category:
        base_query = base_query.filter(Product.category == category)
    if search:
        like = f"%{search.strip()}%"
        base_query = base_query.filter(
            db.or_(
                Product.name.ilike(like),
                Product.sku.ilike(like),
                Product.barcode.ilike(like),
            )
        )
    base_query = base_query.order_by(Product.name.asc(), Product.id.asc())

    # If no pagination requested, return all items
    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
        }

    per_page = max(1, min(per_page or 20, 100))  # Default 20, range 1-100
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def create_product(principal: Principal, payload: dict) -> Product:
    """
    Create a product in the caller's shop.

    Raises:
        AccessDenied: caller has no shop (or role override excludes them)
        ValidationFailed: missing/invalid fields, duplicate barcode or sku
    """
    authorize(principal, "product.create")

    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    _enforce_product_rules(patch)

    product = Product(shop_id=principal.shop_id, **patch)
    db.session.add(product)
    db.session.commit()

    current_app.logger.info(
        "Product %s created in shop %s by user %s", product.id, product.shop_id, principal.user_id
    )
    return product


def get_product(principal: Principal, product_id: int) -> Product:
    product = _get_product_or_404(product_id)
    authorize(principal, "product.view", product)
    return product


def update_product(principal: Principal, product_id: int, payload: dict) -> Product:
    """Partial update; uniqueness checks ignore the product itself."""
    product = _get_product_or_404(product_id)
    authorize(principal, "product.update", product)

    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    _enforce_product_rules(patch, product_id=product.id)

    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    for k, v in patch.items():
        setattr(product, k, v)

    db.session.commit()
    return product


def deactivate_product(principal: Principal, product_id: int) -> Product:
    """Soft delete: lifecycle state -> INACTIVE. Idempotent."""
    product = _get_product_or_404(product_id)
    authorize(principal, "product.delete", product)

    product.status = ProductStatus.INACTIVE
    db.session.commit()

    current_app.logger.info("Product %s deactivated by user %s", product.id, principal.user_id)
    return product
