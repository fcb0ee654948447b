# Overview: Service-layer operations for shops (tenant directory); encapsulates business logic and database work.

from __future__ import annotations

import re
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from flask import current_app

from ..errors import NotFound, ValidationFailed
from ..extensions import db
from ..models import Product, ProductStatus, Sale, SaleStatus, Shop, User
from ..validation import ModelValidationPolicy, enforce_rules_shop, validate_payload
from .authorization_service import authorize
from .concurrency import lock_for_update
from .session_service import Principal


SHOP_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "slug",
        "description",
        "address",
        "phone",
        "email",
        "logo_url",
        "currency",
        "timezone",
        "settings",
        "is_active",
    },
    required_on_create={"name"},
)

_SLUG_STRIP_RE = re.compile(r"[^a-z0-9]+")
SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def slugify(value: str) -> str:
    slug = _SLUG_STRIP_RE.sub("-", value.lower()).strip("-")
    return slug or "shop"


def _slug_taken(slug: str, exclude_shop_id: int | None = None) -> bool:
    query = db.session.query(Shop.id).filter(Shop.slug == slug)
    if exclude_shop_id is not None:
        query = query.filter(Shop.id != exclude_shop_id)
    return query.first() is not None


def unique_slug(name: str) -> str:
    """Slug derived from name; "-2", "-3", ... appended until unused."""
    base = slugify(name)[:240]
    candidate = base
    n = 2
    while _slug_taken(candidate):
        candidate = f"{base}-{n}"
        n += 1
    return candidate


def _enforce_shop_rules(patch: dict, shop_id: int | None = None) -> None:
    enforce_rules_shop(patch)

    errors: dict[str, list[str]] = {}

    tz = patch.get("timezone")
    if tz is not None:
        try:
            ZoneInfo(tz)
        except (ZoneInfoNotFoundError, ValueError):
            errors["timezone"] = ["timezone must be a valid IANA zone name"]

    slug = patch.get("slug")
    if slug is not None:
        if not SLUG_RE.match(slug):
            errors["slug"] = ["slug may contain only lowercase letters, digits and hyphens"]
        elif _slug_taken(slug, exclude_shop_id=shop_id):
            errors["slug"] = ["The slug has already been taken."]

    if errors:
        first = next(iter(errors.values()))[0]
        raise ValidationFailed(first, errors=errors)


def _get_shop_or_404(shop_id: int) -> Shop:
    shop = db.session.query(Shop).filter_by(id=shop_id).first()
    if not shop:
        raise NotFound("Shop not found")
    return shop


def list_shops(principal: Principal) -> list[Shop]:
    """Owners see the shops they own; everyone else sees the shop they belong to."""
    authorize(principal, "shop.list")

    if principal.is_owner:
        query = db.session.query(Shop).filter(Shop.owner_id == principal.user_id)
    elif principal.shop_id is not None:
        query = db.session.query(Shop).filter(Shop.id == principal.shop_id)
    else:
        return []
    return query.order_by(Shop.id.asc()).all()


def create_shop(principal: Principal, payload: dict) -> Shop:
    """
    Create a shop owned by the caller and attach the caller to it.

    The new shop becomes the caller's shop (users.shop_id), which is what
    every shop-scoped operation keys on.
    """
    authorize(principal, "shop.create")

    patch = validate_payload(model=Shop, payload=payload, policy=SHOP_POLICY, partial=False)
    _enforce_shop_rules(patch)

    if not patch.get("slug"):
        patch["slug"] = unique_slug(patch["name"])

    shop = Shop(owner_id=principal.user_id, **patch)
    db.session.add(shop)
    db.session.flush()

    principal.user.shop_id = shop.id
    db.session.commit()

    current_app.logger.info("User %s created shop %s (%s)", principal.user_id, shop.id, shop.slug)
    return shop


def get_shop(principal: Principal, shop_id: int) -> Shop:
    shop = _get_shop_or_404(shop_id)
    authorize(principal, "shop.view", shop)
    return shop


def update_shop(principal: Principal, shop_id: int, payload: dict) -> Shop:
    shop = _get_shop_or_404(shop_id)
    authorize(principal, "shop.update", shop)

    patch = validate_payload(model=Shop, payload=payload, policy=SHOP_POLICY, partial=True)
    _enforce_shop_rules(patch, shop_id=shop.id)

    shop = lock_for_update(db.session.query(Shop).filter_by(id=shop_id)).first()
    for k, v in patch.items():
        setattr(shop, k, v)

    db.session.commit()
    return shop


def delete_shop(principal: Principal, shop_id: int) -> None:
    """
    Delete a shop with its products and sales.

    Users affiliated with the shop are detached (shop_id set to NULL), not deleted.
    """
    shop = _get_shop_or_404(shop_id)
    authorize(principal, "shop.delete", shop)

    # Sale rows reference products through their items; drop sales first
    for sale in list(shop.sales):
        db.session.delete(sale)
    db.session.flush()
    db.session.expire(shop, ["sales"])

    db.session.query(User).filter(User.shop_id == shop.id).update(
        {User.shop_id: None}, synchronize_session="fetch"
    )
    db.session.delete(shop)
    db.session.commit()

    current_app.logger.info("User %s deleted shop %s", principal.user_id, shop_id)


def shop_statistics(principal: Principal, shop_id: int) -> dict:
    """Per-shop rollup counts. Read-only."""
    shop = _get_shop_or_404(shop_id)
    authorize(principal, "shop.statistics", shop)

    threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 10)

    products = db.session.query(Product).filter(Product.shop_id == shop.id)
    sales = db.session.query(Sale).filter(Sale.shop_id == shop.id)
    users = db.session.query(User).filter(User.shop_id == shop.id)

    total_revenue = (
        db.session.query(db.func.coalesce(db.func.sum(Sale.total_cents), 0))
        .filter(Sale.shop_id == shop.id, Sale.status == SaleStatus.COMPLETED)
        .scalar()
    )

    return {
        "total_products": products.count(),
        "active_products": products.filter(Product.status == ProductStatus.ACTIVE).count(),
        "low_stock_products": products.filter(
            Product.status == ProductStatus.ACTIVE,
            Product.stock_quantity <= threshold,
        ).count(),
        "total_sales": sales.count(),
        "total_revenue_cents": int(total_revenue or 0),
        "total_team_members": users.count(),
        "active_team_members": users.filter(User.is_active.is_(True)).count(),
    }
