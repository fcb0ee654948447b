from __future__ import annotations

from ..extensions import db
from genepos.time_utils import to_utc_z


class ProductStatus:
    """
    Product lifecycle states.

    INACTIVE is the soft-deleted state: the row is kept for sale history but
    hidden from default listings. New states are added here, not as new flags.
    """
    ACTIVE = "active"
    INACTIVE = "inactive"

    ALL = (ACTIVE, INACTIVE)


class Product(db.Model):
    """
    Product master data.

    MULTI-TENANT: Products are scoped to shops via shop_id.

    barcode and sku are unique across the whole system (not per shop).
    Prices are stored in cents. stock_quantity is decremented by sale posting
    and is not floored at zero unless ENFORCE_STOCK_FLOOR is on.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_shop_name", "shop_id", "name"),
        db.Index("ix_products_shop_status", "shop_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id", ondelete="CASCADE"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    price_cents = db.Column(db.Integer, nullable=False)
    cost_price_cents = db.Column(db.Integer, nullable=False)
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)

    barcode = db.Column(db.String(64), nullable=True, unique=True)
    sku = db.Column(db.String(64), nullable=True, unique=True)
    category = db.Column(db.String(255), nullable=False)
    image_url = db.Column(db.String(1024), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=ProductStatus.ACTIVE)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    shop = db.relationship("Shop", back_populates="products")

    @property
    def is_active(self) -> bool:
        return self.status == ProductStatus.ACTIVE

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} shop_id={self.shop_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "name": self.name,
            "description": self.description,
            "price_cents": self.price_cents,
            "cost_price_cents": self.cost_price_cents,
            "stock_quantity": self.stock_quantity,
            "barcode": self.barcode,
            "sku": self.sku,
            "category": self.category,
            "image_url": self.image_url,
            "status": self.status,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
