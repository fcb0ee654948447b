from __future__ import annotations

from ..extensions import db
from genepos.time_utils import to_utc_z

class Shop(db.Model):
    """
    Multi-tenant root: every tenant is a Shop.

    All products and sales belong to exactly one shop (shop_id FK) and are
    deleted with it. Users reference a shop (users.shop_id); deleting the shop
    detaches them instead of deleting them.

    DESIGN:
    - slug is unique across all shops, derived from name when not supplied
    - owner_id points at a User with role=owner
    - settings is an opaque key/value bag owned by the client
    """
    __tablename__ = "shops"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(255), nullable=False, unique=True, index=True)
    description = db.Column(db.Text, nullable=True)
    address = db.Column(db.String(500), nullable=True)
    phone = db.Column(db.String(20), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    logo_url = db.Column(db.String(1024), nullable=True)

    currency = db.Column(db.String(3), nullable=False, default="USD")
    timezone = db.Column(db.String(64), nullable=False, default="UTC")
    settings = db.Column(db.JSON, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    # users.shop_id -> shops.id already exists; break the cycle for DDL ordering
    owner_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", use_alter=True, name="fk_shops_owner_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    owner = db.relationship("User", foreign_keys=[owner_id], backref=db.backref("owned_shops", lazy=True))
    products = db.relationship("Product", back_populates="shop", lazy=True, cascade="all, delete-orphan")
    sales = db.relationship("Sale", back_populates="shop", lazy=True, cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Shop id={self.id} slug={self.slug!r} owner_id={self.owner_id}>"

    def to_dict(self, include_team: bool = False) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "address": self.address,
            "phone": self.phone,
            "email": self.email,
            "logo_url": self.logo_url,
            "currency": self.currency,
            "timezone": self.timezone,
            "settings": self.settings or {},
            "is_active": self.is_active,
            "owner_id": self.owner_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_team:
            data["owner"] = self.owner.to_member_dict() if self.owner else None
            data["users"] = [u.to_member_dict() for u in self.users]
        return data
