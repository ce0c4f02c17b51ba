from __future__ import annotations

from ..extensions import db
from karat.time_utils import to_utc_z, utcnow
from karat.validation import money_str, weight_str
from .tenancy import LIFECYCLE_ACTIVE


METAL_GOLD = "GOLD"
METAL_SILVER = "SILVER"
METAL_PLATINUM = "PLATINUM"
VALID_METAL_TYPES = [METAL_GOLD, METAL_SILVER, METAL_PLATINUM]

RATE_SOURCE_MARKET = "MARKET"
RATE_SOURCE_MANUAL = "MANUAL"
RATE_SOURCE_API = "API"
VALID_RATE_SOURCES = [RATE_SOURCE_MARKET, RATE_SOURCE_MANUAL, RATE_SOURCE_API]

CUSTOMER_RETAIL = "RETAIL"
CUSTOMER_WHOLESALE = "WHOLESALE"
CUSTOMER_VIP = "VIP"
VALID_CUSTOMER_TYPES = [CUSTOMER_RETAIL, CUSTOMER_WHOLESALE, CUSTOMER_VIP]


class Customer(db.Model):
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "phone", name="uq_customers_shop_phone"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.Text, nullable=True)
    customer_type = db.Column(db.String(16), nullable=False, default=CUSTOMER_RETAIL)

    lifecycle = db.Column(db.String(16), nullable=False, default=LIFECYCLE_ACTIVE, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    shop = db.relationship("Shop", backref=db.backref("customers", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "customer_type": self.customer_type,
            "lifecycle": self.lifecycle,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Jewelry product specification.

    PRICING: there is deliberately no price column. Selling price depends on
    the current metal rate and is computed at read time by pricing_service.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "sku", name="uq_products_shop_sku"),
        db.Index("ix_products_shop_metal_purity", "shop_id", "metal_type", "purity"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)

    metal_type = db.Column(db.String(16), nullable=False)
    purity = db.Column(db.String(16), nullable=False)  # e.g. "22K", "925"

    gross_weight = db.Column(db.Numeric(10, 3), nullable=True)
    net_weight = db.Column(db.Numeric(10, 3), nullable=False)
    wastage_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    making_charges = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    stone_value = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    reorder_level = db.Column(db.Integer, nullable=False, default=0)
    huid = db.Column(db.String(16), nullable=True)

    lifecycle = db.Column(db.String(16), nullable=False, default=LIFECYCLE_ACTIVE, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    shop = db.relationship("Shop", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} {self.metal_type}/{self.purity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "sku": self.sku,
            "name": self.name,
            "metal_type": self.metal_type,
            "purity": self.purity,
            "gross_weight": weight_str(self.gross_weight),
            "net_weight": weight_str(self.net_weight),
            "wastage_percent": money_str(self.wastage_percent),
            "making_charges": money_str(self.making_charges),
            "stone_value": money_str(self.stone_value),
            "reorder_level": self.reorder_level,
            "huid": self.huid,
            "lifecycle": self.lifecycle,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class RateMaster(db.Model):
    """
    Metal rate per gram for a (metal_type, purity) pair.

    Superseded rates are deactivated, never deleted, so history stays
    queryable. created_at is set in Python (microsecond precision) because
    the resolver orders by it to pick the current rate.
    """
    __tablename__ = "rate_master"
    __table_args__ = (
        db.Index("ix_rate_master_lookup", "shop_id", "metal_type", "purity", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    metal_type = db.Column(db.String(16), nullable=False)
    purity = db.Column(db.String(16), nullable=False)
    rate_per_gram = db.Column(db.Numeric(12, 2), nullable=False)

    effective_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    valid_until = db.Column(db.DateTime(timezone=True), nullable=True)

    rate_source = db.Column(db.String(16), nullable=False, default=RATE_SOURCE_MANUAL)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    default_making_charge_percent = db.Column(db.Numeric(5, 2), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<RateMaster id={self.id} {self.metal_type}/{self.purity} {self.rate_per_gram}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "metal_type": self.metal_type,
            "purity": self.purity,
            "rate_per_gram": money_str(self.rate_per_gram),
            "effective_date": to_utc_z(self.effective_date),
            "valid_until": to_utc_z(self.valid_until) if self.valid_until else None,
            "rate_source": self.rate_source,
            "is_active": self.is_active,
            "default_making_charge_percent": money_str(self.default_making_charge_percent),
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
