from __future__ import annotations

from ..extensions import db
from karat.time_utils import to_utc_z
from karat.validation import money_str
from .tenancy import LIFECYCLE_ACTIVE


STOCK_AVAILABLE = "AVAILABLE"
STOCK_RESERVED = "RESERVED"
STOCK_SOLD = "SOLD"
VALID_STOCK_STATUSES = [STOCK_AVAILABLE, STOCK_RESERVED, STOCK_SOLD]


class StockItem(db.Model):
    """
    One physically tagged unit of a Product.

    STATE MACHINE: status is AVAILABLE, RESERVED or SOLD. Only
    stock_service changes it; see stock_service.ALLOWED_TRANSITIONS.

    INVARIANT: status is RESERVED or SOLD iff sales_order_line_id points at a
    line of a non-cancelled sales order. Manual holds (stock_service.reserve_items)
    are the one exception: RESERVED with no line.
    """
    __tablename__ = "stock_items"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "tag_id", name="uq_stock_items_shop_tag"),
        db.UniqueConstraint("shop_id", "barcode", name="uq_stock_items_shop_barcode"),
        db.Index("ix_stock_items_product_status", "product_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    tag_id = db.Column(db.String(64), nullable=False)
    barcode = db.Column(db.String(64), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=STOCK_AVAILABLE, index=True)

    purchase_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    purchase_date = db.Column(db.DateTime(timezone=True), nullable=True)
    sale_date = db.Column(db.DateTime(timezone=True), nullable=True)

    sales_order_line_id = db.Column(
        db.Integer,
        db.ForeignKey("sales_order_lines.id", use_alter=True, name="fk_stock_items_sales_order_line"),
        nullable=True,
        index=True,
    )

    lifecycle = db.Column(db.String(16), nullable=False, default=LIFECYCLE_ACTIVE, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("stock_items", lazy=True))

    def __repr__(self) -> str:
        return f"<StockItem id={self.id} tag={self.tag_id!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "product_id": self.product_id,
            "tag_id": self.tag_id,
            "barcode": self.barcode,
            "status": self.status,
            "purchase_cost": money_str(self.purchase_cost),
            "purchase_date": to_utc_z(self.purchase_date) if self.purchase_date else None,
            "sale_date": to_utc_z(self.sale_date) if self.sale_date else None,
            "sales_order_line_id": self.sales_order_line_id,
            "lifecycle": self.lifecycle,
            "created_at": to_utc_z(self.created_at),
        }
