from __future__ import annotations

from ..extensions import db
from karat.time_utils import to_utc_z, utcnow
from karat.validation import money_str
from .tenancy import LIFECYCLE_ACTIVE


ORDER_PENDING = "PENDING"
ORDER_COMPLETED = "COMPLETED"
ORDER_CANCELLED = "CANCELLED"
VALID_ORDER_STATUSES = [ORDER_PENDING, ORDER_COMPLETED, ORDER_CANCELLED]

ORDER_TYPE_RETAIL = "RETAIL"
ORDER_TYPE_WHOLESALE = "WHOLESALE"
ORDER_TYPE_CUSTOM = "CUSTOM"
ORDER_TYPE_EXCHANGE = "EXCHANGE"
VALID_ORDER_TYPES = [ORDER_TYPE_RETAIL, ORDER_TYPE_WHOLESALE, ORDER_TYPE_CUSTOM, ORDER_TYPE_EXCHANGE]

PAYMENT_STATUS_PENDING = "PENDING"
PAYMENT_STATUS_PARTIAL = "PARTIAL"
PAYMENT_STATUS_PAID = "PAID"

METHOD_CASH = "CASH"
METHOD_UPI = "UPI"
METHOD_CARD = "CARD"
METHOD_BANK_TRANSFER = "BANK_TRANSFER"
METHOD_CREDIT = "CREDIT"
METHOD_EMI = "EMI"
VALID_PAYMENT_METHODS = [METHOD_CASH, METHOD_UPI, METHOD_CARD, METHOD_BANK_TRANSFER, METHOD_CREDIT, METHOD_EMI]

TXN_INCOME = "INCOME"
TXN_EXPENSE = "EXPENSE"
TXN_EMI = "EMI"
TXN_ADJUSTMENT = "ADJUSTMENT"

TXN_CATEGORY_SALES = "SALES"
TXN_CATEGORY_PURCHASE = "PURCHASE"
TXN_CATEGORY_OTHER = "OTHER"

TXN_STATUS_COMPLETED = "COMPLETED"


class SalesOrder(db.Model):
    """
    Sales order (invoice) for tagged stock items.

    INVARIANTS:
    - paid_amount <= final_amount
    - payment_status is derived from paid_amount vs final_amount only
      (payment_service.derive_payment_status); never set it directly
    - paid_amount == sum(payments.amount)
    """
    __tablename__ = "sales_orders"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "invoice_number", name="uq_sales_orders_shop_invoice"),
        db.Index("ix_sales_orders_shop_status_date", "shop_id", "status", "order_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    invoice_number = db.Column(db.String(64), nullable=False)

    order_total = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    final_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    paid_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_STATUS_PENDING, index=True)
    payment_method = db.Column(db.String(32), nullable=True)
    status = db.Column(db.String(16), nullable=False, default=ORDER_PENDING, index=True)
    order_type = db.Column(db.String(16), nullable=False, default=ORDER_TYPE_RETAIL)

    notes = db.Column(db.Text, nullable=True)

    order_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancel_reason = db.Column(db.String(255), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    lifecycle = db.Column(db.String(16), nullable=False, default=LIFECYCLE_ACTIVE, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("sales_orders", lazy=True))

    @property
    def pending_amount(self):
        return self.final_amount - self.paid_amount

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "shop_id": self.shop_id,
            "customer_id": self.customer_id,
            "invoice_number": self.invoice_number,
            "order_total": money_str(self.order_total),
            "discount_amount": money_str(self.discount_amount),
            "final_amount": money_str(self.final_amount),
            "paid_amount": money_str(self.paid_amount),
            "pending_amount": money_str(self.pending_amount),
            "payment_status": self.payment_status,
            "payment_method": self.payment_method,
            "status": self.status,
            "order_type": self.order_type,
            "notes": self.notes,
            "order_date": to_utc_z(self.order_date),
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
            "cancel_reason": self.cancel_reason,
            "created_by_user_id": self.created_by_user_id,
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class SalesOrderLine(db.Model):
    """
    One stock item on a sales order, with the rate snapshot used to price it.
    """
    __tablename__ = "sales_order_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sales_order_id = db.Column(db.Integer, db.ForeignKey("sales_orders.id"), nullable=False, index=True)
    stock_item_id = db.Column(db.Integer, db.ForeignKey("stock_items.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=1)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    line_total = db.Column(db.Numeric(12, 2), nullable=False)

    # Rate snapshot at sale time
    rate_id = db.Column(db.Integer, db.ForeignKey("rate_master.id"), nullable=True)
    metal_rate_per_gram = db.Column(db.Numeric(12, 2), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sales_order = db.relationship("SalesOrder", backref=db.backref("lines", lazy=True, order_by="SalesOrderLine.id"))
    stock_item = db.relationship("StockItem", foreign_keys=[stock_item_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sales_order_id": self.sales_order_id,
            "stock_item_id": self.stock_item_id,
            "quantity": self.quantity,
            "unit_price": money_str(self.unit_price),
            "line_total": money_str(self.line_total),
            "rate_id": self.rate_id,
            "metal_rate_per_gram": money_str(self.metal_rate_per_gram),
        }


class SalesPayment(db.Model):
    """
    Payment received against a sales order.

    IMMUTABLE: rows are only ever inserted.
    idempotency_key is the client-supplied request id; a repeated key for the
    same order is answered with the original row.
    """
    __tablename__ = "sales_payments"
    __table_args__ = (
        db.UniqueConstraint("sales_order_id", "idempotency_key", name="uq_sales_payments_order_key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sales_order_id = db.Column(db.Integer, db.ForeignKey("sales_orders.id"), nullable=False, index=True)

    amount = db.Column(db.Numeric(12, 2), nullable=False)
    payment_method = db.Column(db.String(32), nullable=False)
    payment_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    reference_number = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.String(255), nullable=True)
    idempotency_key = db.Column(db.String(128), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    sales_order = db.relationship("SalesOrder", backref=db.backref("payments", lazy=True, order_by="SalesPayment.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sales_order_id": self.sales_order_id,
            "amount": money_str(self.amount),
            "payment_method": self.payment_method,
            "payment_date": to_utc_z(self.payment_date),
            "reference_number": self.reference_number,
            "notes": self.notes,
            "idempotency_key": self.idempotency_key,
            "created_by_user_id": self.created_by_user_id,
        }


class Transaction(db.Model):
    """
    Income/expense ledger entry derived from a payment.

    IMMUTABLE: created as a side effect of payment recording, never updated.
    Each sales payment produces exactly one entry (sales_payment_id is
    unique); each installment payment call produces one EMI entry.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_shop_date", "shop_id", "transaction_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    transaction_type = db.Column(db.String(16), nullable=False, index=True)
    category = db.Column(db.String(16), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    payment_mode = db.Column(db.String(32), nullable=False)
    currency = db.Column(db.String(8), nullable=False, default="INR")
    status = db.Column(db.String(16), nullable=False, default=TXN_STATUS_COMPLETED)

    description = db.Column(db.String(255), nullable=True)
    reference_number = db.Column(db.String(128), nullable=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    sales_order_id = db.Column(db.Integer, db.ForeignKey("sales_orders.id"), nullable=True, index=True)
    sales_payment_id = db.Column(db.Integer, db.ForeignKey("sales_payments.id"), nullable=True, unique=True)
    emi_installment_id = db.Column(db.Integer, db.ForeignKey("emi_installments.id"), nullable=True, index=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    transaction_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "transaction_type": self.transaction_type,
            "category": self.category,
            "amount": money_str(self.amount),
            "payment_mode": self.payment_mode,
            "currency": self.currency,
            "status": self.status,
            "description": self.description,
            "reference_number": self.reference_number,
            "customer_id": self.customer_id,
            "sales_order_id": self.sales_order_id,
            "sales_payment_id": self.sales_payment_id,
            "emi_installment_id": self.emi_installment_id,
            "transaction_date": to_utc_z(self.transaction_date),
        }
