from __future__ import annotations

from ..extensions import db
from karat.time_utils import to_iso_date, to_utc_z
from karat.validation import money_str
from .tenancy import LIFECYCLE_ACTIVE


EMI_PENDING = "PENDING"
EMI_PAID = "PAID"
EMI_OVERDUE = "OVERDUE"
VALID_EMI_STATUSES = [EMI_PENDING, EMI_PAID, EMI_OVERDUE]


class EmiPayment(db.Model):
    """
    Installment (EMI) plan for a customer purchase.

    ROLLUP: paid_amount, remaining_amount, current_installment,
    next_installment_date and status are recomputed from the installments
    whenever one of them changes (payment_service / emi_service).
    """
    __tablename__ = "emi_payments"
    __table_args__ = (
        db.Index("ix_emi_payments_shop_status", "shop_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    sales_order_id = db.Column(db.Integer, db.ForeignKey("sales_orders.id"), nullable=True, index=True)

    principal_amount = db.Column(db.Numeric(12, 2), nullable=False)
    interest_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)  # annual %
    number_of_installments = db.Column(db.Integer, nullable=False)
    installment_amount = db.Column(db.Numeric(12, 2), nullable=False)
    total_payable = db.Column(db.Numeric(12, 2), nullable=False)

    paid_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    remaining_amount = db.Column(db.Numeric(12, 2), nullable=False)

    emi_start_date = db.Column(db.Date, nullable=False)
    next_installment_date = db.Column(db.Date, nullable=True)
    last_payment_date = db.Column(db.DateTime(timezone=True), nullable=True)
    current_installment = db.Column(db.Integer, nullable=False, default=1)

    status = db.Column(db.String(16), nullable=False, default=EMI_PENDING, index=True)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    lifecycle = db.Column(db.String(16), nullable=False, default=LIFECYCLE_ACTIVE, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("emi_payments", lazy=True))
    installments = db.relationship(
        "EmiInstallment",
        backref="emi_payment",
        lazy=True,
        order_by="EmiInstallment.installment_number",
    )

    def to_dict(self, include_installments: bool = False) -> dict:
        data = {
            "id": self.id,
            "shop_id": self.shop_id,
            "customer_id": self.customer_id,
            "sales_order_id": self.sales_order_id,
            "principal_amount": money_str(self.principal_amount),
            "interest_rate": money_str(self.interest_rate),
            "number_of_installments": self.number_of_installments,
            "installment_amount": money_str(self.installment_amount),
            "total_payable": money_str(self.total_payable),
            "paid_amount": money_str(self.paid_amount),
            "remaining_amount": money_str(self.remaining_amount),
            "emi_start_date": to_iso_date(self.emi_start_date),
            "next_installment_date": to_iso_date(self.next_installment_date),
            "last_payment_date": to_utc_z(self.last_payment_date) if self.last_payment_date else None,
            "current_installment": self.current_installment,
            "status": self.status,
            "notes": self.notes,
        }
        if include_installments:
            data["installments"] = [i.to_dict() for i in self.installments]
        return data


class EmiInstallment(db.Model):
    """
    One scheduled installment of an EmiPayment.

    INVARIANT: paid_amount <= amount. due_date is a calendar date; an
    installment is overdue when due_date < today and paid_amount < amount.
    """
    __tablename__ = "emi_installments"
    __table_args__ = (
        db.UniqueConstraint("emi_payment_id", "installment_number", name="uq_emi_installments_plan_number"),
        db.Index("ix_emi_installments_status_due", "status", "due_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    emi_payment_id = db.Column(db.Integer, db.ForeignKey("emi_payments.id"), nullable=False, index=True)

    installment_number = db.Column(db.Integer, nullable=False)
    due_date = db.Column(db.Date, nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    paid_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    payment_date = db.Column(db.DateTime(timezone=True), nullable=True)
    payment_mode = db.Column(db.String(32), nullable=True)
    reference_number = db.Column(db.String(128), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=EMI_PENDING)

    @property
    def pending_amount(self):
        return self.amount - self.paid_amount

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "emi_payment_id": self.emi_payment_id,
            "installment_number": self.installment_number,
            "due_date": to_iso_date(self.due_date),
            "amount": money_str(self.amount),
            "paid_amount": money_str(self.paid_amount),
            "pending_amount": money_str(self.pending_amount),
            "payment_date": to_utc_z(self.payment_date) if self.payment_date else None,
            "payment_mode": self.payment_mode,
            "reference_number": self.reference_number,
            "status": self.status,
        }
