# Overview: Service-layer operations for the income/expense ledger; entries are derived from payments.

from __future__ import annotations

from decimal import Decimal
from typing import Optional
from datetime import datetime

from flask import current_app, has_app_context

from ..extensions import db
from ..models import Transaction
from ..models.sales import TXN_CATEGORY_SALES, TXN_EMI, TXN_INCOME, TXN_STATUS_COMPLETED
from karat.time_utils import utcnow
"""
Ledger Invariants

- Append-only: entries are never updated or deleted.
- No business rules here; callers decide when money moved.
- Entries are written inside the same DB transaction as the payment they
  record, so a rolled-back payment leaves no entry behind.
- One entry per SalesPayment (transactions.sales_payment_id is unique).
"""

DEFAULT_CURRENCY = "INR"


def _currency() -> str:
    if has_app_context():
        return current_app.config.get("KARAT_CURRENCY", DEFAULT_CURRENCY)
    return DEFAULT_CURRENCY


def append_transaction(
    *,
    shop_id: int,
    transaction_type: str,
    category: str,
    amount: Decimal,
    payment_mode: str,
    description: Optional[str] = None,
    reference_number: Optional[str] = None,
    customer_id: int | None = None,
    sales_order_id: int | None = None,
    sales_payment_id: int | None = None,
    emi_installment_id: int | None = None,
    user_id: int | None = None,
    transaction_date: Optional[datetime] = None,
) -> Transaction:
    txn = Transaction(
        shop_id=shop_id,
        transaction_type=transaction_type,
        category=category,
        amount=amount,
        payment_mode=payment_mode,
        currency=_currency(),
        status=TXN_STATUS_COMPLETED,
        description=description,
        reference_number=reference_number,
        customer_id=customer_id,
        sales_order_id=sales_order_id,
        sales_payment_id=sales_payment_id,
        emi_installment_id=emi_installment_id,
        created_by_user_id=user_id,
        transaction_date=transaction_date or utcnow(),
    )
    db.session.add(txn)
    db.session.flush()
    return txn


def record_sale_income(order, payment, *, user_id: int | None = None) -> Transaction:
    """INCOME entry for a sales payment, or the existing one if already written."""
    existing = db.session.query(Transaction).filter_by(sales_payment_id=payment.id).first()
    if existing:
        return existing

    return append_transaction(
        shop_id=order.shop_id,
        transaction_type=TXN_INCOME,
        category=TXN_CATEGORY_SALES,
        amount=payment.amount,
        payment_mode=payment.payment_method,
        description=f"Payment for order {order.invoice_number}",
        reference_number=payment.reference_number,
        customer_id=order.customer_id,
        sales_order_id=order.id,
        sales_payment_id=payment.id,
        user_id=user_id,
        transaction_date=payment.payment_date,
    )


def record_installment_income(emi, installment, amount: Decimal, payment_mode: str, *,
                              reference_number: str | None = None, user_id: int | None = None,
                              paid_at: Optional[datetime] = None) -> Transaction:
    return append_transaction(
        shop_id=emi.shop_id,
        transaction_type=TXN_EMI,
        category=TXN_CATEGORY_SALES,
        amount=amount,
        payment_mode=payment_mode,
        description=f"EMI installment {installment.installment_number} for plan {emi.id}",
        reference_number=reference_number,
        customer_id=emi.customer_id,
        sales_order_id=emi.sales_order_id,
        emi_installment_id=installment.id,
        user_id=user_id,
        transaction_date=paid_at,
    )


def list_transactions(shop_id: int, *, sales_order_id: int | None = None,
                      transaction_type: str | None = None) -> list[Transaction]:
    query = db.session.query(Transaction).filter_by(shop_id=shop_id)
    if sales_order_id is not None:
        query = query.filter_by(sales_order_id=sales_order_id)
    if transaction_type:
        query = query.filter_by(transaction_type=transaction_type)
    return query.order_by(Transaction.transaction_date.desc(), Transaction.id.desc()).all()
