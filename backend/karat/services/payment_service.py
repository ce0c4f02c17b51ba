# Overview: Service-layer operations for payments; reconciles sales-order and EMI installment payments.

"""
Payment Reconciliation Service

Money received is recorded against either a sales order or one EMI
installment. Each call is one database transaction: the payment row, the
balance update on the parent and the ledger entry commit together or not
at all.

RULES:
- Reject, never clamp: amount must be > 0 and <= the pending balance
- Nothing pending -> OrderFullyPaidError / InstallmentFullyPaidError
- payment_status is derived, never assigned (derive_payment_status)
- Cancelled orders accept no payments

IDEMPOTENCY:
A caller that may retry passes an idempotency_key (HTTP: Idempotency-Key
header). A key already used on the same order returns the original payment
with replayed=True and changes nothing. Two distinct payments of the same
amount and method are two payments.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..extensions import db
from ..models import EmiInstallment, EmiPayment, SalesOrder, SalesPayment, Transaction
from ..models.emi import EMI_OVERDUE, EMI_PAID, EMI_PENDING
from ..models.sales import (
    ORDER_CANCELLED,
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_PARTIAL,
    PAYMENT_STATUS_PENDING,
    VALID_PAYMENT_METHODS,
)
from ..models.tenancy import LIFECYCLE_ACTIVE
from karat.time_utils import utcnow
from karat.validation import money_str, parse_choice, parse_money
from . import ledger_service
from .concurrency import lock_for_update, run_in_transaction
from .errors import (
    InstallmentFullyPaidError,
    InvalidInputError,
    NotFoundError,
    OrderCancelledError,
    OrderFullyPaidError,
    PaymentExceedsBalanceError,
)
from .metrics import MetricsSink, resolve


ZERO = Decimal("0.00")


@dataclass
class OrderPaymentResult:
    payment: SalesPayment
    order: SalesOrder
    transaction: Transaction | None
    replayed: bool = False

    def to_dict(self) -> dict:
        return {
            "payment": self.payment.to_dict(),
            "order": self.order.to_dict(),
            "transaction": self.transaction.to_dict() if self.transaction else None,
            "replayed": self.replayed,
        }


@dataclass
class InstallmentPaymentResult:
    installment: EmiInstallment
    emi: EmiPayment
    transaction: Transaction

    def to_dict(self) -> dict:
        return {
            "installment": self.installment.to_dict(),
            "emi": self.emi.to_dict(),
            "transaction": self.transaction.to_dict(),
        }


# =============================================================================
# DERIVED STATUS
# =============================================================================

def derive_payment_status(paid_amount: Decimal, final_amount: Decimal) -> str:
    """
    PAID when nothing is pending (including a zero-value order),
    PARTIAL when something but not everything is paid, else PENDING.
    """
    if paid_amount >= final_amount:
        return PAYMENT_STATUS_PAID
    if paid_amount > 0:
        return PAYMENT_STATUS_PARTIAL
    return PAYMENT_STATUS_PENDING


def _validate_payment_args(amount, method: str) -> tuple[Decimal, str]:
    value = parse_money("amount", amount, positive=True)
    method = parse_choice("payment_method", method, VALID_PAYMENT_METHODS)
    return value, method


def _normalize_key(idempotency_key) -> str | None:
    if idempotency_key is None:
        return None
    if not isinstance(idempotency_key, str) or not idempotency_key.strip():
        raise InvalidInputError("idempotency_key must be a non-empty string")
    key = idempotency_key.strip()
    if len(key) > 128:
        raise InvalidInputError("idempotency_key cannot exceed 128 characters")
    return key


# =============================================================================
# SALES ORDER PAYMENTS
# =============================================================================

def apply_order_payment(
    order: SalesOrder,
    amount: Decimal,
    method: str,
    *,
    reference: str | None = None,
    notes: str | None = None,
    user_id: int | None = None,
    idempotency_key: str | None = None,
    paid_at=None,
) -> tuple[SalesPayment, Transaction]:
    """
    Apply a validated payment to a locked order. Joins the caller's transaction.

    Shared by record_order_payment and order creation (initial payment).
    """
    if order.status == ORDER_CANCELLED:
        raise OrderCancelledError(f"Sales order {order.invoice_number} is cancelled")

    pending = order.final_amount - order.paid_amount
    if pending <= 0:
        raise OrderFullyPaidError(
            f"Sales order {order.invoice_number} is already fully paid",
            details={"final_amount": money_str(order.final_amount), "paid_amount": money_str(order.paid_amount)},
        )
    if amount > pending:
        raise PaymentExceedsBalanceError(
            f"Payment amount {money_str(amount)} exceeds pending amount {money_str(pending)}",
            details={"pending_amount": money_str(pending)},
        )

    payment = SalesPayment(
        sales_order_id=order.id,
        amount=amount,
        payment_method=method,
        payment_date=paid_at or utcnow(),
        reference_number=reference,
        notes=notes,
        idempotency_key=idempotency_key,
        created_by_user_id=user_id,
    )
    db.session.add(payment)

    order.paid_amount = order.paid_amount + amount
    order.payment_status = derive_payment_status(order.paid_amount, order.final_amount)
    db.session.flush()

    txn = ledger_service.record_sale_income(order, payment, user_id=user_id)
    return payment, txn


def record_order_payment(
    order_id: int,
    amount,
    method: str,
    reference: str | None = None,
    *,
    shop_id: int,
    user_id: int | None = None,
    idempotency_key: str | None = None,
    notes: str | None = None,
    metrics: MetricsSink | None = None,
) -> OrderPaymentResult:
    """
    Record a payment against a sales order.

    Returns:
        OrderPaymentResult(payment, order, transaction, replayed)

    Raises:
        InvalidInputError: amount not > 0 with <= 2 dp, or unknown method
        NotFoundError: order not in this shop
        OrderCancelledError: order is cancelled
        OrderFullyPaidError: nothing pending
        PaymentExceedsBalanceError: amount > pending
    """
    metrics = resolve(metrics)
    value, method = _validate_payment_args(amount, method)
    key = _normalize_key(idempotency_key)

    def _op():
        order = lock_for_update(
            db.session.query(SalesOrder).filter_by(id=order_id, shop_id=shop_id, lifecycle=LIFECYCLE_ACTIVE)
        ).first()
        if not order:
            raise NotFoundError(f"Sales order {order_id} not found")

        if key is not None:
            previous = db.session.query(SalesPayment).filter_by(
                sales_order_id=order.id, idempotency_key=key
            ).first()
            if previous:
                txn = db.session.query(Transaction).filter_by(sales_payment_id=previous.id).first()
                return OrderPaymentResult(payment=previous, order=order, transaction=txn, replayed=True)

        payment, txn = apply_order_payment(
            order,
            value,
            method,
            reference=reference,
            notes=notes,
            user_id=user_id,
            idempotency_key=key,
        )
        return OrderPaymentResult(payment=payment, order=order, transaction=txn)

    with metrics.timer("payments.order.record"):
        try:
            result = run_in_transaction(_op)
        except Exception as exc:
            metrics.increment("payments.order.rejected", error=type(exc).__name__)
            raise

    if result.replayed:
        metrics.increment("payments.order.replayed")
    else:
        metrics.increment("payments.order.recorded", method=method)
    return result


def get_order_payments(order_id: int, *, shop_id: int) -> list[SalesPayment]:
    order = db.session.query(SalesOrder).filter_by(id=order_id, shop_id=shop_id).first()
    if not order:
        raise NotFoundError(f"Sales order {order_id} not found")
    return (
        db.session.query(SalesPayment)
        .filter_by(sales_order_id=order_id)
        .order_by(SalesPayment.payment_date.asc(), SalesPayment.id.asc())
        .all()
    )


def get_payment_summary(order_id: int, *, shop_id: int) -> dict:
    """
    Totals for an order, recomputed from its payment rows.

    payments_total always equals paid_amount; a mismatch would mean a
    payment was applied outside this service.
    """
    order = db.session.query(SalesOrder).filter_by(id=order_id, shop_id=shop_id).first()
    if not order:
        raise NotFoundError(f"Sales order {order_id} not found")

    payments = get_order_payments(order_id, shop_id=shop_id)
    payments_total = sum((p.amount for p in payments), ZERO)

    return {
        "sales_order_id": order.id,
        "invoice_number": order.invoice_number,
        "final_amount": money_str(order.final_amount),
        "paid_amount": money_str(order.paid_amount),
        "pending_amount": money_str(order.pending_amount),
        "payment_status": order.payment_status,
        "payment_count": len(payments),
        "payments_total": money_str(payments_total),
        "payments": [p.to_dict() for p in payments],
    }


# =============================================================================
# EMI INSTALLMENT PAYMENTS
# =============================================================================

def rollup_emi(emi: EmiPayment, *, today=None) -> None:
    """
    Recompute the plan's aggregate fields from its installments.

    paid/remaining come from installment sums; current_installment and
    next_installment_date point at the first installment still owing.
    """
    from .emi_service import is_installment_overdue

    today = today or utcnow().date()
    installments = sorted(emi.installments, key=lambda i: i.installment_number)

    paid = sum((i.paid_amount for i in installments), ZERO)
    emi.paid_amount = paid
    emi.remaining_amount = max(emi.total_payable - paid, ZERO)

    unpaid = [i for i in installments if i.paid_amount < i.amount]
    if unpaid:
        emi.current_installment = unpaid[0].installment_number
        emi.next_installment_date = unpaid[0].due_date
    else:
        emi.current_installment = emi.number_of_installments
        emi.next_installment_date = None

    if emi.remaining_amount <= 0 or not unpaid:
        emi.status = EMI_PAID
    elif any(is_installment_overdue(i, today) for i in unpaid):
        emi.status = EMI_OVERDUE
    else:
        emi.status = EMI_PENDING


def record_installment_payment(
    emi_id: int,
    installment_id: int,
    amount,
    method: str,
    reference: str | None = None,
    *,
    shop_id: int,
    user_id: int | None = None,
    now=None,
    metrics: MetricsSink | None = None,
) -> InstallmentPaymentResult:
    """
    Record a payment against one installment of an EMI plan.

    The installment becomes PAID once fully paid; a partial payment keeps it
    OVERDUE or PENDING by the overdue predicate. The plan is rolled up and
    one EMI ledger entry is written, all in one transaction.

    Raises:
        InvalidInputError: amount not > 0 with <= 2 dp, or unknown method
        NotFoundError: plan not in this shop, or installment not on the plan
        InstallmentFullyPaidError: installment has nothing pending
        PaymentExceedsBalanceError: amount > installment balance
    """
    from .emi_service import is_installment_overdue

    metrics = resolve(metrics)
    value, method = _validate_payment_args(amount, method)

    def _op():
        paid_at = now or utcnow()
        today = paid_at.date()

        emi = lock_for_update(
            db.session.query(EmiPayment).filter_by(id=emi_id, shop_id=shop_id, lifecycle=LIFECYCLE_ACTIVE)
        ).first()
        if not emi:
            raise NotFoundError(f"EMI plan {emi_id} not found")

        installment = lock_for_update(
            db.session.query(EmiInstallment).filter_by(id=installment_id, emi_payment_id=emi.id)
        ).first()
        if not installment:
            raise NotFoundError(f"Installment {installment_id} not found on EMI plan {emi_id}")

        pending = installment.amount - installment.paid_amount
        if pending <= 0:
            raise InstallmentFullyPaidError(
                f"Installment {installment.installment_number} is already fully paid"
            )
        if value > pending:
            raise PaymentExceedsBalanceError(
                f"Payment amount {money_str(value)} exceeds installment balance {money_str(pending)}",
                details={"pending_amount": money_str(pending)},
            )

        installment.paid_amount = installment.paid_amount + value
        installment.payment_date = paid_at
        installment.payment_mode = method
        installment.reference_number = reference
        if installment.paid_amount >= installment.amount:
            installment.status = EMI_PAID
        elif is_installment_overdue(installment, today):
            installment.status = EMI_OVERDUE
        else:
            installment.status = EMI_PENDING

        emi.last_payment_date = paid_at
        rollup_emi(emi, today=today)
        db.session.flush()

        txn = ledger_service.record_installment_income(
            emi,
            installment,
            value,
            method,
            reference_number=reference,
            user_id=user_id,
            paid_at=paid_at,
        )
        return InstallmentPaymentResult(installment=installment, emi=emi, transaction=txn)

    with metrics.timer("payments.installment.record"):
        try:
            result = run_in_transaction(_op)
        except Exception as exc:
            metrics.increment("payments.installment.rejected", error=type(exc).__name__)
            raise

    metrics.increment("payments.installment.recorded", method=method)
    return result
