# Overview: Service-layer operations for EMI plans; schedule generation, overdue sweep and upcoming view.

"""
EMI Installment Scheduler

Plans are monthly: installment i (1-based) falls due on
start_date + (i - 1) months, clamped to the end of shorter months.

OVERDUE PREDICATE:
    due_date < today AND paid_amount < amount

mark_overdue_installments() is meant to be run by an external scheduler
(`flask emi mark-overdue` from cron). It only touches PENDING rows that
meet the predicate, so a second run in a row marks nothing and emits no
metrics.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from itertools import groupby

from ..extensions import db
from ..models import Customer, EmiInstallment, EmiPayment, SalesOrder
from ..models.emi import EMI_OVERDUE, EMI_PAID, EMI_PENDING
from ..models.tenancy import LIFECYCLE_ACTIVE
from karat.time_utils import add_months, to_iso_date, utcnow
from karat.validation import money_str, parse_money, parse_percent, parse_positive_int, round_money
from .concurrency import run_in_transaction
from .errors import InvalidInputError, NotFoundError
from .metrics import MetricsSink, resolve
from .payment_service import rollup_emi
from .pricing_service import calculate_emi_installment


ZERO = Decimal("0.00")
MAX_INSTALLMENTS = 120


@dataclass
class OverdueSweepResult:
    installments_marked: int = 0
    plans_marked: int = 0
    installment_ids: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "installments_marked": self.installments_marked,
            "plans_marked": self.plans_marked,
            "installment_ids": list(self.installment_ids),
        }


def _today(now=None) -> date:
    return (now or utcnow()).date()


def is_installment_overdue(installment: EmiInstallment, today: date) -> bool:
    return installment.due_date < today and installment.paid_amount < installment.amount


# =============================================================================
# PLAN CREATION
# =============================================================================

def build_schedule(total_payable: Decimal, installment_amount: Decimal, count: int,
                   start_date: date) -> list[tuple[int, date, Decimal]]:
    """
    (number, due_date, amount) for each installment.

    Every installment is installment_amount except the last, which takes
    whatever is left so the schedule sums exactly to total_payable.
    """
    schedule = []
    allocated = ZERO
    for i in range(count):
        if i == count - 1:
            amount = total_payable - allocated
        else:
            amount = installment_amount
        allocated += amount
        schedule.append((i + 1, add_months(start_date, i), amount))
    return schedule


def create_emi_plan(
    shop_id: int,
    customer_id: int,
    principal_amount,
    number_of_installments,
    start_date: date,
    *,
    interest_rate=0,
    installment_amount=None,
    sales_order_id: int | None = None,
    notes: str | None = None,
    user_id: int | None = None,
) -> EmiPayment:
    """
    Create a plan and its monthly installment schedule.

    installment_amount defaults to the amortised EMI for the rate. With a
    zero rate, total_payable equals the principal and the last installment
    absorbs the rounding remainder. With interest, total_payable is
    installment_amount * n.

    Raises:
        InvalidInputError: bad amounts, count, or start date
        NotFoundError: customer or sales order not in this shop
    """
    principal = parse_money("principal_amount", principal_amount, positive=True)
    rate = parse_percent("interest_rate", interest_rate)
    count = parse_positive_int("number_of_installments", number_of_installments)
    if count > MAX_INSTALLMENTS:
        raise InvalidInputError(f"number_of_installments cannot exceed {MAX_INSTALLMENTS}")
    if not isinstance(start_date, date):
        raise InvalidInputError("emi_start_date must be a date")

    if installment_amount is None:
        per_installment = calculate_emi_installment(principal, rate, count)
    else:
        per_installment = parse_money("installment_amount", installment_amount, positive=True)

    if rate == 0:
        total_payable = principal
        if per_installment * (count - 1) >= total_payable:
            raise InvalidInputError("installment_amount is too large for the principal")
    else:
        total_payable = round_money(per_installment * count)

    def _op():
        customer = db.session.query(Customer).filter_by(
            id=customer_id, shop_id=shop_id, lifecycle=LIFECYCLE_ACTIVE
        ).first()
        if not customer:
            raise NotFoundError(f"Customer {customer_id} not found")
        if sales_order_id is not None:
            order = db.session.query(SalesOrder).filter_by(id=sales_order_id, shop_id=shop_id).first()
            if not order:
                raise NotFoundError(f"Sales order {sales_order_id} not found")

        emi = EmiPayment(
            shop_id=shop_id,
            customer_id=customer.id,
            sales_order_id=sales_order_id,
            principal_amount=principal,
            interest_rate=rate,
            number_of_installments=count,
            installment_amount=per_installment,
            total_payable=total_payable,
            paid_amount=ZERO,
            remaining_amount=total_payable,
            emi_start_date=start_date,
            next_installment_date=start_date,
            current_installment=1,
            status=EMI_PENDING,
            notes=notes,
            created_by_user_id=user_id,
        )
        db.session.add(emi)
        db.session.flush()

        for number, due_date, amount in build_schedule(total_payable, per_installment, count, start_date):
            db.session.add(EmiInstallment(
                emi_payment_id=emi.id,
                installment_number=number,
                due_date=due_date,
                amount=amount,
                paid_amount=ZERO,
                status=EMI_PENDING,
            ))
        db.session.flush()
        return emi

    return run_in_transaction(_op)


def get_emi_plan(emi_id: int, *, shop_id: int) -> EmiPayment:
    emi = db.session.query(EmiPayment).filter_by(id=emi_id, shop_id=shop_id, lifecycle=LIFECYCLE_ACTIVE).first()
    if not emi:
        raise NotFoundError(f"EMI plan {emi_id} not found")
    return emi


# =============================================================================
# OVERDUE SWEEP
# =============================================================================

def mark_overdue_installments(
    *,
    now=None,
    shop_id: int | None = None,
    metrics: MetricsSink | None = None,
) -> OverdueSweepResult:
    """
    Mark PENDING installments past due as OVERDUE, and their plans.

    Idempotent: rows already OVERDUE are left alone and not counted, so
    running twice yields the same OVERDUE set and the second run reports 0.
    """
    metrics = resolve(metrics)
    today = _today(now)

    def _op():
        query = (
            db.session.query(EmiInstallment)
            .join(EmiPayment, EmiInstallment.emi_payment_id == EmiPayment.id)
            .filter(
                EmiInstallment.status == EMI_PENDING,
                EmiInstallment.due_date < today,
                EmiInstallment.paid_amount < EmiInstallment.amount,
                EmiPayment.lifecycle == LIFECYCLE_ACTIVE,
            )
        )
        if shop_id is not None:
            query = query.filter(EmiPayment.shop_id == shop_id)

        result = OverdueSweepResult()
        plans = {}
        for installment in query.order_by(EmiInstallment.id).all():
            installment.status = EMI_OVERDUE
            result.installment_ids.append(installment.id)
            plans[installment.emi_payment_id] = installment.emi_payment

        for emi in plans.values():
            if emi.status != EMI_OVERDUE and emi.status != EMI_PAID:
                emi.status = EMI_OVERDUE
                result.plans_marked += 1

        result.installments_marked = len(result.installment_ids)
        return result

    with metrics.timer("emi.overdue_sweep"):
        result = run_in_transaction(_op)

    if result.installments_marked:
        metrics.increment("emi.installments.marked_overdue", result.installments_marked)
    if result.plans_marked:
        metrics.increment("emi.plans.marked_overdue", result.plans_marked)
    return result


def get_overdue_installments(shop_id: int, *, now=None) -> list[EmiInstallment]:
    """Installments meeting the overdue predicate, whether or not the sweep has run."""
    today = _today(now)
    return (
        db.session.query(EmiInstallment)
        .join(EmiPayment, EmiInstallment.emi_payment_id == EmiPayment.id)
        .filter(
            EmiPayment.shop_id == shop_id,
            EmiPayment.lifecycle == LIFECYCLE_ACTIVE,
            EmiInstallment.due_date < today,
            EmiInstallment.paid_amount < EmiInstallment.amount,
        )
        .order_by(EmiInstallment.due_date.asc(), EmiInstallment.id.asc())
        .all()
    )


def get_overdue_plans(shop_id: int) -> list[EmiPayment]:
    return (
        db.session.query(EmiPayment)
        .filter_by(shop_id=shop_id, status=EMI_OVERDUE, lifecycle=LIFECYCLE_ACTIVE)
        .order_by(EmiPayment.next_installment_date.asc(), EmiPayment.id.asc())
        .all()
    )


# =============================================================================
# UPCOMING
# =============================================================================

class UpcomingInstallments:
    """
    Unpaid installments due in [today, today + days], grouped by due date.

    Iterating yields (due_date, [installments]) in date order. Nothing is
    read until iteration starts, and every new iteration queries again, so
    the same object can be reused to get a fresh view.
    """

    def __init__(self, days: int, *, shop_id: int | None = None, now=None):
        if isinstance(days, bool) or not isinstance(days, int) or days < 0:
            raise InvalidInputError("days must be a non-negative integer")
        self.days = days
        self.shop_id = shop_id
        self.now = now

    def _query(self):
        today = _today(self.now)
        until = today + timedelta(days=self.days)
        query = (
            db.session.query(EmiInstallment)
            .join(EmiPayment, EmiInstallment.emi_payment_id == EmiPayment.id)
            .filter(
                EmiInstallment.status != EMI_PAID,
                EmiInstallment.paid_amount < EmiInstallment.amount,
                EmiInstallment.due_date >= today,
                EmiInstallment.due_date <= until,
                EmiPayment.lifecycle == LIFECYCLE_ACTIVE,
            )
        )
        if self.shop_id is not None:
            query = query.filter(EmiPayment.shop_id == self.shop_id)
        return query.order_by(EmiInstallment.due_date.asc(), EmiInstallment.id.asc())

    def __iter__(self):
        for due_date, group in groupby(self._query().yield_per(100), key=lambda i: i.due_date):
            yield due_date, list(group)

    def to_list(self) -> list[dict]:
        return [
            {
                "due_date": to_iso_date(due_date),
                "installments": [i.to_dict() for i in installments],
                "total_due": money_str(sum((i.pending_amount for i in installments), ZERO)),
            }
            for due_date, installments in self
        ]


def get_upcoming_installments(days: int, *, shop_id: int | None = None, now=None) -> UpcomingInstallments:
    return UpcomingInstallments(days, shop_id=shop_id, now=now)


# =============================================================================
# SUMMARIES
# =============================================================================

def get_customer_emi_summary(customer_id: int, *, shop_id: int) -> dict:
    customer = db.session.query(Customer).filter_by(id=customer_id, shop_id=shop_id).first()
    if not customer:
        raise NotFoundError(f"Customer {customer_id} not found")

    plans = (
        db.session.query(EmiPayment)
        .filter_by(customer_id=customer_id, shop_id=shop_id, lifecycle=LIFECYCLE_ACTIVE)
        .order_by(EmiPayment.id)
        .all()
    )
    return {
        "customer_id": customer_id,
        "total_plans": len(plans),
        "active_plans": sum(1 for p in plans if p.status != EMI_PAID),
        "overdue_plans": sum(1 for p in plans if p.status == EMI_OVERDUE),
        "total_payable": money_str(sum((p.total_payable for p in plans), ZERO)),
        "total_paid": money_str(sum((p.paid_amount for p in plans), ZERO)),
        "total_remaining": money_str(sum((p.remaining_amount for p in plans), ZERO)),
        "plans": [p.to_dict() for p in plans],
    }

