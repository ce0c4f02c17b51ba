# Overview: Service-layer operations for sales orders; pricing, stock reservation and initial payment in one unit of work.

"""
Sales Order Service

LIFECYCLE:
    PENDING   -> COMPLETED   items RESERVED -> SOLD
    PENDING   -> CANCELLED   items released to AVAILABLE
    COMPLETED -> CANCELLED   items released to AVAILABLE

An order created with create_as_pending=False is COMPLETED straight away
and its items go AVAILABLE -> SOLD.

Unit prices are computed at sale time from the current rate and kept on
the line together with the rate they came from. Payments already received
on a cancelled order stay on record; refunds are not handled here.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app, has_app_context

from ..extensions import db
from ..models import Customer, SalesOrder, SalesOrderLine
from ..models.audit import ACTION_CREATE, ACTION_STATUS_CHANGE, MODULE_SALES_ORDERS
from ..models.sales import (
    ORDER_CANCELLED,
    ORDER_COMPLETED,
    ORDER_PENDING,
    ORDER_TYPE_RETAIL,
    VALID_ORDER_TYPES,
    VALID_PAYMENT_METHODS,
)
from ..models.tenancy import LIFECYCLE_ACTIVE
from karat.time_utils import utcnow
from karat.validation import parse_choice, parse_money, round_money
from . import audit_service, payment_service, pricing_service, stock_service
from .concurrency import lock_for_update, run_in_transaction
from .errors import InvalidInputError, InvalidStateError, NotFoundError, OrderCancelledError
from .metrics import MetricsSink, resolve


ZERO = Decimal("0.00")
DEFAULT_INVOICE_PREFIX = "INV"


def _invoice_prefix() -> str:
    if has_app_context():
        return current_app.config.get("KARAT_INVOICE_PREFIX", DEFAULT_INVOICE_PREFIX)
    return DEFAULT_INVOICE_PREFIX


def next_invoice_number(shop_id: int, *, now=None) -> str:
    """
    Next invoice number for the shop and day: PREFIX-YYYYMMDD-NNNN.

    The (shop_id, invoice_number) unique constraint rejects a concurrent
    duplicate; the losing transaction rolls back.
    """
    now = now or utcnow()
    stem = f"{_invoice_prefix()}-{now.strftime('%Y%m%d')}-"
    latest = (
        db.session.query(SalesOrder.invoice_number)
        .filter(SalesOrder.shop_id == shop_id, SalesOrder.invoice_number.like(f"{stem}%"))
        .order_by(SalesOrder.invoice_number.desc())
        .first()
    )
    sequence = 1
    if latest:
        try:
            sequence = int(latest[0][len(stem):]) + 1
        except ValueError:
            sequence = 1
    return f"{stem}{sequence:04d}"


def _parse_line_refs(lines) -> list[dict]:
    if not isinstance(lines, list) or not lines:
        raise InvalidInputError("At least one line item is required")

    refs = []
    seen = set()
    for index, line in enumerate(lines):
        if not isinstance(line, dict):
            raise InvalidInputError(f"lines[{index}] must be an object")
        stock_item_id = line.get("stock_item_id")
        tag_id = line.get("tag_id")
        if stock_item_id is None and not tag_id:
            raise InvalidInputError(f"lines[{index}] needs stock_item_id or tag_id")
        if stock_item_id is not None and (isinstance(stock_item_id, bool) or not isinstance(stock_item_id, int)):
            raise InvalidInputError(f"lines[{index}].stock_item_id must be an integer")
        key = ("id", stock_item_id) if stock_item_id is not None else ("tag", tag_id)
        if key in seen:
            raise InvalidInputError(f"lines[{index}] repeats a stock item")
        seen.add(key)
        refs.append({"stock_item_id": stock_item_id, "tag_id": tag_id})
    return refs


def _get_order(order_id: int, shop_id: int, *, for_update: bool = False) -> SalesOrder:
    query = db.session.query(SalesOrder).filter_by(id=order_id, shop_id=shop_id, lifecycle=LIFECYCLE_ACTIVE)
    if for_update:
        query = lock_for_update(query)
    order = query.first()
    if not order:
        raise NotFoundError(f"Sales order {order_id} not found")
    return order


def get_sales_order(order_id: int, *, shop_id: int) -> SalesOrder:
    return _get_order(order_id, shop_id)


def create_sales_order(
    shop_id: int,
    customer_id: int,
    lines,
    *,
    payment_method: str,
    discount_amount=0,
    payment_amount=0,
    order_type: str = ORDER_TYPE_RETAIL,
    create_as_pending: bool = False,
    user_id: int | None = None,
    notes: str | None = None,
    idempotency_key: str | None = None,
    now=None,
    metrics: MetricsSink | None = None,
) -> SalesOrder:
    """
    Create a sales order for tagged stock items.

    Steps, all in one transaction:
    1. Price each item at the current rate (RateNotFoundError stops the sale)
    2. final_amount = order_total - discount_amount (negative is rejected)
    3. Reserve each item (pending order) or sell it (completed order)
    4. Record the initial payment, if any, through payment reconciliation

    Raises:
        InvalidInputError, NotFoundError, RateNotFoundError,
        StockItemUnavailableError, PaymentExceedsBalanceError
    """
    metrics = resolve(metrics)
    refs = _parse_line_refs(lines)
    method = parse_choice("payment_method", payment_method, VALID_PAYMENT_METHODS)
    order_type = parse_choice("order_type", order_type, VALID_ORDER_TYPES)
    discount = parse_money("discount_amount", discount_amount)
    initial_payment = parse_money("payment_amount", payment_amount)

    def _op():
        order_now = now or utcnow()

        customer = db.session.query(Customer).filter_by(
            id=customer_id, shop_id=shop_id, lifecycle=LIFECYCLE_ACTIVE
        ).first()
        if not customer:
            raise NotFoundError(f"Customer {customer_id} not found")

        priced = [
            pricing_service.price_stock_item(shop_id, stock_item_id=ref["stock_item_id"], tag_id=ref["tag_id"], now=order_now)
            for ref in refs
        ]

        order_total = round_money(sum((p.total_price for p in priced), ZERO))
        final_amount = order_total - discount
        if final_amount < 0:
            raise InvalidInputError("Discount cannot exceed order total")

        order = SalesOrder(
            shop_id=shop_id,
            customer_id=customer.id,
            invoice_number=next_invoice_number(shop_id, now=order_now),
            order_total=order_total,
            discount_amount=discount,
            final_amount=final_amount,
            paid_amount=ZERO,
            payment_status=payment_service.derive_payment_status(ZERO, final_amount),
            payment_method=method,
            status=ORDER_PENDING if create_as_pending else ORDER_COMPLETED,
            order_type=order_type,
            order_date=order_now,
            completed_at=None if create_as_pending else order_now,
            notes=notes,
            created_by_user_id=user_id,
        )
        db.session.add(order)
        db.session.flush()

        for price in priced:
            line = SalesOrderLine(
                sales_order_id=order.id,
                stock_item_id=price.stock_item.id,
                quantity=1,
                unit_price=price.total_price,
                line_total=price.total_price,
                rate_id=price.rate.id,
                metal_rate_per_gram=price.rate.rate_per_gram,
            )
            db.session.add(line)
            db.session.flush()
            stock_service.reserve_stock_item(
                price.stock_item.id,
                line.id,
                shop_id=shop_id,
                mark_sold=not create_as_pending,
                now=order_now,
            )

        if initial_payment > 0:
            payment_service.apply_order_payment(
                order,
                initial_payment,
                method,
                user_id=user_id,
                idempotency_key=idempotency_key,
                paid_at=order_now,
            )

        audit_service.record(
            action=ACTION_CREATE,
            module=MODULE_SALES_ORDERS,
            shop_id=shop_id,
            user_id=user_id,
            entity_id=order.id,
            summary=f"Created {order.invoice_number} for {order.final_amount}",
        )
        return order

    with metrics.timer("sales.order.create"):
        order = run_in_transaction(_op)
    metrics.increment("sales.order.created", status=order.status)
    return order


def complete_sales_order(order_id: int, *, shop_id: int, user_id: int | None = None, now=None) -> SalesOrder:
    """PENDING -> COMPLETED; every reserved item becomes SOLD."""
    def _op():
        order_now = now or utcnow()
        order = _get_order(order_id, shop_id, for_update=True)
        if order.status == ORDER_CANCELLED:
            raise OrderCancelledError(f"Sales order {order.invoice_number} is cancelled")
        if order.status != ORDER_PENDING:
            raise InvalidStateError(f"Sales order {order.invoice_number} is already {order.status}")

        stock_service.mark_reserved_items_sold(order.id, now=order_now)
        order.status = ORDER_COMPLETED
        order.completed_at = order_now

        audit_service.record(
            action=ACTION_STATUS_CHANGE,
            module=MODULE_SALES_ORDERS,
            shop_id=shop_id,
            user_id=user_id,
            entity_id=order.id,
            summary=f"{order.invoice_number} completed",
        )
        return order

    return run_in_transaction(_op)


def cancel_sales_order(
    order_id: int,
    *,
    shop_id: int,
    reason: str | None = None,
    user_id: int | None = None,
    now=None,
    metrics: MetricsSink | None = None,
) -> SalesOrder:
    """
    Cancel an order and release all of its stock.

    All items go back to AVAILABLE or none do.

    Raises:
        OrderCancelledError: order already cancelled
    """
    metrics = resolve(metrics)

    def _op():
        order = _get_order(order_id, shop_id, for_update=True)
        if order.status == ORDER_CANCELLED:
            raise OrderCancelledError(f"Sales order {order.invoice_number} is already cancelled")

        released = stock_service.release_stock_items_for_order(order.id, shop_id=shop_id)
        order.status = ORDER_CANCELLED
        order.cancelled_at = now or utcnow()
        order.cancel_reason = reason

        audit_service.record(
            action=ACTION_STATUS_CHANGE,
            module=MODULE_SALES_ORDERS,
            shop_id=shop_id,
            user_id=user_id,
            entity_id=order.id,
            summary=f"{order.invoice_number} cancelled; {len(released)} item(s) released",
        )
        return order, len(released)

    order, released_count = run_in_transaction(_op)
    metrics.increment("sales.order.cancelled")
    metrics.increment("stock.items.released", released_count)
    return order


def list_sales_orders(shop_id: int, *, status: str | None = None, customer_id: int | None = None,
                      limit: int = 50) -> list[SalesOrder]:
    query = db.session.query(SalesOrder).filter_by(shop_id=shop_id, lifecycle=LIFECYCLE_ACTIVE)
    if status:
        query = query.filter_by(status=status)
    if customer_id is not None:
        query = query.filter_by(customer_id=customer_id)
    return query.order_by(SalesOrder.order_date.desc(), SalesOrder.id.desc()).limit(limit).all()
