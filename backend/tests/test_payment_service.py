"""
Payment reconciliation tests.

Verifies:
- Partial and full payments move payment_status PENDING -> PARTIAL -> PAID
- Overpayment and payments on a fully paid order are rejected, not clamped
- paid_amount always equals the sum of recorded payments
- Idempotency-Key replays return the original payment
- Each payment writes exactly one ledger entry in the same transaction
"""

from decimal import Decimal

import pytest

from karat.models import SalesPayment, Transaction
from karat.models.sales import (
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_PARTIAL,
    PAYMENT_STATUS_PENDING,
    TXN_CATEGORY_SALES,
    TXN_INCOME,
)
from karat.services import payment_service, sales_service
from karat.services.errors import (
    InvalidInputError,
    NotFoundError,
    OrderCancelledError,
    OrderFullyPaidError,
    PaymentExceedsBalanceError,
)
from karat.services.metrics import InMemoryMetrics


@pytest.fixture
def order(shop, owner, customer, priced_stock):
    """Order with final_amount 10000.00 (61700.00 less 51700.00 discount)."""
    return sales_service.create_sales_order(
        shop.id,
        customer.id,
        [{"stock_item_id": priced_stock[0].id}],
        payment_method="CASH",
        discount_amount="51700.00",
        user_id=owner.id,
    )


def _payments_total(db_session, order_id):
    return sum(
        (p.amount for p in db_session.query(SalesPayment).filter_by(sales_order_id=order_id)),
        Decimal("0.00"),
    )


class TestDerivedStatus:

    @pytest.mark.parametrize(
        "paid,final,expected",
        [
            ("0.00", "100.00", PAYMENT_STATUS_PENDING),
            ("0.01", "100.00", PAYMENT_STATUS_PARTIAL),
            ("100.00", "100.00", PAYMENT_STATUS_PAID),
            ("0.00", "0.00", PAYMENT_STATUS_PAID),
        ],
    )
    def test_derive_payment_status(self, paid, final, expected):
        assert payment_service.derive_payment_status(Decimal(paid), Decimal(final)) == expected


class TestOrderPayments:

    def test_partial_then_full_then_rejected(self, db_session, shop, owner, order):
        assert order.final_amount == Decimal("10000.00")
        assert order.payment_status == PAYMENT_STATUS_PENDING

        first = payment_service.record_order_payment(order.id, "4000.00", "CASH", shop_id=shop.id, user_id=owner.id)
        assert first.order.paid_amount == Decimal("4000.00")
        assert first.order.payment_status == PAYMENT_STATUS_PARTIAL

        second = payment_service.record_order_payment(order.id, "6000.00", "UPI", "UTR-1", shop_id=shop.id)
        assert second.order.paid_amount == Decimal("10000.00")
        assert second.order.payment_status == PAYMENT_STATUS_PAID
        assert second.payment.reference_number == "UTR-1"

        with pytest.raises(OrderFullyPaidError):
            payment_service.record_order_payment(order.id, "1.00", "CASH", shop_id=shop.id)

        assert _payments_total(db_session, order.id) == Decimal("10000.00")

    def test_overpayment_rejected_and_nothing_changes(self, db_session, shop, order):
        payment_service.record_order_payment(order.id, "4000.00", "CASH", shop_id=shop.id)

        with pytest.raises(PaymentExceedsBalanceError) as exc:
            payment_service.record_order_payment(order.id, "6000.01", "CASH", shop_id=shop.id)
        assert exc.value.details["pending_amount"] == "6000.00"

        db_session.refresh(order)
        assert order.paid_amount == Decimal("4000.00")
        assert order.payment_status == PAYMENT_STATUS_PARTIAL
        assert db_session.query(SalesPayment).filter_by(sales_order_id=order.id).count() == 1
        assert db_session.query(Transaction).filter_by(sales_order_id=order.id).count() == 1

    @pytest.mark.parametrize("amount", ["0", "-5.00", "10.005", True, None, "ten"])
    def test_invalid_amounts(self, shop, order, amount):
        with pytest.raises(InvalidInputError):
            payment_service.record_order_payment(order.id, amount, "CASH", shop_id=shop.id)

    def test_invalid_method(self, shop, order):
        with pytest.raises(InvalidInputError):
            payment_service.record_order_payment(order.id, "10.00", "CHEQUE", shop_id=shop.id)

    def test_missing_order(self, shop):
        with pytest.raises(NotFoundError):
            payment_service.record_order_payment(4040, "10.00", "CASH", shop_id=shop.id)

    def test_other_shop_cannot_pay(self, other_shop, order):
        with pytest.raises(NotFoundError):
            payment_service.record_order_payment(order.id, "10.00", "CASH", shop_id=other_shop.id)

    def test_cancelled_order_rejects_payment(self, shop, order):
        sales_service.cancel_sales_order(order.id, shop_id=shop.id, reason="Customer changed mind")
        with pytest.raises(OrderCancelledError):
            payment_service.record_order_payment(order.id, "10.00", "CASH", shop_id=shop.id)

    def test_equal_payments_without_key_are_both_recorded(self, db_session, shop, order):
        payment_service.record_order_payment(order.id, "1000.00", "CASH", shop_id=shop.id)
        payment_service.record_order_payment(order.id, "1000.00", "CASH", shop_id=shop.id)

        db_session.refresh(order)
        assert order.paid_amount == Decimal("2000.00")
        assert _payments_total(db_session, order.id) == order.paid_amount


class TestIdempotency:

    def test_replay_returns_original(self, db_session, shop, order):
        first = payment_service.record_order_payment(
            order.id, "2500.00", "CARD", shop_id=shop.id, idempotency_key="pay-001",
        )
        replay = payment_service.record_order_payment(
            order.id, "2500.00", "CARD", shop_id=shop.id, idempotency_key="pay-001",
        )

        assert first.replayed is False
        assert replay.replayed is True
        assert replay.payment.id == first.payment.id
        assert replay.transaction.id == first.transaction.id

        db_session.refresh(order)
        assert order.paid_amount == Decimal("2500.00")
        assert db_session.query(SalesPayment).filter_by(sales_order_id=order.id).count() == 1

    def test_replay_after_order_fully_paid(self, shop, order):
        payment_service.record_order_payment(order.id, "10000.00", "CASH", shop_id=shop.id, idempotency_key="full")

        replay = payment_service.record_order_payment(
            order.id, "10000.00", "CASH", shop_id=shop.id, idempotency_key="full",
        )
        assert replay.replayed is True

    def test_blank_key_rejected(self, shop, order):
        with pytest.raises(InvalidInputError):
            payment_service.record_order_payment(order.id, "1.00", "CASH", shop_id=shop.id, idempotency_key="  ")


class TestLedger:

    def test_one_income_entry_per_payment(self, db_session, shop, owner, customer, order):
        result = payment_service.record_order_payment(
            order.id, "4000.00", "UPI", "UTR-9", shop_id=shop.id, user_id=owner.id,
        )

        entries = db_session.query(Transaction).filter_by(sales_order_id=order.id).all()
        assert len(entries) == 1
        entry = entries[0]
        assert entry.id == result.transaction.id
        assert entry.sales_payment_id == result.payment.id
        assert entry.transaction_type == TXN_INCOME
        assert entry.category == TXN_CATEGORY_SALES
        assert entry.amount == Decimal("4000.00")
        assert entry.payment_mode == "UPI"
        assert entry.currency == "INR"
        assert entry.customer_id == customer.id

    def test_summary_matches_payments(self, shop, order):
        payment_service.record_order_payment(order.id, "4000.00", "CASH", shop_id=shop.id)
        payment_service.record_order_payment(order.id, "1500.50", "CARD", shop_id=shop.id)

        summary = payment_service.get_payment_summary(order.id, shop_id=shop.id)
        assert summary["paid_amount"] == "5500.50"
        assert summary["payments_total"] == "5500.50"
        assert summary["pending_amount"] == "4499.50"
        assert summary["payment_count"] == 2
        assert summary["payment_status"] == PAYMENT_STATUS_PARTIAL


class TestMetrics:

    def test_recorded_rejected_replayed(self, shop, order):
        sink = InMemoryMetrics()

        payment_service.record_order_payment(order.id, "100.00", "CASH", shop_id=shop.id,
                                             idempotency_key="k1", metrics=sink)
        payment_service.record_order_payment(order.id, "100.00", "CASH", shop_id=shop.id,
                                             idempotency_key="k1", metrics=sink)
        with pytest.raises(PaymentExceedsBalanceError):
            payment_service.record_order_payment(order.id, "99999.00", "CASH", shop_id=shop.id, metrics=sink)

        assert sink.count("payments.order.recorded") == 1
        assert sink.count("payments.order.replayed") == 1
        assert sink.count("payments.order.rejected") == 1
        assert len(sink.timings["payments.order.record"]) == 3
