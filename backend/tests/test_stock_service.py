"""
Stock item state machine tests.

Verifies:
- Only AVAILABLE items can be put on an order line or held
- Releasing an order's items is all or nothing
- Manual holds cannot release items that belong to an order
"""

import pytest
from sqlalchemy import text

from karat.extensions import db
from karat.models import SalesOrder, SalesOrderLine, StockItem
from karat.models.inventory import STOCK_AVAILABLE, STOCK_RESERVED, STOCK_SOLD
from karat.services import stock_service
from karat.services.concurrency import run_in_transaction
from karat.services.errors import (
    ConflictError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    StockItemUnavailableError,
)
from karat.time_utils import utcnow


def _order_with_lines(shop, customer, items, invoice="INV-TEST-0001"):
    """Bare order whose lines point at `items` (no pricing involved)."""
    order = SalesOrder(
        shop_id=shop.id,
        customer_id=customer.id,
        invoice_number=invoice,
        order_total=0,
        discount_amount=0,
        final_amount=0,
        paid_amount=0,
    )
    db.session.add(order)
    db.session.flush()
    lines = []
    for item in items:
        line = SalesOrderLine(sales_order_id=order.id, stock_item_id=item.id, unit_price=0, line_total=0)
        db.session.add(line)
        lines.append(line)
    db.session.commit()
    return order, lines


class TestTransitions:

    def test_allowed_transitions(self):
        assert stock_service.can_transition(STOCK_AVAILABLE, STOCK_RESERVED)
        assert stock_service.can_transition(STOCK_RESERVED, STOCK_SOLD)
        assert stock_service.can_transition(STOCK_SOLD, STOCK_AVAILABLE)
        assert not stock_service.can_transition(STOCK_SOLD, STOCK_RESERVED)
        assert not stock_service.can_transition("LOST", STOCK_AVAILABLE)

    def test_reserve_onto_line(self, db_session, shop, customer, stock_items):
        item = stock_items[0]
        order, lines = _order_with_lines(shop, customer, [item])

        run_in_transaction(lambda: stock_service.reserve_stock_item(item.id, lines[0].id, shop_id=shop.id))

        db_session.refresh(item)
        assert item.status == STOCK_RESERVED
        assert item.sales_order_line_id == lines[0].id
        assert item.sale_date is None

    def test_reserve_and_sell(self, db_session, shop, customer, stock_items):
        item = stock_items[0]
        order, lines = _order_with_lines(shop, customer, [item])
        sold_at = utcnow()

        run_in_transaction(lambda: stock_service.reserve_stock_item(
            item.id, lines[0].id, shop_id=shop.id, mark_sold=True, now=sold_at,
        ))

        db_session.refresh(item)
        assert item.status == STOCK_SOLD
        assert item.sale_date is not None

    def test_reserve_unavailable_item(self, db_session, shop, customer, stock_items):
        item = stock_items[0]
        item.status = STOCK_SOLD
        db_session.commit()
        order, lines = _order_with_lines(shop, customer, [item])

        with pytest.raises(StockItemUnavailableError) as exc:
            run_in_transaction(lambda: stock_service.reserve_stock_item(item.id, lines[0].id, shop_id=shop.id))
        assert exc.value.details["status"] == STOCK_SOLD

    def test_reserve_after_stale_read(self, db_session, monkeypatch, shop, customer, stock_items):
        """Another writer sells the item between our read and our write."""
        item = stock_items[0]
        order, lines = _order_with_lines(shop, customer, [item])
        load = stock_service._load_item_for_update

        def load_then_sold_elsewhere(stock_item_id, shop_id=None):
            loaded = load(stock_item_id, shop_id)
            db_session.execute(
                text("UPDATE stock_items SET status = 'SOLD' WHERE id = :id"),
                {"id": stock_item_id},
            )
            return loaded

        monkeypatch.setattr(stock_service, "_load_item_for_update", load_then_sold_elsewhere)

        with pytest.raises(StockItemUnavailableError) as exc:
            run_in_transaction(lambda: stock_service.reserve_stock_item(item.id, lines[0].id, shop_id=shop.id))

        assert exc.value.details == {"stock_item_id": item.id}
        # Rolled back: neither our write nor the other one landed
        row = db_session.execute(
            text("SELECT status, sales_order_line_id FROM stock_items WHERE id = :id"),
            {"id": item.id},
        ).one()
        assert tuple(row) == (STOCK_AVAILABLE, None)

    def test_reserve_missing_item(self, shop):
        with pytest.raises(NotFoundError):
            run_in_transaction(lambda: stock_service.reserve_stock_item(987654, 1, shop_id=shop.id))

    def test_reserve_other_shop_item(self, other_shop, customer, stock_items):
        with pytest.raises(NotFoundError):
            run_in_transaction(lambda: stock_service.reserve_stock_item(stock_items[0].id, 1, shop_id=other_shop.id))


class TestOrderRelease:

    def _reserve_all(self, shop, customer, items):
        order, lines = _order_with_lines(shop, customer, items)

        def _op():
            for item, line in zip(items, lines):
                stock_service.reserve_stock_item(item.id, line.id, shop_id=shop.id)
        run_in_transaction(_op)
        return order

    def test_release_returns_items_to_available(self, db_session, shop, customer, stock_items):
        order = self._reserve_all(shop, customer, stock_items)

        released = run_in_transaction(lambda: stock_service.release_stock_items_for_order(order.id, shop_id=shop.id))

        assert len(released) == 3
        for item in stock_items:
            db_session.refresh(item)
            assert item.status == STOCK_AVAILABLE
            assert item.sales_order_line_id is None
            assert item.sale_date is None

    def test_release_is_all_or_nothing(self, db_session, monkeypatch, shop, customer, stock_items):
        order = self._reserve_all(shop, customer, stock_items)
        original = stock_service._release_item
        calls = []

        def failing_release(item):
            calls.append(item.id)
            if len(calls) == 2:
                raise RuntimeError("simulated failure")
            original(item)

        monkeypatch.setattr(stock_service, "_release_item", failing_release)

        with pytest.raises(RuntimeError):
            run_in_transaction(lambda: stock_service.release_stock_items_for_order(order.id, shop_id=shop.id))

        statuses = [
            s for (s,) in db_session.query(StockItem.status).filter(
                StockItem.id.in_([i.id for i in stock_items])
            ).all()
        ]
        assert statuses == [STOCK_RESERVED] * 3

    def test_release_missing_order(self, shop):
        with pytest.raises(NotFoundError):
            run_in_transaction(lambda: stock_service.release_stock_items_for_order(55555, shop_id=shop.id))

    def test_mark_reserved_items_sold(self, db_session, shop, customer, stock_items):
        order = self._reserve_all(shop, customer, stock_items[:2])

        run_in_transaction(lambda: stock_service.mark_reserved_items_sold(order.id))

        for item in stock_items[:2]:
            db_session.refresh(item)
            assert item.status == STOCK_SOLD
        db_session.refresh(stock_items[2])
        assert stock_items[2].status == STOCK_AVAILABLE


class TestManualHolds:

    def test_reserve_and_release(self, db_session, shop, stock_items):
        ids = [stock_items[0].id, stock_items[1].id]

        held = stock_service.reserve_items(shop.id, ids)
        assert [i.status for i in held] == [STOCK_RESERVED, STOCK_RESERVED]

        released = stock_service.release_reserved_items(shop.id, ids)
        assert [i.status for i in released] == [STOCK_AVAILABLE, STOCK_AVAILABLE]

    def test_reserve_is_all_or_nothing(self, db_session, shop, stock_items):
        stock_items[1].status = STOCK_SOLD
        db_session.commit()

        with pytest.raises(StockItemUnavailableError):
            stock_service.reserve_items(shop.id, [stock_items[0].id, stock_items[1].id])

        db_session.refresh(stock_items[0])
        assert stock_items[0].status == STOCK_AVAILABLE

    def test_cannot_release_order_item(self, db_session, shop, customer, stock_items):
        item = stock_items[0]
        order, lines = _order_with_lines(shop, customer, [item])
        run_in_transaction(lambda: stock_service.reserve_stock_item(item.id, lines[0].id, shop_id=shop.id))

        with pytest.raises(InvalidStateError):
            stock_service.release_reserved_items(shop.id, [item.id])

        db_session.refresh(item)
        assert item.status == STOCK_RESERVED

    @pytest.mark.parametrize("ids", [[], "1,2", [1, 1], [True], None])
    def test_rejects_bad_id_lists(self, shop, ids):
        with pytest.raises(InvalidInputError):
            stock_service.reserve_items(shop.id, ids)

    def test_available_items_fifo(self, db_session, shop, product, stock_items):
        stock_service.reserve_items(shop.id, [stock_items[0].id])

        available = stock_service.get_available_items(shop.id, product.id)
        assert [i.id for i in available] == [stock_items[1].id, stock_items[2].id]


class TestReceiving:

    def test_add_item_generates_tag(self, db_session, shop, product):
        first = stock_service.add_stock_item(shop.id, product.id, purchase_cost="58000.00")
        second = stock_service.add_stock_item(shop.id, product.id)

        assert first.tag_id == f"G22-{product.id:05d}-0001"
        assert second.tag_id == f"G22-{product.id:05d}-0002"
        assert first.barcode == first.tag_id
        assert first.status == STOCK_AVAILABLE
        assert str(first.purchase_cost) == "58000.00"
        assert [i.id for i in stock_service.get_available_items(shop.id, product.id)] == [first.id, second.id]

    def test_add_item_with_explicit_tag(self, shop, product):
        item = stock_service.add_stock_item(shop.id, product.id, tag_id=" RING-77 ", barcode="8901234567890")
        assert (item.tag_id, item.barcode) == ("RING-77", "8901234567890")

    def test_duplicate_tag_conflicts(self, shop, product, stock_items):
        with pytest.raises(ConflictError):
            stock_service.add_stock_item(shop.id, product.id, tag_id=stock_items[0].tag_id)

    def test_unknown_product(self, other_shop, product):
        with pytest.raises(NotFoundError):
            stock_service.add_stock_item(other_shop.id, product.id)

    @pytest.mark.parametrize("kwargs", [{"purchase_cost": "-1"}, {"purchase_cost": "1.001"}, {"tag_id": "  "}])
    def test_rejects_bad_input(self, shop, product, kwargs):
        with pytest.raises(InvalidInputError):
            stock_service.add_stock_item(shop.id, product.id, **kwargs)

    def test_list_by_status(self, shop, product, stock_items):
        stock_service.reserve_items(shop.id, [stock_items[1].id])

        held = stock_service.list_stock_items(shop.id, status=STOCK_RESERVED)
        assert [i.id for i in held] == [stock_items[1].id]
        assert len(stock_service.list_stock_items(shop.id, product_id=product.id)) == 3
        with pytest.raises(InvalidInputError):
            stock_service.list_stock_items(shop.id, status="LOST")
