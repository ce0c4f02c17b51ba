# Overview: Service-layer operations for stock items; owns the AVAILABLE/RESERVED/SOLD state machine.

"""
Stock Item State Machine

    AVAILABLE -> RESERVED   order line created on a pending order, or manual hold
    AVAILABLE -> SOLD       order line created on a completed order
    RESERVED  -> SOLD       order completed
    RESERVED  -> AVAILABLE  order cancelled, or manual hold released
    SOLD      -> AVAILABLE  order cancelled (only way out of SOLD)

MANUAL HOLDS:
reserve_items puts an item on hold as RESERVED with no order line. That is
the one exception to "RESERVED iff linked to a line of an active sales
order"; release_reserved_items is the only way back for such an item.

CONCURRENCY:
The AVAILABLE check and the status write are one conditional UPDATE
(... WHERE id = ? AND status = 'AVAILABLE'). A second writer that read the
row before the first committed updates zero rows and gets
StockItemUnavailableError instead of double-reserving. The preceding
SELECT ... FOR UPDATE serialises writers on databases that honour it.

Functions marked "joins the caller's transaction" only flush; the caller
wraps them in run_in_transaction so every item of an order moves or none do.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Product, SalesOrder, SalesOrderLine, StockItem
from ..models.inventory import STOCK_AVAILABLE, STOCK_RESERVED, STOCK_SOLD, VALID_STOCK_STATUSES
from ..models.tenancy import LIFECYCLE_ACTIVE
from karat.time_utils import utcnow
from karat.validation import parse_choice, parse_money
from .concurrency import lock_for_update, run_in_transaction
from .errors import (
    ConflictError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    StockItemUnavailableError,
)


ALLOWED_TRANSITIONS = {
    STOCK_AVAILABLE: frozenset({STOCK_RESERVED, STOCK_SOLD}),
    STOCK_RESERVED: frozenset({STOCK_SOLD, STOCK_AVAILABLE}),
    STOCK_SOLD: frozenset({STOCK_AVAILABLE}),
}


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def _load_item_for_update(stock_item_id: int, shop_id: int | None = None) -> StockItem:
    query = db.session.query(StockItem).filter_by(id=stock_item_id, lifecycle=LIFECYCLE_ACTIVE)
    if shop_id is not None:
        query = query.filter_by(shop_id=shop_id)
    item = lock_for_update(query).first()
    if not item:
        raise NotFoundError(f"Stock item {stock_item_id} not found")
    return item


def _compare_and_set(item: StockItem, expected: tuple[str, ...], values: dict) -> None:
    """
    Write `values` only if the row's status is still one of `expected`.

    Raises StockItemUnavailableError when another writer got there first.
    """
    updated = (
        db.session.query(StockItem)
        .filter(StockItem.id == item.id, StockItem.status.in_(expected))
        .update(values, synchronize_session=False)
    )
    if updated != 1:
        db.session.expire(item)
        raise StockItemUnavailableError(
            f"Stock item {item.tag_id} is not {'/'.join(expected)}",
            details={"stock_item_id": item.id},
        )
    # Bring the in-session object in line with the row
    db.session.refresh(item)


# =============================================================================
# ORDER-DRIVEN TRANSITIONS (join the caller's transaction)
# =============================================================================

def reserve_stock_item(
    stock_item_id: int,
    line_id: int,
    *,
    shop_id: int | None = None,
    mark_sold: bool = False,
    now=None,
) -> StockItem:
    """
    Move an AVAILABLE item onto a sales order line.

    The item becomes RESERVED, or SOLD with sale_date set when mark_sold.
    Joins the caller's transaction.

    Raises:
        NotFoundError: item does not exist in the shop
        StockItemUnavailableError: item is not AVAILABLE (already on another
            order, held, or sold)
    """
    item = _load_item_for_update(stock_item_id, shop_id)
    target = STOCK_SOLD if mark_sold else STOCK_RESERVED

    if not can_transition(item.status, target) or item.status != STOCK_AVAILABLE:
        raise StockItemUnavailableError(
            f"Stock item {item.tag_id} is {item.status}, not {STOCK_AVAILABLE}",
            details={"stock_item_id": item.id, "status": item.status},
        )

    values = {"status": target, "sales_order_line_id": line_id}
    if mark_sold:
        values["sale_date"] = now or utcnow()

    _compare_and_set(item, (STOCK_AVAILABLE,), values)
    return item


def _order_lines(order_id: int) -> list[SalesOrderLine]:
    return (
        db.session.query(SalesOrderLine)
        .filter_by(sales_order_id=order_id)
        .order_by(SalesOrderLine.id)
        .all()
    )


def _linked_items(order_id: int) -> list[StockItem]:
    line_ids = [line.id for line in _order_lines(order_id)]
    if not line_ids:
        return []
    return lock_for_update(
        db.session.query(StockItem)
        .filter(StockItem.sales_order_line_id.in_(line_ids))
        .order_by(StockItem.id)
    ).all()


def mark_reserved_items_sold(order_id: int, *, now=None) -> list[StockItem]:
    """
    RESERVED -> SOLD for every item on the order. Joins the caller's transaction.

    Raises:
        StockItemUnavailableError: an item on the order is not RESERVED
    """
    now = now or utcnow()
    items = _linked_items(order_id)
    for item in items:
        if item.status == STOCK_SOLD:
            continue
        _compare_and_set(item, (STOCK_RESERVED,), {"status": STOCK_SOLD, "sale_date": now})
    return items


def _release_item(item: StockItem) -> None:
    _compare_and_set(
        item,
        (STOCK_RESERVED, STOCK_SOLD),
        {"status": STOCK_AVAILABLE, "sale_date": None, "sales_order_line_id": None},
    )


def release_stock_items_for_order(order_id: int, *, shop_id: int | None = None) -> list[StockItem]:
    """
    Return every item linked to the order's lines to AVAILABLE.

    sale_date and the line link are cleared. Joins the caller's transaction,
    so a failure part-way leaves every item as it was once rolled back.

    Returns:
        The released items
    """
    query = db.session.query(SalesOrder).filter_by(id=order_id)
    if shop_id is not None:
        query = query.filter_by(shop_id=shop_id)
    if not query.first():
        raise NotFoundError(f"Sales order {order_id} not found")

    items = _linked_items(order_id)
    for item in items:
        _release_item(item)
    return items


# =============================================================================
# RECEIVING (own transaction)
# =============================================================================

METAL_CODES = {"GOLD": "G", "SILVER": "S", "PLATINUM": "P"}


def _next_tag_id(product: Product) -> str:
    """G22-00007-0003: metal code and purity digits, product id, per-product sequence."""
    purity_digits = "".join(ch for ch in product.purity if ch.isdigit())
    stem = f"{METAL_CODES.get(product.metal_type, 'X')}{purity_digits}-{product.id:05d}"
    count = db.session.query(StockItem.id).filter_by(shop_id=product.shop_id, product_id=product.id).count()
    return f"{stem}-{count + 1:04d}"


def add_stock_item(
    shop_id: int,
    product_id: int,
    *,
    tag_id: str | None = None,
    barcode: str | None = None,
    purchase_cost=0,
    purchase_date=None,
) -> StockItem:
    """
    Receive one physical unit of a product as an AVAILABLE stock item.

    tag_id is generated when omitted; barcode defaults to the tag.

    Raises:
        NotFoundError: product does not exist in the shop
        ConflictError: tag or barcode already used in the shop
    """
    cost = parse_money("purchase_cost", purchase_cost)
    for field, value in (("tag_id", tag_id), ("barcode", barcode)):
        if value is not None and (not isinstance(value, str) or not value.strip()):
            raise InvalidInputError(f"{field} must be a non-empty string")

    def _op():
        product = (
            db.session.query(Product)
            .filter_by(id=product_id, shop_id=shop_id, lifecycle=LIFECYCLE_ACTIVE)
            .first()
        )
        if not product:
            raise NotFoundError(f"Product {product_id} not found")

        tag = tag_id.strip() if tag_id else _next_tag_id(product)
        code = barcode.strip() if barcode else tag
        clash = (
            db.session.query(StockItem.id)
            .filter(StockItem.shop_id == shop_id)
            .filter((StockItem.tag_id == tag) | (StockItem.barcode == code))
            .first()
        )
        if clash:
            raise ConflictError(
                f"Tag {tag} or barcode {code} is already in use",
                details={"stock_item_id": clash.id},
            )

        item = StockItem(
            shop_id=shop_id,
            product_id=product.id,
            tag_id=tag,
            barcode=code,
            status=STOCK_AVAILABLE,
            purchase_cost=cost,
            purchase_date=purchase_date or utcnow(),
        )
        db.session.add(item)
        db.session.flush()
        return item

    return run_in_transaction(_op)


# =============================================================================
# MANUAL HOLDS (own transaction)
# =============================================================================

def _validate_ids(stock_item_ids) -> list[int]:
    if not isinstance(stock_item_ids, (list, tuple)) or not stock_item_ids:
        raise InvalidInputError("stock_item_ids must be a non-empty list")
    ids = []
    for value in stock_item_ids:
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidInputError("stock_item_ids must contain integers")
        ids.append(value)
    if len(set(ids)) != len(ids):
        raise InvalidInputError("stock_item_ids contains duplicates")
    return ids


def reserve_items(shop_id: int, stock_item_ids) -> list[StockItem]:
    """
    Put AVAILABLE items on hold (RESERVED with no order line).

    All or nothing: one unavailable item fails the whole request.
    """
    ids = _validate_ids(stock_item_ids)

    def _op():
        items = []
        for stock_item_id in ids:
            item = _load_item_for_update(stock_item_id, shop_id)
            _compare_and_set(item, (STOCK_AVAILABLE,), {"status": STOCK_RESERVED})
            items.append(item)
        return items

    return run_in_transaction(_op)


def release_reserved_items(shop_id: int, stock_item_ids) -> list[StockItem]:
    """
    Release manual holds back to AVAILABLE.

    Items reserved by a sales order are refused; cancel the order instead.
    All or nothing.
    """
    ids = _validate_ids(stock_item_ids)

    def _op():
        items = []
        for stock_item_id in ids:
            item = _load_item_for_update(stock_item_id, shop_id)
            if item.sales_order_line_id is not None:
                raise InvalidStateError(
                    f"Stock item {item.tag_id} belongs to a sales order; cancel the order to release it",
                    details={"stock_item_id": item.id},
                )
            _compare_and_set(item, (STOCK_RESERVED,), {"status": STOCK_AVAILABLE})
            items.append(item)
        return items

    return run_in_transaction(_op)


# =============================================================================
# QUERIES
# =============================================================================

def get_available_items(shop_id: int, product_id: int) -> list[StockItem]:
    """AVAILABLE items of a product, oldest purchase first (FIFO)."""
    return (
        db.session.query(StockItem)
        .filter_by(shop_id=shop_id, product_id=product_id, status=STOCK_AVAILABLE, lifecycle=LIFECYCLE_ACTIVE)
        .order_by(StockItem.purchase_date.asc(), StockItem.id.asc())
        .all()
    )


def list_stock_items(shop_id: int, *, product_id: int | None = None, status: str | None = None,
                     limit: int = 200) -> list[StockItem]:
    query = db.session.query(StockItem).filter_by(shop_id=shop_id, lifecycle=LIFECYCLE_ACTIVE)
    if product_id is not None:
        query = query.filter_by(product_id=product_id)
    if status:
        query = query.filter_by(status=parse_choice("status", status, VALID_STOCK_STATUSES))
    return query.order_by(StockItem.id.asc()).limit(limit).all()
