# Overview: Service-layer operations for pricing; selling price is computed at read time from the current rate.

"""
Pricing Service

Selling price of a jewelry item is never stored. It depends on the metal
rate of the day and is recomputed on every read:

    effective_weight = net_weight * (1 + wastage_percent / 100)
    metal_amount     = effective_weight * metal_rate_per_gram
    total_price      = metal_amount + making_charges + stone_value

ROUNDING:
- effective_weight is reported at 3 decimal places
- money values are reported at 2 decimal places
- both use ROUND_HALF_UP
- metal_amount and total_price are computed from the unrounded effective
  weight and rounded once at the end

calculate_price() is pure. price_stock_item() / price_product() read the
database to resolve the rate and then call it.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..extensions import db
from ..models import Product, RateMaster, StockItem
from ..models.inventory import STOCK_SOLD
from ..models.tenancy import LIFECYCLE_ACTIVE
from karat.validation import (
    money_str,
    parse_money,
    parse_percent,
    parse_positive_int,
    parse_weight,
    round_money,
    round_weight,
    weight_str,
)
from . import rate_service
from .errors import InvalidInputError, NotFoundError, StockItemUnavailableError


HUNDRED = Decimal("100")
ZERO = Decimal("0")


@dataclass(frozen=True)
class PriceBreakdown:
    net_weight: Decimal
    wastage_percent: Decimal
    effective_weight: Decimal
    metal_rate_per_gram: Decimal
    metal_amount: Decimal
    making_charges: Decimal
    stone_value: Decimal
    total_price: Decimal

    def to_dict(self) -> dict:
        return {
            "net_weight": weight_str(self.net_weight),
            "wastage_percent": money_str(self.wastage_percent),
            "effective_weight": weight_str(self.effective_weight),
            "metal_rate_per_gram": money_str(self.metal_rate_per_gram),
            "metal_amount": money_str(self.metal_amount),
            "making_charges": money_str(self.making_charges),
            "stone_value": money_str(self.stone_value),
            "total_price": money_str(self.total_price),
        }


@dataclass(frozen=True)
class SellingPrice:
    """Price breakdown plus the rate it was computed from."""
    breakdown: PriceBreakdown
    rate: RateMaster
    product: Product
    stock_item: StockItem | None = None

    @property
    def total_price(self) -> Decimal:
        return self.breakdown.total_price

    def to_dict(self) -> dict:
        data = {
            "product_id": self.product.id,
            "sku": self.product.sku,
            "metal_type": self.product.metal_type,
            "purity": self.product.purity,
            "rate_id": self.rate.id,
            "breakdown": self.breakdown.to_dict(),
            "selling_price": money_str(self.breakdown.total_price),
        }
        if self.stock_item is not None:
            data["stock_item_id"] = self.stock_item.id
            data["tag_id"] = self.stock_item.tag_id
        return data


# =============================================================================
# PURE CALCULATIONS
# =============================================================================

def calculate_price(
    net_weight,
    wastage_percent,
    metal_rate_per_gram,
    making_charges,
    stone_value=0,
) -> PriceBreakdown:
    """
    Compute the selling-price breakdown for one item.

    All inputs must be non-negative with no more precision than their
    columns allow (weight 3 dp, everything else 2 dp).

    Raises:
        InvalidInputError: on negative, non-numeric or over-precise input
    """
    net = parse_weight("net_weight", net_weight)
    wastage = parse_percent("wastage_percent", wastage_percent)
    rate = parse_money("metal_rate_per_gram", metal_rate_per_gram)
    making = parse_money("making_charges", making_charges)
    stone = parse_money("stone_value", stone_value)

    effective_weight = net * (1 + wastage / HUNDRED)
    metal_amount = effective_weight * rate

    return PriceBreakdown(
        net_weight=net,
        wastage_percent=wastage,
        effective_weight=round_weight(effective_weight),
        metal_rate_per_gram=rate,
        metal_amount=round_money(metal_amount),
        making_charges=making,
        stone_value=stone,
        total_price=round_money(metal_amount + making + stone),
    )


def calculate_purchase_cost(net_weight, rate_per_gram, making_charges=0, stone_cost=0) -> Decimal:
    """Cost of buying metal by weight, plus labour and stones."""
    net = parse_weight("net_weight", net_weight)
    rate = parse_money("rate_per_gram", rate_per_gram)
    making = parse_money("making_charges", making_charges)
    stone = parse_money("stone_cost", stone_cost)
    return round_money(net * rate + making + stone)


def calculate_discount(order_total, discount_percent=None, discount_amount=None) -> Decimal:
    """
    Discount for an order total.

    An explicit discount_amount wins over discount_percent. Neither given
    means no discount. The discount can never exceed the total.
    """
    total = parse_money("order_total", order_total)

    if discount_amount is not None:
        discount = parse_money("discount_amount", discount_amount)
    elif discount_percent is not None:
        percent = parse_percent("discount_percent", discount_percent, maximum=HUNDRED)
        discount = round_money(total * percent / HUNDRED)
    else:
        return ZERO.quantize(Decimal("0.01"))

    if discount > total:
        raise InvalidInputError("Discount cannot exceed order total")
    return discount


def calculate_emi_installment(principal, annual_interest_rate, number_of_installments) -> Decimal:
    """
    Monthly installment for an amortised loan.

    With a zero rate this is principal / n. Otherwise the standard formula
    P * r * (1 + r)^n / ((1 + r)^n - 1) with r = annual rate / 12 / 100.
    """
    p = parse_money("principal_amount", principal, positive=True)
    annual = parse_percent("interest_rate", annual_interest_rate)
    n = parse_positive_int("number_of_installments", number_of_installments)

    if annual == 0:
        return round_money(p / n)

    r = annual / HUNDRED / 12
    factor = (1 + r) ** n
    return round_money(p * r * factor / (factor - 1))


# =============================================================================
# RATE-BACKED PRICING
# =============================================================================

def _price_product_at_rate(product: Product, rate: RateMaster) -> PriceBreakdown:
    return calculate_price(
        net_weight=product.net_weight,
        wastage_percent=product.wastage_percent,
        metal_rate_per_gram=rate.rate_per_gram,
        making_charges=product.making_charges,
        stone_value=product.stone_value,
    )


def price_product(product_id: int, shop_id: int, *, now=None) -> SellingPrice:
    """
    Price a catalogue product at the current rate for its metal and purity.

    Raises:
        NotFoundError: product missing or deleted
        RateNotFoundError: no current rate (pricing stops; no zero default)
    """
    product = db.session.query(Product).filter_by(
        id=product_id, shop_id=shop_id, lifecycle=LIFECYCLE_ACTIVE
    ).first()
    if not product:
        raise NotFoundError(f"Product {product_id} not found")

    rate = rate_service.get_current_rate(shop_id, product.metal_type, product.purity, now=now)
    return SellingPrice(breakdown=_price_product_at_rate(product, rate), rate=rate, product=product)


def find_stock_item(shop_id: int, stock_item_id: int | None = None, tag_id: str | None = None) -> StockItem:
    """Look up a live stock item by id or tag."""
    query = db.session.query(StockItem).filter_by(shop_id=shop_id, lifecycle=LIFECYCLE_ACTIVE)
    if stock_item_id is not None:
        item = query.filter_by(id=stock_item_id).first()
        ref = stock_item_id
    elif tag_id:
        item = query.filter_by(tag_id=tag_id).first()
        ref = tag_id
    else:
        raise InvalidInputError("stock_item_id or tag_id is required")

    if not item:
        raise NotFoundError(f"Stock item {ref} not found")
    return item


def price_stock_item(shop_id: int, stock_item_id: int | None = None, tag_id: str | None = None, *, now=None) -> SellingPrice:
    """
    Selling price of a physical stock item at the current rate.

    Raises:
        NotFoundError: stock item missing
        StockItemUnavailableError: item already sold
        RateNotFoundError: no current rate for the product's metal/purity
    """
    item = find_stock_item(shop_id, stock_item_id=stock_item_id, tag_id=tag_id)
    if item.status == STOCK_SOLD:
        raise StockItemUnavailableError(f"Stock item {item.tag_id} is already sold")

    product = item.product
    rate = rate_service.get_current_rate(shop_id, product.metal_type, product.purity, now=now)
    return SellingPrice(
        breakdown=_price_product_at_rate(product, rate),
        rate=rate,
        product=product,
        stock_item=item,
    )
