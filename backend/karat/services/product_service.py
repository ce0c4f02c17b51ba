# Overview: Service-layer operations for the product catalogue; create, lookup and listing per shop.

"""
Product Service

A product carries the weights and charges pricing needs, never a price.
SKU is unique per shop. Purity is stored upper-cased so it lines up with the
rate master's (metal_type, purity) pairs.
"""

from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..models import Product
from ..models.catalog import VALID_METAL_TYPES
from ..models.tenancy import LIFECYCLE_ACTIVE
from karat.validation import parse_choice, parse_money, parse_percent, parse_weight
from .concurrency import run_in_transaction
from .errors import ConflictError, InvalidInputError, NotFoundError


def _required_text(field: str, value, max_length: int) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError(f"{field} is required")
    value = value.strip()
    if len(value) > max_length:
        raise InvalidInputError(f"{field} cannot exceed {max_length} characters")
    return value


def create_product(
    shop_id: int,
    *,
    sku: str,
    name: str,
    metal_type: str,
    purity: str,
    net_weight,
    gross_weight=None,
    wastage_percent=0,
    making_charges=0,
    stone_value=0,
    reorder_level: int = 0,
    huid: str | None = None,
) -> Product:
    """
    Add a product to the shop's catalogue.

    Raises:
        InvalidInputError: missing text fields, bad metal type, bad amounts,
            or gross weight below net weight
        ConflictError: SKU already exists in this shop
    """
    sku = _required_text("sku", sku, 64)
    name = _required_text("name", name, 255)
    metal_type = parse_choice("metal_type", metal_type, VALID_METAL_TYPES)
    purity = _required_text("purity", purity, 16).upper()

    net = parse_weight("net_weight", net_weight)
    if net <= 0:
        raise InvalidInputError("net_weight must be greater than 0")
    gross = None
    if gross_weight is not None:
        gross = parse_weight("gross_weight", gross_weight)
        if gross < net:
            raise InvalidInputError("gross_weight cannot be less than net_weight")

    wastage = parse_percent("wastage_percent", wastage_percent, maximum=Decimal("100"))
    making = parse_money("making_charges", making_charges)
    stones = parse_money("stone_value", stone_value)

    if isinstance(reorder_level, bool) or not isinstance(reorder_level, int) or reorder_level < 0:
        raise InvalidInputError("reorder_level must be a non-negative integer")
    huid = huid.strip() if isinstance(huid, str) and huid.strip() else None

    def _op():
        if db.session.query(Product.id).filter_by(shop_id=shop_id, sku=sku).first():
            raise ConflictError("SKU already exists for this shop.", details={"sku": sku})

        product = Product(
            shop_id=shop_id,
            sku=sku,
            name=name,
            metal_type=metal_type,
            purity=purity,
            net_weight=net,
            gross_weight=gross,
            wastage_percent=wastage,
            making_charges=making,
            stone_value=stones,
            reorder_level=reorder_level,
            huid=huid,
        )
        db.session.add(product)
        db.session.flush()
        return product

    return run_in_transaction(_op)


def get_product(product_id: int, *, shop_id: int) -> Product:
    product = (
        db.session.query(Product)
        .filter_by(id=product_id, shop_id=shop_id, lifecycle=LIFECYCLE_ACTIVE)
        .first()
    )
    if not product:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def list_products(shop_id: int, *, metal_type: str | None = None, purity: str | None = None) -> list[Product]:
    query = db.session.query(Product).filter_by(shop_id=shop_id, lifecycle=LIFECYCLE_ACTIVE)
    if metal_type:
        query = query.filter_by(metal_type=parse_choice("metal_type", metal_type, VALID_METAL_TYPES))
    if purity:
        query = query.filter_by(purity=purity.strip().upper())
    return query.order_by(Product.name.asc(), Product.id.asc()).all()
