# Overview: Flask API routes for the product catalogue; parses input and returns JSON responses.

"""
Product API Routes

- PRODUCT_VIEW: list, read
- PRODUCT_CREATE: create

Prices are not stored; see /api/products/<id>/price-breakdown.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..models.audit import ACTION_CREATE, MODULE_PRODUCTS
from ..extensions import db
from ..services import audit_service, product_service
from ..services.errors import KaratError
from ..decorators import require_auth, require_permission


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_permission("PRODUCT_VIEW")
def list_products_route():
    try:
        products = product_service.list_products(
            g.shop_id,
            metal_type=request.args.get("metal_type"),
            purity=request.args.get("purity"),
        )
        return jsonify({"products": [p.to_dict() for p in products]}), 200
    except KaratError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("")
@require_auth
@require_permission("PRODUCT_CREATE")
def create_product_route():
    """
    Request body:
    {
        "sku": "RING-22K-014",
        "name": "Gold Ring",
        "metal_type": "GOLD",
        "purity": "22K",
        "net_weight": "4.120",
        "gross_weight": "4.300",      (optional)
        "wastage_percent": "8.00",    (optional)
        "making_charges": "1200.00",  (optional)
        "stone_value": "0.00",        (optional)
        "reorder_level": 2,           (optional)
        "huid": "AB12CD"              (optional)
    }

    Returns:
        201: Product created
        400: Invalid input
        409: SKU already exists
    """
    try:
        data = request.get_json(silent=True) or {}
        product = product_service.create_product(
            g.shop_id,
            sku=data.get("sku"),
            name=data.get("name"),
            metal_type=data.get("metal_type"),
            purity=data.get("purity"),
            net_weight=data.get("net_weight"),
            gross_weight=data.get("gross_weight"),
            wastage_percent=data.get("wastage_percent", 0),
            making_charges=data.get("making_charges", 0),
            stone_value=data.get("stone_value", 0),
            reorder_level=data.get("reorder_level", 0),
            huid=data.get("huid"),
        )
        audit_service.record(
            action=ACTION_CREATE,
            module=MODULE_PRODUCTS,
            shop_id=g.shop_id,
            user_id=g.current_user.id,
            entity_id=product.id,
            summary=f"Product {product.sku} {product.metal_type} {product.purity}",
        )
        db.session.commit()
        return jsonify({"product": product.to_dict()}), 201
    except KaratError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("PRODUCT_VIEW")
def get_product_route(product_id: int):
    try:
        product = product_service.get_product(product_id, shop_id=g.shop_id)
        return jsonify({"product": product.to_dict()}), 200
    except KaratError as e:
        return jsonify(e.to_dict()), e.http_status
