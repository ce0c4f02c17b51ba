# Overview: Flask API routes for live price calculation; nothing here is persisted.

from flask import Blueprint, request, jsonify, g, current_app

from ..services import pricing_service
from ..services.errors import KaratError
from ..decorators import require_auth, require_permission


pricing_bp = Blueprint("pricing", __name__)


@pricing_bp.post("/api/pricing/calculate")
@require_auth
@require_permission("PRODUCT_VIEW")
def calculate_price_route():
    """
    Price arbitrary inputs.

    Request body:
    {
        "net_weight": "10.000",
        "wastage_percent": "2",
        "metal_rate_per_gram": "6000",
        "making_charges": "500",
        "stone_value": "0"            (optional)
    }

    Numbers may be JSON numbers or decimal strings; more than 3 dp for
    weight or 2 dp for anything else is rejected with 400.
    """
    try:
        data = request.get_json(silent=True) or {}
        breakdown = pricing_service.calculate_price(
            net_weight=data.get("net_weight"),
            wastage_percent=data.get("wastage_percent", 0),
            metal_rate_per_gram=data.get("metal_rate_per_gram"),
            making_charges=data.get("making_charges", 0),
            stone_value=data.get("stone_value", 0),
        )
        return jsonify({"breakdown": breakdown.to_dict()}), 200
    except KaratError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to calculate price")
        return jsonify({"error": "Internal server error"}), 500


@pricing_bp.get("/api/products/<int:product_id>/price-breakdown")
@require_auth
@require_permission("PRODUCT_VIEW")
def product_price_breakdown_route(product_id: int):
    """
    Returns:
        200: Breakdown at the current rate
        404: Product missing, or no current rate for its metal and purity
    """
    try:
        price = pricing_service.price_product(product_id, g.shop_id)
        return jsonify(price.to_dict()), 200
    except KaratError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to price product")
        return jsonify({"error": "Internal server error"}), 500
