# Overview: Flask API routes for stock items; receiving, selling price, manual holds and availability.

from flask import Blueprint, request, jsonify, g, current_app

from ..models.audit import ACTION_CREATE, ACTION_STATUS_CHANGE, MODULE_STOCK
from ..extensions import db
from ..services import audit_service, pricing_service, stock_service
from ..services.errors import KaratError
from ..services.metrics import current_metrics
from ..decorators import require_auth, require_permission
from karat.validation import parse_datetime_field, parse_positive_int


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.get("")
@require_auth
@require_permission("STOCK_VIEW")
def list_stock_items_route():
    """Query params: product_id, status (AVAILABLE/RESERVED/SOLD)"""
    try:
        items = stock_service.list_stock_items(
            g.shop_id,
            product_id=request.args.get("product_id", type=int),
            status=request.args.get("status"),
        )
        return jsonify({"items": [i.to_dict() for i in items]}), 200
    except KaratError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list stock items")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.post("")
@require_auth
@require_permission("STOCK_MANAGE")
def add_stock_item_route():
    """
    Receive a tagged unit into stock.

    Request body:
    {
        "product_id": 3,
        "tag_id": "G22-00003-0001",          (optional, generated)
        "barcode": "8901234567890",          (optional, defaults to tag)
        "purchase_cost": "58000.00",         (optional)
        "purchase_date": "2026-01-05T10:00:00Z"  (optional, default now)
    }

    Returns:
        201: Item created as AVAILABLE
        404: Product not found
        409: Tag or barcode already in use
    """
    try:
        data = request.get_json(silent=True) or {}
        item = stock_service.add_stock_item(
            g.shop_id,
            parse_positive_int("product_id", data.get("product_id")),
            tag_id=data.get("tag_id"),
            barcode=data.get("barcode"),
            purchase_cost=data.get("purchase_cost", 0),
            purchase_date=parse_datetime_field("purchase_date", data.get("purchase_date")),
        )
        audit_service.record(
            action=ACTION_CREATE,
            module=MODULE_STOCK,
            shop_id=g.shop_id,
            user_id=g.current_user.id,
            entity_id=item.id,
            summary=f"Received {item.tag_id} for product {item.product_id}",
        )
        db.session.commit()
        return jsonify({"item": item.to_dict()}), 201
    except KaratError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to add stock item")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.get("/<int:stock_item_id>/selling-price")
@require_auth
@require_permission("STOCK_VIEW")
def selling_price_route(stock_item_id: int):
    """
    Returns:
        200: Breakdown at the current rate
        404: Item missing or no current rate
        409: Item already sold
    """
    try:
        price = pricing_service.price_stock_item(g.shop_id, stock_item_id=stock_item_id)
        return jsonify(price.to_dict()), 200
    except KaratError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to price stock item")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.get("/available/<int:product_id>")
@require_auth
@require_permission("STOCK_VIEW")
def available_items_route(product_id: int):
    items = stock_service.get_available_items(g.shop_id, product_id)
    return jsonify({"items": [i.to_dict() for i in items]}), 200


def _hold_action(action, verb: str, metric: str):
    try:
        data = request.get_json(silent=True) or {}
        items = action(g.shop_id, data.get("stock_item_ids"))
        audit_service.record(
            action=ACTION_STATUS_CHANGE,
            module=MODULE_STOCK,
            shop_id=g.shop_id,
            user_id=g.current_user.id,
            summary=f"{verb} {len(items)} item(s): {', '.join(i.tag_id for i in items)}",
        )
        db.session.commit()
        current_metrics().increment(metric, len(items))
        return jsonify({"items": [i.to_dict() for i in items]}), 200
    except KaratError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to %s stock items", verb.lower())
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.post("/reserve")
@require_auth
@require_permission("STOCK_MANAGE")
def reserve_items_route():
    """
    Hold AVAILABLE items. Body: {"stock_item_ids": [1, 2]}. All or nothing;
    409 if any item is not AVAILABLE.
    """
    return _hold_action(stock_service.reserve_items, "Reserved", "stock.items.reserved")


@stock_bp.post("/release")
@require_auth
@require_permission("STOCK_MANAGE")
def release_items_route():
    """
    Release manual holds. Body: {"stock_item_ids": [1, 2]}. Items held by a
    sales order are refused with 409.
    """
    return _hold_action(stock_service.release_reserved_items, "Released", "stock.items.released")
