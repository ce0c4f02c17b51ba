# Overview: Flask API routes for sales orders and their payments; parses input and returns JSON responses.

# backend/karat/routes/sales_orders.py
"""
Sales Order API Routes

- SALES_CREATE: create orders, record payments
- SALES_EDIT: complete orders
- SALES_DELETE: cancel orders (releases stock)
- SALES_VIEW: read orders and payments

Payment requests may carry an Idempotency-Key header. Re-sending the same
key for the same order returns the original payment (200) instead of
recording a second one (201).
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import payment_service, sales_service
from ..services.errors import KaratError
from ..services.metrics import current_metrics
from ..decorators import require_auth, require_permission


sales_orders_bp = Blueprint("sales_orders", __name__, url_prefix="/api/sales-orders")


@sales_orders_bp.get("")
@require_auth
@require_permission("SALES_VIEW")
def list_sales_orders_route():
    try:
        customer_id = request.args.get("customer_id", type=int)
        orders = sales_service.list_sales_orders(
            g.shop_id,
            status=request.args.get("status"),
            customer_id=customer_id,
            limit=min(request.args.get("limit", 50, type=int), 200),
        )
        return jsonify({"sales_orders": [o.to_dict() for o in orders]}), 200
    except KaratError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list sales orders")
        return jsonify({"error": "Internal server error"}), 500


@sales_orders_bp.post("")
@require_auth
@require_permission("SALES_CREATE")
def create_sales_order_route():
    """
    Request body:
    {
        "customer_id": 1,
        "lines": [{"stock_item_id": 10}, {"tag_id": "TAG-0002"}],
        "payment_method": "CASH",
        "discount_amount": "100.00",   (optional)
        "payment_amount": "5000.00",   (optional, initial payment)
        "order_type": "RETAIL",        (optional)
        "create_as_pending": true,     (optional; items RESERVED instead of SOLD)
        "notes": "..."                 (optional)
    }

    Returns:
        201: Order with lines
        400: Invalid input, or payment exceeds the order total
        404: Customer/stock item missing, or no current rate
        409: A stock item is not AVAILABLE
    """
    try:
        data = request.get_json(silent=True) or {}
        order = sales_service.create_sales_order(
            g.shop_id,
            data.get("customer_id"),
            data.get("lines"),
            payment_method=data.get("payment_method"),
            discount_amount=data.get("discount_amount", 0),
            payment_amount=data.get("payment_amount", 0),
            order_type=data.get("order_type", "RETAIL"),
            create_as_pending=bool(data.get("create_as_pending", False)),
            user_id=g.current_user.id,
            notes=data.get("notes"),
            idempotency_key=request.headers.get("Idempotency-Key"),
            metrics=current_metrics(),
        )
        return jsonify({"sales_order": order.to_dict(include_lines=True)}), 201
    except KaratError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create sales order")
        return jsonify({"error": "Internal server error"}), 500


@sales_orders_bp.get("/<int:order_id>")
@require_auth
@require_permission("SALES_VIEW")
def get_sales_order_route(order_id: int):
    try:
        order = sales_service.get_sales_order(order_id, shop_id=g.shop_id)
        data = order.to_dict(include_lines=True)
        data["payments"] = [p.to_dict() for p in order.payments]
        return jsonify({"sales_order": data}), 200
    except KaratError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to load sales order")
        return jsonify({"error": "Internal server error"}), 500


@sales_orders_bp.post("/<int:order_id>/complete")
@require_auth
@require_permission("SALES_EDIT")
def complete_sales_order_route(order_id: int):
    try:
        order = sales_service.complete_sales_order(order_id, shop_id=g.shop_id, user_id=g.current_user.id)
        return jsonify({"sales_order": order.to_dict(include_lines=True)}), 200
    except KaratError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to complete sales order")
        return jsonify({"error": "Internal server error"}), 500


@sales_orders_bp.post("/<int:order_id>/cancel")
@require_auth
@require_permission("SALES_DELETE")
def cancel_sales_order_route(order_id: int):
    """Body: {"reason": "..."} (optional). Every item on the order returns to AVAILABLE."""
    try:
        data = request.get_json(silent=True) or {}
        order = sales_service.cancel_sales_order(
            order_id,
            shop_id=g.shop_id,
            reason=data.get("reason"),
            user_id=g.current_user.id,
            metrics=current_metrics(),
        )
        return jsonify({"sales_order": order.to_dict(include_lines=True)}), 200
    except KaratError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to cancel sales order")
        return jsonify({"error": "Internal server error"}), 500


@sales_orders_bp.get("/<int:order_id>/payments")
@require_auth
@require_permission("SALES_VIEW")
def list_payments_route(order_id: int):
    try:
        summary = payment_service.get_payment_summary(order_id, shop_id=g.shop_id)
        return jsonify(summary), 200
    except KaratError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list payments")
        return jsonify({"error": "Internal server error"}), 500


@sales_orders_bp.post("/<int:order_id>/payments")
@require_auth
@require_permission("SALES_CREATE")
def record_payment_route(order_id: int):
    """
    Request body:
    {
        "amount": "6000.00",
        "payment_method": "UPI",
        "reference_number": "UTR123",   (optional)
        "notes": "..."                  (optional)
    }
    Header: Idempotency-Key (optional)

    Returns:
        201: Payment recorded
        200: Replay of an earlier request with the same Idempotency-Key
        400: Invalid amount/method, or amount exceeds pending balance
        404: Order not found
        409: Order fully paid or cancelled
    """
    try:
        data = request.get_json(silent=True) or {}
        result = payment_service.record_order_payment(
            order_id,
            data.get("amount"),
            data.get("payment_method"),
            data.get("reference_number"),
            shop_id=g.shop_id,
            user_id=g.current_user.id,
            idempotency_key=request.headers.get("Idempotency-Key"),
            notes=data.get("notes"),
            metrics=current_metrics(),
        )
        return jsonify(result.to_dict()), 200 if result.replayed else 201
    except KaratError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500
