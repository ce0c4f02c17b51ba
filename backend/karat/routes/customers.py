# Overview: Flask API routes for customers; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..models.audit import ACTION_CREATE, MODULE_CUSTOMERS
from ..extensions import db
from ..services import audit_service, customer_service
from ..services.errors import KaratError
from ..decorators import require_auth, require_permission


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
@require_permission("CUSTOMER_VIEW")
def list_customers_route():
    """Query params: search (name or phone), customer_type"""
    try:
        customers = customer_service.list_customers(
            g.shop_id,
            search=request.args.get("search"),
            customer_type=request.args.get("customer_type"),
            limit=min(request.args.get("limit", 100, type=int), 500),
        )
        return jsonify({"customers": [c.to_dict() for c in customers]}), 200
    except KaratError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list customers")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.post("")
@require_auth
@require_permission("CUSTOMER_CREATE")
def create_customer_route():
    """
    Request body:
    {
        "name": "Asha Rao",
        "phone": "9811111111",
        "email": "asha@example.com",   (optional)
        "address": "...",              (optional)
        "customer_type": "RETAIL"      (optional)
    }

    Returns:
        201: Customer created
        400: Invalid input
        409: Phone already registered
    """
    try:
        data = request.get_json(silent=True) or {}
        customer = customer_service.create_customer(
            g.shop_id,
            data.get("name"),
            data.get("phone"),
            email=data.get("email"),
            address=data.get("address"),
            customer_type=data.get("customer_type") or "RETAIL",
        )
        audit_service.record(
            action=ACTION_CREATE,
            module=MODULE_CUSTOMERS,
            shop_id=g.shop_id,
            user_id=g.current_user.id,
            entity_id=customer.id,
            summary=f"Customer {customer.name} ({customer.phone})",
        )
        db.session.commit()
        return jsonify({"customer": customer.to_dict()}), 201
    except KaratError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/<int:customer_id>")
@require_auth
@require_permission("CUSTOMER_VIEW")
def get_customer_route(customer_id: int):
    try:
        customer = customer_service.get_customer(customer_id, shop_id=g.shop_id)
        return jsonify({"customer": customer.to_dict()}), 200
    except KaratError as e:
        return jsonify(e.to_dict()), e.http_status
