# Overview: Flask API routes for the rate master; parses input and returns JSON responses.

"""
Rate Master API Routes

- RATE_MASTER_VIEW: list, current, history, expiring
- RATE_MASTER_EDIT: create, update

Creating an active rate supersedes the pair's previous active rate.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..models.audit import ACTION_CREATE, ACTION_UPDATE, MODULE_RATE_MASTER
from ..extensions import db
from ..services import audit_service, rate_service
from ..services.errors import InvalidInputError, KaratError
from ..decorators import require_auth, require_permission
from karat.validation import parse_datetime_field


rate_master_bp = Blueprint("rate_master", __name__, url_prefix="/api/rate-master")


def _int_arg(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None:
        return default
    if not raw.isdigit():
        raise InvalidInputError(f"{name} must be a non-negative integer")
    return int(raw)


@rate_master_bp.get("")
@require_auth
@require_permission("RATE_MASTER_VIEW")
def list_rates_route():
    """
    Query params: metal_type, purity, is_active (true/false)
    """
    try:
        is_active = request.args.get("is_active")
        rates = rate_service.list_rates(
            g.shop_id,
            metal_type=request.args.get("metal_type"),
            purity=request.args.get("purity"),
            is_active=None if is_active is None else is_active.lower() == "true",
        )
        return jsonify({"rates": [r.to_dict() for r in rates]}), 200
    except KaratError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list rates")
        return jsonify({"error": "Internal server error"}), 500


@rate_master_bp.post("")
@require_auth
@require_permission("RATE_MASTER_EDIT")
def create_rate_route():
    """
    Request body:
    {
        "metal_type": "GOLD",
        "purity": "22K",
        "rate_per_gram": "6000.00",
        "effective_date": "2026-01-01T00:00:00Z",   (optional, default now)
        "valid_until": "2026-01-02T00:00:00Z",      (optional)
        "rate_source": "MANUAL",                    (optional)
        "default_making_charge_percent": "12.50"    (optional)
    }

    Returns:
        201: Rate created
        400: Invalid input
    """
    try:
        data = request.get_json(silent=True) or {}
        kwargs = {}
        if data.get("rate_source") is not None:
            kwargs["rate_source"] = data["rate_source"]

        rate = rate_service.create_rate(
            g.shop_id,
            data.get("metal_type"),
            data.get("purity"),
            data.get("rate_per_gram"),
            effective_date=parse_datetime_field("effective_date", data.get("effective_date")),
            valid_until=parse_datetime_field("valid_until", data.get("valid_until")),
            default_making_charge_percent=data.get("default_making_charge_percent"),
            is_active=data.get("is_active", True),
            user_id=g.current_user.id,
            **kwargs,
        )
        audit_service.record(
            action=ACTION_CREATE,
            module=MODULE_RATE_MASTER,
            shop_id=g.shop_id,
            user_id=g.current_user.id,
            entity_id=rate.id,
            summary=f"{rate.metal_type} {rate.purity} at {rate.rate_per_gram}/g",
        )
        db.session.commit()
        return jsonify({"rate": rate.to_dict()}), 201
    except KaratError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create rate")
        return jsonify({"error": "Internal server error"}), 500


@rate_master_bp.get("/current")
@require_auth
@require_permission("RATE_MASTER_VIEW")
def current_rate_route():
    """
    With metal_type and purity: the single current rate (404 if none).
    Without: one current rate per pair.
    """
    try:
        metal_type = request.args.get("metal_type")
        purity = request.args.get("purity")
        if metal_type or purity:
            if not (metal_type and purity):
                return jsonify({"error": "metal_type and purity are both required"}), 400
            rate = rate_service.get_current_rate(g.shop_id, metal_type, purity)
            return jsonify({"rate": rate.to_dict()}), 200

        rates = rate_service.get_all_current_rates(g.shop_id)
        return jsonify({"rates": [r.to_dict() for r in rates]}), 200
    except KaratError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to resolve current rate")
        return jsonify({"error": "Internal server error"}), 500


@rate_master_bp.patch("/<int:rate_id>")
@require_auth
@require_permission("RATE_MASTER_EDIT")
def update_rate_route(rate_id: int):
    try:
        data = request.get_json(silent=True) or {}
        changes = dict(data)
        if "valid_until" in changes:
            changes["valid_until"] = parse_datetime_field("valid_until", changes["valid_until"])

        rate = rate_service.update_rate(g.shop_id, rate_id, **changes)
        audit_service.record(
            action=ACTION_UPDATE,
            module=MODULE_RATE_MASTER,
            shop_id=g.shop_id,
            user_id=g.current_user.id,
            entity_id=rate.id,
            summary=f"Updated fields: {', '.join(sorted(changes))}",
        )
        db.session.commit()
        return jsonify({"rate": rate.to_dict()}), 200
    except KaratError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update rate")
        return jsonify({"error": "Internal server error"}), 500


@rate_master_bp.get("/history/<metal_type>/<purity>")
@require_auth
@require_permission("RATE_MASTER_VIEW")
def rate_history_route(metal_type: str, purity: str):
    try:
        rates = rate_service.get_rate_history(g.shop_id, metal_type.upper(), purity, days=_int_arg("days", 30))
        return jsonify({"rates": [r.to_dict() for r in rates]}), 200
    except KaratError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to load rate history")
        return jsonify({"error": "Internal server error"}), 500


@rate_master_bp.get("/expiring")
@require_auth
@require_permission("RATE_MASTER_VIEW")
def expiring_rates_route():
    try:
        rates = rate_service.get_rates_expiring_soon(g.shop_id, days=_int_arg("days", 7))
        return jsonify({"rates": [r.to_dict() for r in rates]}), 200
    except KaratError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to load expiring rates")
        return jsonify({"error": "Internal server error"}), 500
