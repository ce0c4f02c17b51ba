# Overview: Flask API routes for EMI plans and installment payments.

from flask import Blueprint, request, jsonify, g, current_app

from ..models.audit import ACTION_CREATE, MODULE_EMI
from ..extensions import db
from ..services import audit_service, emi_service, payment_service
from ..services.errors import InvalidInputError, KaratError
from ..services.metrics import current_metrics
from ..decorators import require_auth, require_permission
from karat.validation import parse_date_field


emi_bp = Blueprint("emi", __name__, url_prefix="/api/emi-payments")


@emi_bp.post("")
@require_auth
@require_permission("EMI_MANAGE")
def create_emi_plan_route():
    """
    Request body:
    {
        "customer_id": 1,
        "principal_amount": "60000.00",
        "number_of_installments": 12,
        "emi_start_date": "2026-02-01",
        "interest_rate": "0",               (optional, annual %)
        "installment_amount": "5000.00",    (optional, computed if absent)
        "sales_order_id": 5                 (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        start_date = parse_date_field("emi_start_date", data.get("emi_start_date"))
        if start_date is None:
            raise InvalidInputError("emi_start_date is required")

        emi = emi_service.create_emi_plan(
            g.shop_id,
            data.get("customer_id"),
            data.get("principal_amount"),
            data.get("number_of_installments"),
            start_date,
            interest_rate=data.get("interest_rate", 0),
            installment_amount=data.get("installment_amount"),
            sales_order_id=data.get("sales_order_id"),
            notes=data.get("notes"),
            user_id=g.current_user.id,
        )
        audit_service.record(
            action=ACTION_CREATE,
            module=MODULE_EMI,
            shop_id=g.shop_id,
            user_id=g.current_user.id,
            entity_id=emi.id,
            summary=f"{emi.number_of_installments} installments totalling {emi.total_payable}",
        )
        db.session.commit()
        return jsonify({"emi": emi.to_dict(include_installments=True)}), 201
    except KaratError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create EMI plan")
        return jsonify({"error": "Internal server error"}), 500


@emi_bp.get("/<int:emi_id>")
@require_auth
@require_permission("EMI_VIEW")
def get_emi_plan_route(emi_id: int):
    try:
        emi = emi_service.get_emi_plan(emi_id, shop_id=g.shop_id)
        return jsonify({"emi": emi.to_dict(include_installments=True)}), 200
    except KaratError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to load EMI plan")
        return jsonify({"error": "Internal server error"}), 500


@emi_bp.post("/<int:emi_id>/pay-installment")
@require_auth
@require_permission("EMI_MANAGE")
def pay_installment_route(emi_id: int):
    """
    Request body:
    {
        "installment_id": 3,
        "amount": "5000.00",
        "payment_mode": "CASH",
        "reference_number": "..."   (optional)
    }

    Returns:
        200: Installment and plan after the payment
        400: Invalid amount/mode, or amount exceeds installment balance
        404: Plan missing or installment not on the plan
        409: Installment already fully paid
    """
    try:
        data = request.get_json(silent=True) or {}
        result = payment_service.record_installment_payment(
            emi_id,
            data.get("installment_id"),
            data.get("amount"),
            data.get("payment_mode") or data.get("payment_method"),
            data.get("reference_number"),
            shop_id=g.shop_id,
            user_id=g.current_user.id,
            metrics=current_metrics(),
        )
        return jsonify(result.to_dict()), 200
    except KaratError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to record installment payment")
        return jsonify({"error": "Internal server error"}), 500


@emi_bp.get("/overdue")
@require_auth
@require_permission("EMI_VIEW")
def overdue_route():
    """Overdue installments and plans. Reads only; the sweep runs from the CLI."""
    try:
        installments = emi_service.get_overdue_installments(g.shop_id)
        plans = emi_service.get_overdue_plans(g.shop_id)
        return jsonify({
            "installments": [i.to_dict() for i in installments],
            "plans": [p.to_dict() for p in plans],
        }), 200
    except KaratError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to load overdue installments")
        return jsonify({"error": "Internal server error"}), 500


@emi_bp.get("/upcoming")
@require_auth
@require_permission("EMI_VIEW")
def upcoming_route():
    """Query param: days (default KARAT_UPCOMING_DAYS). Grouped by due date."""
    try:
        raw = request.args.get("days")
        if raw is None:
            days = current_app.config.get("KARAT_UPCOMING_DAYS", 7)
        elif raw.isdigit():
            days = int(raw)
        else:
            raise InvalidInputError("days must be a non-negative integer")

        upcoming = emi_service.get_upcoming_installments(days, shop_id=g.shop_id)
        return jsonify({"days": days, "groups": upcoming.to_list()}), 200
    except KaratError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to load upcoming installments")
        return jsonify({"error": "Internal server error"}), 500


@emi_bp.get("/customer/<int:customer_id>")
@require_auth
@require_permission("EMI_VIEW")
def customer_summary_route(customer_id: int):
    try:
        return jsonify(emi_service.get_customer_emi_summary(customer_id, shop_id=g.shop_id)), 200
    except KaratError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to load customer EMI summary")
        return jsonify({"error": "Internal server error"}), 500
