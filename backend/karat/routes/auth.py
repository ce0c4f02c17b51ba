# Overview: Flask API routes for login, logout and the current session.

from flask import Blueprint, request, jsonify, current_app, g

from ..models.audit import ACTION_LOGIN, ACTION_LOGIN_FAILED, MODULE_AUTH, SEVERITY_WARNING
from ..extensions import db
from ..services import audit_service, auth_service, permission_service, session_service
from ..services.errors import KaratError
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Exchange credentials for a bearer token.

    Request body:
    {
        "username": "owner",      (or "email")
        "password": "...",
        "shop_id": 1              (optional, scopes the lookup)
    }

    Returns:
        200: {"user": {...}, "token": "...", "expires_at": "..."}
        400: Missing fields
        401: Invalid credentials
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username") or data.get("email")
        password = data.get("password")
        shop_id = data.get("shop_id")

        if not username or not password:
            return jsonify({"error": "username/email and password required"}), 400

        user = auth_service.authenticate(username, password, shop_id=shop_id)
        if not user:
            audit_service.record(
                action=ACTION_LOGIN_FAILED,
                module=MODULE_AUTH,
                shop_id=shop_id if isinstance(shop_id, int) else None,
                summary=f"Failed login for {username}",
                severity=SEVERITY_WARNING,
                ip_address=request.remote_addr,
            )
            db.session.commit()
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        audit_service.record(
            action=ACTION_LOGIN,
            module=MODULE_AUTH,
            shop_id=user.shop_id,
            user_id=user.id,
            ip_address=request.remote_addr,
        )
        db.session.commit()

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "expires_at": session.to_dict()["expires_at"],
            "permissions": sorted(permission_service.permissions_for_role(user.role)),
        }), 200

    except KaratError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Login failed")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    token = request.headers.get("Authorization", "").split(" ", 1)[1].strip()
    session_service.revoke_session(token, reason="User logout")
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/session")
@require_auth
def session_route():
    """Current user, shop and granted permissions."""
    context = g.session_context
    return jsonify({
        "user": context.user.to_dict(),
        "shop_id": context.shop_id,
        "session": context.session.to_dict(),
        "permissions": sorted(permission_service.permissions_for_role(context.role)),
    }), 200
