"""
Authorization tests.

Verifies:
- Unauthenticated requests return 401
- Roles are denied operations outside their permission set (403)
- Denials are written to the audit log
- Login issues a token carrying the role's permissions
"""

from datetime import timedelta

import pytest

from karat.models import AuditLog
from karat.models.audit import ACTION_LOGIN, ACTION_LOGIN_FAILED, ACTION_PERMISSION_DENIED
from karat.permissions import (
    ROLE_PERMISSIONS,
    PermissionCategory,
    get_permission_definition,
    get_permissions_by_category,
)
from karat.services import permission_service, session_service
from karat.services.errors import PermissionDeniedError
from karat.time_utils import utcnow


# =============================================================================
# UNAUTHENTICATED ACCESS - 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/rate-master"),
            ("POST", "/api/rate-master"),
            ("GET", "/api/rate-master/current"),
            ("POST", "/api/pricing/calculate"),
            ("GET", "/api/products/1/price-breakdown"),
            ("GET", "/api/stock/1/selling-price"),
            ("POST", "/api/stock/reserve"),
            ("GET", "/api/sales-orders"),
            ("POST", "/api/sales-orders"),
            ("POST", "/api/sales-orders/1/payments"),
            ("POST", "/api/sales-orders/1/cancel"),
            ("POST", "/api/emi-payments"),
            ("POST", "/api/emi-payments/1/pay-installment"),
            ("GET", "/api/emi-payments/overdue"),
            ("GET", "/api/emi-payments/upcoming"),
            ("POST", "/api/customers"),
            ("POST", "/api/products"),
            ("POST", "/api/stock"),
            ("GET", "/api/auth/session"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"
        assert resp.json["error"] == "Authentication required"

    def test_invalid_token(self, client, db_session):
        resp = client.get("/api/sales-orders", headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 401
        assert resp.json["error"] == "Invalid or expired token"

    def test_revoked_token(self, client, owner):
        _, token = session_service.create_session(owner.id)
        session_service.revoke_session(token)

        resp = client.get("/api/sales-orders", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    def test_idle_session_rejected(self, owner):
        session, token = session_service.create_session(owner.id)
        later = utcnow() + timedelta(hours=2, minutes=1)
        assert session_service.validate_session(token, now=later) is None


# =============================================================================
# ROLE DENIALS - 403
# =============================================================================


class TestSalesRoleDenied:
    """Sales staff sell; they cannot edit rates, cancel orders or manage EMI."""

    def test_cannot_create_rate(self, client, sales_headers):
        resp = client.post(
            "/api/rate-master",
            json={"metal_type": "GOLD", "purity": "22K", "rate_per_gram": "1.00"},
            headers=sales_headers,
        )
        assert resp.status_code == 403
        assert resp.json["required_permission"] == "RATE_MASTER_EDIT"

    def test_cannot_cancel_order(self, client, sales_headers):
        resp = client.post("/api/sales-orders/1/cancel", headers=sales_headers)
        assert resp.status_code == 403

    def test_cannot_create_emi_plan(self, client, sales_headers):
        resp = client.post("/api/emi-payments", json={}, headers=sales_headers)
        assert resp.status_code == 403

    def test_cannot_create_product(self, client, sales_headers):
        resp = client.post("/api/products", json={}, headers=sales_headers)
        assert resp.status_code == 403
        assert resp.json["required_permission"] == "PRODUCT_CREATE"

    def test_can_view_rates(self, client, sales_headers, gold_rate):
        resp = client.get("/api/rate-master/current?metal_type=GOLD&purity=22K", headers=sales_headers)
        assert resp.status_code == 200
        assert resp.json["rate"]["rate_per_gram"] == "6000.00"


class TestAccountsRoleDenied:
    """Accounts staff collect EMI and read sales; they cannot sell."""

    def test_cannot_create_order(self, client, accounts_headers):
        resp = client.post("/api/sales-orders", json={}, headers=accounts_headers)
        assert resp.status_code == 403

    def test_cannot_reserve_stock(self, client, accounts_headers):
        resp = client.post("/api/stock/reserve", json={"stock_item_ids": [1]}, headers=accounts_headers)
        assert resp.status_code == 403

    def test_cannot_create_customer_or_receive_stock(self, client, accounts_headers):
        assert client.post("/api/customers", json={}, headers=accounts_headers).status_code == 403
        assert client.post("/api/stock", json={}, headers=accounts_headers).status_code == 403

    def test_can_view_overdue(self, client, accounts_headers):
        resp = client.get("/api/emi-payments/overdue", headers=accounts_headers)
        assert resp.status_code == 200


class TestDenialAudit:

    def test_denial_is_audited(self, client, db_session, sales_user, sales_headers):
        client.post("/api/sales-orders/7/cancel", headers=sales_headers)

        entries = db_session.query(AuditLog).filter_by(action=ACTION_PERMISSION_DENIED).all()
        assert len(entries) == 1
        assert entries[0].user_id == sales_user.id
        assert "SALES_DELETE" in entries[0].summary

    def test_authorize_fails_closed(self, owner):
        _, token = session_service.create_session(owner.id)
        context = session_service.validate_session(token)

        permission_service.authorize(context, "SALES_DELETE")
        with pytest.raises(PermissionDeniedError):
            permission_service.authorize(context, "NO_SUCH_PERMISSION")

    def test_role_table(self):
        assert "SALES_DELETE" in ROLE_PERMISSIONS["OWNER"]
        assert "SALES_DELETE" not in ROLE_PERMISSIONS["SALES"]
        assert "EMI_MANAGE" in ROLE_PERMISSIONS["ACCOUNTS"]
        assert "SALES_CREATE" not in ROLE_PERMISSIONS["ACCOUNTS"]
        assert permission_service.permissions_for_role("INTERN") == frozenset()

    def test_permission_catalogue(self):
        definition = get_permission_definition("EMI_MANAGE")
        assert definition["category"] == PermissionCategory.FINANCE
        assert get_permission_definition("NO_SUCH_PERMISSION") is None
        rate_codes = [perm[0] for perm in get_permissions_by_category(PermissionCategory.RATES)]
        assert rate_codes == ["RATE_MASTER_VIEW", "RATE_MASTER_EDIT"]


# =============================================================================
# LOGIN
# =============================================================================


class TestLogin:

    def test_login_returns_token_and_permissions(self, client, db_session, sales_user):
        resp = client.post("/api/auth/login", json={"username": "sales", "password": "Password123!"})

        assert resp.status_code == 200
        body = resp.json
        assert body["token"]
        assert body["user"]["username"] == "sales"
        assert "SALES_CREATE" in body["permissions"]
        assert "SALES_DELETE" not in body["permissions"]

        session = client.get("/api/auth/session", headers={"Authorization": f"Bearer {body['token']}"})
        assert session.status_code == 200
        assert session.json["shop_id"] == sales_user.shop_id
        assert db_session.query(AuditLog).filter_by(action=ACTION_LOGIN).count() == 1

    def test_bad_password(self, client, db_session, sales_user):
        resp = client.post("/api/auth/login", json={"username": "sales", "password": "Wrong123!"})
        assert resp.status_code == 401
        assert db_session.query(AuditLog).filter_by(action=ACTION_LOGIN_FAILED).count() == 1

    def test_missing_fields(self, client, db_session):
        resp = client.post("/api/auth/login", json={"username": "sales"})
        assert resp.status_code == 400

    def test_logout_revokes_token(self, client, owner_headers):
        resp = client.post("/api/auth/logout", headers=owner_headers)
        assert resp.status_code == 200

        resp = client.get("/api/auth/session", headers=owner_headers)
        assert resp.status_code == 401
