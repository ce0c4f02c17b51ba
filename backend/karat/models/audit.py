from __future__ import annotations

from ..extensions import db
from karat.time_utils import to_utc_z


ACTION_CREATE = "CREATE"
ACTION_UPDATE = "UPDATE"
ACTION_DELETE = "DELETE"
ACTION_STATUS_CHANGE = "STATUS_CHANGE"
ACTION_PERMISSION_DENIED = "PERMISSION_DENIED"
ACTION_LOGIN = "LOGIN"
ACTION_LOGIN_FAILED = "LOGIN_FAILED"

MODULE_CUSTOMERS = "CUSTOMERS"
MODULE_PRODUCTS = "PRODUCTS"
MODULE_STOCK = "STOCK"
MODULE_SALES_ORDERS = "SALES_ORDERS"
MODULE_TRANSACTIONS = "TRANSACTIONS"
MODULE_EMI = "EMI"
MODULE_RATE_MASTER = "RATE_MASTER"
MODULE_AUTH = "AUTH"

SEVERITY_INFO = "INFO"
SEVERITY_WARNING = "WARNING"
SEVERITY_CRITICAL = "CRITICAL"


class AuditLog(db.Model):
    """
    Business and security audit trail.

    IMMUTABLE: append-only. Written best-effort in a savepoint by
    audit_service; a failed write never undoes the operation it describes.
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_shop_occurred", "shop_id", "occurred_at"),
        db.Index("ix_audit_logs_module_entity", "module", "entity_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    action = db.Column(db.String(32), nullable=False, index=True)
    module = db.Column(db.String(32), nullable=False)
    entity_id = db.Column(db.Integer, nullable=True)
    summary = db.Column(db.Text, nullable=True)
    severity = db.Column(db.String(16), nullable=False, default=SEVERITY_INFO)

    ip_address = db.Column(db.String(45), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "user_id": self.user_id,
            "action": self.action,
            "module": self.module,
            "entity_id": self.entity_id,
            "summary": self.summary,
            "severity": self.severity,
            "ip_address": self.ip_address,
            "occurred_at": to_utc_z(self.occurred_at),
        }
