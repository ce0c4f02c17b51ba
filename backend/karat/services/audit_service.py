# Overview: Best-effort audit trail writes; failures are logged and never undo the audited operation.

from __future__ import annotations

import logging

from flask import current_app, has_app_context

from ..extensions import db
from ..models import AuditLog
from ..models.audit import SEVERITY_INFO


_fallback_logger = logging.getLogger(__name__)


def _logger():
    return current_app.logger if has_app_context() else _fallback_logger


def record(
    *,
    action: str,
    module: str,
    shop_id: int | None = None,
    user_id: int | None = None,
    entity_id: int | None = None,
    summary: str | None = None,
    severity: str = SEVERITY_INFO,
    ip_address: str | None = None,
) -> AuditLog | None:
    """
    Append an audit row inside a savepoint of the current transaction.

    Returns the row, or None if the write failed. A failure rolls back the
    savepoint only; the surrounding unit of work carries on.
    """
    try:
        with db.session.begin_nested():
            entry = AuditLog(
                shop_id=shop_id,
                user_id=user_id,
                action=action,
                module=module,
                entity_id=entity_id,
                summary=summary,
                severity=severity,
                ip_address=ip_address,
            )
            db.session.add(entry)
        return entry
    except Exception:
        _logger().warning("audit write failed: %s %s entity=%s", action, module, entity_id, exc_info=True)
        return None


def list_entries(shop_id: int, *, module: str | None = None, entity_id: int | None = None,
                 limit: int = 100) -> list[AuditLog]:
    query = db.session.query(AuditLog).filter_by(shop_id=shop_id)
    if module:
        query = query.filter_by(module=module)
    if entity_id is not None:
        query = query.filter_by(entity_id=entity_id)
    return query.order_by(AuditLog.occurred_at.desc(), AuditLog.id.desc()).limit(limit).all()
