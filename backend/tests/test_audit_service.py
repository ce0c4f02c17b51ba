"""
Audit trail tests.

Audit writes are best effort: a failed write is logged and dropped, and the
operation being audited still commits.
"""

from karat.extensions import db
from karat.models import AuditLog, Customer
from karat.models.audit import ACTION_CREATE, MODULE_CUSTOMERS
from karat.services import audit_service
from karat.services.concurrency import run_in_transaction


def _create_customer_with_audit(shop, phone, **audit_kwargs):
    def _op():
        customer = Customer(shop_id=shop.id, name="Asha Rao", phone=phone)
        db.session.add(customer)
        db.session.flush()
        entry = audit_service.record(module=MODULE_CUSTOMERS, shop_id=shop.id, entity_id=customer.id, **audit_kwargs)
        return customer, entry

    return run_in_transaction(_op)


def test_record_writes_row(db_session, shop):
    customer, entry = _create_customer_with_audit(shop, "9811111110", action=ACTION_CREATE, summary="Asha Rao")

    assert entry is not None
    rows = audit_service.list_entries(shop.id, module=MODULE_CUSTOMERS, entity_id=customer.id)
    assert [r.summary for r in rows] == ["Asha Rao"]


def test_failed_write_keeps_surrounding_work(db_session, shop):
    # action is NOT NULL; the insert fails inside the savepoint
    customer, entry = _create_customer_with_audit(shop, "9811111111", action=None)

    assert entry is None
    assert db_session.query(Customer).filter_by(phone="9811111111").count() == 1
    assert db_session.query(AuditLog).count() == 0


def test_non_database_error_is_swallowed(db_session, monkeypatch, shop):
    def broken_row(**kwargs):
        raise TypeError("bad audit payload")

    monkeypatch.setattr(audit_service, "AuditLog", broken_row)

    customer, entry = _create_customer_with_audit(shop, "9811111112", action=ACTION_CREATE)

    assert entry is None
    assert db_session.query(Customer).filter_by(phone="9811111112").count() == 1
