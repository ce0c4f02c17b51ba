from __future__ import annotations

from ..extensions import db
from karat.time_utils import to_utc_z


# Row lifecycle (replaces nullable deleted_at timestamps)
LIFECYCLE_ACTIVE = "ACTIVE"
LIFECYCLE_DELETED = "DELETED"
VALID_LIFECYCLE_STATES = [LIFECYCLE_ACTIVE, LIFECYCLE_DELETED]


class Shop(db.Model):
    """
    Multi-tenant root: every tenant is a Shop.

    All customers, products, stock, orders, rates and EMI plans carry shop_id.
    Queries in the service layer always filter by it.
    """
    __tablename__ = "shops"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(32), nullable=True, unique=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Shop id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
