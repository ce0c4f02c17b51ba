# Overview: Service-layer operations for customers; shop-scoped create, lookup and search.

"""
Customer Service

Customers belong to one shop. The phone number is the shop-wide business
key: exactly 10 digits, unique per shop.
"""

from __future__ import annotations

import re

from sqlalchemy import or_

from ..extensions import db
from ..models import Customer
from ..models.catalog import CUSTOMER_RETAIL, VALID_CUSTOMER_TYPES
from ..models.tenancy import LIFECYCLE_ACTIVE
from karat.validation import parse_choice
from .concurrency import run_in_transaction
from .errors import ConflictError, InvalidInputError, NotFoundError


PHONE_RE = re.compile(r"^[0-9]{10}$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_phone(phone) -> str:
    if not isinstance(phone, str) or not PHONE_RE.match(phone.strip()):
        raise InvalidInputError("phone must be exactly 10 digits")
    return phone.strip()


def _clean_optional(value) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidInputError("Expected a string")
    return value.strip() or None


def create_customer(
    shop_id: int,
    name: str,
    phone: str,
    *,
    email: str | None = None,
    address: str | None = None,
    customer_type: str = CUSTOMER_RETAIL,
) -> Customer:
    """
    Create a customer in the shop.

    Raises:
        InvalidInputError: name shorter than 2 chars, bad phone, email or type
        ConflictError: phone already registered in this shop
    """
    if not isinstance(name, str) or not 2 <= len(name.strip()) <= 100:
        raise InvalidInputError("name must be 2-100 characters")
    phone = normalize_phone(phone)
    email = _clean_optional(email)
    if email and not EMAIL_RE.match(email):
        raise InvalidInputError("Invalid email format")
    customer_type = parse_choice("customer_type", customer_type, VALID_CUSTOMER_TYPES)

    def _op():
        existing = db.session.query(Customer.id).filter_by(shop_id=shop_id, phone=phone).first()
        if existing:
            raise ConflictError(
                "Customer with this phone already exists",
                details={"customer_id": existing.id},
            )
        customer = Customer(
            shop_id=shop_id,
            name=name.strip(),
            phone=phone,
            email=email,
            address=_clean_optional(address),
            customer_type=customer_type,
        )
        db.session.add(customer)
        db.session.flush()
        return customer

    return run_in_transaction(_op)


def get_customer(customer_id: int, *, shop_id: int) -> Customer:
    customer = (
        db.session.query(Customer)
        .filter_by(id=customer_id, shop_id=shop_id, lifecycle=LIFECYCLE_ACTIVE)
        .first()
    )
    if not customer:
        raise NotFoundError(f"Customer {customer_id} not found")
    return customer


def list_customers(shop_id: int, *, search: str | None = None, customer_type: str | None = None,
                   limit: int = 100) -> list[Customer]:
    """Active customers by name; `search` matches name or phone."""
    query = db.session.query(Customer).filter_by(shop_id=shop_id, lifecycle=LIFECYCLE_ACTIVE)
    if customer_type:
        query = query.filter_by(customer_type=parse_choice("customer_type", customer_type, VALID_CUSTOMER_TYPES))
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Customer.name.ilike(pattern), Customer.phone.like(pattern)))
    return query.order_by(Customer.name.asc(), Customer.id.asc()).limit(limit).all()
