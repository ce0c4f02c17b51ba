# Overview: Service-layer operations for the rate master; resolves the current metal rate per metal type and purity.

"""
Rate Master Service

Rates are append-mostly: a new rate for a (metal_type, purity) pair
supersedes the previous one by deactivating it. Rows are never deleted so
historical orders can still point at the rate they were priced with.

CURRENT RATE:
Among the shop's rates for the pair with
- is_active = True
- effective_date <= now
- valid_until IS NULL or valid_until >= now
the current rate is the one created last (highest created_at, then
highest id). No candidate raises RateNotFoundError; pricing must stop.
"""

from __future__ import annotations

from datetime import timedelta

from sqlalchemy import or_

from ..extensions import db
from ..models import RateMaster
from ..models.catalog import VALID_METAL_TYPES, VALID_RATE_SOURCES, RATE_SOURCE_MANUAL
from karat.time_utils import utcnow
from karat.validation import parse_choice, parse_money, parse_percent
from .concurrency import lock_for_update, run_in_transaction
from .errors import InvalidInputError, NotFoundError, RateNotFoundError


def _current_rates_query(shop_id: int, now):
    return db.session.query(RateMaster).filter(
        RateMaster.shop_id == shop_id,
        RateMaster.is_active.is_(True),
        RateMaster.effective_date <= now,
        or_(RateMaster.valid_until.is_(None), RateMaster.valid_until >= now),
    )


def _normalize_purity(purity) -> str:
    if not isinstance(purity, str) or not purity.strip():
        raise InvalidInputError("purity is required")
    return purity.strip().upper()


def get_current_rate(shop_id: int, metal_type: str, purity: str, *, now=None) -> RateMaster:
    """
    Resolve the rate in force for a metal type and purity.

    Raises:
        RateNotFoundError: no active, in-validity rate exists
    """
    now = now or utcnow()
    purity = _normalize_purity(purity)

    rate = (
        _current_rates_query(shop_id, now)
        .filter(RateMaster.metal_type == metal_type, RateMaster.purity == purity)
        .order_by(RateMaster.created_at.desc(), RateMaster.id.desc())
        .first()
    )
    if not rate:
        raise RateNotFoundError(
            f"No current rate for {metal_type} {purity}",
            details={"metal_type": metal_type, "purity": purity},
        )
    return rate


def get_all_current_rates(shop_id: int, *, now=None) -> list[RateMaster]:
    """One current rate per (metal_type, purity) pair."""
    now = now or utcnow()
    rates = (
        _current_rates_query(shop_id, now)
        .order_by(
            RateMaster.metal_type,
            RateMaster.purity,
            RateMaster.created_at.desc(),
            RateMaster.id.desc(),
        )
        .all()
    )

    current = []
    seen = set()
    for rate in rates:
        key = (rate.metal_type, rate.purity)
        if key in seen:
            continue
        seen.add(key)
        current.append(rate)
    return current


def list_rates(shop_id: int, *, metal_type: str | None = None, purity: str | None = None,
               is_active: bool | None = None) -> list[RateMaster]:
    query = db.session.query(RateMaster).filter_by(shop_id=shop_id)
    if metal_type:
        query = query.filter(RateMaster.metal_type == metal_type)
    if purity:
        query = query.filter(RateMaster.purity == _normalize_purity(purity))
    if is_active is not None:
        query = query.filter(RateMaster.is_active.is_(is_active))
    return query.order_by(RateMaster.created_at.desc(), RateMaster.id.desc()).all()


def get_rate_history(shop_id: int, metal_type: str, purity: str, *, days: int = 30, now=None) -> list[RateMaster]:
    """All rates for the pair that took effect in the last `days` days, newest first."""
    now = now or utcnow()
    since = now - timedelta(days=days)
    return (
        db.session.query(RateMaster)
        .filter(
            RateMaster.shop_id == shop_id,
            RateMaster.metal_type == metal_type,
            RateMaster.purity == _normalize_purity(purity),
            RateMaster.effective_date >= since,
        )
        .order_by(RateMaster.effective_date.desc(), RateMaster.id.desc())
        .all()
    )


def get_rates_expiring_soon(shop_id: int, *, days: int = 7, now=None) -> list[RateMaster]:
    """Active rates whose valid_until falls within the next `days` days."""
    now = now or utcnow()
    until = now + timedelta(days=days)
    return (
        db.session.query(RateMaster)
        .filter(
            RateMaster.shop_id == shop_id,
            RateMaster.is_active.is_(True),
            RateMaster.valid_until.isnot(None),
            RateMaster.valid_until >= now,
            RateMaster.valid_until <= until,
        )
        .order_by(RateMaster.valid_until.asc())
        .all()
    )


def _deactivate_siblings(rate: RateMaster) -> int:
    """Deactivate every other active rate for the same shop and pair."""
    siblings = lock_for_update(
        db.session.query(RateMaster).filter(
            RateMaster.shop_id == rate.shop_id,
            RateMaster.metal_type == rate.metal_type,
            RateMaster.purity == rate.purity,
            RateMaster.is_active.is_(True),
            RateMaster.id != rate.id,
        )
    ).all()
    for sibling in siblings:
        sibling.is_active = False
    return len(siblings)


def create_rate(
    shop_id: int,
    metal_type: str,
    purity: str,
    rate_per_gram,
    *,
    effective_date=None,
    valid_until=None,
    rate_source: str = RATE_SOURCE_MANUAL,
    default_making_charge_percent=None,
    is_active: bool = True,
    user_id: int | None = None,
) -> RateMaster:
    """
    Create a rate. An active rate supersedes the pair's other active rates.

    Raises:
        InvalidInputError: bad metal type, source, amount or validity window
    """
    metal_type = parse_choice("metal_type", metal_type, VALID_METAL_TYPES)
    rate_source = parse_choice("rate_source", rate_source, VALID_RATE_SOURCES)
    purity = _normalize_purity(purity)
    amount = parse_money("rate_per_gram", rate_per_gram, positive=True)
    making_percent = None
    if default_making_charge_percent is not None:
        making_percent = parse_percent("default_making_charge_percent", default_making_charge_percent)

    effective_date = effective_date or utcnow()
    if valid_until is not None and valid_until < effective_date:
        raise InvalidInputError("valid_until cannot be before effective_date")

    def _op():
        rate = RateMaster(
            shop_id=shop_id,
            metal_type=metal_type,
            purity=purity,
            rate_per_gram=amount,
            effective_date=effective_date,
            valid_until=valid_until,
            rate_source=rate_source,
            is_active=bool(is_active),
            default_making_charge_percent=making_percent,
            created_by_user_id=user_id,
            created_at=utcnow(),
        )
        db.session.add(rate)
        db.session.flush()
        if rate.is_active:
            _deactivate_siblings(rate)
        return rate

    return run_in_transaction(_op)


def _get_rate(shop_id: int, rate_id: int) -> RateMaster:
    rate = lock_for_update(db.session.query(RateMaster).filter_by(id=rate_id, shop_id=shop_id)).first()
    if not rate:
        raise NotFoundError(f"Rate {rate_id} not found")
    return rate


def update_rate(shop_id: int, rate_id: int, **changes) -> RateMaster:
    """
    Update the mutable fields of a rate.

    Accepted keys: rate_per_gram, valid_until, rate_source,
    default_making_charge_percent, is_active. Re-activating a rate
    supersedes the pair's other active rates.
    """
    allowed = {"rate_per_gram", "valid_until", "rate_source", "default_making_charge_percent", "is_active"}
    unknown = set(changes) - allowed
    if unknown:
        raise InvalidInputError(f"Cannot update fields: {sorted(unknown)}")

    def _op():
        rate = _get_rate(shop_id, rate_id)

        if "rate_per_gram" in changes:
            rate.rate_per_gram = parse_money("rate_per_gram", changes["rate_per_gram"], positive=True)
        if "rate_source" in changes:
            rate.rate_source = parse_choice("rate_source", changes["rate_source"], VALID_RATE_SOURCES)
        if "default_making_charge_percent" in changes:
            value = changes["default_making_charge_percent"]
            rate.default_making_charge_percent = (
                None if value is None else parse_percent("default_making_charge_percent", value)
            )
        if "valid_until" in changes:
            valid_until = changes["valid_until"]
            if valid_until is not None and valid_until < rate.effective_date:
                raise InvalidInputError("valid_until cannot be before effective_date")
            rate.valid_until = valid_until

        if "is_active" in changes:
            activate = bool(changes["is_active"])
            if activate and not rate.is_active:
                rate.is_active = True
                _deactivate_siblings(rate)
            elif not activate:
                rate.is_active = False

        return rate

    return run_in_transaction(_op)


def deactivate_rate(shop_id: int, rate_id: int) -> RateMaster:
    def _op():
        rate = _get_rate(shop_id, rate_id)
        rate.is_active = False
        return rate

    return run_in_transaction(_op)
