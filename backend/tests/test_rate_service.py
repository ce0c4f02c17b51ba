"""
Rate master tests.

The current rate for a metal type / purity is the most recently created
active rate inside its validity window.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from karat.models import RateMaster
from karat.services import rate_service
from karat.services.errors import InvalidInputError, NotFoundError, RateNotFoundError
from karat.time_utils import utcnow


class TestCurrentRate:

    def test_new_rate_supersedes_previous(self, db_session, shop, gold_rate):
        newer = rate_service.create_rate(shop.id, "GOLD", "22K", "6100.00")

        current = rate_service.get_current_rate(shop.id, "GOLD", "22K")
        assert current.id == newer.id
        assert current.rate_per_gram == Decimal("6100.00")

        db_session.refresh(gold_rate)
        assert gold_rate.is_active is False

    def test_latest_created_wins_over_later_effective_date(self, db_session, shop):
        now = utcnow()
        first = rate_service.create_rate(shop.id, "GOLD", "24K", "7000.00", effective_date=now - timedelta(hours=1))
        second = rate_service.create_rate(shop.id, "GOLD", "24K", "6900.00", effective_date=now - timedelta(days=2),
                                          is_active=False)
        # Re-activate both so two candidates are in force
        first.is_active = True
        second.is_active = True
        db_session.commit()

        assert rate_service.get_current_rate(shop.id, "GOLD", "24K").id == second.id

    def test_expired_rate_ignored(self, shop):
        now = utcnow()
        rate_service.create_rate(
            shop.id, "SILVER", "925", "80.00",
            effective_date=now - timedelta(days=3),
            valid_until=now - timedelta(days=1),
        )
        with pytest.raises(RateNotFoundError):
            rate_service.get_current_rate(shop.id, "SILVER", "925")

    def test_future_rate_ignored(self, shop):
        rate_service.create_rate(shop.id, "PLATINUM", "950", "3200.00", effective_date=utcnow() + timedelta(days=1))
        with pytest.raises(RateNotFoundError):
            rate_service.get_current_rate(shop.id, "PLATINUM", "950")

    def test_inactive_rate_ignored(self, shop):
        rate_service.create_rate(shop.id, "GOLD", "18K", "5000.00", is_active=False)
        with pytest.raises(RateNotFoundError):
            rate_service.get_current_rate(shop.id, "GOLD", "18K")

    def test_purity_is_normalized(self, shop, gold_rate):
        assert rate_service.get_current_rate(shop.id, "GOLD", " 22k ").id == gold_rate.id

    def test_rates_are_per_shop(self, other_shop, gold_rate):
        with pytest.raises(RateNotFoundError):
            rate_service.get_current_rate(other_shop.id, "GOLD", "22K")

    def test_all_current_rates_one_per_pair(self, shop, gold_rate):
        rate_service.create_rate(shop.id, "GOLD", "22K", "6050.00")
        silver = rate_service.create_rate(shop.id, "SILVER", "925", "82.50")

        current = rate_service.get_all_current_rates(shop.id)
        pairs = {(r.metal_type, r.purity): r for r in current}
        assert set(pairs) == {("GOLD", "22K"), ("SILVER", "925")}
        assert pairs[("GOLD", "22K")].rate_per_gram == Decimal("6050.00")
        assert pairs[("SILVER", "925")].id == silver.id


class TestRateMaintenance:

    def test_rejects_unknown_metal(self, shop):
        with pytest.raises(InvalidInputError):
            rate_service.create_rate(shop.id, "COPPER", "99", "10.00")

    def test_rejects_non_positive_rate(self, shop):
        with pytest.raises(InvalidInputError):
            rate_service.create_rate(shop.id, "GOLD", "22K", "0")

    def test_rejects_inverted_validity(self, shop):
        now = utcnow()
        with pytest.raises(InvalidInputError):
            rate_service.create_rate(shop.id, "GOLD", "22K", "6000.00", effective_date=now,
                                     valid_until=now - timedelta(minutes=1))

    def test_update_and_reactivate(self, db_session, shop, gold_rate):
        newer = rate_service.create_rate(shop.id, "GOLD", "22K", "6100.00")

        rate_service.update_rate(shop.id, gold_rate.id, is_active=True, rate_per_gram="5990.00")

        db_session.refresh(newer)
        assert newer.is_active is False
        current = rate_service.get_current_rate(shop.id, "GOLD", "22K")
        assert current.id == gold_rate.id
        assert current.rate_per_gram == Decimal("5990.00")

    def test_update_rejects_unknown_fields(self, shop, gold_rate):
        with pytest.raises(InvalidInputError):
            rate_service.update_rate(shop.id, gold_rate.id, metal_type="SILVER")

    def test_update_missing_rate(self, shop):
        with pytest.raises(NotFoundError):
            rate_service.update_rate(shop.id, 424242, is_active=False)

    def test_history_and_expiring(self, db_session, shop):
        now = utcnow()
        rate_service.create_rate(shop.id, "GOLD", "22K", "5800.00", effective_date=now - timedelta(days=40))
        recent = rate_service.create_rate(shop.id, "GOLD", "22K", "6000.00", effective_date=now - timedelta(days=2),
                                          valid_until=now + timedelta(days=3))

        history = rate_service.get_rate_history(shop.id, "GOLD", "22K", days=30)
        assert [r.id for r in history] == [recent.id]

        expiring = rate_service.get_rates_expiring_soon(shop.id, days=7)
        assert [r.id for r in expiring] == [recent.id]
        assert db_session.query(RateMaster).filter_by(shop_id=shop.id).count() == 2
