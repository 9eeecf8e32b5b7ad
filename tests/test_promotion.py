# tests/test_promotion.py
"""
Tests for automatic category promotion after investments.
"""
from decimal import Decimal

import pytest
from dateutil.relativedelta import relativedelta
from sqlalchemy import text

import referrals.promotion as promotion
from blueprints.investment_helpers import InvestmentService, InvestmentValidationError
from models import CategoryUpgrade, InvestmentPackage, Transaction, User
from referrals.promotion import CategoryPromotionService


def _upgrades(user_id):
    return CategoryUpgrade.query.filter_by(user_id=user_id).all()


class TestEvaluateAndPromote:

    def test_single_large_deposit_jumps_to_platinum(self, session, make_user, make_investment):
        user = make_user(category="bronze")
        make_investment(user, "250000")

        upgrade = CategoryPromotionService.evaluate_and_promote(user.id)

        assert upgrade is not None
        assert session.get(User, user.id).category == "platinum"
        rows = _upgrades(user.id)
        assert len(rows) == 1
        assert rows[0].from_category == "bronze"
        assert rows[0].to_category == "platinum"
        assert rows[0].total_investment_threshold == Decimal("250000")
        assert rows[0].upgrade_reason == "Automatic upgrade based on total investment of ₦250,000.00"

    def test_idempotent_at_fixed_total(self, session, make_user, make_investment):
        user = make_user(category="bronze")
        make_investment(user, "250000")

        CategoryPromotionService.evaluate_and_promote(user.id)
        second = CategoryPromotionService.evaluate_and_promote(user.id)

        assert second is None
        assert len(_upgrades(user.id)) == 1

    def test_below_threshold_is_noop(self, session, make_user, make_investment):
        user = make_user(category="bronze")
        make_investment(user, "9999.99")

        assert CategoryPromotionService.evaluate_and_promote(user.id) is None
        assert session.get(User, user.id).category == "bronze"
        assert _upgrades(user.id) == []

    def test_cumulative_investments_count(self, session, make_user, make_investment):
        user = make_user(category="bronze")
        make_investment(user, "6000")
        make_investment(user, "4000", duration=3)

        upgrade = CategoryPromotionService.evaluate_and_promote(user.id)

        assert upgrade.to_category == "silver"
        assert upgrade.total_investment_threshold == Decimal("10000")

    def test_never_demotes(self, session, make_user, make_investment):
        user = make_user(category="gold")
        make_investment(user, "100")

        assert CategoryPromotionService.evaluate_and_promote(user.id) is None
        assert session.get(User, user.id).category == "gold"

    def test_unknown_user(self, session):
        assert CategoryPromotionService.evaluate_and_promote(424242) is None

    @staticmethod
    def _race_once(monkeypatch, session, user_id, category):
        """Another worker commits `category` between our first read and our write."""
        real_target = promotion.target_category
        calls = []

        def racing_target(current, total):
            if not calls:
                session.execute(text("UPDATE users SET category = :category WHERE id = :id"),
                                {"category": category, "id": user_id})
                session.commit()
            calls.append(current)
            return real_target(current, total)

        monkeypatch.setattr(promotion, "target_category", racing_target)
        return calls

    def test_lost_race_retries_from_new_category(self, session, make_user, make_investment, monkeypatch):
        user = make_user(category="bronze")
        make_investment(user, "250000")
        calls = self._race_once(monkeypatch, session, user.id, "silver")

        upgrade = CategoryPromotionService.evaluate_and_promote(user.id)

        assert calls == ["bronze", "silver"]
        assert upgrade is not None
        assert session.get(User, user.id).category == "platinum"
        rows = _upgrades(user.id)
        assert [(r.from_category, r.to_category) for r in rows] == [("silver", "platinum")]

    def test_lost_race_to_same_tier_writes_nothing(self, session, make_user, make_investment, monkeypatch):
        user = make_user(category="bronze")
        make_investment(user, "60000")
        self._race_once(monkeypatch, session, user.id, "gold")

        assert CategoryPromotionService.evaluate_and_promote(user.id) is None
        assert session.get(User, user.id).category == "gold"
        assert _upgrades(user.id) == []

    def test_gives_up_after_repeated_lost_races(self, session, make_user, make_investment, monkeypatch):
        user = make_user(category="bronze")
        make_investment(user, "60000")
        real_target = promotion.target_category

        def always_racing(current, total):
            # the concurrent write is never committed, so each attempt loses again
            session.execute(text("UPDATE users SET category = 'silver' WHERE id = :id"), {"id": user.id})
            return real_target(current, total)

        monkeypatch.setattr(promotion, "target_category", always_racing)

        assert CategoryPromotionService.evaluate_and_promote(user.id) is None
        assert _upgrades(user.id) == []


class TestCreateInvestment:

    def test_records_investment_and_deposit(self, session, make_user):
        user = make_user(category="bronze")

        investment = InvestmentService.create_investment(user.id, "bronze", "2000", 6)

        assert investment.amount == Decimal("2000.00")
        assert investment.monthly_roi == Decimal("200.00")
        assert investment.maturity_date == investment.start_date + relativedelta(months=6)

        deposit = Transaction.query.filter_by(user_id=user.id, type="deposit").one()
        assert deposit.status == "completed"
        assert deposit.amount == Decimal("2000.00")
        assert deposit.reference.startswith(f"INV-{investment.id}-")
        assert deposit.meta == {"investmentId": investment.id}

    def test_promotes_after_commit(self, session, make_user):
        user = make_user(category="bronze")

        InvestmentService.create_investment(user.id, "gold", 50000, 12)

        assert session.get(User, user.id).category == "gold"
        assert len(_upgrades(user.id)) == 1
        assert InvestmentPackage.query.filter_by(user_id=user.id).count() == 1

    @pytest.mark.parametrize("category, amount, duration", [
        ("titanium", "1000", 6),
        ("bronze", "0", 6),
        ("bronze", "-5", 6),
        ("bronze", "abc", 6),
        ("bronze", "1000", 0),
        ("bronze", "1000", "six"),
        ("bronze", "1000", 2.5),
        ("bronze", "1e30", 6),
        ("bronze", "10000000000000", 6),
        ("bronze", "0.001", 6),
    ])
    def test_rejects_invalid_input(self, session, make_user, category, amount, duration):
        user = make_user()

        with pytest.raises(InvestmentValidationError):
            InvestmentService.create_investment(user.id, category, amount, duration)

        assert InvestmentPackage.query.count() == 0
        assert Transaction.query.count() == 0

    def test_dashboard_stats(self, session, make_user, make_investment):
        referrer = make_user(category="silver")
        make_user(referrer=referrer)
        make_investment(referrer, "5000", total_earned="500")

        stats = InvestmentService.get_user_stats(referrer.id)

        assert stats == {
            "totalInvestment": 5000.0,
            "totalReturns": 500.0,
            "totalReferrals": 1,
            "totalCommissions": 0.0,
        }
