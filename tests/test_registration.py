# tests/test_registration.py
"""
Tests for registration into the referral forest: the category-distance rule,
frozen commission rates and validation that writes nothing on failure.
"""
import itertools
import re
from decimal import Decimal

import pytest

from models import Referral, User
from referrals.categories import CATEGORY_ORDER, category_level
from referrals.services import RegistrationError, ReferralService

TOO_HIGH_PAIRS = [
    (referrer, new)
    for referrer, new in itertools.product(CATEGORY_ORDER, CATEGORY_ORDER)
    if category_level(new) > category_level(referrer) + 1
]


class TestCategoryDistance:

    @pytest.mark.parametrize("referrer_category, new_category", TOO_HIGH_PAIRS)
    def test_more_than_one_tier_above_is_rejected(self, session, registration_data, make_user,
                                                  referrer_category, new_category):
        referrer = make_user(category=referrer_category)
        users_before = User.query.count()

        with pytest.raises(RegistrationError):
            ReferralService.register_user(
                registration_data("new@example.com", new_category, referrer.referral_code)
            )

        assert User.query.count() == users_before
        assert Referral.query.count() == 0

    @pytest.mark.parametrize("new_category", ["bronze", "silver"])
    def test_same_or_next_tier_accepted(self, session, registration_data, make_user, new_category):
        referrer = make_user(category="bronze")

        user = ReferralService.register_user(
            registration_data("new@example.com", new_category, referrer.referral_code)
        )

        assert user.category == new_category
        assert user.referred_by == referrer.referral_code

    def test_four_user_scenario(self, session, registration_data):
        a = ReferralService.register_user(registration_data("a@example.com", "bronze"))
        b = ReferralService.register_user(registration_data("b@example.com", "bronze", a.referral_code))
        c = ReferralService.register_user(registration_data("c@example.com", "silver", b.referral_code))

        with pytest.raises(RegistrationError):
            ReferralService.register_user(registration_data("d@example.com", "platinum", b.referral_code))
        with pytest.raises(RegistrationError):
            ReferralService.register_user(registration_data("d@example.com", "platinum", c.referral_code))

        d = ReferralService.register_user(registration_data("d@example.com", "gold", c.referral_code))
        assert d.referred_by == c.referral_code
        assert User.query.count() == 4


class TestCommissionRateFreezing:

    def test_edge_keeps_rate_after_referrer_promotion(self, session, registration_data):
        referrer = ReferralService.register_user(registration_data("ref@example.com", "silver"))
        first = ReferralService.register_user(
            registration_data("first@example.com", "bronze", referrer.referral_code)
        )

        referrer.category = "gold"
        session.commit()

        second = ReferralService.register_user(
            registration_data("second@example.com", "bronze", referrer.referral_code)
        )

        first_edge = Referral.query.filter_by(referred_id=first.id).one()
        second_edge = Referral.query.filter_by(referred_id=second.id).one()
        assert first_edge.commission_rate == Decimal("7")
        assert second_edge.commission_rate == Decimal("9")
        assert first_edge.referrer_id == second_edge.referrer_id == referrer.id


class TestValidation:

    def test_unknown_referral_code(self, session, registration_data):
        with pytest.raises(RegistrationError, match="Invalid referral code"):
            ReferralService.register_user(registration_data("x@example.com", "bronze", "PSS-NOPE0000"))
        assert User.query.count() == 0

    def test_referrer_with_unknown_category(self, session, registration_data, make_user):
        referrer = make_user(category="diamond")

        with pytest.raises(RegistrationError):
            ReferralService.register_user(registration_data("x@example.com", "bronze", referrer.referral_code))

        assert User.query.count() == 1
        assert Referral.query.count() == 0

    def test_referral_code_is_case_insensitive_on_input(self, session, registration_data, make_user):
        referrer = make_user()

        user = ReferralService.register_user(
            registration_data("x@example.com", "bronze", referrer.referral_code.lower())
        )

        assert user.referred_by == referrer.referral_code

    def test_duplicate_email(self, session, registration_data, make_user):
        make_user(email="taken@example.com")

        with pytest.raises(RegistrationError, match="Email already registered"):
            ReferralService.register_user(registration_data("Taken@Example.com", "bronze"))

    def test_missing_fields_listed(self, session, registration_data):
        data = registration_data("x@example.com", "bronze")
        del data["bankName"]
        data["phone"] = "  "

        with pytest.raises(RegistrationError) as excinfo:
            ReferralService.register_user(data)

        assert "Phone" in str(excinfo.value)
        assert "Bank name" in str(excinfo.value)

    @pytest.mark.parametrize("field, value", [
        ("email", "not-an-email"),
        ("phone", "12ab"),
        ("password", "123"),
        ("category", "titanium"),
    ])
    def test_invalid_values(self, session, registration_data, field, value):
        data = registration_data("x@example.com", "bronze")
        data[field] = value

        with pytest.raises(RegistrationError):
            ReferralService.register_user(data)

    def test_root_user_has_no_edge(self, session, registration_data):
        user = ReferralService.register_user(registration_data("root@example.com", "gold"))

        assert user.referred_by is None
        assert Referral.query.count() == 0
        assert user.check_password("secret123")

    def test_referral_code_format(self, session, registration_data):
        user = ReferralService.register_user(
            registration_data("grace@example.com", "bronze", name="Grace Brewster Hopper")
        )

        assert re.fullmatch(r"PSS-GBH\d{4}", user.referral_code)


class TestReferralStats:

    def test_counts_and_commissions(self, session, make_user):
        referrer = make_user()
        make_user(referrer=referrer)
        inactive = make_user(referrer=referrer)
        edge = Referral.query.filter_by(referred_id=inactive.id).one()
        edge.is_active = False
        edge.commission_earned = Decimal("150.50")
        session.commit()

        stats = ReferralService.get_referral_stats(referrer.id)

        assert stats == {"totalReferrals": 2, "activeReferrals": 1, "totalCommissions": 150.5}
