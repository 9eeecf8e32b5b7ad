from decimal import Decimal
from typing import Any, Dict, Optional
import logging

from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError

from extensions import db
from models import User, Referral
from referrals.categories import (is_valid_category, can_refer_into, rate_for_category)
from referrals.referral_tree import ReferralTreeHelper
from utils import validate_email, validate_phone, generate_referral_code


logger = logging.getLogger(__name__)

REQUIRED_FIELDS = {
    "fullName": "Full name",
    "email": "Email",
    "phone": "Phone",
    "password": "Password",
    "bankName": "Bank name",
    "accountNumber": "Account number",
    "accountName": "Account name",
    "category": "Category",
}


class RegistrationError(Exception):
    """Registration rejected before anything was written."""
    pass


class ReferralService:
    """
    Registration into the referral forest and read access to it.
    Call these from the auth/referral blueprints.
    """

    @staticmethod
    def clean_registration_data(data: Dict[str, Any]) -> Dict[str, str]:
        if not isinstance(data, dict):
            raise RegistrationError("Invalid or missing JSON body")

        cleaned = {key: str(data.get(key) or "").strip() for key in REQUIRED_FIELDS}
        missing = [label for key, label in REQUIRED_FIELDS.items() if not cleaned[key]]
        if missing:
            raise RegistrationError(f"Missing required fields: {', '.join(missing)}")

        cleaned["email"] = cleaned["email"].lower()
        cleaned["category"] = cleaned["category"].lower()
        cleaned["referredBy"] = str(data.get("referredBy") or "").strip().upper()

        if not validate_email(cleaned["email"]):
            raise RegistrationError("Invalid email address")
        if not validate_phone(cleaned["phone"]):
            raise RegistrationError("Invalid phone number")
        if len(cleaned["password"]) < 6:
            raise RegistrationError("Password must be at least 6 characters")
        if not is_valid_category(cleaned["category"]):
            raise RegistrationError(f"Invalid category: {cleaned['category']}")
        return cleaned

    @staticmethod
    def resolve_referrer(referral_code: str, new_category: str) -> Optional[User]:
        """Referrer for `referral_code`, enforcing the category-distance rule."""
        if not referral_code:
            return None

        referrer = User.query.filter_by(referral_code=referral_code).first()
        if referrer is None:
            raise RegistrationError("Invalid referral code")
        if not is_valid_category(referrer.category):
            logger.error(f"Referrer {referrer.id} has unknown category {referrer.category!r}")
            raise RegistrationError("Referral code cannot be used")

        if not can_refer_into(referrer.category, new_category):
            raise RegistrationError(
                "You can only be referred into your referrer's category, "
                "a lower one, or the one directly above it"
            )
        return referrer

    @staticmethod
    def create_referral_edge(referrer: User, referred: User) -> Referral:
        """Edge with the referrer's rate as of now; later promotions never touch it."""
        edge = Referral(
            referrer_id=referrer.id,
            referred_id=referred.id,
            commission_rate=rate_for_category(referrer.category),
            commission_earned=Decimal("0"),
            is_active=True,
        )
        db.session.add(edge)
        return edge

    @staticmethod
    def register_user(data: Dict[str, Any]) -> User:
        """
        Validate, then create the user and (when referred) its referral edge in
        one commit. Raises RegistrationError on any rule violation.
        """
        cleaned = ReferralService.clean_registration_data(data)

        if User.query.filter(func.lower(User.email) == cleaned["email"]).first():
            raise RegistrationError("Email already registered")

        referrer = ReferralService.resolve_referrer(cleaned["referredBy"], cleaned["category"])

        user = User(
            full_name=cleaned["fullName"],
            email=cleaned["email"],
            phone=cleaned["phone"],
            bank_name=cleaned["bankName"],
            account_number=cleaned["accountNumber"],
            account_name=cleaned["accountName"],
            category=cleaned["category"],
            referred_by=referrer.referral_code if referrer else None,
            referral_code=generate_referral_code(
                cleaned["fullName"],
                exists=lambda code: User.query.filter_by(referral_code=code).first() is not None,
            ),
        )
        user.set_password(cleaned["password"])

        try:
            db.session.add(user)
            db.session.flush()
            if referrer:
                edge = ReferralService.create_referral_edge(referrer, user)
                logger.info(
                    f"Referral edge {referrer.id} -> {user.id} at {edge.commission_rate}% "
                    f"({referrer.category})"
                )
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            logger.warning(f"Registration conflict for {cleaned['email']}", exc_info=True)
            raise RegistrationError("Email or referral code already registered") from None

        logger.info(f"Registered user {user.id} ({user.category}) code={user.referral_code}")
        return user

    @staticmethod
    def get_referral_stats(user_id: int) -> Dict[str, Any]:
        row = db.session.query(
            func.count(Referral.id),
            func.coalesce(func.sum(case((Referral.is_active.is_(True), 1), else_=0)), 0),
            func.coalesce(func.sum(Referral.commission_earned), 0),
        ).filter(Referral.referrer_id == user_id).one()

        return {
            "totalReferrals": int(row[0] or 0),
            "activeReferrals": int(row[1] or 0),
            "totalCommissions": float(row[2] or 0),
        }

    @staticmethod
    def get_referral_tree(user_id: int) -> Optional[Dict[str, Any]]:
        return ReferralTreeHelper.build_downline_tree(user_id)
