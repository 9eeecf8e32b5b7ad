# investment_helpers.py
from decimal import Decimal, ROUND_HALF_UP
import logging
import time

from dateutil.relativedelta import relativedelta
from sqlalchemy import func

from models import db, InvestmentPackage, Transaction, TransactionType, TransactionStatus, utcnow
from referrals.categories import MONTHLY_ROI_RATE, is_valid_category
from referrals.promotion import CategoryPromotionService
from referrals.services import ReferralService
from utils import MAX_MONEY_AMOUNT, to_decimal


logger = logging.getLogger(__name__)

MAX_DURATION_MONTHS = 60


class InvestmentValidationError(Exception):
    pass


class InvestmentService:

    @staticmethod
    def validate_investment(category, amount, duration):
        """
        Returns cleaned (category, amount, duration) or raises InvestmentValidationError
        """
        category = str(category or "").strip().lower()
        if not is_valid_category(category):
            raise InvestmentValidationError(f"Invalid category: {category or 'missing'}")

        amount_dec = to_decimal(amount)
        if amount_dec is None:
            raise InvestmentValidationError("Invalid amount format")
        if amount_dec <= Decimal("0"):
            raise InvestmentValidationError("Amount must be greater than zero")
        if amount_dec > MAX_MONEY_AMOUNT:
            raise InvestmentValidationError("Amount is too large")
        amount_dec = amount_dec.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        if amount_dec == Decimal("0"):
            raise InvestmentValidationError("Amount must be greater than zero")

        try:
            duration_int = int(duration)
        except (TypeError, ValueError):
            raise InvestmentValidationError("Duration must be a whole number of months") from None
        if isinstance(duration, float) and duration != duration_int:
            raise InvestmentValidationError("Duration must be a whole number of months")
        if duration_int < 1 or duration_int > MAX_DURATION_MONTHS:
            raise InvestmentValidationError(f"Duration must be between 1 and {MAX_DURATION_MONTHS} months")

        return category, amount_dec, duration_int

    @staticmethod
    def create_investment(user_id, category, amount, duration):
        """
        Record the investment and its deposit transaction, then run the
        category promotion check for the investor.
        """
        category, amount, duration = InvestmentService.validate_investment(category, amount, duration)

        start_date = utcnow()
        monthly_roi = (amount * MONTHLY_ROI_RATE).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

        investment = InvestmentPackage(
            user_id=user_id,
            category=category,
            amount=amount,
            duration=duration,
            monthly_roi=monthly_roi,
            start_date=start_date,
            maturity_date=start_date + relativedelta(months=duration),
            created_at=start_date,
        )
        db.session.add(investment)
        db.session.flush()

        db.session.add(Transaction(
            user_id=user_id,
            type=TransactionType.DEPOSIT.value,
            amount=amount,
            reference=f"INV-{investment.id}-{int(time.time() * 1000)}",
            status=TransactionStatus.COMPLETED.value,
            description=f"Investment in {category} package",
            meta={"investmentId": investment.id},
            created_at=start_date,
        ))
        db.session.commit()
        logger.info(f"Investment {investment.id} created for user {user_id}: {amount} {category} x{duration}m")

        CategoryPromotionService.evaluate_and_promote(user_id)
        return investment

    @staticmethod
    def get_user_investments(user_id):
        return (
            InvestmentPackage.query.filter_by(user_id=user_id)
            .order_by(InvestmentPackage.created_at.desc(), InvestmentPackage.id.desc())
            .all()
        )

    @staticmethod
    def get_user_stats(user_id):
        """Dashboard totals: invested, returns earned, referrals and commissions."""
        invested, returns = db.session.query(
            func.coalesce(func.sum(InvestmentPackage.amount), 0),
            func.coalesce(func.sum(InvestmentPackage.total_earned), 0),
        ).filter(InvestmentPackage.user_id == user_id).one()

        referral_stats = ReferralService.get_referral_stats(user_id)
        return {
            "totalInvestment": float(invested or 0),
            "totalReturns": float(returns or 0),
            "totalReferrals": referral_stats["totalReferrals"],
            "totalCommissions": referral_stats["totalCommissions"],
        }
