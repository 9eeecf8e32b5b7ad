# referrals/promotion.py
from decimal import Decimal
from typing import Optional
import logging

from sqlalchemy import func, select, update

from extensions import db
from models import User, InvestmentPackage, CategoryUpgrade, utcnow
from referrals.categories import target_category


logger = logging.getLogger(__name__)

MAX_PROMOTION_ATTEMPTS = 3


class CategoryPromotionService:
    """Moves users up the category ladder as their cumulative investment grows."""

    @staticmethod
    def total_investment(user_id: int) -> Decimal:
        """Sum of every investment the user ever made, active or matured."""
        total = db.session.query(
            func.coalesce(func.sum(InvestmentPackage.amount), 0)
        ).filter(InvestmentPackage.user_id == user_id).scalar()
        return Decimal(str(total or 0))

    @staticmethod
    def upgrade_reason(total: Decimal) -> str:
        return f"Automatic upgrade based on total investment of ₦{total:,.2f}"

    @staticmethod
    def evaluate_and_promote(user_id: int) -> Optional[CategoryUpgrade]:
        """
        Promote `user_id` to the highest tier its cumulative investment reaches.

        The category switch is a compare-and-swap on the category read here, so
        two concurrent evaluations for the same user write at most one upgrade
        event per transition. When another request changed the category first,
        the check is repeated from the new category (up to
        MAX_PROMOTION_ATTEMPTS times). The event and the new category commit
        together. Returns the event, or None when nothing changed.
        """
        user = db.session.get(User, user_id)
        if user is None:
            logger.warning(f"Promotion check skipped: user {user_id} not found")
            return None

        current = user.category
        for attempt in range(1, MAX_PROMOTION_ATTEMPTS + 1):
            total = CategoryPromotionService.total_investment(user_id)
            target = target_category(current, total)
            if target is None:
                return None

            result = db.session.execute(
                update(User)
                .where(User.id == user_id, User.category == current)
                .values(category=target, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                break

            # category moved between our read and write; re-read and try again
            db.session.rollback()
            current = db.session.scalar(select(User.category).where(User.id == user_id))
            logger.info(f"User {user_id} category changed concurrently (attempt {attempt}), now {current}")
            if current is None:
                return None
        else:
            logger.warning(f"Promotion of user {user_id} gave up after {MAX_PROMOTION_ATTEMPTS} attempts")
            return None

        upgrade = CategoryUpgrade(
            user_id=user_id,
            from_category=current,
            to_category=target,
            upgrade_reason=CategoryPromotionService.upgrade_reason(total),
            total_investment_threshold=total,
        )
        db.session.add(upgrade)
        db.session.commit()

        logger.info(f"User {user_id} upgraded {current} -> {target} (total investment {total})")
        return upgrade
