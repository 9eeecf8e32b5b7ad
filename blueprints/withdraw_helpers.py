from decimal import Decimal, ROUND_HALF_UP
import time
import logging
from typing import Dict, Optional

from flask import current_app, has_app_context
from sqlalchemy import func, update

from models import (db, User, InvestmentPackage, Referral, WithdrawalRequest, Transaction,
                    TransactionType, TransactionStatus, WithdrawalStatus, utcnow)
from utils import MAX_MONEY_AMOUNT, to_decimal


logger = logging.getLogger(__name__)

# ==========================================================
#                  CONFIGURATION
# ==========================================================
class WithdrawalConfig:
    MIN_WITHDRAWAL = Decimal("1000")
    # Requests in these states still hold their amount against the balance
    RESERVING_STATUSES = (WithdrawalStatus.PENDING.value, WithdrawalStatus.APPROVED.value)
    PROCESSABLE_STATUSES = (WithdrawalStatus.APPROVED.value, WithdrawalStatus.REJECTED.value)

    @staticmethod
    def min_withdrawal() -> Decimal:
        configured = current_app.config.get("MIN_WITHDRAWAL") if has_app_context() else None
        return Decimal(str(configured)) if configured is not None else WithdrawalConfig.MIN_WITHDRAWAL

# ==========================================================
#                  EXCEPTIONS
# ==========================================================
class WithdrawalException(Exception):
    """Base withdrawal exception"""
    pass

class InsufficientBalanceError(WithdrawalException):
    pass

class ValidationError(WithdrawalException):
    pass

class WithdrawalNotFoundError(WithdrawalException):
    pass

# ==========================================================
#                  BALANCE
# ==========================================================
class BalanceManager:

    @staticmethod
    def earned_total(user_id: int) -> Decimal:
        """ROI earned on investments plus commissions earned on referrals."""
        returns = db.session.query(
            func.coalesce(func.sum(InvestmentPackage.total_earned), 0)
        ).filter(InvestmentPackage.user_id == user_id).scalar()
        commissions = db.session.query(
            func.coalesce(func.sum(Referral.commission_earned), 0)
        ).filter(Referral.referrer_id == user_id).scalar()
        return Decimal(str(returns or 0)) + Decimal(str(commissions or 0))

    @staticmethod
    def reserved_total(user_id: int) -> Decimal:
        reserved = db.session.query(
            func.coalesce(func.sum(WithdrawalRequest.amount), 0)
        ).filter(
            WithdrawalRequest.user_id == user_id,
            WithdrawalRequest.status.in_(WithdrawalConfig.RESERVING_STATUSES),
        ).scalar()
        return Decimal(str(reserved or 0))

    @staticmethod
    def withdrawable_balance(user_id: int) -> Decimal:
        balance = BalanceManager.earned_total(user_id) - BalanceManager.reserved_total(user_id)
        return max(balance, Decimal("0"))

# ==========================================================
#                  WITHDRAWAL VALIDATOR
# ==========================================================
class WithdrawalValidator:
    @staticmethod
    def validate_withdrawal_request(user: Optional[User], amount) -> Decimal:
        """
        Returns the cleaned amount or raises a WithdrawalException subclass
        """
        if user is None:
            raise ValidationError("User not found")
        if not user.is_active:
            raise ValidationError("Account is inactive")

        amount_dec = to_decimal(amount)
        if amount_dec is None:
            raise ValidationError("Invalid amount format")
        if amount_dec <= Decimal("0"):
            raise ValidationError("Amount must be greater than zero")
        if amount_dec > MAX_MONEY_AMOUNT:
            raise ValidationError("Amount is too large")
        amount_dec = amount_dec.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

        minimum = WithdrawalConfig.min_withdrawal()
        if amount_dec < minimum:
            raise ValidationError(f"Minimum withdrawal is ₦{minimum:,.2f}")

        available = BalanceManager.withdrawable_balance(user.id)
        if amount_dec > available:
            raise InsufficientBalanceError("Insufficient balance")

        return amount_dec

# ==========================================================
#                  MAIN WITHDRAWAL PROCESSOR
# ==========================================================
class WithdrawalProcessor:

    @staticmethod
    def create_withdrawal_request(user_id: int, amount) -> WithdrawalRequest:
        """
        Record a pending withdrawal to the user's registered bank account.
        """
        user = db.session.get(User, user_id)
        amount_dec = WithdrawalValidator.validate_withdrawal_request(user, amount)

        withdrawal = WithdrawalRequest(
            user_id=user.id,
            amount=amount_dec,
            bank_name=user.bank_name,
            account_number=user.account_number,
            account_name=user.account_name,
            status=WithdrawalStatus.PENDING.value,
        )
        db.session.add(withdrawal)
        db.session.commit()

        logger.info(f"Withdrawal {withdrawal.id} requested by user {user_id}: {amount_dec}")
        return withdrawal

    @staticmethod
    def process_withdrawal(withdrawal_id: int, status: str, admin_notes: Optional[str] = None) -> WithdrawalRequest:
        """
        Approve or reject a pending request. Approval records a completed
        withdrawal transaction in the same commit.
        """
        status = str(status or "").strip().lower()
        if status not in WithdrawalConfig.PROCESSABLE_STATUSES:
            raise ValidationError("Status must be 'approved' or 'rejected'")

        withdrawal = db.session.get(WithdrawalRequest, withdrawal_id)
        if withdrawal is None:
            raise WithdrawalNotFoundError("Withdrawal request not found")
        if withdrawal.status != WithdrawalStatus.PENDING.value:
            raise ValidationError(f"Withdrawal already {withdrawal.status}")

        processed_at = utcnow()
        result = db.session.execute(
            update(WithdrawalRequest)
            .where(WithdrawalRequest.id == withdrawal_id,
                   WithdrawalRequest.status == WithdrawalStatus.PENDING.value)
            .values(status=status, admin_notes=admin_notes, processed_at=processed_at)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.session.rollback()
            raise ValidationError("Withdrawal was processed by another request")

        if status == WithdrawalStatus.APPROVED.value:
            db.session.add(Transaction(
                user_id=withdrawal.user_id,
                type=TransactionType.WITHDRAWAL.value,
                amount=withdrawal.amount,
                reference=f"WDR-{withdrawal.id}-{int(time.time() * 1000)}",
                status=TransactionStatus.COMPLETED.value,
                description="Withdrawal to bank account",
                meta={"withdrawalId": withdrawal.id},
                created_at=processed_at,
            ))
        db.session.commit()

        logger.info(f"Withdrawal {withdrawal_id} {status} (user {withdrawal.user_id}, {withdrawal.amount})")
        return withdrawal

# ==========================================================
#                  QUERY HELPERS
# ==========================================================
class WithdrawalQueryHelper:
    @staticmethod
    def get_user_withdrawals(user_id: int):
        """Get user's withdrawal history"""
        return WithdrawalRequest.query.filter_by(user_id=user_id)\
                                      .order_by(WithdrawalRequest.requested_at.desc(), WithdrawalRequest.id.desc())\
                                      .all()

    @staticmethod
    def get_all_withdrawals():
        return WithdrawalRequest.query\
                                .order_by(WithdrawalRequest.requested_at.desc(), WithdrawalRequest.id.desc())\
                                .all()

    @staticmethod
    def admin_row(withdrawal: WithdrawalRequest) -> Dict:
        row = withdrawal.to_dict()
        row["userName"] = withdrawal.user.full_name if withdrawal.user else None
        row["userEmail"] = withdrawal.user.email if withdrawal.user else None
        return row
