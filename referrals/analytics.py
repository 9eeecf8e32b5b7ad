#======================================================================================
#
#   ADMIN ANALYTICS: growth, trends, distribution, top referrers, revenue
#
#=======================================================================================
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy import case, func

from extensions import db
from models import (User, InvestmentPackage, Referral, Transaction, AnalyticsEvent,
                    TransactionType, utcnow)


logger = logging.getLogger(__name__)

DEFAULT_WINDOW_DAYS = 30
TOP_REFERRERS_LIMIT = 10


def _day(value) -> Optional[str]:
    """DATE() comes back as a string on sqlite and as a date on postgres."""
    if value is None:
        return None
    if isinstance(value, (date, datetime)):
        return value.strftime("%Y-%m-%d")
    return str(value)[:10]


def _float(value) -> float:
    return float(value) if value is not None else 0.0


class AnalyticsAggregator:

    @staticmethod
    def resolve_window(start: Optional[datetime] = None, end: Optional[datetime] = None):
        end = end or utcnow()
        start = start or end - timedelta(days=DEFAULT_WINDOW_DAYS)
        return start, end

    @staticmethod
    def user_growth(start: datetime, end: datetime) -> List[Dict[str, Any]]:
        day = func.date(User.created_at)
        rows = (
            db.session.query(day.label("day"), func.count(User.id).label("count"))
            .filter(User.created_at >= start, User.created_at <= end)
            .group_by(day)
            .order_by(day)
            .all()
        )
        return [{"date": _day(row.day), "count": int(row.count)} for row in rows]

    @staticmethod
    def investment_trends(start: datetime, end: datetime) -> List[Dict[str, Any]]:
        day = func.date(InvestmentPackage.created_at)
        rows = (
            db.session.query(
                day.label("day"),
                func.coalesce(func.sum(InvestmentPackage.amount), 0).label("total_amount"),
                func.count(InvestmentPackage.id).label("count"),
            )
            .filter(InvestmentPackage.created_at >= start, InvestmentPackage.created_at <= end)
            .group_by(day)
            .order_by(day)
            .all()
        )
        return [
            {"date": _day(row.day), "totalAmount": _float(row.total_amount), "count": int(row.count)}
            for row in rows
        ]

    @staticmethod
    def category_distribution() -> List[Dict[str, Any]]:
        rows = (
            db.session.query(User.category, func.count(User.id).label("count"))
            .group_by(User.category)
            .all()
        )
        return [{"category": row.category, "count": int(row.count)} for row in rows]

    @staticmethod
    def top_referrers(limit: int = TOP_REFERRERS_LIMIT) -> List[Dict[str, Any]]:
        referral_count = func.count(Referral.id)
        rows = (
            db.session.query(
                Referral.referrer_id,
                User.full_name,
                User.category,
                referral_count.label("total_referrals"),
                func.coalesce(func.sum(Referral.commission_earned), 0).label("total_commissions"),
            )
            .join(User, Referral.referrer_id == User.id)
            .group_by(Referral.referrer_id, User.full_name, User.category)
            .order_by(referral_count.desc())
            .limit(limit)
            .all()
        )
        return [
            {
                "referrerId": row.referrer_id,
                "referrerName": row.full_name,
                "referrerCategory": row.category,
                "totalReferrals": int(row.total_referrals),
                "totalCommissions": _float(row.total_commissions),
            }
            for row in rows
        ]

    @staticmethod
    def revenue(start: datetime, end: datetime) -> Dict[str, float]:
        def _sum_of(tx_type: TransactionType):
            return func.coalesce(
                func.sum(case((Transaction.type == tx_type.value, Transaction.amount), else_=0)), 0
            )

        row = (
            db.session.query(
                _sum_of(TransactionType.DEPOSIT).label("invested"),
                _sum_of(TransactionType.COMMISSION).label("commissions"),
                _sum_of(TransactionType.WITHDRAWAL).label("withdrawals"),
            )
            .filter(Transaction.created_at >= start, Transaction.created_at <= end)
            .one()
        )
        return {
            "totalInvested": _float(row.invested),
            "totalCommissions": _float(row.commissions),
            "totalWithdrawals": _float(row.withdrawals),
        }

    @staticmethod
    def compute_analytics(start: Optional[datetime] = None, end: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Snapshot for the admin analytics page. Window defaults to the trailing
        30 days; category distribution and top referrers are all-time.
        """
        start, end = AnalyticsAggregator.resolve_window(start, end)

        snapshot = {
            "userGrowth": AnalyticsAggregator.user_growth(start, end),
            "investmentTrends": AnalyticsAggregator.investment_trends(start, end),
            "categoryDistribution": AnalyticsAggregator.category_distribution(),
            "topReferrers": AnalyticsAggregator.top_referrers(),
            "revenueAnalytics": AnalyticsAggregator.revenue(start, end),
            "period": {"start": start.isoformat(), "end": end.isoformat()},
        }
        logger.debug(f"Analytics computed for {start} .. {end}")
        return snapshot


def record_event(event_type: str, user_id: Optional[int] = None, event_data: Optional[dict] = None,
                 ip_address: Optional[str] = None, user_agent: Optional[str] = None) -> AnalyticsEvent:
    """Queue an analytics event on the current session; the caller commits."""
    event = AnalyticsEvent(
        user_id=user_id,
        event_type=event_type,
        event_data=event_data,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:255] or None,
    )
    db.session.add(event)
    return event


def get_advanced_analytics(start: Optional[datetime] = None, end: Optional[datetime] = None) -> Dict[str, Any]:
    return AnalyticsAggregator.compute_analytics(start, end)
