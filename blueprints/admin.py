#======================================================================================
#
# THIS IS ADMIN API: dashboard numbers, users, withdrawals review, analytics
#
#=======================================================================================
from flask import jsonify, request, Blueprint, abort, current_app
from flask_login import current_user
from functools import wraps
from datetime import timedelta
from sqlalchemy import func
from extensions import db, login_manager
from models import User, InvestmentPackage, WithdrawalRequest, WithdrawalStatus, utcnow
from referrals.analytics import get_advanced_analytics
from blueprints.withdraw_helpers import (WithdrawalProcessor, WithdrawalQueryHelper, WithdrawalException,
                                         WithdrawalNotFoundError)
from utils import parse_query_datetime
import logging

logger = logging.getLogger(__name__)

GROWTH_WINDOW_DAYS = 30


def admin_required(f):
    """
    Decorator to restrict access to admin-only routes.
    - Anonymous callers get the login manager's 401.
    - Logged-in users without is_admin get 403.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return login_manager.unauthorized()

        if not current_user.is_admin:
            abort(403)

        return f(*args, **kwargs)

    return decorated_function


admin_bp = Blueprint('admin', __name__, url_prefix='/api')


def monthly_growth(now=None):
    """Percent change in registrations: last 30 days against the 30 before."""
    now = now or utcnow()
    window_start = now - timedelta(days=GROWTH_WINDOW_DAYS)
    previous_start = window_start - timedelta(days=GROWTH_WINDOW_DAYS)

    current = User.query.filter(User.created_at >= window_start, User.created_at <= now).count()
    previous = User.query.filter(User.created_at >= previous_start, User.created_at < window_start).count()

    if previous == 0:
        return 100.0 if current else 0.0
    return round((current - previous) * 100.0 / previous, 2)


@admin_bp.route("/admin/stats", methods=["GET"])
@admin_required
def admin_stats():
    total_users = User.query.count()
    total_invested = db.session.query(func.coalesce(func.sum(InvestmentPackage.amount), 0)).scalar()
    pending_withdrawals = WithdrawalRequest.query.filter_by(status=WithdrawalStatus.PENDING.value).count()

    return jsonify({
        "totalUsers": total_users,
        "totalInvested": float(total_invested or 0),
        "pendingWithdrawals": pending_withdrawals,
        "monthlyGrowth": monthly_growth(),
    }), 200


@admin_bp.route("/admin/users", methods=["GET"])
@admin_required
def admin_users():
    users = User.query.order_by(User.created_at.desc(), User.id.desc()).all()
    return jsonify({"users": [user.to_dict() for user in users]}), 200

#============================================================================================================
#
#     ----------------------------WITHDRAWAL REVIEW-------------------------------------------
#
#============================================================================================================

@admin_bp.route("/admin/withdrawals", methods=["GET"])
@admin_required
def admin_withdrawals():
    withdrawals = WithdrawalQueryHelper.get_all_withdrawals()
    return jsonify({"withdrawals": [WithdrawalQueryHelper.admin_row(w) for w in withdrawals]}), 200


@admin_bp.route("/admin/withdrawals/<int:withdrawal_id>", methods=["PATCH"])
@admin_required
def process_withdrawal(withdrawal_id):
    """
    Expected JSON: {"status": "approved" | "rejected", "adminNotes": "..."}
    """
    data = request.get_json(silent=True) or {}
    try:
        withdrawal = WithdrawalProcessor.process_withdrawal(
            withdrawal_id, data.get("status"), data.get("adminNotes")
        )
    except WithdrawalNotFoundError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 404
    except WithdrawalException as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        logger.error(f"Processing withdrawal {withdrawal_id} failed", exc_info=True)
        return jsonify({"error": "Withdrawal processing failed"}), 500

    logger.info(f"Admin {current_user.id} set withdrawal {withdrawal_id} to {withdrawal.status}")
    return jsonify({
        "message": f"Withdrawal {withdrawal.status}",
        "withdrawal": withdrawal.to_dict(),
    }), 200

#=======================================================================
#       ANALYTICS
#=======================================================================

@admin_bp.route("/analytics/advanced", methods=["GET"])
@admin_required
def advanced_analytics():
    """?startDate=2024-01-01&endDate=2024-01-31 (ISO dates or datetimes, both optional)"""
    try:
        start = parse_query_datetime(request.args.get("startDate"))
        end = parse_query_datetime(request.args.get("endDate"), end_of_day=True)
    except (ValueError, OverflowError):
        return jsonify({"error": "Invalid date range"}), 400

    if start and start > (end or utcnow()):
        return jsonify({"error": "startDate must not be after endDate"}), 400

    try:
        snapshot = get_advanced_analytics(start, end)
    except Exception:
        current_app.logger.error("Advanced analytics failed", exc_info=True)
        return jsonify({"error": "Analytics failed"}), 500

    return jsonify(snapshot), 200
