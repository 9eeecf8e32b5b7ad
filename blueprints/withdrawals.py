from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
from extensions import db
from blueprints.withdraw_helpers import (WithdrawalProcessor, WithdrawalQueryHelper, WithdrawalException,
                                         BalanceManager)


bp = Blueprint("withdrawals", __name__, url_prefix="/api")


@bp.route("/withdrawals", methods=["POST"])
@login_required
def request_withdrawal():
    """
    Expected JSON: {"amount": 5000}
    Paid to the bank account on the user's profile.
    """
    data = request.get_json(silent=True) or {}
    user_id = current_user.id

    try:
        withdrawal = WithdrawalProcessor.create_withdrawal_request(user_id, data.get("amount"))
    except WithdrawalException as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.error(f"Withdrawal request failed for user {user_id}", exc_info=True)
        return jsonify({"error": "Withdrawal request failed"}), 500

    return jsonify({
        "message": "Withdrawal request submitted successfully",
        "withdrawal": withdrawal.to_dict(),
        "availableBalance": float(BalanceManager.withdrawable_balance(user_id)),
    }), 201


@bp.route("/withdrawals", methods=["GET"])
@login_required
def list_withdrawals():
    withdrawals = WithdrawalQueryHelper.get_user_withdrawals(current_user.id)
    return jsonify({
        "withdrawals": [w.to_dict() for w in withdrawals],
        "availableBalance": float(BalanceManager.withdrawable_balance(current_user.id)),
    }), 200
