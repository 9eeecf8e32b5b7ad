from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
from extensions import db
from blueprints.auth import track
from blueprints.investment_helpers import InvestmentService, InvestmentValidationError


bp = Blueprint("investments", __name__, url_prefix="/api")

# ----------------------------------------------------------------------------------
# Investments
# ----------------------------------------------------------------------------------
@bp.route("/investments", methods=["POST"])
@login_required
def create_investment():
    """
    Expected JSON: {"category": "gold", "amount": 50000, "duration": 12}
    """
    data = request.get_json(silent=True) or {}
    user_id = current_user.id

    try:
        investment = InvestmentService.create_investment(
            user_id,
            data.get("category"),
            data.get("amount"),
            data.get("duration"),
        )
    except InvestmentValidationError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.error(f"Investment creation failed for user {user_id}", exc_info=True)
        return jsonify({"error": "Investment creation failed"}), 500

    track("investment_created", user_id, investmentId=investment.id,
          category=investment.category, amount=float(investment.amount))
    db.session.commit()

    return jsonify({
        "message": "Investment created successfully",
        "investment": investment.to_dict(),
        "userCategory": current_user.category,
    }), 201


@bp.route("/investments", methods=["GET"])
@login_required
def list_investments():
    investments = InvestmentService.get_user_investments(current_user.id)
    return jsonify({"investments": [inv.to_dict() for inv in investments]}), 200

#===================================================================================

@bp.route("/dashboard/stats", methods=["GET"])
@login_required
def dashboard_stats():
    return jsonify(InvestmentService.get_user_stats(current_user.id)), 200
