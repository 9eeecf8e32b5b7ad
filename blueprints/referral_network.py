from flask import Blueprint, jsonify, current_app
from flask_login import login_required, current_user
from referrals.services import ReferralService


bp = Blueprint("referrals", __name__, url_prefix="/api/referrals")


@bp.route("/stats", methods=["GET"])
@login_required
def referral_stats():
    return jsonify(ReferralService.get_referral_stats(current_user.id)), 200


@bp.route("/tree", methods=["GET"])
@login_required
def referral_tree():
    """Downline of the logged-in user, five levels deep."""
    try:
        tree = ReferralService.get_referral_tree(current_user.id)
    except Exception:
        current_app.logger.error(f"Error building referral tree for user {current_user.id}", exc_info=True)
        return jsonify({"error": "Failed to load referral tree"}), 500

    if tree is None:
        return jsonify({"error": "User not found"}), 404
    return jsonify({"tree": tree}), 200
