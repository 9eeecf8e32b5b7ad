from flask import request, jsonify, Blueprint
from flask_login import login_user, logout_user, login_required, current_user
from extensions import db
from models import User
from referrals.services import ReferralService, RegistrationError
from referrals.analytics import record_event
import logging


logger = logging.getLogger(__name__)
#==================================================================================================================

bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def client_ip():
    forwarded = request.headers.get("X-Forwarded-For", "")
    return forwarded.split(",")[0].strip() if forwarded else request.remote_addr


def track(event_type, user_id, **event_data):
    """Append an analytics event for the current request; caller commits."""
    return record_event(
        event_type,
        user_id=user_id,
        event_data=event_data or None,
        ip_address=client_ip(),
        user_agent=request.headers.get("User-Agent"),
    )


#===========================================================================
#      REGISTER ROUTE.
#==============================================================================
@bp.route("/register", methods=["POST"])
def register():
    """
    Create new user + attach them under their referrer's code.
    Logs the new user in on success.
    """
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"error": "Invalid or missing JSON body"}), 400

    try:
        user = ReferralService.register_user(data)
    except RegistrationError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        logger.error("Registration failed", exc_info=True)
        return jsonify({"error": "Registration failed"}), 500

    login_user(user)
    track("user_registered", user.id, category=user.category, referredBy=user.referred_by)
    db.session.commit()

    return jsonify({
        "message": "Registration successful",
        "user": user.to_dict()
    }), 201


 # --------------------------------------------------
 #      Login Route
 # --------------------------------------------------
@bp.route("/login", methods=["POST"])
def login():
    """
    Expected JSON:
    {
        "email": "",
        "password": ""
    }
    """
    data = request.get_json(silent=True) or {}
    email = str(data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    if not email or not password:
        return jsonify({"error": "Email and password are required"}), 400

    user = User.query.filter_by(email=email).first()
    if not user or not user.check_password(password):
        return jsonify({"error": "Invalid credentials"}), 401
    if not user.is_active:
        return jsonify({"error": "Account is inactive"}), 403

    login_user(user)
    track("user_login", user.id)
    db.session.commit()

    return jsonify({
        "message": "Login successful",
        "user": user.to_dict()
    }), 200

#-----------------------------------------------------------------------------------------------------
@bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return jsonify({"message": "Logged out successfully"}), 200

# --------------------------------------------------
# Current user (for frontend auto-login)
# --------------------------------------------------
@bp.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify({"user": current_user.to_dict()}), 200
