from flask import Blueprint, request, jsonify

from services import checkin_gate
from utils.auth_context import current_user

checkin_bp = Blueprint("checkin", __name__, url_prefix="/checkin")


# ---------- VISITORS: self check-in on tour day ----------
@checkin_bp.post("")
def check_in():
    data = request.get_json(silent=True) or {}
    reference = data.get("reference") or data.get("bookingId")
    email = data.get("email")
    if not reference or not email:
        return jsonify(error="reference and email are required"), 400

    user = current_user()
    checkin_gate.check_in(reference, email, actor_id=user.id if user else None)
    return jsonify(message="Check-in successful"), 200
