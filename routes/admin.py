from flask import Blueprint, jsonify, g, request

from models.booking import BookingStatus
from routes.serializers import booking_json, checkin_json
from security.rbac import require_roles
from services import booking_lifecycle, checkin_gate
from services.payment_reconciler import PaymentInfo

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


# ---------- ADMIN: booking management ----------
@admin_bp.get("/bookings")
@require_roles("ADMIN")
def list_bookings():
    rows = booking_lifecycle.search_bookings(
        search=(request.args.get("search") or "").strip() or None,
        status=request.args.get("status"),
        date=request.args.get("date"),  # YYYY-MM-DD
    )
    return jsonify([booking_json(b) for b in rows]), 200


@admin_bp.post("/bookings/<reference>/status")
@require_roles("ADMIN")
def update_booking_status(reference: str):
    data = request.get_json(silent=True) or {}
    status = data.get("status")
    if not status:
        return jsonify(error="status required"), 400

    booking = booking_lifecycle.update_status(
        reference, status, PaymentInfo.from_dict(data), actor_id=g.user.id
    )
    return jsonify(booking_json(booking)), 200


@admin_bp.post("/bookings/<reference>/complete-payment")
@require_roles("ADMIN")
def complete_payment(reference: str):
    """Marks a deposit paid by hand (cash / bank transfer at the front desk)."""
    data = request.get_json(silent=True) or {}
    info = PaymentInfo.from_dict(data)
    if info.method is None:
        info.method = "manual"

    booking = booking_lifecycle.update_status(
        reference, BookingStatus.PAYMENT_COMPLETED, info, actor_id=g.user.id
    )
    return jsonify(booking_json(booking)), 200


@admin_bp.post("/bookings/<reference>/cancel")
@require_roles("ADMIN")
def admin_cancel_booking(reference: str):
    data = request.get_json(silent=True) or {}
    reason = (data.get("reason") or "").strip() or "Admin cancellation"
    booking = booking_lifecycle.cancel_booking(reference, g.user, reason=reason)
    return jsonify(message="Cancelled by admin", booking=booking_json(booking)), 200


# ---------- ADMIN: check-in desk ----------
@admin_bp.post("/checkin")
@require_roles("ADMIN")
def admin_check_in():
    data = request.get_json(silent=True) or {}
    reference = data.get("reference")
    email = data.get("email")
    if not reference or not email:
        return jsonify(error="reference and email are required"), 400

    checkin = checkin_gate.check_in(reference, email, actor_id=g.user.id)
    return jsonify(message="Check-in successful", checkin=checkin_json(checkin)), 200


@admin_bp.get("/checkins/recent")
@require_roles("ADMIN")
def recent_checkins():
    limit = min(request.args.get("limit", default=10, type=int), 100)
    return jsonify([checkin_json(c) for c in checkin_gate.recent_checkins(limit)]), 200
