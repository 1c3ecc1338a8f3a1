from flask import Blueprint, request, jsonify

from routes.serializers import booking_json
from services import booking_lifecycle, slot_calendar
from services.booking_lifecycle import parse_tour_date
from utils.auth_context import current_user, login_required

booking_bp = Blueprint("booking", __name__, url_prefix="/bookings")


# ---------- VISITORS: book a tour ----------
@booking_bp.post("")
def create_booking():
    data = request.get_json(silent=True) or {}
    user = current_user()

    booking = booking_lifecycle.create_booking(
        name=data.get("name"),
        email=data.get("email"),
        date=data.get("date"),
        group_size=data.get("groupSize", data.get("group_size")),
        time_slot=data.get("timeSlot", data.get("time_slot")),
        deposit=data.get("deposit"),
        user_id=user.id if user else None,
    )
    return jsonify(booking_json(booking)), 201


# ---------- PUBLIC: slot availability for a date ----------
@booking_bp.get("/available-slots")
def available_slots():
    date_str = request.args.get("date")
    if not date_str:
        return jsonify(error="date query parameter required (YYYY-MM-DD)"), 400
    return jsonify(slot_calendar.availability(parse_tour_date(date_str))), 200


# ---------- VISITORS: my bookings ----------
@booking_bp.get("/me")
@login_required
def my_bookings():
    rows = booking_lifecycle.list_bookings_for_user(current_user().id)
    return jsonify([booking_json(b) for b in rows]), 200


@booking_bp.get("/<reference>")
def get_booking(reference: str):
    booking = booking_lifecycle.get_booking_by_reference(reference)
    return jsonify(booking_json(booking)), 200


# ---------- VISITORS: cancel booking (policy window) ----------
@booking_bp.post("/<reference>/cancel")
@login_required
def cancel_booking(reference: str):
    data = request.get_json(silent=True) or {}
    booking = booking_lifecycle.cancel_booking(reference, current_user(), reason=data.get("reason"))
    return jsonify(message="Cancelled", booking=booking_json(booking)), 200
