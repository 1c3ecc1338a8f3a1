from flask import Blueprint, jsonify

from routes.serializers import payment_json
from security.rbac import current_user_is_admin
from services import payment_reconciler
from services.errors import ForbiddenError
from utils.auth_context import current_user, login_required

payments_bp = Blueprint("payments", __name__, url_prefix="/payments")


@payments_bp.get("/me")
@login_required
def my_payments():
    rows = payment_reconciler.list_payments_for_user(current_user().id)
    return jsonify([
        dict(payment_json(p), booking_reference=p.booking.reference)
        for p in rows
    ]), 200


@payments_bp.get("/<reference>")
@login_required
def booking_payment(reference: str):
    payment = payment_reconciler.get_payment_for_booking(reference)
    if payment.booking.user_id != current_user().id and not current_user_is_admin():
        raise ForbiddenError("You can only view payments for your own bookings")
    return jsonify(dict(payment_json(payment), booking_reference=payment.booking.reference)), 200
