import hashlib
import hmac

from flask import Blueprint, request, jsonify, current_app

from services import booking_lifecycle
from services.payment_reconciler import PaymentInfo

webhook_bp = Blueprint("webhook", __name__, url_prefix="/webhooks")

SIGNATURE_HEADER = "X-Payment-Signature"


def sign_payload(payload: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


@webhook_bp.post("/payments")
def payment_status_callback():
    """
    Status callback from the payment provider.
    Body: {"reference", "status", "transactionId", "amount", "method"},
    signed with HMAC-SHA256 of the raw body in X-Payment-Signature.
    """
    endpoint_secret = current_app.config.get("PAYMENT_WEBHOOK_SECRET")
    if not endpoint_secret:
        return jsonify(error="Webhook secret not configured"), 500

    payload = request.get_data()
    sig_header = request.headers.get(SIGNATURE_HEADER) or ""
    if not hmac.compare_digest(sign_payload(payload, endpoint_secret), sig_header):
        return jsonify(error="Invalid webhook signature"), 400

    data = request.get_json(silent=True) or {}
    reference = data.get("reference")
    status = data.get("status")
    if not reference or not status:
        return jsonify(error="reference and status are required"), 400

    booking = booking_lifecycle.update_status(reference, status, PaymentInfo.from_dict(data))
    return jsonify(received=True, status=booking.status.value), 200
