"""Keeps the single Payment row of a booking in step with its payment-relevant status."""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation

from models import db
from models.booking import Booking, BookingStatus
from models.payment import Payment
from services.errors import NotFoundError, ValidationError, wrap_unexpected
from services.transitions import PAYMENT_STATUSES

logger = logging.getLogger(__name__)


@dataclass
class PaymentInfo:
    transaction_id: str = None
    amount: Decimal = None
    method: str = None

    @classmethod
    def from_dict(cls, data: dict):
        data = data or {}
        amount = data.get("amount")
        return cls(
            transaction_id=_clean(data.get("transactionId") or data.get("transaction_id")),
            amount=parse_amount(amount) if amount is not None else None,
            method=_clean(data.get("method") or data.get("paymentMethod") or data.get("payment_method")),
        )


def _clean(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def parse_amount(value) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError("Payment amount must be a number")
    try:
        amount = Decimal(str(value)).quantize(Decimal("0.01"))
    except (InvalidOperation, ValueError):
        raise ValidationError("Payment amount must be a number")
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("Payment amount must be greater than 0")
    return amount


def reconcile(booking: Booking, status: BookingStatus, info: PaymentInfo = None) -> Payment:
    """
    Upserts the booking's Payment inside the caller's transaction. Never commits.
    Only the fields present in info overwrite what is stored.
    """
    if status not in PAYMENT_STATUSES:
        raise ValidationError(f"{status.value} is not a payment status")
    info = info or PaymentInfo()

    payment = booking.payment or Payment.query.filter_by(booking_id=booking.id).first()
    if payment is None:
        payment = Payment(
            booking=booking,
            amount=booking.deposit,
            status=BookingStatus.PENDING_PAYMENT,
        )
        db.session.add(payment)
        logger.info("Created payment for booking %s", booking.reference)

    if info.amount is not None:
        payment.amount = info.amount
    if info.transaction_id is not None:
        payment.transaction_id = info.transaction_id
    if info.method is not None:
        payment.payment_method = info.method

    payment.status = status
    payment.updated_at = datetime.utcnow()
    db.session.flush()
    return payment


@wrap_unexpected("payment lookup")
def get_payment_for_booking(reference: str) -> Payment:
    booking = Booking.query.filter_by(reference=(reference or "").strip()).first()
    if booking is None:
        raise NotFoundError(f"Booking {reference} not found")
    if booking.payment is None:
        raise NotFoundError(f"No payment recorded for booking {reference}")
    return booking.payment


@wrap_unexpected("list user payments")
def list_payments_for_user(user_id: int) -> list:
    return (
        Payment.query
        .join(Booking, Payment.booking_id == Booking.id)
        .filter(Booking.user_id == user_id)
        .order_by(Payment.created_at.desc())
        .all()
    )
