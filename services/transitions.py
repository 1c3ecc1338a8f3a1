"""Booking lifecycle graph and the one place a booking's status is changed."""
from datetime import datetime

from models.booking import BookingStatus
from services.errors import InvalidTransitionError, ValidationError

S = BookingStatus

ALLOWED_TRANSITIONS = {
    S.PENDING_PAYMENT: {S.PAYMENT_COMPLETED, S.PAYMENT_FAILED, S.CANCELLED},
    S.PAYMENT_FAILED: {S.PENDING_PAYMENT, S.CANCELLED},
    S.PAYMENT_COMPLETED: {S.CONFIRMED, S.PAYMENT_REFUNDED, S.CANCELLED},
    S.CONFIRMED: {S.CHECKED_IN, S.NO_SHOW, S.PAYMENT_REFUNDED, S.CANCELLED},
    S.CHECKED_IN: {S.COMPLETED},
    S.COMPLETED: set(),
    S.CANCELLED: set(),
    S.NO_SHOW: set(),
    S.PAYMENT_REFUNDED: set(),
}

# statuses that no longer hold a seat in their slot
ACTIVE_EXCLUDED_STATUSES = (S.CANCELLED, S.NO_SHOW, S.PAYMENT_REFUNDED)

# statuses mirrored onto the Payment row
PAYMENT_STATUSES = (S.PENDING_PAYMENT, S.PAYMENT_COMPLETED, S.PAYMENT_FAILED, S.PAYMENT_REFUNDED)

# only reachable through check-in or the sweeper
SYSTEM_DRIVEN_STATUSES = (S.CHECKED_IN, S.NO_SHOW, S.COMPLETED)


def parse_status(value) -> BookingStatus:
    if isinstance(value, BookingStatus):
        return value
    try:
        return BookingStatus((value or "").strip().lower())
    except (ValueError, AttributeError):
        raise ValidationError(
            f"Unknown booking status: {value!r}",
            details={"allowed": [s.value for s in BookingStatus]},
        )


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


def apply_transition(booking, target: BookingStatus) -> BookingStatus:
    """Moves booking to target or raises InvalidTransitionError. Returns the previous status."""
    current = booking.status
    if not can_transition(current, target):
        raise InvalidTransitionError(
            f"Cannot change booking {booking.reference} from {current.value} to {target.value}",
            details={"from": current.value, "to": target.value},
        )

    booking.status = target
    booking.updated_at = datetime.utcnow()
    if target in ACTIVE_EXCLUDED_STATUSES:
        booking.seat_number = None
    if target == S.CANCELLED:
        booking.cancelled_at = datetime.utcnow()
    return current
