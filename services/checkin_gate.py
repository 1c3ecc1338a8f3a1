import logging
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy.exc import IntegrityError

from models import db, atomic
from models.booking import Booking, BookingStatus
from models.checkin import Checkin
from services.errors import ValidationError, wrap_unexpected
from services.slot_calendar import find_slot
from services.transitions import apply_transition
from utils.audit import log_event
from utils.clock import local_now

logger = logging.getLogger(__name__)

ALREADY_CHECKED_IN = "Booking has already been checked in."


def checkin_window(booking: Booking, slot) -> tuple:
    """(opens_at, closes_at) for the booking's slot on its tour date, campus local time."""
    early = current_app.config.get("CHECKIN_EARLY_MINUTES", 0) or 0
    cutoff = current_app.config.get("CHECKIN_CUTOFF_MINUTES")

    starts = slot.starts_on(booking.tour_date)
    opens_at = starts - timedelta(minutes=early)
    closes_at = starts + timedelta(minutes=cutoff) if cutoff is not None else slot.ends_on(booking.tour_date)
    return opens_at, closes_at


def _validate(booking, email, now):
    if booking is None:
        raise ValidationError("Invalid booking details.")

    if email.strip() != booking.email:
        logger.warning("Check-in email mismatch for booking %s", booking.reference)
        raise ValidationError("Invalid booking details.")

    if booking.checkin is not None:
        raise ValidationError(ALREADY_CHECKED_IN)

    if booking.status != BookingStatus.CONFIRMED:
        raise ValidationError(
            f"Only confirmed bookings can be checked in (current status: {booking.status.value})."
        )

    if booking.tour_date != now.date():
        raise ValidationError(
            f"Check-in is only possible on the day of the tour ({booking.tour_date.isoformat()})."
        )

    slot = find_slot(booking.time_slot)
    if slot is None:
        raise ValidationError(f"Booking has an unknown time slot: {booking.time_slot}")

    opens_at, closes_at = checkin_window(booking, slot)
    if now < opens_at:
        raise ValidationError(f"Check-in opens at {opens_at.strftime('%I:%M %p')}.")
    if now > closes_at:
        raise ValidationError(f"Check-in for the {slot.label} tour closed at {closes_at.strftime('%I:%M %p')}.")


@wrap_unexpected("check in")
def check_in(reference: str, email: str, now: datetime = None, actor_id=None) -> Checkin:
    now = now or local_now()
    if not isinstance(reference, str) or not isinstance(email, str):
        raise ValidationError("Invalid booking details.")
    logger.info("Attempting check-in for booking %s", reference)

    try:
        with atomic():
            booking = (
                Booking.query
                .filter_by(reference=reference.strip())
                .with_for_update()
                .first()
            )
            _validate(booking, email, now)

            checkin = Checkin(booking=booking, checked_in_at=datetime.utcnow(), status="checked_in")
            db.session.add(checkin)
            previous = apply_transition(booking, BookingStatus.CHECKED_IN)
            log_event("BOOKING_CHECKIN", user_id=actor_id, booking=booking,
                      from_status=previous, to_status=BookingStatus.CHECKED_IN)
    except IntegrityError:
        # a concurrent check-in inserted its row first (unique booking_id)
        raise ValidationError(ALREADY_CHECKED_IN)

    logger.info("Booking %s checked in", booking.reference)
    return checkin


@wrap_unexpected("recent check-ins")
def recent_checkins(limit: int = 10) -> list:
    return Checkin.query.order_by(Checkin.checked_in_at.desc()).limit(limit).all()
