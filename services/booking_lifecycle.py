"""
Booking creation and lifecycle.

Capacity is enforced twice: the application picks a free seat number from a
fresh read, and the ``uq_booking_slot_seat`` unique constraint rejects the
insert if a concurrent request took the same seat first. In that case the
read is repeated; when no seat is left the caller gets a SlotUnavailableError.
"""
import logging
import re
import secrets
from datetime import date, datetime, timedelta
from decimal import Decimal

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from models import db, atomic
from models.booking import GROUP_SIZE_LIMIT, Booking, BookingStatus
from services.errors import (
    ForbiddenError,
    NotFoundError,
    SlotUnavailableError,
    ValidationError,
    wrap_unexpected,
)
from services.payment_reconciler import PaymentInfo, parse_amount, reconcile
from services.slot_calendar import find_slot, first_free_seat
from services.transitions import (
    PAYMENT_STATUSES,
    SYSTEM_DRIVEN_STATUSES,
    apply_transition,
    parse_status,
)
from utils.audit import log_event
from utils.clock import local_now, local_today

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


# ---------- validation ----------

def parse_group_size(value) -> int:
    low = max(current_app.config.get("MIN_GROUP_SIZE", 1), 1)
    high = min(current_app.config.get("MAX_GROUP_SIZE", GROUP_SIZE_LIMIT), GROUP_SIZE_LIMIT)
    size = None
    if isinstance(value, int) and not isinstance(value, bool):
        size = value
    elif isinstance(value, str) and value.strip().isdigit():
        size = int(value.strip())

    if size is None or size < low or size > high:
        raise ValidationError(f"Invalid group size. Please provide a value between {low} and {high}.")
    return size


def parse_tour_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not DATE_RE.match(value.strip()):
        raise ValidationError("Invalid date. Use YYYY-MM-DD")
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError("Invalid date. Use YYYY-MM-DD")


def _check_lead_time(tour_date: date, today: date):
    lead_days = current_app.config.get("BOOKING_LEAD_DAYS", 1)
    earliest = today + timedelta(days=lead_days)
    if tour_date < earliest:
        raise ValidationError(
            f"Tours must be booked at least {lead_days} day(s) in advance. "
            f"The earliest available date is {earliest.isoformat()}."
        )


def _validate_visitor(name, email):
    name = (name or "").strip() if isinstance(name, str) else ""
    if not name or len(name) > 120:
        raise ValidationError("Visitor name is required (max 120 characters)")

    email = (email or "").strip() if isinstance(email, str) else ""
    if len(email) > 255 or not EMAIL_RE.match(email):
        raise ValidationError("Invalid email")
    return name, email


def _deposit(value) -> Decimal:
    if value is None:
        return parse_amount(current_app.config.get("DEFAULT_DEPOSIT", "50.00"))
    try:
        return parse_amount(value)
    except ValidationError:
        raise ValidationError("Deposit must be a number greater than 0")


def _new_reference() -> str:
    prefix = current_app.config.get("BOOKING_REFERENCE_PREFIX", "TOUR")
    for _ in range(5):
        reference = f"{prefix}-{secrets.token_hex(5).upper()}"
        if not Booking.query.filter_by(reference=reference).first():
            return reference
    raise RuntimeError("Could not generate a unique booking reference")


def _is_seat_conflict(exc: IntegrityError) -> bool:
    # postgres names the constraint, sqlite lists the columns
    message = str(getattr(exc, "orig", exc))
    return "uq_booking_slot_seat" in message or "bookings.seat_number" in message


# ---------- operations ----------

@wrap_unexpected("create booking")
def create_booking(name, email, date, group_size, time_slot, deposit=None, user_id=None, today=None) -> Booking:
    today = today or local_today()

    size = parse_group_size(group_size)
    tour_date = parse_tour_date(date)
    _check_lead_time(tour_date, today)
    slot = find_slot(time_slot)
    if slot is None:
        raise ValidationError(f"Invalid time slot: {time_slot!r}")
    visitor_name, visitor_email = _validate_visitor(name, email)
    amount = _deposit(deposit)

    attempts = current_app.config.get("SEAT_ALLOCATION_ATTEMPTS", 3)
    for attempt in range(1, attempts + 1):
        seat = first_free_seat(tour_date, slot)
        if seat is None:
            raise SlotUnavailableError(
                f"The {slot.label} slot on {tour_date.isoformat()} is fully booked. Please choose another time slot."
            )

        booking = Booking(
            reference=_new_reference(),
            user_id=user_id,
            visitor_name=visitor_name,
            email=visitor_email,
            group_size=size,
            tour_date=tour_date,
            time_slot=slot.label,
            seat_number=seat,
            deposit=amount,
            status=BookingStatus.PENDING_PAYMENT,
            has_feedback=False,
        )
        db.session.add(booking)
        log_event("BOOKING_CREATE", user_id=user_id, booking=booking,
                  to_status=BookingStatus.PENDING_PAYMENT,
                  metadata={"date": tour_date, "slot": slot.label, "seat": seat})
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            if not _is_seat_conflict(exc):
                raise
            logger.info(
                "Seat %s of %s on %s taken concurrently (attempt %s/%s)",
                seat, slot.label, tour_date, attempt, attempts,
            )
            continue

        logger.info("Created booking %s for %s %s", booking.reference, tour_date, slot.label)
        return booking

    raise SlotUnavailableError(
        f"The {slot.label} slot on {tour_date.isoformat()} just filled up. Please choose another time slot."
    )


@wrap_unexpected("booking lookup")
def get_booking_by_reference(reference: str) -> Booking:
    booking = Booking.query.filter_by(reference=(reference or "").strip()).first()
    if booking is None:
        raise NotFoundError(f"Booking {reference} not found")
    return booking


def _lock_booking(reference: str) -> Booking:
    # FOR UPDATE on backends that support it; sqlite serialises writers anyway
    booking = (
        Booking.query
        .filter_by(reference=(reference or "").strip())
        .with_for_update()
        .first()
    )
    if booking is None:
        raise NotFoundError(f"Booking {reference} not found")
    return booking


@wrap_unexpected("update booking status")
def update_status(reference: str, new_status, payment_info: PaymentInfo = None, actor_id=None) -> Booking:
    target = parse_status(new_status)
    if target in SYSTEM_DRIVEN_STATUSES:
        raise ValidationError(f"Status {target.value} is set by check-in and the scheduled sweeps only")

    with atomic():
        booking = _lock_booking(reference)
        previous = booking.status

        # a repeated payment callback re-applies payment details only
        if not (target == previous and target in PAYMENT_STATUSES):
            apply_transition(booking, target)

        if target in PAYMENT_STATUSES:
            reconcile(booking, target, payment_info)

        log_event("BOOKING_STATUS_UPDATE", user_id=actor_id, booking=booking,
                  from_status=previous, to_status=target,
                  metadata={"transaction_id": payment_info.transaction_id} if payment_info else None)

    logger.info("Booking %s: %s -> %s", booking.reference, previous.value, target.value)
    return booking


@wrap_unexpected("cancel booking")
def cancel_booking(reference: str, user, reason=None, now=None) -> Booking:
    now = now or local_now()
    with atomic():
        booking = _lock_booking(reference)
        is_admin = bool(user) and user.is_admin
        if not is_admin and (user is None or booking.user_id != user.id):
            raise ForbiddenError("You can only cancel your own bookings")

        slot = find_slot(booking.time_slot)
        cutoff_hours = current_app.config.get("CANCEL_CUTOFF_HOURS", 12)
        if not is_admin and slot and slot.starts_on(booking.tour_date) - now < timedelta(hours=cutoff_hours):
            raise ValidationError(f"Cancellation not allowed within {cutoff_hours} hours of the tour")

        previous = apply_transition(booking, BookingStatus.CANCELLED)
        booking.cancel_reason = (reason or "").strip()[:120] or None
        log_event("BOOKING_CANCEL", user_id=user.id, booking=booking,
                  from_status=previous, to_status=BookingStatus.CANCELLED,
                  metadata={"reason": booking.cancel_reason, "by_admin": is_admin})
    return booking


@wrap_unexpected("list user bookings")
def list_bookings_for_user(user_id: int) -> list:
    return Booking.query.filter_by(user_id=user_id).order_by(Booking.created_at.desc()).all()


@wrap_unexpected("list bookings by email")
def list_bookings_by_email(email: str) -> list:
    return (
        Booking.query
        .filter(Booking.email == (email or "").strip())
        .order_by(Booking.created_at.desc())
        .all()
    )


@wrap_unexpected("search bookings")
def search_bookings(search=None, status=None, date=None, limit=200) -> list:
    q = Booking.query
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(
            Booking.reference.ilike(like),
            Booking.visitor_name.ilike(like),
            Booking.email.ilike(like),
        ))
    if status:
        q = q.filter(Booking.status == parse_status(status))
    if date:
        q = q.filter(Booking.tour_date == parse_tour_date(date))
    return q.order_by(Booking.created_at.desc()).limit(limit).all()
