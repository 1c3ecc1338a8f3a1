"""
Scheduled sweeps over persisted bookings.

Run by an external scheduler through ``flask sweep no-shows`` and
``flask sweep complete``. Every booking is moved in its own transaction; a
failing row is logged and skipped so the rest of the batch still runs.
Re-running a sweep is a no-op because moved rows no longer match the filter.

Candidates are bookings dated today or earlier, narrowed to those whose slot
has already ended: a booking for today's 3 PM slot is left alone by a noon run
and picked up by any run after 4 PM. A single end-of-day run therefore sweeps
every booking of the day.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime

from models import db, atomic
from models.booking import Booking, BookingStatus
from services.slot_calendar import find_slot
from services.transitions import apply_transition
from utils.audit import log_event
from utils.clock import local_now

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    transitioned: list = field(default_factory=list)
    failed: list = field(default_factory=list)

    def as_dict(self) -> dict:
        return {"transitioned": len(self.transitioned), "failed": len(self.failed)}


def slot_has_ended(booking: Booking, now: datetime) -> bool:
    today = now.date()
    if booking.tour_date < today:
        return True
    if booking.tour_date > today:
        return False
    slot = find_slot(booking.time_slot)
    if slot is None:
        logger.warning("Booking %s has unknown slot %r; waiting for the day to pass",
                       booking.reference, booking.time_slot)
        return False
    return slot.ends_on(booking.tour_date) <= now


def _sweep(source: BookingStatus, target: BookingStatus, action: str, now: datetime) -> SweepResult:
    result = SweepResult()
    candidates = [
        (b.id, b.reference)
        for b in Booking.query
        .filter(Booking.status == source, Booking.tour_date <= now.date())
        .order_by(Booking.tour_date, Booking.id)
        .all()
        if slot_has_ended(b, now)
    ]

    for booking_id, reference in candidates:
        try:
            with atomic():
                booking = db.session.get(Booking, booking_id)
                if booking is None or booking.status != source:
                    continue
                apply_transition(booking, target)
                log_event(action, booking=booking, from_status=source, to_status=target)
        except Exception:
            logger.exception("Sweep could not move booking %s from %s to %s",
                             reference, source.value, target.value)
            result.failed.append(reference)
        else:
            result.transitioned.append(reference)

    logger.info("Sweep %s -> %s: %s moved, %s failed",
                source.value, target.value, len(result.transitioned), len(result.failed))
    return result


def mark_no_shows(now: datetime = None) -> SweepResult:
    return _sweep(BookingStatus.CONFIRMED, BookingStatus.NO_SHOW, "BOOKING_NO_SHOW", now or local_now())


def complete_checked_in(now: datetime = None) -> SweepResult:
    return _sweep(BookingStatus.CHECKED_IN, BookingStatus.COMPLETED, "BOOKING_COMPLETE", now or local_now())
