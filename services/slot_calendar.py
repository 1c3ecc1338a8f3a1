"""Canonical tour slots and per-slot remaining capacity."""
from dataclasses import dataclass
from datetime import date, datetime, time

from flask import current_app
from sqlalchemy import func

from models import db
from models.booking import Booking
from services.transitions import ACTIVE_EXCLUDED_STATUSES


@dataclass(frozen=True)
class TimeSlot:
    start: time
    end: time
    capacity: int

    @property
    def label(self) -> str:
        # "09:00 AM - 10:00 AM"
        return f"{self.start.strftime('%I:%M %p')} - {self.end.strftime('%I:%M %p')}"

    def starts_on(self, day: date) -> datetime:
        return datetime.combine(day, self.start)

    def ends_on(self, day: date) -> datetime:
        return datetime.combine(day, self.end)


def _parse_clock(value: str) -> time:
    return datetime.strptime(value, "%H:%M").time()


def canonical_slots() -> list:
    capacity = current_app.config.get("SLOT_CAPACITY", 5)
    return [
        TimeSlot(start=_parse_clock(start), end=_parse_clock(end), capacity=capacity)
        for start, end in current_app.config["TOUR_TIME_SLOTS"]
    ]


def find_slot(label):
    if not isinstance(label, str):
        return None
    wanted = label.strip()
    for slot in canonical_slots():
        if slot.label == wanted:
            return slot
    return None


def _active_bookings(tour_date: date):
    return Booking.query.filter(
        Booking.tour_date == tour_date,
        Booking.status.notin_(ACTIVE_EXCLUDED_STATUSES),
    )


def count_active(tour_date: date, slot: TimeSlot) -> int:
    return _active_bookings(tour_date).filter(Booking.time_slot == slot.label).count()


def capacity_remaining(tour_date: date, slot: TimeSlot) -> int:
    return max(slot.capacity - count_active(tour_date, slot), 0)


def availability(tour_date: date) -> list:
    """[{slot, available}] for every canonical slot, in day order."""
    counts = dict(
        db.session.query(Booking.time_slot, func.count(Booking.id))
        .filter(
            Booking.tour_date == tour_date,
            Booking.status.notin_(ACTIVE_EXCLUDED_STATUSES),
        )
        .group_by(Booking.time_slot)
        .all()
    )
    return [
        {"slot": slot.label, "available": max(slot.capacity - counts.get(slot.label, 0), 0)}
        for slot in canonical_slots()
    ]


def first_free_seat(tour_date: date, slot: TimeSlot):
    """Lowest seat number in 1..capacity not held by an active booking, or None."""
    taken = {
        seat for (seat,) in db.session.query(Booking.seat_number).filter(
            Booking.tour_date == tour_date,
            Booking.time_slot == slot.label,
            Booking.seat_number.isnot(None),
        )
    }
    for seat in range(1, slot.capacity + 1):
        if seat not in taken:
            return seat
    return None
