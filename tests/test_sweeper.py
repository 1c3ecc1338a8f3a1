from datetime import datetime, time, timedelta

from conftest import NINE_AM, TOUR_DAY
from models import db
from models.audit_log import AuditLog
from models.booking import Booking, BookingStatus
from services import sweeper
from services.checkin_gate import check_in
from services.sweeper import complete_checked_in, mark_no_shows, slot_has_ended

DAY_AFTER = datetime.combine(TOUR_DAY + timedelta(days=1), time(8, 0))
THREE_PM = "03:00 PM - 04:00 PM"


def _status(booking):
    return db.session.get(Booking, booking.id).status


class TestSlotHasEnded:
    def test_relative_to_now(self, app, make_booking):
        booking = make_booking(time_slot=NINE_AM)

        assert slot_has_ended(booking, DAY_AFTER)
        assert not slot_has_ended(booking, datetime.combine(TOUR_DAY, time(9, 59)))
        assert slot_has_ended(booking, datetime.combine(TOUR_DAY, time(10, 0)))
        assert not slot_has_ended(booking, datetime.combine(TOUR_DAY - timedelta(days=1), time(23, 0)))


class TestMarkNoShows:
    def test_yesterdays_confirmed_booking_becomes_no_show(self, app, confirmed_booking):
        booking = confirmed_booking()

        result = mark_no_shows(now=DAY_AFTER)

        assert result.transitioned == [booking.reference]
        assert result.failed == []
        assert _status(booking) == BookingStatus.NO_SHOW
        assert db.session.get(Booking, booking.id).seat_number is None

    def test_rerun_is_a_no_op(self, app, confirmed_booking):
        booking = confirmed_booking()
        mark_no_shows(now=DAY_AFTER)

        again = mark_no_shows(now=DAY_AFTER)

        assert again.as_dict() == {"transitioned": 0, "failed": 0}
        assert _status(booking) == BookingStatus.NO_SHOW
        assert AuditLog.query.filter_by(action="BOOKING_NO_SHOW").count() == 1

    def test_mid_day_run_spares_later_slots(self, app, confirmed_booking):
        morning = confirmed_booking(time_slot=NINE_AM)
        afternoon = confirmed_booking(time_slot=THREE_PM)

        result = mark_no_shows(now=datetime.combine(TOUR_DAY, time(12, 0)))

        assert result.transitioned == [morning.reference]
        assert _status(afternoon) == BookingStatus.CONFIRMED

    def test_only_confirmed_bookings_are_swept(self, app, make_booking, confirmed_booking):
        pending = make_booking()
        checked_in = confirmed_booking(email="a@x.com")
        check_in(checked_in.reference, "a@x.com", now=datetime.combine(TOUR_DAY, time(9, 15)))

        result = mark_no_shows(now=DAY_AFTER)

        assert result.transitioned == []
        assert _status(pending) == BookingStatus.PENDING_PAYMENT
        assert _status(checked_in) == BookingStatus.CHECKED_IN

    def test_future_bookings_untouched(self, app, confirmed_booking):
        booking = confirmed_booking()
        mark_no_shows(now=datetime.combine(TOUR_DAY - timedelta(days=1), time(18, 0)))
        assert _status(booking) == BookingStatus.CONFIRMED

    def test_failing_row_does_not_stop_the_batch(self, app, confirmed_booking, monkeypatch):
        broken = confirmed_booking()
        healthy = confirmed_booking()
        real_transition = sweeper.apply_transition

        def flaky(booking, target):
            if booking.id == broken.id:
                raise RuntimeError("row locked")
            return real_transition(booking, target)

        monkeypatch.setattr(sweeper, "apply_transition", flaky)

        result = mark_no_shows(now=DAY_AFTER)

        assert result.failed == [broken.reference]
        assert result.transitioned == [healthy.reference]
        assert _status(broken) == BookingStatus.CONFIRMED
        assert _status(healthy) == BookingStatus.NO_SHOW


class TestCompleteCheckedIn:
    def test_checked_in_booking_completes_after_slot(self, app, confirmed_booking):
        booking = confirmed_booking(email="a@x.com")
        check_in(booking.reference, "a@x.com", now=datetime.combine(TOUR_DAY, time(9, 5)))

        assert complete_checked_in(now=datetime.combine(TOUR_DAY, time(9, 30))).transitioned == []

        result = complete_checked_in(now=datetime.combine(TOUR_DAY, time(10, 0)))
        assert result.transitioned == [booking.reference]
        assert _status(booking) == BookingStatus.COMPLETED

    def test_confirmed_bookings_are_not_completed(self, app, confirmed_booking):
        booking = confirmed_booking()
        assert complete_checked_in(now=DAY_AFTER).transitioned == []
        assert _status(booking) == BookingStatus.CONFIRMED

    def test_rerun_is_a_no_op(self, app, confirmed_booking):
        booking = confirmed_booking(email="a@x.com")
        check_in(booking.reference, "a@x.com", now=datetime.combine(TOUR_DAY, time(9, 5)))
        first = complete_checked_in(now=DAY_AFTER)

        again = complete_checked_in(now=DAY_AFTER)

        assert first.transitioned == [booking.reference]
        assert again.as_dict() == {"transitioned": 0, "failed": 0}
        assert _status(booking) == BookingStatus.COMPLETED
        assert AuditLog.query.filter_by(action="BOOKING_COMPLETE").count() == 1

    def test_failing_row_does_not_stop_the_batch(self, app, confirmed_booking, monkeypatch):
        broken = confirmed_booking(email="a@x.com")
        healthy = confirmed_booking(email="b@x.com")
        for booking, email in ((broken, "a@x.com"), (healthy, "b@x.com")):
            check_in(booking.reference, email, now=datetime.combine(TOUR_DAY, time(9, 5)))
        real_transition = sweeper.apply_transition

        def flaky(booking, target):
            if booking.id == broken.id:
                raise RuntimeError("row locked")
            return real_transition(booking, target)

        monkeypatch.setattr(sweeper, "apply_transition", flaky)

        result = complete_checked_in(now=DAY_AFTER)

        assert result.failed == [broken.reference]
        assert result.transitioned == [healthy.reference]
        assert _status(broken) == BookingStatus.CHECKED_IN
        assert _status(healthy) == BookingStatus.COMPLETED

        monkeypatch.setattr(sweeper, "apply_transition", real_transition)
        retry = complete_checked_in(now=DAY_AFTER)
        assert retry.transitioned == [broken.reference]
        assert _status(broken) == BookingStatus.COMPLETED
