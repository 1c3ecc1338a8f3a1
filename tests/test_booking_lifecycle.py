from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from conftest import NINE_AM, TOUR_DAY
from models import db
from models.audit_log import AuditLog
from models.booking import Booking, BookingStatus
from models.user import User
from services import booking_lifecycle
from services.booking_lifecycle import create_booking, update_status
from services.errors import (
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ServerError,
    SlotUnavailableError,
    ValidationError,
)
from services.payment_reconciler import PaymentInfo
from services.slot_calendar import first_free_seat
from utils.seed import get_role

TODAY = TOUR_DAY - timedelta(days=1)


def _create(**overrides):
    fields = dict(
        name="A", email="a@x.com", date=TOUR_DAY.isoformat(), group_size=5,
        time_slot=NINE_AM, deposit=50, today=TODAY,
    )
    fields.update(overrides)
    return create_booking(**fields)


class TestCreateBooking:
    def test_tomorrow_booking_is_pending_payment(self, app):
        booking = _create()

        assert booking.status == BookingStatus.PENDING_PAYMENT
        assert booking.reference.startswith("TOUR-")
        assert booking.deposit == Decimal("50.00")
        assert booking.seat_number == 1
        assert booking.time_slot == NINE_AM
        assert AuditLog.query.filter_by(action="BOOKING_CREATE", booking_reference=booking.reference).count() == 1

    def test_references_are_unique(self, app):
        refs = {_create(email=f"v{i}@x.com").reference for i in range(3)}
        assert len(refs) == 3

    def test_same_day_booking_rejected(self, app):
        with pytest.raises(ValidationError, match="in advance"):
            _create(today=TOUR_DAY)

    def test_past_date_rejected(self, app):
        with pytest.raises(ValidationError, match="earliest available date"):
            _create(today=TOUR_DAY + timedelta(days=3))

    def test_default_deposit_from_config(self, app):
        assert _create(deposit=None).deposit == Decimal("50.00")

    @pytest.mark.parametrize("size", [0, 51, "abc", None, True, -2])
    def test_group_size_out_of_range(self, app, size):
        with pytest.raises(ValidationError, match="group size"):
            _create(group_size=size)

    def test_raised_max_group_size_is_capped_at_column_limit(self, app):
        app.config["MAX_GROUP_SIZE"] = 80

        with pytest.raises(ValidationError, match="between 1 and 50"):
            _create(group_size=60)
        assert _create(group_size=50).group_size == 50

    def test_lowered_max_group_size_applies(self, app):
        app.config["MAX_GROUP_SIZE"] = 10
        with pytest.raises(ValidationError, match="between 1 and 10"):
            _create(group_size=11)

    def test_group_size_as_numeric_string(self, app):
        assert _create(group_size="12").group_size == 12

    @pytest.mark.parametrize("value", ["14/03/2030", "2030-13-40", "", None])
    def test_bad_date(self, app, value):
        with pytest.raises(ValidationError, match="Invalid date"):
            _create(date=value)

    def test_unknown_slot(self, app):
        with pytest.raises(ValidationError, match="Invalid time slot"):
            _create(time_slot="12:00 PM - 01:00 PM")

    def test_group_size_checked_before_date(self, app):
        with pytest.raises(ValidationError, match="group size"):
            _create(group_size=0, date="not-a-date")

    def test_date_checked_before_slot(self, app):
        with pytest.raises(ValidationError, match="Invalid date"):
            _create(date="bad", time_slot="nope")

    @pytest.mark.parametrize("email", ["", "no-at-sign", "a@b", "a b@x.com"])
    def test_invalid_email(self, app, email):
        with pytest.raises(ValidationError, match="Invalid email"):
            _create(email=email)

    def test_blank_name(self, app):
        with pytest.raises(ValidationError, match="name"):
            _create(name="   ")

    @pytest.mark.parametrize("deposit", [0, -5, "free"])
    def test_deposit_must_be_positive(self, app, deposit):
        with pytest.raises(ValidationError, match="Deposit"):
            _create(deposit=deposit)


class TestCapacityEnforcement:
    def test_sixth_booking_is_rejected(self, app):
        for i in range(5):
            _create(email=f"v{i}@x.com")

        with pytest.raises(SlotUnavailableError, match="fully booked"):
            _create(email="late@x.com")
        assert Booking.query.count() == 5

    def test_full_slot_is_a_validation_error(self, app):
        for i in range(5):
            _create(email=f"v{i}@x.com")
        with pytest.raises(ValidationError):
            _create(email="late@x.com")

    def test_cancelled_seat_can_be_rebooked(self, app):
        bookings = [_create(email=f"v{i}@x.com") for i in range(5)]
        update_status(bookings[2].reference, BookingStatus.CANCELLED)

        booking = _create(email="late@x.com")
        assert booking.seat_number == 3

    def test_lost_race_on_every_attempt_reports_slot_filled(self, app, monkeypatch):
        _create()
        # every read comes back stale: seat 1 is already held
        monkeypatch.setattr(booking_lifecycle, "first_free_seat", lambda tour_date, slot: 1)

        with pytest.raises(SlotUnavailableError, match="just filled up"):
            _create(email="racer@x.com")
        assert Booking.query.count() == 1

    def test_lost_race_retries_with_fresh_read(self, app, monkeypatch):
        _create()
        calls = []

        def stale_then_fresh(tour_date, slot):
            calls.append(1)
            return 1 if len(calls) == 1 else first_free_seat(tour_date, slot)

        monkeypatch.setattr(booking_lifecycle, "first_free_seat", stale_then_fresh)

        booking = _create(email="racer@x.com")
        assert booking.seat_number == 2
        assert len(calls) == 2
        assert Booking.query.count() == 2


class TestUpdateStatus:
    def test_payment_completed_creates_payment(self, app):
        booking = _create()

        updated = update_status(
            booking.reference, BookingStatus.PAYMENT_COMPLETED,
            PaymentInfo(transaction_id="T1", amount=Decimal("50.00"), method="paynow"),
        )

        assert updated.status == BookingStatus.PAYMENT_COMPLETED
        assert updated.payment.status == BookingStatus.PAYMENT_COMPLETED
        assert updated.payment.transaction_id == "T1"
        assert updated.payment.payment_method == "paynow"
        assert updated.payment.amount == Decimal("50.00")

    def test_accepts_lowercase_string_status(self, app):
        booking = _create()
        assert update_status(booking.reference, "payment_completed").status == BookingStatus.PAYMENT_COMPLETED

    def test_confirmed_does_not_touch_payment(self, app):
        booking = _create()
        update_status(booking.reference, BookingStatus.PAYMENT_COMPLETED, PaymentInfo(transaction_id="T1"))
        confirmed = update_status(booking.reference, BookingStatus.CONFIRMED)

        assert confirmed.status == BookingStatus.CONFIRMED
        assert confirmed.payment.status == BookingStatus.PAYMENT_COMPLETED

    def test_unknown_status(self, app):
        booking = _create()
        with pytest.raises(ValidationError, match="Unknown booking status"):
            update_status(booking.reference, "PAID")

    def test_unknown_reference(self, app):
        with pytest.raises(NotFoundError):
            update_status("TOUR-MISSING", BookingStatus.CONFIRMED)

    def test_pending_cannot_jump_to_confirmed(self, app):
        booking = _create()
        with pytest.raises(InvalidTransitionError):
            update_status(booking.reference, BookingStatus.CONFIRMED)
        db.session.expire_all()
        assert db.session.get(Booking, booking.id).status == BookingStatus.PENDING_PAYMENT

    def test_cancelled_is_terminal(self, app):
        booking = _create()
        update_status(booking.reference, BookingStatus.CANCELLED)
        with pytest.raises(InvalidTransitionError):
            update_status(booking.reference, BookingStatus.PAYMENT_COMPLETED)

    @pytest.mark.parametrize("status", [
        BookingStatus.CHECKED_IN, BookingStatus.NO_SHOW, BookingStatus.COMPLETED,
    ])
    def test_system_driven_statuses_rejected(self, app, status):
        booking = _create()
        with pytest.raises(ValidationError, match="check-in and the scheduled sweeps"):
            update_status(booking.reference, status)

    def test_failed_payment_can_be_retried(self, app):
        booking = _create()
        update_status(booking.reference, BookingStatus.PAYMENT_FAILED, PaymentInfo(transaction_id="T-fail"))
        update_status(booking.reference, BookingStatus.PENDING_PAYMENT)
        done = update_status(booking.reference, BookingStatus.PAYMENT_COMPLETED, PaymentInfo(transaction_id="T-ok"))

        assert done.status == BookingStatus.PAYMENT_COMPLETED
        assert done.payment.transaction_id == "T-ok"

    def test_repeated_payment_callback_is_idempotent(self, app):
        booking = _create()
        update_status(booking.reference, BookingStatus.PAYMENT_COMPLETED, PaymentInfo(transaction_id="T1"))
        again = update_status(booking.reference, BookingStatus.PAYMENT_COMPLETED, PaymentInfo(method="card"))

        assert again.status == BookingStatus.PAYMENT_COMPLETED
        assert again.payment.transaction_id == "T1"
        assert again.payment.payment_method == "card"

    def test_refund_releases_seat(self, app):
        booking = _create()
        update_status(booking.reference, BookingStatus.PAYMENT_COMPLETED)
        refunded = update_status(booking.reference, BookingStatus.PAYMENT_REFUNDED)

        assert refunded.seat_number is None
        assert refunded.payment.status == BookingStatus.PAYMENT_REFUNDED

    def test_failure_after_status_change_rolls_everything_back(self, app, monkeypatch):
        booking = _create()

        def broken_reconcile(*args, **kwargs):
            raise RuntimeError("payments table unavailable")

        monkeypatch.setattr(booking_lifecycle, "reconcile", broken_reconcile)

        with pytest.raises(ServerError) as excinfo:
            update_status(booking.reference, BookingStatus.PAYMENT_COMPLETED, PaymentInfo(transaction_id="T1"))

        assert excinfo.value.message == "Something went wrong. Please try again later."
        fresh = db.session.get(Booking, booking.id)
        assert fresh.status == BookingStatus.PENDING_PAYMENT
        assert fresh.payment is None
        assert AuditLog.query.filter_by(action="BOOKING_STATUS_UPDATE").count() == 0

    def test_status_change_is_audited(self, app):
        booking = _create()
        update_status(booking.reference, BookingStatus.PAYMENT_COMPLETED, actor_id=None)

        row = AuditLog.query.filter_by(action="BOOKING_STATUS_UPDATE").one()
        assert row.from_status == "pending_payment"
        assert row.to_status == "payment_completed"


def _user(email, admin=False):
    user = User(email=email, password_hash="x")
    user.roles.append(get_role("ADMIN" if admin else "VISITOR"))
    db.session.add(user)
    db.session.commit()
    return user


class TestCancelBooking:
    def test_owner_cancels_ahead_of_cutoff(self, app):
        owner = _user("owner@x.com")
        booking = _create(user_id=owner.id)

        cancelled = booking_lifecycle.cancel_booking(
            booking.reference, owner, reason="Plans changed", now=datetime(2030, 3, 13, 9, 0),
        )

        assert cancelled.status == BookingStatus.CANCELLED
        assert cancelled.cancel_reason == "Plans changed"
        assert cancelled.cancelled_at is not None
        assert cancelled.seat_number is None

    def test_owner_blocked_inside_cutoff(self, app):
        owner = _user("owner@x.com")
        booking = _create(user_id=owner.id)

        with pytest.raises(ValidationError, match="12 hours"):
            booking_lifecycle.cancel_booking(booking.reference, owner, now=datetime(2030, 3, 14, 1, 0))

    def test_admin_bypasses_cutoff(self, app):
        admin = _user("admin@x.com", admin=True)
        booking = _create()

        cancelled = booking_lifecycle.cancel_booking(booking.reference, admin, now=datetime(2030, 3, 14, 8, 30))
        assert cancelled.status == BookingStatus.CANCELLED

    def test_stranger_cannot_cancel(self, app):
        owner = _user("owner@x.com")
        stranger = _user("stranger@x.com")
        booking = _create(user_id=owner.id)

        with pytest.raises(ForbiddenError):
            booking_lifecycle.cancel_booking(booking.reference, stranger, now=datetime(2030, 3, 10, 9, 0))


class TestQueries:
    def test_get_by_reference(self, app):
        booking = _create()
        assert booking_lifecycle.get_booking_by_reference(f" {booking.reference} ").id == booking.id
        with pytest.raises(NotFoundError):
            booking_lifecycle.get_booking_by_reference("TOUR-NOPE")

    def test_list_by_email_and_user(self, app):
        owner = _user("owner@x.com")
        _create(email="owner@x.com", user_id=owner.id)
        _create(email="other@x.com")

        assert len(booking_lifecycle.list_bookings_by_email("owner@x.com")) == 1
        assert len(booking_lifecycle.list_bookings_for_user(owner.id)) == 1

    def test_search_filters(self, app):
        _create(name="Alice Tan", email="alice@x.com")
        bob = _create(name="Bob Lim", email="bob@x.com")
        update_status(bob.reference, BookingStatus.PAYMENT_COMPLETED)

        assert [b.visitor_name for b in booking_lifecycle.search_bookings(search="alice")] == ["Alice Tan"]
        assert [b.reference for b in booking_lifecycle.search_bookings(status="payment_completed")] == [bob.reference]
        assert len(booking_lifecycle.search_bookings(date=TOUR_DAY.isoformat())) == 2
        assert booking_lifecycle.search_bookings(date="2030-01-01") == []
