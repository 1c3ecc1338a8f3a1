import enum
from datetime import datetime
from models.db import db


# hard ceiling stored in ck_booking_group_size; MAX_GROUP_SIZE may lower it, never raise it
GROUP_SIZE_LIMIT = 50


class BookingStatus(str, enum.Enum):
    PENDING_PAYMENT = "pending_payment"
    PAYMENT_COMPLETED = "payment_completed"
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_REFUNDED = "payment_refunded"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


def status_column_type(name: str):
    # stored as plain VARCHAR values ("pending_payment", ...) on every backend
    return db.Enum(
        BookingStatus,
        name=name,
        native_enum=False,
        length=30,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)
    # public, opaque identifier handed to visitors (never the numeric id)
    reference = db.Column(db.String(32), unique=True, nullable=False, index=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    visitor_name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=False, index=True)
    group_size = db.Column(db.Integer, nullable=False)

    tour_date = db.Column(db.Date, nullable=False)
    time_slot = db.Column(db.String(50), nullable=False)
    # seat held inside (tour_date, time_slot); NULL once the booking stops occupying capacity
    seat_number = db.Column(db.Integer, nullable=True)

    deposit = db.Column(db.Numeric(10, 2), nullable=False)
    status = db.Column(status_column_type("booking_status"), nullable=False, default=BookingStatus.PENDING_PAYMENT)
    has_feedback = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    cancelled_at = db.Column(db.DateTime, nullable=True)
    cancel_reason = db.Column(db.String(120), nullable=True)

    user = db.relationship("User", back_populates="bookings")
    payment = db.relationship("Payment", back_populates="booking", uselist=False)
    checkin = db.relationship("Checkin", back_populates="booking", uselist=False)
    feedback = db.relationship("Feedback", back_populates="booking", uselist=False)

    __table_args__ = (
        # Hard business-rule: a seat in a slot can be held by one booking only.
        # Seats are numbered 1..capacity, so this caps active bookings per slot.
        db.UniqueConstraint("tour_date", "time_slot", "seat_number", name="uq_booking_slot_seat"),
        db.CheckConstraint("seat_number IS NULL OR seat_number >= 1", name="ck_booking_seat_positive"),
        db.CheckConstraint(f"group_size >= 1 AND group_size <= {GROUP_SIZE_LIMIT}", name="ck_booking_group_size"),
        db.CheckConstraint("deposit > 0", name="ck_booking_deposit_positive"),
        db.Index("ix_bookings_date_slot", "tour_date", "time_slot"),
    )

    def __repr__(self):
        return f"<Booking {self.reference} {self.tour_date} {self.time_slot} {self.status.value}>"
