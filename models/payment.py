from datetime import datetime
from models.db import db
from models.booking import status_column_type

class Payment(db.Model):
    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True)
    # unique: one payment row per booking, created lazily and updated in place
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False, unique=True, index=True)

    amount = db.Column(db.Numeric(10, 2), nullable=False)
    # pending_payment, payment_completed, payment_failed, payment_refunded
    status = db.Column(status_column_type("payment_status"), nullable=False)

    transaction_id = db.Column(db.String(255), nullable=True, index=True)
    payment_method = db.Column(db.String(100), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    booking = db.relationship("Booking", back_populates="payment")

    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_payment_amount_positive"),
    )
