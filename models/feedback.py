from datetime import datetime
from models.db import db

RATING_MIN = 1
RATING_MAX = 5


class Feedback(db.Model):
    __tablename__ = "feedback"

    id = db.Column(db.Integer, primary_key=True)
    # unique: a tour is reviewed once; Booking.has_feedback mirrors this row's existence
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False, unique=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    rating = db.Column(db.Integer, nullable=False, default=RATING_MAX)
    comments = db.Column(db.String(2000), nullable=False)
    is_public = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    booking = db.relationship("Booking", back_populates="feedback")
    user = db.relationship("User")

    __table_args__ = (
        db.CheckConstraint(f"rating >= {RATING_MIN} AND rating <= {RATING_MAX}", name="ck_feedback_rating_range"),
    )
