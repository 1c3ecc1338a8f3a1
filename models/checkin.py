from datetime import datetime
from models.db import db

class Checkin(db.Model):
    __tablename__ = "checkins"

    id = db.Column(db.Integer, primary_key=True)
    # unique: the row itself is the "already checked in" marker
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False, unique=True, index=True)

    checked_in_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    status = db.Column(db.String(20), nullable=False, default="checked_in")

    booking = db.relationship("Booking", back_populates="checkin")
