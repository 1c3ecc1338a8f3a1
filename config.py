import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as campustour.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "campustour.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Seed default roles at startup (disable when migrations have not run yet)
    SEED_ON_STARTUP = os.getenv("SEED_ON_STARTUP", "true").lower() == "true"

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Bearer token sessions: 8 hours absolute, 20 minutes idle
    SESSION_LIFETIME_SECONDS = 8 * 60 * 60
    IDLE_TIMEOUT_SECONDS = 20 * 60

    # All tour dates and slot times are local to the campus
    TOUR_TIMEZONE = os.getenv("TOUR_TIMEZONE", "Asia/Singapore")

    # Daily tour slots (24h start, 24h end); the lunch hour is left out
    TOUR_TIME_SLOTS = [
        ("09:00", "10:00"),
        ("10:00", "11:00"),
        ("11:00", "12:00"),
        ("13:00", "14:00"),
        ("14:00", "15:00"),
        ("15:00", "16:00"),
    ]
    # Bookings per (date, slot)
    SLOT_CAPACITY = int(os.getenv("SLOT_CAPACITY", "5"))

    # Booking rules
    MIN_GROUP_SIZE = 1
    MAX_GROUP_SIZE = 50  # capped at models.booking.GROUP_SIZE_LIMIT
    BOOKING_LEAD_DAYS = 1
    DEFAULT_DEPOSIT = os.getenv("DEFAULT_DEPOSIT", "50.00")
    BOOKING_REFERENCE_PREFIX = "TOUR"
    SEAT_ALLOCATION_ATTEMPTS = 3

    # Check-in window: opens N minutes before slot start, closes N minutes
    # after slot start (None = at slot end)
    CHECKIN_EARLY_MINUTES = int(os.getenv("CHECKIN_EARLY_MINUTES", "0"))
    CHECKIN_CUTOFF_MINUTES = (
        int(os.environ["CHECKIN_CUTOFF_MINUTES"]) if os.getenv("CHECKIN_CUTOFF_MINUTES") else None
    )

    # Cancellation policy (visitors only; admins bypass)
    CANCEL_CUTOFF_HOURS = 12

    # Shared secret for the payment provider's status callback
    PAYMENT_WEBHOOK_SECRET = os.getenv("PAYMENT_WEBHOOK_SECRET")

    # Basic app settings
    DEBUG = False


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SEED_ON_STARTUP = False
    SLOT_CAPACITY = 5
    CHECKIN_EARLY_MINUTES = 0
    CHECKIN_CUTOFF_MINUTES = None
    PAYMENT_WEBHOOK_SECRET = "test-webhook-secret"
    LOG_LEVEL = "DEBUG"
