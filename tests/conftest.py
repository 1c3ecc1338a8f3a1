from datetime import date, timedelta

import pytest

from app import create_app
from config import TestConfig
from models import db
from models.booking import BookingStatus
from services import booking_lifecycle
from utils.seed import seed_roles

NINE_AM = "09:00 AM - 10:00 AM"
TOUR_DAY = date(2030, 3, 14)


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        seed_roles()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_booking(app):
    """Creates a PENDING_PAYMENT booking for TOUR_DAY, booked the day before."""
    counter = {"n": 0}

    def _make(tour_date=TOUR_DAY, time_slot=NINE_AM, email=None, **kwargs):
        counter["n"] += 1
        return booking_lifecycle.create_booking(
            name=kwargs.pop("name", f"Visitor {counter['n']}"),
            email=email or f"visitor{counter['n']}@example.com",
            date=tour_date.isoformat(),
            group_size=kwargs.pop("group_size", 4),
            time_slot=time_slot,
            deposit=kwargs.pop("deposit", 50),
            today=tour_date - timedelta(days=1),
            **kwargs,
        )

    return _make


@pytest.fixture
def confirmed_booking(make_booking):
    def _confirm(**kwargs):
        booking = make_booking(**kwargs)
        booking_lifecycle.update_status(booking.reference, BookingStatus.PAYMENT_COMPLETED)
        return booking_lifecycle.update_status(booking.reference, BookingStatus.CONFIRMED)

    return _confirm


def register_and_login(client, email, password="correct-horse-1"):
    client.post("/auth/register", json={"email": email, "password": password, "full_name": "Test User"})
    resp = client.post("/auth/login", json={"email": email, "password": password})
    return resp.get_json()["token"]


@pytest.fixture
def visitor_token(client):
    return register_and_login(client, "visitor@example.com")


@pytest.fixture
def admin_token(client):
    from utils.seed import promote_to_admin

    token = register_and_login(client, "admin@example.com")
    promote_to_admin("admin@example.com")
    return token


def auth(token):
    return {"Authorization": f"Bearer {token}"}
