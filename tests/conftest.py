import os
import sys
from datetime import date, time

import pytest

# Add the project root to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from app import create_app
from config import Config
from models import db
from models.booking import Booking, BookingStatus
from models.slot import Slot
from models.user import User, Role
from security.password import hash_password
from utils.admission import new_reschedule_token
from utils.dates import pantry_today
from utils.seed import seed_roles

PASSWORD = "correct-horse-1"
FUTURE = date(2099, 1, 15)


class PantryTestConfig(Config):
    TESTING = True
    BCRYPT_ROUNDS = 4
    SMTP_HOST = None
    STAFF_SIGNUP_CODE = "staff-code"
    MONTHLY_BOOKING_LIMIT = 2


@pytest.fixture
def app(tmp_path):
    """Fresh app on a throwaway SQLite file (threads need real connections, not :memory:)."""
    class _Config(PantryTestConfig):
        SQLALCHEMY_DATABASE_URI = "sqlite:///" + str(tmp_path / "pantry-test.db")

    app = create_app(_Config)
    with app.app_context():
        db.create_all()
        seed_roles()
        db.session.remove()

    yield app

    with app.app_context():
        db.session.remove()
        db.engine.dispose()


@pytest.fixture
def today(app):
    with app.app_context():
        return pantry_today()


class ApiClient:
    """Test client that logs in and sends the CSRF header like the frontend does."""

    def __init__(self, app):
        self.app = app
        self.http = app.test_client()
        self.csrf = None

    def login(self, email, password=PASSWORD):
        resp = self.http.post("/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.get_json()
        self.csrf = self.http.get_cookie("csrf_token").value
        return resp

    def _headers(self):
        return {"X-CSRF-Token": self.csrf} if self.csrf else {}

    def get(self, path, **kwargs):
        return self.http.get(path, **kwargs)

    def post(self, path, json=None):
        return self.http.post(path, json=json or {}, headers=self._headers())


def make_slot(app, start="09:00", end="09:30", capacity=1, active=True) -> int:
    with app.app_context():
        slot = Slot(
            start_time=time.fromisoformat(start),
            end_time=time.fromisoformat(end),
            max_capacity=capacity,
            is_active=active,
        )
        db.session.add(slot)
        db.session.commit()
        return slot.id


def make_user(app, email, roles=("CLIENT",), client_id=None, full_name=None) -> int:
    with app.app_context():
        user = User(
            email=email,
            password_hash=hash_password(PASSWORD),
            full_name=full_name,
            client_id=client_id,
        )
        user.roles = Role.query.filter(Role.name.in_(roles)).all()
        db.session.add(user)
        db.session.commit()
        return user.id


def make_booking(app, user_id, slot_id, day, status=BookingStatus.APPROVED, token=None):
    """Insert a row directly, bypassing admission (fixture data)."""
    with app.app_context():
        booking = Booking(
            user_id=user_id,
            slot_id=slot_id,
            date=day,
            status=status.value,
            reschedule_token=token or new_reschedule_token(),
        )
        db.session.add(booking)
        db.session.commit()
        return booking.id, booking.reschedule_token


def active_count(app, slot_id, day) -> int:
    with app.app_context():
        return Booking.query.filter(
            Booking.slot_id == slot_id,
            Booking.date == day,
            Booking.status != BookingStatus.CANCELLED.value,
        ).count()


_client_numbers = iter(range(1000, 100000))


@pytest.fixture
def client_user(app):
    """(api, user_id) for a logged-in self-service client."""
    email = "client@example.com"
    user_id = make_user(app, email, client_id=next(_client_numbers), full_name="Test Client")
    api = ApiClient(app)
    api.login(email)
    return api, user_id


@pytest.fixture
def staff(app):
    email = "staff@example.com"
    make_user(app, email, roles=("STAFF",))
    api = ApiClient(app)
    api.login(email)
    return api


@pytest.fixture
def anon(app):
    return ApiClient(app)
