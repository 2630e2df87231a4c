"""
Test configuration and fixtures.

Environment must be set before any cinereserve module is imported: settings and the
module-level engine read it at import time. Every test gets its own SQLite file.
"""
import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["THEATER_TIMEZONE"] = "UTC"
os.environ["PAYMENT_SANDBOX"] = "true"
os.environ["PAYMENT_WEBHOOK_SECRET"] = ""
os.environ["SANDBOX_SHOWTIMES_ENABLED"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"

import uuid  # noqa: E402
from datetime import datetime, timezone  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from cinereserve.core.security import create_access_token, hash_password  # noqa: E402
from cinereserve.db.session import Base, get_db  # noqa: E402
from cinereserve.models.audit_log import AuditLog  # noqa: E402,F401
from cinereserve.models.booking import Booking, BookingTicket  # noqa: E402,F401
from cinereserve.models.email_log import EmailLog  # noqa: E402,F401
from cinereserve.models.movie import Movie  # noqa: E402
from cinereserve.models.showtime import BookedSeat, Showtime  # noqa: E402,F401
from cinereserve.models.theater import Hall, HallSeat, Theater  # noqa: E402
from cinereserve.models.user import User  # noqa: E402
from cinereserve.services import email_service  # noqa: E402
from cinereserve.services import showtime_service  # noqa: E402
from cinereserve.services.showtime_source import make_simple_layout, sandbox_showtimes  # noqa: E402

# Frozen "now" for lifecycle tests; the default showtime is 58.5 hours later
NOW = datetime(2030, 1, 10, 9, 0, tzinfo=timezone.utc)
SHOW_DATE = "2030-01-12"
SHOW_START = "19:30"


@pytest.fixture
def engine(tmp_path):
    eng = create_engine(f"sqlite:///{tmp_path / 'cinereserve-test.db'}",
                        connect_args={"check_same_thread": False, "timeout": 30})
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def outbox(monkeypatch):
    """Capture outgoing email instead of talking to SMTP."""
    sent = []
    monkeypatch.setattr(email_service, "send_email", lambda to, subject, body: sent.append((to, subject, body)))
    return sent


@pytest.fixture(autouse=True)
def _clear_sandbox():
    sandbox_showtimes.clear()
    yield
    sandbox_showtimes.clear()


def make_user(db, role="customer", email=None) -> User:
    user = User(
        id=str(uuid.uuid4()),
        email=email or f"{role}-{uuid.uuid4().hex[:8]}@cinereserve.test",
        full_name=role.title(),
        role=role,
        password_hash=hash_password("password123"),
        is_active=True,
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def customer(db):
    return make_user(db, "customer")


@pytest.fixture
def other_customer(db):
    return make_user(db, "customer")


@pytest.fixture
def admin(db):
    return make_user(db, "admin")


@pytest.fixture
def owner(db):
    return make_user(db, "theater_owner")


@pytest.fixture
def service_user(db):
    return make_user(db, "service")


@pytest.fixture
def movie(db):
    m = Movie(id=str(uuid.uuid4()), title="Orbit of Silence", duration_minutes=120, rating="UA", is_active=True)
    db.add(m)
    db.commit()
    return m


@pytest.fixture
def theater(db, owner):
    """Mumbai theater with "Hall 1": rows A-E x 10 seats.

    Seats 1-6 regular, 7-8 premium, 9-10 vip; E1 and E2 are wheelchair spaces.
    """
    t = Theater(id=str(uuid.uuid4()), name="CinePlex Downtown", city="Mumbai", owner_user_id=owner.id, is_active=True)
    db.add(t)
    layout = make_simple_layout(rows=5, seats_per_row=10, wheelchair_row="E")
    hall = Hall(id=str(uuid.uuid4()), theater_id=t.id, name="Hall 1", capacity=len(layout))
    hall.seats = [
        HallSeat(id=str(uuid.uuid4()), row=row, number=number, seat_type=seat_type)
        for (row, number), seat_type in layout.items()
    ]
    db.add(hall)
    db.commit()
    return t


@pytest.fixture
def showtime(db, movie, theater):
    return showtime_service.create_showtime(
        db, movie_id=movie.id, theater_id=theater.id, hall_name="Hall 1",
        date_str=SHOW_DATE, start=SHOW_START, base_price=200,
    )


@pytest.fixture
def client(session_factory):
    from cinereserve.main import app

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id, role=user.role)}"}


def seat(row: str, number: int, seat_type: str = "regular") -> tuple[str, int, str]:
    return (row, number, seat_type)
