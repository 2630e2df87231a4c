import uuid
from datetime import timedelta

from loguru import logger
from sqlalchemy import select, text
from sqlalchemy.exc import OperationalError, ProgrammingError
from sqlalchemy.orm import Session

from cinereserve.core.clock import theater_tz, utcnow
from cinereserve.core.errors import ScheduleConflictError
from cinereserve.core.security import hash_password
from cinereserve.db.session import SessionLocal
from cinereserve.models.movie import Movie
from cinereserve.models.theater import Hall, HallSeat, Theater
from cinereserve.models.user import User
from cinereserve.services.showtime_service import create_showtime
from cinereserve.services.showtime_source import make_simple_layout

THEATERS = [
    ("CinePlex Downtown", "Mumbai", [("Hall 1", 6, 12)]),
    ("StarMax Cinema", "Delhi", [("Hall A", 5, 10), ("Hall B", 4, 8)]),
    ("Galaxy Cinemas", "Bengaluru", [("Screen 1", 7, 12)]),
    ("Regal Multiplex", "Hyderabad", [("Prime", 6, 10)]),
    ("CityScreen", "Sonipat", [("Classic", 5, 10)]),
    ("Samalkha Cinema", "Samalkha", [("Screen 1", 6, 10)]),
]

MOVIES = [
    ("The Last Projectionist", 128, "UA"),
    ("Monsoon Nights", 142, "U"),
    ("Orbit of Silence", 115, "UA"),
]

DAILY_STARTS = ["10:00", "14:00", "18:00", "21:30"]
BASE_PRICE = 200


def ensure_user(db: Session, email: str, password: str, role: str, name: str) -> User:
    u = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if u:
        return u
    u = User(
        id=str(uuid.uuid4()),
        email=email,
        full_name=name,
        role=role,
        password_hash=hash_password(password),
        is_active=True,
    )
    db.add(u)
    db.commit()
    return u


def ensure_theater(db: Session, name: str, city: str, halls: list[tuple[str, int, int]], owner_id: str | None) -> Theater:
    theater = db.execute(select(Theater).where(Theater.name == name, Theater.city == city)).scalar_one_or_none()
    if not theater:
        theater = Theater(id=str(uuid.uuid4()), name=name, city=city, owner_user_id=owner_id, is_active=True)
        db.add(theater)
        db.flush()
    for hall_name, rows, cols in halls:
        exists = db.execute(
            select(Hall.id).where(Hall.theater_id == theater.id, Hall.name == hall_name)
        ).first()
        if exists:
            continue
        # Front row keeps two wheelchair spaces
        layout = make_simple_layout(rows, cols, wheelchair_row="A")
        hall = Hall(id=str(uuid.uuid4()), theater_id=theater.id, name=hall_name, capacity=len(layout))
        hall.seats = [
            HallSeat(id=str(uuid.uuid4()), row=row, number=number, seat_type=seat_type)
            for (row, number), seat_type in sorted(layout.items())
        ]
        db.add(hall)
    db.commit()
    return theater


def ensure_movie(db: Session, title: str, duration: int, rating: str) -> Movie:
    movie = db.execute(select(Movie).where(Movie.title == title)).scalar_one_or_none()
    if not movie:
        movie = Movie(id=str(uuid.uuid4()), title=title, duration_minutes=duration, rating=rating, is_active=True)
        db.add(movie)
        db.commit()
    return movie


def seed_showtimes(db: Session, theaters: list[Theater], movies: list[Movie], days: int = 3) -> int:
    today = utcnow().astimezone(theater_tz()).date()
    created = 0
    for offset in range(1, days + 1):
        date_str = (today + timedelta(days=offset)).isoformat()
        for t_idx, theater in enumerate(theaters):
            halls = db.execute(select(Hall).where(Hall.theater_id == theater.id)).scalars().all()
            for h_idx, hall in enumerate(halls):
                for s_idx, start in enumerate(DAILY_STARTS):
                    movie = movies[(t_idx + h_idx + s_idx) % len(movies)]
                    try:
                        create_showtime(db, movie_id=movie.id, theater_id=theater.id, hall_name=hall.name,
                                        date_str=date_str, start=start, base_price=BASE_PRICE, actor="seed")
                        created += 1
                    except ScheduleConflictError:
                        continue
    return created


def run(db=None):
    if db is None:
        db = SessionLocal()
    try:
        # If migrations haven't been applied yet, seeding must not crash the API.
        try:
            db.execute(text("SELECT 1 FROM users LIMIT 1"))
        except (ProgrammingError, OperationalError):
            db.rollback()
            logger.warning("[seed] users table not found yet. Skipping seeding (run alembic upgrade head).")
            return

        ensure_user(db, "admin@cinereserve.local", "admin12345", "admin", "Admin")
        owner = ensure_user(db, "owner@cinereserve.local", "owner12345", "theater_owner", "Theater Owner")
        ensure_user(db, "payments@cinereserve.local", "payments12345", "service", "Payment Webhook")
        ensure_user(db, "customer@cinereserve.local", "customer12345", "customer", "Demo Customer")

        theaters = [ensure_theater(db, name, city, halls, owner.id) for name, city, halls in THEATERS]
        movies = [ensure_movie(db, title, duration, rating) for title, duration, rating in MOVIES]
        created = seed_showtimes(db, theaters, movies)
        logger.info("[seed] done: {} theaters, {} movies, {} new showtimes", len(theaters), len(movies), created)
    finally:
        db.close()


if __name__ == "__main__":
    run()
