import uuid
from datetime import date

from loguru import logger
from sqlalchemy import select, func
from sqlalchemy.orm import Session

from cinereserve.core.clock import add_minutes, parse_hhmm
from cinereserve.core.errors import NotFoundError, ScheduleConflictError, ValidationError
from cinereserve.models.movie import Movie
from cinereserve.models.showtime import Showtime
from cinereserve.models.theater import Hall, Theater
from cinereserve.services import seat_inventory
from cinereserve.services.audit_service import log_audit
from cinereserve.services.locks import hall_schedule_lock
from cinereserve.services.pricing import PricingPolicy, policy_from_settings
from cinereserve.services.showtime_source import resolve_showtime


def _check_date(date_str: str) -> None:
    try:
        date.fromisoformat(date_str)
    except (TypeError, ValueError):
        raise ValidationError("date must be YYYY-MM-DD")


def _check_hhmm(value: str, field: str) -> None:
    try:
        parse_hhmm(value)
    except (AttributeError, TypeError, ValueError):
        raise ValidationError(f"{field} must be HH:MM")


def find_conflict(db: Session, theater_id: str, hall_name: str, date_str: str, start: str, end: str,
                  exclude_id: str | None = None) -> Showtime | None:
    """Active showtime in the same hall and day whose [start, end) intersects the given window."""
    q = select(Showtime).where(
        Showtime.theater_id == theater_id,
        Showtime.hall_name == hall_name,
        Showtime.date_str == date_str,
        Showtime.is_active == True,  # noqa: E712
        Showtime.status == "scheduled",
        Showtime.start < end,
        Showtime.end > start,
    )
    if exclude_id:
        q = q.where(Showtime.id != exclude_id)
    return db.execute(q.limit(1)).scalar_one_or_none()


def create_showtime(db: Session, *, movie_id: str, theater_id: str, hall_name: str, date_str: str,
                    start: str, base_price: int, duration_minutes: int | None = None,
                    actor: str = "system", policy: PricingPolicy | None = None) -> Showtime:
    _check_date(date_str)
    _check_hhmm(start, "start")
    start = parse_hhmm(start).strftime("%H:%M")

    movie = db.get(Movie, movie_id)
    if not movie or not movie.is_active:
        raise NotFoundError("Movie not found or inactive")
    theater = db.get(Theater, theater_id)
    if not theater or not theater.is_active:
        raise NotFoundError("Theater not found or inactive")

    duration = duration_minutes if duration_minutes is not None else movie.duration_minutes
    if not duration or duration <= 0:
        raise ValidationError("duration must be > 0 minutes")
    end, crossed = add_minutes(start, duration)
    if crossed:
        raise ValidationError("showtime must end on the same day it starts")

    prices = (policy or policy_from_settings()).price_table(base_price, theater.city, start)

    with hall_schedule_lock(theater_id, hall_name, date_str):
        hall = db.execute(
            select(Hall).where(Hall.theater_id == theater_id, Hall.name == hall_name).with_for_update()
        ).scalar_one_or_none()
        if not hall:
            db.rollback()
            raise NotFoundError("Hall not found in theater")

        clash = find_conflict(db, theater_id, hall_name, date_str, start, end)
        if clash:
            db.rollback()
            raise ScheduleConflictError(
                f"Showtime conflicts with existing showtime {clash.start}-{clash.end} in {hall_name}"
            )

        counts = seat_inventory.counts_by_type({(s.row, s.number): s.seat_type for s in hall.seats})
        st = Showtime(
            id=str(uuid.uuid4()),
            movie_id=movie.id,
            theater_id=theater.id,
            hall_id=hall.id,
            hall_name=hall.name,
            date_str=date_str,
            start=start,
            end=end,
            base_price=base_price,
            price_regular=prices["regular"],
            price_premium=prices["premium"],
            price_vip=prices["vip"],
            available_regular=counts["regular"],
            available_premium=counts["premium"],
            available_vip=counts["vip"],
            available_wheelchair=counts["wheelchair"],
            status="scheduled",
            is_active=True,
        )
        db.add(st)
        log_audit(db, actor, "showtime.created", "showtime", st.id,
                  {"hall": hall_name, "date": date_str, "start": start, "end": end, "prices": prices})
        db.commit()

    db.refresh(st)
    logger.info("Showtime {} scheduled in {} on {} {}-{}", st.id, hall_name, date_str, start, end)
    return st


def seat_availability(db: Session, showtime_id: str, row: str, number: int) -> bool:
    """True unless the seat is held by a pending or confirmed booking for this showtime."""
    return resolve_showtime(db, showtime_id).seat_available(db, row, number)


def seat_map(db: Session, showtime_id: str) -> dict:
    source = resolve_showtime(db, showtime_id)
    booked = source.booked_positions(db)
    rows: dict[str, list[dict]] = {}
    for (row, number), seat_type in sorted(source.layout(db).items()):
        taken = (row, number) in booked
        rows.setdefault(row, []).append({
            "number": number,
            "type": seat_type,
            "price": source.seat_price(seat_type),
            "available": not taken,
            "booked": taken,
        })
    return {
        "showtimeId": source.id,
        "hallName": source.hall_name,
        "date": source.date_str,
        "start": source.start,
        "end": source.end,
        "prices": source.price_table(),
        "availableSeats": source.available_table(),
        "rows": [{"row": name, "seats": seats} for name, seats in rows.items()],
    }


def get_showtime(db: Session, showtime_id: str) -> Showtime:
    st = db.get(Showtime, showtime_id)
    if not st:
        raise NotFoundError("Showtime not found")
    return st


def cancel_showtime(db: Session, showtime_id: str, actor: str = "system") -> Showtime:
    """Soft cancel; the row stays so that bookings keep resolving."""
    st = get_showtime(db, showtime_id)
    st.status = "cancelled"
    st.is_active = False
    log_audit(db, actor, "showtime.cancelled", "showtime", st.id)
    db.commit()
    logger.info("Showtime {} cancelled by {}", st.id, actor)
    return st


def reprice_showtime(db: Session, showtime_id: str, base_price: int, actor: str = "system",
                     policy: PricingPolicy | None = None) -> Showtime:
    """Recompute the live price table. Existing bookings keep their frozen ticket prices."""
    st = get_showtime(db, showtime_id)
    theater = db.get(Theater, st.theater_id)
    prices = (policy or policy_from_settings()).price_table(base_price, theater.city if theater else "", st.start)
    st.base_price = base_price
    st.price_regular = prices["regular"]
    st.price_premium = prices["premium"]
    st.price_vip = prices["vip"]
    log_audit(db, actor, "showtime.repriced", "showtime", st.id, {"basePrice": base_price, "prices": prices})
    db.commit()
    return st


def list_showtimes(db: Session, movie_id: str | None = None, theater_id: str | None = None,
                   date_str: str | None = None, city: str | None = None,
                   page: int = 1, limit: int = 20) -> tuple[list[Showtime], int]:
    q = select(Showtime).where(Showtime.status == "scheduled", Showtime.is_active == True)  # noqa: E712
    if movie_id:
        q = q.where(Showtime.movie_id == movie_id)
    if theater_id:
        q = q.where(Showtime.theater_id == theater_id)
    if date_str:
        q = q.where(Showtime.date_str == date_str)
    if city:
        q = q.join(Theater, Theater.id == Showtime.theater_id).where(
            func.lower(Theater.city) == city.strip().lower(), Theater.is_active == True  # noqa: E712
        )
    total = db.execute(select(func.count()).select_from(q.subquery())).scalar_one()
    page = max(page, 1)
    limit = max(1, min(limit, 100))
    items = db.execute(
        q.order_by(Showtime.date_str.asc(), Showtime.start.asc()).offset((page - 1) * limit).limit(limit)
    ).scalars().all()
    return list(items), total
