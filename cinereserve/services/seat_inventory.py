from sqlalchemy import select
from sqlalchemy.orm import Session

from cinereserve.core.errors import CapacityError, ValidationError
from cinereserve.models.showtime import BookedSeat
from cinereserve.models.theater import SEAT_TYPES

# Wheelchair seats are tracked but never gate a reservation
GATED_SEAT_TYPES = ("regular", "premium", "vip")


def seat_label(row: str, number: int) -> str:
    return f"{row}{number}"


def remaining(holder, seat_type: str) -> int:
    if seat_type not in SEAT_TYPES:
        raise ValidationError(f"unknown seat type: {seat_type}")
    return int(getattr(holder, f"available_{seat_type}") or 0)


def decrement_available(holder, seat_type: str) -> int:
    """Take one seat of `seat_type` from the remaining-count table of a showtime."""
    current = remaining(holder, seat_type)
    if seat_type in GATED_SEAT_TYPES and current <= 0:
        raise CapacityError(f"No {seat_type} seats available")
    new = max(current - 1, 0)
    setattr(holder, f"available_{seat_type}", new)
    return new


def increment_available(holder, seat_type: str) -> int:
    new = remaining(holder, seat_type) + 1
    setattr(holder, f"available_{seat_type}", new)
    return new


def counts_by_type(layout: dict[tuple[str, int], str]) -> dict[str, int]:
    counts = {t: 0 for t in SEAT_TYPES}
    for seat_type in layout.values():
        counts[seat_type] = counts.get(seat_type, 0) + 1
    return counts


def is_seat_booked(db: Session, showtime_id: str, row: str, number: int) -> bool:
    return db.execute(
        select(BookedSeat.id).where(
            BookedSeat.showtime_id == showtime_id,
            BookedSeat.row == row,
            BookedSeat.number == number,
        )
    ).first() is not None


def booked_positions(db: Session, showtime_id: str) -> set[tuple[str, int]]:
    rows = db.execute(
        select(BookedSeat.row, BookedSeat.number).where(BookedSeat.showtime_id == showtime_id)
    ).all()
    return {(r.row, r.number) for r in rows}
