from __future__ import annotations

import threading
import uuid
from datetime import datetime, timedelta
from typing import Protocol

from loguru import logger
from sqlalchemy import select, delete
from sqlalchemy.orm import Session

from cinereserve.core.clock import show_datetime, theater_tz, utcnow
from cinereserve.core.errors import NotFoundError
from cinereserve.models.showtime import Showtime, BookedSeat
from cinereserve.models.theater import Hall
from cinereserve.services import seat_inventory
from cinereserve.services.seat_inventory import decrement_available, increment_available


SeatRequest = tuple[str, int, str]  # (row, number, seat_type)


class ShowtimeSource(Protocol):
    """What the booking ledger needs from a showtime, persisted or not."""

    id: str
    movie_id: str
    theater_id: str
    hall_name: str
    date_str: str
    start: str
    end: str

    def start_at(self) -> datetime: ...
    def not_bookable_reason(self, now: datetime) -> str | None: ...
    def price_table(self) -> dict[str, int]: ...
    def seat_price(self, seat_type: str) -> int: ...
    def layout(self, db: Session) -> dict[tuple[str, int], str]: ...
    def seat_available(self, db: Session, row: str, number: int) -> bool: ...
    def booked_positions(self, db: Session) -> set[tuple[str, int]]: ...
    def available_table(self) -> dict[str, int]: ...
    def occupy(self, db: Session, booking_id: str, seats: list[SeatRequest]) -> None: ...
    def undo_occupy(self, booking_id: str) -> None: ...
    def release(self, db: Session, booking_id: str) -> int: ...


class _ShowtimeTimes:
    date_str: str
    start: str
    end: str
    status: str
    is_active: bool

    def start_at(self) -> datetime:
        return show_datetime(self.date_str, self.start)

    def not_bookable_reason(self, now: datetime) -> str | None:
        if not self.is_active or self.status != "scheduled":
            return "Showtime is not available for booking"
        if self.start_at() <= now:
            return "Cannot book tickets for past showtimes"
        return None

    def seat_price(self, seat_type: str) -> int:
        table = self.price_table()
        return table.get(seat_type, table["regular"])


class PersistedShowtime(_ShowtimeTimes):
    def __init__(self, showtime: Showtime):
        self.showtime = showtime
        self._layout: dict[tuple[str, int], str] | None = None

    def __getattr__(self, name):
        # id, movie_id, hall_name, status, available_* ... come straight from the row
        return getattr(self.showtime, name)

    def price_table(self) -> dict[str, int]:
        return self.showtime.price_table()

    def available_table(self) -> dict[str, int]:
        return self.showtime.available_table()

    def layout(self, db: Session) -> dict[tuple[str, int], str]:
        if self._layout is None:
            hall = db.get(Hall, self.showtime.hall_id)
            if not hall:
                raise NotFoundError("Hall not found")
            self._layout = {(s.row, s.number): s.seat_type for s in hall.seats}
        return self._layout

    def seat_available(self, db: Session, row: str, number: int) -> bool:
        return not seat_inventory.is_seat_booked(db, self.showtime.id, row, number)

    def booked_positions(self, db: Session) -> set[tuple[str, int]]:
        return seat_inventory.booked_positions(db, self.showtime.id)

    def occupy(self, db: Session, booking_id: str, seats: list[SeatRequest]) -> None:
        for row, number, seat_type in seats:
            decrement_available(self.showtime, seat_type)
            db.add(BookedSeat(
                id=str(uuid.uuid4()),
                showtime_id=self.showtime.id,
                row=row,
                number=number,
                seat_type=seat_type,
                booking_id=booking_id,
            ))

    def undo_occupy(self, booking_id: str) -> None:
        # Session rollback already discarded the pending rows and counter changes
        return None

    def release(self, db: Session, booking_id: str) -> int:
        held = db.execute(
            select(BookedSeat).where(
                BookedSeat.showtime_id == self.showtime.id,
                BookedSeat.booking_id == booking_id,
            )
        ).scalars().all()
        for seat in held:
            increment_available(self.showtime, seat.seat_type)
        db.execute(
            delete(BookedSeat).where(
                BookedSeat.showtime_id == self.showtime.id,
                BookedSeat.booking_id == booking_id,
            )
        )
        return len(held)


def make_simple_layout(rows: int = 5, seats_per_row: int = 10, wheelchair_row: str | None = None) -> dict[tuple[str, int], str]:
    """Rows A.., last four seats premium, last two of those vip; optional wheelchair pair at the front of one row."""
    layout = {}
    for name in "ABCDEFGHIJKLMNOPQRSTUVWXYZ"[:rows]:
        for n in range(1, seats_per_row + 1):
            seat_type = "regular"
            if n > seats_per_row - 4:
                seat_type = "premium"
            if n > seats_per_row - 2:
                seat_type = "vip"
            if name == wheelchair_row and n <= 2:
                seat_type = "wheelchair"
            layout[(name, n)] = seat_type
    return layout


class SyntheticShowtime(_ShowtimeTimes):
    """In-memory showtime for demo/sandbox flows. Same contract as a persisted one."""

    def __init__(self, *, id: str, movie_id: str, theater_id: str, hall_name: str, date_str: str,
                 start: str, end: str, prices: dict[str, int], layout: dict[tuple[str, int], str],
                 movie_title: str = "", theater_name: str = "", city: str = ""):
        self.id = id
        self.movie_id = movie_id
        self.theater_id = theater_id
        self.hall_name = hall_name
        self.date_str = date_str
        self.start = start
        self.end = end
        self.movie_title = movie_title
        self.theater_name = theater_name
        self.city = city
        self.status = "scheduled"
        self.is_active = True
        self._prices = dict(prices)
        self._layout = dict(layout)
        self._booked: dict[tuple[str, int], tuple[str, str]] = {}  # position -> (booking_id, seat_type)
        for seat_type, count in seat_inventory.counts_by_type(self._layout).items():
            setattr(self, f"available_{seat_type}", count)

    def price_table(self) -> dict[str, int]:
        return dict(self._prices)

    def available_table(self) -> dict[str, int]:
        return {t: seat_inventory.remaining(self, t) for t in ("regular", "premium", "vip", "wheelchair")}

    def layout(self, db: Session) -> dict[tuple[str, int], str]:
        return self._layout

    def seat_available(self, db: Session, row: str, number: int) -> bool:
        return (row, number) not in self._booked

    def booked_positions(self, db: Session) -> set[tuple[str, int]]:
        return set(self._booked)

    def occupy(self, db: Session, booking_id: str, seats: list[SeatRequest]) -> None:
        taken = []
        try:
            for row, number, seat_type in seats:
                decrement_available(self, seat_type)
                self._booked[(row, number)] = (booking_id, seat_type)
                taken.append((row, number))
        except Exception:
            for position in taken:
                increment_available(self, self._booked.pop(position)[1])
            raise

    def undo_occupy(self, booking_id: str) -> None:
        self.release(None, booking_id)

    def release(self, db: Session | None, booking_id: str) -> int:
        mine = [pos for pos, (owner, _) in self._booked.items() if owner == booking_id]
        for position in mine:
            increment_available(self, self._booked.pop(position)[1])
        return len(mine)


def make_demo_showtime(now: datetime | None = None) -> SyntheticShowtime:
    now = now or utcnow()
    show_date = (now.astimezone(theater_tz()) + timedelta(days=1)).date().isoformat()
    return SyntheticShowtime(
        id=str(uuid.uuid4()),
        movie_id="sandbox-movie",
        theater_id="sandbox-theater",
        hall_name="Hall 1",
        date_str=show_date,
        start="14:30",
        end="16:45",
        prices={"regular": 200, "premium": 280, "vip": 350},
        layout=make_simple_layout(rows=8, seats_per_row=12, wheelchair_row="H"),
        movie_title="Selected Movie",
        theater_name="CinePlex Downtown",
        city="Mumbai",
    )


class SandboxShowtimes:
    def __init__(self):
        self._items: dict[str, SyntheticShowtime] = {}
        self._guard = threading.Lock()

    def add(self, showtime: SyntheticShowtime) -> SyntheticShowtime:
        with self._guard:
            self._items[showtime.id] = showtime
        logger.info("Registered sandbox showtime {} on {} {}", showtime.id, showtime.date_str, showtime.start)
        return showtime

    def get(self, showtime_id: str) -> SyntheticShowtime | None:
        with self._guard:
            return self._items.get(showtime_id)

    def all(self) -> list[SyntheticShowtime]:
        with self._guard:
            return list(self._items.values())

    def clear(self) -> None:
        with self._guard:
            self._items.clear()


sandbox_showtimes = SandboxShowtimes()


def resolve_showtime(db: Session, showtime_id: str, for_update: bool = False) -> ShowtimeSource:
    synthetic = sandbox_showtimes.get(showtime_id)
    if synthetic is not None:
        return synthetic
    q = select(Showtime).where(Showtime.id == showtime_id)
    if for_update:
        # Counters must be re-read under the lock even if the row is already in the session
        q = q.with_for_update().execution_options(populate_existing=True)
    st = db.execute(q).scalar_one_or_none()
    if not st:
        raise NotFoundError("Showtime not found")
    return PersistedShowtime(st)
