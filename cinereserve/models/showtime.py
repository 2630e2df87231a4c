from sqlalchemy import String, Integer, Boolean, DateTime, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from cinereserve.db.session import Base


class Showtime(Base):
    __tablename__ = "showtimes"
    __table_args__ = (
        Index("ix_showtimes_hall_schedule", "theater_id", "hall_name", "date_str"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    movie_id: Mapped[str] = mapped_column(String(36), index=True)
    theater_id: Mapped[str] = mapped_column(String(36), index=True)
    hall_id: Mapped[str] = mapped_column(String(36), index=True)
    hall_name: Mapped[str] = mapped_column(String(60))

    date_str: Mapped[str] = mapped_column(String(10), index=True)  # YYYY-MM-DD
    start: Mapped[str] = mapped_column(String(5))  # HH:MM
    end: Mapped[str] = mapped_column(String(5))    # HH:MM, same day as start

    base_price: Mapped[int] = mapped_column(Integer, default=0)
    price_regular: Mapped[int] = mapped_column(Integer)
    price_premium: Mapped[int] = mapped_column(Integer)
    price_vip: Mapped[int] = mapped_column(Integer)

    # Per-type remaining counters; mutated only together with booked_seats rows
    available_regular: Mapped[int] = mapped_column(Integer, default=0)
    available_premium: Mapped[int] = mapped_column(Integer, default=0)
    available_vip: Mapped[int] = mapped_column(Integer, default=0)
    available_wheelchair: Mapped[int] = mapped_column(Integer, default=0)

    status: Mapped[str] = mapped_column(String(12), default="scheduled")  # scheduled, cancelled, completed
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def price_table(self) -> dict[str, int]:
        return {"regular": self.price_regular, "premium": self.price_premium, "vip": self.price_vip}

    def available_table(self) -> dict[str, int]:
        return {
            "regular": self.available_regular,
            "premium": self.available_premium,
            "vip": self.available_vip,
            "wheelchair": self.available_wheelchair,
        }


class BookedSeat(Base):
    """Occupancy of one seat for one showtime. The unique key is the no-double-booking backstop."""
    __tablename__ = "booked_seats"
    __table_args__ = (
        UniqueConstraint("showtime_id", "row", "number", name="uq_booked_seat_showtime_position"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    showtime_id: Mapped[str] = mapped_column(String(36), index=True)
    row: Mapped[str] = mapped_column(String(4))
    number: Mapped[int] = mapped_column(Integer)
    seat_type: Mapped[str] = mapped_column(String(12))
    booking_id: Mapped[str] = mapped_column(String(36), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
