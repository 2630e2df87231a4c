from sqlalchemy import String, Integer, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime, timezone
from cinereserve.db.session import Base

SEAT_TYPES = ("regular", "premium", "vip", "wheelchair")


class Theater(Base):
    __tablename__ = "theaters"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    city: Mapped[str] = mapped_column(String(80), index=True)  # drives the location price multiplier
    owner_user_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))


class Hall(Base):
    __tablename__ = "halls"
    __table_args__ = (
        UniqueConstraint("theater_id", "name", name="uq_hall_theater_name"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    theater_id: Mapped[str] = mapped_column(String(36), index=True)
    name: Mapped[str] = mapped_column(String(60))
    capacity: Mapped[int] = mapped_column(Integer, default=0)

    seats: Mapped[list["HallSeat"]] = relationship(
        back_populates="hall", cascade="all, delete-orphan", lazy="selectin"
    )


class HallSeat(Base):
    """Fixed layout fact. Occupancy lives in booked_seats, never here."""
    __tablename__ = "hall_seats"
    __table_args__ = (
        UniqueConstraint("hall_id", "row", "number", name="uq_hall_seat_position"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    hall_id: Mapped[str] = mapped_column(String(36), ForeignKey("halls.id", ondelete="CASCADE"), index=True)
    row: Mapped[str] = mapped_column(String(4))
    number: Mapped[int] = mapped_column(Integer)
    seat_type: Mapped[str] = mapped_column(String(12), default="regular")  # regular, premium, vip, wheelchair

    hall: Mapped[Hall] = relationship(back_populates="seats")
