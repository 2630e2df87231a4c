from sqlalchemy import String, Integer, Boolean, DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime, timezone
from cinereserve.db.session import Base

PENDING = "pending"
CONFIRMED = "confirmed"
CANCELLED = "cancelled"
EXPIRED = "expired"
COMPLETED = "completed"

class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    booking_number: Mapped[str] = mapped_column(String(32), unique=True, index=True)

    user_id: Mapped[str] = mapped_column(String(36), index=True)
    showtime_id: Mapped[str] = mapped_column(String(36), index=True)

    # Denormalized for display; frozen at creation
    movie_id: Mapped[str] = mapped_column(String(36), default="")
    theater_id: Mapped[str] = mapped_column(String(36), default="")
    hall_name: Mapped[str] = mapped_column(String(60), default="")
    show_date: Mapped[str] = mapped_column(String(10))  # YYYY-MM-DD
    show_time: Mapped[str] = mapped_column(String(5))   # HH:MM
    show_end_time: Mapped[str] = mapped_column(String(5))

    total_amount: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(20), default=PENDING, index=True)  # pending, confirmed, cancelled, expired, completed
    special_requests: Mapped[str] = mapped_column(Text, default="")

    payment_method: Mapped[str] = mapped_column(String(20))  # card, wallet, upi, netbanking
    payment_transaction_id: Mapped[str] = mapped_column(String(40))
    payment_status: Mapped[str] = mapped_column(String(20), default="pending")  # pending, completed, failed, refunded
    payment_reference: Mapped[str | None] = mapped_column(String(120), nullable=True, unique=True)  # processor intent id
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    is_cancelled: Mapped[bool] = mapped_column(Boolean, default=False)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_by: Mapped[str | None] = mapped_column(String(12), nullable=True)  # user, admin, system
    refund_amount: Mapped[int] = mapped_column(Integer, default=0)
    refund_status: Mapped[str] = mapped_column(String(20), default="none")  # none, pending, processing, processed, failed
    refund_reference: Mapped[str | None] = mapped_column(String(120), nullable=True)  # processor refund id
    refunded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    reminder_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)

    tickets: Mapped[list["BookingTicket"]] = relationship(
        back_populates="booking", cascade="all, delete-orphan", order_by="BookingTicket.position", lazy="selectin"
    )


class BookingTicket(Base):
    """One seat line-item; price is frozen at booking time."""
    __tablename__ = "booking_tickets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    booking_id: Mapped[str] = mapped_column(String(36), ForeignKey("bookings.id", ondelete="CASCADE"), index=True)
    ticket_id: Mapped[str] = mapped_column(String(40), unique=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    seat_row: Mapped[str] = mapped_column(String(4))
    seat_number: Mapped[int] = mapped_column(Integer)
    seat_type: Mapped[str] = mapped_column(String(12))
    seat_price: Mapped[int] = mapped_column(Integer)

    booking: Mapped[Booking] = relationship(back_populates="tickets")
