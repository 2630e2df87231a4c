from datetime import datetime, timedelta

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session

from cinereserve.core.clock import as_utc, show_datetime, theater_tz, utcnow
from cinereserve.core.config import settings
from cinereserve.models.booking import Booking, CONFIRMED
from cinereserve.models.movie import Movie
from cinereserve.models.user import User
from cinereserve.services.email_service import queue_email
from cinereserve.services.seat_inventory import seat_label

SUBJECTS = {
    "created": "Booking received - {number}",
    "confirmed": "Booking confirmed - {number}",
    "cancelled": "Booking cancelled - {number}",
    "expired": "Booking expired - {number}",
    "refunded": "Refund processed - {number}",
    "reminder": "Reminder: {title} at {time} today",
}


def _movie_title(db: Session, booking: Booking) -> str:
    movie = db.get(Movie, booking.movie_id) if booking.movie_id else None
    return movie.title if movie else "Selected Movie"


def render_message(db: Session, booking: Booking, event_kind: str) -> tuple[str, str]:
    title = _movie_title(db, booking)
    subject = SUBJECTS[event_kind].format(number=booking.booking_number, title=title, time=booking.show_time)
    seats = ", ".join(f"{seat_label(t.seat_row, t.seat_number)} ({t.seat_type})" for t in booking.tickets)
    lines = [
        f"Booking number: {booking.booking_number}",
        f"Movie: {title}",
        f"Hall: {booking.hall_name}",
        f"Show: {booking.show_date} {booking.show_time}-{booking.show_end_time}",
        f"Seats: {seats}",
        f"Total: {booking.total_amount}",
        f"Status: {booking.status}",
    ]
    if event_kind in ("cancelled", "refunded"):
        lines.append(f"Refund: {booking.refund_amount} ({booking.refund_status})")
    if event_kind == "created":
        lines.append(f"Complete payment within {settings.BOOKING_HOLD_MINUTES} minutes to keep your seats.")
    if settings.CLIENT_BASE_URL:
        lines.append(f"View booking: {settings.CLIENT_BASE_URL.rstrip('/')}/bookings/{booking.booking_number}")
    return subject, "\n".join(lines)


def notify(db: Session, booking: Booking, event_kind: str) -> bool:
    """Fire-and-forget. Never raises; a booking transition is already committed when this runs."""
    try:
        user = db.get(User, booking.user_id)
        if not user or not user.email:
            logger.debug("No recipient for booking {} ({})", booking.booking_number, event_kind)
            return False
        subject, body = render_message(db, booking, event_kind)
        queue_email(db, user.email, subject, body, event_kind=event_kind,
                    related_booking_number=booking.booking_number)
        return True
    except Exception:
        db.rollback()
        logger.exception("Notification {} for booking {} failed", event_kind, booking.booking_number)
        return False


def send_upcoming_reminders(db: Session, now: datetime | None = None, window_hours: int | None = None) -> int:
    """Remind confirmed bookings whose showtime starts within the window; each booking once."""
    now = as_utc(now or utcnow())
    window = timedelta(hours=settings.REMINDER_WINDOW_HOURS if window_hours is None else window_hours)
    local_today = now.astimezone(theater_tz()).date()
    days = {local_today.isoformat(), (local_today + timedelta(days=1)).isoformat()}
    candidates = db.execute(
        select(Booking).where(
            Booking.status == CONFIRMED,
            Booking.reminder_sent_at.is_(None),
            Booking.show_date.in_(days),
        )
    ).scalars().all()
    sent = 0
    for booking in candidates:
        start = show_datetime(booking.show_date, booking.show_time)
        if not now < start <= now + window:
            continue
        if notify(db, booking, "reminder"):
            booking.reminder_sent_at = now
            db.commit()
            sent += 1
    if sent:
        logger.info("Sent {} showtime reminders", sent)
    return sent
