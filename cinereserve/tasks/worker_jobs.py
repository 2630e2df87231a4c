"""Task bodies, kept free of Celery so they can be called directly (tests, admin endpoints)."""
from loguru import logger
from sqlalchemy.exc import OperationalError, ProgrammingError
from sqlalchemy.orm import Session

from cinereserve.db.session import SessionLocal
from cinereserve.services import booking_service, reservation_service
from cinereserve.services.email_service import process_pending_emails
from cinereserve.services.notification_service import send_upcoming_reminders as _send_reminders


def _run(name: str, fn, session_factory=SessionLocal):
    db: Session = session_factory()
    try:
        try:
            return fn(db)
        except (ProgrammingError, OperationalError) as e:
            # DB not migrated yet; don't crash the worker.
            db.rollback()
            logger.warning("{} skipped: {}", name, e.__class__.__name__)
            return {"skipped": True, "reason": "missing_tables"}
    finally:
        db.close()


def expire_stale_bookings(timeout_minutes: int | None = None, session_factory=SessionLocal):
    return _run("expire_stale_bookings",
                lambda db: {"expired": reservation_service.expire_stale_bookings(db, timeout_minutes=timeout_minutes)},
                session_factory)


def complete_past_bookings(session_factory=SessionLocal):
    return _run("complete_past_bookings",
                lambda db: {"completed": booking_service.complete_past_bookings(db)},
                session_factory)


def send_upcoming_reminders(session_factory=SessionLocal):
    return _run("send_upcoming_reminders", lambda db: {"sent": _send_reminders(db)}, session_factory)


def process_email_queue(limit: int = 50, session_factory=SessionLocal):
    return _run("process_email_queue", lambda db: process_pending_emails(db, limit=limit), session_factory)
