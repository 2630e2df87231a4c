import random
import string
import uuid
from collections import Counter
from datetime import datetime, timedelta

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cinereserve.core.clock import as_utc, show_datetime, theater_tz, utcnow
from cinereserve.core.config import settings
from cinereserve.core.errors import (
    CapacityError,
    NotCancellableError,
    NotFoundError,
    PaymentStateError,
    SeatUnavailableError,
    ShowtimeNotBookableError,
    ValidationError,
)
from cinereserve.models.booking import Booking, BookingTicket, PENDING, CONFIRMED, CANCELLED, EXPIRED, COMPLETED
from cinereserve.models.theater import SEAT_TYPES
from cinereserve.services.audit_service import log_audit
from cinereserve.services.locks import showtime_lock
from cinereserve.services.refund_policy import RefundPolicy, policy_from_settings
from cinereserve.services.seat_inventory import GATED_SEAT_TYPES, remaining, seat_label
from cinereserve.services.showtime_source import SeatRequest, resolve_showtime

# Which states may move to which; anything else is rejected
TRANSITIONS = {
    PENDING: {CONFIRMED, CANCELLED, EXPIRED},
    CONFIRMED: {CANCELLED, COMPLETED},
    CANCELLED: set(),
    EXPIRED: set(),
    COMPLETED: set(),
}


def _epoch_ms(now: datetime) -> int:
    return int(now.timestamp() * 1000)


def _random_suffix(k: int) -> str:
    return "".join(random.choices(string.ascii_uppercase + string.digits, k=k))


def make_booking_number(now: datetime | None = None) -> str:
    return f"BK{_epoch_ms(now or utcnow())}{_random_suffix(6)}"


def make_ticket_id(booking_number: str, position: int) -> str:
    return f"TK{booking_number}{position:02d}"


def make_transaction_id(now: datetime | None = None) -> str:
    return f"TXN{_epoch_ms(now or utcnow())}{_random_suffix(9)}"


def _allocate_booking_number(db: Session, now: datetime) -> str:
    # booking_number must be unique
    for _ in range(10):
        number = make_booking_number(now)
        exists = db.execute(select(Booking.id).where(Booking.booking_number == number)).first()
        if not exists:
            return number
    raise RuntimeError("could not allocate booking number")


def _check_transition(booking: Booking, target: str) -> bool:
    return target in TRANSITIONS.get(booking.status, set())


def validate_selection(seats: list[SeatRequest], payment_method: str) -> None:
    if not seats or len(seats) > settings.MAX_SEATS_PER_BOOKING:
        raise ValidationError(f"A booking must contain between 1 and {settings.MAX_SEATS_PER_BOOKING} seats")
    seen = set()
    for row, number, seat_type in seats:
        if not row or number is None or number < 1:
            raise ValidationError("Each seat needs a row and a positive seat number")
        if seat_type not in SEAT_TYPES:
            raise ValidationError(f"Unknown seat type: {seat_type}")
        if (row, number) in seen:
            raise ValidationError(f"Seat {seat_label(row, number)} requested twice")
        seen.add((row, number))
    if payment_method not in settings.PAYMENT_METHODS:
        raise ValidationError(f"Unsupported payment method: {payment_method}")


def create_booking(db: Session, *, user_id: str, showtime_id: str, seats: list[SeatRequest],
                   payment_method: str, special_requests: str = "", now: datetime | None = None) -> Booking:
    """Reserve every requested seat and record a pending booking, or reserve nothing.

    The whole check + occupy + commit runs under the showtime lock with the showtime row
    locked FOR UPDATE; the unique key on booked_seats catches anything that slips past.
    """
    now = as_utc(now or utcnow())
    validate_selection(seats, payment_method)
    labels = [seat_label(row, number) for row, number, _ in seats]

    with showtime_lock(showtime_id):
        source = None
        booking_id = str(uuid.uuid4())
        occupied = False
        try:
            source = resolve_showtime(db, showtime_id, for_update=True)
            reason = source.not_bookable_reason(now)
            if reason:
                raise ShowtimeNotBookableError(reason)

            layout = source.layout(db)
            for (row, number, seat_type), label in zip(seats, labels):
                actual = layout.get((row, number))
                if actual is None:
                    raise ValidationError(f"Seat {label} does not exist in {source.hall_name}")
                if actual != seat_type:
                    raise ValidationError(f"Seat {label} is a {actual} seat, not {seat_type}")

            taken = [label for (row, number, _), label in zip(seats, labels)
                     if not source.seat_available(db, row, number)]
            if taken:
                raise SeatUnavailableError(taken)

            for seat_type, wanted in Counter(t for _, _, t in seats).items():
                if seat_type in GATED_SEAT_TYPES and remaining(source, seat_type) < wanted:
                    raise CapacityError(f"Not enough {seat_type} seats available")

            booking_number = _allocate_booking_number(db, now)
            tickets = [
                BookingTicket(
                    id=str(uuid.uuid4()),
                    ticket_id=make_ticket_id(booking_number, i),
                    position=i,
                    seat_row=row,
                    seat_number=number,
                    seat_type=seat_type,
                    seat_price=source.seat_price(seat_type),
                )
                for i, (row, number, seat_type) in enumerate(seats, start=1)
            ]
            booking = Booking(
                id=booking_id,
                booking_number=booking_number,
                user_id=user_id,
                showtime_id=source.id,
                movie_id=source.movie_id,
                theater_id=source.theater_id,
                hall_name=source.hall_name,
                show_date=source.date_str,
                show_time=source.start,
                show_end_time=source.end,
                total_amount=sum(t.seat_price for t in tickets),
                status=PENDING,
                special_requests=special_requests or "",
                payment_method=payment_method,
                payment_transaction_id=make_transaction_id(now),
                payment_status="pending",
                created_at=now,
                tickets=tickets,
            )
            db.add(booking)
            source.occupy(db, booking_id, seats)
            occupied = True
            log_audit(db, user_id, "booking.created", "booking", booking_id,
                      {"showtime": source.id, "seats": labels, "total": booking.total_amount})
            db.commit()
        except IntegrityError:
            db.rollback()
            if occupied:
                source.undo_occupy(booking_id)
            logger.warning("Seat race lost on showtime {} for {}", showtime_id, labels)
            raise SeatUnavailableError(labels)
        except Exception:
            db.rollback()
            if occupied:
                source.undo_occupy(booking_id)
            raise

    db.refresh(booking)
    logger.info("Booking {} created for showtime {} seats={} total={}",
                booking.booking_number, showtime_id, labels, booking.total_amount)
    return booking


def get_booking(db: Session, booking_id: str) -> Booking:
    booking = db.get(Booking, booking_id)
    if not booking:
        raise NotFoundError("Booking not found")
    return booking


def get_booking_by_number(db: Session, booking_number: str) -> Booking:
    booking = db.execute(select(Booking).where(Booking.booking_number == booking_number)).scalar_one_or_none()
    if not booking:
        raise NotFoundError("Booking not found")
    return booking


def _lock_booking(db: Session, booking_id: str) -> Booking:
    booking = db.execute(
        select(Booking).where(Booking.id == booking_id).with_for_update().execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if not booking:
        raise NotFoundError("Booking not found")
    return booking


def _release_seats(db: Session, booking: Booking) -> int:
    try:
        source = resolve_showtime(db, booking.showtime_id, for_update=True)
    except NotFoundError:
        # A sandbox showtime may be gone after a restart; nothing is held anywhere
        logger.warning("Showtime {} of booking {} no longer resolves; no seats to release",
                       booking.showtime_id, booking.booking_number)
        return 0
    return source.release(db, booking.id)


def confirm_payment(db: Session, booking_id: str, payment_reference: str, actor: str = "payment-webhook",
                    now: datetime | None = None) -> Booking:
    """pending -> confirmed. Repeating the call with the same reference returns the booking unchanged."""
    if not payment_reference:
        raise ValidationError("payment reference is required")
    now = as_utc(now or utcnow())
    booking = get_booking(db, booking_id)
    with showtime_lock(booking.showtime_id):
        try:
            booking = _lock_booking(db, booking_id)
            if booking.status == CONFIRMED and booking.payment_reference == payment_reference:
                db.rollback()
                return booking
            if booking.status != PENDING:
                raise PaymentStateError(f"Cannot confirm payment for a {booking.status} booking")
            if booking.payment_reference and booking.payment_reference != payment_reference:
                raise PaymentStateError("Payment reference does not match the booking's payment intent")
            booking.status = CONFIRMED
            booking.payment_status = "completed"
            booking.payment_reference = payment_reference
            booking.paid_at = now
            log_audit(db, actor, "booking.confirmed", "booking", booking.id, {"reference": payment_reference})
            db.commit()
        except Exception:
            db.rollback()
            raise
    logger.info("Booking {} confirmed (ref={})", booking.booking_number, payment_reference)
    return booking


def attach_payment_reference(db: Session, booking_id: str, payment_reference: str) -> Booking:
    booking = _lock_booking(db, booking_id)
    if booking.status != PENDING:
        db.rollback()
        raise PaymentStateError(f"Cannot start a payment for a {booking.status} booking")
    booking.payment_reference = payment_reference
    db.commit()
    return booking


def mark_payment_failed(db: Session, booking_id: str, actor: str = "payment-webhook") -> Booking:
    """Record a failed payment; the booking stays pending and the sweeper expires it later."""
    booking = _lock_booking(db, booking_id)
    if booking.status != PENDING:
        db.rollback()
        return booking
    booking.payment_status = "failed"
    log_audit(db, actor, "booking.payment_failed", "booking", booking.id)
    db.commit()
    logger.info("Payment failed for booking {}", booking.booking_number)
    return booking


def cancel_booking(db: Session, booking_id: str, cancelled_by: str = "user", actor: str = "system",
                   now: datetime | None = None, policy: RefundPolicy | None = None) -> Booking:
    now = as_utc(now or utcnow())
    policy = policy or policy_from_settings()
    booking = get_booking(db, booking_id)
    with showtime_lock(booking.showtime_id):
        try:
            booking = _lock_booking(db, booking_id)
            if booking.status in (CANCELLED, EXPIRED, COMPLETED):
                raise NotCancellableError(f"Booking is already {booking.status}")
            if not _check_transition(booking, CANCELLED):
                raise NotCancellableError(f"Booking cannot be cancelled from {booking.status}")
            show_start = show_datetime(booking.show_date, booking.show_time)
            if show_start - timedelta(minutes=settings.CANCELLATION_CUTOFF_MINUTES) <= now:
                raise NotCancellableError("Cannot cancel booking after the showtime has started"
                                          if show_start <= now else "Too close to showtime to cancel")

            was_paid = booking.status == CONFIRMED
            refund = policy.refund_amount(booking.total_amount, now, show_start) if was_paid else 0
            released = _release_seats(db, booking)

            booking.status = CANCELLED
            booking.is_cancelled = True
            booking.cancelled_at = now
            booking.cancelled_by = cancelled_by
            booking.refund_amount = refund
            booking.refund_status = "pending" if refund > 0 else "none"
            log_audit(db, actor, "booking.cancelled", "booking", booking.id,
                      {"by": cancelled_by, "refund": refund, "released": released})
            db.commit()
        except Exception:
            db.rollback()
            raise
    logger.info("Booking {} cancelled by {} refund={} seats_released={}",
                booking.booking_number, cancelled_by, refund, released)
    return booking


def claim_refund(db: Session, booking_id: str, actor: str = "system") -> Booking:
    """pending/failed -> processing, so only one caller talks to the processor for a booking."""
    booking = get_booking(db, booking_id)
    with showtime_lock(booking.showtime_id):
        try:
            booking = _lock_booking(db, booking_id)
            if booking.status != CANCELLED:
                raise ValidationError("Booking is not cancelled")
            if booking.refund_status == "processed":
                raise PaymentStateError("Refund already processed")
            if booking.refund_status == "processing":
                raise PaymentStateError("Refund is already being processed")
            if (booking.refund_amount or 0) <= 0:
                raise ValidationError("No refund amount available")
            if not booking.payment_reference:
                raise PaymentStateError("Booking has no payment to refund")
            booking.refund_status = "processing"
            log_audit(db, actor, "booking.refund_started", "booking", booking.id, {"amount": booking.refund_amount})
            db.commit()
        except Exception:
            db.rollback()
            raise
    return booking


def record_refund(db: Session, booking_id: str, refund_reference: str, actor: str = "system",
                  now: datetime | None = None) -> Booking:
    now = as_utc(now or utcnow())
    booking = _lock_booking(db, booking_id)
    booking.refund_status = "processed"
    booking.refund_reference = refund_reference
    booking.refunded_at = now
    booking.payment_status = "refunded"
    log_audit(db, actor, "booking.refunded", "booking", booking.id,
              {"amount": booking.refund_amount, "reference": refund_reference})
    db.commit()
    logger.info("Refund {} of {} processed for booking {}", refund_reference, booking.refund_amount,
                booking.booking_number)
    return booking


def mark_refund_failed(db: Session, booking_id: str, reason: str, actor: str = "system") -> Booking:
    """processing -> failed; the refund can be retried."""
    booking = _lock_booking(db, booking_id)
    booking.refund_status = "failed"
    log_audit(db, actor, "booking.refund_failed", "booking", booking.id, {"reason": reason})
    db.commit()
    logger.warning("Refund for booking {} failed: {}", booking.booking_number, reason)
    return booking


def expire_booking(db: Session, booking_id: str, now: datetime | None = None) -> bool:
    """pending -> expired through the same release path as cancel. False if there was nothing to do."""
    now = as_utc(now or utcnow())
    booking = get_booking(db, booking_id)
    with showtime_lock(booking.showtime_id):
        try:
            booking = _lock_booking(db, booking_id)
            if booking.status != PENDING:
                db.rollback()
                return False
            released = _release_seats(db, booking)
            booking.status = EXPIRED
            booking.refund_amount = 0
            booking.refund_status = "none"
            log_audit(db, "system", "booking.expired", "booking", booking.id, {"released": released})
            db.commit()
        except Exception:
            db.rollback()
            raise
    logger.info("Booking {} expired, {} seats released", booking.booking_number, released)
    return True


def stale_booking_ids(db: Session, now: datetime, timeout_minutes: int) -> list[str]:
    cutoff = now - timedelta(minutes=timeout_minutes)
    return list(db.execute(
        select(Booking.id).where(Booking.status == PENDING, Booking.created_at < cutoff)
        .order_by(Booking.created_at.asc())
    ).scalars().all())


def expire_stale(db: Session, now: datetime | None = None, timeout_minutes: int | None = None,
                 on_expired=None) -> int:
    """Expire pending bookings older than `timeout_minutes`. One failing booking never stops the sweep.

    `on_expired(booking_id)` runs after each committed expiry.
    """
    now = as_utc(now or utcnow())
    timeout = settings.BOOKING_HOLD_MINUTES if timeout_minutes is None else timeout_minutes
    expired = 0
    for booking_id in stale_booking_ids(db, now, timeout):
        try:
            if expire_booking(db, booking_id, now=now):
                expired += 1
                if on_expired:
                    on_expired(booking_id)
        except Exception:
            db.rollback()
            logger.exception("Failed to expire booking {}", booking_id)
    if expired:
        logger.info("Expiry sweep: {} bookings expired", expired)
    return expired


def complete_past_bookings(db: Session, now: datetime | None = None) -> int:
    """confirmed -> completed once the showtime has ended. Seats stay occupied."""
    now = as_utc(now or utcnow())
    candidates = db.execute(
        select(Booking).where(Booking.status == CONFIRMED, Booking.show_date <= now.astimezone(theater_tz()).date().isoformat())
    ).scalars().all()
    done = 0
    for booking in candidates:
        if show_datetime(booking.show_date, booking.show_end_time) > now:
            continue
        booking.status = COMPLETED
        log_audit(db, "system", "booking.completed", "booking", booking.id)
        done += 1
    if done:
        db.commit()
        logger.info("Marked {} bookings completed", done)
    return done


def list_user_bookings(db: Session, user_id: str, status: str | None = None,
                       page: int = 1, limit: int = 10) -> tuple[list[Booking], int]:
    return _paged(db, select(Booking).where(Booking.user_id == user_id), status, page, limit)


def list_bookings(db: Session, status: str | None = None, showtime_id: str | None = None,
                  date_str: str | None = None, page: int = 1, limit: int = 20) -> tuple[list[Booking], int]:
    q = select(Booking)
    if showtime_id:
        q = q.where(Booking.showtime_id == showtime_id)
    if date_str:
        q = q.where(Booking.show_date == date_str)
    return _paged(db, q, status, page, limit)


def _paged(db: Session, q, status: str | None, page: int, limit: int) -> tuple[list[Booking], int]:
    if status:
        q = q.where(Booking.status == status)
    total = db.execute(select(func.count()).select_from(q.subquery())).scalar_one()
    page = max(page, 1)
    limit = max(1, min(limit, 100))
    items = db.execute(q.order_by(Booking.created_at.desc()).offset((page - 1) * limit).limit(limit)).scalars().all()
    return list(items), total
