"""Use-case layer over the scheduler and the booking ledger.

Normalizes caller input, checks who may act on a booking, sequences the ledger call and
then fires notifications after the transition is committed.
"""
from dataclasses import dataclass, field
from datetime import datetime

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session

from cinereserve.core.config import settings
from cinereserve.core.errors import ForbiddenError, NotFoundError, ValidationError
from cinereserve.models.booking import Booking, PENDING
from cinereserve.models.user import User
from cinereserve.services import booking_service
from cinereserve.services.notification_service import notify
from cinereserve.services.payment_gateway import PaymentGateway, PaymentIntent, get_payment_gateway
from cinereserve.services.showtime_source import SeatRequest


@dataclass
class ReservationRequest:
    user_id: str
    showtime_id: str
    seats: list[dict] = field(default_factory=list)  # [{"row": "A", "number": 1, "type": "regular"}]
    payment_method: str = "card"
    special_requests: str = ""


def normalize_seats(raw: list[dict]) -> list[SeatRequest]:
    seats = []
    for item in raw or []:
        try:
            row = str(item["row"]).strip().upper()
            number = int(item["number"])
            seat_type = str(item.get("type") or item.get("seat_type") or "").strip().lower()
        except (KeyError, TypeError, ValueError):
            raise ValidationError("Each seat needs row, number and type")
        seats.append((row, number, seat_type))
    return seats


def reserve_seats(db: Session, request: ReservationRequest, now: datetime | None = None) -> Booking:
    if not request.showtime_id:
        raise ValidationError("showtimeId is required")
    booking = booking_service.create_booking(
        db,
        user_id=request.user_id,
        showtime_id=request.showtime_id.strip(),
        seats=normalize_seats(request.seats),
        payment_method=(request.payment_method or "").strip().lower(),
        special_requests=request.special_requests,
        now=now,
    )
    notify(db, booking, "created")
    return booking


def _ensure_can_view(booking: Booking, actor: User) -> None:
    if actor.role not in ("admin", "service") and booking.user_id != actor.id:
        raise ForbiddenError("Not allowed to access this booking")


def get_booking_for(db: Session, booking_id: str, actor: User) -> Booking:
    booking = booking_service.get_booking(db, booking_id)
    _ensure_can_view(booking, actor)
    return booking


def cancel_booking(db: Session, booking_id: str, actor: User, now: datetime | None = None) -> Booking:
    booking = booking_service.get_booking(db, booking_id)
    if actor.role == "admin":
        cancelled_by = "admin"
    elif booking.user_id == actor.id:
        cancelled_by = "user"
    else:
        raise ForbiddenError("Not allowed to cancel this booking")
    booking = booking_service.cancel_booking(db, booking_id, cancelled_by=cancelled_by, actor=actor.id, now=now)
    notify(db, booking, "cancelled")
    return booking


def confirm_payment(db: Session, booking_id: str, payment_reference: str, actor: str = "payment-webhook",
                    now: datetime | None = None) -> Booking:
    was_pending = booking_service.get_booking(db, booking_id).status == PENDING
    booking = booking_service.confirm_payment(db, booking_id, payment_reference, actor=actor, now=now)
    if was_pending:
        notify(db, booking, "confirmed")
    return booking


def start_payment(db: Session, booking_id: str, amount: int, actor: User,
                  gateway: PaymentGateway | None = None) -> PaymentIntent:
    """Create a processor intent for a pending booking; the amount must match the frozen total."""
    booking = get_booking_for(db, booking_id, actor)
    if amount != booking.total_amount:
        raise ValidationError("Payment amount does not match booking total")
    intent = (gateway or get_payment_gateway()).create_payment_intent(
        booking_id=booking.id, amount=booking.total_amount, currency=settings.PAYMENT_CURRENCY
    )
    booking_service.attach_payment_reference(db, booking.id, intent.reference)
    logger.info("Payment intent {} created for booking {}", intent.reference, booking.booking_number)
    return intent


def on_payment_result(db: Session, payment_reference: str, succeeded: bool, now: datetime | None = None) -> Booking:
    """Processor callback. Success confirms; failure leaves the booking pending for the expiry sweep."""
    booking = db.execute(
        select(Booking).where(Booking.payment_reference == payment_reference)
    ).scalar_one_or_none()
    if not booking:
        raise NotFoundError("No booking for this payment reference")
    if succeeded:
        return confirm_payment(db, booking.id, payment_reference, now=now)
    return booking_service.mark_payment_failed(db, booking.id)


def expire_stale_bookings(db: Session, now: datetime | None = None, timeout_minutes: int | None = None) -> int:
    def _expired(booking_id: str) -> None:
        notify(db, booking_service.get_booking(db, booking_id), "expired")

    return booking_service.expire_stale(db, now=now, timeout_minutes=timeout_minutes, on_expired=_expired)


def process_refund(db: Session, booking_id: str, actor: User, gateway: PaymentGateway | None = None,
                   now: datetime | None = None) -> Booking:
    """Send the refund recorded at cancellation to the processor.

    Owner or admin only. A processor failure leaves the refund `failed` and re-raises;
    calling again retries it.
    """
    booking = booking_service.get_booking(db, booking_id)
    if actor.role != "admin" and booking.user_id != actor.id:
        raise ForbiddenError("Not allowed to refund this booking")
    booking = booking_service.claim_refund(db, booking_id, actor=actor.id)
    try:
        refund = (gateway or get_payment_gateway()).create_refund(
            payment_reference=booking.payment_reference,
            amount=booking.refund_amount,
            currency=settings.PAYMENT_CURRENCY,
            booking_id=booking.id,
        )
    except Exception as e:
        # Never leave the refund stuck in processing
        booking_service.mark_refund_failed(db, booking_id, str(e), actor=actor.id)
        raise
    booking = booking_service.record_refund(db, booking_id, refund.reference, actor=actor.id, now=now)
    notify(db, booking, "refunded")
    return booking
