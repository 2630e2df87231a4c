from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cinereserve.api.deps import get_current_user, require_roles
from cinereserve.core.errors import ForbiddenError
from cinereserve.db.session import get_db
from cinereserve.models.user import User
from cinereserve.schemas.booking import (
    BookingOut,
    BookingPage,
    BookingPublicOut,
    CancelOut,
    ConfirmPaymentIn,
    ReservationCreate,
    booking_to_out,
    booking_to_public,
)
from cinereserve.services import booking_service, reservation_service
from cinereserve.services.reservation_service import ReservationRequest

router = APIRouter(tags=["bookings"])


@router.post("/reservations", response_model=BookingOut, status_code=201)
def create_reservation(body: ReservationCreate, db: Session = Depends(get_db),
                       user: User = Depends(get_current_user)):
    user_id = user.id
    if body.userId and body.userId != user.id:
        if user.role not in ("admin", "service"):
            raise ForbiddenError("Cannot book on behalf of another user")
        user_id = body.userId
    booking = reservation_service.reserve_seats(db, ReservationRequest(
        user_id=user_id,
        showtime_id=body.showtimeId,
        seats=[s.model_dump() for s in body.seats],
        payment_method=body.paymentMethod,
        special_requests=body.specialRequests,
    ))
    return booking_to_out(booking)


@router.get("/bookings/my-bookings", response_model=BookingPage)
def my_bookings(status: str | None = None, page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100),
                db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    items, total = booking_service.list_user_bookings(db, user.id, status=status, page=page, limit=limit)
    return BookingPage(items=[booking_to_out(b) for b in items], total=total, page=page, limit=limit)


@router.get("/bookings/number/{booking_number}", response_model=BookingPublicOut)
def get_by_number(booking_number: str, db: Session = Depends(get_db)):
    return booking_to_public(booking_service.get_booking_by_number(db, booking_number))


@router.get("/bookings/{booking_id}", response_model=BookingOut)
def get_booking(booking_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return booking_to_out(reservation_service.get_booking_for(db, booking_id, user))


@router.post("/bookings/{booking_id}/cancel", response_model=CancelOut)
def cancel_booking(booking_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    booking = reservation_service.cancel_booking(db, booking_id, user)
    return CancelOut(refundAmount=booking.refund_amount, booking=booking_to_out(booking))


@router.post("/bookings/{booking_id}/confirm-payment", response_model=BookingOut)
def confirm_payment(booking_id: str, body: ConfirmPaymentIn, db: Session = Depends(get_db),
                    user: User = Depends(require_roles("service", "admin"))):
    booking = reservation_service.confirm_payment(db, booking_id, body.paymentReference, actor=user.id)
    return booking_to_out(booking)
