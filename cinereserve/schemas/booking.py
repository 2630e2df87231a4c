from pydantic import BaseModel, Field
from typing import List, Optional

from cinereserve.core.clock import as_utc
from cinereserve.models.booking import Booking


class SeatSelectionIn(BaseModel):
    row: str
    number: int
    type: str = "regular"


class ReservationCreate(BaseModel):
    showtimeId: str
    seats: List[SeatSelectionIn] = Field(min_length=1)
    paymentMethod: str = "card"
    specialRequests: str = ""
    userId: Optional[str] = None  # admin/service may book on behalf of a user


class TicketOut(BaseModel):
    ticketId: str
    row: str
    number: int
    type: str
    price: int


class CancellationOut(BaseModel):
    isCancelled: bool = False
    cancelledAt: Optional[str] = None
    cancelledBy: Optional[str] = None
    refundAmount: int = 0
    refundStatus: str = "none"
    refundReference: Optional[str] = None


class PaymentOut(BaseModel):
    method: str
    transactionId: str
    status: str
    paidAt: Optional[str] = None


class BookingOut(BaseModel):
    id: str
    bookingNumber: str
    userId: str
    showtimeId: str
    movieId: str
    theaterId: str
    hallName: str
    showDate: str
    showTime: str
    showEndTime: str
    tickets: List[TicketOut]
    totalAmount: int
    status: str
    specialRequests: str = ""
    payment: PaymentOut
    cancellation: CancellationOut
    createdAt: Optional[str] = None


class BookingPublicOut(BaseModel):
    """Ticket verification view; no user or payment details."""
    bookingNumber: str
    status: str
    showDate: str
    showTime: str
    hallName: str
    seats: List[str]


class CancelOut(BaseModel):
    refundAmount: int
    booking: BookingOut


class BookingPage(BaseModel):
    items: List[BookingOut]
    total: int
    page: int
    limit: int


class ConfirmPaymentIn(BaseModel):
    paymentReference: str


def _iso(value) -> Optional[str]:
    return as_utc(value).isoformat() if value else None


def booking_to_out(b: Booking) -> BookingOut:
    return BookingOut(
        id=b.id,
        bookingNumber=b.booking_number,
        userId=b.user_id,
        showtimeId=b.showtime_id,
        movieId=b.movie_id,
        theaterId=b.theater_id,
        hallName=b.hall_name,
        showDate=b.show_date,
        showTime=b.show_time,
        showEndTime=b.show_end_time,
        tickets=[
            TicketOut(ticketId=t.ticket_id, row=t.seat_row, number=t.seat_number, type=t.seat_type, price=t.seat_price)
            for t in b.tickets
        ],
        totalAmount=b.total_amount,
        status=b.status,
        specialRequests=b.special_requests or "",
        payment=PaymentOut(
            method=b.payment_method,
            transactionId=b.payment_transaction_id,
            status=b.payment_status,
            paidAt=_iso(b.paid_at),
        ),
        cancellation=CancellationOut(
            isCancelled=bool(b.is_cancelled),
            cancelledAt=_iso(b.cancelled_at),
            cancelledBy=b.cancelled_by,
            refundAmount=b.refund_amount or 0,
            refundStatus=b.refund_status or "none",
            refundReference=b.refund_reference,
        ),
        createdAt=_iso(b.created_at),
    )


def booking_to_public(b: Booking) -> BookingPublicOut:
    return BookingPublicOut(
        bookingNumber=b.booking_number,
        status=b.status,
        showDate=b.show_date,
        showTime=b.show_time,
        hallName=b.hall_name,
        seats=[f"{t.seat_row}{t.seat_number}" for t in b.tickets],
    )
