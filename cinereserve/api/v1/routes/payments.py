from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from loguru import logger
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from cinereserve.api.deps import get_current_user
from cinereserve.core.config import settings
from cinereserve.db.session import get_db
from cinereserve.models.user import User
from cinereserve.schemas.booking import booking_to_out
from cinereserve.schemas.payments import (
    PaymentIntentOut,
    PaymentIntentRequest,
    PaymentStatusOut,
    PaymentWebhookIn,
    RefundOut,
    RefundRequest,
)
from cinereserve.services import reservation_service
from cinereserve.services.payment_gateway import PaymentGatewayError, verify_webhook_signature

router = APIRouter(tags=["payments"])


@router.get("/payments/methods")
def payment_methods():
    return {"methods": settings.PAYMENT_METHODS, "currency": settings.PAYMENT_CURRENCY}


@router.post("/payments/intent", response_model=PaymentIntentOut)
def create_intent(body: PaymentIntentRequest, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    try:
        intent = reservation_service.start_payment(db, body.bookingId, body.amount, user)
    except PaymentGatewayError as e:
        logger.error("Payment intent for booking {} failed: {}", body.bookingId, e)
        raise HTTPException(status_code=502, detail="Payment processor unavailable")
    return PaymentIntentOut(bookingId=body.bookingId, paymentReference=intent.reference,
                            clientSecret=intent.client_secret, amount=intent.amount, currency=intent.currency)


@router.post("/payments/webhook")
async def payment_webhook(request: Request, db: Session = Depends(get_db)):
    """Processor callback. Body: {"paymentReference": ..., "succeeded": bool}, signed with X-Signature."""
    body = await request.body()
    if not verify_webhook_signature(body, request.headers.get("X-Signature")):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")
    try:
        event = PaymentWebhookIn.model_validate_json(body)
    except PydanticValidationError:
        raise HTTPException(status_code=400, detail="Invalid webhook payload")

    def _apply():
        booking = reservation_service.on_payment_result(db, event.paymentReference, event.succeeded)
        return booking_to_out(booking)

    # Sync session and thread locks stay off the event loop
    return {"ok": True, "booking": await run_in_threadpool(_apply)}


@router.get("/payments/booking/{booking_id}/status", response_model=PaymentStatusOut)
def payment_status(booking_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    b = reservation_service.get_booking_for(db, booking_id, user)
    out = booking_to_out(b)
    return PaymentStatusOut(bookingId=b.id, bookingNumber=b.booking_number, status=b.status,
                            paymentStatus=b.payment_status, paymentMethod=b.payment_method,
                            transactionId=b.payment_transaction_id, paidAt=out.payment.paidAt)


@router.post("/payments/refund", response_model=RefundOut)
def process_refund(body: RefundRequest, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    try:
        b = reservation_service.process_refund(db, body.bookingId, user)
    except PaymentGatewayError as e:
        logger.error("Refund for booking {} failed: {}", body.bookingId, e)
        raise HTTPException(status_code=502, detail="Payment processor unavailable; refund marked failed")
    return RefundOut(bookingId=b.id, bookingNumber=b.booking_number, refundReference=b.refund_reference,
                     amount=b.refund_amount, currency=settings.PAYMENT_CURRENCY,
                     refundStatus=b.refund_status, paymentStatus=b.payment_status)
