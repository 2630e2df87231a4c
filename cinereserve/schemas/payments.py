from pydantic import BaseModel


class PaymentIntentRequest(BaseModel):
    bookingId: str
    amount: int


class PaymentIntentOut(BaseModel):
    bookingId: str
    paymentReference: str
    clientSecret: str
    amount: int
    currency: str


class PaymentWebhookIn(BaseModel):
    paymentReference: str
    succeeded: bool


class PaymentStatusOut(BaseModel):
    bookingId: str
    bookingNumber: str
    status: str
    paymentStatus: str
    paymentMethod: str
    transactionId: str
    paidAt: str | None = None


class RefundRequest(BaseModel):
    bookingId: str


class RefundOut(BaseModel):
    bookingId: str
    bookingNumber: str
    refundReference: str | None = None
    amount: int
    currency: str
    refundStatus: str
    paymentStatus: str
