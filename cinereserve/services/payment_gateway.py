import hashlib
import hmac
import json
import uuid
from dataclasses import dataclass
from typing import Protocol

import requests
from loguru import logger

from cinereserve.core.config import settings


@dataclass
class PaymentIntent:
    reference: str      # processor-side intent id, echoed back by the webhook
    client_secret: str  # handed to the browser to complete the payment
    amount: int
    currency: str


@dataclass
class Refund:
    reference: str  # processor-side refund id
    amount: int
    status: str


class PaymentGatewayError(RuntimeError):
    pass


class PaymentGateway(Protocol):
    def create_payment_intent(self, *, booking_id: str, amount: int, currency: str) -> PaymentIntent: ...
    def create_refund(self, *, payment_reference: str, amount: int, currency: str, booking_id: str) -> Refund: ...


class SandboxPaymentGateway:
    """Mints intents locally; the client secret is derived from the reference so it is stable per intent."""

    def create_payment_intent(self, *, booking_id: str, amount: int, currency: str) -> PaymentIntent:
        reference = f"pi_sandbox_{uuid.uuid4().hex[:24]}"
        secret = hashlib.sha256(f"{reference}:{booking_id}:{amount}".encode("utf-8")).hexdigest()[:32]
        return PaymentIntent(reference=reference, client_secret=f"{reference}_secret_{secret}",
                             amount=amount, currency=currency)

    def create_refund(self, *, payment_reference: str, amount: int, currency: str, booking_id: str) -> Refund:
        return Refund(reference=f"re_sandbox_{uuid.uuid4().hex[:24]}", amount=amount, status="succeeded")


@dataclass
class RestGatewayConfig:
    base_url: str   # e.g. https://payments.example.com/v1
    api_key: str
    timeout: int = 25


class RestPaymentGateway:
    def __init__(self, cfg: RestGatewayConfig):
        self.cfg = cfg

    def request(self, method: str, path: str, payload: dict | None = None) -> dict:
        body = json.dumps(payload or {}, separators=(",", ":"))
        url = f"{self.cfg.base_url.rstrip('/')}{path}"
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authorization": f"Bearer {self.cfg.api_key}",
        }
        try:
            r = requests.request(method=method.upper(), url=url, data=body, headers=headers, timeout=self.cfg.timeout)
        except requests.RequestException as e:
            raise PaymentGatewayError(f"Payment processor unreachable: {e}") from e
        try:
            data = r.json() if r.text else {}
        except ValueError:
            data = {"raw": r.text}
        if r.status_code >= 400:
            raise PaymentGatewayError(f"Payment processor {r.status_code}: {data}")
        return data

    def create_payment_intent(self, *, booking_id: str, amount: int, currency: str) -> PaymentIntent:
        data = self.request("POST", "/payment_intents", {
            "amount": amount,
            "currency": currency.lower(),
            "metadata": {"bookingId": booking_id},
        })
        reference, secret = data.get("id"), data.get("client_secret")
        if not reference or not secret:
            raise PaymentGatewayError(f"Malformed payment intent response: {data}")
        return PaymentIntent(reference=reference, client_secret=secret, amount=amount, currency=currency)

    def create_refund(self, *, payment_reference: str, amount: int, currency: str, booking_id: str) -> Refund:
        data = self.request("POST", "/refunds", {
            "payment_intent": payment_reference,
            "amount": amount,
            "currency": currency.lower(),
            "reason": "requested_by_customer",
            "metadata": {"bookingId": booking_id, "reason": "booking_cancellation"},
        })
        reference = data.get("id")
        if not reference:
            raise PaymentGatewayError(f"Malformed refund response: {data}")
        if data.get("status") in ("failed", "canceled"):
            raise PaymentGatewayError(f"Refund {reference} was {data['status']}")
        return Refund(reference=reference, amount=amount, status=data.get("status") or "pending")


def get_payment_gateway() -> PaymentGateway:
    if settings.PAYMENT_SANDBOX or not settings.PAYMENT_API_URL:
        return SandboxPaymentGateway()
    if not settings.PAYMENT_API_KEY:
        raise PaymentGatewayError("Payment processor is not configured (missing PAYMENT_API_KEY)")
    logger.debug("Using REST payment gateway at {}", settings.PAYMENT_API_URL)
    return RestPaymentGateway(RestGatewayConfig(base_url=settings.PAYMENT_API_URL, api_key=settings.PAYMENT_API_KEY))


def sign_webhook_body(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_webhook_signature(body: bytes, signature: str | None, secret: str | None = None) -> bool:
    """HMAC-SHA256 hex of the raw body. Without a configured secret nothing verifies."""
    secret = settings.PAYMENT_WEBHOOK_SECRET if secret is None else secret
    if not secret:
        logger.error("PAYMENT_WEBHOOK_SECRET is not set; rejecting payment webhook")
        return False
    if not signature:
        return False
    return hmac.compare_digest(sign_webhook_body(body, secret), signature.strip())
