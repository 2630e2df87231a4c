from datetime import timedelta

import pytest

from conftest import NOW
from cinereserve.core.errors import ForbiddenError, NotFoundError, ValidationError
from cinereserve.models.booking import CONFIRMED, PENDING
from cinereserve.models.email_log import EmailLog
from cinereserve.services import notification_service, reservation_service
from cinereserve.services.reservation_service import ReservationRequest, normalize_seats


def request_for(user, showtime, seats, method="Card"):
    return ReservationRequest(user_id=user.id, showtime_id=showtime.id, seats=seats, payment_method=method)


def test_normalize_seats():
    assert normalize_seats([{"row": " a ", "number": "3", "type": "VIP "}]) == [("A", 3, "vip")]
    with pytest.raises(ValidationError):
        normalize_seats([{"row": "A", "number": "three", "type": "regular"}])
    with pytest.raises(ValidationError):
        normalize_seats([{"number": 1, "type": "regular"}])


def test_reserve_normalizes_and_notifies(db, customer, showtime, outbox):
    b = reservation_service.reserve_seats(db, request_for(customer, showtime, [
        {"row": "b", "number": 7, "type": "Premium"},
    ]), now=NOW)
    assert b.status == PENDING and b.payment_method == "card"
    assert b.tickets[0].seat_row == "B"
    assert outbox and outbox[0][0] == customer.email and b.booking_number in outbox[0][1]
    log = db.query(EmailLog).one()
    assert log.status == "sent" and log.event_kind == "created"


def test_unknown_showtime(db, customer):
    with pytest.raises(NotFoundError):
        reservation_service.reserve_seats(db, ReservationRequest(
            user_id=customer.id, showtime_id="missing", seats=[{"row": "A", "number": 1, "type": "regular"}],
        ), now=NOW)


def test_cancel_ownership(db, customer, other_customer, admin, showtime):
    b = reservation_service.reserve_seats(db, request_for(customer, showtime, [
        {"row": "A", "number": 1, "type": "regular"},
    ]), now=NOW)
    with pytest.raises(ForbiddenError):
        reservation_service.cancel_booking(db, b.id, other_customer, now=NOW)
    cancelled = reservation_service.cancel_booking(db, b.id, admin, now=NOW)
    assert cancelled.cancelled_by == "admin"


def test_notification_failure_never_undoes_the_transition(db, customer, showtime, monkeypatch):
    def broken_queue(*args, **kwargs):
        raise RuntimeError("mail relay down")

    monkeypatch.setattr(notification_service, "queue_email", broken_queue)
    b = reservation_service.reserve_seats(db, request_for(customer, showtime, [
        {"row": "A", "number": 2, "type": "regular"},
    ]), now=NOW)
    db.refresh(b)
    assert b.status == PENDING


def test_payment_result_drives_confirmation(db, customer, showtime, outbox):
    b = reservation_service.reserve_seats(db, request_for(customer, showtime, [
        {"row": "A", "number": 3, "type": "regular"},
    ]), now=NOW)
    intent = reservation_service.start_payment(db, b.id, b.total_amount, customer)
    assert intent.reference.startswith("pi_sandbox_") and intent.client_secret

    failed = reservation_service.on_payment_result(db, intent.reference, succeeded=False)
    assert failed.status == PENDING and failed.payment_status == "failed"

    confirmed = reservation_service.on_payment_result(db, intent.reference, succeeded=True, now=NOW)
    assert confirmed.status == CONFIRMED
    # Replayed webhook
    assert reservation_service.on_payment_result(db, intent.reference, succeeded=True).status == CONFIRMED
    assert sum(1 for _, subject, _ in outbox if subject.startswith("Booking confirmed")) == 1


def test_payment_amount_must_match_total(db, customer, showtime):
    b = reservation_service.reserve_seats(db, request_for(customer, showtime, [
        {"row": "A", "number": 4, "type": "regular"},
    ]), now=NOW)
    with pytest.raises(ValidationError):
        reservation_service.start_payment(db, b.id, b.total_amount - 1, customer)


def test_reminders_go_out_once(db, customer, showtime, outbox):
    b = reservation_service.reserve_seats(db, request_for(customer, showtime, [
        {"row": "A", "number": 5, "type": "regular"},
    ]), now=NOW)
    reservation_service.confirm_payment(db, b.id, "pi_rem", now=NOW)
    show_start = NOW + timedelta(hours=58, minutes=30)

    assert notification_service.send_upcoming_reminders(db, now=show_start - timedelta(hours=5)) == 0
    assert notification_service.send_upcoming_reminders(db, now=show_start - timedelta(hours=2)) == 1
    assert notification_service.send_upcoming_reminders(db, now=show_start - timedelta(hours=1)) == 0
    assert any(subject.startswith("Reminder:") for _, subject, _ in outbox)
