from datetime import timedelta

from conftest import NOW, seat
from cinereserve.models.booking import CONFIRMED, EXPIRED, PENDING, Booking
from cinereserve.services import booking_service, reservation_service, showtime_service
from cinereserve.tasks import worker_jobs


def book(db, user, showtime, seats, now=NOW):
    return booking_service.create_booking(db, user_id=user.id, showtime_id=showtime.id, seats=seats,
                                          payment_method="upi", now=now)


def test_expires_only_stale_pending_bookings(db, customer, showtime):
    stale = book(db, customer, showtime, [seat("A", 1), seat("A", 9, "vip")])
    fresh = book(db, customer, showtime, [seat("A", 2)], now=NOW + timedelta(minutes=25))
    paid = book(db, customer, showtime, [seat("A", 3)])
    booking_service.confirm_payment(db, paid.id, "pi_paid", now=NOW)

    sweep_at = NOW + timedelta(minutes=31)
    assert booking_service.expire_stale(db, now=sweep_at, timeout_minutes=30) == 1

    for b in (stale, fresh, paid):
        db.refresh(b)
    assert stale.status == EXPIRED and stale.refund_amount == 0 and not stale.is_cancelled
    assert fresh.status == PENDING
    assert paid.status == CONFIRMED
    assert showtime_service.seat_availability(db, showtime.id, "A", 1)
    assert showtime_service.seat_availability(db, showtime.id, "A", 9)
    assert not showtime_service.seat_availability(db, showtime.id, "A", 2)
    db.refresh(showtime)
    assert showtime.available_regular == 26 and showtime.available_vip == 10


def test_second_sweep_is_a_no_op(db, customer, showtime):
    book(db, customer, showtime, [seat("B", 1)])
    book(db, customer, showtime, [seat("B", 2)])
    sweep_at = NOW + timedelta(hours=1)

    assert booking_service.expire_stale(db, now=sweep_at, timeout_minutes=30) == 2
    assert booking_service.expire_stale(db, now=sweep_at, timeout_minutes=30) == 0
    db.refresh(showtime)
    assert showtime.available_regular == 28


def test_expired_seats_can_be_booked_again(db, customer, other_customer, showtime):
    book(db, customer, showtime, [seat("C", 5)])
    booking_service.expire_stale(db, now=NOW + timedelta(minutes=45), timeout_minutes=30)
    again = book(db, other_customer, showtime, [seat("C", 5)], now=NOW + timedelta(minutes=46))
    assert again.status == PENDING


def test_one_failing_booking_does_not_stop_the_sweep(db, customer, showtime, monkeypatch):
    first = book(db, customer, showtime, [seat("D", 1)])
    second = book(db, customer, showtime, [seat("D", 2)], now=NOW + timedelta(minutes=1))

    real_expire = booking_service.expire_booking

    def flaky(session, booking_id, now=None):
        if booking_id == first.id:
            raise RuntimeError("disk on fire")
        return real_expire(session, booking_id, now=now)

    monkeypatch.setattr(booking_service, "expire_booking", flaky)
    assert booking_service.expire_stale(db, now=NOW + timedelta(hours=1), timeout_minutes=30) == 1

    db.refresh(first)
    db.refresh(second)
    assert first.status == PENDING
    assert second.status == EXPIRED


def test_expire_booking_skips_non_pending(db, customer, showtime):
    b = book(db, customer, showtime, [seat("D", 5)])
    booking_service.confirm_payment(db, b.id, "pi_x", now=NOW)
    assert booking_service.expire_booking(db, b.id, now=NOW + timedelta(hours=2)) is False


def test_coordinator_sweep_notifies_customer(db, customer, showtime, outbox):
    b = book(db, customer, showtime, [seat("E", 5)])
    assert reservation_service.expire_stale_bookings(db, now=NOW + timedelta(hours=1), timeout_minutes=30) == 1
    assert any(b.booking_number in subject and "expired" in subject for _, subject, _ in outbox)


def test_worker_job_uses_its_own_session(session_factory, db, customer, showtime):
    b = booking_service.create_booking(db, user_id=customer.id, showtime_id=showtime.id,
                                      seats=[seat("E", 6)], payment_method="upi")
    # Bookings created "now" in real time are not stale with the default hold
    assert worker_jobs.expire_stale_bookings(session_factory=session_factory) == {"expired": 0}
    assert worker_jobs.expire_stale_bookings(timeout_minutes=0, session_factory=session_factory) == {"expired": 1}
    db.expire_all()
    assert db.get(Booking, b.id).status == EXPIRED
