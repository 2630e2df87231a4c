import hashlib
import hmac
import json

from conftest import auth_headers
from cinereserve.core.config import settings

API = "/api/v1"


def reserve(client, user, showtime, seats, method="card"):
    return client.post(f"{API}/reservations", headers=auth_headers(user), json={
        "showtimeId": showtime.id,
        "seats": seats,
        "paymentMethod": method,
    })


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_register_login_me(client):
    r = client.post(f"{API}/auth/register", json={"email": "Fan@Example.com", "password": "popcorn123", "fullName": "Fan"})
    assert r.status_code == 201
    assert client.post(f"{API}/auth/register", json={"email": "fan@example.com", "password": "popcorn123"}).status_code == 409

    r = client.post(f"{API}/auth/login", json={"email": "fan@example.com", "password": "popcorn123"})
    assert r.status_code == 200
    token = r.json()["access_token"]
    me = client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"}).json()
    assert me["email"] == "fan@example.com" and me["role"] == "customer"

    refreshed = client.post(f"{API}/auth/refresh", params={"refresh_token": r.json()["refresh_token"]})
    assert refreshed.status_code == 200
    # An access token is not a refresh token
    assert client.post(f"{API}/auth/refresh", params={"refresh_token": token}).status_code == 401


def test_requires_authentication(client, showtime):
    r = client.post(f"{API}/reservations", json={"showtimeId": showtime.id, "seats": [{"row": "A", "number": 1}]})
    assert r.status_code == 401


def test_reserve_and_seat_map(client, customer, showtime):
    r = reserve(client, customer, showtime, [{"row": "A", "number": 1, "type": "regular"},
                                             {"row": "A", "number": 10, "type": "vip"}])
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["status"] == "pending"
    assert body["totalAmount"] == 338 + 744 == sum(t["price"] for t in body["tickets"])
    assert body["payment"]["method"] == "card"
    assert body["cancellation"]["isCancelled"] is False

    seat_map = client.get(f"{API}/showtimes/{showtime.id}/seatmap").json()
    row_a = {s["number"]: s for s in seat_map["rows"][0]["seats"]}
    assert row_a[1]["booked"] and not row_a[1]["available"]
    assert row_a[2]["available"]
    assert seat_map["availableSeats"]["vip"] == 9


def test_conflict_names_the_seat(client, customer, other_customer, showtime):
    assert reserve(client, customer, showtime, [{"row": "C", "number": 2, "type": "regular"}]).status_code == 201
    r = reserve(client, other_customer, showtime, [{"row": "C", "number": 1, "type": "regular"},
                                                   {"row": "C", "number": 2, "type": "regular"}])
    assert r.status_code == 409
    assert r.json() == {"kind": "SeatUnavailableError", "detail": "Seat C2 is not available", "seats": ["C2"]}
    assert client.get(f"{API}/showtimes/{showtime.id}/seatmap").json()["rows"][2]["seats"][0]["available"]


def test_validation_and_not_found(client, customer, showtime):
    r = reserve(client, customer, showtime, [])
    assert r.status_code == 400 and r.json()["kind"] == "ValidationError"

    too_many = [{"row": "A", "number": n, "type": "regular"} for n in range(1, 7)] + \
               [{"row": "B", "number": n, "type": "regular"} for n in range(1, 6)]
    r = reserve(client, customer, showtime, too_many)
    assert r.status_code == 400 and r.json()["kind"] == "ValidationError"

    r = reserve(client, customer, showtime, [{"row": "A", "number": 1, "type": "regular"}], method="barter")
    assert r.status_code == 400

    r = client.post(f"{API}/reservations", headers=auth_headers(customer), json={
        "showtimeId": "missing", "seats": [{"row": "A", "number": 1, "type": "regular"}],
    })
    assert r.status_code == 404 and r.json()["kind"] == "NotFoundError"


def test_cancel_flow(client, customer, other_customer, showtime):
    booking = reserve(client, customer, showtime, [{"row": "D", "number": 1, "type": "regular"}]).json()

    r = client.post(f"{API}/bookings/{booking['id']}/cancel", headers=auth_headers(other_customer))
    assert r.status_code == 403

    r = client.post(f"{API}/bookings/{booking['id']}/cancel", headers=auth_headers(customer))
    assert r.status_code == 200
    assert r.json()["refundAmount"] == 0
    assert r.json()["booking"]["cancellation"]["cancelledBy"] == "user"

    r = client.post(f"{API}/bookings/{booking['id']}/cancel", headers=auth_headers(customer))
    assert r.status_code == 400 and r.json()["kind"] == "NotCancellableError"

    assert client.post(f"{API}/bookings/nope/cancel", headers=auth_headers(customer)).status_code == 404


def test_confirm_payment_is_trusted_and_idempotent(client, customer, service_user, showtime):
    booking = reserve(client, customer, showtime, [{"row": "D", "number": 2, "type": "regular"}]).json()
    url = f"{API}/bookings/{booking['id']}/confirm-payment"

    assert client.post(url, headers=auth_headers(customer), json={"paymentReference": "pi_1"}).status_code == 403

    first = client.post(url, headers=auth_headers(service_user), json={"paymentReference": "pi_1"})
    assert first.status_code == 200 and first.json()["status"] == "confirmed"
    again = client.post(url, headers=auth_headers(service_user), json={"paymentReference": "pi_1"})
    assert again.status_code == 200 and again.json()["payment"]["paidAt"] == first.json()["payment"]["paidAt"]

    other = client.post(url, headers=auth_headers(service_user), json={"paymentReference": "pi_2"})
    assert other.status_code == 409 and other.json()["kind"] == "PaymentStateError"

    cancelled = client.post(f"{API}/bookings/{booking['id']}/cancel", headers=auth_headers(customer)).json()
    assert cancelled["refundAmount"] == 338
    assert cancelled["booking"]["cancellation"]["refundStatus"] == "pending"


def test_booking_reads(client, customer, other_customer, admin, showtime):
    booking = reserve(client, customer, showtime, [{"row": "D", "number": 3, "type": "regular"}]).json()

    assert client.get(f"{API}/bookings/{booking['id']}", headers=auth_headers(customer)).status_code == 200
    assert client.get(f"{API}/bookings/{booking['id']}", headers=auth_headers(other_customer)).status_code == 403
    assert client.get(f"{API}/bookings/{booking['id']}", headers=auth_headers(admin)).status_code == 200

    public = client.get(f"{API}/bookings/number/{booking['bookingNumber']}").json()
    assert public == {"bookingNumber": booking["bookingNumber"], "status": "pending", "showDate": "2030-01-12",
                      "showTime": "19:30", "hallName": "Hall 1", "seats": ["D3"]}

    mine = client.get(f"{API}/bookings/my-bookings", headers=auth_headers(customer)).json()
    assert mine["total"] == 1 and mine["items"][0]["id"] == booking["id"]
    assert client.get(f"{API}/bookings/my-bookings", headers=auth_headers(other_customer)).json()["total"] == 0

    listing = client.get(f"{API}/admin/bookings", headers=auth_headers(admin), params={"status": "pending"})
    assert listing.json()["total"] == 1
    assert client.get(f"{API}/admin/bookings", headers=auth_headers(customer)).status_code == 403


def test_showtime_management(client, owner, customer, movie, theater):
    body = {"movieId": movie.id, "theaterId": theater.id, "hallName": "Hall 1",
            "date": "2030-03-01", "startTime": "14:00", "basePrice": 200}

    assert client.post(f"{API}/showtimes", headers=auth_headers(customer), json=body).status_code == 403

    r = client.post(f"{API}/showtimes", headers=auth_headers(owner), json=body)
    assert r.status_code == 201, r.text
    created = r.json()
    assert created["endTime"] == "16:00" and created["prices"] == {"regular": 260, "premium": 390, "vip": 572}

    r = client.post(f"{API}/showtimes", headers=auth_headers(owner), json={**body, "startTime": "15:00"})
    assert r.status_code == 409 and r.json()["kind"] == "ScheduleConflictError"
    assert client.post(f"{API}/showtimes", headers=auth_headers(owner),
                       json={**body, "startTime": "16:00"}).status_code == 201

    listed = client.get(f"{API}/showtimes", params={"date": "2030-03-01", "city": "Mumbai"}).json()
    assert listed["total"] == 2

    r = client.patch(f"{API}/showtimes/{created['id']}/price", headers=auth_headers(owner), json={"basePrice": 100})
    assert r.json()["prices"]["vip"] == 286

    r = client.delete(f"{API}/showtimes/{created['id']}", headers=auth_headers(owner))
    assert r.json()["status"] == "cancelled" and r.json()["isActive"] is False
    assert client.get(f"{API}/showtimes/{created['id']}").json()["status"] == "cancelled"


def test_payment_intent_and_signed_webhook(client, customer, showtime, monkeypatch):
    booking = reserve(client, customer, showtime, [{"row": "D", "number": 4, "type": "regular"}]).json()

    r = client.post(f"{API}/payments/intent", headers=auth_headers(customer),
                    json={"bookingId": booking["id"], "amount": booking["totalAmount"] + 5})
    assert r.status_code == 400

    intent = client.post(f"{API}/payments/intent", headers=auth_headers(customer),
                         json={"bookingId": booking["id"], "amount": booking["totalAmount"]}).json()
    assert intent["currency"] == "INR" and intent["clientSecret"]

    monkeypatch.setattr(settings, "PAYMENT_WEBHOOK_SECRET", "whsec_test")
    payload = json.dumps({"paymentReference": intent["paymentReference"], "succeeded": True}).encode()
    assert client.post(f"{API}/payments/webhook", content=payload,
                       headers={"X-Signature": "bad"}).status_code == 401

    signature = hmac.new(b"whsec_test", payload, hashlib.sha256).hexdigest()
    r = client.post(f"{API}/payments/webhook", content=payload, headers={"X-Signature": signature})
    assert r.status_code == 200 and r.json()["booking"]["status"] == "confirmed"

    status = client.get(f"{API}/payments/booking/{booking['id']}/status", headers=auth_headers(customer)).json()
    assert status["paymentStatus"] == "completed" and status["paidAt"]


def test_admin_sweeps(client, admin, customer, showtime):
    reserve(client, customer, showtime, [{"row": "D", "number": 5, "type": "regular"}])
    r = client.post(f"{API}/admin/bookings/expire-stale", headers=auth_headers(admin))
    assert r.json() == {"expired": 0}
    r = client.post(f"{API}/admin/bookings/expire-stale", headers=auth_headers(admin), params={"timeoutMinutes": 0})
    assert r.json() == {"expired": 1}
    assert client.get(f"{API}/showtimes/{showtime.id}/seatmap").json()["rows"][3]["seats"][4]["available"]
