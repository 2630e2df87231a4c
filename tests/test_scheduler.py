from concurrent.futures import ThreadPoolExecutor

import pytest

from cinereserve.core.errors import NotFoundError, ScheduleConflictError, ValidationError
from cinereserve.models.audit_log import AuditLog
from cinereserve.models.showtime import Showtime
from cinereserve.services import showtime_service


def _create(db, movie, theater, start, duration=120, date_str="2030-02-01", hall="Hall 1"):
    return showtime_service.create_showtime(
        db, movie_id=movie.id, theater_id=theater.id, hall_name=hall,
        date_str=date_str, start=start, duration_minutes=duration, base_price=200,
    )


def test_create_derives_end_prices_and_counters(db, movie, theater):
    st = _create(db, movie, theater, "14:00")
    assert (st.start, st.end) == ("14:00", "16:00")
    assert st.price_table() == {"regular": 260, "premium": 390, "vip": 572}
    assert st.available_table() == {"regular": 28, "premium": 10, "vip": 10, "wheelchair": 2}
    assert st.status == "scheduled" and st.is_active


def test_duration_defaults_to_movie_runtime(db, movie, theater):
    st = showtime_service.create_showtime(
        db, movie_id=movie.id, theater_id=theater.id, hall_name="Hall 1",
        date_str="2030-02-01", start="9:05", base_price=180,
    )
    assert (st.start, st.end) == ("09:05", "11:05")


def test_overlap_is_rejected(db, movie, theater):
    _create(db, movie, theater, "14:00")
    with pytest.raises(ScheduleConflictError):
        _create(db, movie, theater, "15:00")
    with pytest.raises(ScheduleConflictError):
        _create(db, movie, theater, "13:00", duration=61)
    with pytest.raises(ScheduleConflictError):
        _create(db, movie, theater, "14:30", duration=30)


def test_half_open_boundary_allows_back_to_back(db, movie, theater):
    _create(db, movie, theater, "14:00")
    after = _create(db, movie, theater, "16:00")
    before = _create(db, movie, theater, "12:00")
    assert after.start == "16:00" and before.end == "14:00"


def test_other_day_and_cancelled_showtimes_do_not_conflict(db, movie, theater):
    first = _create(db, movie, theater, "14:00")
    _create(db, movie, theater, "14:00", date_str="2030-02-02")
    showtime_service.cancel_showtime(db, first.id)
    replacement = _create(db, movie, theater, "15:00")
    assert replacement.is_active


def test_show_must_end_same_day(db, movie, theater):
    with pytest.raises(ValidationError):
        _create(db, movie, theater, "23:00", duration=90)


@pytest.mark.parametrize("kwargs", [
    {"date_str": "2030-13-01"},
    {"start": "25:00"},
    {"duration": 0},
])
def test_invalid_input(db, movie, theater, kwargs):
    params = {"start": "14:00", **kwargs}
    with pytest.raises(ValidationError):
        _create(db, movie, theater, **params)


def test_unknown_hall_and_movie(db, movie, theater):
    with pytest.raises(NotFoundError):
        _create(db, movie, theater, "14:00", hall="Hall 9")
    with pytest.raises(NotFoundError):
        showtime_service.create_showtime(db, movie_id="nope", theater_id=theater.id, hall_name="Hall 1",
                                         date_str="2030-02-01", start="14:00", base_price=200)


def test_concurrent_overlapping_creations_only_one_wins(session_factory, movie, theater):
    movie_id, theater_id = movie.id, theater.id

    def attempt(start):
        db = session_factory()
        try:
            showtime_service.create_showtime(db, movie_id=movie_id, theater_id=theater_id, hall_name="Hall 1",
                                             date_str="2030-02-01", start=start, base_price=200)
            return "ok"
        except ScheduleConflictError:
            return "conflict"
        finally:
            db.close()

    with ThreadPoolExecutor(max_workers=6) as pool:
        results = list(pool.map(attempt, ["14:00", "14:30", "15:00", "14:15", "15:15", "14:45"]))

    assert results.count("ok") == 1
    db = session_factory()
    try:
        assert db.query(Showtime).count() == 1
    finally:
        db.close()


def test_seat_map_and_availability(db, showtime):
    seat_map = showtime_service.seat_map(db, showtime.id)
    assert [r["row"] for r in seat_map["rows"]] == ["A", "B", "C", "D", "E"]
    row_a = seat_map["rows"][0]["seats"]
    assert [s["number"] for s in row_a] == list(range(1, 11))
    assert row_a[0] == {"number": 1, "type": "regular", "price": 338, "available": True, "booked": False}
    assert row_a[9]["type"] == "vip" and row_a[9]["price"] == 744
    assert seat_map["rows"][4]["seats"][0]["type"] == "wheelchair"
    assert showtime_service.seat_availability(db, showtime.id, "A", 1)


def test_reprice_changes_live_table_and_audits(db, showtime):
    st = showtime_service.reprice_showtime(db, showtime.id, 100, actor="owner-1")
    assert st.price_table() == {"regular": 169, "premium": 254, "vip": 372}
    actions = [a.action for a in db.query(AuditLog).filter(AuditLog.entity_id == showtime.id)]
    assert "showtime.created" in actions and "showtime.repriced" in actions


def test_list_filters(db, movie, theater):
    _create(db, movie, theater, "10:00")
    _create(db, movie, theater, "18:00")
    _create(db, movie, theater, "18:00", date_str="2030-02-03")
    items, total = showtime_service.list_showtimes(db, date_str="2030-02-01", city="mumbai")
    assert total == 2 and [s.start for s in items] == ["10:00", "18:00"]
    items, total = showtime_service.list_showtimes(db, city="Delhi")
    assert total == 0
    items, total = showtime_service.list_showtimes(db, movie_id=movie.id, limit=2, page=2)
    assert total == 3 and len(items) == 1
