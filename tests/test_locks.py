import threading
import time

from cinereserve.services import locks
from cinereserve.services.locks import hall_schedule_lock, showtime_lock


def test_registry_drops_released_keys():
    before = locks.active_keys()
    for i in range(1000):
        with showtime_lock(f"st-{i}"):
            pass
    with hall_schedule_lock("t1", "Hall 1", "2030-01-12"):
        assert locks.active_keys() == before + 1
    assert locks.active_keys() == before


def test_reentrant_for_the_same_thread():
    before = locks.active_keys()
    with showtime_lock("st-nested"):
        with showtime_lock("st-nested"):
            assert locks.active_keys() == before + 1
    assert locks.active_keys() == before


def test_waiter_shares_the_holders_lock():
    entered, release = threading.Event(), threading.Event()
    order = []

    def holder():
        with showtime_lock("st-shared"):
            entered.set()
            release.wait(5)
            order.append("holder")

    def waiter():
        entered.wait(5)
        with showtime_lock("st-shared"):
            order.append("waiter")

    threads = [threading.Thread(target=holder), threading.Thread(target=waiter)]
    for t in threads:
        t.start()
    entered.wait(5)
    time.sleep(0.05)
    # The waiter is blocked on the same entry, so the key is still registered
    assert order == [] and locks.active_keys() == 1
    release.set()
    for t in threads:
        t.join(5)
    assert order == ["holder", "waiter"]
    assert locks.active_keys() == 0
