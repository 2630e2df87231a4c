"""In-process keyed locks.

Every seat mutation for a showtime runs under `showtime_lock(showtime_id)` for the whole
check + write + commit, on top of the row lock taken with SELECT ... FOR UPDATE. The row
lock serializes workers across processes on PostgreSQL; the keyed lock does the same for
threads of one process and for backends that ignore FOR UPDATE (SQLite).

Entries are reference counted (holders plus waiters) and dropped when the last one leaves,
so the registry only holds keys that are in use.
"""
import threading
from contextlib import contextmanager

_guard = threading.Lock()
_locks: dict[tuple, list] = {}  # key -> [RLock, users]


@contextmanager
def keyed_lock(*key):
    key = tuple(key)
    with _guard:
        entry = _locks.get(key)
        if entry is None:
            entry = _locks[key] = [threading.RLock(), 0]
        entry[1] += 1
    try:
        with entry[0]:
            yield
    finally:
        with _guard:
            entry[1] -= 1
            if entry[1] == 0:
                del _locks[key]


def active_keys() -> int:
    with _guard:
        return len(_locks)


def showtime_lock(showtime_id: str):
    return keyed_lock("showtime", showtime_id)


def hall_schedule_lock(theater_id: str, hall_name: str, date_str: str):
    return keyed_lock("hall", theater_id, hall_name, date_str)
