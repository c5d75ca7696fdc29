"""
In-process keyed locks.

Same leave request or same ledger key (employee_id, leave_type) is serialized
inside this process; different keys never contend. Row-level ``FOR UPDATE``
locks in the ledger cover other processes sharing the database.

Entries are reference-counted and dropped once no thread holds or waits on
them, so the registry only ever contains keys in use.

Lock order is always request lock, then ledger-key lock.
"""
import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator, List

_registry_lock = threading.Lock()
# key -> [lock, number of threads holding or waiting]
_locks: Dict[Hashable, List] = {}


def _acquire_entry(key: Hashable) -> threading.RLock:
    with _registry_lock:
        entry = _locks.get(key)
        if entry is None:
            entry = [threading.RLock(), 0]
            _locks[key] = entry
        entry[1] += 1
        return entry[0]


def _release_entry(key: Hashable) -> None:
    with _registry_lock:
        entry = _locks[key]
        entry[1] -= 1
        if entry[1] == 0:
            del _locks[key]


def registry_size() -> int:
    with _registry_lock:
        return len(_locks)


@contextmanager
def keyed_lock(key: Hashable) -> Iterator[None]:
    lock = _acquire_entry(key)
    try:
        with lock:
            yield
    finally:
        _release_entry(key)


def request_lock(leave_request_id: int):
    """Serialize decisions on one leave request."""
    return keyed_lock(("leave_request", leave_request_id))


def balance_lock(employee_id: int, leave_type):
    """Serialize check-then-mutate on one (employee, leave type) balance."""
    return keyed_lock(("leave_balance", employee_id, getattr(leave_type, "value", leave_type)))


def encashment_lock(encashment_id: int):
    return keyed_lock(("encashment", encashment_id))


def settlement_lock(period: int):
    return keyed_lock(("settlement", period))
