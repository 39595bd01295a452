"""
Per-slot serialization for booking writes.

Two layers keep a (date, court, hour) slot exclusive:

1. In-process: SlotLockRegistry hands out one lock per slot key, acquired with
   a bounded wait. Unrelated slots never share a lock, so they are booked in
   parallel; a hot slot fails fast with Contention instead of queueing forever.
2. Storage: the partial unique index uq_booking_active_slot and conditional
   status updates. This is what holds across several service instances; the
   storage lock wait is bounded with the same timeout (lock_timeout on
   PostgreSQL, busy_timeout on SQLite).

classify_storage_error() maps driver errors back onto the reservation taxonomy.
"""
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterator, Tuple

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlmodel import Session

from courtbook.services.reservation_errors import Contention, ReservationError, SlotTaken, StorageFailure

logger = logging.getLogger(__name__)

SlotKey = Tuple[date, int, int]

# SQLSTATEs that mean "gave up waiting for a lock"
_PG_LOCK_WAIT_CODES = ("55P03", "40P01")
_PG_UNIQUE_VIOLATION = "23505"


def describe_slot(key: SlotKey) -> str:
    slot_date, court, hour = key
    return f"{slot_date.isoformat()} court {court} {hour:02d}:00"


@dataclass
class _SlotLockEntry:
    lock: threading.Lock
    refs: int = 0


class SlotLockRegistry:
    """Reference-counted locks keyed by slot; entries vanish once nobody holds or waits on them."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: Dict[SlotKey, _SlotLockEntry] = {}

    def _checkout(self, key: SlotKey) -> _SlotLockEntry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = _SlotLockEntry(lock=threading.Lock())
                self._entries[key] = entry
            entry.refs += 1
            return entry

    def _checkin(self, key: SlotKey, entry: _SlotLockEntry) -> None:
        with self._guard:
            entry.refs -= 1
            if entry.refs == 0 and self._entries.get(key) is entry:
                del self._entries[key]

    def tracked_keys(self) -> int:
        with self._guard:
            return len(self._entries)

    @contextmanager
    def hold(self, key: SlotKey, timeout_ms: int) -> Iterator[None]:
        """
        Hold the lock for one slot key.

        Raises:
            Contention: the lock was not acquired within timeout_ms
        """
        entry = self._checkout(key)
        try:
            if not entry.lock.acquire(timeout=max(timeout_ms, 0) / 1000.0):
                logger.warning("Slot lock wait exceeded %dms for %s", timeout_ms, describe_slot(key))
                raise Contention(f"Slot {describe_slot(key)} is busy, try again")
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            self._checkin(key, entry)


slot_locks = SlotLockRegistry()


def apply_storage_lock_timeout(session: Session, timeout_ms: int) -> None:
    """Bound how long the current transaction may wait on row/index locks."""
    dialect = session.get_bind().dialect.name
    ms = int(max(timeout_ms, 0))
    if dialect == "postgresql":
        # SET LOCAL only lasts for the current transaction
        session.execute(text(f"SET LOCAL lock_timeout = '{ms}ms'"))
    elif dialect == "sqlite":
        session.execute(text(f"PRAGMA busy_timeout = {ms}"))


def _pgcode(exc: DBAPIError) -> str:
    return str(getattr(exc.orig, "pgcode", "") or "")


def is_lock_wait_error(exc: Exception) -> bool:
    if not isinstance(exc, OperationalError):
        return False
    if _pgcode(exc) in _PG_LOCK_WAIT_CODES:
        return True
    msg = str(exc).lower()
    return "database is locked" in msg or "lock timeout" in msg or "could not obtain lock" in msg


def is_slot_unique_violation(exc: Exception) -> bool:
    if not isinstance(exc, IntegrityError):
        return False
    if _pgcode(exc) == _PG_UNIQUE_VIOLATION:
        return True
    msg = str(exc)
    return "uq_booking_active_slot" in msg or "UNIQUE constraint failed" in msg


def classify_storage_error(exc: Exception, key: SlotKey) -> ReservationError:
    """Translate a driver error raised inside a slot write into the reservation taxonomy."""
    if is_slot_unique_violation(exc):
        return SlotTaken(f"Slot {describe_slot(key)} is already booked")
    if is_lock_wait_error(exc):
        return Contention(f"Slot {describe_slot(key)} is busy, try again")
    return StorageFailure("Booking storage is unavailable; re-check your bookings before retrying")
