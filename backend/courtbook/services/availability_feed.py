"""
Availability-changed notifications keyed by date.

Writers publish only after their transaction committed, so anyone who re-reads
availability after seeing a new revision observes the committed state. The
feed is transport-agnostic: the API exposes it as a long-poll endpoint, and
in-process listeners (push transports, caches) can subscribe to every change.

Writers run in worker threads; long-poll waiters are coroutines parked on the
event loop, so an open long-poll never occupies a worker thread.
"""
import asyncio
import logging
import threading
from dataclasses import dataclass
from datetime import date
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AvailabilityChange:
    slot_date: date
    revision: int
    court: int
    hour: int
    status: str  # occupancy after the change: free | booked | checked_in
    booking_id: str


Listener = Callable[[AvailabilityChange], None]
Waker = Callable[[], None]


class AvailabilityFeed:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._revisions: Dict[date, int] = {}
        self._listeners: List[Listener] = []
        self._waiters: Dict[date, List[Waker]] = {}

    def revision(self, slot_date: date) -> int:
        with self._lock:
            return self._revisions.get(slot_date, 0)

    def publish(self, slot_date: date, court: int, hour: int, status: str, booking_id: str) -> AvailabilityChange:
        with self._lock:
            revision = self._revisions.get(slot_date, 0) + 1
            self._revisions[slot_date] = revision
            listeners = list(self._listeners)
            wakers = self._waiters.pop(slot_date, [])

        for wake in wakers:
            wake()

        change = AvailabilityChange(
            slot_date=slot_date,
            revision=revision,
            court=court,
            hour=hour,
            status=status,
            booking_id=booking_id,
        )
        for listener in listeners:
            try:
                listener(change)
            except Exception:
                # The write already committed; a broken listener must not turn it into an error.
                logger.exception("Availability listener failed for %s rev %d", slot_date, revision)
        return change

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def _discard_waiter(self, slot_date: date, wake: Waker) -> None:
        with self._lock:
            wakers = self._waiters.get(slot_date)
            if wakers and wake in wakers:
                wakers.remove(wake)
                if not wakers:
                    del self._waiters[slot_date]

    async def wait_for_change(self, slot_date: date, since: Optional[int], timeout_s: float) -> int:
        """
        Wait until the date's revision differs from `since` or the timeout passes.

        Without `since` the current revision is returned at once. A revision
        lower than `since` (process restarted) also counts as a change so the
        caller resynchronizes. Returns the current revision.
        """
        loop = asyncio.get_running_loop()
        changed = asyncio.Event()

        def _wake() -> None:
            # publish() runs in a worker thread
            if not loop.is_closed():
                loop.call_soon_threadsafe(changed.set)

        with self._lock:
            current = self._revisions.get(slot_date, 0)
            if since is None or current != since:
                return current
            self._waiters.setdefault(slot_date, []).append(_wake)

        try:
            await asyncio.wait_for(changed.wait(), timeout=max(timeout_s, 0.0))
        except asyncio.TimeoutError:
            logger.debug("No availability change for %s since rev %d", slot_date, since)
        finally:
            self._discard_waiter(slot_date, _wake)
        return self.revision(slot_date)


feed = AvailabilityFeed()


def get_feed() -> AvailabilityFeed:
    """FastAPI dependency returning the process-wide feed."""
    return feed
