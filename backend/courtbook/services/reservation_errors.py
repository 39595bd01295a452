"""
Error taxonomy for the reservation service.

Each error carries a stable machine-readable kind and the HTTP status the API
answers with. SlotTaken and Contention are expected outcomes of racing for a
slot: callers re-read availability, the service never retries on their behalf.
"""


class ReservationError(Exception):
    """Base exception for reservation errors"""

    kind = "RESERVATION_ERROR"
    status_code = 400
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_detail(self) -> dict:
        return {"kind": self.kind, "message": self.message, "retryable": self.retryable}


class Unauthenticated(ReservationError):
    kind = "UNAUTHENTICATED"
    status_code = 401


class Forbidden(ReservationError):
    kind = "FORBIDDEN"
    status_code = 403


class InvalidSlot(ReservationError):
    kind = "INVALID_SLOT"
    status_code = 400


class SlotTaken(ReservationError):
    kind = "SLOT_TAKEN"
    status_code = 409


class InvalidTransition(ReservationError):
    kind = "INVALID_TRANSITION"
    status_code = 409


class NotFound(ReservationError):
    kind = "NOT_FOUND"
    status_code = 404


class Contention(ReservationError):
    """The per-slot critical section could not be entered within the bounded wait."""

    kind = "CONTENTION"
    status_code = 503
    retryable = True


class StorageFailure(ReservationError):
    """Infrastructure failure; the outcome of the write may be unknown."""

    kind = "STORAGE_FAILURE"
    status_code = 500
