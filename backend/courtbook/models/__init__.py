from courtbook.models.booking import (
    ACTIVE_STATUSES,
    BOOKING_BOOKED,
    BOOKING_CANCELED,
    BOOKING_CHECKED_IN,
    BOOKING_STATUSES,
    Booking,
)

__all__ = [
    "Booking",
    "BOOKING_BOOKED",
    "BOOKING_CHECKED_IN",
    "BOOKING_CANCELED",
    "BOOKING_STATUSES",
    "ACTIVE_STATUSES",
]
