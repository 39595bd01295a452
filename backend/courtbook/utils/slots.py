"""
Canonical parsers for slot keys, wire dates and booking statuses.

Every consumer reads the same shapes: dates are strict YYYY-MM-DD and slot keys
are "court:hour" with plain integers ("3:9", never "3:09"). Legacy status
spellings are folded into the three canonical statuses.
"""
import re
from datetime import date
from typing import Optional

from courtbook.models.booking import BOOKING_BOOKED, BOOKING_CANCELED, BOOKING_CHECKED_IN

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

STATUS_ALIASES = {
    "booked": BOOKING_BOOKED,
    "checked_in": BOOKING_CHECKED_IN,
    "checked-in": BOOKING_CHECKED_IN,
    "checkedin": BOOKING_CHECKED_IN,
    "arrived": BOOKING_CHECKED_IN,
    "canceled": BOOKING_CANCELED,
    "cancelled": BOOKING_CANCELED,
}


def parse_slot_date(raw: Optional[str]) -> date:
    """
    Parse a wire date. Raises ValueError unless the value is a real calendar
    day written as YYYY-MM-DD.
    """
    if raw is None or not _DATE_RE.match(raw.strip()):
        raise ValueError(f"date must be formatted YYYY-MM-DD, got '{raw}'")
    return date.fromisoformat(raw.strip())


def format_slot_key(court: int, hour: int) -> str:
    return f"{int(court)}:{int(hour)}"


def normalize_status(raw: Optional[str]) -> Optional[str]:
    """Fold status spellings to the canonical enum; None for unknown values."""
    if raw is None:
        return None
    return STATUS_ALIASES.get(raw.strip().lower())
