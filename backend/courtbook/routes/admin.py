"""
Admin console endpoints (admin token required).

Check-in and force-cancel live on the booking routes; this module serves the
console's booking table.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlmodel import Session

from courtbook.auth import Identity, require_admin
from courtbook.database import get_session
from courtbook.routes.bookings import BookingResponse, booking_to_response
from courtbook.services import reservation_service
from courtbook.services.reservation_errors import InvalidSlot
from courtbook.utils.http_errors import to_http_exception
from courtbook.utils.slots import normalize_status, parse_slot_date

router = APIRouter()


class AdminBookingListResponse(BaseModel):
    bookings: List[BookingResponse]


@router.get("/admin/bookings", response_model=AdminBookingListResponse)
def list_bookings(
    date_str: Optional[str] = Query(default=None, alias="date"),
    status: Optional[str] = Query(default=None),
    _admin: Identity = Depends(require_admin),
    session: Session = Depends(get_session),
) -> AdminBookingListResponse:
    """All bookings, optionally for one date and/or one status, ordered by date, court, hour."""
    slot_date = None
    if date_str is not None:
        try:
            slot_date = parse_slot_date(date_str)
        except ValueError as e:
            raise to_http_exception(InvalidSlot(str(e)))

    canonical_status = None
    if status is not None:
        canonical_status = normalize_status(status)
        if canonical_status is None:
            raise to_http_exception(InvalidSlot(f"Unknown booking status '{status}'"))

    bookings = reservation_service.list_bookings(session, slot_date=slot_date, status=canonical_status)
    return AdminBookingListResponse(bookings=[booking_to_response(b) for b in bookings])
