"""
Booking endpoints: reserve, cancel, check-in, note edits and the caller's history.

The Booking wire shape (id, userId, date, court, hour, status, note,
createdAt, updatedAt) is a fixed contract with the web client.
"""
import logging
from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session

from courtbook.auth import Identity, get_identity, require_admin
from courtbook.config import SlotPolicy, get_now, get_policy
from courtbook.database import get_session
from courtbook.models.booking import Booking
from courtbook.services import reservation_service
from courtbook.services.availability_feed import AvailabilityFeed, get_feed
from courtbook.services.reservation_errors import InvalidSlot, ReservationError
from courtbook.services.slot_guard import SlotLockRegistry, slot_locks
from courtbook.utils.http_errors import to_http_exception
from courtbook.utils.slots import parse_slot_date

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_NOTE_LENGTH = 500


def get_slot_locks() -> SlotLockRegistry:
    return slot_locks


class BookingResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    user_id: str = Field(alias="userId")
    slot_date: date = Field(alias="date")
    court: int
    hour: int
    status: str  # booked | checked_in | canceled
    note: str
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")


class ReserveRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    slot_date: str = Field(alias="date")
    court: int
    hour: int
    note: str = Field(default="", max_length=MAX_NOTE_LENGTH)


class NoteUpdateRequest(BaseModel):
    note: str = Field(max_length=MAX_NOTE_LENGTH)


def booking_to_response(b: Booking) -> BookingResponse:
    return BookingResponse(
        id=b.id,
        user_id=b.user_id,
        slot_date=b.slot_date,
        court=b.court,
        hour=b.hour,
        status=b.status,
        note=b.note or "",
        created_at=b.created_at,
        updated_at=b.updated_at,
    )


@router.post("/bookings", response_model=BookingResponse, status_code=201)
def reserve_booking(
    payload: ReserveRequest,
    identity: Identity = Depends(get_identity),
    session: Session = Depends(get_session),
    policy: SlotPolicy = Depends(get_policy),
    now: datetime = Depends(get_now),
    locks: SlotLockRegistry = Depends(get_slot_locks),
    availability: AvailabilityFeed = Depends(get_feed),
) -> BookingResponse:
    """Reserve one slot for the caller. 409 SLOT_TAKEN when someone else got there first."""
    try:
        slot_date = parse_slot_date(payload.slot_date)
    except ValueError as e:
        raise to_http_exception(InvalidSlot(str(e)))

    try:
        booking = reservation_service.reserve(
            session,
            policy,
            identity,
            slot_date,
            payload.court,
            payload.hour,
            payload.note,
            now,
            locks=locks,
            availability=availability,
        )
    except ReservationError as e:
        raise to_http_exception(e)
    return booking_to_response(booking)


@router.get("/bookings/mine", response_model=List[BookingResponse])
def my_booking_history(
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    identity: Identity = Depends(get_identity),
    session: Session = Depends(get_session),
) -> List[BookingResponse]:
    """Every booking the caller ever made, newest slot first."""
    bookings = reservation_service.history(session, identity.user_id, limit=limit, offset=offset)
    return [booking_to_response(b) for b in bookings]


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
def get_booking(
    booking_id: str,
    identity: Identity = Depends(get_identity),
    session: Session = Depends(get_session),
) -> BookingResponse:
    try:
        booking = reservation_service.get_booking(session, identity, booking_id)
    except ReservationError as e:
        raise to_http_exception(e)
    return booking_to_response(booking)


@router.patch("/bookings/{booking_id}", response_model=BookingResponse)
def update_booking_note(
    booking_id: str,
    payload: NoteUpdateRequest,
    identity: Identity = Depends(get_identity),
    session: Session = Depends(get_session),
    policy: SlotPolicy = Depends(get_policy),
    now: datetime = Depends(get_now),
) -> BookingResponse:
    """Edit the note of a booked (not yet checked-in or canceled) booking. Owner only."""
    try:
        booking = reservation_service.update_note(session, policy, identity, booking_id, payload.note, now)
    except ReservationError as e:
        raise to_http_exception(e)
    return booking_to_response(booking)


@router.patch("/bookings/{booking_id}/cancel", response_model=BookingResponse)
def cancel_booking(
    booking_id: str,
    as_admin: bool = Query(default=False, alias="asAdmin"),
    identity: Identity = Depends(get_identity),
    session: Session = Depends(get_session),
    policy: SlotPolicy = Depends(get_policy),
    now: datetime = Depends(get_now),
    locks: SlotLockRegistry = Depends(get_slot_locks),
    availability: AvailabilityFeed = Depends(get_feed),
) -> BookingResponse:
    """
    Cancel a booking and free its slot.

    The owner cancels their own booking; admins force-cancel any booking with
    ?asAdmin=true.
    """
    try:
        booking = reservation_service.cancel(
            session,
            policy,
            identity,
            booking_id,
            as_admin,
            now,
            locks=locks,
            availability=availability,
        )
    except ReservationError as e:
        raise to_http_exception(e)
    return booking_to_response(booking)


@router.patch("/bookings/{booking_id}/checkin", response_model=BookingResponse)
def check_in_booking(
    booking_id: str,
    identity: Identity = Depends(require_admin),
    session: Session = Depends(get_session),
    policy: SlotPolicy = Depends(get_policy),
    now: datetime = Depends(get_now),
    availability: AvailabilityFeed = Depends(get_feed),
) -> BookingResponse:
    """Mark attendance (admin only)."""
    try:
        booking = reservation_service.check_in(
            session, policy, identity, booking_id, now, availability=availability
        )
    except ReservationError as e:
        raise to_http_exception(e)
    return booking_to_response(booking)
