"""
Slot availability endpoints.

GET /slots is public; GET /slots/mine needs a user token. Both answer with
no-store cache headers so a browser never renders a stale grid.
GET /slots/changes is a long-poll on the availability feed: clients hold the
last revision they rendered and re-read /slots when it moves.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel
from sqlmodel import Session

from courtbook.auth import Identity, get_identity
from courtbook.config import CHANGES_MAX_WAIT_SECONDS, SlotPolicy, get_policy
from courtbook.database import get_session
from courtbook.services import reservation_service
from courtbook.services.availability_feed import AvailabilityFeed, get_feed
from courtbook.services.reservation_errors import InvalidSlot
from courtbook.utils.http_errors import to_http_exception
from courtbook.utils.slots import parse_slot_date

router = APIRouter()

NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


class SlotItem(BaseModel):
    court: int
    hour: int
    status: str  # free | booked | checked_in


class AvailabilityResponse(BaseModel):
    date: str
    slots: List[SlotItem]


class MineResponse(BaseModel):
    mine: List[str]


class ChangesResponse(BaseModel):
    date: str
    revision: int


def _parse_date_or_400(raw: str):
    try:
        return parse_slot_date(raw)
    except ValueError as e:
        raise to_http_exception(InvalidSlot(str(e)))


@router.get("/slots", response_model=AvailabilityResponse)
def get_availability(
    response: Response,
    date_str: str = Query(..., alias="date"),
    session: Session = Depends(get_session),
    policy: SlotPolicy = Depends(get_policy),
) -> AvailabilityResponse:
    """Occupancy of every (court, hour) in the operating window on the given date."""
    slot_date = _parse_date_or_400(date_str)
    response.headers.update(NO_STORE_HEADERS)

    states = reservation_service.get_availability(session, policy, slot_date)
    return AvailabilityResponse(
        date=slot_date.isoformat(),
        slots=[SlotItem(court=s.court, hour=s.hour, status=s.status) for s in states],
    )


@router.get("/slots/mine", response_model=MineResponse)
def get_my_slots(
    response: Response,
    date_str: str = Query(..., alias="date"),
    identity: Identity = Depends(get_identity),
    session: Session = Depends(get_session),
) -> MineResponse:
    """Slot keys ("court:hour") the caller holds on the given date."""
    slot_date = _parse_date_or_400(date_str)
    response.headers.update(NO_STORE_HEADERS)
    return MineResponse(mine=reservation_service.get_mine(session, identity.user_id, slot_date))


@router.get("/slots/changes", response_model=ChangesResponse)
async def wait_for_changes(
    response: Response,
    date_str: str = Query(..., alias="date"),
    since: Optional[int] = Query(default=None, ge=0),
    wait: float = Query(default=0.0, ge=0.0),
    availability: AvailabilityFeed = Depends(get_feed),
) -> ChangesResponse:
    """
    Current availability revision of a date.

    With `since`, waits up to `wait` seconds (capped server-side) until the
    revision differs from `since`. Without it, answers immediately.
    """
    slot_date = _parse_date_or_400(date_str)
    response.headers.update(NO_STORE_HEADERS)
    timeout = min(wait, float(CHANGES_MAX_WAIT_SECONDS))
    revision = await availability.wait_for_change(slot_date, since, timeout)
    return ChangesResponse(date=slot_date.isoformat(), revision=revision)
