"""
Slot reservation service.

Owns the authoritative booking state for every (date, court, hour) slot:

- Availability reads never take slot locks; they see committed data only.
- Reserve and Cancel run inside the per-slot critical section (slot_guard) and
  rely on the storage layer for the final word: the partial unique index
  rejects a second active booking, and status changes are conditional updates
  (compare-and-swap on the current status).
- Every successful write publishes an availability change for its date after
  the commit.

Booking lifecycle:

    (none) --reserve--> booked --check_in--> checked_in   (terminal)
                          |
                        cancel
                          v
                       canceled                            (terminal)
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from courtbook.auth import Identity
from courtbook.config import SAME_DAY_FUTURE_HOURS, SAME_DAY_NONE, SlotPolicy
from courtbook.models.booking import (
    ACTIVE_STATUSES,
    BOOKING_BOOKED,
    BOOKING_CANCELED,
    BOOKING_CHECKED_IN,
    Booking,
)
from courtbook.services.availability_feed import AvailabilityFeed, feed
from courtbook.services.reservation_errors import (
    Forbidden,
    InvalidSlot,
    InvalidTransition,
    NotFound,
    ReservationError,
    SlotTaken,
)
from courtbook.services.slot_guard import (
    SlotKey,
    SlotLockRegistry,
    apply_storage_lock_timeout,
    classify_storage_error,
    describe_slot,
    slot_locks,
)
from courtbook.utils.slots import format_slot_key

logger = logging.getLogger(__name__)

SLOT_FREE = "free"


@dataclass(frozen=True)
class SlotState:
    court: int
    hour: int
    status: str  # free | booked | checked_in


# ============================================================================
# Validation
# ============================================================================


def validate_slot(policy: SlotPolicy, slot_date: date, court: int, hour: int, now: datetime) -> None:
    """
    Reject slots outside the operating window or in the past. Runs before any
    storage access.

    Raises:
        InvalidSlot
    """
    if court not in policy.courts:
        raise InvalidSlot(f"Court {court} does not exist (courts 1-{policy.court_count})")
    if hour not in policy.hours:
        raise InvalidSlot(
            f"Hour {hour} is outside opening hours [{policy.open_hour}, {policy.close_hour})"
        )

    today = policy.today(now)
    if slot_date < today:
        raise InvalidSlot(f"{slot_date.isoformat()} is in the past")
    if slot_date == today:
        if policy.same_day_policy == SAME_DAY_NONE:
            raise InvalidSlot("Same-day bookings are closed")
        if policy.same_day_policy == SAME_DAY_FUTURE_HOURS and hour <= policy.local_now(now).hour:
            raise InvalidSlot(f"The {hour:02d}:00 slot has already started")


# ============================================================================
# Reads
# ============================================================================


def get_availability(session: Session, policy: SlotPolicy, slot_date: date) -> List[SlotState]:
    """Every (court, hour) of the window on slot_date with its occupancy. Ordered by hour, then court."""
    rows = session.exec(
        select(Booking.court, Booking.hour, Booking.status).where(
            Booking.slot_date == slot_date,
            Booking.status.in_(ACTIVE_STATUSES),
        )
    ).all()
    occupied = {(court, hour): status for court, hour, status in rows}

    return [
        SlotState(court=court, hour=hour, status=occupied.get((court, hour), SLOT_FREE))
        for hour in policy.hours
        for court in policy.courts
    ]


def get_mine(session: Session, user_id: str, slot_date: date) -> List[str]:
    """Slot keys ("court:hour") the user actively holds on slot_date."""
    rows = session.exec(
        select(Booking.court, Booking.hour)
        .where(
            Booking.user_id == user_id,
            Booking.slot_date == slot_date,
            Booking.status.in_(ACTIVE_STATUSES),
        )
        .order_by(Booking.hour, Booking.court)
    ).all()
    return [format_slot_key(court, hour) for court, hour in rows]


def history(session: Session, user_id: str, limit: Optional[int] = None, offset: int = 0) -> List[Booking]:
    """All bookings ever owned by user_id, newest slot first."""
    statement = (
        select(Booking)
        .where(Booking.user_id == user_id)
        .order_by(Booking.slot_date.desc(), Booking.hour.desc(), Booking.created_at.desc())
        .offset(offset)
    )
    if limit is not None:
        statement = statement.limit(limit)
    return list(session.exec(statement).all())


def get_booking(session: Session, identity: Identity, booking_id: str) -> Booking:
    """
    Raises:
        NotFound, Forbidden (neither owner nor admin)
    """
    booking = session.get(Booking, booking_id)
    if not booking:
        raise NotFound("Booking not found")
    if booking.user_id != identity.user_id and not identity.is_admin:
        raise Forbidden("Booking belongs to another user")
    return booking


def list_bookings(
    session: Session,
    slot_date: Optional[date] = None,
    status: Optional[str] = None,
) -> List[Booking]:
    """Admin listing ordered by (date, court, hour)."""
    statement = select(Booking)
    if slot_date is not None:
        statement = statement.where(Booking.slot_date == slot_date)
    if status is not None:
        statement = statement.where(Booking.status == status)
    statement = statement.order_by(Booking.slot_date, Booking.court, Booking.hour, Booking.created_at)
    return list(session.exec(statement).all())


# ============================================================================
# Writes
# ============================================================================


def _slot_key(booking: Booking) -> SlotKey:
    return (booking.slot_date, booking.court, booking.hour)


def _active_booking_for_slot(session: Session, key: SlotKey) -> Optional[Booking]:
    slot_date, court, hour = key
    return session.exec(
        select(Booking).where(
            Booking.slot_date == slot_date,
            Booking.court == court,
            Booking.hour == hour,
            Booking.status.in_(ACTIVE_STATUSES),
        )
    ).first()


def _compare_and_set_status(
    session: Session,
    booking_id: str,
    expected: str,
    new_status: str,
    now: datetime,
    **values,
) -> bool:
    """Conditional status write; False when the booking is no longer in `expected`."""
    result = session.exec(
        update(Booking)
        .where(Booking.id == booking_id, Booking.status == expected)
        .values(status=new_status, updated_at=now, **values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def reserve(
    session: Session,
    policy: SlotPolicy,
    identity: Identity,
    slot_date: date,
    court: int,
    hour: int,
    note: str,
    now: datetime,
    locks: SlotLockRegistry = slot_locks,
    availability: AvailabilityFeed = feed,
) -> Booking:
    """
    Claim a free slot for the caller.

    Raises:
        InvalidSlot: outside the window or in the past (nothing is written)
        SlotTaken: another active booking holds the slot
        Contention: the slot's critical section was busy past the bounded wait
        StorageFailure: the write failed for infrastructure reasons
    """
    validate_slot(policy, slot_date, court, hour, now)
    key: SlotKey = (slot_date, court, hour)

    with locks.hold(key, policy.lock_timeout_ms):
        try:
            apply_storage_lock_timeout(session, policy.lock_timeout_ms)
            if _active_booking_for_slot(session, key) is not None:
                session.rollback()
                logger.info("Reserve lost race for %s (user %s)", describe_slot(key), identity.user_id)
                raise SlotTaken(f"Slot {describe_slot(key)} is already booked")

            booking = Booking(
                user_id=identity.user_id,
                slot_date=slot_date,
                court=court,
                hour=hour,
                status=BOOKING_BOOKED,
                note=(note or "").strip(),
                created_at=now,
                updated_at=now,
            )
            session.add(booking)
            session.commit()
            session.refresh(booking)
        except ReservationError:
            raise
        except SQLAlchemyError as e:
            session.rollback()
            error = classify_storage_error(e, key)
            if isinstance(error, SlotTaken):
                logger.info("Reserve lost race for %s (user %s)", describe_slot(key), identity.user_id)
            else:
                logger.exception("Reserve failed for %s (user %s)", describe_slot(key), identity.user_id)
            raise error from e

    logger.info("Booking %s reserved %s for user %s", booking.id, describe_slot(key), identity.user_id)
    availability.publish(slot_date, court, hour, BOOKING_BOOKED, booking.id)
    return booking


def cancel(
    session: Session,
    policy: SlotPolicy,
    identity: Identity,
    booking_id: str,
    as_admin: bool,
    now: datetime,
    locks: SlotLockRegistry = slot_locks,
    availability: AvailabilityFeed = feed,
) -> Booking:
    """
    booked -> canceled. The owner may cancel their own booking; an admin may
    force-cancel any booking by passing as_admin=True.

    Raises:
        NotFound, Forbidden, InvalidTransition, Contention, StorageFailure
    """
    booking = session.get(Booking, booking_id)
    if not booking:
        raise NotFound("Booking not found")
    if as_admin and not identity.is_admin:
        raise Forbidden("Admin rights are required to force-cancel")
    if not as_admin and booking.user_id != identity.user_id:
        raise Forbidden("Only the owner can cancel this booking")
    if booking.status != BOOKING_BOOKED:
        raise InvalidTransition(f"Cannot cancel a booking that is {booking.status}")

    key = _slot_key(booking)
    with locks.hold(key, policy.lock_timeout_ms):
        try:
            apply_storage_lock_timeout(session, policy.lock_timeout_ms)
            changed = _compare_and_set_status(
                session, booking_id, BOOKING_BOOKED, BOOKING_CANCELED, now, canceled_by=identity.user_id
            )
            if not changed:
                session.rollback()
                session.refresh(booking)
                raise InvalidTransition(f"Cannot cancel a booking that is {booking.status}")
            session.commit()
            session.refresh(booking)
        except ReservationError:
            raise
        except SQLAlchemyError as e:
            session.rollback()
            logger.exception("Cancel failed for booking %s", booking_id)
            raise classify_storage_error(e, key) from e

    logger.info(
        "Booking %s canceled by %s%s, %s is free",
        booking.id,
        identity.user_id,
        " (admin)" if as_admin else "",
        describe_slot(key),
    )
    availability.publish(booking.slot_date, booking.court, booking.hour, SLOT_FREE, booking.id)
    return booking


def check_in(
    session: Session,
    policy: SlotPolicy,
    identity: Identity,
    booking_id: str,
    now: datetime,
    availability: AvailabilityFeed = feed,
) -> Booking:
    """
    booked -> checked_in. Admin only; the slot stays occupied.

    Raises:
        Forbidden, NotFound, InvalidTransition, Contention, StorageFailure
    """
    if not identity.is_admin:
        raise Forbidden("Admin only")
    booking = session.get(Booking, booking_id)
    if not booking:
        raise NotFound("Booking not found")
    if booking.status != BOOKING_BOOKED:
        raise InvalidTransition(f"Cannot check in a booking that is {booking.status}")

    key = _slot_key(booking)
    try:
        apply_storage_lock_timeout(session, policy.lock_timeout_ms)
        if not _compare_and_set_status(session, booking_id, BOOKING_BOOKED, BOOKING_CHECKED_IN, now):
            session.rollback()
            session.refresh(booking)
            raise InvalidTransition(f"Cannot check in a booking that is {booking.status}")
        session.commit()
        session.refresh(booking)
    except ReservationError:
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception("Check-in failed for booking %s", booking_id)
        raise classify_storage_error(e, key) from e

    logger.info("Booking %s checked in by %s", booking.id, identity.user_id)
    availability.publish(booking.slot_date, booking.court, booking.hour, BOOKING_CHECKED_IN, booking.id)
    return booking


def update_note(
    session: Session,
    policy: SlotPolicy,
    identity: Identity,
    booking_id: str,
    note: str,
    now: datetime,
) -> Booking:
    """
    Replace the note of a booking. Owner only, and only while it is booked.

    Raises:
        NotFound, Forbidden, InvalidTransition, StorageFailure
    """
    booking = session.get(Booking, booking_id)
    if not booking:
        raise NotFound("Booking not found")
    if booking.user_id != identity.user_id:
        raise Forbidden("Only the owner can edit this booking")
    if booking.status != BOOKING_BOOKED:
        raise InvalidTransition(f"Cannot edit a booking that is {booking.status}")

    key = _slot_key(booking)
    try:
        apply_storage_lock_timeout(session, policy.lock_timeout_ms)
        result = session.exec(
            update(Booking)
            .where(Booking.id == booking_id, Booking.status == BOOKING_BOOKED)
            .values(note=(note or "").strip(), updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            session.rollback()
            session.refresh(booking)
            raise InvalidTransition(f"Cannot edit a booking that is {booking.status}")
        session.commit()
        session.refresh(booking)
    except ReservationError:
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception("Note update failed for booking %s", booking_id)
        raise classify_storage_error(e, key) from e

    return booking
