import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import CheckConstraint, Index, text
from sqlmodel import Field, SQLModel

BOOKING_BOOKED = "booked"
BOOKING_CHECKED_IN = "checked_in"
BOOKING_CANCELED = "canceled"

BOOKING_STATUSES = (BOOKING_BOOKED, BOOKING_CHECKED_IN, BOOKING_CANCELED)
# Statuses that occupy a slot
ACTIVE_STATUSES = (BOOKING_BOOKED, BOOKING_CHECKED_IN)

_ACTIVE_PREDICATE = "status IN ('booked', 'checked_in')"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_booking_id() -> str:
    return uuid.uuid4().hex


class Booking(SQLModel, table=True):
    __table_args__ = (
        # At most one active booking per (date, court, hour). Canceled rows fall out of the index.
        Index(
            "uq_booking_active_slot",
            "slot_date",
            "court",
            "hour",
            unique=True,
            sqlite_where=text(_ACTIVE_PREDICATE),
            postgresql_where=text(_ACTIVE_PREDICATE),
        ),
        Index("ix_booking_user_date", "user_id", "slot_date"),
        CheckConstraint(
            "status IN ('booked', 'checked_in', 'canceled')",
            name="ck_booking_status",
        ),
    )

    id: str = Field(default_factory=_new_booking_id, primary_key=True, max_length=32)
    user_id: str = Field(index=True, max_length=64)
    slot_date: date = Field(index=True)
    court: int
    hour: int
    status: str = Field(default=BOOKING_BOOKED, max_length=16)
    note: str = Field(default="")
    canceled_by: Optional[str] = Field(default=None, max_length=64)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def slot_key(self) -> str:
        return f"{self.court}:{self.hour}"

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES
