"""
Runtime configuration for the slot reservation service.

Values come from the environment (a local .env is loaded first). The booking
rules are bundled into a SlotPolicy that routes receive through the
get_policy() dependency, so tests can swap the operating window or the clock
without touching the environment.
"""
import os
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import List
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

load_dotenv()

SAME_DAY_FUTURE_HOURS = "future_hours"
SAME_DAY_ANY = "any"
SAME_DAY_NONE = "none"
SAME_DAY_POLICIES = (SAME_DAY_FUTURE_HOURS, SAME_DAY_ANY, SAME_DAY_NONE)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "")
    if not raw.strip():
        return default
    return int(raw)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "")
    if not raw.strip():
        return default
    return raw.lower() in ("true", "1", "yes")


LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# JWT_SECRET is the name the identity provider uses for the same value
AUTH_SECRET = os.getenv("AUTH_SECRET") or os.getenv("JWT_SECRET", "dev-secret-change-me-before-deploying")
AUTH_TOKEN_TTL_SECONDS = _env_int("AUTH_TOKEN_TTL_SECONDS", 24 * 60 * 60)

CHANGES_MAX_WAIT_SECONDS = _env_int("CHANGES_MAX_WAIT_SECONDS", 25)

SQL_ECHO = _env_bool("SQL_ECHO", False)


@dataclass(frozen=True)
class SlotPolicy:
    open_hour: int = 9
    close_hour: int = 21  # exclusive: last slot is 20:00-21:00
    court_count: int = 6
    timezone_name: str = "UTC"
    same_day_policy: str = SAME_DAY_FUTURE_HOURS
    lock_timeout_ms: int = 2000
    hours: List[int] = field(init=False, repr=False, compare=False)
    courts: List[int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not 0 <= self.open_hour < self.close_hour <= 24:
            raise ValueError(f"Invalid operating window [{self.open_hour}, {self.close_hour})")
        if self.court_count < 1:
            raise ValueError("COURT_COUNT must be at least 1")
        if self.same_day_policy not in SAME_DAY_POLICIES:
            raise ValueError(
                f"SAME_DAY_POLICY must be one of {', '.join(SAME_DAY_POLICIES)}, got '{self.same_day_policy}'"
            )
        # frozen dataclass: derived lists are set through object.__setattr__
        object.__setattr__(self, "hours", list(range(self.open_hour, self.close_hour)))
        object.__setattr__(self, "courts", list(range(1, self.court_count + 1)))

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone_name)

    def local_now(self, now: datetime) -> datetime:
        """Convert an aware (or naive UTC) instant to the service timezone."""
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now.astimezone(self.tz)

    def today(self, now: datetime) -> date:
        return self.local_now(now).date()


def load_policy() -> SlotPolicy:
    """Build the SlotPolicy from environment variables."""
    return SlotPolicy(
        open_hour=_env_int("OPEN_HOUR", 9),
        close_hour=_env_int("CLOSE_HOUR", 21),
        court_count=_env_int("COURT_COUNT", 6),
        timezone_name=os.getenv("SERVICE_TIMEZONE", "UTC"),
        same_day_policy=os.getenv("SAME_DAY_POLICY", SAME_DAY_FUTURE_HOURS).strip().lower(),
        lock_timeout_ms=_env_int("SLOT_LOCK_TIMEOUT_MS", 2000),
    )


_policy = load_policy()


def get_policy() -> SlotPolicy:
    """FastAPI dependency returning the process-wide SlotPolicy."""
    return _policy


def get_now() -> datetime:
    """FastAPI dependency returning the current instant (UTC, aware)."""
    return datetime.now(timezone.utc)
