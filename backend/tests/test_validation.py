"""Operating-window and same-day rules applied before any storage access."""
from datetime import date, datetime, timezone

import pytest

from courtbook.config import SAME_DAY_ANY, SAME_DAY_FUTURE_HOURS, SAME_DAY_NONE, SlotPolicy
from courtbook.services.reservation_errors import InvalidSlot
from courtbook.services.reservation_service import validate_slot

# 2025-05-30 14:30 UTC
NOW = datetime(2025, 5, 30, 14, 30, tzinfo=timezone.utc)
TODAY = date(2025, 5, 30)
TOMORROW = date(2025, 5, 31)


def test_policy_defaults():
    policy = SlotPolicy()
    assert policy.hours == list(range(9, 21))
    assert policy.courts == [1, 2, 3, 4, 5, 6]


@pytest.mark.parametrize(
    "kwargs",
    [
        {"open_hour": 21, "close_hour": 9},
        {"open_hour": 9, "close_hour": 25},
        {"court_count": 0},
        {"same_day_policy": "sometimes"},
    ],
)
def test_policy_rejects_bad_configuration(kwargs):
    with pytest.raises(ValueError):
        SlotPolicy(**kwargs)


def test_window_edges():
    policy = SlotPolicy()
    validate_slot(policy, TOMORROW, 1, 9, NOW)
    validate_slot(policy, TOMORROW, 6, 20, NOW)

    for court, hour in ((1, 8), (1, 21), (0, 10), (7, 10)):
        with pytest.raises(InvalidSlot):
            validate_slot(policy, TOMORROW, court, hour, NOW)


def test_past_date_rejected():
    with pytest.raises(InvalidSlot, match="past"):
        validate_slot(SlotPolicy(), date(2025, 5, 29), 1, 20, NOW)


def test_same_day_future_hours_only():
    policy = SlotPolicy(same_day_policy=SAME_DAY_FUTURE_HOURS)
    validate_slot(policy, TODAY, 1, 15, NOW)

    # the 14:00 slot is already running at 14:30
    with pytest.raises(InvalidSlot):
        validate_slot(policy, TODAY, 1, 14, NOW)
    with pytest.raises(InvalidSlot):
        validate_slot(policy, TODAY, 1, 9, NOW)


def test_same_day_any_allows_whole_day():
    policy = SlotPolicy(same_day_policy=SAME_DAY_ANY)
    validate_slot(policy, TODAY, 1, 9, NOW)


def test_same_day_none_closes_today():
    policy = SlotPolicy(same_day_policy=SAME_DAY_NONE)
    with pytest.raises(InvalidSlot, match="Same-day"):
        validate_slot(policy, TODAY, 1, 20, NOW)
    validate_slot(policy, TOMORROW, 1, 9, NOW)


def test_today_follows_service_timezone():
    """23:30 UTC on May 30 is already May 31 in Tokyo."""
    late = datetime(2025, 5, 30, 23, 30, tzinfo=timezone.utc)
    policy = SlotPolicy(timezone_name="Asia/Tokyo")

    assert policy.today(late) == date(2025, 5, 31)
    with pytest.raises(InvalidSlot, match="past"):
        validate_slot(policy, date(2025, 5, 30), 1, 20, late)
    # 08:30 local in Tokyo, so 09:00 is still ahead
    validate_slot(policy, date(2025, 5, 31), 1, 9, late)


def test_naive_now_treated_as_utc():
    policy = SlotPolicy()
    assert policy.local_now(datetime(2025, 5, 30, 14, 30)).tzinfo is not None
    with pytest.raises(InvalidSlot):
        validate_slot(policy, TODAY, 1, 14, datetime(2025, 5, 30, 14, 30))
