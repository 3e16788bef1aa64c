# backend/core/time_utils.py

from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo


def _shop_timezone(timezone: Optional[str]) -> ZoneInfo:
    if timezone is None:
        from modules.scheduling.config import get_scheduling_config

        timezone = get_scheduling_config().TIMEZONE
    return ZoneInfo("UTC" if timezone.upper() == "UTC" else timezone)


def shop_now(timezone: Optional[str] = None) -> datetime:
    """
    Current wall-clock time of the shop as a naive datetime.

    Order and slot timestamps are stored naive in the shop's zone, so every
    comparison against them should go through this helper.
    """
    return datetime.now(_shop_timezone(timezone)).replace(tzinfo=None)


def to_shop_time(value: datetime, timezone: Optional[str] = None) -> datetime:
    """Naive shop time for an instant; naive values are taken as shop time already."""
    if value.tzinfo is None:
        return value
    return value.astimezone(_shop_timezone(timezone)).replace(tzinfo=None)


def utc_now() -> datetime:
    """Naive UTC, for token expiry and event timestamps."""
    return datetime.now(ZoneInfo("UTC")).replace(tzinfo=None)


def floor_minutes(delta_seconds: float) -> int:
    """Whole minutes in a signed interval, rounded toward negative infinity."""
    return int(delta_seconds // 60)


def get_current_time() -> datetime:
    """FastAPI dependency for the shop clock, overridable in tests."""
    return shop_now()
