# backend/modules/scheduling/config/scheduling_config.py

from datetime import time

from pydantic import model_validator
from pydantic_settings import BaseSettings


class SchedulingConfig(BaseSettings):
    """
    Configuration for pickup scheduling.

    Per-weekday business hours stored in the database override the
    DEFAULT_* opening values below.
    """

    # How many days ahead customers may schedule a pickup
    HORIZON_DAYS: int = 7

    # Minimum notice between now and a scheduled pickup
    MIN_ADVANCE_MINUTES: int = 30

    # Opening hours used for weekdays without a business_hours row
    DEFAULT_OPEN_TIME: time = time(7, 0)
    DEFAULT_CLOSE_TIME: time = time(19, 0)
    DEFAULT_SLOT_DURATION_MINUTES: int = 15
    DEFAULT_MAX_ORDERS_PER_SLOT: int = 20

    # IANA zone of the shop clock; all stored timestamps are naive in this zone
    TIMEZONE: str = "UTC"

    class Config:
        env_prefix = "SCHEDULING_"
        case_sensitive = False

    @model_validator(mode="after")
    def check_defaults(self):
        if self.DEFAULT_OPEN_TIME >= self.DEFAULT_CLOSE_TIME:
            raise ValueError("DEFAULT_OPEN_TIME must be before DEFAULT_CLOSE_TIME")
        if self.DEFAULT_SLOT_DURATION_MINUTES <= 0:
            raise ValueError("DEFAULT_SLOT_DURATION_MINUTES must be positive")
        if self.HORIZON_DAYS < 0 or self.MIN_ADVANCE_MINUTES < 0:
            raise ValueError("Scheduling horizon and advance notice cannot be negative")
        return self


# Global instance
scheduling_config = SchedulingConfig()


def get_scheduling_config() -> SchedulingConfig:
    """Get the scheduling configuration."""
    return scheduling_config
