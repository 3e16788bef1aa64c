# backend/modules/orders/config/dispatch_config.py

from typing import Dict, List, Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings


class DispatchConfig(BaseSettings):
    """
    Configuration for order dispatch.

    Urgency thresholds are upper bounds in whole minutes until pickup:
    an order is urgent up to URGENT_MINUTES, ready_to_start up to
    READY_TO_START_MINUTES, soon up to SOON_MINUTES and scheduled beyond.
    Anything at or below OVERDUE_MINUTES is overdue.
    """

    OVERDUE_MINUTES: int = 0
    URGENT_MINUTES: int = 10
    READY_TO_START_MINUTES: int = 20
    SOON_MINUTES: int = 30

    # Promise window for orders placed without a pickup time
    ASAP_MIN_MINUTES: int = 15
    ASAP_MAX_MINUTES: int = 20

    # Events buffered per staff connection before it is told to resync
    FANOUT_QUEUE_SIZE: int = 100

    # Interval staff clients should use for the full re-fetch fallback
    POLL_INTERVAL_SECONDS: int = 30

    # Extra keywords routed to a station, e.g. {"counter": ["chai", "matcha"]}
    STATION_KEYWORD_OVERRIDES: Optional[Dict[str, List[str]]] = None

    class Config:
        env_prefix = "DISPATCH_"
        case_sensitive = False

    @model_validator(mode="after")
    def check_monotonic_thresholds(self):
        thresholds = [
            self.OVERDUE_MINUTES,
            self.URGENT_MINUTES,
            self.READY_TO_START_MINUTES,
            self.SOON_MINUTES,
        ]
        if any(lower >= upper for lower, upper in zip(thresholds, thresholds[1:])):
            raise ValueError(
                f"Urgency thresholds must be strictly increasing, got {thresholds}"
            )
        if not 0 < self.ASAP_MIN_MINUTES <= self.ASAP_MAX_MINUTES:
            raise ValueError("ASAP window must satisfy 0 < ASAP_MIN_MINUTES <= ASAP_MAX_MINUTES")
        if self.FANOUT_QUEUE_SIZE < 1:
            raise ValueError("FANOUT_QUEUE_SIZE must be at least 1")
        return self

    @property
    def urgency_thresholds(self) -> List[int]:
        return [
            self.OVERDUE_MINUTES,
            self.URGENT_MINUTES,
            self.READY_TO_START_MINUTES,
            self.SOON_MINUTES,
        ]


# Global instance
dispatch_config = DispatchConfig()


def get_dispatch_config() -> DispatchConfig:
    """Get the dispatch configuration."""
    return dispatch_config
