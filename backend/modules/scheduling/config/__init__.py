# backend/modules/scheduling/config/__init__.py

from .scheduling_config import SchedulingConfig, get_scheduling_config

__all__ = ["SchedulingConfig", "get_scheduling_config"]
