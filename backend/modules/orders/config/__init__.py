# backend/modules/orders/config/__init__.py

from .dispatch_config import DispatchConfig, get_dispatch_config

__all__ = ["DispatchConfig", "get_dispatch_config"]
