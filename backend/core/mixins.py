from sqlalchemy import Column, DateTime

from core.time_utils import shop_now


class TimestampMixin:
    # Naive shop time, same clock as pickup times and slot starts
    created_at = Column(DateTime, default=shop_now, nullable=False)
    updated_at = Column(DateTime, default=shop_now, onupdate=shop_now, nullable=False)
