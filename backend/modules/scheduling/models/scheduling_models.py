# backend/modules/scheduling/models/scheduling_models.py

from sqlalchemy import (
    Column,
    Integer,
    Boolean,
    DateTime,
    Time,
    UniqueConstraint,
    CheckConstraint,
)

from core.database import Base
from core.mixins import TimestampMixin


class BusinessHours(Base, TimestampMixin):
    """Opening hours and slot settings for one weekday (0 = Monday)."""

    __tablename__ = "business_hours"

    id = Column(Integer, primary_key=True, index=True)
    weekday = Column(Integer, nullable=False)
    open_time = Column(Time, nullable=False)
    close_time = Column(Time, nullable=False)
    is_closed = Column(Boolean, nullable=False, default=False)
    max_orders_per_slot = Column(Integer, nullable=False, default=20)
    slot_duration_minutes = Column(Integer, nullable=False, default=15)

    __table_args__ = (
        UniqueConstraint("weekday", name="uq_business_hours_weekday"),
        CheckConstraint("weekday >= 0 AND weekday <= 6", name="check_weekday_range"),
        CheckConstraint("max_orders_per_slot >= 0", name="check_slot_capacity"),
        CheckConstraint("slot_duration_minutes > 0", name="check_slot_duration"),
    )

    def __repr__(self):
        return (
            f"<BusinessHours(weekday={self.weekday}, open={self.open_time}, "
            f"close={self.close_time}, closed={self.is_closed})>"
        )


class TimeSlot(Base, TimestampMixin):
    """
    Capacity ledger row for one pickup slot.

    Rows are created on the first reservation for a slot; capacity is the
    day's max_orders_per_slot at that moment. committed_count only moves
    through conditional UPDATEs so it can never leave [0, capacity].
    """

    __tablename__ = "time_slots"

    id = Column(Integer, primary_key=True, index=True)
    slot_start = Column(DateTime, nullable=False)
    capacity = Column(Integer, nullable=False)
    committed_count = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("slot_start", name="uq_time_slots_slot_start"),
        CheckConstraint("committed_count >= 0", name="check_committed_non_negative"),
        CheckConstraint("committed_count <= capacity", name="check_committed_within_capacity"),
    )

    def __repr__(self):
        return (
            f"<TimeSlot(start={self.slot_start}, "
            f"committed={self.committed_count}/{self.capacity})>"
        )
