# backend/modules/scheduling/services/slot_ledger.py

"""
Pickup slot capacity ledger.

Slots are fixed-length intervals on a per-weekday grid starting at the
opening time. Admission is a single conditional UPDATE per reservation,
so concurrent requests for the same slot can never push committed_count
past capacity regardless of isolation level.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from core.database_utils import dialect_name
from core.time_utils import to_shop_time
from modules.orders.exceptions.dispatch_exceptions import InvalidPickupTime, SlotFull
from ..config import SchedulingConfig, get_scheduling_config
from ..models.scheduling_models import BusinessHours, TimeSlot

logger = logging.getLogger(__name__)

BUSINESS_HOURS_FIELDS = (
    "open_time",
    "close_time",
    "is_closed",
    "max_orders_per_slot",
    "slot_duration_minutes",
)


@dataclass
class SlotAvailability:
    start: datetime
    label: str
    capacity: int
    committed: int

    @property
    def available(self) -> bool:
        return self.committed < self.capacity

    @property
    def remaining(self) -> int:
        return max(0, self.capacity - self.committed)


def slot_label(start: datetime) -> str:
    """Customer-facing label, e.g. '9:45 AM'."""
    return start.strftime("%I:%M %p").lstrip("0")


class SlotLedger:
    """Availability and reservation of pickup slots"""

    def __init__(self, db: Session, config: Optional[SchedulingConfig] = None):
        self.db = db
        self.config = config or get_scheduling_config()

    # Business hours

    def hours_for(self, weekday: int) -> BusinessHours:
        """Stored hours for a weekday, or an unsaved row built from defaults."""
        hours = self.db.query(BusinessHours).filter(BusinessHours.weekday == weekday).first()
        if hours is not None:
            return hours
        return BusinessHours(
            weekday=weekday,
            open_time=self.config.DEFAULT_OPEN_TIME,
            close_time=self.config.DEFAULT_CLOSE_TIME,
            is_closed=False,
            max_orders_per_slot=self.config.DEFAULT_MAX_ORDERS_PER_SLOT,
            slot_duration_minutes=self.config.DEFAULT_SLOT_DURATION_MINUTES,
        )

    def get_business_hours(self) -> List[BusinessHours]:
        return [self.hours_for(weekday) for weekday in range(7)]

    def update_business_hours(self, weekday: int, changes: Dict[str, Any]) -> BusinessHours:
        """
        Create or update the hours for one weekday.

        Only the known fields are applied. Existing ledger rows keep the
        capacity they were created with.
        """
        if weekday < 0 or weekday > 6:
            raise ValueError("weekday must be between 0 (Monday) and 6 (Sunday)")

        hours = self.hours_for(weekday)
        for field in BUSINESS_HOURS_FIELDS:
            if changes.get(field) is not None:
                setattr(hours, field, changes[field])

        if hours.open_time >= hours.close_time:
            raise ValueError("open_time must be before close_time")
        if hours.slot_duration_minutes <= 0:
            raise ValueError("slot_duration_minutes must be positive")
        if hours.max_orders_per_slot < 0:
            raise ValueError("max_orders_per_slot cannot be negative")

        if hours.id is None:
            self.db.add(hours)
        self.db.commit()
        self.db.refresh(hours)

        logger.info(
            f"Business hours updated for weekday {weekday}: "
            f"{hours.open_time}-{hours.close_time}, closed={hours.is_closed}, "
            f"{hours.max_orders_per_slot} orders per {hours.slot_duration_minutes} min"
        )
        return hours

    # Slot grid

    def _grid(self, day: date, hours: BusinessHours) -> List[datetime]:
        start = datetime.combine(day, hours.open_time)
        close = datetime.combine(day, hours.close_time)
        step = timedelta(minutes=hours.slot_duration_minutes)

        slots = []
        current = start
        while current < close:
            slots.append(current)
            current += step
        return slots

    def _in_horizon(self, day: date, now: datetime) -> bool:
        today = now.date()
        return today <= day <= today + timedelta(days=self.config.HORIZON_DAYS)

    def _earliest_pickup(self, now: datetime) -> datetime:
        return now + timedelta(minutes=self.config.MIN_ADVANCE_MINUTES)

    def _slot_containing(self, at: datetime, hours: BusinessHours) -> Optional[datetime]:
        opening = datetime.combine(at.date(), hours.open_time)
        closing = datetime.combine(at.date(), hours.close_time)
        if at < opening or at >= closing:
            return None
        step = timedelta(minutes=hours.slot_duration_minutes)
        return opening + ((at - opening) // step) * step

    def _ledger_rows(self, day: date) -> Dict[datetime, TimeSlot]:
        day_start = datetime.combine(day, time.min)
        rows = (
            self.db.query(TimeSlot)
            .filter(
                TimeSlot.slot_start >= day_start,
                TimeSlot.slot_start < day_start + timedelta(days=1),
            )
            .all()
        )
        return {row.slot_start: row for row in rows}

    # Queries

    def list_availability(self, day: date, now: datetime) -> List[SlotAvailability]:
        """
        All bookable slots for a date with their current load.

        Empty when the date is outside the scheduling horizon or the shop is
        closed that day. Slots inside the minimum advance window are left out.
        """
        if not self._in_horizon(day, now):
            return []

        hours = self.hours_for(day.weekday())
        if hours.is_closed:
            return []

        earliest = self._earliest_pickup(now)
        rows = self._ledger_rows(day)

        availability = []
        for start in self._grid(day, hours):
            if start < earliest:
                continue
            row = rows.get(start)
            availability.append(
                SlotAvailability(
                    start=start,
                    label=slot_label(start),
                    capacity=row.capacity if row else hours.max_orders_per_slot,
                    committed=row.committed_count if row else 0,
                )
            )
        return availability

    def slot_capacity(self, at: datetime) -> SlotAvailability:
        """Capacity snapshot of the slot containing an instant (zero when closed)."""
        at = to_shop_time(at, self.config.TIMEZONE)
        hours = self.hours_for(at.weekday())
        start = None if hours.is_closed else self._slot_containing(at, hours)
        if start is None:
            return SlotAvailability(start=at, label=slot_label(at), capacity=0, committed=0)

        row = self.db.query(TimeSlot).filter(TimeSlot.slot_start == start).first()
        return SlotAvailability(
            start=start,
            label=slot_label(start),
            capacity=row.capacity if row else hours.max_orders_per_slot,
            committed=row.committed_count if row else 0,
        )

    # Admission

    def validate_pickup_time(self, slot_start: datetime, now: datetime) -> BusinessHours:
        if slot_start.second or slot_start.microsecond:
            raise InvalidPickupTime(slot_start, "pickup times must fall on a slot boundary")
        if not self._in_horizon(slot_start.date(), now):
            raise InvalidPickupTime(
                slot_start,
                f"orders can only be scheduled up to {self.config.HORIZON_DAYS} days in advance",
            )
        if slot_start < self._earliest_pickup(now):
            raise InvalidPickupTime(
                slot_start,
                f"orders must be scheduled at least {self.config.MIN_ADVANCE_MINUTES} minutes in advance",
            )

        hours = self.hours_for(slot_start.weekday())
        if hours.is_closed:
            raise InvalidPickupTime(slot_start, "the shop is closed that day")
        if self._slot_containing(slot_start, hours) != slot_start:
            raise InvalidPickupTime(slot_start, "outside business hours or not a slot boundary")
        return hours

    def _insert_if_missing(self, slot_start: datetime, capacity: int):
        dialect = dialect_name(self.db)
        if dialect == "postgresql":
            insert_fn = pg_insert
        elif dialect == "sqlite":
            insert_fn = sqlite_insert
        else:
            raise RuntimeError(f"Unsupported database dialect for slot ledger: {dialect}")

        stmt = (
            insert_fn(TimeSlot)
            .values(slot_start=slot_start, capacity=capacity, committed_count=0)
            .on_conflict_do_nothing(index_elements=["slot_start"])
        )
        self.db.execute(stmt)

    def reserve(self, slot_start: datetime, now: datetime) -> None:
        """
        Take one unit of capacity in a slot.

        Runs inside the caller's transaction; a rollback returns the unit.
        Raises InvalidPickupTime for an unschedulable instant and SlotFull when
        the slot is exhausted.
        """
        hours = self.validate_pickup_time(slot_start, now)
        self._insert_if_missing(slot_start, hours.max_orders_per_slot)

        result = self.db.execute(
            update(TimeSlot)
            .where(
                TimeSlot.slot_start == slot_start,
                TimeSlot.committed_count < TimeSlot.capacity,
            )
            .values(committed_count=TimeSlot.committed_count + 1)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            capacity = self.db.execute(
                select(TimeSlot.capacity).where(TimeSlot.slot_start == slot_start)
            ).scalar_one()
            logger.info(f"Slot {slot_start} is full ({capacity} orders)")
            raise SlotFull(slot_start, capacity)

        logger.debug(f"Reserved capacity in slot {slot_start}")

    def release(self, slot_start: datetime) -> bool:
        """Return one unit of capacity; never drops below zero."""
        result = self.db.execute(
            update(TimeSlot)
            .where(
                TimeSlot.slot_start == slot_start,
                TimeSlot.committed_count > 0,
            )
            .values(committed_count=TimeSlot.committed_count - 1)
            .execution_options(synchronize_session=False)
        )
        released = result.rowcount > 0
        if not released:
            logger.warning(f"Release requested for slot {slot_start} with nothing committed")
        return released
