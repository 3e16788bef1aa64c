# backend/modules/scheduling/schemas/scheduling_schemas.py

from datetime import date, datetime, time
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class SlotAvailabilityOut(BaseModel):
    """One pickup slot and its current load"""

    start: datetime
    label: str
    capacity: int
    committed: int
    remaining: int
    available: bool

    class Config:
        from_attributes = True


class SlotListResponse(BaseModel):
    service_date: date
    slots: List[SlotAvailabilityOut]
    has_availability: bool


class BusinessHoursOut(BaseModel):
    weekday: int
    open_time: time
    close_time: time
    is_closed: bool
    max_orders_per_slot: int
    slot_duration_minutes: int

    class Config:
        from_attributes = True


class BusinessHoursUpdate(BaseModel):
    """Partial update for one weekday; omitted fields keep their value"""

    open_time: Optional[time] = None
    close_time: Optional[time] = None
    is_closed: Optional[bool] = None
    max_orders_per_slot: Optional[int] = Field(None, ge=0, le=500)
    slot_duration_minutes: Optional[int] = Field(None, ge=5, le=240)

    @model_validator(mode="after")
    def check_times(self):
        if self.open_time and self.close_time and self.open_time >= self.close_time:
            raise ValueError("open_time must be before close_time")
        return self
