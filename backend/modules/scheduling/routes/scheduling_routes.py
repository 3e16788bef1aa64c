# backend/modules/scheduling/routes/scheduling_routes.py

"""
Pickup scheduling endpoints.

Slot queries are public so the ordering site can offer pickup times;
changing business hours requires a manager token.
"""

from datetime import date, datetime
from typing import List

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from core.auth import StaffIdentity, require_manager
from core.database import get_db
from core.time_utils import get_current_time
from ..schemas.scheduling_schemas import (
    BusinessHoursOut,
    BusinessHoursUpdate,
    SlotAvailabilityOut,
    SlotListResponse,
)
from ..services.slot_ledger import SlotLedger

router = APIRouter(prefix="/scheduling", tags=["scheduling"])


@router.get("/slots", response_model=SlotListResponse)
async def list_slots(
    day: date = Query(..., alias="date", description="Calendar date in shop time"),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_current_time),
):
    """Available pickup slots for a date."""
    slots = SlotLedger(db).list_availability(day, now)
    return SlotListResponse(
        service_date=day,
        slots=[SlotAvailabilityOut.model_validate(slot) for slot in slots],
        has_availability=any(slot.available for slot in slots),
    )


@router.get("/slots/capacity", response_model=SlotAvailabilityOut)
async def get_slot_capacity(
    at: datetime = Query(..., description="Any instant inside the slot"),
    db: Session = Depends(get_db),
):
    return SlotAvailabilityOut.model_validate(SlotLedger(db).slot_capacity(at))


@router.get("/business-hours", response_model=List[BusinessHoursOut])
async def get_business_hours(db: Session = Depends(get_db)):
    return SlotLedger(db).get_business_hours()


@router.put("/business-hours/{weekday}", response_model=BusinessHoursOut)
async def update_business_hours(
    update: BusinessHoursUpdate,
    weekday: int = Path(..., ge=0, le=6),
    db: Session = Depends(get_db),
    staff: StaffIdentity = Depends(require_manager),
):
    """
    Update opening hours and slot settings for a weekday (0 = Monday).

    Requires manager permissions.
    """
    return SlotLedger(db).update_business_hours(
        weekday, update.model_dump(exclude_unset=True)
    )
