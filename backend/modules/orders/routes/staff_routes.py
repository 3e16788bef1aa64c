"""
Staff order endpoints.

GET /staff/orders/active is the authoritative snapshot clients fall back
to whenever the websocket drops or asks them to resync.
"""

from datetime import date, datetime
from typing import List

from fastapi import APIRouter, Depends, Query

from core.auth import StaffIdentity, get_current_staff
from core.time_utils import get_current_time
from ..config import get_dispatch_config
from ..enums.order_enums import Station
from ..schemas.order_schemas import (
    ActiveOrdersOut,
    OrderItemOut,
    OrderOut,
    QueueCardOut,
    ScheduleOut,
    StationQueueOut,
    StatusCountsOut,
    StatusUpdate,
    UpdatedSinceOut,
)
from ..services.dispatch_service import DispatchCoordinator
from ..services.urgency_service import QueueEntry
from .order_routes import get_dispatch_coordinator
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/staff", tags=["staff-orders"])


def _queue_card(entry: QueueEntry) -> QueueCardOut:
    order = entry.order
    return QueueCardOut(
        order_id=order.id,
        status=order.status,
        customer_status=order.customer_status,
        tier=entry.tier,
        minutes_until_pickup=entry.minutes_until_pickup,
        is_asap=entry.is_asap,
        promised_pickup_at=order.promised_pickup_at,
        guest_name=order.guest_name,
        created_at=order.created_at,
        items=[OrderItemOut.model_validate(item) for item in entry.items],
    )


@router.patch("/orders/{order_id}/status", response_model=OrderOut)
async def update_order_status(
    order_id: int,
    update: StatusUpdate,
    coordinator: DispatchCoordinator = Depends(get_dispatch_coordinator),
    now: datetime = Depends(get_current_time),
    staff: StaffIdentity = Depends(get_current_staff),
):
    """Move an order to a new fulfillment status."""
    order, result = coordinator.update_status(order_id, update.status, now)
    logger.info(
        f"Staff {staff.staff_id} moved order {order_id} "
        f"{result.previous.value} -> {result.current.value}"
    )
    return order


@router.get("/orders/active", response_model=ActiveOrdersOut)
async def list_active_orders(
    coordinator: DispatchCoordinator = Depends(get_dispatch_coordinator),
    now: datetime = Depends(get_current_time),
    staff: StaffIdentity = Depends(get_current_staff),
):
    return ActiveOrdersOut(
        orders=[OrderOut.model_validate(o) for o in coordinator.list_active_orders()],
        server_time=now,
        poll_interval_seconds=get_dispatch_config().POLL_INTERVAL_SECONDS,
    )


@router.get("/orders/updated-since", response_model=UpdatedSinceOut)
async def list_updated_since(
    since: datetime = Query(..., description="Last server_time the client saw"),
    coordinator: DispatchCoordinator = Depends(get_dispatch_coordinator),
    now: datetime = Depends(get_current_time),
    staff: StaffIdentity = Depends(get_current_staff),
):
    return UpdatedSinceOut(
        orders=[OrderOut.model_validate(o) for o in coordinator.list_updated_since(since)],
        since=since,
        server_time=now,
    )


@router.get("/orders/status-counts", response_model=StatusCountsOut)
async def get_status_counts(
    coordinator: DispatchCoordinator = Depends(get_dispatch_coordinator),
    now: datetime = Depends(get_current_time),
    staff: StaffIdentity = Depends(get_current_staff),
):
    return StatusCountsOut(counts=coordinator.status_counts(), server_time=now)


@router.get("/orders", response_model=List[OrderOut])
async def list_orders_by_status(
    status: str = Query(..., description="Comma-separated statuses, e.g. completed,cancelled"),
    coordinator: DispatchCoordinator = Depends(get_dispatch_coordinator),
    staff: StaffIdentity = Depends(get_current_staff),
):
    """Order history filtered by status, oldest first."""
    statuses = [s.strip() for s in status.split(",") if s.strip()]
    return coordinator.list_by_status(statuses)


@router.get("/orders/recent", response_model=List[OrderOut])
async def list_recent_orders(
    limit: int = Query(50, ge=1, le=500),
    coordinator: DispatchCoordinator = Depends(get_dispatch_coordinator),
    staff: StaffIdentity = Depends(get_current_staff),
):
    return coordinator.list_recent(limit)


@router.get("/orders/{order_id}", response_model=OrderOut)
async def get_order(
    order_id: int,
    coordinator: DispatchCoordinator = Depends(get_dispatch_coordinator),
    staff: StaffIdentity = Depends(get_current_staff),
):
    return coordinator.get_order(order_id)


@router.get("/queue/{station}", response_model=StationQueueOut)
async def get_station_queue(
    station: Station,
    coordinator: DispatchCoordinator = Depends(get_dispatch_coordinator),
    now: datetime = Depends(get_current_time),
    staff: StaffIdentity = Depends(get_current_staff),
):
    """
    Work queue for one station, recomputed against the current time.

    in_progress holds overdue through soon orders plus ASAP orders (after
    all timed ones); scheduled holds everything further out.
    """
    queue = coordinator.station_queue(station, now)
    return StationQueueOut(
        station=queue.station,
        generated_at=queue.generated_at,
        poll_interval_seconds=get_dispatch_config().POLL_INTERVAL_SECONDS,
        in_progress=[_queue_card(entry) for entry in queue.in_progress],
        scheduled=[_queue_card(entry) for entry in queue.scheduled],
    )


@router.get("/schedule", response_model=ScheduleOut)
async def get_schedule(
    day: date = Query(..., alias="date"),
    coordinator: DispatchCoordinator = Depends(get_dispatch_coordinator),
    staff: StaffIdentity = Depends(get_current_staff),
):
    """Scheduled pickups for a date, earliest first."""
    orders = coordinator.scheduled_orders_for_date(day)
    return ScheduleOut(
        service_date=day,
        orders=[OrderOut.model_validate(o) for o in orders],
    )
