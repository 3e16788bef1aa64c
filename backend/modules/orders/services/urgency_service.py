# backend/modules/orders/services/urgency_service.py

"""
Urgency tiers and station queue ordering.

Everything here is computed from the order's timestamps and the clock at
call time. Nothing is stored on the order, so callers recompute on every
display refresh.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence
import logging

from core.time_utils import floor_minutes
from ..config import DispatchConfig, get_dispatch_config
from ..enums.order_enums import Station, UrgencyTier
from ..models.order_models import Order, OrderItem
from .item_router import ItemRouter, get_item_router

logger = logging.getLogger(__name__)

IN_PROGRESS_TIERS = (
    UrgencyTier.OVERDUE,
    UrgencyTier.URGENT,
    UrgencyTier.READY_TO_START,
    UrgencyTier.SOON,
)


def minutes_until_pickup(promised_pickup_at: datetime, now: datetime) -> int:
    """Whole minutes until pickup, floored; negative once the time has passed."""
    return floor_minutes((promised_pickup_at - now).total_seconds())


def classify(
    promised_pickup_at: Optional[datetime],
    now: datetime,
    thresholds: Optional[Sequence[int]] = None,
) -> UrgencyTier:
    """
    Tier for a promised pickup instant.

    thresholds are the upper bounds (in minutes) of overdue, urgent,
    ready_to_start and soon. An order without a promised instant is urgent.
    """
    if promised_pickup_at is None:
        return UrgencyTier.URGENT

    overdue, urgent, ready_to_start, soon = (
        thresholds or get_dispatch_config().urgency_thresholds
    )
    minutes = minutes_until_pickup(promised_pickup_at, now)

    if minutes <= overdue:
        return UrgencyTier.OVERDUE
    if minutes <= urgent:
        return UrgencyTier.URGENT
    if minutes <= ready_to_start:
        return UrgencyTier.READY_TO_START
    if minutes <= soon:
        return UrgencyTier.SOON
    return UrgencyTier.SCHEDULED


def asap_deadline(order: Order, config: Optional[DispatchConfig] = None) -> datetime:
    config = config or get_dispatch_config()
    return order.created_at + timedelta(minutes=config.ASAP_MAX_MINUTES)


def classify_order(
    order: Order, now: datetime, config: Optional[DispatchConfig] = None
) -> UrgencyTier:
    """ASAP orders stay urgent until their promise window closes, then overdue."""
    config = config or get_dispatch_config()
    if order.promised_pickup_at is not None:
        return classify(order.promised_pickup_at, now, config.urgency_thresholds)

    if minutes_until_pickup(asap_deadline(order, config), now) <= config.OVERDUE_MINUTES:
        return UrgencyTier.OVERDUE
    return UrgencyTier.URGENT


@dataclass
class QueueEntry:
    order: Order
    items: List[OrderItem]
    tier: UrgencyTier
    minutes_until_pickup: Optional[int]

    @property
    def is_asap(self) -> bool:
        return self.order.promised_pickup_at is None


@dataclass
class StationQueue:
    station: Station
    generated_at: datetime
    in_progress: List[QueueEntry] = field(default_factory=list)
    scheduled: List[QueueEntry] = field(default_factory=list)


def _sort_key(entry: QueueEntry):
    # Timed orders by time left, then ASAP orders; FIFO within equal keys
    return (
        entry.is_asap,
        entry.minutes_until_pickup if entry.minutes_until_pickup is not None else 0,
        entry.order.created_at,
        entry.order.id,
    )


def build_station_queue(
    orders: Iterable[Order],
    station: Station,
    now: datetime,
    router: Optional[ItemRouter] = None,
    config: Optional[DispatchConfig] = None,
) -> StationQueue:
    """
    Queue for one station.

    Orders with no items routed to the station are left out entirely.
    """
    router = router or get_item_router()
    config = config or get_dispatch_config()
    queue = StationQueue(station=station, generated_at=now)

    for order in orders:
        items = router.route(order.order_items).get(station)
        if not items:
            continue

        tier = classify_order(order, now, config)
        minutes = (
            minutes_until_pickup(order.promised_pickup_at, now)
            if order.promised_pickup_at is not None
            else None
        )
        entry = QueueEntry(order=order, items=items, tier=tier, minutes_until_pickup=minutes)

        if tier in IN_PROGRESS_TIERS:
            queue.in_progress.append(entry)
        else:
            queue.scheduled.append(entry)

    queue.in_progress.sort(key=_sort_key)
    queue.scheduled.sort(key=_sort_key)
    logger.debug(
        f"{station.value} queue: {len(queue.in_progress)} in progress, "
        f"{len(queue.scheduled)} scheduled"
    )
    return queue
