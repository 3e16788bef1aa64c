# backend/modules/orders/services/dispatch_service.py

"""
Order dispatch coordinator.

Placement and status changes commit first and broadcast second, so a
staff display never sees an event for a state that is not yet durable.
Broadcast failures are logged and never undo or fail the write.
"""

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple, Union
import logging
import secrets

from sqlalchemy import func
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session, selectinload

from core.time_utils import shop_now
from modules.scheduling.services.slot_ledger import SlotLedger
from ..config import DispatchConfig, get_dispatch_config
from ..enums.order_enums import (
    ACTIVE_STATUSES,
    QUEUE_STATUSES,
    CustomerStatus,
    FanoutEvent,
    OrderStatus,
    Station,
)
from ..exceptions.dispatch_exceptions import (
    ConcurrentModification,
    DispatchError,
    ItemUnavailable,
    OrderNotFound,
    UpstreamUnavailable,
)
from ..models.order_models import Order, OrderItem
from ..schemas.order_schemas import (
    CustomerItemOut,
    CustomerTrackingOut,
    OrderCreate,
    OrderOut,
)
from ..websocket.staff_fanout import StaffFanout, staff_fanout
from .item_router import ItemRouter, get_item_router
from .menu_lookup import DatabaseMenuLookup, MenuLookup
from .order_state_machine import TransitionResult, apply_transition, set_customer_status
from .urgency_service import StationQueue, build_station_queue

logger = logging.getLogger(__name__)


def generate_tracking_token() -> str:
    return secrets.token_urlsafe(32)


def serialize_order(order: Order) -> Dict:
    return OrderOut.model_validate(order).model_dump(mode="json")


def build_tracking_view(
    order: Order, config: Optional[DispatchConfig] = None
) -> CustomerTrackingOut:
    """Customer-facing fields only; contact details and references stay staff-side."""
    config = config or get_dispatch_config()
    ready_from = ready_by = None
    if order.is_asap:
        ready_from = order.created_at + timedelta(minutes=config.ASAP_MIN_MINUTES)
        ready_by = order.created_at + timedelta(minutes=config.ASAP_MAX_MINUTES)

    return CustomerTrackingOut(
        tracking_token=order.tracking_token,
        status=order.status,
        customer_status=order.customer_status,
        promised_pickup_at=order.promised_pickup_at,
        is_asap=order.is_asap,
        estimated_ready_from=ready_from,
        estimated_ready_by=ready_by,
        total=order.total,
        ready_at=order.ready_at,
        created_at=order.created_at,
        updated_at=order.updated_at,
        items=[CustomerItemOut.model_validate(item) for item in order.order_items],
    )


class DispatchCoordinator:
    def __init__(
        self,
        db: Session,
        fanout: Optional[StaffFanout] = None,
        menu: Optional[MenuLookup] = None,
        ledger: Optional[SlotLedger] = None,
        router: Optional[ItemRouter] = None,
        config: Optional[DispatchConfig] = None,
    ):
        self.db = db
        self.fanout = fanout if fanout is not None else staff_fanout
        self.menu = menu or DatabaseMenuLookup(db)
        self.ledger = ledger or SlotLedger(db)
        self.router = router or get_item_router()
        self.config = config or get_dispatch_config()

    # Placement

    def place_order(self, request: OrderCreate, now: Optional[datetime] = None) -> Order:
        """
        Validate, price, admit and persist a new order, then announce it.

        A repeated idempotency key returns the order created by the first
        request without touching capacity or broadcasting again.
        """
        now = now or shop_now()

        if request.idempotency_key:
            existing = self._find_by_idempotency_key(request.idempotency_key)
            if existing is not None:
                logger.info(
                    f"Idempotent replay of order {existing.id} "
                    f"for key {request.idempotency_key}"
                )
                return existing

        try:
            order = self._create_order(request, now)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            existing = self._concurrent_duplicate(request)
            if existing is not None:
                return existing
            logger.error(f"Order placement violated a constraint: {e.orig}")
            raise UpstreamUnavailable("database", str(e.orig)) from e
        except DispatchError:
            self.db.rollback()
            # A retry racing the first request can lose the slot to it
            existing = self._concurrent_duplicate(request)
            if existing is not None:
                return existing
            raise
        except DBAPIError as e:
            self.db.rollback()
            logger.error(f"Order placement failed, database unavailable: {e}")
            raise UpstreamUnavailable("database", str(e.orig)) from e

        logger.info(
            f"Order {order.id} placed: {len(request.items)} line(s), total {order.total}, "
            f"pickup {order.promised_pickup_at or 'ASAP'}, status {order.status}"
        )
        self._broadcast(FanoutEvent.NEW_ORDER, order)
        return order

    def _create_order(self, request: OrderCreate, now: datetime) -> Order:
        menu_ids = [line.menu_item_id for line in request.items]
        snapshots = self.menu.get_items(menu_ids)

        unavailable = [
            menu_id
            for menu_id in dict.fromkeys(menu_ids)
            if menu_id not in snapshots or not snapshots[menu_id].is_available
        ]
        if unavailable:
            raise ItemUnavailable(unavailable)

        items = []
        total = Decimal("0.00")
        for position, line in enumerate(request.items):
            snapshot = snapshots[line.menu_item_id]
            items.append(
                OrderItem(
                    position=position,
                    menu_item_id=snapshot.id,
                    menu_item_name=snapshot.name,
                    category=snapshot.category,
                    quantity=line.quantity,
                    price_snapshot=snapshot.price,
                    customizations=line.customizations,
                    created_at=now,
                    updated_at=now,
                )
            )
            total += snapshot.price * line.quantity

        slot_start = None
        if request.pickup_at is not None:
            slot_start = request.pickup_at
            self.ledger.reserve(slot_start, now)

        status = OrderStatus.RECEIVED if request.payment_reference else OrderStatus.PENDING

        order = Order(
            tracking_token=generate_tracking_token(),
            idempotency_key=request.idempotency_key,
            status=status.value,
            version=1,
            promised_pickup_at=request.pickup_at,
            slot_start=slot_start,
            total=total,
            payment_reference=request.payment_reference,
            customer_id=request.customer_id,
            guest_name=request.guest_name,
            guest_email=request.guest_email,
            guest_phone=request.guest_phone,
            notes=request.notes,
            created_at=now,
            updated_at=now,
            order_items=items,
        )
        self.db.add(order)
        self.db.flush()
        return order

    def _find_by_idempotency_key(self, key: str) -> Optional[Order]:
        return self.db.query(Order).filter(Order.idempotency_key == key).first()

    def _concurrent_duplicate(self, request: OrderCreate) -> Optional[Order]:
        """Order committed by another request with the same key, after a failed attempt."""
        if not request.idempotency_key:
            return None
        existing = self._find_by_idempotency_key(request.idempotency_key)
        if existing is not None:
            logger.info(
                f"Concurrent duplicate for key {request.idempotency_key}; "
                f"returning order {existing.id}"
            )
        return existing

    # Status changes

    def update_status(
        self,
        order_id: int,
        target: OrderStatus,
        now: Optional[datetime] = None,
        retry_on_conflict: bool = True,
    ) -> Tuple[Order, TransitionResult]:
        """
        Apply a staff status command.

        On a lost race the order is re-read and the command tried once more;
        the second attempt fails with InvalidTransition if the winner already
        moved the order past the requested edge.
        """
        now = now or shop_now()
        order = self.get_order(order_id)

        try:
            result = self._transition_and_commit(order, target, now)
        except ConcurrentModification:
            if not retry_on_conflict:
                raise
            self.db.refresh(order)
            result = self._transition_and_commit(order, target, now)

        self._broadcast(FanoutEvent.ORDER_UPDATED, order)
        return order, result

    def _transition_and_commit(
        self, order: Order, target: OrderStatus, now: datetime, **changes
    ) -> TransitionResult:
        try:
            result = apply_transition(self.db, order, target, now, **changes)
            if result.is_cancellation:
                self._release_capacity(order, now)
            self.db.commit()
        except DispatchError:
            self.db.rollback()
            raise
        except DBAPIError as e:
            self.db.rollback()
            logger.error(f"Status update for order {order.id} failed: {e}")
            raise UpstreamUnavailable("database", str(e.orig)) from e
        return result

    def _release_capacity(self, order: Order, now: datetime):
        if order.slot_start is None:
            return
        if order.promised_pickup_at is not None and order.promised_pickup_at <= now:
            logger.info(f"Order {order.id} cancelled after pickup time; slot kept")
            return
        self.ledger.release(order.slot_start)
        logger.info(f"Released slot {order.slot_start} held by order {order.id}")

    def confirm_payment(
        self, order_id: int, payment_reference: str, now: Optional[datetime] = None
    ) -> Order:
        """
        Record an external payment confirmation and move pending -> received.

        Repeating a confirmation with the same reference is a no-op.
        """
        now = now or shop_now()
        order = self.get_order(order_id)

        if (
            order.payment_reference == payment_reference
            and order.status != OrderStatus.PENDING.value
        ):
            logger.info(f"Payment {payment_reference} already recorded on order {order.id}")
            return order

        self._transition_and_commit(
            order, OrderStatus.RECEIVED, now, payment_reference=payment_reference
        )
        logger.info(f"Payment {payment_reference} confirmed for order {order.id}")
        self._broadcast(FanoutEvent.ORDER_UPDATED, order)
        return order

    def update_customer_status(
        self, tracking_token: str, value: CustomerStatus, now: Optional[datetime] = None
    ) -> Order:
        now = now or shop_now()
        order = self.get_by_tracking_token(tracking_token)

        try:
            set_customer_status(order, value, now)
            self.db.commit()
        except DispatchError:
            self.db.rollback()
            raise
        except DBAPIError as e:
            self.db.rollback()
            raise UpstreamUnavailable("database", str(e.orig)) from e

        logger.info(f"Order {order.id} customer status: {order.customer_status}")
        self._broadcast(FanoutEvent.CUSTOMER_STATUS_UPDATED, order)
        return order

    def _broadcast(self, event: FanoutEvent, order: Order):
        try:
            self.fanout.publish(event.value, serialize_order(order))
        except Exception as e:
            logger.error(f"Failed to broadcast {event.value} for order {order.id}: {e}")

    # Reads

    def get_order(self, order_id: int) -> Order:
        order = self.db.query(Order).filter(Order.id == order_id).first()
        if order is None:
            raise OrderNotFound(order_id)
        return order

    def get_by_tracking_token(self, tracking_token: str) -> Order:
        order = (
            self.db.query(Order).filter(Order.tracking_token == tracking_token).first()
        )
        if order is None:
            raise OrderNotFound("with that tracking token")
        return order

    def list_active_orders(self) -> List[Order]:
        return (
            self.db.query(Order)
            .options(selectinload(Order.order_items))
            .filter(Order.status.in_([s.value for s in ACTIVE_STATUSES]))
            .order_by(Order.created_at, Order.id)
            .all()
        )

    def list_updated_since(self, since: datetime) -> List[Order]:
        """Orders changed after a client's last sync, terminal ones included."""
        return (
            self.db.query(Order)
            .options(selectinload(Order.order_items))
            .filter(Order.updated_at > since)
            .order_by(Order.updated_at, Order.id)
            .all()
        )

    def list_by_status(self, statuses: Iterable[Union[OrderStatus, str]]) -> List[Order]:
        """Orders in any of the given statuses, oldest first."""
        wanted = {OrderStatus(status).value for status in statuses}
        if not wanted:
            raise ValueError("At least one status is required")
        return (
            self.db.query(Order)
            .options(selectinload(Order.order_items))
            .filter(Order.status.in_(sorted(wanted)))
            .order_by(Order.created_at, Order.id)
            .all()
        )

    def list_recent(self, limit: int = 50) -> List[Order]:
        """Newest orders first, whatever their status."""
        if limit < 1:
            raise ValueError("limit must be at least 1")
        return (
            self.db.query(Order)
            .options(selectinload(Order.order_items))
            .order_by(Order.created_at.desc(), Order.id.desc())
            .limit(limit)
            .all()
        )

    def status_counts(self) -> Dict[OrderStatus, int]:
        counts = {status: 0 for status in ACTIVE_STATUSES}
        rows = (
            self.db.query(Order.status, func.count(Order.id))
            .filter(Order.status.in_([s.value for s in ACTIVE_STATUSES]))
            .group_by(Order.status)
            .all()
        )
        for status, count in rows:
            counts[OrderStatus(status)] = count
        return counts

    def scheduled_orders_for_date(self, day: date) -> List[Order]:
        day_start = datetime.combine(day, time.min)
        return (
            self.db.query(Order)
            .options(selectinload(Order.order_items))
            .filter(
                Order.promised_pickup_at >= day_start,
                Order.promised_pickup_at < day_start + timedelta(days=1),
                Order.status != OrderStatus.CANCELLED.value,
            )
            .order_by(Order.promised_pickup_at, Order.created_at)
            .all()
        )

    def station_queue(self, station: Station, now: Optional[datetime] = None) -> StationQueue:
        now = now or shop_now()
        orders = (
            self.db.query(Order)
            .options(selectinload(Order.order_items))
            .filter(Order.status.in_([s.value for s in QUEUE_STATUSES]))
            .all()
        )
        return build_station_queue(orders, station, now, self.router, self.config)
