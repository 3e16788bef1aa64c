# backend/modules/orders/services/order_state_machine.py

"""
Fulfillment status graph for orders.

Every call either changes the status or raises; moving an order to the
status it already has is rejected like any other missing edge.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Union
import logging

from sqlalchemy import update
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from ..enums.order_enums import CustomerStatus, OrderStatus
from ..exceptions.dispatch_exceptions import ConcurrentModification, InvalidTransition
from ..models.order_models import Order

logger = logging.getLogger(__name__)


VALID_TRANSITIONS = {
    OrderStatus.PENDING: [OrderStatus.RECEIVED, OrderStatus.CANCELLED],
    OrderStatus.RECEIVED: [OrderStatus.PREPARING, OrderStatus.CANCELLED],
    OrderStatus.PREPARING: [OrderStatus.READY, OrderStatus.CANCELLED],
    OrderStatus.READY: [OrderStatus.COMPLETED, OrderStatus.CANCELLED],
    OrderStatus.COMPLETED: [],
    OrderStatus.CANCELLED: [],
}


@dataclass(frozen=True)
class TransitionResult:
    order_id: int
    previous: OrderStatus
    current: OrderStatus

    @property
    def is_cancellation(self) -> bool:
        return self.current == OrderStatus.CANCELLED


def allowed_transitions(status: Union[OrderStatus, str]) -> List[OrderStatus]:
    return list(VALID_TRANSITIONS[OrderStatus(status)])


def check_transition(order: Order, target: Union[OrderStatus, str]) -> OrderStatus:
    """Validate an edge without touching the order; returns the current status."""
    current = OrderStatus(order.status)
    target = OrderStatus(target)
    allowed = VALID_TRANSITIONS[current]
    if target not in allowed:
        raise InvalidTransition(
            order.id, current.value, target.value, [s.value for s in allowed]
        )
    return current


def transition(
    order: Order, target: Union[OrderStatus, str], now: datetime
) -> TransitionResult:
    """Move an in-memory order along one edge of the graph."""
    previous = check_transition(order, target)
    target = OrderStatus(target)

    order.status = target.value
    order.updated_at = now
    if target == OrderStatus.READY:
        order.ready_at = now

    return TransitionResult(order_id=order.id, previous=previous, current=target)


def apply_transition(
    db: Session,
    order: Order,
    target: Union[OrderStatus, str],
    now: datetime,
    **changes,
) -> TransitionResult:
    """
    Persist a transition with a compare-and-set on (status, version).

    The UPDATE only matches while the row still holds the status and version
    this order was read with, so of two concurrent writers starting from the
    same state exactly one wins. The loser gets ConcurrentModification and
    its in-memory order is left as it was. Extra column values in changes are
    written in the same statement. Does not commit.
    """
    previous = check_transition(order, target)
    target = OrderStatus(target)
    expected_version = order.version

    values = dict(changes)
    values.update(
        status=target.value,
        version=expected_version + 1,
        updated_at=now,
    )
    if target == OrderStatus.READY:
        values["ready_at"] = now

    result = db.execute(
        update(Order)
        .where(
            Order.id == order.id,
            Order.status == previous.value,
            Order.version == expected_version,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        logger.warning(
            f"Order {order.id} changed underneath transition "
            f"{previous.value} -> {target.value} (version {expected_version})"
        )
        raise ConcurrentModification(order.id, previous.value, expected_version)

    # Mirror the row without marking the instance dirty
    for key, value in values.items():
        set_committed_value(order, key, value)

    logger.info(f"Order {order.id} status: {previous.value} -> {target.value}")
    return TransitionResult(order_id=order.id, previous=previous, current=target)


def set_customer_status(
    order: Order, value: Union[CustomerStatus, str], now: datetime
) -> None:
    """Record the customer's pickup intent; only terminal orders refuse it."""
    value = CustomerStatus(value)
    if order.is_terminal:
        raise InvalidTransition(order.id, order.status, value.value)

    order.customer_status = value.value
    order.updated_at = now
