from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "pending"
    RECEIVED = "received"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class CustomerStatus(str, Enum):
    """Pickup intent reported by the customer; independent of fulfillment"""
    ON_MY_WAY = "on-my-way"
    DELAYED = "delayed"
    WONT_MAKE_IT = "wont-make-it"


class UrgencyTier(str, Enum):
    """Staff-facing priority, most urgent first"""
    OVERDUE = "overdue"
    URGENT = "urgent"
    READY_TO_START = "ready_to_start"
    SOON = "soon"
    SCHEDULED = "scheduled"

    @property
    def rank(self) -> int:
        return list(UrgencyTier).index(self)


class Station(str, Enum):
    KITCHEN = "kitchen"
    COUNTER = "counter"


class FanoutEvent(str, Enum):
    CONNECTION_ESTABLISHED = "connection_established"
    NEW_ORDER = "new_order"
    ORDER_UPDATED = "order_updated"
    CUSTOMER_STATUS_UPDATED = "customer_status_updated"
    RESYNC_REQUIRED = "resync_required"
    SUBSCRIPTION_CONFIRMED = "subscription_confirmed"
    PONG = "pong"
    ERROR = "error"


TERMINAL_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})
ACTIVE_STATUSES = (
    OrderStatus.PENDING,
    OrderStatus.RECEIVED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
)
# Orders a station still has to work on
QUEUE_STATUSES = (OrderStatus.RECEIVED, OrderStatus.PREPARING)
