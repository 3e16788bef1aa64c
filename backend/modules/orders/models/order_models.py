from sqlalchemy import (Column, Integer, String, ForeignKey, DateTime,
                        Numeric, JSON, Index, CheckConstraint)
from sqlalchemy.orm import relationship
from core.database import Base
from core.mixins import TimestampMixin
from ..enums.order_enums import OrderStatus, TERMINAL_STATUSES
from decimal import Decimal


class Order(Base, TimestampMixin):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    tracking_token = Column(String(64), nullable=False, unique=True, index=True)
    idempotency_key = Column(String(128), nullable=True, unique=True)

    status = Column(String, nullable=False, index=True,
                    default=OrderStatus.PENDING.value)
    customer_status = Column(String, nullable=True)
    # Incremented on every status write; compared in the CAS update
    version = Column(Integer, nullable=False, default=1)

    # Null means ASAP
    promised_pickup_at = Column(DateTime, nullable=True, index=True)
    # Ledger slot holding capacity for this order (null for ASAP)
    slot_start = Column(DateTime, nullable=True)
    ready_at = Column(DateTime, nullable=True)

    total = Column(Numeric(10, 2), nullable=False)
    payment_reference = Column(String(128), nullable=True)

    # Staff-only contact details
    customer_id = Column(Integer, nullable=True, index=True)
    guest_name = Column(String(100), nullable=True)
    guest_email = Column(String(255), nullable=True)
    guest_phone = Column(String(32), nullable=True)
    notes = Column(String(500), nullable=True)

    order_items = relationship(
        "OrderItem",
        back_populates="order",
        order_by="OrderItem.position",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_orders_status_updated", "status", "updated_at"),
        CheckConstraint("total >= 0", name="check_order_total_non_negative"),
    )

    @property
    def is_asap(self) -> bool:
        return self.promised_pickup_at is None

    @property
    def is_terminal(self) -> bool:
        return OrderStatus(self.status) in TERMINAL_STATUSES

    @property
    def items_total(self) -> Decimal:
        return sum(
            (item.line_total for item in self.order_items), Decimal("0.00")
        )

    def __repr__(self):
        return f"<Order(id={self.id}, status='{self.status}', total={self.total})>"


class OrderItem(Base, TimestampMixin):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"),
                      nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    menu_item_id = Column(Integer, nullable=False)
    menu_item_name = Column(String(200), nullable=False)
    category = Column(String(100), nullable=True)
    quantity = Column(Integer, nullable=False)
    price_snapshot = Column(Numeric(10, 2), nullable=False)
    customizations = Column(JSON, nullable=True)

    order = relationship("Order", back_populates="order_items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="check_order_item_quantity_positive"),
    )

    @property
    def line_total(self) -> Decimal:
        return Decimal(self.price_snapshot) * self.quantity

    def __repr__(self):
        return (
            f"<OrderItem(order_id={self.order_id}, name='{self.menu_item_name}', "
            f"qty={self.quantity})>"
        )
