from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List, Dict
from datetime import datetime, date
from decimal import Decimal
from ..enums.order_enums import (
    OrderStatus,
    CustomerStatus,
    UrgencyTier,
    Station,
)


class OrderItemCreate(BaseModel):
    menu_item_id: int
    quantity: int = Field(..., gt=0, le=99)
    customizations: Optional[Dict[str, str]] = None


class OrderCreate(BaseModel):
    """Order placement request. Omit pickup_at for an ASAP order."""

    items: List[OrderItemCreate] = Field(..., min_length=1)
    pickup_at: Optional[datetime] = None
    idempotency_key: Optional[str] = Field(None, min_length=8, max_length=128)
    payment_reference: Optional[str] = Field(None, max_length=128)

    customer_id: Optional[int] = None
    guest_name: Optional[str] = Field(None, max_length=100)
    guest_email: Optional[EmailStr] = None
    guest_phone: Optional[str] = Field(None, max_length=32)
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("pickup_at")
    @classmethod
    def drop_timezone(cls, v):
        # Stored timestamps are naive shop time
        if v is not None and v.tzinfo is not None:
            raise ValueError("pickup_at must be a local shop time without offset")
        return v


class OrderItemOut(BaseModel):
    id: int
    position: int
    menu_item_id: int
    menu_item_name: str
    category: Optional[str] = None
    quantity: int
    price_snapshot: Decimal
    customizations: Optional[Dict[str, str]] = None

    class Config:
        from_attributes = True


class OrderOut(BaseModel):
    """Full order as seen by staff"""

    id: int
    tracking_token: str
    status: OrderStatus
    customer_status: Optional[CustomerStatus] = None
    version: int
    promised_pickup_at: Optional[datetime] = None
    is_asap: bool
    total: Decimal
    payment_reference: Optional[str] = None
    customer_id: Optional[int] = None
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    notes: Optional[str] = None
    ready_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    order_items: List[OrderItemOut]

    class Config:
        from_attributes = True


class CustomerItemOut(BaseModel):
    menu_item_name: str
    quantity: int
    price_snapshot: Decimal
    customizations: Optional[Dict[str, str]] = None

    class Config:
        from_attributes = True


class CustomerTrackingOut(BaseModel):
    """Customer-facing view of an order; carries no staff-only fields"""

    tracking_token: str
    status: OrderStatus
    customer_status: Optional[CustomerStatus] = None
    promised_pickup_at: Optional[datetime] = None
    is_asap: bool
    estimated_ready_from: Optional[datetime] = None
    estimated_ready_by: Optional[datetime] = None
    total: Decimal
    ready_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    items: List[CustomerItemOut]


class StatusUpdate(BaseModel):
    status: OrderStatus


class CustomerStatusUpdate(BaseModel):
    customer_status: CustomerStatus


class PaymentConfirmation(BaseModel):
    payment_reference: str = Field(..., min_length=1, max_length=128)


class ActiveOrdersOut(BaseModel):
    """Authoritative snapshot; clients replace their local view with it"""

    orders: List[OrderOut]
    server_time: datetime
    poll_interval_seconds: int


class UpdatedSinceOut(BaseModel):
    orders: List[OrderOut]
    since: datetime
    server_time: datetime


class StatusCountsOut(BaseModel):
    counts: Dict[OrderStatus, int]
    server_time: datetime


class ScheduleOut(BaseModel):
    service_date: date
    orders: List[OrderOut]


class QueueCardOut(BaseModel):
    """One order on a station display, limited to that station's items"""

    order_id: int
    status: OrderStatus
    customer_status: Optional[CustomerStatus] = None
    tier: UrgencyTier
    minutes_until_pickup: Optional[int] = None
    is_asap: bool
    promised_pickup_at: Optional[datetime] = None
    guest_name: Optional[str] = None
    created_at: datetime
    items: List[OrderItemOut]


class StationQueueOut(BaseModel):
    station: Station
    generated_at: datetime
    poll_interval_seconds: int
    in_progress: List[QueueCardOut]
    scheduled: List[QueueCardOut]
