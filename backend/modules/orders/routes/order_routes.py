"""
Public order endpoints: placement, customer tracking and the payment
collaborator's confirmation callback.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from core.database import get_db
from core.time_utils import get_current_time
from ..schemas.order_schemas import (
    CustomerStatusUpdate,
    CustomerTrackingOut,
    OrderCreate,
    OrderOut,
    PaymentConfirmation,
)
from ..services.dispatch_service import DispatchCoordinator, build_tracking_view

router = APIRouter(prefix="/orders", tags=["orders"])


def get_dispatch_coordinator(db: Session = Depends(get_db)) -> DispatchCoordinator:
    return DispatchCoordinator(db)


@router.post("", response_model=CustomerTrackingOut, status_code=status.HTTP_201_CREATED)
async def place_order(
    order_data: OrderCreate,
    coordinator: DispatchCoordinator = Depends(get_dispatch_coordinator),
    now: datetime = Depends(get_current_time),
):
    """
    Place an order.

    Omit pickup_at for ASAP. Send an idempotency_key so a retried request
    returns the original order instead of creating a second one.
    """
    order = coordinator.place_order(order_data, now)
    return build_tracking_view(order)


@router.get("/track/{tracking_token}", response_model=CustomerTrackingOut)
async def track_order(
    tracking_token: str,
    coordinator: DispatchCoordinator = Depends(get_dispatch_coordinator),
):
    """Order status for customers; no authentication required."""
    return build_tracking_view(coordinator.get_by_tracking_token(tracking_token))


@router.patch("/track/{tracking_token}/customer-status", response_model=CustomerTrackingOut)
async def update_customer_status(
    tracking_token: str,
    update: CustomerStatusUpdate,
    coordinator: DispatchCoordinator = Depends(get_dispatch_coordinator),
    now: datetime = Depends(get_current_time),
):
    """Let the customer tell the shop they are on their way, delayed or not coming."""
    order = coordinator.update_customer_status(tracking_token, update.customer_status, now)
    return build_tracking_view(order)


@router.post("/{order_id}/payment-confirmation", response_model=OrderOut)
async def confirm_payment(
    order_id: int,
    confirmation: PaymentConfirmation,
    coordinator: DispatchCoordinator = Depends(get_dispatch_coordinator),
    now: datetime = Depends(get_current_time),
):
    """Called by the payment service once capture succeeded."""
    return coordinator.confirm_payment(order_id, confirmation.payment_reference, now)
