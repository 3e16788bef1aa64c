# backend/modules/orders/exceptions/dispatch_exceptions.py

from datetime import datetime
from typing import Dict, List, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
import logging

logger = logging.getLogger(__name__)


class DispatchError(Exception):
    """Base exception for all order dispatch errors"""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, error_code: str, details: Optional[Dict] = None):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict:
        """Convert exception to dictionary for API responses"""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class InvalidTransition(DispatchError):
    """Raised when the requested status is not reachable from the current one"""

    status_code = status.HTTP_409_CONFLICT

    def __init__(
        self,
        order_id: Optional[int],
        current_status: str,
        target_status: str,
        allowed: Optional[List[str]] = None,
    ):
        self.order_id = order_id
        self.current_status = current_status
        self.target_status = target_status

        message = (
            f"Order {order_id} cannot move from '{current_status}' to '{target_status}'"
        )
        details = {
            "order_id": order_id,
            "current_status": current_status,
            "target_status": target_status,
            "allowed_transitions": allowed or [],
        }
        super().__init__(message, "INVALID_TRANSITION", details)


class ConcurrentModification(DispatchError):
    """Raised when another writer changed the order first; re-read and retry once"""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, order_id: int, expected_status: str, expected_version: int):
        self.order_id = order_id
        message = f"Order {order_id} was modified concurrently"
        details = {
            "order_id": order_id,
            "expected_status": expected_status,
            "expected_version": expected_version,
            "retryable": True,
        }
        super().__init__(message, "CONCURRENT_MODIFICATION", details)


class SlotFull(DispatchError):
    """Raised when a pickup slot has no capacity left"""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, slot_start: datetime, capacity: Optional[int] = None):
        self.slot_start = slot_start
        message = f"Pickup slot {slot_start.isoformat()} is full. Please choose another time."
        details = {
            "slot_start": slot_start.isoformat(),
            "capacity": capacity,
        }
        super().__init__(message, "SLOT_FULL", details)


class InvalidPickupTime(DispatchError):
    """Raised when a requested pickup instant cannot be scheduled"""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, pickup_at: datetime, reason: str):
        self.pickup_at = pickup_at
        self.reason = reason
        message = f"Pickup time {pickup_at.isoformat()} is not available: {reason}"
        details = {"pickup_at": pickup_at.isoformat(), "reason": reason}
        super().__init__(message, "INVALID_PICKUP_TIME", details)


class ItemUnavailable(DispatchError):
    """Raised when any requested menu item cannot be ordered"""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, menu_item_ids: List[int]):
        self.menu_item_ids = menu_item_ids
        message = f"{len(menu_item_ids)} menu item(s) are no longer available"
        details = {"unavailable_menu_item_ids": menu_item_ids}
        super().__init__(message, "ITEM_UNAVAILABLE", details)


class UpstreamUnavailable(DispatchError):
    """Raised when persistence or a collaborator service is unreachable"""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, collaborator: str, reason: Optional[str] = None):
        self.collaborator = collaborator
        message = f"{collaborator} is unavailable; the order was not placed"
        details = {"collaborator": collaborator, "reason": reason}
        super().__init__(message, "UPSTREAM_UNAVAILABLE", details)


class OrderNotFound(DispatchError):
    """Raised when an order id or tracking token does not resolve"""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, reference):
        message = f"Order {reference} not found"
        super().__init__(message, "ORDER_NOT_FOUND", {"reference": str(reference)})


async def handle_dispatch_error(request: Request, exc: DispatchError) -> JSONResponse:
    """Render dispatch errors the same way as core API errors"""
    if exc.status_code >= 500:
        logger.error(f"{exc.error_code} at {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.error_code} at {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.message,
            "error_code": exc.error_code,
            "details": exc.details,
            "path": str(request.url.path),
        },
    )


def register_dispatch_exception_handlers(app):
    app.add_exception_handler(DispatchError, handle_dispatch_error)
