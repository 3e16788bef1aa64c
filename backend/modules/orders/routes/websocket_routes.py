"""
Staff websocket.

The connection is authenticated once with ?token=. Outbound events go
through the session's queue; inbound messages are ping and subscribe.
"""

from typing import Optional
import json
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from core.auth import authenticate_token
from ..enums.order_enums import FanoutEvent
from ..websocket.staff_fanout import ORDER_EVENTS, staff_fanout

logger = logging.getLogger(__name__)

router = APIRouter(tags=["staff-websocket"])


@router.websocket("/ws/staff")
async def staff_websocket(websocket: WebSocket, token: Optional[str] = Query(None)):
    identity = authenticate_token(token)
    if identity is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Unauthorized")
        return

    await websocket.accept()
    session = staff_fanout.subscribe(websocket, identity.staff_id)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except ValueError:
                session.enqueue(FanoutEvent.ERROR.value, {"message": "Invalid JSON"})
                continue

            message_type = message.get("type") if isinstance(message, dict) else None

            if message_type == "ping":
                session.enqueue(FanoutEvent.PONG.value, {})

            elif message_type == "subscribe":
                requested = set(message.get("topics") or [])
                unknown = requested - ORDER_EVENTS
                if unknown:
                    session.enqueue(
                        FanoutEvent.ERROR.value,
                        {"message": f"Unknown topics: {sorted(unknown)}"},
                    )
                    continue
                session.topics = requested or set(ORDER_EVENTS)
                session.enqueue(
                    FanoutEvent.SUBSCRIPTION_CONFIRMED.value, {"topics": sorted(session.topics)}
                )

            else:
                session.enqueue(
                    FanoutEvent.ERROR.value,
                    {"message": f"Unknown message type: {message_type}"},
                )

    except WebSocketDisconnect:
        logger.info(f"Staff {identity.staff_id} disconnected ({session.connection_id})")
    finally:
        staff_fanout.unsubscribe(session.connection_id)
