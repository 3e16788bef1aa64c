# backend/modules/orders/websocket/staff_fanout.py

"""
Real-time fan-out of order events to connected staff displays.

Delivery is best effort. publish() only enqueues; each session drains its
own bounded queue from a dedicated sender task, so a slow or dead client
never holds up an order write. Events to one session arrive in publish
order and carry a per-session sequence number. A session that falls too
far behind has its backlog replaced by one resync_required event, after
which the client re-fetches GET /staff/orders/active.
"""

from typing import Any, Dict, Iterable, Optional, Protocol, Set
import asyncio
import json
import logging
import uuid

import redis.asyncio as redis

from core.config import settings
from core.redis_config import get_redis_client
from core.time_utils import utc_now
from ..config import get_dispatch_config
from ..enums.order_enums import FanoutEvent

logger = logging.getLogger(__name__)

# Delivered regardless of the session's topic filter
CONTROL_EVENTS = {
    FanoutEvent.CONNECTION_ESTABLISHED.value,
    FanoutEvent.RESYNC_REQUIRED.value,
    FanoutEvent.SUBSCRIPTION_CONFIRMED.value,
    FanoutEvent.PONG.value,
    FanoutEvent.ERROR.value,
}

ORDER_EVENTS = {
    FanoutEvent.NEW_ORDER.value,
    FanoutEvent.ORDER_UPDATED.value,
    FanoutEvent.CUSTOMER_STATUS_UPDATED.value,
}


class Transport(Protocol):
    async def send_json(self, data: Any) -> None:
        ...


class StaffSession:
    """One connected staff client and its outbound queue"""

    def __init__(
        self,
        transport: Transport,
        staff_id: int,
        topics: Optional[Iterable[str]] = None,
        queue_size: int = 100,
    ):
        self.connection_id = str(uuid.uuid4())
        self.transport = transport
        self.staff_id = staff_id
        self.topics: Set[str] = set(topics) if topics else set(ORDER_EVENTS)
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.sequence = 0
        self.dropped_events = 0
        self.connected_at = utc_now()
        self.sender_task: Optional[asyncio.Task] = None

    def wants(self, event_type: str) -> bool:
        return event_type in CONTROL_EVENTS or event_type in self.topics

    def _message(self, event_type: str, data: Dict[str, Any]) -> Dict[str, Any]:
        self.sequence += 1
        return {
            "type": event_type,
            "sequence": self.sequence,
            "timestamp": utc_now().isoformat(),
            "data": data,
        }

    def enqueue(self, event_type: str, data: Dict[str, Any]) -> bool:
        """
        Queue an event without waiting.

        Returns False when the queue overflowed and the backlog was replaced
        with a resync_required event.
        """
        try:
            self.queue.put_nowait(self._message(event_type, data))
            return True
        except asyncio.QueueFull:
            pass

        discarded = 0
        while not self.queue.empty():
            self.queue.get_nowait()
            discarded += 1
        self.dropped_events += discarded + 1

        logger.warning(
            f"Staff session {self.connection_id} fell behind; "
            f"dropped {discarded + 1} events and requested resync"
        )
        self.queue.put_nowait(
            self._message(
                FanoutEvent.RESYNC_REQUIRED.value,
                {"reason": "queue_overflow", "last_sequence": self.sequence},
            )
        )
        return False


class RedisEventRelay:
    """
    Relays published events to sibling instances over Redis pub/sub.

    Messages carry the publishing server's id so an instance ignores its own.
    """

    def __init__(self, fanout: "StaffFanout", channel: Optional[str] = None):
        self.fanout = fanout
        self.channel = channel or settings.redis_channel
        self.server_id = str(uuid.uuid4())
        self.redis_client: Optional[redis.Redis] = None
        self.pubsub = None
        self._subscription_task: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return self.redis_client is not None

    async def start(self) -> bool:
        self.redis_client = await get_redis_client()
        if self.redis_client is None:
            return False

        self.pubsub = self.redis_client.pubsub()
        await self.pubsub.subscribe(self.channel)
        self._subscription_task = asyncio.create_task(self._handle_subscriptions())
        logger.info(f"Staff event relay started on '{self.channel}' as {self.server_id}")
        return True

    async def close(self):
        if self._subscription_task:
            self._subscription_task.cancel()
            self._subscription_task = None

        if self.pubsub:
            await self.pubsub.unsubscribe()
            await self.pubsub.aclose()
            self.pubsub = None

        self.redis_client = None

    async def publish(self, event_type: str, data: Dict[str, Any]):
        if not self.redis_client:
            return
        envelope = {"server_id": self.server_id, "type": event_type, "data": data}
        try:
            await self.redis_client.publish(self.channel, json.dumps(envelope))
        except redis.RedisError as e:
            logger.error(f"Failed to relay {event_type} event: {e}")

    async def _handle_subscriptions(self):
        try:
            async for message in self.pubsub.listen():
                if message["type"] == "message":
                    self._process_broadcast_message(message["data"])
        except asyncio.CancelledError:
            raise
        except redis.RedisError as e:
            logger.error(f"Staff event relay stopped: {e}")

    def _process_broadcast_message(self, raw: str):
        try:
            envelope = json.loads(raw)
        except ValueError:
            logger.error("Discarding malformed relay message")
            return

        if envelope.get("server_id") == self.server_id:
            return
        self.fanout.deliver_local(envelope["type"], envelope.get("data") or {})


class StaffFanout:
    """Registry of connected staff sessions"""

    def __init__(self, queue_size: Optional[int] = None):
        self.queue_size = queue_size or get_dispatch_config().FANOUT_QUEUE_SIZE
        self.sessions: Dict[str, StaffSession] = {}
        self.relay = RedisEventRelay(self)
        self._relay_tasks: Set[asyncio.Task] = set()

    async def start(self):
        if settings.redis_enabled:
            await self.relay.start()

    async def close(self):
        for connection_id in list(self.sessions):
            self.unsubscribe(connection_id)
        await self.relay.close()

    def subscribe(
        self,
        transport: Transport,
        staff_id: int,
        topics: Optional[Iterable[str]] = None,
    ) -> StaffSession:
        """Register a connection and start its sender; must run on the event loop."""
        session = StaffSession(transport, staff_id, topics, self.queue_size)
        self.sessions[session.connection_id] = session
        session.sender_task = asyncio.create_task(self._sender(session))

        session.enqueue(
            FanoutEvent.CONNECTION_ESTABLISHED.value,
            {
                "connection_id": session.connection_id,
                "staff_id": staff_id,
                "topics": sorted(session.topics),
                "poll_interval_seconds": get_dispatch_config().POLL_INTERVAL_SECONDS,
            },
        )
        logger.info(
            f"Staff {staff_id} subscribed as {session.connection_id} "
            f"({len(self.sessions)} connected)"
        )
        return session

    def unsubscribe(self, connection_id: str) -> None:
        session = self.sessions.pop(connection_id, None)
        if session is None:
            return

        task = session.sender_task
        if task is not None and task is not asyncio.current_task():
            task.cancel()
        logger.info(f"Staff session {connection_id} unsubscribed")

    def deliver_local(self, event_type: str, data: Dict[str, Any]) -> int:
        delivered = 0
        for session in list(self.sessions.values()):
            if session.wants(event_type):
                session.enqueue(event_type, data)
                delivered += 1
        return delivered

    def publish(self, event_type: str, data: Dict[str, Any]) -> int:
        """
        Queue an event for every interested session; never blocks.

        Returns the number of local sessions the event was queued for.
        """
        delivered = self.deliver_local(event_type, data)

        if self.relay.active:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                logger.debug(f"No running loop; {event_type} not relayed")
            else:
                task = loop.create_task(self.relay.publish(event_type, data))
                self._relay_tasks.add(task)
                task.add_done_callback(self._relay_tasks.discard)

        logger.debug(f"Published {event_type} to {delivered} staff sessions")
        return delivered

    async def _sender(self, session: StaffSession):
        try:
            while True:
                message = await session.queue.get()
                await session.transport.send_json(message)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(
                f"Error sending to staff session {session.connection_id}: {e}; dropping it"
            )
            self.unsubscribe(session.connection_id)

    @property
    def connection_count(self) -> int:
        return len(self.sessions)


# Global fan-out instance
staff_fanout = StaffFanout()
