# backend/modules/orders/tests/test_staff_fanout.py

import asyncio
import json
from datetime import datetime

import pytest

from core.time_utils import utc_now
from ..enums.order_enums import FanoutEvent
from ..websocket.staff_fanout import StaffFanout
from .fakes import FakeTransport


async def wait_for_sent(transport, count, timeout=1.0):
    """Let sender tasks run until the transport has seen count messages."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while len(transport.sent) < count and loop.time() < deadline:
        await asyncio.sleep(0.01)
    return transport.sent


@pytest.fixture
def fanout():
    return StaffFanout(queue_size=10)


class TestDelivery:
    """Test cases for per-session delivery."""

    @pytest.mark.asyncio
    async def test_connection_established_then_events_in_order(self, fanout):
        transport = FakeTransport()
        session = fanout.subscribe(transport, staff_id=7)

        fanout.publish(FanoutEvent.NEW_ORDER.value, {"id": 1})
        fanout.publish(FanoutEvent.ORDER_UPDATED.value, {"id": 1, "status": "preparing"})
        sent = await wait_for_sent(transport, 3)

        assert [m["type"] for m in sent] == ["connection_established", "new_order", "order_updated"]
        assert [m["sequence"] for m in sent] == [1, 2, 3]
        assert sent[0]["data"]["connection_id"] == session.connection_id
        assert sent[0]["data"]["poll_interval_seconds"] == 30
        assert sent[2]["data"]["status"] == "preparing"
        await fanout.close()

    @pytest.mark.asyncio
    async def test_messages_carry_naive_utc_timestamp(self, fanout):
        transport = FakeTransport()
        before = utc_now()
        session = fanout.subscribe(transport, staff_id=7)

        sent = await wait_for_sent(transport, 1)
        stamped = datetime.fromisoformat(sent[0]["timestamp"])

        assert stamped.tzinfo is None
        assert before <= stamped <= utc_now()
        assert session.connected_at.tzinfo is None
        await fanout.close()

    @pytest.mark.asyncio
    async def test_publish_reaches_every_session(self, fanout):
        first, second = FakeTransport(), FakeTransport()
        fanout.subscribe(first, staff_id=1)
        fanout.subscribe(second, staff_id=2)

        delivered = fanout.publish(FanoutEvent.NEW_ORDER.value, {"id": 9})

        assert delivered == 2
        assert (await wait_for_sent(first, 2))[-1]["data"] == {"id": 9}
        assert (await wait_for_sent(second, 2))[-1]["data"] == {"id": 9}
        await fanout.close()

    @pytest.mark.asyncio
    async def test_topic_filter(self, fanout):
        transport = FakeTransport()
        fanout.subscribe(transport, staff_id=7, topics=[FanoutEvent.ORDER_UPDATED.value])

        assert fanout.publish(FanoutEvent.NEW_ORDER.value, {"id": 1}) == 0
        assert fanout.publish(FanoutEvent.ORDER_UPDATED.value, {"id": 1}) == 1
        sent = await wait_for_sent(transport, 2)

        assert [m["type"] for m in sent] == ["connection_established", "order_updated"]
        await fanout.close()

    def test_publish_without_sessions_or_loop(self, fanout):
        assert fanout.publish(FanoutEvent.NEW_ORDER.value, {"id": 1}) == 0


class TestBackpressure:
    @pytest.mark.asyncio
    async def test_overflow_replaced_by_resync(self):
        """A session that falls behind gets one resync_required instead of its backlog."""
        fanout = StaffFanout(queue_size=2)
        transport = FakeTransport()
        session = fanout.subscribe(transport, staff_id=7)

        fanout.publish(FanoutEvent.NEW_ORDER.value, {"id": 1})
        fanout.publish(FanoutEvent.NEW_ORDER.value, {"id": 2})
        sent = await wait_for_sent(transport, 1)

        assert [m["type"] for m in sent] == ["resync_required"]
        assert sent[0]["sequence"] == 4
        assert sent[0]["data"] == {"reason": "queue_overflow", "last_sequence": 3}
        assert session.dropped_events == 3

        fanout.publish(FanoutEvent.ORDER_UPDATED.value, {"id": 2})
        sent = await wait_for_sent(transport, 2)
        assert sent[-1]["sequence"] == 5
        await fanout.close()


class TestDisconnects:
    @pytest.mark.asyncio
    async def test_failed_send_drops_session(self, fanout):
        """A dead client is removed without affecting the others."""
        dead = FakeTransport(fail_after=1)
        healthy = FakeTransport()
        fanout.subscribe(dead, staff_id=1)
        fanout.subscribe(healthy, staff_id=2)

        fanout.publish(FanoutEvent.NEW_ORDER.value, {"id": 1})
        await wait_for_sent(healthy, 2)
        await asyncio.sleep(0.05)

        assert fanout.connection_count == 1
        assert fanout.publish(FanoutEvent.ORDER_UPDATED.value, {"id": 1}) == 1
        assert [m["type"] for m in await wait_for_sent(healthy, 3)][-1] == "order_updated"
        await fanout.close()

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_sender(self, fanout):
        session = fanout.subscribe(FakeTransport(), staff_id=7)

        fanout.unsubscribe(session.connection_id)
        await asyncio.sleep(0.01)

        assert fanout.connection_count == 0
        assert session.sender_task.cancelled() or session.sender_task.done()
        fanout.unsubscribe(session.connection_id)


class TestRedisRelay:
    """Cross-instance messages, exercised without a Redis server."""

    @pytest.mark.asyncio
    async def test_messages_from_other_instances_are_delivered(self, fanout):
        transport = FakeTransport()
        fanout.subscribe(transport, staff_id=7)

        fanout.relay._process_broadcast_message(
            json.dumps({"server_id": "other", "type": "order_updated", "data": {"id": 3}})
        )
        sent = await wait_for_sent(transport, 2)

        assert sent[-1]["type"] == "order_updated"
        assert sent[-1]["data"] == {"id": 3}
        await fanout.close()

    @pytest.mark.asyncio
    async def test_own_and_malformed_messages_ignored(self, fanout):
        transport = FakeTransport()
        session = fanout.subscribe(transport, staff_id=7)

        fanout.relay._process_broadcast_message(
            json.dumps({"server_id": fanout.relay.server_id, "type": "new_order", "data": {}})
        )
        fanout.relay._process_broadcast_message("not json")

        assert session.sequence == 1
        await fanout.close()

    @pytest.mark.asyncio
    async def test_relay_inactive_without_redis(self, fanout):
        assert fanout.relay.active is False
        await fanout.relay.publish("new_order", {"id": 1})
