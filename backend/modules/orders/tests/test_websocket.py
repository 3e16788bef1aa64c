# backend/modules/orders/tests/test_websocket.py

import pytest
from starlette.websockets import WebSocketDisconnect

from core.auth import create_access_token


@pytest.fixture
def staff_token():
    return create_access_token(staff_id=7, username="barista", roles=["staff"])


class TestStaffWebsocket:
    """Test cases for the staff event stream."""

    def test_rejects_missing_token(self, client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/ws/staff"):
                pass
        assert exc_info.value.code == 1008

    def test_rejects_non_staff_token(self, client):
        token = create_access_token(staff_id=3, roles=["customer"])

        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect(f"/ws/staff?token={token}"):
                pass

    def test_handshake_and_ping(self, client, staff_token):
        with client.websocket_connect(f"/ws/staff?token={staff_token}") as ws:
            hello = ws.receive_json()
            assert hello["type"] == "connection_established"
            assert hello["sequence"] == 1
            assert hello["data"]["staff_id"] == 7
            assert hello["data"]["topics"] == ["customer_status_updated", "new_order", "order_updated"]

            ws.send_json({"type": "ping"})
            pong = ws.receive_json()
            assert pong["type"] == "pong"
            assert pong["sequence"] == 2

    def test_new_order_pushed(self, client, staff_token, menu):
        with client.websocket_connect(f"/ws/staff?token={staff_token}") as ws:
            ws.receive_json()

            response = client.post(
                "/orders",
                json={"items": [{"menu_item_id": menu["latte"].id, "quantity": 1}]},
            )
            event = ws.receive_json()

        assert response.status_code == 201
        assert event["type"] == "new_order"
        assert event["data"]["tracking_token"] == response.json()["tracking_token"]
        assert event["data"]["order_items"][0]["menu_item_name"] == "Oat Latte"

    def test_subscribe_filters_topics(self, client, staff_token, staff_headers, make_order):
        order = make_order(status="received")

        with client.websocket_connect(f"/ws/staff?token={staff_token}") as ws:
            ws.receive_json()
            ws.send_json({"type": "subscribe", "topics": ["order_updated"]})
            confirmed = ws.receive_json()

            client.patch(
                f"/orders/track/{order.tracking_token}/customer-status",
                json={"customer_status": "delayed"},
            )
            client.patch(
                f"/staff/orders/{order.id}/status",
                json={"status": "preparing"},
                headers=staff_headers,
            )
            event = ws.receive_json()

        assert confirmed["type"] == "subscription_confirmed"
        assert confirmed["data"]["topics"] == ["order_updated"]
        assert event["type"] == "order_updated"
        assert event["data"]["status"] == "preparing"
        assert event["data"]["customer_status"] == "delayed"

    @pytest.mark.parametrize(
        "message",
        [
            {"type": "subscribe", "topics": ["payroll"]},
            {"type": "dance"},
        ],
    )
    def test_bad_messages_get_error_events(self, client, staff_token, message):
        with client.websocket_connect(f"/ws/staff?token={staff_token}") as ws:
            ws.receive_json()
            ws.send_json(message)
            assert ws.receive_json()["type"] == "error"

            # Connection stays usable
            ws.send_json({"type": "ping"})
            assert ws.receive_json()["type"] == "pong"

    def test_invalid_json(self, client, staff_token):
        with client.websocket_connect(f"/ws/staff?token={staff_token}") as ws:
            ws.receive_json()
            ws.send_text("{not json")
            error = ws.receive_json()

        assert error["type"] == "error"
        assert error["data"]["message"] == "Invalid JSON"


class TestReconnectRefetch:
    def test_refetch_after_disconnect_shows_missed_changes(
        self, client, staff_token, staff_headers, make_order
    ):
        """Changes made while a display was offline appear in the full re-fetch."""
        first = make_order(status="received")
        second = make_order(status="preparing")

        with client.websocket_connect(f"/ws/staff?token={staff_token}") as ws:
            ws.receive_json()

        client.patch(f"/staff/orders/{first.id}/status", json={"status": "preparing"}, headers=staff_headers)
        client.patch(f"/staff/orders/{second.id}/status", json={"status": "ready"}, headers=staff_headers)
        client.patch(f"/staff/orders/{second.id}/status", json={"status": "completed"}, headers=staff_headers)

        snapshot = client.get("/staff/orders/active", headers=staff_headers).json()

        assert {o["id"]: o["status"] for o in snapshot["orders"]} == {first.id: "preparing"}
