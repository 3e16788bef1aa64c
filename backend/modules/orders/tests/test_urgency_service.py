# backend/modules/orders/tests/test_urgency_service.py

import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from ..config import DispatchConfig
from ..enums.order_enums import OrderStatus, Station, UrgencyTier
from ..models.order_models import Order, OrderItem
from ..services.urgency_service import (
    build_station_queue,
    classify,
    classify_order,
    minutes_until_pickup,
)

NOW = datetime(2025, 6, 2, 9, 0)


def build_order(order_id, pickup_in=None, created_ago=5, items=(("Bagel", "Bakery"),)):
    return Order(
        id=order_id,
        status=OrderStatus.RECEIVED.value,
        version=1,
        promised_pickup_at=NOW + pickup_in if pickup_in is not None else None,
        created_at=NOW - timedelta(minutes=created_ago),
        updated_at=NOW,
        total=Decimal("0.00"),
        order_items=[
            OrderItem(
                position=position,
                menu_item_id=position + 1,
                menu_item_name=name,
                category=category,
                quantity=1,
                price_snapshot=Decimal("3.00"),
            )
            for position, (name, category) in enumerate(items)
        ],
    )


class TestClassify:
    """Test cases for tier boundaries."""

    @pytest.mark.parametrize(
        "delta,tier",
        [
            (timedelta(minutes=-15), UrgencyTier.OVERDUE),
            (timedelta(seconds=-1), UrgencyTier.OVERDUE),
            (timedelta(0), UrgencyTier.OVERDUE),
            (timedelta(seconds=59), UrgencyTier.OVERDUE),
            (timedelta(minutes=1), UrgencyTier.URGENT),
            (timedelta(minutes=10, seconds=59), UrgencyTier.URGENT),
            (timedelta(minutes=11), UrgencyTier.READY_TO_START),
            (timedelta(minutes=20), UrgencyTier.READY_TO_START),
            (timedelta(minutes=21), UrgencyTier.SOON),
            (timedelta(minutes=30), UrgencyTier.SOON),
            (timedelta(minutes=31), UrgencyTier.SCHEDULED),
            (timedelta(days=2), UrgencyTier.SCHEDULED),
        ],
    )
    def test_boundaries(self, delta, tier):
        assert classify(NOW + delta, NOW) == tier

    def test_partial_minutes_floor(self):
        assert minutes_until_pickup(NOW + timedelta(minutes=10, seconds=30), NOW) == 10
        assert minutes_until_pickup(NOW - timedelta(seconds=1), NOW) == -1

    def test_recomputed_against_the_clock(self):
        """Eight minutes out is urgent; the same order 25 minutes earlier was soon."""
        promised = NOW + timedelta(minutes=8)

        assert classify(promised, NOW) == UrgencyTier.URGENT
        assert classify(promised, promised - timedelta(minutes=25)) == UrgencyTier.SOON

    def test_monotonic_as_pickup_approaches(self):
        """Moving the clock forward never lowers the tier."""
        promised = NOW + timedelta(hours=1)
        ranks = [
            classify(promised, NOW + timedelta(seconds=s)).rank
            for s in range(0, 2 * 3600, 45)
        ]
        assert all(earlier >= later for earlier, later in zip(ranks, ranks[1:]))

    def test_no_promised_time_is_urgent(self):
        assert classify(None, NOW) == UrgencyTier.URGENT

    def test_custom_thresholds(self):
        assert classify(NOW + timedelta(minutes=12), NOW, [0, 15, 30, 45]) == UrgencyTier.URGENT


class TestClassifyOrder:
    def test_asap_urgent_inside_promise_window(self):
        assert classify_order(build_order(1, created_ago=5), NOW) == UrgencyTier.URGENT
        assert classify_order(build_order(1, created_ago=19), NOW) == UrgencyTier.URGENT

    def test_asap_overdue_once_window_closes(self):
        assert classify_order(build_order(1, created_ago=20), NOW) == UrgencyTier.OVERDUE
        assert classify_order(build_order(1, created_ago=45), NOW) == UrgencyTier.OVERDUE

    def test_asap_window_from_config(self):
        config = DispatchConfig(ASAP_MIN_MINUTES=5, ASAP_MAX_MINUTES=10)
        assert classify_order(build_order(1, created_ago=12), NOW, config) == UrgencyTier.OVERDUE

    def test_timed_order_uses_pickup_time(self):
        order = build_order(1, pickup_in=timedelta(minutes=25))
        assert classify_order(order, NOW) == UrgencyTier.SOON


class TestBuildStationQueue:
    """Test cases for per-station queue ordering."""

    def test_orders_sorted_by_time_left_then_asap(self):
        orders = [
            build_order(1, created_ago=3),
            build_order(2, pickup_in=timedelta(minutes=18)),
            build_order(3, pickup_in=timedelta(minutes=-2)),
            build_order(4, pickup_in=timedelta(minutes=6)),
            build_order(5, pickup_in=timedelta(hours=2)),
        ]

        queue = build_station_queue(orders, Station.KITCHEN, NOW)

        assert [e.order.id for e in queue.in_progress] == [3, 4, 2, 1]
        assert [e.tier for e in queue.in_progress] == [
            UrgencyTier.OVERDUE,
            UrgencyTier.URGENT,
            UrgencyTier.READY_TO_START,
            UrgencyTier.URGENT,
        ]
        assert [e.order.id for e in queue.scheduled] == [5]
        assert queue.in_progress[-1].minutes_until_pickup is None

    def test_ties_are_first_in_first_out(self):
        pickup = timedelta(minutes=15)
        orders = [
            build_order(7, pickup_in=pickup, created_ago=2),
            build_order(6, pickup_in=pickup, created_ago=9),
            build_order(8, pickup_in=pickup, created_ago=2),
        ]

        queue = build_station_queue(orders, Station.KITCHEN, NOW)

        assert [e.order.id for e in queue.in_progress] == [6, 7, 8]

    def test_station_sees_only_its_items(self):
        mixed = build_order(1, items=(("Latte", "Drinks"), ("Bagel", "Bakery")))
        coffee_only = build_order(2, items=(("Americano", "Drinks"),))

        kitchen = build_station_queue([mixed, coffee_only], Station.KITCHEN, NOW)
        counter = build_station_queue([mixed, coffee_only], Station.COUNTER, NOW)

        assert [e.order.id for e in kitchen.in_progress] == [1]
        assert [i.menu_item_name for i in kitchen.in_progress[0].items] == ["Bagel"]
        assert [e.order.id for e in counter.in_progress] == [1, 2]
        assert [i.menu_item_name for i in counter.in_progress[0].items] == ["Latte"]
