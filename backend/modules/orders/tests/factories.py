# backend/modules/orders/tests/factories.py

import factory
from factory import Faker, Sequence, SubFactory, LazyFunction, SelfAttribute
from factory.alchemy import SQLAlchemyModelFactory
from datetime import datetime
from decimal import Decimal

from core.menu_models import MenuItem
from ..enums.order_enums import OrderStatus
from ..models.order_models import Order, OrderItem
from ..services.dispatch_service import generate_tracking_token

# Matches the frozen clock used by the API fixtures
BASE_TIME = datetime(2025, 6, 2, 9, 0)


class BaseFactory(SQLAlchemyModelFactory):
    """Base factory; the session is bound per test in conftest."""

    class Meta:
        abstract = True
        sqlalchemy_session_persistence = "commit"


class MenuItemFactory(BaseFactory):
    """Factory for creating menu items."""

    class Meta:
        model = MenuItem

    name = Sequence(lambda n: f"Menu Item {n}")
    description = Faker("sentence", nb_words=6)
    category = "Food"
    price = Decimal("5.00")
    is_active = True
    is_available = True
    created_at = BASE_TIME
    updated_at = BASE_TIME


class OrderFactory(BaseFactory):
    """Factory for creating orders."""

    class Meta:
        model = Order

    tracking_token = LazyFunction(generate_tracking_token)
    status = OrderStatus.RECEIVED.value
    version = 1
    promised_pickup_at = None
    slot_start = None
    total = Decimal("0.00")
    guest_name = Faker("first_name")
    guest_email = Faker("email")
    created_at = BASE_TIME
    updated_at = SelfAttribute("created_at")


class OrderItemFactory(BaseFactory):
    """Factory for creating order items."""

    class Meta:
        model = OrderItem

    order = SubFactory(OrderFactory)
    position = Sequence(lambda n: n)
    menu_item_id = Sequence(lambda n: 1000 + n)
    menu_item_name = factory.Iterator(["Bagel", "Breakfast Burrito", "Blueberry Muffin"])
    category = "Food"
    quantity = 1
    price_snapshot = Decimal("4.50")
    customizations = None
    created_at = BASE_TIME
    updated_at = BASE_TIME
