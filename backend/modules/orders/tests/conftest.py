import pytest
from decimal import Decimal

from ..services.dispatch_service import DispatchCoordinator
from .factories import MenuItemFactory, OrderFactory, OrderItemFactory
from .fakes import RecordingFanout

FACTORIES = (MenuItemFactory, OrderFactory, OrderItemFactory)


@pytest.fixture(autouse=True)
def bind_factories(db_session):
    """Point every factory at this test's session."""
    for factory_cls in FACTORIES:
        factory_cls._meta.sqlalchemy_session = db_session
    yield
    for factory_cls in FACTORIES:
        factory_cls._meta.sqlalchemy_session = None


@pytest.fixture
def menu(db_session):
    """A latte, a bagel and an item that has sold out."""
    return {
        "latte": MenuItemFactory(name="Oat Latte", category="Drinks", price=Decimal("4.50")),
        "bagel": MenuItemFactory(
            name="Everything Bagel", category="Bakery", price=Decimal("3.25")
        ),
        "sold_out": MenuItemFactory(
            name="Blueberry Muffin",
            category="Bakery",
            price=Decimal("3.00"),
            is_available=False,
        ),
    }


@pytest.fixture
def fanout():
    return RecordingFanout()


@pytest.fixture
def coordinator(db_session, fanout):
    return DispatchCoordinator(db_session, fanout=fanout)


@pytest.fixture
def make_order():
    """Build a persisted order with one item per (name, category) pair."""

    def _make(items=(("Everything Bagel", "Bakery"),), **kwargs):
        order = OrderFactory(**kwargs)
        for position, (name, category) in enumerate(items):
            OrderItemFactory(order=order, position=position, menu_item_name=name, category=category)
        return order

    return _make
