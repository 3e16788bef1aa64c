# backend/modules/orders/services/item_router.py

"""
Splits order lines between fulfillment stations.

Routing is a keyword lookup on the item's name and category. Swap the
table (or pass a custom ItemRouter) to change it; nothing else in the
dispatch path knows how stations are chosen.
"""

from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, TypeVar

from ..config import get_dispatch_config
from ..enums.order_enums import Station


class RoutableItem(Protocol):
    menu_item_name: str
    category: Optional[str]


T = TypeVar("T", bound=RoutableItem)


STATION_KEYWORDS: Dict[Station, List[str]] = {
    Station.COUNTER: [
        "coffee",
        "espresso",
        "latte",
        "cappuccino",
        "americano",
        "mocha",
        "macchiato",
        "cortado",
        "flat white",
    ],
}


class ItemRouter:
    def __init__(
        self,
        rules: Optional[Mapping[Station, Sequence[str]]] = None,
        default_station: Station = Station.KITCHEN,
    ):
        rules = STATION_KEYWORDS if rules is None else rules
        self.rules = {
            station: [keyword.lower() for keyword in keywords]
            for station, keywords in rules.items()
        }
        self.default_station = default_station

    def station_for(self, name: str, category: Optional[str] = None) -> Station:
        haystack = f"{name} {category or ''}".lower()
        for station, keywords in self.rules.items():
            if any(keyword in haystack for keyword in keywords):
                return station
        return self.default_station

    def route(self, items: Iterable[T]) -> Dict[Station, List[T]]:
        """
        Group items by station, keeping their original order.

        Stations without items are not present in the result.
        """
        groups: Dict[Station, List[T]] = {}
        for item in items:
            station = self.station_for(item.menu_item_name, item.category)
            groups.setdefault(station, []).append(item)
        return groups


def get_item_router() -> ItemRouter:
    """Router built from the keyword table plus any configured overrides."""
    overrides = get_dispatch_config().STATION_KEYWORD_OVERRIDES or {}
    rules = {station: list(keywords) for station, keywords in STATION_KEYWORDS.items()}
    for station_name, keywords in overrides.items():
        rules.setdefault(Station(station_name), []).extend(keywords)
    return ItemRouter(rules)


def route(items: Iterable[T]) -> Dict[Station, List[T]]:
    return get_item_router().route(items)
