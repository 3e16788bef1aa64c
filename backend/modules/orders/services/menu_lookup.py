# backend/modules/orders/services/menu_lookup.py

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, Optional, Protocol
import logging

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from core.menu_models import MenuItem
from ..exceptions.dispatch_exceptions import UpstreamUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MenuItemSnapshot:
    """Price and availability of a menu item at lookup time"""
    id: int
    name: str
    category: Optional[str]
    price: Decimal
    is_available: bool


class MenuLookup(Protocol):
    def get_items(self, menu_item_ids: Iterable[int]) -> Dict[int, MenuItemSnapshot]:
        """Snapshots for the ids that exist; unknown ids are simply absent."""
        ...


class DatabaseMenuLookup:
    """Reads menu items straight from the shared menu tables"""

    def __init__(self, db: Session):
        self.db = db

    def get_items(self, menu_item_ids: Iterable[int]) -> Dict[int, MenuItemSnapshot]:
        ids = set(menu_item_ids)
        if not ids:
            return {}

        try:
            rows = self.db.query(MenuItem).filter(MenuItem.id.in_(ids)).all()
        except DBAPIError as e:
            logger.error(f"Menu lookup failed: {e}")
            raise UpstreamUnavailable("menu", str(e.orig)) from e

        return {
            row.id: MenuItemSnapshot(
                id=row.id,
                name=row.name,
                category=row.category,
                price=Decimal(row.price).quantize(Decimal("0.01")),
                is_available=row.is_orderable,
            )
            for row in rows
        }
