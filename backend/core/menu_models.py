# backend/core/menu_models.py

from sqlalchemy import Column, Integer, String, DateTime, Numeric, Text, Boolean
from core.database import Base
from core.mixins import TimestampMixin


class MenuItem(Base, TimestampMixin):
    """
    Menu item as maintained by the menu service.

    The dispatch engine only reads these rows to check availability and
    snapshot prices at order time.
    """
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True, index=True)
    price = Column(Numeric(10, 2), nullable=False)

    # Status and availability
    is_active = Column(Boolean, nullable=False, default=True)
    is_available = Column(Boolean, nullable=False, default=True)
    deleted_at = Column(DateTime, nullable=True)  # Soft delete

    @property
    def is_orderable(self) -> bool:
        return bool(self.is_active and self.is_available and self.deleted_at is None)

    def __repr__(self):
        return f"<MenuItem(id={self.id}, name='{self.name}', price={self.price})>"
