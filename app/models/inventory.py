"""Inventory models"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, Boolean, DateTime, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID

from app.database import Base


class InventoryItem(Base):
    """Food items on sale, with their stock counter"""
    __tablename__ = "inventory_items"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_inventory_items_stock_non_negative"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    price = Column(Integer, nullable=False)  # Selling price in whole rupees
    cost = Column(Integer)  # Wholesale cost, optional
    stock = Column(Integer, nullable=False, default=0)  # Only changed through the ledger
    category = Column(String(100))
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
