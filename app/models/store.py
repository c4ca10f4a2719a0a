"""Store settings model"""

import enum
from datetime import datetime
from sqlalchemy import Column, String, Integer, Boolean, DateTime

from app.database import Base


class DeliveryMode(str, enum.Enum):
    NOW = "now"
    LATER = "later"


class StoreSettings(Base):
    """Singleton store configuration, versioned on every change"""
    __tablename__ = "store_settings"

    id = Column(Integer, primary_key=True, default=1)
    delivery_mode = Column(String(10), nullable=False, default=DeliveryMode.NOW.value)
    delivery_message = Column(String(255))  # e.g. "6:00 PM" when delivering later
    cod_enabled = Column(Boolean, nullable=False, default=True)
    version = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
