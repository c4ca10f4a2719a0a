"""Order models"""

import enum
from datetime import datetime
from sqlalchemy import Column, String, DateTime, JSON, Integer, Boolean

from app.database import Base


class OrderStatus(str, enum.Enum):
    """Fulfilment states"""
    PENDING = "pending"
    ACCEPTED = "accepted"
    PREPARING = "preparing"
    READY = "ready"
    DISPATCHED = "dispatched"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentMode(str, enum.Enum):
    ONLINE = "online"
    COD = "cod"


class Order(Base):
    """Committed delivery orders"""
    __tablename__ = "orders"

    # Caller-supplied or generated, doubles as the idempotency key
    id = Column(String(64), primary_key=True)

    # Customer snapshot
    customer_name = Column(String(255), nullable=False)
    customer_phone = Column(String(20), nullable=False, index=True)
    customer_json = Column(JSON, nullable=False)  # name, phone, room, block, requested_time, notes

    # [{"item_id": "...", "name": "...", "unit_price": 20, "unit_cost": 12, "quantity": 2}, ...]
    items_json = Column(JSON, nullable=False)
    total_amount = Column(Integer, nullable=False)

    # Payment
    payment_mode = Column(String(10), nullable=False)
    payment_reference = Column(String(100))
    delivery_code = Column(String(4))

    # Status
    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value, index=True)
    archived = Column(Boolean, nullable=False, default=False)

    # {"rating": 5, "comment": "...", "submitted_at": "..."}
    feedback_json = Column(JSON)

    settings_version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def computed_total(self) -> int:
        """Total reconstructed from the item snapshot"""
        return sum(line["unit_price"] * line["quantity"] for line in self.items_json or [])


class PendingCommit(Base):
    """Online checkout staged until the gateway confirms payment"""
    __tablename__ = "pending_commits"

    order_id = Column(String(64), primary_key=True)
    user_id = Column(String(100), nullable=False)
    customer_json = Column(JSON, nullable=False)
    items_json = Column(JSON, nullable=False)
    total_amount = Column(Integer, nullable=False)
    settings_version = Column(Integer, nullable=False, default=1)

    # Reconciliation bookkeeping
    attempts = Column(Integer, nullable=False, default=0)
    last_state = Column(String(20))
    last_checked_at = Column(DateTime)

    created_at = Column(DateTime, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=False)
