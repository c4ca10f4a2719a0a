"""Push subscription model"""

from datetime import datetime
from sqlalchemy import Column, String, DateTime, JSON

from app.database import Base


class PushSubscription(Base):
    """Browser push subscriptions, keyed by endpoint"""
    __tablename__ = "push_subscriptions"

    endpoint = Column(String(1024), primary_key=True)
    keys_json = Column(JSON, nullable=False, default=dict)  # {"p256dh": "...", "auth": "..."}
    user_id = Column(String(100), nullable=False, default="unknown", index=True)  # Phone number
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
