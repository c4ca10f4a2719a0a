"""Database models"""

from app.models.inventory import InventoryItem
from app.models.order import Order, OrderStatus, PaymentMode, PendingCommit
from app.models.notification import PushSubscription
from app.models.store import StoreSettings, DeliveryMode
from app.models.user import User, UserRole

__all__ = [
    "InventoryItem",
    "Order",
    "OrderStatus",
    "PaymentMode",
    "PendingCommit",
    "PushSubscription",
    "StoreSettings",
    "DeliveryMode",
    "User",
    "UserRole",
]
