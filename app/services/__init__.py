"""Ordering core services"""

from app.services.inventory import InventoryLedger
from app.services.order_store import OrderStore
from app.services.fulfillment import FulfillmentService
from app.services.reconciliation import ReconciliationCoordinator, ReconcileResult

__all__ = [
    "InventoryLedger",
    "OrderStore",
    "FulfillmentService",
    "ReconciliationCoordinator",
    "ReconcileResult",
]
