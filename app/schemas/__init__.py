"""Pydantic schemas for request/response validation"""

from app.schemas.auth import (
    Token,
    RefreshRequest,
    StaffAccountCreate,
    StaffAccountResponse,
)
from app.schemas.inventory import (
    InventoryItemCreate,
    InventoryItemResponse,
    StockAdjustment,
    StockLevel,
)
from app.schemas.order import (
    CartItem,
    CustomerDetails,
    CodCheckoutRequest,
    OnlineCheckoutRequest,
    OnlineCheckoutResponse,
    OrderItemSnapshot,
    OrderResponse,
    PlacedOrderResponse,
    OrderListResponse,
    StatusUpdate,
    ArchiveUpdate,
    FeedbackCreate,
    ReconcileResponse,
    OrderSummary,
)
from app.schemas.payment import (
    PaymentState,
    PaymentRequest,
    PaymentStatusResult,
    InitiatePaymentRequest,
    InitiatePaymentResponse,
    PaymentCallbackRequest,
)
from app.schemas.notification import (
    PushSubscriptionInfo,
    SubscribeRequest,
    BroadcastRequest,
    NotifyUserRequest,
    VapidKeyResponse,
    DeliveryReport,
)
from app.schemas.store import StoreSettingsSnapshot, StoreSettingsUpdate

__all__ = [
    "Token",
    "RefreshRequest",
    "StaffAccountCreate",
    "StaffAccountResponse",
    "InventoryItemCreate",
    "InventoryItemResponse",
    "StockAdjustment",
    "StockLevel",
    "CartItem",
    "CustomerDetails",
    "CodCheckoutRequest",
    "OnlineCheckoutRequest",
    "OnlineCheckoutResponse",
    "OrderItemSnapshot",
    "OrderResponse",
    "PlacedOrderResponse",
    "OrderListResponse",
    "StatusUpdate",
    "ArchiveUpdate",
    "FeedbackCreate",
    "ReconcileResponse",
    "OrderSummary",
    "PaymentState",
    "PaymentRequest",
    "PaymentStatusResult",
    "InitiatePaymentRequest",
    "InitiatePaymentResponse",
    "PaymentCallbackRequest",
    "PushSubscriptionInfo",
    "SubscribeRequest",
    "BroadcastRequest",
    "NotifyUserRequest",
    "VapidKeyResponse",
    "DeliveryReport",
    "StoreSettingsSnapshot",
    "StoreSettingsUpdate",
]
