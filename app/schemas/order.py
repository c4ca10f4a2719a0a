"""Order schemas"""

from datetime import datetime
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, Field

from app.models.order import Order, OrderStatus
from app.schemas.payment import ORDER_ID_PATTERN, PaymentState


class CartItem(BaseModel):
    """A cart line: item and quantity"""
    item_id: UUID
    quantity: int = Field(ge=1, le=50)


class CustomerDetails(BaseModel):
    """Customer snapshot stored with the order"""
    name: str = Field(min_length=1, max_length=255)
    phone: str = Field(min_length=4, max_length=20)
    room: Optional[str] = Field(default=None, max_length=50)
    block: Optional[str] = Field(default=None, max_length=50)
    requested_time: Optional[str] = Field(default=None, max_length=50)
    notes: Optional[str] = Field(default=None, max_length=500)


class CodCheckoutRequest(BaseModel):
    """Cash-on-delivery checkout"""
    order_id: Optional[str] = Field(default=None, max_length=64, pattern=ORDER_ID_PATTERN)
    items: List[CartItem] = Field(min_length=1)
    customer: CustomerDetails


class OnlineCheckoutRequest(BaseModel):
    """Online prepayment checkout"""
    items: List[CartItem] = Field(min_length=1)
    customer: CustomerDetails
    user_id: Optional[str] = Field(default=None, min_length=1, max_length=100)


class OnlineCheckoutResponse(BaseModel):
    order_id: str
    redirect_url: str


class OrderItemSnapshot(BaseModel):
    """Item as priced at checkout"""
    item_id: str
    name: str
    unit_price: int
    unit_cost: Optional[int] = None
    quantity: int


class FeedbackCreate(BaseModel):
    """Customer feedback on a completed order"""
    phone: str = Field(min_length=4, max_length=20)
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=500)


class FeedbackResponse(BaseModel):
    rating: int
    comment: Optional[str]
    submitted_at: datetime


class OrderResponse(BaseModel):
    """Order as seen by customers and in staff listings (no delivery code)"""
    id: str
    customer_name: str
    customer_phone: str
    customer: dict
    items: List[OrderItemSnapshot]
    total_amount: int
    payment_mode: str
    payment_reference: Optional[str]
    status: OrderStatus
    archived: bool
    feedback: Optional[FeedbackResponse]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_order(cls, order: Order, **extra) -> "OrderResponse":
        return cls(
            id=order.id,
            customer_name=order.customer_name,
            customer_phone=order.customer_phone,
            customer=order.customer_json or {},
            items=order.items_json or [],
            total_amount=order.total_amount,
            payment_mode=order.payment_mode,
            payment_reference=order.payment_reference,
            status=order.status,
            archived=order.archived,
            feedback=order.feedback_json,
            created_at=order.created_at,
            updated_at=order.updated_at,
            **extra,
        )


class PlacedOrderResponse(OrderResponse):
    """COD checkout response, the only place the delivery code is revealed"""
    delivery_code: Optional[str] = None

    @classmethod
    def from_order(cls, order: Order, **extra) -> "PlacedOrderResponse":
        return super().from_order(order, delivery_code=order.delivery_code, **extra)


class OrderListResponse(BaseModel):
    """Paginated order list"""
    items: List[OrderResponse]
    total: int
    page: int
    page_size: int


class StatusUpdate(BaseModel):
    """Staff status transition"""
    status: OrderStatus
    delivery_code: Optional[str] = Field(default=None, max_length=8)
    confirm: bool = False


class ArchiveUpdate(BaseModel):
    archived: bool


class ReconcileResponse(BaseModel):
    """Outcome of an online payment reconciliation attempt"""
    outcome: str  # reconciled, rejected
    state: PaymentState
    order: Optional[OrderResponse] = None


class OrderSummary(BaseModel):
    """Accounting totals over all orders, archived included"""
    revenue: int
    profit: int
    total_orders: int
    active_orders: int
    completed_orders: int
    cancelled_orders: int
