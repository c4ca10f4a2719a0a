"""Order API endpoints"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.auth import require_admin, require_staff
from app.api.deps import get_coordinator, get_fulfillment, get_store_settings
from app.api.payments import resolve_return_origin
from app.database import get_db
from app.models.order import OrderStatus
from app.models.user import User
from app.schemas.order import (
    ArchiveUpdate,
    CodCheckoutRequest,
    FeedbackCreate,
    OnlineCheckoutRequest,
    OnlineCheckoutResponse,
    OrderListResponse,
    OrderResponse,
    OrderSummary,
    PlacedOrderResponse,
    ReconcileResponse,
    StatusUpdate,
)
from app.schemas.payment import ORDER_ID_PATTERN
from app.schemas.store import StoreSettingsSnapshot
from app.services.fulfillment import FulfillmentService
from app.services.order_store import OrderStore
from app.services.reconciliation import ReconciliationCoordinator

router = APIRouter()


# Customer endpoints

@router.post("/checkout/cod", response_model=PlacedOrderResponse, status_code=201)
async def checkout_cod(
    checkout: CodCheckoutRequest,
    store_settings: StoreSettingsSnapshot = Depends(get_store_settings),
    coordinator: ReconciliationCoordinator = Depends(get_coordinator),
):
    """Place a cash-on-delivery order. The delivery code is only shown here."""
    order = await coordinator.commit_cod(
        checkout.items,
        checkout.customer,
        store_settings,
        order_id=checkout.order_id,
    )
    return PlacedOrderResponse.from_order(order)


@router.post("/checkout/online", response_model=OnlineCheckoutResponse)
async def checkout_online(
    checkout: OnlineCheckoutRequest,
    request: Request,
    store_settings: StoreSettingsSnapshot = Depends(get_store_settings),
    coordinator: ReconciliationCoordinator = Depends(get_coordinator),
):
    """Stage an online checkout and return the gateway redirect"""
    order_id, redirect_url = await coordinator.start_online_payment(
        checkout.items,
        checkout.customer,
        store_settings,
        user_id=checkout.user_id,
        return_origin=resolve_return_origin(request),
    )
    return OnlineCheckoutResponse(order_id=order_id, redirect_url=redirect_url)


@router.get("/mine", response_model=List[OrderResponse])
async def my_orders(
    phone: str = Query(..., min_length=4, max_length=20),
    include_archived: bool = False,
    db: AsyncSession = Depends(get_db),
):
    """Order history for a phone number"""
    orders = await OrderStore(db).list_by_phone(phone, include_archived=include_archived)
    return [OrderResponse.from_order(order) for order in orders]


@router.post("/{order_id}/reconcile", response_model=ReconcileResponse)
async def reconcile_order(
    order_id: str = Path(..., max_length=64, pattern=ORDER_ID_PATTERN),
    coordinator: ReconciliationCoordinator = Depends(get_coordinator),
):
    """Called when the customer returns from the gateway"""
    result = await coordinator.reconcile_online(order_id)
    return ReconcileResponse(
        outcome=result.outcome,
        state=result.state,
        order=OrderResponse.from_order(result.order) if result.order else None,
    )


@router.post("/{order_id}/feedback", response_model=OrderResponse)
async def submit_feedback(
    feedback: FeedbackCreate,
    order_id: str = Path(..., max_length=64, pattern=ORDER_ID_PATTERN),
    fulfillment: FulfillmentService = Depends(get_fulfillment),
):
    order = await fulfillment.attach_feedback(
        order_id,
        feedback.phone,
        feedback.rating,
        feedback.comment,
    )
    return OrderResponse.from_order(order)


# Staff endpoints

@router.get("", response_model=OrderListResponse)
async def list_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[OrderStatus] = None,
    archived: Optional[bool] = False,
    include_archived: bool = False,
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    """List orders with pagination; include_archived lists live and archived together"""
    orders, total = await OrderStore(db).list_orders(
        status=status,
        archived=None if include_archived else archived,
        page=page,
        page_size=page_size,
    )
    return OrderListResponse(
        items=[OrderResponse.from_order(order) for order in orders],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/summary", response_model=OrderSummary)
async def order_summary(
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    """Revenue and profit over completed orders, archived ones included"""
    return OrderSummary(**await OrderStore(db).summary())


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str = Path(..., max_length=64, pattern=ORDER_ID_PATTERN),
    db: AsyncSession = Depends(get_db),
):
    """Order status polling"""
    order = await OrderStore(db).get_or_404(order_id)
    return OrderResponse.from_order(order)


@router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    update: StatusUpdate,
    order_id: str = Path(..., max_length=64, pattern=ORDER_ID_PATTERN),
    current_user: User = Depends(require_staff),
    fulfillment: FulfillmentService = Depends(get_fulfillment),
):
    order = await fulfillment.transition(
        order_id,
        update.status,
        delivery_code=update.delivery_code,
        confirm=update.confirm,
    )
    return OrderResponse.from_order(order)


@router.patch("/{order_id}/archive", response_model=OrderResponse)
async def archive_order(
    update: ArchiveUpdate,
    order_id: str = Path(..., max_length=64, pattern=ORDER_ID_PATTERN),
    current_user: User = Depends(require_staff),
    fulfillment: FulfillmentService = Depends(get_fulfillment),
):
    order = await fulfillment.set_archived(order_id, update.archived)
    return OrderResponse.from_order(order)


@router.delete("/{order_id}", status_code=204)
async def delete_order(
    order_id: str = Path(..., max_length=64, pattern=ORDER_ID_PATTERN),
    confirm: bool = False,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Hard delete; orders that are not archived need confirm=true"""
    await OrderStore(db).delete(order_id, confirm=confirm)
    await db.commit()
