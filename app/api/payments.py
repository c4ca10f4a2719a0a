"""Payment gateway API endpoints"""

from fastapi import APIRouter, Depends, Header, Path, Request
import structlog

from app.api.deps import get_coordinator
from app.config import settings
from app.exceptions import InvalidRequest, InvalidSignature, OrderingError
from app.payments.gateway import PhonePeGateway, get_gateway
from app.schemas.payment import (
    ORDER_ID_PATTERN,
    CallbackAck,
    InitiatePaymentRequest,
    InitiatePaymentResponse,
    PaymentCallbackRequest,
)
from app.services.reconciliation import ReconciliationCoordinator

router = APIRouter()
logger = structlog.get_logger()


def resolve_return_origin(request: Request) -> str:
    """Send the customer back to the origin they came from, if it is trusted"""
    origin = request.headers.get("origin")
    if origin and origin in settings.cors_origins_list:
        return origin
    return settings.client_url


@router.post("/initiate", response_model=InitiatePaymentResponse)
async def initiate_payment(
    payment: InitiatePaymentRequest,
    request: Request,
    gateway: PhonePeGateway = Depends(get_gateway),
):
    """Start a hosted checkout and return the gateway redirect URL"""
    redirect_url = await gateway.initiate(
        amount=payment.amount,
        user_id=payment.user_id,
        order_id=payment.order_id,
        return_origin=resolve_return_origin(request),
    )
    return InitiatePaymentResponse(redirect_url=redirect_url)


@router.get("/status/{order_id}")
async def payment_status(
    order_id: str = Path(..., max_length=64, pattern=ORDER_ID_PATTERN),
    gateway: PhonePeGateway = Depends(get_gateway),
):
    """
    Raw gateway status payload.
    Only code == "PAYMENT_SUCCESS" means the payment went through.
    """
    return await gateway.fetch_status(order_id)


@router.post("/callback", response_model=CallbackAck)
async def payment_callback(
    body: PaymentCallbackRequest,
    x_verify: str = Header("", alias="X-VERIFY"),
    coordinator: ReconciliationCoordinator = Depends(get_coordinator),
):
    """Server-to-server notification from the gateway"""
    try:
        result = await coordinator.handle_callback(body.response, x_verify)
    except (InvalidSignature, InvalidRequest):
        raise
    except OrderingError as e:
        # Acknowledge anyway; the sweep keeps retrying staged checkouts
        logger.error("Payment callback not reconciled", error=e.error, details=e.details)
        return CallbackAck(success=True, detail=e.error)

    return CallbackAck(success=True, detail=result.outcome)
