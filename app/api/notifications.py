"""Push notification API endpoints"""

from fastapi import APIRouter, Depends

from app.api.auth import require_staff
from app.api.deps import get_notifier
from app.config import settings
from app.models.user import User
from app.notifications.notifier import PushNotifier
from app.schemas.notification import (
    BroadcastRequest,
    NotifyUserRequest,
    SubscribeRequest,
    VapidKeyResponse,
)

router = APIRouter()


@router.post("/subscribe", status_code=201)
async def subscribe(
    request: SubscribeRequest,
    notifier: PushNotifier = Depends(get_notifier),
):
    """Register (or refresh) a browser push subscription"""
    await notifier.register(
        request.subscription.endpoint,
        request.subscription.keys,
        user_id=request.user_id,
    )
    return {"success": True}


@router.post("/broadcast")
async def broadcast(
    request: BroadcastRequest,
    current_user: User = Depends(require_staff),
    notifier: PushNotifier = Depends(get_notifier),
):
    """Best-effort delivery to every subscription"""
    report = await notifier.broadcast(request.title, request.message)
    return {"success": True, "report": report}


@router.post("/notify-user")
async def notify_user(
    request: NotifyUserRequest,
    current_user: User = Depends(require_staff),
    notifier: PushNotifier = Depends(get_notifier),
):
    report = await notifier.notify_user(request.user_id, request.title, request.message)
    if report.attempted == 0:
        return {"message": "no active subscriptions"}
    return {"success": True, "report": report}


@router.get("/vapid-public-key", response_model=VapidKeyResponse, response_model_by_alias=True)
async def vapid_public_key():
    return VapidKeyResponse(public_key=settings.vapid_public_key)
