"""Push notification schemas"""

from typing import Optional, Dict
from pydantic import BaseModel, Field


class PushSubscriptionInfo(BaseModel):
    """Browser PushSubscription as serialised by the client"""
    endpoint: str = Field(min_length=1, max_length=1024)
    keys: Dict[str, str] = {}

    class Config:
        extra = "allow"


class SubscribeRequest(BaseModel):
    subscription: PushSubscriptionInfo
    user_id: Optional[str] = Field(default=None, alias="userId", max_length=100)

    class Config:
        populate_by_name = True


class BroadcastRequest(BaseModel):
    title: str = Field(min_length=1, max_length=50)
    message: str = Field(min_length=1, max_length=200)


class NotifyUserRequest(BaseModel):
    user_id: str = Field(alias="userId", min_length=1, max_length=100)
    title: str = Field(min_length=1, max_length=50)
    message: str = Field(min_length=1, max_length=200)

    class Config:
        populate_by_name = True


class VapidKeyResponse(BaseModel):
    public_key: str = Field(alias="publicKey")

    class Config:
        populate_by_name = True


class DeliveryReport(BaseModel):
    """Outcome of a best-effort fan-out"""
    attempted: int = 0
    delivered: int = 0
    failed: int = 0
    pruned: int = 0
