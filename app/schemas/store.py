"""Store settings schemas"""

from typing import Optional
from pydantic import BaseModel, Field, model_validator

from app.models.store import DeliveryMode


class StoreSettingsSnapshot(BaseModel):
    """Immutable view of the store settings read at commit time"""
    delivery_mode: DeliveryMode
    delivery_message: Optional[str] = None
    cod_enabled: bool
    version: int

    class Config:
        from_attributes = True
        frozen = True


class StoreSettingsUpdate(BaseModel):
    """Staff update of the store settings"""
    delivery_mode: Optional[DeliveryMode] = None
    delivery_message: Optional[str] = Field(default=None, max_length=255)
    cod_enabled: Optional[bool] = None

    @model_validator(mode="after")
    def later_needs_message(self):
        if self.delivery_mode == DeliveryMode.LATER and not self.delivery_message:
            raise ValueError("delivery_message is required when delivering later")
        return self
