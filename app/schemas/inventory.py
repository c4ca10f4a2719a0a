"""Inventory schemas"""

from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field


class InventoryItemCreate(BaseModel):
    """Create inventory item request"""
    name: str = Field(min_length=1, max_length=255)
    price: int = Field(ge=0)
    cost: Optional[int] = Field(default=None, ge=0)
    stock: int = Field(default=0, ge=0)
    category: Optional[str] = None


class InventoryItemResponse(BaseModel):
    """Inventory item response"""
    id: UUID
    name: str
    price: int
    cost: Optional[int]
    stock: int
    category: Optional[str]
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class StockAdjustment(BaseModel):
    delta: int


class StockLevel(BaseModel):
    item_id: UUID
    stock: int
