"""Inventory API endpoints"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.api.auth import require_staff
from app.database import get_db
from app.models.inventory import InventoryItem
from app.models.user import User
from app.schemas.inventory import (
    InventoryItemCreate,
    InventoryItemResponse,
    StockAdjustment,
    StockLevel,
)
from app.services.inventory import InventoryLedger

router = APIRouter()
logger = structlog.get_logger()


@router.get("", response_model=List[InventoryItemResponse])
async def list_items(
    category: Optional[str] = None,
    is_active: Optional[bool] = True,
    db: AsyncSession = Depends(get_db),
):
    """List items on sale with their current stock"""
    query = select(InventoryItem)

    if category:
        query = query.where(InventoryItem.category == category)

    if is_active is not None:
        query = query.where(InventoryItem.is_active == is_active)

    result = await db.execute(query.order_by(InventoryItem.category, InventoryItem.name))
    return result.scalars().all()


@router.post("", response_model=InventoryItemResponse, status_code=201)
async def create_item(
    item_data: InventoryItemCreate,
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    """Create an item; opening stock goes through the ledger"""
    item = InventoryItem(**item_data.model_dump(exclude={"stock"}), stock=0)
    db.add(item)
    await db.flush()

    if item_data.stock:
        await InventoryLedger(db).adjust_stock(item.id, item_data.stock)

    await db.commit()
    await db.refresh(item)

    logger.info("Inventory item created", item_id=str(item.id), stock=item.stock)
    return item


@router.post("/{item_id}/adjust", response_model=StockLevel)
async def adjust_item_stock(
    item_id: UUID,
    adjustment: StockAdjustment,
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    """Restock (positive delta) or write off (negative delta)"""
    try:
        stock = await InventoryLedger(db).adjust_stock(item_id, adjustment.delta)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Stock adjusted by staff", item_id=str(item_id), delta=adjustment.delta)
    return StockLevel(item_id=item_id, stock=stock)
