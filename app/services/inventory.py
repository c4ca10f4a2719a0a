"""Inventory ledger: the only writer of stock counters"""

from typing import Iterable, Tuple, Union
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.exceptions import InsufficientStock, NotFound
from app.models.inventory import InventoryItem

logger = structlog.get_logger()


def _as_uuid(item_id: Union[str, UUID]) -> UUID:
    try:
        return item_id if isinstance(item_id, UUID) else UUID(str(item_id))
    except ValueError:
        raise NotFound(f"Item {item_id} not found")


class InventoryLedger:
    """
    Stock adjustments run as a single guarded UPDATE, so the database
    serialises concurrent writers on the same row and the counter can never
    go below zero. The ledger never commits: adjustments belong to the
    caller's transaction.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_stock(self, item_id: Union[str, UUID]) -> int:
        result = await self.db.execute(
            select(InventoryItem.stock).where(InventoryItem.id == _as_uuid(item_id))
        )
        stock = result.scalar_one_or_none()
        if stock is None:
            raise NotFound(f"Item {item_id} not found")
        return stock

    async def adjust_stock(self, item_id: Union[str, UUID], delta: int) -> int:
        """Apply delta to the item's stock and return the new level"""
        key = _as_uuid(item_id)

        result = await self.db.execute(
            update(InventoryItem)
            .where(InventoryItem.id == key, InventoryItem.stock + delta >= 0)
            .values(stock=InventoryItem.stock + delta)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount != 1:
            available = await self.get_stock(key)
            logger.warning(
                "Stock adjustment refused",
                item_id=str(key),
                delta=delta,
                available=available,
            )
            raise InsufficientStock(str(key), requested=-delta, available=available)

        new_stock = await self.get_stock(key)
        logger.debug("Stock adjusted", item_id=str(key), delta=delta, stock=new_stock)
        return new_stock

    async def check_available(self, lines: Iterable[Tuple[str, int]]) -> None:
        """Pre-flight check that every (item_id, quantity) line is in stock"""
        for item_id, quantity in lines:
            available = await self.get_stock(item_id)
            if available < quantity:
                raise InsufficientStock(str(item_id), requested=quantity, available=available)
