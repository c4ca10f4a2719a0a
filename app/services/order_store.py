"""Order persistence"""

from typing import List, Optional, Tuple

from sqlalchemy import select, func, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.exceptions import ConfirmationRequired, NotFound, OrderConflict
from app.models.order import Order, OrderStatus

logger = structlog.get_logger()

ACTIVE_STATUSES = [
    OrderStatus.PENDING.value,
    OrderStatus.ACCEPTED.value,
    OrderStatus.PREPARING.value,
    OrderStatus.READY.value,
    OrderStatus.DISPATCHED.value,
]


class OrderStore:
    """
    Keyed order records. Writes are flushed into the caller's transaction;
    committing is left to the caller so an order and its stock movements land
    together.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, order: Order) -> Order:
        """Insert a new order; the primary key is the idempotency backstop"""
        if await self.get(order.id) is not None:
            raise OrderConflict(order.id)

        self.db.add(order)
        try:
            await self.db.flush()
        except IntegrityError:
            # Lost a race with a concurrent commit of the same id
            raise OrderConflict(order.id)

        return order

    async def get(self, order_id: str) -> Optional[Order]:
        result = await self.db.execute(select(Order).where(Order.id == order_id))
        return result.scalar_one_or_none()

    async def get_or_404(self, order_id: str) -> Order:
        order = await self.get(order_id)
        if order is None:
            raise NotFound(f"Order {order_id} not found")
        return order

    async def list_by_phone(self, phone: str, include_archived: bool = False) -> List[Order]:
        query = select(Order).where(Order.customer_phone == phone)
        if not include_archived:
            query = query.where(Order.archived == False)  # noqa: E712
        result = await self.db.execute(query.order_by(Order.created_at.desc()))
        return list(result.scalars().all())

    async def list_orders(
        self,
        status: Optional[OrderStatus] = None,
        archived: Optional[bool] = False,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[Order], int]:
        """Staff listing; archived orders are hidden unless asked for"""
        query = select(Order)
        count_query = select(func.count(Order.id))

        if status:
            query = query.where(Order.status == status.value)
            count_query = count_query.where(Order.status == status.value)

        if archived is not None:
            query = query.where(Order.archived == archived)
            count_query = count_query.where(Order.archived == archived)

        total = (await self.db.execute(count_query)).scalar()

        offset = (page - 1) * page_size
        query = query.order_by(Order.created_at.desc()).offset(offset).limit(page_size)
        result = await self.db.execute(query)

        return list(result.scalars().all()), total

    async def update_status(self, order_id: str, status: OrderStatus) -> Order:
        order = await self.get_or_404(order_id)
        order.status = status.value
        await self.db.flush()
        return order

    async def set_archived(self, order_id: str, archived: bool) -> Order:
        order = await self.get_or_404(order_id)
        order.archived = archived
        await self.db.flush()
        return order

    async def delete(self, order_id: str, confirm: bool = False) -> None:
        """Hard delete; live (non-archived) orders need explicit confirmation"""
        order = await self.get_or_404(order_id)

        if not order.archived and not confirm:
            raise ConfirmationRequired(
                f"Order {order_id} is not archived; deleting it requires confirmation"
            )

        await self.db.execute(delete(Order).where(Order.id == order_id))
        logger.warning("Order deleted", order_id=order_id, archived=order.archived)

    async def summary(self) -> dict:
        """Revenue and counts over every order, archived ones included"""
        result = await self.db.execute(select(Order.status, Order.total_amount, Order.items_json))
        rows = result.all()

        revenue = 0
        profit = 0
        counts = {"completed": 0, "cancelled": 0, "active": 0}

        for status, total_amount, items in rows:
            if status == OrderStatus.COMPLETED.value:
                counts["completed"] += 1
                revenue += total_amount
                for line in items or []:
                    if line.get("unit_cost") is not None:
                        profit += (line["unit_price"] - line["unit_cost"]) * line["quantity"]
            elif status == OrderStatus.CANCELLED.value:
                counts["cancelled"] += 1
            elif status in ACTIVE_STATUSES:
                counts["active"] += 1

        return {
            "revenue": revenue,
            "profit": profit,
            "total_orders": len(rows),
            "active_orders": counts["active"],
            "completed_orders": counts["completed"],
            "cancelled_orders": counts["cancelled"],
        }
