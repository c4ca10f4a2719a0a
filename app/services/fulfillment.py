"""Order fulfilment state machine"""

from datetime import datetime
import hmac
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.exceptions import (
    ConfirmationRequired,
    FeedbackRejected,
    InvalidDeliveryCode,
    InvalidTransition,
    NotFound,
)
from app.models.order import Order, OrderStatus
from app.notifications.notifier import PushNotifier
from app.services.order_store import OrderStore

logger = structlog.get_logger()

# Forward-only progression for non-terminal states
PROGRESSION = [
    OrderStatus.PENDING,
    OrderStatus.ACCEPTED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.DISPATCHED,
]
TERMINAL = {OrderStatus.COMPLETED, OrderStatus.CANCELLED}

CUSTOMER_MESSAGES = {
    OrderStatus.DISPATCHED: ("Order on the way", "Your order {order_id} is out for delivery."),
    OrderStatus.COMPLETED: ("Order delivered", "Order {order_id} has been delivered. Enjoy your food!"),
}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    if current in TERMINAL or current == target:
        return False
    if target in TERMINAL:
        return True
    return PROGRESSION.index(target) > PROGRESSION.index(current)


class FulfillmentService:
    """Validates and applies staff-driven status changes"""

    def __init__(self, db: AsyncSession, notifier: Optional[PushNotifier] = None):
        self.db = db
        self.store = OrderStore(db)
        self.notifier = notifier

    async def transition(
        self,
        order_id: str,
        target: OrderStatus,
        delivery_code: Optional[str] = None,
        confirm: bool = False,
    ) -> Order:
        order = await self.store.get_or_404(order_id)
        current = OrderStatus(order.status)

        if not can_transition(current, target):
            raise InvalidTransition(
                f"Cannot move order {order_id} from {current.value} to {target.value}"
            )

        if target == OrderStatus.COMPLETED:
            self._check_completion(order, delivery_code, confirm)

        order = await self.store.update_status(order_id, target)
        await self.db.commit()

        logger.info(
            "Order status changed",
            order_id=order_id,
            from_status=current.value,
            to_status=target.value,
        )

        if target in CUSTOMER_MESSAGES:
            await self._notify_customer(order, target)

        return order

    def _check_completion(self, order: Order, delivery_code: Optional[str], confirm: bool) -> None:
        if order.delivery_code:
            supplied = (delivery_code or "").strip()
            if not hmac.compare_digest(supplied.encode(), order.delivery_code.encode()):
                logger.warning("Delivery code mismatch", order_id=order.id)
                raise InvalidDeliveryCode(f"Delivery code does not match for order {order.id}")
        elif not confirm:
            raise ConfirmationRequired(
                f"Order {order.id} has no delivery code; completing it requires confirmation"
            )

    async def _notify_customer(self, order: Order, status: OrderStatus) -> None:
        if self.notifier is None:
            return

        title, body = CUSTOMER_MESSAGES[status]
        try:
            await self.notifier.notify_user(
                order.customer_phone,
                title,
                body.format(order_id=order.id),
            )
        except Exception as e:
            logger.error("Failed to notify customer", order_id=order.id, error=str(e))

    async def set_archived(self, order_id: str, archived: bool) -> Order:
        order = await self.store.set_archived(order_id, archived)
        await self.db.commit()
        logger.info("Order archive flag changed", order_id=order_id, archived=archived)
        return order

    async def attach_feedback(
        self,
        order_id: str,
        phone: str,
        rating: int,
        comment: Optional[str] = None,
    ) -> Order:
        """Feedback is accepted once, on completed orders, from the ordering phone"""
        order = await self.store.get(order_id)
        if order is None or order.customer_phone != phone:
            raise NotFound(f"Order {order_id} not found")

        if order.status != OrderStatus.COMPLETED.value:
            raise FeedbackRejected("Feedback is only accepted for completed orders")

        if order.feedback_json:
            raise FeedbackRejected("Feedback was already submitted for this order")

        order.feedback_json = {
            "rating": rating,
            "comment": comment,
            "submitted_at": datetime.utcnow().isoformat(),
        }
        await self.db.commit()

        logger.info("Feedback recorded", order_id=order_id, rating=rating)
        return order
