"""Push subscription registry and best-effort fan-out"""

import asyncio
import json
from typing import List, Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.config import settings
from app.models.notification import PushSubscription
from app.notifications.transport import BasePushTransport, EndpointGone
from app.schemas.notification import DeliveryReport

logger = structlog.get_logger()

DELIVERED = "delivered"
FAILED = "failed"
GONE = "gone"


class PushNotifier:
    """
    Delivers to many subscriptions concurrently, bounded by a semaphore.
    Each delivery is isolated: a slow or failing endpoint only affects its own
    result, and endpoints reported gone are pruned after the fan-out.
    """

    def __init__(
        self,
        db: AsyncSession,
        transport: BasePushTransport,
        max_concurrency: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        self.db = db
        self.transport = transport
        self.max_concurrency = max_concurrency or settings.push_max_concurrency
        self.timeout = timeout or settings.push_timeout_seconds

    async def register(self, endpoint: str, keys: dict, user_id: Optional[str] = None) -> PushSubscription:
        """Create or update the subscription for an endpoint"""
        owner = user_id or "unknown"

        result = await self.db.execute(
            select(PushSubscription).where(PushSubscription.endpoint == endpoint)
        )
        subscription = result.scalar_one_or_none()

        if subscription:
            subscription.keys_json = keys
            subscription.user_id = owner
        else:
            subscription = PushSubscription(endpoint=endpoint, keys_json=keys, user_id=owner)
            self.db.add(subscription)

        await self.db.commit()

        logger.info("Push subscription saved", user_id=_mask(owner))
        return subscription

    async def broadcast(self, title: str, body: str) -> DeliveryReport:
        result = await self.db.execute(select(PushSubscription))
        return await self._fan_out(list(result.scalars().all()), title, body)

    async def notify_user(self, user_id: str, title: str, body: str) -> DeliveryReport:
        """Deliver to every subscription of a user; none at all is not an error"""
        result = await self.db.execute(
            select(PushSubscription).where(PushSubscription.user_id == user_id)
        )
        return await self._fan_out(list(result.scalars().all()), title, body)

    async def _fan_out(
        self,
        subscriptions: List[PushSubscription],
        title: str,
        body: str,
    ) -> DeliveryReport:
        if not subscriptions:
            return DeliveryReport()

        payload = json.dumps({"title": title, "body": body})
        targets = [
            {"endpoint": sub.endpoint, "keys": sub.keys_json or {}}
            for sub in subscriptions
        ]
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def deliver(target: dict) -> str:
            async with semaphore:
                try:
                    await asyncio.wait_for(
                        self.transport.send(target, payload),
                        timeout=self.timeout,
                    )
                    return DELIVERED
                except EndpointGone as e:
                    logger.info("Push endpoint gone", status_code=e.status_code)
                    return GONE
                except asyncio.TimeoutError:
                    logger.warning("Push delivery timed out")
                    return FAILED
                except Exception as e:
                    logger.error("Push delivery failed", error=str(e))
                    return FAILED

        outcomes = await asyncio.gather(*(deliver(target) for target in targets))

        gone = [target["endpoint"] for target, outcome in zip(targets, outcomes) if outcome == GONE]
        if gone:
            await self.db.execute(
                delete(PushSubscription).where(PushSubscription.endpoint.in_(gone))
            )
            await self.db.commit()

        report = DeliveryReport(
            attempted=len(targets),
            delivered=outcomes.count(DELIVERED),
            failed=outcomes.count(FAILED),
            pruned=len(gone),
        )
        logger.info("Push fan-out finished", **report.model_dump())
        return report


def _mask(user_id: str) -> str:
    return user_id[-4:] if user_id and user_id != "unknown" else user_id
