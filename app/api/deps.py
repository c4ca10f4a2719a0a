"""Shared API dependencies"""

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models.store import StoreSettings
from app.notifications.notifier import PushNotifier
from app.notifications.transport import BasePushTransport, get_push_transport
from app.payments.gateway import PhonePeGateway, get_gateway
from app.schemas.store import StoreSettingsSnapshot
from app.services.fulfillment import FulfillmentService
from app.services.reconciliation import ReconciliationCoordinator


async def load_store_settings(db: AsyncSession) -> StoreSettings:
    """Fetch the singleton settings row, creating it with defaults"""
    result = await db.execute(select(StoreSettings).where(StoreSettings.id == 1))
    store_settings = result.scalar_one_or_none()

    if store_settings is None:
        store_settings = StoreSettings(id=1)
        db.add(store_settings)
        await db.commit()
        await db.refresh(store_settings)

    return store_settings


async def get_store_settings(db: AsyncSession = Depends(get_db)) -> StoreSettingsSnapshot:
    return StoreSettingsSnapshot.model_validate(await load_store_settings(db))


def get_coordinator(
    db: AsyncSession = Depends(get_db),
    gateway: PhonePeGateway = Depends(get_gateway),
) -> ReconciliationCoordinator:
    return ReconciliationCoordinator(db, gateway)


def get_notifier(
    db: AsyncSession = Depends(get_db),
    transport: BasePushTransport = Depends(get_push_transport),
) -> PushNotifier:
    return PushNotifier(db, transport)


def get_fulfillment(
    db: AsyncSession = Depends(get_db),
    notifier: PushNotifier = Depends(get_notifier),
) -> FulfillmentService:
    return FulfillmentService(db, notifier)
