"""Store settings API endpoints"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.api.auth import require_staff
from app.api.deps import get_store_settings, load_store_settings
from app.database import get_db
from app.models.user import User
from app.schemas.store import StoreSettingsSnapshot, StoreSettingsUpdate

router = APIRouter()
logger = structlog.get_logger()


@router.get("", response_model=StoreSettingsSnapshot)
async def get_settings(
    store_settings: StoreSettingsSnapshot = Depends(get_store_settings),
):
    return store_settings


@router.put("", response_model=StoreSettingsSnapshot)
async def update_settings(
    update: StoreSettingsUpdate,
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    """Change delivery mode or COD availability; every change bumps the version"""
    store_settings = await load_store_settings(db)

    for field, value in update.model_dump(exclude_none=True).items():
        if field == "delivery_mode":
            value = value.value
        setattr(store_settings, field, value)

    if store_settings.delivery_mode == "now":
        store_settings.delivery_message = None

    store_settings.version += 1
    await db.commit()
    await db.refresh(store_settings)

    logger.info(
        "Store settings updated",
        version=store_settings.version,
        delivery_mode=store_settings.delivery_mode,
        cod_enabled=store_settings.cod_enabled,
    )
    return StoreSettingsSnapshot.model_validate(store_settings)
