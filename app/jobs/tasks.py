"""Background job tasks"""

import asyncio
import structlog

from app.jobs.celery_app import celery_app

logger = structlog.get_logger()


def run_async(coro):
    """Helper to run async functions in sync context"""
    return asyncio.run(coro)


@celery_app.task(name="sweep_pending_commits")
def sweep_pending_commits():
    """Reconcile stale online checkouts and drop expired unpaid ones"""
    logger.info("Sweeping pending checkouts")

    async def _sweep():
        from app.database import engine, SessionLocal
        from app.payments.gateway import get_gateway
        from app.services.reconciliation import ReconciliationCoordinator

        try:
            async with SessionLocal() as db:
                coordinator = ReconciliationCoordinator(db, get_gateway())
                return await coordinator.sweep_pending()
        finally:
            # Pooled connections are bound to this task's event loop
            await engine.dispose()

    stats = run_async(_sweep())
    logger.info("Pending checkout sweep finished", **stats)
    return stats
