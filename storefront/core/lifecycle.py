"""
Application lifecycle management using the FastAPI lifespan pattern.

Startup checks the database and starts the maintenance scheduler;
shutdown stops the scheduler and releases network resources.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from storefront.config.settings import Settings, get_settings
from storefront.core.container import DependencyContainer, get_container
from storefront.database import check_database_health, close_db_connections, get_async_db_context
from storefront.domains.commerce.application.use_cases import SweepResult
from storefront.domains.commerce.infrastructure.services import MaintenanceScheduler
from storefront.integrations.redis import close_async_redis_client

logger = logging.getLogger(__name__)


class LifecycleManager:
    """
    Manages application lifecycle events.

    Handles startup initialization and graceful shutdown.
    """

    def __init__(self, settings: Settings | None = None, container: DependencyContainer | None = None) -> None:
        self._settings = settings or get_settings()
        self._container = container
        self._scheduler = MaintenanceScheduler(
            run_sweep=self._run_maintenance_sweep,
            interval_minutes=self._settings.MAINTENANCE_SWEEP_INTERVAL_MINUTES,
            timezone_name=self._settings.SCHEDULER_TIMEZONE,
            enabled=self._settings.MAINTENANCE_SWEEP_ENABLED,
        )
        self._initialized = False

    @property
    def container(self) -> DependencyContainer:
        if self._container is None:
            self._container = get_container()
        return self._container

    @property
    def scheduler(self) -> MaintenanceScheduler:
        return self._scheduler

    async def startup(self) -> None:
        if self._initialized:
            logger.warning("Lifecycle already initialized, skipping startup")
            return

        logger.info("Starting application lifecycle...")

        self._verify_configurations()
        await self._verify_database()
        await self._scheduler.start()

        self._initialized = True
        logger.info("Application lifecycle startup completed")

    async def shutdown(self) -> None:
        if not self._initialized:
            logger.warning("Lifecycle not initialized, skipping shutdown")
            return

        logger.info("Stopping application lifecycle...")

        await self._scheduler.stop()
        await self.container.close()
        await close_async_redis_client()
        await close_db_connections()

        self._initialized = False
        logger.info("Application lifecycle shutdown completed")

    async def _run_maintenance_sweep(self) -> SweepResult:
        async with get_async_db_context() as db:
            use_case = self.container.create_maintenance_sweep_use_case(db)
            return await use_case.execute()

    def _verify_configurations(self) -> None:
        if not self._settings.PAYMENT_GATEWAY_MERCHANT_ID:
            logger.warning("PAYMENT_GATEWAY_MERCHANT_ID not configured - payments will be refused by the gateway")
        if self._settings.PAYMENT_GATEWAY_SANDBOX:
            logger.info("Payment gateway running in sandbox mode")
        if not self._settings.PAYMENT_CALLBACK_LOCK_ENABLED:
            logger.info("Payment callback lock disabled via PAYMENT_CALLBACK_LOCK_ENABLED=False")

    async def _verify_database(self) -> None:
        if await check_database_health():
            logger.info("Database connectivity verified")
        else:
            logger.error("Database connectivity check failed")


# Global lifecycle manager instance
_lifecycle_manager: LifecycleManager | None = None


def get_lifecycle_manager() -> LifecycleManager:
    """Get or create the global lifecycle manager instance."""
    global _lifecycle_manager
    if _lifecycle_manager is None:
        _lifecycle_manager = LifecycleManager()
    return _lifecycle_manager


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Usage:
        app = FastAPI(lifespan=lifespan)
    """
    lifecycle = get_lifecycle_manager()

    await lifecycle.startup()

    yield

    await lifecycle.shutdown()
