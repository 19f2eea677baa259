"""
Application lifecycle management using the FastAPI lifespan pattern.

Startup starts the tenant cache sweep; shutdown stops it and disposes the
database engine.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from carechat.config.settings import get_settings
from carechat.core.tenancy.context_cache import TenantContextCache, get_tenant_context_cache
from carechat.database.async_db import close_async_engine

logger = logging.getLogger(__name__)


class LifecycleManager:
    """
    Manages application lifecycle events.

    Handles startup initialization and graceful shutdown.
    """

    def __init__(self, tenant_cache: TenantContextCache | None = None) -> None:
        self._tenant_cache = tenant_cache
        self._initialized = False

    @property
    def tenant_cache(self) -> TenantContextCache:
        if self._tenant_cache is None:
            self._tenant_cache = get_tenant_context_cache()
        return self._tenant_cache

    async def startup(self) -> None:
        if self._initialized:
            logger.warning("Lifecycle already initialized, skipping startup")
            return

        logger.info("Starting application lifecycle...")

        self._verify_configurations()
        await self.tenant_cache.start()

        self._initialized = True
        logger.info("Application lifecycle startup completed")

    async def shutdown(self) -> None:
        if not self._initialized:
            logger.warning("Lifecycle not initialized, skipping shutdown")
            return

        logger.info("Stopping application lifecycle...")

        await self.tenant_cache.stop()
        await close_async_engine()

        self._initialized = False
        logger.info("Application lifecycle shutdown completed")

    def _verify_configurations(self) -> None:
        """Verify critical application configurations."""
        settings = get_settings()
        if not settings.CREDENTIAL_ENCRYPTION_KEY:
            logger.warning(
                "CREDENTIAL_ENCRYPTION_KEY not configured - tenant credentials cannot be decrypted, "
                "identity reconciliation will be local-only"
            )
        if not settings.SENTRY_DSN:
            logger.info("SENTRY_DSN not configured - error tracking disabled")


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
