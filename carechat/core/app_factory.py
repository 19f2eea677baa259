"""
FastAPI application factory.

create_app() assembles the carechat API:
- CORS for PUBLIC_DOMAIN and its tenant subdomains
- TenantRequestMiddleware (correlation id, tenant-bound logging)
- domain exception handlers
- versioned routes and a health endpoint reporting the tenant cache

The lifespan (tenant cache sweep, engine disposal) lives in carechat.core.lifecycle.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from carechat.api.exception_handlers import register_exception_handlers
from carechat.api.middleware.tenant_middleware import (
    CORRELATION_HEADER,
    RESPONSE_TIME_HEADER,
    TENANT_SLUG_HEADER,
    TenantRequestMiddleware,
)
from carechat.api.router import api_router
from carechat.config.settings import Settings, get_settings
from carechat.core.lifecycle import lifespan
from carechat.core.tenancy.context_cache import TenantContextCache
from carechat.core.tenancy.resolver import TENANT_HEADER, get_tenant_cache_dependency

logger = logging.getLogger(__name__)


class AppFactory:
    """Builds the carechat FastAPI application from Settings."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()

    def create_app(self) -> FastAPI:
        app = FastAPI(
            title=self._settings.PROJECT_NAME,
            description=self._settings.PROJECT_DESCRIPTION,
            version=self._settings.VERSION,
            docs_url=f"{self._settings.API_V1_STR}/docs" if self._settings.DEBUG else None,
            redoc_url=f"{self._settings.API_V1_STR}/redoc" if self._settings.DEBUG else None,
            lifespan=lifespan,
        )

        self._configure_middleware(app)
        register_exception_handlers(app)
        app.include_router(api_router, prefix=self._settings.API_V1_STR)
        self._configure_health_endpoint(app)

        logger.info(f"Application created: {self._settings.PROJECT_NAME} ({self._settings.ENVIRONMENT})")
        return app

    def _configure_middleware(self, app: FastAPI) -> None:
        """CORS is added last, so it is the outermost layer and preflights skip tenant resolution."""
        app.add_middleware(TenantRequestMiddleware)
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"] if self._settings.DEBUG else [],
            allow_origin_regex=None if self._settings.DEBUG else self.tenant_origin_regex(),
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type", TENANT_HEADER, CORRELATION_HEADER],
            expose_headers=[CORRELATION_HEADER, TENANT_SLUG_HEADER, RESPONSE_TIME_HEADER],
        )

    def tenant_origin_regex(self) -> str:
        """PUBLIC_DOMAIN and any tenant subdomain of it, https only."""
        return rf"https://([a-z0-9-]+\.)?{re.escape(self._settings.PUBLIC_DOMAIN)}"

    def _configure_health_endpoint(self, app: FastAPI) -> None:
        settings = self._settings

        @app.get("/health", tags=["health"])
        @app.get(f"{settings.API_V1_STR}/health", tags=["health"], include_in_schema=False)
        async def health_check(
            cache: TenantContextCache = Depends(get_tenant_cache_dependency),  # noqa: B008
        ) -> dict[str, Any]:
            """Liveness plus tenant cache state; never touches the database."""
            stats = cache.get_stats()
            return {
                "status": "ok",
                "environment": settings.ENVIRONMENT,
                "version": settings.VERSION,
                "tenant_cache": {
                    "tenants": stats["tenants"],
                    "entries": stats["size"],
                    "sweep_running": stats["sweep_running"],
                },
            }


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create the FastAPI application; settings default to get_settings()."""
    return AppFactory(settings).create_app()
