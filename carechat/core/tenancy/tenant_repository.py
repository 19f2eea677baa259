# ============================================================================
# SCOPE: MULTI-TENANT
# Description: Acceso de solo lectura a la configuración de asociaciones
#              (tenants) por slug o por id.
# Tenant-Aware: Yes - devuelve la configuración de UN tenant.
# ============================================================================
"""
Tenant Config Store Access.

TenantConfigRepository works on a caller-provided AsyncSession.
SessionTenantConfigStore opens a short-lived session per lookup so it can back
the process-wide TenantContextCache.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from typing import Protocol, runtime_checkable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from carechat.models.db import Association

from .tenant_config import TenantConfig

logger = logging.getLogger(__name__)


@runtime_checkable
class TenantConfigStore(Protocol):
    """Read interface of the tenant configuration store."""

    async def get_by_slug(self, slug: str) -> TenantConfig | None:
        ...

    async def get_by_id(self, tenant_id: uuid.UUID) -> TenantConfig | None:
        ...


class TenantConfigRepository:
    """
    Repository for Association lookups.

    Returns detached TenantConfig snapshots, including inactive tenants;
    callers decide whether an inactive tenant is resolvable.
    """

    def __init__(self, db: AsyncSession):
        """
        Initialize repository with database session.

        Args:
            db: SQLAlchemy async session
        """
        self._db = db

    async def get_by_slug(self, slug: str) -> TenantConfig | None:
        stmt = select(Association).where(Association.slug == slug.lower())
        result = await self._db.execute(stmt)
        model = result.scalar_one_or_none()
        return TenantConfig.from_model(model) if model else None

    async def get_by_id(self, tenant_id: uuid.UUID) -> TenantConfig | None:
        stmt = select(Association).where(Association.id == tenant_id)
        result = await self._db.execute(stmt)
        model = result.scalar_one_or_none()
        return TenantConfig.from_model(model) if model else None


class SessionTenantConfigStore:
    """TenantConfigStore that opens one session per lookup."""

    def __init__(self, session_factory: Callable[[], AbstractAsyncContextManager[AsyncSession]]):
        """
        Args:
            session_factory: Callable returning an async context manager that yields a session
                (e.g. carechat.database.async_db.get_async_db_context)
        """
        self._session_factory = session_factory

    async def get_by_slug(self, slug: str) -> TenantConfig | None:
        async with self._session_factory() as session:
            return await TenantConfigRepository(session).get_by_slug(slug)

    async def get_by_id(self, tenant_id: uuid.UUID) -> TenantConfig | None:
        async with self._session_factory() as session:
            return await TenantConfigRepository(session).get_by_id(tenant_id)
