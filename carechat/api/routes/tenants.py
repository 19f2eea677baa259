"""
Tenant API endpoints.

Public tenant lookup plus the administrative cache operations used after a
tenant is updated.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from carechat.core.tenancy.context_cache import TenantContextCache
from carechat.core.tenancy.resolver import get_tenant_cache_dependency

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tenants", tags=["tenants"])


class InvalidateResponse(BaseModel):
    identifier: str | None = None
    invalidated: bool | None = None
    entries_removed: int | None = None


@router.get("/cache/stats")
async def get_cache_stats(
    cache: TenantContextCache = Depends(get_tenant_cache_dependency),  # noqa: B008
) -> dict[str, Any]:
    """Cache size, TTL and per-entry age."""
    return cache.get_stats()


@router.post("/cache/invalidate-all", response_model=InvalidateResponse)
async def invalidate_all(
    cache: TenantContextCache = Depends(get_tenant_cache_dependency),  # noqa: B008
) -> InvalidateResponse:
    removed = await cache.invalidate_all()
    logger.info(f"Tenant cache cleared ({removed} entries)")
    return InvalidateResponse(entries_removed=removed)


@router.get("/{identifier}")
async def get_tenant(
    identifier: str,
    cache: TenantContextCache = Depends(get_tenant_cache_dependency),  # noqa: B008
) -> dict[str, Any]:
    """
    Public tenant information by slug or id.

    Returns 404 for unknown and inactive tenants.
    """
    context = await cache.resolve_or_raise(identifier)
    return {
        **context.tenant.to_public_dict(),
        "has_external_system": context.has_credentials,
    }


@router.get("/{identifier}/api-config")
async def validate_api_config(
    identifier: str,
    cache: TenantContextCache = Depends(get_tenant_cache_dependency),  # noqa: B008
) -> dict[str, Any]:
    """Whether the tenant's external system credentials are usable."""
    validation = await cache.validate_api_config(identifier)
    return validation.to_dict()


@router.post("/{identifier}/invalidate", response_model=InvalidateResponse)
async def invalidate_tenant(
    identifier: str,
    cache: TenantContextCache = Depends(get_tenant_cache_dependency),  # noqa: B008
) -> InvalidateResponse:
    invalidated = await cache.invalidate(identifier)
    return InvalidateResponse(identifier=identifier, invalidated=invalidated)
