# ============================================================================
# SCOPE: MULTI-TENANT
# Description: Resolución del identificador de tenant de cada request
#              (header X-Tenant-ID, parámetro slug o subdominio del Host).
# Tenant-Aware: Yes - determina el tenant de cada request.
# ============================================================================
"""
Tenant request resolution.

Priority order for the tenant identifier:
1. X-Tenant-ID header (slug or UUID)
2. ?slug= query parameter
3. Subdomain of the Host header (localhost maps to DEFAULT_TENANT_SLUG)

Usage:
    @router.get("/items")
    async def get_items(tenant: TenantContext = Depends(get_tenant_dependency)):
        ...
"""

from __future__ import annotations

import logging
import re

from fastapi import Depends, Request

from carechat.config.settings import get_settings
from carechat.core.domain.exceptions import TenantNotFoundError

from .context import TenantContext, set_tenant_context
from .context_cache import TenantContextCache, get_tenant_context_cache

logger = logging.getLogger(__name__)

TENANT_HEADER = "X-Tenant-ID"

RESERVED_SUBDOMAINS = frozenset({
    "www",
    "api",
    "admin",
    "mail",
    "ftp",
    "blog",
    "support",
    "help",
    "docs",
    "status",
    "app",
    "dashboard",
    "portal",
})

_SUBDOMAIN_PATTERN = re.compile(r"^[a-zA-Z0-9]([a-zA-Z0-9-]*[a-zA-Z0-9])?$")


def extract_subdomain(host: str | None, default_slug: str | None = None) -> str | None:
    """
    Extract the tenant subdomain from a Host header value.

    Args:
        host: Host header (port allowed)
        default_slug: Slug returned for localhost (defaults to settings.DEFAULT_TENANT_SLUG)

    Returns:
        Subdomain, or None when the host carries none
    """
    if not host:
        return None

    hostname = host.split(":")[0].strip().lower()
    if hostname == "localhost" or hostname.startswith("127.0.0.1"):
        return default_slug or get_settings().DEFAULT_TENANT_SLUG

    parts = hostname.split(".")
    # associacao1.carechat.app -> associacao1, custom-domain.org -> custom-domain
    if len(parts) >= 2 and parts[0]:
        return parts[0]
    return None


def is_valid_subdomain(subdomain: str | None) -> bool:
    """Alphanumeric and hyphens, 3-63 characters, not reserved."""
    if not subdomain or not _SUBDOMAIN_PATTERN.match(subdomain):
        return False
    if len(subdomain) < 3 or len(subdomain) > 63:
        return False
    return subdomain.lower() not in RESERVED_SUBDOMAINS


def tenant_identifier_from_request(request: Request) -> str | None:
    """Pick the tenant identifier for a request, or None."""
    header_value = request.headers.get(TENANT_HEADER)
    if header_value and header_value.strip():
        return header_value.strip()

    slug = request.query_params.get("slug")
    if slug and slug.strip():
        return slug.strip()

    subdomain = extract_subdomain(request.headers.get("host"))
    if subdomain and is_valid_subdomain(subdomain):
        return subdomain

    if subdomain:
        logger.debug(f"Ignoring reserved or malformed subdomain: {subdomain}")
    return None


def get_tenant_cache_dependency() -> TenantContextCache:
    """FastAPI dependency returning the process-wide tenant cache."""
    return get_tenant_context_cache()


async def get_tenant_dependency(
    request: Request,
    cache: TenantContextCache = Depends(get_tenant_cache_dependency),
) -> TenantContext:
    """
    FastAPI dependency resolving the request's tenant.

    Also sets the tenant contextvar so logs are stamped with the slug.

    Raises:
        TenantNotFoundError: If no identifier is present or it does not resolve
    """
    identifier = tenant_identifier_from_request(request)
    if identifier is None:
        raise TenantNotFoundError("<missing>")

    context = await cache.resolve_or_raise(identifier)
    set_tenant_context(context)
    return context
