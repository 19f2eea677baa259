# ============================================================================
# SCOPE: MULTI-TENANT
# Description: Contexto de tenant resuelto (configuración + credenciales) y
#              propagación por request usando contextvars de Python.
# Tenant-Aware: Yes - ESTE ES el mecanismo central de tenant-awareness.
# ============================================================================
"""
TenantContext - resolved tenant context and its request-scoped propagation.

Usage:
    # Set context (TenantRequestMiddleware, get_tenant_dependency)
    token = set_tenant_context(ctx)

    # Get context anywhere in the request
    ctx = get_tenant_context()
    slug = get_current_tenant_slug()
"""

from __future__ import annotations

import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .tenant_config import ExternalCredentials, TenantConfig


# Context variable for tenant context - async-safe
_tenant_context: ContextVar[TenantContext | None] = ContextVar("tenant_context", default=None)


@dataclass(frozen=True)
class TenantContext:
    """
    Resolved tenant context.

    Immutable: a refresh replaces the whole context, readers never observe
    a half-updated one.

    Attributes:
        tenant: Tenant configuration snapshot
        credentials: Decrypted external credentials, None when absent or undecryptable
        external_base_url: Selected base URL of the external system of record
        loaded_at: When the configuration was read from the store
    """

    tenant: TenantConfig
    credentials: ExternalCredentials | None
    external_base_url: str | None
    loaded_at: datetime

    @property
    def tenant_id(self) -> uuid.UUID:
        return self.tenant.id

    @property
    def slug(self) -> str:
        return self.tenant.slug

    @property
    def has_credentials(self) -> bool:
        """True when the external system can be queried."""
        return self.credentials is not None and bool(self.external_base_url)


def get_tenant_context() -> TenantContext | None:
    """Get the current tenant context, or None if not set."""
    return _tenant_context.get()


def get_current_tenant_slug() -> str | None:
    """Convenience function to get the current tenant slug."""
    ctx = _tenant_context.get()
    return ctx.slug if ctx else None


def set_tenant_context(ctx: TenantContext | None) -> Token[TenantContext | None]:
    """Set the tenant context for the current request; returns a reset token."""
    return _tenant_context.set(ctx)


def reset_tenant_context(token: Token[TenantContext | None]) -> None:
    _tenant_context.reset(token)

