# ============================================================================
# SCOPE: MULTI-TENANT
# Description: Módulo principal de multi-tenancy: resolución, cache y
#              contexto de tenant por request.
# Tenant-Aware: Yes - este módulo ES la implementación de tenant-awareness.
# ============================================================================
"""
Tenancy module.

- TenantConfig / ExternalCredentials: tenant configuration snapshot and credentials
- TenantContext: resolved tenant context, propagated with contextvars
- TenantContextCache: TTL cache of resolved contexts (slug and id keys)
- CredentialEncryptionService: Fernet decryption of credential blobs
- TenantConfigRepository: read-only store access
"""

from .context import (
    TenantContext,
    get_current_tenant_slug,
    get_tenant_context,
    set_tenant_context,
)
from .context_cache import (
    ApiConfigValidation,
    CachedTenantContext,
    TenantContextCache,
    get_tenant_context_cache,
)
from .encryption_service import (
    CredentialEncryptionError,
    CredentialEncryptionService,
    get_encryption_service,
)
from .tenant_config import ExternalCredentials, TenantConfig
from .tenant_repository import SessionTenantConfigStore, TenantConfigRepository, TenantConfigStore

__all__ = [
    "ApiConfigValidation",
    "CachedTenantContext",
    "CredentialEncryptionError",
    "CredentialEncryptionService",
    "ExternalCredentials",
    "SessionTenantConfigStore",
    "TenantConfig",
    "TenantConfigRepository",
    "TenantConfigStore",
    "TenantContext",
    "TenantContextCache",
    "get_current_tenant_slug",
    "get_encryption_service",
    "get_tenant_context",
    "get_tenant_context_cache",
    "set_tenant_context",
]
