# ============================================================================
# SCOPE: MULTI-TENANT
# Description: Cache in-memory de contextos de tenant (configuración +
#              credenciales desencriptadas). TTL de 15 minutos, barrido
#              periódico cada 5 minutos e invalidación explícita.
# Tenant-Aware: Yes - una entrada por tenant, accesible por slug o por id.
# ============================================================================
"""
Tenant Context Cache - TTL cache of resolved tenant contexts.

Features:
- Lookup by slug or id hits the same entry (stored under both keys)
- TTL-based expiration (15 minutes default), expired entries are never served
- Background sweep bounding memory independent of traffic (5 minutes default)
- Per-identifier load lock: concurrent misses trigger a single store read
- Invalidation visible to every key aliasing the tenant, including loads in flight
- Credential decryption failure degrades to a context without credentials

Usage:
    cache = get_tenant_context_cache()
    await cache.start()

    ctx = await cache.resolve("abrace")          # TenantContext | None
    ctx = await cache.resolve(str(tenant_id))    # same entry

    await cache.invalidate("abrace")             # after an admin update
    await cache.stop()
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from carechat.core.domain.exceptions import TenantNotFoundError

from .context import TenantContext
from .encryption_service import CredentialEncryptionError, CredentialEncryptionService, get_encryption_service
from .tenant_config import ExternalCredentials, TenantConfig
from .tenant_repository import TenantConfigStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachedTenantContext:
    """Cache entry: a resolved context plus its load time and TTL (clock seconds)."""

    context: TenantContext
    loaded_at: float
    ttl: float
    keys: frozenset[str] = field(default_factory=frozenset)

    def age(self, now: float) -> float:
        return now - self.loaded_at

    def is_expired(self, now: float) -> bool:
        return self.age(now) > self.ttl


@dataclass
class ApiConfigValidation:
    """Result of validating a tenant's external system configuration."""

    is_valid: bool
    has_api_config: bool
    auth_method: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "has_api_config": self.has_api_config,
            "auth_method": self.auth_method,
            "error": self.error,
        }


class TenantContextCache:
    """
    In-memory TTL cache of TenantContext keyed by slug and by id.

    The clock is injectable so expiry can be tested without sleeping.
    Store failures (e.g. database unavailable) propagate to the caller.
    """

    DEFAULT_TTL_SECONDS: int = 15 * 60
    DEFAULT_SWEEP_INTERVAL_SECONDS: int = 5 * 60

    def __init__(
        self,
        store: TenantConfigStore,
        encryption_service: CredentialEncryptionService | None = None,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            store: Tenant configuration store (read-only)
            encryption_service: Decrypts credential blobs (defaults to singleton)
            ttl_seconds: Entry TTL in seconds (default: 900)
            sweep_interval_seconds: Background sweep interval (default: 300)
            clock: Monotonic clock returning seconds
        """
        self._store = store
        self._encryption = encryption_service or get_encryption_service()
        self._ttl = float(ttl_seconds)
        self._sweep_interval = float(sweep_interval_seconds)
        self._clock = clock

        self._entries: dict[str, CachedTenantContext] = {}
        self._lock = asyncio.Lock()
        self._load_locks: dict[str, asyncio.Lock] = {}
        # Bumped by every invalidation; loads started before a bump are not stored
        self._generation = 0
        self._sweep_task: asyncio.Task[None] | None = None

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    @property
    def is_running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    @staticmethod
    def _normalize_key(identifier: str | uuid.UUID) -> str:
        return str(identifier).strip().lower()

    # =========================================================================
    # Resolution
    # =========================================================================

    async def resolve(self, identifier: str | uuid.UUID, force_refresh: bool = False) -> TenantContext | None:
        """
        Resolve a tenant identifier (slug or id) into a TenantContext.

        Args:
            identifier: Tenant slug or UUID
            force_refresh: Bypass the cached entry and reload from the store

        Returns:
            TenantContext, or None when the tenant is absent or inactive
        """
        key = self._normalize_key(identifier)
        if not key:
            return None

        if not force_refresh:
            entry = await self._get_fresh(key)
            if entry is not None:
                return entry.context

        load_lock = await self._get_load_lock(key)
        async with load_lock:
            if not force_refresh:
                # Another request may have loaded it while we waited
                entry = await self._get_fresh(key)
                if entry is not None:
                    return entry.context

            async with self._lock:
                generation = self._generation

            tenant = await self._load_tenant(key)
            if tenant is None:
                logger.info(f"Tenant not found: {key}")
                return None
            if not tenant.is_active:
                logger.warning(f"Tenant {tenant.slug} is inactive, refusing to resolve")
                await self._evict_tenant(tenant)
                return None

            context = self._build_context(tenant)
            await self._store_entry(context, generation)
            return context

    async def resolve_or_raise(self, identifier: str | uuid.UUID, force_refresh: bool = False) -> TenantContext:
        """
        Resolve a tenant, raising when it does not resolve.

        Raises:
            TenantNotFoundError: If the tenant is absent or inactive
        """
        context = await self.resolve(identifier, force_refresh=force_refresh)
        if context is None:
            raise TenantNotFoundError(str(identifier))
        return context

    async def _load_tenant(self, key: str) -> TenantConfig | None:
        """Load by slug first, then by id when the identifier is a UUID."""
        tenant = await self._store.get_by_slug(key)
        if tenant is not None:
            return tenant

        try:
            tenant_id = uuid.UUID(key)
        except ValueError:
            return None
        return await self._store.get_by_id(tenant_id)

    def _build_context(self, tenant: TenantConfig) -> TenantContext:
        credentials: ExternalCredentials | None = None
        if tenant.encrypted_credentials:
            try:
                credentials = self._encryption.decrypt_credentials(tenant.encrypted_credentials)
            except CredentialEncryptionError as e:
                logger.error(f"Could not decrypt credentials for tenant {tenant.slug}: {e}")
        else:
            logger.debug(f"Tenant {tenant.slug} has no external credentials configured")

        base_url = tenant.external_base_url.rstrip("/") if tenant.external_base_url else None
        return TenantContext(
            tenant=tenant,
            credentials=credentials,
            external_base_url=base_url,
            loaded_at=datetime.now(UTC),
        )

    # =========================================================================
    # Entry management
    # =========================================================================

    async def _get_load_lock(self, key: str) -> asyncio.Lock:
        async with self._lock:
            lock = self._load_locks.get(key)
            if lock is None:
                lock = asyncio.Lock()
                self._load_locks[key] = lock
            return lock

    async def _get_fresh(self, key: str) -> CachedTenantContext | None:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                self._drop_entry(entry)
                logger.debug(f"Tenant cache entry expired: {key}")
                return None
            return entry

    async def _store_entry(self, context: TenantContext, generation: int) -> None:
        keys = frozenset({self._normalize_key(context.slug), self._normalize_key(context.tenant_id)})
        entry = CachedTenantContext(context=context, loaded_at=self._clock(), ttl=self._ttl, keys=keys)

        async with self._lock:
            if generation != self._generation:
                logger.debug(f"Tenant {context.slug} invalidated during load, result not cached")
                return
            for key in keys:
                previous = self._entries.get(key)
                if previous is not None:
                    self._drop_entry(previous)
            for key in keys:
                self._entries[key] = entry

        logger.debug(f"Tenant context cached: {context.slug} (ttl={self._ttl:.0f}s)")

    async def _evict_tenant(self, tenant: TenantConfig) -> None:
        async with self._lock:
            for key in (self._normalize_key(tenant.slug), self._normalize_key(tenant.id)):
                entry = self._entries.get(key)
                if entry is not None:
                    self._drop_entry(entry)

    def _drop_entry(self, entry: CachedTenantContext) -> None:
        """Remove every key aliasing the entry. Caller holds self._lock."""
        for key in entry.keys:
            if self._entries.get(key) is entry:
                del self._entries[key]

    # =========================================================================
    # Invalidation
    # =========================================================================

    async def invalidate(self, identifier: str | uuid.UUID) -> bool:
        """
        Invalidate a tenant by slug or id.

        Removes every key referencing the same tenant and discards loads
        already in flight.

        Returns:
            True if a cached entry was removed
        """
        key = self._normalize_key(identifier)
        async with self._lock:
            self._generation += 1
            entry = self._entries.get(key)
            if entry is None:
                return False
            self._drop_entry(entry)

        logger.info(f"Tenant cache invalidated: {entry.context.slug}")
        return True

    async def invalidate_all(self) -> int:
        """Invalidate every entry; returns the number of tenants removed."""
        async with self._lock:
            self._generation += 1
            count = len({id(entry) for entry in self._entries.values()})
            self._entries.clear()

        logger.info(f"Tenant cache cleared ({count} tenants)")
        return count

    async def purge_expired(self) -> int:
        """Remove expired entries; returns the number of tenants removed."""
        async with self._lock:
            now = self._clock()
            expired = {id(e): e for e in self._entries.values() if e.is_expired(now)}
            for entry in expired.values():
                self._drop_entry(entry)

            # Drop idle load locks of keys that are no longer cached
            for key in [k for k, lock in self._load_locks.items() if k not in self._entries and not lock.locked()]:
                del self._load_locks[key]

        if expired:
            logger.debug(f"Tenant cache sweep removed {len(expired)} expired entries")
        return len(expired)

    # =========================================================================
    # Background sweep
    # =========================================================================

    async def start(self) -> None:
        """Start the periodic sweep task."""
        if self.is_running:
            logger.warning("Tenant cache sweep already running")
            return

        self._sweep_task = asyncio.create_task(self._sweep_loop(), name="tenant_cache_sweep")
        logger.info(f"Tenant cache sweep started (interval={self._sweep_interval:.0f}s)")

    async def stop(self) -> None:
        """Cancel the sweep task and wait for it to finish."""
        task = self._sweep_task
        self._sweep_task = None
        if task is None:
            return

        if not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info("Tenant cache sweep stopped")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            try:
                await self.purge_expired()
            except Exception as e:
                logger.error(f"Tenant cache sweep failed: {e}", exc_info=True)

    # =========================================================================
    # Diagnostics
    # =========================================================================

    def get_stats(self) -> dict[str, Any]:
        """Cache size and per-key age/TTL."""
        now = self._clock()
        entries = [
            {
                "key": key,
                "slug": entry.context.slug,
                "age_seconds": round(entry.age(now), 3),
                "ttl_seconds": entry.ttl,
                "expired": entry.is_expired(now),
                "has_credentials": entry.context.credentials is not None,
            }
            for key, entry in sorted(self._entries.items())
        ]
        return {
            "size": len(self._entries),
            "tenants": len({id(entry) for entry in self._entries.values()}),
            "ttl_seconds": self._ttl,
            "sweep_interval_seconds": self._sweep_interval,
            "sweep_running": self.is_running,
            "entries": entries,
        }

    async def validate_api_config(self, identifier: str | uuid.UUID) -> ApiConfigValidation:
        """Check whether the tenant can query its external system of record."""
        context = await self.resolve(identifier)
        if context is None:
            return ApiConfigValidation(is_valid=False, has_api_config=False, error="Tenant not found or inactive")

        if not context.tenant.encrypted_credentials:
            return ApiConfigValidation(is_valid=False, has_api_config=False, error="No API configuration")

        if context.credentials is None:
            return ApiConfigValidation(is_valid=False, has_api_config=True, error="Credentials could not be decrypted")

        if not context.external_base_url:
            return ApiConfigValidation(
                is_valid=False,
                has_api_config=True,
                auth_method=context.credentials.auth_method,
                error="External base URL not configured",
            )

        return ApiConfigValidation(is_valid=True, has_api_config=True, auth_method=context.credentials.auth_method)


# Singleton instance
_tenant_context_cache: TenantContextCache | None = None


def get_tenant_context_cache() -> TenantContextCache:
    """Get the process-wide tenant context cache backed by the database."""
    global _tenant_context_cache
    if _tenant_context_cache is None:
        from carechat.config.settings import get_settings
        from carechat.database.async_db import get_async_db_context

        from .tenant_repository import SessionTenantConfigStore

        settings = get_settings()
        _tenant_context_cache = TenantContextCache(
            store=SessionTenantConfigStore(get_async_db_context),
            ttl_seconds=settings.TENANT_CACHE_TTL_SECONDS,
            sweep_interval_seconds=settings.TENANT_CACHE_SWEEP_INTERVAL_SECONDS,
        )
    return _tenant_context_cache


def reset_tenant_context_cache() -> None:
    """Drop the singleton (tests)."""
    global _tenant_context_cache
    _tenant_context_cache = None
