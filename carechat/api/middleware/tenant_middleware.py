"""
Tenant-aware request middleware.

Each request gets a correlation id (the caller's X-Correlation-ID when sent).
When the request names a tenant that resolves through the tenant cache, the
tenant context is bound for the whole request, so the access lines and every
record logged while serving it carry the tenant slug (see TenantContextFilter).
Requests whose tenant does not resolve pass through unbound; routes that need
a tenant reject them in get_tenant_dependency.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Awaitable, Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from carechat.core.tenancy.context import TenantContext, reset_tenant_context, set_tenant_context
from carechat.core.tenancy.resolver import get_tenant_cache_dependency, tenant_identifier_from_request

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"
TENANT_SLUG_HEADER = "X-Tenant-Slug"
RESPONSE_TIME_HEADER = "X-Response-Time-Ms"

CallNext = Callable[[Request], Awaitable[Response]]


class TenantRequestMiddleware(BaseHTTPMiddleware):
    """
    Correlation id, tenant binding and access log per request.

    Health and docs paths only get the correlation header; they are neither
    logged nor tenant-resolved.
    """

    EXCLUDE_PATHS: tuple[str, ...] = ("/health", "/favicon.ico", "/openapi.json")

    def _is_excluded(self, path: str) -> bool:
        return any(path.startswith(exclude) for exclude in self.EXCLUDE_PATHS) or path.endswith(("/docs", "/redoc"))

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex[:8]
        request.state.correlation_id = correlation_id

        if self._is_excluded(request.url.path):
            response = await call_next(request)
            response.headers[CORRELATION_HEADER] = correlation_id
            return response

        tenant = await self._resolve_tenant(request)
        request.state.tenant_slug = tenant.slug if tenant else None

        token = set_tenant_context(tenant)
        try:
            response = await self._serve(request, call_next, correlation_id)
        finally:
            reset_tenant_context(token)

        if tenant is not None:
            response.headers[TENANT_SLUG_HEADER] = tenant.slug
        return response

    @staticmethod
    async def _resolve_tenant(request: Request) -> TenantContext | None:
        """Resolve the request's tenant through the cache; None when absent or unknown."""
        identifier = tenant_identifier_from_request(request)
        if identifier is None:
            return None

        # Same provider the routes use, overrides included
        provider = request.app.dependency_overrides.get(get_tenant_cache_dependency, get_tenant_cache_dependency)
        tenant = await provider().resolve(identifier)
        if tenant is None:
            logger.debug(f"Tenant '{identifier}' did not resolve, request left unbound")
        return tenant

    async def _serve(self, request: Request, call_next: CallNext, correlation_id: str) -> Response:
        tenant_slug = request.state.tenant_slug or "-"
        route = f"{request.method} {request.url.path}"

        start_time = time.perf_counter()
        logger.info(f"[{correlation_id}] --> {route} tenant={tenant_slug} from {self._get_client_ip(request)}")

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(f"[{correlation_id}] <-- {route} tenant={tenant_slug} ERROR in {duration_ms:.2f}ms: {e}")
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        log_level = logging.WARNING if response.status_code >= 400 else logging.INFO
        logger.log(
            log_level,
            f"[{correlation_id}] <-- {route} tenant={tenant_slug} {response.status_code} in {duration_ms:.2f}ms",
        )

        response.headers[CORRELATION_HEADER] = correlation_id
        response.headers[RESPONSE_TIME_HEADER] = f"{duration_ms:.2f}"
        return response

    @staticmethod
    def _get_client_ip(request: Request) -> str:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
        return request.client.host if request.client else "unknown"
