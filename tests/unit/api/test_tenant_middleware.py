"""
Unit tests for TenantRequestMiddleware.

A bare FastAPI app with the middleware and a route echoing the bound tenant
slug; the tenant cache dependency is overridden like in the route tests.
"""

import logging

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from carechat.api.middleware.tenant_middleware import TenantRequestMiddleware
from carechat.core.shared.logger import TenantContextFilter
from carechat.core.tenancy.context import get_current_tenant_slug
from carechat.core.tenancy.context_cache import TenantContextCache
from carechat.core.tenancy.resolver import get_tenant_cache_dependency

MIDDLEWARE_LOGGER = "carechat.api.middleware.tenant_middleware"


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def tenant_cache(mock_tenant_store, encryption_service):
    return TenantContextCache(mock_tenant_store, encryption_service)


@pytest.fixture
def client(tenant_cache):
    app = FastAPI()
    app.add_middleware(TenantRequestMiddleware)

    @app.get("/whoami")
    async def whoami():
        return {"tenant": get_current_tenant_slug()}

    @app.get("/health")
    async def health():
        return {"tenant": get_current_tenant_slug()}

    app.dependency_overrides[get_tenant_cache_dependency] = lambda: tenant_cache
    return TestClient(app)


# ============================================================================
# Tenant binding
# ============================================================================


@pytest.mark.unit
@pytest.mark.api
def test_header_tenant_is_bound_for_the_request(client):
    """Test the resolved tenant is visible to the route and echoed back."""
    # Act
    response = client.get("/whoami", headers={"X-Tenant-ID": "Abrace"})

    # Assert
    assert response.json() == {"tenant": "abrace"}
    assert response.headers["X-Tenant-Slug"] == "abrace"
    assert response.headers["X-Correlation-ID"]


@pytest.mark.unit
@pytest.mark.api
def test_query_slug_is_bound(client):
    """Test the slug query parameter also binds the tenant."""
    response = client.get("/whoami", params={"slug": "abrace"})

    assert response.json() == {"tenant": "abrace"}


@pytest.mark.unit
@pytest.mark.api
def test_unknown_tenant_passes_through_unbound(client):
    """Test an unknown tenant does not fail requests that do not need one."""
    response = client.get("/whoami", headers={"X-Tenant-ID": "ghost"})

    assert response.status_code == 200
    assert response.json() == {"tenant": None}
    assert "X-Tenant-Slug" not in response.headers


@pytest.mark.unit
@pytest.mark.api
def test_request_without_identifier_skips_the_store(client, mock_tenant_store):
    """Test no tenant lookup happens when the request names no tenant."""
    response = client.get("/whoami")

    assert response.json() == {"tenant": None}
    mock_tenant_store.get_by_slug.assert_not_awaited()
    mock_tenant_store.get_by_id.assert_not_awaited()


@pytest.mark.unit
@pytest.mark.api
def test_health_is_not_tenant_resolved(client, mock_tenant_store):
    """Test excluded paths only get the correlation header."""
    response = client.get("/health", headers={"X-Tenant-ID": "abrace", "X-Correlation-ID": "hc-1"})

    assert response.json() == {"tenant": None}
    assert response.headers["X-Correlation-ID"] == "hc-1"
    mock_tenant_store.get_by_slug.assert_not_awaited()


# ============================================================================
# Access log
# ============================================================================


@pytest.mark.unit
@pytest.mark.api
def test_access_log_names_tenant_and_correlation_id(client, caplog):
    """Test both access lines carry the correlation id and tenant slug."""
    with caplog.at_level(logging.INFO, logger=MIDDLEWARE_LOGGER):
        client.get("/whoami", headers={"X-Tenant-ID": "abrace", "X-Correlation-ID": "req-42"})

    lines = [r.getMessage() for r in caplog.records if r.name == MIDDLEWARE_LOGGER]
    assert any(line.startswith("[req-42] -->") and "tenant=abrace" in line for line in lines)
    assert any(line.startswith("[req-42] <--") and "tenant=abrace 200" in line for line in lines)


@pytest.mark.unit
@pytest.mark.api
def test_access_log_records_are_stamped_with_tenant(client, caplog):
    """Test records logged while serving carry the bound tenant through the filter."""
    handler_filter = TenantContextFilter()
    caplog.handler.addFilter(handler_filter)
    try:
        with caplog.at_level(logging.INFO, logger=MIDDLEWARE_LOGGER):
            client.get("/whoami", headers={"X-Tenant-ID": "abrace"})
    finally:
        caplog.handler.removeFilter(handler_filter)

    stamped = {r.tenant for r in caplog.records if r.name == MIDDLEWARE_LOGGER}
    assert stamped == {"abrace"}
