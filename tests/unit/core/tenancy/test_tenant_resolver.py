"""
Unit tests for tenant request resolution.
"""

import pytest
from starlette.requests import Request

from carechat.core.domain.exceptions import TenantNotFoundError
from carechat.core.tenancy.context import get_tenant_context
from carechat.core.tenancy.context_cache import TenantContextCache
from carechat.core.tenancy.resolver import (
    extract_subdomain,
    get_tenant_dependency,
    is_valid_subdomain,
    tenant_identifier_from_request,
)


def make_request(headers: dict[str, str] | None = None, query: str = "") -> Request:
    raw_headers = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    return Request({"type": "http", "method": "GET", "path": "/", "headers": raw_headers, "query_string": query.encode()})


# ============================================================================
# Subdomain parsing
# ============================================================================


@pytest.mark.unit
@pytest.mark.parametrize(
    ("host", "expected"),
    [
        ("abrace.carechat.app", "abrace"),
        ("abrace.carechat.app:8443", "abrace"),
        ("custom-domain.org", "custom-domain"),
        ("localhost:8000", "demo"),
        ("127.0.0.1", "demo"),
        ("nodots", None),
        (None, None),
    ],
)
def test_extract_subdomain(host, expected):
    """Test subdomain extraction from Host values."""
    assert extract_subdomain(host, default_slug="demo") == expected


@pytest.mark.unit
@pytest.mark.parametrize(
    ("subdomain", "expected"),
    [
        ("abrace", True),
        ("assoc-1", True),
        ("ab", False),
        ("www", False),
        ("api", False),
        ("-bad", False),
        ("a" * 64, False),
    ],
)
def test_is_valid_subdomain(subdomain, expected):
    """Test length, charset and reserved-name rules."""
    assert is_valid_subdomain(subdomain) is expected


# ============================================================================
# Identifier priority
# ============================================================================


@pytest.mark.unit
def test_header_wins_over_query_and_host():
    """Test X-Tenant-ID takes priority."""
    request = make_request({"X-Tenant-ID": " abrace ", "Host": "other.carechat.app"}, query="slug=third")

    assert tenant_identifier_from_request(request) == "abrace"


@pytest.mark.unit
def test_query_slug_wins_over_host():
    """Test ?slug= is used when no header is sent."""
    request = make_request({"Host": "other.carechat.app"}, query="slug=abrace")

    assert tenant_identifier_from_request(request) == "abrace"


@pytest.mark.unit
def test_reserved_subdomain_is_ignored():
    """Test www.* and api.* hosts carry no tenant."""
    assert tenant_identifier_from_request(make_request({"Host": "api.carechat.app"})) is None
    assert tenant_identifier_from_request(make_request({"Host": "abrace.carechat.app"})) == "abrace"


# ============================================================================
# FastAPI dependency
# ============================================================================


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_tenant_dependency_sets_context(mock_tenant_store, encryption_service):
    """Test the dependency resolves the tenant and publishes it to the contextvar."""
    cache = TenantContextCache(mock_tenant_store, encryption_service)

    context = await get_tenant_dependency(make_request({"X-Tenant-ID": "abrace"}), cache=cache)

    assert context.slug == "abrace"
    assert get_tenant_context() is context


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_tenant_dependency_unknown_tenant(mock_tenant_store, encryption_service):
    """Test an unknown tenant raises TenantNotFoundError."""
    cache = TenantContextCache(mock_tenant_store, encryption_service)

    with pytest.raises(TenantNotFoundError):
        await get_tenant_dependency(make_request({"X-Tenant-ID": "ghost"}), cache=cache)
