"""
Unit tests for logging configuration.
"""

import json
import logging
from datetime import UTC, datetime

import pytest

from carechat.core.shared.logger import JSONFormatter, TenantContextFilter, configure_logging
from carechat.core.tenancy.context import reset_tenant_context, set_tenant_context


def make_record(message="hello"):
    return logging.LogRecord("carechat.test", logging.INFO, __file__, 10, message, None, None)


@pytest.mark.unit
def test_filter_stamps_dash_without_tenant():
    """Test records outside a request carry '-'."""
    record = make_record()

    TenantContextFilter().filter(record)

    assert record.tenant == "-"


@pytest.mark.unit
def test_filter_stamps_current_tenant(tenant_context):
    """Test records carry the slug of the tenant being served."""
    token = set_tenant_context(tenant_context)
    try:
        record = make_record()
        TenantContextFilter().filter(record)
    finally:
        reset_tenant_context(token)

    assert record.tenant == "abrace"


@pytest.mark.unit
def test_json_formatter():
    """Test JSON output includes tenant and message."""
    record = make_record("patient synced")
    record.tenant = "abrace"

    payload = json.loads(JSONFormatter().format(record))

    assert payload["message"] == "patient synced"
    assert payload["tenant"] == "abrace"
    assert payload["level"] == "INFO"
    assert datetime.fromisoformat(payload["timestamp"]).tzinfo == UTC


@pytest.mark.unit
def test_configure_logging_installs_filtered_handler():
    """Test configure_logging replaces root handlers with a tenant-aware one."""
    root = logging.getLogger()
    previous_handlers, previous_level = root.handlers[:], root.level
    try:
        configure_logging(level="DEBUG", format_type="plain")

        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert any(isinstance(f, TenantContextFilter) for f in root.handlers[0].filters)
    finally:
        root.handlers[:] = previous_handlers
        root.setLevel(previous_level)
