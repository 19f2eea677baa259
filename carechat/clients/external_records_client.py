"""
External Records HTTP Client

Async client for a tenant's external system of record using HTTP Basic Auth.
Each tenant has its own base URL and credentials (see TenantContext).

Endpoints:
    - GET {base_url}/clients?phone_filter={phone} - Contact search by phone

The external system may store phone numbers in any human format, so the
lookup tries the normalized digits first and then display variants, and a
result only counts as a match when its phone normalizes to the same digits.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from carechat.config.settings import get_settings
from carechat.core.shared.phone_normalizer import phone_variants, phones_match
from carechat.core.tenancy.context import TenantContext
from carechat.core.tenancy.tenant_config import ExternalCredentials
from carechat.domains.patients.domain.entities.external_record import ExternalRecord, MalformedExternalRecord

logger = logging.getLogger(__name__)

# Envelope keys that may wrap the list of results
_ENVELOPE_KEYS = ("data", "clients", "results", "items")


class ExternalRecordError(Exception):
    """
    Custom exception for external system of record errors.

    Attributes:
        error_code: Machine-readable error code (e.g., AUTH_ERROR, TIMEOUT)
        error_message: Human-readable error description
    """

    def __init__(self, error_code: str, error_message: str):
        self.error_code = error_code
        self.error_message = error_message
        super().__init__(f"{error_code}: {error_message}")


class ExternalRecordConnectionError(ExternalRecordError):
    """Network connectivity issues or timeouts."""

    def __init__(self, message: str, error_code: str = "CONNECTION_ERROR"):
        super().__init__(error_code, message)


class ExternalRecordAuthError(ExternalRecordError):
    """HTTP Basic Auth failed."""

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__("AUTH_ERROR", message)


class ExternalRecordsClient:
    """
    Async HTTP client for a tenant's external system of record.

    Example:
        async with ExternalRecordsClient.for_tenant(tenant_ctx) as client:
            record = await client.find_by_phone("85996201636")
    """

    def __init__(
        self,
        base_url: str,
        credentials: ExternalCredentials,
        timeout_seconds: float | None = None,
        search_path: str | None = None,
        phone_param: str | None = None,
        try_variants: bool | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize external records client.

        Args:
            base_url: Base URL of the external system
            credentials: Decrypted tenant credentials
            timeout_seconds: Request timeout (defaults to EXTERNAL_RECORDS_TIMEOUT)
            search_path: Search endpoint path (defaults to EXTERNAL_RECORDS_PATH)
            phone_param: Phone filter parameter (defaults to EXTERNAL_RECORDS_PHONE_PARAM)
            try_variants: Retry with formatted variants (defaults to EXTERNAL_RECORDS_TRY_VARIANTS)
            transport: Optional httpx transport (tests)
        """
        settings = get_settings()
        self.base_url = base_url.rstrip("/")
        self.credentials = credentials
        self.timeout = timeout_seconds or settings.EXTERNAL_RECORDS_TIMEOUT
        self.search_path = search_path or settings.EXTERNAL_RECORDS_PATH
        self.phone_param = phone_param or settings.EXTERNAL_RECORDS_PHONE_PARAM
        self.try_variants = settings.EXTERNAL_RECORDS_TRY_VARIANTS if try_variants is None else try_variants
        self.country_code = settings.PHONE_COUNTRY_CODE
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def for_tenant(cls, tenant: TenantContext, **kwargs: Any) -> ExternalRecordsClient:
        """
        Create a client from a resolved tenant context.

        Raises:
            ExternalRecordError: If the tenant has no usable credentials or base URL
        """
        if tenant.credentials is None or not tenant.external_base_url:
            raise ExternalRecordError("NOT_CONFIGURED", f"Tenant {tenant.slug} has no external system configured")
        return cls(base_url=tenant.external_base_url, credentials=tenant.credentials, **kwargs)

    async def __aenter__(self) -> ExternalRecordsClient:
        """Initialize async client with HTTP Basic Auth."""
        headers = {
            "Accept": "application/json",
            "User-Agent": "CareChat-Backend/1.0",
        }
        if self.credentials.api_key:
            headers["X-API-Key"] = self.credentials.api_key

        try:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                auth=httpx.BasicAuth(self.credentials.username, self.credentials.password),
                headers=headers,
                transport=self._transport,
            )
        except httpx.InvalidURL as e:
            raise ExternalRecordError("NOT_CONFIGURED", f"Invalid external base URL '{self.base_url}': {e}") from e
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Close async client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("Client not initialized. Use 'async with ExternalRecordsClient(...) as client:'")
        return self._client

    # =========================================================================
    # Search Methods
    # =========================================================================

    async def find_by_phone(self, normalized_phone: str) -> ExternalRecord | None:
        """
        Find the record whose phone matches after normalization on both sides.

        Args:
            normalized_phone: Digits-only phone (10-11 digits)

        Returns:
            Matching ExternalRecord or None

        Raises:
            ExternalRecordError: On API, network or payload errors
        """
        variants = phone_variants(normalized_phone, self.country_code) if self.try_variants else [normalized_phone]

        for variant in variants:
            records = await self.search(variant)
            for record in records:
                if phones_match(record.phone, normalized_phone, self.country_code):
                    logger.info(f"External record {record.external_id} matched phone ***{normalized_phone[-4:]}")
                    return record
            if records:
                logger.debug(f"External search for variant '{variant}' returned {len(records)} non-matching records")

        return None

    async def search(self, phone_value: str) -> list[ExternalRecord]:
        """
        Raw search by phone filter value.

        Returns:
            Records returned by the external system (unfiltered)

        Raises:
            ExternalRecordError: On API, network or payload errors
        """
        client = self._get_client()
        params = {self.phone_param: phone_value}

        try:
            response = await client.get(self.search_path, params=params)
            if response.status_code == 404:
                return []
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            self._handle_http_error(e)
        except httpx.TimeoutException as e:
            raise ExternalRecordConnectionError(f"Request timed out: {e}", error_code="TIMEOUT") from e
        except httpx.RequestError as e:
            raise ExternalRecordConnectionError(f"Connection error: {e}") from e
        except httpx.InvalidURL as e:
            raise ExternalRecordError("NOT_CONFIGURED", f"Invalid external request URL: {e}") from e
        except ValueError as e:
            raise ExternalRecordError("MALFORMED_PAYLOAD", f"Response is not valid JSON: {e}") from e

        try:
            return [ExternalRecord.from_response(item) for item in self._extract_items(data)]
        except MalformedExternalRecord as e:
            raise ExternalRecordError("MALFORMED_PAYLOAD", str(e)) from e

    @staticmethod
    def _extract_items(data: Any) -> list[Any]:
        """Unwrap list, envelope or single-object responses."""
        if data is None:
            return []
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            for key in _ENVELOPE_KEYS:
                if key in data:
                    inner = data[key]
                    if inner is None:
                        return []
                    if isinstance(inner, list):
                        return inner
                    if isinstance(inner, dict):
                        return [inner]
                    raise MalformedExternalRecord(f"Unexpected '{key}' envelope type: {type(inner).__name__}")
            if "id" in data:
                return [data]
            return []
        raise MalformedExternalRecord(f"Unexpected response type: {type(data).__name__}")

    def _handle_http_error(self, error: httpx.HTTPStatusError) -> None:
        """
        Handle HTTP errors and raise appropriate exception.

        Raises:
            ExternalRecordError: Always raises with appropriate error code
        """
        status = error.response.status_code

        error_mapping = {
            401: ("AUTH_ERROR", "Invalid credentials for external system"),
            403: ("FORBIDDEN", "Access denied - user lacks permissions"),
            422: ("VALIDATION_ERROR", "Invalid request data"),
            429: ("RATE_LIMIT", "Rate limit exceeded - try again later"),
        }

        if status in error_mapping:
            code, message = error_mapping[status]
            if status == 401:
                raise ExternalRecordAuthError(message) from error
            raise ExternalRecordError(code, message) from error

        if status >= 500:
            raise ExternalRecordError("SERVER_ERROR", f"External server error: {status}") from error

        raise ExternalRecordError(f"HTTP_{status}", error.response.text[:200]) from error


class HttpExternalRecordGateway:
    """ExternalRecordGateway that opens one client per lookup with the tenant's credentials."""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None, **client_options: Any):
        self._transport = transport
        self._client_options = client_options

    async def find_by_phone(self, tenant: TenantContext, normalized_phone: str) -> ExternalRecord | None:
        async with ExternalRecordsClient.for_tenant(
            tenant, transport=self._transport, **self._client_options
        ) as client:
            return await client.find_by_phone(normalized_phone)
