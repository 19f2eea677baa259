"""
Shared pytest fixtures for all tests.

Provides tenant fixtures, credential encryption, and in-memory fakes of the
store ports (patients, conversation state).
"""

import os
import uuid
from dataclasses import replace
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
from cryptography.fernet import Fernet

# Ensure test environment
os.environ.setdefault("ENVIRONMENT", "test")

from carechat.core.tenancy.context import TenantContext  # noqa: E402
from carechat.core.tenancy.encryption_service import CredentialEncryptionService  # noqa: E402
from carechat.core.tenancy.tenant_config import ExternalCredentials, TenantConfig  # noqa: E402
from carechat.domains.conversations.domain.states import ConversationState  # noqa: E402
from carechat.domains.patients.domain.entities.patient_record import PatientRecord  # noqa: E402
from carechat.domains.patients.domain.value_objects import MembershipStatus  # noqa: E402

TENANT_ID = uuid.UUID("7f3c2b1a-0d4e-4f5a-9b6c-1a2b3c4d5e6f")


# ============================================================================
# IN-MEMORY STORES
# ============================================================================


class InMemoryPatientStore:
    """PatientStore keyed by (tenant, phone) with the repository's upsert rules."""

    def __init__(self):
        self.records: dict[tuple[uuid.UUID, str], PatientRecord] = {}
        self.upsert_calls = 0

    async def find_by_phone(self, tenant_id, phone):
        return self.records.get((tenant_id, phone))

    async def upsert(self, record):
        self.upsert_calls += 1
        key = (record.tenant_id, record.phone)
        existing = self.records.get(key)
        if existing is None:
            stored = replace(record, created_at=datetime.now(UTC), updated_at=datetime.now(UTC))
        elif existing.is_member and record.membership_status == MembershipStatus.LEAD:
            return existing
        else:
            stored = replace(record, id=existing.id, created_at=existing.created_at, updated_at=datetime.now(UTC))
        self.records[key] = stored
        return stored


class InMemoryConversationStateStore:
    """ConversationStateStore backed by a dict."""

    def __init__(self):
        self.states: dict[str, ConversationState] = {}
        self.save_calls = 0
        self.create_calls = 0

    async def get(self, conversation_id):
        state = self.states.get(conversation_id)
        return replace(state, state_data=dict(state.state_data)) if state else None

    async def get_for_update(self, conversation_id):
        return await self.get(conversation_id)

    async def create_if_absent(self, state):
        if state.conversation_id not in self.states:
            self.create_calls += 1
            self.states[state.conversation_id] = replace(
                state, state_data=dict(state.state_data), updated_at=datetime.now(UTC)
            )
        return await self.get(state.conversation_id)

    async def save(self, state):
        self.save_calls += 1
        stored = replace(state, state_data=dict(state.state_data), updated_at=datetime.now(UTC))
        self.states[state.conversation_id] = stored
        return stored


# ============================================================================
# TENANT FIXTURES
# ============================================================================


@pytest.fixture
def fernet_key() -> str:
    """Fresh Fernet key."""
    return Fernet.generate_key().decode()


@pytest.fixture
def encryption_service(fernet_key) -> CredentialEncryptionService:
    return CredentialEncryptionService(encryption_key=fernet_key)


@pytest.fixture
def credentials() -> ExternalCredentials:
    return ExternalCredentials(username="integracao", password="s3cret")


@pytest.fixture
def tenant_config(encryption_service, credentials) -> TenantConfig:
    """Active tenant with encrypted credentials."""
    return TenantConfig(
        id=TENANT_ID,
        slug="abrace",
        name="Associação Abrace",
        display_name="Abrace Esperança",
        external_base_url="https://records.abrace.example/api/",
        encrypted_credentials=encryption_service.encrypt_credentials(credentials),
        is_active=True,
        welcome_message="Bem-vindo à Abrace",
    )


@pytest.fixture
def tenant_context(tenant_config, credentials) -> TenantContext:
    """Resolved tenant context with usable credentials."""
    return TenantContext(
        tenant=tenant_config,
        credentials=credentials,
        external_base_url="https://records.abrace.example/api",
        loaded_at=datetime.now(UTC),
    )


@pytest.fixture
def local_only_tenant_context(tenant_config) -> TenantContext:
    """Resolved tenant context without credentials."""
    return TenantContext(
        tenant=replace(tenant_config, encrypted_credentials=None),
        credentials=None,
        external_base_url=None,
        loaded_at=datetime.now(UTC),
    )


@pytest.fixture
def mock_tenant_store(tenant_config):
    """TenantConfigStore mock resolving the sample tenant by slug or id."""
    store = AsyncMock()
    store.get_by_slug.side_effect = lambda slug: tenant_config if slug == tenant_config.slug else None
    store.get_by_id.side_effect = lambda tenant_id: tenant_config if tenant_id == tenant_config.id else None
    return store


# ============================================================================
# STORE FIXTURES
# ============================================================================


@pytest.fixture
def patient_store() -> InMemoryPatientStore:
    return InMemoryPatientStore()


@pytest.fixture
def state_store() -> InMemoryConversationStateStore:
    return InMemoryConversationStateStore()


@pytest.fixture
def mock_external_gateway():
    """ExternalRecordGateway mock returning no match."""
    gateway = AsyncMock()
    gateway.find_by_phone.return_value = None
    return gateway
