"""
Unit tests for ReconcilePatientUseCase.

Tests:
- External match creates or upgrades the local record to MEMBER
- Local-only and unknown phones
- Soft failures of the external system
- Discrepancy logging and idempotence
"""

import logging
from dataclasses import replace
from datetime import UTC, datetime

import pytest

from carechat.clients.external_records_client import (
    ExternalRecordConnectionError,
    ExternalRecordError,
    HttpExternalRecordGateway,
)
from carechat.core.domain.exceptions import PhoneValidationError
from carechat.domains.patients.application.use_cases.create_lead import CreateLeadUseCase
from carechat.domains.patients.application.use_cases.reconcile_patient import (
    ReconcilePatientUseCase,
    ReconciliationStatus,
    SyncOperation,
)
from carechat.domains.patients.domain.entities.external_record import ExternalRecord
from carechat.domains.patients.domain.entities.patient_record import PatientRecord
from carechat.domains.patients.domain.value_objects import MembershipStatus, SyncStatus

FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def direct_patient_record(**overrides) -> ExternalRecord:
    attributes = {
        "telefone": "(85) 99620-1636",
        "nome_completo": "Carlos Lima",
        "email": "carlos@example.com",
        "cpf": "111.222.333-44",
        "tipo_associacao": "assoc_paciente",
        "patologia": "dor crônica",
    }
    attributes.update(overrides)
    return ExternalRecord.from_response({"id": 501, "attributes": attributes})


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def use_case(patient_store, mock_external_gateway):
    return ReconcilePatientUseCase(
        patient_store=patient_store,
        external_gateway=mock_external_gateway,
        clock=lambda: FIXED_NOW,
    )


# ============================================================================
# External match
# ============================================================================


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_direct_patient_found_externally(use_case, patient_store, mock_external_gateway, tenant_context):
    """Test an external match creates a MEMBER record from the external attributes."""
    # Arrange
    mock_external_gateway.find_by_phone.return_value = direct_patient_record()

    # Act
    result = await use_case.execute(tenant_context, "(85) 99620-1636")

    # Assert
    assert result.status == ReconciliationStatus.FOUND_EXTERNAL
    assert result.phone == "85996201636"
    record = result.record
    assert record.membership_status == MembershipStatus.MEMBER
    assert record.sync_status == SyncStatus.SYNCED
    assert record.external_id == "501"
    assert record.name == "Carlos Lima"
    assert record.national_id == "11122233344"
    assert record.association_category == "direct_patient"
    assert record.attributes == {"patologia": "dor crônica"}
    assert record.last_context_update == FIXED_NOW
    assert result.sync.operation == SyncOperation.CREATE
    assert result.sync.validation_passed
    assert not result.requires_lead_capture
    mock_external_gateway.find_by_phone.assert_awaited_once_with(tenant_context, "85996201636")


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_responsible_mediated_record(use_case, mock_external_gateway, tenant_context):
    """Test a responsible-mediated record keeps the responsible data."""
    mock_external_gateway.find_by_phone.return_value = ExternalRecord.from_response(
        {
            "id": 777,
            "attributes": {
                "telefone": "85988887777",
                "nome_completo": "João Silva",
                "tipo_associacao": "assoc_respon",
                "nome_completo_responc": "Maria Silva",
                "cpf_responsavel": "999.888.777-66",
            },
        }
    )

    result = await use_case.execute(tenant_context, "85988887777")

    assert result.record.association_category == "responsible_mediated"
    assert result.record.name == "João Silva"
    assert result.record.responsible_name == "Maria Silva"
    assert result.record.responsible_national_id == "99988877766"


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_lead_is_upgraded_to_member(use_case, patient_store, mock_external_gateway, tenant_context):
    """Test an existing LEAD becomes MEMBER and keeps its id and created_at."""
    # Arrange
    lead = await patient_store.upsert(
        PatientRecord(tenant_id=tenant_context.tenant_id, phone="85996201636", name="Carlos", national_id="11122233344")
    )
    mock_external_gateway.find_by_phone.return_value = direct_patient_record()

    # Act
    result = await use_case.execute(tenant_context, "85996201636")

    # Assert
    assert result.record.id == lead.id
    assert result.record.created_at == lead.created_at
    assert result.record.is_member
    assert result.sync.operation == SyncOperation.UPDATE


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_reconciliation_is_idempotent(use_case, patient_store, mock_external_gateway, tenant_context):
    """Test running twice yields the same row."""
    mock_external_gateway.find_by_phone.return_value = direct_patient_record()

    first = await use_case.execute(tenant_context, "85996201636")
    second = await use_case.execute(tenant_context, "85 99620-1636")

    assert first.record.id == second.record.id
    assert len(patient_store.records) == 1
    assert second.sync.discrepancies_found == 0


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_empty_external_values_keep_local_data(use_case, patient_store, mock_external_gateway, tenant_context):
    """Test blank external fields never erase local values."""
    await patient_store.upsert(
        PatientRecord(
            tenant_id=tenant_context.tenant_id,
            phone="85996201636",
            name="Carlos Lima",
            email="local@example.com",
            attributes={"origem": "whatsapp"},
        )
    )
    mock_external_gateway.find_by_phone.return_value = direct_patient_record(email="")

    result = await use_case.execute(tenant_context, "85996201636")

    assert result.record.email == "local@example.com"
    assert result.record.attributes == {"origem": "whatsapp", "patologia": "dor crônica"}


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_discrepancies_are_logged(use_case, patient_store, mock_external_gateway, tenant_context, caplog):
    """Test diverging local and external values are logged and external wins."""
    await patient_store.upsert(
        PatientRecord(
            tenant_id=tenant_context.tenant_id,
            phone="85996201636",
            name="Carlos L.",
            national_id="11122233344",
        )
    )
    mock_external_gateway.find_by_phone.return_value = direct_patient_record()

    with caplog.at_level(logging.ERROR):
        result = await use_case.execute(tenant_context, "85996201636")

    assert result.sync.discrepancies_found == 1
    assert result.sync.to_dict()["discrepancy_fields"] == ["name"]
    assert result.record.name == "Carlos Lima"
    assert "DATA_DISCREPANCY_DETECTED" in caplog.text


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_incomplete_attribute_bag_is_reported(use_case, mock_external_gateway, tenant_context):
    """Test missing required attributes are reported without blocking the sync."""
    mock_external_gateway.find_by_phone.return_value = ExternalRecord.from_response(
        {"id": 9, "name": "Bia", "phone": "85996201636", "attributes": {}}
    )

    result = await use_case.execute(tenant_context, "85996201636")

    assert result.status == ReconciliationStatus.FOUND_EXTERNAL
    assert result.record.name == "Bia"
    assert not result.sync.validation_passed
    assert "association_category" in result.sync.missing_fields


# ============================================================================
# Local-only and unknown
# ============================================================================


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_unknown_phone_then_create_lead(use_case, patient_store, tenant_context):
    """Test not_found asks for lead data and the lead is then registered."""
    # Act
    result = await use_case.execute(tenant_context, "85999999999")

    # Assert
    assert result.status == ReconciliationStatus.NOT_FOUND
    assert result.record is None
    assert result.requires_lead_capture
    assert result.to_dict()["required_fields"] == ["name", "national_id"]
    assert patient_store.upsert_calls == 0

    lead = await CreateLeadUseCase(patient_store).execute(tenant_context, "85999999999", "Ana Costa", "123.456.789-01")

    assert lead.created
    assert lead.record.membership_status == MembershipStatus.LEAD
    assert lead.record.sync_status == SyncStatus.PENDING

    again = await use_case.execute(tenant_context, "85999999999")
    assert again.status == ReconciliationStatus.FOUND_LOCAL
    assert again.record.name == "Ana Costa"


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_tenant_without_credentials_skips_external(patient_store, mock_external_gateway, local_only_tenant_context):
    """Test tenants without credentials never reach the external system."""
    use_case = ReconcilePatientUseCase(patient_store, mock_external_gateway)

    result = await use_case.execute(local_only_tenant_context, "85996201636")

    assert result.status == ReconciliationStatus.NOT_FOUND
    assert result.external_error is None
    mock_external_gateway.find_by_phone.assert_not_awaited()


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("error", "code"),
    [
        (ExternalRecordConnectionError("timed out", error_code="TIMEOUT"), "TIMEOUT"),
        (ExternalRecordError("SERVER_ERROR", "External server error: 502"), "SERVER_ERROR"),
        (ExternalRecordError("MALFORMED_PAYLOAD", "bad json"), "MALFORMED_PAYLOAD"),
    ],
)
async def test_external_failure_falls_back_to_local(
    use_case, patient_store, mock_external_gateway, tenant_context, error, code
):
    """Test external failures degrade to the local lookup."""
    # Arrange
    lead = await patient_store.upsert(
        PatientRecord(tenant_id=tenant_context.tenant_id, phone="85996201636", name="Carlos")
    )
    mock_external_gateway.find_by_phone.side_effect = error

    # Act
    result = await use_case.execute(tenant_context, "85996201636")

    # Assert
    assert result.status == ReconciliationStatus.FOUND_LOCAL
    assert result.record.id == lead.id
    assert result.record.membership_status == MembershipStatus.LEAD
    assert result.external_error == code


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_member_not_downgraded_when_external_misses(use_case, patient_store, tenant_context):
    """Test a MEMBER stays MEMBER when the external system no longer returns it."""
    member = await patient_store.upsert(
        PatientRecord(
            tenant_id=tenant_context.tenant_id,
            phone="85996201636",
            name="Carlos",
            membership_status=MembershipStatus.MEMBER,
            external_id="501",
            sync_status=SyncStatus.SYNCED,
        )
    )

    result = await use_case.execute(tenant_context, "85996201636")

    assert result.status == ReconciliationStatus.FOUND_LOCAL
    assert result.record.membership_status == MembershipStatus.MEMBER
    assert result.record.id == member.id


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_invalid_phone_rejected_before_any_lookup(use_case, patient_store, mock_external_gateway, tenant_context):
    """Test invalid phones raise and perform no I/O."""
    with pytest.raises(PhoneValidationError):
        await use_case.execute(tenant_context, "12345")

    mock_external_gateway.find_by_phone.assert_not_awaited()
    assert patient_store.upsert_calls == 0


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_reconcile_alias(use_case, tenant_context):
    """Test reconcile() is the same operation as execute()."""
    result = await use_case.reconcile(tenant_context, "85999999999")

    assert result.status == ReconciliationStatus.NOT_FOUND


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
@pytest.mark.parametrize("base_url", ["http://records.example:abc", "http://[::1"])
async def test_malformed_tenant_base_url_is_a_soft_failure(patient_store, tenant_context, base_url):
    """Test a broken tenant base URL degrades to the local lookup."""
    # Arrange
    tenant = replace(tenant_context, external_base_url=base_url)
    use_case = ReconcilePatientUseCase(patient_store, HttpExternalRecordGateway())

    # Act
    result = await use_case.execute(tenant, "85996201636")

    # Assert
    assert result.status == ReconciliationStatus.NOT_FOUND
    assert result.external_error == "NOT_CONFIGURED"
