"""
Reconcile Patient Use Case

Resolves a phone number into a patient record for a tenant:
external system of record first (when the tenant has credentials), then the
local store. External matches upgrade the local record to MEMBER.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from carechat.clients.external_records_client import ExternalRecordError
from carechat.core.shared.phone_normalizer import normalize_phone, validate_phone
from carechat.domains.patients.domain.entities.external_record import ExternalRecord
from carechat.domains.patients.domain.entities.patient_record import PatientRecord
from carechat.domains.patients.domain.value_objects import MembershipStatus, SyncStatus, canonical_category

if TYPE_CHECKING:
    from carechat.core.tenancy.context import TenantContext
    from carechat.domains.patients.application.ports.patient_store import ExternalRecordGateway, PatientStore

logger = logging.getLogger(__name__)

# Fields the caller must collect before creating a lead
LEAD_REQUIRED_FIELDS = ("name", "national_id")


class ReconciliationStatus(str, Enum):
    """Outcome of a reconciliation."""

    FOUND_EXTERNAL = "found_external"  # Matched in the external system, record is MEMBER
    FOUND_LOCAL = "found_local"  # Only known locally, record unchanged
    NOT_FOUND = "not_found"  # Unknown, caller collects lead data


class SyncOperation(str, Enum):
    CREATE = "create"
    UPDATE = "update"


@dataclass(frozen=True)
class FieldDiscrepancy:
    """A field where the local record and the external record disagree."""

    field: str
    local_value: str | None
    external_value: str | None


@dataclass
class SyncMetadata:
    """Details of merging an external record into the local store."""

    operation: SyncOperation
    attributes_count: int
    validation_passed: bool
    missing_fields: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    discrepancies: list[FieldDiscrepancy] = field(default_factory=list)

    @property
    def discrepancies_found(self) -> int:
        return len(self.discrepancies)

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation.value,
            "attributes_count": self.attributes_count,
            "validation_passed": self.validation_passed,
            "missing_fields": list(self.missing_fields),
            "warnings": list(self.warnings),
            "discrepancies_found": self.discrepancies_found,
            "discrepancy_fields": [d.field for d in self.discrepancies],
        }


@dataclass
class ReconciliationResult:
    """Response from patient reconciliation."""

    status: ReconciliationStatus
    phone: str
    record: PatientRecord | None = None
    sync: SyncMetadata | None = None
    external_error: str | None = None  # Soft failure code, lookup fell through to the local store

    @property
    def requires_lead_capture(self) -> bool:
        """Caller must collect name and national id and call create_lead."""
        return self.status == ReconciliationStatus.NOT_FOUND

    @property
    def is_member(self) -> bool:
        return self.record is not None and self.record.is_member

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "phone": self.phone,
            "record": self.record.to_dict() if self.record else None,
            "sync": self.sync.to_dict() if self.sync else None,
            "external_error": self.external_error,
            "required_fields": list(LEAD_REQUIRED_FIELDS) if self.requires_lead_capture else [],
        }


def _comparable(value: str | None) -> str:
    return " ".join((value or "").lower().split())


class ReconcilePatientUseCase:
    """
    Use case for reconciling a phone number against the external system and local store.

    Strategy:
    1. Validate and normalize the phone (10-11 digits)
    2. With credentials, look the phone up in the external system (soft failures logged)
    3. External match: merge into the local record as MEMBER/synced (upsert)
    4. Otherwise return the local record unchanged, or not_found

    Creating a lead for an unknown phone is a separate explicit step (CreateLeadUseCase).
    """

    def __init__(
        self,
        patient_store: PatientStore,
        external_gateway: ExternalRecordGateway,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Initialize use case.

        Args:
            patient_store: Local patient store
            external_gateway: External system of record lookup
            clock: Returns the current UTC time (tests)
        """
        self._store = patient_store
        self._external = external_gateway
        self._clock = clock or (lambda: datetime.now(UTC))

    async def execute(self, tenant: TenantContext, raw_phone: str) -> ReconciliationResult:
        """
        Execute reconciliation.

        Args:
            tenant: Resolved tenant context
            raw_phone: Phone as typed by the user

        Returns:
            ReconciliationResult

        Raises:
            PhoneValidationError: If the phone does not normalize to 10-11 digits
        """
        phone = validate_phone(raw_phone)

        external, external_error = await self._lookup_external(tenant, phone)
        existing = await self._store.find_by_phone(tenant.tenant_id, phone)

        if external is not None:
            record, sync = self._merge(tenant, phone, existing, external)
            stored = await self._store.upsert(record)
            logger.info(
                f"Patient {stored.id} synced from external record {external.external_id} "
                f"(operation={sync.operation.value}, attributes={sync.attributes_count})"
            )
            return ReconciliationResult(
                status=ReconciliationStatus.FOUND_EXTERNAL,
                phone=phone,
                record=stored,
                sync=sync,
            )

        if existing is not None:
            return ReconciliationResult(
                status=ReconciliationStatus.FOUND_LOCAL,
                phone=phone,
                record=existing,
                external_error=external_error,
            )

        logger.info(f"Phone ***{phone[-4:]} unknown to tenant {tenant.slug}, lead capture required")
        return ReconciliationResult(
            status=ReconciliationStatus.NOT_FOUND,
            phone=phone,
            external_error=external_error,
        )

    reconcile = execute

    async def _lookup_external(self, tenant: TenantContext, phone: str) -> tuple[ExternalRecord | None, str | None]:
        """Query the external system; every failure degrades to 'no match'."""
        if not tenant.has_credentials:
            logger.info(f"Tenant {tenant.slug} has no usable external credentials, local-only lookup")
            return None, None

        try:
            return await self._external.find_by_phone(tenant, phone), None
        except ExternalRecordError as e:
            logger.warning(f"External lookup failed for tenant {tenant.slug} [{e.error_code}]: {e.error_message}")
            return None, e.error_code

    def _merge(
        self,
        tenant: TenantContext,
        phone: str,
        existing: PatientRecord | None,
        external: ExternalRecord,
    ) -> tuple[PatientRecord, SyncMetadata]:
        """Merge external attributes into the local record; non-empty external values win."""
        validation = external.validate_attributes()
        if not validation.is_valid:
            logger.warning(
                f"External attribute validation failed for record {external.external_id}: "
                f"missing {validation.missing_fields}"
            )
        for warning in validation.warnings:
            logger.warning(f"External record {external.external_id}: {warning}")

        discrepancies: list[FieldDiscrepancy] = []
        if existing is not None:
            discrepancies = self._detect_discrepancies(existing, external)
            for discrepancy in discrepancies:
                logger.error(
                    f"SYNC DISCREPANCY [DATA_DISCREPANCY_DETECTED] patient={existing.id} "
                    f"external_id={external.external_id} field={discrepancy.field}"
                )

        def pick(external_value: str | None, local_attr: str) -> str | None:
            if external_value:
                return external_value
            return getattr(existing, local_attr) if existing is not None else None

        record = PatientRecord(
            id=existing.id if existing is not None else uuid.uuid4(),
            tenant_id=tenant.tenant_id,
            phone=phone,
            name=pick(external.name, "name") or "",
            email=pick(external.email, "email"),
            national_id=pick(normalize_phone(external.national_id) or None, "national_id"),
            association_category=pick(canonical_category(external.association_category), "association_category"),
            responsible_name=pick(external.responsible_name, "responsible_name"),
            responsible_national_id=pick(
                normalize_phone(external.responsible_national_id) or None, "responsible_national_id"
            ),
            membership_status=MembershipStatus.MEMBER,
            external_id=external.external_id,
            sync_status=SyncStatus.SYNCED,
            last_context_update=self._clock(),
            attributes={**(existing.attributes if existing is not None else {}), **external.attributes},
            created_at=existing.created_at if existing is not None else None,
        )

        sync = SyncMetadata(
            operation=SyncOperation.UPDATE if existing is not None else SyncOperation.CREATE,
            attributes_count=external.attribute_count,
            validation_passed=validation.is_valid,
            missing_fields=validation.missing_fields,
            warnings=validation.warnings,
            discrepancies=discrepancies,
        )
        return record, sync

    @staticmethod
    def _detect_discrepancies(existing: PatientRecord, external: ExternalRecord) -> list[FieldDiscrepancy]:
        pairs = [
            ("name", existing.name, external.name, _comparable),
            ("email", existing.email, external.email, _comparable),
            ("national_id", existing.national_id, external.national_id, normalize_phone),
            ("responsible_name", existing.responsible_name, external.responsible_name, _comparable),
            (
                "association_category",
                existing.association_category,
                canonical_category(external.association_category),
                _comparable,
            ),
        ]
        discrepancies = []
        for name, local_value, external_value, key in pairs:
            if local_value and external_value and key(local_value) != key(external_value):
                discrepancies.append(FieldDiscrepancy(name, local_value, external_value))
        return discrepancies
