"""
Create Lead Use Case

Explicit lead registration for a phone that reconciliation reported as not_found.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from carechat.core.domain.exceptions import LeadValidationError
from carechat.core.shared.phone_normalizer import normalize_phone, validate_phone
from carechat.domains.patients.domain.entities.patient_record import PatientRecord
from carechat.domains.patients.domain.value_objects import MembershipStatus, SyncStatus

if TYPE_CHECKING:
    from carechat.core.tenancy.context import TenantContext
    from carechat.domains.patients.application.ports.patient_store import PatientStore

logger = logging.getLogger(__name__)

DEFAULT_NATIONAL_ID_LENGTH = 11


@dataclass
class CreateLeadResponse:
    """Response from lead creation."""

    record: PatientRecord
    created: bool
    already_member: bool = False


class CreateLeadUseCase:
    """
    Use case for registering a LEAD.

    Strategy:
    1. Validate phone, name and national id
    2. Existing MEMBER -> returned unchanged (membership never regresses)
    3. Existing LEAD -> name and national id updated
    4. Otherwise a new LEAD with sync status pending
    """

    def __init__(self, patient_store: PatientStore, national_id_length: int = DEFAULT_NATIONAL_ID_LENGTH):
        self._store = patient_store
        self._national_id_length = national_id_length

    async def execute(
        self,
        tenant: TenantContext,
        phone: str,
        name: str,
        national_id: str,
    ) -> CreateLeadResponse:
        """
        Execute lead creation.

        Args:
            tenant: Resolved tenant context
            phone: Raw or normalized phone
            name: Patient name
            national_id: National id (punctuation allowed)

        Returns:
            CreateLeadResponse

        Raises:
            PhoneValidationError: Invalid phone
            LeadValidationError: Blank name or malformed national id
        """
        normalized_phone = validate_phone(phone)

        clean_name = " ".join((name or "").split())
        if not clean_name:
            raise LeadValidationError("Name is required", field="name")

        national_id_digits = normalize_phone(national_id)
        if len(national_id_digits) != self._national_id_length:
            raise LeadValidationError(
                f"National id must have exactly {self._national_id_length} digits",
                field="national_id",
            )

        existing = await self._store.find_by_phone(tenant.tenant_id, normalized_phone)

        if existing is not None and existing.membership_status == MembershipStatus.MEMBER:
            logger.info(f"Patient {existing.id} is already a MEMBER, lead registration skipped")
            return CreateLeadResponse(record=existing, created=False, already_member=True)

        if existing is not None:
            record = existing.with_changes(name=clean_name, national_id=national_id_digits)
            stored = await self._store.upsert(record)
            logger.info(f"Updated LEAD {stored.id} for tenant {tenant.slug}")
            return CreateLeadResponse(record=stored, created=False, already_member=stored.is_member)

        record = PatientRecord(
            tenant_id=tenant.tenant_id,
            phone=normalized_phone,
            name=clean_name,
            national_id=national_id_digits,
            membership_status=MembershipStatus.LEAD,
            sync_status=SyncStatus.PENDING,
        )
        stored = await self._store.upsert(record)
        logger.info(f"Created LEAD {stored.id} for tenant {tenant.slug}")
        # A concurrent reconciliation may have upgraded the row first
        return CreateLeadResponse(record=stored, created=not stored.is_member, already_member=stored.is_member)
