# ============================================================================
# SCOPE: APPLICATION LAYER (Patients)
# Description: Puertos de persistencia de pacientes y de búsqueda en el
#              sistema externo de registros.
# ============================================================================
"""Patient ports.

Implementations:
- PatientStore: PatientRepository (SQLAlchemy)
- ExternalRecordGateway: HttpExternalRecordGateway (httpx)
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from carechat.core.tenancy.context import TenantContext
    from carechat.domains.patients.domain.entities.external_record import ExternalRecord
    from carechat.domains.patients.domain.entities.patient_record import PatientRecord


@runtime_checkable
class PatientStore(Protocol):
    """Local canonical patient store keyed by (tenant, normalized phone)."""

    async def find_by_phone(self, tenant_id: uuid.UUID, phone: str) -> PatientRecord | None:
        """Find a patient by normalized phone within a tenant."""
        ...

    async def upsert(self, record: PatientRecord) -> PatientRecord:
        """Insert or update atomically on (tenant, phone).

        The stored id of an existing row is kept, and a MEMBER row is never
        downgraded to LEAD.

        Returns:
            The record as stored.
        """
        ...


@runtime_checkable
class ExternalRecordGateway(Protocol):
    """Lookup against a tenant's external system of record."""

    async def find_by_phone(self, tenant: TenantContext, normalized_phone: str) -> ExternalRecord | None:
        """Find the external record whose normalized phone matches.

        Raises:
            ExternalRecordError: On timeout, non-2xx, malformed payload or connection errors.
        """
        ...
