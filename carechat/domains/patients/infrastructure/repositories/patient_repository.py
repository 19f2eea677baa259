"""
Patient Repository Implementation.

SQLAlchemy async repository for the local canonical patient store.
Writes are PostgreSQL upserts on the (association_id, phone) unique key so
concurrent reconciliations of the same phone never create duplicates.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from carechat.domains.patients.domain.entities.patient_record import PatientRecord
from carechat.domains.patients.domain.value_objects import MembershipStatus
from carechat.models.db import Patient

logger = logging.getLogger(__name__)

# Columns overwritten when the row already exists (id, tenant, phone and created_at are kept)
_UPDATABLE_COLUMNS = (
    "name",
    "email",
    "national_id",
    "association_category",
    "responsible_name",
    "responsible_national_id",
    "membership_status",
    "external_id",
    "sync_status",
    "last_context_update",
    "attributes",
)


class PatientRepository:
    """
    Repository for Patient entity operations.

    Handles:
    - Lookup by (association, normalized phone)
    - Atomic upsert that keeps the existing id and never downgrades MEMBER to LEAD
    """

    def __init__(self, db: AsyncSession):
        """
        Initialize repository with database session.

        Args:
            db: SQLAlchemy async session
        """
        self._db = db

    async def find_by_phone(self, tenant_id: UUID, phone: str) -> PatientRecord | None:
        """
        Find patient by normalized phone.

        Args:
            tenant_id: Association UUID for multi-tenant isolation
            phone: Normalized phone (digits only)

        Returns:
            PatientRecord if found, None otherwise
        """
        model = await self._get_model(tenant_id, phone)
        return PatientRecord.from_model(model) if model else None

    async def find_by_external_id(self, tenant_id: UUID, external_id: str) -> PatientRecord | None:
        stmt = select(Patient).where(
            Patient.association_id == tenant_id,
            Patient.external_id == external_id,
        )
        result = await self._db.execute(stmt)
        model = result.scalars().first()
        return PatientRecord.from_model(model) if model else None

    async def upsert(self, record: PatientRecord) -> PatientRecord:
        """
        Insert or update the patient keyed by (association, phone).

        The update is skipped when the stored row is MEMBER and the incoming
        record is LEAD; the stored row is returned unchanged in that case.

        Args:
            record: PatientRecord to save

        Returns:
            PatientRecord as stored (with the persisted id)
        """
        now = datetime.now(UTC)
        values = record.to_column_values()

        stmt = insert(Patient).values(**values, created_at=now, updated_at=now)
        set_ = {column: stmt.excluded[column] for column in _UPDATABLE_COLUMNS}
        set_["updated_at"] = now

        stmt = stmt.on_conflict_do_update(
            index_elements=["association_id", "phone"],
            set_=set_,
            where=or_(
                Patient.membership_status != MembershipStatus.MEMBER.value,
                stmt.excluded.membership_status == MembershipStatus.MEMBER.value,
            ),
        )

        await self._db.execute(stmt)
        await self._db.commit()

        model = await self._get_model(record.tenant_id, record.phone, refresh=True)
        if model is None:
            # Row vanished between upsert and read; nothing else deletes patients
            raise RuntimeError(f"Patient upsert for phone ***{record.phone[-4:]} was not persisted")

        stored = PatientRecord.from_model(model)
        if stored.is_member and record.membership_status == MembershipStatus.LEAD:
            logger.info(f"Kept MEMBER patient {stored.id}, lead data not applied")
        else:
            logger.debug(f"Upserted patient {stored.id} ({stored.membership_status.value})")
        return stored

    async def _get_model(self, tenant_id: UUID, phone: str, refresh: bool = False) -> Patient | None:
        stmt = select(Patient).where(
            Patient.association_id == tenant_id,
            Patient.phone == phone,
        )
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self._db.execute(stmt)
        return result.scalar_one_or_none()
