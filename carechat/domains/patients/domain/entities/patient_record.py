"""
Patient Record Entity

Local canonical patient record, keyed by (tenant, normalized phone).
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import TYPE_CHECKING, Any

from carechat.core.domain.exceptions import ValidationException

from ..value_objects import AssociationCategory, MembershipStatus, SyncStatus

if TYPE_CHECKING:
    from carechat.models.db import Patient


@dataclass
class PatientRecord:
    """
    Patient known to a tenant.

    Invariants:
        - MEMBER requires external_id
        - phone is the normalized (digits only) form

    A responsible-mediated record without responsible_name is accepted here;
    the interlocutor analyzer handles it with a fallback.

    Attributes:
        id: Local identifier
        tenant_id: Owning tenant
        name: Patient name
        phone: Normalized phone
        email / national_id: Optional identity data
        association_category: Canonical category or raw unrecognized value
        responsible_name / responsible_national_id: Responsible third party
        membership_status: LEAD or MEMBER
        external_id: Identifier in the external system
        sync_status: pending, partial or synced
        last_context_update: Last time external data was merged
        attributes: Unmapped external attributes (opaque)
    """

    tenant_id: uuid.UUID
    phone: str
    name: str
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    email: str | None = None
    national_id: str | None = None
    association_category: str | None = None
    responsible_name: str | None = None
    responsible_national_id: str | None = None
    membership_status: MembershipStatus = MembershipStatus.LEAD
    external_id: str | None = None
    sync_status: SyncStatus = SyncStatus.PENDING
    last_context_update: datetime | None = None
    attributes: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.membership_status == MembershipStatus.MEMBER and not self.external_id:
            raise ValidationException("MEMBER records require an external id", field="external_id")

    @property
    def category(self) -> AssociationCategory | None:
        return AssociationCategory.parse(self.association_category)

    @property
    def is_member(self) -> bool:
        return self.membership_status == MembershipStatus.MEMBER

    def with_changes(self, **changes: Any) -> PatientRecord:
        """Copy with changes (re-checks invariants)."""
        return replace(self, **changes)

    @classmethod
    def from_model(cls, model: Patient) -> PatientRecord:
        """Build from a Patient row."""
        return cls(
            id=model.id,
            tenant_id=model.association_id,
            phone=model.phone,
            name=model.name,
            email=model.email,
            national_id=model.national_id,
            association_category=model.association_category,
            responsible_name=model.responsible_name,
            responsible_national_id=model.responsible_national_id,
            membership_status=MembershipStatus(model.membership_status),
            external_id=model.external_id,
            sync_status=SyncStatus(model.sync_status),
            last_context_update=model.last_context_update,
            attributes=dict(model.attributes or {}),
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def to_column_values(self) -> dict[str, Any]:
        """Column values for the patients table."""
        return {
            "id": self.id,
            "association_id": self.tenant_id,
            "phone": self.phone,
            "name": self.name,
            "email": self.email,
            "national_id": self.national_id,
            "association_category": self.association_category,
            "responsible_name": self.responsible_name,
            "responsible_national_id": self.responsible_national_id,
            "membership_status": self.membership_status.value,
            "external_id": self.external_id,
            "sync_status": self.sync_status.value,
            "last_context_update": self.last_context_update,
            "attributes": self.attributes,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "tenant_id": str(self.tenant_id),
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "national_id": self.national_id,
            "association_category": self.association_category,
            "responsible_name": self.responsible_name,
            "responsible_national_id": self.responsible_national_id,
            "membership_status": self.membership_status.value,
            "external_id": self.external_id,
            "sync_status": self.sync_status.value,
            "last_context_update": self.last_context_update.isoformat() if self.last_context_update else None,
            "attributes": self.attributes,
        }
