# ============================================================================
# SCOPE: MULTI-TENANT
# Description: Registro canónico local de pacientes por asociación.
#              Clave única (association_id, phone) con teléfono normalizado.
# Tenant-Aware: Yes - cada paciente pertenece a una asociación.
# ============================================================================
"""
Patient model - local canonical patient record.

A patient starts as LEAD (phone + minimal data) and becomes MEMBER when the
association's external system of record confirms it.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID

from .base import Base, TimestampMixin
from .schemas import CARE_SCHEMA, CORE_SCHEMA


class Patient(Base, TimestampMixin):
    """
    Local patient record keyed by (association, normalized phone).

    Attributes:
        id: Unique identifier (UUID)
        association_id: Owning tenant
        phone: Normalized phone (digits only, 10-11)
        name: Patient name
        email / national_id: Optional identity data
        association_category: direct_patient, responsible_mediated or raw external value
        responsible_name / responsible_national_id: Responsible third party
        membership_status: LEAD or MEMBER
        external_id: Id in the external system (required for MEMBER)
        sync_status: pending, partial or synced
        attributes: Unmapped external attributes (opaque)
        last_context_update: Last time external data was merged
    """

    __tablename__ = "patients"

    id = Column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        comment="Unique patient identifier",
    )

    association_id = Column(
        UUID(as_uuid=True),
        ForeignKey(f"{CORE_SCHEMA}.associations.id", ondelete="CASCADE"),
        nullable=False,
        comment="Association this patient belongs to",
    )

    phone = Column(
        String(20),
        nullable=False,
        comment="Normalized phone number (digits only)",
    )

    name = Column(String(255), nullable=False, comment="Patient name")
    email = Column(String(255), nullable=True, comment="Email address")
    national_id = Column(String(20), nullable=True, comment="National id (CPF)")

    association_category = Column(
        String(50),
        nullable=True,
        comment="direct_patient, responsible_mediated or unrecognized raw value",
    )

    responsible_name = Column(String(255), nullable=True, comment="Responsible third party name")
    responsible_national_id = Column(String(20), nullable=True, comment="Responsible third party national id")

    membership_status = Column(
        String(10),
        nullable=False,
        default="LEAD",
        comment="LEAD or MEMBER",
    )

    external_id = Column(
        String(100),
        nullable=True,
        comment="Identifier in the external system of record",
    )

    sync_status = Column(
        String(10),
        nullable=False,
        default="pending",
        comment="pending, partial or synced",
    )

    attributes = Column(
        JSONB,
        nullable=False,
        default=dict,
        comment="Unmapped external attributes",
    )

    last_context_update = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="Last time external data was merged",
    )

    __table_args__ = (
        UniqueConstraint("association_id", "phone", name="uq_patients_association_phone"),
        Index("idx_patients_external_id", association_id, external_id),
        {"schema": CARE_SCHEMA},
    )

    def __repr__(self) -> str:
        return f"<Patient(phone='***{self.phone[-4:]}', status='{self.membership_status}')>"
