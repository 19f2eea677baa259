# ============================================================================
# SCOPE: MULTI-TENANT
# Description: Asociaciones (tenants). Cada una tiene su sistema externo de
#              registros, credenciales encriptadas y directivas para la IA.
# Tenant-Aware: Yes - ESTA tabla define los tenants.
# ============================================================================
"""
Association model - one row per tenant.

Written by the administrative process; read-only for the resolution engine.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, Index, String, Text
from sqlalchemy.dialects.postgresql import UUID

from .base import Base, TimestampMixin
from .schemas import CORE_SCHEMA


class Association(Base, TimestampMixin):
    """
    Tenant configuration record.

    Attributes:
        id: Unique identifier (UUID)
        slug: Routing key (unique, immutable after creation)
        name: Legal/internal name
        public_display_name: Name shown to end users
        external_base_url: Base URL of the tenant's external system of record
        encrypted_credentials: Fernet token with the external system credentials
        is_active: Inactive associations never resolve
        prompt_context / ai_directives / ai_restrictions: Free-text AI directives
        logo_url / welcome_message: Display metadata
    """

    __tablename__ = "associations"

    id = Column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        comment="Unique association identifier",
    )

    slug = Column(
        String(63),
        nullable=False,
        unique=True,
        comment="Routing key used as subdomain (immutable)",
    )

    name = Column(
        String(255),
        nullable=False,
        comment="Association name",
    )

    public_display_name = Column(
        String(255),
        nullable=True,
        comment="Name shown to end users",
    )

    external_base_url = Column(
        String(500),
        nullable=True,
        comment="Base URL of the external system of record",
    )

    encrypted_credentials = Column(
        Text,
        nullable=True,
        comment="Fernet-encrypted JSON with external system credentials",
    )

    is_active = Column(
        Boolean,
        nullable=False,
        default=True,
        comment="Inactive associations never resolve",
    )

    prompt_context = Column(Text, nullable=True, comment="Context paragraph for the dialogue engine")
    ai_directives = Column(Text, nullable=True, comment="Behavior directives for the dialogue engine")
    ai_restrictions = Column(Text, nullable=True, comment="Restrictions for the dialogue engine")

    logo_url = Column(String(500), nullable=True, comment="Logo URL")
    welcome_message = Column(Text, nullable=True, comment="Custom welcome message")

    __table_args__ = (
        Index("idx_associations_active", is_active),
        {"schema": CORE_SCHEMA},
    )

    def __repr__(self) -> str:
        return f"<Association(slug='{self.slug}', active={self.is_active})>"
