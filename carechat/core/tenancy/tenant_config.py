# ============================================================================
# SCOPE: MULTI-TENANT
# Description: Configuración inmutable de una asociación (tenant) y modelo de
#              credenciales del sistema externo de registros.
# Tenant-Aware: Yes - representa la configuración de UN tenant.
# ============================================================================
"""
Tenant configuration value types.

TenantConfig is a detached, immutable snapshot of an Association row so that
cached contexts never hold live ORM instances bound to a closed session.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from carechat.models.db import Association


class ExternalCredentials(BaseModel):
    """Credentials for the tenant's external system of record (HTTP Basic + optional key)."""

    username: str = Field(..., min_length=1, description="HTTP Basic Auth username")
    password: str = Field(..., min_length=1, description="HTTP Basic Auth password")
    api_key: str | None = Field(None, description="Optional API key sent as X-API-Key")

    @property
    def auth_method(self) -> str:
        return "basic+api_key" if self.api_key else "basic"


@dataclass(frozen=True)
class TenantConfig:
    """
    Snapshot of a tenant's configuration.

    Attributes:
        id: Association UUID
        slug: Routing key (unique, immutable)
        name: Association name
        display_name: Name shown to end users
        external_base_url: Base URL of the external system of record
        encrypted_credentials: Encrypted credential blob (opaque)
        is_active: Inactive tenants never resolve
        prompt_context / ai_directives / ai_restrictions: Free-text AI directives
        logo_url / welcome_message: Display metadata
    """

    id: uuid.UUID
    slug: str
    name: str
    display_name: str | None = None
    external_base_url: str | None = None
    encrypted_credentials: str | None = None
    is_active: bool = True
    prompt_context: str | None = None
    ai_directives: str | None = None
    ai_restrictions: str | None = None
    logo_url: str | None = None
    welcome_message: str | None = None

    @property
    def public_name(self) -> str:
        return self.display_name or self.name

    @classmethod
    def from_model(cls, model: Association) -> TenantConfig:
        """Build a detached snapshot from an Association row."""
        return cls(
            id=model.id,
            slug=model.slug,
            name=model.name,
            display_name=model.public_display_name,
            external_base_url=model.external_base_url,
            encrypted_credentials=model.encrypted_credentials,
            is_active=bool(model.is_active),
            prompt_context=model.prompt_context,
            ai_directives=model.ai_directives,
            ai_restrictions=model.ai_restrictions,
            logo_url=model.logo_url,
            welcome_message=model.welcome_message,
        )

    def to_public_dict(self) -> dict[str, Any]:
        """Fields safe to expose to unauthenticated clients."""
        return {
            "id": str(self.id),
            "slug": self.slug,
            "name": self.name,
            "display_name": self.public_name,
            "logo_url": self.logo_url,
            "welcome_message": self.welcome_message,
        }
