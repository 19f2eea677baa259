"""
Patient identification endpoints.

The tenant comes from the X-Tenant-ID header, the slug query parameter or
the Host subdomain.
"""

from typing import Any

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from carechat.api.dependencies import get_interaction_service
from carechat.core.shared.phone_normalizer import PhoneNumberInfo
from carechat.core.tenancy.context import TenantContext
from carechat.core.tenancy.resolver import get_tenant_dependency
from carechat.services.interaction_service import InteractionService

router = APIRouter(prefix="/patients", tags=["patients"])


class ValidatePhoneRequest(BaseModel):
    phone: str = Field(..., min_length=1, description="Phone as typed by the user")
    conversation_id: str | None = Field(None, max_length=100)


class CreateLeadRequest(BaseModel):
    phone: str = Field(..., min_length=1)
    name: str = Field(..., description="Full name")
    national_id: str = Field(..., description="National id (CPF, punctuation allowed)")


@router.post("/validate-phone")
async def validate_phone(
    body: ValidatePhoneRequest,
    tenant: TenantContext = Depends(get_tenant_dependency),  # noqa: B008
    service: InteractionService = Depends(get_interaction_service),  # noqa: B008
) -> dict[str, Any]:
    """
    Reconcile a phone against the external system and local store.

    Response status is one of found_external, found_local or not_found;
    not_found lists the fields to collect for POST /patients/leads.
    """
    snapshot = await service.identify_for_tenant(tenant, body.phone, body.conversation_id)
    return {**snapshot.to_dict(), "phone_info": PhoneNumberInfo.from_raw(body.phone).model_dump()}


@router.post("/leads", status_code=status.HTTP_201_CREATED)
async def create_lead(
    body: CreateLeadRequest,
    tenant: TenantContext = Depends(get_tenant_dependency),  # noqa: B008
    service: InteractionService = Depends(get_interaction_service),  # noqa: B008
) -> dict[str, Any]:
    snapshot = await service.register_lead(tenant, body.phone, body.name, body.national_id)
    return snapshot.to_dict()
