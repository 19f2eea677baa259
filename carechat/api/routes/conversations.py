"""
Conversation state endpoints consumed by the dialogue engine.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from carechat.api.dependencies import get_interaction_service, get_state_machine
from carechat.core.tenancy.context import TenantContext
from carechat.core.tenancy.resolver import get_tenant_dependency
from carechat.domains.conversations.application.use_cases.state_machine import ConversationStateMachine
from carechat.services.interaction_service import InteractionService

router = APIRouter(prefix="/conversations", tags=["conversations"])


class TransitionRequest(BaseModel):
    next_state: str = Field(..., description="Target state")
    state_data: dict[str, Any] | None = Field(None, description="Opaque data; omitted keeps the stored data")


@router.get("/{conversation_id}/state")
async def get_conversation_state(
    conversation_id: str,
    machine: ConversationStateMachine = Depends(get_state_machine),  # noqa: B008
) -> dict[str, Any]:
    state = await machine.get_state(conversation_id)
    return state.to_dict()


@router.post("/{conversation_id}/transition")
async def transition_conversation(
    conversation_id: str,
    body: TransitionRequest,
    machine: ConversationStateMachine = Depends(get_state_machine),  # noqa: B008
) -> dict[str, Any]:
    """
    Apply a transition reported by the dialogue engine.

    Rejected transitions return 409 and leave the stored state unchanged.
    """
    result = await machine.transition_or_raise(conversation_id, body.next_state, body.state_data)
    return result.to_dict()


@router.get("/{conversation_id}/turn-context")
async def get_turn_context(
    conversation_id: str,
    phone: str | None = Query(None, description="Phone of the person speaking"),
    tenant: TenantContext = Depends(get_tenant_dependency),  # noqa: B008
    service: InteractionService = Depends(get_interaction_service),  # noqa: B008
) -> dict[str, Any]:
    """Interlocutor context, conversation state and valid actions for one turn."""
    interlocutor = None
    membership = None
    if phone:
        snapshot = await service.identify_for_tenant(tenant, phone)
        interlocutor = snapshot.interlocutor
        membership = snapshot.record.membership_status.value if snapshot.record else None
    return await service.state_machine.build_turn_context(conversation_id, interlocutor, membership)
