"""
FastAPI dependencies shared by the API routes.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from carechat.core.tenancy.context_cache import TenantContextCache
from carechat.core.tenancy.resolver import get_tenant_cache_dependency
from carechat.database.async_db import get_async_db
from carechat.domains.conversations.application.use_cases.state_machine import ConversationStateMachine
from carechat.domains.conversations.infrastructure.repositories.conversation_state_repository import (
    ConversationStateRepository,
)
from carechat.services.interaction_service import InteractionService


def get_interaction_service(
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
    cache: TenantContextCache = Depends(get_tenant_cache_dependency),  # noqa: B008
) -> InteractionService:
    return InteractionService.for_session(db, cache)


def get_state_machine(db: AsyncSession = Depends(get_async_db)) -> ConversationStateMachine:  # noqa: B008
    return ConversationStateMachine(ConversationStateRepository(db))
