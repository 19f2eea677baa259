"""Conversation state store port.

Implementations:
- ConversationStateRepository (SQLAlchemy)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from carechat.domains.conversations.domain.states import ConversationState


@runtime_checkable
class ConversationStateStore(Protocol):
    """Keyed store of first-class conversation state records."""

    async def get(self, conversation_id: str) -> ConversationState | None:
        """Read the stored state, None when the conversation has none yet."""
        ...

    async def get_for_update(self, conversation_id: str) -> ConversationState | None:
        """Read the stored state holding a row lock until save()."""
        ...

    async def create_if_absent(self, state: ConversationState) -> ConversationState:
        """Insert state unless the conversation already has a record; return the stored record."""
        ...

    async def save(self, state: ConversationState) -> ConversationState:
        """Insert or replace the state record."""
        ...
