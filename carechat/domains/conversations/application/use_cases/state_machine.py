"""
Conversation State Machine

Tracks where a conversation stands and which transitions and actions are
allowed next. Transitions outside the allowed-edges table are rejected and
leave the stored state untouched.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from carechat.core.domain.exceptions import InvalidStateTransitionError
from carechat.domains.conversations.domain.states import (
    INITIAL_STATE,
    ConversationState,
    ConversationStateName,
    state_context_prompt,
)

if TYPE_CHECKING:
    from carechat.domains.conversations.application.ports.state_store import ConversationStateStore
    from carechat.domains.patients.domain.entities.interlocutor_context import InterlocutorContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a transition request."""

    success: bool
    conversation_id: str
    previous_state: ConversationStateName
    current_state: ConversationStateName
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "conversation_id": self.conversation_id,
            "previous_state": self.previous_state.value,
            "current_state": self.current_state.value,
            "reason": self.reason,
        }


class ConversationStateMachine:
    """
    Finite state machine over persisted ConversationState records.

    Transitions for one conversation id are serialized in-process with a
    per-conversation asyncio.Lock; the store's get_for_update() covers
    concurrent workers.

    Usage:
        machine = ConversationStateMachine(ConversationStateRepository(db))
        result = await machine.transition("conv-1", ConversationStateName.COLLECTING_ORDER_ITEMS)
    """

    # Shared by all instances in the process; an entry lives while a transition holds it
    _locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def __init__(self, store: ConversationStateStore):
        self._store = store

    @classmethod
    def _lock_for(cls, conversation_id: str) -> asyncio.Lock:
        lock = cls._locks.get(conversation_id)
        if lock is None:
            lock = asyncio.Lock()
            cls._locks[conversation_id] = lock
        return lock

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_state(self, conversation_id: str) -> ConversationState:
        """Stored state, or a fresh initial state when none exists (not persisted)."""
        state = await self._store.get(conversation_id)
        return state if state is not None else ConversationState(conversation_id=conversation_id)

    async def current_state(self, conversation_id: str) -> ConversationStateName:
        return (await self.get_state(conversation_id)).current_state

    @staticmethod
    def valid_next_states(state: ConversationStateName) -> tuple[ConversationStateName, ...]:
        return state.next_states()

    @staticmethod
    def valid_actions(state: ConversationStateName) -> tuple[str, ...]:
        return state.actions()

    @staticmethod
    def is_valid_transition(current: ConversationStateName, target: ConversationStateName) -> bool:
        return current.can_transition_to(target)

    @staticmethod
    def state_context_prompt(
        state: ConversationStateName,
        state_data: dict[str, Any] | None = None,
        membership: str | None = None,
    ) -> str:
        return state_context_prompt(state, state_data, membership)

    # =========================================================================
    # Commands
    # =========================================================================

    async def initialize(self, conversation_id: str) -> ConversationState:
        """Persist the initial state for a new conversation; an existing record is returned unchanged."""
        async with self._lock_for(conversation_id):
            state = await self._store.create_if_absent(ConversationState(conversation_id=conversation_id))
        logger.info(f"Conversation {conversation_id} is in state {state.current_state.value}")
        return state

    async def transition(
        self,
        conversation_id: str,
        next_state: ConversationStateName | str,
        state_data: dict[str, Any] | None = None,
    ) -> TransitionResult:
        """
        Move a conversation to next_state if it is an allowed edge.

        Args:
            conversation_id: Conversation identifier
            next_state: Target state
            state_data: Opaque payload; None keeps the stored data

        Returns:
            TransitionResult (success False when rejected; the stored state is unchanged)
        """
        async with self._lock_for(conversation_id):
            # A row must exist for get_for_update to lock it
            await self._store.create_if_absent(ConversationState(conversation_id=conversation_id))
            stored = await self._store.get_for_update(conversation_id)
            current = stored.current_state if stored is not None else INITIAL_STATE

            try:
                target = ConversationStateName(next_state)
            except ValueError:
                reason = f"Unknown state '{next_state}'"
                logger.error(f"Rejected transition for conversation {conversation_id}: {reason}")
                return TransitionResult(False, conversation_id, current, current, reason)

            if not current.can_transition_to(target):
                reason = f"Transition {current.value} -> {target.value} is not allowed"
                logger.error(
                    f"Rejected transition for conversation {conversation_id}: {reason} "
                    f"(allowed: {[s.value for s in current.next_states()]})"
                )
                return TransitionResult(False, conversation_id, current, current, reason)

            data = state_data if state_data is not None else (stored.state_data if stored is not None else {})
            await self._store.save(
                ConversationState(conversation_id=conversation_id, current_state=target, state_data=dict(data))
            )

        logger.info(f"Conversation {conversation_id}: {current.value} -> {target.value}")
        return TransitionResult(True, conversation_id, current, target)

    async def transition_or_raise(
        self,
        conversation_id: str,
        next_state: ConversationStateName | str,
        state_data: dict[str, Any] | None = None,
    ) -> TransitionResult:
        """Same as transition() but raises InvalidStateTransitionError when rejected."""
        result = await self.transition(conversation_id, next_state, state_data)
        if not result.success:
            raise InvalidStateTransitionError(
                conversation_id=conversation_id,
                current_state=result.current_state.value,
                requested_state=str(getattr(next_state, "value", next_state)),
            )
        return result

    async def build_turn_context(
        self,
        conversation_id: str,
        interlocutor: InterlocutorContext | None = None,
        membership: str | None = None,
    ) -> dict[str, Any]:
        """Per-turn payload for the dialogue engine."""
        state = await self.get_state(conversation_id)
        return {
            "interlocutor_context": interlocutor.to_dict() if interlocutor is not None else None,
            "conversation_state": state.to_dict(),
            "valid_actions": list(state.valid_actions),
            "state_prompt": state_context_prompt(state.current_state, state.state_data, membership),
        }
