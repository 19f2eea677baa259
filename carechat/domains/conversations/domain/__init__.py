from .states import (
    INITIAL_STATE,
    STATE_ACTIONS,
    TRANSITIONS,
    ConversationState,
    ConversationStateName,
    state_context_prompt,
)

__all__ = [
    "INITIAL_STATE",
    "STATE_ACTIONS",
    "TRANSITIONS",
    "ConversationState",
    "ConversationStateName",
    "state_context_prompt",
]
