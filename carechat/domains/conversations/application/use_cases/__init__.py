from .state_machine import ConversationStateMachine, TransitionResult

__all__ = ["ConversationStateMachine", "TransitionResult"]
