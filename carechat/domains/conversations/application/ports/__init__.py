from .state_store import ConversationStateStore

__all__ = ["ConversationStateStore"]
