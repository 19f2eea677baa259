from .conversation_state_repository import ConversationStateRepository

__all__ = ["ConversationStateRepository"]
