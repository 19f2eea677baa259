"""SQLAlchemy models."""

from .association import Association
from .base import Base, TimestampMixin
from .conversation_state import ConversationStateModel
from .patient import Patient

__all__ = [
    "Association",
    "Base",
    "ConversationStateModel",
    "Patient",
    "TimestampMixin",
]
