"""
Conversations Domain

Finite state machine bounding the dialogue engine: persisted state per
conversation, allowed transitions and per-state actions.
"""

__all__: list[str] = []
