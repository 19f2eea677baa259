# ============================================================================
# SCOPE: MULTI-TENANT
# Description: Estado persistido de la máquina de estados de cada conversación.
# Tenant-Aware: No - clave por conversation_id (único global).
# ============================================================================
"""
ConversationStateModel - first-class persisted conversation state.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, String
from sqlalchemy.dialects.postgresql import JSONB

from .base import Base
from .schemas import CARE_SCHEMA


class ConversationStateModel(Base):
    """Current state and opaque state data of one conversation."""

    __tablename__ = "conversation_states"

    conversation_id = Column(
        String(100),
        primary_key=True,
        comment="Conversation identifier",
    )

    current_state = Column(
        String(50),
        nullable=False,
        default="greeting",
        comment="Current state of the conversation state machine",
    )

    state_data = Column(
        JSONB,
        nullable=False,
        default=dict,
        comment="Opaque data stored alongside the state",
    )

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
        comment="Last transition timestamp",
    )

    __table_args__ = ({"schema": CARE_SCHEMA},)

    def __repr__(self) -> str:
        return f"<ConversationState(id='{self.conversation_id}', state='{self.current_state}')>"
