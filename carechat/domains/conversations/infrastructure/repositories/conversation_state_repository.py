"""
Conversation State Repository Implementation.

SQLAlchemy async repository for persisted conversation state.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from carechat.domains.conversations.domain.states import ConversationState, ConversationStateName
from carechat.models.db import ConversationStateModel

logger = logging.getLogger(__name__)


class ConversationStateRepository:
    """
    Repository for ConversationStateModel.

    get_for_update() issues SELECT ... FOR UPDATE so a read-check-write
    transition holds the row until save() commits.
    """

    def __init__(self, db: AsyncSession):
        self._db = db

    async def get(self, conversation_id: str) -> ConversationState | None:
        stmt = select(ConversationStateModel).where(ConversationStateModel.conversation_id == conversation_id)
        result = await self._db.execute(stmt)
        return self._to_entity(result.scalar_one_or_none())

    async def get_for_update(self, conversation_id: str) -> ConversationState | None:
        stmt = (
            select(ConversationStateModel)
            .where(ConversationStateModel.conversation_id == conversation_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self._db.execute(stmt)
        return self._to_entity(result.scalar_one_or_none())

    async def create_if_absent(self, state: ConversationState) -> ConversationState:
        """Insert the record only when none exists and commit, so the row can be locked."""
        now = datetime.now(UTC)
        stmt = (
            insert(ConversationStateModel)
            .values(
                conversation_id=state.conversation_id,
                current_state=state.current_state.value,
                state_data=state.state_data,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=["conversation_id"])
        )
        await self._db.execute(stmt)
        await self._db.commit()

        stored = await self.get(state.conversation_id)
        if stored is None:
            raise RuntimeError(f"Conversation state {state.conversation_id} missing after insert")
        return stored

    async def save(self, state: ConversationState) -> ConversationState:
        """
        Upsert the state record and commit.

        Args:
            state: State to persist

        Returns:
            The state with updated_at set
        """
        now = datetime.now(UTC)
        stmt = insert(ConversationStateModel).values(
            conversation_id=state.conversation_id,
            current_state=state.current_state.value,
            state_data=state.state_data,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["conversation_id"],
            set_={
                "current_state": stmt.excluded.current_state,
                "state_data": stmt.excluded.state_data,
                "updated_at": now,
            },
        )
        await self._db.execute(stmt)
        await self._db.commit()

        logger.debug(f"Saved conversation {state.conversation_id} in state {state.current_state.value}")
        return ConversationState(
            conversation_id=state.conversation_id,
            current_state=state.current_state,
            state_data=dict(state.state_data),
            updated_at=now,
        )

    @staticmethod
    def _to_entity(model: ConversationStateModel | None) -> ConversationState | None:
        if model is None:
            return None
        return ConversationState(
            conversation_id=model.conversation_id,
            current_state=ConversationStateName(model.current_state),
            state_data=dict(model.state_data or {}),
            updated_at=model.updated_at,
        )
