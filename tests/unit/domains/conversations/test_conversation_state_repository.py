"""
Unit tests for ConversationStateRepository with a mocked AsyncSession.
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql

from carechat.domains.conversations.domain.states import ConversationState, ConversationStateName
from carechat.domains.conversations.infrastructure.repositories.conversation_state_repository import (
    ConversationStateRepository,
)
from carechat.models.db import ConversationStateModel


def result_with(model):
    result = MagicMock()
    result.scalar_one_or_none.return_value = model
    return result


@pytest.fixture
def mock_session():
    session = AsyncMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    return session


@pytest.fixture
def repository(mock_session):
    return ConversationStateRepository(mock_session)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_maps_model(repository, mock_session):
    """Test a stored row maps to ConversationState."""
    updated = datetime(2026, 2, 1, tzinfo=UTC)
    mock_session.execute.return_value = result_with(
        ConversationStateModel(
            conversation_id="conv-1",
            current_state="awaiting_payment",
            state_data={"order_id": "A-1"},
            updated_at=updated,
        )
    )

    state = await repository.get("conv-1")

    assert state.current_state == ConversationStateName.AWAITING_PAYMENT
    assert state.state_data == {"order_id": "A-1"}
    assert state.updated_at == updated


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_missing(repository, mock_session):
    """Test absent rows map to None."""
    mock_session.execute.return_value = result_with(None)

    assert await repository.get("conv-x") is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_for_update_locks_row(repository, mock_session):
    """Test get_for_update issues SELECT ... FOR UPDATE."""
    mock_session.execute.return_value = result_with(None)

    await repository.get_for_update("conv-1")

    stmt = mock_session.execute.await_args.args[0]
    assert "FOR UPDATE" in str(stmt.compile(dialect=postgresql.dialect()))


@pytest.mark.unit
@pytest.mark.asyncio
async def test_save_upserts_and_commits(repository, mock_session):
    """Test save emits an upsert on conversation_id and commits."""
    state = ConversationState(
        conversation_id="conv-1",
        current_state=ConversationStateName.COLLECTING_ORDER_ITEMS,
        state_data={"cart": []},
    )

    saved = await repository.save(state)

    stmt = mock_session.execute.await_args.args[0]
    sql = str(stmt.compile(dialect=postgresql.dialect()))
    assert "ON CONFLICT (conversation_id) DO UPDATE" in sql
    mock_session.commit.assert_awaited_once()
    assert saved.updated_at is not None
    assert saved.current_state == ConversationStateName.COLLECTING_ORDER_ITEMS


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_if_absent_never_overwrites(repository, mock_session):
    """Test create_if_absent inserts with DO NOTHING and returns the stored row."""
    mock_session.execute.side_effect = [
        MagicMock(),
        result_with(
            ConversationStateModel(
                conversation_id="conv-1",
                current_state="awaiting_payment",
                state_data={"order_id": "A-1"},
            )
        ),
    ]

    stored = await repository.create_if_absent(ConversationState(conversation_id="conv-1"))

    insert_stmt = mock_session.execute.await_args_list[0].args[0]
    sql = str(insert_stmt.compile(dialect=postgresql.dialect()))
    assert "ON CONFLICT (conversation_id) DO NOTHING" in sql
    mock_session.commit.assert_awaited_once()
    assert stored.current_state == ConversationStateName.AWAITING_PAYMENT
    assert stored.state_data == {"order_id": "A-1"}
