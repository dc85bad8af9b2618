"""Unit tests for the pgvector index query builder."""

from __future__ import annotations

from typing import Any, List

import pytest
from sqlalchemy import event

from lexchat.errors import CapabilityError
from lexchat.interfaces import VectorRecord
from lexchat.retrieval import PgVectorIndex


@pytest.fixture
def statements(engine) -> List[Any]:
    """SQL and parameters sent to the driver; SQLite then rejects the pgvector syntax."""
    seen: List[Any] = []

    @event.listens_for(engine, "before_cursor_execute")
    def capture(conn, cursor, statement, parameters, context, executemany):
        seen.append((statement, parameters))

    return seen


class TestPgVectorIndex:

    @pytest.mark.asyncio
    async def test_unknown_filter_key_is_rejected(self, engine, statements):
        index = PgVectorIndex(engine)

        with pytest.raises(ValueError, match="content"):
            await index.query([0.1, 0.2], top_k=5, filter={"chat_id": "c1", "content": "x"})

        assert statements == []

    @pytest.mark.asyncio
    async def test_filter_is_scoped_to_chat_and_user(self, engine, statements):
        index = PgVectorIndex(engine)

        with pytest.raises(CapabilityError, match="Vector query failed"):
            await index.query([0.1, 0.2], top_k=5, filter={"chat_id": "c1", "user_id": "u1"})

        sql, params = statements[-1]
        assert "WHERE chat_id = ? AND user_id = ?" in sql
        assert "ORDER BY embedding <=>" in sql
        assert "c1" in params and "u1" in params

    @pytest.mark.asyncio
    async def test_empty_calls_do_not_touch_the_database(self, engine, statements):
        index = PgVectorIndex(engine)

        await index.upsert([])
        await index.delete_by_ids([])

        assert statements == []

    @pytest.mark.asyncio
    async def test_upsert_failure_is_a_capability_error(self, engine):
        record = VectorRecord(
            id="chunk-1",
            values=[0.1, 0.2],
            metadata={"document_id": "d1", "chat_id": "c1", "user_id": "u1", "chunk_index": 0},
        )

        with pytest.raises(CapabilityError, match="Vector upsert failed"):
            await PgVectorIndex(engine).upsert([record])
