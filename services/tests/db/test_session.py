"""Tests for the database engine lifecycle and request sessions."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from harbormaster.db import session as db_session


def _factory_yielding(session: AsyncMock) -> MagicMock:
    factory = MagicMock()
    factory.return_value.__aenter__.return_value = session
    return factory


class TestGetDb:
    async def test_requires_init(self):
        with patch.object(db_session, "_async_session_factory", None):
            with pytest.raises(RuntimeError, match="init_db"):
                await anext(db_session.get_db())

    async def test_commits_when_handler_returns(self):
        session = AsyncMock()

        with patch.object(db_session, "_async_session_factory", _factory_yielding(session)):
            gen = db_session.get_db()
            assert await anext(gen) is session
            with pytest.raises(StopAsyncIteration):
                await anext(gen)

        session.commit.assert_awaited_once()
        session.rollback.assert_not_awaited()

    async def test_rolls_back_when_handler_raises(self):
        session = AsyncMock()

        with patch.object(db_session, "_async_session_factory", _factory_yielding(session)):
            gen = db_session.get_db()
            await anext(gen)
            with pytest.raises(ValueError):
                await gen.athrow(ValueError("boom"))

        session.rollback.assert_awaited_once()
        session.commit.assert_not_awaited()


class TestLifecycle:
    @patch("harbormaster.db.session.create_async_engine")
    async def test_init_sizes_pool_from_settings(self, mock_create):
        engine = MagicMock()
        engine.begin.return_value.__aenter__.return_value = AsyncMock()
        engine.dispose = AsyncMock()
        mock_create.return_value = engine

        await db_session.init_db()
        try:
            kwargs = mock_create.call_args.kwargs
            assert kwargs["pool_size"] == 10
            assert kwargs["max_overflow"] == 20
            assert await db_session.get_db_health() is True
        finally:
            await db_session.close_db()

        engine.dispose.assert_awaited_once()
        assert await db_session.get_db_health() is False

    async def test_health_false_before_init(self):
        with patch.object(db_session, "_engine", None):
            assert await db_session.get_db_health() is False

    async def test_close_without_init_is_noop(self):
        with patch.object(db_session, "_engine", None):
            await db_session.close_db()
