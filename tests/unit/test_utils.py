"""Unit tests for utility helpers."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from asset_indexer.utils.datetime_utils import from_block_time, utc_now
from asset_indexer.utils.db_decorators import with_auto_commit
from asset_indexer.utils.logging import SCRIPT_FORMAT, setup_logging


@pytest.fixture
def mock_session():
    """
    Mock async database session.

    Returns:
        AsyncMock: Mocked session that passes isinstance checks
    """
    return AsyncMock(spec=AsyncSession)


class TestWithAutoCommit:
    """Test the auto-commit decorator."""

    @pytest.mark.asyncio
    async def test_commit_on_success(self, mock_session):
        """The session is committed after the function returns."""
        @with_auto_commit
        async def step(session):
            return 7

        assert await step(mock_session) == 7
        mock_session.commit.assert_awaited_once()
        mock_session.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rollback_on_error(self, mock_session):
        """The session is rolled back and the error re-raised."""
        @with_auto_commit
        async def step(session):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await step(session=mock_session)

        mock_session.rollback.assert_awaited_once()
        mock_session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_session_after_self(self, mock_session):
        """Methods get their session found after self."""
        class Service:
            @with_auto_commit
            async def step(self, session, value):
                return value * 2

        assert await Service().step(mock_session, 21) == 42
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_without_session(self):
        """Functions without a session still run."""
        @with_auto_commit
        async def step(value):
            return value

        assert await step(3) == 3


class TestDatetimeUtils:
    """Test datetime helpers."""

    def test_utc_now_is_aware(self):
        """Current time carries UTC tzinfo."""
        assert utc_now().tzinfo is UTC

    @pytest.mark.parametrize("value", [1700000000, "1700000000", 1700000000.0])
    def test_from_block_time(self, value):
        """Unix times become aware UTC datetimes."""
        assert from_block_time(value) == datetime(2023, 11, 14, 22, 13, 20, tzinfo=UTC)

    @pytest.mark.parametrize("value", [None, "", 0, -5, "soon"])
    def test_missing_block_time(self, value):
        """Missing or unusable times become None."""
        assert from_block_time(value) is None


class TestSetupLogging:
    """Test logging setup."""

    def test_file_sink(self, tmp_path):
        """A rotating file sink receives messages."""
        log_file = tmp_path / "indexer.log"
        setup_logging("DEBUG", log_file=str(log_file), fmt=SCRIPT_FORMAT)
        logger.info("[Test] hello")
        logger.remove()

        assert "[Test] hello" in log_file.read_text(encoding="utf-8")
