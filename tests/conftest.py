"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from pathlib import Path

# Minimal environment for settings validation
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SYNC_ENABLED", "false")
os.environ.setdefault("LOG_FILE", "")

# Add project root and this directory to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(Path(__file__).parent))

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from asset_indexer.config.database import create_session_maker
from asset_indexer.models import Base
from chain_factory import FakeChainSource


@pytest.fixture
async def engine():
    """In-memory SQLite engine with all tables."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    """Session factory bound to the test engine."""
    return create_session_maker(engine)


@pytest.fixture
async def session(session_maker):
    """Database session."""
    async with session_maker() as session:
        yield session


@pytest.fixture
def chain_source():
    """Empty fake chain source."""
    return FakeChainSource()


@pytest.fixture
def sleeps():
    """Recorded sleep delays."""
    return []


@pytest.fixture
def no_sleep(sleeps):
    """Sleep replacement that only records the delay."""
    async def _sleep(delay: float) -> None:
        sleeps.append(delay)
    return _sleep
