"""
Database engine and session factories.

The daemon keeps a pooled engine; one-off scripts and tasks create
NullPool engines so connections never outlive the event loop.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from asset_indexer.config.settings import settings


def create_engine(database_url: str | None = None, pooled: bool = True) -> AsyncEngine:
    """
    Create async engine.

    Args:
        database_url: Override for settings.database_url
        pooled: Use the default pool (False creates a NullPool engine)

    Returns:
        Async engine
    """
    url = database_url or settings.database_url
    if pooled:
        return create_async_engine(url, echo=settings.database_echo)
    return create_async_engine(url, echo=False, poolclass=NullPool)


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create session maker bound to engine."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
