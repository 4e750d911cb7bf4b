"""
Database decorators for automatic commit and rollback.

Provides decorators for async functions that receive an SQLAlchemy
session as their first positional argument or as the 'session' keyword.
"""

from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession


T = TypeVar("T")


def _find_session(args: tuple[Any, ...], kwargs: dict[str, Any]) -> AsyncSession | None:
    session = kwargs.get('session')
    if session is None:
        # First positional session (methods receive self before it)
        session = next((arg for arg in args if isinstance(arg, AsyncSession)), None)
    return session


def with_auto_commit(func: Callable[..., T]) -> Callable[..., T]:
    """
    Commit the session on success and roll back on error.

    Usage:
        @with_auto_commit
        async def relink(session: AsyncSession) -> int:
            ...

    The original exception is re-raised after the rollback.

    Args:
        func: Async function to wrap

    Returns:
        Wrapped function with automatic commit/rollback
    """
    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        session = _find_session(args, kwargs)

        if session is None:
            logger.warning(
                f"Function {func.__name__} decorated with @with_auto_commit "
                f"but no session argument found. Commit/rollback will not be performed."
            )
            return await func(*args, **kwargs)

        try:
            result = await func(*args, **kwargs)
            await session.commit()
            logger.debug(f"Auto-commit performed in {func.__name__}")
            return result
        except Exception as e:
            try:
                await session.rollback()
                logger.info(
                    f"Rollback performed in {func.__name__} due to error: {type(e).__name__}"
                )
            except Exception as rollback_error:
                logger.error(f"Failed to rollback in {func.__name__}: {rollback_error}")
            raise

    return wrapper
