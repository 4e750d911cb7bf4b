"""
RPC Wrapper with Timeout and Retry Logic.

Provides centralized timeout and retry functionality for all node RPC calls.
"""

import asyncio
from collections.abc import Callable
from typing import Any

from loguru import logger

from asset_indexer.config.constants import (
    RPC_MAX_RETRIES,
    RPC_RETRY_DELAY_BASE,
    RPC_TIMEOUT,
)
from asset_indexer.utils.exceptions import ChainSourceError, ChainTimeoutError


async def with_timeout(
    coro: Any,
    timeout: float = RPC_TIMEOUT,
    operation_name: str = "RPC call",
) -> Any:
    """
    Execute async coroutine with timeout.

    Args:
        coro: Coroutine to execute
        timeout: Timeout in seconds (default: RPC_TIMEOUT)
        operation_name: Operation name for logging

    Returns:
        Result of the coroutine

    Raises:
        ChainTimeoutError: If operation times out
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except TimeoutError as e:
        error_msg = f"{operation_name} timed out after {timeout}s"
        logger.error(error_msg)
        raise ChainTimeoutError(error_msg) from e


async def rpc_call_with_retry(
    coro_factory: Callable[[], Any],
    max_retries: int = RPC_MAX_RETRIES,
    timeout: float = RPC_TIMEOUT,
    operation_name: str = "RPC call",
    delay_base: float = RPC_RETRY_DELAY_BASE,
) -> Any:
    """
    Execute RPC call with retry logic and timeout.

    Only transient failures (ChainSourceError and its timeout subclass)
    are retried. RPC error objects returned by the node propagate at once.

    Args:
        coro_factory: Factory function that returns a coroutine
        max_retries: Maximum number of attempts
        timeout: Timeout per attempt in seconds
        operation_name: Operation name for logging
        delay_base: Base delay in seconds, doubled after every failure

    Returns:
        Result of the RPC call

    Raises:
        ChainSourceError: If all attempts fail with transient errors
    """
    last_error: ChainSourceError | None = None

    for attempt in range(max_retries):
        try:
            result = await with_timeout(
                coro_factory(),
                timeout=timeout,
                operation_name=f"{operation_name} (attempt {attempt + 1}/{max_retries})",
            )

            if attempt > 0:
                logger.success(
                    f"{operation_name} succeeded on attempt {attempt + 1}"
                )

            return result

        except ChainSourceError as e:
            last_error = e

            if attempt < max_retries - 1:
                delay = delay_base * (2 ** attempt)
                logger.warning(
                    f"{operation_name} failed on attempt {attempt + 1}/{max_retries}: {e}. "
                    f"Retrying in {delay}s..."
                )
                await asyncio.sleep(delay)
            else:
                logger.error(
                    f"{operation_name} failed after {max_retries} attempts: {e}"
                )

    raise last_error
