"""
Node JSON-RPC client.

Thin aiohttp client for the node's JSON-RPC 1.0 interface with basic auth.
"""

import asyncio
from itertools import count
from typing import Any

import aiohttp
from loguru import logger

from asset_indexer.config.constants import RPC_TIMEOUT
from asset_indexer.utils.exceptions import ChainRpcError, ChainSourceError


class ChainRpcClient:
    """
    JSON-RPC client for the chain node.

    Transport problems (connection refused, timeouts, non-JSON HTTP errors)
    raise ChainSourceError. An error object in the response raises
    ChainRpcError; the node returns those with HTTP 500, so the body is
    inspected before the status code.
    """

    def __init__(
        self,
        url: str,
        user: str,
        password: str,
        timeout: float = RPC_TIMEOUT,
    ) -> None:
        """
        Initialize client.

        Args:
            url: Node RPC endpoint
            user: RPC user
            password: RPC password
            timeout: Total timeout per HTTP request in seconds
        """
        self.url = url
        self._auth = aiohttp.BasicAuth(user, password)
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None
        self._ids = count(1)

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                auth=self._auth,
                timeout=self._timeout,
            )
        return self._session

    async def call(self, method: str, *params: Any) -> Any:
        """
        Make a JSON-RPC call.

        Args:
            method: RPC method name
            *params: Positional RPC parameters

        Returns:
            The "result" member of the response

        Raises:
            ChainSourceError: Transport failure
            ChainRpcError: Node answered with an error object
        """
        payload = {
            "jsonrpc": "1.0",
            "id": next(self._ids),
            "method": method,
            "params": list(params),
        }

        session = await self._get_session()
        try:
            async with session.post(
                self.url,
                json=payload,
                headers={"Content-Type": "application/json"},
            ) as response:
                try:
                    data = await response.json(content_type=None)
                except ValueError:
                    data = None

                if isinstance(data, dict) and data.get("error"):
                    error = data["error"]
                    if isinstance(error, dict):
                        raise ChainRpcError(
                            method, str(error.get("message")), error.get("code")
                        )
                    raise ChainRpcError(method, str(error))

                if response.status != 200 or not isinstance(data, dict):
                    raise ChainSourceError(
                        f"RPC {method} failed with HTTP {response.status}"
                    )

                return data.get("result")

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug(f"[RPC] {method} transport error: {e!r}")
            raise ChainSourceError(f"RPC {method} unreachable: {e}") from e

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
