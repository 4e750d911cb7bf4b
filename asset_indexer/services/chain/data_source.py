"""
Chain Data Source.

Supplies the chain height and fully resolved blocks to the sync
orchestrator and the backfill tool.
"""

from typing import Any

from loguru import logger

from asset_indexer.config.constants import RPC_BLOCK_VERBOSITY, RPC_MAX_RETRIES
from asset_indexer.services.chain.payloads import ChainBlock, parse_block
from asset_indexer.services.chain.rpc_client import ChainRpcClient
from asset_indexer.services.chain.rpc_wrapper import rpc_call_with_retry


class ChainDataSource:
    """
    Block source backed by the node RPC.

    Every call goes through rpc_call_with_retry, so short outages are
    absorbed here and longer ones surface as ChainSourceError for the
    orchestrator's backoff.
    """

    def __init__(
        self,
        client: ChainRpcClient,
        timeout: float,
        max_retries: int = RPC_MAX_RETRIES,
    ) -> None:
        """
        Initialize data source.

        Args:
            client: Node RPC client
            timeout: Per-call timeout in seconds
            max_retries: Attempts per call
        """
        self.client = client
        self.timeout = timeout
        self.max_retries = max_retries

    async def _call(self, method: str, *params: Any) -> Any:
        return await rpc_call_with_retry(
            lambda: self.client.call(method, *params),
            max_retries=self.max_retries,
            timeout=self.timeout,
            operation_name=f"RPC {method}",
        )

    async def chain_height(self) -> int:
        """
        Get current chain tip height.

        Returns:
            Height of the best block
        """
        info = await self._call("getblockchaininfo")
        return int(info["blocks"])

    async def block(self, height: int) -> ChainBlock:
        """
        Fetch a fully resolved block.

        Args:
            height: Block height

        Returns:
            Parsed block with decoded transactions
        """
        block_hash = await self._call("getblockhash", height)
        data = await self._call("getblock", block_hash, RPC_BLOCK_VERBOSITY)
        block = parse_block(data, height=height)
        logger.debug(
            f"[ChainSource] Fetched block {height} "
            f"({len(block.transaction_ids)} txs)"
        )
        return block

    async def check_health(self) -> dict:
        """
        Check node health.

        Returns:
            Dict with status and, when reachable, chain/blocks/headers
        """
        try:
            info = await self._call("getblockchaininfo")
        except Exception as e:
            logger.warning(f"[ChainSource] Health check failed: {e}")
            return {"status": "unhealthy", "error": str(e)}

        return {
            "status": "healthy",
            "chain": info.get("chain"),
            "blocks": info.get("blocks"),
            "headers": info.get("headers"),
        }

    async def close(self) -> None:
        """Close the underlying RPC client."""
        await self.client.close()
