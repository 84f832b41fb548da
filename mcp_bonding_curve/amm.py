"""
AMM Pool Collaborator

The graduation coordinator hands a curve's reserves to an external AMM across a trust
boundary. This module defines that boundary (PoolFactory) and an in-memory implementation
used by the server and the tests.

Both calls take an idempotency key. A factory that sees the same key twice must return the
pool it already created and must not deposit the same liquidity twice; this is what lets a
crashed graduation be retried safely.
"""
from abc import ABC, abstractmethod
from typing import Dict

from mcp.server.fastmcp.utilities.logging import get_logger

from mcp_bonding_curve.schemas import AssetId, ZERO_ID

logger = get_logger(__name__)


class PoolFactory(ABC):
    """External AMM factory that creates pools and accepts seed liquidity."""

    @abstractmethod
    def create_pool(self, base_asset: AssetId, token_asset: AssetId, idempotency_key: str) -> AssetId:
        """Creates (or returns the already created) pool for the two legs.

        A zero AssetId signals that no pool was created.
        """

    @abstractmethod
    def add_liquidity(self, pool: AssetId, token_amount: int, base_amount: int, idempotency_key: str) -> None:
        """Deposits both legs into ``pool`` as one step; raises if either leg fails."""


class InMemoryPoolFactory(PoolFactory):
    """Deterministic pool factory keeping pool reserves in memory."""

    POOL_BLOCK = 2

    def __init__(self):
        self.pools: Dict[AssetId, Dict[str, int]] = {}
        self._pools_by_key: Dict[str, AssetId] = {}
        self._deposits_by_key: Dict[str, AssetId] = {}

    def _pool_id(self, base_asset: AssetId, token_asset: AssetId) -> AssetId:
        combined = base_asset.block + base_asset.tx + token_asset.block + token_asset.tx + len(self.pools)
        return AssetId(block=self.POOL_BLOCK, tx=(combined % 1_000_000) + 100_000)

    def create_pool(self, base_asset: AssetId, token_asset: AssetId, idempotency_key: str) -> AssetId:
        if idempotency_key in self._pools_by_key:
            pool = self._pools_by_key[idempotency_key]
            logger.debug(f"Reusing pool {pool} for key {idempotency_key}")
            return pool

        if base_asset.is_zero() or token_asset.is_zero():
            logger.warning(f"Refusing to create pool with a zero leg: base={base_asset}, token={token_asset}")
            return ZERO_ID

        pool = self._pool_id(base_asset, token_asset)
        self.pools[pool] = {"token_reserve": 0, "base_reserve": 0}
        self._pools_by_key[idempotency_key] = pool
        logger.info(f"Created pool {pool} for base={base_asset}, token={token_asset}")
        return pool

    def add_liquidity(self, pool: AssetId, token_amount: int, base_amount: int, idempotency_key: str) -> None:
        if idempotency_key in self._deposits_by_key:
            logger.debug(f"Liquidity for key {idempotency_key} already deposited into {pool}")
            return
        if pool not in self.pools:
            raise KeyError(f"Unknown pool {pool}")

        reserves = self.pools[pool]
        reserves["token_reserve"] += token_amount
        reserves["base_reserve"] += base_amount
        self._deposits_by_key[idempotency_key] = pool
        logger.info(f"Deposited token={token_amount}, base={base_amount} into pool {pool}")
