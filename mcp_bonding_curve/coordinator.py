"""
Graduation Coordinator

Runs the one-way migration of a curve from Active to Graduated:

1. Guard: refuse if already graduated, require the criteria or the emergency override
2. Compute the pool seed (all reserves, price-matched token leg capped at half max supply)
3. Ask the AMM factory for a pool and verify the returned handle is non-zero
4. Deposit both liquidity legs in one step
5. Estimate LP tokens as ``isqrt(token_liquidity * base_liquidity)``
6. Split the LP tokens with the curve's distribution strategy
7. Write the graduated ledger and the graduation record in a single assignment

A PendingGraduation checkpoint is handed to the caller before the first external call and
updated after each one. A retried graduation that finds the checkpoint reuses its seed and
pool handle and skips a completed deposit, so a crash between steps never creates a second
pool or moves reserves twice.
"""
import math
from typing import Callable, Optional

from mcp.server.fastmcp.utilities.logging import get_logger

from mcp_bonding_curve import config
from mcp_bonding_curve.amm import PoolFactory
from mcp_bonding_curve.errors import (
    AlreadyGraduatedError,
    GraduationCriteriaNotMetError,
    LiquidityTransferError,
    NotInitializedError,
    PoolCreationFailedError,
)
from mcp_bonding_curve.graduation import compute_pool_seed, emergency_graduation, meets_graduation_criteria
from mcp_bonding_curve.lp_distribution import distribute_lp_tokens
from mcp_bonding_curve.schemas import CurveRecord, ExecutionContext, GraduationRecord, PendingGraduation

logger = get_logger(__name__)

Checkpoint = Callable[[CurveRecord], None]


def estimate_lp_tokens(token_liquidity: int, base_liquidity: int) -> int:
    """Constant-product LP estimate, exact in integers."""
    return math.isqrt(token_liquidity * base_liquidity)


def is_eligible(record: CurveRecord, current_block: int) -> bool:
    """True if the curve meets the normal criteria or the emergency override."""
    ledger = record.ledger
    if meets_graduation_criteria(ledger.current_supply, ledger.base_reserves, record.params):
        return True
    return emergency_graduation(current_block, record.launch_block, ledger.current_supply, ledger.base_reserves)


class GraduationCoordinator:
    """Migrates curves to AMM pools created by ``pool_factory``."""

    def __init__(self, pool_factory: PoolFactory, top_holders: Optional[int] = None):
        self.pool_factory = pool_factory
        self.top_holders = top_holders or config.COMMUNITY_REWARDS_TOP_HOLDERS

    def graduate(self, record: CurveRecord, context: ExecutionContext, checkpoint: Checkpoint) -> CurveRecord:
        """
        Graduates the curve described by ``record``.

        Args:
            record: Current state of the curve.
            context: Host execution context; ``myself`` is the curve's token id.
            checkpoint: Persists an intermediate record carrying the pending marker.

        Returns:
            The graduated record. The caller makes it current; nothing else is written.

        Raises:
            AlreadyGraduatedError: If the curve graduated before.
            GraduationCriteriaNotMetError: If neither the criteria nor the override hold.
            PoolCreationFailedError: If the factory raises or returns a zero pool handle.
            LiquidityTransferError: If depositing the liquidity legs fails.
        """
        if record.ledger.graduated:
            raise AlreadyGraduatedError(f"Curve '{record.curve_id}' has already graduated")
        if record.params is None:
            raise NotInitializedError(f"Curve '{record.curve_id}' is not initialized")

        params = record.params
        ledger = record.ledger
        pending = record.pending_graduation

        if pending is None:
            if not is_eligible(record, context.block_height):
                raise GraduationCriteriaNotMetError(
                    f"Curve '{record.curve_id}' does not meet graduation criteria",
                    requested=params.graduation_threshold,
                    available=ledger.base_reserves,
                )
            seed = compute_pool_seed(ledger.current_supply, ledger.base_reserves, params)
            pending = PendingGraduation(idempotency_key=f"{record.curve_id}:graduation", seed=seed)
            record = record.model_copy(update={"pending_graduation": pending})
            checkpoint(record)
            logger.info(
                f"Graduation started for '{record.curve_id}': token_liquidity={seed.token_liquidity}, "
                f"base_liquidity={seed.base_liquidity}"
            )
        else:
            logger.info(f"Resuming graduation for '{record.curve_id}' from checkpoint {pending.idempotency_key}")

        seed = pending.seed

        if pending.pool_address is None:
            try:
                pool = self.pool_factory.create_pool(
                    params.base_currency.asset_id, context.myself, pending.idempotency_key
                )
            except Exception as e:
                logger.error(f"Pool creation failed for '{record.curve_id}': {e}")
                checkpoint(record.model_copy(update={"pending_graduation": None}))
                raise PoolCreationFailedError(
                    f"AMM factory failed to create a pool for curve '{record.curve_id}': {e}"
                ) from e
            if pool is None or pool.is_zero():
                # Nothing left the curve; drop the checkpoint so the attempt leaves no trace.
                checkpoint(record.model_copy(update={"pending_graduation": None}))
                raise PoolCreationFailedError(f"AMM factory returned no pool for curve '{record.curve_id}'")
            pending = pending.model_copy(update={"pool_address": pool})
            record = record.model_copy(update={"pending_graduation": pending})
            checkpoint(record)

        pool = pending.pool_address

        if not pending.liquidity_transferred:
            try:
                self.pool_factory.add_liquidity(pool, seed.token_liquidity, seed.base_liquidity, pending.idempotency_key)
            except Exception as e:
                logger.error(f"Liquidity transfer to pool {pool} failed for '{record.curve_id}': {e}")
                raise LiquidityTransferError(
                    f"Failed to seed pool {pool}: {e}",
                    requested=seed.base_liquidity,
                    available=ledger.base_reserves,
                ) from e
            pending = pending.model_copy(update={"liquidity_transferred": True})
            record = record.model_copy(update={"pending_graduation": pending})
            checkpoint(record)

        lp_total = estimate_lp_tokens(seed.token_liquidity, seed.base_liquidity)
        distribution = distribute_lp_tokens(
            lp_total,
            record.lp_strategy,
            creator=record.creator,
            dao_address=record.dao_address,
            holders=record.holders,
            top_n=self.top_holders,
        )

        graduation = GraduationRecord(
            pool_address=pool,
            lp_tokens_total=lp_total,
            distribution_strategy=record.lp_strategy,
            seed=seed,
            distribution=distribution,
            graduation_block=context.block_height,
        )
        graduated_ledger = ledger.model_copy(
            update={
                "graduated": True,
                "graduation_block": context.block_height,
                "base_reserves": max(ledger.base_reserves - seed.base_liquidity, 0),
            }
        )
        logger.info(
            f"Curve '{record.curve_id}' graduated to pool {pool} at block {context.block_height}: "
            f"lp_total={lp_total}, burned={distribution.burned}"
        )
        return record.model_copy(
            update={"ledger": graduated_ledger, "graduation": graduation, "pending_graduation": None}
        )
