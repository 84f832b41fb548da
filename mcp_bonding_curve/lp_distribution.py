"""
LP Distribution Policy

Maps the total LP tokens minted at graduation onto a burn share and a distributed share.

| Strategy           | Burned | Distributed | Recipient                          |
|--------------------|--------|-------------|------------------------------------|
| burn_all           | 100%   | 0%          | -                                  |
| community_rewards  | 80%    | 20%         | top-N holders, pro rata to balance |
| creator_allocation | 90%    | 10%         | curve creator                      |
| dao_governance     | 80%    | 20%         | configured DAO address             |

The burn share is unconditional. Whatever of the distributed share cannot be handed out
(no eligible recipient, rounding dust) is burned too, so burned + distributed always equals
the total.
"""
from typing import Dict, List, Optional

from mcp.server.fastmcp.utilities.logging import get_logger

from mcp_bonding_curve.pricing import BPS_DENOMINATOR
from mcp_bonding_curve.schemas import AssetId, LpAllocation, LpDistribution, LpDistributionStrategy

logger = get_logger(__name__)

DISTRIBUTED_SHARE_BPS = {
    LpDistributionStrategy.burn_all: 0,
    LpDistributionStrategy.community_rewards: 2000,
    LpDistributionStrategy.creator_allocation: 1000,
    LpDistributionStrategy.dao_governance: 2000,
}


def top_holders(holders: Dict[str, int], limit: int) -> List[tuple]:
    """Returns up to ``limit`` (holder, balance) pairs with the largest positive balances."""
    ranked = sorted(
        ((holder, balance) for holder, balance in holders.items() if balance > 0),
        key=lambda item: (-item[1], item[0]),
    )
    return ranked[:limit]


def _pro_rata(share: int, ranked: List[tuple]) -> List[LpAllocation]:
    total_held = sum(balance for _, balance in ranked)
    allocations = []
    for holder, balance in ranked:
        amount = share * balance // total_held
        if amount > 0:
            allocations.append(LpAllocation(recipient=AssetId.from_string(holder), amount=amount))
    return allocations


def distribute_lp_tokens(
    total: int,
    strategy: LpDistributionStrategy,
    creator: Optional[AssetId] = None,
    dao_address: Optional[AssetId] = None,
    holders: Optional[Dict[str, int]] = None,
    top_n: int = 100,
) -> LpDistribution:
    """
    Splits ``total`` LP tokens according to ``strategy``.

    Args:
        total: LP tokens minted by the pool.
        strategy: The curve's configured distribution strategy.
        creator: Recipient for creator_allocation.
        dao_address: Recipient for dao_governance.
        holders: Holder id ("block:tx") to token balance, for community_rewards.
        top_n: How many of the largest holders community_rewards pays.

    Returns:
        An LpDistribution whose burned and allocated amounts sum to ``total``.
    """
    share = total * DISTRIBUTED_SHARE_BPS[strategy] // BPS_DENOMINATOR
    allocations: List[LpAllocation] = []

    if share > 0:
        if strategy == LpDistributionStrategy.community_rewards:
            ranked = top_holders(holders or {}, top_n)
            if ranked:
                allocations = _pro_rata(share, ranked)
            else:
                logger.warning("No eligible holders for community rewards, burning the distributed share")
        elif strategy == LpDistributionStrategy.creator_allocation:
            if creator is not None and not creator.is_zero():
                allocations = [LpAllocation(recipient=creator, amount=share)]
            else:
                logger.warning("No creator recorded for creator allocation, burning the distributed share")
        elif strategy == LpDistributionStrategy.dao_governance:
            if dao_address is not None and not dao_address.is_zero():
                allocations = [LpAllocation(recipient=dao_address, amount=share)]
            else:
                logger.warning("No DAO address configured for DAO governance, burning the distributed share")

    distributed = sum(allocation.amount for allocation in allocations)
    distribution = LpDistribution(
        strategy=strategy,
        total=total,
        burned=total - distributed,
        allocations=allocations,
    )
    logger.info(
        f"LP distribution: strategy={strategy.value}, total={total}, "
        f"burned={distribution.burned}, distributed={distributed}, recipients={len(allocations)}"
    )
    return distribution
