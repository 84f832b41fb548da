"""
Graduation Evaluator

Pure predicates deciding whether a curve has earned migration to an AMM pool.

Normal graduation holds when either the market cap ``supply * price_at_supply(supply)``
reaches the graduation threshold, or the base reserves reach half of it. The two branches
are alternatives: a price spike on thin reserves can graduate a curve on market cap alone.
That is a known manipulation surface and is kept as-is.

Emergency graduation is an escape valve for stalled curves: once enough blocks have passed
since launch, much lower supply and reserve floors apply.
"""
from mcp.server.fastmcp.utilities.logging import get_logger

from mcp_bonding_curve import config
from mcp_bonding_curve.pricing import BPS_DENOMINATOR, market_cap, price_at_supply
from mcp_bonding_curve.schemas import CurveParams, PoolSeed

logger = get_logger(__name__)

POOL_PRICE_SCALE = 10**9
AMM_TOKEN_LIQUIDITY_RATIO_BPS = 5000


def meets_graduation_criteria(supply: int, reserves: int, params: CurveParams) -> bool:
    """True if the market cap or the reserves branch reaches its threshold."""
    cap = market_cap(supply, params)
    if cap >= params.graduation_threshold:
        logger.debug(f"Market cap branch met: market_cap={cap}, threshold={params.graduation_threshold}")
        return True

    if reserves >= params.graduation_threshold // 2:
        logger.debug(f"Reserve branch met: reserves={reserves}, threshold={params.graduation_threshold}")
        return True

    return False


def emergency_graduation(current_block: int, launch_block: int, supply: int, reserves: int) -> bool:
    """True once the emergency window has elapsed and the lowered floors are met."""
    blocks_elapsed = max(current_block - launch_block, 0)
    if blocks_elapsed < config.EMERGENCY_GRADUATION_BLOCKS:
        return False
    return supply >= config.EMERGENCY_MIN_SUPPLY and reserves >= config.EMERGENCY_MIN_RESERVES


def compute_pool_seed(supply: int, reserves: int, params: CurveParams) -> PoolSeed:
    """
    Computes the liquidity pledged to the AMM pool.

    All base reserves go into the pool. The token leg is sized so the pool's implied price
    matches the curve's spot price, capped at half of max supply.
    """
    base_liquidity = reserves
    spot_price = price_at_supply(supply, params)
    price_matched = base_liquidity * POOL_PRICE_SCALE // spot_price
    token_cap = params.max_supply * AMM_TOKEN_LIQUIDITY_RATIO_BPS // BPS_DENOMINATOR
    return PoolSeed(token_liquidity=min(price_matched, token_cap), base_liquidity=base_liquidity)


def check_liquidity_sufficiency(supply: int, reserves: int, params: CurveParams) -> bool:
    """True if graduating now would seed the pool with meaningful liquidity on both legs."""
    seed = compute_pool_seed(supply, reserves, params)
    return seed.token_liquidity >= config.MIN_TOKEN_LIQUIDITY and seed.base_liquidity >= config.MIN_BASE_LIQUIDITY
