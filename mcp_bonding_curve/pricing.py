"""
Token Pricing Engine with an Exponential Bonding Curve

This module converts between token quantities and base currency amounts under the curve
``price = base_price * (1 + growth_rate_bps / 10000) ^ supply``. It holds no state: every
function takes the current supply and the curve parameters and returns an integer amount.

Price Calculation Process:
1. Approximate the marginal price at a supply level with chunked fixed-point multiplication
2. Estimate the cost of a supply window with the trapezoidal rule
3. Apply a 1% discount to sells so a buy/sell round trip always loses
4. Invert cost to quantity with a binary search over the remaining supply

Arithmetic:
- Marginal prices saturate at ``U128_MAX // 1000``; past that point every supply level
  prices at the cap
- Costs and payouts use checked arithmetic and raise ArithmeticOverflowError instead of
  wrapping
"""
from functools import lru_cache

from mcp.server.fastmcp.utilities.logging import get_logger

from mcp_bonding_curve.errors import (
    ArithmeticOverflowError,
    ExceedsMaxSupplyError,
    InsufficientPaymentError,
    InsufficientSupplyError,
    InvalidAmountError,
)
from mcp_bonding_curve.schemas import CurveParams, U128_MAX

logger = get_logger(__name__)

BPS_DENOMINATOR = 10_000
GROWTH_CHUNK = 10
PRICE_CAP = U128_MAX // 1000
SELL_DISCOUNT_NUMERATOR = 99
SELL_DISCOUNT_DENOMINATOR = 100


def require_u128(name: str, value: int) -> int:
    """Raises InvalidAmountError unless ``value`` lies in the unsigned 128-bit range."""
    if not 0 <= value <= U128_MAX:
        raise InvalidAmountError(f"{name} must be between 0 and {U128_MAX}, got {value}", requested=value)
    return value


def saturating_mul(a: int, b: int) -> int:
    """Multiplies, clamping the result to U128_MAX."""
    return min(a * b, U128_MAX)


def checked_add(a: int, b: int) -> int:
    """Adds, raising ArithmeticOverflowError past U128_MAX."""
    result = a + b
    if result > U128_MAX:
        raise ArithmeticOverflowError(f"Addition overflow: {a} + {b}", requested=result, available=U128_MAX)
    return result


def checked_mul(a: int, b: int) -> int:
    """Multiplies, raising ArithmeticOverflowError past U128_MAX."""
    result = a * b
    if result > U128_MAX:
        raise ArithmeticOverflowError(f"Multiplication overflow: {a} * {b}", requested=result, available=U128_MAX)
    return result


def _power_approximation(base: int, numerator: int, exponent: int, denominator: int) -> int:
    """
    Approximates ``base * (numerator / denominator) ^ exponent``.

    Units that do not fill a chunk are consumed first, one at a time, with the dampened
    factor ``denominator + (numerator - denominator) / 10``. The rest is consumed ten units
    per step with the full factor. The running result is clamped to PRICE_CAP after every
    step and the cap is returned as soon as it is reached.
    """
    result = base
    remaining = exponent
    fractional = denominator + (numerator - denominator) // 10

    while remaining > 0:
        if remaining % GROWTH_CHUNK == 0:
            stepped = saturating_mul(result, numerator) // denominator
            remaining -= GROWTH_CHUNK
            if stepped == result:
                # Only full chunks remain and they can no longer move the result.
                break
            result = stepped
        else:
            result = saturating_mul(result, fractional) // denominator
            remaining -= 1

        if result > PRICE_CAP:
            return PRICE_CAP

    return result


@lru_cache(maxsize=4096)
def price_at_supply(supply: int, params: CurveParams) -> int:
    """Returns the marginal price of the next token at ``supply``."""
    require_u128("supply", supply)
    if supply == 0:
        return params.base_price
    growth_factor = BPS_DENOMINATOR + params.growth_rate_bps
    return _power_approximation(params.base_price, growth_factor, supply, BPS_DENOMINATOR)


def calculate_buy_price(current_supply: int, qty: int, params: CurveParams) -> int:
    """
    Calculates the cost of minting ``qty`` tokens on top of ``current_supply``.

    Args:
        current_supply: Tokens already issued by the curve.
        qty: Tokens to buy.
        params: Curve parameters.

    Returns:
        The total cost in base currency units.

    Raises:
        InvalidAmountError: If ``current_supply`` or ``qty`` is outside the 128-bit range.
        ExceedsMaxSupplyError: If the purchase would push supply past max_supply.
        ArithmeticOverflowError: If the cost leaves the 128-bit range.
    """
    require_u128("current_supply", current_supply)
    require_u128("qty", qty)
    if qty == 0:
        return 0

    new_supply = checked_add(current_supply, qty)
    if new_supply > params.max_supply:
        raise ExceedsMaxSupplyError(
            f"Purchase of {qty} tokens would exceed max supply ({new_supply} > {params.max_supply})",
            requested=qty,
            available=max(params.max_supply - current_supply, 0),
        )

    start_price = price_at_supply(current_supply, params)
    end_price = price_at_supply(new_supply, params)
    average_price = checked_add(start_price, end_price) // 2
    return checked_mul(average_price, qty)


def calculate_sell_price(current_supply: int, qty: int, params: CurveParams) -> int:
    """
    Calculates the payout for burning ``qty`` tokens from ``current_supply``.

    The trapezoidal average over ``[current_supply - qty, current_supply]`` is discounted by
    1% relative to the symmetric buy.

    Raises:
        InvalidAmountError: If ``current_supply`` or ``qty`` is outside the 128-bit range.
        InsufficientSupplyError: If ``qty`` exceeds the current supply.
        ArithmeticOverflowError: If the payout leaves the 128-bit range.
    """
    require_u128("current_supply", current_supply)
    require_u128("qty", qty)
    if qty == 0:
        return 0

    if qty > current_supply:
        raise InsufficientSupplyError(
            f"Cannot sell {qty} tokens, only {current_supply} in circulation",
            requested=qty,
            available=current_supply,
        )

    new_supply = current_supply - qty
    start_price = price_at_supply(new_supply, params)
    end_price = price_at_supply(current_supply, params)
    average_price = checked_add(start_price, end_price) // 2
    discounted_price = checked_mul(average_price, SELL_DISCOUNT_NUMERATOR) // SELL_DISCOUNT_DENOMINATOR
    return checked_mul(discounted_price, qty)


def quantity_for_payment(current_supply: int, payment: int, params: CurveParams) -> int:
    """
    Finds the largest quantity whose buy price does not exceed ``payment``.

    Buy cost never decreases as quantity grows, so a binary search over
    ``[0, max_supply - current_supply]`` with calculate_buy_price as the oracle finds the
    boundary. Quantities whose cost overflows are treated as unaffordable.

    Raises:
        ExceedsMaxSupplyError: If the curve has no supply left to sell.
        InsufficientPaymentError: If ``payment`` cannot buy a single token.
    """
    require_u128("current_supply", current_supply)
    require_u128("payment", payment)
    remaining = params.max_supply - current_supply
    if remaining <= 0:
        raise ExceedsMaxSupplyError(
            "Curve has reached its max supply",
            requested=1,
            available=0,
        )

    low, high = 0, remaining
    best = 0
    while low <= high:
        mid = (low + high) // 2
        try:
            affordable = calculate_buy_price(current_supply, mid, params) <= payment
        except ArithmeticOverflowError:
            affordable = False

        if affordable:
            best = mid
            low = mid + 1
        else:
            high = mid - 1

    if best == 0:
        required = calculate_buy_price(current_supply, 1, params)
        raise InsufficientPaymentError(
            f"Payment of {payment} cannot buy a single token (requires {required})",
            requested=required,
            available=payment,
        )

    logger.debug(f"Resolved payment={payment} at supply={current_supply} to quantity={best}")
    return best


def market_cap(supply: int, params: CurveParams) -> int:
    """Saturating ``supply * price_at_supply(supply)``."""
    return saturating_mul(supply, price_at_supply(supply, params))
