import pytest

from mcp_bonding_curve import errors
from mcp_bonding_curve.pricing import (
    PRICE_CAP,
    calculate_buy_price,
    calculate_sell_price,
    market_cap,
    price_at_supply,
    quantity_for_payment,
)
from mcp_bonding_curve.schemas import U128_MAX, CurveParams


def test_price_at_zero_supply_is_base_price(params):
    assert price_at_supply(0, params) == 1_000_000


def test_partial_chunk_uses_dampened_growth(params):
    # One unit outside a chunk grows by a tenth of the chunk rate.
    assert price_at_supply(1, params) == 1_001_500
    assert price_at_supply(10, params) == 1_015_000


def test_price_never_decreases_with_supply(params):
    supplies = list(range(0, 300)) + [1_000, 10_000, 45_000, 50_000, 1_000_000_000]
    prices = [price_at_supply(s, params) for s in supplies]
    assert prices == sorted(prices)


def test_price_saturates_at_cap(params):
    assert price_at_supply(100_000, params) == PRICE_CAP
    assert price_at_supply(100_007, params) == PRICE_CAP
    assert price_at_supply(params.max_supply, params) == PRICE_CAP


def test_flat_growth_stops_early():
    flat = CurveParams(base_price=1, growth_rate_bps=1, graduation_threshold=0, max_supply=10**30)
    assert price_at_supply(10**30, flat) == 1
    assert price_at_supply(15, flat) == 1


def test_first_token_price_near_base_price(params):
    cost = calculate_buy_price(0, 1, params)
    assert 1_000_000 <= cost < 2_000_000


def test_buy_cost_is_convex(params):
    assert calculate_buy_price(0, 1000, params) > 100 * calculate_buy_price(0, 10, params)


def test_buy_zero_quantity_is_free(params):
    assert calculate_buy_price(500, 0, params) == 0
    assert calculate_sell_price(500, 0, params) == 0


def test_buy_uses_trapezoidal_average(params):
    assert calculate_buy_price(0, 10, params) == (1_000_000 + 1_015_000) // 2 * 10


def test_buy_past_max_supply_is_rejected(params):
    with pytest.raises(errors.ExceedsMaxSupplyError):
        calculate_buy_price(params.max_supply - 5, 6, params)

    assert calculate_buy_price(params.max_supply - 5, 5, params) == PRICE_CAP * 5


def test_buy_cost_overflow_raises(params):
    with pytest.raises(errors.ArithmeticOverflowError):
        calculate_buy_price(params.max_supply - 2000, 2000, params)


def test_sell_more_than_supply_is_rejected(params):
    with pytest.raises(errors.InsufficientSupplyError):
        calculate_sell_price(10, 11, params)

    assert calculate_sell_price(10, 10, params) > 0


def test_sell_is_discounted_against_buy(params):
    for supply, qty in [(10, 10), (1_000, 100), (5_000, 37)]:
        buy = calculate_buy_price(supply - qty, qty, params)
        sell = calculate_sell_price(supply, qty, params)
        assert sell < buy
        # 1% discount, up to one base unit of rounding per token
        assert abs(sell * 100 - buy * 99) <= 100 * qty


def test_round_trip_always_loses(params):
    cost = calculate_buy_price(0, 10, params)
    payout = calculate_sell_price(10, 10, params)
    assert cost == 10_075_000
    assert payout == 9_974_250


@pytest.mark.parametrize("payment", [1_000_750, 10_075_000, 123_456_789, 5_000_000_000])
def test_quantity_for_payment_is_largest_affordable(params, payment):
    qty = quantity_for_payment(0, payment, params)
    assert calculate_buy_price(0, qty, params) <= payment
    assert calculate_buy_price(0, qty + 1, params) > payment


def test_quantity_for_payment_from_nonzero_supply(params):
    qty = quantity_for_payment(250, 50_000_000, params)
    assert calculate_buy_price(250, qty, params) <= 50_000_000
    assert calculate_buy_price(250, qty + 1, params) > 50_000_000


def test_quantity_for_payment_too_small(params):
    with pytest.raises(errors.InsufficientPaymentError) as exc_info:
        quantity_for_payment(0, 1, params)
    assert exc_info.value.requested == calculate_buy_price(0, 1, params)
    assert exc_info.value.available == 1


def test_quantity_for_payment_at_max_supply(params):
    with pytest.raises(errors.ExceedsMaxSupplyError):
        quantity_for_payment(params.max_supply, 10**12, params)


def test_quantity_for_payment_skips_overflowing_quantities(params):
    # Every price here is PRICE_CAP, so more than 1000 tokens overflows the cost.
    assert quantity_for_payment(params.max_supply - 5, U128_MAX, params) == 5
    assert quantity_for_payment(params.max_supply - 2000, U128_MAX, params) == 1000


def test_market_cap_saturates(params):
    assert market_cap(10, params) == 10 * 1_015_000
    assert market_cap(params.max_supply, params) == U128_MAX


def test_negative_inputs_are_rejected(params):
    with pytest.raises(errors.InvalidAmountError):
        calculate_buy_price(0, -5, params)
    with pytest.raises(errors.InvalidAmountError):
        calculate_buy_price(-1, 5, params)
    with pytest.raises(errors.InvalidAmountError):
        calculate_sell_price(10, -2_000, params)
    with pytest.raises(errors.InvalidAmountError):
        quantity_for_payment(0, -1, params)
    with pytest.raises(errors.InvalidAmountError):
        price_at_supply(-5, params)


def test_quantity_beyond_u128_is_rejected(params):
    with pytest.raises(errors.InvalidAmountError):
        calculate_sell_price(10, U128_MAX + 1, params)
