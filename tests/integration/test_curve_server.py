import json
from unittest.mock import MagicMock, patch

import pytest

from mcp_bonding_curve import curve_manager, errors, server

TOKEN_ID = "2:777"
CREATOR = "5:1"
BUYER = "5:2"


async def initialize(curve_id="main_curve", lp_strategy=0, dao_address="", graduation_threshold=100_000_000):
    return await server.initialize_curve(
        context=MagicMock(),
        curve_id=curve_id,
        token_id=TOKEN_ID,
        caller=CREATOR,
        block_height=10,
        base_price=1_000_000,
        growth_rate_bps=150,
        graduation_threshold=graduation_threshold,
        max_supply=1_000_000_000,
        base_currency="busd",
        lp_strategy=lp_strategy,
        dao_address=dao_address,
    )


async def buy(payment_amount, min_tokens_out=0, curve_id="main_curve"):
    return await server.buy_tokens(
        context=MagicMock(),
        curve_id=curve_id,
        payment_amount=payment_amount,
        min_tokens_out=min_tokens_out,
        caller=BUYER,
        block_height=20,
    )


@pytest.mark.asyncio
async def test_initialize_curve():
    result = await initialize()
    assert result == "Curve 'main_curve' initialized with burn_all LP distribution."

    record = curve_manager.get_curve("main_curve").record
    assert str(record.token_id) == TOKEN_ID
    assert record.params.base_price == 1_000_000


@pytest.mark.asyncio
async def test_initialize_twice():
    await initialize()
    result = await initialize()
    assert "already initialized" in result


@pytest.mark.asyncio
async def test_initialize_rejects_bad_parameters():
    result = await initialize(lp_strategy=7)
    assert result.startswith("Error:")
    assert curve_manager.get_curve("main_curve") is None


@pytest.mark.asyncio
async def test_buy_and_sell_tokens():
    await initialize()

    bought = await buy(10_075_000, min_tokens_out=10)
    assert bought == "Successfully purchased 10 tokens for 10075000 base units."

    sold = await server.sell_tokens(
        context=MagicMock(),
        curve_id="main_curve",
        token_amount=10,
        min_base_out=0,
        caller=BUYER,
        block_height=30,
    )
    assert sold == "Successfully sold 10 tokens for 9974250 base units."


@pytest.mark.asyncio
async def test_buy_slippage_message():
    await initialize()
    result = await buy(10_075_000, min_tokens_out=11)
    assert result.startswith("Slippage exceeded")


@pytest.mark.asyncio
async def test_buy_on_unknown_curve():
    result = await buy(10_075_000, curve_id="nope")
    assert result == "Curve 'nope' is not initialized"


@pytest.mark.asyncio
async def test_quotes():
    await initialize()

    buy_quote = json.loads(await server.get_buy_quote(context=MagicMock(), curve_id="main_curve", token_amount=10))
    assert buy_quote == {"curve_id": "main_curve", "token_amount": 10, "cost": 10_075_000}

    sell_quote = await server.get_sell_quote(context=MagicMock(), curve_id="main_curve", token_amount=1)
    assert sell_quote.startswith("Error: Cannot sell 1 tokens")


@pytest.mark.asyncio
async def test_buy_graduates_curve():
    await initialize()

    result = await buy(60_000_000)
    assert "Curve graduated to pool" in result

    state = json.loads(await server.get_curve_state(context=MagicMock(), curve_id="main_curve"))
    assert state["graduated"] is True
    assert state["base_reserves"] == 0
    assert state["pool_address"] is not None

    again = await buy(10_075_000)
    assert "has graduated" in again


@pytest.mark.asyncio
async def test_manual_graduate():
    await initialize(lp_strategy=3, dao_address="9:9")
    with patch("mcp_bonding_curve.config.AUTO_GRADUATE", False):
        await buy(60_000_000)

    result = await server.graduate(context=MagicMock(), curve_id="main_curve", caller=CREATOR, block_height=40)
    assert result.startswith("Curve 'main_curve' graduated to pool")

    graduation = curve_manager.get_curve("main_curve").record.graduation
    assert graduation.distribution.allocations[0].recipient.tx == 9
    assert f"{graduation.distribution.burned} burned" in result


@pytest.mark.asyncio
async def test_graduate_before_criteria():
    await initialize()
    result = await server.graduate(context=MagicMock(), curve_id="main_curve", caller=CREATOR, block_height=40)
    assert "does not meet graduation criteria" in result


@pytest.mark.asyncio
async def test_get_curve_state():
    await initialize()
    await buy(10_075_000)

    state = json.loads(await server.get_curve_state(context=MagicMock(), curve_id="main_curve"))
    assert state["current_supply"] == 10
    assert state["base_reserves"] == 10_075_000
    assert state["spot_price"] == 1_015_000
    assert state["graduated"] is False


@pytest.mark.asyncio
async def test_execute_command():
    await initialize()
    context_json = json.dumps(
        {
            "caller": {"block": 5, "tx": 2},
            "myself": {"block": 2, "tx": 777},
            "block_height": 25,
            "incoming": [{"id": {"block": 2, "tx": 56801}, "value": 10_075_000}],
        }
    )

    result = json.loads(
        await server.execute_command(
            context=MagicMock(),
            curve_id="main_curve",
            command_json=json.dumps({"op": "buy", "min_tokens_out": 10}),
            context_json=context_json,
        )
    )
    assert result["data"]["tokens_out"] == 10
    assert result["transfers"] == [{"id": {"block": 2, "tx": 777}, "value": 10}]


@pytest.mark.asyncio
async def test_execute_command_rejects_bad_payloads():
    await initialize()
    context_json = json.dumps({"caller": {"block": 5, "tx": 2}, "myself": {"block": 2, "tx": 777}})

    unknown = await server.execute_command(
        context=MagicMock(), curve_id="main_curve", command_json='{"op": "mint"}', context_json=context_json
    )
    assert unknown.startswith("Error: Invalid command")

    malformed = await server.execute_command(
        context=MagicMock(), curve_id="main_curve", command_json="{op", context_json=context_json
    )
    assert malformed.startswith("Error: Invalid JSON format")


@pytest.mark.asyncio
async def test_unexpected_errors_are_reported_generically():
    await initialize()
    with patch("mcp_bonding_curve.curve.BondingCurve.get_buy_quote", side_effect=RuntimeError("boom")):
        result = await server.get_buy_quote(context=MagicMock(), curve_id="main_curve", token_amount=1)
    assert result == "An unexpected error occurred while calculating the quote."


@pytest.mark.asyncio
async def test_domain_errors_are_returned_verbatim():
    await initialize()
    with patch("mcp_bonding_curve.curve.BondingCurve.buy", side_effect=errors.ArithmeticOverflowError("overflow")):
        result = await buy(10_075_000)
    assert result == "overflow"


@pytest.mark.asyncio
async def test_quotes_reject_negative_amounts():
    await initialize()

    buy_quote = await server.get_buy_quote(context=MagicMock(), curve_id="main_curve", token_amount=-5)
    assert buy_quote == "Error: token_amount must be a non-negative integer"

    sell_quote = await server.get_sell_quote(context=MagicMock(), curve_id="main_curve", token_amount=-5)
    assert sell_quote == "Error: token_amount must be a non-negative integer"


@pytest.mark.asyncio
async def test_trades_reject_negative_amounts():
    await initialize()
    await buy(10_075_000)

    sold = await server.sell_tokens(
        context=MagicMock(),
        curve_id="main_curve",
        token_amount=-2_000,
        min_base_out=0,
        caller=BUYER,
        block_height=30,
    )
    assert sold == "Error processing request: Invalid input parameters"

    bought = await buy(10_075_000, min_tokens_out=-1)
    assert bought == "Error processing request: Invalid input parameters"

    ledger = curve_manager.get_curve("main_curve").record.ledger
    assert ledger.current_supply == 10
    assert ledger.base_reserves == 10_075_000
