"""
Bonding Curve Server - MCP Server Implementation

This module exposes bonding curves to MCP clients. Each tool takes the decoded arguments of
one curve operation plus the host execution context (caller, block height, attached
payment), runs the operation against the curve registry, and renders the outcome as text.

Tools:
- initialize_curve: one-time curve setup
- buy_tokens / sell_tokens: trades with slippage protection
- get_buy_quote / get_sell_quote: pure price reads
- graduate: manual migration to the AMM pool
- get_curve_state: supply, reserves, graduation status and pool handle
- execute_command: raw tagged-union command payloads

Domain errors are returned as their message; unexpected errors are logged with a traceback
and reported generically.
"""

import json
import time
from typing import List, Optional

from pydantic import Field, ValidationError

from mcp.server.fastmcp import Context, FastMCP
from mcp.server.fastmcp.utilities.logging import get_logger

from mcp_bonding_curve import config
from mcp_bonding_curve import curve_manager
from mcp_bonding_curve.commands import dispatch, parse_command
from mcp_bonding_curve.curve import BondingCurve
from mcp_bonding_curve.errors import BondingCurveError, NotInitializedError
from mcp_bonding_curve.errors import ValidationError as CommandValidationError
from mcp_bonding_curve.schemas import (
    AssetId,
    AssetTransfer,
    BaseCurrency,
    CurveParams,
    ExecutionContext,
    LpDistributionStrategy,
    U128_MAX,
)

# Constants
MAX_CURVE_ID_LENGTH = 100
MAX_COMMAND_LENGTH = 10_000

logger = get_logger(__name__)

# --- Server Setup ---
mcp = FastMCP(name="Bonding Curve Server")


def validate_curve_id(curve_id: str) -> None:
    """Raises ValueError for an empty or oversized curve id."""
    if not curve_id or not isinstance(curve_id, str):
        raise ValueError("Curve ID must be a non-empty string")
    if len(curve_id) > MAX_CURVE_ID_LENGTH:
        raise ValueError("Curve ID is too long")


def validate_amounts(**amounts: int) -> None:
    """
    Validate token and base currency amounts passed to a tool.

    Raises:
        ValueError: If any amount is not an integer in the unsigned 128-bit range
    """
    for name, amount in amounts.items():
        if not isinstance(amount, int) or amount < 0:
            raise ValueError(f"{name} must be a non-negative integer")
        if amount > U128_MAX:
            raise ValueError(f"{name} is too large")


def _initialized_curve(curve_id: str) -> BondingCurve:
    validate_curve_id(curve_id)
    curve = curve_manager.get_curve(curve_id)
    if curve is None or curve.record.params is None:
        raise NotInitializedError(f"Curve '{curve_id}' is not initialized")
    return curve


def _execution_context(
    curve: BondingCurve,
    caller: str,
    block_height: int,
    incoming: Optional[List[AssetTransfer]] = None,
) -> ExecutionContext:
    return ExecutionContext(
        caller=AssetId.from_string(caller),
        myself=curve.record.token_id,
        block_height=block_height,
        incoming=incoming or [],
    )


def log_operation_error(operation: str, curve_id: str, error: Exception, duration: float) -> None:
    """Log operation error with structured information."""
    logger.error(f"{operation} failed for curve '{curve_id}': {error}, duration: {duration:.3f}s")


# --- MCP Tools ---

@mcp.tool()
async def initialize_curve(
    context: Context,
    curve_id: str = Field(..., description="Identifier for the new curve."),
    token_id: str = Field(..., description="The curve token's asset id as 'block:tx'."),
    caller: str = Field(..., description="The creator's id as 'block:tx'."),
    block_height: int = Field(..., description="Current block height (launch block)."),
    base_price: int = Field(config.DEFAULT_BASE_PRICE, description="Price of the first token in base units."),
    growth_rate_bps: int = Field(config.DEFAULT_GROWTH_RATE_BPS, description="Growth per 10 tokens in basis points."),
    graduation_threshold: int = Field(config.DEFAULT_GRADUATION_THRESHOLD, description="Market cap that triggers graduation."),
    max_supply: int = Field(config.DEFAULT_MAX_SUPPLY, description="Maximum token supply."),
    base_currency: str = Field(config.DEFAULT_BASE_CURRENCY, description="Reserve currency: 'busd' or 'frbtc'."),
    lp_strategy: int = Field(config.DEFAULT_LP_STRATEGY, description="LP strategy: 0=burn all, 1=community, 2=creator, 3=DAO."),
    dao_address: str = Field(config.DEFAULT_DAO_ADDRESS, description="DAO id as 'block:tx' for the DAO strategy."),
) -> str:
    """Initializes a bonding curve with its pricing, graduation and LP distribution settings."""
    start_time = time.time()
    try:
        validate_curve_id(curve_id)
        params = CurveParams(
            base_price=base_price,
            growth_rate_bps=growth_rate_bps,
            graduation_threshold=graduation_threshold,
            max_supply=max_supply,
            base_currency=BaseCurrency(base_currency),
        )
        strategy = LpDistributionStrategy.from_selector(lp_strategy)
        dao = AssetId.from_string(dao_address) if dao_address else None
        execution_context = ExecutionContext(
            caller=AssetId.from_string(caller),
            myself=AssetId.from_string(token_id),
            block_height=block_height,
        )

        curve = curve_manager.get_or_create_curve(curve_id)
        curve.initialize(params, strategy, execution_context, dao_address=dao)
        return f"Curve '{curve_id}' initialized with {strategy.value} LP distribution."
    except ValidationError as e:
        log_operation_error("Initialization", curve_id, e, time.time() - start_time)
        return f"Error: Invalid curve parameters - {e}"
    except BondingCurveError as e:
        log_operation_error("Initialization", curve_id, e, time.time() - start_time)
        return str(e)
    except ValueError as e:
        log_operation_error("Initialization", curve_id, e, time.time() - start_time)
        return f"Error: {e}"
    except Exception as e:
        logger.exception(f"Unexpected error initializing curve {curve_id}: {e}")
        return "An unexpected server error occurred while initializing the curve."


@mcp.tool()
async def buy_tokens(
    context: Context,
    curve_id: str = Field(..., description="The curve ID."),
    payment_amount: int = Field(..., description="Attached base currency payment in base units."),
    min_tokens_out: int = Field(..., description="Minimum tokens to accept (slippage protection)."),
    caller: str = Field(..., description="The buyer's id as 'block:tx'."),
    block_height: int = Field(..., description="Current block height."),
) -> str:
    """
    Buys as many tokens as the attached payment affords.

    The payment is attached in the curve's base currency. If the purchase leaves the curve
    eligible for graduation, the migration to the AMM pool runs immediately afterwards.

    Returns:
        str: Success message with the minted amount, or the error message
    """
    start_time = time.time()
    try:
        validate_amounts(payment_amount=payment_amount, min_tokens_out=min_tokens_out)
        curve = _initialized_curve(curve_id)
        payment = AssetTransfer(id=curve.record.params.base_currency.asset_id, value=payment_amount)
        execution_context = _execution_context(curve, caller, block_height, [payment])

        result = curve.buy(min_tokens_out, execution_context)
        duration = time.time() - start_time
        logger.info(
            f"Token purchase completed for curve '{curve_id}': tokens_out={result.data['tokens_out']}, "
            f"payment={payment_amount}, duration={duration:.3f}s, caller={caller}"
        )
        message = f"Successfully purchased {result.data['tokens_out']} tokens for {payment_amount} base units."
        if result.data.get("graduated"):
            message += f" Curve graduated to pool {result.data['pool_address']}."
        return message
    except BondingCurveError as e:
        log_operation_error("Token purchase", curve_id, e, time.time() - start_time)
        return str(e)
    except (ValidationError, ValueError) as e:
        log_operation_error("Token purchase", curve_id, e, time.time() - start_time)
        return "Error processing request: Invalid input parameters"
    except Exception as e:
        logger.exception(f"Unexpected error buying tokens on curve {curve_id}: {e}")
        return "An unexpected server error occurred"


@mcp.tool()
async def sell_tokens(
    context: Context,
    curve_id: str = Field(..., description="The curve ID."),
    token_amount: int = Field(..., description="Tokens to sell back to the curve."),
    min_base_out: int = Field(..., description="Minimum payout to accept (slippage protection)."),
    caller: str = Field(..., description="The seller's id as 'block:tx'."),
    block_height: int = Field(..., description="Current block height."),
) -> str:
    """Sells tokens back to the curve for base currency."""
    start_time = time.time()
    try:
        validate_amounts(token_amount=token_amount, min_base_out=min_base_out)
        curve = _initialized_curve(curve_id)
        execution_context = _execution_context(
            curve, caller, block_height, [AssetTransfer(id=curve.record.token_id, value=token_amount)]
        )
        result = curve.sell(token_amount, min_base_out, execution_context)
        logger.info(
            f"Token sale completed for curve '{curve_id}': tokens_in={token_amount}, "
            f"payout={result.data['payout']}, duration={time.time() - start_time:.3f}s, caller={caller}"
        )
        return f"Successfully sold {token_amount} tokens for {result.data['payout']} base units."
    except BondingCurveError as e:
        log_operation_error("Token sale", curve_id, e, time.time() - start_time)
        return str(e)
    except (ValidationError, ValueError) as e:
        log_operation_error("Token sale", curve_id, e, time.time() - start_time)
        return "Error processing request: Invalid input parameters"
    except Exception as e:
        logger.exception(f"Unexpected error selling tokens on curve {curve_id}: {e}")
        return "An unexpected server error occurred"


@mcp.tool()
async def get_buy_quote(
    context: Context,
    curve_id: str = Field(..., description="The curve ID."),
    token_amount: int = Field(..., description="Tokens to quote."),
) -> str:
    """Quotes the cost of buying ``token_amount`` tokens at the current supply."""
    try:
        validate_amounts(token_amount=token_amount)
        curve = _initialized_curve(curve_id)
        cost = curve.get_buy_quote(token_amount)
        return json.dumps({"curve_id": curve_id, "token_amount": token_amount, "cost": cost})
    except (BondingCurveError, ValueError) as e:
        logger.warning(f"Buy quote failed for curve '{curve_id}': {e}")
        return f"Error: {e}"
    except Exception as e:
        logger.exception(f"Unexpected error quoting buy on curve {curve_id}: {e}")
        return "An unexpected error occurred while calculating the quote."


@mcp.tool()
async def get_sell_quote(
    context: Context,
    curve_id: str = Field(..., description="The curve ID."),
    token_amount: int = Field(..., description="Tokens to quote."),
) -> str:
    """Quotes the payout for selling ``token_amount`` tokens at the current supply."""
    try:
        validate_amounts(token_amount=token_amount)
        curve = _initialized_curve(curve_id)
        payout = curve.get_sell_quote(token_amount)
        return json.dumps({"curve_id": curve_id, "token_amount": token_amount, "payout": payout})
    except (BondingCurveError, ValueError) as e:
        logger.warning(f"Sell quote failed for curve '{curve_id}': {e}")
        return f"Error: {e}"
    except Exception as e:
        logger.exception(f"Unexpected error quoting sell on curve {curve_id}: {e}")
        return "An unexpected error occurred while calculating the quote."


@mcp.tool()
async def graduate(
    context: Context,
    curve_id: str = Field(..., description="The curve ID."),
    caller: str = Field(..., description="The caller's id as 'block:tx'."),
    block_height: int = Field(..., description="Current block height."),
) -> str:
    """Migrates an eligible curve to its AMM pool and distributes the LP tokens."""
    start_time = time.time()
    try:
        curve = _initialized_curve(curve_id)
        result = curve.graduate(_execution_context(curve, caller, block_height))
        data = result.data
        return (
            f"Curve '{curve_id}' graduated to pool {data['pool_address']}: "
            f"{data['lp_tokens_total']} LP tokens, {data['lp_burned']} burned, "
            f"{data['lp_distributed']} distributed."
        )
    except BondingCurveError as e:
        log_operation_error("Graduation", curve_id, e, time.time() - start_time)
        return str(e)
    except (ValidationError, ValueError) as e:
        log_operation_error("Graduation", curve_id, e, time.time() - start_time)
        return f"Error: {e}"
    except Exception as e:
        logger.exception(f"Unexpected error graduating curve {curve_id}: {e}")
        return "An unexpected server error occurred during graduation."


@mcp.tool()
async def get_curve_state(
    context: Context,
    curve_id: str = Field(..., description="The curve ID."),
) -> str:
    """Get supply, reserves, graduation status and pool handle of a curve."""
    try:
        curve = _initialized_curve(curve_id)
        return curve.get_curve_state().model_dump_json(indent=2)
    except (BondingCurveError, ValueError) as e:
        logger.warning(f"Curve state unavailable for '{curve_id}': {e}")
        return f"Error: {e}"
    except Exception as e:
        logger.exception(f"Unexpected error getting curve state for {curve_id}: {e}")
        return "An unexpected error occurred while retrieving the curve state."


@mcp.tool()
async def execute_command(
    context: Context,
    curve_id: str = Field(..., description="The curve ID."),
    command_json: str = Field(..., description="Command payload as JSON, e.g. {\"op\": \"graduate\"}."),
    context_json: str = Field(..., description="Execution context as JSON (caller, myself, block_height, incoming)."),
) -> str:
    """Runs a raw command payload against a curve and returns the call result as JSON."""
    try:
        validate_curve_id(curve_id)
        if len(command_json) > MAX_COMMAND_LENGTH:
            raise ValueError("Command JSON is too large (max 10KB)")
        command = parse_command(json.loads(command_json))
        execution_context = ExecutionContext.model_validate_json(context_json)
        curve = curve_manager.get_or_create_curve(curve_id)
        return dispatch(curve, command, execution_context).model_dump_json(indent=2)
    except json.JSONDecodeError:
        return "Error: Invalid JSON format provided. Please check your JSON syntax."
    except (CommandValidationError, ValidationError) as e:
        logger.error(f"Invalid command for curve '{curve_id}': {e}")
        return f"Error: Invalid command - {e}"
    except BondingCurveError as e:
        logger.warning(f"Command failed for curve '{curve_id}': {e}")
        return str(e)
    except ValueError as e:
        return f"Error: {e}"
    except Exception as e:
        logger.exception(f"Unexpected error executing command on curve {curve_id}: {e}")
        return "An unexpected server error occurred."


def main() -> None:
    startup_start = time.time()
    logger.info("Starting Bonding Curve MCP Server...")

    # The curve_manager loads state on import
    curve_count = len(curve_manager.curves)
    logger.info(f"Server startup completed in {time.time() - startup_start:.3f}s, loaded {curve_count} curve(s).")

    try:
        mcp.run(transport="stdio")
    except KeyboardInterrupt:
        logger.info("Server shutdown requested by user")


# --- Main Execution ---
if __name__ == "__main__":
    main()
