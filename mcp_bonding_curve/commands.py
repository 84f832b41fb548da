"""
Curve Commands

Tagged-union command type for the operations a host routes to a curve. Each command is a
pydantic model with a literal ``op`` discriminator, so decoding a payload either yields
exactly one known command or fails validation.
"""
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from mcp_bonding_curve.curve import BondingCurve
from mcp_bonding_curve.errors import ValidationError
from mcp_bonding_curve.schemas import (
    U128,
    AssetId,
    CallResult,
    CurveParams,
    ExecutionContext,
    LpDistributionStrategy,
)


class InitializeCommand(BaseModel):
    op: Literal["initialize"] = "initialize"
    params: CurveParams
    lp_strategy: LpDistributionStrategy = LpDistributionStrategy.burn_all
    dao_address: Optional[AssetId] = None


class BuyCommand(BaseModel):
    op: Literal["buy"] = "buy"
    min_tokens_out: U128 = 0


class SellCommand(BaseModel):
    op: Literal["sell"] = "sell"
    token_amount: U128
    min_base_out: U128 = 0


class GetBuyQuoteCommand(BaseModel):
    op: Literal["get_buy_quote"] = "get_buy_quote"
    token_amount: U128


class GetSellQuoteCommand(BaseModel):
    op: Literal["get_sell_quote"] = "get_sell_quote"
    token_amount: U128


class GraduateCommand(BaseModel):
    op: Literal["graduate"] = "graduate"


class GetCurveStateCommand(BaseModel):
    op: Literal["get_curve_state"] = "get_curve_state"


Command = Annotated[
    Union[
        InitializeCommand,
        BuyCommand,
        SellCommand,
        GetBuyQuoteCommand,
        GetSellQuoteCommand,
        GraduateCommand,
        GetCurveStateCommand,
    ],
    Field(discriminator="op"),
]

_command_adapter = TypeAdapter(Command)


def parse_command(payload: Dict[str, Any]):
    """Decodes a command payload, raising ValidationError on unknown or malformed input."""
    try:
        return _command_adapter.validate_python(payload)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid command: {e}") from e


def dispatch(curve: BondingCurve, command, context: ExecutionContext) -> CallResult:
    """Routes ``command`` to the matching curve operation."""
    if isinstance(command, InitializeCommand):
        return curve.initialize(command.params, command.lp_strategy, context, dao_address=command.dao_address)
    if isinstance(command, BuyCommand):
        return curve.buy(command.min_tokens_out, context)
    if isinstance(command, SellCommand):
        return curve.sell(command.token_amount, command.min_base_out, context)
    if isinstance(command, GetBuyQuoteCommand):
        return CallResult(data={"cost": curve.get_buy_quote(command.token_amount)})
    if isinstance(command, GetSellQuoteCommand):
        return CallResult(data={"payout": curve.get_sell_quote(command.token_amount)})
    if isinstance(command, GraduateCommand):
        return curve.graduate(context)
    if isinstance(command, GetCurveStateCommand):
        return CallResult(data=curve.get_curve_state().model_dump(mode="json"))
    raise ValidationError(f"Unsupported command type: {type(command).__name__}")
