"""
Pydantic Data Models and Validation Schemas

This module defines the data models for the bonding curve system using Pydantic. It provides
type safety and range validation for every value that crosses a module boundary: curve
parameters, the reserve ledger, graduation artifacts, and the host execution context.

Key Components:
- AssetId: Opaque "block:tx" identity for assets, pools, callers and contracts
- BaseCurrency Enum: The two supported reserve currencies
- LpDistributionStrategy Enum: The four fixed LP token distribution strategies
- CurveParams: Immutable pricing and graduation parameters
- ReserveLedger: Supply, reserves and the write-once graduated flag
- PoolSeed / LpDistribution / GraduationRecord: Graduation artifacts
- PendingGraduation: Checkpoint that makes a retried graduation idempotent
- ExecutionContext / AssetTransfer / CallResult: Host-facing request and response shapes
- CurveState / CurveRecord: Read model and persisted form of a curve

Numeric Fields:
- All amounts are integers constrained to the unsigned 128-bit range
- Block heights are constrained to the unsigned 64-bit range
"""
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

U128_MAX = 2**128 - 1
U64_MAX = 2**64 - 1

U128 = Annotated[int, Field(ge=0, le=U128_MAX)]
PositiveU128 = Annotated[int, Field(gt=0, le=U128_MAX)]
U64 = Annotated[int, Field(ge=0, le=U64_MAX)]


class AssetId(BaseModel):
    """Opaque identity of an asset, pool, account or contract."""

    model_config = ConfigDict(frozen=True)

    block: U128
    tx: U128

    @classmethod
    def from_string(cls, value: str) -> "AssetId":
        """Parses the "block:tx" form."""
        parts = value.strip().split(":")
        if len(parts) != 2:
            raise ValueError(f"Asset id must look like 'block:tx', got '{value}'")
        return cls(block=int(parts[0]), tx=int(parts[1]))

    def is_zero(self) -> bool:
        return self.block == 0 and self.tx == 0

    def __str__(self) -> str:
        return f"{self.block}:{self.tx}"


ZERO_ID = AssetId(block=0, tx=0)


class BaseCurrency(str, Enum):
    busd = "busd"
    frbtc = "frbtc"

    @property
    def asset_id(self) -> AssetId:
        if self is BaseCurrency.busd:
            return AssetId(block=2, tx=56801)
        return AssetId(block=32, tx=0)


class LpDistributionStrategy(str, Enum):
    burn_all = "burn_all"
    community_rewards = "community_rewards"
    creator_allocation = "creator_allocation"
    dao_governance = "dao_governance"

    @classmethod
    def from_selector(cls, selector: int) -> "LpDistributionStrategy":
        """Maps the numeric selector (0-3) used by hosts onto a strategy."""
        strategies = list(cls)
        if not 0 <= selector < len(strategies):
            raise ValueError(f"Invalid LP distribution strategy selector {selector} (expected 0-3)")
        return strategies[selector]

    @property
    def selector(self) -> int:
        return list(LpDistributionStrategy).index(self)


class CurveParams(BaseModel):
    """Pricing and graduation parameters, fixed once a curve is initialized."""

    model_config = ConfigDict(frozen=True)

    base_price: PositiveU128
    growth_rate_bps: PositiveU128
    graduation_threshold: U128
    base_currency: BaseCurrency = BaseCurrency.busd
    max_supply: PositiveU128


class ReserveLedger(BaseModel):
    """Supply and reserve accounting for one curve.

    Ledgers are replaced wholesale (``model_copy(update=...)``) rather than edited in place,
    so a failed operation can never leave a half-written ledger behind.
    """

    model_config = ConfigDict(frozen=True)

    current_supply: U128 = 0
    base_reserves: U128 = 0
    graduated: bool = False
    graduation_block: Optional[U64] = None


class PoolSeed(BaseModel):
    model_config = ConfigDict(frozen=True)

    token_liquidity: U128
    base_liquidity: U128


class LpAllocation(BaseModel):
    recipient: AssetId
    amount: U128


class LpDistribution(BaseModel):
    """Split of the minted LP tokens between burn and recipients."""

    strategy: LpDistributionStrategy
    total: U128
    burned: U128
    allocations: List[LpAllocation] = []

    @property
    def distributed(self) -> int:
        return sum(allocation.amount for allocation in self.allocations)

    @model_validator(mode="after")
    def _check_conservation(self) -> "LpDistribution":
        if self.burned + self.distributed != self.total:
            raise ValueError("LP distribution must account for every minted LP token")
        return self


class GraduationRecord(BaseModel):
    """Immutable record of a completed graduation."""

    model_config = ConfigDict(frozen=True)

    pool_address: AssetId
    lp_tokens_total: U128
    distribution_strategy: LpDistributionStrategy
    seed: PoolSeed
    distribution: LpDistribution
    graduation_block: U64


class PendingGraduation(BaseModel):
    """Checkpoint written before the first external call of a graduation attempt."""

    idempotency_key: str
    seed: PoolSeed
    pool_address: Optional[AssetId] = None
    liquidity_transferred: bool = False


class AssetTransfer(BaseModel):
    id: AssetId
    value: U128


class ExecutionContext(BaseModel):
    """What the host tells the curve about the current invocation."""

    caller: AssetId
    myself: AssetId
    block_height: U64 = 0
    incoming: List[AssetTransfer] = []

    def incoming_amount(self, asset: AssetId) -> int:
        return sum(transfer.value for transfer in self.incoming if transfer.id == asset)


class CallResult(BaseModel):
    transfers: List[AssetTransfer] = []
    data: Dict[str, Any] = {}


class CurveState(BaseModel):
    curve_id: str
    current_supply: int
    base_reserves: int
    graduated: bool
    pool_address: Optional[str] = None
    graduation_block: Optional[int] = None
    lp_strategy: LpDistributionStrategy
    spot_price: int
    market_cap: int
    meets_graduation_criteria: bool
    liquidity_sufficient: bool


class CurveRecord(BaseModel):
    """Everything a curve persists between invocations."""

    curve_id: str
    params: Optional[CurveParams] = None
    lp_strategy: LpDistributionStrategy = LpDistributionStrategy.burn_all
    ledger: ReserveLedger = ReserveLedger()
    token_id: Optional[AssetId] = None
    creator: Optional[AssetId] = None
    dao_address: Optional[AssetId] = None
    launch_block: U64 = 0
    holders: Dict[str, U128] = {}
    pending_graduation: Optional[PendingGraduation] = None
    graduation: Optional[GraduationRecord] = None

    @field_validator("curve_id")
    @classmethod
    def _check_curve_id(cls, value: str) -> str:
        if not value or len(value) > 100:
            raise ValueError("Curve id must be a non-empty string of at most 100 characters")
        return value

    @model_validator(mode="after")
    def _check_graduation_consistency(self) -> "CurveRecord":
        if self.ledger.graduated != (self.graduation is not None):
            raise ValueError("A graduation record exists if and only if the ledger is graduated")
        if self.params is not None and self.ledger.current_supply > self.params.max_supply:
            raise ValueError("Current supply exceeds max supply")
        return self
