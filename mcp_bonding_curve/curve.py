"""
Bonding Curve Instance

One BondingCurve owns one CurveRecord (parameters, reserve ledger, holder book, graduation
state) and exposes the operations a host routes to it: initialize, buy, sell, quotes,
graduate and state reads.

Every mutating operation runs under the curve's re-entrant lock, computes its full result
first and then replaces the record in one assignment. An operation that raises leaves the
record untouched.
"""
import threading
from typing import Callable, Dict, Optional

from mcp.server.fastmcp.utilities.logging import get_logger

from mcp_bonding_curve import config
from mcp_bonding_curve import pricing
from mcp_bonding_curve.coordinator import GraduationCoordinator
from mcp_bonding_curve.errors import (
    AlreadyGraduatedError,
    AlreadyInitializedError,
    BondingCurveError,
    GraduationInProgressError,
    InsufficientPaymentError,
    InsufficientReservesError,
    NotInitializedError,
    SlippageExceededError,
)
from mcp_bonding_curve.graduation import check_liquidity_sufficiency, meets_graduation_criteria
from mcp_bonding_curve.schemas import (
    AssetId,
    AssetTransfer,
    CallResult,
    CurveParams,
    CurveRecord,
    CurveState,
    ExecutionContext,
    LpDistributionStrategy,
)

logger = get_logger(__name__)

Persister = Callable[[CurveRecord], None]


def _adjust_holder(holders: Dict[str, int], holder: AssetId, delta: int) -> Dict[str, int]:
    updated = dict(holders)
    balance = max(updated.get(str(holder), 0) + delta, 0)
    if balance:
        updated[str(holder)] = balance
    else:
        updated.pop(str(holder), None)
    return updated


class BondingCurve:
    """A single bonding curve and its reserve ledger."""

    def __init__(
        self,
        record: CurveRecord,
        coordinator: GraduationCoordinator,
        persist: Optional[Persister] = None,
    ):
        self.record = record
        self.coordinator = coordinator
        self._persist = persist
        self._lock = threading.RLock()

    @property
    def curve_id(self) -> str:
        return self.record.curve_id

    def _commit(self, record: CurveRecord) -> None:
        self.record = record
        if self._persist is not None:
            self._persist(record)

    def _require_params(self) -> CurveParams:
        if self.record.params is None:
            raise NotInitializedError(f"Curve '{self.curve_id}' is not initialized")
        return self.record.params

    def _require_tradable(self) -> CurveParams:
        params = self._require_params()
        if self.record.ledger.graduated:
            raise AlreadyGraduatedError(f"Curve '{self.curve_id}' has graduated to its AMM pool")
        if self.record.pending_graduation is not None:
            raise GraduationInProgressError(f"Curve '{self.curve_id}' has a graduation awaiting completion")
        return params

    # --- Operations ---

    def initialize(
        self,
        params: CurveParams,
        lp_strategy: LpDistributionStrategy,
        context: ExecutionContext,
        dao_address: Optional[AssetId] = None,
    ) -> CallResult:
        """Stores the curve parameters once and zeroes the ledger."""
        with self._lock:
            if self.record.params is not None:
                raise AlreadyInitializedError(f"Curve '{self.curve_id}' is already initialized")

            record = CurveRecord(
                curve_id=self.curve_id,
                params=params,
                lp_strategy=lp_strategy,
                token_id=context.myself,
                creator=context.caller,
                dao_address=dao_address,
                launch_block=context.block_height,
            )
            self._commit(record)
            logger.info(
                f"Initialized curve '{self.curve_id}': base_price={params.base_price}, "
                f"growth_rate_bps={params.growth_rate_bps}, max_supply={params.max_supply}, "
                f"base_currency={params.base_currency.value}, lp_strategy={lp_strategy.value}"
            )
            return CallResult(transfers=list(context.incoming), data={"initialized": True})

    def buy(self, min_tokens_out: int, context: ExecutionContext) -> CallResult:
        """
        Spends the attached base currency payment on as many tokens as it affords.

        Raises:
            AlreadyGraduatedError: If the curve has graduated.
            InvalidAmountError: If ``min_tokens_out`` is outside the 128-bit range.
            InsufficientPaymentError: If no payment is attached or it cannot buy one token.
            SlippageExceededError: If fewer than ``min_tokens_out`` tokens would be minted.
        """
        with self._lock:
            params = self._require_tradable()
            pricing.require_u128("min_tokens_out", min_tokens_out)
            ledger = self.record.ledger

            payment = context.incoming_amount(params.base_currency.asset_id)
            if payment == 0:
                raise InsufficientPaymentError(
                    f"No {params.base_currency.value} payment attached to buy",
                    requested=1,
                    available=0,
                )

            tokens_out = pricing.quantity_for_payment(ledger.current_supply, payment, params)
            if tokens_out < min_tokens_out:
                logger.warning(
                    f"Buy slippage on '{self.curve_id}': tokens_out={tokens_out}, min_tokens_out={min_tokens_out}"
                )
                raise SlippageExceededError(
                    f"Slippage exceeded: got {tokens_out} tokens, expected at least {min_tokens_out}",
                    requested=min_tokens_out,
                    available=tokens_out,
                )

            new_ledger = ledger.model_copy(
                update={
                    "current_supply": ledger.current_supply + tokens_out,
                    "base_reserves": pricing.checked_add(ledger.base_reserves, payment),
                }
            )
            result = CallResult(
                transfers=[AssetTransfer(id=context.myself, value=tokens_out)],
                data={"tokens_out": tokens_out, "payment": payment, "graduated": False},
            )
            self._commit(
                self.record.model_copy(
                    update={
                        "ledger": new_ledger,
                        "holders": _adjust_holder(self.record.holders, context.caller, tokens_out),
                    }
                )
            )
            logger.info(
                f"Buy on '{self.curve_id}': payment={payment}, tokens_out={tokens_out}, "
                f"supply={new_ledger.current_supply}, reserves={new_ledger.base_reserves}, caller={context.caller}"
            )

            if config.AUTO_GRADUATE and meets_graduation_criteria(
                new_ledger.current_supply, new_ledger.base_reserves, params
            ):
                try:
                    self.graduate(context)
                    result.data["graduated"] = True
                    result.data["pool_address"] = str(self.record.graduation.pool_address)
                except BondingCurveError as e:
                    logger.warning(f"Automatic graduation of '{self.curve_id}' failed, buy stands: {e}")

            return result

    def sell(self, token_amount: int, min_base_out: int, context: ExecutionContext) -> CallResult:
        """
        Burns ``token_amount`` tokens and pays out base currency from reserves.

        Raises:
            AlreadyGraduatedError: If the curve has graduated.
            InvalidAmountError: If an amount is outside the 128-bit range.
            InsufficientSupplyError: If ``token_amount`` exceeds the current supply.
            SlippageExceededError: If the payout is below ``min_base_out``.
            InsufficientReservesError: If the payout exceeds the reserves.
        """
        with self._lock:
            params = self._require_tradable()
            pricing.require_u128("token_amount", token_amount)
            pricing.require_u128("min_base_out", min_base_out)
            ledger = self.record.ledger

            payout = pricing.calculate_sell_price(ledger.current_supply, token_amount, params)
            if payout < min_base_out:
                logger.warning(f"Sell slippage on '{self.curve_id}': payout={payout}, min_base_out={min_base_out}")
                raise SlippageExceededError(
                    f"Slippage exceeded: got {payout} base tokens, expected at least {min_base_out}",
                    requested=min_base_out,
                    available=payout,
                )
            if payout > ledger.base_reserves:
                raise InsufficientReservesError(
                    f"Insufficient reserves for sell: payout {payout} exceeds reserves {ledger.base_reserves}",
                    requested=payout,
                    available=ledger.base_reserves,
                )

            new_ledger = ledger.model_copy(
                update={
                    "current_supply": ledger.current_supply - token_amount,
                    "base_reserves": ledger.base_reserves - payout,
                }
            )
            result = CallResult(
                transfers=[AssetTransfer(id=params.base_currency.asset_id, value=payout)],
                data={"payout": payout},
            )
            self._commit(
                self.record.model_copy(
                    update={
                        "ledger": new_ledger,
                        "holders": _adjust_holder(self.record.holders, context.caller, -token_amount),
                    }
                )
            )
            logger.info(
                f"Sell on '{self.curve_id}': tokens_in={token_amount}, payout={payout}, "
                f"supply={new_ledger.current_supply}, reserves={new_ledger.base_reserves}, caller={context.caller}"
            )
            return result

    def get_buy_quote(self, token_amount: int) -> int:
        params = self._require_params()
        cost = pricing.calculate_buy_price(self.record.ledger.current_supply, token_amount, params)
        logger.debug(f"Buy quote on '{self.curve_id}': token_amount={token_amount}, cost={cost}")
        return cost

    def get_sell_quote(self, token_amount: int) -> int:
        params = self._require_params()
        payout = pricing.calculate_sell_price(self.record.ledger.current_supply, token_amount, params)
        logger.debug(f"Sell quote on '{self.curve_id}': token_amount={token_amount}, payout={payout}")
        return payout

    def graduate(self, context: ExecutionContext) -> CallResult:
        """Migrates the curve to its AMM pool; fails cleanly if graduated or ineligible."""
        with self._lock:
            self._require_params()
            graduated = self.coordinator.graduate(self.record, context, checkpoint=self._commit)
            self._commit(graduated)
            record = graduated.graduation
            return CallResult(
                data={
                    "pool_address": str(record.pool_address),
                    "lp_tokens_total": record.lp_tokens_total,
                    "lp_burned": record.distribution.burned,
                    "lp_distributed": record.distribution.distributed,
                    "graduation_block": record.graduation_block,
                }
            )

    def get_curve_state(self) -> CurveState:
        params = self._require_params()
        ledger = self.record.ledger
        graduation = self.record.graduation
        return CurveState(
            curve_id=self.curve_id,
            current_supply=ledger.current_supply,
            base_reserves=ledger.base_reserves,
            graduated=ledger.graduated,
            pool_address=str(graduation.pool_address) if graduation else None,
            graduation_block=ledger.graduation_block,
            lp_strategy=self.record.lp_strategy,
            spot_price=pricing.price_at_supply(ledger.current_supply, params),
            market_cap=pricing.market_cap(ledger.current_supply, params),
            meets_graduation_criteria=meets_graduation_criteria(ledger.current_supply, ledger.base_reserves, params),
            liquidity_sufficient=check_liquidity_sufficiency(ledger.current_supply, ledger.base_reserves, params),
        )
