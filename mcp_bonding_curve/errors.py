"""
Custom Exception Classes for the Bonding Curve System

This module defines the exception classes raised by the pricing engine, the graduation
evaluator and coordinator, and the curve instance operations. Every exception is terminal
for the operation that raised it: nothing is retried internally and no ledger update is
left half-applied.

Exception Categories:
- Supply Errors: purchases past max supply, sales past current supply
- Payment Errors: payments that cannot buy a single token, slippage violations
- Lifecycle Errors: double initialization, trading or graduating after graduation
- Graduation Errors: unmet criteria, failed pool creation or liquidity transfer
- Arithmetic Errors: inputs or results leaving the unsigned 128-bit value space
- Configuration / Validation Errors: bad environment values or malformed commands

Domain errors carry the requested and available amounts where they apply so callers
can act on them without parsing the message.
"""
from typing import Optional


class BondingCurveError(Exception):
    """Base class for all bonding curve domain errors."""

    def __init__(self, message: str, requested: Optional[int] = None, available: Optional[int] = None):
        super().__init__(message)
        self.requested = requested
        self.available = available


class ExceedsMaxSupplyError(BondingCurveError):
    """Raised when a purchase would push supply past the curve's max supply."""


class InsufficientSupplyError(BondingCurveError):
    """Raised when selling more tokens than are currently in circulation."""


class InsufficientPaymentError(BondingCurveError):
    """Raised when the attached payment cannot afford even a single token."""


class SlippageExceededError(BondingCurveError):
    """Raised when a trade's output falls below the caller's minimum."""


class AlreadyGraduatedError(BondingCurveError):
    """Raised when trading or graduating a curve that has already graduated."""


class AlreadyInitializedError(BondingCurveError):
    """Raised when initializing a curve a second time."""


class NotInitializedError(BondingCurveError):
    """Raised when operating on a curve that was never initialized."""


class GraduationCriteriaNotMetError(BondingCurveError):
    """Raised when graduation is requested but neither criteria nor emergency override hold."""


class GraduationInProgressError(BondingCurveError):
    """Raised when trading while an interrupted graduation still awaits completion."""


class ArithmeticOverflowError(BondingCurveError):
    """Raised when a checked calculation leaves the unsigned 128-bit range."""


class InvalidAmountError(BondingCurveError):
    """Raised when an amount, supply or quantity lies outside the unsigned 128-bit range."""


class PoolCreationFailedError(BondingCurveError):
    """Raised when the AMM collaborator does not return a valid pool handle."""


class LiquidityTransferError(BondingCurveError):
    """Raised when seeding the pool with both liquidity legs fails."""


class InsufficientReservesError(BondingCurveError):
    """Raised when a sell payout exceeds the curve's base reserves."""


class ConfigurationError(Exception):
    """Raised when there are configuration-related errors."""


class ValidationError(Exception):
    """Raised when input validation fails."""
