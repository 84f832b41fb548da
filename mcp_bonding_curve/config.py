import os
import logging
from typing import Optional
from dotenv import load_dotenv

# Import custom errors
from mcp_bonding_curve.errors import ConfigurationError

"""
Configuration Management for the Bonding Curve Server

This module handles all configuration loading and validation for the bonding curve server.
It loads settings from environment variables with sensible defaults and validates them so
that a misconfigured deployment fails at import time rather than mid-trade.

Configuration Sources (in order of precedence):
1. Environment variables (a local .env file is loaded first)
2. Default values defined in this module

Environment Variables:
    DEFAULT_BASE_PRICE: Starting price in base currency units for new curves
    DEFAULT_GROWTH_RATE_BPS: Price growth per 10 supply units, in basis points
    DEFAULT_GRADUATION_THRESHOLD: Market cap at which a curve graduates
    DEFAULT_MAX_SUPPLY: Maximum token supply for new curves
    DEFAULT_BASE_CURRENCY: Base currency for new curves (busd or frbtc)
    DEFAULT_LP_STRATEGY: LP distribution strategy selector (0-3)
    DEFAULT_DAO_ADDRESS: DAO identity ("block:tx") for the DAO governance strategy
    EMERGENCY_GRADUATION_BLOCKS: Blocks after launch before emergency graduation opens
    EMERGENCY_MIN_SUPPLY: Minimum supply for emergency graduation
    EMERGENCY_MIN_RESERVES: Minimum reserves for emergency graduation
    COMMUNITY_REWARDS_TOP_HOLDERS: Number of holders rewarded by the community strategy
    MIN_TOKEN_LIQUIDITY: Minimum token leg for a pool seed to count as sufficient
    MIN_BASE_LIQUIDITY: Minimum base leg for a pool seed to count as sufficient
    AUTO_GRADUATE: Graduate automatically after a qualifying buy (true/false)
    CURVE_STATE_DIR: Directory for persisted curve state files
"""

# Set up logger
logger = logging.getLogger(__name__)

# Load environment variables
load_dotenv()


def _get_env_str(key: str, default: str, required: bool = False) -> str:
    """Get environment variable as string with validation."""
    value = os.getenv(key, default)
    if required and not value:
        raise ConfigurationError(f"Required environment variable {key} is not set")
    return value


def _get_env_int(key: str, default: int, min_val: Optional[int] = None, max_val: Optional[int] = None) -> int:
    """Get environment variable as integer with validation."""
    try:
        value = int(os.getenv(key, str(default)))
    except ValueError:
        raise ConfigurationError(f"Environment variable {key} must be a valid integer")
    if min_val is not None and value < min_val:
        raise ConfigurationError(f"Environment variable {key} must be >= {min_val}")
    if max_val is not None and value > max_val:
        raise ConfigurationError(f"Environment variable {key} must be <= {max_val}")
    return value


def _get_env_bool(key: str, default: bool) -> bool:
    """Get environment variable as boolean with validation."""
    value = os.getenv(key)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in ("1", "true", "yes", "on"):
        return True
    if normalized in ("0", "false", "no", "off"):
        return False
    raise ConfigurationError(f"Environment variable {key} must be a boolean (true/false)")


U128_MAX = 2**128 - 1

try:
    # --- Default Curve Configuration ---
    DEFAULT_BASE_PRICE = _get_env_int("DEFAULT_BASE_PRICE", 4_000_000, min_val=1, max_val=U128_MAX)
    DEFAULT_GROWTH_RATE_BPS = _get_env_int("DEFAULT_GROWTH_RATE_BPS", 150, min_val=1, max_val=U128_MAX)
    DEFAULT_GRADUATION_THRESHOLD = _get_env_int("DEFAULT_GRADUATION_THRESHOLD", 6_900_000_000, min_val=0, max_val=U128_MAX)
    DEFAULT_MAX_SUPPLY = _get_env_int("DEFAULT_MAX_SUPPLY", 1_000_000_000, min_val=1, max_val=U128_MAX)
    DEFAULT_BASE_CURRENCY = _get_env_str("DEFAULT_BASE_CURRENCY", "busd")
    if DEFAULT_BASE_CURRENCY not in ("busd", "frbtc"):
        raise ConfigurationError("Environment variable DEFAULT_BASE_CURRENCY must be 'busd' or 'frbtc'")

    # --- LP Distribution ---
    DEFAULT_LP_STRATEGY = _get_env_int("DEFAULT_LP_STRATEGY", 0, min_val=0, max_val=3)
    DEFAULT_DAO_ADDRESS = _get_env_str("DEFAULT_DAO_ADDRESS", "")
    COMMUNITY_REWARDS_TOP_HOLDERS = _get_env_int("COMMUNITY_REWARDS_TOP_HOLDERS", 100, min_val=1, max_val=10_000)

    # --- Emergency Graduation (~30 days at 10 minute blocks) ---
    EMERGENCY_GRADUATION_BLOCKS = _get_env_int("EMERGENCY_GRADUATION_BLOCKS", 30 * 24 * 6, min_val=1)
    EMERGENCY_MIN_SUPPLY = _get_env_int("EMERGENCY_MIN_SUPPLY", 1_000_000, min_val=0)
    EMERGENCY_MIN_RESERVES = _get_env_int("EMERGENCY_MIN_RESERVES", 100_000_000, min_val=0)

    # --- Liquidity Sufficiency ---
    MIN_TOKEN_LIQUIDITY = _get_env_int("MIN_TOKEN_LIQUIDITY", 1_000_000, min_val=0)
    MIN_BASE_LIQUIDITY = _get_env_int("MIN_BASE_LIQUIDITY", 1_000_000_000, min_val=0)

    # --- Behaviour ---
    AUTO_GRADUATE = _get_env_bool("AUTO_GRADUATE", True)

    # --- Directories ---
    CURVE_STATE_DIR = _get_env_str("CURVE_STATE_DIR", "curve_states", required=True)

    logger.info("Configuration loaded successfully")

except ConfigurationError as e:
    logger.error(f"Configuration error: {e}")
    raise
