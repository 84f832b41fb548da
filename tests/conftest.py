import pytest
from dotenv import load_dotenv

from mcp_bonding_curve import curve_manager
from mcp_bonding_curve.amm import InMemoryPoolFactory
from mcp_bonding_curve.coordinator import GraduationCoordinator
from mcp_bonding_curve.curve import BondingCurve
from mcp_bonding_curve.schemas import (
    AssetId,
    AssetTransfer,
    BaseCurrency,
    CurveParams,
    CurveRecord,
    ExecutionContext,
    LpDistributionStrategy,
)

load_dotenv()

CURVE_TOKEN = AssetId(block=2, tx=777)
CREATOR = AssetId(block=5, tx=1)
BUYER = AssetId(block=5, tx=2)


@pytest.fixture(autouse=True)
def isolated_curve_state(tmp_path, monkeypatch):
    """Points curve persistence at a temporary directory and starts from an empty registry."""
    factory = InMemoryPoolFactory()
    monkeypatch.setattr(curve_manager, "STATE_PATH", tmp_path / "curve_states")
    monkeypatch.setattr(curve_manager, "curves", {})
    monkeypatch.setattr(curve_manager, "pool_factory", factory)
    monkeypatch.setattr(curve_manager, "coordinator", GraduationCoordinator(factory))
    yield


@pytest.fixture
def params():
    # Graduates on reserves once 50_000_000 base units are in.
    return CurveParams(
        base_price=1_000_000,
        growth_rate_bps=150,
        graduation_threshold=100_000_000,
        base_currency=BaseCurrency.busd,
        max_supply=1_000_000_000,
    )


@pytest.fixture
def make_context():
    def _make(caller=BUYER, payment=0, block_height=100, currency=BaseCurrency.busd):
        incoming = [AssetTransfer(id=currency.asset_id, value=payment)] if payment else []
        return ExecutionContext(caller=caller, myself=CURVE_TOKEN, block_height=block_height, incoming=incoming)

    return _make


@pytest.fixture
def pool_factory():
    return InMemoryPoolFactory()


@pytest.fixture
def curve(params, pool_factory, make_context):
    """An initialized burn-all curve with no trades yet."""
    bonding_curve = BondingCurve(CurveRecord(curve_id="test_curve"), GraduationCoordinator(pool_factory))
    bonding_curve.initialize(params, LpDistributionStrategy.burn_all, make_context(caller=CREATOR, block_height=10))
    return bonding_curve
