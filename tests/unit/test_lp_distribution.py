from mcp_bonding_curve.lp_distribution import distribute_lp_tokens, top_holders
from mcp_bonding_curve.schemas import ZERO_ID, AssetId, LpDistributionStrategy

CREATOR = AssetId(block=5, tx=1)
DAO = AssetId(block=9, tx=9)
HOLDERS = {"5:1": 300, "5:2": 100}


def test_burn_all_burns_everything():
    distribution = distribute_lp_tokens(1_000, LpDistributionStrategy.burn_all, creator=CREATOR, holders=HOLDERS)
    assert distribution.burned == 1_000
    assert distribution.distributed == 0
    assert distribution.allocations == []


def test_community_rewards_pro_rata():
    distribution = distribute_lp_tokens(1_000, LpDistributionStrategy.community_rewards, holders=HOLDERS)
    amounts = {str(a.recipient): a.amount for a in distribution.allocations}
    assert amounts == {"5:1": 150, "5:2": 50}
    assert distribution.burned == 800


def test_community_rewards_limited_to_top_holders():
    distribution = distribute_lp_tokens(1_000, LpDistributionStrategy.community_rewards, holders=HOLDERS, top_n=1)
    assert [(str(a.recipient), a.amount) for a in distribution.allocations] == [("5:1", 200)]
    assert distribution.burned == 800


def test_community_rewards_without_holders_burns_share():
    distribution = distribute_lp_tokens(1_000, LpDistributionStrategy.community_rewards, holders={})
    assert distribution.burned == 1_000
    assert distribution.allocations == []


def test_community_rounding_dust_is_burned():
    holders = {"5:1": 10, "5:2": 10, "5:3": 10}
    distribution = distribute_lp_tokens(7, LpDistributionStrategy.community_rewards, holders=holders)
    assert distribution.allocations == []
    assert distribution.burned == 7


def test_creator_allocation():
    distribution = distribute_lp_tokens(1_000, LpDistributionStrategy.creator_allocation, creator=CREATOR)
    assert [(a.recipient, a.amount) for a in distribution.allocations] == [(CREATOR, 100)]
    assert distribution.burned == 900


def test_creator_allocation_without_creator_burns_share():
    distribution = distribute_lp_tokens(1_000, LpDistributionStrategy.creator_allocation)
    assert distribution.burned == 1_000


def test_dao_governance():
    distribution = distribute_lp_tokens(1_000, LpDistributionStrategy.dao_governance, dao_address=DAO)
    assert [(a.recipient, a.amount) for a in distribution.allocations] == [(DAO, 200)]
    assert distribution.burned == 800


def test_dao_governance_with_zero_address_burns_share():
    distribution = distribute_lp_tokens(1_000, LpDistributionStrategy.dao_governance, dao_address=ZERO_ID)
    assert distribution.burned == 1_000


def test_every_strategy_conserves_total():
    for strategy in LpDistributionStrategy:
        for total in (0, 1, 999, 173_205_080):
            distribution = distribute_lp_tokens(
                total, strategy, creator=CREATOR, dao_address=DAO, holders=HOLDERS
            )
            assert distribution.burned + distribution.distributed == total


def test_top_holders_ordering():
    holders = {"5:3": 50, "5:1": 50, "5:2": 80, "5:4": 0}
    assert top_holders(holders, 10) == [("5:2", 80), ("5:1", 50), ("5:3", 50)]
    assert top_holders(holders, 1) == [("5:2", 80)]
