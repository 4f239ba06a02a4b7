"""Full-run simulator tests (pytest-free)."""

from lbp_sim.config import DemandPressureConfig, PoolConfig, SellPressureConfig
from lbp_sim.core import LBPMarketModel, LBPSimulation, run_deterministic_simulation, to_agentpy_params
from tests.utils import assert_close, expect_raises, reference_configs


# --- Run shape --------------------------------------------------------------

def test_reference_sale_end_to_end():
    """100 steps over 48h yield 101 snapshots and the pool raises collateral."""
    pool, demand, sell = reference_configs()
    snapshots = run_deterministic_simulation(pool, demand, sell, 100)

    assert len(snapshots) == 101
    assert snapshots[0].time == 0
    assert_close(snapshots[100].time, 48)
    assert snapshots[100].usdc_balance > snapshots[0].usdc_balance
    assert [s.index for s in snapshots] == list(range(101))
    assert snapshots[24].time_label == "11.5h"


def test_initial_snapshot_is_untouched_pool():
    pool, demand, sell = reference_configs()
    first = run_deterministic_simulation(pool, demand, sell, 50)[0]

    assert first.tkn_balance == pool.tkn_balance_in
    assert first.usdc_balance == pool.usdc_balance_in
    assert first.tkn_weight == 90 and first.usdc_weight == 10
    assert_close(first.price, 0.9)
    assert first.buy_volume_usdc == 0 and first.sell_volume_usdc == 0
    assert_close(first.tvl_usd, 100_000 + 1_000_000 * 0.9)


def test_non_positive_steps_run_one_step():
    pool, demand, sell = reference_configs()
    assert len(run_deterministic_simulation(pool, demand, sell, 0)) == 2
    assert len(run_deterministic_simulation(pool, demand, sell, -3)) == 2


def test_runs_are_deterministic():
    pool, demand, sell = reference_configs("greedy")
    run_a = run_deterministic_simulation(pool, demand, sell, 60)
    run_b = run_deterministic_simulation(pool, demand, sell, 60)
    assert run_a == run_b


# --- Invariants -------------------------------------------------------------

def test_token_conservation_across_presets():
    """Pool tokens plus community holdings stay within 2% of the seed."""
    pool = PoolConfig()
    for demand_name in ("bullish", "bearish", "hype"):
        for sell_name in ("loyal", "edge_dumpers", "greedy", "cautious_greedy", "none"):
            snapshots = run_deterministic_simulation(
                pool,
                DemandPressureConfig.create_scenario(demand_name),
                SellPressureConfig.create_scenario(sell_name),
                100,
            )
            for s in snapshots:
                total = s.tkn_balance + s.community_tokens_held
                assert abs(total - pool.tkn_balance_in) / pool.tkn_balance_in < 0.02, (demand_name, sell_name)


def test_weight_only_price_decay():
    """Without trades the balances never move and the falling token weight drags the price down."""
    pool, _, _ = reference_configs()
    demand = DemandPressureConfig(multiplier=0)
    sell = SellPressureConfig(preset="loyal", loyal_sold_pct=0)

    snapshots = run_deterministic_simulation(pool, demand, sell, 100)

    assert snapshots[-1].price < snapshots[0].price
    for s in snapshots:
        assert s.tkn_balance == pool.tkn_balance_in
        assert s.usdc_balance == pool.usdc_balance_in
    assert all(b.price < a.price for a, b in zip(snapshots, snapshots[1:]))


def test_collateral_changes_match_trade_volumes():
    pool, demand, sell = reference_configs()
    snapshots = run_deterministic_simulation(pool, demand, sell, 100)
    for prev, cur in zip(snapshots, snapshots[1:]):
        delta = cur.usdc_balance - prev.usdc_balance
        assert_close(delta, cur.buy_volume_usdc - cur.sell_volume_usdc, rel=1e-6)


def test_time_is_linear():
    pool, demand, sell = reference_configs()
    snapshots = run_deterministic_simulation(pool, demand, sell, 40)
    for s in snapshots:
        assert_close(s.time, s.index / 40 * 48, rel=1e-9)


def test_percent_and_fractional_fee_agree():
    pool, demand, sell = reference_configs()
    pool_percent = PoolConfig(**{**pool.to_dict(), "swap_fee": 2})
    pool_fraction = PoolConfig(**{**pool.to_dict(), "swap_fee": 0.02})

    a = run_deterministic_simulation(pool_percent, demand, sell, 30)
    b = run_deterministic_simulation(pool_fraction, demand, sell, 30)
    assert_close(a[-1].price, b[-1].price, rel=1e-12)


def test_sellers_lower_the_final_price():
    pool, demand, _ = reference_configs()
    no_sellers = run_deterministic_simulation(pool, demand, SellPressureConfig.create_scenario("none"), 100)
    dumpers = run_deterministic_simulation(pool, demand, SellPressureConfig.create_scenario("edge_dumpers"), 100)
    assert dumpers[-1].price < no_sellers[-1].price
    assert sum(s.sell_volume_tkn for s in dumpers) > 0
    assert sum(s.sell_volume_tkn for s in no_sellers) == 0


# --- AgentPy integration ----------------------------------------------------

def test_agentpy_model_steps_manually():
    pool, demand, sell = reference_configs()
    model = LBPMarketModel(to_agentpy_params(pool, demand, sell, 10))
    model.setup()
    while not model.sale_complete:
        model.step()

    assert model.step_index == 10
    assert len(model.snapshots) == 11
    assert model.log["price"][-1] == model.snapshots[-1].price

    # Stepping past the end leaves state untouched
    model.step()
    assert len(model.snapshots) == 11


def test_simulation_wrapper_dataframe():
    pool, demand, sell = reference_configs()
    sim = LBPSimulation(pool, demand, sell)
    assert sim.get_dataframe() is None

    results = sim.run(20)
    df = sim.get_dataframe()

    assert results.steps == 20
    assert df.height == 21
    assert "price" in df.columns
    assert "cumulative_raised" in df.columns


def test_simulation_validates_config():
    expect_raises(AssertionError, LBPSimulation, PoolConfig(duration=0))
    expect_raises(AssertionError, LBPSimulation, PoolConfig(), DemandPressureConfig(multiplier=-1))
