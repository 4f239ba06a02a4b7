"""Metrics, export and reporting tests (pytest-free)."""

import json
import os
import tempfile

from lbp_sim.config import PoolConfig
from lbp_sim.core import LBPSimulation, run_deterministic_simulation
from lbp_sim.metrics import (
    calc_tvl_usd,
    calculate_key_metrics,
    calculate_path_summary,
    export_metrics_to_file,
    is_usd_collateral,
    snapshots_to_dataframe,
)
from lbp_sim.plotting import create_summary_plots, generate_summary_report, plot_price_paths
from lbp_sim.projection import calculate_potential_price_paths
from tests.utils import assert_close, file_exists, reference_configs


def _run(steps=50):
    pool, demand, sell = reference_configs()
    return pool, LBPSimulation(pool, demand, sell).run(steps)


def test_dataframe_columns_and_derived_values():
    pool, results = _run()
    df = snapshots_to_dataframe(results.snapshots)

    assert df.height == 51
    for column in ("index", "time", "price", "usdc_balance", "buy_volume_usdc", "time_label"):
        assert column in df.columns
    assert df["price_change"][0] == 0.0
    assert_close(df["cumulative_raised"][-1], results.snapshots[-1].usdc_balance - pool.usdc_balance_in)
    net = results.snapshots[10].buy_volume_usdc - results.snapshots[10].sell_volume_usdc
    assert_close(df["net_flow_collateral"][10], net)


def test_empty_snapshots():
    assert snapshots_to_dataframe([]).is_empty()
    assert calculate_key_metrics([], PoolConfig()) == {}


def test_tvl_for_stablecoin_collateral():
    result = calc_tvl_usd(PoolConfig())
    assert_close(result["token_price"], 0.9)
    assert_close(result["token_price_usd"], 0.9)
    assert_close(result["tvl_usd"], 100_000 + 1_000_000 * 0.9)


def test_tvl_for_eth_collateral():
    pool = PoolConfig(collateral_token="ETH", usdc_balance_in=50)
    eth_price = 3_000
    result = calc_tvl_usd(pool, collateral_usd=eth_price)
    assert result["tvl_usd"] > pool.usdc_balance_in * eth_price
    assert_close(result["token_price_usd"], result["token_price"] * eth_price)


def test_tvl_uses_supplied_state():
    result = calc_tvl_usd(PoolConfig(), token_balance=500_000, collateral_balance=200_000,
                          token_weight=50, collateral_weight=50)
    assert_close(result["token_price"], 0.4)
    assert_close(result["tvl_usd"], 400_000)


def test_usd_collateral_detection():
    assert is_usd_collateral("USDC")
    assert is_usd_collateral("DAI")
    assert not is_usd_collateral("ETH")
    assert not is_usd_collateral("wETH")


def test_key_metrics():
    pool, results = _run(100)
    snapshots = results.snapshots
    metrics = calculate_key_metrics(snapshots, pool, collateral_usd=2.0)

    buy_usdc = sum(s.buy_volume_usdc for s in snapshots)
    buy_tkn = sum(s.buy_volume_tkn for s in snapshots)
    peak = max(snapshots, key=lambda s: s.price)

    assert_close(metrics["start_price"], 0.9)
    assert metrics["final_price"] == snapshots[-1].price
    assert_close(metrics["total_raised"], snapshots[-1].usdc_balance - 100_000)
    assert_close(metrics["tokens_sold"], 1_000_000 - snapshots[-1].tkn_balance)
    assert_close(metrics["total_buy_volume"], buy_usdc)
    assert_close(metrics["avg_buy_price"], buy_usdc / buy_tkn)
    assert metrics["peak_price"] == peak.price
    assert metrics["peak_step"] == peak.index
    assert_close(metrics["final_tvl_usd"], snapshots[-1].tvl_usd * 2.0)
    assert_close(metrics["fdv_usd"], snapshots[-1].price * 2.0 * pool.total_supply)
    assert_close(metrics["implied_market_cap_usd"], snapshots[-1].price * 2.0 * pool.tkn_balance_in)


def test_avg_buy_price_without_buys():
    pool, demand, sell = reference_configs()
    demand.multiplier = 0
    snapshots = run_deterministic_simulation(pool, demand, sell, 10)
    assert calculate_key_metrics(snapshots, pool)["avg_buy_price"] == 0.0


def test_path_summary():
    summary = calculate_path_summary([[1.0, 1.5, 0.8], [2.0], []])
    assert summary[0] == {"scenario": 0, "final_price": 0.8, "min_price": 0.8, "max_price": 1.5}
    assert summary[1]["final_price"] == 2.0
    assert summary[2]["final_price"] == 0.0


def test_export_metrics_to_file():
    pool, results = _run()
    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, "out", "metrics.json")
        written = export_metrics_to_file(results.snapshots, pool, path, paths=[[1.0, 2.0]])

        assert written == path
        assert file_exists(path)
        with open(path) as f:
            data = json.load(f)

    assert data["pool_config"]["tkn_balance_in"] == 1_000_000
    assert data["summary"]["final_price"] == results.snapshots[-1].price
    assert data["price_paths"][0]["max_price"] == 2.0


def test_summary_report():
    pool, results = _run()
    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, "report.md")
        report = generate_summary_report(results, path, paths=[[0.9, 1.1]])
        assert file_exists(path)

    assert pool.token_symbol in report
    assert "Total Raised" in report
    assert "Projected Paths" in report


def test_plots_are_written():
    import matplotlib

    matplotlib.use("Agg")

    pool, results = _run(20)
    demand, sell = results.demand_config, results.sell_config
    paths = calculate_potential_price_paths(pool, demand, sell, 20, [0.0, 1.0, 2.0], 5)

    with tempfile.TemporaryDirectory() as tmp:
        summary_path = create_summary_plots(results, os.path.join(tmp, "summary.png"))
        paths_path = plot_price_paths(paths, 5, 20, os.path.join(tmp, "paths.png"))
        assert file_exists(summary_path)
        assert file_exists(paths_path)
