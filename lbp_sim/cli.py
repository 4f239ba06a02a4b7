"""Command line interface for running LBP simulations and projections."""

import argparse
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from .analysis import DEFAULT_TOLERANCE, HISTORICAL_LBPS, compare_with_real_lbp, format_comparison
from .config import DemandPressureConfig, PoolConfig, SellPressureConfig
from .core import DEFAULT_STEPS, LBPSimulation
from .metrics import calculate_key_metrics, calculate_path_summary, export_metrics_to_file, is_usd_collateral
from .projection import DEFAULT_SCENARIOS, calculate_potential_price_paths
from .state import CheckpointState

DEMAND_SCENARIOS = {
    "bullish": "Front-loaded demand that tapers off (concave curve)",
    "bearish": "Late, thin demand at 35% of the base magnitude",
    "hype": "Bullish shape at twice the base magnitude",
    "dead": "No buyers at all",
}

SELL_SCENARIOS = {
    "loyal": "5% of the pool seed sold back on an edge-weighted schedule",
    "edge_dumpers": "15% sold back, concentrated at the open and close",
    "greedy": "Dump all holdings once price clears cost basis by 2%",
    "cautious_greedy": "Sell 25% of holdings once price clears cost basis by 20%",
    "none": "Buyers never sell",
}

# Demand and sell assumptions used when comparing against historical sales
COMPARISON_DEMAND = {"preset": "bullish", "magnitude_base": 1_000_000, "multiplier": 3.0}
COMPARISON_SELL = {"preset": "loyal", "loyal_sold_pct": 3.0, "loyal_concentration_pct": 50.0}


def _add_config_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--calibration", help="JSON file with pool/demand/sell configuration")
    parser.add_argument("--steps", type=int, default=DEFAULT_STEPS, help="Number of discrete steps")
    parser.add_argument("--duration", type=float, help="Sale duration in hours")
    parser.add_argument("--tkn-balance", type=float, help="Tokens seeded into the pool")
    parser.add_argument("--usdc-balance", type=float, help="Collateral seeded into the pool")
    parser.add_argument("--weights", type=float, nargs=4,
                        metavar=("TKN_IN", "USDC_IN", "TKN_OUT", "USDC_OUT"),
                        help="Start and end weights")
    parser.add_argument("--swap-fee", type=float,
                        help="Swap fee; above 1 is a percentage (2 = 2%%), "
                             "1 or less a fraction (0.5 = 50%%)")
    parser.add_argument("--collateral", help="Collateral token symbol")
    parser.add_argument("--demand", default="bullish", choices=list(DEMAND_SCENARIOS.keys()),
                        help="Demand scenario")
    parser.add_argument("--magnitude", type=float, help="Collateral bought over the sale at multiplier 1")
    parser.add_argument("--multiplier", type=float, help="Demand multiplier")
    parser.add_argument("--sell", default="loyal", choices=list(SELL_SCENARIOS.keys()),
                        help="Sell scenario")
    parser.add_argument("--collateral-usd", type=float, default=None,
                        help="USD value of one unit of collateral (required for ETH/WETH)")


def build_configs(args: argparse.Namespace):
    """Resolve pool, demand and sell configuration from CLI arguments."""
    if args.calibration:
        pool, demand, sell = PoolConfig.from_calibration_file(args.calibration)
    else:
        pool = PoolConfig()
        demand = DemandPressureConfig.create_scenario(args.demand)
        sell = SellPressureConfig.create_scenario(args.sell)

    if args.duration is not None:
        pool.duration = args.duration
    if args.tkn_balance is not None:
        pool.tkn_balance_in = args.tkn_balance
    if args.usdc_balance is not None:
        pool.usdc_balance_in = args.usdc_balance
    if args.weights is not None:
        pool.tkn_weight_in, pool.usdc_weight_in, pool.tkn_weight_out, pool.usdc_weight_out = args.weights
    if args.swap_fee is not None:
        pool.swap_fee = args.swap_fee
    if args.collateral is not None:
        pool.collateral_token = args.collateral
    if args.magnitude is not None:
        demand.magnitude_base = args.magnitude
    if args.multiplier is not None:
        demand.multiplier = args.multiplier

    return pool, demand, sell


def _collateral_usd(pool: PoolConfig, value: Optional[float]) -> float:
    if value is not None:
        return value
    if not is_usd_collateral(pool.collateral_token):
        print(f"Warning: {pool.collateral_token} collateral without --collateral-usd, USD figures use 1.0")
    return 1.0


def run_single(args: argparse.Namespace) -> None:
    """Run one full simulation and save its snapshots."""
    pool, demand, sell = build_configs(args)
    collateral_usd = _collateral_usd(pool, args.collateral_usd)

    print(f"Running LBP simulation: {pool.token_symbol}, {args.steps} steps over {pool.duration:g}h "
          f"({demand.preset} demand, {sell.preset} sellers)")

    sim = LBPSimulation(pool, demand, sell)
    results = sim.run(args.steps)
    metrics = calculate_key_metrics(results.snapshots, pool, collateral_usd)

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

    if not args.no_snapshots:
        df = sim.get_dataframe()
        parquet_file = output_dir / f"lbp_simulation_{timestamp}.parquet"
        csv_file = output_dir / f"lbp_simulation_{timestamp}.csv"
        df.write_parquet(parquet_file)
        df.write_csv(csv_file)
        print(f"Snapshots saved: {parquet_file}")
        print(f"Snapshots saved: {csv_file}")

    export_metrics_to_file(
        results.snapshots, pool, str(output_dir / f"lbp_metrics_{timestamp}.json"), collateral_usd
    )

    if args.plot:
        from .plotting import create_summary_plots, generate_summary_report

        create_summary_plots(results, str(output_dir / f"lbp_summary_{timestamp}.png"))
        generate_summary_report(results, str(output_dir / f"lbp_report_{timestamp}.md"), collateral_usd)

    collateral = pool.collateral_token
    print("\nFinal Results:")
    print(f"   • Start Price: {metrics['start_price']:.6f} {collateral}")
    print(f"   • Final Price: {metrics['final_price']:.6f} {collateral}")
    print(f"   • Peak Price: {metrics['peak_price']:.6f} {collateral} (step {metrics['peak_step']})")
    print(f"   • Total Raised: {metrics['total_raised']:,.2f} {collateral}")
    print(f"   • Tokens Sold: {metrics['tokens_sold']:,.0f} {pool.token_symbol}")
    print(f"   • Average Buy Price: {metrics['avg_buy_price']:.6f} {collateral}")
    print(f"   • Final TVL: ${metrics['final_tvl_usd']:,.2f}")
    print(f"   • Implied Market Cap: ${metrics['implied_market_cap_usd']:,.2f}")
    print(f"   • FDV: ${metrics['fdv_usd']:,.2f}")


def run_paths(args: argparse.Namespace) -> None:
    """Project price paths from a checkpoint of the baseline run."""
    pool, demand, sell = build_configs(args)
    steps = max(1, args.steps)
    current_step = max(0, min(steps, args.current_step))

    checkpoint = None
    if current_step > 0:
        # Replay the baseline up to the checkpoint to recover live state
        results = LBPSimulation(pool, demand, sell).run(steps)
        checkpoint = CheckpointState.from_snapshot(results.snapshots[current_step])

    print(f"Projecting {len(args.scenarios)} scenarios from step {current_step}/{steps}")
    paths = calculate_potential_price_paths(pool, demand, sell, steps, args.scenarios, current_step, checkpoint)

    for multiplier, summary in zip(args.scenarios, calculate_path_summary(paths)):
        print(f"   • {multiplier:g}x demand: final {summary['final_price']:.6f}, "
              f"min {summary['min_price']:.6f}, max {summary['max_price']:.6f}")

    if args.plot:
        from .plotting import plot_price_paths

        output_dir = Path(args.output_dir)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        plot_price_paths(paths, current_step, steps, str(output_dir / f"price_paths_{timestamp}.png"),
                         args.scenarios)


def run_compare(args: argparse.Namespace) -> None:
    """Compare simulated sales with historical LBP outcomes."""
    names: List[str] = list(HISTORICAL_LBPS.keys()) if args.lbp == "all" else [args.lbp]
    demand = DemandPressureConfig(**COMPARISON_DEMAND)
    sell = SellPressureConfig(**COMPARISON_SELL)
    if args.multiplier is not None:
        demand.multiplier = args.multiplier

    for name in names:
        print(f"Running {name} LBP comparison...")
        result = compare_with_real_lbp(HISTORICAL_LBPS[name], demand, sell, args.tolerance, args.steps)
        print(format_comparison(result))


def list_scenarios() -> None:
    print("Available demand scenarios:\n")
    for name, description in DEMAND_SCENARIOS.items():
        config = DemandPressureConfig.create_scenario(name)
        print(f"{name}")
        print(f"   • {description}")
        print(f"   • Curve: {config.preset}, multiplier {config.multiplier:g}")
        print()

    print("Available sell scenarios:\n")
    for name, description in SELL_SCENARIOS.items():
        config = SellPressureConfig.create_scenario(name)
        print(f"{name}")
        print(f"   • {description}")
        print(f"   • Policy: {config.preset}")
        print()


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(description="Liquidity Bootstrapping Pool Simulation CLI")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    single_parser = subparsers.add_parser("single", help="Run a single deterministic simulation")
    _add_config_arguments(single_parser)
    single_parser.add_argument("--output-dir", default="experiments/single", help="Output directory")
    single_parser.add_argument("--no-snapshots", action="store_true", help="Skip snapshot files")
    single_parser.add_argument("--plot", action="store_true", help="Write summary plots and report")

    paths_parser = subparsers.add_parser("paths", help="Project price paths under demand scenarios")
    _add_config_arguments(paths_parser)
    paths_parser.add_argument("--current-step", type=int, default=0, help="Checkpoint step")
    paths_parser.add_argument("--scenarios", type=float, nargs="+", default=list(DEFAULT_SCENARIOS),
                              help="Demand multipliers to project")
    paths_parser.add_argument("--output-dir", default="experiments/paths", help="Output directory")
    paths_parser.add_argument("--plot", action="store_true", help="Plot projected paths")

    compare_parser = subparsers.add_parser("compare", help="Compare against historical LBPs")
    compare_parser.add_argument("--lbp", default="all", choices=["all"] + list(HISTORICAL_LBPS.keys()),
                                help="Historical sale to compare against")
    compare_parser.add_argument("--tolerance", type=float, default=DEFAULT_TOLERANCE,
                                help="Acceptable relative error")
    compare_parser.add_argument("--multiplier", type=float, help="Demand multiplier")
    compare_parser.add_argument("--steps", type=int, default=DEFAULT_STEPS, help="Number of discrete steps")

    subparsers.add_parser("scenarios", help="List available scenarios")

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    if args.command == "single":
        run_single(args)
    elif args.command == "paths":
        run_paths(args)
    elif args.command == "compare":
        run_compare(args)
    elif args.command == "scenarios":
        list_scenarios()
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
