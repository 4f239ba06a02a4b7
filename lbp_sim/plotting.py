"""Visualization and reporting functions for LBP runs with seaborn styling."""

import os
from datetime import datetime
from typing import Optional, Sequence

import pandas as pd

from .metrics import calculate_key_metrics, calculate_path_summary
from .projection import DEFAULT_SCENARIOS
from .state import SimulationResults


def _default_output(kind: str, name: str, extension: str) -> str:
    output_dir = f"experiments/outputs/{kind}"
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"{output_dir}/{name}_{timestamp}.{extension}"


def _ensure_parent(path: str) -> None:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)


def create_summary_plots(results: SimulationResults, save_path: str = None) -> Optional[str]:
    """
    Create summary plots of one run using seaborn.

    Args:
        results: Simulation results to plot
        save_path: Optional path to save plots (defaults to experiments/outputs/plots/)

    Returns:
        Path of the saved figure, or None when nothing was plotted
    """
    try:
        import matplotlib.pyplot as plt
        import seaborn as sns
    except ImportError:
        print("matplotlib and/or seaborn not available, skipping plots")
        return None

    if not results.snapshots:
        print("No data to plot")
        return None

    sns.set_style("whitegrid")
    sns.set_palette("husl")

    pool = results.pool_config
    fig, axes = plt.subplots(2, 3, figsize=(18, 10))
    fig.suptitle(f"{pool.token_symbol} LBP Simulation ({results.demand_config.preset} demand, "
                 f"{results.sell_config.preset} sellers)", fontsize=16, y=0.98)

    df = pd.DataFrame([s.to_dict() for s in results.snapshots])

    # Plot 1: Spot price
    sns.lineplot(data=df, x="time", y="price", color="royalblue", linewidth=2, ax=axes[0, 0])
    peak = df["price"].idxmax()
    axes[0, 0].scatter(df.loc[peak, "time"], df.loc[peak, "price"], color="crimson", zorder=3)
    axes[0, 0].set_xlabel("Hours")
    axes[0, 0].set_ylabel(f"Price ({pool.collateral_token})")
    axes[0, 0].set_title("Spot Price")

    # Plot 2: Pool balances on twin axes
    sns.lineplot(data=df, x="time", y="tkn_balance", color="darkorange", label=pool.token_symbol, ax=axes[0, 1])
    twin = axes[0, 1].twinx()
    sns.lineplot(data=df, x="time", y="usdc_balance", color="forestgreen", label=pool.collateral_token, ax=twin)
    axes[0, 1].set_xlabel("Hours")
    axes[0, 1].set_ylabel(pool.token_symbol)
    twin.set_ylabel(pool.collateral_token)
    axes[0, 1].set_title("Pool Balances")

    # Plot 3: Weight schedule
    sns.lineplot(data=df, x="time", y="tkn_weight", label=pool.token_symbol, ax=axes[0, 2])
    sns.lineplot(data=df, x="time", y="usdc_weight", label=pool.collateral_token, ax=axes[0, 2])
    axes[0, 2].set_xlabel("Hours")
    axes[0, 2].set_ylabel("Weight")
    axes[0, 2].set_title("Weights")
    axes[0, 2].legend()

    # Plot 4: Bot buy and sell volume per step
    axes[1, 0].bar(df["time"], df["buy_volume_usdc"], width=pool.duration / max(1, len(df)),
                   color="seagreen", alpha=0.7, label="Buys")
    axes[1, 0].bar(df["time"], -df["sell_volume_usdc"], width=pool.duration / max(1, len(df)),
                   color="indianred", alpha=0.7, label="Sells")
    axes[1, 0].axhline(0, color="black", linewidth=0.8)
    axes[1, 0].set_xlabel("Hours")
    axes[1, 0].set_ylabel(pool.collateral_token)
    axes[1, 0].set_title("Community Flow per Step")
    axes[1, 0].legend()

    # Plot 5: Community position against cost basis
    sns.lineplot(data=df, x="time", y="community_tokens_held", color="purple", linewidth=2, ax=axes[1, 1])
    axes[1, 1].set_xlabel("Hours")
    axes[1, 1].set_ylabel(pool.token_symbol)
    axes[1, 1].set_title("Community Holdings")

    # Plot 6: TVL with raised annotation
    sns.lineplot(data=df, x="time", y="tvl_usd", color="darkcyan", linewidth=2, ax=axes[1, 2])
    if len(df) > 1:
        raised = df["usdc_balance"].iloc[-1] - df["usdc_balance"].iloc[0]
        axes[1, 2].text(0.05, 0.95, f"Raised: {raised:,.0f} {pool.collateral_token}",
                        transform=axes[1, 2].transAxes, fontsize=10,
                        bbox=dict(boxstyle="round", facecolor="wheat", alpha=0.5))
    axes[1, 2].set_xlabel("Hours")
    axes[1, 2].set_ylabel("TVL")
    axes[1, 2].set_title("Total Value Locked")

    plt.tight_layout()

    path = save_path or _default_output("plots", "lbp_summary", "png")
    _ensure_parent(path)
    plt.savefig(path, dpi=300, bbox_inches="tight", facecolor="white")
    print(f"Summary plots saved to {path}")
    plt.close()
    return path


def plot_price_paths(
    paths: Sequence[Sequence[float]],
    current_step: int,
    total_steps: int,
    save_path: str = None,
    scenarios: Sequence[float] = DEFAULT_SCENARIOS,
) -> Optional[str]:
    """Plot projected price paths, one line per demand scenario."""
    try:
        import matplotlib.pyplot as plt
        import seaborn as sns
    except ImportError:
        print("matplotlib and/or seaborn not available, skipping plots")
        return None

    if not paths:
        print("No paths to plot")
        return None

    sns.set_style("whitegrid")

    rows = []
    for i, path in enumerate(paths):
        label = f"{scenarios[i]:g}x demand" if i < len(scenarios) else f"scenario {i}"
        for offset, price in enumerate(path):
            rows.append({"step": current_step + offset, "price": price, "scenario": label})
    df = pd.DataFrame(rows)

    fig, ax = plt.subplots(figsize=(10, 6))
    sns.lineplot(data=df, x="step", y="price", hue="scenario", linewidth=2, ax=ax)
    ax.axvline(current_step, color="gray", linestyle="--", alpha=0.7)
    ax.set_xlim(current_step, total_steps)
    ax.set_xlabel("Step")
    ax.set_ylabel("Price")
    ax.set_title(f"Projected Price Paths from Step {current_step}")

    plt.tight_layout()

    path = save_path or _default_output("plots", "price_paths", "png")
    _ensure_parent(path)
    plt.savefig(path, dpi=300, bbox_inches="tight", facecolor="white")
    print(f"Price path plot saved to {path}")
    plt.close()
    return path


def generate_summary_report(
    results: SimulationResults,
    file_path: str = None,
    collateral_usd: float = 1.0,
    paths: Optional[Sequence[Sequence[float]]] = None,
) -> str:
    """Generate a markdown summary report of one run."""
    pool = results.pool_config
    m = calculate_key_metrics(results.snapshots, pool, collateral_usd)
    collateral = pool.collateral_token

    report = f"""# {pool.token_name} ({pool.token_symbol}) LBP Summary Report

## Sale Setup
- **Duration**: {pool.duration:.1f} hours over {results.steps} steps
- **Initial Balances**: {pool.tkn_balance_in:,.0f} {pool.token_symbol} / {pool.usdc_balance_in:,.2f} {collateral}
- **Weights**: {pool.tkn_weight_in:g}/{pool.usdc_weight_in:g} -> {pool.tkn_weight_out:g}/{pool.usdc_weight_out:g}
- **Swap Fee**: {pool.swap_fee_fraction:.2%}
- **Demand**: {results.demand_config.preset} (base {results.demand_config.magnitude_base:,.0f}, x{results.demand_config.multiplier:g})
- **Sellers**: {results.sell_config.preset}

## Price
- **Start Price**: {m.get('start_price', 0):.6f} {collateral}
- **Final Price**: {m.get('final_price', 0):.6f} {collateral}
- **Peak Price**: {m.get('peak_price', 0):.6f} {collateral} at step {m.get('peak_step', 0)}
- **Change**: {m.get('price_change_pct', 0):.2f}%

## Sale Outcome
- **Total Raised**: {m.get('total_raised', 0):,.2f} {collateral}
- **Tokens Sold**: {m.get('tokens_sold', 0):,.0f} {pool.token_symbol}
- **Average Buy Price**: {m.get('avg_buy_price', 0):.6f} {collateral}
- **Buy Volume**: {m.get('total_buy_volume', 0):,.2f} {collateral}
- **Sell Volume**: {m.get('total_sell_volume', 0):,.2f} {collateral}

## Valuation (USD)
- **Final TVL**: ${m.get('final_tvl_usd', 0):,.2f}
- **Implied Market Cap**: ${m.get('implied_market_cap_usd', 0):,.2f}
- **FDV**: ${m.get('fdv_usd', 0):,.2f}
"""

    if paths:
        report += "\n## Projected Paths\n"
        for summary in calculate_path_summary(paths):
            report += (f"- **Scenario {summary['scenario']}**: final {summary['final_price']:.6f}, "
                       f"range {summary['min_price']:.6f} - {summary['max_price']:.6f}\n")

    report += "\n---\n*Report generated from LBP simulation data*\n"

    path = file_path or _default_output("reports", "lbp_report", "md")
    _ensure_parent(path)
    with open(path, "w") as f:
        f.write(report)
    print(f"Report saved to {path}")

    return report
