"""Polars-based metrics for LBP simulation runs.

Snapshots are turned into a DataFrame once and summary figures are computed
with declarative expressions. USD conversion takes an external collateral
quote; fetching that quote is left to the caller.
"""

import json
import os
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import polars as pl

from .config import PoolConfig
from .pricing import spot_price
from .state import StepSnapshot

# Collateral tokens that need an external USD quote
NON_USD_COLLATERAL = {"ETH", "WETH"}


def is_usd_collateral(token: str) -> bool:
    """True when one unit of ``token`` is worth one USD for reporting purposes."""
    return (token or "").upper() not in NON_USD_COLLATERAL


def snapshots_to_dataframe(snapshots: List[StepSnapshot]) -> pl.DataFrame:
    """Convert a list of StepSnapshot objects to a polars DataFrame.

    One column per snapshot field, plus derived columns for price change,
    net collateral flow of the bot trades and collateral raised so far.
    """
    if not snapshots:
        return pl.DataFrame()

    df = pl.DataFrame([s.to_dict() for s in snapshots], infer_schema_length=None)

    initial_collateral = snapshots[0].usdc_balance
    df = df.with_columns([
        pl.col("price").pct_change().fill_null(0.0).alias("price_change"),
        (pl.col("buy_volume_usdc") - pl.col("sell_volume_usdc")).alias("net_flow_collateral"),
        (pl.col("usdc_balance") - initial_collateral).alias("cumulative_raised"),
    ])

    return df


def calc_tvl_usd(
    pool_config: PoolConfig,
    token_balance: Optional[float] = None,
    collateral_balance: Optional[float] = None,
    token_weight: Optional[float] = None,
    collateral_weight: Optional[float] = None,
    collateral_usd: float = 1.0,
) -> Dict[str, float]:
    """Token price and pool TVL, in collateral and USD.

    Any balance or weight left as None falls back to the pool's opening value.
    """
    tkn = pool_config.tkn_balance_in if token_balance is None else token_balance
    usdc = pool_config.usdc_balance_in if collateral_balance is None else collateral_balance
    tkn_w = pool_config.tkn_weight_in if token_weight is None else token_weight
    usdc_w = pool_config.usdc_weight_in if collateral_weight is None else collateral_weight

    token_price = spot_price(usdc, usdc_w, tkn, tkn_w)
    token_price_usd = token_price * collateral_usd
    tvl_usd = (usdc + tkn * token_price) * collateral_usd

    return {
        "token_price": token_price,
        "token_price_usd": token_price_usd,
        "tvl_usd": tvl_usd,
    }


def calculate_key_metrics(
    snapshots: List[StepSnapshot],
    pool_config: PoolConfig,
    collateral_usd: float = 1.0,
) -> Dict[str, Any]:
    """Calculate headline sale metrics using polars operations.

    Args:
        snapshots: Ordered snapshots of one run
        pool_config: Pool configuration the run used
        collateral_usd: USD value of one unit of collateral

    Returns:
        Dictionary of sale-level metrics, empty when there are no snapshots
    """
    df = snapshots_to_dataframe(snapshots)
    if df.is_empty():
        return {}

    aggregates = df.select([
        pl.col("buy_volume_usdc").sum().alias("total_buy_volume"),
        pl.col("buy_volume_tkn").sum().alias("total_buy_tokens"),
        pl.col("sell_volume_usdc").sum().alias("total_sell_volume"),
        pl.col("sell_volume_tkn").sum().alias("total_sell_tokens"),
        pl.col("price").max().alias("peak_price"),
        pl.col("price").arg_max().alias("peak_step"),
        pl.col("price").min().alias("min_price"),
    ]).to_dicts()[0]

    first, last = snapshots[0], snapshots[-1]

    metrics: Dict[str, Any] = dict(aggregates)
    metrics["peak_step"] = int(metrics["peak_step"])
    metrics.update({
        "steps": last.index,
        "duration_hours": last.time,
        "start_price": first.price,
        "final_price": last.price,
        "total_raised": last.usdc_balance - first.usdc_balance,
        "tokens_sold": first.tkn_balance - last.tkn_balance,
        "final_tvl_usd": last.tvl_usd * collateral_usd,
        "final_community_tokens": last.community_tokens_held,
    })

    if metrics["total_buy_tokens"] > 0:
        metrics["avg_buy_price"] = metrics["total_buy_volume"] / metrics["total_buy_tokens"]
    else:
        metrics["avg_buy_price"] = 0.0

    if first.price > 0:
        metrics["price_change_pct"] = (last.price - first.price) / first.price * 100
    else:
        metrics["price_change_pct"] = 0.0

    final_price_usd = last.price * collateral_usd
    metrics["final_price_usd"] = final_price_usd
    metrics["implied_market_cap_usd"] = final_price_usd * pool_config.tkn_balance_in
    metrics["fdv_usd"] = final_price_usd * pool_config.total_supply

    return metrics


def calculate_path_summary(paths: Sequence[Sequence[float]]) -> List[Dict[str, float]]:
    """Final, min and max price for each projected path."""
    summaries = []
    for i, path in enumerate(paths):
        if not path:
            summaries.append({"scenario": i, "final_price": 0.0, "min_price": 0.0, "max_price": 0.0})
            continue
        series = pl.Series("price", list(path), dtype=pl.Float64)
        summaries.append({
            "scenario": i,
            "final_price": float(series[-1]),
            "min_price": float(series.min()),
            "max_price": float(series.max()),
        })
    return summaries


def export_metrics_to_file(
    snapshots: List[StepSnapshot],
    pool_config: PoolConfig,
    file_path: Optional[str] = None,
    collateral_usd: float = 1.0,
    paths: Optional[Sequence[Sequence[float]]] = None,
) -> str:
    """Export run metrics to a JSON file and return the path written."""
    metrics_data: Dict[str, Any] = {
        "pool_config": pool_config.to_dict(),
        "summary": calculate_key_metrics(snapshots, pool_config, collateral_usd),
    }
    if paths is not None:
        metrics_data["price_paths"] = calculate_path_summary(paths)

    if not file_path:
        # Default to experiments/outputs/data/ directory
        output_dir = "experiments/outputs/data"
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        file_path = f"{output_dir}/lbp_metrics_{timestamp}.json"

    directory = os.path.dirname(file_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(file_path, "w") as f:
        json.dump(metrics_data, f, indent=2)
    print(f"Metrics exported to {file_path}")
    return file_path
