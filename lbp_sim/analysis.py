"""Validation of simulated sales against historical LBP outcomes.

Runs the deterministic simulator with a historical pool configuration and
compares headline figures (collateral raised, final and average price,
tokens sold) plus any observed price points with what was recorded.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from .config import DemandPressureConfig, PoolConfig, SellPressureConfig
from .core import DEFAULT_STEPS, run_deterministic_simulation
from .metrics import calculate_key_metrics

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 0.1


@dataclass
class ObservedOutcome:
    """What actually happened in a historical sale."""
    total_raised: float                                  # Collateral raised
    final_price: Optional[float] = None
    average_price: Optional[float] = None
    tokens_sold: Optional[float] = None
    price_points: List[Tuple[float, float]] = field(default_factory=list)  # (hour, price)


@dataclass
class RealLBPData:
    name: str
    pool_config: PoolConfig
    observed: ObservedOutcome


@dataclass
class MetricComparison:
    simulated: float
    observed: float
    difference: float
    percent_error: float

    @classmethod
    def build(cls, simulated: float, observed: float) -> "MetricComparison":
        difference = simulated - observed
        if observed != 0:
            percent_error = abs(difference) / abs(observed)
        else:
            percent_error = 0.0 if difference == 0 else float("inf")
        return cls(simulated=simulated, observed=observed, difference=difference, percent_error=percent_error)


@dataclass
class TrajectoryPoint:
    hour: float
    step: int
    simulated_price: float
    observed_price: float
    error: float


@dataclass
class ComparisonResult:
    """Outcome of one historical comparison.

    ``passed`` only considers the headline metrics; the price trajectory is
    reported alongside for inspection.
    """
    name: str
    metrics: Dict[str, MetricComparison]
    trajectory: List[TrajectoryPoint]
    passed: bool
    tolerance: float

    @property
    def max_error(self) -> float:
        if not self.metrics:
            return 0.0
        return max(m.percent_error for m in self.metrics.values())

    @property
    def mean_trajectory_error(self) -> float:
        if not self.trajectory:
            return 0.0
        return float(np.mean([p.error for p in self.trajectory]))


def trajectory_step(hour: float, duration: float, steps: int) -> int:
    """Closest simulation step to ``hour`` hours into a sale."""
    step = int(round(hour / duration * steps))
    return max(0, min(steps, step))


def compare_with_real_lbp(
    real: RealLBPData,
    demand_config: DemandPressureConfig,
    sell_config: SellPressureConfig,
    tolerance: float = DEFAULT_TOLERANCE,
    steps: int = DEFAULT_STEPS,
) -> ComparisonResult:
    """Simulate a historical sale and compare it with the observed outcome."""
    steps = max(1, int(steps))
    snapshots = run_deterministic_simulation(real.pool_config, demand_config, sell_config, steps)
    summary = calculate_key_metrics(snapshots, real.pool_config)
    observed = real.observed

    metrics = {"total_raised": MetricComparison.build(summary["total_raised"], observed.total_raised)}
    if observed.final_price is not None:
        metrics["final_price"] = MetricComparison.build(summary["final_price"], observed.final_price)
    if observed.average_price is not None:
        metrics["average_price"] = MetricComparison.build(summary["avg_buy_price"], observed.average_price)
    if observed.tokens_sold is not None:
        metrics["tokens_sold"] = MetricComparison.build(summary["tokens_sold"], observed.tokens_sold)

    trajectory = []
    for hour, price in observed.price_points:
        step = trajectory_step(hour, real.pool_config.duration, steps)
        simulated = snapshots[min(step, len(snapshots) - 1)].price
        trajectory.append(TrajectoryPoint(
            hour=hour,
            step=step,
            simulated_price=simulated,
            observed_price=price,
            error=MetricComparison.build(simulated, price).percent_error,
        ))

    max_error = max(m.percent_error for m in metrics.values())
    result = ComparisonResult(
        name=real.name,
        metrics=metrics,
        trajectory=trajectory,
        passed=max_error <= tolerance,
        tolerance=tolerance,
    )
    logger.debug("Comparison %s: max error %.4f, passed=%s", real.name, max_error, result.passed)
    return result


_METRIC_LABELS = {
    "total_raised": ("Total Raised", "${:,.2f}"),
    "final_price": ("Final Price", "${:.4f}"),
    "average_price": ("Average Price", "${:.4f}"),
    "tokens_sold": ("Tokens Sold", "{:,.0f}"),
}


def format_comparison(result: ComparisonResult) -> str:
    """Render a comparison as a plain-text report."""
    rule = "=" * 60
    lines = [rule, f"Comparison: {result.name}", rule]

    for key, metric in result.metrics.items():
        label, fmt = _METRIC_LABELS.get(key, (key, "{:,.4f}"))
        lines.append("")
        lines.append(f"{label}:")
        lines.append(f"   Observed:  {fmt.format(metric.observed)}")
        lines.append(f"   Simulated: {fmt.format(metric.simulated)}")
        lines.append(f"   Error:     {metric.percent_error * 100:.2f}%")

    if result.trajectory:
        lines.append("")
        lines.append("Price Trajectory:")
        for point in result.trajectory:
            lines.append(
                f"   {point.hour:g}h: Observed=${point.observed_price:.4f}, "
                f"Simulated=${point.simulated_price:.4f}, Error={point.error * 100:.2f}%"
            )

    lines.append("")
    lines.append(rule)
    status = "PASSED" if result.passed else "FAILED"
    lines.append(f"{status} (tolerance: {result.tolerance * 100:.0f}%)")
    lines.append(rule)
    return "\n".join(lines)


PERP_LBP = RealLBPData(
    name="PERP Protocol (Dec 2020)",
    pool_config=PoolConfig(
        token_name="Perpetual Protocol",
        token_symbol="PERP",
        total_supply=150_000_000,
        percent_for_sale=5,
        tkn_balance_in=7_500_000,
        tkn_weight_in=96,
        usdc_balance_in=200_000,
        usdc_weight_in=4,
        tkn_weight_out=25,
        usdc_weight_out=75,
        duration=72,
        swap_fee=0.01,
    ),
    observed=ObservedOutcome(total_raised=1_800_000, average_price=0.24),
)

APWINE_LBP = RealLBPData(
    name="APWine (Mar 2021)",
    pool_config=PoolConfig(
        token_name="APWine",
        token_symbol="APW",
        total_supply=50_000_000,
        percent_for_sale=10,
        tkn_balance_in=5_000_000,
        tkn_weight_in=90,
        usdc_balance_in=500_000,
        usdc_weight_in=10,
        tkn_weight_out=30,
        usdc_weight_out=70,
        duration=48,
        swap_fee=0.01,
    ),
    observed=ObservedOutcome(total_raised=2_300_000),
)

HISTORICAL_LBPS = {
    "perp": PERP_LBP,
    "apwine": APWINE_LBP,
}
