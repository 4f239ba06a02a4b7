"""Synthetic demand models driving the LBP simulation.

Two independent generators, both indexed by discrete step 0..steps:

- a cumulative buy-pressure curve (collateral inflow) and its per-step flow,
- a loyal-seller time weighting that concentrates sell intensity at the
  edges of the sale.

The ``hours`` argument is accepted for signature parity with the host
shell; the shapes depend only on the step count.
"""

import numpy as np

from .config import DemandPressureConfig

# Share of the full demand that materialises under the bearish preset
BEARISH_END_SCALE = 0.35
BEARISH_EXPONENT = 1.8   # convex, back-loaded
BULLISH_EXPONENT = 0.9   # concave, front-loaded

MULTIPLIER_CAP = 1_000_000.0

LOYAL_SIGMA_MAX = 0.25   # wide bump at zero concentration
LOYAL_SIGMA_FLOOR = 0.03


def get_cumulative_buy_pressure_curve(hours: float, steps: int, config: DemandPressureConfig) -> np.ndarray:
    """Cumulative collateral bought by the community up to each step.

    Starts at exactly 0, ends at exactly ``magnitude_base * multiplier``
    (scaled by 0.35 for the bearish preset) and never decreases.
    """
    safe_steps = max(1, int(steps))

    multiplier = min(max(config.multiplier if config.multiplier is not None else 1.0, 0.0), MULTIPLIER_CAP)
    end_scale = BEARISH_END_SCALE if config.preset == "bearish" else 1.0
    end_total = config.magnitude_base * multiplier * end_scale

    exponent = BEARISH_EXPONENT if config.preset == "bearish" else BULLISH_EXPONENT
    progress = np.arange(safe_steps + 1, dtype=float) / safe_steps
    curve = end_total * np.clip(progress ** exponent, 0.0, 1.0)

    # Pin the boundaries, then a running max irons out rounding at either end
    curve[0] = 0.0
    curve[-1] = end_total
    return np.maximum.accumulate(curve)


def get_per_step_buy_flow_from_cumulative(cumulative) -> np.ndarray:
    """Collateral inflow per step; flow[0] is always 0 and no entry is negative."""
    cumulative = np.asarray(cumulative, dtype=float)
    if cumulative.size == 0:
        return np.zeros(0)
    flow = np.zeros_like(cumulative)
    flow[1:] = np.maximum(0.0, np.diff(cumulative))
    return flow


def get_demand_pressure_curve(hours: float, steps: int, config: DemandPressureConfig) -> np.ndarray:
    """Per-step buy flow for a demand config."""
    cumulative = get_cumulative_buy_pressure_curve(hours, steps, config)
    return get_per_step_buy_flow_from_cumulative(cumulative)


def get_loyal_sell_schedule(hours: float, steps: int, concentration_pct: float) -> np.ndarray:
    """Normalized weights (summing to 1) spreading loyal sells over the sale.

    At 0% concentration the schedule is flat. Raising the concentration
    narrows a Gaussian bump mirrored at both edges, moving sell intensity
    from the middle of the sale towards its start and end.
    """
    safe_steps = max(1, int(steps))

    a = min(max(concentration_pct, 0.0), 100.0) / 100.0
    sigma_min = max(1.0 / safe_steps, LOYAL_SIGMA_FLOOR)
    sigma = LOYAL_SIGMA_MAX + (sigma_min - LOYAL_SIGMA_MAX) * a

    def gauss(t):
        return np.exp(-0.5 * (t / sigma) ** 2)

    # Unit peak height for the combined edge bump
    bump_at_edge = gauss(0.0) + gauss(1.0)
    bump_scale = 1.0 / bump_at_edge if bump_at_edge > 0 else 1.0

    x = np.arange(safe_steps + 1, dtype=float) / safe_steps
    weights = 1.0 + a * (gauss(x) + gauss(1.0 - x)) * bump_scale

    total = weights.sum()
    if total == 0:
        return np.zeros(safe_steps + 1)
    return weights / total
