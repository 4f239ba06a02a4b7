"""Configuration for LBP simulation runs."""

import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional, Tuple

from .pricing import normalize_swap_fee


@dataclass
class PoolConfig:
    """Immutable per-run parameters of a liquidity bootstrapping pool.

    Weights can be given as percentages (90/10) or fractions (0.9/0.1) as long
    as one convention is used throughout. ``swap_fee`` is a 0-100 percentage;
    values of 1 or less are read as fractions (see ``swap_fee_fraction``).
    """

    # Descriptive metadata - never enters the pool math
    token_name: str = "Token"
    token_symbol: str = "TKN"
    collateral_token: str = "USDC"
    total_supply: float = 10_000_000       # Total token supply (for FDV)
    percent_for_sale: float = 10.0         # Share of supply seeded into the pool
    start_delay: float = 0.0               # Hours before the sale opens
    creator_fee: float = 0.0               # Creator fee percentage (informational)

    # Pool seed balances and weight schedule
    tkn_balance_in: float = 1_000_000      # Tokens seeded into the pool
    tkn_weight_in: float = 90.0            # Token weight at sale start
    usdc_balance_in: float = 100_000       # Collateral seeded into the pool
    usdc_weight_in: float = 10.0           # Collateral weight at sale start
    tkn_weight_out: float = 10.0           # Token weight at sale end
    usdc_weight_out: float = 90.0          # Collateral weight at sale end

    duration: float = 48.0                 # Sale duration in hours
    swap_fee: float = 2.0                  # Swap fee percentage (2 = 2%)

    @property
    def swap_fee_fraction(self) -> float:
        return normalize_swap_fee(self.swap_fee)

    def validate(self) -> None:
        """Validate configuration against pool invariants."""
        assert self.tkn_balance_in > 0, "Token balance must be positive"
        assert self.usdc_balance_in > 0, "Collateral balance must be positive"
        # Interpolated weights are convex combinations of the endpoints, so
        # positive endpoints keep every intermediate weight positive.
        for name in ("tkn_weight_in", "tkn_weight_out", "usdc_weight_in", "usdc_weight_out"):
            assert getattr(self, name) > 0, f"{name} must be positive"
        assert self.duration > 0, "Duration must be positive"
        assert 0 <= self.swap_fee <= 100, "Swap fee must be within 0-100%"
        assert self.start_delay >= 0, "Start delay cannot be negative"
        assert 0 <= self.percent_for_sale <= 100, "Percent for sale must be within 0-100%"
        assert self.total_supply >= self.tkn_balance_in, "Pool cannot hold more tokens than total supply"

    @classmethod
    def from_calibration_file(
        cls, file_path: str, overrides: Optional[dict] = None
    ) -> Tuple["PoolConfig", "DemandPressureConfig", "SellPressureConfig"]:
        """
        Load pool, demand and sell configuration from JSON.

        Structure:
        {
            "pool_config": {...},
            "demand_config": {...},
            "sell_config": {...}
        }
        """
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Calibration file not found: {file_path}")

        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)

        overrides = overrides or {}
        sections = {}
        for key in ("pool_config", "demand_config", "sell_config"):
            section = dict(data.get(key, {}))
            section.update(overrides.get(key, {}))
            sections[key] = section

        return (
            cls(**sections["pool_config"]),
            DemandPressureConfig(**sections["demand_config"]),
            SellPressureConfig(**sections["sell_config"]),
        )

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class DemandPressureConfig:
    """Total synthetic collateral inflow over the sale and its time shape."""

    preset: str = "bullish"                # "bearish" back-loads and shrinks demand, anything else is bullish
    magnitude_base: float = 100_000.0      # Collateral bought over the sale at multiplier 1
    multiplier: float = 1.0                # Scales the whole curve (0 = no buyers)

    def validate(self) -> None:
        assert self.magnitude_base >= 0, "Demand magnitude cannot be negative"
        assert self.multiplier >= 0, "Demand multiplier cannot be negative"

    @classmethod
    def create_scenario(cls, scenario: str, **kwargs):
        """Convenience helper for common demand assumptions."""
        demand_scenarios = {
            "bullish": {"preset": "bullish", "multiplier": 1.0},
            "bearish": {"preset": "bearish", "multiplier": 1.0},
            "hype": {"preset": "bullish", "multiplier": 2.0},
            "dead": {"preset": "bearish", "multiplier": 0.0},
        }

        if scenario not in demand_scenarios:
            available = ", ".join(sorted(demand_scenarios.keys()))
            raise ValueError(f"Unknown demand scenario '{scenario}'. Available: {available}")

        params = demand_scenarios[scenario].copy()
        params.update(kwargs)
        return cls(**params)

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class SellPressureConfig:
    """Community sell behaviour.

    ``loyal`` sellers follow a time schedule and target a share of the initial
    pool balance; ``greedy`` sellers take profit once the price clears their
    cost basis by a spread. Any other preset disables selling.
    """

    preset: str = "loyal"
    loyal_sold_pct: float = 5.0            # Share of initial pool tokens sold over the sale
    loyal_concentration_pct: float = 60.0  # 0 = flat schedule, 100 = sells pinned to the edges
    greedy_spread_pct: float = 2.0         # Profit over cost basis that triggers a sell
    greedy_sell_pct: float = 100.0         # Share of holdings dumped when triggered

    def validate(self) -> None:
        assert 0 <= self.loyal_sold_pct <= 100, "Loyal sold share must be within 0-100%"
        assert 0 <= self.loyal_concentration_pct <= 100, "Concentration must be within 0-100%"
        assert self.greedy_spread_pct >= 0, "Greedy spread cannot be negative"
        assert 0 <= self.greedy_sell_pct <= 100, "Greedy sell share must be within 0-100%"

    @classmethod
    def create_scenario(cls, scenario: str, **kwargs):
        """Convenience helper for common sell behaviours."""
        sell_scenarios = {
            "loyal": {"preset": "loyal", "loyal_sold_pct": 5.0, "loyal_concentration_pct": 60.0},
            "edge_dumpers": {"preset": "loyal", "loyal_sold_pct": 15.0, "loyal_concentration_pct": 90.0},
            "greedy": {"preset": "greedy", "greedy_spread_pct": 2.0, "greedy_sell_pct": 100.0},
            "cautious_greedy": {"preset": "greedy", "greedy_spread_pct": 20.0, "greedy_sell_pct": 25.0},
            "none": {"preset": "loyal", "loyal_sold_pct": 0.0},
        }

        if scenario not in sell_scenarios:
            available = ", ".join(sorted(sell_scenarios.keys()))
            raise ValueError(f"Unknown sell scenario '{scenario}'. Available: {available}")

        params = sell_scenarios[scenario].copy()
        params.update(kwargs)
        return cls(**params)

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}
