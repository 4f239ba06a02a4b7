"""Core data structures for LBP simulation state management."""

import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from .config import DemandPressureConfig, PoolConfig, SellPressureConfig


def _number(value: Any, default):
    """``value`` as a finite float, or ``default`` when it is not one."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if not math.isfinite(value):
        return default
    return float(value)


@dataclass(frozen=True)
class PoolState:
    """Pool balances between trades.

    Frozen: every trade produces a new state, runs never share a mutable pool.
    """
    tkn_balance: float                         # Tokens left in the pool
    usdc_balance: float                        # Collateral held by the pool


@dataclass(frozen=True)
class CommunityState:
    """Aggregate position of the synthetic buyer community."""
    tokens_held: float = 0.0                   # Tokens bought and not yet sold back
    avg_cost: float = 0.0                      # Volume-weighted average purchase price


@dataclass
class StepVolumes:
    """Bot trade volumes executed during one step, in both units."""
    buy_usdc: float = 0.0
    buy_tkn: float = 0.0
    sell_usdc: float = 0.0
    sell_tkn: float = 0.0


@dataclass(frozen=True)
class CheckpointState:
    """Live state a price-path projection resumes from.

    Weights are carried for the host's benefit; projection always derives the
    weights from the schedule at the checkpoint step.
    """
    tkn_balance: float
    usdc_balance: float
    tkn_weight: Optional[float] = None
    usdc_weight: Optional[float] = None
    community_tokens_held: float = 0.0
    community_avg_cost: float = 0.0

    @classmethod
    def from_snapshot(cls, snapshot: "StepSnapshot") -> "CheckpointState":
        return cls(
            tkn_balance=snapshot.tkn_balance,
            usdc_balance=snapshot.usdc_balance,
            tkn_weight=snapshot.tkn_weight,
            usdc_weight=snapshot.usdc_weight,
            community_tokens_held=snapshot.community_tokens_held,
            community_avg_cost=snapshot.community_avg_cost,
        )

    @classmethod
    def from_dict(
        cls, data: Optional[Dict[str, Any]], pool_config: Optional[PoolConfig] = None
    ) -> Optional["CheckpointState"]:
        """Build from a host message.

        Each missing or non-numeric field falls back on its own: balances to
        the pool's opening balances, community fields to zero. Returns None
        only when there is no checkpoint at all.
        """
        if not data:
            return None
        pool_config = pool_config or PoolConfig()
        return cls(
            tkn_balance=_number(data.get("tkn_balance"), pool_config.tkn_balance_in),
            usdc_balance=_number(data.get("usdc_balance"), pool_config.usdc_balance_in),
            tkn_weight=_number(data.get("tkn_weight"), None),
            usdc_weight=_number(data.get("usdc_weight"), None),
            community_tokens_held=_number(data.get("community_tokens_held"), 0.0),
            community_avg_cost=_number(data.get("community_avg_cost"), 0.0),
        )


@dataclass(frozen=True)
class StepSnapshot:
    """State of the pool at the end of one simulation step.

    The ordered list of snapshots is the whole result of a run; nothing else
    is persisted.
    """
    index: int                                 # Step number (0 = untouched initial pool)
    time: float                                # Hours since sale start
    time_label: str                            # e.g. "12.5h"
    price: float                               # Spot price after this step's trades
    tkn_balance: float
    usdc_balance: float
    tkn_weight: float
    usdc_weight: float
    tvl_usd: float                             # Collateral + tokens valued at spot
    community_tokens_held: float
    community_avg_cost: float
    buy_volume_usdc: float = 0.0               # Bot buys this step
    buy_volume_tkn: float = 0.0
    sell_volume_usdc: float = 0.0              # Bot sells this step
    sell_volume_tkn: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SimulationResults:
    """Results from a complete deterministic run.

    Holds the step snapshots together with the configuration that produced
    them, the primary input for metrics, comparison and plotting.
    """
    snapshots: List[StepSnapshot]
    pool_config: PoolConfig
    demand_config: DemandPressureConfig
    sell_config: SellPressureConfig
    steps: int
