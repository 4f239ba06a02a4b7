"""Deterministic full-run LBP simulator built on the AgentPy model lifecycle.

``LBPMarketModel`` carries pool and community state through the sale one
discrete step at a time using the pure step engine, recording a
``StepSnapshot`` per step. ``LBPSimulation`` and
``run_deterministic_simulation`` are the high-level entry points.
"""

import logging
from typing import List, Optional

import agentpy as ap

from .config import DemandPressureConfig, PoolConfig, SellPressureConfig
from .demand import get_demand_pressure_curve, get_loyal_sell_schedule
from .engine import evolve_step, initial_states, pool_price
from .pricing import weights_at
from .state import SimulationResults, StepSnapshot, StepVolumes

logger = logging.getLogger(__name__)

DEFAULT_STEPS = 100


def to_agentpy_params(
    pool_config: PoolConfig,
    demand_config: DemandPressureConfig,
    sell_config: SellPressureConfig,
    steps: int,
) -> dict:
    """Bundle run inputs into an AgentPy parameter dictionary."""
    return {
        "pool_config": pool_config,
        "demand_config": demand_config,
        "sell_config": sell_config,
        "steps": steps,
    }


class LBPMarketModel(ap.Model):
    """Agent-based wrapper around the deterministic step engine.

    ``setup`` records step 0 verbatim (no trades); each ``step`` call applies
    one weight update, buy leg and sell leg. The model owns its pool and
    community state exclusively for the length of one run.
    """

    def setup(self) -> None:
        """Initialize pool, demand curves and the step-0 snapshot."""
        self.pool_config: PoolConfig = self.p.get("pool_config") or PoolConfig()
        self.demand_config: DemandPressureConfig = self.p.get("demand_config") or DemandPressureConfig()
        self.sell_config: SellPressureConfig = self.p.get("sell_config") or SellPressureConfig()
        self.total_steps: int = max(1, int(self.p.get("steps", DEFAULT_STEPS)))

        # UI-style percentage fee normalized once for the whole run
        self.swap_fee: float = self.pool_config.swap_fee_fraction

        duration = self.pool_config.duration
        self.buy_flow = get_demand_pressure_curve(duration, self.total_steps, self.demand_config)
        self.loyal_schedule = get_loyal_sell_schedule(
            duration, self.total_steps, self.sell_config.loyal_concentration_pct
        )

        self.pool, self.community = initial_states(self.pool_config)
        self.step_index: int = 0
        self.snapshots: List[StepSnapshot] = []

        tkn_weight, usdc_weight = weights_at(0, self.total_steps, self.pool_config)
        price = pool_price(self.pool, tkn_weight, usdc_weight)
        self._record_snapshot(price, tkn_weight, usdc_weight, StepVolumes())

    @property
    def sale_complete(self) -> bool:
        return self.step_index >= self.total_steps

    def step(self) -> None:
        """Execute one simulation step."""
        if self.sale_complete:
            return

        self.step_index += 1
        self.t += 1

        outcome = evolve_step(
            step=self.step_index,
            total_steps=self.total_steps,
            pool_config=self.pool_config,
            sell_config=self.sell_config,
            buy_flow_usdc=float(self.buy_flow[self.step_index]),
            loyal_schedule=self.loyal_schedule,
            pool=self.pool,
            community=self.community,
            swap_fee=self.swap_fee,
        )
        self.pool = outcome.pool
        self.community = outcome.community

        self._record_snapshot(outcome.price, outcome.tkn_weight, outcome.usdc_weight, outcome.volumes)

    def _record_snapshot(
        self, price: float, tkn_weight: float, usdc_weight: float, volumes: StepVolumes
    ) -> None:
        progress = self.step_index / self.total_steps
        time = progress * self.pool_config.duration

        snapshot = StepSnapshot(
            index=self.step_index,
            time=time,
            time_label=f"{time:.1f}h",
            price=price,
            tkn_balance=self.pool.tkn_balance,
            usdc_balance=self.pool.usdc_balance,
            tkn_weight=tkn_weight,
            usdc_weight=usdc_weight,
            tvl_usd=self.pool.usdc_balance + self.pool.tkn_balance * price,
            community_tokens_held=self.community.tokens_held,
            community_avg_cost=self.community.avg_cost,
            buy_volume_usdc=volumes.buy_usdc,
            buy_volume_tkn=volumes.buy_tkn,
            sell_volume_usdc=volumes.sell_usdc,
            sell_volume_tkn=volumes.sell_tkn,
        )
        self.snapshots.append(snapshot)

        # Record data using AgentPy's built-in data collection
        self.record("price", price)
        self.record("usdc_balance", self.pool.usdc_balance)
        self.record("tkn_balance", self.pool.tkn_balance)
        self.record("community_tokens_held", self.community.tokens_held)


class LBPSimulation:
    """High-level simulation interface.

    Validates the configuration once and drives ``LBPMarketModel`` from the
    opening of the sale to its last step.
    """

    def __init__(
        self,
        pool_config: PoolConfig,
        demand_config: Optional[DemandPressureConfig] = None,
        sell_config: Optional[SellPressureConfig] = None,
    ):
        self.pool_config = pool_config
        self.demand_config = demand_config or DemandPressureConfig()
        self.sell_config = sell_config or SellPressureConfig()
        self.pool_config.validate()
        self.demand_config.validate()
        self.sell_config.validate()
        self._last_results: Optional[SimulationResults] = None

    def run(self, steps: int = DEFAULT_STEPS) -> SimulationResults:
        """Run the sale for ``steps`` discrete steps (non-positive counts run one step)."""
        safe_steps = max(1, int(steps))
        logger.debug(
            "Running LBP simulation: %s steps, demand=%s, sell=%s",
            safe_steps,
            self.demand_config.preset,
            self.sell_config.preset,
        )

        params = to_agentpy_params(self.pool_config, self.demand_config, self.sell_config, safe_steps)
        model = LBPMarketModel(params)
        model.setup()
        while not model.sale_complete:
            model.step()

        self._last_results = SimulationResults(
            snapshots=model.snapshots,
            pool_config=self.pool_config,
            demand_config=self.demand_config,
            sell_config=self.sell_config,
            steps=safe_steps,
        )
        logger.debug(
            "LBP simulation finished: final price %.6f, collateral %.2f",
            model.snapshots[-1].price,
            model.snapshots[-1].usdc_balance,
        )
        return self._last_results

    def get_dataframe(self):
        """Get polars DataFrame of the last run, or None before any run."""
        from .metrics import snapshots_to_dataframe

        if not self._last_results:
            return None
        return snapshots_to_dataframe(self._last_results.snapshots)


def run_deterministic_simulation(
    pool_config: PoolConfig,
    demand_config: DemandPressureConfig,
    sell_config: SellPressureConfig,
    steps: int = DEFAULT_STEPS,
) -> List[StepSnapshot]:
    """Run the full sale and return its ``steps + 1`` snapshots."""
    return LBPSimulation(pool_config, demand_config, sell_config).run(steps).snapshots
