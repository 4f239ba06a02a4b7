"""Potential future price paths from a mid-sale checkpoint.

Each scenario multiplier rescales the remaining baseline buy flow and the
sale is replayed to its end with the same sell policy as the full run.
Scenarios start from the same checkpoint and never share mutated state.
"""

import logging
from typing import List, Optional, Sequence, Tuple

from .config import DemandPressureConfig, PoolConfig, SellPressureConfig
from .demand import get_demand_pressure_curve, get_loyal_sell_schedule
from .engine import evolve_step, pool_price
from .pricing import weights_at
from .state import CheckpointState, CommunityState, PoolState

logger = logging.getLogger(__name__)

DEFAULT_SCENARIOS = (0.0, 1.0, 2.0)
DEFAULT_LOYAL_CONCENTRATION = 60.0


def resolve_checkpoint(
    pool_config: PoolConfig, checkpoint: Optional[CheckpointState]
) -> Tuple[PoolState, CommunityState]:
    """Pool and community a projection starts from.

    Without a checkpoint the sale's opening balances and an empty community
    are used.
    """
    if checkpoint is None:
        return (
            PoolState(tkn_balance=pool_config.tkn_balance_in, usdc_balance=pool_config.usdc_balance_in),
            CommunityState(),
        )
    return (
        PoolState(tkn_balance=checkpoint.tkn_balance, usdc_balance=checkpoint.usdc_balance),
        CommunityState(
            tokens_held=checkpoint.community_tokens_held,
            avg_cost=checkpoint.community_avg_cost,
        ),
    )


def checkpoint_spot_price(
    pool_config: PoolConfig,
    steps: int,
    current_step: int,
    checkpoint: Optional[CheckpointState] = None,
) -> float:
    """Spot price at the checkpoint with scheduled weights and no trade applied."""
    total_steps = max(1, int(steps))
    start_step = max(0, min(total_steps, int(current_step)))
    pool, _ = resolve_checkpoint(pool_config, checkpoint)
    tkn_weight, usdc_weight = weights_at(start_step, total_steps, pool_config)
    return pool_price(pool, tkn_weight, usdc_weight)


def scenario_factor(multiplier: float, step: int, start_step: int, total_steps: int) -> float:
    """Scenario multiplier ramped in linearly over the remaining sale.

    Equals 1 right at the checkpoint and reaches ``multiplier`` on the last
    step, so paths leave the checkpoint without a jump.
    """
    remaining = max(1, total_steps - start_step)
    transition = min(1.0, max(0.0, (step - start_step) / remaining))
    return 1 + (multiplier - 1) * transition


def calculate_potential_price_paths(
    pool_config: PoolConfig,
    demand_config: DemandPressureConfig,
    sell_config: SellPressureConfig,
    steps: int,
    scenarios: Sequence[float] = DEFAULT_SCENARIOS,
    current_step: int = 0,
    checkpoint: Optional[CheckpointState] = None,
) -> List[List[float]]:
    """Project one price path per scenario multiplier from ``current_step``.

    Every path has ``steps - current_step + 1`` points and starts with the
    checkpoint spot price. A multiplier of 1 replays the baseline buy flow,
    0 models no further buying.
    """
    total_steps = max(1, int(steps))
    start_step = max(0, min(total_steps, int(current_step)))
    swap_fee = pool_config.swap_fee_fraction

    buy_flow = get_demand_pressure_curve(pool_config.duration, total_steps, demand_config)
    concentration = sell_config.loyal_concentration_pct
    if concentration is None:
        concentration = DEFAULT_LOYAL_CONCENTRATION
    loyal_schedule = get_loyal_sell_schedule(pool_config.duration, total_steps, concentration)

    start_pool, start_community = resolve_checkpoint(pool_config, checkpoint)
    initial_price = checkpoint_spot_price(pool_config, total_steps, start_step, checkpoint)

    logger.debug(
        "Projecting %d scenarios from step %d/%d", len(scenarios), start_step, total_steps
    )

    paths = []
    for multiplier in scenarios:
        pool, community = start_pool, start_community
        path = [initial_price]

        for i in range(start_step + 1, total_steps + 1):
            flow = float(buy_flow[i]) * scenario_factor(multiplier, i, start_step, total_steps)
            outcome = evolve_step(
                step=i,
                total_steps=total_steps,
                pool_config=pool_config,
                sell_config=sell_config,
                buy_flow_usdc=flow,
                loyal_schedule=loyal_schedule,
                pool=pool,
                community=community,
                swap_fee=swap_fee,
            )
            pool, community = outcome.pool, outcome.community
            path.append(outcome.price)

        paths.append(path)

    return paths
