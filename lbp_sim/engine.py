"""Step evolution engine for the LBP simulation.

One step applies, in order: the weight update, the community buy leg, the
sell leg chosen by the sell preset, and the community cost-basis
bookkeeping. Every function here is pure: it takes frozen pool/community
states and returns new ones, so the full-run simulator and the path
projector can share it without sharing state.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from .config import PoolConfig, SellPressureConfig
from .pricing import spot_price, swap_out_given_in, weights_at
from .state import CommunityState, PoolState, StepVolumes

# Trades below one token are dust and skipped
MIN_SELL_TOKENS = 1.0

# Loyal sellers move between 0.1% and 10% of holdings per step
LOYAL_MIN_SELL_FRACTION = 0.001
LOYAL_MAX_SELL_FRACTION = 0.1
# A single loyal step may overshoot its scheduled target by this factor
LOYAL_TARGET_OVERSHOOT = 5.0

# Greedy sellers unwind continuously once holdings exceed this share of the pool seed
GREEDY_UNWIND_HOLDINGS_RATIO = 0.02
GREEDY_UNWIND_MAX_FRACTION = 0.05


@dataclass(frozen=True)
class SellOutcome:
    """Pool and community after the sell leg of one step."""
    pool: PoolState
    community: CommunityState
    price: float
    sell_usdc: float = 0.0
    sell_tkn: float = 0.0


@dataclass(frozen=True)
class StepOutcome:
    """Everything one step produced."""
    pool: PoolState
    community: CommunityState
    price: float
    tkn_weight: float
    usdc_weight: float
    volumes: StepVolumes


def pool_price(pool: PoolState, tkn_weight: float, usdc_weight: float) -> float:
    """Spot price of the pool state under the given weights."""
    return spot_price(pool.usdc_balance, usdc_weight, pool.tkn_balance, tkn_weight)


def apply_buy_pressure(
    pool: PoolState,
    community: CommunityState,
    flow_usdc: float,
    tkn_weight: float,
    usdc_weight: float,
    swap_fee: float,
) -> Tuple[PoolState, CommunityState, float, float]:
    """Swap ``flow_usdc`` of collateral into the pool on behalf of the community.

    Returns the new pool and community states plus the (collateral in,
    tokens out) volumes. The pool is credited with the full flow; the fee
    only reduces what the buyers receive.
    """
    if flow_usdc <= 0:
        return pool, community, 0.0, 0.0

    amount_out, tkn_left = swap_out_given_in(
        pool.usdc_balance,
        usdc_weight,
        pool.tkn_balance,
        tkn_weight,
        flow_usdc,
        swap_fee,
    )
    pool = PoolState(
        tkn_balance=tkn_left,
        usdc_balance=pool.usdc_balance + flow_usdc,
    )

    if amount_out <= 0:
        return pool, community, 0.0, 0.0

    price_paid = flow_usdc / amount_out
    new_held = community.tokens_held + amount_out
    new_cost = (community.avg_cost * community.tokens_held + price_paid * amount_out) / new_held
    community = CommunityState(tokens_held=new_held, avg_cost=new_cost)
    return pool, community, flow_usdc, amount_out


def _execute_sell(
    pool: PoolState,
    community: CommunityState,
    amount_token: float,
    tkn_weight: float,
    usdc_weight: float,
    swap_fee: float,
) -> SellOutcome:
    amount_out, usdc_left = swap_out_given_in(
        pool.tkn_balance,
        tkn_weight,
        pool.usdc_balance,
        usdc_weight,
        amount_token,
        swap_fee,
    )
    pool = PoolState(
        tkn_balance=pool.tkn_balance + amount_token,
        usdc_balance=usdc_left,
    )

    held = max(0.0, community.tokens_held - amount_token)
    # Cost basis survives partial sells and only resets on a full exit
    cost = 0.0 if held == 0 else community.avg_cost
    community = CommunityState(tokens_held=held, avg_cost=cost)

    return SellOutcome(
        pool=pool,
        community=community,
        price=pool_price(pool, tkn_weight, usdc_weight),
        sell_usdc=amount_out,
        sell_tkn=amount_token,
    )


def loyal_sell_amount(
    sell_config: SellPressureConfig,
    schedule_weight: float,
    tokens_held: float,
    initial_tkn_balance: float,
) -> float:
    """Tokens loyal sellers offload at a step with the given schedule weight."""
    if schedule_weight <= 0 or tokens_held <= 0 or sell_config.loyal_sold_pct <= 0:
        return 0.0
    total_target = initial_tkn_balance * (sell_config.loyal_sold_pct / 100)
    step_target = total_target * schedule_weight
    # Edge-heavy schedule weights translate into more aggressive steps
    sell_fraction = min(LOYAL_MAX_SELL_FRACTION, max(LOYAL_MIN_SELL_FRACTION, schedule_weight * 100))
    return min(tokens_held * sell_fraction, step_target * LOYAL_TARGET_OVERSHOOT)


def greedy_sell_fraction(
    sell_config: SellPressureConfig,
    community: CommunityState,
    price: float,
    initial_tkn_balance: float,
) -> float:
    """Share of community holdings greedy sellers dump at the current price."""
    if community.tokens_held <= 0:
        return 0.0

    if community.avg_cost > 0:
        threshold = community.avg_cost * (1 + sell_config.greedy_spread_pct / 100)
        if price >= threshold:
            return min(1.0, sell_config.greedy_sell_pct / 100)

    # Large positions keep unwinding even when never profitable
    if community.tokens_held > initial_tkn_balance * GREEDY_UNWIND_HOLDINGS_RATIO:
        return min(GREEDY_UNWIND_MAX_FRACTION, sell_config.greedy_sell_pct / 100)
    return 0.0


def apply_sell_pressure(
    sell_config: SellPressureConfig,
    loyal_schedule: Sequence[float],
    step: int,
    pool_config: PoolConfig,
    pool: PoolState,
    community: CommunityState,
    tkn_weight: float,
    usdc_weight: float,
    price_after_buys: float,
    swap_fee: float,
) -> SellOutcome:
    """Apply the community sell leg for ``step`` under the configured preset."""
    no_sell = SellOutcome(pool=pool, community=community, price=price_after_buys)

    if sell_config.preset == "loyal":
        weight = loyal_schedule[step] if 0 <= step < len(loyal_schedule) else 0.0
        amount_token = loyal_sell_amount(sell_config, weight, community.tokens_held, pool_config.tkn_balance_in)
    elif sell_config.preset == "greedy":
        fraction = greedy_sell_fraction(sell_config, community, price_after_buys, pool_config.tkn_balance_in)
        amount_token = community.tokens_held * fraction
    else:
        return no_sell

    if amount_token < MIN_SELL_TOKENS:
        return no_sell
    return _execute_sell(pool, community, amount_token, tkn_weight, usdc_weight, swap_fee)


def evolve_step(
    step: int,
    total_steps: int,
    pool_config: PoolConfig,
    sell_config: SellPressureConfig,
    buy_flow_usdc: float,
    loyal_schedule: Sequence[float],
    pool: PoolState,
    community: CommunityState,
    swap_fee: Optional[float] = None,
) -> StepOutcome:
    """Advance the pool by one step.

    ``buy_flow_usdc`` is the collateral the community spends this step;
    callers pass the baseline curve value or a scenario-scaled one.
    """
    if swap_fee is None:
        swap_fee = pool_config.swap_fee_fraction

    tkn_weight, usdc_weight = weights_at(step, total_steps, pool_config)

    pool, community, buy_usdc, buy_tkn = apply_buy_pressure(
        pool, community, buy_flow_usdc, tkn_weight, usdc_weight, swap_fee
    )
    price = pool_price(pool, tkn_weight, usdc_weight)

    sold = apply_sell_pressure(
        sell_config,
        loyal_schedule,
        step,
        pool_config,
        pool,
        community,
        tkn_weight,
        usdc_weight,
        price,
        swap_fee,
    )

    return StepOutcome(
        pool=sold.pool,
        community=sold.community,
        price=sold.price,
        tkn_weight=tkn_weight,
        usdc_weight=usdc_weight,
        volumes=StepVolumes(
            buy_usdc=buy_usdc,
            buy_tkn=buy_tkn,
            sell_usdc=sold.sell_usdc,
            sell_tkn=sold.sell_tkn,
        ),
    )


def initial_states(pool_config: PoolConfig) -> Tuple[PoolState, CommunityState]:
    """Pool and community at the opening of the sale."""
    pool = PoolState(tkn_balance=pool_config.tkn_balance_in, usdc_balance=pool_config.usdc_balance_in)
    return pool, CommunityState()
