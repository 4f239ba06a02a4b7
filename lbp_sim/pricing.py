"""Weighted-pool pricing utilities for the LBP simulation.

Balancer-style weighted math for a two-asset pool whose weights shift
linearly over the sale:

    spot price = (B_collateral / W_collateral) / (B_token / W_token)
    out given in = B_out * (1 - (B_in / (B_in + A_in)) ** (W_in / W_out))

Weights may be given as fractions (0.1/0.9) or percentages (10/90); only
their ratio enters the formulas so both conventions price identically.
"""

import math
from typing import Optional, Tuple


def _all_finite(*values: float) -> bool:
    return all(math.isfinite(v) for v in values)


def spot_price(
    collateral_balance: float,
    collateral_weight: float,
    token_balance: float,
    token_weight: float,
) -> float:
    """Instantaneous token price denominated in collateral.

    Returns 0 rather than raising when a balance is negative, the token
    balance or either weight is zero (or negative), or any input is NaN or
    infinite, so the step loop keeps running on degenerate state.
    """
    if not _all_finite(collateral_balance, collateral_weight, token_balance, token_weight):
        return 0.0
    if collateral_balance < 0 or token_balance <= 0 or token_weight <= 0 or collateral_weight <= 0:
        return 0.0
    numer = collateral_balance / collateral_weight
    denom = token_balance / token_weight
    return numer / denom


def swap_out_given_in(
    balance_in: float,
    weight_in: float,
    balance_out: float,
    weight_out: float,
    amount_in: float,
    swap_fee: Optional[float] = None,
) -> Tuple[float, float]:
    """(amount out, output balance left in the pool) for a swap of ``amount_in``.

    The remaining balance is computed directly as ``B_out * base ** ratio``
    so it stays positive for huge trades where ``1 - base ** ratio`` rounds
    to 1. Degenerate input leaves the pool untouched and returns 0 out.
    """
    if swap_fee is None:
        swap_fee = 0.0
    if not _all_finite(balance_in, weight_in, balance_out, weight_out, amount_in, swap_fee):
        return 0.0, balance_out
    if amount_in <= 0 or balance_in <= 0 or balance_out <= 0:
        return 0.0, balance_out
    if weight_in <= 0 or weight_out <= 0:
        return 0.0, balance_out

    effective_in = amount_in * (1 - swap_fee) if swap_fee > 0 else amount_in
    weight_ratio = weight_in / weight_out
    base = balance_in / (balance_in + effective_in)
    power = base ** weight_ratio

    amount_out = balance_out * (1 - power)
    if amount_out >= balance_out:
        # Remainder is below float resolution of the balance
        amount_out = math.nextafter(balance_out, 0.0)
    remaining = balance_out * power if power > 0 else balance_out - amount_out
    return amount_out, remaining


def out_given_in(
    balance_in: float,
    weight_in: float,
    balance_out: float,
    weight_out: float,
    amount_in: float,
    swap_fee: Optional[float] = None,
) -> float:
    """Amount of the output asset received for ``amount_in`` of the input asset.

    ``swap_fee`` is a bare fraction (0.01 = 1%). The fee only shrinks the input
    seen by the invariant; callers still credit the pool with the full
    ``amount_in``.

    Uses the asymptotic power-law form, so the result stays strictly below
    ``balance_out`` for any finite input. Non-positive or non-finite balances,
    weights or amounts return 0 instead of propagating NaN.
    """
    amount_out, _ = swap_out_given_in(balance_in, weight_in, balance_out, weight_out, amount_in, swap_fee)
    return amount_out


def value_function(
    balance_in: float,
    weight_in: float,
    balance_out: float,
    weight_out: float,
) -> float:
    """Weighted-product invariant V = B_in^w_in * B_out^w_out.

    Weights are normalized to fractions first so percent weights do not blow
    the product up to overflow.
    """
    total = weight_in + weight_out
    if total <= 0 or balance_in <= 0 or balance_out <= 0:
        return 0.0
    return (balance_in ** (weight_in / total)) * (balance_out ** (weight_out / total))


def effective_price(amount_in: float, amount_out: float) -> float:
    """Average execution price of a swap (input paid per unit received)."""
    if amount_out <= 0:
        return 0.0
    return amount_in / amount_out


def price_impact(
    balance_in: float,
    weight_in: float,
    balance_out: float,
    weight_out: float,
    amount_in: float,
    swap_fee: Optional[float] = None,
) -> float:
    """Slippage of a swap relative to the pre-trade spot price (0.01 = 1%)."""
    before = spot_price(balance_in, weight_in, balance_out, weight_out)
    amount_out = out_given_in(balance_in, weight_in, balance_out, weight_out, amount_in, swap_fee)
    if before <= 0 or amount_out <= 0:
        return 0.0
    return (effective_price(amount_in, amount_out) - before) / before


def normalize_swap_fee(swap_fee: Optional[float]) -> float:
    """Convert a configured swap fee to a fraction.

    Pool configs carry the fee as a 0-100 percentage, the swap math expects a
    fraction. Values above 1 are divided by 100; values at or below 1 are taken
    as already fractional, which makes "0.5" mean 50% rather than 0.5%.
    """
    if not swap_fee:
        return 0.0
    return swap_fee / 100 if swap_fee > 1 else swap_fee


def weight_at(step: int, total_steps: int, weight_in: float, weight_out: float) -> float:
    """Linearly interpolated pool weight at ``step`` of ``total_steps``."""
    safe_steps = max(1, total_steps)
    progress = step / safe_steps
    return weight_in + (weight_out - weight_in) * progress


def weights_at(step: int, total_steps: int, config) -> tuple:
    """(token_weight, collateral_weight) for a pool config at ``step``.

    Each asset is interpolated independently from its own (in, out) pair.
    """
    return (
        weight_at(step, total_steps, config.tkn_weight_in, config.tkn_weight_out),
        weight_at(step, total_steps, config.usdc_weight_in, config.usdc_weight_out),
    )
