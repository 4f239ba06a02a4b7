"""Weighted pool math and weight schedule tests (pytest-free)."""

import numpy as np

from lbp_sim.config import PoolConfig
from lbp_sim.pricing import (
    effective_price,
    normalize_swap_fee,
    out_given_in,
    price_impact,
    spot_price,
    swap_out_given_in,
    value_function,
    weight_at,
    weights_at,
)
from tests.utils import assert_close


# --- Spot price -------------------------------------------------------------

def test_spot_price_reference_pool():
    """100k collateral at 10% against 1M tokens at 90% prices the token at 0.9."""
    assert_close(spot_price(100_000, 10, 1_000_000, 90), 0.9)


def test_spot_price_percent_and_fraction_weights_agree():
    percent = spot_price(100_000, 10, 1_000_000, 90)
    fraction = spot_price(100_000, 0.1, 1_000_000, 0.9)
    assert_close(percent, fraction, rel=1e-9)


def test_spot_price_degenerate_inputs_return_zero():
    assert spot_price(100_000, 10, 0, 90) == 0.0
    assert spot_price(100_000, 10, -5, 90) == 0.0
    assert spot_price(100_000, 10, 1_000_000, 0) == 0.0
    assert spot_price(100_000, 0, 1_000_000, 90) == 0.0


def test_spot_price_negative_collateral_returns_zero():
    assert spot_price(-5_000, 10, 1_000_000, 90) == 0.0
    assert spot_price(0, 10, 1_000_000, 90) == 0.0


def test_spot_price_non_finite_inputs_return_zero():
    assert spot_price(float("nan"), 10, 1_000_000, 90) == 0.0
    assert spot_price(float("inf"), 10, 1_000_000, 90) == 0.0
    assert spot_price(100_000, 10, float("inf"), 90) == 0.0
    assert spot_price(100_000, float("nan"), 1_000_000, 90) == 0.0


# --- Out given in -----------------------------------------------------------

def test_zero_input_returns_zero_output():
    assert out_given_in(100_000, 10, 1_000_000, 90, 0) == 0.0
    assert out_given_in(100_000, 10, 1_000_000, 90, -10) == 0.0


def test_non_positive_balances_return_zero_output():
    assert out_given_in(0, 10, 1_000_000, 90, 1_000) == 0.0
    assert out_given_in(100_000, 10, -1, 90, 1_000) == 0.0
    assert out_given_in(100_000, 0, 1_000_000, 90, 1_000) == 0.0


def test_output_never_drains_pool():
    """Even an enormous input leaves some of the output asset in the pool."""
    out = out_given_in(100_000, 50, 1_000_000, 50, 1e12)
    assert 0 < out < 1_000_000


def test_huge_sell_into_skewed_pool_leaves_collateral():
    """At a 90/10 weight ratio the remainder falls below float resolution of the balance."""
    out = out_given_in(1_000_000, 90, 100_000, 10, 1e8)
    assert 0 < out < 100_000

    amount_out, remaining = swap_out_given_in(1_000_000, 90, 100_000, 10, 1e8)
    assert amount_out == out
    assert remaining > 0

    amount_out, remaining = swap_out_given_in(1_000_000, 90, 100_000, 10, 1e300)
    assert amount_out < 100_000
    assert remaining > 0


def test_swap_remaining_balance_matches_output():
    amount_out, remaining = swap_out_given_in(100_000, 10, 1_000_000, 90, 10_000, 0.02)
    assert_close(remaining, 1_000_000 - amount_out, rel=1e-12)


def test_non_finite_amounts_return_zero_output():
    assert out_given_in(100_000, 10, 1_000_000, 90, float("nan")) == 0.0
    assert out_given_in(100_000, 10, 1_000_000, 90, float("inf")) == 0.0
    assert out_given_in(float("nan"), 10, 1_000_000, 90, 1_000) == 0.0
    assert out_given_in(100_000, 10, 1_000_000, float("inf"), 1_000) == 0.0
    assert out_given_in(100_000, 10, 1_000_000, 90, 1_000, float("nan")) == 0.0

    amount_out, remaining = swap_out_given_in(100_000, 10, 1_000_000, 90, float("inf"))
    assert amount_out == 0.0
    assert remaining == 1_000_000


def test_output_increases_with_input():
    amounts = [10, 1_000, 50_000, 100_000, 1_000_000]
    outputs = [out_given_in(100_000, 10, 1_000_000, 90, a) for a in amounts]
    assert all(b > a for a, b in zip(outputs, outputs[1:]))


def test_invariant_preserved_without_fee():
    """balanceIn^wIn * balanceOut^wOut is unchanged by a fee-free swap."""
    rng = np.random.default_rng(7)
    for _ in range(50):
        balance_in = rng.uniform(1e3, 1e7)
        balance_out = rng.uniform(1e3, 1e7)
        weight_in = rng.uniform(0.05, 0.95)
        weight_out = 1 - weight_in
        amount_in = rng.uniform(1, balance_in)

        before = value_function(balance_in, weight_in, balance_out, weight_out)
        amount_out = out_given_in(balance_in, weight_in, balance_out, weight_out, amount_in)
        after = value_function(balance_in + amount_in, weight_in, balance_out - amount_out, weight_out)

        assert abs(after - before) / before < 1e-4


def test_invariant_preserved_with_fee_adjusted_input():
    """With a fee, the invariant holds on the fee-adjusted input and grows on the full input."""
    fee = 0.02
    balance_in, weight_in, balance_out, weight_out = 100_000, 0.1, 1_000_000, 0.9
    amount_in = 25_000

    before = value_function(balance_in, weight_in, balance_out, weight_out)
    amount_out = out_given_in(balance_in, weight_in, balance_out, weight_out, amount_in, fee)

    net = value_function(balance_in + amount_in * (1 - fee), weight_in, balance_out - amount_out, weight_out)
    gross = value_function(balance_in + amount_in, weight_in, balance_out - amount_out, weight_out)

    assert_close(net, before, rel=1e-6)
    assert gross > before


def test_fee_reduces_output():
    no_fee = out_given_in(100_000, 10, 1_000_000, 90, 10_000)
    with_fee = out_given_in(100_000, 10, 1_000_000, 90, 10_000, 0.01)
    zero_fee = out_given_in(100_000, 10, 1_000_000, 90, 10_000, 0.0)
    assert with_fee < no_fee
    assert zero_fee == no_fee


def test_weight_scale_does_not_change_output():
    percent = out_given_in(100_000, 10, 1_000_000, 90, 5_000)
    fraction = out_given_in(100_000, 0.1, 1_000_000, 0.9, 5_000)
    assert_close(percent, fraction, rel=1e-9)


# --- Price impact -----------------------------------------------------------

def test_slippage_grows_with_trade_size():
    """Larger buys execute at strictly worse average prices."""
    impacts = [price_impact(100_000, 10, 1_000_000, 90, a) for a in (1_000, 50_000, 100_000)]
    assert impacts[0] > 0
    assert impacts[0] < impacts[1] < impacts[2]


def test_small_trade_slippage_below_one_percent():
    assert price_impact(100_000, 10, 1_000_000, 90, 100) < 0.01


def test_buy_raises_spot_price():
    before = spot_price(100_000, 10, 1_000_000, 90)
    amount_out = out_given_in(100_000, 10, 1_000_000, 90, 10_000)
    after = spot_price(110_000, 10, 1_000_000 - amount_out, 90)
    assert after > before


def test_effective_price_handles_empty_output():
    assert effective_price(100, 0) == 0.0
    assert_close(effective_price(100, 50), 2.0)


# --- Swap fee normalization -------------------------------------------------

def test_normalize_swap_fee_percent_values():
    assert_close(normalize_swap_fee(2), 0.02)
    assert_close(normalize_swap_fee(100), 1.0)


def test_normalize_swap_fee_fraction_values_pass_through():
    assert normalize_swap_fee(0.01) == 0.01
    # At or below 1 the value is read as a fraction, so 0.5 means 50%
    assert normalize_swap_fee(0.5) == 0.5
    assert normalize_swap_fee(1) == 1


def test_normalize_swap_fee_missing_values():
    assert normalize_swap_fee(None) == 0.0
    assert normalize_swap_fee(0) == 0.0


# --- Weight schedule --------------------------------------------------------

def test_weight_schedule_endpoints_and_midpoint():
    assert weight_at(0, 100, 90, 10) == 90
    assert weight_at(100, 100, 90, 10) == 10
    assert_close(weight_at(50, 100, 90, 10), 50)


def test_weight_schedule_non_positive_steps():
    """A zero-step sale is treated as a single step."""
    assert weight_at(1, 0, 90, 10) == 10
    assert weight_at(0, -5, 90, 10) == 90


def test_weights_interpolate_each_asset_independently():
    config = PoolConfig(tkn_weight_in=96, usdc_weight_in=4, tkn_weight_out=25, usdc_weight_out=75)
    tkn, usdc = weights_at(50, 100, config)
    assert_close(tkn, 60.5)
    assert_close(usdc, 39.5)
