"""Utility helpers for lightweight test execution without pytest.

Assertion helpers and small fixtures shared by the LBP test modules."""

import math
import os

from lbp_sim.config import DemandPressureConfig, PoolConfig, SellPressureConfig


def assert_close(actual: float, expected: float, rel: float = 1e-4, msg: str = ""):
    """Assert that two floating point values are approximately equal.

    Uses relative tolerance so checks scale with pool balances and prices.
    """
    if not math.isclose(actual, expected, rel_tol=rel, abs_tol=1e-12):
        suffix = f" ({msg})" if msg else ""
        raise AssertionError(f"Expected {expected} ± {rel}, got {actual}{suffix}")


def expect_raises(exception, func, *args, **kwargs):
    """Assert that a function raises a specific exception."""
    try:
        func(*args, **kwargs)
    except exception:
        return
    raise AssertionError(f"Expected {exception.__name__} to be raised")


def file_exists(path: str) -> bool:
    return os.path.exists(path)


def reference_configs(sell_preset: str = "loyal"):
    """Pool, demand and sell configs of the reference 1M/100k 90/10 -> 10/90 sale."""
    pool = PoolConfig(
        tkn_balance_in=1_000_000,
        tkn_weight_in=90,
        usdc_balance_in=100_000,
        usdc_weight_in=10,
        tkn_weight_out=10,
        usdc_weight_out=90,
        duration=48,
    )
    demand = DemandPressureConfig(preset="bullish", magnitude_base=100_000, multiplier=1)
    sell = SellPressureConfig(preset=sell_preset, loyal_sold_pct=5, loyal_concentration_pct=60)
    return pool, demand, sell
