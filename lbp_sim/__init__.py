"""Liquidity Bootstrapping Pool Simulation Package

Deterministic simulation framework for weighted-pool token sales:
- Balancer-style weighted AMM math with a linear weight schedule
- Synthetic community demand curves (bullish / bearish)
- Loyal and greedy community sell behaviour
- Full-sale runs and demand-scenario price projections from a checkpoint
- Background request dispatch for interactive hosts
- Metrics, historical comparison, plots and reporting
"""

__version__ = "0.1.0"

# Import core simulation components
from .core import LBPSimulation, LBPMarketModel, run_deterministic_simulation
from .state import (
    PoolState,
    CommunityState,
    StepVolumes,
    StepSnapshot,
    CheckpointState,
    SimulationResults,
)
from .config import PoolConfig, DemandPressureConfig, SellPressureConfig

# Import pricing and demand utilities
from .pricing import (
    spot_price,
    out_given_in,
    swap_out_given_in,
    value_function,
    effective_price,
    price_impact,
    normalize_swap_fee,
    weight_at,
    weights_at,
)
from .demand import (
    get_cumulative_buy_pressure_curve,
    get_per_step_buy_flow_from_cumulative,
    get_demand_pressure_curve,
    get_loyal_sell_schedule,
)
from .engine import evolve_step
from .projection import calculate_potential_price_paths

# Import host dispatch
from .worker import SimulationHost, WorkerResponse, PendingRequest, handle_message

# Import metrics and analysis
from .metrics import (
    calc_tvl_usd,
    calculate_key_metrics,
    calculate_path_summary,
    export_metrics_to_file,
    is_usd_collateral,
    snapshots_to_dataframe,
)
from .analysis import (
    ObservedOutcome,
    RealLBPData,
    MetricComparison,
    ComparisonResult,
    compare_with_real_lbp,
    format_comparison,
    PERP_LBP,
    APWINE_LBP,
)
from .plotting import (
    create_summary_plots,
    plot_price_paths,
    generate_summary_report,
)

__all__ = [
    # Core simulation
    "LBPSimulation",
    "LBPMarketModel",
    "run_deterministic_simulation",

    # Configuration
    "PoolConfig",
    "DemandPressureConfig",
    "SellPressureConfig",

    # State management
    "PoolState",
    "CommunityState",
    "StepVolumes",
    "StepSnapshot",
    "CheckpointState",
    "SimulationResults",

    # Pricing and demand
    "spot_price",
    "out_given_in",
    "swap_out_given_in",
    "value_function",
    "effective_price",
    "price_impact",
    "normalize_swap_fee",
    "weight_at",
    "weights_at",
    "get_cumulative_buy_pressure_curve",
    "get_per_step_buy_flow_from_cumulative",
    "get_demand_pressure_curve",
    "get_loyal_sell_schedule",
    "evolve_step",
    "calculate_potential_price_paths",

    # Host dispatch
    "SimulationHost",
    "WorkerResponse",
    "PendingRequest",
    "handle_message",

    # Metrics and analysis
    "calc_tvl_usd",
    "calculate_key_metrics",
    "calculate_path_summary",
    "export_metrics_to_file",
    "is_usd_collateral",
    "snapshots_to_dataframe",
    "ObservedOutcome",
    "RealLBPData",
    "MetricComparison",
    "ComparisonResult",
    "compare_with_real_lbp",
    "format_comparison",
    "PERP_LBP",
    "APWINE_LBP",

    # Visualization
    "create_summary_plots",
    "plot_price_paths",
    "generate_summary_report",
]
