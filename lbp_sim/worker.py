"""Request/response dispatch between a host shell and the simulation engine.

The engine itself is synchronous and side-effect free. This module gives a
host the message protocol it talks to a background worker with:

- ``handle_message`` turns one request message into a success or error
  response and never raises;
- ``SimulationHost`` runs requests on an executor, tags each with a
  per-channel, monotonically increasing request id, drops responses that
  are no longer the latest, and reports requests exceeding the timeout as
  errors.
"""

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional, Sequence

from .config import DemandPressureConfig, PoolConfig, SellPressureConfig
from .core import run_deterministic_simulation
from .projection import DEFAULT_SCENARIOS, calculate_potential_price_paths
from .state import CheckpointState

logger = logging.getLogger(__name__)

RUN_SIMULATION = "run-simulation"
CALCULATE_PATHS = "calculate"

SIMULATION_CHANNEL = "simulation"
PRICE_PATHS_CHANNEL = "price_paths"

DEFAULT_TIMEOUT_SECONDS = 30.0

TIMEOUT_MESSAGES = {
    SIMULATION_CHANNEL: "Simulation timeout",
    PRICE_PATHS_CHANNEL: "Calculation timeout",
}


@dataclass(frozen=True)
class WorkerResponse:
    """Outcome of one request: ``type`` is "success" (with ``result``) or "error"."""
    type: str
    result: Any = None
    error: Optional[str] = None
    request_id: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.type == "success"


@dataclass(frozen=True)
class PendingRequest:
    """Handle for a submitted request."""
    request_id: int
    channel: str
    future: Future


def _coerce(cls, value):
    if value is None:
        return cls()
    if isinstance(value, cls):
        return value
    return cls(**value)


def _coerce_checkpoint(value, pool_config: PoolConfig) -> Optional[CheckpointState]:
    if value is None or isinstance(value, CheckpointState):
        return value
    return CheckpointState.from_dict(value, pool_config)


def handle_message(message: Dict[str, Any]) -> WorkerResponse:
    """Serve one worker message.

    Any exception raised while running is reported as an error response
    rather than propagated, so the host always gets an explicit outcome.
    """
    kind = message.get("type")
    try:
        pool_config = _coerce(PoolConfig, message.get("config"))
        demand_config = _coerce(DemandPressureConfig, message.get("demand_config"))
        sell_config = _coerce(SellPressureConfig, message.get("sell_config"))

        if kind == RUN_SIMULATION:
            result = run_deterministic_simulation(
                pool_config, demand_config, sell_config, message.get("steps", 100)
            )
        elif kind == CALCULATE_PATHS:
            result = calculate_potential_price_paths(
                pool_config,
                demand_config,
                sell_config,
                message.get("steps", 100),
                message.get("scenarios", DEFAULT_SCENARIOS),
                message.get("current_step", 0),
                _coerce_checkpoint(message.get("current_step_state"), pool_config),
            )
        else:
            return WorkerResponse(type="error", error=f"Unknown message type: {kind}")
    except Exception as exc:
        logger.debug("Worker request %s failed", kind, exc_info=True)
        return WorkerResponse(type="error", error=str(exc) or exc.__class__.__name__)

    return WorkerResponse(type="success", result=result)


class SimulationHost:
    """Dispatches simulation and price-path requests to a background executor.

    Only the most recently issued request on each channel is considered
    current; ``resolve`` returns None for anything older so callers simply
    drop stale results.
    """

    def __init__(self, executor: Optional[Executor] = None, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="lbp-sim")
        self.timeout = timeout
        self._lock = threading.Lock()
        self._latest: Dict[str, int] = {SIMULATION_CHANNEL: 0, PRICE_PATHS_CHANNEL: 0}

    def _submit(self, channel: str, message: Dict[str, Any]) -> PendingRequest:
        with self._lock:
            request_id = self._latest[channel] + 1
            self._latest[channel] = request_id
        future = self._executor.submit(handle_message, message)
        logger.debug("Submitted %s request %d", channel, request_id)
        return PendingRequest(request_id=request_id, channel=channel, future=future)

    def submit_simulation(
        self,
        pool_config: PoolConfig,
        demand_config: DemandPressureConfig,
        sell_config: SellPressureConfig,
        steps: int,
    ) -> PendingRequest:
        return self._submit(
            SIMULATION_CHANNEL,
            {
                "type": RUN_SIMULATION,
                "config": pool_config,
                "demand_config": demand_config,
                "sell_config": sell_config,
                "steps": steps,
            },
        )

    def submit_price_paths(
        self,
        pool_config: PoolConfig,
        demand_config: DemandPressureConfig,
        sell_config: SellPressureConfig,
        steps: int,
        scenarios: Sequence[float] = DEFAULT_SCENARIOS,
        current_step: int = 0,
        current_step_state: Optional[CheckpointState] = None,
    ) -> PendingRequest:
        return self._submit(
            PRICE_PATHS_CHANNEL,
            {
                "type": CALCULATE_PATHS,
                "config": pool_config,
                "demand_config": demand_config,
                "sell_config": sell_config,
                "steps": steps,
                "scenarios": list(scenarios),
                "current_step": current_step,
                "current_step_state": current_step_state,
            },
        )

    def is_latest(self, pending: PendingRequest) -> bool:
        with self._lock:
            return pending.request_id == self._latest[pending.channel]

    def resolve(self, pending: PendingRequest, timeout: Optional[float] = None) -> Optional[WorkerResponse]:
        """Wait for a request and return its tagged response.

        Returns None when a newer request was issued on the same channel.
        """
        wait = self.timeout if timeout is None else timeout
        try:
            response = pending.future.result(timeout=wait)
        except FuturesTimeoutError:
            if not self.is_latest(pending):
                return None
            logger.debug("%s request %d timed out after %.1fs", pending.channel, pending.request_id, wait)
            return WorkerResponse(
                type="error",
                error=TIMEOUT_MESSAGES[pending.channel],
                request_id=pending.request_id,
            )

        if not self.is_latest(pending):
            logger.debug("Discarding stale %s response %d", pending.channel, pending.request_id)
            return None
        return replace(response, request_id=pending.request_id)

    def shutdown(self, wait: bool = True) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()
        return False
