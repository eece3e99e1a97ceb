from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Optional

from common.config import MODE_LIVE, MonitoringConfig

from .contracts import RouteProvider, TrafficProvider
from .fake_providers import SimulatedTrafficProvider, SyntheticRouteProvider
from .simulator import TrafficSimulator

# Seed used for test mode when PREROUTE_RANDOM_SEED is not set
TEST_MODE_SEED = 1234


@dataclass
class ProviderSet:
    simulator: TrafficSimulator
    routes: RouteProvider
    traffic: TrafficProvider


def _rng_for(config: MonitoringConfig) -> random.Random:
    if config.random_seed is not None:
        return random.Random(config.random_seed)
    if config.mode != MODE_LIVE:
        return random.Random(TEST_MODE_SEED)
    return random.Random()


def build_providers(
    config: Optional[MonitoringConfig] = None,
    simulator: Optional[TrafficSimulator] = None,
) -> ProviderSet:
    """
    Wire route and traffic providers around one shared simulator.

    A fresh set is built on every call; callers own the result and pass it on
    explicitly.
    """
    config = config or MonitoringConfig()
    rng = _rng_for(config)
    if simulator is None:
        simulator = TrafficSimulator(rng=rng)

    return ProviderSet(
        simulator=simulator,
        routes=SyntheticRouteProvider(rng=rng, simulate_latency=config.simulate_latency),
        traffic=SimulatedTrafficProvider(
            simulator, rng=rng, simulate_latency=config.simulate_latency
        ),
    )
