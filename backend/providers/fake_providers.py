from __future__ import annotations

import asyncio
import logging
import math
import random
from dataclasses import replace
from typing import List, Optional

import polyline

from common.errors import ProviderError
from common.models import Location, Route, round_half_up
from kent_locations import ROUTE_NAME_CATALOGUE

from .contracts import ConditionSource, RouteProvider, TrafficProvider

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6371000
MIN_BASE_DURATION_S = 300
SECONDS_PER_KM = 120
ROUTE_VARIATION = 0.3  # total spread, i.e. +/-15%
INCIDENT_SEVERITY = 0.3  # conditions above this are reported as incidents
POLYLINE_POINTS = 5


def haversine_m(origin: Location, destination: Location) -> float:
    """Great-circle distance in meters."""
    lat1 = math.radians(origin.latitude)
    lat2 = math.radians(destination.latitude)
    d_lat = math.radians(destination.latitude - origin.latitude)
    d_lng = math.radians(destination.longitude - origin.longitude)

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def route_count_for(distance_m: float) -> int:
    if distance_m > 20000:
        return 4
    if distance_m > 10000:
        return 3
    return 2


def route_name_for(index: int) -> str:
    return ROUTE_NAME_CATALOGUE[index % len(ROUTE_NAME_CATALOGUE)]


def mock_polyline(origin: Location, destination: Location, variant: int) -> str:
    """Straight line between the endpoints, bowed slightly per variant."""
    offset = variant * 0.001
    points = []
    for step in range(POLYLINE_POINTS):
        t = step / (POLYLINE_POINTS - 1)
        bow = offset * math.sin(math.pi * t)
        points.append((
            origin.latitude + (destination.latitude - origin.latitude) * t + bow,
            origin.longitude + (destination.longitude - origin.longitude) * t + bow,
        ))
    return polyline.encode(points, 5)


def _check_location(location: Location, label: str):
    if location is None:
        raise ProviderError(f"{label} is required", provider="routes")
    if not (-90.0 <= location.latitude <= 90.0) or not (-180.0 <= location.longitude <= 180.0):
        raise ProviderError(
            f"{label} coordinates out of range: {location.latitude}, {location.longitude}",
            provider="routes",
        )


class SyntheticRouteProvider(RouteProvider):
    """
    Candidate routes from straight-line distance.

    Traffic-free: every route comes back with zero delay. Route names are
    taken in order from the Kent road catalogue, so the first route of any
    trip is always on the same road.
    """

    def __init__(self, rng: Optional[random.Random] = None, simulate_latency: bool = False):
        self._rng = rng or random.Random()
        self._simulate_latency = simulate_latency

    async def compute_routes(self, origin: Location, destination: Location) -> List[Route]:
        _check_location(origin, "Origin")
        _check_location(destination, "Destination")

        if self._simulate_latency:
            await asyncio.sleep(0.2 + self._rng.random() * 0.3)

        distance = haversine_m(origin, destination)
        base_duration = max(MIN_BASE_DURATION_S, distance / 1000 * SECONDS_PER_KM)

        routes = []
        for i in range(route_count_for(distance)):
            variation = 1 + (self._rng.random() - 0.5) * ROUTE_VARIATION
            static_duration = round_half_up(base_duration * variation)
            routes.append(Route(
                id=f"route_{i + 1}",
                name=route_name_for(i),
                distance=round_half_up(distance * variation),
                static_duration=static_duration,
                current_duration=static_duration,
                polyline=mock_polyline(origin, destination, i),
            ))
        return routes


class SimulatedTrafficProvider(TrafficProvider):
    """Applies the simulator's per-road severity to a route."""

    def __init__(
        self,
        conditions: ConditionSource,
        rng: Optional[random.Random] = None,
        simulate_latency: bool = False,
    ):
        self._conditions = conditions
        self._rng = rng or random.Random()
        self._simulate_latency = simulate_latency

    async def apply_traffic(self, route: Route) -> Route:
        if self._simulate_latency:
            await asyncio.sleep(0.1 + self._rng.random() * 0.2)

        if route.static_duration <= 0:
            raise ProviderError(
                f"Route {route.id} has no static duration", provider="traffic"
            )

        condition = self._conditions.get_condition(route.name)
        severity = condition.severity if condition else 0.0

        current_duration = round_half_up(route.static_duration * (1 + severity))
        delay = current_duration - route.static_duration
        return replace(
            route,
            current_duration=current_duration,
            delay=delay,
            delay_percentage=delay / route.static_duration * 100,
            reason=condition.reason if condition else None,
        )

    async def get_traffic_incidents(self, route: Route) -> List[str]:
        condition = self._conditions.get_condition(route.name)
        if condition and condition.severity > INCIDENT_SEVERITY and condition.reason:
            return [condition.reason]
        return []
