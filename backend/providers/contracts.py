from __future__ import annotations

from typing import List, Optional, Protocol

from common.models import Location, Route, TrafficCondition


class RouteProvider(Protocol):
    async def compute_routes(self, origin: Location, destination: Location) -> List[Route]:
        ...


class TrafficProvider(Protocol):
    async def apply_traffic(self, route: Route) -> Route:
        ...

    async def get_traffic_incidents(self, route: Route) -> List[str]:
        ...


class ConditionSource(Protocol):
    def get_condition(self, route_name: str) -> Optional[TrafficCondition]:
        ...
