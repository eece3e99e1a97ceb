"""
Traffic Condition Simulator

Holds the "ground truth" traffic for the area: a severity (0-1) and an
optional reason per road name. Every route on a road shares that road's
condition.

Behaviour:
- Seeded from time-of-day / day-of-week patterns (weekday rush hour, school
  run, weekend leisure) plus a pool of generic incidents, each active with
  30% probability
- Each tick, existing incidents may ease (15%) or worsen (8%), a brand-new
  incident may appear (8%), and anything under 0.05 severity is cleared
- inject_scenario() force-sets a road (demo/test hook, last write wins)

This is the only nondeterministic component. Pass a seeded random.Random
and a fixed clock for reproducible runs.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from common.cancellation import CancellationToken
from common.models import TrafficCondition, round_half_up, sunday_weekday

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Scenario:
    """A condition to apply to one road."""
    route: str
    severity: float
    reason: str


@dataclass(frozen=True)
class IncidentPool:
    """Roads that share a family of plausible incidents."""
    routes: Tuple[str, ...]
    reasons: Tuple[str, ...]
    severity_range: Tuple[float, float]


RANDOM_SCENARIOS = [
    Scenario("A21 (London Road)", 0.7, "Multi-vehicle accident near Sevenoaks bypass"),
    Scenario("M25 Junction 5", 0.8, "Overturned lorry blocking two lanes"),
    Scenario("A25 (High Street)", 0.4, "Roadworks - temporary traffic lights"),
    Scenario("A225 (Dartford Road)", 0.5, "Broken down vehicle in outside lane"),
    Scenario("Via Seal Hollow Road", 0.3, "Tree fallen across carriageway"),
    Scenario("A26 (Tonbridge Road)", 0.6, "Police incident - lane restrictions"),
    Scenario("Via Bradbourne Park Road", 0.2, "Utility work causing delays"),
    Scenario("A224 (Polhill)", 0.4, "Emergency services on scene"),
    Scenario("Via Riverhead", 0.1, "Local event causing minor delays"),
    Scenario("A21 towards Hastings", 0.5, "Contraflow system in operation"),
]

INCIDENT_POOLS = [
    IncidentPool(
        routes=("A21 (London Road)", "M25 Junction 5", "A225 (Dartford Road)"),
        reasons=(
            "Vehicle breakdown in outside lane",
            "Minor collision - debris on road",
            "Police stopping vehicle",
            "Broken down HGV causing delays",
        ),
        severity_range=(0.2, 0.6),
    ),
    IncidentPool(
        routes=("A25 (High Street)", "Via Bradbourne Park Road", "Seal Hollow Road"),
        reasons=(
            "Temporary traffic lights installed",
            "Emergency gas leak - road partially closed",
            "Water main repair causing delays",
            "Local event - increased pedestrian activity",
        ),
        severity_range=(0.1, 0.4),
    ),
    IncidentPool(
        routes=("A26 (Tonbridge Road)", "A224 (Polhill)", "Via Riverhead"),
        reasons=(
            "Fallen tree blocking carriageway",
            "Surface water flooding",
            "Emergency services attending incident",
            "Abnormal load requiring escort",
        ),
        severity_range=(0.3, 0.8),
    ),
]

# (keyword, suffix when improving, suffix when worsening)
REASON_UPDATES = [
    ("accident", " - vehicles being moved", " - causing further delays"),
    ("breakdown", " - recovery vehicle on route", " - affecting multiple lanes"),
    ("roadworks", " - work progressing", " - extended closure"),
]
DEFAULT_IMPROVING_SUFFIX = " - situation improving"
DEFAULT_WORSENING_SUFFIX = " - delays increasing"


class TrafficSimulator:
    """Time-varying severity per road name."""

    RANDOM_SCENARIO_PROBABILITY = 0.3
    IMPROVE_PROBABILITY = 0.15
    WORSEN_PROBABILITY = 0.08
    NEW_INCIDENT_PROBABILITY = 0.08
    MAX_IMPROVEMENT = 0.2
    MAX_WORSENING = 0.3
    WORSEN_CEILING = 0.8  # incidents at or above this do not worsen further
    REASON_KEPT_ABOVE = 0.1
    CLEARED_BELOW = 0.05

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
        seed_conditions: bool = True,
    ):
        """
        Initialize simulator.

        Args:
            rng: Random source (default: unseeded random.Random)
            clock: Returns local "now" for time-of-day patterns
            seed_conditions: Apply time-based and random scenarios on start
        """
        self._rng = rng or random.Random()
        self._clock = clock or datetime.now
        self._conditions: Dict[str, TrafficCondition] = {}
        self._task: Optional[asyncio.Task] = None
        self._token: Optional[CancellationToken] = None

        if seed_conditions:
            self.seed_conditions()

    # ==================== Seeding ====================

    @staticmethod
    def time_based_scenarios(now: datetime) -> List[Scenario]:
        """Known congestion patterns for the given local time."""
        hour = now.hour
        day = sunday_weekday(now)
        is_weekday = 1 <= day <= 5
        scenarios: List[Scenario] = []

        # Rush hour: 7-9 AM, 5-7 PM on weekdays
        if is_weekday and (7 <= hour <= 9 or 17 <= hour <= 19):
            scenarios.extend([
                Scenario("A21 (London Road)", 0.4, "Rush hour congestion"),
                Scenario("M25 Junction 5", 0.6, "Heavy commuter traffic"),
                Scenario("A225 (Dartford Road)", 0.3, "Morning/evening rush"),
                Scenario("A26 (Tonbridge Road)", 0.2, "Increased traffic volume"),
            ])

        # School run: drop-off and pick-up hours on weekdays
        if is_weekday and hour in (8, 15):
            scenarios.extend([
                Scenario("Via Bradbourne Park Road", 0.3, "School drop-off/pick-up"),
                Scenario("A25 (High Street)", 0.2, "School traffic"),
                Scenario("Seal Hollow Road", 0.4, "Parents dropping children at school"),
            ])

        # Weekend leisure traffic
        if day in (0, 6) and 10 <= hour <= 16:
            scenarios.extend([
                Scenario("A21 towards Hastings", 0.2, "Weekend leisure traffic"),
                Scenario("Via Knole Park", 0.1, "Visitors to Knole House"),
            ])

        return scenarios

    def seed_conditions(self):
        """Apply time-based patterns, then each random scenario with fixed probability."""
        for scenario in self.time_based_scenarios(self._clock()):
            self._set(scenario.route, scenario.severity, scenario.reason)

        for scenario in RANDOM_SCENARIOS:
            if self._rng.random() < self.RANDOM_SCENARIO_PROBABILITY:
                self._set(scenario.route, scenario.severity, scenario.reason)

        logger.info(f"[TRAFFIC] Seeded {len(self._conditions)} traffic conditions")

    # ==================== Queries / injection ====================

    def get_condition(self, route_name: str) -> Optional[TrafficCondition]:
        return self._conditions.get(route_name)

    def get_current_conditions(self) -> List[Dict[str, object]]:
        """Snapshot of every active condition."""
        snapshot = []
        for route, condition in self._conditions.items():
            entry = {"route": route, "severity": condition.severity}
            if condition.reason is not None:
                entry["reason"] = condition.reason
            snapshot.append(entry)
        return snapshot

    def inject_scenario(self, route_name: str, severity: float, reason: str):
        """
        Force-set the condition for a road. Repeated calls overwrite.

        Raises:
            ValueError: If route_name is empty or severity is outside [0, 1]
        """
        if not route_name or not route_name.strip():
            raise ValueError("route_name is required")
        self._set(route_name, severity, reason)
        logger.info(
            f"[TRAFFIC] Injected scenario: {route_name} - {reason} "
            f"(severity {round_half_up(severity * 100)}%)"
        )

    def clear(self):
        self._conditions.clear()

    def _set(self, route_name: str, severity: float, reason: Optional[str]):
        self._conditions[route_name] = TrafficCondition(severity=severity, reason=reason)

    # ==================== Evolution ====================

    def tick(self):
        """Advance the simulation by one step."""
        for route, current in list(self._conditions.items()):
            # Incidents tend to clear over time
            if current.severity > self.REASON_KEPT_ABOVE:
                if self._rng.random() < self.IMPROVE_PROBABILITY:
                    severity = max(0.0, current.severity - self._rng.random() * self.MAX_IMPROVEMENT)
                    reason = (
                        self.update_reason(current.reason, improving=True)
                        if severity > self.REASON_KEPT_ABOVE
                        else None
                    )
                    self._set(route, severity, reason)

            # Some get worse
            if 0 < current.severity < self.WORSEN_CEILING:
                if self._rng.random() < self.WORSEN_PROBABILITY:
                    severity = min(1.0, current.severity + self._rng.random() * self.MAX_WORSENING)
                    self._set(route, severity, self.update_reason(current.reason, improving=False))

        if self._rng.random() < self.NEW_INCIDENT_PROBABILITY:
            self.add_random_incident()

        for route in [r for r, c in self._conditions.items() if c.severity < self.CLEARED_BELOW]:
            del self._conditions[route]

    def add_random_incident(self) -> Scenario:
        """Start a new incident on a road picked from the incident pools."""
        pool = self._rng.choice(INCIDENT_POOLS)
        route = self._rng.choice(pool.routes)
        reason = self._rng.choice(pool.reasons)
        low, high = pool.severity_range
        severity = low + self._rng.random() * (high - low)

        self._set(route, severity, reason)
        logger.info(
            f"[TRAFFIC] New traffic incident: {route} - {reason} "
            f"(severity {round_half_up(severity * 100)}%)"
        )
        return Scenario(route, severity, reason)

    @staticmethod
    def update_reason(reason: Optional[str], improving: bool) -> str:
        """Soften or escalate an incident description."""
        if not reason:
            return "Traffic incident"

        lowered = reason.lower()
        suffix = DEFAULT_IMPROVING_SUFFIX if improving else DEFAULT_WORSENING_SUFFIX
        for keyword, improving_suffix, worsening_suffix in REASON_UPDATES:
            if keyword in lowered:
                suffix = improving_suffix if improving else worsening_suffix
                break

        if reason.endswith(suffix):
            return reason
        return reason + suffix

    # ==================== Background ticking ====================

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, interval_seconds: float):
        """Tick every ``interval_seconds`` on the running event loop."""
        if self.is_running:
            return
        self._token = CancellationToken()
        self._task = asyncio.create_task(self._run(interval_seconds, self._token))
        logger.info(f"[TRAFFIC] Simulator ticking every {interval_seconds}s")

    async def stop(self):
        if self._task is None:
            return
        self._token.cancel()
        await self._task
        self._task = None
        logger.info("[TRAFFIC] Simulator stopped")

    async def _run(self, interval_seconds: float, token: CancellationToken):
        while not await token.wait(interval_seconds):
            try:
                self.tick()
            except Exception as e:
                logger.error(f"[TRAFFIC] Simulator tick failed: {e}")
