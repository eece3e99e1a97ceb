"""
Tests for the traffic condition simulator.

Covers:
- Time-of-day / day-of-week seeding patterns
- Random scenario seeding with a scripted random source
- Scenario injection (last write wins, validation)
- Reason rewording on improve/worsen
- Tick evolution: easing, worsening, clearing, new incidents
- Background ticking start/stop
"""

import asyncio
import random
from datetime import datetime

import pytest

from conftest import ScriptedRandom
from providers.simulator import INCIDENT_POOLS, RANDOM_SCENARIOS, TrafficSimulator


def _fixed(moment):
    return lambda: moment


# 2026-10-19 is a Monday, 2026-10-20 a Tuesday, 2026-10-24 a Saturday
TIME_PATTERN_CASES = [
    ("weekday 8am: rush hour and school run", datetime(2026, 10, 19, 8, 0), 7),
    ("weekday noon: quiet", datetime(2026, 10, 19, 12, 0), 0),
    ("weekday 3pm: school pick-up only", datetime(2026, 10, 20, 15, 0), 3),
    ("weekday 6pm: evening rush", datetime(2026, 10, 20, 18, 30), 4),
    ("saturday noon: leisure traffic", datetime(2026, 10, 24, 12, 0), 2),
    ("saturday 8am: nothing", datetime(2026, 10, 24, 8, 0), 0),
]


class TestSeeding:
    """Initial conditions from patterns and the random scenario pool."""

    @pytest.mark.parametrize("name,moment,expected", TIME_PATTERN_CASES)
    def test_time_based_scenarios(self, name, moment, expected):
        assert len(TrafficSimulator.time_based_scenarios(moment)) == expected, f"Failed on {name}"

    def test_rush_hour_roads(self):
        routes = {s.route for s in TrafficSimulator.time_based_scenarios(datetime(2026, 10, 19, 7, 30))}
        assert routes == {
            "A21 (London Road)", "M25 Junction 5", "A225 (Dartford Road)", "A26 (Tonbridge Road)",
        }

    def test_every_random_scenario_applied_when_rolls_succeed(self):
        sim = TrafficSimulator(
            rng=ScriptedRandom([0.0] * len(RANDOM_SCENARIOS)),
            clock=_fixed(datetime(2026, 10, 19, 12, 0)),
        )
        assert len(sim.get_current_conditions()) == len(RANDOM_SCENARIOS)
        assert sim.get_condition("M25 Junction 5").severity == 0.8

    def test_no_random_scenario_when_rolls_fail(self):
        sim = TrafficSimulator(
            rng=ScriptedRandom([0.99] * len(RANDOM_SCENARIOS)),
            clock=_fixed(datetime(2026, 10, 19, 12, 0)),
        )
        assert sim.get_current_conditions() == []

    def test_random_scenario_overrides_time_pattern(self):
        # Rush hour sets A21 to 0.4; the accident scenario (first in the pool) replaces it
        rolls = [0.0] + [0.99] * (len(RANDOM_SCENARIOS) - 1)
        sim = TrafficSimulator(rng=ScriptedRandom(rolls), clock=_fixed(datetime(2026, 10, 19, 8, 0)))
        condition = sim.get_condition("A21 (London Road)")
        assert condition.severity == 0.7
        assert condition.reason == "Multi-vehicle accident near Sevenoaks bypass"

    def test_unseeded(self, simulator):
        assert simulator.get_current_conditions() == []


class TestInjection:
    """inject_scenario is a forced, idempotent set."""

    def test_inject_overwrites(self, simulator):
        simulator.inject_scenario("A21 (London Road)", 0.9, "Lorry fire")
        simulator.inject_scenario("A21 (London Road)", 0.9, "Lorry fire")
        assert simulator.get_current_conditions() == [
            {"route": "A21 (London Road)", "severity": 0.9, "reason": "Lorry fire"},
        ]

    def test_last_write_wins(self, simulator):
        simulator.inject_scenario("M26", 0.9, "Closure")
        simulator.inject_scenario("M26", 0.2, "Reopened")
        assert simulator.get_condition("M26").severity == 0.2

    @pytest.mark.parametrize("severity", [-0.1, 1.5])
    def test_severity_out_of_range(self, simulator, severity):
        with pytest.raises(ValueError):
            simulator.inject_scenario("M26", severity, "Bad")

    def test_empty_route_name(self, simulator):
        with pytest.raises(ValueError):
            simulator.inject_scenario("  ", 0.5, "Nowhere")

    def test_clear(self, simulator):
        simulator.inject_scenario("M26", 0.5, "Closure")
        simulator.clear()
        assert simulator.get_condition("M26") is None


REASON_CASES = [
    ("accident improving", "Multi-vehicle accident", True, "Multi-vehicle accident - vehicles being moved"),
    ("accident worsening", "Multi-vehicle accident", False, "Multi-vehicle accident - causing further delays"),
    ("breakdown improving", "Vehicle breakdown", True, "Vehicle breakdown - recovery vehicle on route"),
    ("breakdown worsening", "Vehicle breakdown", False, "Vehicle breakdown - affecting multiple lanes"),
    ("roadworks case-insensitive", "Emergency ROADWORKS", True, "Emergency ROADWORKS - work progressing"),
    ("roadworks worsening", "Roadworks", False, "Roadworks - extended closure"),
    ("generic improving", "Fallen tree", True, "Fallen tree - situation improving"),
    ("generic worsening", "Fallen tree", False, "Fallen tree - delays increasing"),
    ("suffix not repeated", "Fallen tree - delays increasing", False, "Fallen tree - delays increasing"),
    ("no reason", None, True, "Traffic incident"),
]


class TestUpdateReason:
    @pytest.mark.parametrize("name,reason,improving,expected", REASON_CASES)
    def test_update_reason(self, name, reason, improving, expected):
        assert TrafficSimulator.update_reason(reason, improving) == expected, f"Failed on {name}"


class TestTick:
    """One evolution step driven by scripted rolls."""

    def _sim(self, rolls):
        return TrafficSimulator(rng=ScriptedRandom(rolls), seed_conditions=False)

    def test_incident_eases(self):
        # improve roll hit, ease by 0.5 * 0.2, worsen roll miss, no new incident
        sim = self._sim([0.1, 0.5, 0.9, 0.9])
        sim.inject_scenario("A21 (London Road)", 0.5, "Multi-vehicle accident")
        sim.tick()
        condition = sim.get_condition("A21 (London Road)")
        assert condition.severity == pytest.approx(0.4)
        assert condition.reason == "Multi-vehicle accident - vehicles being moved"

    def test_incident_worsens(self):
        # improve roll miss, worsen roll hit, worsen by 0.5 * 0.3, no new incident
        sim = self._sim([0.9, 0.05, 0.5, 0.9])
        sim.inject_scenario("M25 Junction 5", 0.5, "Vehicle breakdown in outside lane")
        sim.tick()
        condition = sim.get_condition("M25 Junction 5")
        assert condition.severity == pytest.approx(0.65)
        assert condition.reason == "Vehicle breakdown in outside lane - affecting multiple lanes"

    def test_reason_dropped_when_nearly_clear(self):
        sim = self._sim([0.0, 0.25, 0.9, 0.9])
        sim.inject_scenario("A25 (High Street)", 0.15, "Roadworks")
        sim.tick()
        condition = sim.get_condition("A25 (High Street)")
        assert condition.severity == pytest.approx(0.1)
        assert condition.reason is None

    def test_severe_incident_does_not_worsen(self):
        # At the ceiling the worsen roll is never taken; only improve and new-incident rolls
        sim = self._sim([0.9, 0.9])
        sim.inject_scenario("M25 Junction 5", 0.8, "Overturned lorry")
        sim.tick()
        assert sim.get_condition("M25 Junction 5").severity == 0.8

    def test_low_severity_cleared(self):
        sim = self._sim([0.9, 0.9])
        sim.inject_scenario("Via Riverhead", 0.04, "Minor delays")
        sim.tick()
        assert sim.get_condition("Via Riverhead") is None

    def test_new_incident_from_pool(self):
        sim = self._sim([0.01])
        sim.tick()
        conditions = sim.get_current_conditions()
        assert len(conditions) == 1

        pool_routes = {route for pool in INCIDENT_POOLS for route in pool.routes}
        assert conditions[0]["route"] in pool_routes
        assert 0.1 <= conditions[0]["severity"] <= 0.8

    def test_add_random_incident_within_pool_range(self):
        sim = TrafficSimulator(rng=random.Random(3), seed_conditions=False)
        for _ in range(20):
            scenario = sim.add_random_incident()
            pool = next(p for p in INCIDENT_POOLS if scenario.route in p.routes and scenario.reason in p.reasons)
            low, high = pool.severity_range
            assert low <= scenario.severity <= high


class TestBackgroundTicking:
    @pytest.mark.asyncio
    async def test_start_and_stop(self, simulator):
        simulator.start(0.01)
        assert simulator.is_running
        await asyncio.sleep(0.05)
        await simulator.stop()
        assert not simulator.is_running

    @pytest.mark.asyncio
    async def test_stop_when_not_started(self, simulator):
        await simulator.stop()
        assert not simulator.is_running
