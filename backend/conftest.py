import random
from datetime import datetime

import pytest

from common.config import MODE_TEST, MonitoringConfig
from common.models import (
    AlertThreshold,
    QuietHours,
    Route,
    Schedule,
    ThresholdType,
    Trip,
    User,
    UserSettings,
)
from kent_locations import find_location
from providers.fake_providers import SimulatedTrafficProvider, SyntheticRouteProvider
from providers.simulator import TrafficSimulator

HOME = "Bradbourne Vale Road (Residential)"
DARTFORD = "Dartford Railway Station"
SEVENOAKS_HIGH_STREET = "Sevenoaks High Street"
SEVENOAKS_STATION = "Sevenoaks Railway Station"

# Monday 19 October 2026, 07:50 local
MONDAY_MORNING = datetime(2026, 10, 19, 7, 50)


class ScriptedRandom(random.Random):
    """random() returns queued values, then 0.5 once the queue is empty."""

    def __init__(self, values=()):
        super().__init__(0)
        self.values = list(values)

    def random(self):
        if self.values:
            return self.values.pop(0)
        return 0.5


@pytest.fixture
def test_config():
    return MonitoringConfig(
        mode=MODE_TEST,
        random_seed=7,
        poll_interval_seconds=0.01,
        max_polls_per_job=3,
    )


@pytest.fixture
def simulator():
    return TrafficSimulator(rng=random.Random(7), seed_conditions=False)


@pytest.fixture
def route_provider():
    return SyntheticRouteProvider(rng=random.Random(7))


@pytest.fixture
def traffic_provider(simulator):
    return SimulatedTrafficProvider(simulator, rng=random.Random(7))


@pytest.fixture
def make_trip():
    def _make(
        trip_id="trip-1",
        user_id="user-1",
        name="Dartford Commute",
        origin=HOME,
        destination=DARTFORD,
        threshold_type=ThresholdType.MINUTES,
        threshold_value=10,
        days=(1, 2, 3, 4, 5),
        window=("08:15", "08:30"),
        is_active=True,
    ):
        return Trip(
            id=trip_id,
            user_id=user_id,
            name=name,
            origin=find_location(origin),
            destination=find_location(destination),
            schedule=Schedule(days=days, window_start=window[0], window_end=window[1]),
            alert_threshold=AlertThreshold(type=threshold_type, value=threshold_value),
            is_active=is_active,
        )
    return _make


@pytest.fixture
def make_user():
    def _make(
        user_id="user-1",
        email="sam.driver@example.co.uk",
        name="Sam Driver",
        nav_app="waze",
        quiet_hours=None,
    ):
        return User(
            id=user_id,
            email=email,
            name=name,
            settings=UserSettings(default_nav_app=nav_app, quiet_hours=quiet_hours),
        )
    return _make


@pytest.fixture
def make_route():
    def _make(
        route_id="route_1",
        name="A21 (London Road)",
        static_duration=1200,
        delay=0,
        reason=None,
    ):
        return Route(
            id=route_id,
            name=name,
            distance=20000,
            static_duration=static_duration,
            current_duration=static_duration + delay,
            delay=delay,
            delay_percentage=delay / static_duration * 100,
            reason=reason,
        )
    return _make


@pytest.fixture
def quiet_overnight():
    return QuietHours(enabled=True, start="22:00", end="07:00")
