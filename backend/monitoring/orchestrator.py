"""
Orchestrator - composition root of the monitoring engine.

Wires stores, providers, scheduler, alert service and dispatcher together
and runs the periodic background work:
- Trip scan (default every 60s): auto-start jobs for trips whose monitoring
  window has opened and that have no RUNNING job
- Alert re-check (default every 5 min): evaluate every active trip against
  current traffic and alert on the worst breaching route
- Simulator tick (live mode only)
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from common.cancellation import CancellationToken
from common.config import MODE_LIVE, MonitoringConfig
from common.models import (
    AlertThreshold,
    Location,
    MonitoringJob,
    Route,
    Schedule,
    TrafficAlert,
    Trip,
    User,
    round_half_up,
    utc_now,
)
from kent_locations import DEMO_TRIPS, find_location
from notifications.dispatcher import NotificationDispatcher
from notifications.recent_alerts import RecentAlertBuffer
from notifications.service import AlertService
from notifications.transport import NotificationTransport
from providers.registry import build_providers
from providers.simulator import TrafficSimulator
from trip_service import TripService
from user_service import UserService

from .scheduler import MonitoringScheduler
from .thresholds import ThresholdEvaluator

logger = logging.getLogger(__name__)


def _location(value: Any) -> Location:
    if isinstance(value, Location):
        return value
    if isinstance(value, str):
        location = find_location(value)
        if location is None:
            raise ValueError(f"Unknown location: {value}")
        return location
    return Location.from_dict(value)


def _schedule(value: Any) -> Schedule:
    if isinstance(value, Schedule):
        return value
    return Schedule(
        days=tuple(value["days"]),
        window_start=value["window_start"],
        window_end=value["window_end"],
    )


def _threshold(value: Any) -> AlertThreshold:
    if isinstance(value, AlertThreshold):
        return value
    return AlertThreshold(type=value["type"], value=value["value"])


class Orchestrator:
    """Coordinates every service of the engine."""

    def __init__(
        self,
        trip_service: TripService,
        user_service: UserService,
        scheduler: MonitoringScheduler,
        alert_service: AlertService,
        dispatcher: NotificationDispatcher,
        simulator: TrafficSimulator,
        config: Optional[MonitoringConfig] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize orchestrator.

        Args:
            clock: Returns local "now", matched against trip schedules
        """
        self.trip_service = trip_service
        self.user_service = user_service
        self.scheduler = scheduler
        self.alert_service = alert_service
        self.dispatcher = dispatcher
        self.simulator = simulator
        self.config = config or MonitoringConfig()
        self._clock = clock

        self._tracked_jobs: Dict[str, MonitoringJob] = {}
        self._token: Optional[CancellationToken] = None
        self._tasks: List[asyncio.Task] = []

    # ==================== Setup ====================

    def initialize_demo(self) -> Dict[str, List[Any]]:
        """Create the demo personas and their trips (safe to call twice)."""
        logger.info("[ORCHESTRATOR] Initializing demo data")
        users = self.user_service.create_demo_users()

        trips = []
        for template in DEMO_TRIPS:
            owner = next(
                (u for u in users if u.name.split()[0] == template["persona"]), None
            )
            if owner is None:
                continue

            existing = [
                t for t in self.trip_service.get_trips_by_user(owner.id)
                if t.name == template["name"]
            ]
            if existing:
                trips.append(existing[0])
                continue

            trips.append(self.trip_service.create_trip(
                owner.id,
                template["name"],
                _location(template["origin"]),
                _location(template["destination"]),
                _schedule(template["schedule"]),
                _threshold(template["alert_threshold"]),
            ))

        logger.info(f"[ORCHESTRATOR] Demo ready: {len(users)} users, {len(trips)} trips")
        return {"users": users, "trips": trips}

    def create_user_with_trips(
        self,
        email: str,
        name: str,
        trip_templates: Sequence[Mapping[str, Any]] = (),
        settings: Optional[Mapping[str, Any]] = None,
    ) -> Tuple[User, List[Trip]]:
        """
        Create a user and their trips in one go.

        Templates missing origin, destination, schedule or alert_threshold
        are skipped.
        """
        user = self.user_service.create_user(email, name, settings)

        trips = []
        for template in trip_templates:
            if not all(template.get(k) for k in ("origin", "destination", "schedule", "alert_threshold")):
                logger.warning(f"[ORCHESTRATOR] Skipping incomplete trip template {template.get('name')!r}")
                continue
            trips.append(self.trip_service.create_trip(
                user.id,
                template.get("name", ""),
                _location(template["origin"]),
                _location(template["destination"]),
                _schedule(template["schedule"]),
                _threshold(template["alert_threshold"]),
            ))
        return user, trips

    # ==================== Monitoring ====================

    async def start_user_monitoring(self, user_id: str) -> List[MonitoringJob]:
        """Start a job for each of the user's active trips."""
        jobs = []
        for trip in self.trip_service.get_trips_by_user(user_id):
            if not trip.is_active:
                continue
            try:
                job = await self.scheduler.start_monitoring(trip)
            except Exception as e:
                logger.error(f"[ORCHESTRATOR] Failed to start monitoring for trip {trip.id}: {e}")
                continue
            self._tracked_jobs[job.id] = job
            jobs.append(job)
        return jobs

    async def start_system_wide_monitoring(self) -> List[MonitoringJob]:
        """Start jobs for every user's active trips, then the periodic work."""
        jobs = []
        for user in self.user_service.get_all_users():
            jobs.extend(await self.start_user_monitoring(user.id))
        self.start()
        return jobs

    async def scan_for_due_trips(self, now: Optional[datetime] = None) -> List[MonitoringJob]:
        """Auto-start jobs for trips whose monitoring window is open."""
        now = now or self._clock()
        started = []

        for trip in self.trip_service.get_active_trips_for_time(now):
            if self.scheduler.is_trip_monitored(trip.id):
                continue
            try:
                job = await self.scheduler.start_monitoring(trip)
            except Exception as e:
                logger.error(f"[ORCHESTRATOR] Failed to auto-start monitoring for trip {trip.id}: {e}")
                continue
            self._tracked_jobs[job.id] = job
            started.append(job)
            logger.info(f"[ORCHESTRATOR] Started monitoring trip {trip.name}")

        for job_id in [jid for jid, job in self._tracked_jobs.items() if job.is_terminal]:
            del self._tracked_jobs[job_id]

        return started

    async def check_all_trips_for_alerts(self) -> List[TrafficAlert]:
        """Evaluate every active trip now and alert on the worst breaching route."""
        alerts = []
        for user in self.user_service.get_all_users():
            for trip in self.trip_service.get_trips_by_user(user.id):
                if not trip.is_active:
                    continue
                try:
                    routes = await self.scheduler.get_current_traffic_status(trip)
                    breach = ThresholdEvaluator.find_worst_breach(routes, trip.alert_threshold)
                    if breach is None:
                        continue
                    alert = self.handle_traffic_alert(trip, breach.route, routes, reason=breach.reason)
                except Exception as e:
                    logger.error(f"[ORCHESTRATOR] Error checking trip {trip.id} for alerts: {e}")
                    continue
                if alert is not None:
                    alerts.append(alert)
        return alerts

    def handle_traffic_alert(
        self,
        trip: Trip,
        triggered_by: Route,
        routes: Sequence[Route],
        reason: Optional[str] = None,
    ) -> Optional[TrafficAlert]:
        """
        Rate-limit, create and deliver one alert.

        Returns:
            The created alert, or None if the user is unknown or the
            cooldown is still active
        """
        user = self.user_service.get_user_by_id(trip.user_id)
        if user is None:
            logger.error(f"[ORCHESTRATOR] User not found for trip {trip.id}")
            return None

        if not self.alert_service.should_create_alert(trip.id, triggered_by.name):
            logger.info(f"[ALERTS] Alert suppressed due to rate limiting for trip {trip.name}")
            return None

        alert = self.alert_service.create_alert(trip, triggered_by, routes, reason=reason)
        if self.dispatcher.dispatch_alert(user, trip, alert):
            logger.info(f"[ORCHESTRATOR] Alert sent for trip {trip.name}")
        else:
            logger.info(f"[ORCHESTRATOR] Alert created but notification not sent for trip {trip.name}")
        return alert

    async def simulate_traffic_scenario(
        self, route_name: str, severity: float, reason: str
    ) -> List[TrafficAlert]:
        """Inject a condition, then re-check every active trip immediately."""
        logger.info(
            f"[ORCHESTRATOR] Simulating traffic scenario: {route_name} - {reason} "
            f"({round_half_up(severity * 100)}%)"
        )
        self.scheduler.simulate_traffic_incident(route_name, severity, reason)
        return await self.check_all_trips_for_alerts()

    def get_system_status(self) -> Dict[str, Any]:
        scheduler_status = self.scheduler.get_system_status()
        return {
            "users": {"total": self.user_service.get_total_user_count()},
            "trips": {
                "total": self.trip_service.count(),
                "active": self.trip_service.count_active(),
            },
            "monitoring": {
                "activeJobs": scheduler_status["activeJobs"],
                "totalAlerts": self.alert_service.get_total_alert_count(),
            },
            "traffic": {"currentConditions": scheduler_status["trafficConditions"]},
        }

    # ==================== Background work ====================

    @property
    def is_running(self) -> bool:
        return self._token is not None and not self._token.cancelled

    def start(self):
        """Launch the periodic trip scan, alert re-check and simulator ticks."""
        if self.is_running:
            return
        self._token = CancellationToken()
        token = self._token
        self._tasks = [
            asyncio.create_task(self._every(
                "trip scan", self.config.trip_scan_interval_seconds,
                self.scan_for_due_trips, token,
            )),
            asyncio.create_task(self._every(
                "alert re-check", self.config.alert_recheck_interval_seconds,
                self.check_all_trips_for_alerts, token,
            )),
        ]
        if self.config.mode == MODE_LIVE:
            self.simulator.start(self.config.simulator_tick_seconds)
        logger.info("[ORCHESTRATOR] Periodic monitoring started")

    async def _every(
        self, name: str, interval: float, work: Callable, token: CancellationToken
    ):
        while not await token.wait(interval):
            try:
                await work()
            except Exception as e:
                logger.error(f"[ORCHESTRATOR] Error in periodic {name}: {e}")

    async def shutdown(self):
        """Stop periodic work, every monitoring job and the simulator."""
        logger.info("[ORCHESTRATOR] Shutting down")
        if self._token is not None:
            self._token.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
            self._tasks = []

        await self.scheduler.shutdown()
        await self.simulator.stop()
        self._tracked_jobs.clear()
        logger.info("[ORCHESTRATOR] Shut down complete")


def create_orchestrator(
    config: Optional[MonitoringConfig] = None,
    transport: Optional[NotificationTransport] = None,
    simulator: Optional[TrafficSimulator] = None,
) -> Orchestrator:
    """Build a fully wired engine. Each call returns independent state."""
    config = config or MonitoringConfig.from_env()
    providers = build_providers(config, simulator=simulator)

    trip_service = TripService(lead_minutes=config.monitoring_lead_minutes)
    user_service = UserService()
    alert_service = AlertService(config, clock=utc_now)
    dispatcher = NotificationDispatcher(
        transport=transport,
        recent_alerts=RecentAlertBuffer(config.recent_alerts_limit),
        config=config,
    )
    scheduler = MonitoringScheduler(
        route_provider=providers.routes,
        traffic_provider=providers.traffic,
        alert_service=alert_service,
        dispatcher=dispatcher,
        user_lookup=user_service,
        simulator=providers.simulator,
        config=config,
    )
    return Orchestrator(
        trip_service=trip_service,
        user_service=user_service,
        scheduler=scheduler,
        alert_service=alert_service,
        dispatcher=dispatcher,
        simulator=providers.simulator,
        config=config,
    )
