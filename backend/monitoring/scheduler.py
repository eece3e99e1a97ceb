"""
Monitoring Job Scheduler

Owns the lifecycle of monitoring jobs, one per watched trip:
1. Fetch candidate routes for the trip
2. Poll immediately, then every poll interval on a background task
3. On each poll apply current traffic and check the trip's threshold
4. Raise at most one alert per job (subject to the per-route cooldown)
5. Stop after max polls, on cancellation, or on the first poll error

Failures while starting a job are raised to the caller; failures in
background polls mark the job FAILED and end its loop.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional, Protocol
from uuid import uuid4

from common.cancellation import CancellationToken
from common.config import MonitoringConfig
from common.models import JobStatus, MonitoringJob, Route, TrafficAlert, Trip, User, utc_now
from notifications.dispatcher import NotificationDispatcher
from notifications.service import AlertService
from providers.contracts import RouteProvider, TrafficProvider
from providers.simulator import TrafficSimulator

from .thresholds import BreachResult, ThresholdEvaluator

logger = logging.getLogger(__name__)


class UserLookup(Protocol):
    def get_user_by_id(self, user_id: str) -> Optional[User]:
        ...


class MonitoringScheduler:
    """Starts, polls and stops monitoring jobs."""

    def __init__(
        self,
        route_provider: RouteProvider,
        traffic_provider: TrafficProvider,
        alert_service: AlertService,
        dispatcher: Optional[NotificationDispatcher] = None,
        user_lookup: Optional[UserLookup] = None,
        simulator: Optional[TrafficSimulator] = None,
        config: Optional[MonitoringConfig] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize scheduler.

        Args:
            route_provider: Computes candidate routes for a trip
            traffic_provider: Applies current traffic to a route
            alert_service: Rate limiting and alert creation
            dispatcher: Delivers alerts (default: alerts are recorded only)
            user_lookup: Resolves a trip's owner for delivery
            simulator: Traffic simulator for incident injection and status
            config: Engine configuration (poll interval, max polls)
            clock: Returns the current UTC time
        """
        self.route_provider = route_provider
        self.traffic_provider = traffic_provider
        self.alert_service = alert_service
        self.dispatcher = dispatcher
        self.user_lookup = user_lookup
        self.simulator = simulator
        self.config = config or MonitoringConfig()
        self._clock = clock

        self._jobs: Dict[str, MonitoringJob] = {}
        self._tokens: Dict[str, CancellationToken] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

    # ==================== Job lifecycle ====================

    async def start_monitoring(self, trip: Trip) -> MonitoringJob:
        """
        Start watching a trip.

        The first poll runs before this returns; later polls run in the
        background.

        Raises:
            Exception: Whatever the providers raised while fetching the initial
                routes or running the first poll. The job is left FAILED.
        """
        job = MonitoringJob(id=str(uuid4()), trip_id=trip.id, scheduled_for=self._clock())
        self._jobs[job.id] = job
        logger.info(f"[MONITOR] Starting monitoring for trip {trip.name} (job {job.id})")

        try:
            job.routes = await self.route_provider.compute_routes(trip.origin, trip.destination)
        except Exception as e:
            job.mark_failed(str(e))
            logger.error(f"[MONITOR] Failed to fetch routes for trip {trip.id}: {e}")
            raise

        job.mark_running()
        token = CancellationToken()
        self._tokens[job.id] = token

        try:
            await self._poll(job, trip)
        except Exception as e:
            job.mark_failed(str(e))
            token.cancel()
            logger.error(f"[MONITOR] First poll failed for trip {trip.id}: {e}")
            raise

        task = asyncio.create_task(self._poll_loop(job, trip, token))
        self._tasks[job.id] = task
        task.add_done_callback(lambda _: self._tasks.pop(job.id, None))
        return job

    async def stop_monitoring(self, job_id: str) -> bool:
        """
        Cancel a job's polling and mark it COMPLETED.

        Returns:
            False if the job id is unknown
        """
        job = self._jobs.get(job_id)
        if job is None:
            return False

        token = self._tokens.get(job_id)
        if token is not None:
            token.cancel()

        if job.mark_completed():
            logger.info(f"[MONITOR] Stopped monitoring job {job_id}")
        return True

    async def shutdown(self):
        """Stop every job and wait for their loops to exit."""
        for job_id in list(self._jobs):
            await self.stop_monitoring(job_id)

        tasks = list(self._tasks.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"[MONITOR] Scheduler shut down ({len(tasks)} polling loops stopped)")

    async def _poll_loop(self, job: MonitoringJob, trip: Trip, token: CancellationToken):
        max_polls = self.config.max_polls_per_job

        while job.poll_count < max_polls:
            if await token.wait(self.config.poll_interval_seconds):
                break
            if job.status != JobStatus.RUNNING:
                break
            try:
                await self._poll(job, trip)
            except Exception as e:
                job.mark_failed(str(e))
                logger.error(f"[MONITOR] Polling failed for job {job.id}: {e}")
                return

        if job.status == JobStatus.RUNNING:
            await self.stop_monitoring(job.id)

    async def _poll(self, job: MonitoringJob, trip: Trip):
        logger.info(
            f"[MONITOR] Polling traffic for trip {trip.name} "
            f"(poll {job.poll_count + 1}/{self.config.max_polls_per_job})"
        )
        routes = await self.get_current_traffic_status(trip)
        job.routes = routes

        breach = ThresholdEvaluator.find_breach(routes, trip.alert_threshold)
        if breach is not None and not job.alert_sent:
            if self._raise_alert(trip, breach, routes) is not None:
                job.mark_alert_sent()

        job.poll_count += 1

    def _raise_alert(
        self, trip: Trip, breach: BreachResult, routes: List[Route]
    ) -> Optional[TrafficAlert]:
        if not self.alert_service.should_create_alert(trip.id, breach.route.name):
            logger.info(
                f"[ALERTS] Alert suppressed by cooldown for trip {trip.name} "
                f"on {breach.route.name}"
            )
            return None

        alert = self.alert_service.create_alert(trip, breach.route, routes, reason=breach.reason)
        logger.info(f"[ALERTS] Alert raised for trip {trip.name} - {breach.reason}")

        if self.dispatcher is not None:
            user = self.user_lookup.get_user_by_id(trip.user_id) if self.user_lookup else None
            self.dispatcher.dispatch_alert(user, trip, alert)
        return alert

    # ==================== Queries ====================

    async def get_current_traffic_status(self, trip: Trip) -> List[Route]:
        """Fresh routes with current traffic, independent of any job."""
        routes = await self.route_provider.compute_routes(trip.origin, trip.destination)
        return list(await asyncio.gather(
            *(self.traffic_provider.apply_traffic(route) for route in routes)
        ))

    def get_monitoring_job(self, job_id: str) -> Optional[MonitoringJob]:
        return self._jobs.get(job_id)

    def get_active_jobs(self) -> List[MonitoringJob]:
        return [job for job in self._jobs.values() if job.status == JobStatus.RUNNING]

    def get_jobs(self) -> List[MonitoringJob]:
        return list(self._jobs.values())

    def is_trip_monitored(self, trip_id: str) -> bool:
        """True while a job for the trip is starting up (PENDING) or RUNNING."""
        return any(job.trip_id == trip_id and not job.is_terminal for job in self._jobs.values())

    def get_alert_history(self, trip_id: str) -> List[TrafficAlert]:
        return self.alert_service.get_alert_history(trip_id)

    # ==================== Demo helpers ====================

    def simulate_traffic_incident(self, route_name: str, severity: float, reason: str):
        """
        Inject a traffic condition into the simulator.

        Raises:
            RuntimeError: If the scheduler was built without a simulator
            ValueError: If severity is outside [0, 1]
        """
        if self.simulator is None:
            raise RuntimeError("No traffic simulator configured")
        logger.info(
            f"[MONITOR] Simulating traffic incident: {reason} on {route_name} "
            f"(severity {severity})"
        )
        self.simulator.inject_scenario(route_name, severity, reason)

    def get_system_status(self) -> dict:
        return {
            "activeJobs": len(self.get_active_jobs()),
            "totalAlerts": self.alert_service.get_total_alert_count(),
            "trafficConditions": (
                self.simulator.get_current_conditions() if self.simulator else []
            ),
        }
