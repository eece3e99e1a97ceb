"""
Alert Service - Builds traffic alerts and rate-limits them.

Handles:
- Per (trip, road) cooldown so the same jam does not alert twice in a row
- Creating alert records and keeping per-trip history
- Recording what the user did with an alert
- Counting and listing alerts across trips

State lives for the process lifetime only.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence
from uuid import uuid4

from common.config import MonitoringConfig
from common.errors import AlertValidationError
from common.models import Route, TrafficAlert, Trip, UserAction, round_half_up, utc_now

logger = logging.getLogger(__name__)

DEFAULT_ALERT_REASON = "Traffic delay detected"


@dataclass(frozen=True)
class RateLimitEntry:
    trip_id: str
    route_name: str
    timestamp: datetime


class AlertService:
    """Creates alerts and enforces the per-route alert cooldown."""

    def __init__(
        self,
        config: Optional[MonitoringConfig] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize alert service.

        Args:
            config: Engine configuration (cooldown length)
            clock: Returns the current UTC time
        """
        self.config = config or MonitoringConfig()
        self._clock = clock
        self._history: Dict[str, List[TrafficAlert]] = {}
        self._rate_limit: List[RateLimitEntry] = []

    @property
    def cooldown(self) -> timedelta:
        return timedelta(minutes=self.config.alert_cooldown_minutes)

    def should_create_alert(self, trip_id: str, route_name: str) -> bool:
        """
        Check whether the cooldown for this trip and road has expired.

        Returns:
            False if an alert for the same pair was created within the cooldown
        """
        now = self._clock()
        for entry in self._rate_limit:
            if (
                entry.trip_id == trip_id
                and entry.route_name == route_name
                and now - entry.timestamp < self.cooldown
            ):
                return False
        return True

    def create_alert(
        self,
        trip: Trip,
        triggered_by: Route,
        routes: Sequence[Route],
        reason: Optional[str] = None,
    ) -> TrafficAlert:
        """
        Create an alert and record it for history and rate limiting.

        Args:
            trip: Trip the alert is for
            triggered_by: Route that breached the trip's threshold
            routes: Snapshot of every candidate route at alert time
            reason: Human-readable reason (default: the route's own reason)

        Raises:
            AlertValidationError: If the trip or route lacks an id or name
        """
        if trip is None or not trip.id or not trip.name:
            raise AlertValidationError("Invalid trip data")
        if triggered_by is None or not triggered_by.id or not triggered_by.name:
            raise AlertValidationError("Invalid route data")

        now = self._clock()
        alert = TrafficAlert(
            id=str(uuid4()),
            trip_id=trip.id,
            timestamp=now,
            triggered_by=triggered_by.name,
            delay_minutes=round_half_up(triggered_by.delay / 60),
            reason=reason or triggered_by.reason or DEFAULT_ALERT_REASON,
            routes=tuple(routes),
        )

        self._history.setdefault(trip.id, []).append(alert)
        self._rate_limit.append(RateLimitEntry(trip.id, triggered_by.name, now))
        self._prune_rate_limit(now)

        logger.info(
            f"[ALERTS] Created alert {alert.id} for trip {trip.name}: "
            f"{alert.delay_minutes} min via {alert.triggered_by}"
        )
        return alert

    def _prune_rate_limit(self, now: datetime):
        horizon = self.cooldown * 2
        self._rate_limit = [
            entry for entry in self._rate_limit if now - entry.timestamp < horizon
        ]

    def get_alert_history(self, trip_id: str) -> List[TrafficAlert]:
        """Alerts for one trip, newest first."""
        alerts = self._history.get(trip_id, [])
        return sorted(reversed(alerts), key=lambda a: a.timestamp, reverse=True)

    def update_alert_action(self, alert_id: str, action: UserAction) -> Optional[TrafficAlert]:
        """
        Record what the user did with an alert.

        Returns:
            The updated alert, or None if no alert has that id
        """
        for alerts in self._history.values():
            for alert in alerts:
                if alert.id == alert_id:
                    alert.record_user_action(action)
                    logger.info(f"[ALERTS] Alert {alert_id} marked {alert.user_action.value}")
                    return alert
        return None

    def get_total_alert_count(self) -> int:
        return sum(len(alerts) for alerts in self._history.values())

    def get_recent_alerts(self, limit: int = 10) -> List[TrafficAlert]:
        """Newest alerts across every trip."""
        everything = [alert for alerts in self._history.values() for alert in alerts]
        everything.sort(key=lambda a: a.timestamp, reverse=True)
        return everything[:limit]

    def rate_limit_size(self) -> int:
        return len(self._rate_limit)
