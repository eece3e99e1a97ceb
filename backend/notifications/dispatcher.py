"""
Notification Dispatcher - decides whether a user is interrupted.

Gates, in order:
1. Quiet hours (wrapping past midnight when start > end)
2. A usable email address

Suppression is a normal outcome and returns False; nothing is raised.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from common.config import MonitoringConfig
from common.models import RouteStatus, TrafficAlert, Trip, User, round_half_up

from .models import AlternativeRoute, NotificationMessage
from .recent_alerts import RecentAlertBuffer
from .transport import LoggingTransport, NotificationTransport

logger = logging.getLogger(__name__)


def parse_hhmm(value: str) -> Optional[int]:
    """Parse "HH:MM" into minutes since midnight. None if malformed."""
    if not value:
        return None
    try:
        hours, minutes = value.split(":")
        hours, minutes = int(hours), int(minutes)
    except ValueError:
        return None
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        return None
    return hours * 60 + minutes


def is_in_quiet_hours(user: User, now: datetime, granularity_minutes: int = 1) -> bool:
    """
    Check whether ``now`` (local time) falls inside the user's quiet hours.

    Time of day is truncated to ``granularity_minutes``; both window ends
    are inclusive.
    """
    quiet = user.settings.quiet_hours if user.settings else None
    if quiet is None or not quiet.enabled:
        return False

    start = parse_hhmm(quiet.start)
    end = parse_hhmm(quiet.end)
    if start is None or end is None:
        return False

    current = now.hour * 60 + now.minute
    current -= current % granularity_minutes

    if start > end:
        return current >= start or current <= end
    return start <= current <= end


def format_notification(user: User, trip: Trip, alert: TrafficAlert) -> NotificationMessage:
    """Build the delivery payload for an alert."""
    alternatives = ()
    if len(alert.routes) > 1:
        alternatives = tuple(
            AlternativeRoute(
                position=index,
                name=route.name,
                delay_minutes=round_half_up(route.delay / 60) if route.delay > 0 else 0,
                status=route.status.value,
            )
            for index, route in enumerate(alert.routes, start=1)
        )

    clear_routes = [
        route for route in alert.routes
        if route.status == RouteStatus.CLEAR and route.name != alert.triggered_by
    ]
    recommended = None
    if clear_routes:
        best = min(clear_routes, key=lambda r: r.current_duration)
        recommended = f"{best.name} ({round_half_up(best.current_duration / 60)} min)"

    return NotificationMessage(
        alert_id=alert.id,
        user_id=user.id,
        recipient_name=user.name,
        recipient_email=user.email,
        trip_id=trip.id,
        trip_name=trip.name,
        title=f"Traffic alert: {trip.name}",
        delay_minutes=alert.delay_minutes,
        triggered_by=alert.triggered_by,
        reason=alert.reason,
        origin_address=trip.origin.address,
        destination_address=trip.destination.address,
        nav_app=user.settings.default_nav_app or "navigation app",
        alternatives=alternatives,
        recommended_route=recommended,
    )


class NotificationDispatcher:
    """Applies delivery policy and hands messages to a transport."""

    def __init__(
        self,
        transport: Optional[NotificationTransport] = None,
        recent_alerts: Optional[RecentAlertBuffer] = None,
        config: Optional[MonitoringConfig] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize dispatcher.

        Args:
            transport: Delivery backend (default: LoggingTransport)
            recent_alerts: Shared recent-alerts buffer
            config: Engine configuration (quiet-hours granularity, buffer size)
            clock: Returns local "now" for quiet-hours checks
        """
        self.config = config or MonitoringConfig()
        self.transport = transport or LoggingTransport()
        self.recent_alerts = recent_alerts or RecentAlertBuffer(self.config.recent_alerts_limit)
        self._clock = clock

    def send_notification(self, user: User, trip: Trip, alert: TrafficAlert) -> bool:
        """
        Deliver an alert unless policy says otherwise.

        Returns:
            True if handed to the transport, False if suppressed or undeliverable
        """
        if is_in_quiet_hours(user, self._clock(), self.config.quiet_hours_granularity_minutes):
            logger.info(f"[NOTIFY] Notification suppressed due to quiet hours for user {user.email}")
            return False

        if not user.email or not user.email.strip():
            logger.info(f"[NOTIFY] Notification skipped: user {user.id} has no email")
            return False

        message = format_notification(user, trip, alert)
        try:
            delivered = self.transport.send(message)
        except Exception as e:
            logger.error(f"[NOTIFY] Failed to send notification for alert {alert.id}: {e}")
            return False

        if delivered:
            logger.info(f"[NOTIFY] Alert {alert.id} delivered to {user.email}")
        return delivered

    def dispatch_alert(self, user: Optional[User], trip: Trip, alert: TrafficAlert) -> bool:
        """Record the alert as recent, then try to deliver it."""
        self.recent_alerts.record(alert)

        if user is None:
            logger.error(f"[NOTIFY] User {trip.user_id} not found for trip {trip.id}")
            return False
        return self.send_notification(user, trip, alert)
