"""
Notifications package - traffic alerts and their delivery

Submodules:
- service: Alert creation, per-trip history and rate limiting
- dispatcher: Quiet-hours gate and message formatting
- models: Delivery payloads
- transport: Delivery backends
- recent_alerts: Bounded buffer of the latest alerts
"""

from .service import AlertService
from .dispatcher import NotificationDispatcher, is_in_quiet_hours, format_notification
from .models import NotificationMessage, AlternativeRoute
from .transport import NotificationTransport, LoggingTransport
from .recent_alerts import RecentAlertBuffer

__all__ = [
    "AlertService",
    "NotificationDispatcher",
    "is_in_quiet_hours",
    "format_notification",
    "NotificationMessage",
    "AlternativeRoute",
    "NotificationTransport",
    "LoggingTransport",
    "RecentAlertBuffer",
]
