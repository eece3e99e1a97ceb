"""
Core domain models for Pre-Route.

Trips, routes, monitoring jobs, alerts and users. Values are frozen
dataclasses; the two records with a lifecycle (MonitoringJob, TrafficAlert)
are mutable but only through their own methods.

to_dict() produces the JSON shape used by the HTTP layer: camelCase keys,
ISO-8601 timestamps, seconds and meters, enum values as strings.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class ThresholdType(str, Enum):
    """How a trip's alert threshold is measured."""
    MINUTES = "MINUTES"
    PERCENTAGE = "PERCENTAGE"


class RouteStatus(str, Enum):
    """Traffic classification of a route."""
    CLEAR = "CLEAR"
    MODERATE = "MODERATE"
    HEAVY = "HEAVY"


class JobStatus(str, Enum):
    """Monitoring job lifecycle."""
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class UserAction(str, Enum):
    """What the user did after seeing an alert."""
    DISMISSED = "DISMISSED"
    NAVIGATED_ALTERNATIVE = "NAVIGATED_ALTERNATIVE"
    NAVIGATED_ORIGINAL = "NAVIGATED_ORIGINAL"


class NavApp(str, Enum):
    """Supported navigation apps."""
    GOOGLE_MAPS = "google_maps"
    APPLE_MAPS = "apple_maps"
    WAZE = "waze"


# Delay percentage boundaries (strictly greater than)
HEAVY_DELAY_PCT = 50.0
MODERATE_DELAY_PCT = 20.0

TERMINAL_JOB_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (not to even)."""
    return math.floor(value + 0.5)


def classify_status(delay_percentage: float) -> RouteStatus:
    """Map a delay percentage to CLEAR / MODERATE / HEAVY."""
    if delay_percentage > HEAVY_DELAY_PCT:
        return RouteStatus.HEAVY
    if delay_percentage > MODERATE_DELAY_PCT:
        return RouteStatus.MODERATE
    return RouteStatus.CLEAR


def sunday_weekday(moment: datetime) -> int:
    """Day of week with 0 = Sunday .. 6 = Saturday, as used by schedules."""
    return (moment.weekday() + 1) % 7


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class Location:
    """A point with a human-readable address."""
    latitude: float
    longitude: float
    address: str
    name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        doc = {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "address": self.address,
        }
        if self.name is not None:
            doc["name"] = self.name
        return doc

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Location":
        return cls(
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            address=data.get("address", ""),
            name=data.get("name"),
        )


@dataclass(frozen=True)
class Schedule:
    """Weekdays (0 = Sunday .. 6 = Saturday) and a departure window in HH:MM."""
    days: Tuple[int, ...]
    window_start: str
    window_end: str

    def __post_init__(self):
        object.__setattr__(self, "days", tuple(self.days))
        for day in self.days:
            if day < 0 or day > 6:
                raise ValueError(f"Schedule day must be 0-6, got {day}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "days": list(self.days),
            "windowStart": self.window_start,
            "windowEnd": self.window_end,
        }


@dataclass(frozen=True)
class AlertThreshold:
    """Sensitivity of a trip: minutes of delay or percent slower."""
    type: ThresholdType
    value: float

    def __post_init__(self):
        object.__setattr__(self, "type", ThresholdType(self.type))
        if self.value <= 0:
            raise ValueError(f"Alert threshold must be greater than 0, got {self.value}")

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "value": self.value}


@dataclass(frozen=True)
class Trip:
    """A recurring journey the user wants watched."""
    id: str
    user_id: str
    name: str
    origin: Location
    destination: Location
    schedule: Schedule
    alert_threshold: AlertThreshold
    is_active: bool = True
    created_at: datetime = None
    updated_at: datetime = None

    def __post_init__(self):
        if self.created_at is None:
            object.__setattr__(self, "created_at", utc_now())
        if self.updated_at is None:
            object.__setattr__(self, "updated_at", self.created_at)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "name": self.name,
            "origin": self.origin.to_dict(),
            "destination": self.destination.to_dict(),
            "schedule": self.schedule.to_dict(),
            "alertThreshold": self.alert_threshold.to_dict(),
            "isActive": self.is_active,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


@dataclass(frozen=True)
class Route:
    """
    A candidate route with its current traffic.

    status is derived from delay_percentage and cannot be set.
    """
    id: str
    name: str
    distance: int  # meters
    static_duration: int  # seconds, traffic-free
    current_duration: int  # seconds
    delay: int = 0  # seconds
    delay_percentage: float = 0.0
    reason: Optional[str] = None
    polyline: str = ""

    @property
    def status(self) -> RouteStatus:
        return classify_status(self.delay_percentage)

    def to_dict(self) -> Dict[str, Any]:
        doc = {
            "id": self.id,
            "name": self.name,
            "polyline": self.polyline,
            "distance": self.distance,
            "staticDuration": self.static_duration,
            "currentDuration": self.current_duration,
            "delay": self.delay,
            "delayPercentage": self.delay_percentage,
            "status": self.status.value,
        }
        if self.reason is not None:
            doc["reason"] = self.reason
        return doc


@dataclass(frozen=True)
class TrafficCondition:
    """Severity (0-1) and optional reason for one road."""
    severity: float
    reason: Optional[str] = None

    def __post_init__(self):
        if self.severity < 0.0 or self.severity > 1.0:
            raise ValueError(f"Severity must be within [0, 1], got {self.severity}")


@dataclass
class MonitoringJob:
    """
    One watch over a trip.

    Status only moves forward: PENDING -> RUNNING -> COMPLETED | FAILED.
    alert_sent is one-shot for the job's lifetime.
    """
    id: str
    trip_id: str
    scheduled_for: datetime
    status: JobStatus = JobStatus.PENDING
    routes: List[Route] = field(default_factory=list)
    alert_sent: bool = False
    poll_count: int = 0
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_JOB_STATUSES

    def _advance(self, status: JobStatus) -> bool:
        if self.is_terminal or self.status == status:
            return False
        self.status = status
        return True

    def mark_running(self) -> bool:
        if self.status != JobStatus.PENDING:
            return False
        return self._advance(JobStatus.RUNNING)

    def mark_completed(self) -> bool:
        return self._advance(JobStatus.COMPLETED)

    def mark_failed(self, error: str) -> bool:
        changed = self._advance(JobStatus.FAILED)
        if changed:
            self.error = error
        return changed

    def mark_alert_sent(self):
        self.alert_sent = True

    def to_dict(self) -> Dict[str, Any]:
        doc = {
            "id": self.id,
            "tripId": self.trip_id,
            "scheduledFor": _iso(self.scheduled_for),
            "status": self.status.value,
            "routes": [route.to_dict() for route in self.routes],
            "alertSent": self.alert_sent,
            "pollCount": self.poll_count,
        }
        if self.error:
            doc["error"] = self.error
        return doc


@dataclass
class TrafficAlert:
    """An alert raised for a trip. Only user_action changes after creation."""
    id: str
    trip_id: str
    timestamp: datetime
    triggered_by: str  # route name
    delay_minutes: int
    reason: str
    routes: Tuple[Route, ...]
    user_action: Optional[UserAction] = None

    def __post_init__(self):
        self.routes = tuple(self.routes)

    def record_user_action(self, action: UserAction):
        self.user_action = UserAction(action)

    def to_dict(self) -> Dict[str, Any]:
        doc = {
            "id": self.id,
            "tripId": self.trip_id,
            "timestamp": _iso(self.timestamp),
            "triggeredBy": self.triggered_by,
            "delayMinutes": self.delay_minutes,
            "reason": self.reason,
            "routes": [route.to_dict() for route in self.routes],
        }
        if self.user_action is not None:
            doc["userAction"] = self.user_action.value
        return doc


@dataclass(frozen=True)
class QuietHours:
    """Window (HH:MM) during which notifications are held back."""
    enabled: bool
    start: str
    end: str

    def to_dict(self) -> Dict[str, Any]:
        return {"enabled": self.enabled, "start": self.start, "end": self.end}


@dataclass(frozen=True)
class UserSettings:
    default_nav_app: str = NavApp.GOOGLE_MAPS.value
    quiet_hours: Optional[QuietHours] = None

    def to_dict(self) -> Dict[str, Any]:
        doc = {"defaultNavApp": self.default_nav_app}
        if self.quiet_hours is not None:
            doc["quietHours"] = self.quiet_hours.to_dict()
        return doc


@dataclass(frozen=True)
class User:
    id: str
    email: str
    name: str
    settings: UserSettings = field(default_factory=UserSettings)
    created_at: datetime = None

    def __post_init__(self):
        if self.created_at is None:
            object.__setattr__(self, "created_at", utc_now())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "createdAt": _iso(self.created_at),
            "settings": self.settings.to_dict(),
        }
