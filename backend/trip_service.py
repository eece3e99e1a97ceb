"""
Trip Service - In-memory store of users' recurring trips.

Handles:
- Creating, updating, deleting and toggling trips
- Listing a user's trips (most recently updated first)
- Finding trips whose monitoring window is open at a given local time
- Validating raw trip payloads into a list of error messages
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional
from uuid import uuid4

from common.errors import TripValidationError
from common.models import AlertThreshold, Location, Schedule, Trip, sunday_weekday, utc_now
from user_service import TIME_RE

logger = logging.getLogger(__name__)

MONITORING_LEAD_MINUTES = 30
UPDATABLE_FIELDS = {"name", "origin", "destination", "schedule", "alert_threshold", "is_active"}
IMMUTABLE_FIELDS = {"id", "user_id", "created_at", "updated_at"}


def _field(data: Any, key: str) -> Any:
    if data is None:
        return None
    if isinstance(data, Mapping):
        return data.get(key)
    return getattr(data, key, None)


def _minutes(hhmm: str) -> Optional[int]:
    """Minutes since midnight for "HH:MM", or None if malformed."""
    if not isinstance(hhmm, str) or not TIME_RE.match(hhmm):
        return None
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)


def _schedule_errors(schedule: Any) -> List[str]:
    errors = []
    if not _field(schedule, "days"):
        errors.append("At least one day must be selected")
    start, end = _field(schedule, "window_start"), _field(schedule, "window_end")
    if not start or not end:
        errors.append("Departure window times are required")
    elif _minutes(start) is None or _minutes(end) is None:
        errors.append("Departure window times must be in HH:MM format")
    return errors


def validate_trip_data(data: Mapping[str, Any]) -> List[str]:
    """
    Check a trip payload and collect every problem found.

    Nested values may be dicts or the matching model objects. Keys are
    snake_case (name, origin, destination, schedule, alert_threshold).

    Returns:
        List of error messages (empty if valid)
    """
    errors = []

    name = data.get("name")
    if not name or not str(name).strip():
        errors.append("Trip name is required")

    for label, key in (("Origin", "origin"), ("Destination", "destination")):
        location = data.get(key)
        if not location:
            errors.append(f"{label} location is required")
        elif _field(location, "latitude") is None or _field(location, "longitude") is None:
            errors.append(f"{label} coordinates are required")

    schedule = data.get("schedule")
    if not schedule:
        errors.append("Schedule is required")
    else:
        errors.extend(_schedule_errors(schedule))

    threshold = data.get("alert_threshold")
    if not threshold:
        errors.append("Alert threshold is required")
    else:
        value = _field(threshold, "value")
        if value is None or value <= 0:
            errors.append("Alert threshold must be greater than 0")

    return errors


class TripService:
    """Process-lifetime trip store."""

    def __init__(
        self,
        clock: Callable[[], datetime] = utc_now,
        lead_minutes: int = MONITORING_LEAD_MINUTES,
    ):
        self._clock = clock
        self.lead_minutes = lead_minutes
        self._trips: Dict[str, Trip] = {}
        self._user_trips: Dict[str, List[str]] = {}

    def create_trip(
        self,
        user_id: str,
        name: str,
        origin: Location,
        destination: Location,
        schedule: Schedule,
        alert_threshold: AlertThreshold,
    ) -> Trip:
        """
        Store a new, active trip.

        Raises:
            TripValidationError: If required fields are missing
        """
        errors = validate_trip_data({
            "name": name,
            "origin": origin,
            "destination": destination,
            "schedule": schedule,
            "alert_threshold": alert_threshold,
        })
        if errors:
            raise TripValidationError(errors)

        now = self._clock()
        trip = Trip(
            id=str(uuid4()),
            user_id=user_id,
            name=name.strip(),
            origin=origin,
            destination=destination,
            schedule=schedule,
            alert_threshold=alert_threshold,
            created_at=now,
            updated_at=now,
        )
        self._trips[trip.id] = trip
        self._user_trips.setdefault(user_id, []).append(trip.id)
        logger.info(f"Created trip {trip.id} ({trip.name}) for user {user_id}")
        return trip

    def get_trip_by_id(self, trip_id: str) -> Optional[Trip]:
        return self._trips.get(trip_id)

    def get_trips_by_user(self, user_id: str) -> List[Trip]:
        """A user's trips, most recently updated first."""
        trips = [self._trips[tid] for tid in self._user_trips.get(user_id, []) if tid in self._trips]
        return sorted(trips, key=lambda t: t.updated_at, reverse=True)

    def get_all_trips(self) -> List[Trip]:
        return list(self._trips.values())

    def update_trip(self, trip_id: str, **updates) -> Optional[Trip]:
        """
        Apply field updates to a trip. id and user_id never change.

        Returns:
            The updated trip, or None if no trip has that id

        Raises:
            ValueError: If an unknown field is given
            TripValidationError: If the new name or schedule is invalid
        """
        trip = self._trips.get(trip_id)
        if trip is None:
            return None

        changes = {k: v for k, v in updates.items() if k not in IMMUTABLE_FIELDS}
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown trip fields: {', '.join(sorted(unknown))}")
        if "name" in changes:
            if not changes["name"] or not changes["name"].strip():
                raise TripValidationError(["Trip name is required"])
            changes["name"] = changes["name"].strip()
        if "schedule" in changes:
            errors = _schedule_errors(changes["schedule"]) if changes["schedule"] else ["Schedule is required"]
            if errors:
                raise TripValidationError(errors)

        updated = replace(trip, updated_at=self._clock(), **changes)
        self._trips[trip_id] = updated
        return updated

    def delete_trip(self, trip_id: str) -> bool:
        trip = self._trips.pop(trip_id, None)
        if trip is None:
            return False
        self._user_trips[trip.user_id] = [
            tid for tid in self._user_trips.get(trip.user_id, []) if tid != trip_id
        ]
        logger.info(f"Deleted trip {trip_id}")
        return True

    def toggle_trip_active(self, trip_id: str) -> Optional[Trip]:
        trip = self._trips.get(trip_id)
        if trip is None:
            return None
        return self.update_trip(trip_id, is_active=not trip.is_active)

    def get_active_trips_for_time(self, now: datetime) -> List[Trip]:
        """
        Trips whose monitoring window is open at local time ``now``.

        The window opens ``lead_minutes`` before the departure window starts
        and closes when it ends. Windows do not wrap past midnight.
        """
        day = sunday_weekday(now)
        current = now.hour * 60 + now.minute

        due = []
        for trip in self._trips.values():
            if not trip.is_active or day not in trip.schedule.days:
                continue
            start = _minutes(trip.schedule.window_start)
            closes = _minutes(trip.schedule.window_end)
            if start is None or closes is None:
                logger.warning(
                    f"Skipping trip {trip.id}: malformed window "
                    f"{trip.schedule.window_start!r}-{trip.schedule.window_end!r}"
                )
                continue
            opens = max(0, start - self.lead_minutes)
            if opens <= current <= closes:
                due.append(trip)
        return due

    def count(self) -> int:
        return len(self._trips)

    def count_active(self) -> int:
        return sum(1 for trip in self._trips.values() if trip.is_active)
