"""
Notification models.

A NotificationMessage is the fully formatted payload handed to a transport,
built once per delivery from (user, trip, alert).
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from common.models import utc_now


@dataclass(frozen=True)
class AlternativeRoute:
    """One line of the "alternatives" section."""
    position: int  # 1-based, in provider order
    name: str
    delay_minutes: int
    status: str

    @property
    def label(self) -> str:
        if self.delay_minutes > 0:
            return f"+{self.delay_minutes}min ({self.status})"
        return "Clear"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "position": self.position,
            "name": self.name,
            "delayMinutes": self.delay_minutes,
            "status": self.status,
        }


@dataclass(frozen=True)
class NotificationMessage:
    """A traffic alert ready for delivery."""
    alert_id: str
    user_id: str
    recipient_name: str
    recipient_email: str
    trip_id: str
    trip_name: str
    title: str
    delay_minutes: int
    triggered_by: str
    reason: str
    origin_address: str
    destination_address: str
    nav_app: str
    alternatives: Tuple[AlternativeRoute, ...] = ()
    recommended_route: Optional[str] = None
    sent_at: datetime = field(default_factory=utc_now)

    @property
    def body(self) -> str:
        lines = [
            f"To: {self.recipient_name} ({self.recipient_email})",
            f"Trip: {self.trip_name}",
            f"{self.delay_minutes} minute delay detected",
            f"Route: {self.triggered_by}",
            f"Reason: {self.reason}",
            f"From: {self.origin_address}",
            f"To: {self.destination_address}",
        ]
        if self.alternatives:
            lines.append("Alternative routes available:")
            for alt in self.alternatives:
                lines.append(f"  {alt.position}. {alt.name}: {alt.label}")
        if self.recommended_route:
            lines.append(f"Recommended alternative: {self.recommended_route}")
        lines.append(f"Recommended action: Use {self.nav_app}")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        doc = {
            "alertId": self.alert_id,
            "userId": self.user_id,
            "recipient": {"name": self.recipient_name, "email": self.recipient_email},
            "tripId": self.trip_id,
            "tripName": self.trip_name,
            "title": self.title,
            "body": self.body,
            "delayMinutes": self.delay_minutes,
            "triggeredBy": self.triggered_by,
            "reason": self.reason,
            "navApp": self.nav_app,
            "alternatives": [alt.to_dict() for alt in self.alternatives],
            "sentAt": self.sent_at.isoformat(),
        }
        if self.recommended_route:
            doc["recommendedRoute"] = self.recommended_route
        return doc
