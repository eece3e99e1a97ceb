"""
Alert threshold evaluation - pure domain logic

Decides whether a route's current delay breaches a trip's alert threshold
and words the reason shown to the user.

Rules:
- MINUTES: breach when delay (seconds) >= value * 60
- PERCENTAGE: breach when delay percentage >= value
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from common.models import AlertThreshold, Route, ThresholdType, round_half_up


@dataclass(frozen=True)
class BreachResult:
    """A route that breached a trip's threshold, with the user-facing reason."""
    route: Route
    reason: str


class ThresholdEvaluator:
    """Pure functions for threshold checks."""

    @staticmethod
    def exceeds_threshold(route: Route, threshold: AlertThreshold) -> bool:
        if threshold.type == ThresholdType.MINUTES:
            return route.delay >= threshold.value * 60
        if threshold.type == ThresholdType.PERCENTAGE:
            return route.delay_percentage >= threshold.value
        return False

    @staticmethod
    def describe_breach(route: Route, threshold: AlertThreshold) -> str:
        """
        Human-readable reason for an alert.

        Examples:
            "12 min delay via A21 (London Road) due to multi-vehicle accident"
            "35% slower via A25 (High Street)"
        """
        if threshold.type == ThresholdType.MINUTES:
            text = f"{round_half_up(route.delay / 60)} min delay via {route.name}"
        else:
            text = f"{round_half_up(route.delay_percentage)}% slower via {route.name}"

        if route.reason:
            text += f" due to {route.reason.lower()}"
        return text

    @staticmethod
    def find_breach(routes: Sequence[Route], threshold: AlertThreshold) -> Optional[BreachResult]:
        """First breaching route in provider order, or None."""
        for route in routes:
            if ThresholdEvaluator.exceeds_threshold(route, threshold):
                return BreachResult(
                    route=route,
                    reason=ThresholdEvaluator.describe_breach(route, threshold),
                )
        return None

    @staticmethod
    def find_worst_breach(routes: Sequence[Route], threshold: AlertThreshold) -> Optional[BreachResult]:
        """
        Route with the largest delay, or None when no route breaches.

        Once any route breaches, the worst route is picked from all of them,
        so under a PERCENTAGE threshold it may be a longer route with a
        smaller relative delay.
        """
        if not any(ThresholdEvaluator.exceeds_threshold(r, threshold) for r in routes):
            return None
        worst = max(routes, key=lambda r: r.delay)
        return BreachResult(
            route=worst,
            reason=ThresholdEvaluator.describe_breach(worst, threshold),
        )
