"""
Error types shared across the monitoring engine.

Validation failures subclass ValueError so callers that only care about
"bad input" can catch that; the HTTP layer maps them to 400 responses.
"""

from typing import List, Optional


class AlertValidationError(ValueError):
    """Raised when an alert is requested for a trip or route without identity."""


class TripValidationError(ValueError):
    """Raised when trip data fails validation."""

    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors))
        self.errors = errors


class UserValidationError(ValueError):
    """Raised when user data or settings fail validation."""


class DuplicateUserError(UserValidationError):
    """Raised when an email is already registered (or was previously used)."""


class ProviderError(RuntimeError):
    """Raised by route/traffic providers when they cannot produce data."""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.provider = provider
