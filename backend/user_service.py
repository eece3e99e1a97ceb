"""
User Service - In-memory user accounts and notification preferences.

Emails are normalised (trimmed, lower-case) and unique. Deleted accounts
are soft-deleted: their email can never be registered again.
"""

import logging
import re
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Union
from uuid import uuid4

from common.errors import DuplicateUserError, UserValidationError
from common.models import NavApp, QuietHours, User, UserSettings, utc_now

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
TIME_RE = re.compile(r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$")
NAV_APPS = {app.value for app in NavApp}

DEMO_USERS = [
    {
        "email": "alex.kent@sevenoaks-demo.co.uk",
        "name": "Alex Kent",
        "settings": {
            "default_nav_app": "waze",
            "quiet_hours": {"enabled": True, "start": "22:00", "end": "07:00"},
        },
    },
    {
        "email": "chloe.wells@tunbridge-demo.co.uk",
        "name": "Chloe Wells",
        "settings": {
            "default_nav_app": "apple_maps",
            "quiet_hours": {"enabled": False, "start": "23:00", "end": "06:00"},
        },
    },
    {
        "email": "james.maidstone@kent-demo.co.uk",
        "name": "James Maidstone",
        "settings": {
            "default_nav_app": "google_maps",
            "quiet_hours": {"enabled": True, "start": "21:30", "end": "07:30"},
        },
    },
]

SettingsInput = Union[UserSettings, Mapping[str, Any]]


def normalize_email(email: str) -> str:
    return email.strip().lower()


def validate_email(email: str) -> bool:
    return bool(email) and bool(EMAIL_RE.match(email.strip()))


def validate_time_format(value: str) -> bool:
    return bool(value) and bool(TIME_RE.match(value))


def validate_nav_app(app: str) -> bool:
    return app in NAV_APPS


def _quiet_hours_from(data: Any) -> Optional[QuietHours]:
    if data is None or isinstance(data, QuietHours):
        return data
    return QuietHours(
        enabled=bool(data.get("enabled", False)),
        start=data.get("start", ""),
        end=data.get("end", ""),
    )


def _check_settings(settings: UserSettings):
    if settings.default_nav_app and not validate_nav_app(settings.default_nav_app):
        raise UserValidationError("Invalid navigation app")
    quiet = settings.quiet_hours
    if quiet is not None:
        if quiet.start and not validate_time_format(quiet.start):
            raise UserValidationError("Invalid time format for quiet hours start")
        if quiet.end and not validate_time_format(quiet.end):
            raise UserValidationError("Invalid time format for quiet hours end")


class UserService:
    """Process-lifetime user store."""

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._clock = clock
        self._users: Dict[str, User] = {}
        self._email_index: Dict[str, str] = {}
        self._deleted_emails = set()

    def create_user(
        self, email: str, name: str, settings: Optional[SettingsInput] = None
    ) -> User:
        """
        Register a user.

        Raises:
            UserValidationError: If email, name or settings are invalid
            DuplicateUserError: If the email is taken or was used before
        """
        if not email or not email.strip():
            raise UserValidationError("Email is required")
        if not validate_email(email):
            raise UserValidationError("Invalid email format")
        if not name or not name.strip():
            raise UserValidationError("Name is required")

        normalized = normalize_email(email)
        if normalized in self._email_index:
            raise DuplicateUserError("User with this email already exists")
        if normalized in self._deleted_emails:
            raise DuplicateUserError("Email address was previously used")

        user_settings = self._merge_settings(UserSettings(), settings)
        user = User(
            id=str(uuid4()),
            email=normalized,
            name=name.strip(),
            settings=user_settings,
            created_at=self._clock(),
        )
        self._users[user.id] = user
        self._email_index[normalized] = user.id
        logger.info(f"Created user {user.id} ({normalized})")
        return user

    @staticmethod
    def _merge_settings(current: UserSettings, updates: Optional[SettingsInput]) -> UserSettings:
        if updates is None:
            return current
        if isinstance(updates, UserSettings):
            merged = updates
        else:
            changes = {}
            if updates.get("default_nav_app") is not None:
                changes["default_nav_app"] = updates["default_nav_app"]
            if updates.get("quiet_hours") is not None:
                changes["quiet_hours"] = _quiet_hours_from(updates["quiet_hours"])
            merged = replace(current, **changes)
        _check_settings(merged)
        return merged

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        return self._users.get(user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        user_id = self._email_index.get(normalize_email(email))
        return self._users.get(user_id) if user_id else None

    def update_user_settings(self, user_id: str, settings: SettingsInput) -> Optional[User]:
        """
        Merge new settings into a user's existing ones.

        Returns:
            The updated user, or None if no user has that id

        Raises:
            UserValidationError: If the merged settings are invalid
        """
        user = self._users.get(user_id)
        if user is None:
            return None
        updated = replace(user, settings=self._merge_settings(user.settings, settings))
        self._users[user_id] = updated
        return updated

    def update_user_profile(
        self, user_id: str, name: Optional[str] = None, email: Optional[str] = None
    ) -> Optional[User]:
        """
        Change a user's name and/or email.

        Raises:
            UserValidationError: If the new name or email is invalid
            DuplicateUserError: If the new email belongs to another user
        """
        user = self._users.get(user_id)
        if user is None:
            return None

        changes = {}
        if name is not None:
            if not name.strip():
                raise UserValidationError("Name is required")
            changes["name"] = name.strip()

        if email is not None:
            if not validate_email(email):
                raise UserValidationError("Invalid email format")
            normalized = normalize_email(email)
            owner = self._email_index.get(normalized)
            if owner is not None and owner != user_id:
                raise DuplicateUserError("Email already in use")
            del self._email_index[user.email]
            self._email_index[normalized] = user_id
            changes["email"] = normalized

        updated = replace(user, **changes)
        self._users[user_id] = updated
        return updated

    def delete_user(self, user_id: str) -> bool:
        """Soft delete: the email stays reserved."""
        user = self._users.pop(user_id, None)
        if user is None:
            return False
        self._email_index.pop(user.email, None)
        self._deleted_emails.add(user.email)
        logger.info(f"Deleted user {user_id}")
        return True

    def create_demo_users(self) -> List[User]:
        """Create the demo personas, reusing any that already exist."""
        users = []
        for data in DEMO_USERS:
            existing = self.get_user_by_email(data["email"])
            if existing is not None:
                users.append(existing)
                continue
            try:
                users.append(self.create_user(data["email"], data["name"], data["settings"]))
            except DuplicateUserError as e:
                logger.warning(f"Skipping demo user {data['email']}: {e}")
        return users

    def get_all_users(self) -> List[User]:
        return list(self._users.values())

    def get_users(self, offset: int = 0, limit: int = 10) -> List[User]:
        return self.get_all_users()[offset:offset + limit]

    def get_total_user_count(self) -> int:
        return len(self._users)
