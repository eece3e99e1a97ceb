"""
Tests for the user store.

Covers:
- Email / name / settings validation messages
- Email normalisation and uniqueness (including soft-deleted accounts)
- Settings merge on update
- Profile updates and demo persona creation
"""

import pytest

from common.errors import DuplicateUserError, UserValidationError
from common.models import QuietHours, UserSettings
from user_service import UserService, validate_email, validate_time_format


EMAIL_CASES = [
    ("plain", "sam@example.com", True),
    ("subdomain", "sam.driver@mail.example.co.uk", True),
    ("missing at", "sam.example.com", False),
    ("missing tld", "sam@example", False),
    ("spaces", "sam driver@example.com", False),
    ("empty", "", False),
]

TIME_CASES = [
    ("two digit", "07:30", True),
    ("single digit hour", "7:30", True),
    ("last minute", "23:59", True),
    ("hour out of range", "24:00", False),
    ("minute out of range", "12:60", False),
    ("text", "seven", False),
]

CREATE_ERROR_CASES = [
    ("missing email", "", "Sam", None, "Email is required"),
    ("bad email", "not-an-email", "Sam", None, "Invalid email format"),
    ("blank name", "sam@example.com", "  ", None, "Name is required"),
    ("bad nav app", "sam@example.com", "Sam", {"default_nav_app": "mapquest"}, "Invalid navigation app"),
    ("bad quiet start", "sam@example.com", "Sam",
     {"quiet_hours": {"enabled": True, "start": "25:00", "end": "07:00"}},
     "Invalid time format for quiet hours start"),
    ("bad quiet end", "sam@example.com", "Sam",
     {"quiet_hours": {"enabled": True, "start": "22:00", "end": "7am"}},
     "Invalid time format for quiet hours end"),
]


@pytest.fixture
def service():
    return UserService()


class TestValidators:
    @pytest.mark.parametrize("name,email,expected", EMAIL_CASES)
    def test_validate_email(self, name, email, expected):
        assert validate_email(email) is expected, f"Failed on {name}"

    @pytest.mark.parametrize("name,value,expected", TIME_CASES)
    def test_validate_time_format(self, name, value, expected):
        assert validate_time_format(value) is expected, f"Failed on {name}"


class TestCreateUser:
    def test_create_normalises(self, service):
        user = service.create_user("  Sam.Driver@Example.CO.UK ", " Sam Driver ")
        assert user.email == "sam.driver@example.co.uk"
        assert user.name == "Sam Driver"
        assert user.settings == UserSettings()
        assert service.get_user_by_email("SAM.DRIVER@example.co.uk") == user

    def test_create_with_settings(self, service):
        user = service.create_user("sam@example.com", "Sam", {
            "default_nav_app": "waze",
            "quiet_hours": {"enabled": True, "start": "22:00", "end": "07:00"},
        })
        assert user.settings.default_nav_app == "waze"
        assert user.settings.quiet_hours == QuietHours(enabled=True, start="22:00", end="07:00")

    @pytest.mark.parametrize("name,email,user_name,settings,message", CREATE_ERROR_CASES)
    def test_create_errors(self, service, name, email, user_name, settings, message):
        with pytest.raises(UserValidationError) as exc_info:
            service.create_user(email, user_name, settings)
        assert str(exc_info.value) == message, f"Failed on {name}"

    def test_duplicate_email(self, service):
        service.create_user("sam@example.com", "Sam")
        with pytest.raises(DuplicateUserError) as exc_info:
            service.create_user("SAM@example.com", "Another Sam")
        assert str(exc_info.value) == "User with this email already exists"

    def test_deleted_email_cannot_be_reused(self, service):
        user = service.create_user("sam@example.com", "Sam")
        assert service.delete_user(user.id) is True
        assert service.get_user_by_id(user.id) is None

        with pytest.raises(DuplicateUserError) as exc_info:
            service.create_user("sam@example.com", "Sam Again")
        assert str(exc_info.value) == "Email address was previously used"

    def test_delete_missing(self, service):
        assert service.delete_user("missing") is False


class TestUpdates:
    def test_settings_merge(self, service):
        user = service.create_user("sam@example.com", "Sam", {
            "default_nav_app": "waze",
            "quiet_hours": {"enabled": True, "start": "22:00", "end": "07:00"},
        })

        updated = service.update_user_settings(user.id, {"default_nav_app": "apple_maps"})

        assert updated.settings.default_nav_app == "apple_maps"
        assert updated.settings.quiet_hours.start == "22:00"
        assert service.get_user_by_id(user.id) == updated

    def test_invalid_settings_rejected(self, service):
        user = service.create_user("sam@example.com", "Sam")
        with pytest.raises(UserValidationError):
            service.update_user_settings(user.id, {"default_nav_app": "sat-nav"})
        assert service.get_user_by_id(user.id).settings.default_nav_app == "google_maps"

    def test_settings_unknown_user(self, service):
        assert service.update_user_settings("missing", {"default_nav_app": "waze"}) is None

    def test_profile_update(self, service):
        user = service.create_user("sam@example.com", "Sam")
        updated = service.update_user_profile(user.id, name="Samantha", email="Samantha@Example.com")

        assert updated.name == "Samantha"
        assert updated.email == "samantha@example.com"
        assert service.get_user_by_email("sam@example.com") is None
        assert service.get_user_by_email("samantha@example.com") == updated

    def test_profile_email_taken(self, service):
        service.create_user("alex@example.com", "Alex")
        user = service.create_user("sam@example.com", "Sam")
        with pytest.raises(DuplicateUserError) as exc_info:
            service.update_user_profile(user.id, email="alex@example.com")
        assert str(exc_info.value) == "Email already in use"

    def test_profile_same_email_allowed(self, service):
        user = service.create_user("sam@example.com", "Sam")
        updated = service.update_user_profile(user.id, email="SAM@example.com")
        assert updated.email == "sam@example.com"


class TestListingAndDemo:
    def test_pagination(self, service):
        for index in range(5):
            service.create_user(f"user{index}@example.com", f"User {index}")

        assert service.get_total_user_count() == 5
        assert [u.name for u in service.get_users(offset=1, limit=2)] == ["User 1", "User 2"]
        assert service.get_users(offset=10) == []

    def test_demo_users_idempotent(self, service):
        first = service.create_demo_users()
        second = service.create_demo_users()

        assert [u.name for u in first] == ["Alex Kent", "Chloe Wells", "James Maidstone"]
        assert [u.id for u in second] == [u.id for u in first]
        assert service.get_total_user_count() == 3
        assert first[0].settings.quiet_hours.enabled is True
