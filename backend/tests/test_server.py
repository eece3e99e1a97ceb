"""
Tests for the HTTP API.

Drives the FastAPI app through TestClient (lifespan included) against a
test-mode orchestrator with no seeded traffic.
"""

import pytest
from fastapi.testclient import TestClient

from common.config import MODE_TEST, MonitoringConfig
from monitoring.orchestrator import create_orchestrator
from notifications.transport import LoggingTransport
from providers.simulator import TrafficSimulator
from server import create_app


HOME = {
    "latitude": 51.2689,
    "longitude": 0.1845,
    "address": "Bradbourne Vale Road, Sevenoaks, Kent TN13 3QG",
    "name": "Bradbourne Vale Road (Residential)",
}
DARTFORD = {
    "latitude": 51.4467,
    "longitude": 0.2142,
    "address": "Lowfield Street, Dartford, Kent DA1 1NB",
    "name": "Dartford Railway Station",
}


@pytest.fixture
def transport():
    return LoggingTransport()


@pytest.fixture
def client(transport):
    orchestrator = create_orchestrator(
        MonitoringConfig(mode=MODE_TEST, random_seed=7),
        transport=transport,
        simulator=TrafficSimulator(seed_conditions=False),
    )
    with TestClient(create_app(orchestrator)) as client:
        yield client


def _create_user(client, email="sam.driver@example.co.uk", name="Sam Driver", settings=None):
    payload = {"email": email, "name": name}
    if settings is not None:
        payload["settings"] = settings
    response = client.post("/api/users", json=payload)
    assert response.status_code == 200, response.text
    return response.json()


def _trip_payload(user_id, **overrides):
    payload = {
        "userId": user_id,
        "name": "Dartford Commute",
        "origin": HOME,
        "destination": DARTFORD,
        "schedule": {"days": [1, 2, 3, 4, 5], "windowStart": "08:15", "windowEnd": "08:30"},
        "alertThreshold": {"type": "MINUTES", "value": 10},
    }
    payload.update(overrides)
    return payload


def _create_trip(client, user_id, **overrides):
    response = client.post("/api/trips", json=_trip_payload(user_id, **overrides))
    assert response.status_code == 200, response.text
    return response.json()


class TestHealth:
    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_status(self, client):
        body = client.get("/api/status").json()
        assert body["users"] == {"total": 0}
        assert body["monitoring"] == {"activeJobs": 0, "totalAlerts": 0}


class TestUsers:
    def test_create_and_fetch(self, client):
        user = _create_user(client, settings={
            "defaultNavApp": "waze",
            "quietHours": {"enabled": True, "start": "22:00", "end": "07:00"},
        })

        assert user["email"] == "sam.driver@example.co.uk"
        assert user["settings"]["defaultNavApp"] == "waze"
        assert client.get(f"/api/users/{user['id']}").json() == user

    def test_duplicate_email(self, client):
        _create_user(client)
        response = client.post("/api/users", json={"email": "SAM.DRIVER@example.co.uk", "name": "Sam"})
        assert response.status_code == 400
        assert response.json()["detail"] == "User with this email already exists"

    def test_invalid_email(self, client):
        response = client.post("/api/users", json={"email": "sam", "name": "Sam"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid email format"

    def test_update_settings_merges(self, client):
        user = _create_user(client, settings={
            "defaultNavApp": "waze",
            "quietHours": {"enabled": True, "start": "22:00", "end": "07:00"},
        })

        response = client.put(f"/api/users/{user['id']}/settings", json={"defaultNavApp": "apple_maps"})

        assert response.status_code == 200
        assert response.json() == {
            "defaultNavApp": "apple_maps",
            "quietHours": {"enabled": True, "start": "22:00", "end": "07:00"},
        }

    def test_invalid_nav_app(self, client):
        user = _create_user(client)
        response = client.put(f"/api/users/{user['id']}/settings", json={"defaultNavApp": "mapquest"})
        assert response.status_code == 400

    def test_delete(self, client):
        user = _create_user(client)
        assert client.delete(f"/api/users/{user['id']}").status_code == 200
        assert client.get(f"/api/users/{user['id']}").status_code == 404

    def test_list(self, client):
        _create_user(client)
        _create_user(client, email="alex@example.co.uk", name="Alex")
        body = client.get("/api/users", params={"limit": 1}).json()
        assert body["total"] == 2
        assert len(body["users"]) == 1


class TestTrips:
    def test_create_and_list(self, client):
        user = _create_user(client)
        trip = _create_trip(client, user["id"])

        assert trip["userId"] == user["id"]
        assert trip["schedule"] == {"days": [1, 2, 3, 4, 5], "windowStart": "08:15", "windowEnd": "08:30"}
        assert trip["isActive"] is True

        listed = client.get("/api/trips", params={"userId": user["id"]}).json()
        assert [t["id"] for t in listed] == [trip["id"]]

    def test_validation_errors(self, client):
        user = _create_user(client)
        payload = _trip_payload(
            user["id"],
            name=" ",
            schedule={"days": [], "windowStart": "08:15", "windowEnd": "08:30"},
        )

        response = client.post("/api/trips", json=payload)

        assert response.status_code == 400
        assert response.json()["detail"] == ["Trip name is required", "At least one day must be selected"]

    def test_malformed_window(self, client):
        user = _create_user(client)
        payload = _trip_payload(
            user["id"],
            schedule={"days": [1], "windowStart": "8am", "windowEnd": "09:00"},
        )

        response = client.post("/api/trips", json=payload)

        assert response.status_code == 400
        assert response.json()["detail"] == ["Departure window times must be in HH:MM format"]

    def test_unknown_user(self, client):
        response = client.post("/api/trips", json=_trip_payload("missing"))
        assert response.status_code == 404

    def test_unknown_trip(self, client):
        assert client.get("/api/trips/missing").status_code == 404
        assert client.get("/api/trips/missing/traffic").status_code == 404

    def test_update_and_toggle(self, client):
        user = _create_user(client)
        trip = _create_trip(client, user["id"])

        updated = client.put(
            f"/api/trips/{trip['id']}",
            json={"name": "Dartford (late)", "alertThreshold": {"type": "PERCENTAGE", "value": 40}},
        ).json()
        assert updated["name"] == "Dartford (late)"
        assert updated["alertThreshold"] == {"type": "PERCENTAGE", "value": 40}

        toggled = client.post(f"/api/trips/{trip['id']}/toggle").json()
        assert toggled["isActive"] is False

    def test_update_malformed_window(self, client):
        user = _create_user(client)
        trip = _create_trip(client, user["id"])

        response = client.put(
            f"/api/trips/{trip['id']}",
            json={"schedule": {"days": [1], "windowStart": "08:00", "windowEnd": "half eight"}},
        )

        assert response.status_code == 400
        assert client.get(f"/api/trips/{trip['id']}").json()["schedule"]["windowEnd"] == "08:30"

    def test_delete(self, client):
        user = _create_user(client)
        trip = _create_trip(client, user["id"])
        assert client.delete(f"/api/trips/{trip['id']}").status_code == 200
        assert client.delete(f"/api/trips/{trip['id']}").status_code == 404

    def test_traffic(self, client):
        user = _create_user(client)
        trip = _create_trip(client, user["id"])

        body = client.get(f"/api/trips/{trip['id']}/traffic").json()

        assert body["tripId"] == trip["id"]
        assert [r["name"] for r in body["routes"]] == [
            "A21 (London Road)", "A25 (High Street)", "A224 (Dartford Road)",
        ]
        assert all(r["status"] == "CLEAR" for r in body["routes"])


class TestMonitoring:
    def test_monitor_and_stop(self, client):
        user = _create_user(client)
        trip = _create_trip(client, user["id"])

        job = client.post(f"/api/trips/{trip['id']}/monitor").json()
        assert job["status"] == "RUNNING"
        assert job["pollCount"] == 1
        assert [j["id"] for j in client.get("/api/monitoring/jobs").json()] == [job["id"]]

        stopped = client.post(f"/api/monitoring/jobs/{job['id']}/stop").json()
        assert stopped["status"] == "COMPLETED"
        assert client.get("/api/monitoring/jobs").json() == []
        assert client.get(f"/api/monitoring/jobs/{job['id']}").json()["status"] == "COMPLETED"

    def test_stop_unknown_job(self, client):
        assert client.post("/api/monitoring/jobs/missing/stop").status_code == 404

    def test_start_all(self, client):
        client.post("/api/demo/setup")
        body = client.post("/api/monitoring/start-all").json()
        assert body["started"] == 4


class TestTrafficScenario:
    def test_scenario_alerts_and_notifies(self, client, transport):
        user = _create_user(client)
        trip = _create_trip(client, user["id"])

        response = client.post("/api/demo/traffic-scenario", json={
            "routeName": "A21 (London Road)",
            "severity": 0.9,
            "reason": "Multi-vehicle accident",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["scenario"]["routeName"] == "A21 (London Road)"
        [alert] = body["alerts"]
        assert alert["tripId"] == trip["id"]
        assert alert["triggeredBy"] == "A21 (London Road)"
        assert len(transport.sent) == 1

        assert client.get("/api/traffic/conditions").json() == [
            {"route": "A21 (London Road)", "severity": 0.9, "reason": "Multi-vehicle accident"},
        ]
        assert [a["id"] for a in client.get(f"/api/trips/{trip['id']}/alerts").json()] == [alert["id"]]
        assert [a["id"] for a in client.get("/api/alerts/recent").json()] == [alert["id"]]

    def test_alert_action(self, client):
        user = _create_user(client)
        _create_trip(client, user["id"])
        [alert] = client.post("/api/demo/traffic-scenario", json={
            "routeName": "A21 (London Road)", "severity": 0.9,
        }).json()["alerts"]

        response = client.post(f"/api/alerts/{alert['id']}/action", json={"action": "DISMISSED"})

        assert response.status_code == 200
        assert response.json()["userAction"] == "DISMISSED"
        assert client.post("/api/alerts/missing/action", json={"action": "DISMISSED"}).status_code == 404

    @pytest.mark.parametrize("payload", [
        {"routeName": "A21 (London Road)", "severity": 1.5},
        {"routeName": "A21 (London Road)", "severity": -0.2},
        {"routeName": "", "severity": 0.5},
    ])
    def test_invalid_scenario(self, client, payload):
        assert client.post("/api/demo/traffic-scenario", json=payload).status_code == 422


class TestDemo:
    def test_locations(self, client):
        body = client.get("/api/demo/locations").json()
        assert len(body["locations"]) == 15
        assert body["roads"]["primary"][0] == "A21 (London Road)"

    def test_setup_is_idempotent(self, client):
        first = client.post("/api/demo/setup").json()
        second = client.post("/api/demo/setup").json()

        assert len(first["users"]) == 3
        assert len(first["trips"]) == 4
        assert [t["id"] for t in second["trips"]] == [t["id"] for t in first["trips"]]
