"""
Tests for the relay HTTP API.

Routes run against FakeGarminClient (see conftest.py); assertions cover
response shapes, status codes and which Garmin calls were made.
"""
import pytest
from fastapi.testclient import TestClient
from garminconnect import GarminConnectAuthenticationError

from core.config import settings
from conftest import REFRESHED_TOKEN_JSON, TOKEN_JSON


ACTIVITY_ID = 21345678901


class TestHealthAndAuth:
    """Liveness and API key checks"""

    def test_health_needs_no_key(self):
        from main import app

        response = TestClient(app).get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert data["status"] == "healthy"
        assert "timestamp" in data

    def test_security_headers(self, api_client):
        response = api_client.get("/health")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"

    def test_missing_key_rejected(self, api_client, token_body):
        from main import app

        response = TestClient(app).post("/garmin/profile", json=token_body)
        assert response.status_code == 401
        assert response.json() == {"ok": False, "error": "Unauthorized"}

    def test_wrong_key_rejected(self, api_client, token_body):
        response = api_client.post(
            "/garmin/profile",
            json=token_body,
            headers={"Authorization": "Bearer not-the-key"},
        )
        assert response.status_code == 401

    def test_unset_server_key_rejects_everything(self, api_client, token_body, monkeypatch):
        monkeypatch.setattr(settings, "API_KEY", None)
        response = api_client.post("/garmin/profile", json=token_body)
        assert response.status_code == 401

    def test_debug_route_needs_key(self, api_client):
        from main import app

        response = TestClient(app).post("/debug/activity-id", json={"activityId": 1})
        assert response.status_code == 401


class TestConnect:
    """POST /garmin/connect"""

    def test_dry_run_makes_no_garmin_calls(self, api_client, fake_garmin):
        response = api_client.post(
            "/garmin/connect",
            json={"username": "runner@example.com", "dryRun": True},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["dryRun"] is True
        assert data["received"] == {
            "hasUsername": True,
            "hasPassword": False,
            "hasTokenJson": False,
            "contentType": "application/json",
        }
        assert fake_garmin.calls == []

    @pytest.mark.parametrize("body", [
        {"username": "runner@example.com"},
        {"password": "hunter2"},
        {},
    ])
    def test_missing_credentials(self, api_client, body):
        response = api_client.post("/garmin/connect", json=body)
        assert response.status_code == 400
        assert response.json()["error"] == "Missing credentials. Provide username (or email) and password."

    def test_password_login(self, api_client, fake_garmin, cooldown_store):
        response = api_client.post(
            "/garmin/connect",
            json={"email": "runner@example.com", "password": "hunter2"},
        )
        assert response.status_code == 200
        assert response.json() == {"ok": True, "tokenJson": REFRESHED_TOKEN_JSON}
        assert fake_garmin.username == "runner@example.com"
        assert fake_garmin.password == "hunter2"
        assert len(fake_garmin.called("login")) == 1
        assert not cooldown_store.check("runner@example.com").ok

    def test_valid_token_skips_password_login(self, api_client, fake_garmin, cooldown_store):
        response = api_client.post(
            "/garmin/connect",
            json={"username": "runner@example.com", "password": "hunter2", "tokenJson": TOKEN_JSON},
        )
        assert response.status_code == 200
        assert response.json()["tokenJson"] == REFRESHED_TOKEN_JSON
        assert fake_garmin.loaded_token == TOKEN_JSON
        assert fake_garmin.called("login") == []
        assert cooldown_store.check("runner@example.com").ok

    def test_stale_token_falls_back_to_password(self, api_client, fake_garmin):
        fake_garmin.errors["get_user_profile"] = GarminConnectAuthenticationError("401 Unauthorized")
        response = api_client.post(
            "/garmin/connect",
            json={"username": "runner@example.com", "password": "hunter2", "tokenJson": TOKEN_JSON},
        )
        assert response.status_code == 200
        assert len(fake_garmin.called("login")) == 1

    def test_second_password_login_is_rate_limited(self, api_client, fake_garmin):
        body = {"username": "runner@example.com", "password": "hunter2"}
        assert api_client.post("/garmin/connect", json=body).status_code == 200

        response = api_client.post("/garmin/connect", json=body)
        assert response.status_code == 429
        assert response.json() == {
            "ok": False,
            "error": "Cooldown active. Wait 600s before trying password login again.",
        }
        assert response.headers["Retry-After"] == "600"
        assert len(fake_garmin.called("login")) == 1

    def test_failed_login_does_not_start_cooldown(self, api_client, fake_garmin, cooldown_store):
        fake_garmin.errors["login"] = RuntimeError("Invalid username or password")
        response = api_client.post(
            "/garmin/connect",
            json={"username": "runner@example.com", "password": "wrong"},
        )
        assert response.status_code == 500
        assert response.json() == {"ok": False, "error": "Invalid username or password"}
        assert cooldown_store.check("runner@example.com").ok

    def test_login_timeout(self, api_client, fake_garmin, monkeypatch, cooldown_store):
        monkeypatch.setattr(settings, "GARMIN_LOGIN_TIMEOUT_S", 0.05)
        fake_garmin.delays["login"] = 0.3
        response = api_client.post(
            "/garmin/connect",
            json={"username": "runner@example.com", "password": "hunter2"},
        )
        assert response.status_code == 504
        assert response.json()["error"] == "Garmin API timed out. Please try again."
        assert cooldown_store.check("runner@example.com").ok

    def test_token_check_timeout_is_not_retried_with_password(self, api_client, fake_garmin, monkeypatch):
        monkeypatch.setattr(settings, "GARMIN_API_TIMEOUT_S", 0.05)
        fake_garmin.delays["get_user_profile"] = 0.3
        response = api_client.post(
            "/garmin/connect",
            json={"username": "runner@example.com", "password": "hunter2", "tokenJson": TOKEN_JSON},
        )
        assert response.status_code == 504
        assert fake_garmin.called("login") == []


class TestTokenRoutes:
    """Shared handling for token-only routes, exercised through /garmin/profile"""

    def test_profile(self, api_client, fake_garmin, token_body):
        response = api_client.post("/garmin/profile", json=token_body)
        assert response.status_code == 200
        assert response.json() == {
            "ok": True,
            "profile": {"displayName": "runner42", "fullName": "Test Runner"},
            "tokenJson": REFRESHED_TOKEN_JSON,
        }
        assert fake_garmin.username == "runner@example.com"
        assert fake_garmin.password is None
        assert fake_garmin.called("login") == []

    def test_email_accepted_for_username(self, api_client, fake_garmin):
        response = api_client.post("/garmin/profile", json={"email": "e@example.com", "tokenJson": TOKEN_JSON})
        assert response.status_code == 200
        assert fake_garmin.username == "e@example.com"

    def test_missing_username(self, api_client, fake_garmin):
        response = api_client.post("/garmin/profile", json={"tokenJson": TOKEN_JSON})
        assert response.status_code == 400
        assert response.json() == {"ok": False, "error": "Missing username (or email)"}
        assert fake_garmin.calls == []

    @pytest.mark.parametrize("token_json", [None, {}, {"oauth1": TOKEN_JSON["oauth1"]}])
    def test_missing_token(self, api_client, token_json):
        response = api_client.post("/garmin/profile", json={"username": "u", "tokenJson": token_json})
        assert response.status_code == 400
        assert response.json()["error"] == "Missing tokenJson.oauth1/oauth2"

    def test_rejected_token(self, api_client, fake_garmin, token_body):
        fake_garmin.errors["get_user_profile"] = RuntimeError("401 Client Error: Unauthorized")
        response = api_client.post("/garmin/profile", json=token_body)
        assert response.status_code == 401
        assert response.json() == {
            "ok": False,
            "error": "Token expired or invalid. Re-authenticate via /garmin/connect.",
        }

    def test_other_garmin_failure(self, api_client, fake_garmin, token_body):
        fake_garmin.errors["get_user_profile"] = RuntimeError("500 Server Error")
        response = api_client.post("/garmin/profile", json=token_body)
        assert response.status_code == 500
        assert response.json() == {"ok": False, "error": "Garmin request failed"}

    def test_timeout(self, api_client, fake_garmin, token_body, monkeypatch):
        monkeypatch.setattr(settings, "GARMIN_API_TIMEOUT_S", 0.05)
        fake_garmin.delays["get_user_profile"] = 0.3
        response = api_client.post("/garmin/profile", json=token_body)
        assert response.status_code == 504
        assert response.json() == {"ok": False, "error": "Garmin API timed out. Please try again."}

    def test_malformed_body(self, api_client):
        response = api_client.post("/garmin/profile", json=["not", "an", "object"])
        assert response.status_code == 400
        assert response.json()["ok"] is False


class TestActivities:
    """POST /garmin/activities"""

    def test_defaults(self, api_client, fake_garmin, token_body):
        response = api_client.post("/garmin/activities", json=token_body)
        assert response.status_code == 200
        data = response.json()
        assert [a["activityId"] for a in data["activities"]] == [3003, 3002]
        assert data["tokenJson"] == REFRESHED_TOKEN_JSON
        assert fake_garmin.called("get_activities") == [("get_activities", 0, 10)]

    def test_limit_and_offset_are_clamped(self, api_client, fake_garmin, token_body):
        api_client.post("/garmin/activities", json={**token_body, "limit": 500, "offset": -2})
        api_client.post("/garmin/activities", json={**token_body, "limit": "5", "offset": "1"})
        assert fake_garmin.called("get_activities") == [
            ("get_activities", 0, 50),
            ("get_activities", 1, 5),
        ]


class TestActivity:
    """POST /garmin/activity"""

    @pytest.fixture
    def detail(self, fake_garmin):
        fake_garmin.activity_details[ACTIVITY_ID] = {
            "activityId": ACTIVITY_ID,
            "activityName": "Track Tuesday",
            "userProfileId": 555,
            "summaryDTO": {"distance": 9876.5, "averageHR": 151, "groundContactTime": 241.0},
            "metadataDTO": {"lapCount": 14, "personalRecord": True},
            "activityTypeDTO": {"typeKey": "running"},
        }
        return fake_garmin.activity_details[ACTIVITY_ID]

    def test_full_profile_by_default(self, api_client, fake_garmin, token_body, detail):
        response = api_client.post("/garmin/activity", json={**token_body, "activityId": str(ACTIVITY_ID)})
        assert response.status_code == 200
        data = response.json()
        assert data["profile"] == "full"
        assert data["activity"] == {
            "activityId": ACTIVITY_ID,
            "activityName": "Track Tuesday",
            "userProfileId": 555,
            "distance": 9876.5,
            "averageHR": 151,
            "groundContactTime": 241.0,
            "activityType": {"typeKey": "running"},
            "lapCount": 14,
            "pr": True,
        }
        assert fake_garmin.called("get_activities") == []
        assert fake_garmin.called("get_activity") == [("get_activity", ACTIVITY_ID)]

    def test_summary_profile(self, api_client, token_body, detail):
        response = api_client.post(
            "/garmin/activity",
            json={**token_body, "activity_id": ACTIVITY_ID, "profile": "summary"},
        )
        activity = response.json()["activity"]
        assert activity["averageHR"] == 151
        assert "groundContactTime" not in activity
        assert "userProfileId" not in activity

    def test_most_recent_when_no_id(self, api_client, fake_garmin, token_body):
        response = api_client.post("/garmin/activity", json=token_body)
        assert response.status_code == 200
        assert response.json()["activity"]["activityId"] == 3003
        assert fake_garmin.called("get_activities") == [("get_activities", 0, 1)]

    def test_no_activities(self, api_client, fake_garmin, token_body):
        fake_garmin.activities = []
        response = api_client.post("/garmin/activity", json=token_body)
        assert response.status_code == 500
        assert response.json()["error"] == "Garmin request failed"

    def test_invalid_profile(self, api_client, fake_garmin, token_body):
        response = api_client.post("/garmin/activity", json={**token_body, "profile": "verbose"})
        assert response.status_code == 400
        assert response.json()["error"] == 'Invalid profile "verbose". Must be one of: summary, coaching, full'
        assert fake_garmin.calls == []

    def test_invalid_activity_id(self, api_client, fake_garmin, token_body):
        response = api_client.post("/garmin/activity", json={**token_body, "activityId": "abc"})
        assert response.status_code == 400
        assert response.json() == {
            "ok": False,
            "error": "Invalid activityId",
            "receivedActivityIdRaw": "abc",
            "receivedType": "string",
        }
        assert fake_garmin.calls == []

    def test_activity_id_too_large_for_a_number(self, api_client, fake_garmin, token_body):
        response = api_client.post("/garmin/activity", json={**token_body, "activityId": 10 ** 400})
        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "Invalid activityId"
        assert data["receivedActivityIdRaw"] == 10 ** 400
        assert data["receivedType"] == "number"
        assert fake_garmin.calls == []


class TestSplits:
    """POST /garmin/splits"""

    def test_laps_filtered_by_profile(self, api_client, fake_garmin, token_body):
        path = f"/activity-service/activity/{ACTIVITY_ID}/splits"
        fake_garmin.splits[path] = {
            "activityId": ACTIVITY_ID,
            "lapDTOs": [
                {"lapIndex": 1, "distance": 1000.0, "averageHR": 140, "messageIndex": 0, "lengthDTOs": []},
                {"lapIndex": 2, "distance": 800.0, "averageHR": 171, "messageIndex": 1},
            ],
        }
        response = api_client.post(
            "/garmin/splits",
            json={**token_body, "activityId": ACTIVITY_ID, "profile": "summary"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["activityId"] == ACTIVITY_ID
        assert data["lapCount"] == 2
        assert data["profile"] == "summary"
        assert data["laps"][0] == {"lapIndex": 1, "distance": 1000.0, "averageHR": 140}
        assert fake_garmin.called("get") == [("get", path)]

    def test_no_laps(self, api_client, token_body):
        response = api_client.post("/garmin/splits", json={**token_body, "activityId": 42})
        data = response.json()
        assert data["activityId"] == 42
        assert data["laps"] == []
        assert data["lapCount"] == 0

    def test_invalid_activity_id(self, api_client, token_body):
        response = api_client.post("/garmin/splits", json={**token_body, "activityId": 0})
        assert response.status_code == 400
        assert response.json()["receivedType"] == "number"


class TestWorkout:
    """POST /garmin/workout"""

    def test_grouped_view(self, api_client, fake_garmin, token_body):
        fake_garmin.activity_details[ACTIVITY_ID] = {
            "activityId": ACTIVITY_ID,
            "summaryDTO": {
                "duration": 3120.4,
                "averageHR": 151,
                "splitSummaries": [{"splitType": "INTERVAL_ACTIVE", "noOfSplits": 6}],
            },
            "metadataDTO": {"lapCount": 2, "favorite": False},
        }
        fake_garmin.splits[f"/activity-service/activity/{ACTIVITY_ID}/splits"] = {
            "lapDTOs": [{"lapIndex": 1, "distance": 800.0, "messageIndex": 0}],
        }

        response = api_client.post("/garmin/workout", json={**token_body, "activityId": ACTIVITY_ID})
        assert response.status_code == 200
        data = response.json()
        assert data["activityId"] == ACTIVITY_ID
        assert data["tokenJson"] == REFRESHED_TOKEN_JSON

        workout = data["workout"]
        assert list(workout) == [
            "identity", "timing", "distance", "pace", "heartRate", "elevation",
            "runningDynamics", "power", "training", "body", "workoutStructure", "laps", "meta",
        ]
        assert workout["identity"] == {"activityId": ACTIVITY_ID}
        assert workout["timing"] == {"duration": 3120.4}
        assert workout["heartRate"] == {"averageHR": 151}
        assert workout["power"] == {}
        assert workout["meta"] == {"lapCount": 2, "favorite": False}
        assert workout["workoutStructure"] == [
            {"phase": "active", "splitType": "INTERVAL_ACTIVE", "noOfSplits": 6},
        ]
        assert workout["laps"] == [{"lapIndex": 1, "distance": 800.0}]

    def test_either_call_failing_fails_the_request(self, api_client, fake_garmin, token_body):
        fake_garmin.errors["get"] = RuntimeError("502 Bad Gateway")
        response = api_client.post("/garmin/workout", json={**token_body, "activityId": ACTIVITY_ID})
        assert response.status_code == 500


class TestCreateWorkout:
    """POST /garmin/workout/create"""

    @pytest.fixture
    def workout(self):
        return {
            "name": "Track Tuesday",
            "sport": "running",
            "steps": [
                {"type": "warmup", "duration": {"type": "time", "seconds": 600}, "target": {"type": "none"}},
                {"type": "repeat", "iterations": 6, "steps": [
                    {"type": "interval", "duration": {"type": "distance", "meters": 800},
                     "target": {"type": "pace", "minPerKm": "3:50", "maxPerKm": "3:40"}},
                    {"type": "recovery", "duration": {"type": "time", "seconds": 90},
                     "target": {"type": "none"}},
                ]},
                {"type": "cooldown", "duration": {"type": "lapButton"}, "target": {"type": "none"}},
            ],
        }

    def test_create(self, api_client, fake_garmin, token_body, workout):
        response = api_client.post("/garmin/workout/create", json={**token_body, "workout": workout})
        assert response.status_code == 200
        assert response.json() == {
            "ok": True,
            "workoutId": 987654,
            "workoutName": "Track Tuesday",
            "tokenJson": REFRESHED_TOKEN_JSON,
        }
        (_, sent), = fake_garmin.called("create_workout")
        assert sent["sportType"]["sportTypeKey"] == "running"
        steps = sent["workoutSegments"][0]["workoutSteps"]
        assert [s["stepId"] for s in steps] == [1, 2, 5]
        assert fake_garmin.called("schedule_workout") == []

    def test_create_and_schedule(self, api_client, fake_garmin, token_body, workout):
        response = api_client.post(
            "/garmin/workout/create",
            json={**token_body, "workout": workout, "scheduleDate": "2026-10-20"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["scheduled"] is True
        assert data["scheduleDate"] == "2026-10-20"
        assert fake_garmin.called("schedule_workout") == [("schedule_workout", "987654", "2026-10-20")]

    def test_invalid_workout_never_reaches_garmin(self, api_client, fake_garmin, token_body, workout):
        workout["steps"][1]["steps"].append({"type": "repeat", "iterations": 2, "steps": []})
        response = api_client.post("/garmin/workout/create", json={**token_body, "workout": workout})
        assert response.status_code == 400
        assert response.json()["error"] == "Step 2: Nested repeats are not allowed"
        assert fake_garmin.calls == []

    def test_missing_workout(self, api_client, token_body):
        response = api_client.post("/garmin/workout/create", json=token_body)
        assert response.status_code == 400
        assert response.json()["error"] == "Missing workout object"

    @pytest.mark.parametrize("schedule_date", ["20-10-2026", "tomorrow", 20261020])
    def test_bad_schedule_date(self, api_client, fake_garmin, token_body, workout, schedule_date):
        response = api_client.post(
            "/garmin/workout/create",
            json={**token_body, "workout": workout, "scheduleDate": schedule_date},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "scheduleDate must be YYYY-MM-DD format"
        assert fake_garmin.calls == []

    def test_rejected_token(self, api_client, fake_garmin, token_body, workout):
        fake_garmin.errors["create_workout"] = GarminConnectAuthenticationError("expired")
        response = api_client.post("/garmin/workout/create", json={**token_body, "workout": workout})
        assert response.status_code == 401

    def test_workout_with_huge_iterations_is_a_bad_request(self, api_client, fake_garmin, token_body, workout):
        workout["steps"][1]["iterations"] = 10 ** 400
        response = api_client.post("/garmin/workout/create", json={**token_body, "workout": workout})
        assert response.status_code == 400
        assert response.json()["error"] == "Step 2: Repeat iterations must be a positive integer"
        assert fake_garmin.calls == []


class TestDebugActivityId:
    """POST /debug/activity-id"""

    def test_echoes_parse(self, api_client):
        response = api_client.post("/debug/activity-id", json={"activityID": "123", "username": "u"})
        assert response.status_code == 200
        assert response.json() == {
            "ok": True,
            "receivedKeys": ["activityID", "username"],
            "activityIdRaw": "123",
            "activityIdRawType": "string",
            "parsedActivityId": 123,
            "parsedActivityIdType": "number",
        }

    def test_empty_body(self, api_client):
        response = api_client.post("/debug/activity-id")
        data = response.json()
        assert data["receivedKeys"] == []
        assert data["activityIdRawType"] == "undefined"
        assert data["parsedActivityId"] is None
