"""
Pytest configuration and fixtures

Garmin Connect is never contacted: routes get a FakeGarminClient through
app.dependency_overrides, and login cooldowns use an in-memory store.
"""
import pytest
import sys
import os
import time

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fastapi.testclient import TestClient

from core.config import settings
from core.rate_limit import InMemoryLoginCooldownStore, get_login_cooldown_store
from services.garmin_service import get_garmin_client_factory


TEST_API_KEY = "test-relay-key"

TOKEN_JSON = {
    "oauth1": {"oauth_token": "o1-token", "oauth_token_secret": "o1-secret"},
    "oauth2": {"access_token": "o2-access", "refresh_token": "o2-refresh", "expires_at": 1700000000},
}

REFRESHED_TOKEN_JSON = {
    "oauth1": TOKEN_JSON["oauth1"],
    "oauth2": {"access_token": "o2-access-refreshed", "refresh_token": "o2-refresh", "expires_at": 1700003600},
}


class FakeGarminClient:
    """
    Stand-in for GarminAccountClient.

    Configure responses via attributes, failures via `errors`
    (method name -> exception) and slowness via `delays` (method name -> seconds).
    """

    def __init__(self):
        self.username = None
        self.password = None
        self.calls = []
        self.loaded_token = None
        self.errors = {}
        self.delays = {}
        self.profile = {"displayName": "runner42", "fullName": "Test Runner"}
        self.activities = [
            {"activityId": 3003, "activityName": "Evening Run", "startTimeLocal": "2026-10-17 18:00:00"},
            {"activityId": 3002, "activityName": "Morning Ride", "startTimeLocal": "2026-10-16 07:00:00"},
        ]
        self.activity_details = {}
        self.splits = {}
        self.created = {"workoutId": 987654, "workoutName": "Track Tuesday"}

    def factory(self, username, password=None):
        self.username = username
        self.password = password
        self.calls.append(("init", username))
        return self

    def _enter(self, name, *args):
        self.calls.append((name,) + args)
        if name in self.delays:
            time.sleep(self.delays[name])
        if name in self.errors:
            raise self.errors[name]

    def called(self, name):
        return [c for c in self.calls if c[0] == name]

    def login(self):
        self._enter("login")

    def load_token(self, token_json):
        self._enter("load_token", token_json)
        if "oauth1" not in token_json or "oauth2" not in token_json:
            raise ValueError("tokenJson must contain oauth1 and oauth2")
        self.loaded_token = token_json

    def export_token(self):
        self._enter("export_token")
        return REFRESHED_TOKEN_JSON

    def get_user_profile(self):
        self._enter("get_user_profile")
        return self.profile

    def get_activities(self, start=0, limit=10):
        self._enter("get_activities", start, limit)
        return self.activities[start:start + limit]

    def get_activity(self, activity_id):
        self._enter("get_activity", activity_id)
        return self.activity_details.get(activity_id, {"activityId": activity_id})

    def get(self, path):
        self._enter("get", path)
        return self.splits.get(path)

    def create_workout(self, workout):
        self._enter("create_workout", workout)
        return self.created

    def schedule_workout(self, workout_id, schedule_date):
        self._enter("schedule_workout", workout_id, schedule_date)
        return {"workoutScheduleId": 1}


@pytest.fixture
def fake_garmin():
    return FakeGarminClient()


@pytest.fixture
def cooldown_store():
    return InMemoryLoginCooldownStore(window_s=600)


@pytest.fixture
def api_client(monkeypatch, fake_garmin, cooldown_store):
    """TestClient with a valid API key, fake Garmin client and in-memory cooldowns."""
    from main import app

    monkeypatch.setattr(settings, "API_KEY", TEST_API_KEY)
    app.dependency_overrides[get_garmin_client_factory] = lambda: fake_garmin.factory
    app.dependency_overrides[get_login_cooldown_store] = lambda: cooldown_store

    client = TestClient(app, headers={"Authorization": f"Bearer {TEST_API_KEY}"})
    yield client

    app.dependency_overrides.clear()


@pytest.fixture
def token_body():
    return {"username": "runner@example.com", "tokenJson": TOKEN_JSON}
