"""
Garmin Connect Service

Thin wrapper around the python-garminconnect client used by the relay.

ARCHITECTURE:
- Uses unofficial python-garminconnect library (garth handles OAuth)
- Stateless: callers hand in OAuth tokens per request and get refreshed
  tokens back; nothing is persisted here
- Every call is blocking; routers run them through with_timeout() so a
  slow Garmin response becomes a 504 instead of a hung request
"""

import asyncio
import base64
import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional

from garminconnect import Garmin, GarminConnectAuthenticationError

logger = logging.getLogger(__name__)


CONNECT_API_ACTIVITY_BASE = "/activity-service/activity"
WORKOUT_SCHEDULE_PATH = "/workout-service/schedule"

_TOKEN_ERROR_RE = re.compile(r"token|unauthorized|auth|expired|session|403|401", re.IGNORECASE)


class GarminTimeoutError(Exception):
    """A Garmin Connect call exceeded its time budget."""

    def __init__(self, timeout_s: float):
        super().__init__(f"Garmin API call timed out after {timeout_s}s")
        self.timeout_s = timeout_s


async def with_timeout(func: Callable[..., Any], *args: Any, timeout_s: float, **kwargs: Any) -> Any:
    """
    Run a blocking Garmin call in a worker thread, bounded by timeout_s.

    Raises:
        GarminTimeoutError: the call did not finish in time
        Exception: whatever the call itself raised
    """
    try:
        return await asyncio.wait_for(asyncio.to_thread(func, *args, **kwargs), timeout=timeout_s)
    except asyncio.TimeoutError:
        raise GarminTimeoutError(timeout_s) from None


def is_token_error(exc: BaseException) -> bool:
    """True if the failure looks like an expired or rejected OAuth session."""
    if isinstance(exc, GarminConnectAuthenticationError):
        return True
    return bool(_TOKEN_ERROR_RE.search(str(exc) or ""))


def splits_path(activity_id: int) -> str:
    return f"{CONNECT_API_ACTIVITY_BASE}/{activity_id}/splits"


def encode_token_json(token_json: Dict[str, Any]) -> str:
    """{oauth1, oauth2} -> garth's base64 token string."""
    return base64.b64encode(json.dumps([token_json["oauth1"], token_json["oauth2"]]).encode()).decode()


def decode_token_string(dumped: str) -> Dict[str, Any]:
    """garth's base64 token string -> {oauth1, oauth2}."""
    oauth1, oauth2 = json.loads(base64.b64decode(dumped))
    return {"oauth1": oauth1, "oauth2": oauth2}


class GarminAccountClient:
    """
    One Garmin Connect session for one user.

    Token-only callers never call login(); a password is only needed for
    the /garmin/connect password path.
    """

    def __init__(self, username: str, password: Optional[str] = None):
        if not username:
            raise ValueError("Missing username (or email)")
        self.username = username
        self.client = Garmin(email=username, password=password)

    def login(self) -> None:
        """Password login. Raises on bad credentials or Garmin errors."""
        self.client.login()
        logger.info("Garmin password login succeeded")

    def load_token(self, token_json: Dict[str, Any]) -> None:
        """
        Load exported OAuth tokens into the session.

        Args:
            token_json: {"oauth1": {...}, "oauth2": {...}}
        """
        if not isinstance(token_json, dict) or "oauth1" not in token_json or "oauth2" not in token_json:
            raise ValueError("tokenJson must contain oauth1 and oauth2")
        self.client.garth.loads(encode_token_json(token_json))

    def export_token(self) -> Dict[str, Any]:
        """Current (possibly refreshed) OAuth tokens as {oauth1, oauth2}."""
        return decode_token_string(self.client.garth.dumps())

    def get_user_profile(self) -> Dict[str, Any]:
        return self.client.get_user_profile()

    def get_activities(self, start: int = 0, limit: int = 10) -> List[Dict[str, Any]]:
        """Most recent first, exactly as Garmin returns them."""
        activities = self.client.get_activities(start, limit)
        return activities if isinstance(activities, list) else []

    def get_activity(self, activity_id: int) -> Dict[str, Any]:
        return self.client.get_activity(activity_id)

    def get(self, path: str) -> Any:
        """Authenticated GET against the connectapi host."""
        return self.client.connectapi(path)

    def create_workout(self, workout: Dict[str, Any]) -> Dict[str, Any]:
        return self.client.upload_workout(workout)

    def schedule_workout(self, workout_id: Any, schedule_date: str) -> Any:
        """Put a saved workout on the Garmin calendar (YYYY-MM-DD)."""
        return self.client.connectapi(
            f"{WORKOUT_SCHEDULE_PATH}/{workout_id}",
            method="POST",
            json={"date": schedule_date},
        )


GarminClientFactory = Callable[[str, Optional[str]], GarminAccountClient]


def get_garmin_client_factory() -> GarminClientFactory:
    """FastAPI dependency; tests override it with a fake client."""
    return GarminAccountClient
