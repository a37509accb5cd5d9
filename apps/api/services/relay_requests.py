"""
Request body helpers for the Garmin relay routes.

Clients are loose about field names and types (activityId arrives as a
number, a numeric string, or under activityID / activity_id / id), so
these helpers normalise what the routers read.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional


ACTIVITY_ID_KEYS = ("activityId", "activityID", "activity_id", "id")

DEFAULT_ACTIVITIES_LIMIT = 10
MAX_ACTIVITIES_LIMIT = 50

_MISSING = object()


@dataclass(frozen=True)
class ParsedActivityId:
    ok: bool
    activity_id: Optional[int]
    raw: Any
    raw_type: str

    @property
    def provided(self) -> bool:
        return self.raw is not None


def json_type_name(value: Any) -> str:
    """JSON type of a decoded body value ('undefined' when the key was absent)."""
    if value is _MISSING:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    return "object"


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            number = float(value)
        elif isinstance(value, str) and "_" not in value:
            number = float(value.strip())
        else:
            return None
    except (ValueError, OverflowError):
        # too large for a float, or not numeric at all
        return None
    return number if math.isfinite(number) else None


def parse_activity_id_from_body(body: Optional[Dict[str, Any]]) -> ParsedActivityId:
    """
    Find and validate the activity ID in a request body.

    The first key present (and not null) among ACTIVITY_ID_KEYS wins.
    Valid IDs are positive whole numbers, given as numbers or numeric
    strings.
    """
    body = body if isinstance(body, dict) else {}
    raw: Any = _MISSING
    for key in ACTIVITY_ID_KEYS:
        if body.get(key) is not None:
            raw = body[key]
            break

    raw_type = json_type_name(raw)
    raw_value = None if raw is _MISSING else raw

    number = _to_number(raw_value)
    ok = number is not None and number > 0 and number.is_integer()
    return ParsedActivityId(
        ok=ok,
        activity_id=int(number) if ok else None,
        raw=raw_value,
        raw_type=raw_type,
    )


def get_username(body: Optional[Dict[str, Any]]) -> str:
    """username, falling back to email for older clients."""
    body = body if isinstance(body, dict) else {}
    return body.get("username") or body.get("email") or ""


def clamp_limit(value: Any) -> int:
    number = _to_number(DEFAULT_ACTIVITIES_LIMIT if value is None else value)
    if number is None:
        return DEFAULT_ACTIVITIES_LIMIT
    return int(max(1, min(number, MAX_ACTIVITIES_LIMIT)))


def clamp_offset(value: Any) -> int:
    number = _to_number(0 if value is None else value)
    if number is None:
        return 0
    return int(max(0, number))
