"""
Debug endpoints.

Echo helpers for client integrators, behind the same API key as the relay.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends

from core.auth import require_api_key
from services.relay_requests import parse_activity_id_from_body

router = APIRouter(prefix="/debug", tags=["debug"], dependencies=[Depends(require_api_key)])


@router.post("/activity-id")
def debug_activity_id(payload: Optional[Dict[str, Any]] = Body(default=None)):
    """Show how the relay reads the activityId in a request body."""
    payload = payload or {}
    parsed = parse_activity_id_from_body(payload)
    return {
        "ok": True,
        "receivedKeys": list(payload.keys()),
        "activityIdRaw": parsed.raw,
        "activityIdRawType": parsed.raw_type,
        "parsedActivityId": parsed.activity_id,
        "parsedActivityIdType": "number" if parsed.activity_id else None,
    }
