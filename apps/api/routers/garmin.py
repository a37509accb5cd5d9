"""
Garmin Connect Relay Router

Token-based access to a user's Garmin Connect account.

Clients connect once (POST /garmin/connect) and keep the returned OAuth
tokens. Every other route takes {username, tokenJson}, performs its
Garmin calls, and returns the refreshed tokenJson alongside the result.
"""

import asyncio
import logging
import re
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict

from core.auth import require_api_key
from core.config import settings
from core.exceptions import (
    APIException,
    BadRequestError,
    GatewayTimeoutError,
    RateLimitedError,
    UnauthorizedError,
    UpstreamError,
)
from core.rate_limit import LoginCooldownStore, get_login_cooldown_store
from services.activity_reshaping import (
    apply_activity_profile,
    apply_split_profile,
    build_workout_response,
    flatten_activity_detail,
)
from services.field_taxonomy import FULL_PROFILE, VALID_PROFILES
from services.garmin_service import (
    GarminAccountClient,
    GarminClientFactory,
    GarminTimeoutError,
    get_garmin_client_factory,
    is_token_error,
    splits_path,
    with_timeout,
)
from services.relay_requests import (
    ParsedActivityId,
    clamp_limit,
    clamp_offset,
    get_username,
    parse_activity_id_from_body,
)
from services.workout_builder import build_garmin_workout
from services.workout_validation import validate_workout_payload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/garmin", tags=["garmin"], dependencies=[Depends(require_api_key)])

SCHEDULE_DATE_RE = re.compile(r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$")
TOKEN_INVALID_MESSAGE = "Token expired or invalid. Re-authenticate via /garmin/connect."


class GarminTokenRequest(BaseModel):
    """Common body for token-only routes. Unknown fields are kept (activityId aliases live there)."""
    model_config = ConfigDict(extra="allow")

    username: Optional[str] = None
    email: Optional[str] = None
    tokenJson: Optional[Dict[str, Any]] = None


class GarminConnectRequest(GarminTokenRequest):
    password: Optional[str] = None
    dryRun: Optional[Any] = None


class GarminActivitiesRequest(GarminTokenRequest):
    limit: Optional[Any] = None
    offset: Optional[Any] = None


class GarminActivityRequest(GarminTokenRequest):
    profile: Optional[str] = None


class GarminCreateWorkoutRequest(GarminTokenRequest):
    workout: Optional[Any] = None
    scheduleDate: Optional[Any] = None


Action = Callable[[GarminAccountClient], Awaitable[Dict[str, Any]]]


async def run_with_garmin_token(
    body: Dict[str, Any],
    client_factory: GarminClientFactory,
    action: Action,
) -> Dict[str, Any]:
    """
    Shared flow for token-only routes.

    Validates username/tokenJson, loads the tokens into a fresh client,
    runs the action and returns its result merged with the refreshed
    tokens. Garmin failures are mapped to 504 (timeout), 401 (token
    problems) or 500 (anything else).
    """
    username = get_username(body)
    token_json = body.get("tokenJson")

    if not username:
        raise BadRequestError("Missing username (or email)")
    if not isinstance(token_json, dict) or not token_json.get("oauth1") or not token_json.get("oauth2"):
        raise BadRequestError("Missing tokenJson.oauth1/oauth2")

    try:
        client = client_factory(username, None)
        client.load_token(token_json)
        result = await action(client)
        refreshed = client.export_token()
    except APIException:
        raise
    except GarminTimeoutError as e:
        logger.warning(f"Garmin call timed out: {e}")
        raise GatewayTimeoutError() from e
    except Exception as e:
        if is_token_error(e):
            logger.info(f"Garmin token rejected: {type(e).__name__}")
            raise UnauthorizedError(TOKEN_INVALID_MESSAGE) from e
        logger.error(f"Garmin request failed: {type(e).__name__}: {e}")
        raise UpstreamError() from e

    return {"ok": True, **result, "tokenJson": refreshed}


def _require_profile(profile: Optional[str]) -> str:
    profile = profile or FULL_PROFILE
    if profile not in VALID_PROFILES:
        raise BadRequestError(f'Invalid profile "{profile}". Must be one of: summary, coaching, full')
    return profile


def _require_optional_activity_id(body: Dict[str, Any]) -> ParsedActivityId:
    """An omitted activityId is fine (most recent is used); a bad one is not."""
    parsed = parse_activity_id_from_body(body)
    if parsed.provided and not parsed.ok:
        raise BadRequestError(
            "Invalid activityId",
            extra={
                "receivedActivityIdRaw": parsed.raw,
                "receivedType": parsed.raw_type,
            },
        )
    return parsed


async def _resolve_activity_id(client: GarminAccountClient, parsed: ParsedActivityId) -> int:
    if parsed.activity_id:
        return parsed.activity_id
    recent = await with_timeout(client.get_activities, 0, 1, timeout_s=settings.GARMIN_API_TIMEOUT_S)
    if not recent:
        raise LookupError("No activities found")
    return recent[0]["activityId"]


def _lap_dtos(raw_splits: Any) -> list:
    if not isinstance(raw_splits, dict):
        return []
    return raw_splits.get("lapDTOs") or []


@router.post("/connect")
async def connect_garmin(
    request: GarminConnectRequest,
    http_request: Request,
    client_factory: GarminClientFactory = Depends(get_garmin_client_factory),
    cooldowns: LoginCooldownStore = Depends(get_login_cooldown_store),
):
    """
    Connect a Garmin account and return OAuth tokens.

    1. dryRun: echo what was received, no Garmin calls
    2. token-first: if tokenJson is given and still valid, return it refreshed
    3. password login, limited to one successful login per cooldown window
    """
    body = request.model_dump()
    username = get_username(body)
    password = request.password or ""

    if request.dryRun is True:
        return {
            "ok": True,
            "dryRun": True,
            "received": {
                "hasUsername": bool(username),
                "hasPassword": bool(password),
                "hasTokenJson": bool(request.tokenJson),
                "contentType": http_request.headers.get("content-type"),
            },
        }

    if not username or not password:
        raise BadRequestError("Missing credentials. Provide username (or email) and password.")

    try:
        client = client_factory(username, password)

        if request.tokenJson:
            try:
                client.load_token(request.tokenJson)
                await with_timeout(client.get_user_profile, timeout_s=settings.GARMIN_API_TIMEOUT_S)
                return {"ok": True, "tokenJson": client.export_token()}
            except GarminTimeoutError:
                raise
            except Exception as e:
                logger.info(f"Token path failed; trying password login. Reason: {type(e).__name__}: {e}")

        gate = cooldowns.check(username)
        if not gate.ok:
            wait_s = gate.wait_seconds_rounded
            raise RateLimitedError(
                f"Cooldown active. Wait {wait_s}s before trying password login again.",
                retry_after_s=wait_s,
            )

        await with_timeout(client.login, timeout_s=settings.GARMIN_LOGIN_TIMEOUT_S)
        # Only a successful login burns the cooldown
        cooldowns.mark(username)
        return {"ok": True, "tokenJson": client.export_token()}

    except APIException:
        raise
    except GarminTimeoutError as e:
        logger.warning(f"Garmin connect timed out: {e}")
        raise GatewayTimeoutError() from e
    except Exception as e:
        logger.error(f"Garmin connect error: {type(e).__name__}: {e}")
        raise APIException(status_code=500, detail=str(e) or type(e).__name__, error_code="CONNECT_FAILED") from e


@router.post("/profile")
async def garmin_profile(
    request: GarminTokenRequest,
    client_factory: GarminClientFactory = Depends(get_garmin_client_factory),
):
    """User profile for the token's account."""
    async def action(client: GarminAccountClient) -> Dict[str, Any]:
        profile = await with_timeout(client.get_user_profile, timeout_s=settings.GARMIN_API_TIMEOUT_S)
        return {"profile": profile}

    return await run_with_garmin_token(request.model_dump(), client_factory, action)


@router.post("/activities")
async def garmin_activities(
    request: GarminActivitiesRequest,
    client_factory: GarminClientFactory = Depends(get_garmin_client_factory),
):
    """
    Page through recent activities.

    limit defaults to 10 (clamped to 1-50), offset to 0. Activities are
    returned exactly as Garmin sends them, most recent first.
    """
    limit = clamp_limit(request.limit)
    offset = clamp_offset(request.offset)

    async def action(client: GarminAccountClient) -> Dict[str, Any]:
        activities = await with_timeout(client.get_activities, offset, limit, timeout_s=settings.GARMIN_API_TIMEOUT_S)
        return {"activities": activities}

    return await run_with_garmin_token(request.model_dump(), client_factory, action)


@router.post("/activity")
async def garmin_activity(
    request: GarminActivityRequest,
    client_factory: GarminClientFactory = Depends(get_garmin_client_factory),
):
    """
    One activity, flattened and filtered by profile (summary | coaching | full).

    Without an activityId the most recent activity is used.
    """
    profile = _require_profile(request.profile)
    body = request.model_dump()
    parsed = _require_optional_activity_id(body)

    async def action(client: GarminAccountClient) -> Dict[str, Any]:
        activity_id = await _resolve_activity_id(client, parsed)
        raw = await with_timeout(client.get_activity, activity_id, timeout_s=settings.GARMIN_API_TIMEOUT_S)
        flat = flatten_activity_detail(raw)
        activity = apply_activity_profile(flat, profile) if isinstance(flat, dict) else flat
        return {"activity": activity, "profile": profile}

    return await run_with_garmin_token(body, client_factory, action)


@router.post("/splits")
async def garmin_splits(
    request: GarminActivityRequest,
    client_factory: GarminClientFactory = Depends(get_garmin_client_factory),
):
    """Per-lap data (lapDTOs) for an activity, filtered by profile."""
    profile = _require_profile(request.profile)
    body = request.model_dump()
    parsed = _require_optional_activity_id(body)

    async def action(client: GarminAccountClient) -> Dict[str, Any]:
        activity_id = await _resolve_activity_id(client, parsed)
        raw = await with_timeout(client.get, splits_path(activity_id), timeout_s=settings.GARMIN_API_TIMEOUT_S)
        laps = apply_split_profile(_lap_dtos(raw), profile)
        upstream_id = raw.get("activityId") if isinstance(raw, dict) else None
        return {
            "activityId": upstream_id if upstream_id is not None else activity_id,
            "laps": laps,
            "lapCount": len(laps),
            "profile": profile,
        }

    return await run_with_garmin_token(body, client_factory, action)


@router.post("/workout")
async def garmin_workout(
    request: GarminTokenRequest,
    client_factory: GarminClientFactory = Depends(get_garmin_client_factory),
):
    """
    Activity detail and laps combined into 13 semantic groups.

    Both Garmin calls run concurrently.
    """
    body = request.model_dump()
    parsed = _require_optional_activity_id(body)

    async def action(client: GarminAccountClient) -> Dict[str, Any]:
        activity_id = await _resolve_activity_id(client, parsed)
        raw_activity, raw_splits = await asyncio.gather(
            with_timeout(client.get_activity, activity_id, timeout_s=settings.GARMIN_API_TIMEOUT_S),
            with_timeout(client.get, splits_path(activity_id), timeout_s=settings.GARMIN_API_TIMEOUT_S),
        )
        flat = flatten_activity_detail(raw_activity)
        if not isinstance(flat, dict):
            flat = {}
        workout = build_workout_response(flat, _lap_dtos(raw_splits))
        return {"activityId": activity_id, "workout": workout}

    return await run_with_garmin_token(body, client_factory, action)


@router.post("/workout/create")
async def garmin_create_workout(
    request: GarminCreateWorkoutRequest,
    client_factory: GarminClientFactory = Depends(get_garmin_client_factory),
):
    """
    Create a structured workout from the authoring DSL and optionally
    schedule it (scheduleDate: YYYY-MM-DD).

    The workout is validated and compiled before Garmin is contacted.
    """
    validation = validate_workout_payload(request.workout)
    if not validation.ok:
        raise BadRequestError(validation.error)

    schedule_date = request.scheduleDate
    if schedule_date is not None:
        if not isinstance(schedule_date, str) or not SCHEDULE_DATE_RE.match(schedule_date):
            raise BadRequestError("scheduleDate must be YYYY-MM-DD format")

    garmin_workout = build_garmin_workout(request.workout)
    if garmin_workout is None:
        raise BadRequestError("Workout could not be translated to a Garmin workout")

    async def action(client: GarminAccountClient) -> Dict[str, Any]:
        created = await with_timeout(client.create_workout, garmin_workout, timeout_s=settings.GARMIN_API_TIMEOUT_S)
        created = created or {}
        result: Dict[str, Any] = {
            "workoutId": created.get("workoutId"),
            "workoutName": created.get("workoutName"),
        }
        if schedule_date and result["workoutId"]:
            await with_timeout(
                client.schedule_workout,
                str(result["workoutId"]),
                schedule_date,
                timeout_s=settings.GARMIN_API_TIMEOUT_S,
            )
            result["scheduled"] = True
            result["scheduleDate"] = schedule_date
        return result

    return await run_with_garmin_token(request.model_dump(), client_factory, action)
