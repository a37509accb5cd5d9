"""
Activity Reshaping Service

Re-projects raw Garmin Connect activity records into the relay's stable
schema.

READ PATH:
- flatten_activity_detail: nested activity detail -> one flat record
- pick_fields: allow-list projection shared by every profile and group
- transform_split_summaries: interval/phase codes -> readable phase names
- build_workout_response: flat record + laps -> 13 semantic groups

All functions here are pure. Missing device capabilities (no power meter,
no running dynamics) show up as empty groups, never as errors.
"""

from typing import Any, Dict, Iterable, List, Optional

from services.field_taxonomy import (
    FULL_PROFILE,
    PROFILE_FIELDS,
    SPLIT_PROFILE_FIELDS,
    SPLIT_TYPE_PHASE_MAP,
    WORKOUT_GROUP_FIELDS,
    WORKOUT_LAP_FIELDS,
)


# Nested sub-records on the activity detail payload. None of them survive flattening.
NESTED_DETAIL_KEYS = (
    "summaryDTO",
    "metadataDTO",
    "activityTypeDTO",
    "eventTypeDTO",
    "timeZoneUnitDTO",
    "accessControlRuleDTO",
)

# metadataDTO field -> flat field name
METADATA_FIELD_MAP = (
    ("lapCount", "lapCount"),
    ("hasSplits", "hasSplits"),
    ("manualActivity", "manualActivity"),
    ("personalRecord", "pr"),
    ("manufacturer", "manufacturer"),
    ("favorite", "favorite"),
    ("autoCalcCalories", "autoCalcCalories"),
    ("elevationCorrected", "elevationCorrected"),
)

UNKNOWN_PHASE = "unknown"


def pick_fields(record: Dict[str, Any], fields: Iterable[str]) -> Dict[str, Any]:
    """
    Project a flat record onto an allow-list of field names.

    Values are shared, not copied. Fields listed but absent from the
    record are left out of the result (never set to None).
    """
    return {key: record[key] for key in fields if key in record}


def flatten_activity_detail(raw: Any) -> Any:
    """
    Flatten a Garmin activity detail payload into a single-level record.

    get_activity() nests most metrics under summaryDTO and the useful flags
    under metadataDTO. Profile and group field lists only look at the top
    level, so the nested records are merged up:

    1. top-level fields, minus every nested DTO
    2. summaryDTO fields (they win on conflict)
    3. activityTypeDTO as activityType, unless activityType is already set
    4. selected metadataDTO fields, only when present

    Anything that is not a dict is returned untouched.
    """
    if not isinstance(raw, dict):
        return raw

    flat = {key: value for key, value in raw.items() if key not in NESTED_DETAIL_KEYS}
    flat.update(raw.get("summaryDTO") or {})

    activity_type = raw.get("activityTypeDTO")
    if activity_type and not flat.get("activityType"):
        flat["activityType"] = activity_type

    metadata = raw.get("metadataDTO")
    if metadata:
        for source_key, flat_key in METADATA_FIELD_MAP:
            if source_key in metadata:
                flat[flat_key] = metadata[source_key]

    return flat


def split_phase(split_type: Optional[str]) -> str:
    """Readable phase name for a Garmin splitType code."""
    if not split_type:
        return UNKNOWN_PHASE
    return SPLIT_TYPE_PHASE_MAP.get(split_type) or str(split_type).lower()


def transform_split_summaries(split_summaries: Any) -> List[Dict[str, Any]]:
    """
    Annotate split summaries with a leading ``phase`` field.

    Order and every original field (splitType included) are preserved.
    Anything that is not a list yields [].
    """
    if not isinstance(split_summaries, list):
        return []

    annotated = []
    for entry in split_summaries:
        row = {"phase": split_phase(entry.get("splitType"))}
        if "splitType" in entry:
            row["splitType"] = entry["splitType"]
        row.update((key, value) for key, value in entry.items() if key != "splitType")
        annotated.append(row)
    return annotated


def build_workout_response(flat: Dict[str, Any], laps: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Build the grouped workout view from a flattened activity and its laps.

    Always returns the same 13 keys. A group with no matching fields is
    an empty dict so clients can hide the section.

    Args:
        flat: Output of flatten_activity_detail
        laps: lapDTOs from the splits endpoint, in Garmin's order

    Returns:
        identity, timing, distance, pace, heartRate, elevation,
        runningDynamics, power, training, body, workoutStructure, laps, meta
    """
    groups = {name: pick_fields(flat, fields) for name, fields in WORKOUT_GROUP_FIELDS.items()}

    return {
        "identity": groups["identity"],
        "timing": groups["timing"],
        "distance": groups["distance"],
        "pace": groups["pace"],
        "heartRate": groups["heartRate"],
        "elevation": groups["elevation"],
        "runningDynamics": groups["runningDynamics"],
        "power": groups["power"],
        "training": groups["training"],
        "body": groups["body"],
        "workoutStructure": transform_split_summaries(flat.get("splitSummaries")),
        "laps": [pick_fields(lap, WORKOUT_LAP_FIELDS) for lap in laps or []],
        "meta": groups["meta"],
    }


def apply_activity_profile(flat: Dict[str, Any], profile: str) -> Dict[str, Any]:
    """Filter a flattened activity down to a profile. 'full' keeps everything."""
    if profile == FULL_PROFILE:
        return flat
    return pick_fields(flat, PROFILE_FIELDS[profile])


def apply_split_profile(laps: List[Dict[str, Any]], profile: str) -> List[Dict[str, Any]]:
    """Filter each lap independently; lap order is kept."""
    if profile == FULL_PROFILE:
        return laps
    fields = SPLIT_PROFILE_FIELDS[profile]
    return [pick_fields(lap, fields) for lap in laps]
