"""
Workout payload validation.

Checks a workout authoring document before anything is compiled or sent
to Garmin. Stops at the first problem and reports which step failed,
e.g. "Step 2: Nested repeats are not allowed".
"""

import math
from dataclasses import dataclass
from typing import Any, Optional

from services.workout_builder import parse_pace_to_mps
from services.workout_dsl import (
    DURATION_TYPES,
    REPEAT_STEP_TYPE,
    SPORTS,
    STEP_TYPES,
    TARGET_TYPES,
)


@dataclass(frozen=True)
class WorkoutValidationResult:
    ok: bool
    error: Optional[str] = None


def _is_number(value: Any) -> bool:
    # bool is an int subclass; JSON true/false are never numbers here
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # integer beyond float range
        return False


def _is_positive(value: Any) -> bool:
    return _is_number(value) and value > 0


def _is_integral(value: Any) -> bool:
    return _is_number(value) and (isinstance(value, int) or value.is_integer())


def _validate_duration(duration: Any) -> Optional[str]:
    if not isinstance(duration, dict) or duration.get("type") not in DURATION_TYPES:
        return f"Invalid duration type. Must be one of: {', '.join(DURATION_TYPES)}"

    kind = duration["type"]
    if kind == "time" and not _is_positive(duration.get("seconds")):
        return "Time duration requires a positive seconds value"
    if kind == "distance" and not _is_positive(duration.get("meters")):
        return "Distance duration requires a positive meters value"
    if kind == "calories" and not _is_positive(duration.get("calories")):
        return "Calories duration requires a positive calories value"
    if kind == "heartRate":
        if not _is_positive(duration.get("bpm")):
            return "Heart rate duration requires a positive bpm value"
        comparison = duration.get("comparison")
        if comparison and comparison not in ("gt", "lt"):
            return 'Heart rate duration comparison must be "gt" or "lt"'
    return None


def _validate_target(target: Any) -> Optional[str]:
    if not isinstance(target, dict) or target.get("type") not in TARGET_TYPES:
        return f"Invalid target type. Must be one of: {', '.join(TARGET_TYPES)}"

    kind = target["type"]
    if kind == "pace":
        if parse_pace_to_mps(target.get("minPerKm")) is None:
            return 'Pace target requires valid minPerKm (e.g. "5:30")'
        if parse_pace_to_mps(target.get("maxPerKm")) is None:
            return 'Pace target requires valid maxPerKm (e.g. "5:00")'
    elif kind == "heartRateZone":
        zone = target.get("zone")
        if not _is_integral(zone) or zone < 1 or zone > 5:
            return "Heart rate zone must be 1-5"
    elif kind == "heartRate":
        if not (_is_number(target.get("min")) and _is_number(target.get("max"))):
            return "Heart rate target requires min and max BPM values"
    elif kind == "powerZone":
        zone = target.get("zone")
        if not _is_integral(zone) or zone < 1:
            return "Power zone must be a positive integer"
    elif kind == "power":
        if not (_is_number(target.get("min")) and _is_number(target.get("max"))):
            return "Power target requires min and max watt values"
    elif kind == "cadence":
        if not (_is_number(target.get("min")) and _is_number(target.get("max"))):
            return "Cadence target requires min and max values"
    return None


def validate_workout_step(step: Any, allow_repeat: bool) -> Optional[str]:
    """
    Validate one step. Repeats are only legal where allow_repeat is set
    (the top level), so nesting is limited to one level.

    Returns:
        Error message, or None if the step is valid
    """
    if not isinstance(step, dict):
        return "Each step must be an object"
    if step.get("type") not in STEP_TYPES:
        return f'Invalid step type "{step.get("type")}". Must be one of: {", ".join(STEP_TYPES)}'

    if step["type"] == REPEAT_STEP_TYPE:
        if not allow_repeat:
            return "Nested repeats are not allowed"
        iterations = step.get("iterations")
        if not _is_integral(iterations) or iterations < 1:
            return "Repeat iterations must be a positive integer"
        children = step.get("steps")
        if not isinstance(children, list) or not children:
            return "Repeat must contain at least one step"
        for child in children:
            error = validate_workout_step(child, allow_repeat=False)
            if error:
                return error
        return None

    return _validate_duration(step.get("duration")) or _validate_target(step.get("target"))


def validate_workout_payload(workout: Any) -> WorkoutValidationResult:
    """Validate a whole workout document. Never raises."""
    if not isinstance(workout, dict):
        return WorkoutValidationResult(ok=False, error="Missing workout object")

    name = workout.get("name")
    if not isinstance(name, str) or not name.strip():
        return WorkoutValidationResult(ok=False, error="Workout name is required")

    sport = workout.get("sport")
    if sport not in SPORTS:
        return WorkoutValidationResult(
            ok=False,
            error=f'Invalid sport "{sport}". Must be one of: {", ".join(SPORTS)}',
        )

    steps = workout.get("steps")
    if not isinstance(steps, list) or not steps:
        return WorkoutValidationResult(ok=False, error="Workout must contain at least one step")

    for index, step in enumerate(steps, start=1):
        error = validate_workout_step(step, allow_repeat=True)
        if error:
            return WorkoutValidationResult(ok=False, error=f"Step {index}: {error}")

    return WorkoutValidationResult(ok=True)
