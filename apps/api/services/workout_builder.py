"""
Garmin Workout Builder

Compiles the workout authoring DSL (services.workout_dsl) into the
step-tree format the Garmin Connect workout service expects.

Step IDs are assigned by a single counter starting at 1, in document
order: every executable step and every repeat group takes one ID, and a
repeat group's children continue the count before the next top-level
step resumes it.

    warmup, repeat x3 [interval, recovery], cooldown
      -> 1,    2       [3,        4],        5

Nothing here raises on bad input. Any step that cannot be translated
makes the whole build return None; a partial workout is never produced.
"""

import logging
import math
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from services.workout_dsl import (
    CadenceTarget,
    CaloriesDuration,
    DistanceDuration,
    Duration,
    HeartRateDuration,
    HeartRateTarget,
    HeartRateZoneTarget,
    LapButtonDuration,
    NoTarget,
    PaceTarget,
    PowerTarget,
    PowerZoneTarget,
    RepeatStep,
    Sport,
    Target,
    TimeDuration,
    WorkoutDefinition,
    WorkoutStep,
    parse_workout,
)

logger = logging.getLogger(__name__)


SPORT_TYPE_MAP: Mapping[str, Dict[str, Any]] = MappingProxyType({
    "running": {"sportTypeId": 1, "sportTypeKey": "running"},
    "cycling": {"sportTypeId": 2, "sportTypeKey": "cycling"},
    "swimming": {"sportTypeId": 4, "sportTypeKey": "swimming"},
    "strength": {"sportTypeId": 5, "sportTypeKey": "strength_training"},
    "cardio": {"sportTypeId": 6, "sportTypeKey": "cardio_training"},
})

STEP_TYPE_MAP: Mapping[str, Dict[str, Any]] = MappingProxyType({
    "warmup": {"stepTypeId": 1, "stepTypeKey": "warmup", "displayOrder": 1},
    "cooldown": {"stepTypeId": 2, "stepTypeKey": "cooldown", "displayOrder": 2},
    "interval": {"stepTypeId": 3, "stepTypeKey": "interval", "displayOrder": 3},
    "recovery": {"stepTypeId": 4, "stepTypeKey": "recovery", "displayOrder": 4},
    "rest": {"stepTypeId": 5, "stepTypeKey": "rest", "displayOrder": 5},
    "other": {"stepTypeId": 7, "stepTypeKey": "other", "displayOrder": 7},
})

REPEAT_STEP_TYPE = MappingProxyType({"stepTypeId": 6, "stepTypeKey": "repeat", "displayOrder": 6})

NO_TARGET_TYPE = MappingProxyType({"workoutTargetTypeId": 1, "workoutTargetTypeKey": "no.target", "displayOrder": 1})
POWER_ZONE_TARGET_TYPE = MappingProxyType({"workoutTargetTypeId": 2, "workoutTargetTypeKey": "power.zone", "displayOrder": 2})
CADENCE_TARGET_TYPE = MappingProxyType({"workoutTargetTypeId": 3, "workoutTargetTypeKey": "cadence", "displayOrder": 3})
HR_ZONE_TARGET_TYPE = MappingProxyType({"workoutTargetTypeId": 4, "workoutTargetTypeKey": "heart.rate.zone", "displayOrder": 4})
PACE_ZONE_TARGET_TYPE = MappingProxyType({"workoutTargetTypeId": 6, "workoutTargetTypeKey": "pace.zone", "displayOrder": 6})


def parse_pace_to_mps(pace: Any) -> Optional[float]:
    """
    Convert a "M:SS" per-km pace into meters per second.

    "5:30" -> 330 s/km -> 1000 / 330 = 3.03 m/s

    Returns None for anything malformed: wrong number of parts,
    non-numeric or negative parts, a zero total, or a pace so slow the
    speed rounds to zero.
    """
    if not isinstance(pace, str) or "_" in pace:
        return None
    parts = pace.split(":")
    if len(parts) != 2:
        return None
    try:
        minutes = float(parts[0])
        seconds = float(parts[1])
    except ValueError:
        return None
    if not (math.isfinite(minutes) and math.isfinite(seconds)) or minutes < 0 or seconds < 0:
        return None
    total_seconds = minutes * 60 + seconds
    if not math.isfinite(total_seconds) or total_seconds <= 0:
        return None
    speed = 1000 / total_seconds
    return speed if speed > 0 else None


def build_garmin_sport_type(sport: Union[Sport, str, None]) -> Optional[Dict[str, Any]]:
    key = sport.value if isinstance(sport, Sport) else sport
    descriptor = SPORT_TYPE_MAP.get(key)
    return dict(descriptor) if descriptor else None


def build_garmin_duration(duration: Optional[Duration]) -> Optional[Dict[str, Any]]:
    """Map a step duration onto Garmin's end condition fields."""
    if isinstance(duration, TimeDuration):
        return {
            "endCondition": {"conditionTypeId": 2, "conditionTypeKey": "time", "displayable": True, "displayOrder": 1},
            "endConditionValue": duration.seconds,
            "endConditionCompare": None,
            "endConditionZone": None,
            "preferredEndConditionUnit": None,
        }
    if isinstance(duration, DistanceDuration):
        return {
            "endCondition": {"conditionTypeId": 3, "conditionTypeKey": "distance", "displayable": True, "displayOrder": 3},
            "endConditionValue": duration.meters,
            "endConditionCompare": None,
            "preferredEndConditionUnit": {"unitKey": "kilometer"},
        }
    if isinstance(duration, CaloriesDuration):
        return {
            "endCondition": {"conditionTypeId": 4, "conditionTypeKey": "calories", "displayable": True, "displayOrder": 4},
            "endConditionValue": duration.calories,
            "endConditionCompare": None,
            "preferredEndConditionUnit": None,
        }
    if isinstance(duration, LapButtonDuration):
        return {
            "endCondition": {"conditionTypeId": 1, "conditionTypeKey": "lap.button", "displayable": True, "displayOrder": 1},
            "endConditionValue": None,
            "endConditionCompare": None,
            "preferredEndConditionUnit": None,
        }
    if isinstance(duration, HeartRateDuration):
        return {
            "endCondition": {"conditionTypeId": 6, "conditionTypeKey": "heart.rate", "displayable": True, "displayOrder": 6},
            "endConditionValue": duration.bpm,
            "endConditionCompare": duration.comparison or "gt",
            "preferredEndConditionUnit": None,
        }
    return None


def build_garmin_target(target: Optional[Target]) -> Optional[Dict[str, Any]]:
    """
    Map a step target onto Garmin's target fields.

    Pace targets are sent as speeds, so the slower pace (lower m/s) is
    always targetValueOne regardless of how minPerKm/maxPerKm were given.
    """
    if target is None or isinstance(target, NoTarget):
        return {"targetType": dict(NO_TARGET_TYPE)}
    if isinstance(target, PaceTarget):
        first = parse_pace_to_mps(target.min_per_km)
        second = parse_pace_to_mps(target.max_per_km)
        if first is None or second is None:
            return None
        return {
            "targetType": dict(PACE_ZONE_TARGET_TYPE),
            "targetValueOne": min(first, second),
            "targetValueTwo": max(first, second),
            "targetValueUnit": None,
        }
    if isinstance(target, HeartRateZoneTarget):
        return {"targetType": dict(HR_ZONE_TARGET_TYPE), "zoneNumber": target.zone}
    if isinstance(target, HeartRateTarget):
        return {
            "targetType": dict(HR_ZONE_TARGET_TYPE),
            "targetValueOne": target.min,
            "targetValueTwo": target.max,
            "targetValueUnit": None,
        }
    if isinstance(target, PowerZoneTarget):
        return {"targetType": dict(POWER_ZONE_TARGET_TYPE), "zoneNumber": target.zone}
    if isinstance(target, PowerTarget):
        return {
            "targetType": dict(POWER_ZONE_TARGET_TYPE),
            "targetValueOne": target.min,
            "targetValueTwo": target.max,
        }
    if isinstance(target, CadenceTarget):
        return {
            "targetType": dict(CADENCE_TARGET_TYPE),
            "targetValueOne": target.min,
            "targetValueTwo": target.max,
            "targetValueUnit": None,
        }
    return None


def build_garmin_step(step: WorkoutStep, step_id: int) -> Optional[Dict[str, Any]]:
    """Compile one executable step. Unsupported Garmin options are sent empty."""
    step_type = STEP_TYPE_MAP.get(step.kind.value if step.kind is not None else None)
    if not step_type:
        return None
    duration = build_garmin_duration(step.duration)
    if duration is None:
        return None
    target = build_garmin_target(step.target)
    if target is None:
        return None

    node: Dict[str, Any] = {
        "type": "ExecutableStepDTO",
        "stepId": step_id,
        "stepOrder": step_id,
        "childStepId": None,
        "description": step.notes or None,
        "stepType": dict(step_type),
    }
    node.update(duration)
    node.update(target)
    node.update({
        "targetValueOne": target.get("targetValueOne"),
        "targetValueTwo": target.get("targetValueTwo"),
        "targetValueUnit": target.get("targetValueUnit"),
        "zoneNumber": target.get("zoneNumber"),
        "secondaryTargetType": None,
        "secondaryTargetValueOne": None,
        "secondaryTargetValueTwo": None,
        "secondaryTargetValueUnit": None,
        "secondaryZoneNumber": None,
        "strokeType": {},
        "equipmentType": {"displayOrder": None, "equipmentTypeId": None, "equipmentTypeKey": None},
        "exerciseName": None,
        "category": None,
        "workoutProvider": None,
        "providerExerciseSourceId": None,
        "weightValue": None,
        "weightUnit": None,
        "stepAudioNote": None,
    })
    return node


def build_garmin_repeat_group(step: RepeatStep, step_id: int) -> Optional[Tuple[Dict[str, Any], int]]:
    """
    Compile a repeat group.

    The group takes step_id and its children take the IDs right after it.

    Returns:
        (group node, next free step ID), or None if any child fails
    """
    children: List[Dict[str, Any]] = []
    child_id = step_id + 1
    for child in step.steps:
        built = build_garmin_step(child, child_id)
        if built is None:
            return None
        children.append(built)
        child_id += 1

    group = {
        "type": "RepeatGroupDTO",
        "stepId": step_id,
        "stepOrder": step_id,
        "childStepId": None,
        "stepType": dict(REPEAT_STEP_TYPE),
        "numberOfIterations": step.iterations,
        "workoutSteps": children,
    }
    return group, child_id


def build_garmin_workout(workout: Union[WorkoutDefinition, Dict[str, Any], None]) -> Optional[Dict[str, Any]]:
    """
    Compile a workout into the Garmin workout-service payload.

    Accepts a WorkoutDefinition or the raw (already validated) JSON
    document. Estimated duration and distance are not computed.

    Returns:
        Garmin workout dict, or None if any part could not be translated
    """
    if not isinstance(workout, WorkoutDefinition):
        workout = parse_workout(workout)
        if workout is None:
            return None

    sport_type = build_garmin_sport_type(workout.sport)
    if sport_type is None:
        return None

    steps: List[Dict[str, Any]] = []
    step_id = 1
    for step in workout.steps:
        if isinstance(step, RepeatStep):
            result = build_garmin_repeat_group(step, step_id)
            if result is None:
                return None
            group, step_id = result
            steps.append(group)
        else:
            built = build_garmin_step(step, step_id)
            if built is None:
                return None
            steps.append(built)
            step_id += 1

    logger.debug(f"Compiled workout '{workout.name}' with {step_id - 1} step IDs")

    return {
        "sportType": sport_type,
        "subSportType": None,
        "workoutName": workout.name,
        "description": workout.description or None,
        "workoutSegments": [{
            "segmentOrder": 1,
            "sportType": dict(sport_type),
            "workoutSteps": steps,
        }],
        "estimatedDurationInSecs": 0,
        "estimatedDistanceInMeters": 0,
        "estimateType": None,
        "avgTrainingSpeed": None,
        "estimatedDistanceUnit": {"unitKey": None},
        "isWheelchair": False,
    }
