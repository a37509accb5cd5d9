"""
Workout Authoring DSL

Typed model of the compact workout format clients send to
POST /garmin/workout/create:

    {
        "name": "5x1k",
        "sport": "running",
        "steps": [
            {"type": "warmup", "duration": {"type": "time", "seconds": 600},
             "target": {"type": "none"}},
            {"type": "repeat", "iterations": 5, "steps": [...]},
        ],
    }

Durations and targets are closed unions of frozen dataclasses so the
Garmin builder can dispatch on the concrete type. parse_workout() turns a
validated JSON document into these types; it never raises and returns
None for anything it does not recognise.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union


class Sport(str, Enum):
    """Sports a workout can be authored for."""
    RUNNING = "running"
    CYCLING = "cycling"
    SWIMMING = "swimming"
    STRENGTH = "strength"
    CARDIO = "cardio"


class StepKind(str, Enum):
    """Executable step types. 'repeat' is modelled by RepeatStep instead."""
    WARMUP = "warmup"
    INTERVAL = "interval"
    RECOVERY = "recovery"
    REST = "rest"
    COOLDOWN = "cooldown"
    OTHER = "other"


REPEAT_STEP_TYPE = "repeat"


# --------------------
# Durations (step end conditions)
# --------------------
@dataclass(frozen=True)
class TimeDuration:
    seconds: float


@dataclass(frozen=True)
class DistanceDuration:
    meters: float


@dataclass(frozen=True)
class CaloriesDuration:
    calories: float


@dataclass(frozen=True)
class LapButtonDuration:
    pass


@dataclass(frozen=True)
class HeartRateDuration:
    bpm: float
    comparison: str = "gt"


Duration = Union[TimeDuration, DistanceDuration, CaloriesDuration, LapButtonDuration, HeartRateDuration]


# --------------------
# Targets
# --------------------
@dataclass(frozen=True)
class NoTarget:
    pass


@dataclass(frozen=True)
class PaceTarget:
    min_per_km: str  # "M:SS", the slower bound
    max_per_km: str  # "M:SS", the faster bound


@dataclass(frozen=True)
class HeartRateZoneTarget:
    zone: int


@dataclass(frozen=True)
class HeartRateTarget:
    min: float
    max: float


@dataclass(frozen=True)
class PowerZoneTarget:
    zone: int


@dataclass(frozen=True)
class PowerTarget:
    min: float
    max: float


@dataclass(frozen=True)
class CadenceTarget:
    min: float
    max: float


Target = Union[
    NoTarget,
    PaceTarget,
    HeartRateZoneTarget,
    HeartRateTarget,
    PowerZoneTarget,
    PowerTarget,
    CadenceTarget,
]


# --------------------
# Steps
# --------------------
@dataclass(frozen=True)
class WorkoutStep:
    kind: StepKind
    duration: Duration
    target: Target
    notes: Optional[str] = None


@dataclass(frozen=True)
class RepeatStep:
    iterations: int
    steps: Tuple[WorkoutStep, ...]


@dataclass(frozen=True)
class WorkoutDefinition:
    name: str
    sport: Sport
    steps: Tuple[Union[WorkoutStep, RepeatStep], ...]
    description: Optional[str] = None


DURATION_TYPES = ("time", "distance", "calories", "lapButton", "heartRate")
TARGET_TYPES = ("none", "pace", "heartRateZone", "heartRate", "powerZone", "power", "cadence")
SPORTS = tuple(s.value for s in Sport)
STEP_TYPES = tuple(k.value for k in StepKind) + (REPEAT_STEP_TYPE,)


def _enum_or_none(enum_cls, value):
    try:
        return enum_cls(value)
    except ValueError:
        return None


def _whole_number(value):
    """3.0 -> 3 for counts and zone numbers; anything else is left alone."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def parse_duration(payload: Any) -> Optional[Duration]:
    if not isinstance(payload, dict):
        return None
    kind = payload.get("type")
    if kind == "time":
        return TimeDuration(seconds=payload.get("seconds"))
    if kind == "distance":
        return DistanceDuration(meters=payload.get("meters"))
    if kind == "calories":
        return CaloriesDuration(calories=payload.get("calories"))
    if kind == "lapButton":
        return LapButtonDuration()
    if kind == "heartRate":
        return HeartRateDuration(bpm=payload.get("bpm"), comparison=payload.get("comparison") or "gt")
    return None


def parse_target(payload: Any) -> Optional[Target]:
    """Missing target (or one without a type) means no target."""
    if not isinstance(payload, dict) or not payload.get("type"):
        return NoTarget()
    kind = payload["type"]
    if kind == "none":
        return NoTarget()
    if kind == "pace":
        return PaceTarget(min_per_km=payload.get("minPerKm"), max_per_km=payload.get("maxPerKm"))
    if kind == "heartRateZone":
        return HeartRateZoneTarget(zone=_whole_number(payload.get("zone")))
    if kind == "heartRate":
        return HeartRateTarget(min=payload.get("min"), max=payload.get("max"))
    if kind == "powerZone":
        return PowerZoneTarget(zone=_whole_number(payload.get("zone")))
    if kind == "power":
        return PowerTarget(min=payload.get("min"), max=payload.get("max"))
    if kind == "cadence":
        return CadenceTarget(min=payload.get("min"), max=payload.get("max"))
    return None


def parse_step(payload: Any) -> Optional[WorkoutStep]:
    if not isinstance(payload, dict):
        return None
    kind = _enum_or_none(StepKind, payload.get("type"))
    duration = parse_duration(payload.get("duration"))
    target = parse_target(payload.get("target"))
    if kind is None or duration is None or target is None:
        return None
    return WorkoutStep(kind=kind, duration=duration, target=target, notes=payload.get("notes") or None)


def parse_repeat(payload: Dict[str, Any]) -> Optional[RepeatStep]:
    children = []
    for child in payload.get("steps") or []:
        step = parse_step(child)
        if step is None:
            return None
        children.append(step)
    return RepeatStep(iterations=_whole_number(payload.get("iterations")), steps=tuple(children))


def parse_workout(payload: Any) -> Optional[WorkoutDefinition]:
    """
    Convert a workout JSON document into a WorkoutDefinition.

    Run validate_workout_payload first; this only checks that every kind
    is known. Returns None on the first unknown sport, step, duration or
    target type.
    """
    if not isinstance(payload, dict):
        return None
    sport = _enum_or_none(Sport, payload.get("sport"))
    if sport is None:
        return None

    steps = []
    for raw_step in payload.get("steps") or []:
        if isinstance(raw_step, dict) and raw_step.get("type") == REPEAT_STEP_TYPE:
            step = parse_repeat(raw_step)
        else:
            step = parse_step(raw_step)
        if step is None:
            return None
        steps.append(step)

    return WorkoutDefinition(
        name=payload.get("name"),
        sport=sport,
        steps=tuple(steps),
        description=payload.get("description") or None,
    )
