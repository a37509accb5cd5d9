"""
Garmin Field Taxonomy

Static classification tables for Garmin Connect activity fields.

Every profile and workout group is an ordered tuple of raw field names.
The tables are pure configuration: nothing here is mutated at runtime,
and every filter in the relay is driven by one of them through
services.activity_reshaping.pick_fields.
"""

from types import MappingProxyType
from typing import Mapping, Tuple


# --------------------
# Activity detail profiles
# --------------------
SUMMARY_FIELDS: Tuple[str, ...] = (
    "activityId",
    "activityName",
    "activityType",
    "sportTypeId",
    "startTimeLocal",
    "duration",
    "distance",
    "calories",
    "averageHR",
    "maxHR",
    "elevationGain",
    "steps",
)

COACHING_FIELDS: Tuple[str, ...] = (
    # Identity
    "activityId",
    "activityName",
    "description",
    "activityType",
    "sportTypeId",
    "startTimeLocal",
    "startTimeGMT",
    "beginTimestamp",
    "locationName",
    # Duration
    "duration",
    "movingDuration",
    "elapsedDuration",
    # Distance & speed
    "distance",
    "averageSpeed",
    "averageMovingSpeed",
    "maxSpeed",
    # Elevation
    "elevationGain",
    "elevationLoss",
    "minElevation",
    "maxElevation",
    # Heart rate
    "averageHR",
    "maxHR",
    "calories",
    # Running (list and detail endpoints name these differently)
    "averageRunningCadenceInStepsPerMinute",
    "averageRunCadence",
    "maxRunningCadenceInStepsPerMinute",
    "maxRunCadence",
    "avgStrideLength",
    "strideLength",
    "steps",
    # Cycling
    "averageBikingCadenceInRevPerMinute",
    "maxBikingCadenceInRevPerMinute",
    # Swimming
    "averageSwimCadenceInStrokesPerMinute",
    "averageSwolf",
    "activeLengths",
    # Power
    "avgPower",
    "maxPower",
    "normPower",
    # Training load & effect
    "vO2MaxValue",
    "aerobicTrainingEffect",
    "trainingEffect",
    "anaerobicTrainingEffect",
    "trainingEffectLabel",
    "activityTrainingLoad",
    # Stress & respiration
    "avgStress",
    "startStress",
    "endStress",
    "differenceStress",
    "avgRespirationRate",
    # Strength
    "totalSets",
    "activeSets",
    "totalReps",
    # Structure
    "lapCount",
    "splitSummaries",
    "hasSplits",
    # Flags
    "pr",
    "manualActivity",
)

PROFILE_FIELDS: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "summary": SUMMARY_FIELDS,
    "coaching": COACHING_FIELDS,
})


# --------------------
# Split / lap profiles
# --------------------
SPLIT_SUMMARY_FIELDS: Tuple[str, ...] = (
    "lapIndex",
    "distance",
    "duration",
    "movingDuration",
    "averageSpeed",
    "maxSpeed",
    "elevationGain",
    "elevationLoss",
    "averageHR",
    "maxHR",
    "calories",
    "startTimeGMT",
    "intensityType",
)

SPLIT_COACHING_FIELDS: Tuple[str, ...] = (
    # Identity & timing
    "lapIndex",
    "distance",
    "duration",
    "movingDuration",
    "elapsedDuration",
    "startTimeGMT",
    "intensityType",
    "messageIndex",
    # Speed
    "averageSpeed",
    "averageMovingSpeed",
    "maxSpeed",
    "avgGradeAdjustedSpeed",
    # Elevation
    "elevationGain",
    "elevationLoss",
    "maxElevation",
    "minElevation",
    # Heart rate
    "averageHR",
    "maxHR",
    "calories",
    "bmrCalories",
    # Running dynamics
    "averageRunCadence",
    "maxRunCadence",
    "groundContactTime",
    "strideLength",
    "verticalOscillation",
    "verticalRatio",
    # Power
    "averagePower",
    "maxPower",
    "minPower",
    "normalizedPower",
    "totalWork",
)

SPLIT_PROFILE_FIELDS: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "summary": SPLIT_SUMMARY_FIELDS,
    "coaching": SPLIT_COACHING_FIELDS,
})

FULL_PROFILE = "full"
VALID_PROFILES = frozenset({"summary", "coaching", FULL_PROFILE})


# --------------------
# Workout semantic groups
# --------------------
WORKOUT_IDENTITY_FIELDS: Tuple[str, ...] = (
    "activityId",
    "activityName",
    "description",
    "activityType",
    "sportTypeId",
    "startTimeLocal",
    "startTimeGMT",
    "locationName",
    "startLatitude",
    "startLongitude",
    "endLatitude",
    "endLongitude",
)

WORKOUT_TIMING_FIELDS: Tuple[str, ...] = (
    "duration",
    "movingDuration",
    "elapsedDuration",
)

WORKOUT_DISTANCE_FIELDS: Tuple[str, ...] = (
    "distance",
    "steps",
)

WORKOUT_PACE_FIELDS: Tuple[str, ...] = (
    "averageSpeed",
    "averageMovingSpeed",
    "maxSpeed",
    "avgGradeAdjustedSpeed",
)

WORKOUT_HR_FIELDS: Tuple[str, ...] = (
    "averageHR",
    "maxHR",
    "minHR",
)

WORKOUT_ELEVATION_FIELDS: Tuple[str, ...] = (
    "elevationGain",
    "elevationLoss",
    "maxElevation",
    "minElevation",
)

WORKOUT_DYNAMICS_FIELDS: Tuple[str, ...] = (
    "averageRunCadence",
    "maxRunCadence",
    "strideLength",
    "groundContactTime",
    "verticalOscillation",
    "verticalRatio",
)

WORKOUT_POWER_FIELDS: Tuple[str, ...] = (
    "averagePower",
    "maxPower",
    "minPower",
    "normalizedPower",
    "totalWork",
)

WORKOUT_TRAINING_FIELDS: Tuple[str, ...] = (
    "trainingEffect",
    "anaerobicTrainingEffect",
    "aerobicTrainingEffectMessage",
    "anaerobicTrainingEffectMessage",
    "trainingEffectLabel",
    "activityTrainingLoad",
)

WORKOUT_BODY_FIELDS: Tuple[str, ...] = (
    "calories",
    "avgRespirationRate",
    "minRespirationRate",
    "maxRespirationRate",
    "moderateIntensityMinutes",
    "vigorousIntensityMinutes",
    "differenceBodyBattery",
    "directWorkoutFeel",
    "directWorkoutRpe",
    "waterEstimated",
    "beginPotentialStamina",
    "endPotentialStamina",
    "minAvailableStamina",
)

WORKOUT_META_FIELDS: Tuple[str, ...] = (
    "lapCount",
    "hasSplits",
    "manualActivity",
    "pr",
    "favorite",
)

# Laps deliberately leave out lengthDTOs, messageIndex, bmrCalories and minPower.
WORKOUT_LAP_FIELDS: Tuple[str, ...] = (
    "lapIndex",
    "distance",
    "duration",
    "movingDuration",
    "startTimeGMT",
    "intensityType",
    # Speed
    "averageSpeed",
    "averageMovingSpeed",
    "maxSpeed",
    "avgGradeAdjustedSpeed",
    # Elevation
    "elevationGain",
    "elevationLoss",
    # Heart rate
    "averageHR",
    "maxHR",
    "calories",
    # Running dynamics
    "averageRunCadence",
    "maxRunCadence",
    "groundContactTime",
    "strideLength",
    "verticalOscillation",
    "verticalRatio",
    # Power
    "averagePower",
    "maxPower",
    "normalizedPower",
    "totalWork",
)

# Response order: identity .. body, then workoutStructure, laps, meta.
WORKOUT_GROUP_FIELDS: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "identity": WORKOUT_IDENTITY_FIELDS,
    "timing": WORKOUT_TIMING_FIELDS,
    "distance": WORKOUT_DISTANCE_FIELDS,
    "pace": WORKOUT_PACE_FIELDS,
    "heartRate": WORKOUT_HR_FIELDS,
    "elevation": WORKOUT_ELEVATION_FIELDS,
    "runningDynamics": WORKOUT_DYNAMICS_FIELDS,
    "power": WORKOUT_POWER_FIELDS,
    "training": WORKOUT_TRAINING_FIELDS,
    "body": WORKOUT_BODY_FIELDS,
    "meta": WORKOUT_META_FIELDS,
})

WORKOUT_GROUP_ORDER: Tuple[str, ...] = (
    "identity",
    "timing",
    "distance",
    "pace",
    "heartRate",
    "elevation",
    "runningDynamics",
    "power",
    "training",
    "body",
    "workoutStructure",
    "laps",
    "meta",
)


# --------------------
# Split summary phases
# --------------------
SPLIT_TYPE_PHASE_MAP: Mapping[str, str] = MappingProxyType({
    "INTERVAL_WARMUP": "warmup",
    "INTERVAL_ACTIVE": "active",
    "INTERVAL_RECOVERY": "recovery",
    "INTERVAL_COOLDOWN": "cooldown",
    "RWD_RUN": "run",
    "RWD_WALK": "walk",
    "RWD_STAND": "stand",
})
