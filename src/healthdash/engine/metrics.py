"""Metric kinds, their aggregation semantics and the archive classification table."""

from dataclasses import dataclass
from enum import StrEnum


class AggregationSemantic(StrEnum):
    CUMULATIVE = "cumulative"
    AVERAGE = "average"
    INTERVAL_DURATION = "interval_duration"


class MetricKind(StrEnum):
    STEP_COUNT = "step_count"
    HEART_RATE = "heart_rate"
    RESTING_HEART_RATE = "resting_heart_rate"
    HEART_RATE_VARIABILITY = "heart_rate_variability"
    ACTIVE_ENERGY = "active_energy"
    EXERCISE_TIME = "exercise_time"
    DISTANCE = "distance"
    FLIGHTS_CLIMBED = "flights_climbed"
    RESPIRATORY_RATE = "respiratory_rate"
    OXYGEN_SATURATION = "oxygen_saturation"
    BLOOD_PRESSURE_SYSTOLIC = "blood_pressure_systolic"
    BLOOD_PRESSURE_DIASTOLIC = "blood_pressure_diastolic"
    BODY_TEMPERATURE = "body_temperature"
    BODY_MASS = "body_mass"
    HEIGHT = "height"
    BODY_MASS_INDEX = "body_mass_index"
    BODY_FAT_PERCENTAGE = "body_fat_percentage"
    DIETARY_ENERGY = "dietary_energy"
    DIETARY_WATER = "dietary_water"
    SLEEP_ANALYSIS = "sleep_analysis"


class SleepCategory(StrEnum):
    IN_BED = "in_bed"
    ASLEEP = "asleep"  # unspecified / pre-stage platforms
    AWAKE = "awake"
    CORE = "core"
    DEEP = "deep"
    REM = "rem"


@dataclass(frozen=True)
class MetricSpec:
    semantic: AggregationSemantic
    unit: str
    label: str


METRIC_SPECS: dict[MetricKind, MetricSpec] = {
    MetricKind.STEP_COUNT: MetricSpec(AggregationSemantic.CUMULATIVE, "count", "Steps"),
    MetricKind.HEART_RATE: MetricSpec(AggregationSemantic.AVERAGE, "count/min", "Heart rate"),
    MetricKind.RESTING_HEART_RATE: MetricSpec(
        AggregationSemantic.AVERAGE, "count/min", "Resting heart rate"
    ),
    MetricKind.HEART_RATE_VARIABILITY: MetricSpec(AggregationSemantic.AVERAGE, "ms", "HRV"),
    MetricKind.ACTIVE_ENERGY: MetricSpec(AggregationSemantic.CUMULATIVE, "kcal", "Active energy"),
    MetricKind.EXERCISE_TIME: MetricSpec(
        AggregationSemantic.INTERVAL_DURATION, "min", "Exercise time"
    ),
    MetricKind.DISTANCE: MetricSpec(AggregationSemantic.CUMULATIVE, "m", "Distance"),
    MetricKind.FLIGHTS_CLIMBED: MetricSpec(
        AggregationSemantic.CUMULATIVE, "count", "Flights climbed"
    ),
    MetricKind.RESPIRATORY_RATE: MetricSpec(
        AggregationSemantic.AVERAGE, "count/min", "Respiratory rate"
    ),
    MetricKind.OXYGEN_SATURATION: MetricSpec(AggregationSemantic.AVERAGE, "%", "Blood oxygen"),
    MetricKind.BLOOD_PRESSURE_SYSTOLIC: MetricSpec(
        AggregationSemantic.AVERAGE, "mmHg", "Systolic blood pressure"
    ),
    MetricKind.BLOOD_PRESSURE_DIASTOLIC: MetricSpec(
        AggregationSemantic.AVERAGE, "mmHg", "Diastolic blood pressure"
    ),
    MetricKind.BODY_TEMPERATURE: MetricSpec(
        AggregationSemantic.AVERAGE, "degC", "Body temperature"
    ),
    MetricKind.BODY_MASS: MetricSpec(AggregationSemantic.AVERAGE, "kg", "Weight"),
    MetricKind.HEIGHT: MetricSpec(AggregationSemantic.AVERAGE, "cm", "Height"),
    MetricKind.BODY_MASS_INDEX: MetricSpec(AggregationSemantic.AVERAGE, "count", "BMI"),
    MetricKind.BODY_FAT_PERCENTAGE: MetricSpec(AggregationSemantic.AVERAGE, "%", "Body fat"),
    MetricKind.DIETARY_ENERGY: MetricSpec(
        AggregationSemantic.CUMULATIVE, "kcal", "Dietary energy"
    ),
    MetricKind.DIETARY_WATER: MetricSpec(AggregationSemantic.CUMULATIVE, "mL", "Water"),
    MetricKind.SLEEP_ANALYSIS: MetricSpec(AggregationSemantic.INTERVAL_DURATION, "min", "Sleep"),
}

# Vitals averaged over the reconstructed sleep session
SLEEP_VITAL_KINDS: tuple[MetricKind, ...] = (
    MetricKind.HEART_RATE,
    MetricKind.RESPIRATORY_RATE,
    MetricKind.BODY_TEMPERATURE,
)


@dataclass(frozen=True)
class ArchiveType:
    kind: MetricKind
    scale: float = 1.0


# Export record type identifier → metric kind (+ unit scale to our unit)
ARCHIVE_TYPE_MAP: dict[str, ArchiveType] = {
    "HKQuantityTypeIdentifierStepCount": ArchiveType(MetricKind.STEP_COUNT),
    "HKQuantityTypeIdentifierHeartRate": ArchiveType(MetricKind.HEART_RATE),
    "HKQuantityTypeIdentifierRestingHeartRate": ArchiveType(MetricKind.RESTING_HEART_RATE),
    "HKQuantityTypeIdentifierHeartRateVariabilitySDNN": ArchiveType(
        MetricKind.HEART_RATE_VARIABILITY
    ),
    "HKQuantityTypeIdentifierActiveEnergyBurned": ArchiveType(MetricKind.ACTIVE_ENERGY),
    "HKQuantityTypeIdentifierAppleExerciseTime": ArchiveType(MetricKind.EXERCISE_TIME),
    "HKQuantityTypeIdentifierDistanceWalkingRunning": ArchiveType(MetricKind.DISTANCE),
    "HKQuantityTypeIdentifierFlightsClimbed": ArchiveType(MetricKind.FLIGHTS_CLIMBED),
    "HKQuantityTypeIdentifierRespiratoryRate": ArchiveType(MetricKind.RESPIRATORY_RATE),
    "HKQuantityTypeIdentifierOxygenSaturation": ArchiveType(
        MetricKind.OXYGEN_SATURATION, scale=100.0
    ),
    "HKQuantityTypeIdentifierBloodPressureSystolic": ArchiveType(
        MetricKind.BLOOD_PRESSURE_SYSTOLIC
    ),
    "HKQuantityTypeIdentifierBloodPressureDiastolic": ArchiveType(
        MetricKind.BLOOD_PRESSURE_DIASTOLIC
    ),
    "HKQuantityTypeIdentifierBodyTemperature": ArchiveType(MetricKind.BODY_TEMPERATURE),
    "HKQuantityTypeIdentifierBodyMass": ArchiveType(MetricKind.BODY_MASS),
    "HKQuantityTypeIdentifierHeight": ArchiveType(MetricKind.HEIGHT, scale=100.0),
    "HKQuantityTypeIdentifierBodyMassIndex": ArchiveType(MetricKind.BODY_MASS_INDEX),
    "HKQuantityTypeIdentifierBodyFatPercentage": ArchiveType(
        MetricKind.BODY_FAT_PERCENTAGE, scale=100.0
    ),
    "HKQuantityTypeIdentifierDietaryEnergyConsumed": ArchiveType(MetricKind.DIETARY_ENERGY),
    "HKQuantityTypeIdentifierDietaryWater": ArchiveType(MetricKind.DIETARY_WATER),
    "HKCategoryTypeIdentifierSleepAnalysis": ArchiveType(MetricKind.SLEEP_ANALYSIS),
}

# Distance may be exported in km rather than m
UNIT_SCALES: dict[tuple[MetricKind, str], float] = {
    (MetricKind.DISTANCE, "km"): 1000.0,
    (MetricKind.DISTANCE, "mi"): 1609.344,
}

# Platform sleep category codes
SLEEP_CODE_MAP: dict[int, SleepCategory] = {
    0: SleepCategory.IN_BED,
    1: SleepCategory.ASLEEP,
    2: SleepCategory.AWAKE,
    3: SleepCategory.CORE,
    4: SleepCategory.DEEP,
    5: SleepCategory.REM,
}

# Archive sleep category strings
SLEEP_VALUE_MAP: dict[str, SleepCategory] = {
    "HKCategoryValueSleepAnalysisInBed": SleepCategory.IN_BED,
    "HKCategoryValueSleepAnalysisAsleep": SleepCategory.ASLEEP,
    "HKCategoryValueSleepAnalysisAsleepUnspecified": SleepCategory.ASLEEP,
    "HKCategoryValueSleepAnalysisAwake": SleepCategory.AWAKE,
    "HKCategoryValueSleepAnalysisAsleepCore": SleepCategory.CORE,
    "HKCategoryValueSleepAnalysisAsleepDeep": SleepCategory.DEEP,
    "HKCategoryValueSleepAnalysisAsleepREM": SleepCategory.REM,
}


def semantic_of(kind: MetricKind) -> AggregationSemantic:
    return METRIC_SPECS[kind].semantic


def unit_of(kind: MetricKind) -> str:
    return METRIC_SPECS[kind].unit


def classify_type(type_tag: str) -> ArchiveType | None:
    """Resolve an export type identifier (or a plain kind name) to its metric kind."""
    archive_type = ARCHIVE_TYPE_MAP.get(type_tag)
    if archive_type is not None:
        return archive_type
    try:
        return ArchiveType(MetricKind(type_tag))
    except ValueError:
        return None
