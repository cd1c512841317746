"""Rolling summaries over a window of daily buckets: totals, averages, trends, wellness score."""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import StrEnum
from statistics import fmean
from types import MappingProxyType

from healthdash.engine.daily import DailyBucket
from healthdash.engine.metrics import AggregationSemantic, MetricKind, semantic_of
from healthdash.engine.sleep import SleepSession

TREND_THRESHOLD = 0.05
TREND_MIN_POINTS_PER_HALF = 2

NEUTRAL_WELLNESS_SCORE = 50
STEPS_TARGET = 10_000
ACTIVE_ENERGY_TARGET = 300.0
FACTOR_MAX = 25.0


class Trend(StrEnum):
    UP = "up"
    DOWN = "down"
    NEUTRAL = "neutral"


def date_range(start: date, end: date) -> list[date]:
    return [start + timedelta(days=i) for i in range((end - start).days + 1)]


def compute_trend(series: Sequence[float | None]) -> Trend:
    """Compare the mean of the second half of a window against the first half.

    ``series`` holds one entry per day in chronological order, None for
    days without data. Each half needs at least two values, otherwise the
    trend is neutral.
    """
    half = len(series) // 2
    first = [v for v in series[:half] if v is not None]
    second = [v for v in series[half:] if v is not None]
    if len(first) < TREND_MIN_POINTS_PER_HALF or len(second) < TREND_MIN_POINTS_PER_HALF:
        return Trend.NEUTRAL

    first_mean = fmean(first)
    second_mean = fmean(second)
    if second_mean > first_mean * (1 + TREND_THRESHOLD):
        return Trend.UP
    if second_mean < first_mean * (1 - TREND_THRESHOLD):
        return Trend.DOWN
    return Trend.NEUTRAL


def _heart_rate_factor(bpm: float) -> float:
    if bpm < 50:
        return 15
    if bpm < 60:
        return 20
    if bpm <= 100:
        return 25
    if bpm <= 120:
        return 15
    return 10


def _sleep_factor(hours: float) -> float:
    if hours < 5:
        return 10
    if hours < 7:
        return 15
    if hours <= 9:
        return 25
    if hours <= 10:
        return 20
    return 15


def wellness_score(
    avg_steps: float | None = None,
    avg_heart_rate: float | None = None,
    avg_sleep_hours: float | None = None,
    avg_active_energy: float | None = None,
) -> int:
    """Composite 0-100 score from whichever of the four factors are present.

    Each factor scores 0-25; present factors are averaged and rescaled by 4.
    With nothing to score the result is a neutral 50.
    """
    factors: list[float] = []
    if avg_steps is not None:
        factors.append(min(avg_steps / STEPS_TARGET * FACTOR_MAX, FACTOR_MAX))
    if avg_heart_rate is not None:
        factors.append(_heart_rate_factor(avg_heart_rate))
    if avg_sleep_hours is not None:
        factors.append(_sleep_factor(avg_sleep_hours))
    if avg_active_energy is not None:
        factors.append(min(avg_active_energy / ACTIVE_ENERGY_TARGET * FACTOR_MAX, FACTOR_MAX))

    if not factors:
        return NEUTRAL_WELLNESS_SCORE
    return round(fmean(factors) * 4)


def _mean_duration(values: list[timedelta]) -> timedelta | None:
    if not values:
        return None
    return sum(values, timedelta()) / len(values)


def _mean(values: list[float]) -> float | None:
    return fmean(values) if values else None


@dataclass(frozen=True)
class SleepAverages:
    """Per-night averages; each field only counts nights where it was recorded."""

    nights: int
    asleep: timedelta
    in_bed: timedelta | None = None
    deep: timedelta | None = None
    rem: timedelta | None = None
    core: timedelta | None = None
    awake: timedelta | None = None
    efficiency: float | None = None
    latency: timedelta | None = None
    wake_count: float | None = None
    heart_rate: float | None = None
    respiratory_rate: float | None = None
    body_temperature: float | None = None

    @property
    def asleep_hours(self) -> float:
        return self.asleep.total_seconds() / 3600

    @classmethod
    def from_sessions(cls, sessions: Iterable[SleepSession]) -> "SleepAverages | None":
        items = list(sessions)
        if not items:
            return None
        staged = [s for s in items if s.stages.asleep_total > timedelta()]
        return cls(
            nights=len(items),
            asleep=sum((s.asleep_duration for s in items), timedelta()) / len(items),
            in_bed=_mean_duration([s.in_bed_duration for s in items if s.in_bed_duration]),
            deep=_mean_duration([s.stages.deep for s in staged]),
            rem=_mean_duration([s.stages.rem for s in staged]),
            core=_mean_duration([s.stages.core for s in staged]),
            awake=_mean_duration([s.stages.awake for s in staged]),
            efficiency=_mean([s.efficiency for s in items if s.efficiency is not None]),
            latency=_mean_duration([s.latency for s in items if s.latency is not None]),
            wake_count=_mean([float(s.wake_count) for s in items]),
            heart_rate=_mean([s.heart_rate for s in items if s.heart_rate is not None]),
            respiratory_rate=_mean(
                [s.respiratory_rate for s in items if s.respiratory_rate is not None]
            ),
            body_temperature=_mean(
                [s.body_temperature for s in items if s.body_temperature is not None]
            ),
        )


@dataclass(frozen=True)
class HealthSummary:
    """Aggregation over ``[start_date, end_date]``. Read-only once built."""

    start_date: date
    end_date: date
    totals: Mapping[MetricKind, float] = field(default_factory=dict)
    averages: Mapping[MetricKind, float] = field(default_factory=dict)
    daily: Mapping[MetricKind, Mapping[date, float]] = field(default_factory=dict)
    sleep_sessions: Mapping[date, SleepSession] = field(default_factory=dict)
    buckets: Mapping[date, DailyBucket] = field(default_factory=dict)
    sleep_averages: SleepAverages | None = None
    trends: Mapping[MetricKind, Trend] = field(default_factory=dict)
    sleep_trend: Trend = Trend.NEUTRAL
    wellness_score: int = NEUTRAL_WELLNESS_SCORE

    def __post_init__(self) -> None:
        for name in ("totals", "averages", "sleep_sessions", "buckets", "trends"):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))
        frozen_daily = {k: MappingProxyType(dict(v)) for k, v in self.daily.items()}
        object.__setattr__(self, "daily", MappingProxyType(frozen_daily))

    @property
    def days(self) -> list[date]:
        return date_range(self.start_date, self.end_date)

    @property
    def days_with_data(self) -> int:
        return sum(1 for b in self.buckets.values() if b.has_data)

    @property
    def has_data(self) -> bool:
        return self.days_with_data > 0

    def average(self, kind: MetricKind) -> float | None:
        return self.averages.get(kind)

    def total(self, kind: MetricKind) -> float | None:
        return self.totals.get(kind)


def compose_summary(
    start_date: date, end_date: date, buckets: Iterable[DailyBucket]
) -> HealthSummary:
    """Combine daily buckets over a window into a HealthSummary.

    Buckets outside the window are ignored. Days without a value for a metric
    are left out of that metric's average entirely.
    """
    if end_date < start_date:
        raise ValueError(f"end_date {end_date} is before start_date {start_date}")

    days = date_range(start_date, end_date)
    by_day = {b.day: b for b in buckets if start_date <= b.day <= end_date}

    daily: dict[MetricKind, dict[date, float]] = {}
    for day in days:
        bucket = by_day.get(day)
        if bucket is None:
            continue
        for kind, value in bucket.values.items():
            daily.setdefault(kind, {})[day] = value

    totals: dict[MetricKind, float] = {}
    averages: dict[MetricKind, float] = {}
    trends: dict[MetricKind, Trend] = {}
    for kind, values in daily.items():
        if semantic_of(kind) is AggregationSemantic.CUMULATIVE:
            totals[kind] = sum(values.values())
        averages[kind] = fmean(values.values())
        trends[kind] = compute_trend([values.get(day) for day in days])

    sleep_sessions = {
        day: by_day[day].sleep for day in days if day in by_day and by_day[day].sleep is not None
    }
    sleep_averages = SleepAverages.from_sessions(sleep_sessions.values())
    sleep_trend = compute_trend(
        [sleep_sessions[d].asleep_hours if d in sleep_sessions else None for d in days]
    )

    score = wellness_score(
        avg_steps=averages.get(MetricKind.STEP_COUNT),
        avg_heart_rate=averages.get(MetricKind.HEART_RATE),
        avg_sleep_hours=sleep_averages.asleep_hours if sleep_averages else None,
        avg_active_energy=averages.get(MetricKind.ACTIVE_ENERGY),
    )

    return HealthSummary(
        start_date=start_date,
        end_date=end_date,
        totals=totals,
        averages=averages,
        daily=daily,
        sleep_sessions=sleep_sessions,  # type: ignore[arg-type]
        buckets=by_day,
        sleep_averages=sleep_averages,
        trends=trends,
        sleep_trend=sleep_trend,
        wellness_score=score,
    )
