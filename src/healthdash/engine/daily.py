"""Reduce each metric's samples to one value per calendar day."""

from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, timedelta, tzinfo
from statistics import fmean
from types import MappingProxyType

from healthdash.engine.intervals import Interval, merged_duration
from healthdash.engine.metrics import AggregationSemantic, MetricKind, semantic_of
from healthdash.engine.normalizer import RawSample, sample_day
from healthdash.engine.sleep import SleepSession, SleepWindow, reconstruct_sleep


@dataclass(frozen=True)
class DailyBucket:
    """Reduced values for one calendar day. Absent metrics are simply missing."""

    day: date
    values: Mapping[MetricKind, float] = field(default_factory=dict)
    sleep: SleepSession | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    def get(self, kind: MetricKind) -> float | None:
        return self.values.get(kind)

    @property
    def has_data(self) -> bool:
        return bool(self.values) or self.sleep is not None


def reduce_samples(kind: MetricKind, samples: Iterable[RawSample]) -> float | None:
    """Apply the kind's aggregation semantic. Returns None when there is nothing to reduce."""
    items = [s for s in samples if s.kind is kind]
    if not items:
        return None

    semantic = semantic_of(kind)
    if semantic is AggregationSemantic.CUMULATIVE:
        return sum(s.numeric for s in items)
    if semantic is AggregationSemantic.AVERAGE:
        return fmean(s.numeric for s in items)
    duration = merged_duration(Interval(s.start, s.end) for s in items)
    return duration / timedelta(minutes=1)


def aggregate_day(
    day: date,
    samples: Iterable[RawSample],
    tz: tzinfo,
    sleep: SleepSession | None = None,
) -> DailyBucket:
    """Build the bucket for ``day`` from samples whose start falls on that day.

    Sleep category samples are skipped here; the overnight session is built
    by :func:`reconstruct_sleep` and passed in as ``sleep``.
    """
    by_kind: dict[MetricKind, list[RawSample]] = defaultdict(list)
    for sample in samples:
        if sample.kind is MetricKind.SLEEP_ANALYSIS:
            continue
        if sample_day(sample, tz) == day:
            by_kind[sample.kind].append(sample)

    values: dict[MetricKind, float] = {}
    for kind, items in by_kind.items():
        reduced = reduce_samples(kind, items)
        if reduced is not None:
            values[kind] = reduced
    return DailyBucket(day=day, values=values, sleep=sleep)


def build_daily_buckets(
    days: Iterable[date],
    samples: Iterable[RawSample],
    tz: tzinfo,
    window: SleepWindow | None = None,
) -> list[DailyBucket]:
    """Aggregate every day and attach its overnight sleep session.

    ``samples`` should cover the day before the first requested day as
    well, otherwise the first night is missing its evening half.
    """
    by_day: dict[date, list[RawSample]] = defaultdict(list)
    for sample in samples:
        by_day[sample_day(sample, tz)].append(sample)

    buckets = []
    for day in sorted(set(days)):
        night_samples = by_day.get(day - timedelta(days=1), []) + by_day.get(day, [])
        sleep = reconstruct_sleep(
            day,
            [s for s in night_samples if s.kind is MetricKind.SLEEP_ANALYSIS],
            tz,
            window,
            vitals=[s for s in night_samples if s.kind is not MetricKind.SLEEP_ANALYSIS],
        )
        buckets.append(aggregate_day(day, by_day.get(day, []), tz, sleep=sleep))
    return buckets
