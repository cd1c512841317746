"""Reconstruct one overnight sleep session per calendar day.

A night's sleep straddles midnight, so its samples are split between two
calendar days. For day ``d`` the session is rebuilt from the category samples
that start inside the overnight window, from the evening of ``d - 1`` to the
late morning of ``d``. Samples outside the window are treated as naps and
left out of the canonical night.

Each sleep category is merged on its own through the interval merger, which
is what keeps two devices logging the same night from being counted twice.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from statistics import fmean

from healthdash.engine.intervals import Interval, merge_intervals, total_duration
from healthdash.engine.metrics import MetricKind, SleepCategory
from healthdash.engine.normalizer import RawSample, localize

logger = logging.getLogger(__name__)

ASLEEP_CATEGORIES = (
    SleepCategory.ASLEEP,
    SleepCategory.CORE,
    SleepCategory.DEEP,
    SleepCategory.REM,
)
STAGE_CATEGORIES = (SleepCategory.CORE, SleepCategory.DEEP, SleepCategory.REM)


@dataclass(frozen=True)
class SleepWindow:
    """Overnight window and latency bound.

    These are heuristics, not platform rules; tune them through settings.
    """

    evening_start_hour: int = 18
    morning_end_hour: int = 11
    max_latency: timedelta = timedelta(hours=2)

    def __post_init__(self) -> None:
        if not 0 <= self.evening_start_hour <= 23 or not 0 <= self.morning_end_hour <= 23:
            raise ValueError("Sleep window hours must be within 0-23")
        # Longer than a day would let consecutive nights share samples
        if self.evening_start_hour <= self.morning_end_hour:
            raise ValueError(
                f"Sleep window evening start ({self.evening_start_hour}) must be "
                f"after its morning end ({self.morning_end_hour})"
            )

    def bounds(self, day: date, tz: tzinfo) -> tuple[datetime, datetime]:
        """[start, end) of the night that ends on ``day``."""
        start = datetime.combine(day - timedelta(days=1), time(self.evening_start_hour), tz)
        end = datetime.combine(day, time(self.morning_end_hour), tz)
        return start, end

    def contains(self, day: date, instant: datetime, tz: tzinfo) -> bool:
        start, end = self.bounds(day, tz)
        return start <= localize(instant, tz) < end


@dataclass(frozen=True)
class SleepStages:
    deep: timedelta = timedelta()
    rem: timedelta = timedelta()
    core: timedelta = timedelta()
    awake: timedelta = timedelta()

    @property
    def asleep_total(self) -> timedelta:
        return self.deep + self.rem + self.core


@dataclass(frozen=True)
class SleepSession:
    day: date
    start_time: datetime
    end_time: datetime
    in_bed_duration: timedelta
    asleep_duration: timedelta
    stages: SleepStages
    efficiency: float | None = None
    latency: timedelta | None = None
    wake_count: int = 0
    heart_rate: float | None = None
    respiratory_rate: float | None = None
    body_temperature: float | None = None

    @property
    def asleep_hours(self) -> float:
        return self.asleep_duration.total_seconds() / 3600


def _stream_intervals(samples: Iterable[RawSample]) -> dict[SleepCategory, list[Interval]]:
    streams: dict[SleepCategory, list[Interval]] = defaultdict(list)
    for sample in samples:
        if isinstance(sample.value, SleepCategory):
            streams[sample.value].append(Interval(sample.start, sample.end))
    return streams


def _vital_average(
    samples: Iterable[RawSample], kind: MetricKind, start: datetime, end: datetime
) -> float | None:
    values = [s.numeric for s in samples if s.kind is kind and start <= s.start <= end]
    return fmean(values) if values else None


def reconstruct_sleep(
    day: date,
    samples: Iterable[RawSample],
    tz: tzinfo,
    window: SleepWindow | None = None,
    vitals: Iterable[RawSample] = (),
) -> SleepSession | None:
    """Build the sleep session for the night ending on ``day``.

    Args:
        day: Calendar day the session is attributed to.
        samples: Sleep category samples from ``day - 1`` and ``day``. Samples
            outside the overnight window are ignored.
        tz: Local timezone used for the window.
        window: Overnight window policy.
        vitals: Heart rate / respiratory rate / body temperature samples;
            those starting inside the session are averaged onto it.

    Returns:
        The session, or None when the window holds no asleep time.
    """
    window = window or SleepWindow()
    night = [
        s
        for s in samples
        if s.kind is MetricKind.SLEEP_ANALYSIS and window.contains(day, s.start, tz)
    ]
    if not night:
        return None

    streams = _stream_intervals(night)
    merged = {category: merge_intervals(intervals) for category, intervals in streams.items()}

    deep = total_duration(merged.get(SleepCategory.DEEP, []))
    rem = total_duration(merged.get(SleepCategory.REM, []))
    core = total_duration(merged.get(SleepCategory.CORE, []))
    awake_intervals = merged.get(SleepCategory.AWAKE, [])
    stages = SleepStages(deep=deep, rem=rem, core=core, awake=total_duration(awake_intervals))

    # Platforms report either granular stages or a single "asleep" stream
    has_stages = any(streams.get(c) for c in STAGE_CATEGORIES)
    if has_stages:
        asleep_duration = stages.asleep_total
    else:
        asleep_duration = total_duration(merged.get(SleepCategory.ASLEEP, []))
    if asleep_duration <= timedelta():
        logger.debug("No asleep time in the night window for %s", day)
        return None

    asleep_cover = merge_intervals(
        interval for c in ASLEEP_CATEGORIES for interval in streams.get(c, [])
    )
    in_bed_intervals = merged.get(SleepCategory.IN_BED, [])
    in_bed_duration = total_duration(in_bed_intervals)

    bounds_source = in_bed_intervals or asleep_cover
    start_time = localize(bounds_source[0].start, tz)
    end_time = localize(max(i.end for i in bounds_source), tz)

    efficiency = None
    if in_bed_duration > timedelta():
        efficiency = asleep_duration / in_bed_duration * 100

    latency: timedelta | None = asleep_cover[0].start - start_time
    if not timedelta() < latency < window.max_latency:
        latency = None

    if streams.get(SleepCategory.AWAKE):
        wake_count = len(awake_intervals)
    else:
        wake_count = max(0, len(asleep_cover) - 1)

    vital_samples = list(vitals)
    return SleepSession(
        day=day,
        start_time=start_time,
        end_time=end_time,
        in_bed_duration=in_bed_duration,
        asleep_duration=asleep_duration,
        stages=stages,
        efficiency=efficiency,
        latency=latency,
        wake_count=wake_count,
        heart_rate=_vital_average(vital_samples, MetricKind.HEART_RATE, start_time, end_time),
        respiratory_rate=_vital_average(
            vital_samples, MetricKind.RESPIRATORY_RATE, start_time, end_time
        ),
        body_temperature=_vital_average(
            vital_samples, MetricKind.BODY_TEMPERATURE, start_time, end_time
        ),
    )
