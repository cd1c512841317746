from datetime import date, datetime, timedelta

from pydantic import BaseModel

from healthdash.engine.daily import DailyBucket
from healthdash.engine.metrics import METRIC_SPECS, MetricKind
from healthdash.engine.sleep import SleepSession, SleepStages
from healthdash.engine.summary import HealthSummary, SleepAverages, Trend


def _minutes(value: timedelta) -> float:
    # Unrounded: DailyBucketRead is also the cache payload
    return value.total_seconds() / 60


def _optional_minutes(value: timedelta | None) -> float | None:
    return _minutes(value) if value is not None else None


class SleepStagesRead(BaseModel):
    deep_minutes: float = 0.0
    rem_minutes: float = 0.0
    core_minutes: float = 0.0
    awake_minutes: float = 0.0


class SleepSessionRead(BaseModel):
    day: date
    start_time: datetime
    end_time: datetime
    in_bed_minutes: float
    asleep_minutes: float
    stages: SleepStagesRead
    efficiency: float | None = None
    latency_minutes: float | None = None
    wake_count: int = 0
    heart_rate: float | None = None
    respiratory_rate: float | None = None
    body_temperature: float | None = None

    @classmethod
    def from_session(cls, session: SleepSession) -> "SleepSessionRead":
        return cls(
            day=session.day,
            start_time=session.start_time,
            end_time=session.end_time,
            in_bed_minutes=_minutes(session.in_bed_duration),
            asleep_minutes=_minutes(session.asleep_duration),
            stages=SleepStagesRead(
                deep_minutes=_minutes(session.stages.deep),
                rem_minutes=_minutes(session.stages.rem),
                core_minutes=_minutes(session.stages.core),
                awake_minutes=_minutes(session.stages.awake),
            ),
            efficiency=session.efficiency,
            latency_minutes=_optional_minutes(session.latency),
            wake_count=session.wake_count,
            heart_rate=session.heart_rate,
            respiratory_rate=session.respiratory_rate,
            body_temperature=session.body_temperature,
        )

    def to_session(self) -> SleepSession:
        return SleepSession(
            day=self.day,
            start_time=self.start_time,
            end_time=self.end_time,
            in_bed_duration=timedelta(minutes=self.in_bed_minutes),
            asleep_duration=timedelta(minutes=self.asleep_minutes),
            stages=SleepStages(
                deep=timedelta(minutes=self.stages.deep_minutes),
                rem=timedelta(minutes=self.stages.rem_minutes),
                core=timedelta(minutes=self.stages.core_minutes),
                awake=timedelta(minutes=self.stages.awake_minutes),
            ),
            efficiency=self.efficiency,
            latency=(
                timedelta(minutes=self.latency_minutes)
                if self.latency_minutes is not None
                else None
            ),
            wake_count=self.wake_count,
            heart_rate=self.heart_rate,
            respiratory_rate=self.respiratory_rate,
            body_temperature=self.body_temperature,
        )


class DailyBucketRead(BaseModel):
    day: date
    values: dict[MetricKind, float] = {}
    sleep: SleepSessionRead | None = None

    @classmethod
    def from_bucket(cls, bucket: DailyBucket) -> "DailyBucketRead":
        return cls(
            day=bucket.day,
            values=dict(bucket.values),
            sleep=SleepSessionRead.from_session(bucket.sleep) if bucket.sleep else None,
        )

    def to_bucket(self) -> DailyBucket:
        return DailyBucket(
            day=self.day,
            values=self.values,
            sleep=self.sleep.to_session() if self.sleep else None,
        )


class SleepAveragesRead(BaseModel):
    nights: int
    asleep_minutes: float
    in_bed_minutes: float | None = None
    deep_minutes: float | None = None
    rem_minutes: float | None = None
    core_minutes: float | None = None
    awake_minutes: float | None = None
    efficiency: float | None = None
    latency_minutes: float | None = None
    wake_count: float | None = None
    heart_rate: float | None = None
    respiratory_rate: float | None = None
    body_temperature: float | None = None

    @classmethod
    def from_averages(cls, averages: SleepAverages) -> "SleepAveragesRead":
        return cls(
            nights=averages.nights,
            asleep_minutes=_minutes(averages.asleep),
            in_bed_minutes=_optional_minutes(averages.in_bed),
            deep_minutes=_optional_minutes(averages.deep),
            rem_minutes=_optional_minutes(averages.rem),
            core_minutes=_optional_minutes(averages.core),
            awake_minutes=_optional_minutes(averages.awake),
            efficiency=averages.efficiency,
            latency_minutes=_optional_minutes(averages.latency),
            wake_count=averages.wake_count,
            heart_rate=averages.heart_rate,
            respiratory_rate=averages.respiratory_rate,
            body_temperature=averages.body_temperature,
        )


class MetricSummaryRead(BaseModel):
    kind: MetricKind
    label: str
    unit: str
    total: float | None = None
    average: float | None = None
    trend: Trend = Trend.NEUTRAL
    daily: dict[date, float] = {}


class HealthSummaryRead(BaseModel):
    start_date: date
    end_date: date
    days_with_data: int
    wellness_score: int
    metrics: list[MetricSummaryRead] = []
    sleep_sessions: list[SleepSessionRead] = []
    sleep_averages: SleepAveragesRead | None = None
    sleep_trend: Trend = Trend.NEUTRAL

    @classmethod
    def from_summary(cls, summary: HealthSummary) -> "HealthSummaryRead":
        metrics = [
            MetricSummaryRead(
                kind=kind,
                label=METRIC_SPECS[kind].label,
                unit=METRIC_SPECS[kind].unit,
                total=summary.total(kind),
                average=summary.average(kind),
                trend=summary.trends.get(kind, Trend.NEUTRAL),
                daily=dict(values),
            )
            for kind, values in sorted(summary.daily.items())
        ]
        return cls(
            start_date=summary.start_date,
            end_date=summary.end_date,
            days_with_data=summary.days_with_data,
            wellness_score=summary.wellness_score,
            metrics=metrics,
            sleep_sessions=[
                SleepSessionRead.from_session(s)
                for _, s in sorted(summary.sleep_sessions.items())
            ],
            sleep_averages=(
                SleepAveragesRead.from_averages(summary.sleep_averages)
                if summary.sleep_averages
                else None
            ),
            sleep_trend=summary.sleep_trend,
        )
