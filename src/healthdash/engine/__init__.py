from healthdash.engine.daily import DailyBucket, aggregate_day, build_daily_buckets, reduce_samples
from healthdash.engine.intervals import Interval, merge_intervals, merged_duration, total_duration
from healthdash.engine.metrics import AggregationSemantic, MetricKind, SleepCategory
from healthdash.engine.normalizer import RawSample, normalize_record, normalize_records, sample_day
from healthdash.engine.sleep import SleepSession, SleepStages, SleepWindow, reconstruct_sleep
from healthdash.engine.summary import HealthSummary, SleepAverages, Trend, compose_summary

__all__ = [
    "AggregationSemantic",
    "DailyBucket",
    "HealthSummary",
    "Interval",
    "MetricKind",
    "RawSample",
    "SleepAverages",
    "SleepCategory",
    "SleepSession",
    "SleepStages",
    "SleepWindow",
    "Trend",
    "aggregate_day",
    "build_daily_buckets",
    "compose_summary",
    "merge_intervals",
    "merged_duration",
    "normalize_record",
    "normalize_records",
    "reconstruct_sleep",
    "reduce_samples",
    "sample_day",
    "total_duration",
]
