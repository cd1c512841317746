"""Tests for sample normalization."""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from healthdash.engine.metrics import MetricKind, SleepCategory
from healthdash.engine.normalizer import (
    RawSample,
    local_day,
    normalize_record,
    normalize_records,
    parse_timestamp,
    sample_day,
)
from healthdash.errors import MalformedSampleError

UTC = ZoneInfo("UTC")
NEW_YORK = ZoneInfo("America/New_York")


class TestNormalizeRecord:
    def test_step_count(self) -> None:
        sample = normalize_record(
            "HKQuantityTypeIdentifierStepCount",
            "523",
            "2024-03-01 08:00:00 +0000",
            "2024-03-01 08:10:00 +0000",
            "iPhone",
            UTC,
        )
        assert sample is not None
        assert sample.kind is MetricKind.STEP_COUNT
        assert sample.value == 523.0
        assert sample.source == "iPhone"
        assert sample.start == datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)

    def test_unknown_type_dropped(self) -> None:
        sample = normalize_record(
            "HKQuantityTypeIdentifierSomethingNew", "1", "2024-03-01 08:00:00 +0000", None, "", UTC
        )
        assert sample is None

    def test_plain_kind_name_accepted(self) -> None:
        sample = normalize_record(
            "heart_rate", 62, datetime(2024, 3, 1, 8, 0, tzinfo=UTC), None, "Watch", UTC
        )
        assert sample is not None
        assert sample.kind is MetricKind.HEART_RATE
        assert sample.end == sample.start

    def test_oxygen_saturation_fraction_scaled_to_percent(self) -> None:
        sample = normalize_record(
            "HKQuantityTypeIdentifierOxygenSaturation",
            "0.97",
            "2024-03-01 03:00:00 +0000",
            "2024-03-01 03:00:00 +0000",
            "Watch",
            UTC,
        )
        assert sample is not None
        assert sample.value == pytest.approx(97.0)

    def test_distance_in_km_converted_to_metres(self) -> None:
        sample = normalize_record(
            "HKQuantityTypeIdentifierDistanceWalkingRunning",
            "1.5",
            "2024-03-01 08:00:00 +0000",
            "2024-03-01 08:20:00 +0000",
            "iPhone",
            UTC,
            unit="km",
        )
        assert sample is not None
        assert sample.value == pytest.approx(1500.0)

    def test_sleep_category_string(self) -> None:
        sample = normalize_record(
            "HKCategoryTypeIdentifierSleepAnalysis",
            "HKCategoryValueSleepAnalysisAsleepDeep",
            "2024-03-01 01:00:00 +0000",
            "2024-03-01 02:00:00 +0000",
            "Watch",
            UTC,
        )
        assert sample is not None
        assert sample.value is SleepCategory.DEEP

    def test_sleep_category_code(self) -> None:
        sample = normalize_record(
            "HKCategoryTypeIdentifierSleepAnalysis",
            0,
            "2024-03-01 01:00:00 +0000",
            "2024-03-01 02:00:00 +0000",
            "Watch",
            UTC,
        )
        assert sample is not None
        assert sample.value is SleepCategory.IN_BED

    def test_missing_source_defaults(self) -> None:
        sample = normalize_record("step_count", 1, "2024-03-01 08:00:00 +0000", None, "", UTC)
        assert sample is not None
        assert sample.source == "Unknown"

    def test_unparsable_value_raises(self) -> None:
        with pytest.raises(MalformedSampleError) as exc_info:
            normalize_record(
                "HKQuantityTypeIdentifierHeartRate",
                "fast",
                "2024-03-01 08:00:00 +0000",
                None,
                "",
                UTC,
            )
        assert "invalid value" in exc_info.value.reason

    def test_nan_value_raises(self) -> None:
        with pytest.raises(MalformedSampleError):
            normalize_record("heart_rate", "nan", "2024-03-01 08:00:00 +0000", None, "", UTC)

    def test_bad_timestamp_raises(self) -> None:
        with pytest.raises(MalformedSampleError):
            normalize_record("step_count", "10", "yesterday", None, "", UTC)

    def test_end_before_start_raises(self) -> None:
        with pytest.raises(MalformedSampleError):
            normalize_record(
                "step_count",
                "10",
                "2024-03-01 08:00:00 +0000",
                "2024-03-01 07:00:00 +0000",
                "",
                UTC,
            )

    def test_record_across_fall_back_accepted(self) -> None:
        # Local clock reads 01:50 then 01:10, but 20 minutes pass
        sample = normalize_record(
            "HKCategoryTypeIdentifierSleepAnalysis",
            "HKCategoryValueSleepAnalysisAsleepCore",
            "2024-11-03 01:50:00 -0400",
            "2024-11-03 01:10:00 -0500",
            "Watch",
            NEW_YORK,
        )
        assert sample is not None
        assert sample.end.fold == 1
        assert sample.end.timestamp() - sample.start.timestamp() == 20 * 60

    def test_unknown_sleep_value_raises(self) -> None:
        with pytest.raises(MalformedSampleError):
            normalize_record(
                "HKCategoryTypeIdentifierSleepAnalysis",
                "HKCategoryValueSleepAnalysisDreaming",
                "2024-03-01 01:00:00 +0000",
                "2024-03-01 02:00:00 +0000",
                "",
                UTC,
            )


class TestLocalDay:
    def test_sample_bucketed_by_local_start(self) -> None:
        # 02:30 UTC is still the previous evening in New York
        sample = normalize_record(
            "step_count", "100", "2024-03-02 02:30:00 +0000", None, "iPhone", NEW_YORK
        )
        assert sample is not None
        assert sample_day(sample, NEW_YORK) == date(2024, 3, 1)
        assert sample_day(sample, UTC) == date(2024, 3, 2)

    def test_naive_instant_treated_as_local(self) -> None:
        assert local_day(datetime(2024, 3, 1, 23, 30), NEW_YORK) == date(2024, 3, 1)

    def test_parse_timestamp_iso(self) -> None:
        parsed = parse_timestamp("2024-03-01T08:00:00Z")
        assert parsed == datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)


class TestNormalizeRecords:
    def test_batch_continues_past_bad_records(self) -> None:
        records = [
            {
                "type": "HKQuantityTypeIdentifierStepCount",
                "value": "100",
                "startDate": "2024-03-01 08:00:00 +0000",
                "endDate": "2024-03-01 08:05:00 +0000",
                "sourceName": "iPhone",
            },
            {
                "type": "HKQuantityTypeIdentifierStepCount",
                "value": "lots",
                "startDate": "2024-03-01 09:00:00 +0000",
                "endDate": "2024-03-01 09:05:00 +0000",
            },
            {
                "type": "HKQuantityTypeIdentifierUVExposure",
                "value": "3",
                "startDate": "2024-03-01 09:00:00 +0000",
            },
            {
                "type": "HKQuantityTypeIdentifierStepCount",
                "value": "50",
                "startDate": "2024-03-01 10:00:00 +0000",
                "endDate": "2024-03-01 10:05:00 +0000",
            },
        ]
        result = normalize_records(records, UTC)
        assert [s.value for s in result.samples] == [100.0, 50.0]
        assert result.malformed == 1
        assert result.skipped_unknown == 1
        assert result.has_errors
        assert "StepCount" in result.errors[0]

    def test_raw_sample_is_immutable(self) -> None:
        sample = RawSample(
            MetricKind.STEP_COUNT,
            1.0,
            datetime(2024, 3, 1, tzinfo=UTC),
            datetime(2024, 3, 1, tzinfo=UTC),
        )
        with pytest.raises(AttributeError):
            sample.value = 2.0  # type: ignore[misc]

    def test_numeric_rejects_category(self) -> None:
        sample = RawSample(
            MetricKind.SLEEP_ANALYSIS,
            SleepCategory.REM,
            datetime(2024, 3, 1, tzinfo=UTC),
            datetime(2024, 3, 1, 1, tzinfo=UTC),
        )
        with pytest.raises(TypeError):
            sample.numeric
