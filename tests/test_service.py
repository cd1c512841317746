"""Tests for the health summary service."""

import asyncio
from collections.abc import Sequence
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from healthdash.engine.daily import DailyBucket
from healthdash.engine.metrics import MetricKind, SleepCategory
from healthdash.engine.normalizer import RawSample
from healthdash.errors import SourceUnavailableError
from healthdash.persistence import BucketStore, SqlBucketStore
from healthdash.service import HealthSummaryService, plan_fetch, summarize_archive
from healthdash.sources.apple_export import ArchiveSource, parse_export_xml
from healthdash.sources.base import DayRange
from healthdash.sources.fetcher import FetchCell, FetchFailure
from tests.conftest import test_session

UTC = ZoneInfo("UTC")
MON = date(2024, 3, 4)
TUE = date(2024, 3, 5)
WED = date(2024, 3, 6)


def _at(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=UTC)


def _steps(day: date, value: float) -> RawSample:
    return RawSample(MetricKind.STEP_COUNT, value, _at(day, 9), _at(day, 9, 30), "iPhone")


def _sleep(category: SleepCategory, start: datetime, end: datetime, source: str) -> RawSample:
    return RawSample(MetricKind.SLEEP_ANALYSIS, category, start, end, source)


class MemoryStore(BucketStore):
    def __init__(self) -> None:
        self.buckets: dict[date, DailyBucket] = {}
        self.loads = 0

    async def save(self, buckets: Sequence[DailyBucket]) -> int:
        for bucket in buckets:
            self.buckets[bucket.day] = bucket
        return len(buckets)

    async def load(self, start: date, end: date) -> list[DailyBucket] | None:
        self.loads += 1
        found = [b for d, b in sorted(self.buckets.items()) if start <= d <= end]
        return found or None


class BrokenStore(BucketStore):
    async def save(self, buckets: Sequence[DailyBucket]) -> int:
        raise RuntimeError("disk full")

    async def load(self, start: date, end: date) -> list[DailyBucket] | None:
        raise RuntimeError("database locked")


class CountingSource(ArchiveSource):
    """Archive source that records queries and can fail or stall chosen cells."""

    def __init__(
        self,
        samples: list[RawSample],
        unavailable: bool = False,
        stall: set[tuple[MetricKind, date]] | None = None,
    ) -> None:
        super().__init__(samples, UTC)
        self.calls = 0
        self.unavailable = unavailable
        self.stall = stall or set()

    async def fetch_samples(self, kind: MetricKind, day_range: DayRange) -> list[RawSample]:
        self.calls += 1
        if self.unavailable:
            raise SourceUnavailableError("health data access revoked")
        if (kind, day_range.start) in self.stall:
            await asyncio.sleep(5)
        return await super().fetch_samples(kind, day_range)


def _service(source: ArchiveSource | None, store: BucketStore | None) -> HealthSummaryService:
    return HealthSummaryService(source, store, tz=UTC, fetch_timeout=0.05)


def test_plan_fetch_includes_previous_night() -> None:
    cells = plan_fetch([TUE])
    assert FetchCell(TUE, MetricKind.STEP_COUNT) in cells
    assert FetchCell(MON, MetricKind.SLEEP_ANALYSIS) in cells
    assert FetchCell(MON, MetricKind.HEART_RATE) in cells
    assert FetchCell(MON, MetricKind.STEP_COUNT) not in cells
    assert len(cells) == len(set(cells))


class TestSummarize:
    async def test_computes_and_caches(self) -> None:
        source = CountingSource([_steps(MON, 6000), _steps(TUE, 8000)])
        store = MemoryStore()
        service = _service(source, store)

        report = await service.summarize(MON, TUE)
        assert report.computed_days == [MON, TUE]
        assert report.stored_days == 2
        assert report.summary.total(MetricKind.STEP_COUNT) == 14000
        assert not report.has_errors

        calls = source.calls
        again = await service.summarize(MON, TUE)
        assert source.calls == calls
        assert again.cached_days == [MON, TUE]
        assert again.computed_days == []
        assert again.summary.total(MetricKind.STEP_COUNT) == 14000

    async def test_only_missing_days_fetched(self) -> None:
        store = MemoryStore()
        store.buckets[MON] = DailyBucket(MON, {MetricKind.STEP_COUNT: 1000.0})
        source = CountingSource([_steps(TUE, 2000)])

        report = await _service(source, store).summarize(MON, TUE)
        assert report.cached_days == [MON]
        assert report.computed_days == [TUE]
        assert report.summary.total(MetricKind.STEP_COUNT) == 3000

    async def test_use_cache_false_recomputes(self) -> None:
        store = MemoryStore()
        store.buckets[MON] = DailyBucket(MON, {MetricKind.STEP_COUNT: 1.0})
        source = CountingSource([_steps(MON, 5000)])

        report = await _service(source, store).summarize(MON, MON, use_cache=False)
        assert store.loads == 0
        assert report.summary.total(MetricKind.STEP_COUNT) == 5000
        assert store.buckets[MON].get(MetricKind.STEP_COUNT) == 5000

    async def test_overlapping_sleep_from_two_sources(self) -> None:
        samples = [
            _sleep(SleepCategory.CORE, _at(MON, 23), _at(TUE, 3), "Watch"),
            _sleep(SleepCategory.CORE, _at(TUE, 1), _at(TUE, 6), "Ring"),
        ]
        report = await _service(CountingSource(samples), None).summarize(TUE, TUE)

        session = report.summary.sleep_sessions[TUE]
        assert session.asleep_duration == timedelta(hours=7)
        assert report.summary.sleep_averages is not None
        assert report.summary.sleep_averages.nights == 1

    async def test_absent_days_stay_absent(self) -> None:
        source = CountingSource([_steps(MON, 6000), _steps(WED, 8000)])
        report = await _service(source, MemoryStore()).summarize(MON, WED)

        assert report.summary.average(MetricKind.STEP_COUNT) == pytest.approx(7000)
        assert report.summary.days_with_data == 2
        assert report.summary.average(MetricKind.HEART_RATE) is None

    async def test_source_unavailable_reported_separately(self) -> None:
        store = MemoryStore()
        store.buckets[MON] = DailyBucket(MON, {MetricKind.STEP_COUNT: 1000.0})
        source = CountingSource([], unavailable=True)

        report = await _service(source, store).summarize(MON, TUE)
        assert isinstance(report.source_error, SourceUnavailableError)
        assert report.has_errors
        assert report.stored_days == 0
        assert set(store.buckets) == {MON}
        # Best effort: the cached day still counts
        assert report.summary.total(MetricKind.STEP_COUNT) == 1000

    async def test_stalled_night_cell_blocks_sleep_and_caching(self) -> None:
        samples = [
            _sleep(SleepCategory.ASLEEP, _at(MON, 23), _at(TUE, 6), "Watch"),
            _steps(TUE, 4000),
        ]
        source = CountingSource(samples, stall={(MetricKind.SLEEP_ANALYSIS, MON)})
        store = MemoryStore()

        report = await _service(source, store).summarize(TUE, TUE)
        assert report.summary.sleep_sessions == {}
        assert report.summary.total(MetricKind.STEP_COUNT) == 4000
        assert [d.reason for d in report.diagnostics] == [FetchFailure.TIMEOUT]
        assert report.stored_days == 0
        assert store.buckets == {}

    async def test_broken_store_falls_back_to_source(self) -> None:
        source = CountingSource([_steps(MON, 3000)])
        report = await _service(source, BrokenStore()).summarize(MON, MON)

        assert report.summary.total(MetricKind.STEP_COUNT) == 3000
        assert report.stored_days == 0
        assert len(report.errors) == 2
        assert "database locked" in report.errors[0]

    async def test_without_source_only_cache_is_used(self) -> None:
        store = MemoryStore()
        store.buckets[TUE] = DailyBucket(TUE, {MetricKind.STEP_COUNT: 500.0})

        report = await _service(None, store).summarize(MON, WED)
        assert report.cached_days == [TUE]
        assert report.computed_days == []
        assert report.summary.days_with_data == 1

    async def test_end_before_start_rejected(self) -> None:
        with pytest.raises(ValueError):
            await _service(None, None).summarize(TUE, MON)


EXPORT_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<HealthData locale="en_US">
 <Record type="HKQuantityTypeIdentifierStepCount" sourceName="iPhone" unit="count"
  startDate="2024-03-04 08:00:00 +0000" endDate="2024-03-04 08:10:00 +0000" value="1200"/>
 <Record type="HKCategoryTypeIdentifierSleepAnalysis" sourceName="Watch"
  startDate="2024-03-04 23:00:00 +0000" endDate="2024-03-05 06:30:00 +0000"
  value="HKCategoryValueSleepAnalysisAsleepUnspecified"/>
 <Record type="HKQuantityTypeIdentifierStepCount" sourceName="iPhone" unit="count"
  startDate="2024-03-05 18:00:00 +0000" endDate="2024-03-05 18:10:00 +0000" value="900"/>
</HealthData>
"""


class TestSummarizeArchive:
    async def test_stores_every_covered_day(self) -> None:
        result = parse_export_xml(EXPORT_XML, UTC)
        async with test_session() as session:
            store = SqlBucketStore(session)
            report = await summarize_archive(result, store, tz=UTC)
            await session.commit()

            assert report is not None
            assert report.computed_days == [MON, TUE]
            assert report.stored_days == 2

            cached = await store.load(MON, TUE)
        assert cached is not None
        by_day = {b.day: b for b in cached}
        assert by_day[MON].get(MetricKind.STEP_COUNT) == 1200
        assert by_day[TUE].sleep is not None
        assert by_day[TUE].sleep.asleep_duration == timedelta(hours=7, minutes=30)

    async def test_empty_export(self) -> None:
        result = parse_export_xml(b"<HealthData/>", UTC)
        assert await summarize_archive(result, MemoryStore(), tz=UTC) is None
