"""Builds health summaries from cached buckets and freshly fetched samples."""

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, timedelta, tzinfo

from healthdash.config import Settings, get_settings
from healthdash.engine.daily import DailyBucket, aggregate_day
from healthdash.engine.metrics import SLEEP_VITAL_KINDS, MetricKind
from healthdash.engine.normalizer import local_day
from healthdash.engine.sleep import SleepWindow, reconstruct_sleep
from healthdash.engine.summary import HealthSummary, compose_summary, date_range
from healthdash.errors import SourceUnavailableError
from healthdash.persistence import BucketStore
from healthdash.sources.apple_export import ArchiveSource, ExportParseResult
from healthdash.sources.base import HealthDataSource
from healthdash.sources.fetcher import FetchCell, FetchDiagnostic, FetchReport, SampleFetcher

logger = logging.getLogger(__name__)

# Kinds a night's reconstruction needs from the previous calendar day
NIGHT_KINDS: tuple[MetricKind, ...] = (MetricKind.SLEEP_ANALYSIS, *SLEEP_VITAL_KINDS)


@dataclass
class SummaryReport:
    """Result of a summary request.

    ``source_error`` is set when the data source was unavailable; the summary
    is then built from whatever was cached or already fetched.
    """

    summary: HealthSummary
    diagnostics: list[FetchDiagnostic] = field(default_factory=list)
    source_error: SourceUnavailableError | None = None
    cached_days: list[date] = field(default_factory=list)
    computed_days: list[date] = field(default_factory=list)
    stored_days: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors) or bool(self.diagnostics) or self.source_error is not None


def sleep_window_from_settings(settings: Settings) -> SleepWindow:
    return SleepWindow(
        evening_start_hour=settings.sleep_evening_start_hour,
        morning_end_hour=settings.sleep_morning_end_hour,
        max_latency=timedelta(minutes=settings.sleep_max_latency_minutes),
    )


def plan_fetch(days: Iterable[date]) -> list[FetchCell]:
    """Cells needed to compute the given days.

    Every kind is needed for the day itself; the night kinds are also needed
    for the previous day, whose evening holds the start of the night.
    """
    cells: list[FetchCell] = []
    for day in days:
        cells.extend(FetchCell(day, kind) for kind in MetricKind)
        previous = day - timedelta(days=1)
        cells.extend(FetchCell(previous, kind) for kind in NIGHT_KINDS)
    return list(dict.fromkeys(cells))


class HealthSummaryService:
    """Builds HealthSummary values for date ranges.

    The data source and the bucket store are both injected; either may be
    None. Without a source only cached days are available; without a store
    every request recomputes from the source.
    """

    def __init__(
        self,
        source: HealthDataSource | None = None,
        store: BucketStore | None = None,
        *,
        tz: tzinfo | None = None,
        window: SleepWindow | None = None,
        fetch_timeout: float | None = None,
    ) -> None:
        settings = get_settings()
        self._source = source
        self._store = store
        self._tz = tz or settings.tz
        self._window = window or sleep_window_from_settings(settings)
        self._fetch_timeout = fetch_timeout or settings.fetch_timeout_seconds

    async def summarize(
        self,
        start: date,
        end: date,
        *,
        use_cache: bool = True,
        abandon: asyncio.Event | None = None,
    ) -> SummaryReport:
        """Summarize ``[start, end]``.

        Args:
            start: First day of the window.
            end: Last day of the window (inclusive).
            use_cache: Reuse buckets from the store. False recomputes every day.
            abandon: Setting this event stops outstanding fetches; the summary
                is composed from whatever completed.
        """
        if end < start:
            raise ValueError(f"end {end} is before start {start}")

        errors: list[str] = []
        cached: dict[date, DailyBucket] = {}
        if use_cache:
            cached = await self._load_cached(start, end, errors)

        missing = [d for d in date_range(start, end) if d not in cached]
        fresh: list[DailyBucket] = []
        diagnostics: list[FetchDiagnostic] = []
        source_error: SourceUnavailableError | None = None
        stored = 0

        if missing and self._source is not None:
            fetcher = SampleFetcher(self._source, timeout=self._fetch_timeout)
            fetch_report = await fetcher.fetch(plan_fetch(missing), abandon=abandon)
            diagnostics = fetch_report.diagnostics
            source_error = fetch_report.source_error

            complete: list[DailyBucket] = []
            for day in missing:
                bucket, is_complete = self._build_bucket(day, fetch_report)
                fresh.append(bucket)
                if is_complete:
                    complete.append(bucket)
            stored = await self._save(complete, errors)
        elif missing:
            logger.info("No data source configured; %d uncached days left empty", len(missing))

        summary = compose_summary(start, end, [*cached.values(), *fresh])
        return SummaryReport(
            summary=summary,
            diagnostics=diagnostics,
            source_error=source_error,
            cached_days=sorted(cached),
            computed_days=[b.day for b in fresh],
            stored_days=stored,
            errors=errors,
        )

    def _build_bucket(self, day: date, report: FetchReport) -> tuple[DailyBucket, bool]:
        """Aggregate one day from fetched cells.

        Returns the bucket and whether every cell it depends on completed;
        only complete buckets are worth caching.
        """
        previous = day - timedelta(days=1)
        day_cells = [FetchCell(day, kind) for kind in MetricKind]
        night_cells = [FetchCell(d, kind) for d in (previous, day) for kind in NIGHT_KINDS]

        sleep = None
        sleep_cells = [FetchCell(d, MetricKind.SLEEP_ANALYSIS) for d in (previous, day)]
        if all(report.is_complete(c) for c in sleep_cells):
            sleep = reconstruct_sleep(
                day,
                report.samples_for(sleep_cells),
                self._tz,
                self._window,
                vitals=report.samples_for(
                    c for c in night_cells if c.kind is not MetricKind.SLEEP_ANALYSIS
                ),
            )

        day_samples = report.samples_for(
            c for c in day_cells if c.kind is not MetricKind.SLEEP_ANALYSIS
        )
        bucket = aggregate_day(day, day_samples, self._tz, sleep=sleep)
        is_complete = all(report.is_complete(c) for c in [*day_cells, *night_cells])
        return bucket, is_complete

    async def _load_cached(
        self, start: date, end: date, errors: list[str]
    ) -> dict[date, DailyBucket]:
        if self._store is None:
            return {}
        try:
            buckets = await self._store.load(start, end) or []
        except Exception as e:
            logger.warning("Bucket cache load failed, recomputing: %s", e, exc_info=True)
            errors.append(f"Cache load failed: {e}")
            return {}
        return {b.day: b for b in buckets if start <= b.day <= end}

    async def _save(self, buckets: list[DailyBucket], errors: list[str]) -> int:
        if self._store is None or not buckets:
            return 0
        try:
            return await self._store.save(buckets)
        except Exception as e:
            logger.warning("Bucket cache save failed: %s", e, exc_info=True)
            errors.append(f"Cache save failed: {e}")
            return 0


async def summarize_archive(
    result: ExportParseResult,
    store: BucketStore | None,
    *,
    tz: tzinfo | None = None,
    window: SleepWindow | None = None,
) -> SummaryReport | None:
    """Compute and store every day covered by a parsed export.

    Cached buckets for those days are recomputed, since the export is the
    newer data. Returns None when the export holds no recognized samples.
    """
    tz = tz or get_settings().tz
    span = result.day_span(tz)
    if span is None:
        logger.info("Export holds no recognized samples; nothing to summarize")
        return None

    start, end = span
    # The last night recorded ends on the morning after the last sample day
    night_ends = [
        local_day(s.end, tz) for s in result.samples if s.kind is MetricKind.SLEEP_ANALYSIS
    ]
    end = max([end, *night_ends])

    source = ArchiveSource(result.samples, tz)
    service = HealthSummaryService(source, store, tz=tz, window=window)
    report = await service.summarize(start, end, use_cache=False)
    logger.info(
        "Imported %d days (%s to %s), %d stored",
        len(report.computed_days),
        start,
        end,
        report.stored_days,
    )
    return report
