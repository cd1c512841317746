"""Health data endpoints: export import, rolling summary and single days."""

import logging
from datetime import date, datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, UploadFile
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from healthdash.config import get_settings
from healthdash.database import get_db
from healthdash.engine.summary import HealthSummary
from healthdash.errors import ArchiveParseError
from healthdash.persistence import SqlBucketStore
from healthdash.schemas.health import DailyBucketRead, HealthSummaryRead
from healthdash.service import HealthSummaryService, sleep_window_from_settings, summarize_archive
from healthdash.sources.apple_export import parse_export

router = APIRouter(prefix="/api/health", tags=["health"])
logger = logging.getLogger(__name__)


class ImportResponse(BaseModel):
    records_seen: int
    samples_parsed: int
    records_skipped: int
    records_malformed: int
    start_date: date | None = None
    end_date: date | None = None
    days_computed: int
    days_stored: int
    errors: list[str]


def summary_window(
    days: int | None = None, start: date | None = None, end: date | None = None
) -> tuple[date, date]:
    """Resolve query parameters into an inclusive ``(start, end)`` window.

    Without ``end`` the window ends today in the configured timezone; without
    ``start`` it spans ``days`` (default ``summary_days``) days back from ``end``.
    """
    settings = get_settings()
    end = end or datetime.now(settings.tz).date()
    if start is None:
        start = end - timedelta(days=(days or settings.summary_days) - 1)
    if end < start:
        raise HTTPException(status_code=422, detail=f"end {end} is before start {start}")
    return start, end


async def load_summary(session: AsyncSession, start: date, end: date) -> HealthSummary:
    """Compose a summary from stored buckets; the server has no live source."""
    service = HealthSummaryService(store=SqlBucketStore(session))
    report = await service.summarize(start, end)
    return report.summary


@router.post("/import", response_model=ImportResponse)
async def import_export(
    file: UploadFile,
    session: AsyncSession = Depends(get_db),
) -> ImportResponse:
    """Upload and import an Apple Health export (export.zip or export.xml).

    Every day covered by the export is recomputed and stored, replacing
    earlier buckets for those days.
    """
    settings = get_settings()
    content = await file.read()
    try:
        parse_result = parse_export(content, settings.tz, file.filename or "")
    except ArchiveParseError as e:
        raise HTTPException(status_code=422, detail=str(e)) from None

    report = await summarize_archive(
        parse_result,
        SqlBucketStore(session),
        tz=settings.tz,
        window=sleep_window_from_settings(settings),
    )
    await session.commit()

    errors = list(parse_result.errors)
    span: tuple[date | None, date | None] = (None, None)
    if report is not None:
        errors.extend(report.errors)
        span = (report.summary.start_date, report.summary.end_date)

    return ImportResponse(
        records_seen=parse_result.records_seen,
        samples_parsed=len(parse_result.samples),
        records_skipped=parse_result.skipped_unknown,
        records_malformed=parse_result.malformed,
        start_date=span[0],
        end_date=span[1],
        days_computed=len(report.computed_days) if report else 0,
        days_stored=report.stored_days if report else 0,
        errors=errors,
    )


@router.get("/summary", response_model=HealthSummaryRead)
async def get_summary(
    days: int | None = Query(default=None, ge=1, le=365),
    start: date | None = None,
    end: date | None = None,
    session: AsyncSession = Depends(get_db),
) -> HealthSummaryRead:
    """Get the rolling summary over the last N days or an explicit window."""
    window_start, window_end = summary_window(days, start, end)
    summary = await load_summary(session, window_start, window_end)
    return HealthSummaryRead.from_summary(summary)


@router.get("/days/{day}", response_model=DailyBucketRead)
async def get_day(
    day: date,
    session: AsyncSession = Depends(get_db),
) -> DailyBucketRead:
    """Get the stored bucket for a single day."""
    buckets = await SqlBucketStore(session).load(day, day)
    if not buckets:
        raise HTTPException(status_code=404, detail=f"No health data for {day}")
    return DailyBucketRead.from_bucket(buckets[0])
