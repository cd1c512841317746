"""Turns raw records into typed, timezone-localized samples."""

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, tzinfo
from typing import Any

from healthdash.engine.intervals import as_instant
from healthdash.engine.metrics import (
    SLEEP_CODE_MAP,
    SLEEP_VALUE_MAP,
    UNIT_SCALES,
    MetricKind,
    SleepCategory,
    classify_type,
)
from healthdash.errors import MalformedSampleError

logger = logging.getLogger(__name__)

TIMESTAMP_FORMATS = (
    "%Y-%m-%d %H:%M:%S %z",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S",
)


@dataclass(frozen=True)
class RawSample:
    """One timestamped reading or interval from a data source."""

    kind: MetricKind
    value: float | SleepCategory
    start: datetime
    end: datetime
    source: str = ""

    @property
    def numeric(self) -> float:
        if isinstance(self.value, SleepCategory):
            raise TypeError(f"{self.kind} sample carries a category, not a number")
        return float(self.value)


@dataclass
class NormalizeResult:
    """Result of normalizing a batch of raw records."""

    samples: list[RawSample] = field(default_factory=list)
    skipped_unknown: int = 0
    malformed: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)


def localize(instant: datetime, tz: tzinfo) -> datetime:
    """Express an instant in local time; naive values are taken as already local."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=tz)
    return instant.astimezone(tz)


def local_day(instant: datetime, tz: tzinfo) -> date:
    return localize(instant, tz).date()


def sample_day(sample: RawSample, tz: tzinfo) -> date:
    """The calendar day a sample is bucketed into (by its start)."""
    return local_day(sample.start, tz)


def parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    for fmt in TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None


def parse_sleep_category(value: Any) -> SleepCategory | None:
    if isinstance(value, SleepCategory):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return SLEEP_CODE_MAP.get(value)
    if isinstance(value, str):
        text = value.strip()
        if text in SLEEP_VALUE_MAP:
            return SLEEP_VALUE_MAP[text]
        if text.isdigit():
            return SLEEP_CODE_MAP.get(int(text))
        try:
            return SleepCategory(text)
        except ValueError:
            return None
    return None


def _parse_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (ValueError, TypeError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def normalize_record(
    type_tag: str,
    value: Any,
    start: Any,
    end: Any,
    source: str,
    tz: tzinfo,
    unit: str | None = None,
) -> RawSample | None:
    """Build a RawSample from one raw record.

    Returns None for type tags we do not know (newer signal types are ignored).

    Raises:
        MalformedSampleError: the tag is known but the value or timestamps
            cannot be parsed, or the record ends before it starts.
    """
    archive_type = classify_type(type_tag)
    if archive_type is None:
        logger.debug("Ignoring unsupported record type %s", type_tag)
        return None
    kind = archive_type.kind

    start_dt = parse_timestamp(start)
    if start_dt is None:
        raise MalformedSampleError(type_tag, f"invalid start timestamp {start!r}")
    end_dt = parse_timestamp(end) if end not in (None, "") else start_dt
    if end_dt is None:
        raise MalformedSampleError(type_tag, f"invalid end timestamp {end!r}")

    start_local = localize(start_dt, tz)
    end_local = localize(end_dt, tz)
    if as_instant(end_local) < as_instant(start_local):
        raise MalformedSampleError(type_tag, "end timestamp precedes start")

    parsed: float | SleepCategory | None
    if kind is MetricKind.SLEEP_ANALYSIS:
        parsed = parse_sleep_category(value)
    else:
        number = _parse_number(value)
        if number is not None:
            scale = archive_type.scale
            if unit:
                scale = UNIT_SCALES.get((kind, unit), scale)
            number *= scale
        parsed = number
    if parsed is None:
        raise MalformedSampleError(type_tag, f"invalid value {value!r}")

    return RawSample(
        kind=kind,
        value=parsed,
        start=start_local,
        end=end_local,
        source=source or "Unknown",
    )


def normalize_records(records: Iterable[Mapping[str, Any]], tz: tzinfo) -> NormalizeResult:
    """Normalize a batch of records shaped like export markup attributes.

    Each record carries ``type``, ``value``, ``startDate``, ``endDate``,
    ``sourceName`` and optionally ``unit``. Malformed samples are dropped and
    reported; the batch always completes.
    """
    result = NormalizeResult()
    for record in records:
        type_tag = record.get("type") or ""
        try:
            sample = normalize_record(
                type_tag,
                record.get("value"),
                record.get("startDate"),
                record.get("endDate"),
                record.get("sourceName") or "",
                tz,
                unit=record.get("unit"),
            )
        except MalformedSampleError as e:
            result.malformed += 1
            result.errors.append(str(e))
            continue
        if sample is None:
            result.skipped_unknown += 1
            continue
        result.samples.append(sample)
    return result
