"""Merge overlapping time intervals into a minimal disjoint cover.

Two devices often log the same stretch of sleep or exercise. Summing their
durations would double count; merging the intervals first does not.

Aware endpoints are held in UTC. Datetimes sharing a zone subtract and
compare by wall clock, which is off by an hour across a DST change.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta


def as_instant(value: datetime) -> datetime:
    """UTC view of an aware datetime; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC)


@dataclass(frozen=True, order=True)
class Interval:
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        object.__setattr__(self, "start", as_instant(self.start))
        object.__setattr__(self, "end", as_instant(self.end))
        if self.end < self.start:
            raise ValueError(f"Interval ends before it starts: {self.start} > {self.end}")

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def contains(self, instant: datetime) -> bool:
        return self.start <= as_instant(instant) <= self.end


def merge_intervals(intervals: Iterable[Interval]) -> list[Interval]:
    """Return the sorted, non-overlapping cover of ``intervals``.

    Sorting is on (start, end) so equal starts resolve deterministically.
    Intervals that touch (next.start == running.end) are merged.
    """
    ordered = sorted(intervals, key=lambda i: (i.start, i.end))
    if not ordered:
        return []

    merged: list[Interval] = []
    running = ordered[0]
    for nxt in ordered[1:]:
        if nxt.start <= running.end:
            if nxt.end > running.end:
                running = Interval(running.start, nxt.end)
        else:
            merged.append(running)
            running = nxt
    merged.append(running)
    return merged


def total_duration(intervals: Iterable[Interval]) -> timedelta:
    """Sum of durations. Pass a merged cover to avoid double counting."""
    return sum((i.duration for i in intervals), timedelta())


def merged_duration(intervals: Iterable[Interval]) -> timedelta:
    return total_duration(merge_intervals(intervals))


def span(intervals: Iterable[Interval]) -> timedelta:
    """Elapsed time from the earliest start to the latest end."""
    items = list(intervals)
    if not items:
        return timedelta()
    return max(i.end for i in items) - min(i.start for i in items)
