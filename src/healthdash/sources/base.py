from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import date, timedelta

from healthdash.engine.metrics import MetricKind
from healthdash.engine.normalizer import RawSample


@dataclass(frozen=True)
class DayRange:
    """Inclusive range of calendar days."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"DayRange end {self.end} precedes start {self.start}")

    @classmethod
    def single(cls, day: date) -> "DayRange":
        return cls(day, day)

    def days(self) -> Iterator[date]:
        current = self.start
        while current <= self.end:
            yield current
            current += timedelta(days=1)

    def __contains__(self, day: object) -> bool:
        return isinstance(day, date) and self.start <= day <= self.end


class HealthDataSource(ABC):
    """Abstract interface for everything that yields raw health samples.

    Both a live platform query API and a replayed export archive implement
    this, so the aggregation engine never knows which one it is talking to.
    Implementations must be safe to call concurrently for different
    (kind, day range) pairs.
    """

    @property
    @abstractmethod
    def source_type(self) -> str:
        """Identifier for this source (e.g. 'apple_export')."""
        ...

    @abstractmethod
    async def fetch_samples(self, kind: MetricKind, day_range: DayRange) -> list[RawSample]:
        """Return samples of ``kind`` whose local start day lies in ``day_range``.

        Raises:
            FetchError: This single query failed; the cell is treated as absent.
            SourceUnavailableError: The source cannot be queried at all
                (authorization revoked, offline).
        """
        ...
