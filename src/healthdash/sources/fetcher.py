"""Parallel fan-out of (day, metric) queries against a HealthDataSource.

Every cell is fetched in its own task inside one task group and carries its
own deadline. A cell that times out or fails is recorded as absent with a
diagnostic; it never fails the whole fetch. Results are only merged into the
report after the task group has joined, so each cell has a single writer.
"""

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum

from healthdash.engine.metrics import MetricKind
from healthdash.engine.normalizer import RawSample
from healthdash.errors import FetchError, SourceUnavailableError
from healthdash.sources.base import DayRange, HealthDataSource

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


class FetchFailure(StrEnum):
    TIMEOUT = "timeout"
    ERROR = "error"
    ABANDONED = "abandoned"


@dataclass(frozen=True, order=True)
class FetchCell:
    day: date
    kind: MetricKind


@dataclass(frozen=True)
class FetchDiagnostic:
    cell: FetchCell
    reason: FetchFailure
    detail: str = ""

    def __str__(self) -> str:
        text = f"{self.cell.kind} on {self.cell.day}: {self.reason}"
        return f"{text} ({self.detail})" if self.detail else text


@dataclass
class FetchReport:
    """Samples per completed cell plus diagnostics for the ones that did not complete."""

    samples: dict[FetchCell, list[RawSample]] = field(default_factory=dict)
    diagnostics: list[FetchDiagnostic] = field(default_factory=list)
    source_error: SourceUnavailableError | None = None

    @property
    def has_errors(self) -> bool:
        return bool(self.diagnostics) or self.source_error is not None

    def is_complete(self, cell: FetchCell) -> bool:
        return cell in self.samples

    def samples_for(self, cells: Iterable[FetchCell]) -> list[RawSample]:
        collected: list[RawSample] = []
        for cell in cells:
            collected.extend(self.samples.get(cell, []))
        return collected


async def _abandon_when_set(abandon: asyncio.Event, tasks: list[asyncio.Task]) -> None:
    """Cancel the still-running fetch tasks once ``abandon`` is set."""
    waiter = asyncio.ensure_future(abandon.wait())
    pending: set[asyncio.Future] = set(tasks)
    try:
        while pending:
            done, _ = await asyncio.wait(pending | {waiter}, return_when=asyncio.FIRST_COMPLETED)
            if waiter in done:
                for task in pending:
                    task.cancel()
                return
            pending -= done
    finally:
        waiter.cancel()


class SampleFetcher:
    """Fetches many (day, kind) cells concurrently from one source."""

    def __init__(
        self, source: HealthDataSource, timeout: float = DEFAULT_TIMEOUT_SECONDS
    ) -> None:
        self._source = source
        self._timeout = timeout

    async def fetch(
        self, cells: Iterable[FetchCell], abandon: asyncio.Event | None = None
    ) -> FetchReport:
        """Fetch every cell and join before returning.

        Args:
            cells: The (day, kind) pairs to query. Duplicates are fetched once.
            abandon: When set, in-flight cells are cancelled and the report
                holds whatever had already completed.

        Returns:
            FetchReport. A source-level failure stops the remaining cells and
            is returned in ``source_error`` rather than raised.
        """
        unique = list(dict.fromkeys(cells))
        report = FetchReport()
        tasks: dict[asyncio.Task, FetchCell] = {}

        try:
            async with asyncio.TaskGroup() as tg:
                for cell in unique:
                    tasks[tg.create_task(self._fetch_cell(cell))] = cell
                if abandon is not None and tasks:
                    tg.create_task(_abandon_when_set(abandon, list(tasks)))
        except* SourceUnavailableError as eg:
            report.source_error = eg.exceptions[0]  # type: ignore[assignment]
            logger.warning(
                "Data source %s unavailable: %s", self._source.source_type, report.source_error
            )

        for task, cell in tasks.items():
            if task.cancelled():
                report.diagnostics.append(FetchDiagnostic(cell, FetchFailure.ABANDONED))
                continue
            error = task.exception()
            if error is not None:
                report.diagnostics.append(FetchDiagnostic(cell, FetchFailure.ERROR, str(error)))
                continue
            outcome = task.result()
            if isinstance(outcome, FetchDiagnostic):
                report.diagnostics.append(outcome)
            else:
                report.samples[cell] = outcome

        logger.info(
            "Fetched %d/%d cells from %s (%d diagnostics)",
            len(report.samples),
            len(unique),
            self._source.source_type,
            len(report.diagnostics),
        )
        return report

    async def _fetch_cell(self, cell: FetchCell) -> list[RawSample] | FetchDiagnostic:
        try:
            async with asyncio.timeout(self._timeout):
                samples = await self._source.fetch_samples(cell.kind, DayRange.single(cell.day))
        except TimeoutError:
            logger.warning("Fetch of %s for %s timed out", cell.kind, cell.day)
            return FetchDiagnostic(
                cell, FetchFailure.TIMEOUT, f"no response within {self._timeout}s"
            )
        except SourceUnavailableError:
            raise
        except FetchError as e:
            logger.warning("Fetch of %s for %s failed: %s", cell.kind, cell.day, e)
            return FetchDiagnostic(cell, FetchFailure.ERROR, str(e))
        except Exception as e:
            logger.warning("Fetch of %s for %s failed", cell.kind, cell.day, exc_info=True)
            return FetchDiagnostic(cell, FetchFailure.ERROR, str(e))
        return [s for s in samples if s.kind is cell.kind]
