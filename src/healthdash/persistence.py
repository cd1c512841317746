"""Cache of computed daily buckets, so overlapping summary windows reuse earlier work."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import date, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from healthdash.engine.daily import DailyBucket
from healthdash.models.health import DailyBucketRecord
from healthdash.schemas.health import DailyBucketRead

logger = logging.getLogger(__name__)


class BucketStore(ABC):
    """Persistence for daily buckets.

    The engine must work when a store returns nothing; it then recomputes
    every day from the data source.
    """

    @abstractmethod
    async def save(self, buckets: Sequence[DailyBucket]) -> int:
        """Store buckets, replacing any existing bucket for the same day.

        Returns:
            Number of buckets written.
        """
        ...

    @abstractmethod
    async def load(self, start: date, end: date) -> list[DailyBucket] | None:
        """Cached buckets within ``[start, end]``, or None when nothing is cached."""
        ...


class SqlBucketStore(BucketStore):
    """Stores one DailyBucketRecord row per day via SQLAlchemy.

    Rows older than ``max_age`` are ignored on load so recent days get
    recomputed as new samples arrive. Writes are flushed, not committed;
    the caller owns the transaction.
    """

    def __init__(
        self,
        session: AsyncSession,
        max_age: timedelta | None = None,
        data_source: str = "apple_export",
    ) -> None:
        self._session = session
        self._max_age = max_age
        self._data_source = data_source

    async def save(self, buckets: Sequence[DailyBucket]) -> int:
        if not buckets:
            return 0

        days = [b.day for b in buckets]
        result = await self._session.execute(
            select(DailyBucketRecord).where(DailyBucketRecord.day.in_(days))
        )
        existing = {record.day: record for record in result.scalars().all()}
        now = datetime.utcnow()

        for bucket in buckets:
            payload = DailyBucketRead.from_bucket(bucket).model_dump_json()
            record = existing.get(bucket.day)
            if record is None:
                record = DailyBucketRecord(day=bucket.day)
                self._session.add(record)
                existing[bucket.day] = record
            record.payload = payload
            record.has_sleep = bucket.sleep is not None
            record.data_source = self._data_source
            record.computed_at = now

        await self._session.flush()
        logger.debug("Saved %d daily buckets", len(buckets))
        return len(buckets)

    async def load(self, start: date, end: date) -> list[DailyBucket] | None:
        stmt = (
            select(DailyBucketRecord)
            .where(
                DailyBucketRecord.day >= start,
                DailyBucketRecord.day <= end,
            )
            .order_by(DailyBucketRecord.day)
        )
        if self._max_age is not None:
            stmt = stmt.where(DailyBucketRecord.computed_at >= datetime.utcnow() - self._max_age)

        result = await self._session.execute(stmt)
        records = result.scalars().all()
        if not records:
            return None
        return [DailyBucketRead.model_validate_json(r.payload).to_bucket() for r in records]
