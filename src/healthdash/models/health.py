from datetime import date, datetime

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from healthdash.database import Base


class DailyBucketRecord(Base):
    """Cached daily aggregate for one calendar day."""

    __tablename__ = "daily_buckets"

    id: Mapped[int] = mapped_column(primary_key=True)
    day: Mapped[date] = mapped_column(unique=True, index=True)

    # DailyBucketRead JSON (values per metric + optional sleep session)
    payload: Mapped[str] = mapped_column(Text)

    has_sleep: Mapped[bool] = mapped_column(default=False)
    data_source: Mapped[str] = mapped_column(String(50), default="apple_export")
    computed_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)
