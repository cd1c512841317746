from healthdash.schemas.advice import ChatRequest, ChatResponse, ChatTurn
from healthdash.schemas.health import (
    DailyBucketRead,
    HealthSummaryRead,
    MetricSummaryRead,
    SleepAveragesRead,
    SleepSessionRead,
    SleepStagesRead,
)

__all__ = [
    "ChatRequest",
    "ChatResponse",
    "ChatTurn",
    "DailyBucketRead",
    "HealthSummaryRead",
    "MetricSummaryRead",
    "SleepAveragesRead",
    "SleepSessionRead",
    "SleepStagesRead",
]
