from healthdash.models.health import DailyBucketRecord
from healthdash.models.prompt_log import PromptLog

__all__ = [
    "DailyBucketRecord",
    "PromptLog",
]
