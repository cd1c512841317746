from datetime import timedelta
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="HEALTHDASH_",
        case_sensitive=False,
    )

    # App
    env: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Database
    db_url: str = "sqlite+aiosqlite:///./healthdash.db"

    # Aggregation
    timezone: str = "UTC"
    summary_days: int = 14
    cache_max_age_hours: float = 3.0
    fetch_timeout_seconds: float = 10.0

    # Overnight sleep window (local hours) and latency sanity bound
    sleep_evening_start_hour: int = 18
    sleep_morning_end_hour: int = 11
    sleep_max_latency_minutes: int = 120

    # Claude API
    claude_api_key: str = ""
    claude_model: str = "claude-sonnet-4-5-20250929"
    chat_max_tokens: int = 2048

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def cache_max_age(self) -> timedelta:
        return timedelta(hours=self.cache_max_age_hours)


def get_settings() -> Settings:
    return Settings()
