"""Tests for the chat prompt builder."""

from collections.abc import Iterator
from datetime import date, datetime, timedelta
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

from healthdash.advice.prompt_builder import (
    NO_DATA_TEXT,
    _stage_percentages,
    build_system_prompt,
    format_summary,
    set_prompt_dir,
)
from healthdash.engine.daily import DailyBucket
from healthdash.engine.metrics import MetricKind
from healthdash.engine.sleep import SleepSession, SleepStages
from healthdash.engine.summary import SleepAverages, compose_summary

UTC = ZoneInfo("UTC")
MON = date(2024, 3, 4)
TUE = date(2024, 3, 5)


def _night(day: date) -> SleepSession:
    start = datetime(2024, 3, day.day - 1, 23, tzinfo=UTC)
    return SleepSession(
        day=day,
        start_time=start,
        end_time=start + timedelta(hours=8),
        in_bed_duration=timedelta(hours=8),
        asleep_duration=timedelta(hours=7),
        stages=SleepStages(
            deep=timedelta(minutes=105),
            rem=timedelta(minutes=105),
            core=timedelta(minutes=210),
        ),
        efficiency=87.5,
        wake_count=2,
    )


@pytest.fixture
def restore_prompt_dir() -> Iterator[None]:
    yield
    set_prompt_dir(None)


class TestFormatSummary:
    def test_no_data(self) -> None:
        summary = compose_summary(MON, TUE, [])
        assert format_summary(summary) == NO_DATA_TEXT

    def test_with_data(self) -> None:
        buckets = [
            DailyBucket(MON, {MetricKind.STEP_COUNT: 12000.0}),
            DailyBucket(TUE, {}, sleep=_night(TUE)),
        ]
        result = format_summary(compose_summary(MON, TUE, buckets))

        assert "Period: 2024-03-04 to 2024-03-05 (2 of 2 days with data)" in result
        assert "Wellness score:" in result
        assert "- Steps: avg 12,000 count" in result
        assert "### 2024-03-04" in result
        assert "### 2024-03-05" in result
        assert "- Avg asleep: 7.0 h" in result
        assert "- Avg efficiency: 88%" in result
        assert "7.0 h asleep, 88% efficiency, woke 2x" in result

    def test_absent_metrics_say_no_data(self) -> None:
        buckets = [DailyBucket(MON, {MetricKind.STEP_COUNT: 4000.0})]
        result = format_summary(compose_summary(MON, TUE, buckets))

        assert "- Heart rate: no data" in result
        assert "- Sleep: no data" in result
        # The day without any bucket still lists its metrics as missing
        tuesday = result.split("### 2024-03-05")[1]
        assert "- Steps: no data" in tuesday
        assert "- Steps: 0" not in result


class TestStagePercentages:
    def test_split(self) -> None:
        averages = SleepAverages.from_sessions([_night(TUE)])
        assert averages is not None
        assert _stage_percentages(averages) == "deep 25%, REM 25%, core 50%"

    def test_no_stages(self) -> None:
        averages = SleepAverages(nights=1, asleep=timedelta(hours=7))
        assert _stage_percentages(averages) is None


class TestBuildSystemPrompt:
    def test_embeds_health_data(self) -> None:
        summary = compose_summary(MON, MON, [DailyBucket(MON, {MetricKind.STEP_COUNT: 500.0})])
        prompt = build_system_prompt(summary)
        assert "## Health data" in prompt
        assert "### 2024-03-04" in prompt
        assert "{health_data}" not in prompt

    def test_custom_prompt_dir(self, tmp_path: Path, restore_prompt_dir: None) -> None:
        (tmp_path / "v1").mkdir()
        (tmp_path / "v1" / "system.txt").write_text("DATA:\n{health_data}")
        set_prompt_dir(tmp_path)

        prompt = build_system_prompt(compose_summary(MON, MON, []))
        assert prompt == f"DATA:\n{NO_DATA_TEXT}"
