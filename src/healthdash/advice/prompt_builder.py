"""Loads prompt templates and formats a HealthSummary into them."""

from datetime import timedelta
from importlib import resources
from pathlib import Path

from healthdash.engine.metrics import METRIC_SPECS, MetricKind
from healthdash.engine.sleep import SleepSession
from healthdash.engine.summary import HealthSummary, SleepAverages, Trend

_PROMPT_DIR: Path | None = None

NO_DATA_TEXT = "No health data is available for this period."
MISSING = "no data"

# Listed for every day so the model can tell a missing day from a zero day
DAILY_KINDS: tuple[MetricKind, ...] = (
    MetricKind.STEP_COUNT,
    MetricKind.ACTIVE_ENERGY,
    MetricKind.EXERCISE_TIME,
    MetricKind.HEART_RATE,
    MetricKind.RESTING_HEART_RATE,
)


def _get_prompt_dir(version: str = "v1") -> Path:
    if _PROMPT_DIR is not None:
        return _PROMPT_DIR / version
    pkg = resources.files("healthdash") / "prompts" / version
    return Path(str(pkg))


def set_prompt_dir(path: Path | None) -> None:
    """Override prompt directory (for testing)."""
    global _PROMPT_DIR
    _PROMPT_DIR = path


def _load_template(name: str, version: str = "v1") -> str:
    path = _get_prompt_dir(version) / name
    return path.read_text(encoding="utf-8")


def _number(value: float) -> str:
    if abs(value) >= 100:
        return f"{value:,.0f}"
    return f"{value:.1f}"


def _hours(value: timedelta) -> str:
    return f"{value.total_seconds() / 3600:.1f} h"


def _minutes(value: timedelta) -> str:
    return f"{value.total_seconds() / 60:.0f} min"


def _format_value(kind: MetricKind, value: float | None) -> str:
    if value is None:
        return MISSING
    return f"{_number(value)} {METRIC_SPECS[kind].unit}"


def _format_metrics(summary: HealthSummary) -> str:
    lines = []
    for kind, average in sorted(summary.averages.items()):
        spec = METRIC_SPECS[kind]
        parts = [f"avg {_format_value(kind, average)}"]
        total = summary.total(kind)
        if total is not None:
            parts.append(f"total {_format_value(kind, total)}")
        trend = summary.trends.get(kind, Trend.NEUTRAL)
        if trend is not Trend.NEUTRAL:
            parts.append(f"trend {trend}")
        days = len(summary.daily.get(kind, {}))
        lines.append(f"- {spec.label}: {', '.join(parts)} ({days} days)")
    return "\n".join(lines) if lines else MISSING


def _stage_percentages(averages: SleepAverages) -> str | None:
    stages = {"deep": averages.deep, "REM": averages.rem, "core": averages.core}
    asleep = sum((v for v in stages.values() if v is not None), timedelta())
    if asleep <= timedelta():
        return None
    return ", ".join(
        f"{name} {value / asleep * 100:.0f}%" for name, value in stages.items() if value is not None
    )


def _format_sleep_averages(averages: SleepAverages | None, trend: Trend) -> str:
    if averages is None:
        return "- Sleep: no data"
    lines = [
        f"- Nights recorded: {averages.nights}",
        f"- Avg asleep: {_hours(averages.asleep)}",
    ]
    if averages.in_bed is not None:
        lines.append(f"- Avg in bed: {_hours(averages.in_bed)}")
    if averages.efficiency is not None:
        lines.append(f"- Avg efficiency: {averages.efficiency:.0f}%")
    if averages.latency is not None:
        lines.append(f"- Avg time to fall asleep: {_minutes(averages.latency)}")
    if averages.wake_count is not None:
        lines.append(f"- Avg awakenings: {averages.wake_count:.1f}")
    stages = _stage_percentages(averages)
    if stages:
        lines.append(f"- Stages: {stages}")
    if averages.heart_rate is not None:
        lines.append(f"- Avg sleeping heart rate: {averages.heart_rate:.0f} count/min")
    if averages.respiratory_rate is not None:
        lines.append(f"- Avg sleeping respiratory rate: {averages.respiratory_rate:.1f} count/min")
    if trend is not Trend.NEUTRAL:
        lines.append(f"- Sleep duration trend: {trend}")
    return "\n".join(lines)


def _format_night(session: SleepSession | None) -> str:
    if session is None:
        return MISSING
    text = f"{_hours(session.asleep_duration)} asleep"
    if session.efficiency is not None:
        text += f", {session.efficiency:.0f}% efficiency"
    if session.wake_count:
        text += f", woke {session.wake_count}x"
    return text


def _format_days(summary: HealthSummary) -> str:
    parts = []
    for day in summary.days:
        bucket = summary.buckets.get(day)
        lines = [f"### {day.isoformat()}"]
        for kind in DAILY_KINDS:
            value = bucket.get(kind) if bucket else None
            lines.append(f"- {METRIC_SPECS[kind].label}: {_format_value(kind, value)}")
        lines.append(f"- Sleep: {_format_night(bucket.sleep if bucket else None)}")
        parts.append("\n".join(lines))
    return "\n\n".join(parts)


def format_summary(summary: HealthSummary) -> str:
    """Render a summary as plain text for the model.

    Absent metrics read "no data"; they are never shown as zero.
    """
    if not summary.has_data:
        return NO_DATA_TEXT
    return "\n\n".join(
        [
            f"Period: {summary.start_date} to {summary.end_date} "
            f"({summary.days_with_data} of {len(summary.days)} days with data)",
            f"Wellness score: {summary.wellness_score}/100",
            "### Averages\n" + _format_metrics(summary),
            "### Sleep\n"
            + _format_sleep_averages(summary.sleep_averages, summary.sleep_trend),
            _format_days(summary),
        ]
    )


def build_system_prompt(summary: HealthSummary, version: str = "v1") -> str:
    """Build the system prompt for a chat call: adviser persona plus health data."""
    template = _load_template("system.txt", version)
    return template.format(health_data=format_summary(summary))
