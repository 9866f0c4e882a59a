from __future__ import annotations

from datetime import date
import logging
from typing import Optional, Sequence

from glow_engine.models import DailyLog, ProgressReport


logger = logging.getLogger("glow-engine.progress")

RECENT_WINDOW = 7
TREND_THRESHOLD = 0.5
CONSISTENT_LOG_COUNT = 7


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def _parse_day(raw: str) -> Optional[date]:
    try:
        return date.fromisoformat((raw or "").strip()[:10])
    except ValueError:
        logger.debug("progress_log_bad_date value=%s", raw)
        return None


def _top_concerns(logs: Sequence[DailyLog], limit: int = 3) -> list[str]:
    counts: dict[str, int] = {}
    for log in logs:
        for concern in log.concerns:
            counts[concern] = counts.get(concern, 0) + 1
    ranked = sorted(counts.items(), key=lambda item: -item[1])
    return [concern for concern, _ in ranked[:limit]]


def _recommendations(trend: str, concerns: list[str]) -> list[str]:
    if trend == "declining":
        recs = [
            "Review recent product changes - something may not be working",
            "Consider simplifying your routine to identify irritants",
            "Ensure you're getting enough sleep and staying hydrated",
        ]
    elif trend == "improving":
        recs = [
            "Keep up your current routine - it's working!",
            "Document what's working for future reference",
            "Consider adding progress photos weekly",
        ]
    else:
        recs = [
            "Maintain consistency with your current routine",
            "Consider introducing one new targeted treatment",
            "Track environmental factors (stress, diet, weather)",
        ]
    if concerns:
        recs.append(f"Focus on treatments for: {', '.join(concerns)}")
    return recs


def _insights(logs: Sequence[DailyLog]) -> list[str]:
    insights: list[str] = []
    if len(logs) >= CONSISTENT_LOG_COUNT:
        insights.append(f"Great job! You've logged {len(logs)} days of data")

    weekend: list[float] = []
    weekday: list[float] = []
    for log in logs:
        day = _parse_day(log.date)
        if day is None:
            continue
        (weekend if day.weekday() >= 5 else weekday).append(log.skin_condition)

    if weekend and weekday and abs(_mean(weekend) - _mean(weekday)) > TREND_THRESHOLD:
        insights.append("Your skin differs on weekends vs weekdays - lifestyle factors may be at play")
    return insights


def analyze_progress(logs: Sequence[DailyLog], timeframe: str = "week") -> ProgressReport:
    """Summarize a run of daily skin logs, oldest first.

    The last seven logs are compared with the overall average; a gap wider
    than half a point marks the trend as improving or declining.
    """

    if not logs:
        return ProgressReport(
            trend="insufficient_data",
            message="Not enough data to analyze. Keep logging daily!",
            recommendations=["Log your skin condition daily", "Track products used", "Note any reactions"],
        )

    avg_condition = _mean([log.skin_condition for log in logs])
    recent_avg = _mean([log.skin_condition for log in logs[-RECENT_WINDOW:]])

    if recent_avg > avg_condition + TREND_THRESHOLD:
        trend, message = "improving", "Your skin is showing improvement!"
    elif recent_avg < avg_condition - TREND_THRESHOLD:
        trend, message = "declining", "Your skin needs attention."
    else:
        trend, message = "stable", "Your skin condition is stable."

    top_concerns = _top_concerns(logs)
    logger.debug("progress_analyzed timeframe=%s logs=%s trend=%s", timeframe, len(logs), trend)
    return ProgressReport(
        trend=trend,
        message=message,
        avg_condition=f"{avg_condition:.1f}",
        recent_avg=f"{recent_avg:.1f}",
        total_logs=len(logs),
        top_concerns=top_concerns,
        recommendations=_recommendations(trend, top_concerns),
        insights=_insights(logs),
    )
