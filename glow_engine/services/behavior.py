from __future__ import annotations

from typing import Iterable, Optional, Sequence

from glow_engine.models import BehaviorPatterns, Interaction, Preferences, SessionContext


HIGH_FREQUENCY_PER_MIN = 5
MEDIUM_FREQUENCY_PER_MIN = 2
HIGH_PAGE_COUNT = 10
MEDIUM_PAGE_COUNT = 5

# Sessions younger than one minute are measured over a full minute.
MIN_FREQUENCY_WINDOW_MINUTES = 1.0


def _top_by_count(keys: Iterable[str], limit: int) -> list[str]:
    counts: dict[str, int] = {}
    for key in keys:
        counts[key] = counts.get(key, 0) + 1
    # Stable sort: ties keep first-seen order.
    ranked = sorted(counts.items(), key=lambda item: -item[1])
    return [key for key, _ in ranked[:limit]]


def page_feature(page: str) -> str:
    parts = (page or "").split("/")
    segment = parts[1] if len(parts) > 1 else ""
    return segment or "home"


def engagement_level(frequency: float, visited_count: int) -> str:
    if frequency > HIGH_FREQUENCY_PER_MIN or visited_count > HIGH_PAGE_COUNT:
        return "high"
    if frequency > MEDIUM_FREQUENCY_PER_MIN or visited_count > MEDIUM_PAGE_COUNT:
        return "medium"
    return "low"


def analyze_behavior(
    interactions: Sequence[Interaction],
    context: SessionContext,
    *,
    session_duration_ms: int,
) -> BehaviorPatterns:
    duration = max(0, int(session_duration_ms))
    elapsed_minutes = max(duration / 60000.0, MIN_FREQUENCY_WINDOW_MINUTES)
    frequency = len(interactions) / elapsed_minutes

    return BehaviorPatterns(
        engagement_level=engagement_level(frequency, len(context.visited_pages)),
        primary_interests=_top_by_count((i.target for i in interactions if i.target), 5),
        preferred_features=_top_by_count((page_feature(p) for p in context.visited_pages), 3),
        session_duration=duration,
        interaction_frequency=frequency,
    )


def contextual_actions(patterns: BehaviorPatterns, preferences: Optional[Preferences] = None) -> list[str]:
    actions: list[str] = []
    if patterns.engagement_level == "low":
        actions.append("Try our AI chat for personalized guidance")
        actions.append("Take the skin quiz to get better recommendations")
    elif patterns.engagement_level == "medium":
        actions.append("Build a custom routine to track your progress")
        actions.append("Explore our ingredient library for deeper insights")
    else:
        actions.append("Join our community to share your experience")
        actions.append("Consider premium features for advanced analysis")

    if preferences is None or not preferences.concerns:
        actions.append("Update your skin profile for better recommendations")

    return actions[:3]
