"""
Retrospective Recommendations

A fixed, ordered list of independent rules checked against metrics computed
upstream. Each rule that matches contributes one recommendation; several
can fire at once and they come back in rule order.

The generator is total: any RecommendationMetrics, including one with every
field empty, yields a (possibly empty) list. A rule whose inputs are missing
does not fire.
"""

from dataclasses import dataclass, asdict
from typing import Callable, Dict, List, Optional, Tuple
import logging

from core.analytics_constants import (
    LONG_SESSION_MINUTES,
    MAX_LONG_SESSION_RATIO,
    MIN_AVERAGE_EMOTION,
    MIN_AVERAGE_PRODUCTIVITY,
    MIN_COMPLETION_RATE,
    MIN_REFLECTION_FREQUENCY_RATE,
    PROBLEM_TO_TRY_RATIO,
)
from services.reflection_streaks import reflection_frequency
from services.retro_metrics import (
    average_score,
    completion_rate,
    count_by_category,
    duration_minutes,
)

logger = logging.getLogger(__name__)


@dataclass
class RecommendationMetrics:
    """Upstream metrics the rules read. None means "not measured"."""
    frequency_rate: Optional[float] = None
    problem_count: Optional[int] = None
    try_count: Optional[int] = None
    average_productivity: Optional[float] = None
    work_log_count: Optional[int] = None
    long_session_count: Optional[int] = None
    average_emotion: Optional[float] = None
    item_count: Optional[int] = None
    item_completion_rate: Optional[float] = None


@dataclass
class Recommendation:
    type: str
    title: str
    description: str


def _low_frequency(m: RecommendationMetrics) -> bool:
    return m.frequency_rate is not None and m.frequency_rate < MIN_REFLECTION_FREQUENCY_RATE


def _problem_heavy(m: RecommendationMetrics) -> bool:
    if m.problem_count is None or m.try_count is None:
        return False
    return m.problem_count > m.try_count * PROBLEM_TO_TRY_RATIO


def _low_productivity(m: RecommendationMetrics) -> bool:
    return m.average_productivity is not None and m.average_productivity < MIN_AVERAGE_PRODUCTIVITY


def _too_many_long_sessions(m: RecommendationMetrics) -> bool:
    if not m.work_log_count or m.long_session_count is None:
        return False
    return m.long_session_count / m.work_log_count > MAX_LONG_SESSION_RATIO


def _low_emotion(m: RecommendationMetrics) -> bool:
    return m.average_emotion is not None and m.average_emotion < MIN_AVERAGE_EMOTION


def _low_completion(m: RecommendationMetrics) -> bool:
    if not m.item_count or m.item_completion_rate is None:
        return False
    return m.item_completion_rate < MIN_COMPLETION_RATE


# Evaluation order is output order
RULES: List[Tuple[Callable[[RecommendationMetrics], bool], Recommendation]] = [
    (_low_frequency, Recommendation(
        type="frequency",
        title="Increase your reflection frequency",
        description="Regular reflection is the key to growth. Aim for at least three reflections a week.",
    )),
    (_problem_heavy, Recommendation(
        type="balance",
        title="Add more Try items",
        description="Pairing each Problem with a concrete Try turns reflection into improvement.",
    )),
    (_low_productivity, Recommendation(
        type="productivity",
        title="Review your working environment",
        description="Productivity scores are on the low side. Revisit your environment and how you focus.",
    )),
    (_too_many_long_sessions, Recommendation(
        type="breaks",
        title="Take more frequent breaks",
        description=f"Many work sessions run longer than {LONG_SESSION_MINUTES // 60} hours. Regular breaks help sustain focus.",
    )),
    (_low_emotion, Recommendation(
        type="emotion",
        title="Bring more positives into your retrospectives",
        description="Emotion scores are trending low. Record what went well and build on it.",
    )),
    (_low_completion, Recommendation(
        type="completion",
        title="Re-prioritise open items",
        description="Fewer than half of your items are completed. Split them into smaller, actionable steps.",
    )),
]

STANDING_GUIDANCE: Dict[str, List[str]] = {
    "immediate_actions": [
        "Work through overdue items first.",
        "Start on your high-priority Try items.",
        "Look into the causes behind items with low emotion scores.",
    ],
    "long_term_suggestions": [
        "Keep holding KPT sessions regularly.",
        "Use tags on items to spot recurring patterns.",
        "Run a monthly retrospective.",
    ],
    "process_improvements": [
        "Keep KPT items at a consistent, actionable size.",
        "Decide the next action before closing each session.",
        "Set quantitative goals.",
    ],
    "goal_suggestions": [
        "Aim for a 70% weekly completion rate.",
        "Keep your average emotion score at 3.5 or above.",
        "Hold at least five sessions a month.",
    ],
}


def generate_recommendations(metrics: RecommendationMetrics) -> List[Recommendation]:
    """
    Evaluate every rule in order.

    A rule that raises is logged and skipped; the rest still run.
    """
    recommendations = []
    for matches, recommendation in RULES:
        try:
            fired = matches(metrics)
        except Exception as e:
            logger.warning(
                f"Recommendation rule {recommendation.type} failed: {e}",
                extra={"extra_fields": {"rule": recommendation.type}},
            )
            continue
        if fired:
            recommendations.append(recommendation)
    return recommendations


def long_session_count(work_logs) -> int:
    return sum(1 for w in work_logs if duration_minutes(w) > LONG_SESSION_MINUTES)


def metrics_from_snapshot(snapshot) -> RecommendationMetrics:
    """
    Derive rule inputs from a JournalSnapshot.

    Work-log metrics stay None unless the snapshot carries a work-log source.
    """
    items = list(snapshot.items)
    counts = count_by_category(items)
    frequency = reflection_frequency(snapshot.session_dates(), snapshot.date_range)

    metrics = RecommendationMetrics(
        frequency_rate=frequency["frequency_rate"],
        problem_count=counts["problem"],
        try_count=counts["try"],
        average_emotion=average_score(items, "emotion_score"),
        item_count=len(items),
        item_completion_rate=completion_rate(items),
    )
    if snapshot.has_work_log_source:
        work_logs = list(snapshot.work_logs)
        metrics.average_productivity = average_score(work_logs, "productivity_score")
        metrics.work_log_count = len(work_logs)
        metrics.long_session_count = long_session_count(work_logs)
    return metrics


def recommendations_to_dicts(recommendations: List[Recommendation]) -> List[Dict[str, str]]:
    return [asdict(r) for r in recommendations]
