"""
Retrospective Pattern Detection

Frequency and co-occurrence analysis over a window of KPT items:

- Recurring themes: tags seen at least RECURRING_THEME_MIN_COUNT times
- Success patterns: completed items by category, classified by average impact
- Problem patterns: overdue items by category with their emotion scores
- Tag co-occurrence: tag pairs that show up together on the same item

Every function degrades to an empty result rather than raising, so one
empty category never aborts the whole analysis.
"""

from collections import Counter
from datetime import date
from itertools import combinations
from typing import Any, Dict, Iterable, List, Optional, Sequence
import logging

from core.analytics_constants import (
    HIGH_IMPACT_THRESHOLD,
    MAX_TAGS_PER_ITEM,
    RECURRING_THEME_CANDIDATES,
    RECURRING_THEME_MIN_COUNT,
    TOP_TAG_PAIRS,
)
from core.logging import context_fields
from models import ITEM_CATEGORIES, ITEM_PRIORITIES, KptItem, KptSession
from services.retro_metrics import average_score, completion_rate, is_completed, rounded

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def _tags(record: Any) -> List[str]:
    # Unique, in first-seen order
    seen = []
    for tag in getattr(record, "tags", None) or []:
        if tag and tag not in seen:
            seen.append(tag)
    return seen


def popular_tags(records: Iterable[Any], limit: int = 10) -> List[Dict[str, Any]]:
    """Most used tags across sessions or items, ties broken by tag name."""
    counts = Counter(tag for record in records for tag in _tags(record))
    ranked = sorted(counts.items(), key=lambda pair: (-pair[1], pair[0]))
    return [{"tag": tag, "count": count} for tag, count in ranked[:limit]]


def recurring_themes(items: Iterable[KptItem]) -> List[Dict[str, Any]]:
    candidates = popular_tags(items, limit=RECURRING_THEME_CANDIDATES)
    return [entry for entry in candidates if entry["count"] >= RECURRING_THEME_MIN_COUNT]


def success_patterns(items: Iterable[KptItem]) -> List[Dict[str, Any]]:
    """
    Completed items grouped by category.

    A category is "high" when its average impact exceeds
    HIGH_IMPACT_THRESHOLD; unscored groups are "medium".
    """
    completed = [i for i in items if is_completed(i)]
    patterns = []
    for category in ITEM_CATEGORIES:
        group = [i for i in completed if i.category == category]
        if not group:
            continue
        avg_impact = average_score(group, "impact_score")
        classification = "high" if avg_impact is not None and avg_impact > HIGH_IMPACT_THRESHOLD else "medium"
        patterns.append({
            "category": category,
            "count": len(group),
            "avg_impact": rounded(avg_impact),
            "classification": classification,
        })
    return patterns


def problem_patterns(items: Iterable[KptItem], today: date) -> Dict[str, Any]:
    """Overdue (due before today and not completed) items by category."""
    overdue = [
        i for i in items
        if i.due_date is not None and i.due_date < today and not is_completed(i)
    ]
    by_category = {}
    for category in ITEM_CATEGORIES:
        group = [i for i in overdue if i.category == category]
        by_category[category] = {
            "count": len(group),
            "avg_emotion": rounded(average_score(group, "emotion_score")),
        }
    return {
        "overdue_count": len(overdue),
        "by_category": by_category,
        "avg_emotion": rounded(average_score(overdue, "emotion_score")),
    }


def tag_cooccurrence(items: Iterable[KptItem]) -> List[Dict[str, Any]]:
    """
    Top tag pairs appearing on the same item.

    Only the first MAX_TAGS_PER_ITEM distinct tags of an item take part,
    which keeps the pair enumeration bounded.
    """
    pairs: Counter = Counter()
    for item in items:
        tags = _tags(item)[:MAX_TAGS_PER_ITEM]
        if len(tags) < 2:
            continue
        for pair in combinations(sorted(tags), 2):
            pairs[pair] += 1
    ranked = sorted(pairs.items(), key=lambda entry: (-entry[1], entry[0]))
    return [{"tags": list(pair), "count": count} for pair, count in ranked[:TOP_TAG_PAIRS]]


def time_patterns(sessions: Iterable[KptSession]) -> Dict[str, Any]:
    sessions = list(sessions)
    weekdays = {name: 0 for name in WEEKDAY_NAMES}
    monthly: Counter = Counter()
    for session in sessions:
        weekdays[WEEKDAY_NAMES[session.session_date.weekday()]] += 1
        monthly[session.session_date.strftime("%Y-%m")] += 1
    return {
        "weekday_distribution": weekdays,
        "monthly_counts": dict(sorted(monthly.items())),
    }


def _priority_distribution(items: Sequence[KptItem]) -> Optional[Dict[str, int]]:
    tracked = [i.priority for i in items if getattr(i, "priority", None) is not None]
    if not tracked:
        return None
    counts = Counter(tracked)
    return {priority: counts.get(priority, 0) for priority in ITEM_PRIORITIES}


def category_patterns(items: Iterable[KptItem], sessions: Iterable[KptSession]) -> Dict[str, Dict[str, Any]]:
    """Per-category totals, items per session, completion rate and priority mix."""
    items = list(items)
    session_count = len(list(sessions))
    patterns = {}
    for category in ITEM_CATEGORIES:
        group = [i for i in items if i.category == category]
        patterns[category] = {
            "total": len(group),
            "avg_per_session": round(len(group) / session_count, 2) if session_count else 0.0,
            "completion_rate": completion_rate(group),
            "priority_distribution": _priority_distribution(group),
        }
    return patterns


def detect_patterns(snapshot) -> Dict[str, Any]:
    """
    All pattern analyses for one journal snapshot.

    Args:
        snapshot: JournalSnapshot

    Returns:
        Dict of pattern lists keyed by analysis
    """
    items = list(snapshot.items)
    sessions = list(snapshot.sessions)
    patterns = {
        "recurring_themes": recurring_themes(items),
        "success_patterns": success_patterns(items),
        "problem_patterns": problem_patterns(items, snapshot.context.today),
        "tag_cooccurrence": tag_cooccurrence(items),
        "time_patterns": time_patterns(sessions),
        "category_patterns": category_patterns(items, sessions),
    }
    logger.debug(
        "Detected patterns",
        extra=context_fields(
            snapshot.context,
            recurring_themes=len(patterns["recurring_themes"]),
            tag_pairs=len(patterns["tag_cooccurrence"]),
        ),
    )
    return patterns
