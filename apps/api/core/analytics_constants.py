"""
Analytics Thresholds

Fixed heuristic thresholds for the retrospective analytics engine.
Every service imports these from here; none of them is tunable per
environment, so they are plain constants rather than settings.
"""

# Score scale shared by emotion/impact/mood/productivity/difficulty
SCORE_MIN = 1
SCORE_MAX = 5

# Missing emotion/impact scores count as mid-scale, not zero
DEFAULT_SCORE = 3.0

# Importance multiplier per tracked item priority
PRIORITY_WEIGHTS = {
    "low": 1.0,
    "medium": 1.5,
    "high": 2.0,
}
UNTRACKED_PRIORITY_WEIGHT = 1.0

# Trend classification: later-half mean must move by more than this
TREND_DELTA = 0.3
MIN_TREND_POINTS = 2

# Streaks never look further back than this many days
STREAK_LOOKBACK_DAYS = 30

# Streak milestones (days) with celebrations
STREAK_MILESTONES = {
    7: "One full week of reflection in a row.",
    14: "Two weeks straight. Reflection is becoming a habit.",
    30: "Thirty consecutive days. Remarkable consistency.",
}

# Pattern detection
RECURRING_THEME_MIN_COUNT = 3
RECURRING_THEME_CANDIDATES = 10
HIGH_IMPACT_THRESHOLD = 3.5
MAX_TAGS_PER_ITEM = 10
TOP_TAG_PAIRS = 5

# Recommendation rules
MIN_REFLECTION_FREQUENCY_RATE = 50.0
PROBLEM_TO_TRY_RATIO = 2
MIN_AVERAGE_PRODUCTIVITY = 3.0
LONG_SESSION_MINUTES = 240
MAX_LONG_SESSION_RATIO = 0.3
MIN_AVERAGE_EMOTION = 3.0
MIN_COMPLETION_RATE = 50.0

# Productivity and engagement heuristics
PRODUCTIVE_SCORE_THRESHOLD = 4
ENGAGEMENT_WINDOW_DAYS = 14
IMPROVEMENT_UPPER_RATIO = 1.2
IMPROVEMENT_LOWER_RATIO = 0.8

# Insight confidence: this many data points means full confidence
CONFIDENCE_SATURATION_POINTS = 10
HIGH_CONFIDENCE_THRESHOLD = 0.8

# Bucket walks beyond this are rejected
MAX_BUCKETS = 2000
