"""
Analytics subpackage: usage aggregation, craving prediction, streaks, achievements
and health milestones.
"""

from .aggregation import (
    AnalyticsAggregator,
    DailyStats,
    WeeklyStats,
    MonthlyStats,
    PatternSummary,
    Trend,
    linear_trend,
    classify_trend,
    trend_message,
)

from .predictions import (
    PredictionEngine,
    PredictionResult,
    Recommendation,
    FactorScores,
)

from .gamification import (
    StreakTracker,
    StreakUpdate,
    XPAward,
    level_for_xp,
    xp_for_next_level,
)

from .achievements import (
    Achievement,
    AchievementEngine,
    ACHIEVEMENT_CATALOG,
    CATALOG_VERSION,
)

from .health import (
    HealthMilestone,
    MilestoneStatus,
    HEALTH_MILESTONES,
    milestone_statuses,
    format_time_remaining,
    encouragement,
)

__all__ = [
    # Aggregation
    "AnalyticsAggregator",
    "DailyStats",
    "WeeklyStats",
    "MonthlyStats",
    "PatternSummary",
    "Trend",
    "linear_trend",
    "classify_trend",
    "trend_message",
    # Predictions
    "PredictionEngine",
    "PredictionResult",
    "Recommendation",
    "FactorScores",
    # Streaks & XP
    "StreakTracker",
    "StreakUpdate",
    "XPAward",
    "level_for_xp",
    "xp_for_next_level",
    # Achievements
    "Achievement",
    "AchievementEngine",
    "ACHIEVEMENT_CATALOG",
    "CATALOG_VERSION",
    # Health
    "HealthMilestone",
    "MilestoneStatus",
    "HEALTH_MILESTONES",
    "milestone_statuses",
    "format_time_remaining",
    "encouragement",
]
