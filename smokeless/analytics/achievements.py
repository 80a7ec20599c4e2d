"""
Achievement Module
Static achievement catalog and the engine that unlocks entries exactly once
per user.
"""

from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Callable, Mapping, Optional

from ..clock import Clock
from ..logger import setup_logger
from ..models import StreakState
from .gamification import StreakTracker

logger = setup_logger(__name__)

CATALOG_VERSION = "1"

# (user_id, achievement_id, unlocked_at) -> True if newly recorded
UnlockWriter = Callable[[str, str, datetime], bool]


@dataclass(frozen=True)
class Achievement:
    """
    One catalog entry. Ids are permanent; stored unlocks refer to them.

    Entries with a metric unlock automatically once
    ``getattr(state, metric) >= threshold``. Entries without one depend on
    history outside StreakState and are only unlocked explicitly.
    """
    id: str
    name: str
    description: str
    icon: str
    xp: int
    category: str
    metric: Optional[str] = None
    threshold: Optional[float] = None

    @property
    def automatic(self) -> bool:
        return self.metric is not None

    def is_met(self, state: StreakState) -> bool:
        if not self.automatic:
            return False
        return getattr(state, self.metric) >= self.threshold

    def progress(self, state: StreakState) -> float:
        if not self.automatic:
            return 0.0
        return min(1.0, max(0.0, getattr(state, self.metric) / self.threshold))

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'icon': self.icon,
            'xp': self.xp,
            'category': self.category,
        }


_DEFINITIONS = [
    # Streak
    Achievement('first_day', 'First Step', 'Complete your first day of tracking', '🌟', 50, 'streak',
                'current_streak', 1),
    Achievement('week_warrior', 'Week Warrior', 'Maintain a 7-day tracking streak', '🔥', 200, 'streak',
                'current_streak', 7),
    Achievement('month_master', 'Month Master', 'Maintain a 30-day tracking streak', '👑', 1000, 'streak',
                'current_streak', 30),

    # Reduction
    Achievement('first_reduction', 'On The Way Down', 'Reduce daily intake by 10%', '📉', 100, 'reduction'),
    Achievement('half_way', 'Halfway There', 'Reduce daily intake by 50%', '🎯', 500, 'reduction'),
    Achievement('smoke_free_day', 'Clean Day', 'Complete a full day with zero intake', '💚', 300, 'reduction'),

    # Consistency
    Achievement('logger_10', 'Dedicated Logger', 'Log 10 intake entries', '📝', 50, 'consistency',
                'total_logs_count', 10),
    Achievement('logger_50', 'Data Champion', 'Log 50 intake entries', '📊', 150, 'consistency',
                'total_logs_count', 50),
    Achievement('logger_100', 'Tracking Master', 'Log 100 intake entries', '🏆', 300, 'consistency',
                'total_logs_count', 100),

    # Wellness
    Achievement('insight_seeker', 'Insight Seeker', 'Request AI insights 5 times', '🔮', 75, 'wellness',
                'insights_requested', 5),
    Achievement('coach_follower', 'Coach Follower', 'Get coaching advice 10 times', '🧠', 100, 'wellness',
                'coaching_requested', 10),
    Achievement('morning_delay', 'Morning Victory', 'Delay first intake past 10 AM for 3 days', '🌅', 150,
                'wellness'),

    # Money
    Achievement('saver_10', 'Smart Saver', 'Save $10 by reducing', '💵', 100, 'money',
                'total_money_saved', 10),
    Achievement('saver_50', 'Budget Boss', 'Save $50 by reducing', '💰', 250, 'money',
                'total_money_saved', 50),
    Achievement('saver_100', 'Money Master', 'Save $100 by reducing', '🤑', 500, 'money',
                'total_money_saved', 100),
]

# Read-only, in definition order
ACHIEVEMENT_CATALOG: Mapping[str, Achievement] = MappingProxyType({a.id: a for a in _DEFINITIONS})


class AchievementEngine:
    """
    Evaluates a StreakState against the catalog and records first-time unlocks.

    Uniqueness is the writer's job: it must perform a conditional insert and
    return False when the (user, achievement) pair already exists. XP is only
    awarded when the writer reports a new record.
    """

    def __init__(
        self,
        unlock_writer: UnlockWriter,
        tracker: StreakTracker,
        catalog: Mapping[str, Achievement] = ACHIEVEMENT_CATALOG,
        clock: Optional[Clock] = None,
    ):
        self.unlock_writer = unlock_writer
        self.tracker = tracker
        self.catalog = catalog
        self.clock = clock or tracker.clock

    def _record(self, user_id: str, state: StreakState, achievement: Achievement) -> bool:
        if not self.unlock_writer(user_id, achievement.id, self.clock.now()):
            return False
        self.tracker.add_xp(state, achievement.xp)
        logger.info(f"Achievement unlocked for {user_id}: {achievement.name} (+{achievement.xp} XP)")
        return True

    def check_and_unlock(self, user_id: str, state: StreakState) -> list[Achievement]:
        """Newly unlocked achievements, in catalog order."""
        unlocked = []
        for achievement in self.catalog.values():
            if achievement.is_met(state) and self._record(user_id, state, achievement):
                unlocked.append(achievement)
        return unlocked

    def unlock(self, user_id: str, state: StreakState, achievement_id: str) -> bool:
        """Explicitly unlock an entry. Raises KeyError for unknown ids."""
        return self._record(user_id, state, self.catalog[achievement_id])

    def progress(self, state: StreakState) -> dict[str, float]:
        return {a.id: round(a.progress(state), 3) for a in self.catalog.values()}
