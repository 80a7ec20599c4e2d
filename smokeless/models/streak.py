"""
Streak and achievement state models.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from ..config import DEFAULT_COST_PER_PACK, DEFAULT_PUFFS_PER_PACK, XP_PER_LEVEL_UNIT


def level_for_xp(total_xp: int) -> int:
    """
    Level for a total XP amount.

    Level 1 at 0 XP, 2 at 100 XP, 3 at 400 XP, 4 at 900 XP (quadratic growth).
    """
    # floor(sqrt(xp / 100)) == isqrt(xp // 100) for non-negative integers
    return math.isqrt(max(0, int(total_xp)) // XP_PER_LEVEL_UNIT) + 1


def xp_for_next_level(level: int) -> int:
    """Total XP at which the level after `level` is reached."""
    return level ** 2 * XP_PER_LEVEL_UNIT


class CostSettings(BaseModel):
    """Pack pricing used to turn avoided puffs into money saved."""
    cost_per_pack: float = Field(DEFAULT_COST_PER_PACK, gt=0)
    puffs_per_pack: int = Field(DEFAULT_PUFFS_PER_PACK, gt=0)


@dataclass
class StreakState:
    """
    Per-user continuity and reward state.

    `level` is derived from `total_xp` and cannot be set. The baseline pair is
    either fully set or fully empty; use set_baseline()/clear_baseline().
    """
    user_id: str
    current_streak: int = 0
    longest_streak: int = 0
    last_active_date: Optional[date] = None
    total_xp: int = 0
    total_logs_count: int = 0
    total_money_saved: float = 0.0
    baseline_daily_average: Optional[float] = None
    baseline_set_date: Optional[datetime] = None
    cost_per_pack: float = DEFAULT_COST_PER_PACK
    puffs_per_pack: int = DEFAULT_PUFFS_PER_PACK
    insights_requested: int = 0
    coaching_requested: int = 0
    quit_date: Optional[datetime] = None

    def __post_init__(self):
        if self.longest_streak < self.current_streak:
            raise ValueError("longest_streak must be >= current_streak")
        if (self.baseline_daily_average is None) != (self.baseline_set_date is None):
            raise ValueError("baseline_daily_average and baseline_set_date must be set together")
        CostSettings(cost_per_pack=self.cost_per_pack, puffs_per_pack=self.puffs_per_pack)

    @property
    def level(self) -> int:
        return level_for_xp(self.total_xp)

    @property
    def xp_for_next_level(self) -> int:
        return xp_for_next_level(self.level)

    @property
    def level_progress(self) -> float:
        """Percentage of total XP against the next level threshold."""
        return round(self.total_xp / self.xp_for_next_level * 100, 1)

    @property
    def has_baseline(self) -> bool:
        return self.baseline_daily_average is not None

    @property
    def cost_per_puff(self) -> float:
        return self.cost_per_pack / self.puffs_per_pack

    def set_baseline(self, daily_average: float, set_at: datetime) -> None:
        self.baseline_daily_average = daily_average
        self.baseline_set_date = set_at

    def clear_baseline(self) -> None:
        self.baseline_daily_average = None
        self.baseline_set_date = None

    def apply_cost_settings(self, settings: CostSettings) -> None:
        self.cost_per_pack = settings.cost_per_pack
        self.puffs_per_pack = settings.puffs_per_pack


@dataclass(frozen=True)
class AchievementUnlock:
    """A recorded (user, achievement) unlock; unique per pair."""
    user_id: str
    achievement_id: str
    unlocked_at: datetime
