"""
Models package - Data models and type definitions.
"""

from .event import Event, Intensity, Context
from .streak import (
    StreakState,
    AchievementUnlock,
    CostSettings,
    level_for_xp,
    xp_for_next_level,
)

__all__ = [
    'Event',
    'Intensity',
    'Context',
    'StreakState',
    'AchievementUnlock',
    'CostSettings',
    'level_for_xp',
    'xp_for_next_level',
]
