"""
Streaks & XP Module
Keeps per-user continuity state: daily logging streaks, XP and levels.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from ..clock import Clock
from ..config import XP_PER_LOG
from ..logger import setup_logger
from ..models import StreakState, level_for_xp, xp_for_next_level

logger = setup_logger(__name__)

# Streak transitions
STARTED = "started"        # first ever log
CONTINUED = "continued"    # logged the day after the last active day
UNCHANGED = "unchanged"    # already active today
RESET = "reset"            # gap of 2+ days, restarting at 1
BROKEN = "broken"          # no log, streak dropped to 0


@dataclass
class StreakUpdate:
    current_streak: int
    longest_streak: int
    transition: str


@dataclass
class XPAward:
    total_xp: int
    level: int
    added: int
    leveled_up: bool


class StreakTracker:
    """
    Streak state machine keyed by calendar date in the clock's timezone.

    Mutates the StreakState it is given; persisting it is the caller's job.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or Clock()

    def update(self, state: StreakState, did_log_today: bool) -> StreakUpdate:
        today = self.clock.today()
        last = state.last_active_date

        if last is None and did_log_today:
            state.current_streak = 1
            transition = STARTED
        elif last == today:
            transition = UNCHANGED
        elif last == today - timedelta(days=1) and did_log_today:
            state.current_streak += 1
            transition = CONTINUED
        elif did_log_today:
            state.current_streak = 1
            transition = RESET
        else:
            state.current_streak = 0
            transition = BROKEN

        state.longest_streak = max(state.longest_streak, state.current_streak)
        state.last_active_date = today

        if transition != UNCHANGED:
            logger.info(f"Streak {transition} for {state.user_id}: {state.current_streak} day(s)")

        return StreakUpdate(
            current_streak=state.current_streak,
            longest_streak=state.longest_streak,
            transition=transition,
        )

    def add_xp(self, state: StreakState, amount: int) -> XPAward:
        """Add XP to the running total. XP never decreases."""
        if amount < 0:
            raise ValueError(f"XP amount must be non-negative, got {amount}")

        previous_level = state.level
        state.total_xp += amount
        level = state.level

        if level > previous_level:
            logger.info(f"{state.user_id} reached level {level} ({state.total_xp} XP)")

        return XPAward(
            total_xp=state.total_xp,
            level=level,
            added=amount,
            leveled_up=level > previous_level,
        )

    def record_log(self, state: StreakState) -> StreakUpdate:
        """Account for one successful intake log: count, streak and XP."""
        state.total_logs_count += 1
        update = self.update(state, did_log_today=True)
        self.add_xp(state, XP_PER_LOG)
        return update


__all__ = [
    'StreakTracker',
    'StreakUpdate',
    'XPAward',
    'level_for_xp',
    'xp_for_next_level',
]
