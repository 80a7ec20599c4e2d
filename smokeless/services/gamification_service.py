"""
Gamification service - user stats, leaderboard, reduction baseline, money
saved and health milestones since a quit date. Every read-modify-write on a
streak record runs in its own transaction.
"""

from contextlib import contextmanager
from datetime import datetime, timedelta
from functools import partial
from typing import Mapping, Optional

from ..analytics.achievements import ACHIEVEMENT_CATALOG, Achievement, AchievementEngine
from ..analytics.gamification import StreakTracker
from ..analytics.health import HEALTH_MILESTONES, encouragement, milestone_statuses
from ..clock import Clock, to_utc
from ..config import BASELINE_WINDOW_DAYS, LEADERBOARD_SIZE
from ..logger import setup_logger
from ..models import CostSettings, StreakState
from ..storage import (
    EventStore,
    get_connection,
    transaction,
    query_events,
    first_event_time,
    load_streak_state,
    find_streak_state,
    save_streak_state,
    top_streak_states,
    insert_unlock,
    get_unlocks,
)

logger = setup_logger(__name__)

AI_REQUEST_COUNTERS = {
    'insights': 'insights_requested',
    'coaching': 'coaching_requested',
}


def _read_state(conn, user_id: str) -> StreakState:
    """Stored record, or an unsaved default. Reads never create records."""
    return find_streak_state(conn, user_id) or StreakState(user_id=user_id)


class GamificationService:
    """Service layer over streak records and achievement unlocks."""

    def __init__(
        self,
        store: Optional[EventStore] = None,
        clock: Optional[Clock] = None,
        catalog: Mapping[str, Achievement] = ACHIEVEMENT_CATALOG,
    ):
        self.store = store or EventStore()
        self.clock = clock or Clock()
        self.tracker = StreakTracker(self.clock)
        self.catalog = catalog

    @contextmanager
    def _user_state(self, user_id: str):
        """Load the streak record under a write lock and save it on success."""
        with transaction(self.store.db_path) as conn:
            state = load_streak_state(conn, user_id)
            engine = AchievementEngine(partial(insert_unlock, conn), self.tracker, self.catalog, self.clock)
            yield conn, state, engine
            save_streak_state(conn, state)

    def _weekly_average(self, conn, user_id: str) -> float:
        now = self.clock.now()
        events = query_events(conn, user_id, start=now - timedelta(days=BASELINE_WINDOW_DAYS), end=now)
        return sum(e.puffs for e in events) / BASELINE_WINDOW_DAYS

    # =========================================================================
    # Read models
    # =========================================================================

    def get_user_stats(self, user_id: str) -> dict:
        with get_connection(self.store.db_path) as conn:
            state = _read_state(conn, user_id)
            unlocks = get_unlocks(conn, user_id)

        unlocked_ids = {u.achievement_id for u in unlocks}
        unlocked = [
            {**self.catalog[u.achievement_id].to_dict(), 'unlocked_at': u.unlocked_at.isoformat()}
            for u in unlocks
            if u.achievement_id in self.catalog
        ]
        locked = [a.to_dict() for a in self.catalog.values() if a.id not in unlocked_ids]

        return {
            'streak': {
                'current': state.current_streak,
                'longest': state.longest_streak,
                'last_active': state.last_active_date.isoformat() if state.last_active_date else None,
            },
            'xp': {
                'total': state.total_xp,
                'level': state.level,
                'next_level_xp': state.xp_for_next_level,
                'progress': round(state.level_progress),
            },
            'stats': {
                'total_logs': state.total_logs_count,
                'money_saved': round(state.total_money_saved, 2),
            },
            'achievements': {
                'unlocked': unlocked,
                'locked': locked,
                'total': len(self.catalog),
                'completed': len(unlocked),
                'progress': {
                    a.id: 1.0 if a.id in unlocked_ids else round(a.progress(state), 3)
                    for a in self.catalog.values()
                },
            },
        }

    def leaderboard(self, limit: int = LEADERBOARD_SIZE) -> list[dict]:
        with get_connection(self.store.db_path) as conn:
            states = top_streak_states(conn, limit)

        return [
            {
                'rank': rank,
                'user_id': s.user_id,
                'level': s.level,
                'xp': s.total_xp,
                'streak': s.current_streak,
            }
            for rank, s in enumerate(states, start=1)
        ]

    def reduction_progress(self, user_id: str) -> dict:
        with get_connection(self.store.db_path) as conn:
            state = _read_state(conn, user_id)
            if not state.has_baseline:
                return {'has_baseline': False, 'message': 'No baseline set. Log for a week to set baseline.'}
            current = self._weekly_average(conn, user_id)

        baseline = state.baseline_daily_average
        reduction = (baseline - current) / baseline * 100 if baseline > 0 else 0.0

        return {
            'has_baseline': True,
            'baseline': baseline,
            'current_average': current,
            'reduction_percent': round(reduction, 1),
            'direction': 'down' if reduction > 0 else 'up' if reduction < 0 else 'stable',
        }

    # =========================================================================
    # Updates
    # =========================================================================

    def set_baseline(self, user_id: str) -> dict:
        """Use the last 7 days' daily average as the reduction baseline."""
        with self._user_state(user_id) as (conn, state, _):
            average = self._weekly_average(conn, user_id)
            state.set_baseline(average, self.clock.now())

        logger.info(f"Baseline for {user_id} set to {average:.2f} puffs/day")
        return {'baseline': average, 'set_date': state.baseline_set_date.isoformat()}

    def set_cost_settings(self, user_id: str, cost_per_pack: float, puffs_per_pack: int) -> dict:
        """Raises pydantic.ValidationError unless both values are positive."""
        settings = CostSettings(cost_per_pack=cost_per_pack, puffs_per_pack=puffs_per_pack)
        with self._user_state(user_id) as (_, state, _engine):
            state.apply_cost_settings(settings)
        return settings.model_dump()

    def calculate_money_saved(self, user_id: str) -> dict:
        """
        Money saved against the baseline since it was set, persisted as the
        user's total; saver achievements are checked in the same transaction.
        """
        with self._user_state(user_id) as (conn, state, engine):
            if not state.has_baseline:
                return {'has_baseline': False, 'message': 'Set a baseline to track money saved'}

            now = self.clock.now()
            days_since = (now - state.baseline_set_date).days or 1
            actual = sum(e.puffs for e in query_events(conn, user_id, start=state.baseline_set_date, end=now))
            expected = state.baseline_daily_average * days_since
            puffs_saved = max(0.0, expected - actual)
            money_saved = puffs_saved * state.cost_per_puff

            state.total_money_saved = money_saved
            new_achievements = engine.check_and_unlock(user_id, state)

        daily_savings = puffs_saved / days_since * state.cost_per_puff
        return {
            'has_baseline': True,
            'days_since_baseline': days_since,
            'baseline_daily_average': state.baseline_daily_average,
            'current_daily_average': actual / days_since,
            'expected_puffs': round(expected),
            'actual_puffs': actual,
            'puffs_saved': round(puffs_saved),
            'cost_per_pack': state.cost_per_pack,
            'money_saved': round(money_saved, 2),
            'projected_monthly_savings': round(daily_savings * 30, 2),
            'projected_yearly_savings': round(daily_savings * 365, 2),
            'new_achievements': [a.to_dict() for a in new_achievements],
        }

    def record_ai_request(self, user_id: str, kind: str) -> list[Achievement]:
        """Count an insights or coaching request and check the wellness achievements."""
        if kind not in AI_REQUEST_COUNTERS:
            raise ValueError(f"Unknown AI request kind: {kind}")

        counter = AI_REQUEST_COUNTERS[kind]
        with self._user_state(user_id) as (_, state, engine):
            setattr(state, counter, getattr(state, counter) + 1)
            return engine.check_and_unlock(user_id, state)

    def unlock_achievement(self, user_id: str, achievement_id: str) -> bool:
        """Explicitly unlock an achievement that has no automatic condition."""
        with self._user_state(user_id) as (_, state, engine):
            return engine.unlock(user_id, state, achievement_id)

    def get_state(self, user_id: str) -> StreakState:
        with get_connection(self.store.db_path) as conn:
            return _read_state(conn, user_id)

    # =========================================================================
    # Health tracking
    # =========================================================================

    def set_quit_date(self, user_id: str, quit_date: Optional[datetime] = None) -> dict:
        """Start health tracking from quit_date (defaults to now)."""
        with self._user_state(user_id) as (_, state, _engine):
            state.quit_date = to_utc(quit_date) if quit_date else self.clock.now()

        logger.info(f"Quit date for {user_id} set to {state.quit_date.isoformat()}")
        return {
            'quit_date': state.quit_date.isoformat(),
            'message': 'Quit date set! Your health journey begins now.',
        }

    def health_progress(self, user_id: str) -> dict:
        """Milestone progress since the quit date, measured with the service clock."""
        state = self.get_state(user_id)

        if state.quit_date is None:
            return {
                'has_quit_date': False,
                'message': 'Set your quit date to start tracking health improvements!',
                'milestones': [{**m.to_dict(), 'achieved': False, 'progress': 0} for m in HEALTH_MILESTONES],
            }

        # Whole minutes; a future quit date counts as no time elapsed
        minutes = max(0, int((self.clock.now() - state.quit_date).total_seconds() // 60))
        days = minutes / (24 * 60)
        statuses = milestone_statuses(minutes)
        achieved = [s for s in statuses if s.achieved]
        upcoming = next((s for s in statuses if not s.achieved), None)

        return {
            'has_quit_date': True,
            'quit_date': state.quit_date.isoformat(),
            'time_since_quit': {
                'minutes': minutes,
                'hours': round(minutes / 60, 1),
                'days': round(days, 1),
            },
            'milestones': [s.to_dict() for s in statuses],
            'achieved_count': len(achieved),
            'total_milestones': len(HEALTH_MILESTONES),
            'next_milestone': upcoming.to_dict() if upcoming else None,
            'encouragement': encouragement(days),
        }

    def health_dashboard(self, user_id: str) -> dict:
        """Health progress, money saved and a streak summary in one read model."""
        health = self.health_progress(user_id)
        money = self.calculate_money_saved(user_id)

        with get_connection(self.store.db_path) as conn:
            state = _read_state(conn, user_id)
            first_logged = first_event_time(conn, user_id)

        days_tracking = 0
        if state.last_active_date and first_logged:
            days_tracking = (self.clock.now() - first_logged).days

        return {
            'health': health,
            'money': money,
            'summary': {
                'days_tracking': days_tracking,
                'current_streak': state.current_streak,
                'level': state.level,
                'total_xp': state.total_xp,
            },
        }
