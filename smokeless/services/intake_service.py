"""
Intake service - logging, listing and deleting intake events.
Logging an event and the resulting streak, XP and achievement updates are
committed as one unit of work.
"""

from dataclasses import dataclass, field
from datetime import datetime
from functools import partial
from typing import Mapping, Optional

from ..analytics.achievements import ACHIEVEMENT_CATALOG, Achievement, AchievementEngine
from ..analytics.gamification import StreakTracker, StreakUpdate
from ..clock import Clock
from ..logger import setup_logger
from ..models import Event
from ..storage import (
    EventStore,
    transaction,
    insert_event,
    load_streak_state,
    save_streak_state,
    insert_unlock,
)

logger = setup_logger(__name__)


@dataclass
class LogResult:
    event: Event
    streak: StreakUpdate
    total_xp: int
    level: int
    new_achievements: list[Achievement] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'event': self.event.to_dict(),
            'streak': {
                'current': self.streak.current_streak,
                'longest': self.streak.longest_streak,
                'transition': self.streak.transition,
            },
            'total_xp': self.total_xp,
            'level': self.level,
            'new_achievements': [a.to_dict() for a in self.new_achievements],
        }


class IntakeService:
    """
    Service layer for intake events.

    Input is validated by constructing an Event, so malformed values raise
    pydantic.ValidationError before anything is written.
    """

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

    def log_intake(
        self,
        user_id: str,
        puffs: int,
        intensity: str,
        context: str,
        notes: Optional[str] = None,
        location: Optional[str] = None,
        mood: Optional[int] = None,
        occurred_at: Optional[datetime] = None,
    ) -> LogResult:
        """
        Record an intake and update streak, XP and achievements.

        Raises:
            pydantic.ValidationError: invalid puffs, mood or labels
            DataAccessError: the store failed; nothing was committed
        """
        event = Event(
            user_id=user_id,
            puffs=puffs,
            intensity=intensity,
            context=context,
            occurred_at=occurred_at or self.clock.now(),
            mood=mood,
            notes=notes,
            location=location,
        )

        with transaction(self.store.db_path) as conn:
            stored = insert_event(conn, event)
            state = load_streak_state(conn, user_id)
            streak = self.tracker.record_log(state)
            engine = AchievementEngine(partial(insert_unlock, conn), self.tracker, self.catalog, self.clock)
            new_achievements = engine.check_and_unlock(user_id, state)
            save_streak_state(conn, state)

        logger.info(
            f"Logged {stored.puffs} puffs for {user_id} (event {stored.id}), "
            f"streak {streak.current_streak}, {state.total_xp} XP"
        )

        return LogResult(
            event=stored,
            streak=streak,
            total_xp=state.total_xp,
            level=state.level,
            new_achievements=new_achievements,
        )

    def list_intakes(
        self,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        page: int = 1,
        limit: int = 50,
    ) -> dict:
        """Newest-first page of a user's events with pagination totals."""
        if page < 1 or limit < 1:
            raise ValueError("page and limit must be positive")

        total = self.store.count(user_id, start, end)
        events = self.store.page(user_id, start, end, limit=limit, offset=(page - 1) * limit)

        return {
            'intakes': [e.to_dict() for e in events],
            'pagination': {
                'page': page,
                'limit': limit,
                'total': total,
                'pages': (total + limit - 1) // limit,
            },
        }

    def delete_intake(self, user_id: str, event_id: int) -> bool:
        """Delete one of the user's events. Streak and XP are not rolled back."""
        return self.store.delete(user_id, event_id)
