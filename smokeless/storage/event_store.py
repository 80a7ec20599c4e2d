"""
Event store - append-only, time-queryable intake events per user.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional

import pandas as pd

from ..clock import Clock
from ..config import DB_PATH
from ..logger import setup_logger
from ..models import Event
from .database import (
    get_connection,
    init_db,
    insert_event,
    query_events,
    count_events,
    page_events,
    delete_event,
)

logger = setup_logger(__name__)

FRAME_COLUMNS = ['id', 'occurred_at', 'puffs', 'intensity', 'context', 'mood', 'hour', 'weekday', 'date']


def events_to_frame(events: list[Event], clock: Clock) -> pd.DataFrame:
    """
    Convert events to a DataFrame in the clock's reference timezone.

    Adds:
        - hour: hour of day (0-23)
        - weekday: day of week (0=Monday, 6=Sunday)
        - date: calendar date for grouping
    """
    if not events:
        return pd.DataFrame(columns=FRAME_COLUMNS)

    df = pd.DataFrame([
        {
            'id': e.id,
            'occurred_at': clock.localize(e.occurred_at),
            'puffs': e.puffs,
            'intensity': e.intensity.value,
            'context': e.context.value,
            'mood': e.mood,
        }
        for e in events
    ])
    df['occurred_at'] = pd.to_datetime(df['occurred_at'])
    df['hour'] = df['occurred_at'].dt.hour
    df['weekday'] = df['occurred_at'].dt.dayofweek
    df['date'] = df['occurred_at'].dt.date
    return df


class EventStore:
    """
    Queryable collection of intake events backed by SQLite.
    Each call runs in its own short-lived connection.
    """

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = Path(db_path or DB_PATH)
        init_db(self.db_path)

    def insert(self, event: Event) -> Event:
        """Append an event and return it with its record ID."""
        with get_connection(self.db_path) as conn:
            stored = insert_event(conn, event)
        logger.debug(f"Stored event {stored.id} for user {event.user_id}")
        return stored

    def find(
        self,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[Event]:
        """
        Events for a user, ordered by occurrence time.

        Args:
            user_id: Owning identity
            start: Inclusive lower bound (optional)
            end: Inclusive upper bound (optional)
        """
        with get_connection(self.db_path) as conn:
            return query_events(conn, user_id, start, end)

    def count(
        self,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> int:
        with get_connection(self.db_path) as conn:
            return count_events(conn, user_id, start, end)

    def page(
        self,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Event]:
        """Newest-first slice of the user's events."""
        with get_connection(self.db_path) as conn:
            return page_events(conn, user_id, start, end, limit, offset)

    def delete(self, user_id: str, event_id: int) -> bool:
        with get_connection(self.db_path) as conn:
            deleted = delete_event(conn, user_id, event_id)
        if deleted:
            logger.info(f"Event {event_id} deleted by user {user_id}")
        return deleted
