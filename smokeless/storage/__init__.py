"""
Storage package - Data access layer (SQLite event store, streak and unlock records).
"""

from .database import (
    get_connection,
    transaction,
    init_db,
    insert_event,
    query_events,
    count_events,
    first_event_time,
    delete_event,
    load_streak_state,
    find_streak_state,
    save_streak_state,
    top_streak_states,
    insert_unlock,
    get_unlocks,
)
from .event_store import EventStore, events_to_frame

__all__ = [
    'get_connection',
    'transaction',
    'init_db',
    'insert_event',
    'query_events',
    'count_events',
    'first_event_time',
    'delete_event',
    'load_streak_state',
    'find_streak_state',
    'save_streak_state',
    'top_streak_states',
    'insert_unlock',
    'get_unlocks',
    'EventStore',
    'events_to_frame',
]
