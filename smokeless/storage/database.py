"""
Database module for SQLite operations.
Handles connection management and CRUD operations for intake events,
streak state and achievement unlocks.
"""

import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from functools import wraps
from pathlib import Path
from typing import Optional

from ..clock import to_utc
from ..config import DB_PATH
from ..exceptions import DataAccessError
from ..logger import setup_logger
from ..models import Event, StreakState, AchievementUnlock

logger = setup_logger(__name__)

DB_TIME_FORMAT = "%Y-%m-%dT%H:%M:%S.%f+00:00"

STREAK_COLUMNS = (
    'user_id', 'current_streak', 'longest_streak', 'last_active_date',
    'total_xp', 'total_logs_count', 'total_money_saved',
    'baseline_daily_average', 'baseline_set_date',
    'cost_per_pack', 'puffs_per_pack',
    'insights_requested', 'coaching_requested', 'quit_date',
)


def to_db_time(dt: datetime) -> str:
    """Fixed-width UTC text so that string order equals time order."""
    return to_utc(dt).strftime(DB_TIME_FORMAT)


def from_db_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def data_access(operation: str):
    """Re-raise any sqlite3 error from the wrapped call as DataAccessError."""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except sqlite3.Error as e:
                raise DataAccessError(
                    message=f"{operation} failed: {e}",
                    operation=operation,
                    cause=e,
                ) from e
        return wrapper
    return decorator


@contextmanager
def get_connection(db_path: Optional[Path] = None):
    """Context manager for database connections."""
    path = Path(db_path or DB_PATH)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        # Autocommit mode: transactions are opened explicitly by transaction()
        conn = sqlite3.connect(path, timeout=30.0, isolation_level=None)
    except (sqlite3.Error, OSError) as e:
        raise DataAccessError(
            message=f"Could not open database at {path}: {e}",
            operation="connect",
            cause=e,
        ) from e
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def transaction(db_path: Optional[Path] = None):
    """
    Run a unit of work under a write lock.

    BEGIN IMMEDIATE takes the write lock up front, so concurrent
    read-modify-write cycles on the same streak record are serialized.
    Commits on success, rolls back on any error.
    """
    with get_connection(db_path) as conn:
        try:
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            raise DataAccessError(
                message=f"Could not begin transaction: {e}",
                operation="transaction",
                cause=e,
            ) from e
        try:
            yield conn
        except BaseException:
            # SQLite may already have rolled back (e.g. SQLITE_FULL)
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        try:
            conn.execute("COMMIT")
        except sqlite3.Error as e:
            raise DataAccessError(
                message=f"Commit failed: {e}",
                operation="transaction",
                cause=e,
            ) from e


@data_access("init_db")
def init_db(db_path: Optional[Path] = None):
    """Initialize the database with the events, streak and unlock tables."""
    with get_connection(db_path) as conn:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS events (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                puffs INTEGER NOT NULL CHECK (puffs BETWEEN 1 AND 100),
                intensity TEXT NOT NULL,
                context TEXT NOT NULL,
                occurred_at TEXT NOT NULL,
                mood INTEGER,
                notes TEXT,
                location TEXT,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP
            );

            CREATE INDEX IF NOT EXISTS idx_events_user_time
            ON events(user_id, occurred_at);

            CREATE TABLE IF NOT EXISTS streak_states (
                user_id TEXT PRIMARY KEY,
                current_streak INTEGER NOT NULL DEFAULT 0,
                longest_streak INTEGER NOT NULL DEFAULT 0,
                last_active_date TEXT,
                total_xp INTEGER NOT NULL DEFAULT 0,
                total_logs_count INTEGER NOT NULL DEFAULT 0,
                total_money_saved REAL NOT NULL DEFAULT 0,
                baseline_daily_average REAL,
                baseline_set_date TEXT,
                cost_per_pack REAL NOT NULL DEFAULT 10,
                puffs_per_pack INTEGER NOT NULL DEFAULT 200,
                insights_requested INTEGER NOT NULL DEFAULT 0,
                coaching_requested INTEGER NOT NULL DEFAULT 0,
                quit_date TEXT,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP
            );

            CREATE TABLE IF NOT EXISTS achievement_unlocks (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                achievement_id TEXT NOT NULL,
                unlocked_at TEXT NOT NULL,
                UNIQUE (user_id, achievement_id)
            );
        """)


# ============================================================================
# Events
# ============================================================================

@data_access("insert_event")
def insert_event(conn: sqlite3.Connection, event: Event) -> Event:
    """
    Insert a single event.

    Returns:
        The event carrying its new record ID
    """
    cursor = conn.execute("""
        INSERT INTO events
        (user_id, puffs, intensity, context, occurred_at, mood, notes, location)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
    """, (
        event.user_id,
        event.puffs,
        event.intensity.value,
        event.context.value,
        to_db_time(event.occurred_at),
        event.mood,
        event.notes,
        event.location,
    ))
    return event.with_id(cursor.lastrowid)


def _time_filter(user_id: str, start: Optional[datetime], end: Optional[datetime]) -> tuple[str, list]:
    clauses = ["user_id = ?"]
    params: list = [user_id]
    if start is not None:
        clauses.append("occurred_at >= ?")
        params.append(to_db_time(start))
    if end is not None:
        clauses.append("occurred_at <= ?")
        params.append(to_db_time(end))
    return " AND ".join(clauses), params


@data_access("query_events")
def query_events(
    conn: sqlite3.Connection,
    user_id: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> list[Event]:
    """Events for a user within inclusive bounds, oldest first."""
    where, params = _time_filter(user_id, start, end)
    rows = conn.execute(
        f"SELECT * FROM events WHERE {where} ORDER BY occurred_at ASC, id ASC",
        params,
    ).fetchall()
    return [Event.from_row(row) for row in rows]


@data_access("count_events")
def count_events(
    conn: sqlite3.Connection,
    user_id: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> int:
    where, params = _time_filter(user_id, start, end)
    return conn.execute(f"SELECT COUNT(*) FROM events WHERE {where}", params).fetchone()[0]


@data_access("first_event_time")
def first_event_time(conn: sqlite3.Connection, user_id: str) -> Optional[datetime]:
    row = conn.execute("SELECT MIN(occurred_at) FROM events WHERE user_id = ?", (user_id,)).fetchone()
    return from_db_time(row[0])


@data_access("page_events")
def page_events(
    conn: sqlite3.Connection,
    user_id: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Event]:
    """Events newest first, for paginated listings."""
    where, params = _time_filter(user_id, start, end)
    rows = conn.execute(
        f"SELECT * FROM events WHERE {where} ORDER BY occurred_at DESC, id DESC LIMIT ? OFFSET ?",
        params + [limit, offset],
    ).fetchall()
    return [Event.from_row(row) for row in rows]


@data_access("delete_event")
def delete_event(conn: sqlite3.Connection, user_id: str, event_id: int) -> bool:
    """Delete one of the user's events. Returns False if it does not exist."""
    cursor = conn.execute(
        "DELETE FROM events WHERE id = ? AND user_id = ?",
        (event_id, user_id),
    )
    return cursor.rowcount > 0


# ============================================================================
# Streak state
# ============================================================================

def _row_to_state(row) -> StreakState:
    return StreakState(
        user_id=row['user_id'],
        current_streak=row['current_streak'],
        longest_streak=row['longest_streak'],
        last_active_date=date.fromisoformat(row['last_active_date']) if row['last_active_date'] else None,
        total_xp=row['total_xp'],
        total_logs_count=row['total_logs_count'],
        total_money_saved=row['total_money_saved'],
        baseline_daily_average=row['baseline_daily_average'],
        baseline_set_date=from_db_time(row['baseline_set_date']),
        cost_per_pack=row['cost_per_pack'],
        puffs_per_pack=row['puffs_per_pack'],
        insights_requested=row['insights_requested'],
        coaching_requested=row['coaching_requested'],
        quit_date=from_db_time(row['quit_date']),
    )


@data_access("load_streak_state")
def load_streak_state(conn: sqlite3.Connection, user_id: str) -> StreakState:
    """Get the user's streak record, creating a default one if missing."""
    conn.execute("INSERT OR IGNORE INTO streak_states (user_id) VALUES (?)", (user_id,))
    row = conn.execute("SELECT * FROM streak_states WHERE user_id = ?", (user_id,)).fetchone()
    return _row_to_state(row)


@data_access("find_streak_state")
def find_streak_state(conn: sqlite3.Connection, user_id: str) -> Optional[StreakState]:
    """Get the user's streak record without creating one."""
    row = conn.execute("SELECT * FROM streak_states WHERE user_id = ?", (user_id,)).fetchone()
    return _row_to_state(row) if row else None


@data_access("save_streak_state")
def save_streak_state(conn: sqlite3.Connection, state: StreakState) -> None:
    values = {
        'user_id': state.user_id,
        'current_streak': state.current_streak,
        'longest_streak': state.longest_streak,
        'last_active_date': state.last_active_date.isoformat() if state.last_active_date else None,
        'total_xp': state.total_xp,
        'total_logs_count': state.total_logs_count,
        'total_money_saved': state.total_money_saved,
        'baseline_daily_average': state.baseline_daily_average,
        'baseline_set_date': to_db_time(state.baseline_set_date) if state.baseline_set_date else None,
        'cost_per_pack': state.cost_per_pack,
        'puffs_per_pack': state.puffs_per_pack,
        'insights_requested': state.insights_requested,
        'coaching_requested': state.coaching_requested,
        'quit_date': to_db_time(state.quit_date) if state.quit_date else None,
    }
    set_clause = ", ".join(f"{col} = :{col}" for col in STREAK_COLUMNS if col != 'user_id')
    conn.execute(
        f"UPDATE streak_states SET {set_clause}, updated_at = CURRENT_TIMESTAMP WHERE user_id = :user_id",
        values,
    )


@data_access("top_streak_states")
def top_streak_states(conn: sqlite3.Connection, limit: int = 10) -> list[StreakState]:
    rows = conn.execute(
        "SELECT * FROM streak_states ORDER BY total_xp DESC, user_id ASC LIMIT ?",
        (limit,),
    ).fetchall()
    return [_row_to_state(row) for row in rows]


# ============================================================================
# Achievement unlocks
# ============================================================================

@data_access("insert_unlock")
def insert_unlock(
    conn: sqlite3.Connection,
    user_id: str,
    achievement_id: str,
    unlocked_at: datetime,
) -> bool:
    """
    Record an unlock conditioned on the UNIQUE(user_id, achievement_id) key.

    Returns:
        True if this call created the record, False if it already existed
    """
    try:
        conn.execute(
            "INSERT INTO achievement_unlocks (user_id, achievement_id, unlocked_at) VALUES (?, ?, ?)",
            (user_id, achievement_id, to_db_time(unlocked_at)),
        )
    except sqlite3.IntegrityError:
        logger.debug(f"Achievement {achievement_id} already unlocked for user {user_id}")
        return False
    return True


@data_access("get_unlocks")
def get_unlocks(conn: sqlite3.Connection, user_id: str) -> list[AchievementUnlock]:
    rows = conn.execute(
        "SELECT * FROM achievement_unlocks WHERE user_id = ? ORDER BY unlocked_at ASC, id ASC",
        (user_id,),
    ).fetchall()
    return [
        AchievementUnlock(
            user_id=row['user_id'],
            achievement_id=row['achievement_id'],
            unlocked_at=from_db_time(row['unlocked_at']),
        )
        for row in rows
    ]
