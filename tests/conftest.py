"""
Pytest configuration and fixtures
"""
import os
import sys
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Keep test logs out of the project tree
os.environ.setdefault("SMOKELESS_LOG_DIR", tempfile.mkdtemp(prefix="smokeless-logs-"))

from smokeless.clock import FixedClock  # noqa: E402
from smokeless.models import Event  # noqa: E402
from smokeless.storage import EventStore  # noqa: E402

# Wednesday
NOW = datetime(2026, 3, 11, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def temp_db():
    """Create temporary database for testing."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    yield db_path

    # Cleanup
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def clock():
    """Clock pinned to Wednesday 2026-03-11 12:00 UTC."""
    return FixedClock(NOW, tz="UTC")


@pytest.fixture
def store(temp_db):
    return EventStore(temp_db)


@pytest.fixture
def make_event():
    """Factory for events relative to NOW."""
    def _make(
        hours_ago: float = 0,
        puffs: int = 3,
        intensity: str = "medium",
        context: str = "stress",
        user_id: str = "user-1",
        at: datetime = None,
        **kwargs,
    ) -> Event:
        return Event(
            user_id=user_id,
            puffs=puffs,
            intensity=intensity,
            context=context,
            occurred_at=at or NOW - timedelta(hours=hours_ago),
            **kwargs,
        )
    return _make


@pytest.fixture
def seed(store, make_event):
    """Insert events into the temporary store and return them with IDs."""
    def _seed(*events: Event) -> list[Event]:
        return [store.insert(e) for e in events]
    return _seed
