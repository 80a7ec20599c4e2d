"""
Unit tests for the achievement catalog and engine
"""
import pytest

from smokeless.analytics import (
    ACHIEVEMENT_CATALOG,
    AchievementEngine,
    StreakTracker,
)
from smokeless.models import StreakState


class InMemoryUnlocks:
    """Conditional-insert writer backed by a set."""

    def __init__(self):
        self.records = {}

    def __call__(self, user_id, achievement_id, unlocked_at):
        key = (user_id, achievement_id)
        if key in self.records:
            return False
        self.records[key] = unlocked_at
        return True


@pytest.fixture
def writer():
    return InMemoryUnlocks()


@pytest.fixture
def engine(writer, clock):
    return AchievementEngine(writer, StreakTracker(clock))


@pytest.mark.unit
class TestCatalog:
    """Test the static catalog."""

    def test_definition_order(self):
        assert list(ACHIEVEMENT_CATALOG) == [
            'first_day', 'week_warrior', 'month_master',
            'first_reduction', 'half_way', 'smoke_free_day',
            'logger_10', 'logger_50', 'logger_100',
            'insight_seeker', 'coach_follower', 'morning_delay',
            'saver_10', 'saver_50', 'saver_100',
        ]

    def test_catalog_is_read_only(self):
        with pytest.raises(TypeError):
            ACHIEVEMENT_CATALOG['new'] = ACHIEVEMENT_CATALOG['first_day']

    def test_first_step_reward(self):
        first = ACHIEVEMENT_CATALOG['first_day']

        assert first.name == 'First Step'
        assert first.xp == 50
        assert first.category == 'streak'


@pytest.mark.unit
class TestAchievementEngine:
    """Test check_and_unlock idempotency and XP awards."""

    def test_first_day_unlocks_once(self, engine):
        state = StreakState(user_id="u", current_streak=1, longest_streak=1)

        first = engine.check_and_unlock("u", state)
        second = engine.check_and_unlock("u", state)

        assert [a.id for a in first] == ['first_day']
        assert second == []
        assert state.total_xp == 50

    def test_results_in_catalog_order(self, engine):
        state = StreakState(user_id="u", current_streak=7, longest_streak=7,
                            total_logs_count=10, total_money_saved=12.0)

        unlocked = engine.check_and_unlock("u", state)

        assert [a.id for a in unlocked] == ['first_day', 'week_warrior', 'logger_10', 'saver_10']
        assert state.total_xp == 50 + 200 + 50 + 100

    def test_wellness_counters(self, engine):
        state = StreakState(user_id="u", insights_requested=5, coaching_requested=9)

        unlocked = engine.check_and_unlock("u", state)

        assert [a.id for a in unlocked] == ['insight_seeker']

    def test_lost_race_awards_nothing(self, writer, engine):
        state = StreakState(user_id="u", current_streak=1, longest_streak=1)
        # Another request recorded the unlock first
        writer.records[("u", "first_day")] = None

        assert engine.check_and_unlock("u", state) == []
        assert state.total_xp == 0

    def test_unlocks_are_per_user(self, engine):
        a = StreakState(user_id="a", current_streak=1, longest_streak=1)
        b = StreakState(user_id="b", current_streak=1, longest_streak=1)

        assert len(engine.check_and_unlock("a", a)) == 1
        assert len(engine.check_and_unlock("b", b)) == 1

    def test_history_achievements_not_automatic(self, engine):
        state = StreakState(user_id="u", total_money_saved=0.0)

        unlocked = engine.check_and_unlock("u", state)

        assert not {'first_reduction', 'half_way', 'smoke_free_day', 'morning_delay'} & {a.id for a in unlocked}

    def test_explicit_unlock(self, engine):
        state = StreakState(user_id="u")

        assert engine.unlock("u", state, 'smoke_free_day') is True
        assert engine.unlock("u", state, 'smoke_free_day') is False
        assert state.total_xp == 300

    def test_unknown_achievement(self, engine):
        with pytest.raises(KeyError):
            engine.unlock("u", StreakState(user_id="u"), 'does_not_exist')

    def test_progress(self, engine):
        state = StreakState(user_id="u", current_streak=3, longest_streak=3, total_logs_count=25)

        progress = engine.progress(state)

        assert progress['first_day'] == 1.0
        assert progress['week_warrior'] == pytest.approx(3 / 7, abs=1e-3)
        assert progress['logger_50'] == 0.5
        assert progress['half_way'] == 0.0
