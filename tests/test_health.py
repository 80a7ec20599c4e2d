"""
Unit tests for health milestones
"""
import pytest

from smokeless.analytics import (
    HEALTH_MILESTONES,
    encouragement,
    format_time_remaining,
    milestone_statuses,
)


@pytest.mark.unit
class TestMilestoneCatalog:
    """Test the static milestone list."""

    def test_ordered_by_time(self):
        minutes = [m.minutes for m in HEALTH_MILESTONES]

        assert minutes == sorted(minutes)
        assert len(HEALTH_MILESTONES) == 10
        assert HEALTH_MILESTONES[0].id == 'milestone_20min'
        assert HEALTH_MILESTONES[-1].minutes == 365 * 24 * 60

    def test_to_dict(self):
        data = HEALTH_MILESTONES[1].to_dict()

        assert data['title'] == 'Oxygen Levels Improve'
        assert data['category'] == 'respiratory'
        assert data['minutes'] == 480


@pytest.mark.unit
class TestTimeRemaining:
    """Test human-readable remaining time."""

    @pytest.mark.parametrize("minutes,expected", [
        (30, "30 minutes"),
        (59.5, "60 minutes"),
        (60, "1 hours"),
        (90, "2 hours"),
        (23 * 60, "23 hours"),
        (24 * 60, "1 days"),
        (36 * 60, "2 days"),
        (300 * 24 * 60, "300 days"),
    ])
    def test_units(self, minutes, expected):
        assert format_time_remaining(minutes) == expected


@pytest.mark.unit
class TestEncouragement:
    """Test the encouragement tiers by days since quitting."""

    @pytest.mark.parametrize("days,fragment", [
        (0, "Every minute counts"),
        (0.99, "Every minute counts"),
        (1, "first 72 hours"),
        (2.9, "first 72 hours"),
        (3, "Almost a week"),
        (7, "Each day makes you stronger"),
        (29.9, "Each day makes you stronger"),
        (30, "A month in"),
        (90, "champion"),
        (500, "champion"),
    ])
    def test_tiers(self, days, fragment):
        assert fragment in encouragement(days)


@pytest.mark.unit
class TestMilestoneStatuses:
    """Test per-milestone progress."""

    def test_nothing_elapsed(self):
        statuses = milestone_statuses(0)

        assert not any(s.achieved for s in statuses)
        assert all(s.progress == 0 for s in statuses)
        assert statuses[0].time_remaining == "20 minutes"

    def test_partial_progress(self):
        first, second = milestone_statuses(10)[:2]

        assert first.progress == 50
        assert first.time_remaining == "10 minutes"
        # 10 of 480 minutes
        assert second.progress == 2
        assert second.time_remaining == "8 hours"

    def test_reached_milestone(self):
        first = milestone_statuses(20)[0]

        assert first.achieved
        assert first.progress == 100
        assert first.time_remaining is None
        assert first.to_dict()['achieved'] is True

    def test_progress_caps_at_100(self):
        statuses = milestone_statuses(400 * 24 * 60)

        assert all(s.achieved and s.progress == 100 for s in statuses)
