"""
Unit tests for windowed usage aggregation
"""
import pytest
from datetime import date, datetime, timezone

from smokeless.analytics import (
    AnalyticsAggregator,
    linear_trend,
    classify_trend,
    trend_message,
)
from smokeless.analytics.aggregation import top_context


def at(day: int, hour: int, month: int = 3) -> datetime:
    return datetime(2026, month, day, hour, 0, tzinfo=timezone.utc)


@pytest.fixture
def aggregator(store, clock):
    return AnalyticsAggregator(store, clock)


@pytest.mark.unit
class TestLinearTrend:
    """Test OLS slope helpers."""

    def test_flat_series(self):
        assert linear_trend([5, 5, 5, 5]) == 0.0

    def test_perfect_line(self):
        assert linear_trend([1, 3, 5, 7]) == pytest.approx(2.0)

    def test_too_few_points(self):
        assert linear_trend([]) == 0.0
        assert linear_trend([4]) == 0.0

    def test_classification(self):
        assert classify_trend(0.49) == "stable"
        assert classify_trend(-0.49) == "stable"
        assert classify_trend(0.5) == "increasing"
        assert classify_trend(-1.0) == "decreasing"
        assert classify_trend(3.0, threshold=3.5) == "stable"

    def test_messages(self):
        assert "significantly" in trend_message(-3)
        assert "trending down" in trend_message(-1)
        assert "stable" in trend_message(0)
        assert "slightly increasing" in trend_message(1)
        assert "reviewing your triggers" in trend_message(5)


@pytest.mark.unit
class TestDailyStats:
    """Test single-day windows."""

    def test_hourly_sum_equals_total(self, aggregator, seed, make_event):
        seed(
            make_event(at=at(11, 8), puffs=3, context="habit"),
            make_event(at=at(11, 8), puffs=2, intensity="low"),
            make_event(at=at(11, 22), puffs=6, intensity="high", context="social"),
            make_event(at=at(10, 23), puffs=50),  # previous day
        )

        stats = aggregator.daily_stats("user-1", date(2026, 3, 11))

        assert stats.total_puffs == 11
        assert stats.total_events == 3
        assert sum(stats.hourly_puffs) == stats.total_puffs
        assert stats.hourly_puffs[8] == 5
        assert stats.peak_hour == 22
        assert stats.context_counts == {'stress': 1, 'bored': 0, 'habit': 1, 'social': 1, 'other': 0}
        assert stats.intensity_puffs == {'low': 2, 'medium': 3, 'high': 6}
        assert stats.first_event_at.hour == 8
        assert stats.last_event_at.hour == 22

    def test_day_boundaries_inclusive(self, aggregator, seed, make_event):
        seed(
            make_event(at=datetime(2026, 3, 11, 0, 0, tzinfo=timezone.utc)),
            make_event(at=datetime(2026, 3, 11, 23, 59, 59, 999999, tzinfo=timezone.utc)),
            make_event(at=datetime(2026, 3, 12, 0, 0, tzinfo=timezone.utc)),
        )

        assert aggregator.daily_stats("user-1", date(2026, 3, 11)).total_events == 2

    def test_empty_day(self, aggregator):
        stats = aggregator.daily_stats("user-1")

        assert stats.date == date(2026, 3, 11)
        assert stats.total_puffs == 0
        assert stats.hourly_puffs == [0] * 24
        assert stats.peak_hour is None
        assert stats.first_event_at is None
        assert stats.to_dict()['date'] == '2026-03-11'


@pytest.mark.unit
class TestWeeklyStats:
    """Test 7-day windows."""

    def test_empty_week_is_zero_and_stable(self, aggregator):
        stats = aggregator.weekly_stats("user-1")

        assert stats.week_start == date(2026, 3, 9)  # Monday
        assert stats.week_end == date(2026, 3, 15)
        assert stats.total_puffs == 0
        assert [d.total_puffs for d in stats.daily_data] == [0] * 7
        assert stats.trend.direction == "stable"
        assert stats.trend.slope == 0.0

    def test_rising_week(self, aggregator, seed, make_event):
        seed(*[make_event(at=at(9 + i, 10), puffs=2 + 2 * i) for i in range(7)])

        stats = aggregator.weekly_stats("user-1", date(2026, 3, 9))

        assert [d.total_puffs for d in stats.daily_data] == [2, 4, 6, 8, 10, 12, 14]
        assert stats.daily_data[0].day_of_week == "Monday"
        assert stats.trend.slope == pytest.approx(2.0)
        assert stats.trend.direction == "increasing"
        assert stats.daily_average == pytest.approx(56 / 7)

    def test_missing_days_are_zero(self, aggregator, seed, make_event):
        seed(make_event(at=at(9, 10), puffs=4), make_event(at=at(15, 10), puffs=4))

        stats = aggregator.weekly_stats("user-1", date(2026, 3, 9))

        assert [d.events for d in stats.daily_data] == [1, 0, 0, 0, 0, 0, 1]
        assert stats.context_puffs['stress'] == 8

    def test_to_dict(self, aggregator):
        data = aggregator.weekly_stats("user-1").to_dict()

        assert data['week_start'] == '2026-03-09'
        assert data['trend']['direction'] == 'stable'
        assert len(data['daily_data']) == 7


@pytest.mark.unit
class TestMonthlyStats:
    """Test calendar-month windows."""

    def test_week_buckets_clip_to_month_end(self, aggregator, seed, make_event):
        seed(make_event(at=at(1, 9)), make_event(at=at(30, 9), puffs=5))

        stats = aggregator.monthly_stats("user-1", 2026, 3)

        assert stats.days_in_month == 31
        assert len(stats.weekly_data) == 5
        assert stats.weekly_data[-1].week_start == date(2026, 3, 29)
        assert stats.weekly_data[-1].week_end == date(2026, 3, 31)
        assert stats.weekly_data[0].total_puffs == 3
        assert stats.weekly_data[-1].total_puffs == 5
        assert stats.days_with_logs == 2
        assert stats.month == "March 2026"

    def test_february_has_four_buckets(self, aggregator):
        stats = aggregator.monthly_stats("user-1", 2026, 2)

        assert len(stats.weekly_data) == 4
        assert stats.total_puffs == 0
        assert stats.trend.direction == "stable"

    def test_heatmap(self, aggregator, seed, make_event):
        # 2026-03-11 is a Wednesday
        seed(make_event(at=at(11, 21), puffs=4), make_event(at=at(11, 21), puffs=1))

        stats = aggregator.monthly_stats("user-1", 2026, 3)

        assert len(stats.heatmap) == 7
        assert all(len(row) == 24 for row in stats.heatmap)
        assert stats.heatmap[2][21] == 5
        assert sum(map(sum, stats.heatmap)) == stats.total_puffs

    def test_monthly_threshold_is_per_week(self, aggregator, seed, make_event):
        # Weekly totals 3, 6, 9, 12, 15: 3 puffs/week is under the 3.5 threshold
        seed(
            make_event(at=at(1, 9), puffs=3),
            make_event(at=at(8, 9), puffs=6),
            make_event(at=at(15, 9), puffs=9),
            make_event(at=at(22, 9), puffs=12),
            make_event(at=at(29, 9), puffs=15),
        )

        stats = aggregator.monthly_stats("user-1", 2026, 3)

        assert stats.trend.slope == pytest.approx(3.0)
        assert stats.trend.direction == "stable"


@pytest.mark.unit
class TestPatternSummary:
    """Test the digest used by coaching."""

    def test_summary(self, aggregator, seed, make_event):
        seed(
            make_event(hours_ago=30, puffs=6, intensity="high"),
            make_event(hours_ago=20, puffs=4, context="habit"),
            make_event(hours_ago=10, puffs=2, context="habit"),
            make_event(hours_ago=2, puffs=2, intensity="high"),
        )

        summary = aggregator.pattern_summary("user-1", days=7)

        assert summary.total_puffs == 14
        assert summary.total_events == 4
        assert summary.daily_average == 2.0
        assert summary.top_context == "stress"  # tie with habit, stress listed first
        assert summary.high_intensity_share == 0.5
        assert summary.trend == "decreasing"

    def test_empty_summary(self, aggregator):
        summary = aggregator.pattern_summary("user-1")

        assert summary.total_events == 0
        assert summary.peak_hour is None
        assert summary.top_context is None
        assert summary.trend == "stable"

    def test_top_context_tie_break(self):
        assert top_context({'stress': 0, 'bored': 2, 'habit': 2, 'social': 0, 'other': 0}) == 'bored'
        assert top_context({'stress': 0, 'bored': 0, 'habit': 0, 'social': 0, 'other': 0}) is None
