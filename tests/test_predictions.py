"""
Unit tests for the craving prediction engine
"""
import math

import numpy as np
import pytest
from datetime import datetime, timedelta, timezone

from smokeless.analytics import PredictionEngine, PredictionResult
from smokeless.analytics.predictions import (
    classify_confidence,
    classify_risk,
    context_predictability,
    next_likely_hour,
    qualifying_gaps,
    recent_trend_factor,
    squash,
    time_based_hint,
    time_since_last_factor,
)

from conftest import NOW


@pytest.fixture
def engine(store, clock):
    return PredictionEngine(store, clock)


@pytest.mark.unit
class TestFactors:
    """Test individual factor computations."""

    def test_single_context_is_fully_predictable(self):
        assert context_predictability(['stress'] * 8) == pytest.approx(1.0)

    def test_uniform_contexts_are_unpredictable(self):
        labels = ['stress', 'bored', 'habit', 'social', 'other'] * 2
        assert context_predictability(labels) == pytest.approx(0.0, abs=1e-9)

    def test_two_contexts(self):
        expected = 1 - 1 / math.log2(5)
        assert context_predictability(['stress', 'habit']) == pytest.approx(expected)

    def test_time_since_last(self):
        assert time_since_last_factor(4, 4) == 1.0
        assert time_since_last_factor(1, 4) == pytest.approx(0.25 ** 1.5)
        assert time_since_last_factor(12, 4) == 1.0

    def test_overnight_gaps_excluded(self):
        times = [NOW, NOW + timedelta(hours=2), NOW + timedelta(hours=30), NOW + timedelta(hours=33)]

        assert qualifying_gaps(times) == pytest.approx([2.0, 3.0])

    def test_recent_trend_neutral_without_prior(self, make_event):
        events = [make_event(hours_ago=5), make_event(hours_ago=10)]

        assert recent_trend_factor(events, NOW) == 0.5

    @pytest.mark.parametrize("recent,prior,expected", [
        (10, 10, 0.5),
        (20, 10, 1.0),
        (30, 10, 1.0),
        (2, 10, 0.0),
        (12, 10, 0.7),
    ])
    def test_recent_trend_ratio(self, make_event, recent, prior, expected):
        events = [make_event(hours_ago=24, puffs=recent), make_event(hours_ago=24 * 4, puffs=prior)]

        assert recent_trend_factor(events, NOW) == pytest.approx(expected)

    def test_recent_trend_edge_event_in_neither_window(self, make_event):
        events = [
            make_event(hours_ago=24, puffs=10),
            make_event(hours_ago=72, puffs=90),
            make_event(hours_ago=96, puffs=10),
        ]

        assert recent_trend_factor(events, NOW) == pytest.approx(0.5)

    def test_recent_trend_prior_window_end_is_exclusive(self, make_event):
        events = [make_event(hours_ago=24, puffs=20), make_event(hours_ago=72, puffs=10)]

        # On the edge: no prior puffs, neutral
        assert recent_trend_factor(events, NOW) == 0.5
        # One second later it is inside the prior window: ratio 2.0, clamped
        assert recent_trend_factor(events, NOW + timedelta(seconds=1)) == pytest.approx(1.0)

    def test_squash_centre_and_clamp(self):
        assert squash(0.5) == pytest.approx(0.5)
        assert squash(1.0) == 0.95
        assert squash(0.0) == 0.05
        for base in np.linspace(-5, 5, 41):
            assert 0.05 <= squash(base) <= 0.95

    def test_risk_levels(self):
        assert classify_risk(0.71) == "high"
        assert classify_risk(0.7) == "moderate"
        assert classify_risk(0.41) == "moderate"
        assert classify_risk(0.4) == "low"

    def test_confidence_levels(self):
        assert classify_confidence(50, 20) == "high"
        assert classify_confidence(80, 19) == "medium"
        assert classify_confidence(15, 0) == "medium"
        assert classify_confidence(14, 13) == "low"

    def test_next_hour_ties_go_to_earliest(self):
        weights = np.zeros(24)
        sessions = np.zeros(24, dtype=int)

        assert next_likely_hour(weights, sessions, current_hour=12).hour == 13

    def test_next_hour_wraps_midnight(self):
        weights = np.zeros(24)
        weights[3] = 1.0
        weights[21] = 0.9  # outside the window
        sessions = np.zeros(24, dtype=int)
        sessions[3] = 4

        best = next_likely_hour(weights, sessions, current_hour=22)

        assert best.hour == 3
        assert best.formatted == "3:00"
        assert best.historical_sessions == 4

    def test_time_hints(self):
        assert time_based_hint(7) == "morning routine"
        assert time_based_hint(12) == "lunch break"
        assert time_based_hint(18) == "after work"
        assert time_based_hint(22) == "evening wind-down"
        assert time_based_hint(15) is None


@pytest.mark.unit
class TestPredict:
    """Test PredictionEngine.predict()."""

    def test_insufficient_data(self, engine, seed, make_event):
        seed(*[make_event(hours_ago=h) for h in (1, 2, 3, 4)])
        # Older than the lookback window
        seed(make_event(hours_ago=24 * 15))

        result = engine.predict("user-1")

        assert result.probability is None
        assert result.confidence == "low"
        assert result.factors is None
        assert result.recommendation.level == "info"
        assert result.to_dict()['probability'] is None
        assert "Not enough data" in result.message

    def test_daily_noon_habit(self, engine, seed, make_event):
        # One 3-puff stress session at 12:00 on each of the last 10 days
        seed(*[make_event(hours_ago=24 * k) for k in range(1, 11)])

        result = engine.predict("user-1")
        factors = result.factors

        assert factors.hour_of_day == 1.0
        # Wednesday got one session, Sun/Mon/Tue got two
        assert factors.day_of_week == pytest.approx(0.5)
        # Every gap is 24h, so the default 4h average applies
        assert factors.time_since_last == 1.0
        assert factors.context_predictability == pytest.approx(1.0)
        # recent: 24h and 48h ago (6 puffs); prior: 96h and 120h ago (6 puffs).
        # The session exactly 72h ago sits on the edge and counts in neither.
        assert factors.recent_trend == pytest.approx(0.5)

        assert result.probability == pytest.approx(squash(factors.weighted_sum()))
        assert result.risk_level == "high"
        assert result.confidence == "low"
        assert result.timing['average_gap_hours'] == 4.0
        assert result.timing['peak_hour'] == 12
        assert result.most_common_trigger.context == "stress"
        assert result.most_common_trigger.share == 1.0
        assert result.time_based_hint == "lunch break"
        assert result.recommendation.urgent_action == "Take 5 deep breaths immediately"
        assert result.historical_context == {
            'total_data_points': 10,
            'days_of_data': 14,
            'average_per_day': round(30 / 14, 1),
        }

    def test_quiet_hour_is_low_risk(self, engine, seed, make_event, clock):
        # Sessions only at 20:00, checked at 08:00 right after a session
        seed(*[make_event(at=datetime(2026, 3, d, 20, 0, tzinfo=timezone.utc), context=c)
               for d, c in zip(range(3, 11), ['stress', 'bored', 'habit', 'social', 'other'] * 2)])
        seed(make_event(at=datetime(2026, 3, 11, 7, 55, tzinfo=timezone.utc), context="other"))
        clock.moment = datetime(2026, 3, 11, 8, 0, tzinfo=timezone.utc)

        result = engine.predict("user-1")

        assert result.factors.hour_of_day == 0.0
        assert result.risk_level == "low"
        assert result.recommendation.urgent_action is None
        assert result.next_likely_time is not None

    def test_probability_bounds(self, engine, seed, make_event):
        seed(*[make_event(hours_ago=h * 0.5, puffs=100) for h in range(60)])

        result = engine.predict("user-1")

        assert 0.05 <= result.probability <= 0.95

    def test_to_dict_uses_percentages(self, engine, seed, make_event):
        seed(*[make_event(hours_ago=24 * k) for k in range(1, 8)])

        data = engine.predict("user-1").to_dict()

        assert isinstance(data['probability'], int)
        assert 5 <= data['probability'] <= 95
        assert data['factors']['hour_of_day'] == {'score': 100, 'weight': '40%'}
        assert data['next_likely_time']['formatted'].endswith(":00")
        assert data['triggers']['most_common']['percentage'] == 100

    def test_insufficient_result_constructor(self):
        result = PredictionResult.insufficient_data()

        assert not result.has_prediction
        assert result.recommendation.actions[0][0] == 'Start logging your intake'


@pytest.mark.unit
class TestHeatmap:
    """Test the craving heat map."""

    def test_hotspots(self, engine, seed, make_event):
        # Wednesday 2026-03-04 09:00 and Monday 2026-03-09 18:00
        seed(
            make_event(at=datetime(2026, 3, 4, 9, 0, tzinfo=timezone.utc), puffs=10),
            make_event(at=datetime(2026, 3, 9, 18, 0, tzinfo=timezone.utc), puffs=6),
            make_event(at=datetime(2026, 3, 9, 7, 0, tzinfo=timezone.utc), puffs=2),
        )

        heat = engine.craving_heatmap("user-1")

        assert heat['heatmap'][2][9] == 100
        assert heat['heatmap'][0][18] == 60
        assert heat['heatmap'][0][7] == 20
        assert [s['formatted'] for s in heat['hotspots']] == ["Wednesday at 9:00", "Monday at 18:00"]
        assert heat['days'][0] == "Mon"
        assert len(heat['hours']) == 24

    def test_empty_heatmap(self, engine):
        heat = engine.craving_heatmap("user-1")

        assert heat['hotspots'] == []
        assert all(v == 0 for row in heat['heatmap'] for v in row)
