"""
Craving Prediction Module
Estimates the probability of an imminent craving from the last two weeks of
intake events. Five normalized factors are combined by a fixed weighted sum
and squashed through a logistic curve. No trained model, no persisted state.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

import numpy as np
import pandas as pd

from ..clock import Clock
from ..config import (
    CONTEXTS,
    PREDICTION_LOOKBACK_DAYS,
    PREDICTION_MIN_EVENTS,
    FACTOR_WEIGHTS,
    OVERNIGHT_GAP_HOURS,
    DEFAULT_AVG_GAP_HOURS,
    GAP_EXPONENT,
    SIGMOID_STEEPNESS,
    PROBABILITY_FLOOR,
    PROBABILITY_CEILING,
    HIGH_RISK_THRESHOLD,
    MODERATE_RISK_THRESHOLD,
    HIGH_CONFIDENCE_MIN_EVENTS,
    HIGH_CONFIDENCE_MIN_GAPS,
    LOW_CONFIDENCE_MAX_EVENTS,
    UPCOMING_HOURS_HORIZON,
    TREND_WINDOW_DAYS,
    TREND_RATIO_MIN,
    TREND_RATIO_MAX,
    NEUTRAL_TREND_FACTOR,
    HOTSPOT_MIN_INTENSITY,
    MAX_HOTSPOTS,
)
from ..logger import setup_logger, log_event_stats
from ..models import Event
from ..storage import EventStore, events_to_frame
from .aggregation import WEEKDAY_NAMES, weekday_hour_grid

logger = setup_logger(__name__)

INSUFFICIENT_DATA_MESSAGE = "Not enough data for accurate prediction. Keep logging!"


@dataclass(frozen=True)
class Recommendation:
    """Fixed coping advice keyed by risk level."""
    level: str
    icon: Optional[str]
    title: Optional[str]
    message: str
    urgent_action: Optional[str]
    actions: tuple[tuple[str, str], ...]  # (action, duration)
    affirmation: Optional[str]

    def to_dict(self) -> dict:
        return {
            'level': self.level,
            'icon': self.icon,
            'title': self.title,
            'message': self.message,
            'urgent_action': self.urgent_action,
            'actions': [{'action': a, 'duration': d} for a, d in self.actions],
            'affirmation': self.affirmation,
        }


RECOMMENDATIONS = {
    'high': Recommendation(
        level='high',
        icon='🔴',
        title='High Craving Alert',
        message='Strong craving likely right now. Use your coping techniques!',
        urgent_action='Take 5 deep breaths immediately',
        actions=(
            ('Deep breathing (4-7-8 technique)', '2 min'),
            ('Drink a full glass of water', '1 min'),
            ('Go for a quick walk', '5 min'),
            ('Text your accountability partner', '1 min'),
        ),
        affirmation="This craving will pass in 3-5 minutes. You've got this!",
    ),
    'moderate': Recommendation(
        level='moderate',
        icon='🟡',
        title='Moderate Risk',
        message='Craving may hit soon. Stay aware and prepared.',
        urgent_action='Have water or a healthy snack ready',
        actions=(
            ('Prepare a distraction activity', 'now'),
            ('Review your motivations', '2 min'),
            ('Plan your next hour', '1 min'),
        ),
        affirmation="You're in control. Plan ahead and stay strong!",
    ),
    'low': Recommendation(
        level='low',
        icon='🟢',
        title='Low Risk Window',
        message='Great time to build positive habits!',
        urgent_action=None,
        actions=(
            ('Practice mindfulness', '5 min'),
            ('Light exercise or stretching', '10 min'),
            ('Connect with supportive friends', 'anytime'),
        ),
        affirmation="Use this low-risk time to strengthen your resolve!",
    ),
}

INSUFFICIENT_DATA_RECOMMENDATION = Recommendation(
    level='info',
    icon=None,
    title=None,
    message='Log at least 5 entries to enable predictions.',
    urgent_action=None,
    actions=(
        ('Start logging your intake', 'now'),
        ('Be consistent with tracking', 'daily'),
    ),
    affirmation=None,
)


@dataclass
class FactorScores:
    """The five prediction factors, each in [0, 1]."""
    hour_of_day: float
    day_of_week: float
    time_since_last: float
    context_predictability: float
    recent_trend: float

    def weighted_sum(self) -> float:
        return sum(getattr(self, name) * weight for name, weight in FACTOR_WEIGHTS.items())

    def to_dict(self) -> dict:
        return {
            name: {'score': round(getattr(self, name) * 100), 'weight': f"{round(weight * 100)}%"}
            for name, weight in FACTOR_WEIGHTS.items()
        }


@dataclass
class NextLikelyTime:
    hour: int
    weight: float
    historical_sessions: int

    @property
    def formatted(self) -> str:
        return f"{self.hour}:00"

    def to_dict(self) -> dict:
        return {
            'hour': self.hour,
            'formatted': self.formatted,
            'probability': round(self.weight * 100),
            'historical_sessions': self.historical_sessions,
        }


@dataclass
class TriggerInsight:
    context: str
    frequency: int
    share: float  # of all events in the window


@dataclass
class PredictionResult:
    """
    Output of PredictionEngine.predict().

    When fewer than PREDICTION_MIN_EVENTS events exist, only probability (None),
    confidence ("low"), message and recommendation are populated.
    """
    probability: Optional[float]
    confidence: str
    recommendation: Recommendation
    risk_level: Optional[str] = None
    message: Optional[str] = None
    factors: Optional[FactorScores] = None
    next_likely_time: Optional[NextLikelyTime] = None
    most_common_trigger: Optional[TriggerInsight] = None
    time_based_hint: Optional[str] = None
    timing: dict = field(default_factory=dict)
    historical_context: dict = field(default_factory=dict)

    @classmethod
    def insufficient_data(cls) -> 'PredictionResult':
        return cls(
            probability=None,
            confidence='low',
            message=INSUFFICIENT_DATA_MESSAGE,
            recommendation=INSUFFICIENT_DATA_RECOMMENDATION,
        )

    @property
    def has_prediction(self) -> bool:
        return self.probability is not None

    def to_dict(self) -> dict:
        """API shape: probability and factor scores as rounded percentages."""
        if not self.has_prediction:
            return {
                'probability': None,
                'confidence': self.confidence,
                'message': self.message,
                'next_likely_time': None,
                'recommendation': self.recommendation.to_dict(),
            }

        trigger = self.most_common_trigger
        return {
            'probability': round(self.probability * 100),
            'risk_level': self.risk_level,
            'confidence': self.confidence,
            'factors': self.factors.to_dict(),
            'timing': self.timing,
            'next_likely_time': self.next_likely_time.to_dict() if self.next_likely_time else None,
            'triggers': {
                'most_common': {
                    'context': trigger.context,
                    'frequency': trigger.frequency,
                    'percentage': round(trigger.share * 100),
                } if trigger else None,
                'time_based_hint': self.time_based_hint,
            },
            'recommendation': self.recommendation.to_dict(),
            'historical_context': self.historical_context,
        }


# ============================================================================
# Factors
# ============================================================================

def normalized_buckets(keys: pd.Series, puffs: pd.Series, size: int) -> np.ndarray:
    """Puff totals per bucket divided by max(largest bucket, 1)."""
    totals = puffs.groupby(keys).sum().reindex(range(size), fill_value=0).to_numpy(dtype=float)
    return totals / max(totals.max(), 1.0)


def qualifying_gaps(times: list[datetime]) -> list[float]:
    """Consecutive inter-event gaps in hours, excluding overnight pauses."""
    gaps = []
    for previous, current in zip(times, times[1:]):
        gap = (current - previous).total_seconds() / 3600
        if gap < OVERNIGHT_GAP_HOURS:
            gaps.append(gap)
    return gaps


def time_since_last_factor(hours_since_last: float, avg_gap: float) -> float:
    if avg_gap <= 0:
        return 1.0
    return min(1.0, (max(hours_since_last, 0.0) / avg_gap) ** GAP_EXPONENT)


def context_predictability(contexts: list[str]) -> float:
    """1 - Shannon entropy of observed labels, normalized by log2(number of contexts)."""
    if not contexts:
        return 0.0
    counts = pd.Series(contexts).value_counts().to_numpy(dtype=float)
    p = counts / counts.sum()
    entropy = float(-np.sum(p * np.log2(p)))
    return 1.0 - entropy / math.log2(len(CONTEXTS))


def recent_trend_factor(events: list[Event], now: datetime) -> float:
    """
    Puffs in (now-3d, now] over puffs in (now-6d, now-3d), clamped to
    [0.5, 1.5] and shifted to [0, 1]. Neutral when the prior window is empty.
    """
    recent_start = now - timedelta(days=TREND_WINDOW_DAYS)
    prior_start = now - timedelta(days=2 * TREND_WINDOW_DAYS)

    recent = sum(e.puffs for e in events if recent_start < e.occurred_at <= now)
    # An event exactly at the window edge belongs to neither window
    prior = sum(e.puffs for e in events if prior_start < e.occurred_at < recent_start)

    if prior == 0:
        return NEUTRAL_TREND_FACTOR
    ratio = min(TREND_RATIO_MAX, max(TREND_RATIO_MIN, recent / prior))
    return (ratio - TREND_RATIO_MIN) / (TREND_RATIO_MAX - TREND_RATIO_MIN)


def squash(base: float) -> float:
    """Logistic squashing around 0.5, clamped so the model never claims certainty."""
    p = 1 / (1 + math.exp(-SIGMOID_STEEPNESS * (base - 0.5)))
    return min(PROBABILITY_CEILING, max(PROBABILITY_FLOOR, p))


def classify_risk(probability: float) -> str:
    if probability > HIGH_RISK_THRESHOLD:
        return 'high'
    if probability > MODERATE_RISK_THRESHOLD:
        return 'moderate'
    return 'low'


def classify_confidence(n_events: int, n_gaps: int) -> str:
    if n_events >= HIGH_CONFIDENCE_MIN_EVENTS and n_gaps >= HIGH_CONFIDENCE_MIN_GAPS:
        return 'high'
    if n_events < LOW_CONFIDENCE_MAX_EVENTS:
        return 'low'
    return 'medium'


def next_likely_hour(hour_weights: np.ndarray, hour_sessions: np.ndarray, current_hour: int) -> NextLikelyTime:
    """Heaviest of the next UPCOMING_HOURS_HORIZON hours; ties go to the earliest."""
    best = None
    for offset in range(1, UPCOMING_HOURS_HORIZON + 1):
        hour = (current_hour + offset) % 24
        if best is None or hour_weights[hour] > hour_weights[best]:
            best = hour
    return NextLikelyTime(
        hour=best,
        weight=float(hour_weights[best]),
        historical_sessions=int(hour_sessions[best]),
    )


def time_based_hint(hour: int) -> Optional[str]:
    if 6 <= hour < 10:
        return 'morning routine'
    if 12 <= hour < 14:
        return 'lunch break'
    if 17 <= hour < 19:
        return 'after work'
    if hour >= 21:
        return 'evening wind-down'
    return None


def most_common_trigger(contexts: list[str]) -> Optional[TriggerInsight]:
    if not contexts:
        return None
    counts = {c: contexts.count(c) for c in CONTEXTS}
    top = max(CONTEXTS, key=lambda c: counts[c])
    return TriggerInsight(context=top, frequency=counts[top], share=counts[top] / len(contexts))


# ============================================================================
# Engine
# ============================================================================

class PredictionEngine:
    """Craving probability from the trailing 14 days of a user's events."""

    def __init__(self, store: EventStore, clock: Optional[Clock] = None):
        self.store = store
        self.clock = clock or Clock()

    def _window(self, user_id: str) -> tuple[datetime, list[Event]]:
        now = self.clock.now()
        events = self.store.find(user_id, start=now - timedelta(days=PREDICTION_LOOKBACK_DAYS), end=now)
        return now, events

    def predict(self, user_id: str) -> PredictionResult:
        now, events = self._window(user_id)
        log_event_stats(events, logger, name=f"Prediction window for {user_id}")

        if len(events) < PREDICTION_MIN_EVENTS:
            return PredictionResult.insufficient_data()

        df = events_to_frame(events, self.clock)
        current_hour = now.hour
        current_weekday = now.weekday()

        hour_weights = normalized_buckets(df['hour'], df['puffs'], 24)
        day_weights = normalized_buckets(df['weekday'], df['puffs'], 7)
        hour_sessions = df.groupby('hour').size().reindex(range(24), fill_value=0).to_numpy()

        hours_since_last = (now - events[-1].occurred_at).total_seconds() / 3600
        gaps = qualifying_gaps([e.occurred_at for e in events])
        avg_gap = float(np.mean(gaps)) if gaps else DEFAULT_AVG_GAP_HOURS
        contexts = [e.context.value for e in events]

        factors = FactorScores(
            hour_of_day=float(hour_weights[current_hour]),
            day_of_week=float(day_weights[current_weekday]),
            time_since_last=time_since_last_factor(hours_since_last, avg_gap),
            context_predictability=context_predictability(contexts),
            recent_trend=recent_trend_factor(events, now),
        )
        probability = squash(factors.weighted_sum())
        risk_level = classify_risk(probability)

        hourly_totals = df.groupby('hour')['puffs'].sum().reindex(range(24), fill_value=0)
        total_puffs = sum(e.puffs for e in events)

        logger.info(
            f"Prediction for {user_id}: p={probability:.2f} ({risk_level}), "
            f"{len(events)} events, {len(gaps)} gaps"
        )

        return PredictionResult(
            probability=probability,
            risk_level=risk_level,
            confidence=classify_confidence(len(events), len(gaps)),
            factors=factors,
            next_likely_time=next_likely_hour(hour_weights, hour_sessions, current_hour),
            most_common_trigger=most_common_trigger(contexts),
            time_based_hint=time_based_hint(current_hour),
            recommendation=RECOMMENDATIONS[risk_level],
            timing={
                'hours_since_last_intake': round(hours_since_last, 1),
                'average_gap_hours': round(avg_gap, 1),
                'current_hour': current_hour,
                'peak_hour': int(np.argmax(hourly_totals.to_numpy())),
            },
            historical_context={
                'total_data_points': len(events),
                'days_of_data': PREDICTION_LOOKBACK_DAYS,
                'average_per_day': round(total_puffs / PREDICTION_LOOKBACK_DAYS, 1),
            },
        )

    def craving_heatmap(self, user_id: str) -> dict:
        """
        Weekday x hour puff grid over the lookback window, scaled to 0-100,
        with the strongest cells (> 50) listed as hotspots.
        """
        _, events = self._window(user_id)
        grid = np.array(weekday_hour_grid(events_to_frame(events, self.clock)), dtype=float)
        scaled = np.rint(grid / max(grid.max(), 1.0) * 100).astype(int)

        hotspots = [
            {
                'day': WEEKDAY_NAMES[day],
                'hour': hour,
                'formatted': f"{WEEKDAY_NAMES[day]} at {hour}:00",
                'intensity': int(scaled[day, hour]),
            }
            for day in range(7)
            for hour in range(24)
            if scaled[day, hour] > HOTSPOT_MIN_INTENSITY
        ]
        hotspots.sort(key=lambda spot: spot['intensity'], reverse=True)

        return {
            'heatmap': scaled.tolist(),
            'days': [name[:3] for name in WEEKDAY_NAMES],
            'hours': [f"{h}:00" for h in range(24)],
            'hotspots': hotspots[:MAX_HOTSPOTS],
        }
