"""
Usage Aggregation Module
Turns raw intake events into windowed statistics: hourly, daily and weekly
buckets, context/intensity breakdowns, heat maps and linear trends.
All reads, no side effects.
"""

import calendar
from dataclasses import dataclass, field, asdict
from datetime import date, datetime, timedelta
from typing import Optional

import numpy as np
import pandas as pd

from ..clock import Clock
from ..config import (
    CONTEXTS,
    INTENSITIES,
    WEEKLY_STABLE_SLOPE,
    MONTHLY_STABLE_SLOPE,
    PATTERN_SUMMARY_DAYS,
)
from ..logger import setup_logger, log_event_stats
from ..storage import EventStore, events_to_frame

logger = setup_logger(__name__)

WEEKDAY_NAMES = ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday']


def _serialize(value):
    """Make dataclass dicts JSON friendly."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _serialize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_serialize(v) for v in value]
    return value


class _Serializable:
    def to_dict(self) -> dict:
        return _serialize(asdict(self))


@dataclass
class Trend(_Serializable):
    """Direction and OLS slope of a series of bucket totals."""
    direction: str  # "increasing", "decreasing", "stable"
    slope: float
    message: str


@dataclass
class DayBucket(_Serializable):
    date: date
    day_of_week: str
    total_puffs: int
    events: int


@dataclass
class WeekBucket(_Serializable):
    week_start: date
    week_end: date
    total_puffs: int
    events: int


@dataclass
class DailyStats(_Serializable):
    date: date
    total_puffs: int
    total_events: int
    hourly_puffs: list[int]
    context_counts: dict[str, int]
    intensity_puffs: dict[str, int]
    peak_hour: Optional[int]
    first_event_at: Optional[datetime]
    last_event_at: Optional[datetime]


@dataclass
class WeeklyStats(_Serializable):
    week_start: date
    week_end: date
    total_puffs: int
    total_events: int
    daily_average: float
    daily_data: list[DayBucket]
    hourly_puffs: list[int]
    context_counts: dict[str, int]
    context_puffs: dict[str, int]
    intensity_puffs: dict[str, int]
    first_event_at: Optional[datetime]
    last_event_at: Optional[datetime]
    trend: Trend


@dataclass
class MonthlyStats(_Serializable):
    month: str
    month_start: date
    month_end: date
    total_puffs: int
    total_events: int
    daily_average: float
    weekly_data: list[WeekBucket]
    hourly_puffs: list[int]
    context_counts: dict[str, int]
    intensity_puffs: dict[str, int]
    heatmap: list[list[int]]  # [weekday][hour], Monday = 0
    days_with_logs: int
    days_in_month: int
    first_event_at: Optional[datetime]
    last_event_at: Optional[datetime]
    trend: Trend


@dataclass
class PatternSummary(_Serializable):
    """Compact pattern digest consumed by the coaching layer."""
    days: int
    total_puffs: int
    total_events: int
    daily_average: float
    peak_hour: Optional[int]
    top_context: Optional[str]
    context_counts: dict[str, int] = field(default_factory=dict)
    intensity_puffs: dict[str, int] = field(default_factory=dict)
    high_intensity_share: float = 0.0
    trend: str = "stable"


# ============================================================================
# Trend estimation
# ============================================================================

def linear_trend(values: list[float]) -> float:
    """
    Ordinary least squares slope of bucket index vs bucket value.

    Returns 0.0 for fewer than two points.
    """
    if len(values) < 2:
        return 0.0

    x = np.arange(len(values), dtype=float)
    y = np.asarray(values, dtype=float)
    x_dev = x - x.mean()
    denominator = np.sum(x_dev ** 2)
    if denominator == 0:
        return 0.0
    return float(np.sum(x_dev * (y - y.mean())) / denominator)


def classify_trend(slope: float, threshold: float = WEEKLY_STABLE_SLOPE) -> str:
    if abs(slope) < threshold:
        return "stable"
    return "increasing" if slope > 0 else "decreasing"


def trend_message(slope_per_day: float) -> str:
    """Human-readable message for a slope in puffs per day."""
    if slope_per_day < -2:
        return "Great progress! Your usage is decreasing significantly."
    if slope_per_day < -0.5:
        return "Good job! Your usage is trending down."
    if slope_per_day < 0.5:
        return "Your usage is stable this period."
    if slope_per_day < 2:
        return "Your usage is slightly increasing. Stay mindful!"
    return "Your usage is increasing. Consider reviewing your triggers."


def build_trend(values: list[float], threshold: float, bucket_days: int = 1) -> Trend:
    slope = linear_trend(values)
    return Trend(
        direction=classify_trend(slope, threshold),
        slope=round(slope, 4),
        message=trend_message(slope / bucket_days),
    )


# ============================================================================
# Bucket helpers (missing buckets count as zero)
# ============================================================================

def hourly_puffs(df: pd.DataFrame) -> list[int]:
    if df.empty:
        return [0] * 24
    return [int(v) for v in df.groupby('hour')['puffs'].sum().reindex(range(24), fill_value=0)]


def context_counts(df: pd.DataFrame) -> dict[str, int]:
    counts = df['context'].value_counts() if not df.empty else {}
    return {c: int(counts.get(c, 0)) for c in CONTEXTS}


def context_puffs(df: pd.DataFrame) -> dict[str, int]:
    sums = df.groupby('context')['puffs'].sum() if not df.empty else {}
    return {c: int(sums.get(c, 0)) for c in CONTEXTS}


def intensity_puffs(df: pd.DataFrame) -> dict[str, int]:
    sums = df.groupby('intensity')['puffs'].sum() if not df.empty else {}
    return {i: int(sums.get(i, 0)) for i in INTENSITIES}


def weekday_hour_grid(df: pd.DataFrame) -> list[list[int]]:
    """7x24 puff totals indexed [weekday][hour]."""
    if df.empty:
        return [[0] * 24 for _ in range(7)]
    grid = (
        df.groupby(['weekday', 'hour'])['puffs'].sum()
        .unstack(fill_value=0)
        .reindex(index=range(7), columns=range(24), fill_value=0)
    )
    return [[int(v) for v in row] for row in grid.values]


def peak_hour(hourly: list[int]) -> Optional[int]:
    if not any(hourly):
        return None
    return int(np.argmax(hourly))


def top_context(counts: dict[str, int]) -> Optional[str]:
    """Most frequent context; ties go to the earlier label in CONTEXTS."""
    if not any(counts.values()):
        return None
    return max(CONTEXTS, key=lambda c: counts.get(c, 0))


def _first_last(df: pd.DataFrame) -> tuple[Optional[datetime], Optional[datetime]]:
    if df.empty:
        return None, None
    return df['occurred_at'].min().to_pydatetime(), df['occurred_at'].max().to_pydatetime()


# ============================================================================
# Aggregator
# ============================================================================

class AnalyticsAggregator:
    """
    Windowed usage statistics for a user.

    Windows are calendar days in the clock's reference timezone with inclusive
    start and end instants.
    """

    def __init__(self, store: EventStore, clock: Optional[Clock] = None):
        self.store = store
        self.clock = clock or Clock()

    def _load(self, user_id: str, start: datetime, end: datetime) -> pd.DataFrame:
        events = self.store.find(user_id, start, end)
        log_event_stats(events, logger, name=f"Window {start.date()}..{end.date()} for {user_id}")
        return events_to_frame(events, self.clock)

    def daily_stats(self, user_id: str, day: Optional[date] = None) -> DailyStats:
        """Statistics for a single calendar day (defaults to today)."""
        day = day or self.clock.today()
        df = self._load(user_id, *self.clock.day_bounds(day))

        hourly = hourly_puffs(df)
        first, last = _first_last(df)

        return DailyStats(
            date=day,
            total_puffs=int(df['puffs'].sum()) if not df.empty else 0,
            total_events=len(df),
            hourly_puffs=hourly,
            context_counts=context_counts(df),
            intensity_puffs=intensity_puffs(df),
            peak_hour=peak_hour(hourly),
            first_event_at=first,
            last_event_at=last,
        )

    def weekly_stats(self, user_id: str, week_start: Optional[date] = None) -> WeeklyStats:
        """
        Statistics for 7 consecutive days starting at week_start.

        Defaults to the Monday of the current week. The trend is the OLS slope
        over the 7 daily totals.
        """
        week_start = week_start or self.clock.start_of_week()
        week_end = week_start + timedelta(days=6)
        df = self._load(user_id, *self.clock.week_bounds(week_start))

        days = [week_start + timedelta(days=i) for i in range(7)]
        if df.empty:
            per_day = pd.DataFrame({'sum': 0, 'count': 0}, index=days)
        else:
            per_day = df.groupby('date')['puffs'].agg(['sum', 'count']).reindex(days, fill_value=0)

        daily_data = [
            DayBucket(
                date=d,
                day_of_week=WEEKDAY_NAMES[d.weekday()],
                total_puffs=int(per_day.loc[d, 'sum']),
                events=int(per_day.loc[d, 'count']),
            )
            for d in days
        ]
        total = sum(b.total_puffs for b in daily_data)
        first, last = _first_last(df)

        return WeeklyStats(
            week_start=week_start,
            week_end=week_end,
            total_puffs=total,
            total_events=len(df),
            daily_average=round(total / 7, 2),
            daily_data=daily_data,
            hourly_puffs=hourly_puffs(df),
            context_counts=context_counts(df),
            context_puffs=context_puffs(df),
            intensity_puffs=intensity_puffs(df),
            first_event_at=first,
            last_event_at=last,
            trend=build_trend([b.total_puffs for b in daily_data], WEEKLY_STABLE_SLOPE),
        )

    def monthly_stats(
        self,
        user_id: str,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ) -> MonthlyStats:
        """
        Statistics for a calendar month (defaults to the current month).

        Weekly sub-buckets start on day 1 and every 7 days after; the last one
        is clipped to the month end. The trend is the OLS slope over weekly
        totals, classified against a per-week threshold.
        """
        today = self.clock.today()
        year = year or today.year
        month = month or today.month
        days_in_month = calendar.monthrange(year, month)[1]
        month_start = date(year, month, 1)
        month_end = date(year, month, days_in_month)

        df = self._load(user_id, *self.clock.month_bounds(year, month))

        n_weeks = (days_in_month + 6) // 7
        if df.empty:
            per_week = pd.DataFrame({'sum': 0, 'count': 0}, index=range(n_weeks))
        else:
            bucket = df['date'].map(lambda d: (d.day - 1) // 7)
            per_week = df.groupby(bucket)['puffs'].agg(['sum', 'count']).reindex(range(n_weeks), fill_value=0)

        weekly_data = []
        for i in range(n_weeks):
            start = month_start + timedelta(days=7 * i)
            weekly_data.append(WeekBucket(
                week_start=start,
                week_end=min(start + timedelta(days=6), month_end),
                total_puffs=int(per_week.loc[i, 'sum']),
                events=int(per_week.loc[i, 'count']),
            ))

        total = sum(w.total_puffs for w in weekly_data)
        first, last = _first_last(df)

        return MonthlyStats(
            month=month_start.strftime('%B %Y'),
            month_start=month_start,
            month_end=month_end,
            total_puffs=total,
            total_events=len(df),
            daily_average=round(total / days_in_month, 2),
            weekly_data=weekly_data,
            hourly_puffs=hourly_puffs(df),
            context_counts=context_counts(df),
            intensity_puffs=intensity_puffs(df),
            heatmap=weekday_hour_grid(df),
            days_with_logs=int(df['date'].nunique()) if not df.empty else 0,
            days_in_month=days_in_month,
            first_event_at=first,
            last_event_at=last,
            trend=build_trend([w.total_puffs for w in weekly_data], MONTHLY_STABLE_SLOPE, bucket_days=7),
        )

    def pattern_summary(self, user_id: str, days: int = PATTERN_SUMMARY_DAYS) -> PatternSummary:
        """
        Digest of the trailing `days` days: totals, peak hour, main trigger,
        intensity mix and an older-half vs newer-half trend.
        """
        now = self.clock.now()
        events = self.store.find(user_id, now - timedelta(days=days), now)
        df = events_to_frame(events, self.clock)

        total = int(df['puffs'].sum()) if not df.empty else 0
        counts = context_counts(df)
        high_share = float((df['intensity'] == 'high').mean()) if not df.empty else 0.0

        return PatternSummary(
            days=days,
            total_puffs=total,
            total_events=len(df),
            daily_average=round(total / days, 1),
            peak_hour=peak_hour(hourly_puffs(df)),
            top_context=top_context(counts),
            context_counts=counts,
            intensity_puffs=intensity_puffs(df),
            high_intensity_share=round(high_share, 3),
            trend=self._half_split_trend([e.puffs for e in events]),
        )

    @staticmethod
    def _half_split_trend(puffs: list[int]) -> str:
        """Compare mean puffs per session of the newer half against the older half."""
        if len(puffs) < 2:
            return "stable"
        split = len(puffs) - len(puffs) // 2
        older = np.mean(puffs[:split])
        newer = np.mean(puffs[split:])
        if newer < older:
            return "decreasing"
        if newer > older:
            return "increasing"
        return "stable"
