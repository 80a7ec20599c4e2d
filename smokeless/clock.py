"""
Reference clock for day/hour bucketing.

All stored instants are UTC. Every calendar computation (hour of day, weekday,
streak day, analytics windows) converts into one reference timezone first.
"""

import calendar
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from .config import TIMEZONE

END_OF_DAY = time(23, 59, 59, 999999)


def to_utc(dt: datetime) -> datetime:
    """Return an aware UTC datetime. Naive values are taken to be UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class Clock:
    """Wall clock bound to a reference timezone."""

    def __init__(self, tz: str = TIMEZONE, now_func: Optional[Callable[[], datetime]] = None):
        self.tz = ZoneInfo(tz)
        self._now_func = now_func or (lambda: datetime.now(timezone.utc))

    def now(self) -> datetime:
        """Current instant in the reference timezone."""
        return self.localize(self._now_func())

    def today(self) -> date:
        return self.now().date()

    def localize(self, dt: datetime) -> datetime:
        """Convert an instant into the reference timezone."""
        return to_utc(dt).astimezone(self.tz)

    def day_bounds(self, day: date) -> tuple[datetime, datetime]:
        """Inclusive start/end instants of a calendar day."""
        start = datetime.combine(day, time.min, tzinfo=self.tz)
        end = datetime.combine(day, END_OF_DAY, tzinfo=self.tz)
        return start, end

    def week_bounds(self, week_start: date) -> tuple[datetime, datetime]:
        """Inclusive bounds of the 7 days starting at week_start."""
        start, _ = self.day_bounds(week_start)
        _, end = self.day_bounds(week_start + timedelta(days=6))
        return start, end

    def month_bounds(self, year: int, month: int) -> tuple[datetime, datetime]:
        """Inclusive bounds of a calendar month."""
        last_day = calendar.monthrange(year, month)[1]
        start, _ = self.day_bounds(date(year, month, 1))
        _, end = self.day_bounds(date(year, month, last_day))
        return start, end

    def start_of_week(self, day: Optional[date] = None) -> date:
        """Monday of the week containing day (defaults to today)."""
        day = day or self.today()
        return day - timedelta(days=day.weekday())


class FixedClock(Clock):
    """Clock pinned to a single instant, for tests and replays."""

    def __init__(self, moment: datetime, tz: str = TIMEZONE):
        self.moment = to_utc(moment)
        super().__init__(tz=tz, now_func=lambda: self.moment)

    def advance(self, **kwargs) -> None:
        """Move the pinned instant forward by a timedelta(**kwargs)."""
        self.moment = self.moment + timedelta(**kwargs)
