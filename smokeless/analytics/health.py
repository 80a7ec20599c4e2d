"""
Health Milestones Module
Recovery milestones measured from a user's quit date, with progress,
time remaining and an encouragement line for the elapsed time.
"""

import math
from dataclasses import dataclass
from typing import Optional

MINUTES_PER_HOUR = 60
MINUTES_PER_DAY = 24 * MINUTES_PER_HOUR


@dataclass(frozen=True)
class HealthMilestone:
    """A physiological recovery point reached `minutes` after quitting."""
    id: str
    minutes: int
    unit: str
    title: str
    description: str
    icon: str
    category: str

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'minutes': self.minutes,
            'unit': self.unit,
            'title': self.title,
            'description': self.description,
            'icon': self.icon,
            'category': self.category,
        }


HEALTH_MILESTONES: tuple[HealthMilestone, ...] = (
    HealthMilestone('milestone_20min', 20, 'minutes', 'Heart Rate Normalizes',
                    'Your heart rate and blood pressure begin to drop to normal levels.', '❤️', 'cardiovascular'),
    HealthMilestone('milestone_8hr', 8 * MINUTES_PER_HOUR, 'hours', 'Oxygen Levels Improve',
                    'Carbon monoxide levels in your blood drop, and oxygen levels increase.', '🫁', 'respiratory'),
    HealthMilestone('milestone_24hr', MINUTES_PER_DAY, 'hours', 'Heart Attack Risk Decreases',
                    'Your risk of heart attack begins to decrease.', '💪', 'cardiovascular'),
    HealthMilestone('milestone_48hr', 2 * MINUTES_PER_DAY, 'hours', 'Senses Improve',
                    'Nerve endings start to regrow. Taste and smell begin to improve.', '👃', 'neurological'),
    HealthMilestone('milestone_72hr', 3 * MINUTES_PER_DAY, 'hours', 'Breathing Easier',
                    'Bronchial tubes relax, making breathing easier. Energy increases.', '🌬️', 'respiratory'),
    HealthMilestone('milestone_2wk', 14 * MINUTES_PER_DAY, 'weeks', 'Circulation Improves',
                    'Circulation improves significantly. Walking becomes easier.', '🚶', 'cardiovascular'),
    HealthMilestone('milestone_1mo', 30 * MINUTES_PER_DAY, 'month', 'Lung Function Increases',
                    'Lung function increases up to 30%. Coughing and shortness of breath decrease.', '🏃',
                    'respiratory'),
    HealthMilestone('milestone_3mo', 90 * MINUTES_PER_DAY, 'months', 'Fertility Improves',
                    'Circulation continues to improve. Fertility chances increase.', '🌱', 'reproductive'),
    HealthMilestone('milestone_6mo', 180 * MINUTES_PER_DAY, 'months', 'Stress Reduces',
                    'You handle stress better without nicotine. Airways are less inflamed.', '🧘', 'mental'),
    HealthMilestone('milestone_1yr', 365 * MINUTES_PER_DAY, 'year', 'Heart Disease Risk Halved',
                    'Your risk of coronary heart disease is now half that of a smoker.', '🏆', 'cardiovascular'),
)

ENCOURAGEMENTS = (
    # (days below, message)
    (1, "Every minute counts! You're already making progress."),
    (3, "The first 72 hours are the hardest. You're doing amazing!"),
    (7, "Almost a week! Your body is thanking you."),
    (30, "Keep going! Each day makes you stronger."),
    (90, "A month in! You're officially breaking the habit."),
)
CHAMPION_ENCOURAGEMENT = "You're a champion! Your health is transforming."


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def format_time_remaining(minutes: float) -> str:
    """Minutes under an hour, hours under a day, days otherwise."""
    if minutes < MINUTES_PER_HOUR:
        return f"{_round_half_up(minutes)} minutes"
    if minutes < MINUTES_PER_DAY:
        return f"{_round_half_up(minutes / MINUTES_PER_HOUR)} hours"
    return f"{_round_half_up(minutes / MINUTES_PER_DAY)} days"


def encouragement(days: float) -> str:
    for limit, message in ENCOURAGEMENTS:
        if days < limit:
            return message
    return CHAMPION_ENCOURAGEMENT


@dataclass
class MilestoneStatus:
    milestone: HealthMilestone
    achieved: bool
    progress: int  # percent, 0-100
    time_remaining: Optional[str]

    def to_dict(self) -> dict:
        return {
            **self.milestone.to_dict(),
            'achieved': self.achieved,
            'progress': self.progress,
            'time_remaining': self.time_remaining,
        }


def milestone_statuses(minutes_since_quit: int) -> list[MilestoneStatus]:
    statuses = []
    for milestone in HEALTH_MILESTONES:
        remaining = milestone.minutes - minutes_since_quit
        statuses.append(MilestoneStatus(
            milestone=milestone,
            achieved=minutes_since_quit >= milestone.minutes,
            progress=_round_half_up(min(100.0, minutes_since_quit / milestone.minutes * 100)),
            time_remaining=format_time_remaining(remaining) if remaining > 0 else None,
        ))
    return statuses
