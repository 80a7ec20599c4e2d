"""
Coaching planner.
Combines usage patterns with a text-generation call. Whenever the call fails
or exceeds its timeout, a deterministic template takes its place, so insights
and plans are always returned.
"""

import asyncio
import json
import math
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Optional

from .analytics.aggregation import AnalyticsAggregator, PatternSummary
from .clock import Clock
from .config import AI_TIMEOUT_SECONDS, HIGH_INTENSITY_SHARE_WARNING
from .exceptions import ExternalServiceUnavailable
from .llm import TextGenerationClient
from .logger import setup_logger
from .services.gamification_service import GamificationService

logger = setup_logger(__name__)

SOURCE_AI = "ai"
SOURCE_FALLBACK = "fallback"
SOURCE_RULE_BASED = "rule-based"

COACH_SYSTEM_PROMPT = """You are a compassionate and knowledgeable health coach specializing in helping people quit smoking and vaping.
Your responses should be:
- Empathetic and non-judgmental
- Evidence-based and practical
- Encouraging and motivating
- Personalized to the user's specific situation
Keep responses concise (2-3 paragraphs max)."""

INSIGHTS_SYSTEM_PROMPT = """You are a data analyst specializing in behavioral health patterns.
Analyze the user's vaping/smoking data and provide 3-4 key insights.
Format each insight with an emoji, title, and brief explanation.
Be specific with numbers and patterns you observe."""

TRIGGER_ADVICE = {
    'stress': 'Try deep breathing or a quick walk when stressed.',
    'bored': 'Keep your hands busy with a stress ball or fidget toy.',
    'habit': 'Break the routine by changing your environment.',
    'social': "Let friends know you're cutting back for support.",
    'other': 'Identify what specifically triggers this and plan ahead.',
}

TREND_INSIGHTS = {
    'decreasing': ('📉', '📉 Great progress! Your usage is trending down.'),
    'increasing': ('📈', '📈 Your usage is increasing. Stay mindful of triggers.'),
    'stable': ('➡️', "➡️ Your usage is stable. Ready to start reducing?"),
}

ACTION_STEPS = [
    {'step': 1, 'action': 'Delay your first intake by 30 minutes each day',
     'reason': 'Building delay tolerance reduces overall consumption', 'icon': '⏰'},
    {'step': 2, 'action': 'Replace one high-intensity session with a low-intensity one',
     'reason': 'Gradual intensity reduction is more sustainable', 'icon': '📉'},
    {'step': 3, 'action': 'Log your mood before each intake',
     'reason': 'Awareness of emotional triggers helps identify patterns', 'icon': '📝'},
    {'step': 4, 'action': 'Set a "no vape zone" in one area of your home',
     'reason': 'Environmental cues can reduce habitual use', 'icon': '🏠'},
]

CRAVING_TECHNIQUES = [
    {'technique': '4-7-8 Breathing', 'description': 'Inhale 4 sec, hold 7 sec, exhale 8 sec', 'icon': '🌬️'},
    {'technique': 'Drink Water', 'description': 'Hydration reduces craving intensity', 'icon': '💧'},
    {'technique': '5-Minute Rule', 'description': 'Wait 5 minutes before giving in', 'icon': '⏱️'},
    {'technique': 'Change Location', 'description': 'Move to a different room or go outside', 'icon': '🚶'},
    {'technique': 'Text a Friend', 'description': 'Social support helps resist urges', 'icon': '📱'},
]

MOTIVATIONAL_MESSAGES = [
    "Every puff you skip is a victory. You're stronger than you think! 💪",
    "Small steps lead to big changes. Keep going! 🚀",
    "Your future self will thank you for the effort you're making today. 🌟",
    "Progress, not perfection. You're doing amazing! ✨",
    "Each day is a new opportunity to be healthier. Seize it! 🌅",
]

CHALLENGE_RESPONSES = {
    'stress': {
        'challenge': 'Stress',
        'advice': 'Stress is a common trigger. Try the 4-7-8 breathing technique or a quick 5-minute walk.',
        'alternatives': ['Deep breathing', 'Progressive muscle relaxation', 'Quick meditation', 'Call a friend'],
        'icon': '😤',
    },
    'bored': {
        'challenge': 'Boredom',
        'advice': 'Boredom vaping is about filling time. Keep your hands and mind busy.',
        'alternatives': ['Fidget toys', 'Puzzles', 'Short exercise', 'Learn something new'],
        'icon': '😐',
    },
    'social': {
        'challenge': 'Social Situations',
        'advice': "Social pressure is tough. Let friends know you're cutting back.",
        'alternatives': ['Hold a drink', 'Step away briefly', 'Find a non-vaping buddy', 'Practice saying no'],
        'icon': '👥',
    },
    'morning': {
        'challenge': 'Morning Cravings',
        'advice': 'Morning cravings are often the strongest. Delay your first intake gradually.',
        'alternatives': ['Drink water first', 'Eat breakfast', 'Morning walk', 'Stretch routine'],
        'icon': '🌅',
    },
    'nighttime': {
        'challenge': 'Nighttime Habits',
        'advice': 'Evening routines can trigger cravings. Create a new wind-down ritual.',
        'alternatives': ['Herbal tea', 'Reading', 'Light stretching', 'Journaling'],
        'icon': '🌙',
    },
}


@dataclass
class InsightsReport:
    generated_at: datetime
    days: int
    total_logs: int
    insights: list[dict] = field(default_factory=list)
    ai_insights: Optional[str] = None
    source: str = SOURCE_RULE_BASED
    message: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data['generated_at'] = self.generated_at.isoformat()
        data['ai_powered'] = self.source == SOURCE_AI
        return data


@dataclass
class CoachingPlan:
    generated_at: datetime
    current_stats: dict
    daily_target: int
    weekly_goal: str
    coaching: str
    source: str
    action_steps: list[dict]
    craving_techniques: list[dict]
    motivational_message: str
    challenge_response: Optional[dict] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data['generated_at'] = self.generated_at.isoformat()
        data['ai_powered'] = self.source == SOURCE_AI
        return data


# ============================================================================
# Deterministic templates
# ============================================================================

def rule_based_insights(summary: PatternSummary) -> list[dict]:
    insights = []

    if summary.peak_hour is not None:
        insights.append({
            'type': 'peak_hour',
            'icon': '⏰',
            'title': 'Peak Usage Time',
            'message': f"Your highest usage is around {summary.peak_hour}:00. "
                       f"Consider preparing alternatives for this time.",
            'data': {'hour': summary.peak_hour},
        })

    if summary.top_context:
        insights.append({
            'type': 'trigger_context',
            'icon': '🎯',
            'title': 'Main Trigger',
            'message': f'"{summary.top_context}" is your most common trigger. {TRIGGER_ADVICE[summary.top_context]}',
            'data': {'context': summary.top_context, 'count': summary.context_counts[summary.top_context]},
        })

    insights.append({
        'type': 'daily_average',
        'icon': '📊',
        'title': 'Daily Average',
        'message': f"You average {summary.daily_average} puffs per day over the last {summary.days} days.",
        'data': {'average': summary.daily_average, 'total': summary.total_puffs, 'days': summary.days},
    })

    icon, message = TREND_INSIGHTS[summary.trend]
    insights.append({
        'type': 'trend',
        'icon': icon,
        'title': 'Weekly Trend',
        'message': message,
        'data': {'trend': summary.trend},
    })

    if summary.high_intensity_share > HIGH_INTENSITY_SHARE_WARNING:
        percent = round(summary.high_intensity_share * 100)
        insights.append({
            'type': 'reduction_opportunity',
            'icon': '💡',
            'title': 'Reduction Opportunity',
            'message': f"{percent}% of your sessions are high intensity. Try reducing intensity first.",
            'data': {'high_intensity_percent': percent},
        })

    return insights


def fallback_insights(summary: PatternSummary) -> str:
    closing = 'Great progress!' if summary.trend == 'decreasing' else 'Stay mindful and keep trying.'
    return (
        f"📊 **Weekly Summary**\n"
        f"You had {summary.total_puffs} puffs across {summary.total_events} sessions.\n\n"
        f"⏰ **Peak Time**\n"
        f"Your highest usage is around {summary.peak_hour}:00. Plan distractions for this time.\n\n"
        f"🎯 **Main Trigger**\n"
        f'"{summary.top_context}" triggers most of your usage. Focus on managing this.\n\n'
        f"📈 **Trend**\n"
        f"Your usage is {summary.trend}. {closing}"
    )


def fallback_coaching(top_trigger: str, daily_average: int, streak_days: int) -> str:
    tips = []
    if top_trigger == 'stress':
        tips.append("Try the 4-7-8 breathing technique when stressed: inhale 4 seconds, hold 7, exhale 8.")
    if daily_average > 10:
        tips.append("Consider reducing by just 1-2 puffs per day. Small steps lead to big changes.")
    if streak_days > 0:
        tips.append(f"Great job on your {streak_days}-day streak! Keep the momentum going.")
    tips.append("Remember: every craving passes within 3-5 minutes. You've got this!")
    return "\n\n".join(tips)


def motivational_message(streak_days: int, day_of_year: int) -> str:
    if streak_days >= 7:
        return f"🔥 {streak_days}-day streak! You're on fire! Keep this momentum going!"
    if streak_days >= 3:
        return f"⭐ {streak_days} days strong! You're building a great habit of awareness."
    return MOTIVATIONAL_MESSAGES[day_of_year % len(MOTIVATIONAL_MESSAGES)]


def challenge_response(challenge: str) -> dict:
    return CHALLENGE_RESPONSES.get(challenge.strip().lower(), {
        'challenge': challenge,
        'advice': f'Focus on understanding why "{challenge}" triggers you. Keep notes when it happens.',
        'alternatives': ['Deep breathing', 'Drink water', 'Take a walk', 'Call someone'],
        'icon': '💭',
    })


# ============================================================================
# Planner
# ============================================================================

class CoachingPlanner:
    """
    Insights and coaching plans for a user.

    Args:
        aggregator: Source of pattern summaries
        gamification: Streak state access and AI request counters
        client: Text generation client (defaults to one built from config)
        clock: Reference clock
        timeout: Upper bound in seconds on a single generation call
    """

    def __init__(
        self,
        aggregator: AnalyticsAggregator,
        gamification: GamificationService,
        client: Optional[TextGenerationClient] = None,
        clock: Optional[Clock] = None,
        timeout: float = AI_TIMEOUT_SECONDS,
    ):
        self.aggregator = aggregator
        self.gamification = gamification
        self.client = client or TextGenerationClient()
        self.clock = clock or aggregator.clock
        self.timeout = timeout

    async def _generate_with_fallback(
        self,
        system_prompt: str,
        user_prompt: str,
        fallback: str,
        user_id: str,
    ) -> tuple[str, str]:
        """Returns (text, source)."""
        try:
            result = await asyncio.wait_for(
                self.client.generate(system_prompt, user_prompt),
                timeout=self.timeout,
            )
            if not result.success:
                raise ExternalServiceUnavailable(result.error or "generation failed", user_id=user_id,
                                                 operation="generate")
        except asyncio.TimeoutError:
            logger.warning(f"Text generation exceeded {self.timeout}s for {user_id}; using fallback")
            return fallback, SOURCE_FALLBACK
        except ExternalServiceUnavailable:
            logger.warning(f"Text generation unavailable for {user_id}; using fallback")
            return fallback, SOURCE_FALLBACK

        return result.content, SOURCE_AI

    async def generate_insights(self, user_id: str, days: int = 7) -> InsightsReport:
        summary = self.aggregator.pattern_summary(user_id, days=days)
        self.gamification.record_ai_request(user_id, 'insights')
        now = self.clock.now()

        if summary.total_events == 0:
            return InsightsReport(
                generated_at=now,
                days=days,
                total_logs=0,
                message='Not enough data for insights. Start logging your intake!',
            )

        user_prompt = f"""Analyze this user's intake data and provide insights:

Weekly Data:
- Total puffs: {summary.total_puffs}
- Sessions: {summary.total_events}
- Daily average: {summary.daily_average}
- Peak hour: {summary.peak_hour}:00
- Top trigger: {summary.top_context}
- Trend: {summary.trend}

Context breakdown:
{json.dumps(summary.context_counts, indent=2)}

Intensity breakdown:
{json.dumps(summary.intensity_puffs, indent=2)}

Provide actionable insights based on this data."""

        text, source = await self._generate_with_fallback(
            INSIGHTS_SYSTEM_PROMPT, user_prompt, fallback_insights(summary), user_id
        )

        return InsightsReport(
            generated_at=now,
            days=days,
            total_logs=summary.total_events,
            insights=rule_based_insights(summary),
            ai_insights=text,
            source=source,
        )

    async def generate_plan(
        self,
        user_id: str,
        goal: Optional[str] = None,
        challenge: Optional[str] = None,
    ) -> CoachingPlan:
        summary = self.aggregator.pattern_summary(user_id, days=7)
        state = self.gamification.get_state(user_id)
        self.gamification.record_ai_request(user_id, 'coaching')
        now = self.clock.now()

        average = summary.total_puffs / 7
        rounded_average = round(average)
        top_trigger = summary.top_context or 'unknown'
        daily_target = max(1, math.floor(average * 0.9))
        level = 'high' if average > 10 else 'moderate' if average > 5 else 'low'

        user_prompt = f"""Based on this user's data, provide personalized coaching advice:

User Stats:
- Daily average puffs: {rounded_average}
- Most common trigger: {top_trigger}
- Current streak: {state.current_streak} days
- Weekly trend: {level}
- Goal: {goal or 'Reduce and quit'}

Current challenge they're facing: {challenge or 'General cravings'}

Provide specific, actionable advice for today."""

        text, source = await self._generate_with_fallback(
            COACH_SYSTEM_PROMPT,
            user_prompt,
            fallback_coaching(top_trigger, rounded_average, state.current_streak),
            user_id,
        )

        return CoachingPlan(
            generated_at=now,
            current_stats={
                'weekly_puffs': summary.total_puffs,
                'daily_average': rounded_average,
                'current_streak': state.current_streak,
                'top_trigger': top_trigger,
            },
            daily_target=daily_target,
            weekly_goal=f"Reduce daily average from {rounded_average} to {daily_target} puffs",
            coaching=text,
            source=source,
            action_steps=[dict(step) for step in ACTION_STEPS],
            craving_techniques=[dict(t) for t in CRAVING_TECHNIQUES],
            motivational_message=motivational_message(state.current_streak, now.timetuple().tm_yday),
            challenge_response=challenge_response(challenge) if challenge else None,
        )
