"""
Configuration constants for smokeless.
Centralized configuration for thresholds, weights, categories, and behavior.
"""

import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

load_dotenv()

# Database
DB_PATH = Path(os.environ.get(
    "SMOKELESS_DB_PATH",
    Path(__file__).parent.parent / "data" / "smokeless.db",
))

# Reference clock (all day/hour bucketing happens in this timezone)
TIMEZONE = os.environ.get("SMOKELESS_TIMEZONE", "UTC")

# Event Validation Rules
MIN_PUFFS = 1
MAX_PUFFS = 100
MIN_MOOD = 1
MAX_MOOD = 5
MAX_NOTES_LENGTH = 500

INTENSITIES: List[str] = ['low', 'medium', 'high']
CONTEXTS: List[str] = ['stress', 'bored', 'habit', 'social', 'other']

# Prediction Engine
PREDICTION_LOOKBACK_DAYS = 14
PREDICTION_MIN_EVENTS = 5

FACTOR_WEIGHTS = {
    'hour_of_day': 0.40,
    'day_of_week': 0.15,
    'time_since_last': 0.25,
    'context_predictability': 0.10,
    'recent_trend': 0.10,
}

OVERNIGHT_GAP_HOURS = 24.0  # Gaps this long are pauses, not intervals
DEFAULT_AVG_GAP_HOURS = 4.0
GAP_EXPONENT = 1.5

SIGMOID_STEEPNESS = 6.0
PROBABILITY_FLOOR = 0.05
PROBABILITY_CEILING = 0.95

HIGH_RISK_THRESHOLD = 0.7
MODERATE_RISK_THRESHOLD = 0.4

HIGH_CONFIDENCE_MIN_EVENTS = 50
HIGH_CONFIDENCE_MIN_GAPS = 20
LOW_CONFIDENCE_MAX_EVENTS = 15

UPCOMING_HOURS_HORIZON = 8
TREND_WINDOW_DAYS = 3
TREND_RATIO_MIN = 0.5
TREND_RATIO_MAX = 1.5
NEUTRAL_TREND_FACTOR = 0.5

HOTSPOT_MIN_INTENSITY = 50
MAX_HOTSPOTS = 5

# Analytics Aggregator
# Slope thresholds are in puffs per bucket; re-derive when the bucket unit changes.
WEEKLY_STABLE_SLOPE = 0.5  # puffs per day
MONTHLY_STABLE_SLOPE = WEEKLY_STABLE_SLOPE * 7  # puffs per week
PATTERN_SUMMARY_DAYS = 7
HIGH_INTENSITY_SHARE_WARNING = 0.3

# Gamification
XP_PER_LOG = 10
XP_PER_LEVEL_UNIT = 100
DEFAULT_COST_PER_PACK = 10.0
DEFAULT_PUFFS_PER_PACK = 200
BASELINE_WINDOW_DAYS = 7
LEADERBOARD_SIZE = 10

# Text Generation Service
AI_API_KEY = os.environ.get("AI_API_KEY", "")
OPENAI_API_URL = "https://api.openai.com/v1/chat/completions"
ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
ANTHROPIC_KEY_PREFIX = "sk-ant-"
DEFAULT_OPENAI_MODEL = "gpt-3.5-turbo"
DEFAULT_ANTHROPIC_MODEL = "claude-3-haiku-20240307"
DEFAULT_MAX_TOKENS = 500
DEFAULT_TEMPERATURE = 0.7
AI_TIMEOUT_SECONDS = float(os.environ.get("SMOKELESS_AI_TIMEOUT", "20"))

# Logging
LOG_LEVEL = os.environ.get("SMOKELESS_LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DIR = Path(os.environ.get("SMOKELESS_LOG_DIR", Path(__file__).parent.parent / "logs"))
LOG_MAX_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 3
