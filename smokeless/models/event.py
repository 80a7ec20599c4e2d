"""
Intake event data models and type definitions.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..clock import to_utc
from ..config import MIN_PUFFS, MAX_PUFFS, MIN_MOOD, MAX_MOOD, MAX_NOTES_LENGTH


class Intensity(str, Enum):
    """How intense an intake session was."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Context(str, Enum):
    """What prompted the intake."""
    STRESS = "stress"
    BORED = "bored"
    HABIT = "habit"
    SOCIAL = "social"
    OTHER = "other"


INTENSITY_SCORES = {
    Intensity.LOW: 1,
    Intensity.MEDIUM: 2,
    Intensity.HIGH: 3,
}


class Event(BaseModel):
    """
    A single logged intake occurrence.

    Immutable once created. Construction rejects out-of-range puffs or mood
    and unknown intensity/context labels with ``pydantic.ValidationError``.

    Attributes:
        id: Store-assigned record ID (None until inserted)
        user_id: Owning identity
        puffs: Number of puffs (1-100)
        intensity: low | medium | high
        context: stress | bored | habit | social | other
        occurred_at: Instant of occurrence, stored as aware UTC
        mood: Optional self-reported mood (1-5)
        notes: Optional free-text note
        location: Optional free-text location
    """
    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    user_id: str = Field(..., min_length=1)
    puffs: int = Field(..., ge=MIN_PUFFS, le=MAX_PUFFS, strict=True)
    intensity: Intensity
    context: Context
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    mood: Optional[int] = Field(None, ge=MIN_MOOD, le=MAX_MOOD, strict=True)
    notes: Optional[str] = Field(None, max_length=MAX_NOTES_LENGTH)
    location: Optional[str] = None

    @field_validator('occurred_at')
    @classmethod
    def _normalize_occurred_at(cls, value: datetime) -> datetime:
        return to_utc(value)

    @field_validator('notes', 'location', mode='before')
    @classmethod
    def _strip_text(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @property
    def intensity_score(self) -> int:
        """Numeric intensity (low=1, medium=2, high=3)."""
        return INTENSITY_SCORES[self.intensity]

    def with_id(self, event_id: int) -> 'Event':
        """Copy of this event carrying its store-assigned ID."""
        return self.model_copy(update={'id': event_id})

    def to_dict(self) -> dict:
        """Convert event to a flat dictionary for persistence."""
        return {
            'id': self.id,
            'user_id': self.user_id,
            'puffs': self.puffs,
            'intensity': self.intensity.value,
            'context': self.context.value,
            'occurred_at': self.occurred_at.isoformat(),
            'mood': self.mood,
            'notes': self.notes,
            'location': self.location,
        }

    @classmethod
    def from_row(cls, row) -> 'Event':
        """Create an Event from a database row or mapping."""
        return cls(
            id=row['id'],
            user_id=row['user_id'],
            puffs=row['puffs'],
            intensity=row['intensity'],
            context=row['context'],
            occurred_at=datetime.fromisoformat(row['occurred_at']),
            mood=row['mood'],
            notes=row['notes'],
            location=row['location'],
        )
