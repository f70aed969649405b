from __future__ import annotations

from datetime import datetime
from typing import Optional, Tuple

from pydantic import BaseModel, Field

from stronghold.models.workout import Exercise

# Rough estimate for moderate rowing.
CALORIES_PER_MINUTE = 7
DEFAULT_RESISTANCE_LEVEL = 5


class RowingData(BaseModel):
    """One telemetry snapshot from the rowing machine."""

    stroke_rate: int = 0  # strokes per minute
    stroke_count: int = 0
    distance: float = 0  # meters
    duration: int = 0  # seconds
    resistance_level: int = Field(default=DEFAULT_RESISTANCE_LEVEL, ge=1, le=16)
    pace: float = 0  # seconds per 500m
    calories: int = 0
    heart_rate: Optional[int] = None
    power: Optional[int] = None  # watts
    timestamp: datetime = Field(default_factory=datetime.now)

    @classmethod
    def from_reading(
        cls,
        stroke_rate: int,
        stroke_count: int,
        distance: float,
        duration: int,
        resistance_level: int = DEFAULT_RESISTANCE_LEVEL,
        **extra,
    ) -> "RowingData":
        pace = duration / (distance / 500) if distance > 0 else 0
        return cls(
            stroke_rate=stroke_rate,
            stroke_count=stroke_count,
            distance=distance,
            duration=duration,
            resistance_level=resistance_level,
            pace=pace,
            calories=int((duration / 60) * CALORIES_PER_MINUTE),
            **extra,
        )

    def format_time(self) -> str:
        return f"{self.duration // 60}:{self.duration % 60:02d}"


def is_rowing(exercise: Exercise) -> bool:
    return exercise.equipment == "rowing_machine"


def prefill_from_rowing(exercise: Exercise, data: Optional[RowingData]) -> Optional[Tuple[int, float]]:
    """Return ``(minutes, resistance_level)`` to log for a rowing set.

    Minutes are recorded as reps and the resistance level as weight. Returns
    ``None`` when the exercise is not on the rower or no data is available.
    """
    if data is None or not is_rowing(exercise):
        return None
    return data.duration // 60, float(data.resistance_level)
