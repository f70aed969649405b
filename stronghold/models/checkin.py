from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

MentalState = Literal["clear", "anxious", "foggy", "heavy", "overwhelmed"]
EmotionalState = Literal["peaceful", "anxious", "frustrated", "sad", "joyful", "numb"]

MENTAL_STATES = ("clear", "anxious", "foggy", "heavy", "overwhelmed")
EMOTIONAL_STATES = ("peaceful", "anxious", "frustrated", "sad", "joyful", "numb")


class PhysicalState(BaseModel):
    knee: int = Field(ge=1, le=10)
    shoulder: int = Field(ge=1, le=10)
    energy: int = Field(ge=1, le=10)
    sleep: int = Field(ge=1, le=10)
    weight: Optional[float] = None  # lbs


class MentalCheck(BaseModel):
    state: MentalState
    stress: int = Field(ge=1, le=10)
    clarity: int = Field(ge=1, le=10)
    notes: Optional[str] = None


class EmotionalCheck(BaseModel):
    primary: EmotionalState
    intensity: int = Field(ge=1, le=10)
    secondary: List[EmotionalState] = Field(default_factory=list)
    notes: Optional[str] = None


class CheckIn(BaseModel):
    id: str
    date: datetime
    physical: PhysicalState
    mental: MentalCheck
    emotional: EmotionalCheck
    created_at: datetime = Field(default_factory=datetime.now)


class BibleVerse(BaseModel):
    reference: str
    text: str
    reason: Optional[str] = None
