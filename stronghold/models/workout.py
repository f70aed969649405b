from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

EquipmentType = Literal[
    "rowing_machine",
    "cables",
    "resistance_bands",
    "stability_ball",
    "free_weights",
    "dumbbells",
    "barbell",
    "ez_bar",
    "bodyweight",
]
WorkoutPhase = Literal["warmup", "strength", "cardio", "cooldown"]
WorkoutType = Literal["upper_body", "lower_body", "full_body", "cardio", "recovery"]
ExerciseDifficulty = Literal["easy", "good", "hard", "pain"]
TemplateDifficulty = Literal["beginner", "intermediate", "advanced"]
PostWorkoutOverall = Literal["energized", "good", "tired", "exhausted"]
PostWorkoutMood = Literal["uplifted", "calm", "neutral", "drained", "frustrated"]

EQUIPMENT_TYPES = (
    "rowing_machine",
    "cables",
    "resistance_bands",
    "stability_ball",
    "free_weights",
    "dumbbells",
    "barbell",
    "ez_bar",
    "bodyweight",
)
WORKOUT_PHASES = ("warmup", "strength", "cardio", "cooldown")
TEMPLATE_DIFFICULTIES = ("beginner", "intermediate", "advanced")

DIFFICULTY_SCORES = {"easy": 1, "good": 2, "hard": 3, "pain": 4}


class ExerciseSet(BaseModel):
    set_number: int
    target_reps: Optional[int] = None
    actual_reps: Optional[int] = None
    target_weight: Optional[float] = None
    actual_weight: Optional[float] = None
    rest_seconds: int = 0
    completed: bool = False
    difficulty: Optional[ExerciseDifficulty] = None
    notes: Optional[str] = None
    completed_at: Optional[datetime] = None


class Exercise(BaseModel):
    id: str
    name: str
    equipment: EquipmentType = "bodyweight"
    phase: WorkoutPhase
    sets: List[ExerciseSet] = Field(default_factory=list)
    form_cues: List[str] = Field(default_factory=list)
    modifications: Optional[str] = None
    instructions: Optional[str] = None
    duration: Optional[float] = None
    target_muscles: List[str] = Field(default_factory=list)
    safety_considerations: List[str] = Field(default_factory=list)
    template_id: Optional[str] = None
    skipped: bool = False
    skip_reason: Optional[str] = None
    substituted_from: Optional[str] = None

    @property
    def is_duration_based(self) -> bool:
        return bool(self.sets) and self.sets[0].target_reps == 0


class PostWorkoutPhysical(BaseModel):
    knee: int = Field(ge=1, le=10)
    shoulder: int = Field(ge=1, le=10)
    overall: PostWorkoutOverall
    energy: int = Field(ge=1, le=10)


class PostWorkoutMental(BaseModel):
    clarity: int = Field(ge=1, le=10)
    stress: int = Field(ge=1, le=10)
    focus: int = Field(ge=1, le=10)


class PostWorkoutEmotional(BaseModel):
    mood: PostWorkoutMood
    intensity: int = Field(ge=1, le=10)
    outlook: int = Field(ge=1, le=10)


class PostWorkoutCheck(BaseModel):
    physical: PostWorkoutPhysical
    mental: PostWorkoutMental
    emotional: PostWorkoutEmotional
    notes: Optional[str] = None
    completed_at: datetime = Field(default_factory=datetime.now)


class Workout(BaseModel):
    id: str
    date: datetime
    type: WorkoutType
    estimated_duration: int
    actual_duration: Optional[int] = None
    reasoning: str = ""
    exercises: List[Exercise] = Field(default_factory=list)
    completed: bool = False
    completed_at: Optional[datetime] = None
    coaching_notes: Optional[str] = None
    check_in_id: Optional[str] = None
    post_workout: Optional[PostWorkoutCheck] = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
    version: int = 0

    def total_sets(self) -> int:
        return sum(len(exercise.sets) for exercise in self.exercises)
