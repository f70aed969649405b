from __future__ import annotations

import json
import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from stronghold.ai.client import GenerateFn
from stronghold.catalog.catalog import CatalogProvider, default_catalog
from stronghold.config.constants import DEFAULT_REST_SECONDS
from stronghold.models.checkin import CheckIn
from stronghold.models.workout import EquipmentType, Exercise, ExerciseSet, Workout, WorkoutType
from stronghold.prompts.workout_prompt import build_workout_prompt

logger = logging.getLogger(__name__)

FALLBACK_MESSAGE = "AI workout generation is unavailable right now. Here is a safe basic workout; try again later."

_FENCE_RE = re.compile(r"```(?:json)?\n?")


class InvalidWorkoutOutput(ValueError):
    """The generated text could not be turned into a workout."""


class ExerciseDraft(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1)
    equipment: Optional[EquipmentType] = None
    sets: Optional[int] = Field(default=None, ge=0)
    reps: Optional[int] = Field(default=None, ge=0)
    duration: Optional[float] = None
    target_weight: Optional[float] = Field(default=None, alias="targetWeight")
    rest_seconds: Optional[int] = Field(default=None, ge=0, alias="restSeconds")
    form_cues: Optional[List[str]] = Field(default=None, alias="formCues")
    modifications: Optional[str] = None
    instructions: Optional[str] = None


class PhaseDraft(BaseModel):
    exercises: List[ExerciseDraft]


class WorkoutDraft(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: WorkoutType
    estimated_duration: int = Field(alias="estimatedDuration")
    reasoning: str
    warmup: PhaseDraft
    strength: PhaseDraft
    cooldown: PhaseDraft
    coaching_notes: Optional[str] = Field(default=None, alias="coachingNotes")


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", text or "").strip()


def _build_sets(count: int, reps: Optional[int], weight: Optional[float], rest: int) -> List[ExerciseSet]:
    return [
        ExerciseSet(set_number=index + 1, target_reps=reps, target_weight=weight, rest_seconds=rest)
        for index in range(count)
    ]


def _exercise_from_draft(draft: ExerciseDraft, phase: str, catalog: CatalogProvider) -> Exercise:
    template = catalog.find_by_name(draft.name)
    rest = DEFAULT_REST_SECONDS if draft.rest_seconds is None else draft.rest_seconds
    return Exercise(
        id=f"{template.id if template else 'custom'}_{uuid.uuid4().hex}",
        name=draft.name,
        equipment=draft.equipment or "bodyweight",
        phase=phase,
        sets=_build_sets(draft.sets or 1, draft.reps, draft.target_weight, rest),
        form_cues=draft.form_cues or [],
        modifications=draft.modifications,
        instructions=draft.instructions,
        duration=draft.duration,
        target_muscles=list(template.target_muscles) if template else [],
        template_id=template.id if template else None,
    )


def parse_workout_response(
    text: str,
    check_in: Optional[CheckIn] = None,
    catalog: Optional[CatalogProvider] = None,
    now: Optional[datetime] = None,
) -> Workout:
    """Validate generated text and assemble a ``Workout``.

    Raises ``InvalidWorkoutOutput`` for anything that is not JSON or does not
    match the expected shape. Nothing is guessed for missing required fields.
    """
    catalog = catalog or default_catalog()
    now = now or datetime.now()
    cleaned = strip_code_fences(text)
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise InvalidWorkoutOutput("AI response was not valid JSON.") from exc
    if not isinstance(payload, dict):
        raise InvalidWorkoutOutput("AI response must be a JSON object.")
    try:
        draft = WorkoutDraft.model_validate(payload)
    except ValidationError as exc:
        raise InvalidWorkoutOutput(f"AI generated invalid workout format: {exc.error_count()} errors") from exc

    exercises: List[Exercise] = []
    for phase in ("warmup", "strength", "cooldown"):
        section: PhaseDraft = getattr(draft, phase)
        exercises.extend(_exercise_from_draft(entry, phase, catalog) for entry in section.exercises)

    return Workout(
        id=uuid.uuid4().hex,
        date=now,
        type=draft.type,
        estimated_duration=draft.estimated_duration,
        reasoning=draft.reasoning,
        exercises=exercises,
        coaching_notes=draft.coaching_notes,
        check_in_id=check_in.id if check_in else None,
        created_at=now,
        updated_at=now,
    )


def fallback_workout(
    check_in: Optional[CheckIn] = None,
    catalog: Optional[CatalogProvider] = None,
    now: Optional[datetime] = None,
) -> Workout:
    catalog = catalog or default_catalog()
    now = now or datetime.now()

    def _known(template_id: str) -> Optional[str]:
        return template_id if template_id in catalog else None

    exercises = [
        Exercise(
            id=f"easy_rowing_{uuid.uuid4().hex}",
            name="Easy Rowing",
            equipment="rowing_machine",
            phase="warmup",
            sets=_build_sets(1, 0, None, 0),
            duration=5,
            form_cues=["Easy pace", "Focus on form"],
            template_id=_known("easy_rowing"),
        ),
        Exercise(
            id=f"band_chest_press_{uuid.uuid4().hex}",
            name="Band Chest Press",
            equipment="resistance_bands",
            phase="strength",
            sets=_build_sets(3, 12, None, DEFAULT_REST_SECONDS),
            form_cues=["Control the movement", "Full range of motion"],
            template_id=_known("band_chest_press"),
        ),
        Exercise(
            id=f"band_row_{uuid.uuid4().hex}",
            name="Band Row",
            equipment="resistance_bands",
            phase="strength",
            sets=_build_sets(3, 12, None, DEFAULT_REST_SECONDS),
            form_cues=["Pull elbows back", "Squeeze shoulder blades"],
            template_id=_known("band_row"),
        ),
    ]
    return Workout(
        id=uuid.uuid4().hex,
        date=now,
        type="upper_body",
        estimated_duration=30,
        reasoning="Basic upper body workout (AI temporarily unavailable)",
        exercises=exercises,
        coaching_notes="Safe basic workout while the coach is offline.",
        check_in_id=check_in.id if check_in else None,
        created_at=now,
        updated_at=now,
    )


@dataclass
class GenerationResult:
    workout: Workout
    used_fallback: bool = False
    message: Optional[str] = None


class WorkoutGenerator:
    def __init__(
        self,
        generate: GenerateFn,
        catalog: Optional[CatalogProvider] = None,
        available_equipment: Optional[Iterable[str]] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.generate = generate
        self.catalog = catalog or default_catalog()
        self.available_equipment = list(available_equipment) if available_equipment else None
        self.clock = clock

    def generate_workout(self, check_in: CheckIn) -> GenerationResult:
        prompt = build_workout_prompt(check_in, self.available_equipment)
        try:
            raw = self.generate(prompt)
            workout = parse_workout_response(raw, check_in, self.catalog, self.clock())
        except InvalidWorkoutOutput as exc:
            logger.warning("[generate_workout] invalid output check_in_id=%s error=%s", check_in.id, exc)
            return self._fallback(check_in)
        except Exception as exc:
            logger.error("[generate_workout] generate failed check_in_id=%s error=%s", check_in.id, exc)
            return self._fallback(check_in)
        logger.info(
            "[generate_workout] check_in_id=%s workout_id=%s type=%s exercises=%d",
            check_in.id,
            workout.id,
            workout.type,
            len(workout.exercises),
        )
        return GenerationResult(workout=workout)

    def _fallback(self, check_in: CheckIn) -> GenerationResult:
        workout = fallback_workout(check_in, self.catalog, self.clock())
        return GenerationResult(workout=workout, used_fallback=True, message=FALLBACK_MESSAGE)
