from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from stronghold.ai.verse_generator import VerseGenerator
from stronghold.ai.workout_generator import WorkoutGenerator
from stronghold.models.checkin import BibleVerse, CheckIn, EmotionalCheck, MentalCheck, PhysicalState
from stronghold.models.workout import Workout
from stronghold.storage.store import StorageError, Store

logger = logging.getLogger(__name__)


@dataclass
class CheckInResult:
    check_in: CheckIn
    workout: Workout
    used_fallback: bool = False
    message: Optional[str] = None
    verse: Optional[BibleVerse] = None
    check_in_saved: bool = True
    workout_saved: bool = True


def create_check_in(
    physical: PhysicalState,
    mental: MentalCheck,
    emotional: EmotionalCheck,
    now: Optional[datetime] = None,
) -> CheckIn:
    now = now or datetime.now()
    return CheckIn(
        id=f"checkin_{uuid.uuid4().hex}",
        date=now,
        physical=physical,
        mental=mental,
        emotional=emotional,
        created_at=now,
    )


def submit_check_in(
    store: Store,
    generator: WorkoutGenerator,
    check_in: CheckIn,
    verse_generator: Optional[VerseGenerator] = None,
) -> CheckInResult:
    """Save the check-in, draft the day's workout and save it.

    A failed save never blocks the flow: the caller still gets a workout and
    the ``*_saved`` flags say what made it to the store.
    """
    check_in_saved = True
    try:
        store.save_check_in(check_in)
    except StorageError as exc:
        check_in_saved = False
        logger.error(
            "[submit_check_in] check-in save failed, continuing check_in_id=%s error=%s",
            check_in.id,
            exc,
        )

    generated = generator.generate_workout(check_in)

    workout_saved = True
    try:
        store.save_workout(generated.workout)
    except StorageError as exc:
        workout_saved = False
        logger.error(
            "[submit_check_in] workout save failed workout_id=%s error=%s",
            generated.workout.id,
            exc,
        )

    verse = verse_generator.generate_verse(check_in) if verse_generator else None
    return CheckInResult(
        check_in=check_in,
        workout=generated.workout,
        used_fallback=generated.used_fallback,
        message=generated.message,
        verse=verse,
        check_in_saved=check_in_saved,
        workout_saved=workout_saved,
    )
