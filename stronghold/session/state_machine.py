from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple, Union

from stronghold.models.workout import Exercise, ExerciseSet, PostWorkoutCheck, Workout
from stronghold.storage.store import StaleWorkoutError, StorageError, Store
from stronghold.telemetry.rowing import RowingData, prefill_from_rowing

logger = logging.getLogger(__name__)


class SessionStateError(RuntimeError):
    """An action was requested that the current session state does not allow."""


@dataclass(frozen=True)
class AtExercise:
    exercise_index: int
    set_index: int


@dataclass(frozen=True)
class Resting:
    seconds_remaining: int
    queued_set_index: int


@dataclass(frozen=True)
class Finished:
    pass


SessionState = Union[AtExercise, Resting, Finished]


class WorkoutSession:
    """Drives one workout from the first set to the post-workout reflection.

    The session owns its copy of the workout and is the only writer while it
    runs. Each write carries the last version the store returned. Storage
    failures are logged and never stop the session.
    """

    def __init__(
        self,
        workout: Workout,
        store: Optional[Store] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.workout = workout.model_copy(deep=True)
        self.store = store
        self.clock = clock
        self.exercise_index = 0
        self.post_workout_submitted = False
        first = self._next_exercise_index(-1)
        if first is None:
            self.state: SessionState = Finished()
        else:
            self.exercise_index = first
            self.state = AtExercise(first, 0)

    # -- inspection -------------------------------------------------------

    @property
    def is_finished(self) -> bool:
        return isinstance(self.state, Finished)

    @property
    def current_exercise(self) -> Optional[Exercise]:
        if self.is_finished:
            return None
        return self.workout.exercises[self.exercise_index]

    @property
    def current_set(self) -> Optional[ExerciseSet]:
        if not isinstance(self.state, AtExercise):
            return None
        return self.workout.exercises[self.state.exercise_index].sets[self.state.set_index]

    def progress(self) -> Tuple[int, int]:
        total = len(self.workout.exercises)
        if self.is_finished:
            return total, total
        return self.exercise_index + 1, total

    # -- transitions ------------------------------------------------------

    def complete_set(
        self,
        actual_reps: Optional[int],
        actual_weight: Optional[float] = None,
        difficulty: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> SessionState:
        state = self._require_at_exercise("complete_set")
        exercise = self.workout.exercises[state.exercise_index]
        current = exercise.sets[state.set_index]
        exercise.sets[state.set_index] = current.model_copy(
            update={
                "actual_reps": actual_reps,
                "actual_weight": actual_weight,
                "difficulty": difficulty,
                "notes": notes,
                "completed": True,
                "completed_at": self.clock(),
            }
        )
        self._persist({"exercises": self._exercises_payload()})

        if state.set_index < len(exercise.sets) - 1:
            rest = current.rest_seconds
            if rest > 0:
                self.state = Resting(rest, state.set_index + 1)
            else:
                self.state = AtExercise(state.exercise_index, state.set_index + 1)
        else:
            self._advance_exercise()
        logger.debug("[complete_set] workout_id=%s state=%s", self.workout.id, self.state)
        return self.state

    def complete_set_from_rowing(
        self, data: Optional[RowingData], difficulty: Optional[str] = None
    ) -> SessionState:
        state = self._require_at_exercise("complete_set_from_rowing")
        prefill = prefill_from_rowing(self.workout.exercises[state.exercise_index], data)
        if prefill is None:
            raise SessionStateError("Current exercise is not a rowing exercise or no rowing data is available.")
        minutes, level = prefill
        return self.complete_set(minutes, level, difficulty)

    def skip_set(self) -> SessionState:
        state = self._require_at_exercise("skip_set")
        exercise = self.workout.exercises[state.exercise_index]
        if state.set_index < len(exercise.sets) - 1:
            self.state = AtExercise(state.exercise_index, state.set_index + 1)
        else:
            self._advance_exercise()
        return self.state

    def tick(self) -> SessionState:
        """Advance the rest countdown by one second."""
        if not isinstance(self.state, Resting):
            raise SessionStateError("tick is only valid while resting.")
        remaining = self.state.seconds_remaining - 1
        if remaining <= 0:
            self.state = AtExercise(self.exercise_index, self.state.queued_set_index)
        else:
            self.state = Resting(remaining, self.state.queued_set_index)
        return self.state

    def skip_rest(self) -> SessionState:
        if not isinstance(self.state, Resting):
            raise SessionStateError("skip_rest is only valid while resting.")
        self.state = AtExercise(self.exercise_index, self.state.queued_set_index)
        return self.state

    def substitute_exercise(self, new_exercise: Exercise) -> SessionState:
        self._require_active("substitute_exercise")
        if not new_exercise.sets:
            raise SessionStateError("A substitute exercise needs at least one set.")
        old = self.workout.exercises[self.exercise_index]
        self.workout.exercises[self.exercise_index] = new_exercise
        self.state = AtExercise(self.exercise_index, 0)
        self._persist({"exercises": self._exercises_payload()})
        logger.info(
            "[substitute_exercise] workout_id=%s from=%s to=%s",
            self.workout.id,
            old.name,
            new_exercise.name,
        )
        return self.state

    def skip_exercise(self, reason: Optional[str] = None) -> SessionState:
        self._require_active("skip_exercise")
        exercise = self.workout.exercises[self.exercise_index]
        exercise.skipped = True
        exercise.skip_reason = reason
        self._persist({"exercises": self._exercises_payload()})
        self._advance_exercise()
        return self.state

    def end_workout(self) -> SessionState:
        if not self.is_finished:
            logger.info(
                "[end_workout] workout_id=%s ended at exercise=%d/%d",
                self.workout.id,
                *self.progress(),
            )
            self.state = Finished()
        return self.state

    def submit_post_workout(self, check: PostWorkoutCheck) -> Workout:
        if not self.is_finished:
            raise SessionStateError("The post-workout check is only accepted once the workout is finished.")
        if self.post_workout_submitted:
            raise SessionStateError("The post-workout check was already submitted.")
        now = self.clock()
        updates: Dict[str, Any] = {
            "completed": True,
            "completed_at": now,
            "actual_duration": int((now - self.workout.created_at).total_seconds() // 60),
            "post_workout": check,
        }
        for field_name, value in updates.items():
            setattr(self.workout, field_name, value)
        self.post_workout_submitted = True
        self._persist(updates)
        logger.info(
            "[submit_post_workout] workout_id=%s actual_duration=%s",
            self.workout.id,
            self.workout.actual_duration,
        )
        return self.workout

    # -- helpers ----------------------------------------------------------

    def _require_at_exercise(self, action: str) -> AtExercise:
        if not isinstance(self.state, AtExercise):
            raise SessionStateError(f"{action} is not allowed while {type(self.state).__name__}.")
        return self.state

    def _require_active(self, action: str) -> None:
        if self.is_finished:
            raise SessionStateError(f"{action} is not allowed after the workout finished.")

    def _next_exercise_index(self, after: int) -> Optional[int]:
        for index in range(after + 1, len(self.workout.exercises)):
            if self.workout.exercises[index].sets:
                return index
        return None

    def _advance_exercise(self) -> None:
        following = self._next_exercise_index(self.exercise_index)
        if following is None:
            self.state = Finished()
            return
        self.exercise_index = following
        self.state = AtExercise(following, 0)

    def _exercises_payload(self):
        return [exercise.model_copy(deep=True) for exercise in self.workout.exercises]

    def _persist(self, updates: Dict[str, Any]) -> None:
        if self.store is None:
            return
        try:
            try:
                updated = self.store.update_workout(
                    self.workout.id, updates, expected_version=self.workout.version
                )
            except StaleWorkoutError as exc:
                # Single writer: rebase on the stored version and write again once.
                logger.warning("[persist] stale workout_id=%s error=%s", self.workout.id, exc)
                self.workout.version = exc.actual
                updated = self.store.update_workout(
                    self.workout.id, updates, expected_version=self.workout.version
                )
        except StorageError as exc:
            logger.error("[persist] failed workout_id=%s error=%s", self.workout.id, exc)
            return
        self.workout.version = updated.version
