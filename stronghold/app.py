from __future__ import annotations

"""
Stronghold coaching backend (check-ins, workouts, live sessions, progress).
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from stronghold.ai.client import build_llm_generate
from stronghold.ai.verse_generator import VERSE_SYSTEM_PROMPT, VerseGenerator
from stronghold.ai.workout_generator import WorkoutGenerator
from stronghold.analytics.progress import ProgressReport, get_progress_report
from stronghold.catalog.catalog import CatalogProvider, default_catalog
from stronghold.config.constants import load_environment
from stronghold.models.checkin import BibleVerse, CheckIn, EmotionalCheck, MentalCheck, PhysicalState
from stronghold.models.workout import Exercise, ExerciseDifficulty, PostWorkoutCheck, Workout
from stronghold.prompts.workout_prompt import WORKOUT_SYSTEM_PROMPT
from stronghold.session.state_machine import AtExercise, Resting, SessionStateError, WorkoutSession
from stronghold.storage.store import StorageError, Store, store_from_env
from stronghold.substitution.engine import JointHealth, browse_substitutions, sized_replacement
from stronghold.tools.checkin_tools import create_check_in, submit_check_in

load_environment()
logger = logging.getLogger(__name__)

app = FastAPI(title="Stronghold Coach API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Services are built lazily so env vars are loaded first; tests replace them.
_STORE: Optional[Store] = None
_WORKOUT_GENERATOR: Optional[WorkoutGenerator] = None
_VERSE_GENERATOR: Optional[VerseGenerator] = None
_CATALOG: Optional[CatalogProvider] = None
_SESSIONS: Dict[str, WorkoutSession] = {}


def configure_services(
    store: Optional[Store] = None,
    workout_generator: Optional[WorkoutGenerator] = None,
    verse_generator: Optional[VerseGenerator] = None,
    catalog: Optional[CatalogProvider] = None,
) -> None:
    global _STORE, _WORKOUT_GENERATOR, _VERSE_GENERATOR, _CATALOG
    _STORE = store
    _WORKOUT_GENERATOR = workout_generator
    _VERSE_GENERATOR = verse_generator
    _CATALOG = catalog
    _SESSIONS.clear()


def _get_catalog() -> CatalogProvider:
    global _CATALOG
    if _CATALOG is None:
        _CATALOG = default_catalog()
    return _CATALOG


def _get_store() -> Store:
    global _STORE
    if _STORE is None:
        try:
            _STORE = store_from_env()
        except StorageError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
    return _STORE


def _get_workout_generator() -> WorkoutGenerator:
    global _WORKOUT_GENERATOR
    if _WORKOUT_GENERATOR is None:
        _WORKOUT_GENERATOR = WorkoutGenerator(
            build_llm_generate(system_prompt=WORKOUT_SYSTEM_PROMPT), catalog=_get_catalog()
        )
    return _WORKOUT_GENERATOR


def _get_verse_generator() -> VerseGenerator:
    global _VERSE_GENERATOR
    if _VERSE_GENERATOR is None:
        _VERSE_GENERATOR = VerseGenerator(build_llm_generate(system_prompt=VERSE_SYSTEM_PROMPT))
    return _VERSE_GENERATOR


class CheckInRequest(BaseModel):
    physical: PhysicalState
    mental: MentalCheck
    emotional: EmotionalCheck
    include_verse: bool = True


class CheckInResponse(BaseModel):
    check_in: CheckIn
    workout: Workout
    used_fallback: bool
    message: Optional[str] = None
    verse: Optional[BibleVerse] = None
    check_in_saved: bool
    workout_saved: bool


class CompleteSetRequest(BaseModel):
    actual_reps: Optional[int] = None
    actual_weight: Optional[float] = None
    difficulty: Optional[ExerciseDifficulty] = None
    notes: Optional[str] = None


class SkipExerciseRequest(BaseModel):
    reason: Optional[str] = None


class SubstituteRequest(BaseModel):
    template_id: str


class SubstitutionOption(BaseModel):
    id: str
    name: str
    equipment: str
    phase: str
    default_sets: int
    default_reps: int
    target_muscles: List[str]
    knee_friendly: bool
    shoulder_friendly: bool


class SubstitutionsResponse(BaseModel):
    exercise: Exercise
    mode: str
    tier: Optional[str] = None
    options: List[SubstitutionOption]


class SessionResponse(BaseModel):
    workout_id: str
    state: str
    exercise_index: Optional[int] = None
    set_index: Optional[int] = None
    seconds_remaining: Optional[int] = None
    queued_set_index: Optional[int] = None
    exercise_number: int
    total_exercises: int
    current_exercise: Optional[Exercise] = None
    workout: Workout


def _session_response(session: WorkoutSession) -> SessionResponse:
    state = session.state
    number, total = session.progress()
    payload: Dict[str, Any] = {
        "workout_id": session.workout.id,
        "exercise_number": number,
        "total_exercises": total,
        "current_exercise": session.current_exercise,
        "workout": session.workout,
    }
    if isinstance(state, AtExercise):
        payload.update(state="at_exercise", exercise_index=state.exercise_index, set_index=state.set_index)
    elif isinstance(state, Resting):
        payload.update(
            state="resting",
            exercise_index=session.exercise_index,
            seconds_remaining=state.seconds_remaining,
            queued_set_index=state.queued_set_index,
        )
    else:
        payload.update(state="finished")
    return SessionResponse(**payload)


def _load_workout(workout_id: str) -> Workout:
    try:
        workout = _get_store().get_workout_by_id(workout_id)
    except StorageError as exc:
        raise HTTPException(status_code=503, detail=f"Storage error: {exc}") from exc
    if workout is None:
        raise HTTPException(status_code=404, detail="Workout not found")
    return workout


def _active_session(workout_id: str) -> WorkoutSession:
    session = _SESSIONS.get(workout_id)
    if session is None:
        raise HTTPException(status_code=404, detail="No active session for this workout")
    return session


def _session_action(workout_id: str, action) -> SessionResponse:
    session = _active_session(workout_id)
    try:
        action(session)
    except SessionStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _session_response(session)


def _joint_health_for(workout: Workout) -> Optional[JointHealth]:
    if not workout.check_in_id:
        return None
    try:
        check_in = _get_store().get_check_in_by_id(workout.check_in_id)
    except StorageError as exc:
        logger.warning("[joint_health] check-in lookup failed workout_id=%s error=%s", workout.id, exc)
        return None
    if check_in is None:
        return None
    return JointHealth(knee=check_in.physical.knee, shoulder=check_in.physical.shoulder)


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/exercises")
def list_exercises(
    equipment: Optional[str] = Query(default=None),
    phase: Optional[str] = Query(default=None),
) -> List[Dict[str, Any]]:
    templates = _get_catalog().all()
    if equipment:
        templates = [t for t in templates if t.equipment == equipment]
    if phase:
        templates = [t for t in templates if t.phase == phase]
    return [t.to_dict() for t in templates]


@app.post("/checkins", response_model=CheckInResponse)
def post_check_in(payload: CheckInRequest) -> CheckInResponse:
    check_in = create_check_in(payload.physical, payload.mental, payload.emotional)
    result = submit_check_in(
        _get_store(),
        _get_workout_generator(),
        check_in,
        verse_generator=_get_verse_generator() if payload.include_verse else None,
    )
    return CheckInResponse(
        check_in=result.check_in,
        workout=result.workout,
        used_fallback=result.used_fallback,
        message=result.message,
        verse=result.verse,
        check_in_saved=result.check_in_saved,
        workout_saved=result.workout_saved,
    )


@app.get("/workouts/today", response_model=Workout)
def get_today_workout() -> Workout:
    try:
        workout = _get_store().get_today_workout()
    except StorageError as exc:
        raise HTTPException(status_code=503, detail=f"Storage error: {exc}") from exc
    if workout is None:
        raise HTTPException(status_code=404, detail="No workout for today")
    return workout


@app.get("/workouts/{workout_id}", response_model=Workout)
def get_workout(workout_id: str) -> Workout:
    return _load_workout(workout_id)


@app.post("/workouts/{workout_id}/session", response_model=SessionResponse)
def start_session(workout_id: str) -> SessionResponse:
    workout = _load_workout(workout_id)
    session = WorkoutSession(workout, store=_get_store())
    _SESSIONS[workout_id] = session
    logger.info("[start_session] workout_id=%s exercises=%d", workout_id, len(workout.exercises))
    return _session_response(session)


@app.get("/workouts/{workout_id}/session", response_model=SessionResponse)
def get_session(workout_id: str) -> SessionResponse:
    return _session_response(_active_session(workout_id))


@app.get("/workouts/{workout_id}/substitutions", response_model=SubstitutionsResponse)
def get_substitutions(
    workout_id: str,
    mode: str = Query(default="suggested"),
    equipment: Optional[str] = Query(default=None),
    q: Optional[str] = Query(default=None),
    exercise_index: Optional[int] = Query(default=None),
) -> SubstitutionsResponse:
    session = _SESSIONS.get(workout_id)
    workout = session.workout if session else _load_workout(workout_id)
    if exercise_index is None:
        if session is None or session.current_exercise is None:
            raise HTTPException(status_code=400, detail="exercise_index is required without an active session")
        exercise_index = session.exercise_index
    if not 0 <= exercise_index < len(workout.exercises):
        raise HTTPException(status_code=404, detail="Exercise not found")
    exercise = workout.exercises[exercise_index]
    try:
        result = browse_substitutions(
            exercise,
            mode=mode,
            joints=_joint_health_for(workout),
            equipment=equipment,
            query=q,
            catalog=_get_catalog(),
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    options = [
        SubstitutionOption(**{k: v for k, v in t.to_dict().items() if k in SubstitutionOption.model_fields})
        for t in result.templates
    ]
    return SubstitutionsResponse(exercise=exercise, mode=result.mode, tier=result.tier, options=options)


@app.post("/workouts/{workout_id}/session/complete-set", response_model=SessionResponse)
def complete_set(workout_id: str, payload: CompleteSetRequest) -> SessionResponse:
    return _session_action(
        workout_id,
        lambda s: s.complete_set(payload.actual_reps, payload.actual_weight, payload.difficulty, payload.notes),
    )


@app.post("/workouts/{workout_id}/session/skip-set", response_model=SessionResponse)
def skip_set(workout_id: str) -> SessionResponse:
    return _session_action(workout_id, lambda s: s.skip_set())


@app.post("/workouts/{workout_id}/session/skip-rest", response_model=SessionResponse)
def skip_rest(workout_id: str) -> SessionResponse:
    return _session_action(workout_id, lambda s: s.skip_rest())


@app.post("/workouts/{workout_id}/session/tick", response_model=SessionResponse)
def tick(workout_id: str) -> SessionResponse:
    return _session_action(workout_id, lambda s: s.tick())


@app.post("/workouts/{workout_id}/session/skip-exercise", response_model=SessionResponse)
def skip_exercise(workout_id: str, payload: SkipExerciseRequest) -> SessionResponse:
    return _session_action(workout_id, lambda s: s.skip_exercise(payload.reason))


@app.post("/workouts/{workout_id}/session/substitute", response_model=SessionResponse)
def substitute(workout_id: str, payload: SubstituteRequest) -> SessionResponse:
    session = _active_session(workout_id)
    template = _get_catalog().get(payload.template_id)
    if template is None:
        raise HTTPException(status_code=404, detail=f"Unknown exercise template: {payload.template_id}")
    current = session.current_exercise
    if current is None:
        raise HTTPException(status_code=409, detail="The workout is already finished")
    replacement = sized_replacement(template, current)
    return _session_action(workout_id, lambda s: s.substitute_exercise(replacement))


@app.post("/workouts/{workout_id}/session/end", response_model=SessionResponse)
def end_workout(workout_id: str) -> SessionResponse:
    return _session_action(workout_id, lambda s: s.end_workout())


@app.post("/workouts/{workout_id}/session/post-workout", response_model=Workout)
def post_workout(workout_id: str, payload: PostWorkoutCheck) -> Workout:
    if workout_id not in _SESSIONS and _load_workout(workout_id).post_workout is not None:
        raise HTTPException(status_code=409, detail="The post-workout check was already submitted.")
    session = _active_session(workout_id)
    try:
        workout = session.submit_post_workout(payload)
    except SessionStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    _SESSIONS.pop(workout_id, None)
    logger.info("[post_workout] workout_id=%s session closed", workout_id)
    return workout


@app.get("/progress", response_model=ProgressReport)
def progress(days: int = Query(default=30, ge=1, le=365)) -> ProgressReport:
    try:
        return get_progress_report(_get_store(), days)
    except StorageError as exc:
        raise HTTPException(status_code=503, detail=f"Storage error: {exc}") from exc


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
