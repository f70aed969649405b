from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict, List, Optional

import pytest

from stronghold.catalog.catalog import CatalogProvider, ExerciseTemplate
from stronghold.models.checkin import CheckIn, EmotionalCheck, MentalCheck, PhysicalState
from stronghold.models.workout import Exercise, ExerciseSet, Workout
from stronghold.redis.cache import RedisJSON
from stronghold.storage.store import RedisStore

NOW = datetime(2026, 10, 19, 9, 0, 0)


class FakeRedis:
    """In-memory stand-in for a synchronous Redis client."""

    def __init__(self) -> None:
        self.data: Dict[str, str] = {}
        self.fail = False
        self.writes = 0

    def _check(self) -> None:
        if self.fail:
            raise ConnectionError("redis is down")

    def get(self, key):
        self._check()
        return self.data.get(key)

    def set(self, key, value):
        self._check()
        self.writes += 1
        self.data[key] = value

    def delete(self, key):
        self._check()
        self.data.pop(key, None)


class FakeClock:
    def __init__(self, start: datetime = NOW) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(autouse=True)
def _env_isolation(monkeypatch):
    for name in ("REDIS_URL", "UPSTASH_REDIS_REST_URL", "UPSTASH_REDIS_REST_TOKEN", "OPENAI_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def store(fake_redis, clock):
    return RedisStore(RedisJSON(fake_redis), user_id=1, clock=clock)


def make_template(
    template_id: str,
    phase: str = "strength",
    equipment: str = "cables",
    knee_friendly: bool = False,
    shoulder_friendly: bool = False,
    target_muscles=("chest",),
    name: Optional[str] = None,
    default_reps: int = 10,
) -> ExerciseTemplate:
    return ExerciseTemplate(
        id=template_id,
        name=name or template_id.replace("_", " ").title(),
        equipment=equipment,
        phase=phase,
        default_sets=3,
        default_reps=default_reps,
        default_rest_seconds=60,
        form_cues=("Stay tall",),
        target_muscles=tuple(target_muscles),
        knee_friendly=knee_friendly,
        shoulder_friendly=shoulder_friendly,
    )


@pytest.fixture
def chest_catalog():
    return CatalogProvider(
        [
            make_template("cable_chest_press", equipment="cables", shoulder_friendly=False),
            make_template("band_chest_press", equipment="resistance_bands", shoulder_friendly=True),
            make_template("easy_rowing", phase="warmup", equipment="rowing_machine", default_reps=0,
                          knee_friendly=True, shoulder_friendly=True, target_muscles=("full body",)),
            make_template("hamstring_stretch", phase="cooldown", equipment="bodyweight",
                          target_muscles=("hamstrings",)),
        ]
    )


def make_exercise(
    exercise_id: str,
    sets: int = 2,
    rest: int = 60,
    phase: str = "strength",
    equipment: str = "cables",
    template_id: Optional[str] = None,
    reps: int = 10,
    name: Optional[str] = None,
) -> Exercise:
    return Exercise(
        id=exercise_id,
        name=name or exercise_id.replace("_", " ").title(),
        equipment=equipment,
        phase=phase,
        sets=[ExerciseSet(set_number=i + 1, target_reps=reps, rest_seconds=rest) for i in range(sets)],
        template_id=template_id,
    )


def make_workout(
    exercises: List[Exercise],
    workout_id: str = "w1",
    when: datetime = NOW,
    completed: bool = False,
) -> Workout:
    return Workout(
        id=workout_id,
        date=when,
        type="upper_body",
        estimated_duration=30,
        reasoning="test",
        exercises=exercises,
        completed=completed,
        created_at=when,
        updated_at=when,
    )


def make_check_in(
    check_in_id: str = "c1",
    when: datetime = NOW,
    knee: int = 8,
    shoulder: int = 8,
    stress: int = 5,
    clarity: int = 5,
    mental_state: str = "clear",
    emotion: str = "peaceful",
    weight: Optional[float] = None,
) -> CheckIn:
    return CheckIn(
        id=check_in_id,
        date=when,
        physical=PhysicalState(knee=knee, shoulder=shoulder, energy=6, sleep=7, weight=weight),
        mental=MentalCheck(state=mental_state, stress=stress, clarity=clarity),
        emotional=EmotionalCheck(primary=emotion, intensity=5),
        created_at=when,
    )
