from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Protocol, Type, TypeVar

from pydantic import BaseModel, ValidationError

from stronghold.config.constants import (
    DEFAULT_USER_ID,
    RECENT_CHECK_INS_LIMIT,
    RECENT_WORKOUTS_LIMIT,
    _store_check_ins_key,
    _store_user_data_key,
    _store_workouts_key,
)
from stronghold.models.checkin import CheckIn
from stronghold.models.workout import Workout
from stronghold.redis.cache import RedisJSON

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class StorageError(RuntimeError):
    """The backing store could not be read or written."""


class StaleWorkoutError(StorageError):
    """An update was based on an out-of-date workout version."""

    def __init__(self, workout_id: str, expected: int, actual: int) -> None:
        super().__init__(
            f"Workout {workout_id} is at version {actual}, update expected {expected}."
        )
        self.workout_id = workout_id
        self.expected = expected
        self.actual = actual


class Store(Protocol):
    def save_check_in(self, check_in: CheckIn) -> str: ...

    def get_check_in_by_id(self, check_in_id: str) -> Optional[CheckIn]: ...

    def get_today_check_in(self) -> Optional[CheckIn]: ...

    def get_recent_check_ins(self, count: int = RECENT_CHECK_INS_LIMIT) -> List[CheckIn]: ...

    def save_workout(self, workout: Workout) -> str: ...

    def update_workout(
        self,
        workout_id: str,
        updates: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> Workout: ...

    def get_workout_by_id(self, workout_id: str) -> Optional[Workout]: ...

    def get_today_workout(self) -> Optional[Workout]: ...

    def get_recent_workouts(self, count: Optional[int] = RECENT_WORKOUTS_LIMIT) -> List[Workout]: ...

    def get_completed_workouts(self, within_days: int = 30) -> List[Workout]: ...

    def clear_all(self) -> None: ...

    def clear_today(self) -> None: ...


def _local_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


class RedisStore:
    """Per-user check-ins and workouts kept as whole JSON arrays in Redis.

    Every write rewrites the array. ``update_workout`` bumps ``version`` and,
    when given ``expected_version``, refuses to overwrite a newer record.
    """

    def __init__(
        self,
        cache: RedisJSON,
        user_id: int = DEFAULT_USER_ID,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.cache = cache
        self.user_id = user_id
        self.clock = clock

    def _today(self) -> date:
        return self.clock().date()

    def _load(self, key: str, model: Type[ModelT]) -> List[ModelT]:
        try:
            rows = self.cache.get_json(key)
        except Exception as exc:
            raise StorageError(f"Failed to read {key}: {exc}") from exc
        if not rows:
            return []
        try:
            return [model.model_validate(row) for row in rows]
        except ValidationError as exc:
            raise StorageError(f"Stored data under {key} is malformed.") from exc

    def _dump(self, key: str, items: List[BaseModel]) -> None:
        try:
            self.cache.set_json(key, [item.model_dump(mode="json") for item in items])
        except Exception as exc:
            raise StorageError(f"Failed to write {key}: {exc}") from exc

    def _check_ins(self) -> List[CheckIn]:
        return self._load(_store_check_ins_key(self.user_id), CheckIn)

    def _workouts(self) -> List[Workout]:
        return self._load(_store_workouts_key(self.user_id), Workout)

    def save_check_in(self, check_in: CheckIn) -> str:
        check_ins = self._check_ins()
        check_ins.append(check_in)
        self._dump(_store_check_ins_key(self.user_id), check_ins)
        logger.info("[save_check_in] user_id=%s check_in_id=%s", self.user_id, check_in.id)
        return check_in.id

    def get_check_in_by_id(self, check_in_id: str) -> Optional[CheckIn]:
        return next((c for c in self._check_ins() if c.id == check_in_id), None)

    def get_today_check_in(self) -> Optional[CheckIn]:
        today = self._today()
        return next(
            (c for c in self._check_ins() if _local_naive(c.date).date() == today),
            None,
        )

    def get_recent_check_ins(self, count: int = RECENT_CHECK_INS_LIMIT) -> List[CheckIn]:
        check_ins = sorted(self._check_ins(), key=lambda c: _local_naive(c.date), reverse=True)
        return check_ins[:count]

    def save_workout(self, workout: Workout) -> str:
        workouts = self._workouts()
        workouts.append(workout)
        self._dump(_store_workouts_key(self.user_id), workouts)
        logger.info("[save_workout] user_id=%s workout_id=%s", self.user_id, workout.id)
        return workout.id

    def update_workout(
        self,
        workout_id: str,
        updates: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> Workout:
        workouts = self._workouts()
        index = next((i for i, w in enumerate(workouts) if w.id == workout_id), None)
        if index is None:
            raise StorageError(f"Workout not found: {workout_id}")
        current = workouts[index]
        if expected_version is not None and expected_version != current.version:
            raise StaleWorkoutError(workout_id, expected_version, current.version)

        data = current.model_dump()
        data.update(updates)
        data["id"] = current.id
        data["version"] = current.version + 1
        data["updated_at"] = self.clock()
        try:
            updated = Workout.model_validate(data)
        except ValidationError as exc:
            raise StorageError(f"Invalid update for workout {workout_id}.") from exc

        workouts[index] = updated
        self._dump(_store_workouts_key(self.user_id), workouts)
        logger.debug(
            "[update_workout] workout_id=%s version=%s fields=%s",
            workout_id,
            updated.version,
            sorted(updates),
        )
        return updated

    def get_workout_by_id(self, workout_id: str) -> Optional[Workout]:
        return next((w for w in self._workouts() if w.id == workout_id), None)

    def get_today_workout(self) -> Optional[Workout]:
        """Most recently created workout dated today, if any."""
        today = self._today()
        todays = [w for w in self._workouts() if _local_naive(w.date).date() == today]
        if not todays:
            return None
        return max(todays, key=lambda w: _local_naive(w.created_at))

    def get_recent_workouts(self, count: Optional[int] = RECENT_WORKOUTS_LIMIT) -> List[Workout]:
        workouts = sorted(self._workouts(), key=lambda w: _local_naive(w.date), reverse=True)
        return workouts if count is None else workouts[:count]

    def get_completed_workouts(self, within_days: int = 30) -> List[Workout]:
        start = self.clock() - timedelta(days=within_days)
        completed = [
            w for w in self._workouts() if w.completed and _local_naive(w.date) >= start
        ]
        return sorted(completed, key=lambda w: _local_naive(w.date), reverse=True)

    def clear_all(self) -> None:
        try:
            self.cache.delete(_store_check_ins_key(self.user_id))
            self.cache.delete(_store_workouts_key(self.user_id))
            self.cache.delete(_store_user_data_key(self.user_id))
        except Exception as exc:
            raise StorageError(f"Failed to clear data for user {self.user_id}: {exc}") from exc
        logger.info("[clear_all] user_id=%s", self.user_id)

    def clear_today(self) -> None:
        today = self._today()
        check_ins = [c for c in self._check_ins() if _local_naive(c.date).date() != today]
        workouts = [w for w in self._workouts() if _local_naive(w.date).date() != today]
        self._dump(_store_check_ins_key(self.user_id), check_ins)
        self._dump(_store_workouts_key(self.user_id), workouts)
        logger.info("[clear_today] user_id=%s date=%s", self.user_id, today.isoformat())


def store_from_env(user_id: int = DEFAULT_USER_ID) -> RedisStore:
    cache = RedisJSON.from_env()
    if cache is None:
        raise StorageError(
            "Redis is not configured. Set REDIS_URL or UPSTASH_REDIS_REST_URL/UPSTASH_REDIS_REST_TOKEN."
        )
    return RedisStore(cache, user_id=user_id)
