import pytest

from conftest import make_exercise, make_workout
from stronghold.models.workout import (
    PostWorkoutCheck,
    PostWorkoutEmotional,
    PostWorkoutMental,
    PostWorkoutPhysical,
)
from stronghold.session.state_machine import AtExercise, Finished, Resting, SessionStateError, WorkoutSession
from stronghold.telemetry.rowing import RowingData


def _check():
    return PostWorkoutCheck(
        physical=PostWorkoutPhysical(knee=7, shoulder=6, overall="good", energy=7),
        mental=PostWorkoutMental(clarity=8, stress=3, focus=7),
        emotional=PostWorkoutEmotional(mood="calm", intensity=4, outlook=8),
    )


def _two_exercise_workout(rest=3):
    return make_workout([make_exercise("a", sets=2, rest=rest), make_exercise("b", sets=1, rest=rest)])


def test_walkthrough_with_rest(store, clock):
    workout = _two_exercise_workout()
    store.save_workout(workout)
    session = WorkoutSession(workout, store=store, clock=clock)
    assert session.state == AtExercise(0, 0)

    assert session.complete_set(10, 20.0, "good") == Resting(3, 1)
    assert session.tick() == Resting(2, 1)
    session.tick()
    assert session.tick() == AtExercise(0, 1)
    assert session.complete_set(10, 20.0, "hard") == AtExercise(1, 0)
    assert session.complete_set(8, None, "easy") == Finished()

    stored = store.get_workout_by_id("w1")
    assert all(s.completed for e in stored.exercises for s in e.sets)
    assert stored.exercises[0].sets[1].difficulty == "hard"
    assert stored.version == 3


@pytest.mark.parametrize("use_skip", [False, True])
def test_terminates_after_total_set_count(use_skip):
    workout = make_workout(
        [make_exercise("a", sets=3, rest=0), make_exercise("b", sets=1), make_exercise("c", sets=2, rest=30)]
    )
    session = WorkoutSession(workout)
    calls = 0
    while not session.is_finished:
        if isinstance(session.state, Resting):
            session.skip_rest()
            continue
        if use_skip:
            session.skip_set()
        else:
            session.complete_set(5)
        calls += 1
    assert calls == 6


def test_zero_second_rest_goes_straight_to_next_set():
    session = WorkoutSession(make_workout([make_exercise("a", sets=2, rest=0)]))
    assert session.complete_set(10) == AtExercise(0, 1)


def test_skip_set_never_rests():
    session = WorkoutSession(_two_exercise_workout())
    assert session.skip_set() == AtExercise(0, 1)
    assert not session.workout.exercises[0].sets[0].completed


def test_substitution_resets_set_index_and_cancels_rest(store):
    workout = _two_exercise_workout()
    store.save_workout(workout)
    session = WorkoutSession(workout, store=store)
    session.complete_set(10)
    assert isinstance(session.state, Resting)
    replacement = make_exercise("swap", sets=4)
    assert session.substitute_exercise(replacement) == AtExercise(0, 0)
    assert session.current_exercise.id == "swap"
    assert store.get_workout_by_id("w1").exercises[0].id == "swap"


def test_substitution_from_later_set():
    session = WorkoutSession(_two_exercise_workout(rest=0))
    session.skip_set()
    assert session.state == AtExercise(0, 1)
    assert session.substitute_exercise(make_exercise("swap")) == AtExercise(0, 0)


def test_skip_exercise_marks_and_advances():
    session = WorkoutSession(_two_exercise_workout())
    assert session.skip_exercise("knee") == AtExercise(1, 0)
    skipped = session.workout.exercises[0]
    assert skipped.skipped and skipped.skip_reason == "knee"


def test_end_workout_jumps_to_finished():
    session = WorkoutSession(_two_exercise_workout())
    assert session.end_workout() == Finished()
    assert session.progress() == (2, 2)


def test_invalid_transitions_raise():
    session = WorkoutSession(_two_exercise_workout())
    with pytest.raises(SessionStateError):
        session.tick()
    with pytest.raises(SessionStateError):
        session.skip_rest()
    session.complete_set(10)
    with pytest.raises(SessionStateError):
        session.complete_set(10)
    with pytest.raises(SessionStateError):
        session.submit_post_workout(_check())
    session.end_workout()
    with pytest.raises(SessionStateError):
        session.skip_set()
    with pytest.raises(SessionStateError):
        session.substitute_exercise(make_exercise("late"))


def test_post_workout_is_accepted_once(store, clock):
    workout = _two_exercise_workout()
    store.save_workout(workout)
    session = WorkoutSession(workout, store=store, clock=clock)
    session.end_workout()
    clock.advance(minutes=42, seconds=30)
    finished = session.submit_post_workout(_check())
    assert finished.completed
    assert finished.actual_duration == 42
    assert finished.completed_at == clock.now
    stored = store.get_workout_by_id("w1")
    assert stored.completed and stored.post_workout.emotional.mood == "calm"
    with pytest.raises(SessionStateError):
        session.submit_post_workout(_check())


def test_storage_failures_do_not_stop_the_session(store, fake_redis):
    workout = _two_exercise_workout(rest=0)
    store.save_workout(workout)
    session = WorkoutSession(workout, store=store)
    fake_redis.fail = True
    session.complete_set(10)
    session.complete_set(10)
    assert session.state == AtExercise(1, 0)


def test_stale_version_is_logged_and_session_continues(store):
    workout = _two_exercise_workout(rest=0)
    store.save_workout(workout)
    session = WorkoutSession(workout, store=store)
    store.update_workout("w1", {"reasoning": "edited elsewhere"})
    session.complete_set(10)
    assert session.state == AtExercise(0, 1)
    session.complete_set(12)
    stored = store.get_workout_by_id("w1")
    assert stored.exercises[0].sets[1].actual_reps == 12
    assert session.workout.version == stored.version


def test_stale_final_write_still_records_completion(store, clock):
    workout = _two_exercise_workout(rest=0)
    store.save_workout(workout)
    session = WorkoutSession(workout, store=store, clock=clock)
    session.end_workout()
    store.update_workout("w1", {"reasoning": "edited elsewhere"})
    clock.advance(minutes=15)
    returned = session.submit_post_workout(_check())
    stored = store.get_workout_by_id("w1")
    assert returned.completed and stored.completed
    assert stored.completed_at == clock.now
    assert stored.actual_duration == 15
    assert stored.post_workout.emotional.mood == "calm"
    assert session.workout.version == stored.version


def test_stale_substitution_reaches_the_store(store, caplog):
    caplog.set_level("WARNING")
    workout = _two_exercise_workout(rest=0)
    store.save_workout(workout)
    session = WorkoutSession(workout, store=store)
    store.update_workout("w1", {"reasoning": "edited elsewhere"})
    session.substitute_exercise(make_exercise("swap", name="Cable Chest Press"))
    session.end_workout()
    assert store.get_workout_by_id("w1").exercises[0].name == "Cable Chest Press"
    assert "[persist] stale workout_id=w1" in caplog.text


def test_rowing_prefill():
    rowing = make_exercise("easy_rowing", sets=1, equipment="rowing_machine", phase="warmup", reps=0)
    session = WorkoutSession(make_workout([rowing, make_exercise("b", sets=1)]))
    data = RowingData.from_reading(stroke_rate=22, stroke_count=300, distance=2000, duration=605, resistance_level=7)
    session.complete_set_from_rowing(data, "good")
    logged = session.workout.exercises[0].sets[0]
    assert logged.actual_reps == 10
    assert logged.actual_weight == 7.0
    with pytest.raises(SessionStateError):
        session.complete_set_from_rowing(data)


def test_progress_counts_from_one():
    session = WorkoutSession(_two_exercise_workout())
    assert session.progress() == (1, 2)


def test_empty_workout_starts_finished():
    assert WorkoutSession(make_workout([])).is_finished
