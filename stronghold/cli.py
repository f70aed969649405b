from __future__ import annotations

import argparse
import sys
import time
from typing import Optional, Sequence

from stronghold.ai.client import build_llm_generate
from stronghold.ai.verse_generator import VERSE_SYSTEM_PROMPT, VerseGenerator
from stronghold.ai.workout_generator import WorkoutGenerator
from stronghold.analytics.progress import get_progress_report
from stronghold.catalog.catalog import default_catalog
from stronghold.config.constants import DEFAULT_USER_ID, load_environment
from stronghold.models.checkin import (
    EMOTIONAL_STATES,
    MENTAL_STATES,
    EmotionalCheck,
    MentalCheck,
    PhysicalState,
)
from stronghold.models.workout import (
    PostWorkoutCheck,
    PostWorkoutEmotional,
    PostWorkoutMental,
    PostWorkoutPhysical,
    Workout,
)
from stronghold.prompts.workout_prompt import WORKOUT_SYSTEM_PROMPT
from stronghold.session.state_machine import Resting, WorkoutSession
from stronghold.storage.store import RedisStore, StorageError, store_from_env
from stronghold.substitution.engine import JointHealth, browse_substitutions, sized_replacement
from stronghold.telemetry.rowing import is_rowing
from stronghold.tools.checkin_tools import create_check_in, submit_check_in

DIFFICULTIES = ("easy", "good", "hard", "pain")


def _ask_int(prompt: str, low: int, high: int, default: Optional[int] = None) -> Optional[int]:
    suffix = f" [{default}]" if default is not None else ""
    while True:
        raw = input(f"{prompt} ({low}-{high}){suffix}: ").strip()
        if not raw:
            if default is not None:
                return default
            continue
        try:
            value = int(raw)
        except ValueError:
            print("Please enter a whole number.")
            continue
        if low <= value <= high:
            return value
        print(f"Please enter a value between {low} and {high}.")


def _ask_float(prompt: str) -> Optional[float]:
    raw = input(f"{prompt} (blank to skip): ").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        print("Not a number, skipping.")
        return None


def _ask_choice(prompt: str, choices: Sequence[str], default: Optional[str] = None) -> str:
    options = "/".join(choices)
    while True:
        raw = input(f"{prompt} [{options}]: ").strip().lower()
        if not raw and default:
            return default
        if raw in choices:
            return raw
        print(f"Choose one of: {options}")


def _collect_check_in():
    print("\nMorning check-in\n")
    physical = PhysicalState(
        knee=_ask_int("Knee", 1, 10),
        shoulder=_ask_int("Shoulder", 1, 10),
        energy=_ask_int("Energy", 1, 10),
        sleep=_ask_int("Sleep quality", 1, 10, default=7),
        weight=_ask_float("Weight in lbs"),
    )
    mental = MentalCheck(
        state=_ask_choice("Mental state", MENTAL_STATES),
        stress=_ask_int("Stress", 1, 10),
        clarity=_ask_int("Clarity", 1, 10),
    )
    emotional = EmotionalCheck(
        primary=_ask_choice("Primary emotion", EMOTIONAL_STATES),
        intensity=_ask_int("Intensity", 1, 10),
    )
    return create_check_in(physical, mental, emotional)


def _print_workout(workout: Workout) -> None:
    print(
        f"\n{workout.type.replace('_', ' ').title()} - about {workout.estimated_duration} min, "
        f"{workout.total_sets()} sets"
    )
    if workout.reasoning:
        print(workout.reasoning)
    for exercise in workout.exercises:
        first = exercise.sets[0] if exercise.sets else None
        if exercise.duration:
            detail = f"{exercise.duration:g} min"
        elif first is not None:
            detail = f"{len(exercise.sets)} x {first.target_reps}"
        else:
            detail = ""
        print(f"  [{exercise.phase}] {exercise.name} {detail}")
    if workout.coaching_notes:
        print(f"\nCoach: {workout.coaching_notes}")


def _rest_countdown(session: WorkoutSession) -> None:
    print("Resting. Ctrl-C skips the rest.")
    try:
        while isinstance(session.state, Resting):
            print(f"\r  {session.state.seconds_remaining:3d}s", end="", flush=True)
            time.sleep(1)
            session.tick()
    except KeyboardInterrupt:
        session.skip_rest()
    print()


def _swap(session: WorkoutSession, joints: Optional[JointHealth]) -> None:
    current = session.current_exercise
    result = browse_substitutions(current, joints=joints)
    if not result.templates:
        print("No substitutes found for this exercise.")
        return
    for index, template in enumerate(result.templates, start=1):
        print(f"  {index}. {template.name} ({template.equipment})")
    choice = _ask_int("Swap to", 0, len(result.templates), default=0)
    if not choice:
        return
    replacement = sized_replacement(result.templates[choice - 1], current)
    session.substitute_exercise(replacement)
    print(f"Exercise swapped. Now doing: {replacement.name}")


def _log_set(session: WorkoutSession) -> None:
    exercise = session.current_exercise
    if is_rowing(exercise):
        minutes = _ask_int("Minutes rowed", 0, 180)
        level = _ask_int("Resistance level", 1, 16, default=5)
        difficulty = _ask_choice("How did it feel", DIFFICULTIES, default="good")
        session.complete_set(minutes, float(level), difficulty)
        return
    current_set = session.current_set
    reps = _ask_int("Reps done", 0, 500, default=current_set.target_reps)
    weight = _ask_float("Weight used")
    difficulty = _ask_choice("How did it feel", DIFFICULTIES, default="good")
    session.complete_set(reps, weight, difficulty)


def _collect_post_workout() -> PostWorkoutCheck:
    print("\nPost-workout check\n")
    return PostWorkoutCheck(
        physical=PostWorkoutPhysical(
            knee=_ask_int("Knee", 1, 10),
            shoulder=_ask_int("Shoulder", 1, 10),
            overall=_ask_choice("Overall", ("energized", "good", "tired", "exhausted")),
            energy=_ask_int("Energy", 1, 10),
        ),
        mental=PostWorkoutMental(
            clarity=_ask_int("Clarity", 1, 10),
            stress=_ask_int("Stress", 1, 10),
            focus=_ask_int("Focus", 1, 10),
        ),
        emotional=PostWorkoutEmotional(
            mood=_ask_choice("Mood", ("uplifted", "calm", "neutral", "drained", "frustrated")),
            intensity=_ask_int("Intensity", 1, 10),
            outlook=_ask_int("Outlook", 1, 10),
        ),
        notes=input("Notes (optional): ").strip() or None,
    )


def run_session(session: WorkoutSession, joints: Optional[JointHealth] = None) -> None:
    while not session.is_finished:
        if isinstance(session.state, Resting):
            _rest_countdown(session)
            continue
        exercise = session.current_exercise
        current_set = session.current_set
        number, total = session.progress()
        print(
            f"\nExercise {number}/{total}: {exercise.name} "
            f"- set {current_set.set_number}/{len(exercise.sets)}, target {current_set.target_reps}"
        )
        for cue in exercise.form_cues:
            print(f"  - {cue}")
        action = input("[enter] done, s skip set, x skip exercise, w swap, e end: ").strip().lower()
        if action == "s":
            session.skip_set()
        elif action == "x":
            session.skip_exercise(input("Reason (optional): ").strip() or None)
        elif action == "w":
            _swap(session, joints)
        elif action == "e":
            session.end_workout()
        else:
            _log_set(session)
    workout = session.submit_post_workout(_collect_post_workout())
    print(f"\nWorkout complete in {workout.actual_duration} min. Well done.")


def _run_check_in(store: RedisStore, with_verse: bool) -> None:
    catalog = default_catalog()
    generator = WorkoutGenerator(build_llm_generate(system_prompt=WORKOUT_SYSTEM_PROMPT), catalog=catalog)
    verses = VerseGenerator(build_llm_generate(system_prompt=VERSE_SYSTEM_PROMPT)) if with_verse else None
    check_in = _collect_check_in()
    print("\nBuilding today's workout...")
    result = submit_check_in(store, generator, check_in, verse_generator=verses)
    if result.verse:
        print(f"\n{result.verse.reference}\n{result.verse.text}")
    if result.message:
        print(f"\n{result.message}")
    _print_workout(result.workout)
    if input("\nStart the workout now? (yes/no): ").strip().lower().startswith("y"):
        joints = JointHealth(knee=check_in.physical.knee, shoulder=check_in.physical.shoulder)
        run_session(WorkoutSession(result.workout, store=store), joints)


def _run_today(store: RedisStore) -> None:
    workout = store.get_today_workout()
    if workout is None:
        print("No workout yet today. Run a check-in first.")
        return
    _print_workout(workout)
    if workout.completed:
        print("\nAlready completed today.")
        return
    if input("\nStart the workout now? (yes/no): ").strip().lower().startswith("y"):
        check_in = store.get_check_in_by_id(workout.check_in_id) if workout.check_in_id else None
        joints = (
            JointHealth(knee=check_in.physical.knee, shoulder=check_in.physical.shoulder) if check_in else None
        )
        run_session(WorkoutSession(workout, store=store), joints)


def _run_progress(store: RedisStore, days: int) -> None:
    report = get_progress_report(store, days)
    stats = report.stats
    print(f"\nLast {days} days: {stats.total_workouts} workouts")
    print(f"Current streak: {stats.current_streak} days, longest: {stats.longest_streak} days")
    print(f"This week: {stats.weekly_count}, this month: {stats.monthly_count}")
    for week in report.weekly_trend:
        print(f"  {week.week}: {week.workouts}")
    if report.top_exercises:
        print("\nTop exercises:")
        for item in report.top_exercises:
            print(f"  {item.name}: {item.times_performed}x, avg difficulty {item.avg_difficulty:.1f}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Stronghold daily check-in and workout coach.")
    parser.add_argument(
        "command",
        nargs="?",
        default="checkin",
        choices=("checkin", "today", "progress", "clear-today"),
    )
    parser.add_argument("--user-id", type=int, default=DEFAULT_USER_ID)
    parser.add_argument("--days", type=int, default=30, help="Window for the progress report.")
    parser.add_argument("--no-verse", action="store_true", help="Skip the daily verse.")
    args = parser.parse_args(argv)

    load_environment()
    try:
        store = store_from_env(args.user_id)
        if args.command == "checkin":
            _run_check_in(store, with_verse=not args.no_verse)
        elif args.command == "today":
            _run_today(store)
        elif args.command == "progress":
            _run_progress(store, args.days)
        else:
            store.clear_today()
            print("Cleared today's check-in and workout.")
    except StorageError as exc:
        print(f"Storage error: {exc}", file=sys.stderr)
        return 1
    except (KeyboardInterrupt, EOFError):
        print("\nBye.")
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
