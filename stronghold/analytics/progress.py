from __future__ import annotations

import logging
from collections import Counter
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from pydantic import BaseModel, Field

from stronghold.models.checkin import CheckIn
from stronghold.models.workout import DIFFICULTY_SCORES, Workout
from stronghold.storage.store import Store

logger = logging.getLogger(__name__)

HISTORY_DAYS = 365
TOP_EXERCISES_DAYS = 90
NEUTRAL_DIFFICULTY = 2.0


class WorkoutStats(BaseModel):
    total_workouts: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    weekly_count: int = 0
    monthly_count: int = 0
    completion_rate: float = 0.0


class WeeklyData(BaseModel):
    week: str
    week_start: date
    workouts: int


class ExerciseStats(BaseModel):
    name: str
    times_performed: int
    avg_difficulty: float
    last_performed: datetime
    equipment: str


class BodyMetricTrend(BaseModel):
    date: datetime
    knee: int
    shoulder: int
    energy: int
    sleep: int
    weight: Optional[float] = None


class WeightPoint(BaseModel):
    date: datetime
    weight: float


class BodyMetricsAnalysis(BaseModel):
    trends: List[BodyMetricTrend] = Field(default_factory=list)
    knee_improvement: float = 0.0
    shoulder_improvement: float = 0.0
    energy_improvement: float = 0.0
    sleep_improvement: float = 0.0
    avg_knee: float = 0.0
    avg_shoulder: float = 0.0
    avg_energy: float = 0.0
    avg_sleep: float = 0.0
    weight_trend: List[WeightPoint] = Field(default_factory=list)
    current_weight: Optional[float] = None
    start_weight: Optional[float] = None
    weight_change: Optional[float] = None


class StateCount(BaseModel):
    state: str
    count: int
    percentage: float


class MentalEmotionalAnalysis(BaseModel):
    mental_states: List[StateCount] = Field(default_factory=list)
    emotional_states: List[StateCount] = Field(default_factory=list)
    avg_stress: float = 0.0
    avg_clarity: float = 0.0
    avg_emotional_intensity: float = 0.0
    stress_improvement: float = 0.0
    clarity_improvement: float = 0.0


class ProgressReport(BaseModel):
    stats: WorkoutStats
    weekly_trend: List[WeeklyData]
    top_exercises: List[ExerciseStats]
    body_metrics: BodyMetricsAnalysis
    mental_emotional: MentalEmotionalAnalysis


def _day(value: datetime) -> date:
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value.date()


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _percent_change(first: float, last: float) -> float:
    if first == 0:
        return 0.0
    return (last - first) / first * 100


def _within(day: date, today: date, days: int) -> bool:
    return 0 <= (today - day).days < days


def workout_days(workouts: Iterable[Workout]) -> List[date]:
    """Distinct calendar days holding a completed workout, oldest first."""
    return sorted({_day(w.date) for w in workouts if w.completed})


def current_streak(workouts: Iterable[Workout], today: date) -> int:
    """Consecutive workout days ending today, or yesterday as a grace day."""
    days = workout_days(workouts)
    if not days:
        return 0
    if (today - days[-1]).days > 1:
        return 0
    streak = 1
    for later, earlier in zip(reversed(days), reversed(days[:-1])):
        if (later - earlier).days != 1:
            break
        streak += 1
    return streak


def longest_streak(workouts: Iterable[Workout]) -> int:
    days = workout_days(workouts)
    if not days:
        return 0
    longest = run = 1
    for earlier, later in zip(days, days[1:]):
        run = run + 1 if (later - earlier).days == 1 else 1
        longest = max(longest, run)
    return longest


def count_within(workouts: Iterable[Workout], today: date, days: int) -> int:
    return sum(1 for w in workouts if w.completed and _within(_day(w.date), today, days))


def week_start(day: date) -> date:
    # weekday(): Monday == 0, so Sunday maps to an offset of 0.
    return day - timedelta(days=(day.weekday() + 1) % 7)


def week_label(day: date) -> str:
    start = week_start(day)
    end = start + timedelta(days=6)
    return f"{start:%b} {start.day}-{end:%b} {end.day}"


def weekly_trend(workouts: Iterable[Workout], today: date, weeks: int = 4) -> List[WeeklyData]:
    counts: Counter = Counter()
    for workout in workouts:
        day = _day(workout.date)
        if workout.completed and _within(day, today, weeks * 7):
            counts[week_start(day)] += 1
    return [
        WeeklyData(week=week_label(start), week_start=start, workouts=count)
        for start, count in sorted(counts.items(), reverse=True)
    ]


def top_exercises(workouts: Iterable[Workout], limit: int = 5) -> List[ExerciseStats]:
    totals: Dict[str, Dict] = {}
    for workout in workouts:
        if not workout.completed:
            continue
        for exercise in workout.exercises:
            if exercise.skipped:
                continue
            scores = [DIFFICULTY_SCORES[s.difficulty] for s in exercise.sets if s.difficulty]
            entry = totals.get(exercise.name)
            if entry is None:
                totals[exercise.name] = {
                    "count": 1,
                    "score_total": sum(scores),
                    "score_count": len(scores),
                    "last": workout.date,
                    "equipment": exercise.equipment,
                }
                continue
            entry["count"] += 1
            entry["score_total"] += sum(scores)
            entry["score_count"] += len(scores)
            if workout.date > entry["last"]:
                entry["last"] = workout.date

    stats = [
        ExerciseStats(
            name=name,
            times_performed=entry["count"],
            avg_difficulty=(
                entry["score_total"] / entry["score_count"] if entry["score_count"] else NEUTRAL_DIFFICULTY
            ),
            last_performed=entry["last"],
            equipment=entry["equipment"],
        )
        for name, entry in totals.items()
    ]
    stats.sort(key=lambda s: s.times_performed, reverse=True)
    return stats[:limit]


def _first_and_last_week(items: List) -> tuple:
    window = min(7, len(items))
    return items[:window], items[-window:]


def body_metrics_analysis(check_ins: Iterable[CheckIn]) -> BodyMetricsAnalysis:
    ordered = sorted(check_ins, key=lambda c: c.date)
    if not ordered:
        return BodyMetricsAnalysis()
    trends = [
        BodyMetricTrend(
            date=c.date,
            knee=c.physical.knee,
            shoulder=c.physical.shoulder,
            energy=c.physical.energy,
            sleep=c.physical.sleep,
            weight=c.physical.weight,
        )
        for c in ordered
    ]
    first_week, last_week = _first_and_last_week(trends)

    def improvement(metric: str) -> float:
        return _percent_change(
            _mean([getattr(t, metric) for t in first_week]),
            _mean([getattr(t, metric) for t in last_week]),
        )

    weights = [WeightPoint(date=t.date, weight=t.weight) for t in trends if t.weight is not None]
    analysis = BodyMetricsAnalysis(
        trends=trends,
        knee_improvement=improvement("knee"),
        shoulder_improvement=improvement("shoulder"),
        energy_improvement=improvement("energy"),
        sleep_improvement=improvement("sleep"),
        avg_knee=_mean([t.knee for t in trends]),
        avg_shoulder=_mean([t.shoulder for t in trends]),
        avg_energy=_mean([t.energy for t in trends]),
        avg_sleep=_mean([t.sleep for t in trends]),
        weight_trend=weights,
    )
    if weights:
        analysis.start_weight = weights[0].weight
        analysis.current_weight = weights[-1].weight
        analysis.weight_change = analysis.current_weight - analysis.start_weight
    return analysis


def _distribution(values: List[str]) -> List[StateCount]:
    total = len(values)
    return [
        StateCount(state=value, count=count, percentage=count / total * 100)
        for value, count in Counter(values).items()
    ]


def mental_emotional_analysis(check_ins: Iterable[CheckIn]) -> MentalEmotionalAnalysis:
    ordered = sorted(check_ins, key=lambda c: c.date)
    if not ordered:
        return MentalEmotionalAnalysis()
    first_week, last_week = _first_and_last_week(ordered)
    first_stress = _mean([c.mental.stress for c in first_week])
    last_stress = _mean([c.mental.stress for c in last_week])
    first_clarity = _mean([c.mental.clarity for c in first_week])
    last_clarity = _mean([c.mental.clarity for c in last_week])
    return MentalEmotionalAnalysis(
        mental_states=_distribution([c.mental.state for c in ordered]),
        emotional_states=_distribution([c.emotional.primary for c in ordered]),
        avg_stress=_mean([c.mental.stress for c in ordered]),
        avg_clarity=_mean([c.mental.clarity for c in ordered]),
        avg_emotional_intensity=_mean([c.emotional.intensity for c in ordered]),
        # Lower stress is better, so the sign is flipped.
        stress_improvement=-_percent_change(first_stress, last_stress),
        clarity_improvement=_percent_change(first_clarity, last_clarity),
    )


def get_workout_stats(store: Store, days: int = 30, today: Optional[date] = None) -> WorkoutStats:
    today = today or date.today()
    history = store.get_completed_workouts(HISTORY_DAYS)
    recent_completed = count_within(history, today, days)
    generated = sum(
        1 for w in store.get_recent_workouts(count=None) if _within(_day(w.date), today, days)
    )
    stats = WorkoutStats(
        total_workouts=recent_completed,
        current_streak=current_streak(history, today),
        longest_streak=longest_streak(history),
        weekly_count=count_within(history, today, 7),
        monthly_count=count_within(history, today, 30),
        completion_rate=recent_completed / generated * 100 if generated else 0.0,
    )
    logger.debug("[get_workout_stats] days=%s stats=%s", days, stats.model_dump())
    return stats


def get_progress_report(store: Store, days: int = 30, today: Optional[date] = None) -> ProgressReport:
    today = today or date.today()
    history = store.get_completed_workouts(HISTORY_DAYS)
    check_ins = store.get_recent_check_ins(days)
    return ProgressReport(
        stats=get_workout_stats(store, days, today),
        weekly_trend=weekly_trend(history, today),
        top_exercises=top_exercises(
            [w for w in history if _within(_day(w.date), today, TOP_EXERCISES_DAYS)]
        ),
        body_metrics=body_metrics_analysis(check_ins),
        mental_emotional=mental_emotional_analysis(check_ins),
    )
