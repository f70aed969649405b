from datetime import date, timedelta

import pytest

from conftest import NOW, make_check_in, make_exercise, make_workout
from stronghold.analytics.progress import (
    body_metrics_analysis,
    count_within,
    current_streak,
    get_progress_report,
    get_workout_stats,
    longest_streak,
    mental_emotional_analysis,
    top_exercises,
    week_label,
    weekly_trend,
)

TODAY = NOW.date()


def _done(days_ago, workout_id=None, exercises=None):
    when = NOW - timedelta(days=days_ago)
    return make_workout(exercises or [], workout_id=workout_id or f"w{days_ago}", when=when, completed=True)


def test_streak_counts_consecutive_days():
    history = [_done(0), _done(1), _done(2), _done(5)]
    assert current_streak(history, TODAY) == 3
    assert longest_streak(history) == 3


def test_yesterday_is_a_grace_day():
    assert current_streak([_done(1), _done(2)], TODAY) == 2


def test_two_day_gap_breaks_streaks():
    history = [_done(2), _done(3), _done(4), _done(6), _done(7)]
    assert current_streak(history, TODAY) == 0
    assert longest_streak(history) == 3


def test_same_day_duplicates_count_once():
    history = [_done(0, "a"), _done(0, "b"), _done(1)]
    assert current_streak(history, TODAY) == 2
    assert longest_streak(history) == 2


def test_incomplete_workouts_are_ignored():
    open_workout = make_workout([], when=NOW, completed=False)
    assert current_streak([open_workout], TODAY) == 0
    assert longest_streak([]) == 0


def test_trailing_window_counts():
    history = [_done(0), _done(6), _done(7), _done(29), _done(30)]
    assert count_within(history, TODAY, 7) == 2
    assert count_within(history, TODAY, 30) == 4


def test_week_labels_start_on_sunday():
    # 2026-10-19 is a Monday.
    assert week_label(date(2026, 10, 19)) == "Oct 18-Oct 24"
    assert week_label(date(2026, 10, 18)) == "Oct 18-Oct 24"
    assert week_label(date(2026, 10, 31)) == "Oct 25-Oct 31"


def test_weekly_trend_most_recent_first():
    trend = weekly_trend([_done(0), _done(1), _done(3), _done(40)], TODAY)
    assert [(w.week, w.workouts) for w in trend] == [("Oct 18-Oct 24", 2), ("Oct 11-Oct 17", 1)]


def test_top_exercises_scores_difficulty():
    rated = make_exercise("press", sets=2, name="Press")
    rated.sets[0].difficulty = "hard"
    rated.sets[1].difficulty = "pain"
    unrated = make_exercise("press2", sets=1, name="Press")
    skipped = make_exercise("row", name="Row")
    skipped.skipped = True
    curl = make_exercise("curl", name="Curl")
    history = [_done(0, "a", [rated, curl]), _done(1, "b", [unrated, skipped])]
    stats = top_exercises(history, limit=5)
    assert [s.name for s in stats] == ["Press", "Curl"]
    assert stats[0].times_performed == 2
    assert stats[0].avg_difficulty == pytest.approx(3.5)
    assert stats[0].last_performed == NOW
    assert stats[1].avg_difficulty == 2.0


def test_body_metrics_guard_against_empty_history():
    analysis = body_metrics_analysis([])
    assert analysis.trends == [] and analysis.avg_knee == 0.0


def test_body_metrics_trend_and_weight():
    check_ins = [
        make_check_in(f"c{i}", when=NOW - timedelta(days=13 - i), knee=4 if i < 7 else 8, weight=200 - i)
        for i in range(14)
    ]
    analysis = body_metrics_analysis(reversed(check_ins))
    assert analysis.trends[0].date < analysis.trends[-1].date
    assert analysis.knee_improvement == pytest.approx(100.0)
    assert analysis.avg_knee == pytest.approx(6.0)
    assert analysis.start_weight == 200
    assert analysis.current_weight == 187
    assert analysis.weight_change == -13


def test_mental_emotional_analysis():
    check_ins = [
        make_check_in("a", when=NOW - timedelta(days=1), stress=8, clarity=4, mental_state="anxious"),
        make_check_in("b", when=NOW, stress=4, clarity=8, mental_state="clear", emotion="joyful"),
    ]
    analysis = mental_emotional_analysis(check_ins)
    states = {s.state: s.percentage for s in analysis.mental_states}
    assert states == {"anxious": 50.0, "clear": 50.0}
    assert analysis.avg_stress == 6.0
    # With fewer than seven check-ins the first and last week windows overlap.
    assert analysis.stress_improvement == 0.0


def test_workout_stats_from_store(store):
    store.save_workout(_done(0))
    store.save_workout(_done(1))
    store.save_workout(make_workout([], workout_id="open", when=NOW - timedelta(days=2)))
    stats = get_workout_stats(store, days=30, today=TODAY)
    assert stats.total_workouts == 2
    assert stats.current_streak == 2
    assert stats.weekly_count == 2
    assert stats.completion_rate == pytest.approx(200 / 3)


def test_progress_report_aggregates(store):
    store.save_workout(_done(0, exercises=[make_exercise("press", name="Press")]))
    store.save_check_in(make_check_in())
    report = get_progress_report(store, days=30, today=TODAY)
    assert report.stats.total_workouts == 1
    assert report.top_exercises[0].name == "Press"
    assert report.body_metrics.avg_knee == 8
    assert isinstance(report.weekly_trend[0].week_start, date)
