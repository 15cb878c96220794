"""Synthetic workout histories shared by the test modules."""

from datetime import date, datetime, time, timedelta

from fatigue_forecaster.models import DailyWellnessLog, ExerciseLog, SetLog, WorkoutSession

START = date(2025, 1, 6)  # a Monday


def make_workout(day, rpe=8.0, sets=4, weight=100.0, exercise="squat", muscle="legs",
                 secondary=(), wid=None, status="completed"):
    """One session of a single exercise ending at 18:00 on ``day``."""
    return WorkoutSession(
        id=wid or f"{exercise}-{day.isoformat()}",
        end_time=datetime.combine(day, time(18, 0)),
        status=status,
        logs=[ExerciseLog(
            exercise_id=exercise,
            muscle_group=muscle,
            secondary_muscles=list(secondary),
            sets=[SetLog(weight=weight, reps=5, rpe=rpe) for _ in range(sets)],
        )],
    )


def daily_history(days, start=START, rpe=8.0, sets=4, every=1):
    """A workout every ``every`` days; ``rpe`` may be a callable of the day offset."""
    history = []
    for offset in range(0, days, every):
        value = rpe(offset) if callable(rpe) else rpe
        history.append(make_workout(start + timedelta(days=offset), rpe=value, sets=sets))
    return history


def make_log(day, **values):
    return DailyWellnessLog(date=day, **values)
