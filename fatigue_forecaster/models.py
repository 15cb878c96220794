"""Input records consumed by the fatigue forecaster.

Workouts and wellness logs are owned by the surrounding application; this
package only reads them.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Iterable, List, Mapping, Optional, Union

MUSCLE_GROUPS = ("chest", "back", "legs", "shoulders", "arms", "core")

EXPERIENCE_LEVELS = ("Beginner", "Intermediate", "Advanced")


@dataclass(frozen=True)
class SetLog:
    """A single set of an exercise."""
    weight: Optional[float] = None  # kg
    reps: Optional[int] = None
    rpe: Optional[float] = None  # 1-10
    completed: bool = True


@dataclass(frozen=True)
class ExerciseLog:
    """All sets performed for one exercise in a session."""
    exercise_id: str
    muscle_group: str
    sets: List[SetLog] = field(default_factory=list)
    secondary_muscles: List[str] = field(default_factory=list)

    def completed_sets(self) -> List[SetLog]:
        return [s for s in self.sets if s.completed]


@dataclass(frozen=True)
class WorkoutSession:
    """A workout session. Only completed sessions count towards load."""
    id: str
    end_time: Optional[datetime]
    logs: List[ExerciseLog] = field(default_factory=list)
    status: str = "completed"

    @property
    def is_completed(self) -> bool:
        return self.status == "completed" and self.end_time is not None

    @property
    def day(self) -> Optional[date]:
        return self.end_time.date() if self.end_time is not None else None

    def rpe_values(self) -> List[float]:
        return [
            s.rpe
            for log in self.logs
            for s in log.completed_sets()
            if s.rpe is not None and s.rpe > 0
        ]


@dataclass(frozen=True)
class DailyWellnessLog:
    """Daily self-report. Every field is optional."""
    date: date
    sleep_hours: Optional[float] = None
    sleep_quality: Optional[float] = None  # 1-5
    stress_level: Optional[float] = None  # 1-5
    muscle_soreness: Optional[float] = None  # 1-5
    perceived_recovery: Optional[float] = None  # 1-5, 5 = fully recovered
    perceived_energy: Optional[float] = None  # 1-5


@dataclass
class AthleteProfile:
    """Context used for intensity estimates."""
    experience_level: str = "Intermediate"
    one_rep_maxes: Dict[str, float] = field(default_factory=dict)  # exercise_id -> kg

    def one_rep_max(self, exercise_id: str) -> Optional[float]:
        value = self.one_rep_maxes.get(exercise_id)
        return value if value and value > 0 else None


WellnessLogs = Union[Mapping[date, DailyWellnessLog], Iterable[DailyWellnessLog]]


def index_logs(logs: Optional[WellnessLogs]) -> Dict[date, DailyWellnessLog]:
    """Normalize wellness logs to a date-keyed dict.

    Accepts either a mapping keyed by date or any iterable of logs.
    """
    if not logs:
        return {}
    if isinstance(logs, Mapping):
        return dict(logs)
    return {log.date: log for log in logs}


def completed_workouts(history: Optional[Iterable[WorkoutSession]]) -> List[WorkoutSession]:
    """Completed sessions sorted by end time."""
    if not history:
        return []
    return sorted((w for w in history if w.is_completed), key=lambda w: w.end_time)
