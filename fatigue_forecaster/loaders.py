"""Load workout history and wellness logs from a JSON export.

Expected layout::

    {
      "profile": {"experience_level": "Intermediate", "one_rep_maxes": {"squat": 140}},
      "workouts": [
        {"id": "w1", "end_time": "2025-03-01T18:30:00", "status": "completed",
         "logs": [{"exercise_id": "squat", "muscle_group": "legs",
                   "secondary_muscles": ["core"],
                   "sets": [{"weight": 100, "reps": 5, "rpe": 8}]}]}
      ],
      "daily_logs": [{"date": "2025-03-01", "sleep_hours": 7.5, "perceived_recovery": 4}]
    }
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Union

from .models import EXPERIENCE_LEVELS, AthleteProfile, DailyWellnessLog, ExerciseLog, SetLog, WorkoutSession

logger = logging.getLogger(__name__)

WELLNESS_FIELDS = (
    "sleep_hours",
    "sleep_quality",
    "stress_level",
    "muscle_soreness",
    "perceived_recovery",
    "perceived_energy",
)


@dataclass
class TrainingExport:
    workouts: List[WorkoutSession] = field(default_factory=list)
    daily_logs: Dict[date, DailyWellnessLog] = field(default_factory=dict)
    profile: AthleteProfile = field(default_factory=AthleteProfile)


def parse_set(data: Dict[str, Any]) -> SetLog:
    return SetLog(
        weight=_optional_float(data.get("weight")),
        reps=int(data["reps"]) if data.get("reps") is not None else None,
        rpe=_optional_float(data.get("rpe")),
        completed=bool(data.get("completed", True)),
    )


def parse_workout(data: Dict[str, Any]) -> WorkoutSession:
    end_time = data.get("end_time")
    return WorkoutSession(
        id=str(data["id"]),
        end_time=datetime.fromisoformat(end_time) if end_time else None,
        status=data.get("status", "completed"),
        logs=[
            ExerciseLog(
                exercise_id=str(log["exercise_id"]),
                muscle_group=log.get("muscle_group", ""),
                secondary_muscles=list(log.get("secondary_muscles", [])),
                sets=[parse_set(s) for s in log.get("sets", [])],
            )
            for log in data.get("logs", [])
        ],
    )


def parse_daily_log(data: Dict[str, Any]) -> DailyWellnessLog:
    values = {name: _optional_float(data.get(name)) for name in WELLNESS_FIELDS}
    return DailyWellnessLog(date=date.fromisoformat(data["date"]), **values)


def parse_profile(data: Dict[str, Any]) -> AthleteProfile:
    level = data.get("experience_level", "Intermediate")
    if level not in EXPERIENCE_LEVELS:
        logger.warning(f"Unknown experience level {level!r}; using Intermediate")
        level = "Intermediate"
    return AthleteProfile(
        experience_level=level,
        one_rep_maxes={k: float(v) for k, v in (data.get("one_rep_maxes") or {}).items()},
    )


def load_export(path: Union[str, Path]) -> TrainingExport:
    """Read a JSON export file into domain records."""
    with open(path, "r") as f:
        data = json.load(f)

    workouts = [parse_workout(w) for w in data.get("workouts", [])]
    daily_logs = {}
    for entry in data.get("daily_logs", []):
        log = parse_daily_log(entry)
        if log.date in daily_logs:
            logger.warning(f"Duplicate wellness log for {log.date}; keeping the last one")
        daily_logs[log.date] = log

    logger.info(f"Loaded {len(workouts)} workouts and {len(daily_logs)} wellness logs from {path}")
    return TrainingExport(
        workouts=workouts,
        daily_logs=daily_logs,
        profile=parse_profile(data.get("profile") or {}),
    )


def _optional_float(value) -> Union[float, None]:
    return float(value) if value is not None else None
