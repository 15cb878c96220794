"""Daily feature extraction for the fatigue prediction model.

Turns raw workout sessions and wellness self-reports into one
:class:`DailyFeatureVector` per calendar day. Extraction is a pure function
of its inputs: nothing is cached between calls and missing context falls back
to neutral defaults, so it never fails on sparse data.

The model consumes exactly 12 normalized channels per day (see
:class:`Channel`). The per-channel scales are part of the persisted model's
versioned contract and must not change without bumping ``MODEL_VERSION``.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum, IntEnum
from typing import Dict, Iterable, List, Optional, Union

import numpy as np
import pandas as pd
from scipy import stats

from ..models import (
    MUSCLE_GROUPS,
    AthleteProfile,
    DailyWellnessLog,
    WellnessLogs,
    WorkoutSession,
    completed_workouts,
    index_logs,
)

logger = logging.getLogger(__name__)

# Neutral values used when no wellness log exists for a day
DEFAULT_SLEEP_HOURS = 7.0
DEFAULT_SLEEP_QUALITY = 3.0
DEFAULT_STRESS_LEVEL = 3.0
DEFAULT_SORENESS_LEVEL = 2.0
DEFAULT_PERCEIVED_RECOVERY = 3.0
DEFAULT_PERCEIVED_ENERGY = 3.0

DEFAULT_INTENSITY = 70.0  # % of 1RM when no estimates are available

ACUTE_WINDOW_DAYS = 7
CHRONIC_WINDOW_DAYS = 28
MAX_DAYS_SINCE_REST = 30
DELOAD_SCAN_WEEKS = 12
MAX_DAYS_SINCE_DELOAD = DELOAD_SCAN_WEEKS * 7  # 84
DELOAD_VOLUME_THRESHOLD = 15  # completed sets per week
ACCUMULATION_VOLUME_THRESHOLD = 30
INTENSIFICATION_THRESHOLD = 85.0
RPE_TREND_MIN_DAYS = 3
RPE_TREND_SCALE = 2.0  # 0.5 RPE/day maps to the extreme of [-1, 1]
SECONDARY_MUSCLE_CREDIT = 0.5


class TrainingPhase(Enum):
    """Training phase inferred from the trailing week."""
    ACCUMULATION = "accumulation"
    INTENSIFICATION = "intensification"
    DELOAD = "deload"
    UNKNOWN = "unknown"


class Channel(IntEnum):
    """Index of each normalized model input channel."""
    VOLUME = 0
    AVG_RPE = 1
    MAX_RPE = 2
    INTENSITY = 3
    ACWR = 4
    DAYS_SINCE_REST = 5
    SLEEP_HOURS = 6
    SLEEP_QUALITY = 7
    STRESS = 8
    SORENESS = 9
    PERCEIVED_RECOVERY = 10
    RPE_TREND = 11


FEATURE_COUNT = len(Channel)

# Normalization scales, part of the model contract
VOLUME_SCALE = 50.0  # ~50 sets/day is a very heavy day
RPE_SCALE = 10.0
INTENSITY_SCALE = 100.0
ACWR_CAP = 2.0
DAYS_SINCE_REST_CAP = 14.0
SLEEP_HOURS_SCALE = 10.0
WELLNESS_SCALE = 5.0


@dataclass
class DailyFeatureVector:
    """Engineered features for a single day."""
    day: date

    # Training load
    volume_total: float = 0.0
    volume_per_muscle: Dict[str, float] = field(default_factory=lambda: {m: 0.0 for m in MUSCLE_GROUPS})

    # Intensity
    avg_rpe: float = 0.0
    max_rpe: float = 0.0
    avg_intensity: float = DEFAULT_INTENSITY

    # Recovery
    sleep_hours: float = DEFAULT_SLEEP_HOURS
    sleep_quality: float = DEFAULT_SLEEP_QUALITY
    stress_level: float = DEFAULT_STRESS_LEVEL
    soreness_level: float = DEFAULT_SORENESS_LEVEL
    perceived_recovery: float = DEFAULT_PERCEIVED_RECOVERY
    perceived_energy: float = DEFAULT_PERCEIVED_ENERGY

    # Derived
    acwr: float = 1.0
    days_since_rest: int = 0
    days_since_deload: int = 0
    weekly_volume_change: float = 0.0  # percent
    rpe_trend: float = 0.0  # [-1, 1]

    # Context
    day_of_week: int = 0  # 0=Monday, 6=Sunday
    is_rest_day: bool = True
    training_phase: TrainingPhase = TrainingPhase.UNKNOWN
    has_wellness_log: bool = False
    is_padding: bool = False

    @classmethod
    def padding(cls, day: date) -> "DailyFeatureVector":
        """Zero vector used to left-pad sequences with no recorded history."""
        return cls(
            day=day,
            avg_intensity=0.0,
            sleep_hours=0.0,
            sleep_quality=0.0,
            stress_level=0.0,
            soreness_level=0.0,
            perceived_recovery=0.0,
            perceived_energy=0.0,
            acwr=0.0,
            day_of_week=day.weekday(),
            is_padding=True,
        )

    def to_channels(self) -> np.ndarray:
        """Normalize to the 12-channel model input, each channel in [0, 1]."""
        channels = np.zeros(FEATURE_COUNT, dtype=np.float32)
        if self.is_padding:
            return channels

        channels[Channel.VOLUME] = self.volume_total / VOLUME_SCALE
        channels[Channel.AVG_RPE] = self.avg_rpe / RPE_SCALE
        channels[Channel.MAX_RPE] = self.max_rpe / RPE_SCALE
        channels[Channel.INTENSITY] = self.avg_intensity / INTENSITY_SCALE
        channels[Channel.ACWR] = min(self.acwr, ACWR_CAP) / ACWR_CAP
        channels[Channel.DAYS_SINCE_REST] = min(self.days_since_rest, DAYS_SINCE_REST_CAP) / DAYS_SINCE_REST_CAP
        channels[Channel.SLEEP_HOURS] = self.sleep_hours / SLEEP_HOURS_SCALE
        channels[Channel.SLEEP_QUALITY] = self.sleep_quality / WELLNESS_SCALE
        channels[Channel.STRESS] = self.stress_level / WELLNESS_SCALE
        channels[Channel.SORENESS] = self.soreness_level / WELLNESS_SCALE
        channels[Channel.PERCEIVED_RECOVERY] = self.perceived_recovery / WELLNESS_SCALE
        channels[Channel.RPE_TREND] = (self.rpe_trend + 1.0) / 2.0

        channels = np.nan_to_num(channels, nan=0.0, posinf=1.0, neginf=0.0)
        return np.clip(channels, 0.0, 1.0)


class HistoryIndex:
    """Day-keyed view over completed workouts and wellness logs.

    Built once per extraction run so repeated per-day lookups stay cheap.
    Holds no state beyond its inputs.
    """

    def __init__(self, history: Optional[Iterable[WorkoutSession]], logs: Optional[WellnessLogs] = None):
        self.workouts = completed_workouts(history)
        self.logs = index_logs(logs)
        self._by_day: Dict[date, List[WorkoutSession]] = defaultdict(list)
        for workout in self.workouts:
            self._by_day[workout.day].append(workout)
        self._volume_by_day = {day: _total_volume(ws) for day, ws in self._by_day.items()}

    @classmethod
    def of(cls, history, logs=None) -> "HistoryIndex":
        if isinstance(history, HistoryIndex):
            return history
        return cls(history, logs)

    def workouts_on(self, day: date) -> List[WorkoutSession]:
        return self._by_day.get(day, [])

    def workouts_between(self, start: date, end: date) -> List[WorkoutSession]:
        """Completed workouts with start <= day <= end."""
        return [w for w in self.workouts if start <= w.day <= end]

    def volume_on(self, day: date) -> float:
        return self._volume_by_day.get(day, 0.0)

    def volume_between(self, start: date, end: date) -> float:
        total = 0.0
        current = start
        while current <= end:
            total += self._volume_by_day.get(current, 0.0)
            current += timedelta(days=1)
        return total

    def log_on(self, day: date) -> Optional[DailyWellnessLog]:
        return self.logs.get(day)

    def has_signal(self, day: date) -> bool:
        """True when the day has a completed workout or a wellness log."""
        return day in self._by_day or day in self.logs

    def recorded_days(self) -> List[date]:
        """Sorted distinct days carrying a workout or a wellness log."""
        return sorted(set(self._by_day) | set(self.logs))

    def first_recorded_day(self) -> Optional[date]:
        days = self.recorded_days()
        return days[0] if days else None


def extract_daily_features(
    day: Union[date, datetime],
    history: Union[Iterable[WorkoutSession], HistoryIndex, None],
    logs: Optional[WellnessLogs] = None,
    profile: Optional[AthleteProfile] = None,
) -> DailyFeatureVector:
    """Extract the feature vector for one calendar day.

    Args:
        day: Day to extract features for
        history: Workout history, or a prebuilt :class:`HistoryIndex`
        logs: Wellness logs keyed by date (or any iterable of logs)
        profile: Athlete context; neutral defaults when omitted

    Returns:
        DailyFeatureVector with every field populated
    """
    if isinstance(day, datetime):
        day = day.date()
    index = HistoryIndex.of(history, logs)
    profile = profile or AthleteProfile()

    day_workouts = index.workouts_on(day)
    volume_per_muscle = calculate_volume_per_muscle(day_workouts)
    avg_rpe, max_rpe = calculate_rpe_metrics(day_workouts)
    log = index.log_on(day)

    return DailyFeatureVector(
        day=day,
        volume_total=index.volume_on(day),
        volume_per_muscle=volume_per_muscle,
        avg_rpe=avg_rpe,
        max_rpe=max_rpe,
        avg_intensity=calculate_average_intensity(day_workouts, profile),
        sleep_hours=_log_value(log, "sleep_hours", DEFAULT_SLEEP_HOURS),
        sleep_quality=_log_value(log, "sleep_quality", DEFAULT_SLEEP_QUALITY),
        stress_level=_log_value(log, "stress_level", DEFAULT_STRESS_LEVEL),
        soreness_level=_log_value(log, "muscle_soreness", DEFAULT_SORENESS_LEVEL),
        perceived_recovery=_log_value(log, "perceived_recovery", DEFAULT_PERCEIVED_RECOVERY),
        perceived_energy=_log_value(log, "perceived_energy", DEFAULT_PERCEIVED_ENERGY),
        acwr=calculate_acwr(day, index),
        days_since_rest=calculate_days_since_rest(day, index),
        days_since_deload=calculate_days_since_deload(day, index),
        weekly_volume_change=calculate_weekly_volume_change(day, index),
        rpe_trend=calculate_rpe_trend(day, index),
        day_of_week=day.weekday(),
        is_rest_day=not day_workouts,
        training_phase=determine_training_phase(day, index, profile),
        has_wellness_log=log is not None,
    )


def calculate_volume_per_muscle(workouts: Iterable[WorkoutSession]) -> Dict[str, float]:
    """Completed sets per muscle group; secondary muscles get half credit."""
    volume = {muscle: 0.0 for muscle in MUSCLE_GROUPS}
    for workout in workouts:
        for log in workout.logs:
            completed = len(log.completed_sets())
            primary = log.muscle_group.lower()
            if primary in volume:
                volume[primary] += completed
            for secondary in log.secondary_muscles:
                secondary = secondary.lower()
                if secondary in volume:
                    volume[secondary] += completed * SECONDARY_MUSCLE_CREDIT
    return volume


def calculate_rpe_metrics(workouts: Iterable[WorkoutSession]) -> tuple:
    """Return (avg_rpe, max_rpe) over completed sets, (0, 0) without RPE data."""
    rpes = [rpe for workout in workouts for rpe in workout.rpe_values()]
    if not rpes:
        return 0.0, 0.0
    return float(np.mean(rpes)), float(np.max(rpes))


def calculate_average_intensity(workouts: Iterable[WorkoutSession], profile: AthleteProfile) -> float:
    """Average %1RM across weighted sets with a known 1RM estimate."""
    intensities = []
    for workout in workouts:
        for log in workout.logs:
            one_rm = profile.one_rep_max(log.exercise_id)
            if one_rm is None:
                continue
            for s in log.completed_sets():
                if s.weight:
                    intensities.append(s.weight / one_rm * 100.0)
    return float(np.mean(intensities)) if intensities else DEFAULT_INTENSITY


def calculate_acwr(day: date, index: HistoryIndex) -> float:
    """Acute:chronic workload ratio.

    7-day volume divided by the 4-week average weekly volume. Returns 1.0 when
    there is no chronic load, meaning "no baseline".
    """
    acute = index.volume_between(day - timedelta(days=ACUTE_WINDOW_DAYS - 1), day)
    chronic = index.volume_between(day - timedelta(days=CHRONIC_WINDOW_DAYS - 1), day) / 4.0
    if chronic == 0:
        return 1.0
    return acute / chronic


def calculate_days_since_rest(day: date, index: HistoryIndex) -> int:
    for offset in range(1, MAX_DAYS_SINCE_REST + 1):
        if not index.workouts_on(day - timedelta(days=offset)):
            return offset - 1
    return MAX_DAYS_SINCE_REST


def calculate_days_since_deload(day: date, index: HistoryIndex) -> int:
    """Days since the most recent low-volume week, scanning back 12 weeks."""
    for week in range(1, DELOAD_SCAN_WEEKS + 1):
        week_end = day - timedelta(days=week * 7)
        week_start = week_end - timedelta(days=6)
        if index.volume_between(week_start, week_end) < DELOAD_VOLUME_THRESHOLD:
            return (week - 1) * 7
    return MAX_DAYS_SINCE_DELOAD


def calculate_weekly_volume_change(day: date, index: HistoryIndex) -> float:
    """Week-over-week volume change in percent, 0 when last week was empty."""
    this_week = index.volume_between(day - timedelta(days=6), day)
    last_week = index.volume_between(day - timedelta(days=13), day - timedelta(days=7))
    if last_week == 0:
        return 0.0
    return (this_week - last_week) / last_week * 100.0


def calculate_rpe_trend(day: date, index: HistoryIndex) -> float:
    """Least-squares slope of daily average RPE over the trailing 7 days.

    Days without RPE data are ignored; fewer than 3 qualifying days give 0.
    The slope is scaled so that +/-0.5 RPE per day maps to +/-1.
    """
    xs, ys = [], []
    for offset in range(7):
        avg_rpe, _ = calculate_rpe_metrics(index.workouts_on(day - timedelta(days=offset)))
        if avg_rpe > 0:
            xs.append(6 - offset)
            ys.append(avg_rpe)

    if len(xs) < RPE_TREND_MIN_DAYS:
        return 0.0

    slope = stats.linregress(xs, ys).slope
    if not np.isfinite(slope):
        return 0.0
    return float(np.clip(slope * RPE_TREND_SCALE, -1.0, 1.0))


def determine_training_phase(day: date, index: HistoryIndex, profile: AthleteProfile) -> TrainingPhase:
    """Rule-based phase tag from the trailing 7-day window."""
    start = day - timedelta(days=6)
    volume = index.volume_between(start, day)
    intensity = calculate_average_intensity(index.workouts_between(start, day), profile)

    if volume < DELOAD_VOLUME_THRESHOLD:
        return TrainingPhase.DELOAD
    if intensity > INTENSIFICATION_THRESHOLD:
        return TrainingPhase.INTENSIFICATION
    if volume > ACCUMULATION_VOLUME_THRESHOLD:
        return TrainingPhase.ACCUMULATION
    return TrainingPhase.UNKNOWN


def features_to_frame(features: List[DailyFeatureVector]):
    """Tabulate feature vectors as a date-indexed DataFrame for inspection."""
    rows = []
    for f in features:
        rows.append({
            "date": f.day,
            "volume": f.volume_total,
            "avg_rpe": f.avg_rpe,
            "max_rpe": f.max_rpe,
            "intensity": f.avg_intensity,
            "acwr": f.acwr,
            "days_since_rest": f.days_since_rest,
            "days_since_deload": f.days_since_deload,
            "weekly_change_pct": f.weekly_volume_change,
            "rpe_trend": f.rpe_trend,
            "sleep_hours": f.sleep_hours,
            "phase": f.training_phase.value,
            "rest_day": f.is_rest_day,
            "padding": f.is_padding,
        })
    return pd.DataFrame(rows).set_index("date") if rows else pd.DataFrame()


def _total_volume(workouts: Iterable[WorkoutSession]) -> float:
    return float(sum(len(log.completed_sets()) for w in workouts for log in w.logs))


def _log_value(log: Optional[DailyWellnessLog], attr: str, default: float) -> float:
    if log is None:
        return default
    value = getattr(log, attr)
    if value is None or not np.isfinite(value):
        return default
    return float(value)
