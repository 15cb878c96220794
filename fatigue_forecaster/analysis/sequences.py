"""Fixed-length feature sequences for the recurrent model."""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterator, List, Optional, Union

import numpy as np
import pandas as pd

from ..config import config
from ..models import AthleteProfile
from .features import FEATURE_COUNT, DailyFeatureVector, HistoryIndex, extract_daily_features

logger = logging.getLogger(__name__)


@dataclass
class FeatureSequence:
    """Exactly ``length`` daily feature vectors ending at ``end_day``."""
    end_day: date
    days: List[DailyFeatureVector]

    @property
    def length(self) -> int:
        return len(self.days)

    @property
    def real_days(self) -> int:
        """Number of days backed by recorded history rather than padding."""
        return sum(1 for d in self.days if not d.is_padding)

    def to_array(self) -> np.ndarray:
        """Model input of shape (length, FEATURE_COUNT), float32."""
        if not self.days:
            return np.zeros((0, FEATURE_COUNT), dtype=np.float32)
        return np.stack([d.to_channels() for d in self.days]).astype(np.float32)

    def trailing(self, n: int = 7) -> List[DailyFeatureVector]:
        """The last ``n`` non-padding days."""
        return [d for d in self.days[-n:] if not d.is_padding]


def build_sequence(
    end_day: Union[date, datetime],
    history,
    logs=None,
    profile: Optional[AthleteProfile] = None,
    length: Optional[int] = None,
) -> FeatureSequence:
    """Build one sequence of ``length`` days ending at ``end_day`` (inclusive).

    Days before the first recorded workout or wellness log are left-padded
    with zero vectors so the sequence always has exactly ``length`` entries.
    """
    if isinstance(end_day, datetime):
        end_day = end_day.date()
    length = length or config.SEQUENCE_LENGTH
    index = HistoryIndex.of(history, logs)
    first_day = index.first_recorded_day()

    days = []
    for offset in range(length - 1, -1, -1):
        day = end_day - timedelta(days=offset)
        if first_day is None or day < first_day:
            days.append(DailyFeatureVector.padding(day))
        else:
            days.append(extract_daily_features(day, index, profile=profile))

    return FeatureSequence(end_day=end_day, days=days)


def signal_coverage(index: HistoryIndex, max_rest_gap: Optional[int] = None) -> pd.Series:
    """Per-day coverage flags across the recorded span.

    A day is covered when it has a completed workout or a wellness log, or when
    it sits in a short gap (at most ``max_rest_gap`` consecutive empty days)
    between recorded days, i.e. an ordinary rest day. Longer gaps are treated
    as missing data.
    """
    max_rest_gap = config.MAX_ORDINARY_REST_GAP if max_rest_gap is None else max_rest_gap
    recorded = index.recorded_days()
    if not recorded:
        return pd.Series(dtype=bool)

    span = pd.date_range(recorded[0], recorded[-1], freq="D")
    signal = pd.Series(False, index=span)
    signal[pd.to_datetime(recorded)] = True

    # Label each run of identical values, then measure run lengths
    run_id = (signal != signal.shift()).cumsum()
    run_length = signal.groupby(run_id).transform("size")
    covered = signal | (run_length <= max_rest_gap)
    covered.index = covered.index.date
    return covered


def uncovered_fraction(sequence: FeatureSequence, coverage: pd.Series) -> float:
    """Fraction of sequence days with no recorded or ordinary-rest signal."""
    if sequence.length == 0:
        return 1.0
    uncovered = sum(1 for d in sequence.days if not bool(coverage.get(d.day, False)))
    return uncovered / sequence.length


@dataclass
class TrainingWindow:
    """An input sequence and the days its labels cover."""
    sequence: FeatureSequence
    label_days: List[date]


def iter_training_windows(
    history,
    logs=None,
    profile: Optional[AthleteProfile] = None,
    length: Optional[int] = None,
    horizon: Optional[int] = None,
    step: Optional[int] = None,
) -> Iterator[TrainingWindow]:
    """Slide a weekly-stepped window across the recorded span.

    Each window is ``length`` input days followed by ``horizon`` label days.
    Windows whose input sequence is mostly uncovered are skipped.
    """
    length = length or config.SEQUENCE_LENGTH
    horizon = horizon or config.PREDICTION_HORIZON
    step = step or config.WINDOW_STEP_DAYS
    index = HistoryIndex.of(history, logs)

    recorded = index.recorded_days()
    if not recorded:
        return

    first_day, last_day = recorded[0], recorded[-1]
    span_days = (last_day - first_day).days + 1
    window = length + horizon
    coverage = signal_coverage(index)

    skipped = 0
    for start in range(0, span_days - window + 1, step):
        end_day = first_day + timedelta(days=start + length - 1)
        sequence = build_sequence(end_day, index, profile=profile, length=length)

        if uncovered_fraction(sequence, coverage) > config.MAX_UNCOVERED_FRACTION:
            skipped += 1
            continue

        label_days = [end_day + timedelta(days=i + 1) for i in range(horizon)]
        yield TrainingWindow(sequence=sequence, label_days=label_days)

    if skipped:
        logger.debug(f"Skipped {skipped} training windows with too little signal")
