"""Tests for sequence building and training windows."""

import pytest
import numpy as np
from datetime import datetime, timedelta

from fatigue_forecaster.analysis.features import FEATURE_COUNT, HistoryIndex
from fatigue_forecaster.analysis.sequences import (
    build_sequence,
    iter_training_windows,
    signal_coverage,
    uncovered_fraction,
)

from helpers import START, daily_history, make_log


class TestBuildSequence:
    """Test fixed-length sequence construction."""

    def test_short_history_is_left_padded(self):
        history = daily_history(10)
        end = START + timedelta(days=9)
        sequence = build_sequence(end, history, length=28)

        assert sequence.length == 28
        assert sequence.real_days == 10
        assert sequence.days[-1].day == end
        assert sequence.days[0].day == end - timedelta(days=27)
        assert all(d.is_padding for d in sequence.days[:18])

        array = sequence.to_array()
        assert array.shape == (28, FEATURE_COUNT)
        assert array.dtype == np.float32
        assert np.count_nonzero(array[:18]) == 0
        assert np.count_nonzero(array[18:]) > 0

    def test_empty_history_is_all_padding(self):
        sequence = build_sequence(START, [], length=28)
        assert sequence.length == 28
        assert sequence.real_days == 0
        assert np.count_nonzero(sequence.to_array()) == 0

    def test_long_history_is_not_padded(self):
        history = daily_history(60)
        sequence = build_sequence(START + timedelta(days=59), history, length=28)
        assert sequence.real_days == 28

    def test_wellness_log_starts_history(self):
        logs = {START: make_log(START, sleep_hours=8)}
        sequence = build_sequence(START + timedelta(days=3), [], logs, length=28)
        assert sequence.real_days == 4

    def test_accepts_datetime_end(self):
        sequence = build_sequence(datetime(2025, 1, 10, 9, 30), daily_history(5), length=7)
        assert sequence.end_day == START + timedelta(days=4)
        assert sequence.length == 7

    def test_trailing_skips_padding(self):
        sequence = build_sequence(START + timedelta(days=2), daily_history(3), length=28)
        assert len(sequence.trailing(7)) == 3


class TestSignalCoverage:
    """Test the ordinary-rest-gap coverage rule."""

    def test_short_gaps_are_covered(self):
        history = [w for w in daily_history(12) if (w.day - START).days in (0, 2, 3, 6, 11)]
        coverage = signal_coverage(HistoryIndex(history), max_rest_gap=2)

        assert len(coverage) == 12
        assert coverage[START + timedelta(days=1)]  # 1-day gap
        assert coverage[START + timedelta(days=4)]  # 2-day gap
        assert coverage[START + timedelta(days=5)]
        for offset in range(7, 11):  # 4-day gap
            assert not coverage[START + timedelta(days=offset)]

    def test_empty_history(self):
        assert signal_coverage(HistoryIndex([])).empty

    def test_uncovered_fraction(self):
        history = daily_history(28, every=4)
        index = HistoryIndex(history)
        sequence = build_sequence(START + timedelta(days=27), index, length=28)
        fraction = uncovered_fraction(sequence, signal_coverage(index))
        # Only the 7 workout days count; 3-day gaps and the days after the last workout do not
        assert fraction == pytest.approx(21 / 28)


class TestTrainingWindows:
    """Test sliding-window sampling."""

    def test_weekly_windows_over_daily_history(self):
        windows = list(iter_training_windows(daily_history(70), length=28, horizon=14, step=7))

        assert len(windows) == 5
        first = windows[0]
        assert first.sequence.end_day == START + timedelta(days=27)
        assert first.sequence.real_days == 28
        assert first.label_days[0] == START + timedelta(days=28)
        assert len(first.label_days) == 14
        assert windows[1].sequence.end_day - first.sequence.end_day == timedelta(days=7)
        assert windows[-1].label_days[-1] <= START + timedelta(days=69)

    def test_sparse_history_yields_no_windows(self):
        windows = list(iter_training_windows(daily_history(90, every=4), length=28, horizon=14, step=7))
        assert windows == []

    def test_span_shorter_than_window(self):
        assert list(iter_training_windows(daily_history(41), length=28, horizon=14)) == []

    def test_empty_history(self):
        assert list(iter_training_windows([])) == []
