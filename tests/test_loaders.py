"""Tests for JSON export loading."""

import json
from datetime import date, datetime

from fatigue_forecaster.loaders import load_export


EXPORT = {
    "profile": {"experience_level": "Advanced", "one_rep_maxes": {"squat": 160}},
    "workouts": [
        {
            "id": "w1",
            "end_time": "2025-03-01T18:30:00",
            "logs": [{
                "exercise_id": "squat",
                "muscle_group": "legs",
                "secondary_muscles": ["core"],
                "sets": [{"weight": 120, "reps": 5, "rpe": 8}, {"weight": 120, "reps": 3, "completed": False}],
            }],
        },
        {"id": "w2", "end_time": None, "status": "in_progress"},
    ],
    "daily_logs": [
        {"date": "2025-03-01", "sleep_hours": 7.5, "perceived_recovery": 4},
        {"date": "2025-03-01", "sleep_hours": 6.0},
    ],
}


class TestLoadExport:
    """Test parsing of exported history."""

    def _write(self, tmp_path, data):
        path = tmp_path / "export.json"
        path.write_text(json.dumps(data))
        return path

    def test_workouts(self, tmp_path):
        export = load_export(self._write(tmp_path, EXPORT))

        assert [w.id for w in export.workouts] == ["w1", "w2"]
        first = export.workouts[0]
        assert first.end_time == datetime(2025, 3, 1, 18, 30)
        assert first.is_completed
        assert first.logs[0].secondary_muscles == ["core"]
        assert len(first.logs[0].completed_sets()) == 1
        assert first.rpe_values() == [8.0]
        assert not export.workouts[1].is_completed

    def test_duplicate_logs_keep_last(self, tmp_path):
        export = load_export(self._write(tmp_path, EXPORT))

        log = export.daily_logs[date(2025, 3, 1)]
        assert log.sleep_hours == 6.0
        assert log.perceived_recovery is None

    def test_profile(self, tmp_path):
        export = load_export(self._write(tmp_path, EXPORT))
        assert export.profile.experience_level == "Advanced"
        assert export.profile.one_rep_max("squat") == 160.0
        assert export.profile.one_rep_max("bench") is None

    def test_empty_export(self, tmp_path):
        export = load_export(self._write(tmp_path, {}))
        assert export.workouts == []
        assert export.daily_logs == {}
        assert export.profile.experience_level == "Intermediate"

    def test_unknown_experience_level(self, tmp_path):
        export = load_export(self._write(tmp_path, {"profile": {"experience_level": "Elite"}}))
        assert export.profile.experience_level == "Intermediate"
