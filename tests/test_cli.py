"""Tests for the command-line interface."""

import json
from datetime import timedelta

from click.testing import CliRunner

from fatigue_forecaster.cli import cli

from helpers import START


def write_export(tmp_path, days=10):
    workouts = [
        {
            "id": f"w{i}",
            "end_time": f"{(START + timedelta(days=i)).isoformat()}T18:00:00",
            "logs": [{"exercise_id": "squat", "muscle_group": "legs",
                      "sets": [{"weight": 100, "reps": 5, "rpe": 8}] * 4}],
        }
        for i in range(days)
    ]
    path = tmp_path / "export.json"
    path.write_text(json.dumps({"workouts": workouts}))
    return path


class TestCli:
    """Test CLI commands that do not need a trained model."""

    def setup_method(self):
        self.runner = CliRunner()

    def test_features(self, tmp_path):
        export = write_export(tmp_path)
        as_of = (START + timedelta(days=9)).isoformat()
        result = self.runner.invoke(cli, ["--database-url", "sqlite://", "features",
                                          "--export", str(export), "--as-of", as_of, "--days", "3"])
        assert result.exit_code == 0, result.output
        assert "Daily Features" in result.output

    def test_status_without_durable_storage(self):
        result = self.runner.invoke(cli, ["--database-url", "sqlite://", "status"])
        assert result.exit_code == 0, result.output
        assert "Fatigue Model Status" in result.output

    def test_predict_unavailable(self, tmp_path):
        export = write_export(tmp_path)
        result = self.runner.invoke(cli, ["--database-url", "sqlite://", "predict", "--export", str(export)])
        assert result.exit_code == 0, result.output
        assert "unavailable" in result.output
