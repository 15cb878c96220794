"""Tests for the fatigue forecast service."""

import pytest
import numpy as np
from datetime import timedelta

from fatigue_forecaster.config import config
from fatigue_forecaster import service as service_module
from fatigue_forecaster.db import Database, ModelStore, StoredModel
from fatigue_forecaster.exceptions import NumericFailure
from fatigue_forecaster.service import FatigueForecastService

from helpers import START, daily_history


class TestUnsupportedEnvironment:
    """Without durable storage every entry point degrades to a sentinel."""

    def setup_method(self):
        self.service = FatigueForecastService(user_id="athlete", database_url="sqlite://")
        self.history = daily_history(40)

    def teardown_method(self):
        self.service.close()

    def test_predict_is_unavailable(self):
        assert self.service.predict(self.history, as_of=START + timedelta(days=39)) is None

    def test_not_supported(self):
        assert not self.service.is_supported()
        assert not self.service.has_trained_model()

    def test_training_is_unavailable(self):
        report = self.service.train(daily_history(70))
        assert report.status == "unavailable"
        assert "durable" in report.message

    def test_workout_outcome_is_unavailable(self):
        future = self.service.record_workout_outcome(self.history[-1], self.history)
        assert future.result().status == "unavailable"

    def test_delete_is_a_no_op(self):
        self.service.delete_model()


class TestClosedService:
    """Calls after close are ignored."""

    def setup_method(self):
        self.service = FatigueForecastService(database_url="sqlite://")
        self.service.close()

    def test_calls_after_close(self):
        assert self.service.predict(daily_history(5)) is None
        assert self.service.predict_async(daily_history(5)) is None
        assert self.service.train(daily_history(5)).status == "unavailable"
        assert self.service.record_workout_outcome(daily_history(1)[0], []) is None
        assert not self.service.is_supported()

    def test_close_is_idempotent(self):
        self.service.close()

    def test_context_manager(self):
        with FatigueForecastService(database_url="sqlite://") as service:
            assert service.user_id == "default"
        assert service.predict([]) is None


class TestServiceFailures:
    """Failures inside worker tasks become sentinels."""

    def test_non_finite_prediction_is_discarded(self, tmp_path, monkeypatch):
        def non_finite(*args, **kwargs):
            raise NumericFailure("Model produced non-finite fatigue values")

        service = FatigueForecastService(database_url=f"sqlite:///{tmp_path / 'models.db'}")
        monkeypatch.setattr(service, "_get_model", lambda: object())
        monkeypatch.setattr(service_module, "predict_fatigue", non_finite)
        try:
            assert service.predict(daily_history(40)) is None
        finally:
            service.close()

    def test_unexpected_error_is_logged_not_raised(self, tmp_path, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("boom")

        service = FatigueForecastService(database_url=f"sqlite:///{tmp_path / 'models.db'}")
        monkeypatch.setattr(service, "_get_model", lambda: object())
        monkeypatch.setattr(service_module, "predict_fatigue", broken)
        try:
            assert service.predict(daily_history(40)) is None
        finally:
            service.close()

    def test_close_releases_owned_store(self, tmp_path, monkeypatch):
        closed = []
        monkeypatch.setattr(ModelStore, "close", lambda store: closed.append(store))

        service = FatigueForecastService(database_url=f"sqlite:///{tmp_path / 'models.db'}")
        assert not service.has_trained_model()
        service.close()
        assert len(closed) == 1

    def test_close_keeps_caller_store(self, tmp_path, monkeypatch):
        closed = []
        monkeypatch.setattr(ModelStore, "close", lambda store: closed.append(store))

        store = ModelStore(Database(f"sqlite:///{tmp_path / 'models.db'}"))
        service = FatigueForecastService(store=store)
        assert not service.has_trained_model()
        service.close()
        assert closed == []


class TestFatigueForecastService:
    """Test the service against a real model and an on-disk store."""

    @pytest.fixture(autouse=True)
    def _setup(self, tmp_path, monkeypatch):
        pytest.importorskip("tensorflow")
        monkeypatch.setattr(config, "TRAINING_EPOCHS", 2)
        self.database_url = f"sqlite:///{tmp_path / 'models.db'}"
        self.history = daily_history(70, rpe=lambda i: 6.0 + 3.5 * i / 69)
        self.as_of = START + timedelta(days=69)
        self.service = FatigueForecastService(user_id="athlete", database_url=self.database_url)
        yield
        self.service.close()

    def test_untrained_prediction(self):
        result = self.service.predict(self.history, as_of=self.as_of)

        assert result is not None
        assert not result.model_trained
        assert len(result.predictions) == 14
        assert result.confidence == pytest.approx(0.225)
        assert not self.service.has_trained_model()

    def test_train_persist_and_reload(self):
        report = self.service.train(self.history)
        assert report.status == "trained"
        assert self.service.has_trained_model()

        before = self.service.predict(self.history, as_of=self.as_of)
        assert before.model_trained

        with FatigueForecastService(user_id="athlete", database_url=self.database_url) as reloaded:
            after = reloaded.predict(self.history, as_of=self.as_of)

        assert after.model_trained
        assert np.array_equal(np.array(before.levels), np.array(after.levels))

    def test_corrupt_model_is_replaced(self):
        store = ModelStore(Database(self.database_url))
        store.save(StoredModel(
            user_id="athlete",
            model_key="fatigue-model-athlete-v0.9.0",
            version="0.9.0",
            architecture="{}",
            weights=b"stale",
            is_trained=True,
        ))

        result = self.service.predict(self.history, as_of=self.as_of)

        assert result is not None
        assert not result.model_trained
        assert store.load("athlete") is None

    def test_delete_model(self):
        self.service.train(self.history)
        self.service.delete_model()

        assert not self.service.has_trained_model()
        result = self.service.predict(self.history, as_of=self.as_of)
        assert not result.model_trained

    def test_workout_outcome_without_enough_history(self):
        history = daily_history(20)
        report = self.service.record_workout_outcome(history[-1], history).result()
        assert report.status == "insufficient_data"

    def test_workout_outcome_after_training(self):
        self.service.train(self.history)
        report = self.service.record_workout_outcome(self.history[-1], self.history).result()

        assert report.status == "updated"
        store = ModelStore(Database(self.database_url))
        record = store.load("athlete")
        assert record.incremental_updates == 1
        assert record.last_incremental_update is not None

    def test_predict_and_update_are_serialized(self):
        assert self.service.train(self.history).status == "trained"

        first = self.service.predict_async(self.history, as_of=self.as_of)
        update = self.service.record_workout_outcome(self.history[-1], self.history)
        second = self.service.predict_async(self.history, as_of=self.as_of)

        before, report, after = first.result(), update.result(), second.result()
        assert report.status == "updated"
        assert before.model_trained and after.model_trained
        assert np.all(np.isfinite(before.levels)) and np.all(np.isfinite(after.levels))

        record = ModelStore(Database(self.database_url)).load("athlete")
        assert record.incremental_updates == 1

    def test_eight_weeks_declines_training(self):
        history = daily_history(56, rpe=lambda i: 6.0 + 3.5 * i / 55)
        as_of = START + timedelta(days=55)

        report = self.service.train(history)
        assert report.status == "insufficient_data"

        result = self.service.predict(history, as_of=as_of)
        assert not result.model_trained
        assert result.confidence == pytest.approx(0.225)
        assert result.deload is None
