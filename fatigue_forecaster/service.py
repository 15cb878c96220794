"""High-level entry points for fatigue forecasting.

:class:`FatigueForecastService` owns one user's model. It loads the numeric
backend and the persisted model on first use, caches the model for its own
lifetime and runs every model operation on a single background worker so a
prediction can never race an incremental update.

All public methods degrade instead of raising: ``predict`` returns ``None``
when forecasting is unavailable, training methods return a
:class:`TrainingReport` describing why nothing happened.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import date, datetime
from typing import Optional

from .analysis.prediction import PredictionResult, predict_fatigue
from .analysis.sequence_model import MODEL_VERSION, FatigueSequenceModel, model_key
from .analysis.training import TrainingReport, is_retrain_due, train_model, update_incremental
from .backend import load_backend
from .config import config
from .db import Database, ModelStore, StoredModel
from .exceptions import EnvironmentUnsupported, ModelLoadCorrupt, NumericFailure
from .models import AthleteProfile, WorkoutSession

logger = logging.getLogger(__name__)


class FatigueForecastService:
    """Per-user fatigue model handle with a serialized task queue."""

    def __init__(self,
                 user_id: str = "default",
                 store: Optional[ModelStore] = None,
                 database_url: Optional[str] = None):
        """
        Args:
            user_id: Owner of the model
            store: Model store; created from ``database_url`` on first use when omitted
            database_url: SQLAlchemy URL for the local store (default Config.DATABASE_URL)
        """
        self.user_id = user_id
        self._store = store
        self._owns_store = store is None
        self._database_url = database_url
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"fatigue-{user_id}")
        self._model: Optional[FatigueSequenceModel] = None
        self._last_full_training: Optional[datetime] = None
        self._last_incremental_update: Optional[datetime] = None
        self._unsupported_reason: Optional[str] = None
        self._closed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def predict(self, history, logs=None, profile: Optional[AthleteProfile] = None,
                as_of: Optional[date] = None, timeout: Optional[float] = None) -> Optional[PredictionResult]:
        """Forecast the next 14 days; ``None`` means the feature is unavailable."""
        future = self.predict_async(history, logs, profile, as_of)
        if future is None:
            return None
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            logger.warning("Fatigue prediction timed out")
            return None

    def predict_async(self, history, logs=None, profile: Optional[AthleteProfile] = None,
                      as_of: Optional[date] = None) -> Optional["Future[Optional[PredictionResult]]"]:
        return self._submit(self._predict_task, history, logs, profile, as_of)

    def record_workout_outcome(self, workout: WorkoutSession, recent_history, logs=None,
                               profile: Optional[AthleteProfile] = None) -> Optional["Future[TrainingReport]"]:
        """Fire-and-forget model refresh after a completed workout."""
        return self._submit(self._record_workout_task, workout, recent_history, logs, profile)

    def train(self, history, logs=None, profile: Optional[AthleteProfile] = None,
              timeout: Optional[float] = None, cancel_event: Optional[threading.Event] = None) -> TrainingReport:
        """Run a full retrain and wait for it."""
        future = self.train_async(history, logs, profile, timeout, cancel_event)
        if future is None:
            return TrainingReport(status="unavailable", message="Service is closed")
        return future.result()

    def train_async(self, history, logs=None, profile: Optional[AthleteProfile] = None,
                    timeout: Optional[float] = None,
                    cancel_event: Optional[threading.Event] = None) -> Optional["Future[TrainingReport]"]:
        return self._submit(self._train_task, history, logs, profile, timeout, cancel_event)

    def has_trained_model(self) -> bool:
        future = self._submit(self._has_trained_model_task)
        return bool(future.result()) if future is not None else False

    def delete_model(self) -> None:
        future = self._submit(self._delete_model_task)
        if future is not None:
            future.result()

    def is_supported(self) -> bool:
        """Whether the host has durable storage and the numeric backend."""
        future = self._submit(self._supported_task)
        return bool(future.result()) if future is not None else False

    def close(self) -> None:
        """Wait for queued work, then release the cached model and any store this service opened."""
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=True)
        self._model = None
        if self._owns_store and self._store is not None:
            self._store.close()
            self._store = None

    # ------------------------------------------------------------------
    # Worker-thread tasks
    # ------------------------------------------------------------------

    def _submit(self, fn, *args) -> Optional[Future]:
        if self._closed:
            logger.debug("Ignoring call on closed fatigue service")
            return None
        return self._executor.submit(fn, *args)

    def _predict_task(self, history, logs, profile, as_of) -> Optional[PredictionResult]:
        try:
            model = self._get_model()
            return predict_fatigue(model, history, logs, profile=profile, as_of=as_of)
        except EnvironmentUnsupported:
            return None
        except NumericFailure as e:
            logger.warning(f"Discarding fatigue prediction: {e}")
            return None
        except Exception:
            logger.exception("Fatigue prediction failed")
            return None

    def _train_task(self, history, logs, profile, timeout, cancel_event) -> TrainingReport:
        try:
            self._ensure_supported()
            report = train_model(history, logs, profile, cancel_event=cancel_event, timeout=timeout)
            if report.status == "trained":
                self._install_trained(report.model)
            return report
        except EnvironmentUnsupported as e:
            return TrainingReport(status="unavailable", message=str(e))
        except Exception as e:
            logger.exception("Fatigue model training failed")
            return TrainingReport(status="failed", message=str(e))

    def _record_workout_task(self, workout, recent_history, logs, profile) -> TrainingReport:
        try:
            model = self._get_model()

            if not model.is_trained or is_retrain_due(self._last_full_training):
                history = [w for w in (recent_history or []) if w.id != workout.id] + [workout]
                report = train_model(history, logs, profile)
                if report.status == "trained":
                    self._install_trained(report.model)
                    return report
                if not model.is_trained:
                    return report

            report = update_incremental(model, workout, recent_history, logs, profile)
            if report.status == "updated":
                self._last_incremental_update = datetime.utcnow()
                self._persist(model)
            return report
        except EnvironmentUnsupported as e:
            return TrainingReport(status="unavailable", message=str(e))
        except Exception as e:
            logger.exception("Incremental fatigue model update failed")
            return TrainingReport(status="failed", message=str(e))

    def _has_trained_model_task(self) -> bool:
        try:
            if self._model is not None and self._model.is_trained:
                return True
            store = self._get_store()
            return store.exists(self.user_id, version=MODEL_VERSION, trained_only=True)
        except EnvironmentUnsupported:
            return False
        except Exception:
            logger.exception("Could not check for a trained fatigue model")
            return False

    def _delete_model_task(self) -> None:
        self._model = None
        self._last_full_training = None
        self._last_incremental_update = None
        try:
            self._get_store().delete(self.user_id)
        except EnvironmentUnsupported:
            logger.debug("No model store available; nothing to delete")
        except Exception:
            logger.exception("Could not delete fatigue model")

    def _supported_task(self) -> bool:
        try:
            self._ensure_supported()
            return True
        except EnvironmentUnsupported:
            return False

    # ------------------------------------------------------------------
    # Helpers (worker thread only)
    # ------------------------------------------------------------------

    def _unsupported(self, reason: str) -> EnvironmentUnsupported:
        if self._unsupported_reason is None:
            self._unsupported_reason = reason
            logger.warning(f"Fatigue forecasting unavailable: {reason}")
        return EnvironmentUnsupported(reason)

    def _get_store(self) -> ModelStore:
        if self._unsupported_reason is not None:
            raise EnvironmentUnsupported(self._unsupported_reason)
        if self._store is None:
            try:
                self._store = ModelStore(Database(self._database_url))
            except Exception as e:
                raise self._unsupported(f"local model store cannot be opened ({e})") from e
        if not self._store.is_durable():
            raise self._unsupported("no durable local storage")
        return self._store

    def _ensure_supported(self) -> ModelStore:
        store = self._get_store()
        try:
            load_backend()
        except EnvironmentUnsupported as e:
            raise self._unsupported(str(e)) from e
        return store

    def _get_model(self) -> FatigueSequenceModel:
        """Return the cached model, loading or building it on first use."""
        store = self._ensure_supported()
        if self._model is not None:
            return self._model

        record = store.load(self.user_id)
        if record is not None:
            try:
                model = FatigueSequenceModel.deserialize(record.architecture, record.weights, record.version)
                self._last_full_training = record.last_full_training
                self._last_incremental_update = record.last_incremental_update
                self._model = model
                logger.info(f"Loaded fatigue model {record.model_key}")
                return model
            except ModelLoadCorrupt as e:
                logger.warning(f"Discarding stored fatigue model: {e}")
                store.delete(self.user_id)

        logger.info("Creating new fatigue prediction model")
        self._model = FatigueSequenceModel().build(seed=config.RANDOM_SEED)
        self._last_full_training = None
        self._last_incremental_update = None
        return self._model

    def _install_trained(self, model: FatigueSequenceModel) -> None:
        self._model = model
        self._last_full_training = datetime.utcnow()
        self._persist(model)

    def _persist(self, model: FatigueSequenceModel) -> None:
        architecture, weights = model.serialize()
        self._get_store().save(StoredModel(
            user_id=self.user_id,
            model_key=model_key(self.user_id),
            version=MODEL_VERSION,
            architecture=architecture,
            weights=weights,
            is_trained=model.is_trained,
            samples_trained=model.samples_trained,
            incremental_updates=model.incremental_updates,
            last_full_training=self._last_full_training,
            last_incremental_update=self._last_incremental_update,
        ))
