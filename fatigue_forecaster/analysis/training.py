"""Training pipeline for the fatigue sequence model.

Full training builds weekly-stepped sliding-window samples from the user's
history and fits a fresh model with a held-out validation split and early
stopping. Incremental updates run a single low-impact step after each
completed workout using a provisional label.

Every public entry point returns a :class:`TrainingReport`; lacking data is
reported, never raised.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

import numpy as np
from sklearn.model_selection import train_test_split

from ..backend import load_backend
from ..config import config
from ..exceptions import InsufficientData
from ..models import AthleteProfile, WorkoutSession
from .features import HistoryIndex
from .sequence_model import FatigueSequenceModel
from .sequences import build_sequence, iter_training_windows

logger = logging.getLogger(__name__)

REST_DAY_FATIGUE = 0.3
NO_RPE_WORKOUT_FATIGUE = 0.4
NO_RPE_PROVISIONAL_FATIGUE = 0.5


@dataclass
class TrainingData:
    """Stacked training samples."""
    sequences: np.ndarray  # (samples, sequence_length, FEATURE_COUNT)
    labels: np.ndarray  # (samples, forecast_horizon)
    eligible_days: int
    span_days: int

    @property
    def n_samples(self) -> int:
        return len(self.sequences)


@dataclass
class TrainingReport:
    """Outcome of a training or update step."""
    status: str  # trained, updated, insufficient_data, cancelled, failed, unavailable
    message: str = ""
    samples: int = 0
    epochs_trained: int = 0
    final_loss: Optional[float] = None
    final_val_loss: Optional[float] = None
    history: Dict[str, List[float]] = field(default_factory=dict)
    model: Optional[FatigueSequenceModel] = field(default=None, repr=False)

    @property
    def succeeded(self) -> bool:
        return self.status in ("trained", "updated")


# =============================================================================
# Labels
# =============================================================================

def recovery_to_fatigue(perceived_recovery: float) -> float:
    """Invert a 1-5 recovery self-report to a 0-1 fatigue label (5 -> 0, 1 -> 1)."""
    return float(np.clip((5.0 - perceived_recovery) / 4.0, 0.0, 1.0))


def rpe_to_fatigue(avg_rpe: float) -> float:
    """Exertion proxy: RPE 5 -> 0, RPE 10 -> 1."""
    return float(np.clip((avg_rpe - 5.0) / 5.0, 0.0, 1.0))


def fatigue_label_for_day(day: date, index: HistoryIndex) -> float:
    """Fatigue label for one day.

    Prefers the explicit recovery self-report, then the exertion proxy for
    workout days, then a low neutral value for rest days.
    """
    log = index.log_on(day)
    if log is not None and log.perceived_recovery is not None and np.isfinite(log.perceived_recovery):
        return recovery_to_fatigue(log.perceived_recovery)

    workouts = index.workouts_on(day)
    if workouts:
        rpes = [rpe for w in workouts for rpe in w.rpe_values()]
        if rpes:
            return rpe_to_fatigue(float(np.mean(rpes)))
        return NO_RPE_WORKOUT_FATIGUE

    return REST_DAY_FATIGUE


def calculate_fatigue_labels(days: List[date], index: HistoryIndex) -> np.ndarray:
    return np.array([fatigue_label_for_day(d, index) for d in days], dtype=np.float32)


def estimate_workout_fatigue(workout: WorkoutSession) -> float:
    """Provisional fatigue estimate from a single workout's exertion."""
    rpes = workout.rpe_values()
    if not rpes:
        return NO_RPE_PROVISIONAL_FATIGUE
    return rpe_to_fatigue(float(np.mean(rpes)))


# =============================================================================
# Sample preparation
# =============================================================================

def prepare_training_data(history,
                          logs=None,
                          profile: Optional[AthleteProfile] = None,
                          sequence_length: int = None,
                          horizon: int = None) -> TrainingData:
    """
    Build sliding-window training samples from the full history.

    Raises:
        InsufficientData: fewer than MIN_ELIGIBLE_DAYS recorded days, a span
            shorter than sequence_length + horizon, or too few usable windows
    """
    sequence_length = sequence_length or config.SEQUENCE_LENGTH
    horizon = horizon or config.PREDICTION_HORIZON
    index = HistoryIndex.of(history, logs)

    recorded = index.recorded_days()
    eligible_days = len(recorded)
    if eligible_days < config.MIN_ELIGIBLE_DAYS:
        raise InsufficientData(
            f"Need at least {config.MIN_ELIGIBLE_DAYS} days of history, got {eligible_days}"
        )

    span_days = (recorded[-1] - recorded[0]).days + 1
    if span_days < sequence_length + horizon:
        raise InsufficientData(
            f"History spans {span_days} days, need {sequence_length + horizon}"
        )

    sequences, labels = [], []
    for window in iter_training_windows(index, profile=profile,
                                        length=sequence_length, horizon=horizon):
        sequences.append(window.sequence.to_array())
        labels.append(calculate_fatigue_labels(window.label_days, index))

    if len(sequences) < config.MIN_TRAINING_SAMPLES:
        raise InsufficientData(
            f"Need at least {config.MIN_TRAINING_SAMPLES} usable training windows, got {len(sequences)}"
        )

    return TrainingData(
        sequences=np.stack(sequences).astype(np.float32),
        labels=np.stack(labels).astype(np.float32),
        eligible_days=eligible_days,
        span_days=span_days,
    )


# =============================================================================
# Training
# =============================================================================

def _cancellation_callback(cancel_event: Optional[threading.Event], deadline: Optional[float]):
    """Keras callback that stops training on cancel or timeout."""
    backend = load_backend()

    class CooperativeStop(backend.callbacks.Callback):
        def __init__(self):
            super().__init__()
            self.cancelled = False

        def _check(self):
            timed_out = deadline is not None and time.monotonic() >= deadline
            if (cancel_event is not None and cancel_event.is_set()) or timed_out:
                self.cancelled = True
                self.model.stop_training = True

        def on_train_batch_end(self, batch, logs=None):
            self._check()

        def on_epoch_end(self, epoch, logs=None):
            self._check()

    return CooperativeStop()


def train_model(history,
                logs=None,
                profile: Optional[AthleteProfile] = None,
                cancel_event: Optional[threading.Event] = None,
                timeout: Optional[float] = None,
                epochs: int = None,
                batch_size: int = None) -> TrainingReport:
    """
    Fit a fresh model on the full history.

    Args:
        history: Workout history
        logs: Wellness logs keyed by date
        profile: Athlete context
        cancel_event: Set to stop training cooperatively
        timeout: Wall-clock limit in seconds (default TRAINING_TIMEOUT_SECONDS)
        epochs: Maximum training epochs
        batch_size: Training batch size

    Returns:
        TrainingReport; ``report.model`` holds the trained model on success
    """
    epochs = epochs or config.TRAINING_EPOCHS
    batch_size = batch_size or config.TRAINING_BATCH_SIZE
    timeout = config.TRAINING_TIMEOUT_SECONDS if timeout is None else timeout

    try:
        data = prepare_training_data(history, logs, profile)
    except InsufficientData as e:
        logger.info(f"Skipping training: {e}")
        return TrainingReport(status="insufficient_data", message=str(e))

    backend = load_backend()
    model = FatigueSequenceModel().build(seed=config.RANDOM_SEED)

    X_train, X_val, y_train, y_val = train_test_split(
        data.sequences, data.labels,
        test_size=config.VALIDATION_SPLIT,
        shuffle=True,
        random_state=config.RANDOM_SEED,
    )

    early_stop = backend.callbacks.EarlyStopping(
        monitor='val_loss',
        patience=config.EARLY_STOPPING_PATIENCE,
        restore_best_weights=True,
    )
    deadline = time.monotonic() + timeout if timeout else None
    stopper = _cancellation_callback(cancel_event, deadline)

    fit_history = model.model.fit(
        X_train, y_train,
        validation_data=(X_val, y_val),
        epochs=epochs,
        batch_size=batch_size,
        shuffle=True,
        callbacks=[early_stop, stopper],
        verbose=0,
    )
    del X_train, X_val, y_train, y_val

    history_dict = {k: [float(v) for v in values] for k, values in fit_history.history.items()}
    epochs_trained = len(history_dict.get('loss', []))

    if stopper.cancelled:
        logger.info(f"Training cancelled after {epochs_trained} epochs")
        return TrainingReport(
            status="cancelled",
            message="Training cancelled or timed out",
            samples=data.n_samples,
            epochs_trained=epochs_trained,
            history=history_dict,
        )

    final_loss = history_dict['loss'][-1] if history_dict.get('loss') else None
    final_val_loss = history_dict['val_loss'][-1] if history_dict.get('val_loss') else None
    if final_loss is not None and not np.isfinite(final_loss):
        logger.warning("Training diverged (non-finite loss); discarding model")
        return TrainingReport(status="failed", message="Training loss is not finite",
                              samples=data.n_samples, epochs_trained=epochs_trained)

    model.is_trained = True
    model.samples_trained = data.n_samples

    logger.info(
        f"Trained fatigue model on {data.n_samples} samples "
        f"({data.eligible_days} eligible days) in {epochs_trained} epochs"
    )

    return TrainingReport(
        status="trained",
        samples=data.n_samples,
        epochs_trained=epochs_trained,
        final_loss=final_loss,
        final_val_loss=final_val_loss,
        history=history_dict,
        model=model,
    )


def update_incremental(model: FatigueSequenceModel,
                       workout: WorkoutSession,
                       recent_history,
                       logs=None,
                       profile: Optional[AthleteProfile] = None) -> TrainingReport:
    """
    Run one low-impact training step after a completed workout.

    The label is provisional: the workout's own exertion estimate repeated
    across the horizon. It is superseded by the next full retrain.
    """
    if model is None or model.model is None:
        return TrainingReport(status="insufficient_data", message="No model to update")
    if not workout.is_completed:
        return TrainingReport(status="insufficient_data", message="Workout is not completed")

    sessions = [w for w in (recent_history or []) if w.id != workout.id]
    index = HistoryIndex.of(sessions + [workout], logs)
    first_day = index.first_recorded_day()
    history_days = (workout.day - first_day).days + 1 if first_day else 0
    if history_days < model.sequence_length:
        return TrainingReport(
            status="insufficient_data",
            message=f"Need {model.sequence_length} days of history, got {history_days}",
        )

    sequence = build_sequence(workout.day, index, profile=profile, length=model.sequence_length)
    xs = sequence.to_array()[np.newaxis, ...]
    ys = np.full((1, model.forecast_horizon), estimate_workout_fatigue(workout), dtype=np.float32)

    model.set_learning_rate(model.learning_rate * config.INCREMENTAL_LR_FACTOR)
    try:
        fit_history = model.model.fit(xs, ys, epochs=1, batch_size=1, verbose=0)
    finally:
        model.set_learning_rate(model.learning_rate)
        del xs, ys

    model.incremental_updates += 1
    loss = fit_history.history.get('loss', [None])[-1]
    return TrainingReport(
        status="updated",
        samples=1,
        epochs_trained=1,
        final_loss=float(loss) if loss is not None else None,
    )


def is_retrain_due(last_full_training: Optional[datetime],
                   now: Optional[datetime] = None,
                   interval_days: int = None) -> bool:
    """Check whether a full retrain should replace incremental updates."""
    if last_full_training is None:
        return True
    interval_days = config.RETRAIN_INTERVAL_DAYS if interval_days is None else interval_days
    now = now or datetime.utcnow()
    return now - last_full_training >= timedelta(days=interval_days)
