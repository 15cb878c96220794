"""
GRU-based fatigue sequence model.

Maps a normalized feature sequence (sequence_length x 12 channels) to a
14-day fatigue trajectory in [0, 1].

Architecture:
- GRU layer 1: 64 units, full per-timestep output, dropout
- Batch normalization
- GRU layer 2: 32 units, single summary output
- Dense hidden layer: 32 units, ReLU
- Dense output: one sigmoid unit per forecast day

The normalization constants in :mod:`.features` and this architecture are
versioned together by ``MODEL_VERSION``; a persisted model saved under another
version is never loaded.
"""

import io
import logging
from typing import Any, Dict, List, Optional, Tuple

import joblib
import numpy as np

from ..backend import load_backend
from ..config import config
from ..exceptions import ModelLoadCorrupt, NumericFailure
from .features import FEATURE_COUNT

logger = logging.getLogger(__name__)

MODEL_VERSION = "1.0.0"

GRU_UNITS_1 = 64
GRU_UNITS_2 = 32
DENSE_UNITS = 32


def model_key(user_id: str) -> str:
    """Versioned storage key for a user's model."""
    return f"fatigue-model-{user_id}-v{MODEL_VERSION}"


class FatigueSequenceModel:
    """
    Wrapper around the compiled Keras model.

    Once trained it is a stateless function from an input sequence to a
    fatigue trajectory. Training itself lives in :mod:`.training`.
    """

    def __init__(self,
                 sequence_length: int = None,
                 forecast_horizon: int = None,
                 learning_rate: float = None):
        """
        Initialize the sequence model.

        Args:
            sequence_length: Number of historical days per input sequence
            forecast_horizon: Number of days to forecast
            learning_rate: Adam learning rate
        """
        self.sequence_length = sequence_length or config.SEQUENCE_LENGTH
        self.forecast_horizon = forecast_horizon or config.PREDICTION_HORIZON
        self.learning_rate = learning_rate or config.LEARNING_RATE
        self.model = None
        self.is_trained = False
        self.samples_trained = 0
        self.incremental_updates = 0
        self.logger = logging.getLogger(__name__)

    @property
    def input_shape(self) -> Tuple[int, int]:
        return self.sequence_length, FEATURE_COUNT

    def build(self, seed: Optional[int] = None) -> "FatigueSequenceModel":
        """Build and compile a fresh, untrained architecture.

        A seed makes the initial weights reproducible through seeded
        initializers; the process-global random state is left untouched.
        """
        backend = load_backend()
        keras, layers = backend.keras, backend.layers
        init = _SeededInitializers(keras, seed)

        model = keras.Sequential([
            keras.Input(shape=self.input_shape),

            # First GRU layer keeps the full sequence for stacking
            layers.GRU(GRU_UNITS_1, return_sequences=True,
                       dropout=0.2, recurrent_dropout=0.2,
                       kernel_initializer=init.glorot(), recurrent_initializer=init.orthogonal()),
            layers.BatchNormalization(),

            # Second GRU layer summarizes the sequence
            layers.GRU(GRU_UNITS_2, return_sequences=False, dropout=0.1,
                       kernel_initializer=init.glorot(), recurrent_initializer=init.orthogonal()),

            layers.Dense(DENSE_UNITS, activation='relu', kernel_initializer=init.glorot()),

            # One fatigue value per forecast day
            layers.Dense(self.forecast_horizon, activation='sigmoid', kernel_initializer=init.glorot()),
        ])

        self.model = model
        self.compile()
        self.is_trained = False
        self.samples_trained = 0
        self.incremental_updates = 0
        return self

    def compile(self) -> None:
        backend = load_backend()
        self.model.compile(
            optimizer=backend.keras.optimizers.Adam(learning_rate=self.learning_rate),
            loss='mse',
            metrics=['mae'],
        )

    def set_learning_rate(self, learning_rate: float) -> None:
        self.model.optimizer.learning_rate = learning_rate

    def predict(self, sequence: np.ndarray) -> np.ndarray:
        """
        Predict the fatigue trajectory for one input sequence.

        Args:
            sequence: Array of shape (sequence_length, FEATURE_COUNT)

        Returns:
            Array of ``forecast_horizon`` values in [0, 1]

        Raises:
            NumericFailure: the model produced NaN or infinite values
        """
        if self.model is None:
            raise ValueError("Model must be built or loaded before prediction")

        batch = np.asarray(sequence, dtype=np.float32).reshape((1,) + self.input_shape)
        output = np.asarray(self.model.predict_on_batch(batch))[0].astype(np.float64)
        del batch

        if output.shape != (self.forecast_horizon,) or not np.all(np.isfinite(output)):
            raise NumericFailure("Model produced non-finite fatigue values")

        return np.clip(output, 0.0, 1.0)

    def metadata(self) -> Dict[str, Any]:
        return {
            'version': MODEL_VERSION,
            'sequence_length': self.sequence_length,
            'forecast_horizon': self.forecast_horizon,
            'feature_count': FEATURE_COUNT,
            'is_trained': self.is_trained,
            'samples_trained': self.samples_trained,
            'incremental_updates': self.incremental_updates,
        }

    def serialize(self) -> Tuple[str, bytes]:
        """Return (architecture JSON, joblib-encoded weights + metadata)."""
        if self.model is None:
            raise ValueError("Cannot serialize a model that was never built")

        buffer = io.BytesIO()
        joblib.dump({
            'weights': self.model.get_weights(),
            'metadata': self.metadata(),
        }, buffer)
        return self.model.to_json(), buffer.getvalue()

    @classmethod
    def deserialize(cls, architecture: str, payload: bytes, version: str) -> "FatigueSequenceModel":
        """
        Rebuild a model from its serialized form.

        Raises:
            ModelLoadCorrupt: version mismatch or unreadable payload
        """
        if version != MODEL_VERSION:
            raise ModelLoadCorrupt(
                f"Stored model version {version} does not match {MODEL_VERSION}"
            )

        backend = load_backend()
        try:
            data = joblib.load(io.BytesIO(payload))
            metadata = data['metadata']
            weights: List[np.ndarray] = data['weights']

            instance = cls(
                sequence_length=metadata['sequence_length'],
                forecast_horizon=metadata['forecast_horizon'],
            )
            if metadata.get('feature_count') != FEATURE_COUNT:
                raise ModelLoadCorrupt("Stored model has a different channel count")

            instance.model = backend.keras.models.model_from_json(architecture)
            instance.model.set_weights(weights)
            instance.compile()
        except ModelLoadCorrupt:
            raise
        except Exception as e:
            raise ModelLoadCorrupt(f"Unreadable model payload: {e}") from e

        instance.is_trained = bool(metadata.get('is_trained', False))
        instance.samples_trained = int(metadata.get('samples_trained', 0))
        instance.incremental_updates = int(metadata.get('incremental_updates', 0))
        return instance


class _SeededInitializers:
    """Hands out per-layer initializers with distinct seeds derived from one base seed."""

    def __init__(self, keras, seed: Optional[int]):
        self.keras = keras
        self.seed = seed
        self._offset = 0

    def _next_seed(self) -> Optional[int]:
        if self.seed is None:
            return None
        self._offset += 1
        return self.seed + self._offset

    def glorot(self):
        return self.keras.initializers.GlorotUniform(seed=self._next_seed())

    def orthogonal(self):
        return self.keras.initializers.Orthogonal(seed=self._next_seed())
