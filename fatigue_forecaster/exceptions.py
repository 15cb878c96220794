"""Error taxonomy for the fatigue forecaster.

These are raised inside the analysis layer and always handled by
:class:`fatigue_forecaster.service.FatigueForecastService`, which turns them
into sentinel results so nothing reaches the workout-logging path.
"""


class FatigueForecastError(Exception):
    """Base class for fatigue forecaster errors."""


class InsufficientData(FatigueForecastError):
    """Too little history to train or update the model."""


class EnvironmentUnsupported(FatigueForecastError):
    """The host lacks durable storage or the numeric backend."""


class ModelLoadCorrupt(FatigueForecastError):
    """A persisted model is unreadable or was saved under another version."""


class NumericFailure(FatigueForecastError):
    """The model produced NaN or infinite values."""
