"""Feature engineering, sequence model and deload policy."""

from .features import Channel, DailyFeatureVector, extract_daily_features
from .sequences import FeatureSequence, build_sequence
from .sequence_model import MODEL_VERSION, FatigueSequenceModel
from .prediction import PredictionResult, predict_fatigue, recommend_deload

__all__ = [
    "Channel",
    "DailyFeatureVector",
    "extract_daily_features",
    "FeatureSequence",
    "build_sequence",
    "MODEL_VERSION",
    "FatigueSequenceModel",
    "PredictionResult",
    "predict_fatigue",
    "recommend_deload",
]
