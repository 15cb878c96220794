"""On-device training fatigue forecasting."""

from .analysis.prediction import DeloadRecommendation, FatiguePrediction, PredictionResult
from .analysis.training import TrainingReport
from .models import AthleteProfile, DailyWellnessLog, ExerciseLog, SetLog, WorkoutSession
from .service import FatigueForecastService

__version__ = "0.1.0"

__all__ = [
    "FatigueForecastService",
    "PredictionResult",
    "FatiguePrediction",
    "DeloadRecommendation",
    "TrainingReport",
    "WorkoutSession",
    "ExerciseLog",
    "SetLog",
    "DailyWellnessLog",
    "AthleteProfile",
]
