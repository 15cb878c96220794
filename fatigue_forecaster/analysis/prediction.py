"""Fatigue prediction and deload policy.

Runs the sequence model over the latest feature sequence, attaches a risk
tier, recommendation, confidence and contributing factors to every forecast
day, and derives a deload-window recommendation from the trajectory.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import List, Optional, Sequence

import numpy as np

from ..config import config
from ..models import AthleteProfile
from .features import DailyFeatureVector
from .sequence_model import MODEL_VERSION, FatigueSequenceModel
from .sequences import FeatureSequence, build_sequence

logger = logging.getLogger(__name__)

HIGH_VOLUME_SETS_PER_DAY = 20
HIGH_AVG_RPE = 8.5
ACWR_LOW = 0.8
ACWR_HIGH = 1.5
MIN_SLEEP_HOURS = 7.0
CONSECUTIVE_TRAINING_DAYS = 5
UNTRAINED_CONFIDENCE_FACTOR = 0.25
TREND_INCREASE_MARGIN = 0.15


@dataclass
class FatiguePrediction:
    """Forecast for a single day."""
    date: date
    level: float  # 0-1
    confidence: float  # 0-1
    risk_level: str  # 'low', 'moderate', 'high', 'critical'
    recommendation: str
    contributing_factors: List[str] = field(default_factory=list)


@dataclass
class DeloadRecommendation:
    """Suggested recovery window."""
    urgency: str  # 'suggested', 'recommended', 'urgent'
    start: date
    end: date
    reason: str


@dataclass
class PredictionResult:
    """14-day fatigue forecast."""
    predictions: List[FatiguePrediction]
    confidence: float
    model_version: str
    generated_at: datetime
    model_trained: bool = True
    deload: Optional[DeloadRecommendation] = None

    @property
    def deload_recommended(self) -> bool:
        return self.deload is not None

    @property
    def levels(self) -> List[float]:
        return [p.level for p in self.predictions]


def classify_risk_level(fatigue: float) -> str:
    """Risk tier: low < 0.30 <= moderate < 0.70 <= high < 0.85 <= critical."""
    if fatigue >= config.FATIGUE_CRITICAL_THRESHOLD:
        return 'critical'
    if fatigue >= config.FATIGUE_HIGH_THRESHOLD:
        return 'high'
    if fatigue >= config.FATIGUE_LOW_THRESHOLD:
        return 'moderate'
    return 'low'


def generate_recommendation(fatigue: float, days_ahead: int) -> str:
    """Recommendation text for a day ``days_ahead`` (0 = tomorrow)."""
    day_label = "Tomorrow" if days_ahead == 0 else f"In {days_ahead + 1} days"
    risk = classify_risk_level(fatigue)

    if risk == 'critical':
        return f"{day_label}: Critical fatigue predicted. Plan for complete rest or very light active recovery."
    if risk == 'high':
        return f"{day_label}: High fatigue expected. Consider reducing volume by 30-40% or taking a rest day."
    if risk == 'moderate':
        return f"{day_label}: Moderate fatigue expected. Normal training OK, but monitor recovery closely."
    return f"{day_label}: Low fatigue predicted. Good day for challenging workout if scheduled."


def calculate_day_confidence(days_ahead: int, real_days: int, sequence_length: int = None) -> float:
    """Confidence decays with distance and grows with real (unpadded) history."""
    sequence_length = sequence_length or config.SEQUENCE_LENGTH
    distance_decay = math.exp(-days_ahead * 0.1)
    data_boost = min(1.0, real_days / sequence_length)
    return max(0.2, min(0.95, distance_decay * data_boost * 0.9))


def calculate_overall_confidence(real_days: int, sequence_length: int = None, model_trained: bool = True) -> float:
    sequence_length = sequence_length or config.SEQUENCE_LENGTH
    confidence = min(0.9, real_days / sequence_length)
    if not model_trained:
        confidence *= UNTRAINED_CONFIDENCE_FACTOR
    return confidence


def _longest_training_streak(days: Sequence[DailyFeatureVector]) -> int:
    longest = current = 0
    for d in days:
        current = 0 if d.is_rest_day else current + 1
        longest = max(longest, current)
    return longest


def identify_contributing_factors(sequence: FeatureSequence, predicted_fatigue: float) -> List[str]:
    """Explain a forecast from triggers in the trailing 7 input days."""
    factors: List[str] = []
    recent = sequence.trailing(7)
    if not recent:
        return factors

    avg_volume = float(np.mean([d.volume_total for d in recent]))
    if avg_volume > HIGH_VOLUME_SETS_PER_DAY:
        factors.append(f"High recent volume ({avg_volume:.0f} sets/day avg)")

    rpe_days = [d.avg_rpe for d in recent if d.avg_rpe > 0]
    if rpe_days:
        avg_rpe = float(np.mean(rpe_days))
        if avg_rpe > HIGH_AVG_RPE:
            factors.append(f"High training intensity (RPE {avg_rpe:.1f} avg)")

    last_acwr = recent[-1].acwr
    if last_acwr > ACWR_HIGH:
        factors.append(f"Rapid volume increase (ACWR: {last_acwr:.2f})")
    elif last_acwr < ACWR_LOW:
        factors.append(f"Volume drop may cause detraining (ACWR: {last_acwr:.2f})")

    sleep_days = [d.sleep_hours for d in recent if d.has_wellness_log and d.sleep_hours > 0]
    if sleep_days:
        avg_sleep = float(np.mean(sleep_days))
        if avg_sleep < MIN_SLEEP_HOURS:
            factors.append(f"Insufficient sleep ({avg_sleep:.1f}h avg)")

    streak = _longest_training_streak(recent)
    if streak >= CONSECUTIVE_TRAINING_DAYS:
        factors.append(f"{streak} consecutive training days")

    if not factors and predicted_fatigue > config.FATIGUE_MODERATE_THRESHOLD:
        factors.append("Cumulative training stress building up")

    return factors


def recommend_deload(predictions: Sequence[FatiguePrediction]) -> Optional[DeloadRecommendation]:
    """
    Derive a deload window from the forecast. First matching rule wins:

    1. Critical fatigue within days 1-7 -> urgent, from 3 days before through that day
    2. High fatigue within days 1-10 -> recommended, 2 days either side
    3. Second week averaging 0.15 above the first and above moderate -> suggested, days 8-14
    """
    if not predictions:
        return None
    levels = [p.level for p in predictions]
    last = len(predictions) - 1

    critical_day = next((i for i, v in enumerate(levels) if v > config.FATIGUE_CRITICAL_THRESHOLD), None)
    if critical_day is not None and critical_day < 7:
        return DeloadRecommendation(
            urgency='urgent',
            start=predictions[max(0, critical_day - 3)].date,
            end=predictions[critical_day].date,
            reason=f"Critical fatigue predicted in {critical_day + 1} days",
        )

    high_day = next((i for i, v in enumerate(levels) if v > config.FATIGUE_HIGH_THRESHOLD), None)
    if high_day is not None and high_day < 10:
        return DeloadRecommendation(
            urgency='recommended',
            start=predictions[max(0, high_day - 2)].date,
            end=predictions[min(last, high_day + 2)].date,
            reason=f"High fatigue predicted in {high_day + 1} days",
        )

    if len(levels) >= 14:
        first_week = float(np.mean(levels[:7]))
        second_week = float(np.mean(levels[7:14]))
        if second_week > first_week + TREND_INCREASE_MARGIN and second_week > config.FATIGUE_MODERATE_THRESHOLD:
            return DeloadRecommendation(
                urgency='suggested',
                start=predictions[7].date,
                end=predictions[13].date,
                reason=f"Fatigue trending up ({first_week:.2f} -> {second_week:.2f} weekly avg)",
            )

    return None


def build_predictions(levels: Sequence[float], sequence: FeatureSequence, start_day: date) -> List[FatiguePrediction]:
    """Annotate raw fatigue levels for the days following ``start_day``."""
    predictions = []
    for i, level in enumerate(levels):
        level = float(level)
        predictions.append(FatiguePrediction(
            date=start_day + timedelta(days=i + 1),
            level=level,
            confidence=calculate_day_confidence(i, sequence.real_days, sequence.length),
            risk_level=classify_risk_level(level),
            recommendation=generate_recommendation(level, i),
            contributing_factors=identify_contributing_factors(sequence, level),
        ))
    return predictions


def predict_fatigue(model: FatigueSequenceModel,
                    history,
                    logs=None,
                    profile: Optional[AthleteProfile] = None,
                    as_of: Optional[date] = None) -> PredictionResult:
    """
    Forecast fatigue for the days after ``as_of`` (default: today).

    Raises:
        NumericFailure: the model produced non-finite output
    """
    as_of = as_of or date.today()
    if isinstance(as_of, datetime):
        as_of = as_of.date()

    sequence = build_sequence(as_of, history, logs, profile=profile, length=model.sequence_length)
    levels = model.predict(sequence.to_array())

    predictions = build_predictions(levels, sequence, as_of)
    return PredictionResult(
        predictions=predictions,
        confidence=calculate_overall_confidence(sequence.real_days, sequence.length, model.is_trained),
        model_version=MODEL_VERSION,
        generated_at=datetime.utcnow(),
        model_trained=model.is_trained,
        # Untrained weights never produce a deload recommendation
        deload=recommend_deload(predictions) if model.is_trained else None,
    )
