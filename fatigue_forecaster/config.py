"""Configuration management for the fatigue forecaster."""

import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

class Config:
    """Application configuration."""

    # Database (local, on-device model store)
    DATABASE_URL: str = os.getenv(
        "FATIGUE_DATABASE_URL",
        f"sqlite:///{Path.home() / '.fatigue_forecaster' / 'models.db'}",
    )

    # Sequence shape
    SEQUENCE_LENGTH: int = int(os.getenv("SEQUENCE_LENGTH", "28"))  # days of input history
    PREDICTION_HORIZON: int = int(os.getenv("PREDICTION_HORIZON", "14"))  # days forecast

    # Training data requirements
    MIN_ELIGIBLE_DAYS: int = int(os.getenv("MIN_ELIGIBLE_DAYS", "42"))  # 6 weeks
    MIN_TRAINING_SAMPLES: int = int(os.getenv("MIN_TRAINING_SAMPLES", "5"))
    WINDOW_STEP_DAYS: int = int(os.getenv("WINDOW_STEP_DAYS", "7"))
    MAX_UNCOVERED_FRACTION: float = float(os.getenv("MAX_UNCOVERED_FRACTION", "0.2"))
    MAX_ORDINARY_REST_GAP: int = int(os.getenv("MAX_ORDINARY_REST_GAP", "2"))  # consecutive empty days

    # Training hyperparameters
    TRAINING_EPOCHS: int = int(os.getenv("TRAINING_EPOCHS", "50"))
    TRAINING_BATCH_SIZE: int = int(os.getenv("TRAINING_BATCH_SIZE", "16"))
    VALIDATION_SPLIT: float = float(os.getenv("VALIDATION_SPLIT", "0.2"))
    EARLY_STOPPING_PATIENCE: int = int(os.getenv("EARLY_STOPPING_PATIENCE", "5"))
    LEARNING_RATE: float = float(os.getenv("LEARNING_RATE", "0.001"))
    INCREMENTAL_LR_FACTOR: float = float(os.getenv("INCREMENTAL_LR_FACTOR", "0.1"))
    TRAINING_TIMEOUT_SECONDS: float = float(os.getenv("TRAINING_TIMEOUT_SECONDS", "120"))
    RANDOM_SEED: int = int(os.getenv("RANDOM_SEED", "42"))

    # Retraining schedule
    RETRAIN_INTERVAL_DAYS: int = int(os.getenv("RETRAIN_INTERVAL_DAYS", "7"))

    # Fatigue thresholds (0-1 scale)
    FATIGUE_LOW_THRESHOLD: float = 0.3
    FATIGUE_MODERATE_THRESHOLD: float = 0.5
    FATIGUE_HIGH_THRESHOLD: float = 0.7
    FATIGUE_CRITICAL_THRESHOLD: float = 0.85

    # Application
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")


config = Config()
