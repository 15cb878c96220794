"""Database models for persisted fatigue models."""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text, LargeBinary
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class StoredFatigueModel(Base):
    """Serialized fatigue model (architecture + weights) for one user."""

    __tablename__ = "fatigue_models"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(50), unique=True, nullable=False, default="default")
    model_key = Column(String(255), nullable=False)  # versioned storage key
    version = Column(String(20), nullable=False)
    architecture = Column(Text, nullable=False)  # Keras model JSON
    weights = Column(LargeBinary, nullable=False)  # joblib payload
    is_trained = Column(Boolean, default=False)
    samples_trained = Column(Integer, default=0)
    incremental_updates = Column(Integer, default=0)
    last_full_training = Column(DateTime)
    last_incremental_update = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<StoredFatigueModel(user_id={self.user_id}, version={self.version}, trained={self.is_trained})>"
