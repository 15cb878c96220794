"""Persistent per-user model store."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .database import Database
from .models import StoredFatigueModel

logger = logging.getLogger(__name__)


@dataclass
class StoredModel:
    """Detached copy of a stored model row."""
    user_id: str
    model_key: str
    version: str
    architecture: str
    weights: bytes
    is_trained: bool = False
    samples_trained: int = 0
    incremental_updates: int = 0
    last_full_training: Optional[datetime] = None
    last_incremental_update: Optional[datetime] = None


class ModelStore:
    """Reads and writes one serialized model per user."""

    def __init__(self, database: Database):
        self.db = database
        self.db.create_tables()

    def is_durable(self) -> bool:
        return self.db.is_durable()

    def load(self, user_id: str) -> Optional[StoredModel]:
        with self.db.get_session() as session:
            row = session.query(StoredFatigueModel).filter_by(user_id=user_id).first()
            if row is None:
                return None
            return StoredModel(
                user_id=row.user_id,
                model_key=row.model_key,
                version=row.version,
                architecture=row.architecture,
                weights=row.weights,
                is_trained=bool(row.is_trained),
                samples_trained=row.samples_trained or 0,
                incremental_updates=row.incremental_updates or 0,
                last_full_training=row.last_full_training,
                last_incremental_update=row.last_incremental_update,
            )

    def save(self, record: StoredModel) -> None:
        """Insert or replace the user's model."""
        with self.db.get_session() as session:
            row = session.query(StoredFatigueModel).filter_by(user_id=record.user_id).first()
            if row is None:
                row = StoredFatigueModel(user_id=record.user_id)
                session.add(row)

            row.model_key = record.model_key
            row.version = record.version
            row.architecture = record.architecture
            row.weights = record.weights
            row.is_trained = record.is_trained
            row.samples_trained = record.samples_trained
            row.incremental_updates = record.incremental_updates
            row.last_full_training = record.last_full_training
            row.last_incremental_update = record.last_incremental_update

        logger.info(f"Saved fatigue model {record.model_key}")

    def delete(self, user_id: str) -> bool:
        with self.db.get_session() as session:
            deleted = session.query(StoredFatigueModel).filter_by(user_id=user_id).delete()
        if deleted:
            logger.info(f"Deleted fatigue model for user {user_id}")
        return bool(deleted)

    def exists(self, user_id: str, version: Optional[str] = None, trained_only: bool = False) -> bool:
        with self.db.get_session() as session:
            query = session.query(StoredFatigueModel).filter_by(user_id=user_id)
            if version is not None:
                query = query.filter_by(version=version)
            if trained_only:
                query = query.filter_by(is_trained=True)
            return session.query(query.exists()).scalar()

    def close(self) -> None:
        self.db.close()
