"""Local model store for the fatigue forecaster."""

from .database import Database
from .models import StoredFatigueModel
from .store import ModelStore, StoredModel

__all__ = ["Database", "StoredFatigueModel", "ModelStore", "StoredModel"]
