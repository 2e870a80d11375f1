"""Network package: the Sequential model and its training history."""

from .history import BatchEvent, EpochEvent, History, TrainingHistory
from .sequential import Sequential

__all__ = ["BatchEvent", "EpochEvent", "History", "Sequential", "TrainingHistory"]
