"""
kerasdl — a Keras-style Sequential API on top of PyTorch.

Quick start
-----------
>>> from kerasdl import Sequential, Input, Flatten, Dense, Adam, Losses, Metrics, Activations
>>> with Sequential(Input(28, 28, 1), Flatten(), Dense(10, activation=Activations.LINEAR)) as model:
...     model.compile(Adam(), Losses.SOFT_MAX_CROSS_ENTROPY_WITH_LOGITS, Metrics.ACCURACY)
...     model.fit(train, epochs=3, batch_size=100)
"""

from .core import *  # noqa: F401,F403
from .core import __all__ as _core_all
from .datasets import DataBatch, Dataset, one_hot_encode
from .network import BatchEvent, EpochEvent, History, Sequential, TrainingHistory

__version__ = "0.1.0"

__all__ = [
    *_core_all,
    "DataBatch", "Dataset", "one_hot_encode",
    "BatchEvent", "EpochEvent", "History", "Sequential", "TrainingHistory",
]
