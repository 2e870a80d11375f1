"""
Datasets
========

``Dataset`` owns a feature array and a label array with the same number
of rows and hands them out as fixed-size ``DataBatch`` slices.

Layout
------
  x : ndarray, shape (n_samples, *sample_shape) — float32
  y : ndarray, shape (n_samples, n_classes)     — float32 (one-hot for classification)
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator

import numpy as np
from numpy.typing import NDArray


@dataclass(frozen=True)
class DataBatch:
    """One slice of a dataset.

    Attributes
    ----------
    x    : ndarray — observations, ``size`` rows.
    y    : ndarray — labels, ``size`` rows.
    size : int — number of rows in the batch (the last batch may be short).
    """

    x: NDArray
    y: NDArray
    size: int

    def shape(self, element_size: int) -> tuple[int, int]:
        return self.size, element_size


class Dataset:
    """In-memory dataset of (x, y) rows.

    Parameters
    ----------
    x : ndarray, shape (n_samples, ...)
    y : ndarray, shape (n_samples, ...)
    """

    def __init__(self, x: NDArray, y: NDArray) -> None:
        x = np.asarray(x, dtype=np.float32)
        y = np.asarray(y, dtype=np.float32)
        if x.shape[0] != y.shape[0]:
            raise ValueError(
                f"x and y must have the same number of rows, got {x.shape[0]} and {y.shape[0]}"
            )
        if y.ndim == 1:
            y = y.reshape(-1, 1)
        self.x = x
        self.y = y

    # ── construction ─────────────────────────────────────────────
    @classmethod
    def create(
        cls,
        features_path: str | Path,
        labels_path: str | Path,
        num_classes: int,
        features_extractor: Callable[[str | Path], NDArray],
        labels_extractor: Callable[[str | Path, int], NDArray],
    ) -> "Dataset":
        """Build a dataset from two archives and their extractor functions."""
        return cls(features_extractor(features_path), labels_extractor(labels_path, num_classes))

    @classmethod
    def create_train_and_test_datasets(
        cls,
        train_features_path: str | Path,
        train_labels_path: str | Path,
        test_features_path: str | Path,
        test_labels_path: str | Path,
        num_classes: int,
        features_extractor: Callable[[str | Path], NDArray],
        labels_extractor: Callable[[str | Path, int], NDArray],
    ) -> tuple["Dataset", "Dataset"]:
        """Build the train and test datasets of e.g. MNIST in one call."""
        train = cls.create(
            train_features_path, train_labels_path, num_classes, features_extractor, labels_extractor
        )
        test = cls.create(
            test_features_path, test_labels_path, num_classes, features_extractor, labels_extractor
        )
        return train, test

    # ── views ────────────────────────────────────────────────────
    def split(self, train_ratio: float) -> tuple["Dataset", "Dataset"]:
        """Split into (train, test) keeping row order.

        Parameters
        ----------
        train_ratio : float ∈ (0, 1) — fraction of rows in the first part.
        """
        if not 0.0 < train_ratio < 1.0:
            raise ValueError(f"train_ratio must be in (0, 1), got {train_ratio}")
        split = int(len(self) * train_ratio)
        return (
            Dataset(self.x[:split], self.y[:split]),
            Dataset(self.x[split:], self.y[split:]),
        )

    def shuffle(self, seed: int | None = None) -> "Dataset":
        """Return a copy with rows permuted (x and y in unison)."""
        idx = np.random.default_rng(seed).permutation(len(self))
        return Dataset(self.x[idx], self.y[idx])

    def batch_iterator(self, batch_size: int) -> Iterator[DataBatch]:
        """Yield consecutive batches; the final one holds the remaining rows."""
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        n = len(self)
        for start in range(0, n, batch_size):
            end = min(start + batch_size, n)
            yield DataBatch(self.x[start:end], self.y[start:end], end - start)

    def num_batches(self, batch_size: int) -> int:
        return int(np.ceil(len(self) / batch_size))

    @property
    def sample_shape(self) -> tuple[int, ...]:
        return tuple(self.x.shape[1:])

    def __len__(self) -> int:
        return int(self.x.shape[0])

    def __repr__(self) -> str:
        return f"Dataset(rows={len(self)}, x={self.sample_shape}, y={tuple(self.y.shape[1:])})"


# ────────────────────────────────────────────────────────────────────
# One-hot encoding
# ────────────────────────────────────────────────────────────────────
def one_hot_encode(labels: NDArray, n_classes: int | None = None) -> NDArray:
    """Convert integer labels to one-hot vectors.

    Parameters
    ----------
    labels    : ndarray, shape (n_samples,) — integer class labels.
    n_classes : int, optional — number of classes (auto-detected if None).

    Returns
    -------
    one_hot : ndarray, shape (n_samples, n_classes), float32
    """
    labels = np.asarray(labels).astype(int).ravel()
    if n_classes is None:
        if labels.size == 0:
            raise ValueError("Cannot infer the number of classes from empty labels, pass n_classes")
        n_classes = int(labels.max()) + 1

    one_hot: NDArray = np.zeros((labels.shape[0], n_classes), dtype=np.float32)
    one_hot[np.arange(labels.shape[0]), labels] = 1.0
    return one_hot
