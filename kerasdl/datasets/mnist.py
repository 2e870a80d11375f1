"""
MNIST-style IDX archives
========================

Readers for the gzip-compressed IDX files distributed with MNIST and
Fashion-MNIST::

    train-images-idx3-ubyte.gz   magic 2051, (n, rows, cols) uint8
    train-labels-idx1-ubyte.gz   magic 2049, (n,) uint8

Images come back ``channels_last`` so they feed straight into
``Input(28, 28, 1)``.
"""

from __future__ import annotations

import gzip
import struct
from pathlib import Path

import numpy as np
from numpy.typing import NDArray

from .dataset import one_hot_encode

NUMBER_OF_CLASSES = 10
IMAGE_SIZE = 28
NUM_CHANNELS = 1

TRAIN_IMAGES_ARCHIVE = "train-images-idx3-ubyte.gz"
TRAIN_LABELS_ARCHIVE = "train-labels-idx1-ubyte.gz"
TEST_IMAGES_ARCHIVE = "t10k-images-idx3-ubyte.gz"
TEST_LABELS_ARCHIVE = "t10k-labels-idx1-ubyte.gz"

_IMAGES_MAGIC = 2051
_LABELS_MAGIC = 2049


def extract_images(path: str | Path) -> NDArray:
    """Read an IDX image archive.

    Returns
    -------
    images : ndarray, shape (n, rows, cols, 1), float32 in [0, 1]
    """
    with gzip.open(path, "rb") as f:
        magic, n, rows, cols = struct.unpack(">IIII", f.read(16))
        if magic != _IMAGES_MAGIC:
            raise ValueError(f"{path} is not an IDX image archive (magic {magic})")
        data = np.frombuffer(f.read(n * rows * cols), dtype=np.uint8)
    return data.reshape(n, rows, cols, NUM_CHANNELS).astype(np.float32) / 255.0


def extract_labels(path: str | Path, num_classes: int = NUMBER_OF_CLASSES) -> NDArray:
    """Read an IDX label archive and one-hot encode it.

    Returns
    -------
    labels : ndarray, shape (n, num_classes), float32
    """
    with gzip.open(path, "rb") as f:
        magic, n = struct.unpack(">II", f.read(8))
        if magic != _LABELS_MAGIC:
            raise ValueError(f"{path} is not an IDX label archive (magic {magic})")
        data = np.frombuffer(f.read(n), dtype=np.uint8)
    return one_hot_encode(data, num_classes)
