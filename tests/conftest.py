"""Shared fixtures: toy datasets, a Keras LeNet configuration and its HDF5 weights."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import h5py
import numpy as np
import pytest
import torch

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from kerasdl.datasets import Dataset, one_hot_encode  # noqa: E402

CONV2D_KERNEL_FIRST = 0.06445057
CONV2D_BIAS_LAST = -0.25060207
CONV2D_1_KERNEL_FIRST = 0.027743129


@pytest.fixture(autouse=True)
def _seed():
    torch.manual_seed(0)
    np.random.seed(0)


# ────────────────────────────────────────────────────────────────────
# Datasets
# ────────────────────────────────────────────────────────────────────
@pytest.fixture
def blobs() -> Dataset:
    """Three well separated Gaussian blobs in 4-D, 90 rows."""
    rng = np.random.default_rng(0)
    centers = np.array([[3, 0, 0, 0], [0, 3, 0, 0], [0, 0, 3, 0]], dtype=np.float32)
    labels = np.repeat(np.arange(3), 30)
    x = centers[labels] + rng.normal(0.0, 0.3, size=(90, 4)).astype(np.float32)
    return Dataset(x, one_hot_encode(labels, 3)).shuffle(seed=0)


@pytest.fixture
def mnist_like() -> Dataset:
    """20 random 28x28x1 images with one-hot labels over 10 classes."""
    rng = np.random.default_rng(1)
    x = rng.random((20, 28, 28, 1), dtype=np.float32)
    return Dataset(x, one_hot_encode(rng.integers(0, 10, size=20), 10))


# ────────────────────────────────────────────────────────────────────
# Keras configuration
# ────────────────────────────────────────────────────────────────────
def initializer(class_name: str, **config) -> dict:
    return {"class_name": class_name, "config": {"seed": None, **config}}


def conv2d(name: str, filters: int, kernel_init: dict, bias_init: dict, **extra) -> dict:
    return {
        "class_name": "Conv2D",
        "config": {
            "name": name,
            "trainable": True,
            "dtype": "float32",
            "filters": filters,
            "kernel_size": [5, 5],
            "strides": [1, 1],
            "padding": "same",
            "data_format": "channels_last",
            "dilation_rate": [1, 1],
            "activation": "relu",
            "use_bias": True,
            "kernel_initializer": kernel_init,
            "bias_initializer": bias_init,
            **extra,
        },
    }


def max_pooling2d(name: str) -> dict:
    return {
        "class_name": "MaxPooling2D",
        "config": {"name": name, "trainable": True, "pool_size": [2, 2], "padding": "valid",
                   "strides": [2, 2], "data_format": "channels_last"},
    }


def dense(name: str, units: int, activation: str, kernel_init: dict, bias_init: dict) -> dict:
    return {
        "class_name": "Dense",
        "config": {
            "name": name,
            "trainable": True,
            "units": units,
            "activation": activation,
            "use_bias": True,
            "kernel_initializer": kernel_init,
            "bias_initializer": bias_init,
        },
    }


def lenet_document(last_bias_init: dict | None = None) -> dict:
    """Keras ``model.to_json()`` output of a small LeNet for 28x28x1 images."""
    last_bias_init = last_bias_init or initializer("TruncatedNormal", mean=0.0, stddev=0.05)
    layers = [
        conv2d("conv2d", 8, initializer("GlorotNormal"), initializer("GlorotUniform"),
               batch_input_shape=[None, 28, 28, 1]),
        max_pooling2d("max_pooling2d"),
        conv2d("conv2d_1", 16, initializer("HeNormal"), initializer("HeUniform")),
        max_pooling2d("max_pooling2d_1"),
        {"class_name": "Flatten", "config": {"name": "flatten", "trainable": True}},
        dense("dense", 64, "relu", initializer("LeCunNormal"), initializer("LeCunUniform")),
        dense("dense_1", 32, "relu",
              initializer("RandomNormal", mean=0.0, stddev=0.05),
              initializer("RandomUniform", minval=-0.05, maxval=0.05)),
        dense("dense_2", 10, "linear",
              initializer("TruncatedNormal", mean=0.0, stddev=0.05), last_bias_init),
    ]
    return {
        "class_name": "Sequential",
        "config": {"name": "sequential", "layers": layers},
        "keras_version": "2.3.0-tf",
        "backend": "tensorflow",
    }


@pytest.fixture
def lenet_config(tmp_path):
    path = tmp_path / "modelConfig.json"
    path.write_text(json.dumps(lenet_document()))
    return path


@pytest.fixture
def unsupported_config(tmp_path):
    """Same model, but the last Dense keeps the Keras default ``Zeros`` bias initializer."""
    path = tmp_path / "unsupportedInitializers.json"
    path.write_text(json.dumps(lenet_document(last_bias_init={"class_name": "Zeros", "config": {}})))
    return path


# ────────────────────────────────────────────────────────────────────
# HDF5 weights
# ────────────────────────────────────────────────────────────────────
LENET_WEIGHT_SHAPES = {
    "conv2d": [(5, 5, 1, 8), (8,)],
    "conv2d_1": [(5, 5, 8, 16), (16,)],
    "dense": [(7 * 7 * 16, 64), (64,)],
    "dense_1": [(64, 32), (32,)],
    "dense_2": [(32, 10), (10,)],
}


@pytest.fixture
def lenet_weights(tmp_path):
    """Weights laid out like Keras ``save_weights``: ``/<name>/<name>/kernel:0``."""
    rng = np.random.default_rng(2)
    path = tmp_path / "mnist_weights_only.h5"
    with h5py.File(path, "w") as f:
        for name, (kernel_shape, bias_shape) in LENET_WEIGHT_SHAPES.items():
            kernel = rng.normal(0.0, 0.05, size=kernel_shape).astype(np.float32)
            bias = rng.normal(0.0, 0.05, size=bias_shape).astype(np.float32)
            if name == "conv2d":
                kernel[0, 0, 0, 0] = CONV2D_KERNEL_FIRST
                bias[-1] = CONV2D_BIAS_LAST
            if name == "conv2d_1":
                kernel[0, 0, 0, 0] = CONV2D_1_KERNEL_FIRST
            f.create_dataset(f"{name}/{name}/kernel:0", data=kernel)
            f.create_dataset(f"{name}/{name}/bias:0", data=bias)
    return path
