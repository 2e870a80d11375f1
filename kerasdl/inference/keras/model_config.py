"""
Keras JSON configuration importer
=================================

Turns the architecture JSON produced by ``model.to_json()`` in Keras into
a ``Sequential`` model made of kerasdl layers.

The mapping is a closed table: any layer class, initializer or
activation without a kerasdl counterpart fails with
``ValueError("<Name> is not supported yet!")``.

Example document (abridged)::

    {"class_name": "Sequential",
     "config": {"name": "sequential",
                "layers": [{"class_name": "Conv2D",
                            "config": {"name": "conv2d",
                                       "batch_input_shape": [null, 28, 28, 1],
                                       "filters": 32, ...}},
                           ...]}}
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable

import torch

from ...core.activations import Activations
from ...core.initializers import (
    GlorotNormal,
    GlorotUniform,
    HeNormal,
    HeUniform,
    Initializer,
    LeCunNormal,
    LeCunUniform,
    RandomNormal,
    RandomUniform,
    TruncatedNormal,
)
from ...core.layers import AvgPool2D, Conv2D, ConvPadding, Dense, Flatten, Input, Layer, MaxPool2D
from ...network.sequential import Sequential

logger = logging.getLogger(__name__)

Config = dict[str, Any]


def _not_supported(name: str) -> ValueError:
    return ValueError(f"{name} is not supported yet!")


# ────────────────────────────────────────────────────────────────────
# Initializers
# ────────────────────────────────────────────────────────────────────
def _variance_scaling(cls: type[Initializer]) -> Callable[[Config], Initializer]:
    return lambda cfg: cls(seed=cfg.get("seed"))


_INITIALIZERS: dict[str, Callable[[Config], Initializer]] = {
    "GlorotNormal": _variance_scaling(GlorotNormal),
    "GlorotUniform": _variance_scaling(GlorotUniform),
    "HeNormal": _variance_scaling(HeNormal),
    "HeUniform": _variance_scaling(HeUniform),
    "LeCunNormal": _variance_scaling(LeCunNormal),
    "LeCunUniform": _variance_scaling(LeCunUniform),
    "RandomNormal": lambda cfg: RandomNormal(
        mean=cfg.get("mean", 0.0), stddev=cfg.get("stddev", 0.05), seed=cfg.get("seed")
    ),
    "RandomUniform": lambda cfg: RandomUniform(
        minval=cfg.get("minval", -0.05), maxval=cfg.get("maxval", 0.05), seed=cfg.get("seed")
    ),
    "TruncatedNormal": lambda cfg: TruncatedNormal(
        mean=cfg.get("mean", 0.0), stddev=cfg.get("stddev", 0.05), seed=cfg.get("seed")
    ),
}


def convert_initializer(spec: Config | str) -> Initializer:
    """Map a serialized Keras initializer onto a kerasdl ``Initializer``."""
    if isinstance(spec, str):
        class_name, cfg = spec, {}
    else:
        class_name, cfg = spec["class_name"], spec.get("config") or {}
    factory = _INITIALIZERS.get(class_name)
    if factory is None:
        raise _not_supported(class_name)
    return factory(cfg)


def convert_activation(name: str | None) -> Activations:
    if name is None:
        return Activations.LINEAR
    try:
        return Activations(name)
    except ValueError:
        raise _not_supported(name) from None


def convert_padding(name: str) -> ConvPadding:
    try:
        return ConvPadding(name.lower())
    except ValueError:
        raise _not_supported(name) from None


# ────────────────────────────────────────────────────────────────────
# Layers
# ────────────────────────────────────────────────────────────────────
def _conv2d(cfg: Config) -> Conv2D:
    use_bias = cfg.get("use_bias", True)
    return Conv2D(
        filters=cfg["filters"],
        kernel_size=cfg["kernel_size"],
        strides=cfg.get("strides", (1, 1)),
        dilations=cfg.get("dilation_rate", (1, 1)),
        activation=convert_activation(cfg.get("activation")),
        kernel_initializer=convert_initializer(cfg.get("kernel_initializer", "GlorotUniform")),
        bias_initializer=convert_initializer(cfg.get("bias_initializer", "Zeros")) if use_bias else None,
        padding=convert_padding(cfg.get("padding", "valid")),
        use_bias=use_bias,
        name=cfg.get("name", ""),
    )


def _dense(cfg: Config) -> Dense:
    use_bias = cfg.get("use_bias", True)
    return Dense(
        units=cfg["units"],
        activation=convert_activation(cfg.get("activation")),
        kernel_initializer=convert_initializer(cfg.get("kernel_initializer", "GlorotUniform")),
        bias_initializer=convert_initializer(cfg.get("bias_initializer", "Zeros")) if use_bias else None,
        use_bias=use_bias,
        name=cfg.get("name", ""),
    )


def _pooling(cls: type[MaxPool2D] | type[AvgPool2D]) -> Callable[[Config], Layer]:
    def build(cfg: Config) -> Layer:
        pool_size = cfg.get("pool_size", (2, 2))
        return cls(
            pool_size=pool_size,
            strides=cfg.get("strides") or pool_size,
            padding=convert_padding(cfg.get("padding", "valid")),
            name=cfg.get("name", ""),
        )

    return build


_LAYERS: dict[str, Callable[[Config], Layer]] = {
    "Conv2D": _conv2d,
    "Dense": _dense,
    "MaxPooling2D": _pooling(MaxPool2D),
    "AveragePooling2D": _pooling(AvgPool2D),
    "Flatten": lambda cfg: Flatten(name=cfg.get("name", "")),
}


def _input_dims(cfg: Config) -> list[int] | None:
    shape = cfg.get("batch_input_shape") or cfg.get("batch_shape")
    if shape is None:
        return None
    return [int(d) for d in shape[1:]]


def convert_layer(spec: Config) -> Layer:
    """Map one serialized Keras layer onto a kerasdl ``Layer``."""
    class_name = spec["class_name"]
    factory = _LAYERS.get(class_name)
    if factory is None:
        raise _not_supported(class_name)
    cfg = spec.get("config") or {}
    layer = factory(cfg)
    layer.trainable = cfg.get("trainable", True)
    return layer


# ────────────────────────────────────────────────────────────────────
# Model
# ────────────────────────────────────────────────────────────────────
def _read_document(config: str | Path | Config) -> Config:
    if isinstance(config, dict):
        return config
    path = Path(config)
    if not path.exists():
        raise FileNotFoundError(f"Model configuration not found: {path}")
    with open(path, "r") as f:
        return json.load(f)


def _layer_specs(document: Config) -> list[Config]:
    body = document.get("config", document)
    # Keras < 2.2.3 stores the layer list directly under "config"
    if isinstance(body, list):
        return body
    return body["layers"]


def load_model_configuration(
    config: str | Path | Config, device: str | torch.device | None = None
) -> Sequential:
    """Build an (uncompiled) ``Sequential`` from a Keras JSON configuration.

    Parameters
    ----------
    config : path to the JSON file, or the already-parsed document.
    device : forwarded to ``Sequential``.

    Raises
    ------
    ValueError
        If the document uses a layer, initializer or activation kerasdl
        does not support, or declares no input shape.
    FileNotFoundError
        If ``config`` is a path that does not exist.
    """
    document = _read_document(config)
    if document.get("class_name", "Sequential") != "Sequential":
        raise _not_supported(document["class_name"])

    input_layer: Input | None = None
    layers: list[Layer] = []
    for spec in _layer_specs(document):
        cfg = spec.get("config") or {}
        if spec["class_name"] == "InputLayer":
            dims = _input_dims(cfg)
            if dims is None:
                raise ValueError("InputLayer without an input shape")
            input_layer = Input(*dims, name=cfg.get("name", ""))
            continue
        if input_layer is None and not layers:
            dims = _input_dims(cfg)
            if dims is not None:
                input_layer = Input(*dims)
        layers.append(convert_layer(spec))

    if input_layer is None:
        raise ValueError("The model configuration declares no input shape")

    logger.info("Imported Keras configuration with %d layers", len(layers) + 1)
    return Sequential(input_layer, *layers, device=device)
