"""
Keras HDF5 weight loader.

Keras ``model.save_weights("model.h5")`` stores every weight under
``/<layer>/<layer>/<weight>:0``, e.g. ``/conv2d/conv2d/kernel:0`` and
``/conv2d/conv2d/bias:0``.  Kernels are already in the Keras layout
kerasdl layers use, so arrays are copied as they are (reshaped to the
slot shape when needed).
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, Sequence

import h5py
import numpy as np
from numpy.typing import NDArray

from ...core.layers import Layer
from ...network.sequential import ALREADY_INITIALIZED_MESSAGE

if TYPE_CHECKING:
    from ...network.sequential import Sequential

logger = logging.getLogger(__name__)

H5Source = str | Path | h5py.Group


def weight_path(layer_name: str, weight_name: str) -> str:
    """HDF5 path of one weight array, e.g. ``/dense/dense/kernel:0``."""
    return f"/{layer_name}/{layer_name}/{weight_name}:0"


@contextmanager
def _open(h5_file: H5Source) -> Iterator[h5py.Group]:
    if isinstance(h5_file, h5py.Group):
        yield h5_file
        return
    path = Path(h5_file)
    if not path.exists():
        raise FileNotFoundError(f"Weights file not found: {path}")
    with h5py.File(path, "r") as f:
        yield f


def read_layer_weights(h5: h5py.Group, layer: Layer) -> list[NDArray]:
    """Read every weight of ``layer`` (``kernel`` then ``bias``).

    Raises
    ------
    KeyError
        If one of the expected datasets is missing from the file.
    """
    weights = []
    for key in layer.params:
        path = weight_path(layer.name, key)
        if path not in h5:
            raise KeyError(f"Dataset {path} is not found in the weights file")
        weights.append(np.asarray(h5[path][()], dtype=np.float32))
    return weights


def _resolve_targets(model: "Sequential", layers: Sequence[Layer] | None) -> list[Layer]:
    if layers is None:
        return list(model.layers)
    for layer in layers:
        if model.get_layer(layer.name) is not layer:
            raise ValueError(f"Layer '{layer.name}' does not belong to the model")
    return list(layers)


def load_weights(model: "Sequential", h5_file: H5Source, layers: Sequence[Layer] | None = None) -> None:
    """Write-once weight assignment from a Keras HDF5 file.

    Every layer is first filled by its initializers; the selected layers
    (all of them by default) are then overwritten with the stored arrays.
    The file is read completely before anything is written, so a missing
    dataset leaves the model untouched.

    Raises
    ------
    RuntimeError
        If the model is not compiled, or its weights were already
        initialized or loaded.
    KeyError
        If a dataset expected for a selected layer is missing.
    """
    model._check_compiled()
    if model.is_model_initialized:
        raise RuntimeError(ALREADY_INITIALIZED_MESSAGE)

    targets = [layer for layer in _resolve_targets(model, layers) if layer.params]
    with _open(h5_file) as h5:
        loaded = [(layer, read_layer_weights(h5, layer)) for layer in targets]

    model.init()
    for layer, weights in loaded:
        layer.set_weights(weights)
        logger.debug("Loaded weights of layer '%s'", layer.name)
    logger.info("Loaded weights for %d layers", len(loaded))


def load_weights_for_frozen_layers(model: "Sequential", h5_file: H5Source) -> None:
    """Load stored weights into the non-trainable layers only."""
    frozen = [layer for layer in model.layers if not layer.trainable]
    load_weights(model, h5_file, frozen)
