"""Keras interoperability: JSON architecture import and HDF5 weight loading."""

from .model_config import load_model_configuration
from .weights import load_weights, load_weights_for_frozen_layers

__all__ = ["load_model_configuration", "load_weights", "load_weights_for_frozen_layers"]
