"""
Activation Functions
====================

Activations are a closed set of element-wise (or row-wise) transforms
applied after a layer's linear part.  Each member of ``Activations``
carries its Keras name as value, so a Keras config string maps straight
onto a member::

    Activations("relu") is Activations.RELU

Mathematical conventions
------------------------
  Z : pre-activation   (shape: batch × ...)
  A : post-activation  (same shape as Z)

Gradients are computed by the tensor engine, so only the forward
transform is declared here.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable

import torch
import torch.nn.functional as F
from torch import Tensor


class Activations(str, Enum):
    """Supported activation functions, keyed by Keras name."""

    LINEAR = "linear"
    SIGMOID = "sigmoid"
    TANH = "tanh"
    RELU = "relu"
    RELU6 = "relu6"
    ELU = "elu"
    SELU = "selu"
    SOFTMAX = "softmax"
    LOG_SOFTMAX = "log_softmax"
    EXPONENTIAL = "exponential"
    SOFTPLUS = "softplus"
    SOFTSIGN = "softsign"
    HARD_SIGMOID = "hard_sigmoid"
    SWISH = "swish"

    def apply(self, Z: Tensor) -> Tensor:  # noqa: N803
        """Apply the activation to ``Z``."""
        return _ACTIVATION_FUNCTIONS[self](Z)

    @property
    def is_linear(self) -> bool:
        return self is Activations.LINEAR


# ────────────────────────────────────────────────────────────────────
# Dispatch table
# ────────────────────────────────────────────────────────────────────
def _hard_sigmoid(Z: Tensor) -> Tensor:
    r"""Keras hard sigmoid: :math:`\mathrm{clip}(0.2 Z + 0.5, 0, 1)`."""
    return torch.clamp(0.2 * Z + 0.5, 0.0, 1.0)


_ACTIVATION_FUNCTIONS: dict[Activations, Callable[[Tensor], Tensor]] = {
    Activations.LINEAR: lambda Z: Z,
    Activations.SIGMOID: torch.sigmoid,
    Activations.TANH: torch.tanh,
    Activations.RELU: F.relu,
    Activations.RELU6: F.relu6,
    Activations.ELU: F.elu,
    Activations.SELU: F.selu,
    # softmax family works on the last (feature / channel) axis
    Activations.SOFTMAX: lambda Z: F.softmax(Z, dim=-1),
    Activations.LOG_SOFTMAX: lambda Z: F.log_softmax(Z, dim=-1),
    Activations.EXPONENTIAL: torch.exp,
    Activations.SOFTPLUS: F.softplus,
    Activations.SOFTSIGN: F.softsign,
    Activations.HARD_SIGMOID: _hard_sigmoid,
    Activations.SWISH: F.silu,
}
