"""
Loss Functions
==============

Each loss maps (predictions, targets) to a scalar tensor averaged over
the batch.  Gradients flow through the tensor engine's autograd, so a
loss only states its forward formula.

Notation
--------
  Ŷ (y_pred) : model outputs  — shape (batch, n_outputs)
  Y (y_true) : ground truth   — same shape as Ŷ (one-hot for classification)
  m          : batch size
  ε          : small constant for numerical stability
"""

from __future__ import annotations

from enum import Enum

import torch
import torch.nn.functional as F
from torch import Tensor

MLSE_EPSILON = 1e-5


# ────────────────────────────────────────────────────────────────────
# Base class
# ────────────────────────────────────────────────────────────────────
class Loss:
    """Abstract loss function."""

    def __call__(self, y_pred: Tensor, y_true: Tensor) -> Tensor:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class SoftmaxCrossEntropyWithLogits(Loss):
    r"""Categorical cross-entropy computed on raw logits.

    .. math::
        L = -\frac{1}{m} \sum_{i=1}^{m} \sum_{k=1}^{K}
            Y_{ik} \ln \operatorname{softmax}(\hat{Y}_i)_k

    The last layer should therefore use a *linear* activation.
    """

    def __call__(self, y_pred: Tensor, y_true: Tensor) -> Tensor:
        return torch.mean(torch.sum(-y_true * F.log_softmax(y_pred, dim=-1), dim=-1))


class MAE(Loss):
    r""":math:`L = \frac{1}{m} \sum_i \operatorname{mean}_k |\hat{Y}_{ik} - Y_{ik}|`."""

    def __call__(self, y_pred: Tensor, y_true: Tensor) -> Tensor:
        return torch.mean(torch.abs(y_pred - y_true))


class MSE(Loss):
    r""":math:`L = \frac{1}{m} \sum_i \operatorname{mean}_k (\hat{Y}_{ik} - Y_{ik})^2`."""

    def __call__(self, y_pred: Tensor, y_true: Tensor) -> Tensor:
        return torch.mean((y_pred - y_true) ** 2)


class RMSE(Loss):
    r""":math:`L = \sqrt{\operatorname{MSE}(\hat{Y}, Y)}`."""

    def __call__(self, y_pred: Tensor, y_true: Tensor) -> Tensor:
        return torch.sqrt(torch.mean((y_pred - y_true) ** 2))


class MLSE(Loss):
    r"""Mean squared logarithmic error.

    .. math::
        L = \operatorname{mean}\bigl(
              \ln(\max(\hat{Y}, \varepsilon) + 1) - \ln(\max(Y, \varepsilon) + 1)
            \bigr)^2

    Values are clamped to :math:`\varepsilon` before the log so negative
    outputs never produce NaN.
    """

    def __call__(self, y_pred: Tensor, y_true: Tensor) -> Tensor:
        first_log = torch.log(torch.clamp(y_pred, min=MLSE_EPSILON) + 1.0)
        second_log = torch.log(torch.clamp(y_true, min=MLSE_EPSILON) + 1.0)
        return torch.mean((first_log - second_log) ** 2)


# ────────────────────────────────────────────────────────────────────
# Enum view
# ────────────────────────────────────────────────────────────────────
class Losses(Enum):
    """Named losses accepted by ``Sequential.compile``."""

    SOFT_MAX_CROSS_ENTROPY_WITH_LOGITS = "soft_max_cross_entropy_with_logits"
    MAE = "mae"
    MSE = "mse"
    RMSE = "rmse"
    MLSE = "mlse"

    @staticmethod
    def convert(loss_type: "Losses") -> Loss:
        """Instantiate the ``Loss`` behind ``loss_type``."""
        return _LOSS_CLASSES[Losses(loss_type)]()


_LOSS_CLASSES: dict[Losses, type[Loss]] = {
    Losses.SOFT_MAX_CROSS_ENTROPY_WITH_LOGITS: SoftmaxCrossEntropyWithLogits,
    Losses.MAE: MAE,
    Losses.MSE: MSE,
    Losses.RMSE: RMSE,
    Losses.MLSE: MLSE,
}
