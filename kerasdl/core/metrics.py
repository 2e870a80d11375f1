"""
Evaluation Metrics
==================

Metrics compare predictions with targets without contributing gradients.
Every metric first produces one value per row (``per_row``) and then
reduces over the batch:

  • ``Accuracy``               — mean over the batch (a rate in [0, 1])
  • ``MAE`` / ``MSE`` / ``RMSE`` / ``MLSE`` — mean over the feature axis,
    then **sum** over the batch axis

Because per-row values are exposed, ``Sequential.evaluate`` can combine
batches of different sizes into an exact row-weighted mean.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import torch
from torch import Tensor

from .losses import MLSE_EPSILON


# ────────────────────────────────────────────────────────────────────
# Base class
# ────────────────────────────────────────────────────────────────────
class Metric:
    """Abstract metric."""

    #: how ``__call__`` reduces per-row values: ``"mean"`` or ``"sum"``
    reduction: str = "sum"

    def per_row(self, y_pred: Tensor, y_true: Tensor) -> Tensor:
        raise NotImplementedError

    def reduce(self, values: Tensor) -> Tensor:
        """Collapse per-row values into the batch value."""
        if self.reduction == "mean":
            return torch.mean(values)
        return torch.sum(values)

    def __call__(self, y_pred: Tensor, y_true: Tensor) -> Tensor:
        return self.reduce(self.per_row(y_pred, y_true))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class Accuracy(Metric):
    r"""Rate of rows whose arg-max class matches.

    .. math::
        \text{Accuracy} = \frac{1}{m} \sum_{i=1}^{m}
            \mathbb{1}[\arg\max \hat{Y}_i = \arg\max Y_i]
    """

    reduction = "mean"

    def per_row(self, y_pred, y_true):
        predicted = torch.argmax(y_pred, dim=1)
        expected = torch.argmax(y_true, dim=1)
        return (predicted == expected).to(y_pred.dtype)


class MAE(Metric):
    """Mean absolute error per row."""

    def per_row(self, y_pred, y_true):
        return torch.mean(torch.abs(y_pred - y_true), dim=-1)


class MSE(Metric):
    """Mean squared error per row."""

    def per_row(self, y_pred, y_true):
        return torch.mean((y_pred - y_true) ** 2, dim=-1)


class RMSE(Metric):
    """Elementwise root of the squared error, averaged per row."""

    def per_row(self, y_pred, y_true):
        return torch.mean(torch.sqrt((y_pred - y_true) ** 2), dim=-1)


class MLSE(Metric):
    """Mean squared logarithmic error per row, with an epsilon floor."""

    def per_row(self, y_pred, y_true):
        first_log = torch.log(torch.clamp(y_pred, min=MLSE_EPSILON) + 1.0)
        second_log = torch.log(torch.clamp(y_true, min=MLSE_EPSILON) + 1.0)
        return torch.mean((first_log - second_log) ** 2, dim=-1)


# ────────────────────────────────────────────────────────────────────
# Enum view
# ────────────────────────────────────────────────────────────────────
class Metrics(Enum):
    """Named metrics accepted by ``Sequential.compile``."""

    ACCURACY = "accuracy"
    MAE = "mae"
    MSE = "mse"
    RMSE = "rmse"
    MLSE = "mlse"

    @staticmethod
    def convert(metric_type: "Metrics") -> Metric:
        """Instantiate the ``Metric`` behind ``metric_type``."""
        return _METRIC_CLASSES[Metrics(metric_type)]()

    @staticmethod
    def convert_back(metric: Metric) -> "Metrics":
        """Map a ``Metric`` instance back to its enum value.

        Raises
        ------
        ValueError
            For metric classes outside the supported set.
        """
        try:
            return _METRIC_TYPES[type(metric)]
        except KeyError:
            raise ValueError(f"{type(metric).__name__} is not a supported metric") from None


_METRIC_CLASSES: dict[Metrics, type[Metric]] = {
    Metrics.ACCURACY: Accuracy,
    Metrics.MAE: MAE,
    Metrics.MSE: MSE,
    Metrics.RMSE: RMSE,
    Metrics.MLSE: MLSE,
}

_METRIC_TYPES: dict[type[Metric], Metrics] = {cls: kind for kind, cls in _METRIC_CLASSES.items()}


# ────────────────────────────────────────────────────────────────────
# Evaluation result
# ────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class EvaluationResult:
    """Loss and metric values computed on a test dataset.

    Attributes
    ----------
    loss_value : float — row-weighted mean of the loss.
    metrics    : dict[Metrics, float] — row-weighted mean of each metric.
    """

    loss_value: float
    metrics: dict[Metrics, float] = field(default_factory=dict)
