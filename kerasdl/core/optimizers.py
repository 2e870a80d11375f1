"""
Optimizers — Named Configurations for the Engine's Update Rules
===============================================================

An optimizer here is a *configuration*: learning rate, momentum / beta
terms and a gradient-clipping policy.  ``build(params)`` turns it into
the matching ``torch.optim`` optimizer, which performs the actual update.

Notation
--------
  θ   : parameter (kernel or bias)
  g   : gradient ∂L/∂θ
  η   : learning rate
  β₁  : exponential decay rate for first moment  (Adam)
  β₂  : exponential decay rate for second moment (Adam)
  ε   : small constant to prevent division by zero
"""

from __future__ import annotations

from typing import Any, Iterable

import torch
from torch import nn


# ────────────────────────────────────────────────────────────────────
# Gradient clipping
# ────────────────────────────────────────────────────────────────────
class ClipGradientAction:
    """Policy applied to gradients between backward and the update step."""

    def clip(self, params: Iterable[nn.Parameter]) -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        args = ", ".join(f"{k}={v}" for k, v in vars(self).items())
        return f"{self.__class__.__name__}({args})"


class NoClipGradient(ClipGradientAction):
    """Leave gradients untouched."""

    def clip(self, params):
        return None


class ClipGradientByValue(ClipGradientAction):
    r"""Clamp every gradient element to :math:`[-c, c]`."""

    def __init__(self, clip_value: float) -> None:
        if clip_value <= 0:
            raise ValueError(f"clip_value must be positive, got {clip_value}")
        self.clip_value = clip_value

    def clip(self, params):
        nn.utils.clip_grad_value_(list(params), self.clip_value)


class ClipGradientByNorm(ClipGradientAction):
    r"""Rescale gradients so their global L2 norm is at most :math:`c`."""

    def __init__(self, clip_norm: float) -> None:
        if clip_norm <= 0:
            raise ValueError(f"clip_norm must be positive, got {clip_norm}")
        self.clip_norm = clip_norm

    def clip(self, params):
        nn.utils.clip_grad_norm_(list(params), self.clip_norm)


# ────────────────────────────────────────────────────────────────────
# Base class
# ────────────────────────────────────────────────────────────────────
class Optimizer:
    """Abstract optimizer configuration.

    Parameters
    ----------
    learning_rate : float — η.
    clip_gradient : ClipGradientAction — default: no clipping.
    """

    def __init__(
        self,
        learning_rate: float = 0.01,
        clip_gradient: ClipGradientAction | None = None,
    ) -> None:
        if learning_rate <= 0:
            raise ValueError(f"learning_rate must be positive, got {learning_rate}")
        self.learning_rate = learning_rate
        self.clip_gradient = clip_gradient or NoClipGradient()

    def build(self, params: Iterable[nn.Parameter]) -> torch.optim.Optimizer:
        """Create the engine optimizer over ``params``."""
        raise NotImplementedError

    def __repr__(self) -> str:
        args = ", ".join(f"{k}={v}" for k, v in vars(self).items())
        return f"{self.__class__.__name__}({args})"


class SGD(Optimizer):
    r"""Plain stochastic gradient descent: :math:`\theta \leftarrow \theta - \eta g`."""

    def __init__(self, learning_rate: float = 0.2, clip_gradient: ClipGradientAction | None = None) -> None:
        super().__init__(learning_rate, clip_gradient)

    def build(self, params):
        return torch.optim.SGD(params, lr=self.learning_rate)


class Momentum(Optimizer):
    r"""SGD with classical (or Nesterov) momentum.

    .. math::
        v &\leftarrow \mu v + g \\
        \theta &\leftarrow \theta - \eta v
    """

    def __init__(
        self,
        learning_rate: float = 0.001,
        momentum: float = 0.99,
        use_nesterov: bool = True,
        clip_gradient: ClipGradientAction | None = None,
    ) -> None:
        super().__init__(learning_rate, clip_gradient)
        self.momentum = momentum
        self.use_nesterov = use_nesterov

    def build(self, params):
        return torch.optim.SGD(
            params, lr=self.learning_rate, momentum=self.momentum, nesterov=self.use_nesterov
        )


class Adam(Optimizer):
    r"""Adam optimizer (Adaptive Moment Estimation).

    .. math::
        v  &\leftarrow \beta_1 v + (1 - \beta_1) g \\
        s  &\leftarrow \beta_2 s + (1 - \beta_2) g^2 \\
        \theta &\leftarrow \theta
          - \eta \frac{\hat{v}}{\sqrt{\hat{s}} + \varepsilon}

    Reference: Kingma & Ba, 2015.
    """

    def __init__(
        self,
        learning_rate: float = 0.001,
        beta1: float = 0.9,
        beta2: float = 0.999,
        epsilon: float = 1e-07,
        use_amsgrad: bool = False,
        clip_gradient: ClipGradientAction | None = None,
    ) -> None:
        super().__init__(learning_rate, clip_gradient)
        self.beta1 = beta1
        self.beta2 = beta2
        self.epsilon = epsilon
        self.use_amsgrad = use_amsgrad

    def build(self, params):
        return torch.optim.Adam(
            params,
            lr=self.learning_rate,
            betas=(self.beta1, self.beta2),
            eps=self.epsilon,
            amsgrad=self.use_amsgrad,
        )


class AdaMax(Optimizer):
    """Adam variant based on the infinity norm."""

    def __init__(
        self,
        learning_rate: float = 0.001,
        beta1: float = 0.9,
        beta2: float = 0.999,
        epsilon: float = 1e-07,
        clip_gradient: ClipGradientAction | None = None,
    ) -> None:
        super().__init__(learning_rate, clip_gradient)
        self.beta1 = beta1
        self.beta2 = beta2
        self.epsilon = epsilon

    def build(self, params):
        return torch.optim.Adamax(
            params, lr=self.learning_rate, betas=(self.beta1, self.beta2), eps=self.epsilon
        )


class AdaGrad(Optimizer):
    """Per-parameter learning rates scaled by accumulated squared gradients."""

    def __init__(
        self,
        learning_rate: float = 0.1,
        initial_accumulator_value: float = 0.01,
        clip_gradient: ClipGradientAction | None = None,
    ) -> None:
        super().__init__(learning_rate, clip_gradient)
        self.initial_accumulator_value = initial_accumulator_value

    def build(self, params):
        return torch.optim.Adagrad(
            params,
            lr=self.learning_rate,
            initial_accumulator_value=self.initial_accumulator_value,
        )


class AdaDelta(Optimizer):
    """AdaGrad extension with a decaying window of squared gradients."""

    def __init__(
        self,
        learning_rate: float = 0.1,
        rho: float = 0.95,
        epsilon: float = 1e-8,
        clip_gradient: ClipGradientAction | None = None,
    ) -> None:
        super().__init__(learning_rate, clip_gradient)
        self.rho = rho
        self.epsilon = epsilon

    def build(self, params):
        return torch.optim.Adadelta(params, lr=self.learning_rate, rho=self.rho, eps=self.epsilon)


class RMSProp(Optimizer):
    """Divide the gradient by a running average of its recent magnitude."""

    def __init__(
        self,
        learning_rate: float = 0.001,
        decay: float = 0.9,
        momentum: float = 0.0,
        epsilon: float = 1e-10,
        centered: bool = False,
        clip_gradient: ClipGradientAction | None = None,
    ) -> None:
        super().__init__(learning_rate, clip_gradient)
        self.decay = decay
        self.momentum = momentum
        self.epsilon = epsilon
        self.centered = centered

    def build(self, params):
        return torch.optim.RMSprop(
            params,
            lr=self.learning_rate,
            alpha=self.decay,
            eps=self.epsilon,
            momentum=self.momentum,
            centered=self.centered,
        )


# ────────────────────────────────────────────────────────────────────
# Config-driven construction
# ────────────────────────────────────────────────────────────────────
_OPTIMIZERS: dict[str, type[Optimizer]] = {
    "sgd": SGD,
    "momentum": Momentum,
    "adam": Adam,
    "adamax": AdaMax,
    "adagrad": AdaGrad,
    "adadelta": AdaDelta,
    "rmsprop": RMSProp,
}


def _build_clip_gradient(clip_config: dict[str, Any] | None) -> ClipGradientAction:
    if not clip_config:
        return NoClipGradient()
    clip_type = clip_config.get("type", "none").lower()
    if clip_type == "none":
        return NoClipGradient()
    if clip_type == "value":
        return ClipGradientByValue(clip_config["clip_value"])
    if clip_type == "norm":
        return ClipGradientByNorm(clip_config["clip_norm"])
    raise ValueError(f"Unknown gradient clipping type: {clip_type!r}")


def build_optimizer(config: dict[str, Any]) -> Optimizer:
    """Build an optimizer from a config section.

    Example
    -------
    >>> build_optimizer({"type": "adam", "learning_rate": 1e-3,
    ...                  "clip_gradient": {"type": "norm", "clip_norm": 5.0}})
    """
    options = dict(config)
    opt_type = str(options.pop("type", "adam")).lower()
    if opt_type not in _OPTIMIZERS:
        raise ValueError(
            f"Unknown optimizer type {opt_type!r}, expected one of {sorted(_OPTIMIZERS)}"
        )
    clip_gradient = _build_clip_gradient(options.pop("clip_gradient", None))
    return _OPTIMIZERS[opt_type](clip_gradient=clip_gradient, **options)
