"""
Weight Initializers
===================

Proper initialization is *critical* for training deep networks.
All initializers follow the pattern:

    W = initializer.initialize(fan_in, fan_out, shape) → Tensor, shape ``shape``

where ``fan_in`` = number of input units and ``fan_out`` = number of output
units feeding / leaving one neuron of the layer.

Terminology
-----------
  fan_in  (n_in)  : input connections per unit  (Dense: n_in, Conv2D: kh·kw·c_in)
  fan_out (n_out) : output connections per unit (Dense: n_out, Conv2D: kh·kw·c_out)
  seed            : optional integer; seeded initializers are reproducible

The Glorot / He / LeCun family is expressed through ``VarianceScaling``,
matching the Keras definitions so that models imported from Keras get
statistically identical starting weights.
"""

from __future__ import annotations

import math
from typing import Sequence

import torch
from torch import Tensor

# stddev of a unit normal truncated to [-2, 2]
_TRUNCATION_CORRECTION = 0.87962566103423978


def compute_fans(shape: Sequence[int]) -> tuple[int, int]:
    """Derive ``(fan_in, fan_out)`` from a Keras-layout weight shape.

    Parameters
    ----------
    shape : sequence of int
        ``(n_in, n_out)`` for Dense kernels,
        ``(kh, kw, c_in, c_out)`` for Conv2D kernels,
        ``(n,)`` for biases.
    """
    if len(shape) < 1:
        return 1, 1
    if len(shape) == 1:
        return int(shape[0]), int(shape[0])
    if len(shape) == 2:
        return int(shape[0]), int(shape[1])
    receptive_field = math.prod(shape[:-2])
    return int(shape[-2] * receptive_field), int(shape[-1] * receptive_field)


# ────────────────────────────────────────────────────────────────────
# Base class
# ────────────────────────────────────────────────────────────────────
class Initializer:
    """Abstract initializer."""

    def __init__(self, seed: int | None = None) -> None:
        self.seed = seed

    def initialize(
        self,
        fan_in: int,
        fan_out: int,
        shape: Sequence[int],
        name: str = "",
    ) -> Tensor:
        raise NotImplementedError

    def _generator(self) -> torch.Generator | None:
        """Fresh generator per call so a seeded initializer is repeatable."""
        if self.seed is None:
            return None
        return torch.Generator().manual_seed(self.seed)

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other) and vars(self) == vars(other)

    def __hash__(self) -> int:
        return hash(type(self))

    def __repr__(self) -> str:
        args = ", ".join(f"{k}={v}" for k, v in vars(self).items())
        return f"{self.__class__.__name__}({args})"


# ────────────────────────────────────────────────────────────────────
# Constant initializers
# ────────────────────────────────────────────────────────────────────
class Constant(Initializer):
    """Fill the tensor with a constant ``value``."""

    def __init__(self, value: float) -> None:
        super().__init__()
        self.value = float(value)

    def initialize(self, fan_in, fan_out, shape, name=""):
        return torch.full(tuple(shape), self.value, dtype=torch.float32)


class Zeros(Constant):
    """All-zeros initialization (typically used for biases)."""

    def __init__(self) -> None:
        super().__init__(0.0)


class Ones(Constant):
    """All-ones initialization."""

    def __init__(self) -> None:
        super().__init__(1.0)


# ────────────────────────────────────────────────────────────────────
# Random initializers
# ────────────────────────────────────────────────────────────────────
class RandomNormal(Initializer):
    r""":math:`W \sim \mathcal{N}(\mu, \sigma)`."""

    def __init__(self, mean: float = 0.0, stddev: float = 0.05, seed: int | None = None) -> None:
        super().__init__(seed)
        self.mean = mean
        self.stddev = stddev

    def initialize(self, fan_in, fan_out, shape, name=""):
        W = torch.empty(tuple(shape), dtype=torch.float32)
        return W.normal_(self.mean, self.stddev, generator=self._generator())


class RandomUniform(Initializer):
    r""":math:`W \sim \mathcal{U}[\text{minval}, \text{maxval}]`."""

    def __init__(self, minval: float = -0.05, maxval: float = 0.05, seed: int | None = None) -> None:
        super().__init__(seed)
        self.minval = minval
        self.maxval = maxval

    def initialize(self, fan_in, fan_out, shape, name=""):
        W = torch.empty(tuple(shape), dtype=torch.float32)
        return W.uniform_(self.minval, self.maxval, generator=self._generator())


class TruncatedNormal(Initializer):
    r"""Normal distribution truncated to :math:`[\mu - 2\sigma, \mu + 2\sigma]`."""

    def __init__(self, mean: float = 0.0, stddev: float = 0.05, seed: int | None = None) -> None:
        super().__init__(seed)
        self.mean = mean
        self.stddev = stddev

    def initialize(self, fan_in, fan_out, shape, name=""):
        return _truncated_normal(shape, self.mean, self.stddev, self._generator())


def _truncated_normal(
    shape: Sequence[int],
    mean: float,
    stddev: float,
    generator: torch.Generator | None,
) -> Tensor:
    W = torch.empty(tuple(shape), dtype=torch.float32)
    return torch.nn.init.trunc_normal_(
        W,
        mean=mean,
        std=stddev,
        a=mean - 2.0 * stddev,
        b=mean + 2.0 * stddev,
        generator=generator,
    )


# ────────────────────────────────────────────────────────────────────
# Variance scaling family
# ────────────────────────────────────────────────────────────────────
class VarianceScaling(Initializer):
    r"""Scale the weight variance by the layer's fan.

    .. math::
        n = \begin{cases}
              n_{in}                  & \text{mode = fan\_in} \\
              n_{out}                 & \text{mode = fan\_out} \\
              (n_{in} + n_{out}) / 2  & \text{mode = fan\_avg}
            \end{cases}

    * ``truncated_normal`` : :math:`\sigma = \sqrt{s / n} / 0.8796`,
      truncated at :math:`\pm 2\sigma`
    * ``untruncated_normal`` : :math:`\sigma = \sqrt{s / n}`
    * ``uniform`` : :math:`W \sim \mathcal{U}[-\sqrt{3 s / n}, \sqrt{3 s / n}]`

    Parameters
    ----------
    scale        : float — scaling factor *s*.
    mode         : 'fan_in' | 'fan_out' | 'fan_avg'
    distribution : 'truncated_normal' | 'untruncated_normal' | 'uniform'
    seed         : int, optional
    """

    MODES = ("fan_in", "fan_out", "fan_avg")
    DISTRIBUTIONS = ("truncated_normal", "untruncated_normal", "uniform")

    def __init__(
        self,
        scale: float = 1.0,
        mode: str = "fan_in",
        distribution: str = "truncated_normal",
        seed: int | None = None,
    ) -> None:
        if scale <= 0.0:
            raise ValueError(f"scale must be positive, got {scale}")
        if mode not in self.MODES:
            raise ValueError(f"Unknown mode {mode!r}, expected one of {self.MODES}")
        if distribution not in self.DISTRIBUTIONS:
            raise ValueError(
                f"Unknown distribution {distribution!r}, expected one of {self.DISTRIBUTIONS}"
            )
        super().__init__(seed)
        self.scale = scale
        self.mode = mode
        self.distribution = distribution

    def initialize(self, fan_in, fan_out, shape, name=""):
        if self.mode == "fan_in":
            n = fan_in
        elif self.mode == "fan_out":
            n = fan_out
        else:
            n = (fan_in + fan_out) / 2.0
        variance = self.scale / max(1.0, n)
        generator = self._generator()

        if self.distribution == "truncated_normal":
            stddev = math.sqrt(variance) / _TRUNCATION_CORRECTION
            return _truncated_normal(shape, 0.0, stddev, generator)
        if self.distribution == "untruncated_normal":
            W = torch.empty(tuple(shape), dtype=torch.float32)
            return W.normal_(0.0, math.sqrt(variance), generator=generator)

        limit = math.sqrt(3.0 * variance)
        W = torch.empty(tuple(shape), dtype=torch.float32)
        return W.uniform_(-limit, limit, generator=generator)


class GlorotNormal(VarianceScaling):
    r"""Glorot / Xavier normal: :math:`\sigma = \sqrt{2 / (n_{in} + n_{out})}`.

    Reference: Glorot & Bengio, 2010.
    """

    def __init__(self, seed: int | None = None) -> None:
        super().__init__(1.0, "fan_avg", "truncated_normal", seed)


class GlorotUniform(VarianceScaling):
    r"""Glorot / Xavier uniform: limit :math:`\sqrt{6 / (n_{in} + n_{out})}`."""

    def __init__(self, seed: int | None = None) -> None:
        super().__init__(1.0, "fan_avg", "uniform", seed)


class HeNormal(VarianceScaling):
    r"""He (Kaiming) normal: :math:`\sigma = \sqrt{2 / n_{in}}`.

    Derived for ReLU activations: compensates for the fact that ReLU zeroes
    out half the activations, so variance should be doubled.

    Reference: He et al., 2015.
    """

    def __init__(self, seed: int | None = None) -> None:
        super().__init__(2.0, "fan_in", "truncated_normal", seed)


class HeUniform(VarianceScaling):
    r"""He uniform: limit :math:`\sqrt{6 / n_{in}}`."""

    def __init__(self, seed: int | None = None) -> None:
        super().__init__(2.0, "fan_in", "uniform", seed)


class LeCunNormal(VarianceScaling):
    r"""LeCun normal: :math:`\sigma = \sqrt{1 / n_{in}}`.

    Reference: LeCun et al., 1998.
    """

    def __init__(self, seed: int | None = None) -> None:
        super().__init__(1.0, "fan_in", "truncated_normal", seed)


class LeCunUniform(VarianceScaling):
    r"""LeCun uniform: limit :math:`\sqrt{3 / n_{in}}`."""

    def __init__(self, seed: int | None = None) -> None:
        super().__init__(1.0, "fan_in", "uniform", seed)
