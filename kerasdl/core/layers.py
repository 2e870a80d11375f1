"""
Layer Abstractions — Base Layer, Input, Dense, Conv2D, Pooling, Flatten
=======================================================================

A *layer* transforms an input tensor X into an output tensor Y.  Layers
are built once, when their model is compiled: ``build`` receives the
static input shape (batch dimension excluded), validates it, derives the
output shape and allocates the weight slots.  ``init_weights`` then fills
those slots from the layer's initializers.

Gradients are computed by the tensor engine (PyTorch autograd), so a
layer only declares its forward transform.

Notation
--------
  X  : input          — shape (batch_size, *input_shape)
  Y  : output         — shape (batch_size, *output_shape)
  W  : kernel         — Dense (n_in, n_out), Conv2D (kh, kw, c_in, filters)
  b  : bias vector    — shape (n_out,) / (filters,)

Images follow the Keras ``channels_last`` layout: (batch, H, W, C).
Kernels are stored in Keras layout as well, which keeps them directly
compatible with weights exported from Keras.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Sequence

import numpy as np
import torch
import torch.nn.functional as F
from numpy.typing import NDArray
from torch import Tensor, nn

from .activations import Activations
from .initializers import GlorotNormal, GlorotUniform, Initializer, Zeros

Shape = tuple[int, ...]


class ConvPadding(str, Enum):
    """Padding mode for convolution and pooling layers."""

    SAME = "same"
    VALID = "valid"


# ────────────────────────────────────────────────────────────────────
# Base class
# ────────────────────────────────────────────────────────────────────
class Layer:
    """Abstract layer interface.

    Every concrete layer must implement ``forward``; layers with weights
    also override ``build`` / ``init_weights``.

    Parameters
    ----------
    name : str
        Unique name inside a model.  Left empty, the owning ``Sequential``
        assigns a Keras-style one (``dense``, ``dense_1``, ...).
    """

    prefix: str = "layer"

    def __init__(self, name: str = "") -> None:
        self.name = name
        self._trainable = True
        self._params: dict[str, nn.Parameter] = {}
        self.input_shape: Shape | None = None
        self.output_shape: Shape | None = None

    # ── trainable flag ───────────────────────────────────────────
    @property
    def trainable(self) -> bool:
        return self._trainable

    @trainable.setter
    def trainable(self, value: bool) -> None:
        # frozen parameters never receive a gradient, so no optimizer moves them
        self._trainable = bool(value)
        for p in self._params.values():
            p.requires_grad_(self._trainable)

    @property
    def is_built(self) -> bool:
        return self.output_shape is not None

    def has_activation(self) -> bool:
        return False

    # ── build ────────────────────────────────────────────────────
    def build(self, input_shape: Sequence[int], device: torch.device | str | None = None) -> None:
        """Validate ``input_shape``, derive the output shape, allocate weights."""
        self.input_shape = tuple(int(d) for d in input_shape)
        self.output_shape = tuple(self.compute_output_shape(self.input_shape))
        for key, shape in self._weight_shapes(self.input_shape).items():
            param = nn.Parameter(
                torch.empty(shape, dtype=torch.float32, device=device),
                requires_grad=self._trainable,
            )
            self._params[key] = param

    def compute_output_shape(self, input_shape: Shape) -> Shape:
        return input_shape

    def _weight_shapes(self, input_shape: Shape) -> dict[str, Shape]:
        return {}

    def init_weights(self) -> None:
        """Fill weight slots from the layer's initializers."""

    def forward(self, X: Tensor) -> Tensor:  # noqa: N803
        raise NotImplementedError

    # ── weights ──────────────────────────────────────────────────
    @property
    def params(self) -> dict[str, nn.Parameter]:
        """Return dict of weight parameters (``kernel`` first, then ``bias``)."""
        return self._params

    def get_weights(self) -> list[NDArray]:
        """Copies of the layer weights as NumPy arrays."""
        return [p.detach().cpu().numpy().copy() for p in self._params.values()]

    def set_weights(self, weights: Sequence[NDArray]) -> None:
        """Overwrite the layer weights in place.

        Raises
        ------
        ValueError
            If the number of arrays or their sizes don't match.
        """
        if len(weights) != len(self._params):
            raise ValueError(
                f"Layer '{self.name}' expects {len(self._params)} weight arrays, "
                f"got {len(weights)}"
            )
        with torch.no_grad():
            for (key, param), value in zip(self._params.items(), weights):
                arr = np.asarray(value, dtype=np.float32)
                if arr.size != param.numel():
                    raise ValueError(
                        f"Cannot assign array of shape {arr.shape} to "
                        f"'{self.name}/{key}' of shape {tuple(param.shape)}"
                    )
                param.copy_(torch.from_numpy(arr.reshape(tuple(param.shape))))

    def count_params(self) -> int:
        return sum(p.numel() for p in self._params.values())

    def _initialize_param(self, key: str, initializer: Initializer) -> None:
        param = self._params[key]
        fan_in, fan_out = self._fans()
        W = initializer.initialize(fan_in, fan_out, tuple(param.shape), name=f"{self.name}_{key}")
        with torch.no_grad():
            param.copy_(W.to(param.device))

    def _fans(self) -> tuple[int, int]:
        return 1, 1

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"


# ────────────────────────────────────────────────────────────────────
# Input
# ────────────────────────────────────────────────────────────────────
class Input(Layer):
    """Establishes the static input shape of a model.

    Example
    -------
    >>> Input(28, 28, 1)      # images, channels_last
    >>> Input(784)            # flat feature vectors
    """

    prefix = "input"

    def __init__(self, *dims: int, name: str = "") -> None:
        super().__init__(name)
        if not dims or any(int(d) <= 0 for d in dims):
            raise ValueError(f"Input dimensions must be positive, got {dims}")
        self.dims: Shape = tuple(int(d) for d in dims)

    @property
    def packed_dims(self) -> Shape:
        return self.dims

    def compute_output_shape(self, input_shape: Shape) -> Shape:
        return self.dims

    def forward(self, X: Tensor) -> Tensor:
        if tuple(X.shape[1:]) != self.dims:
            raise ValueError(
                f"Input '{self.name}' expects samples of shape {self.dims}, "
                f"got {tuple(X.shape[1:])}"
            )
        return X.float()

    def __repr__(self) -> str:
        return f"Input{self.dims}"


# ────────────────────────────────────────────────────────────────────
# Dense (fully-connected) layer
# ────────────────────────────────────────────────────────────────────
class Dense(Layer):
    r"""Fully-connected (dense / linear) layer with optional activation.

    .. math::
        Y = f(X \cdot W + b)

    Parameters
    ----------
    units : int
        Number of output neurons.
    activation : Activations
        Applied after the linear transform (default: ReLU).
    kernel_initializer : Initializer
        Default: Glorot normal.
    bias_initializer : Initializer
        Default: zeros.
    use_bias : bool
    name : str
    """

    prefix = "dense"

    def __init__(
        self,
        units: int = 128,
        activation: Activations = Activations.RELU,
        kernel_initializer: Initializer | None = None,
        bias_initializer: Initializer | None = None,
        use_bias: bool = True,
        name: str = "",
    ) -> None:
        super().__init__(name)
        if units <= 0:
            raise ValueError(f"units must be positive, got {units}")
        self.units = units
        self.activation = Activations(activation)
        self.kernel_initializer = kernel_initializer or GlorotNormal()
        self.bias_initializer = bias_initializer or Zeros()
        self.use_bias = use_bias

    @property
    def output_size(self) -> int:
        return self.units

    def has_activation(self) -> bool:
        return not self.activation.is_linear

    def compute_output_shape(self, input_shape: Shape) -> Shape:
        if len(input_shape) != 1:
            raise ValueError(
                f"Layer '{self.name}' expects a flat input, got shape {input_shape}. "
                "Add a Flatten layer before it."
            )
        return (self.units,)

    def _weight_shapes(self, input_shape: Shape) -> dict[str, Shape]:
        shapes = {"kernel": (input_shape[0], self.units)}
        if self.use_bias:
            shapes["bias"] = (self.units,)
        return shapes

    def _fans(self) -> tuple[int, int]:
        return self.input_shape[0], self.units

    def init_weights(self) -> None:
        self._initialize_param("kernel", self.kernel_initializer)
        if self.use_bias:
            self._initialize_param("bias", self.bias_initializer)

    def forward(self, X: Tensor) -> Tensor:
        """Compute Y = f(X · W + b).

        Parameters
        ----------
        X : Tensor, shape (batch_size, n_in)

        Returns
        -------
        Y : Tensor, shape (batch_size, units)
        """
        Z = X @ self._params["kernel"]
        if self.use_bias:
            Z = Z + self._params["bias"]
        return self.activation.apply(Z)

    def __repr__(self) -> str:
        return f"Dense({self.name!r}, units={self.units}, activation={self.activation.value})"


# ────────────────────────────────────────────────────────────────────
# Spatial helpers
# ────────────────────────────────────────────────────────────────────
def _output_size(size: int, window: int, stride: int, padding: ConvPadding) -> int:
    if padding is ConvPadding.SAME:
        return math.ceil(size / stride)
    return math.ceil((size - window + 1) / stride)


def _same_padding(size: int, window: int, stride: int) -> tuple[int, int]:
    """TensorFlow-style SAME padding: the odd cell, if any, goes after."""
    out = math.ceil(size / stride)
    total = max((out - 1) * stride + window - size, 0)
    return total // 2, total - total // 2


def _pad_nchw(X: Tensor, windows: Shape, strides: Shape, value: float = 0.0) -> Tensor:
    h_before, h_after = _same_padding(X.shape[2], windows[0], strides[0])
    w_before, w_after = _same_padding(X.shape[3], windows[1], strides[1])
    if h_before == h_after == w_before == w_after == 0:
        return X
    return F.pad(X, (w_before, w_after, h_before, h_after), value=value)


def _pair(value: int | Sequence[int]) -> Shape:
    if isinstance(value, int):
        return value, value
    pair = tuple(int(v) for v in value)
    if len(pair) != 2:
        raise ValueError(f"Expected an int or a pair, got {value}")
    return pair


def _check_image_shape(layer: Layer, input_shape: Shape) -> None:
    if len(input_shape) != 3:
        raise ValueError(
            f"Layer '{layer.name}' expects input of shape (height, width, channels), "
            f"got {input_shape}"
        )


# ────────────────────────────────────────────────────────────────────
# Conv2D
# ────────────────────────────────────────────────────────────────────
class Conv2D(Layer):
    r"""2-D convolution over ``channels_last`` images.

    .. math::
        Y = f(X \star W + b)

    The kernel is kept in Keras layout ``(kh, kw, c_in, filters)`` and
    permuted to the engine's ``(filters, c_in, kh, kw)`` on every forward
    pass.

    Parameters
    ----------
    filters : int
    kernel_size : int | (int, int)
    strides : int | (int, int)
    dilations : int | (int, int)
    activation : Activations
    kernel_initializer, bias_initializer : Initializer
    padding : ConvPadding
    use_bias : bool
    name : str
    """

    prefix = "conv2d"

    def __init__(
        self,
        filters: int = 32,
        kernel_size: int | Sequence[int] = (5, 5),
        strides: int | Sequence[int] = (1, 1),
        dilations: int | Sequence[int] = (1, 1),
        activation: Activations = Activations.RELU,
        kernel_initializer: Initializer | None = None,
        bias_initializer: Initializer | None = None,
        padding: ConvPadding = ConvPadding.SAME,
        use_bias: bool = True,
        name: str = "",
    ) -> None:
        super().__init__(name)
        if filters <= 0:
            raise ValueError(f"filters must be positive, got {filters}")
        self.filters = filters
        self.kernel_size = _pair(kernel_size)
        self.strides = _pair(strides)
        self.dilations = _pair(dilations)
        self.activation = Activations(activation)
        self.kernel_initializer = kernel_initializer or GlorotNormal()
        self.bias_initializer = bias_initializer or Zeros()
        self.padding = ConvPadding(padding)
        self.use_bias = use_bias

    @property
    def _effective_kernel(self) -> Shape:
        return tuple((k - 1) * d + 1 for k, d in zip(self.kernel_size, self.dilations))

    def has_activation(self) -> bool:
        return not self.activation.is_linear

    def compute_output_shape(self, input_shape: Shape) -> Shape:
        _check_image_shape(self, input_shape)
        h, w, _ = input_shape
        kh, kw = self._effective_kernel
        out_h = _output_size(h, kh, self.strides[0], self.padding)
        out_w = _output_size(w, kw, self.strides[1], self.padding)
        if out_h <= 0 or out_w <= 0:
            raise ValueError(
                f"Layer '{self.name}': kernel {self.kernel_size} does not fit input {input_shape}"
            )
        return out_h, out_w, self.filters

    def _weight_shapes(self, input_shape: Shape) -> dict[str, Shape]:
        shapes = {"kernel": (*self.kernel_size, input_shape[2], self.filters)}
        if self.use_bias:
            shapes["bias"] = (self.filters,)
        return shapes

    def _fans(self) -> tuple[int, int]:
        receptive_field = self.kernel_size[0] * self.kernel_size[1]
        return self.input_shape[2] * receptive_field, self.filters * receptive_field

    def init_weights(self) -> None:
        self._initialize_param("kernel", self.kernel_initializer)
        if self.use_bias:
            self._initialize_param("bias", self.bias_initializer)

    def forward(self, X: Tensor) -> Tensor:
        X = X.permute(0, 3, 1, 2)  # NHWC → NCHW
        if self.padding is ConvPadding.SAME:
            X = _pad_nchw(X, self._effective_kernel, self.strides)
        W = self._params["kernel"].permute(3, 2, 0, 1)
        b = self._params["bias"] if self.use_bias else None
        Z = F.conv2d(X, W, b, stride=self.strides, dilation=self.dilations)
        return self.activation.apply(Z.permute(0, 2, 3, 1))

    def __repr__(self) -> str:
        return (
            f"Conv2D({self.name!r}, filters={self.filters}, kernel_size={self.kernel_size}, "
            f"padding={self.padding.value}, activation={self.activation.value})"
        )


# ────────────────────────────────────────────────────────────────────
# Pooling
# ────────────────────────────────────────────────────────────────────
class _Pool2D(Layer):
    def __init__(
        self,
        pool_size: int | Sequence[int] = (2, 2),
        strides: int | Sequence[int] = (2, 2),
        padding: ConvPadding = ConvPadding.VALID,
        name: str = "",
    ) -> None:
        super().__init__(name)
        self.pool_size = _pair(pool_size)
        self.strides = _pair(strides)
        self.padding = ConvPadding(padding)

    def compute_output_shape(self, input_shape: Shape) -> Shape:
        _check_image_shape(self, input_shape)
        h, w, c = input_shape
        out_h = _output_size(h, self.pool_size[0], self.strides[0], self.padding)
        out_w = _output_size(w, self.pool_size[1], self.strides[1], self.padding)
        if out_h <= 0 or out_w <= 0:
            raise ValueError(
                f"Layer '{self.name}': pool {self.pool_size} does not fit input {input_shape}"
            )
        return out_h, out_w, c

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}({self.name!r}, pool_size={self.pool_size}, "
            f"strides={self.strides}, padding={self.padding.value})"
        )


class MaxPool2D(_Pool2D):
    """Max pooling; SAME padding pads with ``-inf``."""

    prefix = "max_pooling2d"

    def forward(self, X: Tensor) -> Tensor:
        X = X.permute(0, 3, 1, 2)
        if self.padding is ConvPadding.SAME:
            X = _pad_nchw(X, self.pool_size, self.strides, value=float("-inf"))
        Y = F.max_pool2d(X, self.pool_size, self.strides)
        return Y.permute(0, 2, 3, 1)


class AvgPool2D(_Pool2D):
    """Average pooling; with SAME padding the padded cells are not counted."""

    prefix = "average_pooling2d"

    def forward(self, X: Tensor) -> Tensor:
        X = X.permute(0, 3, 1, 2)
        if self.padding is ConvPadding.VALID:
            return F.avg_pool2d(X, self.pool_size, self.strides).permute(0, 2, 3, 1)

        mask = torch.ones((1, 1, X.shape[2], X.shape[3]), dtype=X.dtype, device=X.device)
        total = F.avg_pool2d(_pad_nchw(X, self.pool_size, self.strides), self.pool_size, self.strides)
        count = F.avg_pool2d(_pad_nchw(mask, self.pool_size, self.strides), self.pool_size, self.strides)
        return (total / count).permute(0, 2, 3, 1)


# ────────────────────────────────────────────────────────────────────
# Flatten
# ────────────────────────────────────────────────────────────────────
class Flatten(Layer):
    """Collapse all non-batch dimensions (in H, W, C order, like Keras)."""

    prefix = "flatten"

    def compute_output_shape(self, input_shape: Shape) -> Shape:
        return (math.prod(input_shape),)

    def forward(self, X: Tensor) -> Tensor:
        return X.reshape(X.shape[0], -1)
