"""Core building blocks: layers, activations, initializers, losses, metrics, optimizers."""

from .activations import Activations
from .callback import Callback
from .initializers import (
    Constant,
    GlorotNormal,
    GlorotUniform,
    HeNormal,
    HeUniform,
    Initializer,
    LeCunNormal,
    LeCunUniform,
    Ones,
    RandomNormal,
    RandomUniform,
    TruncatedNormal,
    VarianceScaling,
    Zeros,
)
from .layers import AvgPool2D, Conv2D, ConvPadding, Dense, Flatten, Input, Layer, MaxPool2D
from .losses import Losses, SoftmaxCrossEntropyWithLogits
from .metrics import EvaluationResult, Metrics
from .optimizers import (
    SGD,
    AdaDelta,
    AdaGrad,
    AdaMax,
    Adam,
    ClipGradientByNorm,
    ClipGradientByValue,
    Momentum,
    NoClipGradient,
    RMSProp,
    build_optimizer,
)

__all__ = [
    "Activations", "Callback",
    "Initializer", "Zeros", "Ones", "Constant", "RandomNormal", "RandomUniform",
    "TruncatedNormal", "VarianceScaling", "GlorotNormal", "GlorotUniform",
    "HeNormal", "HeUniform", "LeCunNormal", "LeCunUniform",
    "Layer", "Input", "Dense", "Conv2D", "MaxPool2D", "AvgPool2D", "Flatten", "ConvPadding",
    "Losses", "SoftmaxCrossEntropyWithLogits", "Metrics", "EvaluationResult",
    "SGD", "Momentum", "Adam", "AdaMax", "AdaGrad", "AdaDelta", "RMSProp",
    "NoClipGradient", "ClipGradientByValue", "ClipGradientByNorm", "build_optimizer",
]
