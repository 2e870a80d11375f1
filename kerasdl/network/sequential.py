"""
Sequential Model
================

A ``Sequential`` model chains layers in order, forwarding the output of
each layer as input to the next, and drives training, evaluation and
prediction on top of the tensor engine.

Architecture diagram
--------------------
::

    X ─→ [Input] ─→ [Layer 1] ─→ ... ─→ [Layer N-1] ─→ Ŷ

Lifecycle
---------
::

    created ─compile()─→ compiled ─init() | load_weights()─→ initialized
                                              │
                               fit() / evaluate() / predict()

* ``compile`` builds every layer once (shape checks + weight slots) and
  binds optimizer, loss and metric.  It can only run once.
* Weights are written once: either by the initializers (``init``, run
  implicitly by the first fit / evaluate / predict) or by ``load_weights``.
* ``close`` (or leaving a ``with`` block) releases the engine resources.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterator, Sequence

import numpy as np
import torch
from numpy.typing import NDArray
from torch import Tensor, nn
from tqdm import tqdm

from ..core.callback import Callback
from ..core.layers import Input, Layer
from ..core.losses import Loss, Losses
from ..core.metrics import EvaluationResult, Metric, Metrics
from ..core.optimizers import Adam, Optimizer
from ..datasets.dataset import DataBatch, Dataset
from ..utils.config_loader import get_device
from .history import EpochEvent, History, TrainingHistory

logger = logging.getLogger(__name__)

NOT_COMPILED_MESSAGE = "The model is not compiled yet. Compile the model to use this method."
ALREADY_COMPILED_MESSAGE = "The model is compiled already. Graph is created."
ALREADY_INITIALIZED_MESSAGE = "Model is initialized already!"
CLOSED_MESSAGE = "The model is closed. Create a new model to use this method."


class Sequential:
    """Sequential model — an ordered stack of layers starting with ``Input``.

    Parameters
    ----------
    *layers : Layer
        The layer stack; the first one must be an ``Input``.
    device : str | torch.device, optional
        Where weights and batches live (``"auto"`` / ``None`` picks the
        best available device).

    Example
    -------
    >>> with Sequential(
    ...     Input(784),
    ...     Dense(128, activation=Activations.RELU),
    ...     Dense(10, activation=Activations.LINEAR),
    ... ) as model:
    ...     model.compile(Adam(), Losses.SOFT_MAX_CROSS_ENTROPY_WITH_LOGITS, Metrics.ACCURACY)
    ...     model.fit(train, epochs=3, batch_size=100)
    ...     accuracy = model.evaluate(test).metrics[Metrics.ACCURACY]
    """

    def __init__(self, *layers: Layer, device: str | torch.device | None = None) -> None:
        if not layers or not isinstance(layers[0], Input):
            raise ValueError("The first layer of a Sequential model must be an Input layer.")
        if any(isinstance(layer, Input) for layer in layers[1:]):
            raise ValueError("Only the first layer of a Sequential model can be an Input layer.")

        self._layers: list[Layer] = list(layers)
        self._assign_names()
        self.device = get_device(device)

        self._optimizer: Optimizer | None = None
        self._engine_optimizer: torch.optim.Optimizer | None = None
        self._loss: Loss | None = None
        self._metric: Metric | None = None
        self._metric_type: Metrics | None = None
        self._callback = Callback()

        self._is_compiled = False
        self._is_initialized = False
        self._is_closed = False

    @classmethod
    def of(cls, input_layer: Input, *layers: Layer, device: str | torch.device | None = None) -> "Sequential":
        return cls(input_layer, *layers, device=device)

    @classmethod
    def load_model_configuration(
        cls, config: str | Path | dict[str, Any], device: str | torch.device | None = None
    ) -> "Sequential":
        """Create a model from a Keras JSON configuration."""
        from ..inference.keras.model_config import load_model_configuration

        return load_model_configuration(config, device=device)

    # ── layer management ─────────────────────────────────────────
    def _assign_names(self) -> None:
        names = [layer.name for layer in self._layers if layer.name]
        duplicated = sorted({name for name in names if names.count(name) > 1})
        if duplicated:
            raise ValueError(f"Layer names must be unique, duplicated: {duplicated}")

        used = set(names)
        next_index: dict[str, int] = {}
        for layer in self._layers:
            if layer.name:
                continue
            index = next_index.get(layer.prefix, 0)
            candidate = layer.prefix if index == 0 else f"{layer.prefix}_{index}"
            while candidate in used:
                index += 1
                candidate = f"{layer.prefix}_{index}"
            next_index[layer.prefix] = index + 1
            layer.name = candidate
            used.add(candidate)

    @property
    def layers(self) -> list[Layer]:
        return self._layers

    @property
    def input_layer(self) -> Input:
        return self._layers[0]  # type: ignore[return-value]

    def get_layer(self, name: str) -> Layer:
        self._check_open()
        for layer in self._layers:
            if layer.name == name:
                return layer
        raise ValueError(f"No layer named {name!r} in the model")

    @property
    def is_compiled(self) -> bool:
        return self._is_compiled

    @property
    def is_model_initialized(self) -> bool:
        return self._is_initialized

    @property
    def optimizer(self) -> Optimizer | None:
        return self._optimizer

    @property
    def loss(self) -> Loss | None:
        return self._loss

    @property
    def metric(self) -> Metrics | None:
        return self._metric_type

    # ── compile / init ───────────────────────────────────────────
    def compile(
        self,
        optimizer: Optimizer | None = None,
        loss: Losses | Loss = Losses.SOFT_MAX_CROSS_ENTROPY_WITH_LOGITS,
        metric: Metrics | Metric = Metrics.ACCURACY,
        callback: Callback | None = None,
    ) -> None:
        """Build every layer and bind optimizer, loss and metric.

        Raises
        ------
        RuntimeError
            If the model was compiled before.
        ValueError
            If two consecutive layers have incompatible shapes.
        """
        self._check_open()
        if self._is_compiled:
            raise RuntimeError(ALREADY_COMPILED_MESSAGE)

        shape = self.input_layer.dims
        for layer in self._layers:
            layer.build(shape, device=self.device)
            shape = layer.output_shape

        self._optimizer = optimizer or Adam()
        self._loss = loss if isinstance(loss, Loss) else Losses.convert(loss)
        self._metric = metric if isinstance(metric, Metric) else Metrics.convert(metric)
        self._metric_type = Metrics.convert_back(self._metric)
        params = self._parameters()
        # torch.optim rejects an empty parameter list
        self._engine_optimizer = self._optimizer.build(params) if params else None
        self._callback = callback or Callback()
        self._is_compiled = True

        logger.info(
            "Compiled model: %d layers, %s trainable params, optimizer=%s, loss=%s, metric=%s",
            len(self._layers),
            f"{self.count_params():,}",
            self._optimizer,
            self._loss,
            self._metric_type.name,
        )

    def init(self) -> None:
        """Fill all weights from the layers' initializers.

        Raises
        ------
        RuntimeError
            If the model is not compiled or its weights were already written.
        """
        self._check_compiled()
        if self._is_initialized:
            raise RuntimeError(ALREADY_INITIALIZED_MESSAGE)
        for layer in self._layers:
            layer.init_weights()
        self._is_initialized = True
        logger.debug("Initialized weights of %d layers", len(self._layers))

    def _ensure_initialized(self) -> None:
        if not self._is_initialized:
            self.init()

    def _mark_initialized(self) -> None:
        self._is_initialized = True

    def _parameters(self) -> list[nn.Parameter]:
        return [p for layer in self._layers for p in layer.params.values()]

    # ── training loop ────────────────────────────────────────────
    def fit(
        self,
        dataset: Dataset,
        epochs: int = 5,
        batch_size: int = 32,
        validation_rate: float = 0.0,
        validation_batch_size: int | None = None,
        verbose: bool = True,
    ) -> TrainingHistory:
        """Train the model.

        Parameters
        ----------
        dataset : Dataset — training rows.
        epochs  : int — number of full passes over the data.
        batch_size : int — rows per gradient step; the last batch may be smaller.
        validation_rate : float ∈ [0, 1) — tail fraction of ``dataset`` held
            out and evaluated after every epoch without gradient updates.
        validation_batch_size : int, optional — defaults to ``batch_size``.
        verbose : bool — log epoch metrics and show a progress bar.

        Returns
        -------
        history : TrainingHistory
        """
        self._check_compiled()
        if epochs <= 0:
            raise ValueError(f"epochs must be positive, got {epochs}")
        if not 0.0 <= validation_rate < 1.0:
            raise ValueError(f"validation_rate must be in [0, 1), got {validation_rate}")

        if validation_rate > 0.0:
            train, validation = dataset.split(1.0 - validation_rate)
        else:
            train, validation = dataset, None
        if len(train) == 0:
            raise ValueError("The training dataset is empty.")
        validation_batch_size = validation_batch_size or batch_size

        self._ensure_initialized()
        history = TrainingHistory()
        self._callback.on_train_begin()

        for epoch in range(1, epochs + 1):
            self._callback.on_epoch_begin(epoch)
            loss_sum = 0.0
            metric_sum = 0.0

            batches = tqdm(
                train.batch_iterator(batch_size),
                total=train.num_batches(batch_size),
                desc=f"Epoch {epoch}/{epochs}",
                disable=not verbose,
                leave=False,
            )
            for batch_index, batch in enumerate(batches):
                self._callback.on_train_batch_begin(batch_index, batch.size)
                loss_value, metric_rows = self._train_step(batch)
                event = history.append_batch(
                    epoch, batch_index, loss_value, float(self._metric.reduce(metric_rows))
                )
                loss_sum += loss_value * batch.size
                metric_sum += float(metric_rows.sum())
                self._callback.on_train_batch_end(batch_index, batch.size, event)

            val_loss = val_metric = None
            if validation is not None and len(validation) > 0:
                result, _ = self._run_evaluation(validation, validation_batch_size)
                val_loss = result.loss_value
                val_metric = result.metrics[self._metric_type]

            epoch_event = EpochEvent(
                epoch, loss_sum / len(train), metric_sum / len(train), val_loss, val_metric
            )
            history.append_epoch(epoch_event)

            if verbose:
                msg = (
                    f"Epoch {epoch:>4d}/{epochs} — loss: {epoch_event.loss_value:.4f}  "
                    f"{self._metric_type.value}: {epoch_event.metric_value:.4f}"
                )
                if val_loss is not None:
                    msg += f"  val_loss: {val_loss:.4f}  val_{self._metric_type.value}: {val_metric:.4f}"
                logger.info(msg)
            self._callback.on_epoch_end(epoch, epoch_event)

        self._callback.on_train_end(history)
        return history

    def _train_step(self, batch: DataBatch) -> tuple[float, Tensor]:
        x, y = self._to_tensors(batch)
        y_pred = self._forward(x)
        loss = self._loss(y_pred, y)

        # every layer frozen: nothing to differentiate
        if loss.requires_grad:
            self._engine_optimizer.zero_grad()
            loss.backward()
            self._optimizer.clip_gradient.clip(
                p for p in self._parameters() if p.grad is not None
            )
            self._engine_optimizer.step()

        with torch.no_grad():
            metric_rows = self._metric.per_row(y_pred.detach(), y)
        return float(loss.item()), metric_rows

    # ── evaluation ───────────────────────────────────────────────
    def evaluate(self, dataset: Dataset, batch_size: int = 256) -> EvaluationResult:
        """Compute loss and metric on a dataset, without gradient updates.

        Returns
        -------
        EvaluationResult — row-weighted means over all batches.
        """
        self._check_compiled()
        self._ensure_initialized()
        result, history = self._run_evaluation(dataset, batch_size)
        self._callback.on_test_end(history)
        return result

    def _run_evaluation(self, dataset: Dataset, batch_size: int) -> tuple[EvaluationResult, History]:
        if len(dataset) == 0:
            raise ValueError("The evaluation dataset is empty.")
        history = History()
        loss_sum = 0.0
        metric_sum = 0.0

        with torch.no_grad():
            for batch_index, batch in enumerate(dataset.batch_iterator(batch_size)):
                x, y = self._to_tensors(batch)
                y_pred = self._forward(x)
                loss_value = float(self._loss(y_pred, y).item())
                metric_rows = self._metric.per_row(y_pred, y)
                event = history.append_batch(
                    batch_index, loss_value, float(self._metric.reduce(metric_rows))
                )
                loss_sum += loss_value * batch.size
                metric_sum += float(metric_rows.sum())
                self._callback.on_test_batch_end(batch_index, batch.size, event)

        n = len(dataset)
        return EvaluationResult(loss_sum / n, {self._metric_type: metric_sum / n}), history

    # ── prediction ───────────────────────────────────────────────
    def predict(self, data: Dataset | NDArray, batch_size: int = 256) -> NDArray:
        """Forward-only inference.

        Parameters
        ----------
        data : Dataset or ndarray of samples, shape (n, *input_dims)

        Returns
        -------
        Y_hat : ndarray, shape (n, *output_shape) — raw outputs of the last layer.
        """
        self._check_compiled()
        self._ensure_initialized()

        outputs: list[NDArray] = []
        with torch.no_grad():
            for batch_index, x in enumerate(self._iter_samples(data, batch_size)):
                y_pred = self._forward(torch.from_numpy(x).to(self.device))
                outputs.append(y_pred.cpu().numpy())
                self._callback.on_predict_batch_end(batch_index, x.shape[0])

        if not outputs:
            return np.empty((0, *self._layers[-1].output_shape), dtype=np.float32)
        return np.concatenate(outputs, axis=0)

    def predict_classes(self, data: Dataset | NDArray, batch_size: int = 256) -> NDArray:
        """Arg-max class index per sample."""
        return np.argmax(self.predict(data, batch_size), axis=1)

    @staticmethod
    def _iter_samples(data: Dataset | NDArray, batch_size: int) -> Iterator[NDArray]:
        if isinstance(data, Dataset):
            for batch in data.batch_iterator(batch_size):
                yield batch.x
            return
        x = np.asarray(data, dtype=np.float32)
        for start in range(0, x.shape[0], batch_size):
            yield x[start:start + batch_size]

    # ── weights ──────────────────────────────────────────────────
    def load_weights(self, h5_file: Any, layers: Sequence[Layer] | None = None) -> None:
        """Load Keras HDF5 weights (all layers, or only ``layers``)."""
        from ..inference.keras.weights import load_weights

        load_weights(self, h5_file, layers)

    def load_weights_for_frozen_layers(self, h5_file: Any) -> None:
        """Load Keras HDF5 weights into the non-trainable layers only."""
        from ..inference.keras.weights import load_weights_for_frozen_layers

        load_weights_for_frozen_layers(self, h5_file)

    # ── internal helpers ─────────────────────────────────────────
    def _forward(self, X: Tensor) -> Tensor:  # noqa: N803
        out = X
        for layer in self._layers:
            out = layer.forward(out)
        return out

    def _to_tensors(self, batch: DataBatch) -> tuple[Tensor, Tensor]:
        return (
            torch.from_numpy(batch.x).to(self.device),
            torch.from_numpy(batch.y).to(self.device),
        )

    def _check_open(self) -> None:
        if self._is_closed:
            raise RuntimeError(CLOSED_MESSAGE)

    def _check_compiled(self) -> None:
        self._check_open()
        if not self._is_compiled:
            raise RuntimeError(NOT_COMPILED_MESSAGE)

    # ── utilities ────────────────────────────────────────────────
    def count_params(self) -> int:
        """Total number of trainable scalar parameters."""
        self._check_open()
        return sum(layer.count_params() for layer in self._layers if layer.trainable)

    def summary(self, name_width: int = 30, shape_width: int = 26) -> str:
        """Keras-style model summary (shapes are known once compiled)."""
        self._check_open()
        header = f"{'Layer (type)':<{name_width}} {'Output Shape':<{shape_width}} {'Param #':>10}"
        lines = [header, "=" * len(header)]
        total = trainable = 0
        for layer in self._layers:
            n_params = layer.count_params()
            total += n_params
            if layer.trainable:
                trainable += n_params
            title = f"{layer.name} ({layer.__class__.__name__})"
            shape = f"(None, {', '.join(map(str, layer.output_shape))})" if layer.is_built else "?"
            lines.append(f"{title:<{name_width}} {shape:<{shape_width}} {n_params:>10,}")
        lines.append("=" * len(header))
        lines.append(f"Total params: {total:,}")
        lines.append(f"Trainable params: {trainable:,}")
        lines.append(f"Non-trainable params: {total - trainable:,}")
        return "\n".join(lines)

    # ── resource management ──────────────────────────────────────
    def close(self) -> None:
        """Release optimizer state and weights held by the engine."""
        if self._is_closed:
            return
        self._engine_optimizer = None
        for layer in self._layers:
            layer.params.clear()
        if self.device.type == "cuda":
            torch.cuda.empty_cache()
        self._is_closed = True
        logger.debug("Closed model with %d layers", len(self._layers))

    def __enter__(self) -> "Sequential":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __len__(self) -> int:
        return len(self._layers)

    def __iter__(self) -> Iterator[Layer]:
        return iter(self._layers)

    def __repr__(self) -> str:
        inner = ",\n  ".join(repr(layer) for layer in self._layers)
        return f"Sequential(\n  {inner}\n)"
