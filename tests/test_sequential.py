"""
Tests for the Sequential Model
==============================

Integration tests covering:
  • construction, layer naming and lookup
  • the compile → init → fit / evaluate / predict lifecycle
  • frozen layers during training
  • callbacks and resource release
"""

from __future__ import annotations

import numpy as np
import pytest

from kerasdl.core.activations import Activations
from kerasdl.core.callback import Callback
from kerasdl.core.initializers import Constant, Zeros
from kerasdl.core.layers import Conv2D, Dense, Flatten, Input, MaxPool2D
from kerasdl.core.losses import Losses, MSE
from kerasdl.core.metrics import Metrics
from kerasdl.core.optimizers import SGD, Adam, ClipGradientByValue
from kerasdl.datasets import Dataset
from kerasdl.network.history import TrainingHistory
from kerasdl.network.sequential import (
    ALREADY_COMPILED_MESSAGE,
    ALREADY_INITIALIZED_MESSAGE,
    NOT_COMPILED_MESSAGE,
    Sequential,
)


def mlp() -> Sequential:
    return Sequential(
        Input(4),
        Dense(16, activation=Activations.RELU),
        Dense(3, activation=Activations.LINEAR),
        device="cpu",
    )


def compiled_mlp(learning_rate: float = 0.01) -> Sequential:
    model = mlp()
    model.compile(Adam(learning_rate), Losses.SOFT_MAX_CROSS_ENTROPY_WITH_LOGITS, Metrics.ACCURACY)
    return model


class RecordingCallback(Callback):
    def __init__(self):
        self.calls: list[str] = []

    def on_train_begin(self):
        self.calls.append("train_begin")

    def on_train_end(self, history):
        self.calls.append("train_end")

    def on_epoch_begin(self, epoch):
        self.calls.append(f"epoch_begin_{epoch}")

    def on_epoch_end(self, epoch, event):
        self.calls.append(f"epoch_end_{epoch}")

    def on_train_batch_end(self, batch, batch_size, event):
        self.calls.append("train_batch")

    def on_test_batch_end(self, batch, batch_size, event):
        self.calls.append("test_batch")

    def on_test_end(self, history):
        self.calls.append("test_end")

    def on_predict_batch_end(self, batch, batch_size):
        self.calls.append("predict_batch")


# ────────────────────────────────────────────────────────────────────
# Construction
# ────────────────────────────────────────────────────────────────────
class TestConstruction:
    def test_first_layer_must_be_input(self):
        with pytest.raises(ValueError, match="Input"):
            Sequential(Dense(3), device="cpu")

    def test_empty_model(self):
        with pytest.raises(ValueError):
            Sequential(device="cpu")

    def test_single_input_layer(self):
        with pytest.raises(ValueError, match="Only the first layer"):
            Sequential(Input(4), Input(4), device="cpu")

    def test_default_names(self):
        model = Sequential(
            Input(28, 28, 1), Conv2D(4), MaxPool2D(), Conv2D(8), MaxPool2D(),
            Flatten(), Dense(10), Dense(3), device="cpu",
        )
        assert [layer.name for layer in model.layers] == [
            "input", "conv2d", "max_pooling2d", "conv2d_1", "max_pooling2d_1",
            "flatten", "dense", "dense_1",
        ]

    def test_default_names_skip_explicit_ones(self):
        model = Sequential(Input(4), Dense(3, name="dense"), Dense(3), device="cpu")
        assert model.layers[2].name == "dense_1"

    def test_duplicate_names(self):
        with pytest.raises(ValueError, match="unique"):
            Sequential(Input(4), Dense(3, name="head"), Dense(3, name="head"), device="cpu")

    def test_of(self):
        model = Sequential.of(Input(4), Dense(2), device="cpu")
        assert len(model) == 2
        assert model.input_layer.packed_dims == (4,)

    def test_get_layer(self):
        model = Sequential(Input(4), Dense(3, name="head"), device="cpu")
        assert isinstance(model.get_layer("head"), Dense)
        with pytest.raises(ValueError, match="No layer named"):
            model.get_layer("missing")


# ────────────────────────────────────────────────────────────────────
# Compile / init
# ────────────────────────────────────────────────────────────────────
class TestCompile:
    def test_compile_builds_layers(self):
        model = compiled_mlp()
        assert model.is_compiled
        assert not model.is_model_initialized
        assert model.layers[-1].output_shape == (3,)
        assert model.count_params() == 4 * 16 + 16 + 16 * 3 + 3

    def test_compile_twice(self):
        model = compiled_mlp()
        with pytest.raises(RuntimeError) as exc:
            model.compile()
        assert str(exc.value) == ALREADY_COMPILED_MESSAGE

    def test_shape_mismatch_detected_at_compile(self):
        model = Sequential(Input(28, 28, 1), Dense(10), device="cpu")
        with pytest.raises(ValueError, match="Flatten"):
            model.compile()

    def test_accepts_loss_and_metric_instances(self):
        model = mlp()
        model.compile(SGD(), MSE(), Metrics.convert(Metrics.MAE))
        assert model.metric is Metrics.MAE

    def test_init_once(self):
        model = compiled_mlp()
        model.init()
        assert model.is_model_initialized
        with pytest.raises(RuntimeError) as exc:
            model.init()
        assert str(exc.value) == ALREADY_INITIALIZED_MESSAGE

    def test_initializers_applied(self):
        model = Sequential(
            Input(2),
            Dense(3, bias_initializer=Constant(0.1), name="hidden"),
            device="cpu",
        )
        model.compile()
        model.init()
        np.testing.assert_allclose(model.get_layer("hidden").get_weights()[1], np.full(3, 0.1), rtol=1e-6)

    def test_summary(self):
        model = compiled_mlp()
        summary = model.summary()
        assert "dense_1 (Dense)" in summary
        assert "Total params: 131" in summary

    def test_model_without_weights_compiles(self, mnist_like):
        model = Sequential(Input(28, 28, 1), Flatten(), device="cpu")
        model.compile(loss=Losses.MSE, metric=Metrics.MSE)
        assert model.predict(mnist_like).shape == (20, 784)


# ────────────────────────────────────────────────────────────────────
# Lifecycle errors
# ────────────────────────────────────────────────────────────────────
class TestNotCompiled:
    @pytest.mark.parametrize("operation", ["fit", "evaluate", "predict"])
    def test_operations_require_compile(self, blobs, operation):
        model = mlp()
        with pytest.raises(RuntimeError) as exc:
            getattr(model, operation)(blobs)
        assert str(exc.value) == NOT_COMPILED_MESSAGE

    def test_init_requires_compile(self):
        with pytest.raises(RuntimeError, match="not compiled"):
            mlp().init()


# ────────────────────────────────────────────────────────────────────
# Training
# ────────────────────────────────────────────────────────────────────
class TestFit:
    def test_learns_blobs(self, blobs):
        model = compiled_mlp(learning_rate=0.01)
        model.fit(blobs, epochs=30, batch_size=16, verbose=False)
        assert model.evaluate(blobs).metrics[Metrics.ACCURACY] > 0.9

    def test_loss_decreases(self, blobs):
        model = compiled_mlp()
        history = model.fit(blobs, epochs=10, batch_size=16, verbose=False)
        assert history.epoch_history[-1].loss_value < history.epoch_history[0].loss_value

    def test_history_layout(self, blobs):
        history = compiled_mlp().fit(blobs, epochs=2, batch_size=32, verbose=False)
        assert isinstance(history, TrainingHistory)
        assert [e.epoch_index for e in history.epoch_history] == [1, 2]
        # 90 rows / 32 -> 3 batches, the last one short
        assert len(history.batch_history[1]) == 3
        assert history.last_batch_event().batch_index == 2
        assert history.last_epoch_event().val_loss_value is None

    def test_fit_initializes_weights(self, blobs):
        model = compiled_mlp()
        model.fit(blobs, epochs=1, verbose=False)
        assert model.is_model_initialized

    def test_validation_split(self, blobs):
        history = compiled_mlp().fit(
            blobs, epochs=2, batch_size=16, validation_rate=0.2, validation_batch_size=5, verbose=False
        )
        last = history.last_epoch_event()
        assert last.val_loss_value is not None
        assert 0.0 <= last.val_metric_value <= 1.0
        # 72 training rows -> 5 batches of 16
        assert len(history.batch_history[1]) == 5

    @pytest.mark.parametrize("rate", [-0.1, 1.0])
    def test_invalid_validation_rate(self, blobs, rate):
        with pytest.raises(ValueError):
            compiled_mlp().fit(blobs, validation_rate=rate, verbose=False)

    def test_invalid_epochs(self, blobs):
        with pytest.raises(ValueError):
            compiled_mlp().fit(blobs, epochs=0, verbose=False)

    def test_verbose_logs_epochs(self, blobs, caplog):
        with caplog.at_level("INFO", logger="kerasdl"):
            compiled_mlp().fit(blobs, epochs=2, batch_size=45, verbose=True)
        assert sum("Epoch" in r.getMessage() for r in caplog.records) == 2

    def test_gradient_clipping(self, blobs):
        model = mlp()
        model.compile(Adam(clip_gradient=ClipGradientByValue(0.01)))
        history = model.fit(blobs, epochs=1, batch_size=30, verbose=False)
        assert len(history.batch_history[1]) == 3


class TestFrozenLayers:
    def _model(self) -> Sequential:
        return Sequential(
            Input(4),
            Dense(16, name="frozen"),
            Dense(3, activation=Activations.LINEAR, name="head"),
            device="cpu",
        )

    def test_frozen_layer_unchanged_after_fit(self, blobs):
        model = self._model()
        model.get_layer("frozen").trainable = False
        model.compile(Adam(0.01))
        model.init()
        frozen_before = model.get_layer("frozen").get_weights()
        head_before = model.get_layer("head").get_weights()

        model.fit(blobs, epochs=3, batch_size=16, verbose=False)

        for before, after in zip(frozen_before, model.get_layer("frozen").get_weights()):
            assert before.tobytes() == after.tobytes()
        assert not np.array_equal(head_before[0], model.get_layer("head").get_weights()[0])

    def test_freeze_after_compile(self, blobs):
        model = self._model()
        model.compile(Adam(0.01))
        model.init()
        model.get_layer("frozen").trainable = False
        before = model.get_layer("frozen").get_weights()[0]
        model.fit(blobs, epochs=2, batch_size=16, verbose=False)
        np.testing.assert_array_equal(before, model.get_layer("frozen").get_weights()[0])

    def test_frozen_params_not_counted_as_trainable(self):
        model = self._model()
        model.get_layer("frozen").trainable = False
        model.compile()
        assert model.count_params() == 16 * 3 + 3
        assert "Non-trainable params: 80" in model.summary()

    def test_everything_frozen(self, blobs):
        model = self._model()
        for layer in model.layers:
            layer.trainable = False
        model.compile()
        model.init()
        before = model.get_layer("head").get_weights()[0]
        model.fit(blobs, epochs=1, batch_size=30, verbose=False)
        np.testing.assert_array_equal(before, model.get_layer("head").get_weights()[0])


# ────────────────────────────────────────────────────────────────────
# Evaluation / prediction
# ────────────────────────────────────────────────────────────────────
class TestEvaluate:
    def test_row_weighted_mean_independent_of_batch_size(self, blobs):
        model = compiled_mlp()
        model.init()
        full = model.evaluate(blobs, batch_size=len(blobs))
        chunked = model.evaluate(blobs, batch_size=7)
        assert chunked.loss_value == pytest.approx(full.loss_value, rel=1e-5)
        assert chunked.metrics[Metrics.ACCURACY] == pytest.approx(full.metrics[Metrics.ACCURACY])

    def test_regression_metric_is_per_row_mean(self):
        x = np.zeros((10, 2), dtype=np.float32)
        y = np.ones((10, 1), dtype=np.float32)
        model = Sequential(
            Input(2),
            Dense(1, activation=Activations.LINEAR, kernel_initializer=Zeros(), bias_initializer=Zeros()),
            device="cpu",
        )
        model.compile(SGD(), Losses.MAE, Metrics.MAE)
        result = model.evaluate(Dataset(x, y), batch_size=3)
        assert result.loss_value == pytest.approx(1.0)
        assert result.metrics[Metrics.MAE] == pytest.approx(1.0)

    def test_does_not_update_weights(self, blobs):
        model = compiled_mlp()
        model.init()
        before = model.layers[1].get_weights()[0]
        model.evaluate(blobs, batch_size=10)
        np.testing.assert_array_equal(before, model.layers[1].get_weights()[0])

    def test_empty_dataset(self):
        model = compiled_mlp()
        with pytest.raises(ValueError, match="empty"):
            model.evaluate(Dataset(np.zeros((0, 4)), np.zeros((0, 3))))


class TestPredict:
    def test_shape_and_dtype(self, blobs):
        Y = compiled_mlp().predict(blobs, batch_size=32)
        assert Y.shape == (90, 3)
        assert Y.dtype == np.float32

    def test_accepts_arrays(self, blobs):
        model = compiled_mlp()
        np.testing.assert_allclose(model.predict(blobs.x, batch_size=7), model.predict(blobs), rtol=1e-5, atol=1e-6)

    def test_predict_classes(self, blobs):
        model = compiled_mlp()
        classes = model.predict_classes(blobs)
        np.testing.assert_array_equal(classes, np.argmax(model.predict(blobs), axis=1))

    def test_wrong_sample_shape(self):
        with pytest.raises(ValueError, match="expects samples of shape"):
            compiled_mlp().predict(np.zeros((2, 5), dtype=np.float32))


# ────────────────────────────────────────────────────────────────────
# Callbacks
# ────────────────────────────────────────────────────────────────────
class TestCallbacks:
    def test_fit_hooks(self, blobs):
        callback = RecordingCallback()
        model = mlp()
        model.compile(callback=callback)
        model.fit(blobs, epochs=2, batch_size=45, verbose=False)
        assert callback.calls == [
            "train_begin",
            "epoch_begin_1", "train_batch", "train_batch", "epoch_end_1",
            "epoch_begin_2", "train_batch", "train_batch", "epoch_end_2",
            "train_end",
        ]

    def test_evaluate_and_predict_hooks(self, blobs):
        callback = RecordingCallback()
        model = mlp()
        model.compile(callback=callback)
        model.evaluate(blobs, batch_size=50)
        model.predict(blobs, batch_size=90)
        assert callback.calls == ["test_batch", "test_batch", "test_end", "predict_batch"]


# ────────────────────────────────────────────────────────────────────
# Resource release
# ────────────────────────────────────────────────────────────────────
class TestClose:
    def test_context_manager_closes(self, blobs):
        with compiled_mlp() as model:
            model.fit(blobs, epochs=1, verbose=False)
        with pytest.raises(RuntimeError, match="closed"):
            model.evaluate(blobs)

    def test_closed_on_error(self):
        with pytest.raises(ZeroDivisionError):
            with compiled_mlp() as model:
                1 / 0
        with pytest.raises(RuntimeError, match="closed"):
            model.predict(np.zeros((1, 4), dtype=np.float32))

    @pytest.mark.parametrize("operation", ["compile", "init", "summary", "count_params"])
    def test_operations_after_close(self, operation):
        model = mlp()
        model.close()
        with pytest.raises(RuntimeError, match="closed"):
            getattr(model, operation)()

    def test_close_is_idempotent(self):
        model = compiled_mlp()
        model.close()
        model.close()
