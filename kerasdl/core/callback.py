"""Training callbacks — hooks invoked by ``Sequential`` during fit / evaluate / predict."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..network.history import BatchEvent, EpochEvent, History, TrainingHistory


class Callback:
    """Base callback; every hook is a no-op.

    Subclass and override the hooks you need, then pass an instance to
    ``Sequential.compile(callback=...)``.
    """

    def on_train_begin(self) -> None:
        pass

    def on_train_end(self, history: TrainingHistory) -> None:
        pass

    def on_epoch_begin(self, epoch: int) -> None:
        pass

    def on_epoch_end(self, epoch: int, event: EpochEvent) -> None:
        pass

    def on_train_batch_begin(self, batch: int, batch_size: int) -> None:
        pass

    def on_train_batch_end(self, batch: int, batch_size: int, event: BatchEvent) -> None:
        pass

    def on_test_batch_end(self, batch: int, batch_size: int, event: BatchEvent) -> None:
        pass

    def on_test_end(self, history: History) -> None:
        pass

    def on_predict_batch_end(self, batch: int, batch_size: int) -> None:
        pass
