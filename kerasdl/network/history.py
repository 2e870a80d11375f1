"""
Training / Evaluation History
=============================

``History`` is an append-only log of ``BatchEvent`` records, one per
processed batch, indexed by batch number so the most recent batch can be
queried directly.  ``TrainingHistory`` groups one ``History`` per epoch
and adds per-epoch summaries.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator


@dataclass(frozen=True)
class BatchEvent:
    """Tracked values of one batch.

    Attributes
    ----------
    batch_index  : int   — batch number inside its epoch / evaluation.
    loss_value   : float — loss on the batch.
    metric_value : float — metric on the batch.
    """

    batch_index: int
    loss_value: float
    metric_value: float


class History:
    """Batch events in append order, with lookup by batch index."""

    def __init__(self) -> None:
        self._events: list[BatchEvent] = []
        self._by_batch: dict[int, BatchEvent] = {}

    def append_batch(self, batch_index: int, loss_value: float, metric_value: float) -> BatchEvent:
        """Record the values of one batch and return the new event."""
        event = BatchEvent(batch_index, float(loss_value), float(metric_value))
        self.append_event(event)
        return event

    def append_event(self, event: BatchEvent) -> None:
        self._events.append(event)
        self._by_batch[event.batch_index] = event

    def last_batch_event(self) -> BatchEvent:
        """Event with the highest batch index.

        Raises
        ------
        IndexError
            If no batch was recorded.
        """
        if not self._by_batch:
            raise IndexError("History is empty")
        return self._by_batch[max(self._by_batch)]

    def __getitem__(self, batch_index: int) -> BatchEvent:
        return self._by_batch[batch_index]

    def __iter__(self) -> Iterator[BatchEvent]:
        return iter(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def __repr__(self) -> str:
        return f"History(batches={len(self._events)})"


@dataclass(frozen=True)
class EpochEvent:
    """Averaged values of one epoch (validation values are ``None`` without a validation split)."""

    epoch_index: int
    loss_value: float
    metric_value: float
    val_loss_value: float | None = None
    val_metric_value: float | None = None


class TrainingHistory:
    """Everything ``Sequential.fit`` tracked: batches per epoch and epoch summaries."""

    def __init__(self) -> None:
        self.batch_history: dict[int, History] = {}
        self.epoch_history: list[EpochEvent] = []

    def append_batch(
        self, epoch_index: int, batch_index: int, loss_value: float, metric_value: float
    ) -> BatchEvent:
        history = self.batch_history.setdefault(epoch_index, History())
        return history.append_batch(batch_index, loss_value, metric_value)

    def append_epoch(self, event: EpochEvent) -> None:
        self.epoch_history.append(event)

    def last_batch_event(self) -> BatchEvent:
        if not self.batch_history:
            raise IndexError("History is empty")
        return self.batch_history[max(self.batch_history)].last_batch_event()

    def last_epoch_event(self) -> EpochEvent:
        if not self.epoch_history:
            raise IndexError("History is empty")
        return self.epoch_history[-1]

    def __repr__(self) -> str:
        return f"TrainingHistory(epochs={len(self.epoch_history)})"
