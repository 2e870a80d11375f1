"""In-memory datasets and archive readers."""

from .dataset import DataBatch, Dataset, one_hot_encode

__all__ = ["DataBatch", "Dataset", "one_hot_encode"]
