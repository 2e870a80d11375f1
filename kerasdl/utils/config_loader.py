"""
YAML configuration loader with device auto-detection.
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any

import torch
import yaml

DEFAULT_CONFIG: dict[str, Any] = {
    "experiment": {
        "name": "kerasdl",
        "seed": 12,
        "device": "auto",
    },
    "training": {
        "epochs": 3,
        "batch_size": 1000,
        "validation_rate": 0.0,
        "validation_batch_size": 100,
        "test_batch_size": 1000,
        "verbose": True,
    },
    "optimizer": {
        "type": "adam",
        "learning_rate": 0.001,
    },
    "logging": {
        "level": "INFO",
        "log_file": None,
    },
}


def load_config(config_path: str | Path | None = None) -> dict[str, Any]:
    """Load a YAML configuration file on top of ``DEFAULT_CONFIG``.

    Args:
        config_path: Path to the YAML config file; ``None`` returns the defaults.

    Returns:
        Parsed configuration dictionary.

    Raises:
        FileNotFoundError: If the config file does not exist.
    """
    if config_path is None:
        return copy.deepcopy(DEFAULT_CONFIG)

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r") as f:
        config = yaml.safe_load(f) or {}

    return merge_configs(DEFAULT_CONFIG, config)


def merge_configs(base: dict, override: dict) -> dict:
    """Deep-merge two config dicts. override takes precedence.

    Args:
        base: Base configuration.
        override: Override configuration.

    Returns:
        Merged configuration dictionary.
    """
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = value
    return merged


def get_device(device: str | torch.device | None = None) -> torch.device:
    """Resolve a device setting.

    Priority: explicit setting > CUDA > MPS > CPU

    Args:
        device: ``"auto"``, ``None``, a device string or a ``torch.device``.

    Returns:
        torch.device instance.
    """
    if isinstance(device, torch.device):
        return device
    if device is not None and device != "auto":
        return torch.device(device)
    return torch.device(_detect_device())


def _detect_device() -> str:
    if torch.cuda.is_available():
        return "cuda"
    if torch.backends.mps.is_available():
        return "mps"
    return "cpu"
