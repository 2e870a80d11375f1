"""Utility functions: configuration and logging."""

from .config_loader import get_device, load_config, merge_configs
from .logger import setup_logging

__all__ = ["get_device", "load_config", "merge_configs", "setup_logging"]
