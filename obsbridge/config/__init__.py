"""Configuration helpers for the OBS Metrics Bridge."""

from .model import RuntimeConfig
from .settings import load_runtime_config

__all__ = ["RuntimeConfig", "load_runtime_config"]
