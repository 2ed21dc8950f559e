"""Shared constants for OBS Metrics Bridge components."""

from __future__ import annotations

from typing import Final

MODULE_NAME: Final[str] = "obs-metrics-bridge"
LOG_PREFIX: Final[str] = f"[{MODULE_NAME}] "

ENV_PREFIX: Final[str] = "OBSBRIDGE_"

DEFAULT_METRICS_ENABLED: Final[bool] = True
DEFAULT_METRICS_HOST: Final[str] = "0.0.0.0"
DEFAULT_METRICS_PORT: Final[int] = 9407
DEFAULT_METRIC_NAMESPACE: Final[str] = "obs"
DEFAULT_DEBUG_LOGGING: Final[bool] = False

# Ring buffer slots per (source, channel, measurement kind).
DEFAULT_SAMPLER_CAPACITY: Final[int] = 32
MAX_SAMPLER_CAPACITY: Final[int] = 4096

# 0 means "ask the engine"; a positive value forces a fixed channel count.
DEFAULT_AUDIO_CHANNELS: Final[int] = 0
FALLBACK_AUDIO_CHANNELS: Final[int] = 2
MAX_AUDIO_CHANNELS: Final[int] = 8

DEFAULT_EXPORTER_MAX_RESTARTS: Final[int] = 5

SUPERVISOR_DEFAULT_RESTART_INTERVAL: Final[float] = 60.0
SUPERVISOR_DEFAULT_MIN_BACKOFF: Final[float] = 1.0
SUPERVISOR_DEFAULT_MAX_BACKOFF: Final[float] = 30.0
SUPERVISOR_MIN_RESTART_WINDOW: Final[float] = 10.0

MODULE_START_TIMEOUT: Final[float] = 5.0
MODULE_STOP_TIMEOUT: Final[float] = 5.0

EXPORTER_GREETING: Final[bytes] = (
    b"You have reached obs-metrics-bridge. Please leave a message after the beep."
)

__all__ = [
    "MODULE_NAME",
    "LOG_PREFIX",
    "ENV_PREFIX",
    "DEFAULT_METRICS_ENABLED",
    "DEFAULT_METRICS_HOST",
    "DEFAULT_METRICS_PORT",
    "DEFAULT_METRIC_NAMESPACE",
    "DEFAULT_DEBUG_LOGGING",
    "DEFAULT_SAMPLER_CAPACITY",
    "MAX_SAMPLER_CAPACITY",
    "DEFAULT_AUDIO_CHANNELS",
    "FALLBACK_AUDIO_CHANNELS",
    "MAX_AUDIO_CHANNELS",
    "DEFAULT_EXPORTER_MAX_RESTARTS",
    "SUPERVISOR_DEFAULT_RESTART_INTERVAL",
    "SUPERVISOR_DEFAULT_MIN_BACKOFF",
    "SUPERVISOR_DEFAULT_MAX_BACKOFF",
    "SUPERVISOR_MIN_RESTART_WINDOW",
    "MODULE_START_TIMEOUT",
    "MODULE_STOP_TIMEOUT",
    "EXPORTER_GREETING",
]
