"""Data model for OBS Metrics Bridge configuration."""

from __future__ import annotations

from dataclasses import dataclass

from ..const import (
    DEFAULT_AUDIO_CHANNELS,
    DEFAULT_DEBUG_LOGGING,
    DEFAULT_EXPORTER_MAX_RESTARTS,
    DEFAULT_METRIC_NAMESPACE,
    DEFAULT_METRICS_ENABLED,
    DEFAULT_METRICS_HOST,
    DEFAULT_METRICS_PORT,
    DEFAULT_SAMPLER_CAPACITY,
)


@dataclass(slots=True, frozen=True)
class RuntimeConfig:
    """Strongly typed configuration for the bridge and its exporter."""

    metrics_enabled: bool = DEFAULT_METRICS_ENABLED
    metrics_host: str = DEFAULT_METRICS_HOST
    metrics_port: int = DEFAULT_METRICS_PORT
    metric_namespace: str = DEFAULT_METRIC_NAMESPACE
    sampler_capacity: int = DEFAULT_SAMPLER_CAPACITY
    audio_channels: int = DEFAULT_AUDIO_CHANNELS
    debug_logging: bool = DEFAULT_DEBUG_LOGGING
    exporter_max_restarts: int = DEFAULT_EXPORTER_MAX_RESTARTS

    @property
    def fixed_audio_channels(self) -> int | None:
        """Forced channel count, or ``None`` when the engine is queried."""
        return self.audio_channels if self.audio_channels > 0 else None
