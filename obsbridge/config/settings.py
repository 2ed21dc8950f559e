"""Settings loader for the OBS Metrics Bridge.

Configuration is read from ``OBSBRIDGE_*`` environment variables layered over
the ``RuntimeConfig`` defaults and validated by ``RuntimeConfigSchema``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from marshmallow import ValidationError

from ..common import get_env_config
from .model import RuntimeConfig
from .schema import RuntimeConfigSchema

logger = logging.getLogger(__name__)


def _flatten_errors(messages: Any, prefix: str = "") -> list[str]:
    if isinstance(messages, dict):
        flattened: list[str] = []
        for key, value in messages.items():
            flattened.extend(_flatten_errors(value, f"{prefix}{key}: "))
        return flattened
    if isinstance(messages, (list, tuple)):
        return [f"{prefix}{item}" for item in messages]
    return [f"{prefix}{messages}"]


def build_runtime_config(raw: Mapping[str, Any]) -> RuntimeConfig:
    """Validate *raw* values and materialise a RuntimeConfig.

    Raises ``ValueError`` listing every invalid field.
    """

    try:
        config = RuntimeConfigSchema().load(dict(raw))
    except ValidationError as exc:
        details = "; ".join(_flatten_errors(exc.messages))
        raise ValueError(f"Invalid bridge configuration: {details}") from exc
    if config.fixed_audio_channels is not None:
        logger.info(
            "Audio channel count forced to %d; engine-reported counts are ignored.",
            config.fixed_audio_channels,
        )
    return config


def load_runtime_config(environ: Mapping[str, str] | None = None) -> RuntimeConfig:
    """Load configuration from the environment/defaults."""

    return build_runtime_config(get_env_config(environ))


__all__ = ["RuntimeConfig", "build_runtime_config", "load_runtime_config"]
