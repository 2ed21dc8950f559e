"""Utility helpers shared across OBS Metrics Bridge packages."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from typing import (
    Any,
    Final,
)

from .const import ENV_PREFIX

logger = logging.getLogger(__name__)

_TRUE_STRINGS: Final[frozenset[str]] = frozenset({"1", "yes", "on", "true", "enable", "enabled"})
_ENV_ALIASES: Final[dict[str, str]] = {"debug": "debug_logging"}


def parse_bool(value: object) -> bool:
    """Parse a boolean value safely from various types."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if value is None:
        return False
    s = str(value).lower().strip()
    return s in _TRUE_STRINGS


def get_env_config(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Read bridge configuration from ``OBSBRIDGE_*`` environment variables.

    Keys are lower-cased with the prefix removed and layered on top of
    :func:`get_default_config`; blank values are ignored.
    """

    source = os.environ if environ is None else environ
    config = get_default_config()
    for key, value in source.items():
        if not key.startswith(ENV_PREFIX):
            continue
        name = key[len(ENV_PREFIX) :].lower()
        name = _ENV_ALIASES.get(name, name)
        if not name or not value.strip():
            continue
        if name not in config:
            logger.warning("Ignoring unknown configuration variable %s", key)
            continue
        config[name] = value.strip()
    return config


def get_default_config() -> dict[str, Any]:
    """Provide default bridge configuration values.

    Derived from ``RuntimeConfig`` field defaults so the dataclass stays the
    single source of truth.
    """
    from dataclasses import MISSING, fields

    # Lazy import to break circular dependency (common -> config -> schema -> common).
    from obsbridge.config.model import RuntimeConfig

    defaults: dict[str, Any] = {}
    for fi in fields(RuntimeConfig):
        if fi.default is not MISSING:
            defaults[fi.name] = fi.default
    return defaults


__all__: Final[tuple[str, ...]] = (
    "parse_bool",
    "get_default_config",
    "get_env_config",
)
