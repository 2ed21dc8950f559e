"""Marshmallow schema for RuntimeConfig validation."""

from __future__ import annotations

import re
from typing import Any, Dict

from marshmallow import EXCLUDE, Schema, ValidationError, fields, post_load, pre_load, validate, validates

from ..common import parse_bool
from ..const import (
    DEFAULT_AUDIO_CHANNELS,
    DEFAULT_DEBUG_LOGGING,
    DEFAULT_EXPORTER_MAX_RESTARTS,
    DEFAULT_METRIC_NAMESPACE,
    DEFAULT_METRICS_ENABLED,
    DEFAULT_METRICS_HOST,
    DEFAULT_METRICS_PORT,
    DEFAULT_SAMPLER_CAPACITY,
    MAX_AUDIO_CHANNELS,
    MAX_SAMPLER_CAPACITY,
)
from .model import RuntimeConfig

_NAMESPACE_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
_BOOL_FIELDS = ("metrics_enabled", "debug_logging")


class RuntimeConfigSchema(Schema):
    """Declarative validation schema for bridge configuration."""

    class Meta:
        unknown = EXCLUDE

    metrics_enabled = fields.Bool(load_default=DEFAULT_METRICS_ENABLED)
    metrics_host = fields.Str(load_default=DEFAULT_METRICS_HOST, validate=validate.Length(min=1))
    metrics_port = fields.Int(load_default=DEFAULT_METRICS_PORT, validate=validate.Range(min=0, max=65535))
    metric_namespace = fields.Str(load_default=DEFAULT_METRIC_NAMESPACE)
    sampler_capacity = fields.Int(
        load_default=DEFAULT_SAMPLER_CAPACITY,
        validate=validate.Range(min=1, max=MAX_SAMPLER_CAPACITY),
    )
    audio_channels = fields.Int(
        load_default=DEFAULT_AUDIO_CHANNELS,
        validate=validate.Range(min=0, max=MAX_AUDIO_CHANNELS),
    )
    debug_logging = fields.Bool(load_default=DEFAULT_DEBUG_LOGGING)
    exporter_max_restarts = fields.Int(
        load_default=DEFAULT_EXPORTER_MAX_RESTARTS,
        validate=validate.Range(min=0),
    )

    @validates("metric_namespace")
    def validate_namespace(self, value: str, **kwargs: Any) -> None:
        if not _NAMESPACE_RE.match(value):
            raise ValidationError(f"metric_namespace '{value}' is not a valid Prometheus name prefix")

    @pre_load
    def normalize_booleans(self, data: Dict[str, Any], **kwargs: Any) -> Dict[str, Any]:
        # Environment values such as "on"/"enabled" are wider than marshmallow's truthy set.
        normalized = dict(data)
        for key in _BOOL_FIELDS:
            if key in normalized and isinstance(normalized[key], str):
                normalized[key] = parse_bool(normalized[key])
        if isinstance(normalized.get("metrics_host"), str):
            normalized["metrics_host"] = normalized["metrics_host"].strip()
        return normalized

    @post_load
    def make_config(self, data: Dict[str, Any], **kwargs: Any) -> RuntimeConfig:
        return RuntimeConfig(**data)
