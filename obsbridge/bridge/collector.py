"""Builds the ordered sample set for one scrape."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from enum import StrEnum
from typing import Any, Final

import msgspec

from ..engine import (
    EncoderInfo,
    EncoderType,
    Engine,
    EngineError,
    EntityKind,
    MeasurementKind,
    OutputInfo,
)
from .reconciler import LifecycleReconciler
from .registry import TrackedEntity

logger = logging.getLogger("obsbridge.collector")


class MetricKind(StrEnum):
    GAUGE = "gauge"
    COUNTER = "counter"


class MetricSpec(msgspec.Struct, frozen=True):
    """Static description of one metric family."""

    subsystem: str
    name: str
    kind: MetricKind
    documentation: str
    labels: tuple[str, ...] = ()

    def full_name(self, namespace: str) -> str:
        return f"{namespace}_{self.subsystem}_{self.name}"


class MetricSample(msgspec.Struct, frozen=True):
    name: str
    kind: MetricKind
    labels: tuple[tuple[str, str], ...]
    value: float

    @property
    def label_values(self) -> tuple[str, ...]:
        return tuple(value for _, value in self.labels)


_OUTPUT_LABELS: Final[tuple[str, ...]] = ("output_id", "output_name")
_ENCODER_LABELS: Final[tuple[str, ...]] = ("encoder_id", "encoder_name")
_SOURCE_LABELS: Final[tuple[str, ...]] = ("source_id", "source_name", "channel")

GAUGE = MetricKind.GAUGE
COUNTER = MetricKind.COUNTER

GLOBAL_ACTIVE_FPS = MetricSpec("global", "active_fps", GAUGE, "Active frames per second.")
GLOBAL_FRAME_TIME = MetricSpec(
    "global", "average_frame_time_seconds", GAUGE, "Average time to render a frame in seconds."
)
GLOBAL_FRAMES = MetricSpec("global", "frames_total", COUNTER, "Total frames generated.")
GLOBAL_LAGGED_FRAMES = MetricSpec("global", "lagged_frames_total", COUNTER, "Frames lagged while rendering.")

SOURCE_LEVELS: Final[dict[MeasurementKind, MetricSpec]] = {
    MeasurementKind.MAGNITUDE: MetricSpec(
        "source", "audio_magnitude", GAUGE, "Loudest audio magnitude (dBFS) in the recent window.", _SOURCE_LABELS
    ),
    MeasurementKind.PEAK: MetricSpec(
        "source", "audio_peak", GAUGE, "Loudest audio peak (dBFS) in the recent window.", _SOURCE_LABELS
    ),
    MeasurementKind.INPUT_PEAK: MetricSpec(
        "source",
        "audio_input_peak",
        GAUGE,
        "Loudest pre-fader input peak (dBFS) in the recent window.",
        _SOURCE_LABELS,
    ),
}

OUTPUT_INFO = MetricSpec(
    "output", "info", GAUGE, "Information about this output.", ("output_id", "output_name", "output_display_name")
)
OUTPUT_ACTIVE = MetricSpec("output", "active", GAUGE, "Whether the output is active.", _OUTPUT_LABELS)
OUTPUT_BYTES = MetricSpec("output", "bytes_total", COUNTER, "Total bytes sent to this output.", _OUTPUT_LABELS)
OUTPUT_FRAMES = MetricSpec("output", "frames_total", COUNTER, "Total frames sent from this output.", _OUTPUT_LABELS)
OUTPUT_DROPPED_FRAMES = MetricSpec(
    "output", "dropped_frames_total", COUNTER, "Frames dropped by this output.", _OUTPUT_LABELS
)
OUTPUT_WIDTH = MetricSpec("output", "video_width", GAUGE, "Video width of this output.", _OUTPUT_LABELS)
OUTPUT_HEIGHT = MetricSpec("output", "video_height", GAUGE, "Video height of this output.", _OUTPUT_LABELS)
OUTPUT_CONGESTION = MetricSpec("output", "congestion", GAUGE, "'Congestion' of this output.", _OUTPUT_LABELS)
OUTPUT_CONNECT_TIME = MetricSpec(
    "output", "connect_time_seconds", GAUGE, "Time taken to connect for this output.", _OUTPUT_LABELS
)
OUTPUT_RECONNECTING = MetricSpec(
    "output", "reconnecting", GAUGE, "Whether the output is reconnecting.", _OUTPUT_LABELS
)

ENCODER_INFO = MetricSpec(
    "encoder",
    "info",
    GAUGE,
    "Information about this encoder.",
    ("encoder_id", "encoder_name", "encoder_display_name", "encoder_codec"),
)
ENCODER_ACTIVE = MetricSpec("encoder", "active", GAUGE, "Whether the encoder is active.", _ENCODER_LABELS)
ENCODER_WIDTH = MetricSpec("encoder", "video_width", GAUGE, "Video width of this encoder.", _ENCODER_LABELS)
ENCODER_HEIGHT = MetricSpec("encoder", "video_height", GAUGE, "Video height of this encoder.", _ENCODER_LABELS)
ENCODER_SAMPLE_RATE = MetricSpec(
    "encoder", "sample_rate", GAUGE, "Audio sample rate of this encoder.", _ENCODER_LABELS
)

METRIC_SPECS: Final[tuple[MetricSpec, ...]] = (
    GLOBAL_ACTIVE_FPS,
    GLOBAL_FRAME_TIME,
    GLOBAL_FRAMES,
    GLOBAL_LAGGED_FRAMES,
    *SOURCE_LEVELS.values(),
    OUTPUT_INFO,
    OUTPUT_ACTIVE,
    OUTPUT_BYTES,
    OUTPUT_FRAMES,
    OUTPUT_DROPPED_FRAMES,
    OUTPUT_WIDTH,
    OUTPUT_HEIGHT,
    OUTPUT_CONGESTION,
    OUTPUT_CONNECT_TIME,
    OUTPUT_RECONNECTING,
    ENCODER_INFO,
    ENCODER_ACTIVE,
    ENCODER_WIDTH,
    ENCODER_HEIGHT,
    ENCODER_SAMPLE_RATE,
)


def _bool_metric(value: bool) -> float:
    return 1.0 if value else 0.0


class _SampleBuffer:
    """Append-only sample list bound to one namespace."""

    def __init__(self, namespace: str) -> None:
        self._namespace = namespace
        self.samples: list[MetricSample] = []

    def add(self, spec: MetricSpec, value: float, *label_values: str) -> None:
        if len(label_values) != len(spec.labels):
            raise ValueError(f"{spec.name} expects labels {spec.labels}, got {label_values}")
        self.samples.append(
            MetricSample(
                name=spec.full_name(self._namespace),
                kind=spec.kind,
                labels=tuple(zip(spec.labels, label_values)),
                value=float(value),
            )
        )


class SnapshotCollector:
    """Produce the complete sample set for one scrape.

    Order: global scalars, source audio summaries, outputs, encoders. Callers
    hold the bridge's scrape lock.
    """

    def __init__(self, engine: Engine, reconciler: LifecycleReconciler, namespace: str) -> None:
        self._engine = engine
        self._reconciler = reconciler
        self._namespace = namespace

    @property
    def namespace(self) -> str:
        return self._namespace

    def describe(self) -> Iterator[tuple[str, MetricSpec]]:
        for spec in METRIC_SPECS:
            yield spec.full_name(self._namespace), spec

    def collect(self) -> list[MetricSample]:
        buffer = _SampleBuffer(self._namespace)
        self._collect_global(buffer)
        for entity in self._reconciler.reconcile():
            self._collect_source(buffer, entity)
        self._collect_each(EntityKind.OUTPUT, self._engine.describe_output, self._collect_output, buffer)
        self._collect_each(EntityKind.ENCODER, self._engine.describe_encoder, self._collect_encoder, buffer)
        return buffer.samples

    def _collect_global(self, buffer: _SampleBuffer) -> None:
        try:
            stats = self._engine.global_stats()
        except EngineError as exc:
            logger.warning("Global statistics unavailable: %s", exc)
            return
        buffer.add(GLOBAL_ACTIVE_FPS, stats.active_fps)
        buffer.add(GLOBAL_FRAME_TIME, stats.average_frame_time_ns / 1e9)
        buffer.add(GLOBAL_FRAMES, stats.total_frames)
        buffer.add(GLOBAL_LAGGED_FRAMES, stats.lagged_frames)

    @staticmethod
    def _collect_source(buffer: _SampleBuffer, entity: TrackedEntity) -> None:
        for channel, kind, value in entity.summarize():
            buffer.add(SOURCE_LEVELS[kind], value, entity.id, entity.name, str(channel))

    def _collect_each(
        self,
        kind: EntityKind,
        describe: Callable[[Any], Any],
        emit: Callable[[_SampleBuffer, Any], None],
        buffer: _SampleBuffer,
    ) -> None:
        try:
            handles = list(self._engine.enumerate_entities(kind))
        except EngineError as exc:
            logger.warning("Enumerating %ss failed: %s", kind, exc)
            return
        for handle in handles:
            try:
                info = describe(handle)
            except EngineError as exc:
                logger.warning("Could not read %s %r: %s", kind, handle, exc)
                continue
            emit(buffer, info)

    @staticmethod
    def _collect_output(buffer: _SampleBuffer, info: OutputInfo) -> None:
        labels = (info.id, info.name)
        buffer.add(OUTPUT_INFO, 1, info.id, info.name, info.display_name)
        buffer.add(OUTPUT_ACTIVE, _bool_metric(info.active), *labels)
        buffer.add(OUTPUT_BYTES, info.total_bytes, *labels)
        buffer.add(OUTPUT_FRAMES, info.total_frames, *labels)
        buffer.add(OUTPUT_DROPPED_FRAMES, info.dropped_frames, *labels)
        buffer.add(OUTPUT_WIDTH, info.width, *labels)
        buffer.add(OUTPUT_HEIGHT, info.height, *labels)
        buffer.add(OUTPUT_CONGESTION, info.congestion, *labels)
        buffer.add(OUTPUT_CONNECT_TIME, info.connect_time_ms / 1000.0, *labels)
        buffer.add(OUTPUT_RECONNECTING, _bool_metric(info.reconnecting), *labels)

    @staticmethod
    def _collect_encoder(buffer: _SampleBuffer, info: EncoderInfo) -> None:
        labels = (info.id, info.name)
        buffer.add(ENCODER_INFO, 1, info.id, info.name, info.display_name, info.codec)
        buffer.add(ENCODER_ACTIVE, _bool_metric(info.active), *labels)
        # Inapplicable dimensions are reported as 0 so every encoder has the same series.
        if info.encoder_type == EncoderType.AUDIO:
            width, height, sample_rate = 0, 0, info.sample_rate
        else:
            width, height, sample_rate = info.width, info.height, 0
        buffer.add(ENCODER_WIDTH, width, *labels)
        buffer.add(ENCODER_HEIGHT, height, *labels)
        buffer.add(ENCODER_SAMPLE_RATE, sample_rate, *labels)


__all__ = [
    "METRIC_SPECS",
    "MetricKind",
    "MetricSample",
    "MetricSpec",
    "SnapshotCollector",
]
