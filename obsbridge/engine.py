"""Engine-facing contract: the data shapes and calls the bridge relies on.

The production engine (an OBS Studio host or a test double) implements
:class:`Engine`. Handles returned by :meth:`Engine.enumerate_entities` are
opaque to the bridge; it only ever passes them back to the ``describe_*`` and
``attach_audio_meter`` calls.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from enum import IntEnum, StrEnum
from typing import Any, Protocol, runtime_checkable

import msgspec


class EntityKind(StrEnum):
    SOURCE = "source"
    OUTPUT = "output"
    ENCODER = "encoder"


class EncoderType(StrEnum):
    AUDIO = "audio"
    VIDEO = "video"


class MeasurementKind(StrEnum):
    MAGNITUDE = "magnitude"
    PEAK = "peak"
    INPUT_PEAK = "input_peak"


class EngineLogLevel(IntEnum):
    """Severity values understood by the engine's log sink."""

    ERROR = 100
    WARNING = 200
    INFO = 300
    DEBUG = 400


class EngineError(Exception):
    """Base class for transient engine-interop failures."""


class SubscriptionRefused(EngineError):
    """The engine declined to attach an audio meter to a source."""


class GlobalStats(msgspec.Struct, frozen=True):
    active_fps: float
    average_frame_time_ns: float
    total_frames: int
    lagged_frames: int


class SourceInfo(msgspec.Struct, frozen=True):
    id: str
    name: str
    display_name: str = ""
    # 0 when the engine cannot report a channel layout.
    audio_channels: int = 0


class OutputInfo(msgspec.Struct, frozen=True):
    id: str
    name: str
    display_name: str = ""
    active: bool = False
    total_bytes: int = 0
    total_frames: int = 0
    dropped_frames: int = 0
    width: int = 0
    height: int = 0
    congestion: float = 0.0
    connect_time_ms: int = 0
    reconnecting: bool = False


class EncoderInfo(msgspec.Struct, frozen=True):
    id: str
    name: str
    encoder_type: EncoderType
    display_name: str = ""
    codec: str = ""
    active: bool = False
    width: int = 0
    height: int = 0
    sample_rate: int = 0


class AudioLevels(msgspec.Struct, frozen=True):
    """One audio meter update: a dBFS value per channel for each measurement kind."""

    magnitude: tuple[float, ...]
    peak: tuple[float, ...]
    input_peak: tuple[float, ...]

    @property
    def channels(self) -> int:
        """Channel count, or -1 when the per-kind arrays disagree."""
        count = len(self.magnitude)
        if len(self.peak) != count or len(self.input_peak) != count:
            return -1
        return count

    def value(self, kind: MeasurementKind, channel: int) -> float:
        if kind is MeasurementKind.MAGNITUDE:
            return self.magnitude[channel]
        if kind is MeasurementKind.PEAK:
            return self.peak[channel]
        return self.input_peak[channel]


AudioSink = Callable[[AudioLevels], None]
LogSink = Callable[[EngineLogLevel, str], None]


@runtime_checkable
class Engine(Protocol):
    """Synchronous enumeration plus audio meter subscription."""

    def global_stats(self) -> GlobalStats: ...

    def enumerate_entities(self, kind: EntityKind) -> Iterable[Any]: ...

    def describe_source(self, handle: Any) -> SourceInfo: ...

    def describe_output(self, handle: Any) -> OutputInfo: ...

    def describe_encoder(self, handle: Any) -> EncoderInfo: ...

    def attach_audio_meter(self, handle: Any, sink: AudioSink) -> Any:
        """Start delivering meter updates for *handle* to *sink*.

        Returns a native meter handle; raises SubscriptionRefused on failure.
        """
        ...

    def detach_audio_meter(self, meter: Any) -> None: ...


__all__ = [
    "AudioLevels",
    "AudioSink",
    "EncoderInfo",
    "EncoderType",
    "Engine",
    "EngineError",
    "EngineLogLevel",
    "EntityKind",
    "GlobalStats",
    "LogSink",
    "MeasurementKind",
    "OutputInfo",
    "SourceInfo",
    "SubscriptionRefused",
]
