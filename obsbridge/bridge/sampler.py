"""Fixed-capacity ring buffers for pushed audio meter readings."""

from __future__ import annotations

import math
from typing import Final

from ..engine import AudioLevels, MeasurementKind

# Empty slots hold -inf so an unfilled sampler never reads as a real level.
SENTINEL: Final[float] = -math.inf

MEASUREMENT_KINDS: Final[tuple[MeasurementKind, ...]] = (
    MeasurementKind.MAGNITUDE,
    MeasurementKind.PEAK,
    MeasurementKind.INPUT_PEAK,
)


class RingSampler:
    """Circular buffer of the most recent readings for one channel and kind."""

    __slots__ = ("_slots",)

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be a positive integer")
        self._slots: list[float] = [SENTINEL] * capacity

    @property
    def capacity(self) -> int:
        return len(self._slots)

    def store(self, index: int, value: float) -> None:
        self._slots[index % len(self._slots)] = value

    def reduce(self) -> float:
        return max(self._slots)


class SampleWindow:
    """Samplers for every (channel, kind) of one source sharing a write cursor.

    All kinds of all channels for one meter update land in the same slot; the
    cursor advances once per update. Not thread-safe on its own; callers hold
    the owning entity's lock.
    """

    __slots__ = ("_channels", "_capacity", "_cursor", "_samplers")

    def __init__(self, channels: int, capacity: int) -> None:
        if channels <= 0:
            raise ValueError("channels must be a positive integer")
        self._channels = channels
        self._capacity = capacity
        self._cursor = 0
        self._samplers: dict[tuple[int, MeasurementKind], RingSampler] = {
            (channel, kind): RingSampler(capacity) for channel in range(channels) for kind in MEASUREMENT_KINDS
        }

    @property
    def channels(self) -> int:
        return self._channels

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def cursor(self) -> int:
        return self._cursor

    def push(self, channel: int, kind: MeasurementKind, value: float) -> None:
        self._samplers[(channel, kind)].store(self._cursor, value)

    def advance(self) -> None:
        self._cursor = (self._cursor + 1) % self._capacity

    def push_levels(self, levels: AudioLevels) -> None:
        """Write one meter update into the current slot and advance.

        Extra channels beyond the tracked count are ignored; NaN levels are rejected.
        """
        if levels.channels < self._channels:
            raise ValueError(f"expected at least {self._channels} channels, got {levels.channels}")
        # Convert everything first so a bad value cannot leave a half-written slot.
        values = [
            (channel, kind, float(levels.value(kind, channel)))
            for channel in range(self._channels)
            for kind in MEASUREMENT_KINDS
        ]
        if any(math.isnan(value) for _, _, value in values):
            raise ValueError("meter update contains NaN")
        for channel, kind, value in values:
            self.push(channel, kind, value)
        self.advance()

    def reduce(self, channel: int, kind: MeasurementKind) -> float:
        return self._samplers[(channel, kind)].reduce()


__all__ = ["MEASUREMENT_KINDS", "RingSampler", "SampleWindow", "SENTINEL"]
