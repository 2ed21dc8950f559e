"""Registry of audio sources currently tracked by the bridge."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from types import TracebackType
from typing import Any

from ..engine import AudioLevels, Engine, EngineError, MeasurementKind
from .sampler import MEASUREMENT_KINDS, SampleWindow

logger = logging.getLogger("obsbridge.registry")


class AudioSubscription:
    """Owns one engine audio meter and detaches it exactly once."""

    __slots__ = ("_engine", "_meter", "_lock", "_released", "entity_id")

    def __init__(self, engine: Engine, meter: Any, entity_id: str) -> None:
        self._engine = engine
        self._meter = meter
        self._lock = threading.Lock()
        self._released = False
        self.entity_id = entity_id

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> bool:
        """Detach the meter. Returns False if it was already released."""
        with self._lock:
            if self._released:
                logger.warning("Audio meter for %s already released; ignoring", self.entity_id)
                return False
            self._released = True
            meter, self._meter = self._meter, None
        self._engine.detach_audio_meter(meter)
        return True

    def __enter__(self) -> AudioSubscription:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc_type is not None and not self._released:
            self.release()


class TrackedEntity:
    """State kept for one monitored audio source.

    The per-entity lock guards the sample window and the closed flag; it is
    held for a single append or a single reduce-and-read.
    """

    def __init__(
        self,
        entity_id: str,
        name: str,
        *,
        display_name: str = "",
        channels: int,
        capacity: int,
        subscription: AudioSubscription | None = None,
    ) -> None:
        self.id = entity_id
        self.name = name
        self.display_name = display_name
        self._lock = threading.Lock()
        self._window = SampleWindow(channels, capacity)
        self._subscription = subscription
        self._closed = False

    @property
    def channels(self) -> int:
        return self._window.channels

    @property
    def closed(self) -> bool:
        return self._closed

    def record(self, levels: AudioLevels) -> bool:
        """Append one meter update. Returns False once the entity is closed."""
        with self._lock:
            if self._closed:
                return False
            self._window.push_levels(levels)
            return True

    def summarize(self) -> list[tuple[int, MeasurementKind, float]]:
        """Reduce every sampler to its current maximum."""
        with self._lock:
            return [
                (channel, kind, self._window.reduce(channel, kind))
                for channel in range(self._window.channels)
                for kind in MEASUREMENT_KINDS
            ]

    def close(self) -> None:
        """Stop accepting samples and release the engine subscription."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            subscription, self._subscription = self._subscription, None
        # Detach outside the lock: the engine may wait for an in-flight callback.
        if subscription is not None:
            subscription.release()

    def __repr__(self) -> str:
        return f"TrackedEntity(id={self.id!r}, channels={self.channels}, closed={self._closed})"


class EntityRegistry:
    """Mapping from source identifier to TrackedEntity.

    Mutated only by the reconciler; lookups from the audio thread take the
    registry lock for the duration of a dict access and nothing more.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entities: dict[str, TrackedEntity] = {}

    def get(self, entity_id: str) -> TrackedEntity | None:
        with self._lock:
            return self._entities.get(entity_id)

    def insert(self, entity: TrackedEntity) -> None:
        with self._lock:
            if entity.id in self._entities:
                raise ValueError(f"entity {entity.id!r} is already tracked")
            self._entities[entity.id] = entity

    def remove(self, entity_id: str) -> TrackedEntity | None:
        """Drop *entity_id* and release its native resources."""
        with self._lock:
            entity = self._entities.pop(entity_id, None)
        if entity is not None:
            entity.close()
        return entity

    def ids(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._entities)

    def clear(self) -> int:
        """Release every tracked entity; returns how many were dropped."""
        with self._lock:
            entities = list(self._entities.values())
            self._entities.clear()
        for entity in entities:
            try:
                entity.close()
            except EngineError as exc:
                logger.warning("Failed to detach audio meter for source %s: %s", entity.id, exc)
        return len(entities)

    def __contains__(self, entity_id: object) -> bool:
        with self._lock:
            return entity_id in self._entities

    def __len__(self) -> int:
        with self._lock:
            return len(self._entities)

    def __iter__(self) -> Iterator[TrackedEntity]:
        with self._lock:
            return iter(list(self._entities.values()))


__all__ = ["AudioSubscription", "EntityRegistry", "TrackedEntity"]
