"""Keeps the entity registry in step with the engine's audio sources."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import msgspec

from ..const import FALLBACK_AUDIO_CHANNELS, MAX_AUDIO_CHANNELS
from ..engine import AudioSink, Engine, EngineError, EntityKind, SourceInfo
from .registry import AudioSubscription, EntityRegistry, TrackedEntity

logger = logging.getLogger("obsbridge.reconciler")

SinkFactory = Callable[[str], AudioSink]


class ReconcileStats(msgspec.Struct):
    """Outcome of one reconciliation pass."""

    seen: int = 0
    duplicates: int = 0
    created: int = 0
    destroyed: int = 0
    failed: int = 0
    aborted: bool = False


class LifecycleReconciler:
    """Diff the engine's source enumeration against the registry.

    Must only be called while the bridge's scrape lock is held.
    """

    def __init__(
        self,
        engine: Engine,
        registry: EntityRegistry,
        sink_factory: SinkFactory,
        *,
        capacity: int,
        fixed_channels: int | None = None,
    ) -> None:
        self._engine = engine
        self._registry = registry
        self._sink_factory = sink_factory
        self._capacity = capacity
        self._fixed_channels = fixed_channels
        self.last_stats = ReconcileStats()

    def reconcile(self) -> list[TrackedEntity]:
        """Run one pass and return the entities ready to report.

        Entities created during this pass are not returned; they have no
        samples yet and start reporting on the next pass.
        """
        stats = ReconcileStats()
        self.last_stats = stats
        seen: set[str] = set()
        ready: list[TrackedEntity] = []

        try:
            handles = list(self._engine.enumerate_entities(EntityKind.SOURCE))
        except EngineError as exc:
            stats.aborted = True
            logger.warning("Source enumeration failed; keeping %d tracked sources: %s", len(self._registry), exc)
            return ready

        for handle in handles:
            try:
                info = self._engine.describe_source(handle)
            except EngineError as exc:
                stats.failed += 1
                logger.warning("Could not describe source handle %r: %s", handle, exc)
                continue

            if info.id in seen:
                stats.duplicates += 1
                continue
            seen.add(info.id)

            entity = self._registry.get(info.id)
            if entity is not None:
                ready.append(entity)
                continue

            if self._track(handle, info):
                stats.created += 1
            else:
                stats.failed += 1

        stats.seen = len(seen)
        for stale_id in self._registry.ids() - seen:
            if self._destroy(stale_id):
                stats.destroyed += 1
            else:
                stats.failed += 1

        if stats.created or stats.destroyed or stats.failed:
            logger.debug(
                "Reconciled sources",
                extra={
                    "sources_seen": stats.seen,
                    "sources_created": stats.created,
                    "sources_destroyed": stats.destroyed,
                    "sources_failed": stats.failed,
                },
            )
        return ready

    def _channels_for(self, info: SourceInfo) -> int:
        if self._fixed_channels is not None:
            return self._fixed_channels
        if 0 < info.audio_channels <= MAX_AUDIO_CHANNELS:
            return info.audio_channels
        logger.debug(
            "Source %s reported %d audio channels; assuming %d",
            info.id,
            info.audio_channels,
            FALLBACK_AUDIO_CHANNELS,
        )
        return FALLBACK_AUDIO_CHANNELS

    def _track(self, handle: Any, info: SourceInfo) -> bool:
        try:
            meter = self._engine.attach_audio_meter(handle, self._sink_factory(info.id))
        except EngineError as exc:
            logger.warning("Audio meter refused for source %s; will retry next scrape: %s", info.id, exc)
            return False

        try:
            with AudioSubscription(self._engine, meter, info.id) as subscription:
                entity = TrackedEntity(
                    info.id,
                    info.name,
                    display_name=info.display_name,
                    channels=self._channels_for(info),
                    capacity=self._capacity,
                    subscription=subscription,
                )
                self._registry.insert(entity)
        except (ValueError, EngineError) as exc:
            logger.warning("Could not start tracking source %s: %s", info.id, exc)
            return False
        logger.info("Tracking audio source %s (%d channels)", info.id, entity.channels)
        return True

    def _destroy(self, entity_id: str) -> bool:
        try:
            self._registry.remove(entity_id)
        except EngineError as exc:
            logger.warning("Failed to detach audio meter for source %s: %s", entity_id, exc)
            return False
        logger.info("Stopped tracking audio source %s", entity_id)
        return True


__all__ = ["LifecycleReconciler", "ReconcileStats", "SinkFactory"]
