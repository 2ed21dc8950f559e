"""MetricBridge: the single owner of bridge state and its two entry points."""

from __future__ import annotations

import functools
import logging
import threading
from collections.abc import Iterator

from ..config.model import RuntimeConfig
from ..engine import AudioLevels, AudioSink, Engine
from .collector import MetricSample, MetricSpec, SnapshotCollector
from .reconciler import LifecycleReconciler, ReconcileStats
from .registry import EntityRegistry

logger = logging.getLogger("obsbridge.bridge")


class MetricBridge:
    """Reconcile engine enumeration and audio meter pushes into scrapeable samples.

    Construct once before any scrape or push and :meth:`close` at shutdown.

    Locking, always acquired in this order:

    * scrape lock: one scrape (reconcile + emit) at a time;
    * registry lock: a single dict lookup, insert or pop;
    * entity lock: a single append or reduce.

    The push path never takes the scrape lock.
    """

    def __init__(self, engine: Engine, config: RuntimeConfig | None = None) -> None:
        self._config = config or RuntimeConfig()
        self._engine = engine
        self._scrape_lock = threading.Lock()
        self._registry = EntityRegistry()
        self._reconciler = LifecycleReconciler(
            engine,
            self._registry,
            self._sink_for,
            capacity=self._config.sampler_capacity,
            fixed_channels=self._config.fixed_audio_channels,
        )
        self._collector = SnapshotCollector(engine, self._reconciler, self._config.metric_namespace)
        self._closed = False

    @property
    def registry(self) -> EntityRegistry:
        return self._registry

    @property
    def last_reconcile(self) -> ReconcileStats:
        return self._reconciler.last_stats

    def describe(self) -> Iterator[tuple[str, MetricSpec]]:
        return self._collector.describe()

    def on_scrape_requested(self) -> list[MetricSample]:
        """Collect one complete, ordered snapshot."""
        with self._scrape_lock:
            if self._closed:
                logger.debug("Scrape requested after bridge shutdown; returning no samples")
                return []
            return self._collector.collect()

    def on_audio_sample(self, entity_id: str, levels: AudioLevels) -> None:
        """Ingest one meter update from the engine's audio thread. Never raises."""
        try:
            entity = self._registry.get(entity_id)
            if entity is None:
                logger.debug("Dropping audio sample for untracked source %r", entity_id)
                return
            if not isinstance(levels, AudioLevels):
                logger.warning("Dropping malformed audio sample for source %s: %r", entity_id, type(levels))
                return
            if not entity.record(levels):
                logger.debug("Dropping audio sample for released source %s", entity_id)
        except (TypeError, ValueError, IndexError, ArithmeticError) as exc:
            logger.warning("Dropping malformed audio sample for source %r: %s", entity_id, exc)

    def _sink_for(self, entity_id: str) -> AudioSink:
        return functools.partial(self.on_audio_sample, entity_id)

    def close(self) -> None:
        """Release every tracked source. Later scrapes return nothing."""
        with self._scrape_lock:
            if self._closed:
                return
            self._closed = True
            released = self._registry.clear()
        logger.info("Metric bridge closed; released %d audio meters", released)


__all__ = ["MetricBridge"]
