"""Host module lifecycle: wire a MetricBridge to the engine and serve it.

The host calls :meth:`ExporterModule.load` when the plugin is loaded and
:meth:`ExporterModule.unload` before it goes away. The exporter runs on its own
thread with a uvloop event loop so the host's threads are never borrowed.
"""

from __future__ import annotations

import asyncio
import logging
import threading

import uvloop

from .bridge import MetricBridge
from .config.logging import configure_logging
from .config.model import RuntimeConfig
from .config.settings import load_runtime_config
from .const import MODULE_START_TIMEOUT, MODULE_STOP_TIMEOUT
from .engine import Engine, LogSink
from .metrics import PrometheusExporter
from .services.task_supervisor import supervise_task

logger = logging.getLogger("obsbridge.module")


class ExporterModule:
    """Own the bridge and the exporter thread for one engine instance."""

    def __init__(
        self,
        engine: Engine,
        config: RuntimeConfig | None = None,
        *,
        log_sink: LogSink | None = None,
    ) -> None:
        self.engine = engine
        self.config = config
        self._log_sink = log_sink
        self.bridge: MetricBridge | None = None
        self.exporter: PrometheusExporter | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._task: asyncio.Task[None] | None = None
        self._thread: threading.Thread | None = None
        self._ready = threading.Event()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def load(self) -> bool:
        """Build the bridge and start serving. Returns False when metrics are disabled."""
        if self.bridge is not None:
            return self.running
        config = self.config or load_runtime_config()
        self.config = config
        configure_logging(config, self._log_sink)

        self.bridge = MetricBridge(self.engine, config)
        if not config.metrics_enabled:
            logger.info("Metrics exporter disabled by configuration")
            return False

        self.exporter = PrometheusExporter(self.bridge, config.metrics_host, config.metrics_port)
        self._ready.clear()
        self._thread = threading.Thread(target=self._thread_main, name="obsbridge-exporter", daemon=True)
        self._thread.start()
        if not self._ready.wait(MODULE_START_TIMEOUT):
            logger.error("Exporter thread did not start within %.1fs", MODULE_START_TIMEOUT)
            return False
        logger.info("Module loaded; serving metrics on %s:%d", config.metrics_host, config.metrics_port)
        return True

    def unload(self) -> None:
        """Stop the exporter and release every engine subscription."""
        loop, task, thread = self._loop, self._task, self._thread
        if loop is not None and task is not None and not loop.is_closed():
            try:
                loop.call_soon_threadsafe(task.cancel)
            except RuntimeError:
                logger.debug("Exporter loop already closed", exc_info=True)
        if thread is not None:
            thread.join(MODULE_STOP_TIMEOUT)
            if thread.is_alive():
                logger.error("Exporter thread did not stop within %.1fs", MODULE_STOP_TIMEOUT)
        self._thread = None
        if self.bridge is not None:
            self.bridge.close()
            self.bridge = None
        self.exporter = None
        logger.info("Module unloaded")

    def _thread_main(self) -> None:
        loop = uvloop.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        try:
            self._task = loop.create_task(self._serve())
            loop.call_soon(self._ready.set)
            loop.run_until_complete(self._task)
        except asyncio.CancelledError:
            logger.debug("Exporter task cancelled")
        except Exception:
            logger.exception("Exporter stopped with an error")
        finally:
            try:
                loop.run_until_complete(loop.shutdown_asyncgens())
            finally:
                asyncio.set_event_loop(None)
                loop.close()
                self._loop = None
                self._task = None

    async def _serve(self) -> None:
        assert self.exporter is not None and self.config is not None
        await supervise_task(
            "prometheus-exporter",
            self.exporter.run,
            max_restarts=self.config.exporter_max_restarts,
            fatal_exceptions=(PermissionError,),
        )


__all__ = ["ExporterModule"]
