"""Prometheus exporter for the OBS Metrics Bridge."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator
from typing import cast

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily
from prometheus_client.metrics_core import Metric
from prometheus_client.registry import Collector

from .bridge import MetricBridge, MetricKind, MetricSample, MetricSpec
from .const import EXPORTER_GREETING

logger = logging.getLogger("obsbridge.metrics")


def _new_family(name: str, spec: MetricSpec) -> Metric:
    if spec.kind is MetricKind.COUNTER:
        return CounterMetricFamily(name, spec.documentation, labels=spec.labels)
    return GaugeMetricFamily(name, spec.documentation, labels=spec.labels)


class _BridgeCollector(Collector):
    """Prometheus collector that projects MetricBridge snapshots."""

    def __init__(self, bridge: MetricBridge) -> None:
        self._bridge = bridge
        self._specs: dict[str, MetricSpec] = dict(bridge.describe())

    def describe(self) -> Iterator[Metric]:
        for name, spec in self._specs.items():
            yield _new_family(name, spec)

    def collect(self) -> Iterator[Metric]:
        samples = self._bridge.on_scrape_requested()
        families: dict[str, Metric] = {}
        for sample in samples:
            family = families.get(sample.name)
            if family is None:
                family = self._family_for(sample)
                if family is None:
                    continue
                families[sample.name] = family
            cast(GaugeMetricFamily, family).add_metric(sample.label_values, sample.value)
        yield from families.values()

    def _family_for(self, sample: MetricSample) -> Metric | None:
        spec = self._specs.get(sample.name)
        if spec is None:
            logger.warning("Skipping undeclared metric %s", sample.name)
            return None
        return _new_family(sample.name, spec)


class PrometheusExporter:
    """Expose MetricBridge snapshots via the Prometheus text format."""

    def __init__(self, bridge: MetricBridge, host: str, port: int) -> None:
        self._bridge = bridge
        self._host = host
        self._port = port
        self._server: asyncio.AbstractServer | None = None
        self._resolved_port: int | None = None
        self._registry = CollectorRegistry()
        self._collector = _BridgeCollector(bridge)
        self._registry.register(self._collector)

    @property
    def port(self) -> int:
        return self._resolved_port or self._port

    async def start(self) -> None:
        if self._server is not None:
            return
        self._server = await asyncio.start_server(
            self._handle_client,
            host=self._host,
            port=self._port,
        )
        sockets = self._server.sockets or []
        if sockets:
            sockname = sockets[0].getsockname()
            if isinstance(sockname, tuple):
                typed_sockname = cast(tuple[object, ...], sockname)
                if len(typed_sockname) >= 2:
                    port_candidate = typed_sockname[1]
                    if isinstance(port_candidate, int):
                        self._resolved_port = port_candidate
        logger.info(
            "Prometheus exporter listening",
            extra={"host": self._host, "port": self.port},
        )

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        logger.info("Prometheus exporter stopped")

    async def run(self) -> None:
        await self.start()
        assert self._server is not None
        try:
            await self._server.serve_forever()
        except asyncio.CancelledError:
            raise
        finally:
            await self.stop()

    async def _handle_client(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        try:
            request_line = await reader.readline()
            if not request_line:
                return
            parts = request_line.decode("ascii", errors="ignore").split()
            if len(parts) < 2:
                await self._write_response(writer, 400, b"")
                return
            method, path = parts[0], parts[1]
            while True:
                line = await reader.readline()
                if not line or line in {b"\r\n", b"\n"}:
                    break
            if method != "GET":
                await self._write_response(writer, 405, b"")
                return
            if path == "/":
                await self._write_response(writer, 200, EXPORTER_GREETING)
                return
            if path.split("?", 1)[0] != "/metrics":
                await self._write_response(writer, 404, b"")
                return
            # The scrape takes the bridge lock; keep it off the event loop.
            payload = await asyncio.to_thread(self._render_metrics)
            await self._write_response(
                writer,
                200,
                payload,
                content_type=CONTENT_TYPE_LATEST,
            )
        except asyncio.CancelledError:
            raise
        except (OSError, ValueError, IndexError) as e:
            logger.warning("Prometheus client request error: %s", e)
        except (TypeError, AttributeError, RuntimeError) as e:
            logger.critical("Unexpected error in Prometheus handler: %s", e, exc_info=True)
        finally:
            try:
                writer.close()
                await writer.wait_closed()
            except (OSError, ValueError, RuntimeError):
                logger.debug("Error closing metrics client connection", exc_info=True)

    async def _write_response(
        self,
        writer: asyncio.StreamWriter,
        status: int,
        body: bytes,
        *,
        content_type: str = "text/plain; charset=utf-8",
    ) -> None:
        phrases = {
            200: "OK",
            400: "Bad Request",
            404: "Not Found",
            405: "Method Not Allowed",
        }
        status_line = f"HTTP/1.1 {status} {phrases.get(status, 'Error')}\r\n"
        headers = f"Content-Type: {content_type}\r\n" f"Content-Length: {len(body)}\r\n" "Connection: close\r\n\r\n"
        writer.write(status_line.encode("ascii") + headers.encode("ascii") + body)
        await writer.drain()

    def _render_metrics(self) -> bytes:
        return generate_latest(self._registry)


__all__ = ["PrometheusExporter"]
