"""Tests for the MetricBridge push path, locking and shutdown."""

from __future__ import annotations

import logging
import threading

import pytest

from obsbridge.bridge import MetricBridge
from obsbridge.engine import AudioLevels, MeasurementKind

from mocks import FakeEngine, levels, source


def _magnitude(bridge: MetricBridge, source_id: str, channel: int = 0) -> float:
    entity = bridge.registry.get(source_id)
    assert entity is not None
    for summary_channel, kind, value in entity.summarize():
        if summary_channel == channel and kind is MeasurementKind.MAGNITUDE:
            return value
    raise AssertionError("channel not tracked")


def test_push_for_unknown_source_is_ignored(bridge: MetricBridge, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.DEBUG, logger="obsbridge.bridge"):
        bridge.on_audio_sample("ghost", levels(-1.0, -1.0))

    assert len(bridge.registry) == 0
    assert "untracked source" in caplog.text


def test_push_is_routed_by_subscription(engine: FakeEngine, bridge: MetricBridge) -> None:
    bridge.on_scrape_requested()
    engine.emit("mic", levels(-12.0, -14.0))

    assert _magnitude(bridge, "mic") == -12.0
    assert _magnitude(bridge, "mic", channel=1) == -14.0
    assert _magnitude(bridge, "desktop") == float("-inf")


@pytest.mark.parametrize(
    "payload",
    [
        levels(-1.0),
        levels(10**400, 10**400),
        levels(float("nan"), -3.0),
        AudioLevels((-1.0, -2.0), (-1.0,), (-1.0, -2.0)),
        AudioLevels(("x", "y"), (-1.0, -2.0), (-1.0, -2.0)),  # type: ignore[arg-type]
        {"magnitude": [-1.0, -2.0]},
        None,
    ],
)
def test_malformed_push_is_dropped(engine: FakeEngine, bridge: MetricBridge, payload: object) -> None:
    bridge.on_scrape_requested()

    bridge.on_audio_sample("mic", payload)  # type: ignore[arg-type]

    entity = bridge.registry.get("mic")
    assert entity is not None
    assert all(value == float("-inf") for _, _, value in entity.summarize())


def test_push_after_removal_is_inert(engine: FakeEngine, bridge: MetricBridge) -> None:
    bridge.on_scrape_requested()
    entity = bridge.registry.get("mic")
    assert entity is not None
    sink = engine.meters["mic"].sink

    engine.sources = [source("desktop")]
    bridge.on_scrape_requested()
    sink(levels(-1.0, -1.0))

    assert entity.closed
    assert "mic" not in bridge.registry
    assert all(value == float("-inf") for _, _, value in entity.summarize())


def test_concurrent_pushes_and_scrapes(engine: FakeEngine, bridge: MetricBridge) -> None:
    bridge.on_scrape_requested()
    stop = threading.Event()
    errors: list[BaseException] = []

    def pusher(source_id: str) -> None:
        try:
            value = -60.0
            while not stop.is_set():
                engine.emit(source_id, levels(value, value))
                value = -60.0 if value >= -1.0 else value + 1.0
        except BaseException as exc:  # noqa: BLE001
            errors.append(exc)

    threads = [threading.Thread(target=pusher, args=(source_id,)) for source_id in ("mic", "desktop")]
    for thread in threads:
        thread.start()
    try:
        for index in range(50):
            engine.sources = [source("mic"), source("desktop")] if index % 5 else [source("mic")]
            samples = bridge.on_scrape_requested()
            assert samples
    finally:
        stop.set()
        for thread in threads:
            thread.join(timeout=5)

    assert errors == []
    assert bridge.registry.ids() <= {"mic", "desktop"}


def test_close_releases_every_meter(engine: FakeEngine, bridge: MetricBridge) -> None:
    bridge.on_scrape_requested()
    assert engine.live_meters == {"mic", "desktop"}

    bridge.close()
    bridge.close()

    assert engine.live_meters == set()
    assert sorted(engine.detached) == ["desktop", "mic"]
    assert bridge.on_scrape_requested() == []


def test_last_reconcile_reports_counts(engine: FakeEngine, bridge: MetricBridge) -> None:
    bridge.on_scrape_requested()
    assert bridge.last_reconcile.created == 2

    engine.sources = []
    bridge.on_scrape_requested()
    assert bridge.last_reconcile.destroyed == 2
