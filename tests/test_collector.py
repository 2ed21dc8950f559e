"""Tests for snapshot collection through the MetricBridge."""

from __future__ import annotations

import logging

import pytest

from obsbridge.bridge import METRIC_SPECS, MetricBridge, MetricKind, MetricSample
from obsbridge.config.model import RuntimeConfig
from obsbridge.engine import EncoderInfo, EncoderType, EntityKind, OutputInfo

from mocks import FakeEngine, levels, source


def _by_name(samples: list[MetricSample]) -> dict[str, list[MetricSample]]:
    grouped: dict[str, list[MetricSample]] = {}
    for sample in samples:
        grouped.setdefault(sample.name, []).append(sample)
    return grouped


def _value(samples: list[MetricSample], name: str, **labels: str) -> float:
    for sample in samples:
        if sample.name == name and all(dict(sample.labels).get(k) == v for k, v in labels.items()):
            return sample.value
    raise AssertionError(f"no sample {name} {labels}")


@pytest.fixture()
def rtmp_output() -> OutputInfo:
    return OutputInfo(
        id="rtmp1",
        name="adv_stream",
        display_name="Streaming",
        active=True,
        total_bytes=500,
        total_frames=900,
        dropped_frames=2,
        width=1920,
        height=1080,
        congestion=0.1,
        connect_time_ms=250,
        reconnecting=False,
    )


def test_global_stats_are_converted(bridge: MetricBridge) -> None:
    samples = bridge.on_scrape_requested()

    assert _value(samples, "obs_global_active_fps") == 60.0
    assert _value(samples, "obs_global_average_frame_time_seconds") == pytest.approx(0.004)
    assert _value(samples, "obs_global_frames_total") == 1200
    assert _value(samples, "obs_global_lagged_frames_total") == 3


def test_output_metrics(engine: FakeEngine, bridge: MetricBridge, rtmp_output: OutputInfo) -> None:
    engine.outputs = [rtmp_output]
    samples = bridge.on_scrape_requested()
    labels = {"output_id": "rtmp1", "output_name": "adv_stream"}

    assert _value(samples, "obs_output_info", output_display_name="Streaming") == 1
    assert _value(samples, "obs_output_active", **labels) == 1
    assert _value(samples, "obs_output_bytes_total", **labels) == 500
    assert _value(samples, "obs_output_frames_total", **labels) == 900
    assert _value(samples, "obs_output_dropped_frames_total", **labels) == 2
    assert _value(samples, "obs_output_video_width", **labels) == 1920
    assert _value(samples, "obs_output_video_height", **labels) == 1080
    assert _value(samples, "obs_output_congestion", **labels) == pytest.approx(0.1)
    assert _value(samples, "obs_output_connect_time_seconds", **labels) == pytest.approx(0.25)
    assert _value(samples, "obs_output_reconnecting", **labels) == 0


def test_encoder_dimensions_follow_type(engine: FakeEngine, bridge: MetricBridge) -> None:
    engine.encoders = [
        EncoderInfo(id="aac1", name="aac", encoder_type=EncoderType.AUDIO, codec="aac", sample_rate=48000, width=9),
        EncoderInfo(id="h264", name="x264", encoder_type=EncoderType.VIDEO, codec="h264", width=1280, height=720,
                    sample_rate=44100),
    ]
    samples = bridge.on_scrape_requested()

    assert _value(samples, "obs_encoder_video_width", encoder_id="aac1") == 0
    assert _value(samples, "obs_encoder_video_height", encoder_id="aac1") == 0
    assert _value(samples, "obs_encoder_sample_rate", encoder_id="aac1") == 48000
    assert _value(samples, "obs_encoder_video_width", encoder_id="h264") == 1280
    assert _value(samples, "obs_encoder_video_height", encoder_id="h264") == 720
    assert _value(samples, "obs_encoder_sample_rate", encoder_id="h264") == 0
    assert _value(samples, "obs_encoder_info", encoder_id="h264", encoder_codec="h264") == 1


def test_source_summary_across_three_scrapes(engine: FakeEngine, bridge: MetricBridge) -> None:
    engine.sources = [source("mic", channels=1)]
    first = bridge.on_scrape_requested()
    assert not any(sample.name.startswith("obs_source_") for sample in first)

    second = bridge.on_scrape_requested()
    assert _value(second, "obs_source_audio_magnitude", source_id="mic") == float("-inf")

    for magnitude in (-30.0, -25.0, -40.0):
        engine.emit("mic", levels(magnitude))
    third = bridge.on_scrape_requested()

    assert _value(third, "obs_source_audio_magnitude", source_id="mic", channel="0") == -25.0
    assert _value(third, "obs_source_audio_peak", source_id="mic", channel="0") == -25.0


def test_source_labels_cover_every_channel(engine: FakeEngine, bridge: MetricBridge) -> None:
    engine.sources = [source("desktop", name="Desktop Audio", channels=2)]
    bridge.on_scrape_requested()
    engine.emit("desktop", levels(-10.0, -20.0))
    samples = bridge.on_scrape_requested()

    magnitudes = _by_name(samples)["obs_source_audio_magnitude"]
    assert [dict(sample.labels) for sample in magnitudes] == [
        {"source_id": "desktop", "source_name": "Desktop Audio", "channel": "0"},
        {"source_id": "desktop", "source_name": "Desktop Audio", "channel": "1"},
    ]
    assert [sample.value for sample in magnitudes] == [-10.0, -20.0]


def test_samples_are_ordered_by_subsystem(engine: FakeEngine, bridge: MetricBridge, rtmp_output: OutputInfo) -> None:
    engine.outputs = [rtmp_output]
    engine.encoders = [EncoderInfo(id="aac1", name="aac", encoder_type=EncoderType.AUDIO)]
    bridge.on_scrape_requested()
    samples = bridge.on_scrape_requested()

    subsystems = [sample.name.split("_")[1] for sample in samples]
    order = ["global", "source", "output", "encoder"]
    assert subsystems == sorted(subsystems, key=order.index)
    assert set(subsystems) == set(order)


def test_counter_and_gauge_kinds(engine: FakeEngine, bridge: MetricBridge, rtmp_output: OutputInfo) -> None:
    engine.outputs = [rtmp_output]
    samples = bridge.on_scrape_requested()

    for sample in samples:
        expected = MetricKind.COUNTER if sample.name.endswith("_total") else MetricKind.GAUGE
        assert sample.kind is expected, sample.name


def test_describe_lists_every_family(bridge: MetricBridge) -> None:
    described = dict(bridge.describe())

    assert len(described) == len(METRIC_SPECS)
    assert "obs_source_audio_input_peak" in described
    assert described["obs_output_bytes_total"].kind is MetricKind.COUNTER


def test_custom_namespace(engine: FakeEngine) -> None:
    bridge = MetricBridge(engine, RuntimeConfig(metric_namespace="studio"))
    samples = bridge.on_scrape_requested()

    assert samples[0].name == "studio_global_active_fps"


def test_engine_failures_skip_only_their_block(
    engine: FakeEngine,
    bridge: MetricBridge,
    rtmp_output: OutputInfo,
    caplog: pytest.LogCaptureFixture,
) -> None:
    engine.outputs = [rtmp_output]
    engine.encoders = [EncoderInfo(id="aac1", name="aac", encoder_type=EncoderType.AUDIO)]
    engine.fail_global = True
    engine.fail_enumeration.add(EntityKind.OUTPUT)

    with caplog.at_level(logging.WARNING):
        samples = bridge.on_scrape_requested()

    names = {sample.name for sample in samples}
    assert not any(name.startswith("obs_global_") for name in names)
    assert not any(name.startswith("obs_output_") for name in names)
    assert "obs_encoder_info" in names
    assert "Global statistics unavailable" in caplog.text


def test_encoder_type_given_as_plain_string(engine: FakeEngine, bridge: MetricBridge) -> None:
    engine.encoders = [
        EncoderInfo(id="aac1", name="aac", encoder_type="audio", sample_rate=48000),  # type: ignore[arg-type]
    ]
    samples = bridge.on_scrape_requested()

    assert _value(samples, "obs_encoder_sample_rate", encoder_id="aac1") == 48000
    assert _value(samples, "obs_encoder_video_width", encoder_id="aac1") == 0
