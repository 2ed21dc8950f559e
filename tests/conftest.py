"""Pytest configuration for OBS Metrics Bridge tests."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest

PACKAGE_ROOT = Path(__file__).resolve().parents[1]
if str(PACKAGE_ROOT) not in sys.path:
    sys.path.insert(0, str(PACKAGE_ROOT))

from obsbridge.bridge import MetricBridge  # noqa: E402
from obsbridge.config.model import RuntimeConfig  # noqa: E402

from mocks import FakeEngine, source  # noqa: E402


@pytest.fixture(scope="session")
def event_loop_policy():
    """Provide uvloop event loop policy for pytest-asyncio."""
    import warnings

    import uvloop

    with warnings.catch_warnings():
        warnings.filterwarnings(
            "ignore",
            message=".*AbstractEventLoopPolicy.*",
            category=DeprecationWarning,
        )
        policy = uvloop.EventLoopPolicy()
    return policy


@pytest.fixture(autouse=True)
def reset_logging_handlers():
    """Close and remove all logging handlers after each test to prevent ResourceWarnings."""
    yield
    root = logging.getLogger()
    for handler in root.handlers[:]:
        try:
            handler.close()
        except (OSError, RuntimeError):
            pass
        root.removeHandler(handler)


@pytest.fixture()
def runtime_config() -> RuntimeConfig:
    return RuntimeConfig(
        metrics_host="127.0.0.1",
        metrics_port=0,
        sampler_capacity=4,
        exporter_max_restarts=1,
    )


@pytest.fixture()
def engine() -> FakeEngine:
    return FakeEngine(sources=[source("mic"), source("desktop")])


@pytest.fixture()
def bridge(engine: FakeEngine, runtime_config: RuntimeConfig) -> MetricBridge:
    return MetricBridge(engine, runtime_config)
