"""Metric bridge: registry, reconciler, samplers and snapshot collection."""

from .collector import METRIC_SPECS, MetricKind, MetricSample, MetricSpec, SnapshotCollector
from .core import MetricBridge
from .reconciler import LifecycleReconciler, ReconcileStats
from .registry import AudioSubscription, EntityRegistry, TrackedEntity
from .sampler import RingSampler, SampleWindow

__all__ = [
    "METRIC_SPECS",
    "AudioSubscription",
    "EntityRegistry",
    "LifecycleReconciler",
    "MetricBridge",
    "MetricKind",
    "MetricSample",
    "MetricSpec",
    "ReconcileStats",
    "RingSampler",
    "SampleWindow",
    "SnapshotCollector",
    "TrackedEntity",
]
