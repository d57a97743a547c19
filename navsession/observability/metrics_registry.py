#!/usr/bin/env python3

"""Prometheus metrics registry helpers with no-op proxies when disabled."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

if TYPE_CHECKING:
    from navsession.config.config_schema import ObservabilityConfig

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "navsession"


class _MetricProxy:
    """Holds an optional bound metric; every call is a no-op while unbound."""

    def __init__(self) -> None:
        self._metric: Optional[Any] = None

    def set_metric(self, metric: Optional[Any]) -> None:
        self._metric = metric


class _StepCounterProxy(_MetricProxy):
    """Wrapper for executed step counter."""

    def inc(self, result: str, amount: float = 1.0) -> None:
        metric = self._metric
        if metric is None:
            return
        metric.labels(result=result).inc(amount)


class _StepDurationHistogramProxy(_MetricProxy):
    """Wrapper for step duration histogram."""

    def observe(self, seconds: float) -> None:
        metric = self._metric
        if metric is None:
            return
        metric.observe(max(seconds, 0.0))


class _PlainCounterProxy(_MetricProxy):
    def inc(self, amount: float = 1.0) -> None:
        metric = self._metric
        if metric is None:
            return
        metric.inc(amount)


class _GaugeProxy(_MetricProxy):
    def inc(self, amount: float = 1.0) -> None:
        metric = self._metric
        if metric is None:
            return
        metric.inc(amount)

    def dec(self, amount: float = 1.0) -> None:
        metric = self._metric
        if metric is None:
            return
        metric.dec(amount)


class _SessionStopCounterProxy(_MetricProxy):
    """Wrapper for session stop counter (manual vs automatic)."""

    def inc(self, reason: str, amount: float = 1.0) -> None:
        metric = self._metric
        if metric is None:
            return
        metric.labels(reason=reason).inc(amount)


class MetricsBundle:
    """Container exposing all metric proxies."""

    def __init__(self) -> None:
        self.steps = _StepCounterProxy()
        self.step_duration = _StepDurationHistogramProxy()
        self.wait_timeouts = _PlainCounterProxy()
        self.interaction_retries = _PlainCounterProxy()
        self.teardown_admission_waits = _PlainCounterProxy()
        self.teardowns_in_progress = _GaugeProxy()
        self.suppressed_step_failures = _PlainCounterProxy()
        self.sessions_stopped = _SessionStopCounterProxy()

    def assign(self, metrics_map: dict[str, Any]) -> None:
        """Bind proxies to real metrics."""
        self.steps.set_metric(metrics_map.get("steps"))
        self.step_duration.set_metric(metrics_map.get("step_duration"))
        self.wait_timeouts.set_metric(metrics_map.get("wait_timeouts"))
        self.interaction_retries.set_metric(metrics_map.get("interaction_retries"))
        self.teardown_admission_waits.set_metric(metrics_map.get("teardown_admission_waits"))
        self.teardowns_in_progress.set_metric(metrics_map.get("teardowns_in_progress"))
        self.suppressed_step_failures.set_metric(metrics_map.get("suppressed_step_failures"))
        self.sessions_stopped.set_metric(metrics_map.get("sessions_stopped"))

    def reset(self) -> None:
        """Clear metric bindings (no-op proxies)."""
        self.assign({})


class MetricsRegistry:
    """Central Prometheus registry manager with enable/disable support."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._enabled = False
        self._namespace = DEFAULT_NAMESPACE
        self._registry: Optional[CollectorRegistry] = None
        self._metrics = MetricsBundle()

    def configure(self, settings: Optional[ObservabilityConfig]) -> None:
        """Configure metrics using Observability settings."""
        with self._lock:
            if settings is None or not settings.enable_prometheus_metrics:
                if self._enabled:
                    logger.info("Prometheus metrics disabled by configuration")
                self._disable_locked()
                return

            namespace = settings.metrics_namespace or DEFAULT_NAMESPACE
            if self._enabled and self._registry is not None and self._namespace == namespace:
                return

            registry = CollectorRegistry(auto_describe=True)
            self._metrics.assign(self._create_metrics(namespace, registry))
            self._registry = registry
            self._namespace = namespace
            self._enabled = True
            logger.info("Prometheus metrics enabled (namespace=%s)", namespace)

    def status(self) -> dict[str, Any]:
        """Return a debug snapshot of the metrics subsystem state."""
        with self._lock:
            return {
                "enabled": self._enabled,
                "namespace": self._namespace,
                "registry_attached": self._registry is not None,
            }

    def reset(self) -> None:
        """Disable metrics and clear existing registry."""
        with self._lock:
            self._disable_locked()

    def _disable_locked(self) -> None:
        self._enabled = False
        self._registry = None
        self._metrics.reset()

    @staticmethod
    def _create_metrics(namespace: str, registry: CollectorRegistry) -> dict[str, Any]:
        """Create Prometheus metrics in the provided registry."""
        return {
            "steps": Counter(
                "steps_total",
                "Navigation steps executed, by result",
                labelnames=("result",),
                namespace=namespace,
                registry=registry,
            ),
            "step_duration": Histogram(
                "step_duration_seconds",
                "Wall-clock duration of a navigation step",
                namespace=namespace,
                buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
                registry=registry,
            ),
            "wait_timeouts": Counter(
                "wait_timeouts_total",
                "Pausable waits that exhausted their timeout",
                namespace=namespace,
                registry=registry,
            ),
            "interaction_retries": Counter(
                "interaction_retries_total",
                "Transient interaction failures that were retried",
                namespace=namespace,
                registry=registry,
            ),
            "teardown_admission_waits": Counter(
                "teardown_admission_waits_total",
                "Times a session waited for a teardown slot",
                namespace=namespace,
                registry=registry,
            ),
            "teardowns_in_progress": Gauge(
                "teardowns_in_progress",
                "Sessions currently releasing their driver",
                namespace=namespace,
                registry=registry,
            ),
            "suppressed_step_failures": Counter(
                "suppressed_step_failures_total",
                "Step failures observed after the session had already stopped",
                namespace=namespace,
                registry=registry,
            ),
            "sessions_stopped": Counter(
                "sessions_stopped_total",
                "Sessions that reached the stopped state",
                labelnames=("reason",),
                namespace=namespace,
                registry=registry,
            ),
        }

    def get_registry(self) -> Optional[CollectorRegistry]:
        """Return the active Prometheus registry (if enabled)."""
        return self._registry

    @property
    def metrics(self) -> MetricsBundle:
        return self._metrics

    def is_enabled(self) -> bool:
        return self._enabled


_METRICS_REGISTRY = MetricsRegistry()


def configure_metrics(settings: Optional[ObservabilityConfig]) -> None:
    """Configure global metrics using provided settings."""
    _METRICS_REGISTRY.configure(settings)


def reset_metrics() -> None:
    """Disable metrics emission and drop the registry."""
    _METRICS_REGISTRY.reset()


def metrics() -> MetricsBundle:
    """Return the shared MetricsBundle (proxies are safe when disabled)."""
    return _METRICS_REGISTRY.metrics


def get_metrics_registry() -> Optional[CollectorRegistry]:
    """Return the active Prometheus registry for exporter wiring."""
    return _METRICS_REGISTRY.get_registry()


def is_metrics_enabled() -> bool:
    return _METRICS_REGISTRY.is_enabled()


def get_metrics_status() -> dict[str, Any]:
    return _METRICS_REGISTRY.status()
