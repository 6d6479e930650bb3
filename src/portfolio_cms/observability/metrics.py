"""Prometheus metrics mirrored into OpenTelemetry instruments."""

from __future__ import annotations

from contextlib import contextmanager
import time
from typing import TYPE_CHECKING, Any

from opentelemetry import metrics as otel_metrics
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.resources import Resource
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest


if TYPE_CHECKING:
    from collections.abc import Generator


_meter_holder: dict[str, Any] = {"meter": None, "provider": None}


def init_metrics(
    service_name: str = "portfolio-cms",
    resource_attributes: dict[str, str] | None = None,
) -> MeterProvider:
    """Initialize the OpenTelemetry meter provider once per process."""
    provider = _meter_holder.get("provider")
    if isinstance(provider, MeterProvider):
        return provider

    attributes = {"service.name": service_name}
    if resource_attributes:
        attributes.update(resource_attributes)
    provider = MeterProvider(resource=Resource.create(attributes))
    otel_metrics.set_meter_provider(provider)
    _meter_holder["provider"] = provider
    _meter_holder["meter"] = otel_metrics.get_meter(__name__)
    return provider


def _get_meter():
    meter = _meter_holder.get("meter")
    if meter is None:
        init_metrics()
        meter = _meter_holder.get("meter")
    return meter


def _label_key(labels: dict[str, str]) -> tuple[tuple[str, str], ...]:
    return tuple(sorted(labels.items()))


class _BoundMetric:
    def __init__(self, wrapper: MetricBridge, labels: dict[str, str]) -> None:
        self._wrapper = wrapper
        self._labels = labels

    def inc(self, amount: float = 1.0) -> None:
        self._wrapper.inc(self._labels, amount)

    def observe(self, value: float) -> None:
        self._wrapper.observe(self._labels, value)

    def set(self, value: float) -> None:
        self._wrapper.set(self._labels, value)


class MetricBridge:
    """Record into a Prometheus metric and a lazily created OTel instrument."""

    def __init__(
        self,
        prom_metric: Counter | Histogram | Gauge,
        *,
        otel_name: str,
        otel_description: str,
        otel_kind: str,
    ) -> None:
        self._prom_metric = prom_metric
        self._otel_name = otel_name
        self._otel_description = otel_description
        self._otel_kind = otel_kind
        self._otel_instrument = None
        self._last_values: dict[tuple[tuple[str, str], ...], float] = {}

    def labels(self, **labels: str) -> _BoundMetric:
        return _BoundMetric(self, labels)

    def _ensure_otel_instrument(self):
        if self._otel_instrument is not None:
            return self._otel_instrument
        meter = _get_meter()
        if self._otel_kind == "counter":
            self._otel_instrument = meter.create_counter(self._otel_name, description=self._otel_description)
        elif self._otel_kind == "histogram":
            self._otel_instrument = meter.create_histogram(self._otel_name, description=self._otel_description)
        elif self._otel_kind == "gauge":
            self._otel_instrument = meter.create_up_down_counter(self._otel_name, description=self._otel_description)
        else:
            raise ValueError(f"Unknown metric kind: {self._otel_kind}")
        return self._otel_instrument

    def inc(self, labels: dict[str, str], amount: float) -> None:
        self._prom_metric.labels(**labels).inc(amount)
        self._ensure_otel_instrument().add(amount, labels)

    def observe(self, labels: dict[str, str], value: float) -> None:
        self._prom_metric.labels(**labels).observe(value)
        self._ensure_otel_instrument().record(value, labels)

    def set(self, labels: dict[str, str], value: float) -> None:
        self._prom_metric.labels(**labels).set(value)
        otel = self._ensure_otel_instrument()
        key = _label_key(labels)
        delta = value - self._last_values.get(key, 0.0)
        if delta:
            otel.add(delta, labels)
        self._last_values[key] = value


_PROM_TYPES = {"counter": Counter, "histogram": Histogram, "gauge": Gauge}


def _bridge(kind: str, name: str, documentation: str, labelnames: list[str], **kwargs: Any) -> MetricBridge:
    prom_metric = _PROM_TYPES[kind](name, documentation, labelnames, **kwargs)
    return MetricBridge(prom_metric, otel_name=name, otel_description=documentation, otel_kind=kind)


REQUEST_LATENCY = _bridge(
    "histogram",
    "portfolio_request_latency_seconds",
    "HTTP request latency in seconds",
    ["method", "route"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)
REQUEST_COUNT = _bridge("counter", "portfolio_requests", "Total HTTP requests", ["method", "route", "status"])
ERROR_COUNT = _bridge(
    "counter",
    "portfolio_errors",
    "Requests that ended in an application error",
    ["error_type", "status"],
)

SEARCH_LATENCY = _bridge(
    "histogram",
    "portfolio_search_latency_seconds",
    "Search query latency",
    ["collection", "strategy"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5),
)
SEARCH_CACHE_EVENTS = _bridge(
    "counter",
    "portfolio_search_cache_events",
    "Search result cache lookups",
    ["collection", "outcome"],
)
INDEX_ROW_COUNT = _bridge("gauge", "portfolio_index_rows", "Rows held by a collection's search index", ["collection"])

CONTENT_MUTATIONS = _bridge(
    "counter",
    "portfolio_content_mutations",
    "Committed content writes",
    ["collection", "operation"],
)
MIGRATION_EVENTS = _bridge(
    "counter",
    "portfolio_migration_steps",
    "Schema migration steps that changed the store",
    ["step"],
)

OTLP_EXPORT_ERRORS = _bridge("counter", "portfolio_otlp_export_errors", "OTLP exporter configuration errors", ["protocol"])
OTLP_EXPORT_STATUS = _bridge(
    "gauge",
    "portfolio_otlp_exporter_enabled",
    "OTLP exporter enabled status (1=enabled, 0=disabled)",
    ["protocol"],
)


@contextmanager
def track_latency(histogram: MetricBridge, **labels: str) -> Generator[None, None, None]:
    """Context manager to track operation latency."""
    start = time.perf_counter()
    try:
        yield
    finally:
        histogram.labels(**labels).observe(time.perf_counter() - start)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
