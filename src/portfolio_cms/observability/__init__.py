"""Observability: structured logging, Prometheus/OTel metrics and tracing."""

from portfolio_cms.observability.context import get_trace_context, set_trace_context, trace_context
from portfolio_cms.observability.logging import JsonFormatter, configure_logging
from portfolio_cms.observability.metrics import (
    CONTENT_MUTATIONS,
    ERROR_COUNT,
    INDEX_ROW_COUNT,
    MIGRATION_EVENTS,
    REQUEST_COUNT,
    REQUEST_LATENCY,
    SEARCH_CACHE_EVENTS,
    SEARCH_LATENCY,
    get_metrics,
    get_metrics_content_type,
    init_metrics,
    track_latency,
)
from portfolio_cms.observability.tracing import (
    TraceContextMiddleware,
    configure_trace_exporter,
    create_span,
    get_tracer,
    init_tracing,
    trace_request,
)


__all__ = [
    "CONTENT_MUTATIONS",
    "ERROR_COUNT",
    "INDEX_ROW_COUNT",
    "MIGRATION_EVENTS",
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "SEARCH_CACHE_EVENTS",
    "SEARCH_LATENCY",
    "JsonFormatter",
    "TraceContextMiddleware",
    "configure_logging",
    "configure_trace_exporter",
    "create_span",
    "get_metrics",
    "get_metrics_content_type",
    "get_trace_context",
    "get_tracer",
    "init_metrics",
    "init_tracing",
    "set_trace_context",
    "trace_context",
    "trace_request",
    "track_latency",
]
