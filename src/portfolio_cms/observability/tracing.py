"""OpenTelemetry tracing with Starlette middleware."""

from __future__ import annotations

from contextlib import contextmanager
import logging
from typing import TYPE_CHECKING, Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter as GrpcOTLPSpanExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter as HttpOTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import SpanKind, Status, StatusCode

from portfolio_cms.domain.model import Collection
from portfolio_cms.observability.context import (
    generate_span_id,
    get_trace_context,
    set_trace_context,
    update_span_id,
)
from portfolio_cms.observability.metrics import OTLP_EXPORT_ERRORS, OTLP_EXPORT_STATUS


if TYPE_CHECKING:
    from collections.abc import Generator

    from opentelemetry.trace import Span, Tracer
    from starlette.requests import Request
    from starlette.responses import Response

logger = logging.getLogger(__name__)

_tracer_holder: dict[str, Tracer | None] = {"tracer": None}

_COLLECTION_KEYS = frozenset(collection.value for collection in Collection)


def init_tracing(
    service_name: str = "portfolio-cms",
    resource_attributes: dict[str, str] | None = None,
) -> TracerProvider:
    """Initialize OpenTelemetry tracing."""
    attributes = {"service.name": service_name}
    if resource_attributes:
        attributes.update(resource_attributes)
    provider = TracerProvider(resource=Resource.create(attributes))
    trace.set_tracer_provider(provider)
    _tracer_holder["tracer"] = trace.get_tracer(__name__)
    logger.info("Tracing initialized for service: %s", service_name)
    return provider


def configure_trace_exporter(
    endpoint: str,
    protocol: str = "http",
    provider: TracerProvider | None = None,
) -> bool:
    """Attach an OTLP span exporter; an empty endpoint leaves export disabled.

    Returns:
        True when an exporter was attached
    """
    if not endpoint:
        return False

    active_provider = provider or trace.get_tracer_provider()
    if not isinstance(active_provider, TracerProvider):
        active_provider = init_tracing()

    OTLP_EXPORT_STATUS.labels(protocol=protocol).set(0)
    try:
        if protocol == "grpc":
            exporter = GrpcOTLPSpanExporter(endpoint=endpoint)
        else:
            exporter = HttpOTLPSpanExporter(endpoint=endpoint)
    except Exception as exc:
        logger.error("Failed to configure OTLP exporter: %s", exc, exc_info=True)
        OTLP_EXPORT_ERRORS.labels(protocol=protocol).inc()
        return False

    active_provider.add_span_processor(BatchSpanProcessor(exporter))
    OTLP_EXPORT_STATUS.labels(protocol=protocol).set(1)
    logger.info("OTLP trace export enabled (%s) to %s", protocol, endpoint)
    return True


def collection_from_path(path: str) -> str | None:
    """Collection type key addressed by an ``/api/...`` path, if any."""
    for segment in path.strip("/").split("/")[1:4]:
        if segment in _COLLECTION_KEYS:
            return segment
    return None


def get_tracer() -> Tracer:
    if _tracer_holder["tracer"] is None:
        init_tracing()
    return _tracer_holder["tracer"]  # type: ignore[return-value]


@contextmanager
def create_span(
    name: str,
    kind: SpanKind = SpanKind.INTERNAL,
    attributes: dict[str, Any] | None = None,
) -> Generator[Span, None, None]:
    """Create a traced span with context propagation."""
    tracer = get_tracer()
    with tracer.start_as_current_span(name, kind=kind) as span:
        if attributes:
            for key, value in attributes.items():
                span.set_attribute(key, value)

        ctx = span.get_span_context()
        update_span_id(format(ctx.span_id, "016x"), trace_id=format(ctx.trace_id, "032x"))

        try:
            yield span
        except Exception as exc:
            span.set_status(Status(StatusCode.ERROR, str(exc)))
            span.record_exception(exc)
            raise


class TraceContextMiddleware:
    """ASGI middleware that seeds the trace context for each HTTP request."""

    def __init__(self, app: Any) -> None:
        self.app = app

    async def __call__(self, scope: dict, receive: Any, send: Any) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        trace_id = headers.get(b"x-trace-id", b"").decode() or get_trace_context()["trace_id"]

        extra: dict[str, str] = {}
        if collection := collection_from_path(scope.get("path", "")):
            extra["collection"] = collection
        set_trace_context(trace_id, generate_span_id(), **extra)

        await self.app(scope, receive, send)


async def trace_request(request: Request, call_next: Any) -> Response:
    """Wrap each request in a server span."""
    attributes = {
        "http.method": request.method,
        "http.url": str(request.url),
        "http.route": request.url.path,
    }
    if collection := collection_from_path(request.url.path):
        attributes["portfolio.collection"] = collection

    with create_span("http.request", kind=SpanKind.SERVER, attributes=attributes) as span:
        try:
            response: Response = await call_next(request)
        except Exception as exc:
            span.set_status(Status(StatusCode.ERROR, str(exc)))
            span.record_exception(exc)
            raise

        span.set_attribute("http.status_code", response.status_code)
        if response.status_code >= 400:
            span.set_status(Status(StatusCode.ERROR, f"HTTP {response.status_code}"))
        return response
