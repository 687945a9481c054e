"""Prometheus metric definitions for the relay."""

from prometheus_client import Counter, Histogram, generate_latest
from starlette.responses import Response


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "route", "method", "status_code"],
)
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration seconds",
    ["service", "route", "method"],
)
gateway_requests_total = Counter(
    "gateway_requests_total",
    "Outbound payment gateway calls by outcome",
    ["operation", "outcome"],
)
gateway_latency_seconds = Histogram(
    "gateway_latency_seconds",
    "Outbound payment gateway latency seconds",
    ["operation"],
)
orders_created_total = Counter("orders_created_total", "Orders accepted by the gateway", ["service"])
payment_verifications_total = Counter(
    "payment_verifications_total",
    "Payment status lookups by result",
    ["service", "result"],
)
webhook_verifications_total = Counter(
    "webhook_verifications_total",
    "Inbound webhook authentication outcomes",
    ["service", "outcome"],
)


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
