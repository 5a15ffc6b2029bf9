"""Prometheus metric definitions for the ledger service."""

from prometheus_client import Counter, Histogram, generate_latest
from starlette.responses import Response


ledger_mutations_total = Counter(
    "ledger_mutations_total",
    "Ledger entry mutations by history action",
    ["service", "action"],
)
game_balance_deltas_total = Counter(
    "game_balance_deltas_total",
    "Game balance delta requests by outcome",
    ["service", "outcome"],
)
history_write_failures_total = Counter(
    "history_write_failures_total",
    "History records that could not be written",
    ["service", "action"],
)
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


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
