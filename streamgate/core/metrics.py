from fastapi import Response
from prometheus_client import (CONTENT_TYPE_LATEST, CollectorRegistry, Counter,
                               generate_latest)

# Dedicated registry so we only expose gateway-specific metrics
_registry = CollectorRegistry()

_auth_results_total = Counter(
    "streamgate_auth_results_total",
    "Authentication decisions grouped by result and failure reason",
    ["result", "reason"],
    registry=_registry,
)

_streams_total = Counter(
    "streamgate_streams_total",
    "SSE streams grouped by route and terminal outcome",
    ["route", "outcome"],
    registry=_registry,
)

_outbound_fetches_total = Counter(
    "streamgate_outbound_fetches_total",
    "Outbound engine fetches grouped by delivery path",
    ["path"],
    registry=_registry,
)


def record_auth_result(success: bool, reason: str = "none"):
    """Increment the auth counter, keeping expired and forged tokens apart."""
    _auth_results_total.labels(
        result="success" if success else "failure", reason=reason
    ).inc()


def record_stream_outcome(route: str, outcome: str):
    _streams_total.labels(route=route, outcome=outcome).inc()


def record_outbound_fetch(path: str):
    _outbound_fetches_total.labels(path=path).inc()


def prom_response() -> Response:
    """Return a Response containing the current Prometheus metrics payload."""
    payload = generate_latest(_registry)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)
