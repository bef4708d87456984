# ─────────────────────────────────────────────────────────────────────────────
# Prometheus Metrics Endpoint — text exposition format
# ─────────────────────────────────────────────────────────────────────────────
# GET /metrics/prometheus → text/plain Prometheus format
# Bridges ServiceMetrics → prometheus-client gauges.
# ─────────────────────────────────────────────────────────────────────────────

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from prometheus_client import CollectorRegistry, Gauge, generate_latest

from cardgen.dependencies import get_admission_gate, get_metrics
from cardgen.services.admission import AdmissionGate
from cardgen.services.metrics import OUTCOMES, ServiceMetrics

router = APIRouter()

# ── Prometheus metrics (custom registry to avoid default process metrics) ─────
# Gauges mirror ServiceMetrics counters at scrape time, so they are set, not
# incremented.

_registry = CollectorRegistry()

_requests = Gauge(
    "cardgen_requests",
    "Finished /generate-card requests by outcome",
    ["outcome"],
    registry=_registry,
)

_provider_attempts = Gauge(
    "cardgen_provider_attempts",
    "Chat-completion calls issued to the provider",
    registry=_registry,
)

_retries = Gauge(
    "cardgen_provider_retries",
    "Provider calls retried after a rate-limit response",
    registry=_registry,
)

_latency_p95 = Gauge(
    "cardgen_latency_p95_ms",
    "95th percentile latency of admitted requests in milliseconds",
    registry=_registry,
)

_active_requests = Gauge(
    "cardgen_active_requests",
    "Requests currently holding an admission slot",
    registry=_registry,
)


def _sync_metrics(metrics: ServiceMetrics, gate: AdmissionGate) -> None:
    """Sync ServiceMetrics data into Prometheus gauges."""
    data = metrics.to_dict()
    for outcome, attr in OUTCOMES.items():
        _requests.labels(outcome=outcome).set(data[attr])
    _provider_attempts.set(data["provider_attempts"])
    _retries.set(data["retries"])
    _latency_p95.set(data["latency_p95_ms"])
    _active_requests.set(gate.active)


@router.get("/metrics/prometheus")
async def prometheus_metrics(
    metrics: ServiceMetrics = Depends(get_metrics),
    gate: AdmissionGate = Depends(get_admission_gate),
) -> Response:
    """Prometheus text exposition format metrics endpoint."""
    _sync_metrics(metrics, gate)
    return Response(
        content=generate_latest(_registry),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
