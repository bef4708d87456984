# ─────────────────────────────────────────────────────────────────────────────
# Service Info + Health Check Routes
# ─────────────────────────────────────────────────────────────────────────────
#   /              → Service banner: status, endpoints, version.
#   /health        → Liveness probe. Returns 200 always.
#   /health/ready  → Readiness probe. 503 until the provider credential is set.
#   /metrics       → Request outcome counters and latency.
# ─────────────────────────────────────────────────────────────────────────────

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from cardgen import __version__
from cardgen.config import Settings
from cardgen.dependencies import get_admission_gate, get_metrics, get_settings_dep
from cardgen.schemas import LivenessResponse, ReadinessResponse, ServiceInfoResponse
from cardgen.services.admission import AdmissionGate
from cardgen.services.metrics import ServiceMetrics

router = APIRouter()


@router.get("/", response_model=ServiceInfoResponse)
async def service_info() -> ServiceInfoResponse:
    return ServiceInfoResponse(version=__version__)


@router.get("/health", response_model=LivenessResponse)
async def liveness() -> LivenessResponse:
    """Liveness probe. No deps, no I/O."""
    return LivenessResponse(status="ok")


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness(
    settings: Settings = Depends(get_settings_dep),
    gate: AdmissionGate = Depends(get_admission_gate),
) -> JSONResponse:
    """Readiness probe: ready once the provider credential is configured.

    A full admission gate is still "ready"; busy callers get 429 from
    /generate-card and retry.
    """
    ready = settings.has_credential
    response = ReadinessResponse(
        status="ready" if ready else "not_ready",
        credential_configured=ready,
        active_requests=gate.active,
        max_concurrent_requests=gate.max_concurrent,
    )
    return JSONResponse(
        status_code=200 if ready else 503,
        content=response.model_dump(),
    )


@router.get("/metrics")
async def metrics_endpoint(
    metrics: ServiceMetrics = Depends(get_metrics),
) -> dict[str, Any]:
    """Request outcome counters, provider attempts, and latency percentiles."""
    return metrics.to_dict()
