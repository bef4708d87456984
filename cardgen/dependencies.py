# ─────────────────────────────────────────────────────────────────────────────
# Dependency Injection — FastAPI Depends() providers
# ─────────────────────────────────────────────────────────────────────────────
# State flows: lifespan creates → app.state stores → Depends() injects.
# No global variables. Every dependency is explicit in endpoint signatures.
# ─────────────────────────────────────────────────────────────────────────────


from fastapi import Request

from cardgen.config import Settings
from cardgen.services.admission import AdmissionGate
from cardgen.services.metrics import ServiceMetrics
from cardgen.services.pipeline import CardPipeline


def get_settings_dep(request: Request) -> Settings:
    """Inject Settings into endpoints via Depends()."""
    return request.app.state.settings  # type: ignore[no-any-return]


def get_metrics(request: Request) -> ServiceMetrics:
    """Inject ServiceMetrics into endpoints via Depends()."""
    return request.app.state.metrics  # type: ignore[no-any-return]


def get_admission_gate(request: Request) -> AdmissionGate:
    """Inject the AdmissionGate into endpoints via Depends()."""
    return request.app.state.admission_gate  # type: ignore[no-any-return]


def get_card_pipeline(request: Request) -> CardPipeline:
    """Inject CardPipeline into endpoints via Depends()."""
    return request.app.state.card_pipeline  # type: ignore[no-any-return]
