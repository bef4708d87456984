# FastAPI application factory with lifespan management.
# Entrypoint: uvicorn cardgen.main:create_app --factory --host 0.0.0.0 --port 3000
#         or: cardgen-server  (reads PORT from the environment)

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import httpx
import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cardgen import __version__
from cardgen.config import Settings, get_settings
from cardgen.exceptions import register_exception_handlers
from cardgen.logging_config import configure_logging
from cardgen.middleware import RequestContextMiddleware
from cardgen.routes import generate, health
from cardgen.routes import prometheus as prometheus_routes
from cardgen.services.admission import AdmissionGate
from cardgen.services.completion import CompletionClient
from cardgen.services.metrics import ServiceMetrics
from cardgen.services.pipeline import CardPipeline

logger = structlog.get_logger(__name__)


if TYPE_CHECKING:
    from opentelemetry.sdk.trace import TracerProvider


def _configure_otel(exporter_type: str) -> "TracerProvider | None":
    """Configure OpenTelemetry tracing (console only)."""
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor

    if exporter_type != "console":
        logger.warning("unknown_otel_exporter", exporter=exporter_type)
        return None

    from opentelemetry import trace
    from opentelemetry.sdk.trace.export import ConsoleSpanExporter

    provider = TracerProvider()
    provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)
    logger.info("otel_configured", exporter=exporter_type)
    return provider


def build_http_client(settings: Settings) -> httpx.AsyncClient:
    """Shared connection pool for provider calls.

    The transport timeout matches the per-attempt deadline; the completion
    client additionally bounds each attempt with asyncio.wait_for.
    """
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.provider_timeout_seconds),
        limits=httpx.Limits(
            max_connections=max(settings.max_concurrent_requests, 1) * 2,
            keepalive_expiry=30.0,
        ),
        headers={"Content-Type": "application/json"},
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the pipeline on startup; close the provider connection pool on shutdown."""
    import os

    settings = get_settings()

    otel_provider = None
    otel_exporter = os.environ.get("OTEL_EXPORTER", "")
    if otel_exporter:
        otel_provider = _configure_otel(otel_exporter)

    http_client = build_http_client(settings)
    metrics = ServiceMetrics()
    gate = AdmissionGate(settings.max_concurrent_requests)
    completion = CompletionClient(settings, http_client, metrics=metrics)

    app.state.settings = settings
    app.state.metrics = metrics
    app.state.admission_gate = gate
    app.state.card_pipeline = CardPipeline(gate, completion, metrics=metrics)

    logger.info(
        "server_started",
        port=settings.port,
        model=settings.openai_model,
        has_openai_key=settings.has_credential,
        max_concurrent_requests=settings.max_concurrent_requests,
    )
    if not settings.has_credential:
        logger.warning("openai_key_missing", hint="Set OPENAI_API_KEY; /generate-card returns 500")

    yield

    await http_client.aclose()

    if otel_provider is not None:
        otel_provider.shutdown()


def _parse_origins(allowed_origins: str) -> list[str]:
    """Parse comma-separated CORS origins. Empty string → deny all."""
    if not allowed_origins.strip():
        logger.warning("cors_no_origins_configured")
        return []
    return [origin.strip() for origin in allowed_origins.split(",") if origin.strip()]


def create_app() -> FastAPI:
    """Application factory. Invoked by: uvicorn cardgen.main:create_app --factory"""
    settings = get_settings()
    configure_logging(log_level=settings.log_level, json_output=settings.log_json)

    app = FastAPI(
        title="Adaptive Card Generator",
        description="Generates Adaptive Card JSON from a free-text description",
        version=__version__,
        lifespan=lifespan,
    )

    # Middleware order (Starlette applies in reverse): CORS → RequestContext
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_parse_origins(settings.allowed_origins),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "Origin"],
        allow_credentials=False,
    )

    register_exception_handlers(app)

    app.include_router(health.router, tags=["health"])
    app.include_router(generate.router, tags=["generate"])
    app.include_router(prometheus_routes.router, tags=["prometheus"])

    return app


def serve() -> None:
    """Run the server under uvicorn on settings.port."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "cardgen.main:create_app",
        factory=True,
        host="0.0.0.0",  # noqa: S104
        port=settings.port,
    )
