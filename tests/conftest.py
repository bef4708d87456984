# ─────────────────────────────────────────────────────────────────────────────
# Test Fixtures — shared across all tests
# ─────────────────────────────────────────────────────────────────────────────

import os
from collections.abc import Callable, Iterator
from typing import Any

import httpx
import pytest
import respx
from fastapi import FastAPI
from fastapi.testclient import TestClient

from cardgen.config import Settings
from cardgen.main import create_app
from cardgen.services.admission import AdmissionGate
from cardgen.services.completion import CompletionClient
from cardgen.services.metrics import ServiceMetrics
from cardgen.services.pipeline import CardPipeline

PROVIDER_BASE_URL = "https://provider.test/v1"
CHAT_URL = f"{PROVIDER_BASE_URL}/chat/completions"


@pytest.fixture
def test_settings() -> Settings:
    """Settings configured for testing: fake key, fake provider, no retry delay."""
    return Settings(
        openai_api_key="sk-test-key",
        openai_base_url=PROVIDER_BASE_URL,
        retry_delay_seconds=0,
        log_json=False,
        log_level="DEBUG",
    )


@pytest.fixture
def completion_body() -> Callable[[str], dict[str, Any]]:
    """Build an OpenAI-style chat.completion body around message content."""

    def _build(content: str) -> dict[str, Any]:
        return {
            "id": "chatcmpl-test",
            "object": "chat.completion",
            "model": "gpt-3.5-turbo",
            "choices": [
                {
                    "index": 0,
                    "message": {"role": "assistant", "content": content},
                    "finish_reason": "stop",
                }
            ],
            "usage": {"prompt_tokens": 120, "completion_tokens": 40, "total_tokens": 160},
        }

    return _build


@pytest.fixture
def provider() -> Iterator[respx.Router]:
    """respx router intercepting every outbound httpx call.

    Tests add routes for CHAT_URL; any unmocked request fails the test.
    """
    with respx.mock(assert_all_called=False) as router:
        yield router


@pytest.fixture
def gate() -> AdmissionGate:
    return AdmissionGate(max_concurrent=1)


@pytest.fixture
def metrics() -> ServiceMetrics:
    return ServiceMetrics()


@pytest.fixture
def app(test_settings: Settings, gate: AdmissionGate, metrics: ServiceMetrics) -> FastAPI:
    """FastAPI app with test-safe state.

    We clear the settings cache and set env vars so create_app() logs to the
    console, then wire app.state by hand (the lifespan only runs when the
    TestClient is used as a context manager).
    """
    from cardgen.config import get_settings

    get_settings.cache_clear()

    env_overrides = {
        "LOG_JSON": "false",
        "LOG_LEVEL": "DEBUG",
        "ALLOWED_ORIGINS": "*",
    }
    for k, v in env_overrides.items():
        os.environ[k] = v

    try:
        app = create_app()
        install_pipeline(app, test_settings, gate=gate, metrics=metrics)
        return app
    finally:
        for k in env_overrides:
            os.environ.pop(k, None)
        get_settings.cache_clear()


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """FastAPI TestClient over the test app."""
    return TestClient(app)


def install_pipeline(
    app: FastAPI,
    settings: Settings,
    *,
    gate: AdmissionGate | None = None,
    metrics: ServiceMetrics | None = None,
) -> CardPipeline:
    """Replace app.state with a pipeline built from ``settings``."""
    gate = gate or AdmissionGate(settings.max_concurrent_requests)
    metrics = metrics or ServiceMetrics()
    completion = CompletionClient(settings, httpx.AsyncClient(), metrics=metrics)
    pipeline = CardPipeline(gate, completion, metrics=metrics)

    app.state.settings = settings
    app.state.metrics = metrics
    app.state.admission_gate = gate
    app.state.card_pipeline = pipeline
    return pipeline


@pytest.fixture
def install() -> Callable[..., CardPipeline]:
    """Rewire an app with different settings (e.g. no credential, short timeout)."""
    return install_pipeline
