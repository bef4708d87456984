# ─────────────────────────────────────────────────────────────────────────────
# Completion Client Tests — respx
# ─────────────────────────────────────────────────────────────────────────────
# respx intercepts the httpx requests the client makes to the provider at
# the transport layer (in-process, no network). The timeout test uses a
# hand-written hanging client instead, to observe cancellation directly.
# ─────────────────────────────────────────────────────────────────────────────

import asyncio
import json

import httpx
import pytest
from pydantic import SecretStr

from cardgen.config import Settings
from cardgen.exceptions import (
    ConfigurationError,
    MalformedResponseError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
)
from cardgen.services.completion import CompletionClient, is_rate_limit_failure
from cardgen.services.metrics import ServiceMetrics

CHAT_URL = "https://provider.test/v1/chat/completions"
WEATHER_CARD = {"type": "AdaptiveCard", "body": []}
RATE_LIMIT_BODY = {
    "error": {
        "message": "Rate limit reached for requests",
        "type": "requests",
        "code": "rate_limit_exceeded",
    }
}


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
async def make_client(test_settings: Settings, sleeps: list[float]):
    """Build a CompletionClient over a fresh httpx.AsyncClient with a recording sleep."""
    http_clients: list[httpx.AsyncClient] = []

    async def _sleep(delay: float) -> None:
        sleeps.append(delay)

    def _make(settings: Settings | None = None, metrics: ServiceMetrics | None = None):
        http = httpx.AsyncClient()
        http_clients.append(http)
        return CompletionClient(
            settings or test_settings, http, metrics=metrics, sleep=_sleep
        )

    yield _make

    for http in http_clients:
        await http.aclose()


def _with(settings: Settings, **overrides) -> Settings:
    return settings.model_copy(update=overrides)


class TestSuccess:
    async def test_weather_widget_round_trip(self, provider, make_client, completion_body):
        provider.post(CHAT_URL).mock(
            return_value=httpx.Response(
                200, json=completion_body('{"type":"AdaptiveCard","body":[]}')
            )
        )

        card = await make_client().complete("a weather widget")

        assert card == WEATHER_CARD

    async def test_outbound_request_shape(self, provider, make_client, completion_body):
        route = provider.post(CHAT_URL).mock(
            return_value=httpx.Response(200, json=completion_body(json.dumps(WEATHER_CARD)))
        )

        await make_client().complete("a weather widget")

        request = route.calls.last.request
        assert request.headers["Authorization"] == "Bearer sk-test-key"
        body = json.loads(request.content)
        assert body["model"] == "gpt-3.5-turbo"
        assert body["temperature"] == 0.7
        assert [m["role"] for m in body["messages"]] == ["system", "user"]
        assert "a weather widget" in body["messages"][1]["content"]

    async def test_trailing_slash_base_url(self, provider, make_client, test_settings, completion_body):
        route = provider.post(CHAT_URL).mock(
            return_value=httpx.Response(200, json=completion_body(json.dumps(WEATHER_CARD)))
        )
        settings = _with(test_settings, openai_base_url="https://provider.test/v1/")

        await make_client(settings).complete("x")

        assert route.call_count == 1


class TestConfiguration:
    async def test_missing_credential_makes_no_call(self, provider, make_client, test_settings):
        route = provider.post(CHAT_URL).mock(return_value=httpx.Response(200, json={}))
        settings = _with(test_settings, openai_api_key=SecretStr(""))

        with pytest.raises(ConfigurationError) as exc_info:
            await make_client(settings).complete("a weather widget")

        assert exc_info.value.status_code == 500
        assert not route.called


class TestRateLimit:
    async def test_429_retried_then_surfaced(self, provider, make_client, test_settings, sleeps):
        route = provider.post(CHAT_URL).mock(
            return_value=httpx.Response(429, json=RATE_LIMIT_BODY)
        )
        settings = _with(test_settings, retry_delay_seconds=2)
        metrics = ServiceMetrics()

        with pytest.raises(RateLimitError) as exc_info:
            await make_client(settings, metrics).complete("a weather widget")

        assert exc_info.value.retry_after == 3600
        assert exc_info.value.status_code == 429
        assert route.call_count == 3
        assert sleeps == [2, 2]
        assert metrics.provider_attempts == 3
        assert metrics.retries == 2

    async def test_429_then_success(self, provider, make_client, completion_body):
        route = provider.post(CHAT_URL).mock(
            side_effect=[
                httpx.Response(429, json=RATE_LIMIT_BODY),
                httpx.Response(200, json=completion_body(json.dumps(WEATHER_CARD))),
            ]
        )

        card = await make_client().complete("a weather widget")

        assert card == WEATHER_CARD
        assert route.call_count == 2

    async def test_quota_body_without_429(self, provider, make_client):
        route = provider.post(CHAT_URL).mock(
            return_value=httpx.Response(
                403,
                json={
                    "error": {
                        "message": "You exceeded your current quota.",
                        "type": "insufficient_quota",
                    }
                },
            )
        )

        with pytest.raises(RateLimitError):
            await make_client().complete("x")
        assert route.call_count == 3

    async def test_429_with_non_json_body(self, provider, make_client):
        provider.post(CHAT_URL).mock(return_value=httpx.Response(429, text="slow down"))

        with pytest.raises(RateLimitError):
            await make_client().complete("x")


class TestProviderErrors:
    async def test_500_not_retried(self, provider, make_client, sleeps):
        route = provider.post(CHAT_URL).mock(
            return_value=httpx.Response(500, json={"error": {"message": "The server had an error"}})
        )

        with pytest.raises(ProviderError) as exc_info:
            await make_client().complete("x")

        assert exc_info.value.provider_message == "The server had an error"
        assert exc_info.value.provider_status == 500
        assert route.call_count == 1
        assert sleeps == []

    async def test_401_without_body(self, provider, make_client):
        provider.post(CHAT_URL).mock(return_value=httpx.Response(401))

        with pytest.raises(ProviderError) as exc_info:
            await make_client().complete("x")

        assert exc_info.value.provider_message == "Provider API request failed"

    async def test_connection_error(self, provider, make_client):
        route = provider.post(CHAT_URL).mock(side_effect=httpx.ConnectError("Connection refused"))

        with pytest.raises(ProviderError):
            await make_client().complete("x")
        assert route.call_count == 1


class TestMalformed:
    @pytest.mark.parametrize(
        "content",
        [
            "Sure! Here is your card.",
            '{"type": "MessageCard"}',
            '["AdaptiveCard"]',
        ],
    )
    async def test_bad_content_never_retried(self, provider, make_client, completion_body, content):
        route = provider.post(CHAT_URL).mock(
            return_value=httpx.Response(200, json=completion_body(content))
        )

        with pytest.raises(MalformedResponseError):
            await make_client().complete("x")
        assert route.call_count == 1

    async def test_no_choices(self, provider, make_client):
        provider.post(CHAT_URL).mock(return_value=httpx.Response(200, json={"choices": []}))

        with pytest.raises(MalformedResponseError):
            await make_client().complete("x")

    async def test_non_json_success_body(self, provider, make_client):
        provider.post(CHAT_URL).mock(return_value=httpx.Response(200, text="<html>oops</html>"))

        with pytest.raises(MalformedResponseError) as exc_info:
            await make_client().complete("x")
        assert exc_info.value.raw_text == "<html>oops</html>"

    async def test_empty_content(self, provider, make_client, completion_body):
        provider.post(CHAT_URL).mock(return_value=httpx.Response(200, json=completion_body("")))

        with pytest.raises(MalformedResponseError):
            await make_client().complete("x")


class _HangingClient:
    """Stand-in for httpx.AsyncClient whose post() never returns on its own."""

    def __init__(self) -> None:
        self.calls = 0
        self.cancelled = 0

    async def post(self, url, json=None, headers=None):  # noqa: A002
        self.calls += 1
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled += 1
            raise


class TestTimeout:
    async def test_deadline_cancels_in_flight_call(self, test_settings):
        hanging = _HangingClient()
        settings = _with(test_settings, provider_timeout_seconds=0.05)
        client = CompletionClient(settings, hanging)  # type: ignore[arg-type]

        with pytest.raises(ProviderTimeoutError) as exc_info:
            await client.complete("a weather widget")

        assert exc_info.value.status_code == 504
        assert hanging.calls == 1
        assert hanging.cancelled == 1

    async def test_transport_timeout_not_retried(self, provider, make_client, sleeps):
        route = provider.post(CHAT_URL).mock(side_effect=httpx.ReadTimeout("read timed out"))

        with pytest.raises(ProviderTimeoutError):
            await make_client().complete("x")

        assert route.call_count == 1
        assert sleeps == []


class TestClassification:
    @pytest.mark.parametrize(
        ("status", "error", "expected"),
        [
            (429, {}, True),
            (400, {"code": "rate_limit_exceeded"}, True),
            (403, {"type": "insufficient_quota"}, True),
            (400, {"message": "Rate limit reached for gpt-3.5-turbo"}, True),
            (500, {"message": "The server had an error"}, False),
            (400, {"type": "invalid_request_error", "message": "bad model"}, False),
            (401, {}, False),
        ],
    )
    def test_is_rate_limit_failure(self, status, error, expected):
        assert is_rate_limit_failure(status, error) is expected
