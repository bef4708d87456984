# Completion client: one chat-completion call per attempt, bounded retry on rate limits,
# per-attempt deadline that cancels the in-flight request.


import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import structlog
from opentelemetry import trace

from cardgen.config import Settings
from cardgen.exceptions import (
    ConfigurationError,
    MalformedResponseError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
)
from cardgen.services.metrics import ServiceMetrics
from cardgen.services.prompts import build_messages
from cardgen.services.retry import RetryPolicy, retry_async
from cardgen.services.validator import validate_card

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

# Substrings in an error body's type/code/message that mean quota or rate exhaustion.
_RATE_LIMIT_MARKERS: tuple[str, ...] = (
    "rate_limit",
    "rate limit",
    "insufficient_quota",
    "quota",
)


def is_rate_limit_failure(status_code: int, error: dict[str, Any]) -> bool:
    """Classify a failed provider response as rate/quota exhaustion."""
    if status_code == 429:
        return True
    haystack = " ".join(
        str(error.get(key) or "") for key in ("type", "code", "message")
    ).lower()
    return any(marker in haystack for marker in _RATE_LIMIT_MARKERS)


def _error_object(response: httpx.Response) -> dict[str, Any]:
    """Pull the ``error`` object out of a failure body, tolerating junk."""
    try:
        body = response.json()
    except ValueError:
        return {}
    if not isinstance(body, dict):
        return {}
    error = body.get("error")
    if isinstance(error, dict):
        return error
    if isinstance(error, str):
        return {"message": error}
    return {}


class CompletionClient:
    """Builds the prompt, calls the provider, and validates the card."""

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        *,
        metrics: ServiceMetrics | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self._client = http_client
        self._metrics = metrics
        self._sleep = sleep
        self._policy = RetryPolicy(
            max_attempts=settings.max_attempts,
            delay_seconds=settings.retry_delay_seconds,
            retry_on=lambda exc: isinstance(exc, RateLimitError),
        )

    @property
    def url(self) -> str:
        return f"{self._settings.openai_base_url.rstrip('/')}/chat/completions"

    async def complete(self, description: str) -> dict[str, Any]:
        """Generate a card for ``description``.

        Raises ConfigurationError before any network I/O when the credential
        is missing. Only RateLimitError is retried; validation runs once on
        the final message text and is never retried.
        """
        api_key = self._settings.openai_api_key.get_secret_value()
        if not api_key:
            logger.error("provider_credential_missing", hint="Set OPENAI_API_KEY")
            raise ConfigurationError()

        payload = {
            "model": self._settings.openai_model,
            "messages": build_messages(description),
            "temperature": self._settings.temperature,
        }
        headers = {"Authorization": f"Bearer {api_key}"}

        content = await retry_async(
            lambda: self._attempt(payload, headers),
            self._policy,
            sleep=self._sleep,
            on_retry=self._on_retry,
        )

        try:
            return validate_card(content)
        except MalformedResponseError as e:
            logger.warning("card_validation_failed", reason=e.reason, raw_text=content[:500])
            raise

    def _on_retry(self, attempt: int, exc: BaseException) -> None:
        if self._metrics:
            self._metrics.record_retry()

    async def _attempt(self, payload: dict[str, Any], headers: dict[str, str]) -> str:
        """One provider call under the per-attempt deadline. Returns message text."""
        timeout_s = self._settings.provider_timeout_seconds
        with tracer.start_as_current_span("provider_call") as span:
            if self._metrics:
                self._metrics.record_provider_attempt()
            try:
                # wait_for cancels the post() task on expiry; httpx then closes
                # the connection instead of returning it to the pool.
                response = await asyncio.wait_for(
                    self._client.post(self.url, json=payload, headers=headers),
                    timeout=timeout_s,
                )
            except (TimeoutError, httpx.TimeoutException):
                logger.warning("provider_timeout", timeout_s=timeout_s)
                raise ProviderTimeoutError(timeout_s) from None
            except httpx.RequestError as e:
                logger.error("provider_request_failed", error=str(e), error_type=type(e).__name__)
                raise ProviderError(str(e)) from e

            span.set_attribute("http.status_code", response.status_code)
            if response.is_success:
                return self._message_content(response)
            raise self._classify_failure(response)

    def _classify_failure(self, response: httpx.Response) -> Exception:
        error = _error_object(response)
        message = error.get("message")
        if is_rate_limit_failure(response.status_code, error):
            logger.warning(
                "provider_rate_limited",
                status=response.status_code,
                error_type=error.get("type"),
                provider_message=message,
            )
            return RateLimitError(retry_after=self._settings.rate_limit_retry_after_seconds)

        logger.error(
            "provider_error_response",
            status=response.status_code,
            error_type=error.get("type"),
            provider_message=message,
        )
        return ProviderError(
            str(message) if message else "Provider API request failed",
            provider_status=response.status_code,
        )

    @staticmethod
    def _message_content(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponseError("provider body is not JSON", raw_text=response.text) from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise MalformedResponseError(
                "provider body has no choices[0].message.content", raw_text=response.text
            ) from e

        if not isinstance(content, str) or not content:
            raise MalformedResponseError("empty message content", raw_text=response.text)
        return content
