# Generation request pipeline: admit → complete → validate → release.
# The admission slot is released on every exit path; errors propagate to the handlers.


import time
from typing import Any

import structlog
from opentelemetry import trace

from cardgen.exceptions import (
    BusyError,
    CardServiceError,
    ConfigurationError,
    MalformedResponseError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
)
from cardgen.schemas import GenerateCardRequest
from cardgen.services.admission import AdmissionGate
from cardgen.services.completion import CompletionClient
from cardgen.services.metrics import ServiceMetrics

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

_OUTCOME_BY_ERROR: dict[type[CardServiceError], str] = {
    RateLimitError: "rate_limited",
    ProviderTimeoutError: "timeout",
    ProviderError: "provider_error",
    MalformedResponseError: "malformed_response",
    ConfigurationError: "configuration_error",
}


class CardPipeline:
    """Orchestrates one card generation under the admission gate."""

    def __init__(
        self,
        gate: AdmissionGate,
        completion: CompletionClient,
        metrics: ServiceMetrics | None = None,
    ) -> None:
        self._gate = gate
        self._completion = completion
        self._metrics = metrics

    @property
    def gate(self) -> AdmissionGate:
        return self._gate

    async def generate(self, request: GenerateCardRequest) -> dict[str, Any]:
        """Full pipeline for one request. Raises CardServiceError subclasses."""
        try:
            with self._gate.admitted():
                return await self._generate_admitted(request)
        except BusyError:
            logger.warning(
                "request_rejected_busy",
                active_requests=self._gate.active,
                max_concurrent=self._gate.max_concurrent,
            )
            if self._metrics:
                self._metrics.record_request("busy")
            raise
        finally:
            logger.debug("request_finished", active_requests=self._gate.active)

    async def _generate_admitted(self, request: GenerateCardRequest) -> dict[str, Any]:
        start = time.perf_counter()
        with tracer.start_as_current_span("generate_card") as span:
            span.set_attribute("description_length", len(request.description))
            logger.info(
                "generating_card",
                description=request.description[:200],
                active_requests=self._gate.active,
            )
            try:
                card = await self._completion.complete(request.description)
            except CardServiceError as e:
                elapsed = int((time.perf_counter() - start) * 1000)
                outcome = _OUTCOME_BY_ERROR.get(type(e), "unexpected_error")
                span.set_attribute("outcome", outcome)
                logger.error(
                    "card_generation_failed",
                    outcome=outcome,
                    error=e.message,
                    error_type=type(e).__name__,
                    time_ms=elapsed,
                )
                if self._metrics:
                    self._metrics.record_request(outcome, elapsed)
                raise
            except Exception:
                elapsed = int((time.perf_counter() - start) * 1000)
                span.set_attribute("outcome", "unexpected_error")
                logger.exception("card_generation_crashed", time_ms=elapsed)
                if self._metrics:
                    self._metrics.record_request("unexpected_error", elapsed)
                raise

            elapsed = int((time.perf_counter() - start) * 1000)
            span.set_attribute("outcome", "success")
            span.set_attribute("latency_ms", elapsed)
            logger.info("card_generated", time_ms=elapsed, version=card.get("version"))
            if self._metrics:
                self._metrics.record_request("success", elapsed)
            return card
