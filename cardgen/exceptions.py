# ─────────────────────────────────────────────────────────────────────────────
# Custom Exceptions + FastAPI Exception Handlers
# ─────────────────────────────────────────────────────────────────────────────


import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)


# ── Exception hierarchy ──────────────────────────────────────────────────────


class CardServiceError(Exception):
    """Base exception for all card generation errors.

    ``message`` and ``details`` are the only fields ever sent to the caller.
    Diagnostic context lives on subclass attributes and goes to logs.
    """

    def __init__(self, message: str, details: str, status_code: int = 500):
        self.message = message
        self.details = details
        self.status_code = status_code
        super().__init__(message)

    def to_body(self) -> dict[str, object]:
        return {"error": self.message, "details": self.details}


class BusyError(CardServiceError):
    """Raised when the admission gate is full. Load shedding, not a failure."""

    def __init__(self) -> None:
        super().__init__(
            "Server busy",
            "Too many concurrent requests. Please try again in a few seconds.",
            status_code=429,
        )


class InvalidRequestError(CardServiceError):
    """Raised when the request body has no usable description."""

    def __init__(self, details: str = "Request body must include a non-empty 'description' string."):
        super().__init__("Description is required", details, status_code=400)


class ConfigurationError(CardServiceError):
    """Raised when the provider credential is missing. Never retried."""

    def __init__(self) -> None:
        super().__init__(
            "Server misconfigured",
            "The AI service credential is not configured.",
            status_code=500,
        )


class ProviderTimeoutError(CardServiceError):
    """Raised when a provider call exceeds the per-attempt deadline."""

    def __init__(self, timeout_s: float):
        self.timeout_s = timeout_s
        super().__init__(
            "Request timed out",
            f"The AI service did not respond within {timeout_s:g} seconds.",
            status_code=504,
        )


class RateLimitError(CardServiceError):
    """Raised when the provider reports rate or quota exhaustion.

    ``retry_after`` is the only extra field; the exception handler copies it
    into the ``retryAfter`` body field and the Retry-After header.
    """

    def __init__(self, retry_after: int = 3600):
        self.retry_after = retry_after
        super().__init__(
            "Rate limit exceeded",
            "The AI service is currently at capacity. Please try again in about an hour.",
            status_code=429,
        )

    def to_body(self) -> dict[str, object]:
        return {**super().to_body(), "retryAfter": self.retry_after}


class ProviderError(CardServiceError):
    """Raised for any other non-success provider response."""

    def __init__(self, provider_message: str | None = None, provider_status: int | None = None):
        self.provider_message = provider_message
        self.provider_status = provider_status
        super().__init__(
            "AI service request failed",
            "The AI service returned an error while generating the card.",
            status_code=500,
        )


class MalformedResponseError(CardServiceError):
    """Raised when the provider succeeded but its output is not a valid card."""

    def __init__(self, reason: str, raw_text: str | None = None):
        self.reason = reason
        self.raw_text = raw_text
        super().__init__(
            "Invalid Adaptive Card format",
            "The AI service returned output that is not a valid Adaptive Card.",
            status_code=500,
        )


# ── Handler registration ────────────────────────────────────────────────────


def register_exception_handlers(app: FastAPI) -> None:
    """Register all custom exception handlers on the FastAPI app.

    Endpoints raise CardServiceError subclasses; these handlers catch them
    and return structured JSON -- no inline try/except in endpoints.
    """

    @app.exception_handler(RateLimitError)
    async def rate_limit_handler(request: Request, exc: RateLimitError) -> JSONResponse:
        """429 with Retry-After header and retryAfter body field."""
        logger.warning("rate_limited_response", error=exc.message, retry_after=exc.retry_after)
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_body(),
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(BusyError)
    async def busy_handler(request: Request, exc: BusyError) -> JSONResponse:
        logger.info("busy_response", path=request.url.path)
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Pydantic body errors use the service error shape, not FastAPI's 422."""
        logger.info("invalid_request", path=request.url.path, errors=len(exc.errors()))
        metrics = getattr(request.app.state, "metrics", None)
        if metrics is not None:
            metrics.record_request("invalid_request")
        error = InvalidRequestError()
        return JSONResponse(status_code=error.status_code, content=error.to_body())

    @app.exception_handler(CardServiceError)
    async def card_service_error_handler(request: Request, exc: CardServiceError) -> JSONResponse:
        logger.error("card_service_error", error=exc.message, error_type=type(exc).__name__)
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled_error", error=str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "details": "An error occurred while generating the card.",
            },
        )
