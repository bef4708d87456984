# ─────────────────────────────────────────────────────────────────────────────
# Request Middleware — request ID propagation and per-request access log
# ─────────────────────────────────────────────────────────────────────────────


import re
import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"

# Probe and scrape paths are too noisy to log per request.
_QUIET_PREFIXES: tuple[str, ...] = ("/health", "/metrics")

# Caller-supplied IDs are echoed into headers and logs, so keep them short and plain.
_CALLER_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def resolve_request_id(header_value: str | None) -> str:
    """Reuse a well-formed caller request ID, otherwise mint an 8-char one."""
    if header_value and _CALLER_ID_PATTERN.match(header_value):
        return header_value
    return uuid.uuid4().hex[:8]


def _access_log_method(status: int):
    # Busy and rate-limit rejections are expected load shedding, not failures.
    if status >= 500:
        return logger.error
    if status == 429:
        return logger.warning
    return logger.info


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds a request ID for every log line of a request and emits one access log."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        structlog.contextvars.bind_contextvars(request_id=request_id)
        start = time.perf_counter()

        try:
            response: Response = await call_next(request)
            duration_ms = round((time.perf_counter() - start) * 1000, 1)

            if not request.url.path.startswith(_QUIET_PREFIXES):
                _access_log_method(response.status_code)(
                    "request_completed",
                    method=request.method,
                    path=request.url.path,
                    status=response.status_code,
                    duration_ms=duration_ms,
                )
        finally:
            structlog.contextvars.unbind_contextvars("request_id")

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Response-Time-Ms"] = str(duration_ms)
        return response
