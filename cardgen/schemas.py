# ─────────────────────────────────────────────────────────────────────────────
# Pydantic v2 Request / Response Schemas
# ─────────────────────────────────────────────────────────────────────────────


from pydantic import BaseModel, ConfigDict, Field


class GenerateCardRequest(BaseModel):
    """Incoming request to generate an Adaptive Card.

    The description is opaque: it is forwarded verbatim, never stripped or parsed.
    """

    model_config = ConfigDict(extra="ignore")

    description: str = Field(..., min_length=1, description="Free-text description of the card")


class ErrorResponse(BaseModel):
    """Error body shared by every non-200 response of /generate-card."""

    error: str
    details: str
    retryAfter: int | None = None  # noqa: N815 (wire name)


class ServiceInfoResponse(BaseModel):
    """GET / service banner."""

    status: str = "Server is running"
    endpoints: list[str] = Field(default_factory=lambda: ["/generate-card"])
    version: str


class LivenessResponse(BaseModel):
    """Liveness probe: minimal, near-zero cost."""

    status: str = "ok"


class ReadinessResponse(BaseModel):
    """Readiness probe: can the instance serve traffic?"""

    status: str  # "ready" or "not_ready"
    credential_configured: bool
    active_requests: int = Field(..., ge=0)
    max_concurrent_requests: int = Field(..., ge=1)
