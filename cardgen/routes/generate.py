# ─────────────────────────────────────────────────────────────────────────────
# POST /generate-card — Adaptive Card generation endpoint (THIN)
# ─────────────────────────────────────────────────────────────────────────────


from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from cardgen.dependencies import get_card_pipeline
from cardgen.schemas import ErrorResponse, GenerateCardRequest
from cardgen.services.pipeline import CardPipeline

router = APIRouter()

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Missing description"},
    429: {"model": ErrorResponse, "description": "Server busy or provider rate limit"},
    500: {"model": ErrorResponse, "description": "Misconfiguration, provider or card error"},
    504: {"model": ErrorResponse, "description": "Provider timed out"},
}


@router.post("/generate-card", responses=_ERROR_RESPONSES)
async def generate_card(
    body: GenerateCardRequest,
    pipeline: CardPipeline = Depends(get_card_pipeline),
) -> JSONResponse:
    """Generate an Adaptive Card from a free-text description.

    The card object is the whole response body, not wrapped.
    Validation is Pydantic. Errors are exceptions. Logic is in the pipeline.
    """
    card = await pipeline.generate(body)
    return JSONResponse(content=card)
