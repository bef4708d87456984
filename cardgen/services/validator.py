# Adaptive Card validation: parse the model's message text and check the top-level tag.
# Nested card structure is passed through untouched.


import json
from typing import Any

from cardgen.exceptions import MalformedResponseError

CARD_TYPE = "AdaptiveCard"


def _reject_constant(name: str) -> Any:
    # json.loads accepts NaN/Infinity/-Infinity, which strict JSON (and JSONResponse) refuse.
    raise ValueError(f"non-standard JSON constant {name}")


def validate_card(raw_text: str) -> dict[str, Any]:
    """Parse provider message text into a card artifact.

    Raises MalformedResponseError for invalid JSON (including NaN and
    Infinity literals), a non-object value, or a missing/wrong ``type`` tag.
    The raw text rides on the exception for logs.
    """
    try:
        card = json.loads(raw_text, parse_constant=_reject_constant)
    except (ValueError, TypeError) as e:
        raise MalformedResponseError(f"invalid JSON: {e}", raw_text=raw_text) from e

    if not isinstance(card, dict):
        raise MalformedResponseError(
            f"expected a JSON object, got {type(card).__name__}", raw_text=raw_text
        )

    if card.get("type") != CARD_TYPE:
        raise MalformedResponseError(
            f"type tag is {card.get('type')!r}, expected {CARD_TYPE!r}", raw_text=raw_text
        )

    return card
