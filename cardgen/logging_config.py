# ─────────────────────────────────────────────────────────────────────────────
# Logging Configuration — structlog with provider-credential masking
# ─────────────────────────────────────────────────────────────────────────────


import logging
import re
import sys
from typing import Any

import structlog

# httpx/httpcore log every outbound provider call at INFO.
_CHATTY_LOGGERS: tuple[str, ...] = ("httpx", "httpcore")

# Provider error messages can echo the API key back ("Incorrect API key provided: sk-...").
_API_KEY_PATTERN = re.compile(r"(?<![A-Za-z0-9])sk-[A-Za-z0-9_\-]{6,}")
_MASK = "sk-***"


def _mask(value: Any) -> Any:
    if isinstance(value, str):
        return _API_KEY_PATTERN.sub(_MASK, value)
    return value


def mask_api_keys(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """structlog processor: replace anything shaped like a provider key in string fields."""
    return {key: _mask(value) for key, value in event_dict.items()}


def configure_logging(log_level: str = "INFO", json_output: bool = True) -> None:
    """Route structlog through the stdlib root handler.

    JSON output is one object per line for log shipping; console output is
    for local runs. Every event carries the request ID bound by the
    middleware, and provider keys are masked before rendering.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        mask_api_keys,
    ]

    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
