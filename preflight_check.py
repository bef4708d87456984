#!/usr/bin/env python3
"""Pre-flight check: verifies deps resolve and the provider credential is set before deploy.

Usage:
    python preflight_check.py
"""

import sys

ok = True


def check(label: str, code: str) -> bool:
    """Try an import (or any statement). Records failure without stopping."""
    global ok  # noqa: PLW0603

    try:
        exec(code)  # noqa: S102
        print(f"  ✓ {label}")
        return True
    except Exception as exc:
        print(f"  ✗ {label}: {exc}")
        ok = False
        return False


print("Web stack:")
check("fastapi, uvicorn, httpx", "import fastapi, uvicorn, httpx")
check("pydantic, pydantic_settings", "import pydantic, pydantic_settings")

print("Observability:")
check("structlog", "import structlog")
check("prometheus_client", "import prometheus_client")
check("opentelemetry", "import opentelemetry.trace, opentelemetry.sdk.trace")

print("App modules:")
check("create_app", "from cardgen.main import create_app")
check("CardPipeline", "from cardgen.services.pipeline import CardPipeline")

print("Configuration:")
try:
    from cardgen.config import get_settings

    settings = get_settings()
    if settings.has_credential:
        print(f"  ✓ OPENAI_API_KEY set (model={settings.openai_model}, port={settings.port})")
    else:
        print("  ✗ OPENAI_API_KEY is not set; /generate-card will answer 500")
        ok = False
except Exception as exc:
    print(f"  ✗ settings failed to load: {exc}")
    ok = False

print()
if ok:
    print("All checks pass: safe to deploy.")
else:
    print("FAILED: fix the errors above before deploying.")
    sys.exit(1)
