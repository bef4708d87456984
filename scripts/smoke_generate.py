#!/usr/bin/env python3
"""Smoke-test a running card generator with a handful of sample descriptions.

Usage:
    # Against a deployed server:
    python scripts/smoke_generate.py --url https://cards.example.com

    # Against a local server:
    python scripts/smoke_generate.py --url http://localhost:3000

Requires a live server with OPENAI_API_KEY configured. The script polls
/health/ready before starting. Requests run one at a time: the server
admits a single generation and answers 429 to the rest.
"""

from __future__ import annotations

import argparse
import sys
import time

import httpx

SAMPLE_DESCRIPTIONS = [
    "a weather widget showing today's forecast",
    "a meeting RSVP form with name, email and dietary preferences",
    "a list of open support tickets with priority and assignee",
    "an expense approval card with approve and reject buttons",
    "a restaurant menu with three dishes and prices",
]


def wait_for_server(
    client: httpx.Client, *, timeout_s: int = 60, poll_interval_s: int = 2
) -> bool:
    """Poll /health/ready until it returns 200 or timeout expires."""
    print(f"⏳ Waiting for server to become ready (timeout: {timeout_s}s)...")
    start = time.perf_counter()
    while time.perf_counter() - start < timeout_s:
        try:
            resp = client.get("/health/ready", timeout=5)
            if resp.status_code == 200:
                print(f"✅ Server ready in {time.perf_counter() - start:.1f}s")
                return True
            print(f"   Not ready yet (status={resp.status_code}), retrying...")
        except httpx.RequestError as e:
            print(f"   Connection failed ({e}), retrying...")
        time.sleep(poll_interval_s)

    print("❌ Server did not become ready within timeout.")
    return False


def generate_card(client: httpx.Client, description: str) -> tuple[int, dict]:
    """POST /generate-card. Returns (status, body); status 0 on transport failure."""
    try:
        resp = client.post("/generate-card", json={"description": description}, timeout=120)
        return resp.status_code, resp.json()
    except httpx.RequestError as e:
        return 0, {"error": "request failed", "details": str(e)}
    except ValueError:
        return resp.status_code, {"error": "non-JSON body", "details": resp.text[:200]}


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--url", required=True, help="Server base URL (e.g. http://localhost:3000)")
    parser.add_argument(
        "--timeout",
        type=int,
        default=60,
        help="Max seconds to wait for server readiness (default: 60)",
    )
    args = parser.parse_args()

    client = httpx.Client(base_url=args.url)

    if not wait_for_server(client, timeout_s=args.timeout):
        sys.exit(1)

    print(f"\n🚀 Generating {len(SAMPLE_DESCRIPTIONS)} cards...\n")

    successes = 0
    failures: list[str] = []
    total_start = time.perf_counter()

    for i, description in enumerate(SAMPLE_DESCRIPTIONS, 1):
        t0 = time.perf_counter()
        status, body = generate_card(client, description)
        elapsed_ms = (time.perf_counter() - t0) * 1000
        label = description[:40]

        if status == 200:
            successes += 1
            elements = body.get("body") or []
            actions = body.get("actions") or []
            print(
                f"  [{i}/{len(SAMPLE_DESCRIPTIONS)}] {label:40s} "
                f"✅ {len(elements)} elements · {len(actions)} actions · {elapsed_ms:.0f}ms"
            )
        else:
            failures.append(description)
            print(
                f"  [{i}/{len(SAMPLE_DESCRIPTIONS)}] {label:40s} "
                f"❌ HTTP {status}: {body.get('error')} ({body.get('details')})"
            )
            if "retryAfter" in body:
                print(f"     provider rate limited, retry after {body['retryAfter']}s; stopping.")
                break

    total_time = time.perf_counter() - total_start

    print(f"\n{'─' * 60}")
    print(f"  Total time:    {total_time:.1f}s")
    print(f"  Successes:     {successes}/{len(SAMPLE_DESCRIPTIONS)}")
    print(f"  Failures:      {len(failures)}")
    print(f"{'─' * 60}\n")

    client.close()

    if failures:
        sys.exit(1)


if __name__ == "__main__":
    main()
