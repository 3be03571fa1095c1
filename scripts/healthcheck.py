#!/usr/bin/env python3
"""Monitoring / healthcheck script for the Connect marketplace API.

Checks the availability of:
    - FastAPI application (/health)
    - Stripe API (authenticated GET /v1/balance when a secret key is set)

Outputs a JSON array of ``{service, status, latency_ms}`` objects.

Exit codes:
    0 -- all services healthy
    1 -- one or more services unhealthy
"""

from __future__ import annotations

import asyncio
import json
import os
import sys
import time
from typing import Any

import httpx

# ---------------------------------------------------------------------------
# Configuration -- all overridable via environment variables
# ---------------------------------------------------------------------------

APP_URL = os.environ.get("APP_URL", "http://localhost:3000")
STRIPE_API_BASE = os.environ.get("STRIPE_API_BASE", "https://api.stripe.com")
STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY", "")

# Timeout in seconds for each individual check.
CHECK_TIMEOUT = float(os.environ.get("HEALTHCHECK_TIMEOUT", "5"))


def _result(service: str, start: float, healthy: bool, **extra: Any) -> dict[str, Any]:
    latency = (time.monotonic() - start) * 1000
    return {
        "service": service,
        "status": "healthy" if healthy else "unhealthy",
        "latency_ms": round(latency, 2),
        **extra,
    }


# ---------------------------------------------------------------------------
# Individual checks
# ---------------------------------------------------------------------------

async def check_app(client: httpx.AsyncClient) -> dict[str, Any]:
    """Hit the FastAPI /health endpoint and require ``status == "ok"``."""
    start = time.monotonic()
    try:
        resp = await client.get(f"{APP_URL}/health", timeout=CHECK_TIMEOUT)
        healthy = resp.status_code == 200 and resp.json().get("status") == "ok"
        return _result("app", start, healthy)
    except Exception as exc:
        return _result("app", start, False, error=str(exc))


async def check_stripe(client: httpx.AsyncClient) -> dict[str, Any]:
    """Call the Stripe API.

    With a secret key the balance endpoint also validates the credentials;
    without one any HTTP answer (even 401) proves the API is reachable.
    """
    start = time.monotonic()
    try:
        if STRIPE_SECRET_KEY:
            resp = await client.get(
                f"{STRIPE_API_BASE}/v1/balance",
                auth=(STRIPE_SECRET_KEY, ""),
                timeout=CHECK_TIMEOUT,
            )
            healthy = resp.status_code == 200
        else:
            resp = await client.get(f"{STRIPE_API_BASE}/v1/balance", timeout=CHECK_TIMEOUT)
            healthy = resp.status_code < 500
        return _result("stripe", start, healthy)
    except Exception as exc:
        return _result("stripe", start, False, error=str(exc))


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------

async def run_checks() -> list[dict[str, Any]]:
    """Run all health checks concurrently and return results."""
    async with httpx.AsyncClient() as client:
        results = await asyncio.gather(
            check_app(client),
            check_stripe(client),
        )
    return list(results)


async def main() -> int:
    results = await run_checks()

    json.dump(results, sys.stdout, indent=2)
    sys.stdout.write("\n")

    all_healthy = all(r["status"] == "healthy" for r in results)
    return 0 if all_healthy else 1


if __name__ == "__main__":
    exit_code = asyncio.run(main())
    sys.exit(exit_code)
