"""Health check endpoint with a Printify reachability check.

The check has a short timeout and never affects the overall status: the
endpoint always returns 200 with status "ok" so load balancers keep
routing while Printify is having a bad day.
"""

from __future__ import annotations

import httpx
import structlog
from fastapi import APIRouter, Request

from podlister.config import settings

logger = structlog.get_logger()

router = APIRouter(tags=["health"])

VERSION = "0.1.0"
_CHECK_TIMEOUT = 3.0  # seconds


async def _check_printify(http_client: httpx.AsyncClient) -> str:
    """Any HTTP answer (even 401 without a token) means Printify is reachable."""
    try:
        await http_client.get(
            f"{settings.printify_api_base.rstrip('/')}/catalog/blueprints.json",
            timeout=_CHECK_TIMEOUT,
        )
        return "connected"
    except httpx.HTTPError as exc:
        logger.debug("health_printify_failed", error=str(exc))
        return "disconnected"


@router.get("/health")
async def health_check(request: Request) -> dict:
    return {
        "status": "ok",
        "version": VERSION,
        "environment": settings.environment,
        "printify": await _check_printify(request.app.state.http_client),
        "gemini": "configured" if settings.google_ai_api_key else "disabled",
    }
