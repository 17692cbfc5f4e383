"""
Health check endpoint.

GET /health — checks key-value store and user directory connectivity.
Rules:
- Store failure → "unhealthy" (503) — sessions and codes live there; every
  auth operation would fail closed.
- Directory failure or absence → "degraded" (200) — refresh and logout still
  work; only OTP requests for known identifiers are affected.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from errors import StoreError
from schemas.dto.responses.common import HealthResponse
from shared.logging import get_logger

log = get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request) -> JSONResponse:
    checks: dict[str, str] = {}
    overall = "healthy"

    try:
        await request.app.state.store.ping()
        checks["store"] = "ok"
    except StoreError as e:
        log.warning("health_store_failed", error_type=type(e).__name__)
        checks["store"] = "error"
        overall = "unhealthy"

    db = getattr(request.app.state, "db", None)
    if db is None:
        checks["user_directory"] = "not_configured"
        if overall == "healthy":
            overall = "degraded"
    else:
        try:
            await db.client.admin.command("ping")
            checks["user_directory"] = "ok"
        except Exception as e:
            log.warning("health_directory_failed", error_type=type(e).__name__)
            checks["user_directory"] = "error"
            if overall == "healthy":
                overall = "degraded"

    status_code = 503 if overall == "unhealthy" else 200
    return JSONResponse(
        status_code=status_code,
        content=HealthResponse(status=overall, checks=checks).model_dump(),
    )
