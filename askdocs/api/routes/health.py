"""Liveness and readiness probes.

- /health: process is up, touches nothing
- /healthz: database and Redis reachability with per-component status
"""

from typing import Any

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from askdocs.config import Settings, get_settings
from askdocs.db.engine import get_async_engine
from askdocs.ratelimit import create_redis_client

router = APIRouter()


async def check_db(settings: Settings) -> tuple[bool, str]:
    """Run SELECT 1 on the application's async engine.

    Returns:
        (is_ok, status_message)
    """
    try:
        async with get_async_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        return (False, f"error: {type(e).__name__}")
    return (True, "ok")


async def check_redis(settings: Settings) -> tuple[bool, str]:
    """PING the rate limit backend when one is configured.

    Returns:
        (is_ok, status_message); an unset REDIS_URL counts as healthy
    """
    if not settings.redis_url:
        return (True, "not_configured")

    client = create_redis_client(settings.redis_url, settings.redis_timeout_seconds)
    try:
        await client.ping()
    except Exception as e:
        return (False, f"error: {type(e).__name__}")
    finally:
        await client.aclose()
    return (True, "ok")


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe; always 200 while the process serves requests."""
    return {"status": "ok"}


@router.get("/healthz", response_model=None)
async def healthz() -> dict[str, Any] | JSONResponse:
    """Readiness probe.

    Returns:
        200 with component status when every component is ok, 503 otherwise
    """
    settings = get_settings()
    components: dict[str, str] = {}
    healthy = True

    for name, check in (("db", check_db), ("redis", check_redis)):
        ok, detail = await check(settings)
        components[name] = detail
        healthy = healthy and ok

    body = {"status": "ok" if healthy else "degraded", "components": components}
    if not healthy:
        return JSONResponse(body, status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return body
