import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

import redis.asyncio as redis_async

from rescue_app.core.config import get_settings
from rescue_app.db.session import get_async_db_session

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/healthz")
async def healthz(request: Request, db: AsyncSession = Depends(get_async_db_session)) -> JSONResponse:
    settings = get_settings()
    checks: dict[str, str] = {}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "connected"
    except Exception as exc:
        logger.warning("health.database.unreachable", extra={"error": str(exc)})
        checks["database"] = "unreachable"

    if settings.redis_url:
        client = redis_async.from_url(settings.redis_url, socket_connect_timeout=2)
        try:
            await client.ping()
            checks["redis"] = "connected"
        except Exception as exc:
            logger.warning("health.redis.unreachable", extra={"error": str(exc)})
            checks["redis"] = "unreachable"
        finally:
            await client.aclose()
    else:
        checks["redis"] = "not_configured"

    manager = getattr(request.app.state, "ws_manager", None)
    healthy = checks["database"] == "connected" and checks["redis"] != "unreachable"
    body = {
        "status": "ok" if healthy else "degraded",
        "checks": checks,
        "realtime_connections": manager.connection_count if manager is not None else 0,
    }
    return JSONResponse(status_code=200 if healthy else 503, content=body)
