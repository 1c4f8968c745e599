import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rescue_app.api.contact_router import router as contact_router
from rescue_app.api.fleet_router import responders_router, vehicles_router
from rescue_app.api.health_router import router as health_router
from rescue_app.api.incident_router import alerts_router, crash_events_router, feed_router, sos_router
from rescue_app.api.realtime_router import router as realtime_router
from rescue_app.core.config import get_settings
from rescue_app.core.errors import AppError, ErrorCodes
from rescue_app.core.logging import configure_logging
from rescue_app.middleware.request_context import RequestContextMiddleware
from rescue_app.realtime.redis_relay import RedisEventRelay
from rescue_app.realtime.websocket_manager import WebSocketManager
from rescue_app.services.event_publisher import build_event_publisher

settings = get_settings()
configure_logging("DEBUG" if settings.debug else settings.log_level)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    manager = WebSocketManager()
    publisher = build_event_publisher(settings, manager)
    relay: RedisEventRelay | None = None
    if settings.redis_url:
        relay = RedisEventRelay(settings.redis_url, settings.realtime_channel, manager)
        relay.start()

    app.state.ws_manager = manager
    app.state.publisher = publisher
    logger.info("app.started", extra={"environment": settings.environment})
    try:
        yield
    finally:
        if relay is not None:
            await relay.stop()
        await publisher.close()
        logger.info("app.stopped")


app = FastAPI(title=settings.app_name, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Correlation-ID"],
    expose_headers=["X-Correlation-ID"],
    max_age=600,
)
app.add_middleware(RequestContextMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    trace_id = getattr(request.state, "correlation_id", None)
    return JSONResponse(status_code=exc.status_code, content=exc.to_response(trace_id=trace_id))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = AppError(
        code=ErrorCodes.VALIDATION_ERROR,
        message="Missing or invalid fields.",
        status_code=400,
        details={
            "errors": [
                {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
                for err in exc.errors()
            ]
        },
    )
    trace_id = getattr(request.state, "correlation_id", None)
    return JSONResponse(status_code=error.status_code, content=error.to_response(trace_id=trace_id))


app.include_router(health_router)
app.include_router(alerts_router, prefix="/api/v1")
app.include_router(crash_events_router, prefix="/api/v1")
app.include_router(sos_router, prefix="/api/v1")
app.include_router(feed_router, prefix="/api/v1")
app.include_router(vehicles_router, prefix="/api/v1")
app.include_router(responders_router, prefix="/api/v1")
app.include_router(contact_router, prefix="/api/v1")
app.include_router(realtime_router, prefix="/api/v1")
