# app/main.py
from __future__ import annotations

# Load .env early so settings and os.getenv agree
from dotenv import load_dotenv
load_dotenv()

import secrets
import time

import sqlalchemy as sa
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import ErrorSeverity, error_aggregator, log_error, register_exception_handlers
from app.core.logging import LoggingMiddleware, get_logger, setup_logging
from app.db.session import get_session

# Routers
from app.api.routes.appointments import router as appointments_router
from app.api.routes.availability import router as availability_router
from app.api.routes.exceptions import router as exceptions_router
from app.api.routes.maintenance import router as maintenance_router
from app.api.routes.reschedule import router as reschedule_router
from app.api.routes.slots import router as slots_router

setup_logging(debug=settings.is_development, max_log_length=settings.MAX_LOG_LENGTH)
logger = get_logger(__name__)

app = FastAPI(title="Clinic Scheduling", description="Doctor availability, slots and rescheduling")

app.middleware("http")(
    LoggingMiddleware(
        log_requests=settings.LOG_REQUESTS or settings.is_development,
        log_responses=settings.LOG_RESPONSES or settings.is_development,
        slow_threshold=settings.SLOW_REQUEST_THRESHOLD,
    )
)
register_exception_handlers(app)


# -------- Health / readiness (public) --------
@app.get("/healthz", include_in_schema=False)
async def healthz():
    return {"ok": True}


@app.get("/readyz", include_in_schema=False)
async def readyz(db: AsyncSession = Depends(get_session)):
    await db.execute(sa.text("SELECT 1"))
    return {"db": "ok"}


@app.get("/metrics", include_in_schema=False)
async def metrics():
    """Internal metrics endpoint for monitoring."""
    return {
        "status": "healthy",
        "errors": error_aggregator.get_error_summary(),
        "timestamp": time.time(),
    }


# -------- Global security gate (single place) --------
PUBLIC_EXACT = {
    "/healthz",
    "/readyz",
    "/metrics",
    "/docs",
    "/openapi.json",
    "/favicon.ico",
}


def _is_public(path: str) -> bool:
    return path in PUBLIC_EXACT


@app.middleware("http")
async def lock_all(request: Request, call_next):
    path = request.url.path
    if _is_public(path):
        return await call_next(request)

    # No key configured: open in dev/test, closed everywhere else
    if not settings.API_KEY:
        if settings.is_development or settings.is_testing:
            return await call_next(request)
        log_error(Exception("API key not configured"), {"endpoint": path}, ErrorSeverity.HIGH)
        return JSONResponse({"detail": "Invalid or missing API key"}, status_code=401)

    api_key = request.headers.get("X-API-Key", "")
    if not secrets.compare_digest(api_key, settings.API_KEY):
        log_error(Exception("API key validation failed"),
                  {"endpoint": path, "has_key": bool(api_key)},
                  ErrorSeverity.MEDIUM)
        return JSONResponse({"detail": "Invalid or missing API key"}, status_code=401)

    return await call_next(request)


# -------- Include routers --------
app.include_router(availability_router)
app.include_router(slots_router)
app.include_router(exceptions_router)
app.include_router(reschedule_router)
app.include_router(appointments_router)
app.include_router(maintenance_router)

logger.info("app_started", env=settings.APP_ENV)
