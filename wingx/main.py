"""
Wingx admin backend
Payment verification, new-order notifications and the store catalog
"""

import asyncio
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from wingx.api import auth, shell, store, verification, ws
from wingx.container import build_services
from wingx.core import RequestLoggingMiddleware, ServiceHealth, get_logger, setup_logging
from wingx.core_settings import get_settings
from wingx.infrastructure.db import get_engine, init_engine, init_models

SERVICE_NAME = "wingx-admin"
SERVICE_VERSION = os.getenv("SERVICE_VERSION", "1.0.0")
SERVICE_DESCRIPTION = "Wingx admin backend"

setup_logging(
    service_name=SERVICE_NAME,
    level=os.getenv("LOG_LEVEL", "INFO")
)

logger = get_logger(__name__)


async def sweep_sessions(registry, interval: float):
    """Close sessions whose token expired without a logout."""
    while True:
        await asyncio.sleep(interval)
        closed = registry.close_expired()
        if closed:
            logger.info(f"Closed {closed} expired session(s)")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {SERVICE_NAME} version {SERVICE_VERSION}")
    settings = get_settings()
    try:
        init_engine(settings.database_url)
        init_models()
        logger.info("Database models initialized")
    except Exception as e:
        logger.error(f"Failed to initialize database models: {e}")
        raise
    app.state.services = build_services(settings)
    sweeper = asyncio.create_task(sweep_sessions(app.state.services.registry, settings.SESSION_SWEEP_INTERVAL_SEC))
    logger.info(f"{SERVICE_NAME} started successfully")

    yield

    logger.info(f"Shutting down {SERVICE_NAME}")
    sweeper.cancel()
    app.state.services.registry.close_all()


app = FastAPI(
    title=SERVICE_NAME,
    description=SERVICE_DESCRIPTION,
    version=SERVICE_VERSION,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)


def _active_sessions() -> int:
    services = getattr(app.state, "services", None)
    return len(services.registry) if services else 0


def _uploads_configured() -> bool:
    settings = get_settings()
    return bool(settings.IMAGEKIT_PUBLIC_KEY and settings.IMAGEKIT_PRIVATE_KEY)


health_service = ServiceHealth(
    SERVICE_NAME,
    SERVICE_VERSION,
    engine_provider=get_engine,
    upload_configured=_uploads_configured,
    active_sessions=_active_sessions,
)
app.include_router(health_service.create_health_router())

app.include_router(auth.router)
app.include_router(verification.router)
app.include_router(store.router)
app.include_router(shell.router)
app.include_router(ws.router)


@app.get("/")
async def root():
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "status": "running",
        "docs": "/api/docs"
    }
